"""Message parts: the atomic content units of a message.

A part is either text or structured data. Wire parts of any other kind are
dropped while parsing instead of leaking untyped dicts into the store.
"""
import logging
from typing import Annotated, Any, Iterable, Literal

from pydantic import Field, TypeAdapter, ValidationError

from a2a_chat.models.base import FrozenModel

logger = logging.getLogger(__name__)


class TextPart(FrozenModel):
    """Plain text content."""

    kind: Literal["text"] = "text"
    text: str


class DataPayload(FrozenModel):
    """Typed structured payload carried by a data part."""

    type: str = ""
    payload: Any = None


class DataPart(FrozenModel):
    """Structured content (tables, cards, tool output...)."""

    kind: Literal["data"] = "data"
    data: DataPayload


Part = Annotated[TextPart | DataPart, Field(discriminator="kind")]

_part_adapter: TypeAdapter[TextPart | DataPart] = TypeAdapter(Part)


def parse_part(raw: Any) -> TextPart | DataPart | None:
    """Validate one wire part, returning None if it is not a known kind."""
    try:
        return _part_adapter.validate_python(raw)
    except ValidationError as e:
        logger.warning(f"Skipping unsupported part {raw!r}: {e.error_count()} validation error(s)")
        return None


def parse_parts(raw: Any) -> tuple[TextPart | DataPart, ...]:
    """Validate a wire part list, keeping order and dropping unknown parts."""
    if not isinstance(raw, list):
        return ()
    parts = (parse_part(item) for item in raw)
    return tuple(part for part in parts if part is not None)


def flatten_text(parts: Iterable[TextPart | DataPart]) -> str:
    """Join the text of all text parts, in order, one per line."""
    return "\n".join(part.text for part in parts if isinstance(part, TextPart))
