"""Stream events delivered to the consumer of one streamed turn.

The gateway pushes JSON-RPC enveloped A2A events. They are reduced to a
closed set of four event types:

- ``Working``: the agent is busy but sent no content
- ``PartsReceived``: new content parts, in arrival order
- ``StreamDone``: graceful end, with the canonical context id if one was seen
- ``StreamFailed``: the stream failed; always the last event

Exactly one of ``StreamDone``/``StreamFailed`` ends every stream that is not
cancelled.
"""
import logging
from dataclasses import dataclass
from typing import Any

from a2a_chat.constants import JSONRPC_VERSION, EventKind, TaskState
from a2a_chat.core.errors import A2AClientError, ProtocolError
from a2a_chat.models.parts import DataPart, TextPart, parse_parts

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Working:
    pass


@dataclass(frozen=True)
class PartsReceived:
    parts: tuple[TextPart | DataPart, ...]


@dataclass(frozen=True)
class StreamDone:
    context_id: str | None


@dataclass(frozen=True)
class StreamFailed:
    error: A2AClientError


StreamEvent = Working | PartsReceived | StreamDone | StreamFailed
ContentEvent = Working | PartsReceived


def unwrap_envelope(payload: dict[str, Any]) -> dict[str, Any]:
    """Return the A2A event inside a JSON-RPC envelope, or the payload itself."""
    result = payload.get("result")
    if payload.get("jsonrpc") == JSONRPC_VERSION and isinstance(result, dict):
        return result
    return payload


def envelope_error(payload: dict[str, Any]) -> ProtocolError | None:
    """Return the error carried by a JSON-RPC error envelope, if any."""
    error = payload.get("error")
    if payload.get("jsonrpc") != JSONRPC_VERSION or not isinstance(error, dict):
        return None
    return ProtocolError(
        str(error.get("message") or "Unknown error"),
        code=error.get("code"),
        data=error.get("data"),
    )


def extract_context_id(payload: dict[str, Any]) -> str | None:
    """Return the first context id found on the unwrapped event or its envelope."""
    for candidate in (unwrap_envelope(payload), payload):
        context_id = candidate.get("contextId")
        if isinstance(context_id, str) and context_id:
            return context_id
    return None


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _parts_event(raw_parts: Any) -> PartsReceived | None:
    parts = parse_parts(raw_parts)
    return PartsReceived(parts) if parts else None


def interpret_event(event: dict[str, Any]) -> ContentEvent | None:
    """Map one unwrapped A2A event to a content event.

    Terminal task states are not reported here: the end of the stream is
    the only completion signal.
    """
    kind = event.get("kind")

    if kind == EventKind.STATUS_UPDATE:
        status = _as_dict(event.get("status"))
        if status.get("state") != TaskState.WORKING:
            return None
        # Content can ride along as status.message.parts
        raw_parts = _as_dict(status.get("message")).get("parts")
        if isinstance(raw_parts, list) and raw_parts:
            # Only unsupported parts: dispatch nothing
            return _parts_event(raw_parts)
        return Working()

    if kind == EventKind.ARTIFACT_UPDATE:
        artifact = _as_dict(event.get("artifact"))
        return _parts_event(artifact.get("parts"))

    if kind == EventKind.MESSAGE:
        return _parts_event(event.get("parts"))

    logger.debug(f"Ignoring stream event of kind {kind!r}")
    return None
