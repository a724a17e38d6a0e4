"""Incremental decoder for the gateway's text-event framing.

The stream is a sequence of blocks separated by a blank line. Each block
holds zero or more ``data:`` lines which together form one payload. Chunks
can split a block (or a line) anywhere; the decoder buffers the tail until
it is completed by a later chunk or by the end of the stream.

Unlike ``EventSource.aiter_sse()``, an unterminated final block is not
dropped: ``flush()`` decodes it when the body ends.
"""
from httpx_sse import ServerSentEvent

BLOCK_SEPARATOR = "\n\n"
DEFAULT_EVENT_NAME = "message"


def _normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _field_value(line: str, name: str) -> str | None:
    """Return the value of a ``name:`` line, or None if the line is another field."""
    prefix = f"{name}:"
    if not line.startswith(prefix):
        return None
    value = line[len(prefix):]
    return value[1:] if value.startswith(" ") else value


def decode_block(block: str) -> ServerSentEvent | None:
    """Decode one block into an event, or None if it carries no data."""
    data_lines: list[str] = []
    event_name = DEFAULT_EVENT_NAME
    for line in block.split("\n"):
        data = _field_value(line, "data")
        if data is not None:
            data_lines.append(data)
            continue
        name = _field_value(line, "event")
        if name is not None:
            event_name = name.strip() or DEFAULT_EVENT_NAME

    data = "\n".join(data_lines).strip()
    if not data:
        return None
    return ServerSentEvent(event=event_name, data=data)


class SSEBlockDecoder:
    """Stateful block decoder fed with decoded text chunks."""

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Text received but not yet decoded."""
        return self._buffer

    def feed(self, chunk: str) -> list[ServerSentEvent]:
        """Add a chunk and return the events of every block it completes."""
        text = self._buffer + chunk
        # A trailing CR may be the first half of a CRLF split across chunks
        held = ""
        if text.endswith("\r"):
            text, held = text[:-1], "\r"

        *blocks, rest = _normalize_newlines(text).split(BLOCK_SEPARATOR)
        self._buffer = rest + held
        return self._decode_blocks(blocks)

    def flush(self) -> list[ServerSentEvent]:
        """Decode whatever is buffered as the final block(s) of the stream."""
        text = _normalize_newlines(self._buffer)
        self._buffer = ""
        return self._decode_blocks(text.split(BLOCK_SEPARATOR))

    @staticmethod
    def _decode_blocks(blocks: list[str]) -> list[ServerSentEvent]:
        events = (decode_block(block) for block in blocks if block.strip())
        return [event for event in events if event is not None]
