"""Exception hierarchy for the chat client core.

Transport and protocol failures are raised as ``A2AClientError`` subclasses
so callers can record them on the turn that failed without knowing which
HTTP library sits underneath.
"""
from typing import Any


class A2AClientError(Exception):
    """Base exception for gateway communication errors."""
    pass


class NetworkError(A2AClientError):
    """Raised when the transport fails (connection refused, DNS, aborted reads)."""
    pass


class ProtocolError(A2AClientError):
    """Raised when the gateway answers but the answer is not usable.

    Covers JSON-RPC error envelopes, missing results and malformed bodies.
    ``str(error)`` is the server-reported message.
    """

    def __init__(self, message: str, code: int | None = None, data: Any = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data

    def __str__(self) -> str:
        return self.message


class HttpError(ProtocolError):
    """Raised when the gateway replies with a non-success status code."""

    def __init__(self, status_code: int, body: str | None = None):
        super().__init__(f"HTTP {status_code}", code=status_code, data=body)
        self.status_code = status_code


class DecodeError(A2AClientError):
    """Raised for a single malformed stream block.

    Never leaves the protocol client: the block is logged and skipped.
    """

    def __init__(self, raw: str, reason: str):
        super().__init__(f"Malformed event block ({reason}): {raw[:200]!r}")
        self.raw = raw
        self.reason = reason


class ConversationExistsError(ValueError):
    """Raised when inserting a conversation whose id is already stored."""

    def __init__(self, conversation_id: str):
        super().__init__(f"Conversation already exists: {conversation_id}")
        self.conversation_id = conversation_id
