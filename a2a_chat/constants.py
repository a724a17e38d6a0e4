"""Centralized constants for gateway communication and conversation state."""

from enum import StrEnum


class RpcMethod(StrEnum):
    """JSON-RPC methods exposed by the gateway for each agent."""
    MESSAGE_SEND = "message/send"
    MESSAGE_STREAM = "message/stream"


class EventKind(StrEnum):
    """Kinds of domain events carried by the push stream."""
    STATUS_UPDATE = "status-update"
    ARTIFACT_UPDATE = "artifact-update"
    MESSAGE = "message"


class TaskState(StrEnum):
    """Task states reported by status-update events."""
    SUBMITTED = "submitted"
    WORKING = "working"
    COMPLETED = "completed"
    CANCELED = "canceled"
    FAILED = "failed"


class MessageRole(StrEnum):
    """Author of a chat message."""
    USER = "user"
    AGENT = "agent"


class MessageStatus(StrEnum):
    """Lifecycle of a chat message."""
    SENDING = "sending"
    STREAMING = "streaming"
    DONE = "done"
    ERROR = "error"


# Statuses that mean a turn was still in flight when a snapshot was taken
IN_FLIGHT_STATUSES = frozenset({MessageStatus.SENDING, MessageStatus.STREAMING})

JSONRPC_VERSION = "2.0"
DISCOVERY_PATH = "/.well-known/agents.json"
DONE_SENTINEL = "[DONE]"

# Configuration defaults
TITLE_TRUNCATE_LENGTH = 42
TITLE_ELLIPSIS = "…"
