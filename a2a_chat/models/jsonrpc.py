"""JSON-RPC envelopes used on the gateway's agent endpoints."""
import uuid
from typing import Any, Literal

from pydantic import Field

from a2a_chat.constants import JSONRPC_VERSION, MessageRole, RpcMethod
from a2a_chat.models.base import FrozenModel
from a2a_chat.models.parts import TextPart


class OutgoingMessage(FrozenModel):
    """A user message as sent to an agent."""

    kind: Literal["message"] = "message"
    message_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: MessageRole = MessageRole.USER
    context_id: str
    parts: tuple[TextPart, ...]


class MessageSendParams(FrozenModel):
    message: OutgoingMessage


class JsonRpcRequest(FrozenModel):
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    method: RpcMethod
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    params: MessageSendParams


class JsonRpcError(FrozenModel):
    code: int | None = None
    message: str = "Unknown error"
    data: Any = None


class JsonRpcResponse(FrozenModel):
    jsonrpc: str = JSONRPC_VERSION
    id: str | int | None = None
    result: dict[str, Any] | None = None
    error: JsonRpcError | None = None


def build_message_request(method: RpcMethod, text: str, context_id: str) -> JsonRpcRequest:
    """Build a message/send or message/stream request for one user turn.

    Args:
        method: RPC method to call.
        text: User message text.
        context_id: Conversation context the message belongs to.

    Returns:
        Request envelope with fresh request and message ids.
    """
    message = OutgoingMessage(context_id=context_id, parts=(TextPart(text=text),))
    return JsonRpcRequest(method=method, params=MessageSendParams(message=message))
