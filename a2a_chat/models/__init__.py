"""
Wire and domain models.

Pydantic models for agent cards, JSON-RPC envelopes, message parts and
conversations.
"""
from .agent_card import AgentCapabilities, AgentCard, AgentDescriptor, AgentSkill, agent_id_from_card
from .conversation import ChatMessage, Conversation, make_title
from .jsonrpc import JsonRpcError, JsonRpcRequest, JsonRpcResponse, build_message_request
from .parts import DataPart, DataPayload, Part, TextPart, flatten_text, parse_parts

__all__ = [
    "AgentCapabilities",
    "AgentCard",
    "AgentDescriptor",
    "AgentSkill",
    "agent_id_from_card",
    "ChatMessage",
    "Conversation",
    "make_title",
    "JsonRpcError",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "build_message_request",
    "DataPart",
    "DataPayload",
    "Part",
    "TextPart",
    "flatten_text",
    "parse_parts",
]
