"""Conversation and chat message models.

Both are frozen: the conversation store replaces instances instead of
mutating them, so a snapshot handed to a listener never changes under it.
"""
import uuid
from datetime import datetime, timezone
from typing import Iterable

from pydantic import Field

from a2a_chat.constants import TITLE_ELLIPSIS, TITLE_TRUNCATE_LENGTH, MessageRole, MessageStatus
from a2a_chat.models.base import FrozenModel
from a2a_chat.models.parts import Part, TextPart, flatten_text


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def make_title(text: str, max_length: int = TITLE_TRUNCATE_LENGTH) -> str:
    """Truncate the first user message into a conversation title."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 1] + TITLE_ELLIPSIS


class ChatMessage(FrozenModel):
    """One message of a conversation.

    Attributes:
        id: Locally generated id, unique within the conversation
        role: Author of the message
        parts: Ordered content parts
        status: Lifecycle status (agent messages move sending -> streaming -> done|error)
        display_text: Newline-joined text of the text parts, kept in sync on append
        agent_name: Display name of the answering agent
        timestamp: Creation time
    """

    id: str = Field(default_factory=new_id)
    role: MessageRole
    parts: tuple[Part, ...] = ()
    status: MessageStatus
    display_text: str | None = None
    agent_name: str | None = None
    timestamp: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_user(cls, text: str) -> "ChatMessage":
        """Create a completed user message."""
        return cls(
            role=MessageRole.USER,
            parts=(TextPart(text=text),),
            status=MessageStatus.DONE,
        )

    @classmethod
    def agent_placeholder(cls, agent_name: str | None = None) -> "ChatMessage":
        """Create the empty agent message shown while waiting for a reply."""
        return cls(
            role=MessageRole.AGENT,
            display_text="",
            status=MessageStatus.SENDING,
            agent_name=agent_name,
        )

    def with_parts_appended(self, new_parts: Iterable[Part]) -> "ChatMessage":
        """Return a copy with new_parts appended and display text recomputed."""
        merged = self.parts + tuple(new_parts)
        return self.model_copy(update={
            "parts": merged,
            "display_text": flatten_text(merged),
            "status": MessageStatus.STREAMING,
        })

    def with_content(self, parts: Iterable[Part], status: MessageStatus) -> "ChatMessage":
        """Return a copy whose content is replaced by parts."""
        parts = tuple(parts)
        return self.model_copy(update={
            "parts": parts,
            "display_text": flatten_text(parts),
            "status": status,
        })

    def with_status(self, status: MessageStatus) -> "ChatMessage":
        return self.model_copy(update={"status": status})


class Conversation(FrozenModel):
    """A multi-turn exchange with one agent.

    ``id`` is the protocol context id; it may be replaced once by the
    canonical id the gateway assigns.
    """

    id: str
    agent_id: str
    title: str
    messages: tuple[ChatMessage, ...] = ()
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def find_message(self, message_id: str) -> ChatMessage | None:
        return next((m for m in self.messages if m.id == message_id), None)
