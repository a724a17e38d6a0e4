"""In-memory conversation store.

Holds the conversations (newest first) and the active conversation pointer.
Every mutation builds a new tuple of frozen models and swaps it in at once,
so callers and listeners only ever see complete states.
"""
import logging
from collections.abc import Callable, Iterable

from a2a_chat.constants import MessageStatus
from a2a_chat.core.errors import ConversationExistsError
from a2a_chat.models.conversation import ChatMessage, Conversation, utcnow
from a2a_chat.models.parts import Part

logger = logging.getLogger(__name__)

Snapshot = tuple[Conversation, ...]
StoreListener = Callable[[Snapshot], None]
MessageUpdater = Callable[[ChatMessage], ChatMessage]


class ConversationStore:
    """Append-oriented collection of conversations and their messages."""

    def __init__(self, conversations: Iterable[Conversation] = ()):
        self._conversations: Snapshot = tuple(conversations)
        self._active_id: str | None = None
        self._listeners: list[StoreListener] = []

    # ── Reads ───────────────────────────────────────────────────────────────

    @property
    def conversations(self) -> Snapshot:
        return self._conversations

    @property
    def active_id(self) -> str | None:
        return self._active_id

    @property
    def active(self) -> Conversation | None:
        return self.get(self._active_id) if self._active_id else None

    def get(self, conversation_id: str) -> Conversation | None:
        return next((c for c in self._conversations if c.id == conversation_id), None)

    def __contains__(self, conversation_id: object) -> bool:
        return any(c.id == conversation_id for c in self._conversations)

    def __len__(self) -> int:
        return len(self._conversations)

    # ── Listeners ───────────────────────────────────────────────────────────

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Call listener with the new snapshot after every change.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, conversations: Snapshot) -> None:
        self._conversations = conversations
        for listener in list(self._listeners):
            try:
                listener(conversations)
            except Exception:
                # A failing observer must not undo or block the mutation
                logger.exception(f"Conversation store listener {listener!r} failed")

    def _replace(self, conversation_id: str, update: Callable[[Conversation], Conversation]) -> bool:
        """Swap in update(conversation) for one conversation; False if absent."""
        if conversation_id not in self:
            return False
        self._commit(tuple(
            update(c) if c.id == conversation_id else c
            for c in self._conversations
        ))
        return True

    # ── Mutations ───────────────────────────────────────────────────────────

    def insert(self, conversation: Conversation) -> None:
        """Prepend a new conversation.

        Raises:
            ConversationExistsError: If a conversation with the same id exists.
        """
        if conversation.id in self:
            raise ConversationExistsError(conversation.id)
        self._commit((conversation, *self._conversations))

    def append_messages(self, conversation_id: str, messages: Iterable[ChatMessage]) -> None:
        """Append messages to a conversation; no-op if it no longer exists."""
        messages = tuple(messages)
        if not self._replace(conversation_id, lambda c: c.model_copy(update={
            "messages": c.messages + messages,
            "updated_at": utcnow(),
        })):
            logger.debug(f"append_messages: conversation {conversation_id} not found")

    def update_message(self, conversation_id: str, message_id: str, updater: MessageUpdater) -> None:
        """Replace one message with updater(message); no-op if either is absent."""
        conversation = self.get(conversation_id)
        if conversation is None or conversation.find_message(message_id) is None:
            logger.debug(f"update_message: {conversation_id}/{message_id} not found")
            return
        self._replace(conversation_id, lambda c: c.model_copy(update={
            "messages": tuple(updater(m) if m.id == message_id else m for m in c.messages),
        }))

    def update_status(self, conversation_id: str, message_id: str, status: MessageStatus) -> None:
        self.update_message(conversation_id, message_id, lambda m: m.with_status(status))

    def append_parts(self, conversation_id: str, message_id: str, parts: Iterable[Part]) -> None:
        """Append parts to a message, refresh its display text and mark it streaming."""
        parts = tuple(parts)
        conversation = self.get(conversation_id)
        if conversation is None or conversation.find_message(message_id) is None:
            logger.debug(f"append_parts: {conversation_id}/{message_id} not found")
            return
        self._replace(conversation_id, lambda c: c.model_copy(update={
            "messages": tuple(
                m.with_parts_appended(parts) if m.id == message_id else m
                for m in c.messages
            ),
            "updated_at": utcnow(),
        }))

    def rename_conversation(self, old_id: str, new_id: str) -> bool:
        """Change a conversation's id, keeping its messages untouched.

        The active pointer follows the rename. Renaming onto an id owned by
        another conversation is refused.

        Returns:
            True if the id changed.
        """
        if old_id == new_id or old_id not in self:
            return False
        if new_id in self:
            logger.warning(f"Not renaming conversation {old_id}: {new_id} already exists")
            return False
        if self._active_id == old_id:
            self._active_id = new_id
        self._replace(old_id, lambda c: c.model_copy(update={"id": new_id}))
        return True

    def remove(self, conversation_id: str) -> None:
        """Delete a conversation, deselecting it if it is active."""
        if conversation_id in self:
            self._commit(tuple(c for c in self._conversations if c.id != conversation_id))
        if self._active_id == conversation_id:
            self._active_id = None

    def set_active(self, conversation_id: str | None) -> None:
        self._active_id = conversation_id
