"""Session orchestration: one user turn at a time.

The controller turns a user input into optimistic store records, sends it
to the selected agent (streamed or synchronous, depending on the agent's
declared capability) and folds the reply into the conversation store.

Each turn carries its own ``Turn`` value. When the gateway assigns a
canonical context id, the conversation is renamed and the turn's
``conversation_id`` follows it, so late events still reach the right
conversation whatever id the caller passed in.

Finalization: a reply that arrived with visible text is left ``streaming``
so the presentation layer can finish revealing it. The turn is then flagged
``requires_finalization`` and the caller must call ``mark_done`` once the
text is fully shown. Replies without text are marked ``done`` here.
"""
import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass, field

from a2a_chat.clients.events import PartsReceived, StreamDone, StreamEvent, StreamFailed, Working
from a2a_chat.clients.protocol import ProtocolClient
from a2a_chat.constants import TITLE_TRUNCATE_LENGTH, MessageStatus
from a2a_chat.core.errors import A2AClientError
from a2a_chat.models.agent_card import AgentDescriptor
from a2a_chat.models.conversation import ChatMessage, Conversation, make_title, new_id
from a2a_chat.models.parts import TextPart
from a2a_chat.services.agent_directory import AgentDirectory
from a2a_chat.services.conversation_store import ConversationStore

logger = logging.getLogger(__name__)

_TERMINAL_STATUSES = frozenset({MessageStatus.DONE, MessageStatus.ERROR})


@dataclass
class Turn:
    """State of one user turn, owned by the task consuming its reply.

    Attributes:
        agent_id: Agent the turn was sent to
        text: User message text
        context_id: Context id sent on the wire (the local conversation id)
        conversation_id: Id the turn's conversation currently has in the store
        user_message_id: Id of the optimistic user message
        agent_message_id: Id of the agent placeholder message
        streaming: Whether the reply is streamed
        adopted: Whether a canonical context id has been adopted
        requires_finalization: Whether the caller must call ``mark_done``
    """
    agent_id: str
    text: str
    context_id: str
    conversation_id: str
    user_message_id: str
    agent_message_id: str
    streaming: bool
    adopted: bool = False
    requires_finalization: bool = False
    task: asyncio.Task | None = field(default=None, repr=False, compare=False)

    @property
    def done(self) -> bool:
        return self.task is not None and self.task.done()

    async def wait(self) -> None:
        """Wait until the reply has been handled or the turn was cancelled."""
        if self.task is not None:
            await asyncio.wait([self.task])


class SessionController:
    """Orchestrates turns between the user, the gateway and the store."""

    def __init__(
        self,
        client: ProtocolClient,
        store: ConversationStore | None = None,
        directory: AgentDirectory | None = None,
        title_max_length: int = TITLE_TRUNCATE_LENGTH,
    ):
        self._client = client
        self.store = store if store is not None else ConversationStore()
        self.directory = directory if directory is not None else AgentDirectory(client)
        self.selected_agent: AgentDescriptor | None = None
        self._title_max_length = title_max_length
        self._turn: Turn | None = None

    # ── State ───────────────────────────────────────────────────────────────

    @property
    def is_loading(self) -> bool:
        """True while a turn is in flight."""
        return self._turn is not None

    @property
    def current_turn(self) -> Turn | None:
        return self._turn

    @property
    def active_conversation(self) -> Conversation | None:
        return self.store.active

    @property
    def agents(self) -> tuple[AgentDescriptor, ...]:
        return self.directory.agents

    @property
    def agents_error(self) -> str | None:
        return self.directory.error

    # ── Agents and conversations ────────────────────────────────────────────

    async def load_agents(self) -> tuple[AgentDescriptor, ...]:
        """Refresh the agent list and select the first agent if none is selected.

        Discovery failures are exposed through ``agents_error``.
        """
        try:
            agents = await self.directory.refresh()
        except A2AClientError:
            return self.directory.agents
        if self.selected_agent is None and agents:
            self.selected_agent = agents[0]
        return agents

    def select_agent(self, agent: AgentDescriptor) -> None:
        """Switch agent; the next message starts a fresh conversation."""
        self.cancel_turn()
        self.selected_agent = agent
        self.store.set_active(None)

    def open_conversation(self, conversation_id: str) -> None:
        """Reopen a stored conversation and select the agent it belongs to."""
        self.cancel_turn()
        self.store.set_active(conversation_id)
        conversation = self.store.get(conversation_id)
        if conversation is None:
            return
        agent = self.directory.get(conversation.agent_id)
        if agent is not None:
            self.selected_agent = agent

    def new_conversation(self) -> None:
        self.cancel_turn()
        self.store.set_active(None)

    def delete_conversation(self, conversation_id: str) -> None:
        if self._turn is not None and self._turn.conversation_id == conversation_id:
            self.cancel_turn()
        self.store.remove(conversation_id)

    def mark_done(self, conversation_id: str, message_id: str) -> None:
        """Finalize a message once the presentation layer has revealed it."""
        def finalize(message: ChatMessage) -> ChatMessage:
            if message.status in _TERMINAL_STATUSES:
                return message
            return message.with_status(MessageStatus.DONE)

        self.store.update_message(conversation_id, message_id, finalize)

    # ── Turns ───────────────────────────────────────────────────────────────

    def cancel_turn(self) -> None:
        """Abort the in-flight turn, if any. Cancellation leaves no error behind."""
        turn, self._turn = self._turn, None
        if turn is None:
            return
        logger.info(f"Cancelling turn for conversation {turn.conversation_id}")
        if turn.task is not None:
            turn.task.cancel()

    def send(
        self,
        text: str,
        selected_agent: AgentDescriptor | None,
        active_conversation_id: str | None,
    ) -> Turn | None:
        """Start a turn. Must be called from a running event loop.

        The user message and an agent placeholder are stored right away; the
        reply is handled by a background task (see ``Turn.wait``).

        Args:
            text: User input; surrounding whitespace is dropped.
            selected_agent: Agent to talk to.
            active_conversation_id: Conversation to continue, or None for a new one.

        Returns:
            The started turn, or None if text is blank, no agent is selected,
            or a turn is already in flight.
        """
        text = text.strip()
        if not text or selected_agent is None:
            return None
        if self._turn is not None:
            logger.warning("Ignoring send while a turn is already in flight")
            return None

        conversation_id = active_conversation_id or new_id()
        user_message = ChatMessage.from_user(text)
        agent_message = ChatMessage.agent_placeholder(selected_agent.name)

        if conversation_id in self.store:
            self.store.append_messages(conversation_id, (user_message, agent_message))
        else:
            self.store.insert(Conversation(
                id=conversation_id,
                agent_id=selected_agent.id,
                title=make_title(text, self._title_max_length),
                messages=(user_message, agent_message),
            ))
        self.store.set_active(conversation_id)

        turn = Turn(
            agent_id=selected_agent.id,
            text=text,
            context_id=conversation_id,
            conversation_id=conversation_id,
            user_message_id=user_message.id,
            agent_message_id=agent_message.id,
            streaming=selected_agent.supports_streaming,
        )
        self._turn = turn
        turn.task = asyncio.create_task(self._run_turn(turn))
        logger.info(
            f"Started {'streaming' if turn.streaming else 'synchronous'} turn "
            f"with agent={turn.agent_id} context={turn.context_id}"
        )
        return turn

    def submit(self, text: str) -> Turn | None:
        """Send using the selected agent and the active conversation."""
        return self.send(text, self.selected_agent, self.store.active_id)

    async def wait(self) -> None:
        """Wait for the in-flight turn, if any."""
        turn = self._turn
        if turn is not None:
            await turn.wait()

    async def close(self) -> None:
        self.cancel_turn()
        await self._client.close()

    async def _run_turn(self, turn: Turn) -> None:
        try:
            if turn.streaming:
                await self._consume_stream(turn)
            else:
                await self._call_once(turn)
        except Exception as e:
            logger.exception(f"Turn in conversation {turn.conversation_id} failed unexpectedly")
            self._record_failure(turn, e)
        finally:
            if self._turn is turn:
                self._turn = None

    async def _consume_stream(self, turn: Turn) -> None:
        events = self._client.stream_message(turn.agent_id, turn.text, turn.context_id)
        async with aclosing(events):
            async for event in events:
                self.apply_event(turn, event)

    async def _call_once(self, turn: Turn) -> None:
        try:
            result = await self._client.send_message(turn.agent_id, turn.text, turn.context_id)
        except A2AClientError as e:
            logger.warning(f"message/send to {turn.agent_id} failed: {e}")
            self._record_failure(turn, e)
            return

        self.adopt_context_id(turn, result.context_id)
        self.store.update_message(
            turn.conversation_id,
            turn.agent_message_id,
            lambda m: m.with_content(result.parts, MessageStatus.STREAMING),
        )
        turn.requires_finalization = True

    def apply_event(self, turn: Turn, event: StreamEvent) -> None:
        """Fold one stream event into the store."""
        if isinstance(event, Working):
            self.store.update_status(turn.conversation_id, turn.agent_message_id, MessageStatus.SENDING)
        elif isinstance(event, PartsReceived):
            self.store.append_parts(turn.conversation_id, turn.agent_message_id, event.parts)
        elif isinstance(event, StreamDone):
            self.adopt_context_id(turn, event.context_id)
            self._finalize_streamed(turn)
        elif isinstance(event, StreamFailed):
            self._record_failure(turn, event.error)
        else:
            raise TypeError(f"Unknown stream event: {event!r}")

    def adopt_context_id(self, turn: Turn, context_id: str | None) -> None:
        """Adopt the gateway's canonical context id for this turn's conversation.

        Idempotent, and applies at most one rename per turn. The store moves
        the active pointer along with the rename. If another conversation
        already owns the id, the turn keeps writing under its current id.
        """
        if not context_id or context_id == turn.conversation_id:
            return
        if turn.adopted:
            logger.warning(
                f"Ignoring second context id {context_id} for turn already adopted as {turn.conversation_id}"
            )
            return

        old_id = turn.conversation_id
        if not self.store.rename_conversation(old_id, context_id):
            logger.warning(f"Keeping conversation id {old_id}: could not adopt gateway context id {context_id}")
            return
        turn.conversation_id = context_id
        turn.adopted = True
        logger.info(f"Adopted gateway context id {context_id} (was {old_id})")

    def _finalize_streamed(self, turn: Turn) -> None:
        conversation = self.store.get(turn.conversation_id)
        message = conversation.find_message(turn.agent_message_id) if conversation else None
        if message is None:
            return
        if message.display_text:
            turn.requires_finalization = True
        else:
            self.store.update_status(turn.conversation_id, turn.agent_message_id, MessageStatus.DONE)

    def _record_failure(self, turn: Turn, error: Exception) -> None:
        """Record the error on the agent message, keeping content that already arrived."""
        error_part = TextPart(text=f"Error: {str(error) or 'Unknown error'}")

        def fail(message: ChatMessage) -> ChatMessage:
            return message.with_content((*message.parts, error_part), MessageStatus.ERROR)

        self.store.update_message(turn.conversation_id, turn.agent_message_id, fail)
