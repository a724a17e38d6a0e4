"""Wiring for a ready-to-use session controller."""
import logging
from pathlib import Path

from a2a_chat.clients.protocol import ProtocolClient
from a2a_chat.core.settings import Settings, get_settings
from a2a_chat.services.agent_directory import AgentDirectory
from a2a_chat.services.conversation_store import ConversationStore
from a2a_chat.services.persistence import SnapshotStorage
from a2a_chat.services.session_controller import SessionController

logger = logging.getLogger(__name__)


def create_session_controller(
    settings: Settings | None = None,
    client: ProtocolClient | None = None,
    storage: SnapshotStorage | None = None,
) -> SessionController:
    """Build a controller with its client, store and agent directory.

    When storage is enabled, the store is seeded from the persisted snapshot
    and every later change is written back in the background.

    Args:
        settings: Settings to use (defaults to ``get_settings()``)
        client: Protocol client to use instead of one built from settings
        storage: Snapshot storage to use instead of one built from settings

    Returns:
        A controller with no agent selected; call ``load_agents()`` next.
    """
    settings = settings or get_settings()
    logging.getLogger("a2a_chat").setLevel(settings.logging.level)

    client = client or ProtocolClient.from_settings(settings.gateway)

    if storage is None and settings.storage.enabled:
        storage = SnapshotStorage(Path(settings.storage.snapshot_path), key=settings.storage.snapshot_key)

    if storage is not None:
        store = ConversationStore(storage.load())
        store.subscribe(storage.schedule_save)
    else:
        logger.info("Conversation persistence disabled")
        store = ConversationStore()

    return SessionController(
        client,
        store=store,
        directory=AgentDirectory(client),
        title_max_length=settings.chat.title_max_length,
    )
