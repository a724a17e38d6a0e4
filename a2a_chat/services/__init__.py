"""
Services layer.

Conversation state, persistence, agent discovery and the session
controller that ties them to the protocol client.
"""
from .agent_directory import AgentDirectory
from .conversation_store import ConversationStore
from .persistence import SnapshotStorage, restore_conversations, serialize_conversations
from .session_controller import SessionController, Turn

__all__ = [
    "AgentDirectory",
    "ConversationStore",
    "SnapshotStorage",
    "restore_conversations",
    "serialize_conversations",
    "SessionController",
    "Turn",
]
