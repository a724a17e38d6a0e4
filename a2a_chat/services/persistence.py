"""Conversation snapshot persistence.

The store itself never touches disk. Instead it hands every new snapshot to
a listener; ``SnapshotStorage`` is the JSON file backed key-value listener
used by default. Writes run on a single worker thread so they never block
the event loop and land in the order they were scheduled.

Usage:
    storage = SnapshotStorage(Path("data/conversations.json"), key="a2a-conversations")
    store = ConversationStore(storage.load())
    store.subscribe(storage.schedule_save)
"""
import asyncio
import json
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Iterable

from pydantic import ValidationError

from a2a_chat.constants import IN_FLIGHT_STATUSES, MessageStatus
from a2a_chat.models.conversation import Conversation

logger = logging.getLogger(__name__)

# One worker keeps snapshot writes ordered
_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="snapshot-writer")


def serialize_conversations(conversations: Iterable[Conversation]) -> list[dict[str, Any]]:
    """Convert conversations to a JSON-compatible snapshot (camelCase, ISO timestamps)."""
    return [conversation.to_wire() for conversation in conversations]


def _settle_in_flight(raw_message: dict[str, Any]) -> dict[str, Any]:
    # An interrupted turn cannot be resumed after a restart
    if raw_message.get("status") in IN_FLIGHT_STATUSES:
        return {**raw_message, "status": MessageStatus.DONE.value}
    return raw_message


def restore_conversations(snapshot: Any) -> list[Conversation]:
    """Rebuild conversations from a snapshot.

    Messages that were still sending or streaming are restored as done. An
    unreadable snapshot restores as an empty list.
    """
    if snapshot is None:
        return []
    if not isinstance(snapshot, list):
        logger.warning(f"Ignoring conversation snapshot of type {type(snapshot).__name__}")
        return []

    try:
        return [
            Conversation.model_validate({
                **raw,
                "messages": [_settle_in_flight(m) for m in raw.get("messages", [])],
            })
            for raw in snapshot
        ]
    except (ValidationError, TypeError, AttributeError) as e:
        logger.warning(f"Ignoring unreadable conversation snapshot: {e}")
        return []


def _write_json_atomic(path: Path, payload: Any) -> None:
    """Write payload as JSON via a temp file and rename.

    This is a blocking function meant to be run in an executor.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False)
    tmp_path.replace(path)


class SnapshotStorage:
    """JSON file key-value store holding the conversation snapshot under one key."""

    def __init__(self, path: Path | str, key: str = "a2a-conversations"):
        self.path = Path(path)
        self.key = key

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read snapshot file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> list[Conversation]:
        """Load and normalize the persisted conversations."""
        conversations = restore_conversations(self._read_all().get(self.key))
        logger.info(f"Restored {len(conversations)} conversation(s) from {self.path}")
        return conversations

    def save(self, conversations: Iterable[Conversation]) -> None:
        """Write the snapshot synchronously."""
        data = self._read_all()
        data[self.key] = serialize_conversations(conversations)
        _write_json_atomic(self.path, data)

    def schedule_save(self, conversations: Iterable[Conversation]) -> Future:
        """Write the snapshot in the background; failures are logged, never raised.

        Serialization happens immediately so later store changes cannot leak
        into this write.
        """
        payload = serialize_conversations(conversations)
        future = _executor.submit(self._write_payload, payload)
        future.add_done_callback(self._log_write_failure)
        return future

    def _write_payload(self, payload: list[dict[str, Any]]) -> None:
        data = self._read_all()
        data[self.key] = payload
        _write_json_atomic(self.path, data)

    def _log_write_failure(self, future: Future) -> None:
        error = future.exception()
        if error is not None:
            logger.error(f"Failed to persist conversation snapshot to {self.path}: {error}")

    async def flush(self) -> None:
        """Wait for every scheduled write to finish."""
        await asyncio.get_running_loop().run_in_executor(_executor, lambda: None)
