"""Tests for AgentDirectory, settings and controller wiring."""
import json
import logging

import pytest
from pydantic import ValidationError

from a2a_chat.constants import MessageStatus
from a2a_chat.core.errors import NetworkError
from a2a_chat.core.settings import GatewaySettings, LoggingSettings, Settings, StorageSettings
from a2a_chat.factory import create_session_controller
from a2a_chat.models.agent_card import AgentCard, AgentDescriptor, agent_id_from_card
from a2a_chat.services.agent_directory import AgentDirectory
from a2a_chat.services.persistence import SnapshotStorage


def _descriptor(name: str, url: str = "") -> AgentDescriptor:
    return AgentDescriptor.from_card(AgentCard(name=name, url=url))


class FakeDiscoveryClient:
    def __init__(self, *results):
        self.results = list(results)

    async def discover(self):
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class TestAgentIdentity:
    """Test agent id derivation."""

    def test_id_from_url(self):
        card = AgentCard(name="Weather", url="https://gw.example/api/agents/weather-v2/")
        assert agent_id_from_card(card) == "weather-v2"

    def test_id_from_name_when_url_has_no_agent_path(self):
        assert agent_id_from_card(AgentCard(name="My  Helpful Bot")) == "my-helpful-bot"

    def test_card_accepts_camel_case(self):
        card = AgentCard.model_validate({
            "name": "A",
            "protocolVersion": "0.3.0",
            "capabilities": {"streaming": True, "pushNotifications": True},
        })
        assert card.protocol_version == "0.3.0"
        assert card.capabilities.push_notifications is True


class TestAgentDirectory:
    """Test refresh semantics."""

    @pytest.mark.asyncio
    async def test_refresh_replaces_list(self):
        first = [_descriptor("One")]
        second = [_descriptor("Two"), _descriptor("Three")]
        directory = AgentDirectory(FakeDiscoveryClient(first, second))

        await directory.refresh()
        await directory.refresh()

        assert [a.id for a in directory.agents] == ["two", "three"]
        assert directory.get("three").name == "Three"
        assert directory.get("one") is None
        assert directory.loading is False

    @pytest.mark.asyncio
    async def test_duplicate_ids_keep_first(self):
        agents = [
            _descriptor("First", "http://gw/api/agents/dup/"),
            _descriptor("Second", "http://gw/api/agents/dup/"),
        ]
        directory = AgentDirectory(FakeDiscoveryClient(agents))

        await directory.refresh()

        assert [a.name for a in directory.agents] == ["First"]

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_list(self):
        directory = AgentDirectory(FakeDiscoveryClient([_descriptor("One")], NetworkError("refused")))
        await directory.refresh()

        with pytest.raises(NetworkError):
            await directory.refresh()

        assert [a.id for a in directory.agents] == ["one"]
        assert directory.error == "refused"
        assert directory.loading is False


class TestSettings:
    """Test environment driven configuration."""

    def test_defaults(self, monkeypatch):
        for name in ("GATEWAY_URL", "GATEWAY_TIMEOUT", "CHAT_TITLE_MAX_LENGTH", "STORAGE_ENABLED"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings()

        assert settings.gateway.url == "http://localhost:8000/api"
        assert settings.gateway.timeout == 30.0
        assert settings.gateway.stream_read_timeout is None
        assert settings.storage.snapshot_key == "a2a-conversations"
        assert settings.chat.title_max_length == 42
        assert settings.logging.level == "INFO"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("GATEWAY_URL", "https://gw.example/api/")
        monkeypatch.setenv("GATEWAY_TIMEOUT", "5")
        monkeypatch.setenv("STORAGE_ENABLED", "false")
        monkeypatch.setenv("CHAT_TITLE_MAX_LENGTH", "20")

        settings = Settings()

        assert settings.gateway.url == "https://gw.example/api"
        assert settings.gateway.timeout == 5.0
        assert settings.storage.enabled is False
        assert settings.chat.title_max_length == 20

    def test_dotenv_file_read_by_every_section(self, tmp_path, monkeypatch):
        for name in ("GATEWAY_URL", "STORAGE_SNAPSHOT_KEY", "CHAT_TITLE_MAX_LENGTH", "LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)
        (tmp_path / ".env").write_text(
            "GATEWAY_URL=http://x/\n"
            "STORAGE_SNAPSHOT_KEY=chats\n"
            "CHAT_TITLE_MAX_LENGTH=10\n"
            "LOG_LEVEL=debug\n",
            encoding="utf-8",
        )
        monkeypatch.chdir(tmp_path)

        settings = Settings()

        assert settings.gateway.url == "http://x"
        assert settings.storage.snapshot_key == "chats"
        assert settings.chat.title_max_length == 10
        assert settings.logging.level == "DEBUG"

    def test_unknown_log_level_rejected(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "chatty")

        with pytest.raises(ValidationError, match="Unknown log level"):
            LoggingSettings()


class TestFactory:
    """Test controller wiring."""

    @pytest.mark.asyncio
    async def test_controller_restores_and_persists(self, tmp_path):
        path = tmp_path / "conversations.json"
        path.write_text(json.dumps({"a2a-conversations": [{
            "id": "old",
            "agentId": "echo",
            "title": "earlier",
            "messages": [{"id": "m1", "role": "agent", "status": "streaming", "parts": []}],
        }]}), encoding="utf-8")
        settings = Settings(gateway=GatewaySettings(url="http://gateway.test/api"))
        storage = SnapshotStorage(path)

        controller = create_session_controller(settings, storage=storage)

        restored = controller.store.get("old")
        assert restored.messages[0].status == MessageStatus.DONE
        assert controller.store.active_id is None

        controller.delete_conversation("old")
        await storage.flush()
        await controller.close()

        assert json.loads(path.read_text(encoding="utf-8")) == {"a2a-conversations": []}

    def test_storage_disabled(self):
        settings = Settings(storage=StorageSettings(enabled=False))
        controller = create_session_controller(settings)
        assert len(controller.store) == 0
        assert controller.selected_agent is None

    def test_log_level_applied_to_package_logger(self):
        package_logger = logging.getLogger("a2a_chat")
        previous = package_logger.level
        settings = Settings(
            storage=StorageSettings(enabled=False),
            logging=LoggingSettings(level="warning"),
        )

        try:
            create_session_controller(settings)
            assert package_logger.level == logging.WARNING
        finally:
            package_logger.setLevel(previous)
