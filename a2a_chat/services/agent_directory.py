"""Directory of agents published by the gateway."""
import logging

from a2a_chat.clients.protocol import ProtocolClient
from a2a_chat.core.errors import A2AClientError
from a2a_chat.models.agent_card import AgentDescriptor

logger = logging.getLogger(__name__)


class AgentDirectory:
    """Caches the agent list fetched from the discovery endpoint.

    A refresh replaces the whole list. A failed refresh keeps the previous
    list and records the error.
    """

    def __init__(self, client: ProtocolClient):
        self._client = client
        self._agents: tuple[AgentDescriptor, ...] = ()
        self.loading = False
        self.error: str | None = None

    @property
    def agents(self) -> tuple[AgentDescriptor, ...]:
        return self._agents

    def get(self, agent_id: str) -> AgentDescriptor | None:
        return next((a for a in self._agents if a.id == agent_id), None)

    async def refresh(self) -> tuple[AgentDescriptor, ...]:
        """Fetch the agent list again.

        Raises:
            A2AClientError: If discovery fails; the previous list is kept.
        """
        self.loading = True
        try:
            agents = await self._client.discover()
        except A2AClientError as e:
            self.error = str(e)
            logger.error(f"Agent discovery failed: {e}")
            raise
        finally:
            self.loading = False

        # First card wins when two cards resolve to the same id
        unique: dict[str, AgentDescriptor] = {}
        for agent in agents:
            if agent.id in unique:
                logger.warning(f"Duplicate agent id {agent.id!r} ({agent.name}); keeping the first card")
                continue
            unique[agent.id] = agent

        self._agents = tuple(unique.values())
        self.error = None
        logger.info(f"Loaded {len(self._agents)} agent(s)")
        return self._agents
