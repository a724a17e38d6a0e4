"""Agent discovery models.

``AgentCard`` mirrors the gateway's discovery document; ``AgentDescriptor``
pairs a card with the identity used to address the agent.
"""
import re

from pydantic import Field

from a2a_chat.models.base import FrozenModel

# Matches the agent id in gateway URLs such as http://gw/api/agents/<id>/
AGENT_URL_PATTERN = re.compile(r"/agents/([^/]+)/")
_WHITESPACE = re.compile(r"\s+")


class AgentCapabilities(FrozenModel):
    """Optional protocol features an agent declares."""

    streaming: bool = False
    push_notifications: bool = False
    state_transition_history: bool = False


class AgentSkill(FrozenModel):
    """A skill advertised by an agent."""

    id: str
    name: str
    description: str = ""
    tags: tuple[str, ...] = ()


class AgentCard(FrozenModel):
    """Agent card as published at ``/.well-known/agents.json``."""

    name: str
    description: str = ""
    url: str = ""
    version: str = ""
    protocol_version: str = ""
    capabilities: AgentCapabilities = Field(default_factory=AgentCapabilities)
    skills: tuple[AgentSkill, ...] = ()


def agent_id_from_card(card: AgentCard) -> str:
    """Derive the agent id from the card URL, falling back to a slug of its name."""
    match = AGENT_URL_PATTERN.search(card.url)
    if match:
        return match.group(1)
    return _WHITESPACE.sub("-", card.name.lower())


class AgentDescriptor(FrozenModel):
    """An addressable agent: its id plus the card it was discovered with."""

    id: str
    card: AgentCard

    @classmethod
    def from_card(cls, card: AgentCard) -> "AgentDescriptor":
        return cls(id=agent_id_from_card(card), card=card)

    @property
    def name(self) -> str:
        return self.card.name

    @property
    def description(self) -> str:
        return self.card.description

    @property
    def supports_streaming(self) -> bool:
        return self.card.capabilities.streaming

    @property
    def skill_tags(self) -> tuple[str, ...]:
        """All skill tags, in card order, without duplicates."""
        return tuple(dict.fromkeys(tag for skill in self.card.skills for tag in skill.tags))
