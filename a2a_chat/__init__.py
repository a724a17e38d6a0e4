"""Agent-to-agent chat client core.

Talks to remote agents through a JSON-RPC gateway, decodes their streamed
replies and keeps conversation state consistent while turns are in flight.
"""
from a2a_chat.factory import create_session_controller

__version__ = "0.1.0"

__all__ = ["create_session_controller", "__version__"]
