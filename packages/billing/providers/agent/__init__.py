"""Agent control providers - resume hook for paused voice agents."""

from packages.billing.providers.agent.interface import AgentControlInterface
from packages.billing.providers.agent.factory import get_agent_control

__all__ = [
    "AgentControlInterface",
    "get_agent_control",
]
