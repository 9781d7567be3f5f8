"""
Factory for getting the agent control instance.
"""

from packages.billing.providers.agent.interface import AgentControlInterface
from packages.billing.providers.agent.local_agent import LocalAgentControl


def get_agent_control() -> AgentControlInterface:
    return LocalAgentControl()
