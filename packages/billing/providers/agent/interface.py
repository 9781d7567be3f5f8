"""
Interface for voice agent control.

The billing core decides when an agent is paused or resumed; providers carry
that decision to wherever the agent's availability is enforced.
"""

from abc import ABC, abstractmethod


class AgentControlInterface(ABC):
    """Abstract interface for resuming a client's voice agent."""

    @abstractmethod
    async def resume_agent(self, client_id: str) -> bool:
        """
        Resume a paused agent.

        Runs inside the caller's transaction when one is open, so a failure
        rolls back the payment that triggered it.

        Returns:
            True if the agent was paused and is now active
        """
        pass
