"""
Agent control backed by the billing record itself.

The voice platform checks ``agent_status`` before routing calls, so flipping
the status on the client row is the resume.
"""

from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.billing.providers.agent.interface import AgentControlInterface
from packages.billing.repositories.client_repository import ClientRepository

logger = get_logger(__name__)


class LocalAgentControl(AgentControlInterface):
    def __init__(self, client_repo: ClientRepository = None):
        self.client_repo = client_repo or ClientRepository()

    @trace_span
    async def resume_agent(self, client_id: str) -> bool:
        resumed = await self.client_repo.resume(client_id)
        if resumed:
            logger.info(f"Agent resumed for client {client_id}")
        return resumed
