"""Billing providers - abstracted external platform integrations."""

from packages.billing.providers.agent.factory import get_agent_control
from packages.billing.providers.payment.factory import get_payment_provider

__all__ = [
    "get_agent_control",
    "get_payment_provider",
]
