"""
Interface for payment gateway providers.

Abstracts charge emission away from a specific gateway.
"""

from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel


class ChargeResult(BaseModel):
    """Gateway acknowledgement of a one-time charge."""

    subscription_id: str
    reference: Optional[str] = None
    status: Optional[str] = None


class PaymentProviderInterface(ABC):
    """Abstract interface for payment gateway providers."""

    @abstractmethod
    async def charge_usage(
        self,
        subscription_id: str,
        price_id: str,
        quantity: int,
    ) -> ChargeResult:
        """
        Bill a one-time usage charge against an existing subscription.

        Args:
            subscription_id: Gateway subscription id of the client
            price_id: Shared usage price id
            quantity: Units of the usage price (one unit per cent)

        Returns:
            ChargeResult on success

        Raises:
            GatewayError: on rejection, transport failure or timeout
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the payment gateway is reachable.

        Returns:
            True if healthy, False otherwise
        """
        pass
