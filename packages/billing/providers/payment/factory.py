"""
Factory for getting payment provider instance.
"""

from packages.billing.providers.payment.interface import PaymentProviderInterface
from packages.billing.providers.payment.paddle_payment import PaddlePaymentProvider


def get_payment_provider() -> PaymentProviderInterface:
    """
    Get payment provider instance based on configuration.

    Returns:
        PaymentProviderInterface: Configured payment provider
    """
    return PaddlePaymentProvider()
