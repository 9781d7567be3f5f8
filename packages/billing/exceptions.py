"""Billing errors, layered on the application exception hierarchy."""

from common.core.exceptions import (
    AppException,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)


class BillingError(AppException):
    """Base billing exception."""

    pass


class ClientNotFoundError(BillingError, NotFoundError):
    """The client referenced by an event has no billing record."""

    def __init__(self, client_id: str):
        self.client_id = client_id
        super().__init__(f"Billing client {client_id} not found")


class InvalidPaymentError(BillingError, ValidationError):
    """A payment could not be turned into a valid payment command."""

    pass


class GatewayError(BillingError, ExternalServiceError):
    """
    The payment gateway rejected a request or could not be reached.

    ``outcome_unknown`` is set when the request may have reached the gateway
    without an answer, so it may have been applied.
    """

    def __init__(self, message: str, status_code: int = None, outcome_unknown: bool = False):
        self.status_code = status_code
        self.outcome_unknown = outcome_unknown
        super().__init__(message)
