"""
Domain models for payment gateway (Paddle Billing) webhook payloads.

Only the fields the billing core reads are modelled; everything else in the
payload is ignored.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from packages.billing.models.domain.enums import RenewalStatus


class GatewayCustomer(BaseModel):
    id: Optional[str] = None
    email: Optional[str] = None


class GatewayPriceRef(BaseModel):
    id: Optional[str] = None


class GatewayProductRef(BaseModel):
    price_id: Optional[str] = None


class GatewayLineItem(BaseModel):
    """One transaction/subscription item. The price id may sit in three places."""

    price: Optional[GatewayPriceRef] = None
    price_id: Optional[str] = None
    product: Optional[GatewayProductRef] = None
    quantity: Optional[int] = None

    def resolve_price_id(self) -> Optional[str]:
        if self.price and self.price.id:
            return self.price.id
        if self.price_id:
            return self.price_id
        if self.product and self.product.price_id:
            return self.product.price_id
        return None


class GatewayTotals(BaseModel):
    # Minor units as a decimal string, e.g. "2900" for 29.00
    grand_total: Optional[str] = None


class GatewayDetails(BaseModel):
    totals: Optional[GatewayTotals] = None


class GatewayEventData(BaseModel):
    """The ``data`` object shared by transaction and subscription events."""

    id: Optional[str] = None
    status: Optional[str] = None
    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    invoice_id: Optional[str] = None
    order_id: Optional[str] = None
    billed_at: Optional[datetime] = None
    next_billed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    custom_data: Optional[Dict[str, Any]] = None
    customer: Optional[GatewayCustomer] = None
    items: List[GatewayLineItem] = Field(default_factory=list)
    details: Optional[GatewayDetails] = None

    @property
    def client_id(self) -> Optional[str]:
        """
        Client id passed through checkout custom data.

        Checkouts built from form posts deliver the key as
        ``custom_data[client_id]``.
        """
        if not self.custom_data:
            return None
        value = self.custom_data.get("client_id") or self.custom_data.get(
            "custom_data[client_id]"
        )
        return str(value) if value else None

    @property
    def customer_email(self) -> Optional[str]:
        return self.customer.email if self.customer else None

    @property
    def price_id(self) -> Optional[str]:
        if not self.items:
            return None
        return self.items[0].resolve_price_id()

    def grand_total_amount(self) -> Decimal:
        """Grand total converted from minor units. Missing or garbled totals are 0."""
        raw = self.details.totals.grand_total if self.details and self.details.totals else None
        if not raw:
            return Decimal("0.00")
        try:
            return (Decimal(str(raw)) / Decimal(100)).quantize(Decimal("0.01"))
        except InvalidOperation:
            return Decimal("0.00")

    def renewal_status(self) -> RenewalStatus:
        """Map the gateway subscription status; unknown or missing means active."""
        mapping = {
            "active": RenewalStatus.ACTIVE,
            "trialing": RenewalStatus.ACTIVE,
            "past_due": RenewalStatus.PAST_DUE,
            "paused": RenewalStatus.PAUSED,
            "canceled": RenewalStatus.CANCELED,
        }
        return mapping.get((self.status or "").lower(), RenewalStatus.ACTIVE)


class GatewayWebhookEvent(BaseModel):
    """Envelope of a gateway webhook delivery."""

    event_id: Optional[str] = None
    event_type: str
    occurred_at: Optional[datetime] = None
    data: GatewayEventData = Field(default_factory=GatewayEventData)


class GatewayWebhookAck(BaseModel):
    received: bool = True
