import json
import time

import pytest

from common.core.config import settings
from packages.billing.webhooks.signature import compute_signature

WEBHOOK_SECRET = "pdl_ntfset_test_secret"
CRON_SECRET = "cron-test-secret"


def sign(raw_body: bytes, secret: str = WEBHOOK_SECRET, timestamp: str = None) -> str:
    """Build a gateway signature header for a raw body."""
    ts = timestamp or str(int(time.time()))
    return f"ts={ts};h1={compute_signature(secret, ts, raw_body)}"


def transaction_completed(
    client_id: str,
    price_id: str,
    transaction_id: str = "txn_001",
    grand_total: str = "29700",
    subscription_id: str = "sub_123",
    billed_at: str = "2026-10-01T12:00:00Z",
    customer_email: str = None,
    customer_id: str = None,
) -> dict:
    data = {
        "id": transaction_id,
        "status": "completed",
        "subscription_id": subscription_id,
        "invoice_id": f"inv_{transaction_id}",
        "billed_at": billed_at,
        "custom_data": {"client_id": client_id},
        "items": [{"price": {"id": price_id}, "quantity": 1}],
        "details": {"totals": {"grand_total": grand_total}},
    }
    if customer_email:
        data["customer"] = {"email": customer_email}
    if customer_id:
        data["customer_id"] = customer_id
    return {
        "event_id": f"evt_{transaction_id}",
        "event_type": "transaction.completed",
        "occurred_at": billed_at,
        "data": data,
    }


def subscription_event(
    client_id: str,
    event_type: str = "subscription.updated",
    status: str = "past_due",
    occurred_at: str = "2026-10-02T08:00:00Z",
    next_billed_at: str = "2026-11-01T12:00:00Z",
    subscription_id: str = "sub_123",
) -> dict:
    return {
        "event_id": f"evt_{event_type}_{occurred_at}",
        "event_type": event_type,
        "occurred_at": occurred_at,
        "data": {
            "id": subscription_id,
            "status": status,
            "customer_id": "ctm_123",
            "next_billed_at": next_billed_at,
            "custom_data": {"client_id": client_id},
            "items": [{"price": {"id": settings.gateway_price_id_starter}}],
        },
    }


def encode(payload: dict) -> bytes:
    return json.dumps(payload).encode("utf-8")


@pytest.fixture
def cron_secret(monkeypatch):
    """Configure the cron bearer secret for scheduler endpoint tests."""
    monkeypatch.setattr(settings, "cron_secret", CRON_SECRET)
    return CRON_SECRET


@pytest.fixture
def webhook_secret():
    return WEBHOOK_SECRET


@pytest.fixture
def sign_gateway():
    """Signs a raw body the way the gateway does."""
    return sign


@pytest.fixture
def gateway_payloads():
    """Builders for gateway webhook bodies."""

    class Payloads:
        transaction = staticmethod(transaction_completed)
        subscription = staticmethod(subscription_event)
        encode = staticmethod(encode)

    return Payloads
