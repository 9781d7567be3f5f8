"""Billing API routes."""

from packages.billing.routes import cron, webhooks

__all__ = ["cron", "webhooks"]
