"""
Billing package - voice-minute plans, usage metering, usage invoices and the
unpaid-usage killswitch.

This package integrates with:
- Paddle Billing: subscription payments, webhooks and usage charges
- Vapi: call reports used for usage metering
"""
