from fastapi import APIRouter

from api.v1.routes import (
    health,
)
from packages.billing.routes import cron, webhooks

api_router = APIRouter()

# Health check (no auth required)
api_router.include_router(health.router, prefix="/health", tags=["health"])

# Webhooks (no auth - signature or shared secret verified internally)
api_router.include_router(webhooks.router, tags=["webhooks"])

# Scheduler endpoints (cron bearer secret enforced at router level)
api_router.include_router(cron.router, prefix="/billing/cron", tags=["billing-cron"])
