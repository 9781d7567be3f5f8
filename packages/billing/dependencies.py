import hmac
from typing import Annotated, Optional

from fastapi import HTTPException, Header, status

from common.core.config import settings
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)


async def require_cron_secret(
    authorization: Annotated[Optional[str], Header()] = None,
) -> None:
    """Scheduler endpoints accept only ``Authorization: Bearer <cron secret>``."""
    if not settings.cron_secret:
        logger.error("Cron endpoint called but no cron secret is configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron secret not configured",
        )

    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing or invalid",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = authorization.split(" ", 1)[1]
    if not hmac.compare_digest(token, settings.cron_secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid cron secret",
        )
