"""Global rate limiter instance for SlowAPI."""

from slowapi import Limiter
from slowapi.util import get_remote_address
from common.core.config import settings

# Applies to every route through SlowAPIMiddleware; both limits must be satisfied.
# Gateway redelivery bursts stay well under 20/second per source address.
# Set rate_limit_storage_uri to a redis:// URL to share counters across API pods.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["20/second", "600/minute"],
    storage_uri=settings.rate_limit_storage_uri,
)
