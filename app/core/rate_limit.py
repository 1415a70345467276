"""
Request rate limiting (slowapi).

The limiter lives here rather than in app.main so route modules can
decorate handlers without importing the application.
"""
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings


def get_rate_limit_key(request: Request) -> str:
    """
    Get the rate limit key for a request.

    Uses IP address, with fallback to X-Forwarded-For for proxied requests.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_rate_limit_key,
    default_limits=["60/minute"],
    storage_uri=settings.REDIS_URL if settings.KV_STORE_BACKEND == "redis" and settings.REDIS_URL else "memory://",
    enabled=settings.RATE_LIMIT_ENABLED,
)

# Limits per endpoint group
PREDICTION_LIMIT = "10/minute"  # Each call may hit the LLM provider
SYNC_TRIGGER_LIMIT = "5/minute"
GENERAL_LIMIT = "60/minute"
HEALTH_LIMIT = "120/minute"
