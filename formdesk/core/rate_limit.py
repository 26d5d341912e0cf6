"""Rate limiting configuration for the public submission endpoint."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from formdesk.core.config import settings


# In-memory storage: limits are per process.
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=settings.RATE_LIMIT_ENABLED,
)

PUBLIC_SUBMIT_LIMIT = f"{settings.RATE_LIMIT_PUBLIC_SUBMIT}/minute"
