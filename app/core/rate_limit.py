"""Rate limiting configuration using slowapi."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

# Rate limiter instance keyed by remote address; analysis start and prompt
# generation endpoints fan out to paid LLM calls.
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
