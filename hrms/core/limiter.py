from slowapi import Limiter
from slowapi.util import get_remote_address

from hrms.core.settings import settings

# Counters live in Redis so limits hold across workers
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    storage_uri=settings.rate_limit_storage_uri or settings.redis_url,
    enabled=settings.rate_limit_enabled,
)

__all__ = ["limiter"]
