"""SlowAPI rate limiter singleton.

The bundling endpoints are unauthenticated, so limits are keyed on the
client address.

Usage in route handlers (limits are read from settings at import time):
    @router.get("/bundler")
    @limiter.limit(settings.bundle_rate_limit)
    async def handler(request: Request, ...):
        ...

The `Request` parameter is required by SlowAPI even if the handler doesn't
use it directly.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, default_limits=[])
