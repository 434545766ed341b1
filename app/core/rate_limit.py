import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings
from app.core.redis_client import get_redis

logger = logging.getLogger(__name__)

EXEMPT_PATHS = {"/", "/health"}


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def hit(ip: str) -> int:
    """Count a request for ``ip`` in the current window, returning the count"""
    redis_client = await get_redis()
    key = f"rate_limit:{ip}"
    # One MULTI block; NX keeps the window fixed and repairs a key left without a TTL
    async with redis_client.pipeline(transaction=True) as pipe:
        count, _ = await (
            pipe.incr(key)
            .expire(key, settings.RATE_LIMIT_WINDOW_SECONDS, nx=True)
            .execute()
        )
    return count


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-window per-IP throttling backed by Redis counters"""
    async def dispatch(self, request: Request, call_next):
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        ip = client_ip(request)
        try:
            count = await hit(ip)
        except Exception:
            # Throttling is best-effort, never block on a cache outage
            logger.warning("Rate limit check failed for %s", ip, exc_info=True)
            return await call_next(request)

        if count > settings.RATE_LIMIT_REQUESTS:
            logger.info("Rate limit exceeded for %s", ip)
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": "Too many requests"},
                headers={"Retry-After": str(settings.RATE_LIMIT_WINDOW_SECONDS)},
            )
        return await call_next(request)
