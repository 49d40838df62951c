"""Fixed-window rate limiting backed by Redis.

Rules:
  - Auth endpoints (/auth/*): RATE_LIMIT_AUTH_PER_MINUTE per client IP
  - Everything else:          RATE_LIMIT_PER_MINUTE per bearer token or IP

Redis logic per request:
    count = INCR key
    if count == 1: EXPIRE key 60
    if count > limit: 429 with Retry-After

Key pattern: "ratelimit:{group}:{identity}". The client IP honours the first
hop of X-Forwarded-For. If Redis is unreachable the request is let through
and a warning is logged; rate limiting never takes the API down.
"""

import hashlib
import logging

from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from config.settings import settings
from src.mc_common.errors import RateLimitError
from src.mc_common.redis_client import get_redis
from src.mc_common.response import error_response

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60
_EXEMPT_PATHS = frozenset({"/health", "/docs", "/openapi.json"})


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def rate_limit_key(request: Request) -> tuple[str, int]:
    """Return (redis key, per-minute limit) for this request."""
    if "/auth/" in request.url.path:
        return f"ratelimit:auth:{client_ip(request)}", settings.RATE_LIMIT_AUTH_PER_MINUTE
    auth = request.headers.get("authorization")
    if auth:
        digest = hashlib.sha256(auth.encode()).hexdigest()[:16]
        return f"ratelimit:api:{digest}", settings.RATE_LIMIT_PER_MINUTE
    return f"ratelimit:api:{client_ip(request)}", settings.RATE_LIMIT_PER_MINUTE


class RateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not settings.RATE_LIMIT_ENABLED or request.url.path in _EXEMPT_PATHS:
            return await call_next(request)

        key, limit = rate_limit_key(request)
        try:
            redis = await get_redis()
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, WINDOW_SECONDS)
        except RedisError:
            logger.warning("Rate limiter unavailable, allowing %s", request.url.path)
            return await call_next(request)

        if count > limit:
            exc = RateLimitError()
            resp = error_response(exc.code, exc.message, exc.reason)
            return JSONResponse(
                status_code=exc.http_status,
                content=resp.model_dump(),
                headers={"Retry-After": str(WINDOW_SECONDS)},
            )
        return await call_next(request)
