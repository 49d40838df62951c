"""Request logging middleware.

Every request gets an id on request.state (routers copy it onto the
ApiResponse envelope) and one access-log line on "mc.request":

    INFO [POST] /api/v1/marketplace/orders 201 23ms req_a1b2c3d4e5f6

A client-supplied X-Request-ID is kept when it looks sane, so a mobile
client can correlate its own retries. 5xx responses are logged at ERROR.
"""

import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("mc.request")

_CLIENT_ID_RE = re.compile(r"^[A-Za-z0-9_\-]{8,64}$")


def _request_id(request: Request) -> str:
    incoming = request.headers.get("x-request-id")
    if incoming and _CLIENT_ID_RE.match(incoming):
        return incoming
    return f"req_{uuid.uuid4().hex[:12]}"


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = _request_id(request)
        request.state.request_id = request_id

        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        level = logging.ERROR if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "[%s] %s %d %.0fms %s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request_id,
        )
        response.headers["X-Request-ID"] = request_id
        return response
