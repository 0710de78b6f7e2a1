from __future__ import annotations

import logging
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("clm.request")

# polled by load balancers; kept out of INFO
_QUIET_PATHS = ("/api/v1/health",)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One log line per request: request id, browser session, status, timing.
    The request id is taken from `x-request-id` when the caller sends one
    and echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        session_id = request.headers.get("x-session-id") or "-"
        started = time.perf_counter()

        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
        finally:
            level = logging.DEBUG if request.url.path in _QUIET_PATHS else logging.INFO
            logger.log(
                level,
                "request_id=%s session=%s %s %s status=%s duration_ms=%.2f",
                request_id,
                session_id,
                request.method,
                request.url.path,
                status,
                (time.perf_counter() - started) * 1000.0,
            )

        response.headers["x-request-id"] = request_id
        return response
