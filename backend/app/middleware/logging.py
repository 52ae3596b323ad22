"""
SubText Backend — Access Logging Middleware
=============================================

What:  One log line per request: method, path, status, duration, request id.
Why:   Correlates client reports (X-Request-ID) with server-side errors.

Level by status: 5xx → ERROR, 4xx → WARNING, otherwise INFO.
/health is skipped. Bodies are never logged (screenshots, passwords).
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.middleware.request_id import request_id_var

logger = logging.getLogger("subtext.access")

SKIPPED_PATHS = {"/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Writes one access line per request on the `subtext.access` logger.

    Duration covers everything downstream of this middleware, so a slow
    POST /api/ocr line is almost always the vision model call. Structured
    fields (request_id, method, path, status, duration_ms) ride along in
    `extra` for handlers that format them.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in SKIPPED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        client_ip = request.client.host if request.client else "unknown"
        rid = request_id_var.get("")
        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
            },
        )
        return response
