"""HTTP middleware: request id propagation and access logging."""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.logging import request_id_var

logger = logging.getLogger("app.access")

_SKIP_PATHS = ("/metrics", "/api/health")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log one line per request and echo an X-Request-ID header.

    An incoming X-Request-ID is reused so the id can be followed from the
    client into the gateway logs.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        token = request_id_var.set(request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        response.headers["X-Request-ID"] = request_id

        if request.url.path not in _SKIP_PATHS:
            logger.info(
                "%s %s -> %d (%dms) [%s]",
                request.method,
                request.url.path,
                response.status_code,
                elapsed_ms,
                request_id,
            )
        return response
