"""
Request context middleware.

Assigns every request an id (taken from the incoming X-Request-ID header when present),
stores it in the logging context so all log lines for the request carry it, and echoes it
back on the response.
"""

import logging
import time
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from core.logging_config import set_request_id

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Propagate a request id and log one line per request."""

    def __init__(self, app, header_name: str = REQUEST_ID_HEADER, exclude_paths=None):
        super().__init__(app)
        self.header_name = header_name
        # Paths that are not worth a log line, e.g. the health check
        self.exclude_paths = list(exclude_paths or [])

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(self.header_name) or str(uuid4())
        set_request_id(request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)

        response.headers[self.header_name] = request_id
        if request.url.path not in self.exclude_paths:
            logger.info(f"{request.method} {request.url.path}", extra={
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            })
        return response
