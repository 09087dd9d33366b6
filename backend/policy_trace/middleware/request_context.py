"""
Request context middleware.

Propagates (or mints) an X-Request-ID per request and keeps it in a
ContextVar so log lines written while handling the request can carry it.
"""

import time
import logging
from contextvars import ContextVar
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)

_request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Scrapes and static probes are not worth an access-log line each
QUIET_PATHS = frozenset({"/metrics", "/api/health"})


def get_request_id() -> str:
    """Get the current request ID from context."""
    return _request_id_var.get()


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        token = _request_id_var.set(request_id)

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            if request.url.path not in QUIET_PATHS:
                logger.info(
                    "%s %s %s %.0fms",
                    request.method,
                    request.url.path,
                    response.status_code,
                    duration_ms,
                    extra={"duration_ms": duration_ms},
                )
        finally:
            _request_id_var.reset(token)

        response.headers["X-Request-ID"] = request_id
        return response
