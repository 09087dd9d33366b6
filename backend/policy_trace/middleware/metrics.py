"""
Prometheus metrics middleware.

Collects HTTP request metrics (counter + histogram) and exposes application-level
counters for record creation, attachment deletion, dashboards and exports.
"""

import time

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

# ── HTTP metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

# ── Record metrics ───────────────────────────────────────────────────────────

records_created_total = Counter(
    "records_created_total",
    "Traceability records created",
    ["entity"],
)

records_deleted_total = Counter(
    "records_deleted_total",
    "Mappings and evidence items deleted",
    ["entity"],
)

# ── Report metrics ───────────────────────────────────────────────────────────

reports_exported_total = Counter(
    "reports_exported_total",
    "Markdown policy reports exported",
)

dashboard_views_total = Counter(
    "dashboard_views_total",
    "Coverage dashboards computed",
)


def _normalize_path(path: str) -> str:
    """Collapse record uids to reduce cardinality.

    e.g. /api/policies/3f2a…c9/export → /api/policies/{id}/export
    """
    parts = path.strip("/").split("/")
    normalized = []
    for part in parts:
        if len(part) == 32 and all(c in "0123456789abcdef" for c in part):
            normalized.append("{id}")
        else:
            normalized.append(part)
    return "/" + "/".join(normalized)


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        # Skip metrics endpoint itself to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        path = _normalize_path(request.url.path)

        start = time.time()
        response = await call_next(request)
        duration = time.time() - start

        http_requests_total.labels(
            method=method,
            path=path,
            status_code=response.status_code,
        ).inc()

        http_request_duration_seconds.labels(
            method=method,
            path=path,
        ).observe(duration)

        return response
