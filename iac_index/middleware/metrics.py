"""Prometheus request metrics middleware."""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from iac_index.metrics import (
    HTTP_REQUESTS_IN_PROGRESS,
    HTTP_REQUESTS_TOTAL,
    HTTP_REQUEST_DURATION_SECONDS,
    normalize_endpoint,
)

logger = logging.getLogger(__name__)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Records count, latency and in-flight requests per normalized route."""

    # Scrapes would otherwise dominate the request counters
    SKIP_PATHS = frozenset({"/metrics"})

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if path in self.SKIP_PATHS:
            return await call_next(request)

        labels = {"method": request.method, "endpoint": normalize_endpoint(path)}
        in_progress = HTTP_REQUESTS_IN_PROGRESS.labels(**labels)
        in_progress.inc()

        status_code = 500
        started = time.perf_counter()
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            elapsed = time.perf_counter() - started
            in_progress.dec()
            HTTP_REQUESTS_TOTAL.labels(status_code=status_code, **labels).inc()
            HTTP_REQUEST_DURATION_SECONDS.labels(**labels).observe(elapsed)
            logger.info(
                "request_completed",
                extra={
                    **labels,
                    "path": path,
                    "status_code": status_code,
                    "duration_ms": round(elapsed * 1000, 2),
                },
            )
