"""Prometheus metrics middleware: instruments every HTTP request.

For each request this middleware:
  1. Increments ACTIVE_REQUESTS (decremented on completion)
  2. Times the request
  3. On completion increments REQUEST_COUNT by method/endpoint/status and
     observes the duration in REQUEST_DURATION

ENDPOINT LABEL
---------------
Paths here carry UUIDs (/v1/enrollments/3f2c...).  Labelling by the raw
path would create one time series per enrollment, so the label is the
matched route template (/v1/enrollments/{enrollment_id}) when routing
found one, and the literal path otherwise.
"""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Match

from learnhub.core.metrics import ACTIVE_REQUESTS, REQUEST_COUNT, REQUEST_DURATION


def _endpoint_label(request: Request) -> str:
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return route.path
    return request.url.path


class MetricsMiddleware(BaseHTTPMiddleware):
    """Collect Prometheus metrics for every HTTP request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # Scrapes of /metrics itself are not counted.
        if request.url.path == "/metrics":
            return await call_next(request)

        ACTIVE_REQUESTS.inc()
        start = time.monotonic()
        status_code: str | None = None

        try:
            response = await call_next(request)
            status_code = str(response.status_code)
        except Exception:
            status_code = "500"
            raise
        finally:
            duration = time.monotonic() - start
            ACTIVE_REQUESTS.dec()
            endpoint = _endpoint_label(request)
            REQUEST_COUNT.labels(
                method=request.method,
                endpoint=endpoint,
                status_code=status_code if status_code is not None else "500",
            ).inc()
            REQUEST_DURATION.labels(
                method=request.method, endpoint=endpoint
            ).observe(duration)

        return response
