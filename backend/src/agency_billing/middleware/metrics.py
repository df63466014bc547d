"""Prometheus metrics middleware for API monitoring."""
import time

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

api_request_duration_seconds = Histogram(
    "api_request_duration_seconds",
    "API request duration in seconds",
    labelnames=["method", "route", "status_code"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

api_errors_total = Counter(
    "api_errors_total",
    "Unhandled API errors",
    labelnames=["method", "route", "error_type"],
)


def route_template(request: Request) -> str:
    """Matched route path (``/v1/billing/invoices/{invoice_id}``) so IDs don't explode label cardinality."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class MetricsMiddleware(BaseHTTPMiddleware):
    """Records request duration per route and counts unhandled errors."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Process request and collect metrics."""
        if request.url.path.startswith("/metrics"):
            return await call_next(request)

        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            api_errors_total.labels(
                method=request.method,
                route=route_template(request),
                error_type=type(exc).__name__,
            ).inc()
            raise

        api_request_duration_seconds.labels(
            method=request.method,
            route=route_template(request),
            status_code=response.status_code,
        ).observe(time.perf_counter() - start_time)

        return response
