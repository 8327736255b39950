"""
Standard HTTP request metrics and the Starlette middleware that records them.

Usage:
    from fastapi import FastAPI
    from telemetry_decorators.metrics.http import HttpMetricsMiddleware

    app = FastAPI()
    app.add_middleware(HttpMetricsMiddleware)

Only requests matching one of the application's route templates are
recorded, so arbitrary 404 paths do not explode label cardinality.
"""

import time
from typing import Callable, Iterable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from telemetry_decorators.config.logging_config import get_logger
from telemetry_decorators.metrics.registry import MetricsRegistry, MetricType, get_metrics_registry
from telemetry_decorators.utils.http_utils import convert_status_to_status_label, get_route_pattern

log = get_logger(__name__)

HTTP_REQUEST_DURATION_SECONDS = "http_request_duration_seconds"
HTTP_REQUESTS_TOTAL = "http_requests_total"
HTTP_REQUEST_DURATION_SUM = "http_request_duration_sum"
HTTP_DURATION_BUCKETS = (0.005, 0.01, 0.05, 0.1, 0.5, 1, 5)


def register_http_metrics(registry: Optional[MetricsRegistry] = None) -> MetricsRegistry:
    """Register the standard HTTP metrics unless they already exist."""
    registry = registry or get_metrics_registry()
    if not registry.is_registered(HTTP_REQUEST_DURATION_SECONDS, MetricType.HISTOGRAM):
        registry.register_histogram(
            HTTP_REQUEST_DURATION_SECONDS,
            "Duration of HTTP requests in seconds",
            ["method", "status_code"],
            HTTP_DURATION_BUCKETS,
        )
    if not registry.is_registered(HTTP_REQUESTS_TOTAL, MetricType.COUNTER):
        registry.register_counter(HTTP_REQUESTS_TOTAL, "Number of HTTP requests", ["method", "route", "status_code"])
    if not registry.is_registered(HTTP_REQUEST_DURATION_SUM, MetricType.COUNTER):
        registry.register_counter(
            HTTP_REQUEST_DURATION_SUM,
            "Total duration of HTTP requests in seconds",
            ["method", "route", "status_code"],
        )
    return registry


def record_http_request(
    method: str,
    route: str,
    status_code: int,
    duration_seconds: float,
    registry: Optional[MetricsRegistry] = None,
    group_status_codes: bool = False,
) -> None:
    """Record one finished request in the standard HTTP metrics."""
    registry = register_http_metrics(registry)
    status = convert_status_to_status_label(status_code) if group_status_codes else str(status_code)
    registry.observe_histogram(HTTP_REQUEST_DURATION_SECONDS, duration_seconds, {"method": method, "status_code": status})
    labels = {"method": method, "route": route, "status_code": status}
    registry.increment_counter(HTTP_REQUESTS_TOTAL, labels)
    registry.increment_counter(HTTP_REQUEST_DURATION_SUM, labels, duration_seconds)


class HttpMetricsMiddleware(BaseHTTPMiddleware):
    """Middleware recording duration and count of requests to known routes.

    Configuration:
    - ``route_paths`` overrides the route templates read from the application
    - ``group_status_codes`` records ``2xx``..``5xx`` instead of exact codes
    - exempt paths skip recording entirely
    """

    def __init__(
        self,
        app: Callable,
        route_paths: Optional[Iterable[str]] = None,
        registry: Optional[MetricsRegistry] = None,
        group_status_codes: bool = False,
        exempt_paths: Optional[set[str]] = None,
    ):
        """Initialize the middleware.

        Args:
            app: The ASGI application
            route_paths: Route templates considered known
            registry: Metrics registry; the global registry at request time when None
            group_status_codes: Collapse status codes into classes
            exempt_paths: Paths that are never recorded
        """
        super().__init__(app)
        self.route_paths = list(route_paths) if route_paths is not None else None
        self.registry = registry
        self.group_status_codes = group_status_codes
        self.exempt_paths = exempt_paths or {"/metrics"}

    def _known_routes(self, request: Request) -> list[str]:
        if self.route_paths is not None:
            return self.route_paths
        app = request.scope.get("app")
        return [route.path for route in getattr(app, "routes", []) if getattr(route, "path", None)]

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        route = None if path in self.exempt_paths else get_route_pattern(path, self._known_routes(request))
        if route is None:
            return await call_next(request)

        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            elapsed = time.perf_counter() - start
            try:
                record_http_request(
                    request.method,
                    route,
                    status_code,
                    elapsed,
                    registry=self.registry,
                    group_status_codes=self.group_status_codes,
                )
            except Exception as e:
                log.debug(f"Failed to record HTTP metrics for {path}: {e}")


def metrics_response(registry: Optional[MetricsRegistry] = None) -> Response:
    """Prometheus exposition of ``registry`` as a response, for a ``/metrics`` route."""
    content_type, body = (registry or get_metrics_registry()).get_metrics()
    return Response(content=body, media_type=content_type)
