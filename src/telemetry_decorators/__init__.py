"""
Decorator-driven tracing and metrics for Python services.

Example:
    from telemetry_decorators import init_instrumentation, track_counter, traced

    init_instrumentation("orders-service")

    class OrderService:
        @traced("orders.place")
        @track_counter("orders_placed_total", "Orders placed")
        async def place(self, order):
            ...
"""

from .attachment import AccessorInit, AttachmentContext, AttachmentKind, instrument_member
from .exceptions import AttachmentError, MetricNotFoundError, TelemetryError, UnsupportedMetricTypeError
from .instrumentation import ExporterSpec, InstrumentationHandle, init_instrumentation, shutdown_instrumentation
from .metrics import (
    MetricsRegistry,
    MetricType,
    define_metrics,
    get_metrics_registry,
    track_counter,
    track_gauge,
    track_histogram,
    track_summary,
)
from .tracing import StartMode, TracingMode, get_active_span, resolve_span, traced, with_tracing

__all__ = [
    "AccessorInit",
    "AttachmentContext",
    "AttachmentError",
    "AttachmentKind",
    "ExporterSpec",
    "InstrumentationHandle",
    "MetricNotFoundError",
    "MetricType",
    "MetricsRegistry",
    "StartMode",
    "TelemetryError",
    "TracingMode",
    "UnsupportedMetricTypeError",
    "define_metrics",
    "get_active_span",
    "get_metrics_registry",
    "init_instrumentation",
    "instrument_member",
    "resolve_span",
    "shutdown_instrumentation",
    "track_counter",
    "track_gauge",
    "track_histogram",
    "track_summary",
    "traced",
    "with_tracing",
]
