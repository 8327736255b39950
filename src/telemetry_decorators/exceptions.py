"""
Exception classes for telemetry instrumentation.

Errors raised by wrapped callables are never converted into these; they
propagate unchanged. These types cover misuse of the instrumentation itself.
"""


class TelemetryError(Exception):
    """Base exception for instrumentation errors."""

    pass


class MetricNotFoundError(TelemetryError, LookupError):
    """Raised when a metric is written before it was registered."""

    def __init__(self, metric_name: str, metric_type: str | None = None):
        self.metric_name = metric_name
        self.metric_type = metric_type
        kind = metric_type.capitalize() if metric_type else "Metric"
        super().__init__(f"{kind} with name {metric_name} not found.")


class UnsupportedMetricTypeError(TelemetryError, ValueError):
    """Raised when registering a metric of an unknown type."""

    def __init__(self, metric_type: object):
        self.metric_type = metric_type
        super().__init__(f"Unsupported metric type: {metric_type!r}")


class AttachmentError(TelemetryError, TypeError):
    """Raised when a decorator is applied with an unrecognized argument shape."""

    pass
