"""
Prometheus metrics with lazy materialization and metric decorators.

Example:
    from telemetry_decorators.metrics import get_metrics_registry, track_counter

    @track_counter("jobs_total", "Jobs processed", labels={"queue": "default"})
    def process(job):
        ...

    content_type, body = get_metrics_registry().get_metrics()
"""

from .decorators import (
    ERROR_LABEL,
    FUNCTION_NAME_LABEL,
    MetricDecorator,
    MetricOptions,
    error_kind,
    track_counter,
    track_gauge,
    track_histogram,
    track_summary,
)
from .definitions import (
    CounterDefinition,
    DefinedMetrics,
    GaugeDefinition,
    HistogramDefinition,
    MetricDefinitions,
    SummaryDefinition,
    define_metrics,
)
from .labels import convert_labels, filter_labels
from .registry import (
    DEFAULT_BUCKETS,
    DEFAULT_PERCENTILES,
    MetricRegistration,
    MetricsRegistry,
    MetricType,
    get_metrics_registry,
    set_metrics_registry,
)

__all__ = [
    "DEFAULT_BUCKETS",
    "DEFAULT_PERCENTILES",
    "ERROR_LABEL",
    "FUNCTION_NAME_LABEL",
    "CounterDefinition",
    "DefinedMetrics",
    "GaugeDefinition",
    "HistogramDefinition",
    "MetricDecorator",
    "MetricDefinitions",
    "MetricOptions",
    "MetricRegistration",
    "MetricType",
    "MetricsRegistry",
    "SummaryDefinition",
    "convert_labels",
    "define_metrics",
    "error_kind",
    "filter_labels",
    "get_metrics_registry",
    "set_metrics_registry",
    "track_counter",
    "track_gauge",
    "track_histogram",
    "track_summary",
]
