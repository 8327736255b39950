"""
Declarative metric definitions.

``define_metrics`` registers a whole set of metrics at once and returns a
facade whose write methods only accept names of the matching kind:

    metrics = define_metrics(
        {
            "counters": {"orders_total": {"description": "Orders placed", "label_names": ["region"]}},
            "histograms": {"checkout_seconds": {"description": "Checkout latency", "buckets": [0.1, 0.5, 1]}},
        }
    )
    metrics.increment_counter("orders_total", {"region": "eu"})
    metrics.increment_counter("checkout_seconds")  # MetricNotFoundError
"""

from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from telemetry_decorators.config.logging_config import get_logger
from telemetry_decorators.exceptions import MetricNotFoundError
from telemetry_decorators.metrics.labels import Labels
from telemetry_decorators.metrics.registry import MetricsRegistry, MetricType, TimerEnd, get_metrics_registry

log = get_logger(__name__)


class CounterDefinition(BaseModel):
    """Definition of a counter; also the base for the other kinds."""

    description: str = Field(..., description="Help text shown in the exposition")
    label_names: List[str] = Field(default_factory=list, description="Declared label names")


class GaugeDefinition(CounterDefinition):
    pass


class HistogramDefinition(CounterDefinition):
    buckets: Optional[List[float]] = Field(None, description="Upper bounds; defaults apply when omitted")

    @field_validator("buckets")
    @classmethod
    def sort_buckets(cls, v: Optional[List[float]]) -> Optional[List[float]]:
        """Buckets must be ascending for prometheus_client."""
        if v:
            return sorted(v)
        return v


class SummaryDefinition(CounterDefinition):
    percentiles: Optional[List[float]] = Field(None, description="Percentiles between 0 and 1")

    @field_validator("percentiles")
    @classmethod
    def check_percentiles(cls, v: Optional[List[float]]) -> Optional[List[float]]:
        if v and any(p <= 0 or p >= 1 for p in v):
            raise ValueError("percentiles must lie strictly between 0 and 1")
        return v


class MetricDefinitions(BaseModel):
    """All metrics of an application, grouped by kind."""

    counters: Dict[str, CounterDefinition] = Field(default_factory=dict)
    gauges: Dict[str, GaugeDefinition] = Field(default_factory=dict)
    histograms: Dict[str, HistogramDefinition] = Field(default_factory=dict)
    summaries: Dict[str, SummaryDefinition] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _unique_names(self) -> "MetricDefinitions":
        seen: set[str] = set()
        for group in (self.counters, self.gauges, self.histograms, self.summaries):
            duplicates = seen.intersection(group)
            if duplicates:
                raise ValueError(f"Metric names defined more than once: {sorted(duplicates)}")
            seen.update(group)
        return self


class DefinedMetrics:
    """Write facade over a registry, restricted to a set of defined metrics."""

    def __init__(self, definitions: MetricDefinitions, registry: MetricsRegistry):
        self.definitions = definitions
        self.registry = registry
        self._types: dict[str, MetricType] = {}
        for name in definitions.counters:
            self._types[name] = MetricType.COUNTER
        for name in definitions.gauges:
            self._types[name] = MetricType.GAUGE
        for name in definitions.histograms:
            self._types[name] = MetricType.HISTOGRAM
        for name in definitions.summaries:
            self._types[name] = MetricType.SUMMARY

    def _check(self, name: str, metric_type: MetricType) -> None:
        if self._types.get(name) != metric_type:
            raise MetricNotFoundError(name, metric_type.value)

    def increment_counter(self, name: str, labels: Optional[Labels] = None, amount: float = 1) -> None:
        self._check(name, MetricType.COUNTER)
        self.registry.increment_counter(name, labels, amount)

    def set_gauge(self, name: str, value: float, labels: Optional[Labels] = None) -> None:
        self._check(name, MetricType.GAUGE)
        self.registry.set_gauge(name, value, labels)

    def start_gauge_timer(self, name: str, labels: Optional[Labels] = None) -> TimerEnd:
        self._check(name, MetricType.GAUGE)
        return self.registry.start_gauge_timer(name, labels)

    def observe_histogram(self, name: str, value: float, labels: Optional[Labels] = None) -> None:
        self._check(name, MetricType.HISTOGRAM)
        self.registry.observe_histogram(name, value, labels)

    def start_histogram_timer(self, name: str, labels: Optional[Labels] = None) -> TimerEnd:
        self._check(name, MetricType.HISTOGRAM)
        return self.registry.start_histogram_timer(name, labels)

    def observe_summary(self, name: str, value: float, labels: Optional[Labels] = None) -> None:
        self._check(name, MetricType.SUMMARY)
        self.registry.observe_summary(name, value, labels)

    def start_summary_timer(self, name: str, labels: Optional[Labels] = None) -> TimerEnd:
        self._check(name, MetricType.SUMMARY)
        return self.registry.start_summary_timer(name, labels)

    def get_metrics(self) -> tuple[str, str]:
        return self.registry.get_metrics()


def define_metrics(
    definitions: MetricDefinitions | Mapping[str, Any],
    registry: Optional[MetricsRegistry] = None,
) -> DefinedMetrics:
    """Validate and register a set of metric definitions.

    Args:
        definitions: MetricDefinitions or an equivalent mapping
        registry: Target registry; the global registry when omitted

    Returns:
        DefinedMetrics facade bound to the registry

    Raises:
        pydantic.ValidationError: If the definitions are malformed
    """
    if not isinstance(definitions, MetricDefinitions):
        definitions = MetricDefinitions.model_validate(definitions)
    registry = registry or get_metrics_registry()

    for name, counter in definitions.counters.items():
        registry.register_counter(name, counter.description, counter.label_names)
    for name, gauge in definitions.gauges.items():
        registry.register_gauge(name, gauge.description, gauge.label_names)
    for name, histogram in definitions.histograms.items():
        registry.register_histogram(name, histogram.description, histogram.label_names, histogram.buckets)
    for name, summary in definitions.summaries.items():
        registry.register_summary(name, summary.description, summary.label_names, summary.percentiles)

    total = len(definitions.counters) + len(definitions.gauges) + len(definitions.histograms) + len(definitions.summaries)
    log.info(f"Defined {total} metrics")
    return DefinedMetrics(definitions, registry)
