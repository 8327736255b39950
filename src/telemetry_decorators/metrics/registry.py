"""
Lazily materialized Prometheus metrics.

Registering a metric only records its configuration. The prometheus_client
object is created on first write, so a metric that is never used never shows
up in the exposition. When a registration declares no label names, the keys
of the first write's labels become its label names.

Usage:
    from telemetry_decorators.metrics import get_metrics_registry

    registry = get_metrics_registry()
    registry.register_counter("jobs_processed_total", "Jobs processed", ["queue"])
    registry.increment_counter("jobs_processed_total", {"queue": "default"})

    end = registry.start_histogram_timer("job_duration_seconds", {"queue": "default"})
    ...
    end({"status": "ok"})
"""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Summary,
    generate_latest,
)

from telemetry_decorators.config.logging_config import get_logger
from telemetry_decorators.exceptions import MetricNotFoundError, UnsupportedMetricTypeError
from telemetry_decorators.metrics.labels import Labels, convert_labels, filter_labels

log = get_logger(__name__)

DEFAULT_BUCKETS: tuple[float, ...] = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10)
DEFAULT_PERCENTILES: tuple[float, ...] = (0.5, 0.9, 0.95, 0.99)

TimerEnd = Callable[[Optional[Labels]], float]


class MetricType(str, Enum):
    """Supported metric types."""

    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"
    SUMMARY = "summary"


@dataclass
class MetricRegistration:
    """Configuration of a registered metric.

    ``percentiles`` is kept for reference only: prometheus_client summaries
    expose ``_count`` and ``_sum`` without quantiles.
    """

    name: str
    description: str
    metric_type: MetricType
    label_names: list[str]
    buckets: Optional[tuple[float, ...]] = None
    percentiles: Optional[tuple[float, ...]] = None


class MetricsRegistry:
    """Registrations and realized prometheus_client metrics, keyed by name."""

    def __init__(self, collector_registry: CollectorRegistry = REGISTRY) -> None:
        self.collector_registry = collector_registry
        self._registrations: dict[str, MetricRegistration] = {}
        self._instances: dict[str, Any] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        metric_type: MetricType | str,
        name: str,
        description: str,
        label_names: Optional[Sequence[str]] = None,
        buckets: Optional[Sequence[float]] = None,
        percentiles: Optional[Sequence[float]] = None,
    ) -> MetricRegistration:
        """Record a metric configuration. Re-registering a name replaces it.

        Args:
            metric_type: counter, gauge, histogram or summary
            name: Metric name
            description: Help text shown in the exposition
            label_names: Declared label names; inferred on first write when empty
            buckets: Histogram buckets (DEFAULT_BUCKETS when omitted)
            percentiles: Summary percentiles (DEFAULT_PERCENTILES when omitted)

        Raises:
            UnsupportedMetricTypeError: If metric_type is not a MetricType
        """
        try:
            metric_type = MetricType(metric_type)
        except ValueError:
            raise UnsupportedMetricTypeError(metric_type) from None

        registration = MetricRegistration(
            name=name,
            description=description,
            metric_type=metric_type,
            label_names=list(label_names or []),
        )
        if metric_type == MetricType.HISTOGRAM:
            registration.buckets = tuple(buckets) if buckets else DEFAULT_BUCKETS
        elif metric_type == MetricType.SUMMARY:
            registration.percentiles = tuple(percentiles) if percentiles else DEFAULT_PERCENTILES

        with self._lock:
            stale = self._instances.pop(name, None)
            if stale is not None:
                self._unregister_collector(stale)
            self._registrations[name] = registration
        log.debug(f"Registered {metric_type.value} '{name}'")
        return registration

    def register_counter(
        self, name: str, description: str, label_names: Optional[Sequence[str]] = None
    ) -> MetricRegistration:
        return self.register(MetricType.COUNTER, name, description, label_names)

    def register_gauge(
        self, name: str, description: str, label_names: Optional[Sequence[str]] = None
    ) -> MetricRegistration:
        return self.register(MetricType.GAUGE, name, description, label_names)

    def register_histogram(
        self,
        name: str,
        description: str,
        label_names: Optional[Sequence[str]] = None,
        buckets: Optional[Sequence[float]] = None,
    ) -> MetricRegistration:
        return self.register(MetricType.HISTOGRAM, name, description, label_names, buckets=buckets)

    def register_summary(
        self,
        name: str,
        description: str,
        label_names: Optional[Sequence[str]] = None,
        percentiles: Optional[Sequence[float]] = None,
    ) -> MetricRegistration:
        return self.register(MetricType.SUMMARY, name, description, label_names, percentiles=percentiles)

    def get_registration(self, name: str) -> Optional[MetricRegistration]:
        return self._registrations.get(name)

    def is_registered(self, name: str, metric_type: Optional[MetricType] = None) -> bool:
        registration = self._registrations.get(name)
        if registration is None:
            return False
        return metric_type is None or registration.metric_type == metric_type

    # ------------------------------------------------------------------
    # Materialization
    # ------------------------------------------------------------------

    def ensure(self, name: str, labels: Optional[Labels] = None, metric_type: Optional[MetricType] = None) -> Any:
        """Return the realized metric for ``name``, creating it on first use.

        Raises:
            MetricNotFoundError: If ``name`` is not registered (as ``metric_type``)
        """
        with self._lock:
            registration = self._registrations.get(name)
            if registration is None or (metric_type is not None and registration.metric_type != metric_type):
                raise MetricNotFoundError(name, metric_type.value if metric_type else None)
            instance = self._instances.get(name)
            if instance is None:
                if not registration.label_names:
                    registration.label_names = list(convert_labels(labels))
                instance = self._materialize(registration)
                self._instances[name] = instance
            return instance

    def _materialize(self, registration: MetricRegistration) -> Any:
        kwargs: dict[str, Any] = {
            "labelnames": registration.label_names,
            "registry": self.collector_registry,
        }
        if registration.metric_type == MetricType.COUNTER:
            metric = Counter(registration.name, registration.description, **kwargs)
        elif registration.metric_type == MetricType.GAUGE:
            metric = Gauge(registration.name, registration.description, **kwargs)
        elif registration.metric_type == MetricType.HISTOGRAM:
            metric = Histogram(registration.name, registration.description, buckets=registration.buckets, **kwargs)
        else:
            metric = Summary(registration.name, registration.description, **kwargs)
            if registration.percentiles:
                log.debug(
                    f"Summary '{registration.name}' percentiles {list(registration.percentiles)} are not exported; "
                    "prometheus_client summaries expose only _count and _sum"
                )
        log.debug(f"Materialized {registration.metric_type.value} '{registration.name}' labels={registration.label_names}")
        return metric

    def _child(self, metric_type: MetricType, name: str, labels: Optional[Labels]) -> Any:
        converted = convert_labels(labels)
        metric = self.ensure(name, converted, metric_type)
        label_names = self._registrations[name].label_names
        if not label_names:
            return metric
        return metric.labels(**filter_labels(label_names, converted))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def increment_counter(self, name: str, labels: Optional[Labels] = None, amount: float = 1) -> None:
        self._child(MetricType.COUNTER, name, labels).inc(amount)

    def set_gauge(self, name: str, value: float, labels: Optional[Labels] = None) -> None:
        self._child(MetricType.GAUGE, name, labels).set(value)

    def observe_histogram(self, name: str, value: float, labels: Optional[Labels] = None) -> None:
        self._child(MetricType.HISTOGRAM, name, labels).observe(value)

    def observe_summary(self, name: str, value: float, labels: Optional[Labels] = None) -> None:
        self._child(MetricType.SUMMARY, name, labels).observe(value)

    def start_gauge_timer(self, name: str, labels: Optional[Labels] = None) -> TimerEnd:
        return self._start_timer(MetricType.GAUGE, name, labels)

    def start_histogram_timer(self, name: str, labels: Optional[Labels] = None) -> TimerEnd:
        return self._start_timer(MetricType.HISTOGRAM, name, labels)

    def start_summary_timer(self, name: str, labels: Optional[Labels] = None) -> TimerEnd:
        return self._start_timer(MetricType.SUMMARY, name, labels)

    def _start_timer(self, metric_type: MetricType, name: str, labels: Optional[Labels]) -> TimerEnd:
        """Start timing; the returned ``end(extra_labels)`` records elapsed seconds.

        Extra labels given at stop time are merged over the start labels.
        """
        start_labels = dict(labels or {})
        self.ensure(name, convert_labels(start_labels), metric_type)
        start = time.perf_counter()

        def end(extra_labels: Optional[Labels] = None) -> float:
            elapsed = max(time.perf_counter() - start, 0.0)
            child = self._child(metric_type, name, {**start_labels, **(extra_labels or {})})
            if metric_type == MetricType.GAUGE:
                child.set(elapsed)
            else:
                child.observe(elapsed)
            return elapsed

        return end

    # ------------------------------------------------------------------
    # Lifecycle and exposition
    # ------------------------------------------------------------------

    def _unregister_collector(self, instance: Any) -> None:
        try:
            self.collector_registry.unregister(instance)
        except KeyError:
            log.debug("Collector was not registered")

    def clear(self) -> None:
        """Drop realized metrics; registrations stay and re-materialize on next write."""
        with self._lock:
            for instance in self._instances.values():
                self._unregister_collector(instance)
            self._instances.clear()

    def reset(self) -> None:
        """Drop realized metrics and registrations."""
        with self._lock:
            self.clear()
            self._registrations.clear()

    def get_metrics(self) -> tuple[str, str]:
        """Return ``(content_type, body)`` in the Prometheus text format."""
        return CONTENT_TYPE_LATEST, generate_latest(self.collector_registry).decode("utf-8")


_global_registry: MetricsRegistry = MetricsRegistry()


def get_metrics_registry() -> MetricsRegistry:
    """Get the global metrics registry."""
    return _global_registry


def set_metrics_registry(registry: MetricsRegistry) -> MetricsRegistry:
    """Install ``registry`` as the global registry and return the previous one."""
    global _global_registry
    previous = _global_registry
    _global_registry = registry
    return previous
