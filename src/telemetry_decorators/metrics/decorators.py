"""
Metric decorators for functions and methods.

Usage:
    from telemetry_decorators.metrics import track_counter, track_histogram

    @track_counter("uploads_total", "Uploads attempted", labels={"bucket": "media"})
    async def upload(blob):
        ...

    @track_histogram("render_seconds", "Render latency")
    def render(template):
        ...

Counters record one increment per settled call with an ``error`` label of
``none`` or the exception class name. Histograms time the call by default.
Gauges and summaries record the numeric value the call returns unless
``timed=True``.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Sequence

from telemetry_decorators.attachment import Attachable
from telemetry_decorators.config.logging_config import get_logger
from telemetry_decorators.metrics.labels import LabelValue, convert_labels
from telemetry_decorators.metrics.registry import MetricsRegistry, MetricType, TimerEnd, get_metrics_registry
from telemetry_decorators.settlement import Outcome
from telemetry_decorators.tracing.spans import get_active_span
from telemetry_decorators.wrapping import (
    CallSite,
    DynamicValues,
    Gate,
    Instrumenter,
    Invocation,
    evaluate_gate,
    merge_attributes,
    resolve_name,
    wrap_callable,
)

log = get_logger(__name__)

ERROR_LABEL = "error"
NO_ERROR = "none"
UNKNOWN_ERROR = "unknown_error"
FUNCTION_NAME_LABEL = "function_name"


@dataclass(frozen=True)
class MetricOptions:
    """Options shared by all metric decorators.

    Attributes:
        metric_name: Name of the metric written by the decorator
        description: Help text used when the decorator registers the metric
        labels: Static labels
        dynamic_labels: Derives extra labels from the positional call arguments
        only_if: Bool or ``(args, receiver, current_span) -> bool`` gate
        buckets: Histogram buckets used on auto-registration
        percentiles: Summary percentiles used on auto-registration
        registry: Registry to write to; the global registry at call time when None
    """

    metric_name: str
    description: str
    labels: Mapping[str, LabelValue] = field(default_factory=dict)
    dynamic_labels: Optional[DynamicValues] = None
    only_if: Gate = None
    buckets: Optional[Sequence[float]] = None
    percentiles: Optional[Sequence[float]] = None
    registry: Optional[MetricsRegistry] = None


def error_kind(error: Optional[BaseException]) -> str:
    """Label value describing a failure: the exception class name."""
    if error is None:
        return UNKNOWN_ERROR
    return type(error).__name__ or UNKNOWN_ERROR


def _is_numeric(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class _CounterInvocation(Invocation):
    def __init__(self, registry: MetricsRegistry, name: str, labels: dict[str, Any]):
        self.registry = registry
        self.name = name
        self.labels = labels

    def settle(self, outcome: Outcome) -> None:
        error = NO_ERROR if outcome.ok else error_kind(outcome.error)
        self.registry.increment_counter(self.name, {**self.labels, ERROR_LABEL: error})


class _ValueInvocation(Invocation):
    """Records either elapsed time or the settled numeric value."""

    def __init__(
        self,
        registry: MetricsRegistry,
        metric_type: MetricType,
        name: str,
        labels: dict[str, Any],
        timed: bool,
        carries_error: bool,
    ):
        self.registry = registry
        self.metric_type = metric_type
        self.name = name
        self.labels = labels
        self.carries_error = carries_error
        self._end: Optional[TimerEnd] = None
        if timed:
            if metric_type == MetricType.GAUGE:
                self._end = registry.start_gauge_timer(name, labels)
            elif metric_type == MetricType.HISTOGRAM:
                self._end = registry.start_histogram_timer(name, labels)
            else:
                self._end = registry.start_summary_timer(name, labels)

    def settle(self, outcome: Outcome) -> None:
        if self._end is not None:
            extra = None
            if self.carries_error and not outcome.ok:
                extra = {ERROR_LABEL: error_kind(outcome.error)}
            self._end(extra)
            return
        if not outcome.ok or not _is_numeric(outcome.value):
            return
        if self.metric_type == MetricType.GAUGE:
            self.registry.set_gauge(self.name, outcome.value, self.labels)
        elif self.metric_type == MetricType.HISTOGRAM:
            self.registry.observe_histogram(self.name, outcome.value, self.labels)
        else:
            self.registry.observe_summary(self.name, outcome.value, self.labels)


class _MetricInstrumenter(Instrumenter):
    def __init__(self, metric_type: MetricType, options: MetricOptions, timed: bool = False):
        self.metric_type = metric_type
        self.options = options
        self.timed = timed
        self.carries_error = metric_type in (MetricType.COUNTER, MetricType.HISTOGRAM)

    def begin(self, call: CallSite) -> Optional[Invocation]:
        options = self.options
        if not evaluate_gate(options.only_if, call.args, call.receiver, get_active_span()):
            return None
        registry = options.registry or get_metrics_registry()
        labels = merge_attributes(
            options.labels,
            options.dynamic_labels,
            call.args,
            FUNCTION_NAME_LABEL,
            call.function_name,
        )
        if self.carries_error:
            labels[ERROR_LABEL] = NO_ERROR
        self._ensure_registered(registry, labels)

        if self.metric_type == MetricType.COUNTER:
            return _CounterInvocation(registry, options.metric_name, labels)
        return _ValueInvocation(registry, self.metric_type, options.metric_name, labels, self.timed, self.carries_error)

    def _ensure_registered(self, registry: MetricsRegistry, labels: dict[str, Any]) -> None:
        options = self.options
        if registry.get_registration(options.metric_name) is not None:
            return
        log.debug(f"Auto-registering {self.metric_type.value} '{options.metric_name}'")
        registry.register(
            self.metric_type,
            options.metric_name,
            options.description,
            label_names=list(convert_labels(labels)),
            buckets=options.buckets,
            percentiles=options.percentiles,
        )


class MetricDecorator(Attachable):
    """Metric decorator instance; apply it with any attachment convention."""

    def __init__(self, metric_type: MetricType, options: MetricOptions, timed: bool = False):
        self.metric_type = metric_type
        self.options = options
        self.timed = timed
        self._instrumenter = _MetricInstrumenter(metric_type, options, timed)

    def wrap(
        self,
        original: Callable,
        member_name: Optional[str] = None,
        module: Optional[str] = None,
        bound: Optional[bool] = None,
    ) -> Callable:
        return wrap_callable(
            original,
            self._instrumenter,
            name=resolve_name(None, member_name, original),
            module=module,
            bound=bound,
        )


def track_counter(
    metric_name: str,
    description: str,
    *,
    labels: Optional[Mapping[str, LabelValue]] = None,
    dynamic_labels: Optional[DynamicValues] = None,
    only_if: Gate = None,
    registry: Optional[MetricsRegistry] = None,
) -> MetricDecorator:
    """Count settled calls, labelled with ``error``."""
    options = MetricOptions(
        metric_name=metric_name,
        description=description,
        labels=dict(labels or {}),
        dynamic_labels=dynamic_labels,
        only_if=only_if,
        registry=registry,
    )
    return MetricDecorator(MetricType.COUNTER, options)


def track_gauge(
    metric_name: str,
    description: str,
    *,
    labels: Optional[Mapping[str, LabelValue]] = None,
    dynamic_labels: Optional[DynamicValues] = None,
    only_if: Gate = None,
    timed: bool = False,
    registry: Optional[MetricsRegistry] = None,
) -> MetricDecorator:
    """Set a gauge to the call's numeric result, or to its duration when ``timed``."""
    options = MetricOptions(
        metric_name=metric_name,
        description=description,
        labels=dict(labels or {}),
        dynamic_labels=dynamic_labels,
        only_if=only_if,
        registry=registry,
    )
    return MetricDecorator(MetricType.GAUGE, options, timed=timed)


def track_histogram(
    metric_name: str,
    description: str,
    *,
    labels: Optional[Mapping[str, LabelValue]] = None,
    dynamic_labels: Optional[DynamicValues] = None,
    only_if: Gate = None,
    buckets: Optional[Sequence[float]] = None,
    timed: bool = True,
    registry: Optional[MetricsRegistry] = None,
) -> MetricDecorator:
    """Observe call duration (default) or the numeric result into a histogram.

    The ``error`` label is ``none`` for successful calls and the exception
    class name for failed timed calls.
    """
    options = MetricOptions(
        metric_name=metric_name,
        description=description,
        labels=dict(labels or {}),
        dynamic_labels=dynamic_labels,
        only_if=only_if,
        buckets=buckets,
        registry=registry,
    )
    return MetricDecorator(MetricType.HISTOGRAM, options, timed=timed)


def track_summary(
    metric_name: str,
    description: str,
    *,
    labels: Optional[Mapping[str, LabelValue]] = None,
    dynamic_labels: Optional[DynamicValues] = None,
    only_if: Gate = None,
    percentiles: Optional[Sequence[float]] = None,
    timed: bool = False,
    registry: Optional[MetricsRegistry] = None,
) -> MetricDecorator:
    """Observe the numeric result, or the duration when ``timed``, into a summary."""
    options = MetricOptions(
        metric_name=metric_name,
        description=description,
        labels=dict(labels or {}),
        dynamic_labels=dynamic_labels,
        only_if=only_if,
        percentiles=percentiles,
        registry=registry,
    )
    return MetricDecorator(MetricType.SUMMARY, options, timed=timed)
