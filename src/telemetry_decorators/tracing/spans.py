"""
Span resolution and helpers for the ambient OpenTelemetry span.

``resolve_span`` decides, per call, whether a traced callable piggybacks on the
span that is already active or starts a new one, and records who is
responsible for ending it:

- ``reuse``: use the active span when there is one (not owned), otherwise
  start a root span
- ``create_child``: always start a new span, parented to the active one
- ``new_trace``: start a root span, ignoring any active span
- ``new_trace_with_link``: start a root span linked to the active one

Usage:
    from telemetry_decorators.tracing.spans import StartMode, resolve_span

    handle = resolve_span("cache.refresh", {"cache.size": 12}, StartMode.CREATE_CHILD)
    try:
        ...
    finally:
        handle.end()
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.trace import Link, Span, Status, StatusCode

from telemetry_decorators.config.logging_config import get_logger
from telemetry_decorators.tracing.config import maybe_warn_span_limits_disabled

log = get_logger(__name__)

SAMPLING_KEEP_ATTRIBUTE = "otel.collector.sampling.keep"
DEFAULT_TRACER_NAME = "telemetry_decorators"


class StartMode(str, Enum):
    """How a traced call obtains its span."""

    REUSE = "reuse"
    CREATE_CHILD = "create_child"
    NEW_TRACE = "new_trace"
    NEW_TRACE_WITH_LINK = "new_trace_with_link"


@dataclass
class SpanHandle:
    """A span plus whether the holder must end it.

    Attributes:
        span: The OpenTelemetry span
        owns_lifecycle: True when the span was started for this handle
    """

    span: Span
    owns_lifecycle: bool
    _ended: bool = field(default=False, repr=False)

    def end(self) -> None:
        """End the span if this handle owns it. Safe to call repeatedly."""
        if not self.owns_lifecycle or self._ended:
            return
        self._ended = True
        try:
            self.span.end()
        except Exception as e:
            log.debug(f"Failed to end span: {e}")


def convert_attribute_value(value: Any) -> Any:
    """Convert a value to an OTEL-compatible attribute type.

    OTEL accepts: str, bool, int, float, or sequences of these.

    Args:
        value: The value to convert

    Returns:
        OTEL-compatible value or None if conversion not possible
    """
    if value is None:
        return None
    if isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (list, tuple)):
        return [item if isinstance(item, (str, bool, int, float)) else str(item) for item in value if item is not None]
    return str(value)


def convert_attributes(attributes: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    converted: dict[str, Any] = {}
    for key, value in (attributes or {}).items():
        otel_value = convert_attribute_value(value)
        if otel_value is not None:
            converted[key] = otel_value
    return converted


def get_active_span() -> Optional[Span]:
    """Return the ambient span, or None when no valid span is active."""
    span = trace.get_current_span()
    if span.get_span_context().is_valid:
        return span
    return None


def resolve_span(
    name: str,
    attributes: Optional[Mapping[str, Any]] = None,
    start_mode: StartMode | str = StartMode.REUSE,
    tracer_name: Optional[str] = None,
) -> SpanHandle:
    """Obtain the span a traced call should record into.

    Args:
        name: Span name used when a span is started
        attributes: Attributes applied to a started span
        start_mode: One of the StartMode values
        tracer_name: Instrumentation scope name for the tracer

    Returns:
        SpanHandle telling the caller whether it must end the span
    """
    mode = StartMode(start_mode)
    maybe_warn_span_limits_disabled()
    active = get_active_span()

    if mode == StartMode.REUSE and active is not None:
        return SpanHandle(span=active, owns_lifecycle=False)

    span_attributes = convert_attributes(attributes)
    span_attributes.setdefault(SAMPLING_KEEP_ATTRIBUTE, False)
    tracer = trace.get_tracer(tracer_name or DEFAULT_TRACER_NAME)

    if mode in (StartMode.NEW_TRACE, StartMode.NEW_TRACE_WITH_LINK):
        links = None
        if mode == StartMode.NEW_TRACE_WITH_LINK and active is not None:
            links = [Link(active.get_span_context())]
        span = tracer.start_span(name, context=Context(), attributes=span_attributes, links=links)
    else:
        span = tracer.start_span(name, attributes=span_attributes)

    log.debug(f"Started span '{name}' ({mode.value})")
    return SpanHandle(span=span, owns_lifecycle=True)


# ---------------------------------------------------------------------------
# Helpers on the current span
# ---------------------------------------------------------------------------


def set_attribute(key: str, value: Any) -> None:
    """Set one attribute on the active span, if any."""
    span = get_active_span()
    otel_value = convert_attribute_value(value)
    if span is not None and otel_value is not None:
        span.set_attribute(key, otel_value)


def set_attributes(attributes: Mapping[str, Any]) -> None:
    """Set several attributes on the active span, if any."""
    span = get_active_span()
    if span is not None:
        span.set_attributes(convert_attributes(attributes))


def set_status(code: StatusCode, description: Optional[str] = None) -> None:
    span = get_active_span()
    if span is not None:
        span.set_status(Status(code, description))


def record_exception(error: BaseException, attributes: Optional[Mapping[str, Any]] = None) -> None:
    """Record an exception event on the active span, if any."""
    span = get_active_span()
    if span is not None:
        span.record_exception(error, attributes=convert_attributes(attributes) or None)


def add_event(name: str, attributes: Optional[Mapping[str, Any]] = None) -> None:
    span = get_active_span()
    if span is not None:
        span.add_event(name, convert_attributes(attributes))
