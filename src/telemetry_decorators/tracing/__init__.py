"""
Tracing for functions and methods on top of the OpenTelemetry API.

Example:
    from telemetry_decorators.tracing import StartMode, traced

    @traced("jobs.process", start_mode=StartMode.CREATE_CHILD)
    async def process(job):
        ...
"""

from .config import (
    TracingConfig,
    TracingMode,
    configure_tracing,
    get_enable_span_limits,
    get_tracing_config,
    get_tracing_mode,
    is_legacy_mode,
    reset_tracing_config,
    set_enable_span_limits,
    set_tracing_mode,
)
from .decorator import FUNCTION_NAME_ATTRIBUTE, TraceOptions, Traced, traced, with_tracing
from .spans import (
    SAMPLING_KEEP_ATTRIBUTE,
    SpanHandle,
    StartMode,
    add_event,
    get_active_span,
    record_exception,
    resolve_span,
    set_attribute,
    set_attributes,
    set_status,
)

__all__ = [
    "FUNCTION_NAME_ATTRIBUTE",
    "SAMPLING_KEEP_ATTRIBUTE",
    "SpanHandle",
    "StartMode",
    "TraceOptions",
    "Traced",
    "TracingConfig",
    "TracingMode",
    "add_event",
    "configure_tracing",
    "get_active_span",
    "get_enable_span_limits",
    "get_tracing_config",
    "get_tracing_mode",
    "is_legacy_mode",
    "record_exception",
    "reset_tracing_config",
    "resolve_span",
    "set_attribute",
    "set_attributes",
    "set_enable_span_limits",
    "set_status",
    "set_tracing_mode",
    "traced",
    "with_tracing",
]
