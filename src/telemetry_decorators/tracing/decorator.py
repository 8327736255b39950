"""
Tracing decorator for functions and methods.

Usage:
    from telemetry_decorators.tracing import StartMode, traced, with_tracing

    class Importer:
        @traced("importer.run", attributes={"importer.kind": "csv"})
        async def run(self, path):
            ...

        @traced(start_mode=StartMode.NEW_TRACE_WITH_LINK)
        def flush(self):
            ...

    fetch = with_tracing(fetch, dynamic_attributes=lambda args: {"url": args[0]})

The span is active while the callable runs (including across ``await``), ends
when the call settles, and carries ``OK`` or ``ERROR`` status. Reused spans are
never ended by the decorator.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from telemetry_decorators.attachment import Attachable
from telemetry_decorators.config.logging_config import get_logger
from telemetry_decorators.settlement import Outcome
from telemetry_decorators.tracing.config import is_legacy_mode, maybe_warn_legacy
from telemetry_decorators.tracing.spans import SpanHandle, StartMode, get_active_span, resolve_span
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

FUNCTION_NAME_ATTRIBUTE = "function.name"


@dataclass(frozen=True)
class TraceOptions:
    """Options for a traced callable.

    Attributes:
        span_name: Span name; defaults to the member or function name
        attributes: Static span attributes
        dynamic_attributes: Derives extra attributes from the positional call arguments
        module_name: Tracer name; defaults to the callable's module
        start_mode: How the span is obtained (see StartMode)
        trace_only_if: Bool or ``(args, receiver, current_span) -> bool`` gate
    """

    span_name: Optional[str] = None
    attributes: Mapping[str, Any] = field(default_factory=dict)
    dynamic_attributes: Optional[DynamicValues] = None
    module_name: Optional[str] = None
    start_mode: StartMode = StartMode.REUSE
    trace_only_if: Gate = None


class _SpanInvocation(Invocation):
    def __init__(self, handle: SpanHandle):
        self.handle = handle

    def scope(self):
        return trace.use_span(
            self.handle.span,
            end_on_exit=False,
            record_exception=False,
            set_status_on_exception=False,
        )

    def settle(self, outcome: Outcome) -> None:
        span = self.handle.span
        if outcome.ok:
            # borrowed spans are settled by their owner
            if self.handle.owns_lifecycle:
                span.set_status(Status(StatusCode.OK))
            return
        span.set_status(Status(StatusCode.ERROR, str(outcome.error)))
        span.record_exception(outcome.error)

    def release(self) -> None:
        self.handle.end()


class _TracingInstrumenter(Instrumenter):
    def __init__(self, options: TraceOptions):
        self.options = options

    def legacy_coercion(self) -> bool:
        maybe_warn_legacy()
        return is_legacy_mode()

    def begin(self, call: CallSite) -> Optional[Invocation]:
        options = self.options
        if not evaluate_gate(options.trace_only_if, call.args, call.receiver, get_active_span()):
            log.debug(f"Tracing skipped for '{call.name}'")
            return None
        attributes = merge_attributes(
            options.attributes,
            options.dynamic_attributes,
            call.args,
            FUNCTION_NAME_ATTRIBUTE,
            call.function_name,
        )
        handle = resolve_span(call.name, attributes, options.start_mode, call.module)
        return _SpanInvocation(handle)


class Traced(Attachable):
    """Tracing decorator instance; apply it with any attachment convention."""

    def __init__(self, options: TraceOptions):
        self.options = options
        self._instrumenter = _TracingInstrumenter(options)

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
            name=resolve_name(self.options.span_name, member_name, original),
            module=self.options.module_name or module,
            bound=bound,
        )


def traced(
    span_name: Optional[str | Callable | staticmethod | classmethod | property] = None,
    *,
    attributes: Optional[Mapping[str, Any]] = None,
    dynamic_attributes: Optional[DynamicValues] = None,
    module_name: Optional[str] = None,
    start_mode: StartMode | str = StartMode.REUSE,
    trace_only_if: Gate = None,
) -> Any:
    """Create a tracing decorator.

    ``@traced`` without parentheses traces the decorated function with default
    options.

    Args:
        span_name: Span name, or the function itself for bare ``@traced``
        attributes: Static span attributes
        dynamic_attributes: ``(args) -> mapping`` evaluated per call
        module_name: Tracer name override
        start_mode: StartMode value or its string form
        trace_only_if: Bool or predicate gating instrumentation per call

    Returns:
        A Traced decorator, or the wrapped function for bare usage
    """
    if callable(span_name) or isinstance(span_name, (staticmethod, classmethod, property)):
        return Traced(TraceOptions())(span_name)
    options = TraceOptions(
        span_name=span_name,
        attributes=dict(attributes or {}),
        dynamic_attributes=dynamic_attributes,
        module_name=module_name,
        start_mode=StartMode(start_mode),
        trace_only_if=trace_only_if,
    )
    return Traced(options)


def with_tracing(func: Callable, span_name: Optional[str] = None, **options: Any) -> Callable:
    """Wrap a standalone callable with tracing; accepts the same options as ``traced``."""
    return traced(span_name, **options).wrap(func)
