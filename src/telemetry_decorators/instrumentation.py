"""
OpenTelemetry SDK bootstrap.

Usage:
    from telemetry_decorators.instrumentation import (
        ExporterSpec,
        init_instrumentation,
        shutdown_instrumentation,
    )

    handle = init_instrumentation(
        "billing-service",
        exporter=ExporterSpec(kind="otlp", url="http://otel-collector:4318/v1/traces"),
    )
    ...
    shutdown_instrumentation(handle)

Precedence:
1. ``span_processors`` given: used as-is, nothing else is attached.
2. Otherwise an exporter is resolved from ``exporter`` or the legacy
   ``url``/``local_debugging`` flags and wrapped in a BatchSpanProcessor
   (except for the noop exporter).
3. Nothing configured: spans are created but not exported.
"""

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Optional, Sequence

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import SpanLimits, SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SpanExporter,
    SpanExportResult,
)

from telemetry_decorators.config.logging_config import get_logger
from telemetry_decorators.tracing.config import (
    TracingMode,
    get_enable_span_limits,
    maybe_warn_legacy,
    set_enable_span_limits,
    set_tracing_mode,
)

log = get_logger(__name__)

DEFAULT_SPAN_LIMITS: dict[str, int] = {
    "max_span_attribute_length": 12000,
    "max_span_attributes": 128,
    "max_events": 128,
    "max_links": 128,
    "max_event_attributes": 16,
    "max_link_attributes": 16,
}
BATCH_MAX_QUEUE_SIZE = 1000
BATCH_SCHEDULE_DELAY_MILLIS = 5000


@dataclass(frozen=True)
class ExporterSpec:
    """Declarative exporter choice.

    Attributes:
        kind: ``otlp``, ``console`` or ``noop``
        url: OTLP/HTTP traces endpoint (otlp only)
        headers: Extra request headers (otlp only)
        timeout: Export timeout in seconds (otlp only)
    """

    kind: Literal["otlp", "console", "noop"]
    url: Optional[str] = None
    headers: Optional[Mapping[str, str]] = None
    timeout: Optional[float] = None


class NoopSpanExporter(SpanExporter):
    """Accepts and discards spans."""

    def export(self, spans: Sequence[Any]) -> SpanExportResult:
        return SpanExportResult.SUCCESS

    def shutdown(self) -> None:
        pass

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return True


@dataclass
class InstrumentationHandle:
    """What ``init_instrumentation`` created."""

    tracer_provider: TracerProvider
    exporter: Optional[SpanExporter]
    span_processors: list[SpanProcessor] = field(default_factory=list)
    instrumentations: list[Any] = field(default_factory=list)
    span_limits: Optional[dict[str, int]] = None


_current_handle: Optional[InstrumentationHandle] = None


def resolve_exporter(
    exporter: ExporterSpec | SpanExporter | None = None,
    url: Optional[str] = None,
    local_debugging: bool = False,
) -> SpanExporter:
    """Build the exporter described by the arguments.

    Args:
        exporter: A concrete SpanExporter or an ExporterSpec
        url: Legacy OTLP endpoint, used when ``exporter`` is None
        local_debugging: Legacy console switch, used when ``exporter`` is None

    Returns:
        The resolved SpanExporter (NoopSpanExporter when nothing is configured)
    """
    if isinstance(exporter, SpanExporter):
        return exporter
    if exporter is not None:
        if exporter.kind == "console":
            log.info("Using ConsoleSpanExporter (explicit)")
            return ConsoleSpanExporter()
        if exporter.kind == "noop":
            log.info("Using noop span exporter (explicit)")
            return NoopSpanExporter()
        if exporter.kind == "otlp":
            header_names = sorted(exporter.headers or {})
            log.info(f"Using OTLPSpanExporter (explicit): url={exporter.url} headers={header_names}")
            return OTLPSpanExporter(
                endpoint=exporter.url,
                headers=dict(exporter.headers) if exporter.headers else None,
                timeout=exporter.timeout,
            )
        raise ValueError(f"Unknown exporter kind: {exporter.kind!r}")

    if local_debugging:
        log.info("Using ConsoleSpanExporter (local_debugging)")
        return ConsoleSpanExporter()
    if url:
        log.info(f"Using OTLPSpanExporter (url): {url}")
        return OTLPSpanExporter(endpoint=url)
    log.info("No exporter configured; spans will not be exported")
    return NoopSpanExporter()


def resolve_span_processors(
    exporter: Optional[SpanExporter],
    provided: Optional[Sequence[SpanProcessor]] = None,
) -> list[SpanProcessor]:
    """Use ``provided`` as-is, else batch ``exporter`` (nothing for the noop exporter)."""
    if provided:
        return list(provided)
    if exporter is None or isinstance(exporter, NoopSpanExporter):
        return []
    log.info("Using default BatchSpanProcessor")
    return [
        BatchSpanProcessor(
            exporter,
            max_queue_size=BATCH_MAX_QUEUE_SIZE,
            schedule_delay_millis=BATCH_SCHEDULE_DELAY_MILLIS,
        )
    ]


def init_instrumentation(
    service_name: str,
    *,
    exporter: ExporterSpec | SpanExporter | None = None,
    url: Optional[str] = None,
    local_debugging: bool = False,
    span_processors: Optional[Sequence[SpanProcessor]] = None,
    span_limits: Optional[Mapping[str, int]] = None,
    tracing_mode: Optional[TracingMode | str] = None,
    instrumentations: Optional[Sequence[Any]] = None,
    service_version: Optional[str] = None,
    set_global: bool = True,
) -> InstrumentationHandle:
    """Initialize the OpenTelemetry SDK for this process.

    Intended to be called once at startup. Repeated calls create additional
    providers; the global provider can only be set once per process.

    Args:
        service_name: Service name resource attribute
        exporter: ExporterSpec or concrete SpanExporter
        url: Legacy OTLP endpoint (prefer ``exporter``)
        local_debugging: Legacy console exporter switch (prefer ``exporter``)
        span_processors: Processors used as-is instead of a default batch processor
        span_limits: SpanLimits keyword overrides; passing any enables limits
        tracing_mode: Process-wide result delivery mode for traced callables
        instrumentations: Instrumentors exposing ``instrument(tracer_provider=...)``
        service_version: Optional service version resource attribute
        set_global: Register the provider as the global tracer provider

    Returns:
        InstrumentationHandle describing the created components
    """
    global _current_handle
    log.info(f"Initializing OpenTelemetry instrumentation for service: {service_name}")

    resolved_exporter = None if span_processors else resolve_exporter(exporter, url, local_debugging)
    processors = resolve_span_processors(resolved_exporter, span_processors)

    limits = None
    if span_limits or get_enable_span_limits():
        limits = {**DEFAULT_SPAN_LIMITS, **(span_limits or {})}
        set_enable_span_limits(True)
        log.info(f"Span limits enabled: {limits}")

    attributes = {SERVICE_NAME: service_name}
    if service_version:
        attributes[SERVICE_VERSION] = service_version
    provider = TracerProvider(
        resource=Resource.create(attributes),
        span_limits=SpanLimits(**limits) if limits else None,
    )
    for processor in processors:
        provider.add_span_processor(processor)

    if set_global:
        trace.set_tracer_provider(provider)
        log.info("OTEL TracerProvider registered globally")

    applied = []
    for instrumentor in instrumentations or []:
        log.info(f"Enabling instrumentation {type(instrumentor).__name__}")
        instrumentor.instrument(tracer_provider=provider)
        applied.append(instrumentor)

    if tracing_mode is not None:
        set_tracing_mode(tracing_mode)
    maybe_warn_legacy()

    _current_handle = InstrumentationHandle(
        tracer_provider=provider,
        exporter=resolved_exporter,
        span_processors=processors,
        instrumentations=applied,
        span_limits=limits,
    )
    log.info("Tracing initialized")
    return _current_handle


def shutdown_instrumentation(handle: Optional[InstrumentationHandle] = None) -> None:
    """Flush and shut down what ``init_instrumentation`` created.

    Failures are logged and do not interrupt the remaining shutdown steps.
    """
    global _current_handle
    handle = handle or _current_handle
    if handle is None:
        log.warning("No OpenTelemetry instrumentation found. Nothing to shut down.")
        return

    log.info("Shutting down OpenTelemetry instrumentation")
    for instrumentor in handle.instrumentations:
        try:
            instrumentor.uninstrument()
        except Exception as e:
            log.warning(f"Failed to uninstrument {type(instrumentor).__name__}: {e}")
    try:
        handle.tracer_provider.force_flush()
    except Exception as e:
        log.warning(f"Failed to flush spans: {e}")
    try:
        handle.tracer_provider.shutdown()
    except Exception as e:
        log.warning(f"Failed to shut down tracer provider: {e}")

    if handle is _current_handle:
        _current_handle = None
    log.info("OpenTelemetry instrumentation shut down")


def get_instrumentation_handle() -> Optional[InstrumentationHandle]:
    """Get the handle of the most recent ``init_instrumentation`` call."""
    return _current_handle
