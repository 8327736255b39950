"""Tests for OpenTelemetry SDK bootstrap."""

import logging

import pytest
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

import telemetry_decorators.instrumentation as instrumentation
from telemetry_decorators.instrumentation import (
    DEFAULT_SPAN_LIMITS,
    ExporterSpec,
    NoopSpanExporter,
    get_instrumentation_handle,
    init_instrumentation,
    resolve_exporter,
    shutdown_instrumentation,
)
from telemetry_decorators.tracing.config import get_enable_span_limits, is_legacy_mode, reset_tracing_config


class FakeInstrumentor:
    def __init__(self, fail_uninstrument=False):
        self.provider = None
        self.uninstrumented = False
        self.fail_uninstrument = fail_uninstrument

    def instrument(self, tracer_provider=None):
        self.provider = tracer_provider

    def uninstrument(self):
        if self.fail_uninstrument:
            raise RuntimeError("already uninstrumented")
        self.uninstrumented = True


@pytest.fixture
def handles():
    created = []
    yield created
    for handle in created:
        shutdown_instrumentation(handle)


def init(handles, **kwargs):
    handle = init_instrumentation("test-service", set_global=False, **kwargs)
    handles.append(handle)
    return handle


class TestResolveExporter:
    """Tests for exporter selection."""

    def test_defaults_to_noop(self):
        """Test the default noop exporter."""
        assert isinstance(resolve_exporter(), NoopSpanExporter)

    def test_console_spec(self):
        """Test selecting the console exporter."""
        assert isinstance(resolve_exporter(ExporterSpec(kind="console")), ConsoleSpanExporter)

    def test_otlp_spec(self):
        """Test selecting the OTLP HTTP exporter."""
        spec = ExporterSpec(kind="otlp", url="http://collector:4318/v1/traces", headers={"x-api-key": "k"}, timeout=3)
        assert isinstance(resolve_exporter(spec), OTLPSpanExporter)

    def test_concrete_exporter_is_used_as_is(self):
        """Test passing an exporter instance."""
        exporter = InMemorySpanExporter()
        assert resolve_exporter(exporter) is exporter

    def test_legacy_flags(self):
        """Test exporter selection from url and local_debugging."""
        assert isinstance(resolve_exporter(local_debugging=True), ConsoleSpanExporter)
        assert isinstance(resolve_exporter(url="http://collector:4318/v1/traces"), OTLPSpanExporter)

    def test_spec_wins_over_legacy_flags(self):
        """Test that an exporter spec overrides the legacy flags."""
        exporter = resolve_exporter(ExporterSpec(kind="noop"), url="http://collector:4318", local_debugging=True)
        assert isinstance(exporter, NoopSpanExporter)

    def test_unknown_kind(self):
        """Test rejecting an unknown exporter kind."""
        with pytest.raises(ValueError):
            resolve_exporter(ExporterSpec(kind="zipkin"))


class TestInitInstrumentation:
    """Tests for init_instrumentation."""

    def test_noop_exporter_gets_no_processor(self, handles):
        """Test that the noop exporter adds no span processor."""
        handle = init(handles)
        assert isinstance(handle.exporter, NoopSpanExporter)
        assert handle.span_processors == []
        assert handle.span_limits is None

    def test_exporter_is_batched(self, handles):
        """Test wrapping the exporter in a batch processor."""
        handle = init(handles, exporter=ExporterSpec(kind="console"))
        (processor,) = handle.span_processors
        assert isinstance(processor, BatchSpanProcessor)

    def test_span_processors_used_as_is(self, handles):
        """Test passing span processors and resource attributes."""
        exporter = InMemorySpanExporter()
        processor = SimpleSpanProcessor(exporter)
        handle = init(handles, span_processors=[processor], service_version="1.2.3")
        assert handle.span_processors == [processor]
        assert handle.exporter is None

        handle.tracer_provider.get_tracer("tests").start_span("startup").end()
        (span,) = exporter.get_finished_spans()
        assert span.resource.attributes["service.name"] == "test-service"
        assert span.resource.attributes["service.version"] == "1.2.3"

    def test_explicit_span_limits(self, handles):
        """Test merging explicit span limits with the defaults."""
        handle = init(handles, span_limits={"max_events": 4})
        assert handle.span_limits == {**DEFAULT_SPAN_LIMITS, "max_events": 4}
        assert get_enable_span_limits() is True

    def test_span_limits_from_environment(self, handles, monkeypatch):
        """Test enabling span limits from the environment."""
        monkeypatch.setenv("TRACES_ENABLE_LIMITS", "true")
        reset_tracing_config()
        handle = init(handles)
        assert handle.span_limits == DEFAULT_SPAN_LIMITS

    def test_tracing_mode(self, handles, caplog):
        """Test setting the tracing mode during init."""
        init(handles, tracing_mode="legacy-always-awaitable")
        assert is_legacy_mode()
        assert any("legacy-always-awaitable" in r.getMessage() for r in caplog.records)

    def test_instrumentations_receive_provider(self, handles):
        """Test that instrumentations get the tracer provider."""
        instrumentor = FakeInstrumentor()
        handle = init(handles, instrumentations=[instrumentor])
        assert instrumentor.provider is handle.tracer_provider
        assert get_instrumentation_handle() is handle


class TestShutdown:
    """Tests for shutdown_instrumentation."""

    def test_uninstruments_and_clears_current_handle(self):
        """Test shutting down the current handle."""
        instrumentor = FakeInstrumentor()
        init_instrumentation("svc", set_global=False, instrumentations=[instrumentor])
        shutdown_instrumentation()
        assert instrumentor.uninstrumented
        assert get_instrumentation_handle() is None

    def test_failures_are_logged(self, caplog):
        """Test that uninstrument failures are logged."""
        handle = init_instrumentation(
            "svc",
            set_global=False,
            instrumentations=[FakeInstrumentor(fail_uninstrument=True)],
        )
        shutdown_instrumentation(handle)
        assert any(
            r.levelno == logging.WARNING and "Failed to uninstrument" in r.getMessage() for r in caplog.records
        )

    def test_nothing_to_shut_down(self, monkeypatch, caplog):
        """Test shutdown without an active handle."""
        monkeypatch.setattr(instrumentation, "_current_handle", None)
        shutdown_instrumentation()
        assert any("Nothing to shut down" in r.getMessage() for r in caplog.records)
