import pytest
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from prometheus_client import CollectorRegistry

from telemetry_decorators.metrics.registry import MetricsRegistry, set_metrics_registry
from telemetry_decorators.tracing.config import reset_tracing_config

# The global tracer provider can only be set once per process.
_span_exporter = InMemorySpanExporter()
_tracer_provider = TracerProvider()
_tracer_provider.add_span_processor(SimpleSpanProcessor(_span_exporter))
trace.set_tracer_provider(_tracer_provider)

TRACING_ENV_VARS = ("TRACES_MODE", "TRACES_LEGACY_ASYNC_WRAPPER", "TRACES_ENABLE_LIMITS")


@pytest.fixture
def span_exporter():
    """In-memory exporter receiving every finished span of the test."""
    _span_exporter.clear()
    yield _span_exporter
    _span_exporter.clear()


@pytest.fixture
def tracer():
    return trace.get_tracer("tests")


@pytest.fixture(autouse=True)
def _reset_tracing_config(monkeypatch):
    """Start every test in natural mode with one-time warnings re-armed."""
    for key in TRACING_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    reset_tracing_config()
    yield
    reset_tracing_config()


@pytest.fixture(autouse=True)
def metrics_registry():
    """Fresh global MetricsRegistry backed by a private CollectorRegistry."""
    registry = MetricsRegistry(CollectorRegistry())
    previous = set_metrics_registry(registry)
    yield registry
    set_metrics_registry(previous)


@pytest.fixture
def finished_span(span_exporter):
    """Return the single finished span with the given name."""

    def _get(name: str):
        spans = [s for s in span_exporter.get_finished_spans() if s.name == name]
        assert len(spans) == 1, f"expected one finished span named {name}, got {len(spans)}"
        return spans[0]

    return _get
