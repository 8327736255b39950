"""Tests for span resolution and current-span helpers."""

from opentelemetry import trace
from opentelemetry.trace import StatusCode

from telemetry_decorators.tracing.spans import (
    SAMPLING_KEEP_ATTRIBUTE,
    SpanHandle,
    StartMode,
    add_event,
    convert_attribute_value,
    get_active_span,
    record_exception,
    resolve_span,
    set_attribute,
    set_attributes,
    set_status,
)


class TestGetActiveSpan:
    def test_none_without_span(self):
        """Test that there is no active span by default."""
        assert get_active_span() is None

    def test_returns_current_span(self, tracer):
        """Test returning the current span."""
        with tracer.start_as_current_span("outer") as outer:
            assert get_active_span() is outer


class TestResolveSpan:
    """Tests for the four start modes."""

    def test_reuse_returns_active_span(self, tracer):
        """Test that reuse returns the active span."""
        with tracer.start_as_current_span("outer") as outer:
            handle = resolve_span("inner", start_mode=StartMode.REUSE)
            assert handle.span is outer
            assert handle.owns_lifecycle is False

    def test_reuse_without_active_span_starts_root(self, span_exporter):
        """Test that reuse starts a root span without an active span."""
        handle = resolve_span("lonely")
        assert handle.owns_lifecycle is True
        handle.end()
        (span,) = span_exporter.get_finished_spans()
        assert span.parent is None

    def test_create_child(self, tracer, span_exporter, finished_span):
        """Test creating a child span."""
        with tracer.start_as_current_span("outer") as outer:
            handle = resolve_span("child", start_mode="create_child")
            handle.end()
        child = finished_span("child")
        assert child.parent.span_id == outer.get_span_context().span_id
        assert child.context.trace_id == outer.get_span_context().trace_id

    def test_new_trace_ignores_active_span(self, tracer, finished_span):
        """Test that a new trace ignores the active span."""
        with tracer.start_as_current_span("outer") as outer:
            resolve_span("fresh", start_mode=StartMode.NEW_TRACE).end()
        fresh = finished_span("fresh")
        assert fresh.parent is None
        assert fresh.context.trace_id != outer.get_span_context().trace_id
        assert len(fresh.links) == 0

    def test_new_trace_with_link(self, tracer, finished_span):
        """Test linking a new trace to the active span."""
        with tracer.start_as_current_span("outer") as outer:
            resolve_span("linked", start_mode=StartMode.NEW_TRACE_WITH_LINK).end()
        linked = finished_span("linked")
        assert linked.parent is None
        assert linked.context.trace_id != outer.get_span_context().trace_id
        assert len(linked.links) == 1
        assert linked.links[0].context.span_id == outer.get_span_context().span_id

    def test_new_trace_with_link_without_active_span(self, finished_span):
        """Test a linked new trace without an active span."""
        resolve_span("unlinked", start_mode=StartMode.NEW_TRACE_WITH_LINK).end()
        assert len(finished_span("unlinked").links) == 0

    def test_sampling_attribute_defaults_to_false(self, finished_span):
        """Test the default sampling attribute."""
        resolve_span("sampled", {"a": 1}).end()
        span = finished_span("sampled")
        assert span.attributes[SAMPLING_KEEP_ATTRIBUTE] is False
        assert span.attributes["a"] == 1

    def test_caller_sampling_attribute_wins(self, finished_span):
        """Test that a caller sampling attribute is kept."""
        resolve_span("kept", {SAMPLING_KEEP_ATTRIBUTE: True}).end()
        assert finished_span("kept").attributes[SAMPLING_KEEP_ATTRIBUTE] is True

    def test_attribute_values_are_converted(self, finished_span):
        """Test converting attribute values."""
        resolve_span("converted", {"none": None, "obj": object, "items": ["a", None, "b"]}).end()
        attributes = finished_span("converted").attributes
        assert "none" not in attributes
        assert attributes["obj"] == str(object)
        assert tuple(attributes["items"]) == ("a", "b")

    def test_tracer_name_is_instrumentation_scope(self, finished_span):
        """Test the instrumentation scope name."""
        resolve_span("scoped", tracer_name="billing.invoices").end()
        assert finished_span("scoped").instrumentation_scope.name == "billing.invoices"


class TestSpanHandle:
    def test_end_is_idempotent(self, span_exporter):
        """Test ending a span twice."""
        handle = resolve_span("twice")
        handle.end()
        handle.end()
        assert len(span_exporter.get_finished_spans()) == 1

    def test_borrowed_span_is_not_ended(self, tracer, span_exporter):
        """Test that a borrowed span is not ended."""
        with tracer.start_as_current_span("outer") as outer:
            SpanHandle(span=outer, owns_lifecycle=False).end()
            assert span_exporter.get_finished_spans() == ()


class TestCurrentSpanHelpers:
    """Tests for helpers acting on the active span."""

    def test_helpers_are_noops_without_span(self):
        """Test the span helpers without an active span."""
        set_attribute("a", 1)
        set_attributes({"a": 1})
        set_status(StatusCode.ERROR, "nope")
        record_exception(ValueError("x"))
        add_event("nothing")

    def test_helpers_write_to_active_span(self, tracer, finished_span):
        """Test the span helpers on the active span."""
        with tracer.start_as_current_span("annotated"):
            set_attribute("user.id", 42)
            set_attributes({"user.role": "admin", "ignored": None})
            add_event("cache.miss", {"key": "k"})
            record_exception(ValueError("bad input"))
            set_status(StatusCode.ERROR, "failed")

        span = finished_span("annotated")
        assert span.attributes["user.id"] == 42
        assert span.attributes["user.role"] == "admin"
        assert "ignored" not in span.attributes
        assert [event.name for event in span.events] == ["cache.miss", "exception"]
        assert span.status.status_code == StatusCode.ERROR


def test_convert_attribute_value_keeps_primitives():
    """Test that primitive values are kept."""
    assert convert_attribute_value(True) is True
    assert convert_attribute_value(1.5) == 1.5
    assert convert_attribute_value(None) is None


def test_no_current_span_after_context_exit(tracer):
    """Test that no span is current after the context exits."""
    with tracer.start_as_current_span("outer"):
        pass
    assert trace.get_current_span().get_span_context().is_valid is False
