"""
Unit tests for tracing.

Tests for:
- Tracer Protocol (runtime_checkable)
- NullTracer, OpenTelemetryTracer and RecordingTracer
- create_tracer() factory function
"""

import pytest

from ordersaga.observability import (
    NullTracer,
    OpenTelemetryTracer,
    RecordingTracer,
    Tracer,
    create_tracer,
)


class TestTracerProtocol:
    @pytest.mark.parametrize(
        "tracer", [NullTracer(), RecordingTracer(), OpenTelemetryTracer(__name__)]
    )
    def test_implementations_match_protocol(self, tracer):
        assert isinstance(tracer, Tracer)


class TestNullTracer:
    def test_span_yields_none(self):
        with NullTracer().span("ordersaga.test", {"key": "value"}) as span:
            assert span is None


class TestOpenTelemetryTracer:
    def test_span_without_sdk_is_usable(self):
        """Without a configured SDK the API hands out non-recording spans."""
        tracer = OpenTelemetryTracer(__name__)
        with tracer.span("ordersaga.test", {"key": "value"}) as span:
            span.set_attribute("other", 1)


class TestRecordingTracer:
    def test_records_spans(self):
        tracer = RecordingTracer()
        with tracer.span("first", {"a": 1}):
            pass
        with tracer.span("second"):
            pass

        assert tracer.spans == [("first", {"a": 1}), ("second", {})]
        assert tracer.span_names == ["first", "second"]
        assert tracer.attributes("first") == {"a": 1}

    def test_unknown_span(self):
        with pytest.raises(KeyError):
            RecordingTracer().attributes("missing")


class TestCreateTracer:
    def test_enabled(self):
        assert isinstance(create_tracer(__name__, enable_tracing=True), OpenTelemetryTracer)

    def test_disabled(self):
        assert isinstance(create_tracer(__name__, enable_tracing=False), NullTracer)
