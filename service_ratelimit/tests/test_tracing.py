"""
Unit tests for trace context propagation.
"""

import pytest
from opentelemetry import propagate, trace

from shared.tracing import configure_propagation

TRACE_ID = "463ac35c9f6413ad48485a3953bb6124"
SPAN_ID = "a2fb4a1d1a96d312"


@pytest.fixture
def propagation():
    previous = propagate.get_global_textmap()
    configure_propagation()
    yield
    propagate.set_global_textmap(previous)


class TestConfigurePropagation:
    """Test cases for configure_propagation."""

    def test_handles_w3c_and_b3_headers(self, propagation):
        fields = propagate.get_global_textmap().fields
        assert "traceparent" in fields
        assert "x-b3-traceid" in fields
        assert "x-b3-spanid" in fields

    def test_extracts_b3_multi_header_context(self, propagation):
        context = propagate.extract({
            "x-b3-traceid": TRACE_ID,
            "x-b3-spanid": SPAN_ID,
            "x-b3-sampled": "1",
        })

        span_context = trace.get_current_span(context).get_span_context()
        assert span_context.trace_id == int(TRACE_ID, 16)
        assert span_context.span_id == int(SPAN_ID, 16)

    def test_extracts_w3c_context(self, propagation):
        context = propagate.extract({"traceparent": f"00-{TRACE_ID}-{SPAN_ID}-01"})

        span_context = trace.get_current_span(context).get_span_context()
        assert span_context.trace_id == int(TRACE_ID, 16)
