"""
Observability and event bus tests.

Run with: pytest tests/test_observability.py -v
"""

import io
import json
import logging

import pytest

from chainlet.errors import BlockNumberMismatch
from chainlet.events import (
    BlockExecuted,
    Event,
    EventBus,
    Transferred,
)
from chainlet.observability import (
    RuntimeLayer,
    configure_logging,
    get_logger,
    get_tracer,
    set_correlation_id,
    trace_id_var,
)
from chainlet.primitives import U128
from chainlet.runtime import Runtime, build_block, signed, transfer


class TestStructuredLogging:

    def test_json_lines(self):
        stream = io.StringIO()
        configure_logging(level="info", fmt="json", stream=stream)
        set_correlation_id("corr-test")

        get_logger("unit", RuntimeLayer.RUNTIME).warning(
            "something failed", error_code="InsufficientFunds", block_number=3,
        )

        (line,) = stream.getvalue().splitlines()
        record = json.loads(line)
        assert record["level"] == "warning"
        assert record["logger"] == "chainlet.runtime.unit"
        assert record["layer"] == "runtime"
        assert record["error_code"] == "InsufficientFunds"
        assert record["context"] == {"block_number": 3}
        assert record["correlation_id"] == "corr-test"

    def test_text_format(self):
        stream = io.StringIO()
        configure_logging(level="debug", fmt="text", stream=stream)
        get_logger("unit", RuntimeLayer.CLAIMS).info("hello", content="doc")
        line = stream.getvalue().strip()
        assert "INFO chainlet.claims.unit hello" in line
        assert "content=doc" in line

    def test_operation_records_duration(self):
        stream = io.StringIO()
        configure_logging(level="info", fmt="json", stream=stream)
        log = get_logger("unit", RuntimeLayer.CLI)
        log.operation("replay", duration_ms=1.5, blocks=2)
        log.operation("replay", duration_ms=0.5, success=False)

        done, failed = [json.loads(line) for line in stream.getvalue().splitlines()]
        assert done["message"] == "Operation replay completed"
        assert done["duration_ms"] == 1.5
        assert done["context"] == {"blocks": 2}
        assert failed["level"] == "warning"

    def test_level_filters(self):
        stream = io.StringIO()
        configure_logging(level="error", fmt="json", stream=stream)
        log = get_logger("unit", RuntimeLayer.RUNTIME)
        log.info("quiet")
        log.warning("quiet too")
        log.error("loud")
        assert len(stream.getvalue().splitlines()) == 1

    def test_reconfigure_replaces_handler(self):
        first, second = io.StringIO(), io.StringIO()
        configure_logging(level="info", stream=first)
        configure_logging(level="info", stream=second)
        get_logger("unit", RuntimeLayer.CLI).info("once")
        assert first.getvalue() == ""
        assert len(second.getvalue().splitlines()) == 1

    def test_unknown_level_or_format_rejected(self):
        with pytest.raises(ValueError):
            configure_logging(level="loud")
        with pytest.raises(ValueError):
            configure_logging(fmt="xml")

    def test_block_logs(self):
        stream = io.StringIO()
        configure_logging(level="info", fmt="json", stream=stream)
        rt = Runtime()
        rt.balances.set_balance("alice", 1)
        rt.execute_block(build_block(1, [signed("alice", transfer("bob", 2))]))

        records = [json.loads(line) for line in stream.getvalue().splitlines()]
        levels = [r["level"] for r in records]
        assert levels == ["warning", "info"]
        assert records[0]["context"]["extrinsic_index"] == 0
        assert records[1]["operation"] == "execute_block"
        assert records[1]["duration_ms"] >= 0
        assert records[0]["span_id"] == records[1]["span_id"] != ""


class TestTracing:

    def test_block_span_exported(self):
        spans = []
        tracer = get_tracer()
        tracer.add_exporter(spans.append)
        try:
            rt = Runtime()
            rt.execute_block(build_block(1))
            with pytest.raises(BlockNumberMismatch):
                rt.execute_block(build_block(5))
        finally:
            tracer.remove_exporter(spans.append)

        assert [s.name for s in spans] == ["execute_block", "execute_block"]
        assert spans[0].status == "ok"
        assert spans[0].attributes["failed"] == 0
        assert spans[1].status == "error"
        assert tracer.active_spans() == []

    def test_nested_span_parent(self):
        tracer = get_tracer()
        with tracer.span("outer", RuntimeLayer.CLI) as outer:
            with tracer.span("inner", RuntimeLayer.RUNTIME) as inner:
                assert inner.parent_span_id == outer.span_id
                assert inner.trace_id == outer.trace_id

    def test_trace_closed_with_outermost_span(self):
        tracer = get_tracer()
        with tracer.span("first", RuntimeLayer.RUNTIME) as first:
            assert trace_id_var.get() == first.trace_id
        assert trace_id_var.get() == ""
        with tracer.span("second", RuntimeLayer.RUNTIME) as second:
            pass
        assert second.trace_id != first.trace_id

    def test_blocks_get_separate_traces(self):
        spans = []
        tracer = get_tracer()
        tracer.add_exporter(spans.append)
        try:
            rt = Runtime()
            rt.execute_block(build_block(1))
            rt.execute_block(build_block(2))
        finally:
            tracer.remove_exporter(spans.append)
        assert spans[0].trace_id != spans[1].trace_id


class TestEventBus:

    def test_type_filtering(self):
        bus = EventBus()
        seen = []
        bus.subscribe(Transferred)(seen.append)
        bus.publish(Transferred(sender="a", receiver="b", amount=U128(1)))
        bus.publish(BlockExecuted())
        assert len(seen) == 1

    def test_priority_order(self):
        bus = EventBus()
        order = []
        bus.subscribe(priority=1)(lambda e: order.append("low"))
        bus.subscribe(priority=10)(lambda e: order.append("high"))
        bus.publish(Event())
        assert order == ["high", "low"]

    def test_filter_func(self):
        bus = EventBus()
        seen = []
        bus.subscribe(Transferred, filter_func=lambda e: e.sender == "alice")(seen.append)
        bus.publish(Transferred(sender="bob"))
        bus.publish(Transferred(sender="alice"))
        assert [e.sender for e in seen] == ["alice"]

    def test_handler_exception_isolated(self, caplog):
        errors = []
        bus = EventBus(on_error=errors.append)
        calls = []

        @bus.subscribe(Event)
        def bad(event):
            raise RuntimeError("handler exploded")

        @bus.subscribe(Event)
        def good(event):
            calls.append(event.event_id)

        with caplog.at_level(logging.WARNING):
            bus.publish(Event())

        assert len(calls) == 1
        assert "handler exploded" in str(errors[0].cause)
        assert bus.metrics["error_count"] == 1
        assert bus.metrics["handled_count"] == 1

    def test_unsubscribe(self):
        bus = EventBus()
        seen = []
        bus.subscribe()(seen.append)
        assert bus.unsubscribe(seen.append)
        bus.publish(Event())
        assert seen == []
        assert not bus.unsubscribe(seen.append)

    def test_event_serialization(self):
        event = Transferred(sender="a", receiver="b", amount=U128(7), block_number=1, extrinsic_index=0)
        d = event.to_dict()
        assert d["event_type"] == "Transferred"
        assert d["amount"] == 7
        assert json.loads(event.to_json())["receiver"] == "b"
