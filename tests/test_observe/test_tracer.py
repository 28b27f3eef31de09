"""Tests for the Tracer, trace export and logging setup."""

from __future__ import annotations

import json
import logging

from agentflow.observe.export import export_trace_dict, export_trace_json
from agentflow.observe.logging import JsonFormatter, configure_logging
from agentflow.observe.tracer import EventType, TraceEvent, Tracer


class TestTraceEvent:
    def test_to_dict(self):
        event = TraceEvent(event_type=EventType.STEP_START, run_id="r", step_id="s1", agent_name="math")
        d = event.to_dict()
        assert d["event_type"] == "step_start"
        assert d["run_id"] == "r"
        assert d["step_id"] == "s1"


class TestTracer:
    def test_record_and_filter_by_run(self, tracer):
        tracer.record(TraceEvent(event_type=EventType.WORKFLOW_START, run_id="r1"))
        tracer.record(TraceEvent(event_type=EventType.WORKFLOW_START, run_id="r2"))
        assert len(tracer.get_timeline()) == 2
        assert [e["run_id"] for e in tracer.get_timeline("r2")] == ["r2"]

    def test_step_summary(self, tracer):
        tracer.record(TraceEvent(event_type=EventType.RETRY, run_id="r", step_id="a", agent_name="x"))
        tracer.record(
            TraceEvent(
                event_type=EventType.STEP_END, run_id="r", step_id="a", agent_name="x",
                data={"state": "succeeded"}, duration_ms=12.0,
            )
        )
        tracer.record(TraceEvent(event_type=EventType.STEP_SKIPPED, run_id="r", step_id="b", agent_name="y"))
        summary = tracer.get_step_summary("r")
        assert summary["a"] == {"agent": "x", "retries": 1, "duration_ms": 12.0, "state": "succeeded"}
        assert summary["b"]["state"] == "skipped"

    def test_elapsed(self, tracer):
        assert tracer.elapsed() == 0.0
        tracer.start()
        assert tracer.elapsed() >= 0.0


class TestExport:
    def test_export_json(self, tracer, tmp_path):
        tracer.start()
        tracer.record(TraceEvent(event_type=EventType.STEP_START, run_id="r", step_id="a"))
        path = tmp_path / "nested" / "trace.json"
        export_trace_json(tracer, path, run_id="r")
        data = json.loads(path.read_text())
        assert len(data["events"]) == 1
        assert "a" in data["steps"]

    def test_export_dict(self, tracer):
        tracer.record(TraceEvent(event_type=EventType.WORKFLOW_END, run_id="r"))
        data = export_trace_dict(tracer)
        assert data["events"][0]["event_type"] == "workflow_end"


class TestLogging:
    def test_json_formatter(self):
        record = logging.LogRecord("agentflow.core", logging.WARNING, __file__, 1, "step %s failed", ("a",), None)
        payload = json.loads(JsonFormatter().format(record))
        assert payload["level"] == "warning"
        assert payload["message"] == "step a failed"
        assert payload["logger"] == "agentflow.core"

    def test_configure_replaces_handlers(self):
        logger = configure_logging("debug", "json")
        logger = configure_logging("warning", "json")
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JsonFormatter)
        assert logger.level == logging.WARNING

    def test_configure_pretty(self):
        from rich.logging import RichHandler

        logger = configure_logging("info", "pretty")
        assert isinstance(logger.handlers[0], RichHandler)
