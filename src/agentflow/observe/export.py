"""Trace export utilities."""

from __future__ import annotations

import json
from pathlib import Path

from agentflow.observe.tracer import Tracer


def export_trace_dict(tracer: Tracer, run_id: str | None = None) -> dict:
    return {
        "start_time": tracer.start_time,
        "duration": tracer.elapsed(),
        "events": tracer.get_timeline(run_id),
        "steps": tracer.get_step_summary(run_id),
    }


def export_trace_json(tracer: Tracer, path: str | Path, run_id: str | None = None) -> Path:
    """Write the trace document to ``path``, creating parent directories."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(export_trace_dict(tracer, run_id), indent=2, default=str))
    return target
