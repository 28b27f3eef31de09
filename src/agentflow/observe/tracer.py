"""In-memory record of what the engine did, event by event."""

from __future__ import annotations

import threading
import time
from dataclasses import asdict, dataclass, field
from enum import Enum


class EventType(str, Enum):
    WORKFLOW_START = "workflow_start"
    WORKFLOW_END = "workflow_end"
    WAVE_START = "wave_start"
    WAVE_END = "wave_end"
    STEP_START = "step_start"
    STEP_END = "step_end"
    STEP_SKIPPED = "step_skipped"
    RETRY = "retry"
    ERROR = "error"


@dataclass
class TraceEvent:
    """One scheduling fact. ``data`` carries event-specific detail (wave number, state, error)."""

    event_type: EventType
    timestamp: float = field(default_factory=time.time)
    run_id: str = ""
    step_id: str = ""
    agent_name: str = ""
    data: dict = field(default_factory=dict)
    duration_ms: float = 0.0

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["event_type"] = self.event_type.value
        return payload


class Tracer:
    """Thread-safe append-only event log shared by every run of an engine."""

    def __init__(self):
        self.events: list[TraceEvent] = []
        self.start_time: float = 0.0
        self._lock = threading.Lock()

    def start(self):
        self.start_time = time.time()

    def elapsed(self) -> float:
        return time.time() - self.start_time if self.start_time else 0.0

    def record(self, event: TraceEvent):
        with self._lock:
            self.events.append(event)

    def select(self, run_id: str | None = None) -> list[TraceEvent]:
        with self._lock:
            snapshot = list(self.events)
        if run_id is None:
            return snapshot
        return [event for event in snapshot if event.run_id == run_id]

    def get_timeline(self, run_id: str | None = None) -> list[dict]:
        return [event.to_dict() for event in self.select(run_id)]

    def get_step_summary(self, run_id: str | None = None) -> dict:
        """Retry count, final state and last duration per step id."""
        summary: dict[str, dict] = {}
        for event in self.select(run_id):
            if not event.step_id:
                continue
            entry = summary.get(event.step_id)
            if entry is None:
                entry = summary[event.step_id] = {
                    "agent": event.agent_name,
                    "retries": 0,
                    "duration_ms": 0.0,
                    "state": None,
                }
            kind = event.event_type
            if kind is EventType.RETRY:
                entry["retries"] += 1
            elif kind is EventType.STEP_SKIPPED:
                entry["state"] = "skipped"
            elif kind is EventType.STEP_END:
                entry["state"] = event.data.get("state")
                entry["duration_ms"] = event.duration_ms
        return summary
