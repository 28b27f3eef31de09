"""Append-only execution record with a read API for in-flight and finished runs."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from agentflow.observe.tracer import Tracer

_log = logging.getLogger(__name__)


class ExecutionMonitor:
    """
    Keeps a live handle on each WorkflowExecution so polling UIs can read
    step states while a run is in flight, plus an append-only log of step
    outcomes and the final result once it completes.

    A finished run keeps only its status snapshot and result; the execution
    and its data bag are released. ``max_runs`` bounds how many finished
    runs are retained (oldest evicted first). Starting a run under an id
    that is already known replaces the earlier record.
    """

    def __init__(self, tracer: Tracer | None = None, max_runs: int | None = None):
        self.tracer = tracer or Tracer()
        self.max_runs = max_runs
        self._live: dict[str, Any] = {}  # run_id → WorkflowExecution, in flight only
        self._finished: dict[str, dict] = {}  # run_id → final status snapshot
        self._step_log: dict[str, list[dict]] = {}
        self._results: dict[str, dict] = {}
        self._order: list[str] = []
        self._listeners: list[Callable[[Any], None]] = []
        self._lock = threading.Lock()

    def record_workflow_start(self, execution: Any):
        run_id = execution.run_id
        with self._lock:
            if run_id in self._order:
                _log.warning("Run id %s reused, replacing its previous record", run_id)
                self._forget(run_id)
            self._order.append(run_id)
            self._live[run_id] = execution
            self._step_log[run_id] = []
        _log.debug("Monitoring run %s (%s)", run_id, execution.definition.name)

    def record_step_execution(self, step: Any, outcome: Any):
        entry = outcome.to_dict()
        entry["action"] = step.action
        with self._lock:
            self._step_log.setdefault(outcome.run_id, []).append(entry)

    def record_workflow_completion(self, execution: Any, result: Any):
        snapshot = execution.status_snapshot()
        with self._lock:
            self._results[execution.run_id] = result.to_dict()
            self._finished[execution.run_id] = snapshot
            self._live.pop(execution.run_id, None)
            self._evict()
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(result)
            except Exception as exc:
                _log.warning("Completion listener %r failed for run %s: %s", listener, execution.run_id, exc)

    def subscribe(self, listener: Callable[[Any], None]):
        """Call ``listener(result)`` whenever a run completes."""
        with self._lock:
            self._listeners.append(listener)

    def get_status(self, run_id: str) -> dict:
        with self._lock:
            execution = self._live.get(run_id)
            finished = self._finished.get(run_id)
            result = self._results.get(run_id)
            steps = list(self._step_log.get(run_id, []))
        if execution is not None:
            status = execution.status_snapshot()
        elif finished is not None:
            status = dict(finished)
        else:
            raise KeyError(f"Unknown run '{run_id}'")
        status["step_log"] = steps
        status["result"] = result
        return status

    def get_result(self, run_id: str) -> dict | None:
        with self._lock:
            self._require(run_id)
            return self._results.get(run_id)

    def get_trace(self, run_id: str) -> list[dict]:
        with self._lock:
            started_at = self._require(run_id)
        return [
            event.to_dict()
            for event in self.tracer.select(run_id)
            if event.timestamp >= started_at
        ]

    def list_runs(self) -> list[dict]:
        with self._lock:
            views = []
            for rid in self._order:
                execution = self._live.get(rid)
                if execution is not None:
                    views.append((rid, execution.definition.name, execution.status.value,
                                  execution.started_at, execution.ended_at))
                else:
                    snap = self._finished[rid]
                    views.append((rid, snap["workflow"], snap["status"],
                                  snap["started_at"], snap["ended_at"]))
        return [
            {
                "run_id": rid,
                "workflow": workflow,
                "status": status,
                "started_at": started_at,
                "ended_at": ended_at,
            }
            for rid, workflow, status, started_at, ended_at in views
        ]

    def active_runs(self) -> list[str]:
        with self._lock:
            return [rid for rid in self._order if rid in self._live]

    def _require(self, run_id: str) -> float:
        # caller holds the lock; returns the run's start time
        if run_id in self._live:
            return self._live[run_id].started_at
        if run_id in self._finished:
            return self._finished[run_id]["started_at"]
        raise KeyError(f"Unknown run '{run_id}'")

    def _forget(self, run_id: str):
        self._order.remove(run_id)
        self._live.pop(run_id, None)
        self._finished.pop(run_id, None)
        self._step_log.pop(run_id, None)
        self._results.pop(run_id, None)

    def _evict(self):
        if self.max_runs is None:
            return
        finished = [rid for rid in self._order if rid in self._finished]
        for rid in finished[: max(len(finished) - self.max_runs, 0)]:
            self._forget(rid)
