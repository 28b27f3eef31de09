"""Push-style delivery of trace events to interested listeners."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable

from agentflow.observe.tracer import TraceEvent

_log = logging.getLogger(__name__)


class EventBus:
    """Fans each emitted event out to subscribers in subscription order.

    Plain callables are called directly; coroutine functions registered with
    :meth:`subscribe` are awaited. A subscriber that raises is logged and
    skipped so listeners can never fail a workflow.
    """

    def __init__(self):
        self._listeners: list[tuple[Callable[[TraceEvent], Any], bool]] = []

    def subscribe(self, callback: Callable[[TraceEvent], Any]):
        self._listeners.append((callback, True))

    def subscribe_sync(self, callback: Callable[[TraceEvent], None]):
        self._listeners.append((callback, False))

    def unsubscribe(self, callback: Callable):
        self._listeners = [entry for entry in self._listeners if entry[0] is not callback]

    def clear(self):
        self._listeners.clear()

    async def emit(self, event: TraceEvent):
        for callback, awaited in list(self._listeners):
            try:
                outcome = callback(event)
                if awaited and inspect.isawaitable(outcome):
                    await outcome
            except Exception as exc:
                _log.warning(
                    "Event listener %r failed on %s: %s", callback, event.event_type.value, exc
                )
