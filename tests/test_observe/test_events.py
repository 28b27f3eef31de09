"""Tests for the EventBus."""

from __future__ import annotations

import pytest
from unittest.mock import AsyncMock, MagicMock

from agentflow.observe.tracer import EventType, TraceEvent


def _event():
    return TraceEvent(event_type=EventType.STEP_START, step_id="a")


class TestEventBus:
    @pytest.mark.asyncio
    async def test_sync_and_async_subscribers(self, event_bus):
        sync_cb = MagicMock()
        async_cb = AsyncMock()
        event_bus.subscribe_sync(sync_cb)
        event_bus.subscribe(async_cb)
        event = _event()
        await event_bus.emit(event)
        sync_cb.assert_called_once_with(event)
        async_cb.assert_awaited_once_with(event)

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_stop_others(self, event_bus):
        good = MagicMock()
        event_bus.subscribe_sync(MagicMock(side_effect=RuntimeError("bad")))
        event_bus.subscribe_sync(good)
        await event_bus.emit(_event())
        good.assert_called_once()

    @pytest.mark.asyncio
    async def test_unsubscribe_and_clear(self, event_bus):
        cb = MagicMock()
        event_bus.subscribe_sync(cb)
        event_bus.unsubscribe(cb)
        await event_bus.emit(_event())
        cb.assert_not_called()

        async_cb = AsyncMock()
        event_bus.subscribe(async_cb)
        event_bus.clear()
        await event_bus.emit(_event())
        async_cb.assert_not_called()
