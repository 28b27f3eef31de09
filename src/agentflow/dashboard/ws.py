"""WebSocket fan-out of trace events and on-demand run status."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from agentflow.observe.tracer import TraceEvent

_log = logging.getLogger(__name__)


class WebSocketManager:
    """Tracks connected dashboard clients and pushes every trace event to them.

    Sockets belong to the server's event loop. Events emitted from another
    loop (an engine running beside a threaded server) are handed over with
    ``run_coroutine_threadsafe``.
    """

    def __init__(self):
        self.connections: set[WebSocket] = set()
        self._loop: asyncio.AbstractEventLoop | None = None

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self._loop = asyncio.get_running_loop()
        self.connections.add(websocket)

    def disconnect(self, websocket: WebSocket):
        self.connections.discard(websocket)

    async def broadcast(self, data: dict):
        message = json.dumps(data, default=str)
        clients = list(self.connections)
        results = await asyncio.gather(
            *(client.send_text(message) for client in clients), return_exceptions=True
        )
        for client, outcome in zip(clients, results):
            if isinstance(outcome, Exception):
                _log.debug("Dropping websocket client after send failure: %s", outcome)
                self.disconnect(client)

    async def send_event(self, event: TraceEvent):
        if not self.connections:
            return
        payload = {"type": "event", **event.to_dict()}
        server_loop = self._loop
        if server_loop is None or server_loop is asyncio.get_running_loop():
            await self.broadcast(payload)
            return
        if server_loop.is_closed():
            return
        future = asyncio.run_coroutine_threadsafe(self.broadcast(payload), server_loop)
        future.add_done_callback(_log_handoff_failure)


def _log_handoff_failure(future):
    if not future.cancelled() and future.exception() is not None:
        _log.warning("Websocket broadcast failed: %s", future.exception())


def handle_message(text: str, monitor: Any = None) -> dict | None:
    """Answer one client message. Only ``{"type": "status", "run_id": ...}`` gets a reply."""
    try:
        message = json.loads(text)
    except json.JSONDecodeError:
        return {"type": "error", "detail": "invalid JSON"}
    if not isinstance(message, dict) or message.get("type") != "status":
        return None
    if monitor is None:
        return {"type": "error", "detail": "Execution monitor not available"}
    run_id = message.get("run_id", "")
    try:
        return {"type": "status", "data": monitor.get_status(run_id)}
    except KeyError:
        return {"type": "error", "detail": f"Unknown run '{run_id}'"}


def create_ws_router(ws_manager: WebSocketManager, monitor: Any = None) -> APIRouter:
    router = APIRouter()

    @router.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await ws_manager.connect(websocket)
        try:
            while True:
                reply = handle_message(await websocket.receive_text(), monitor)
                if reply is not None:
                    await websocket.send_text(json.dumps(reply, default=str))
        except WebSocketDisconnect:
            ws_manager.disconnect(websocket)

    return router
