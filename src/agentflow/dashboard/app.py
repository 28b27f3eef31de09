"""FastAPI dashboard exposing the monitoring API."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI
from fastapi.responses import HTMLResponse

from agentflow._version import __version__
from agentflow.dashboard.routes import create_routes
from agentflow.dashboard.ws import WebSocketManager, create_ws_router

_INDEX_HTML = """<!doctype html>
<html><head><title>agentflow monitor</title></head>
<body>
<h1>agentflow monitor</h1>
<p>REST: <code>/api/status</code>, <code>/api/runs</code>, <code>/api/runs/{run_id}</code>,
<code>/api/runs/{run_id}/trace</code>. Live events: <code>/ws</code>.</p>
</body></html>
"""


def create_dashboard_app(monitor: Any = None, event_bus: Any = None) -> FastAPI:
    app = FastAPI(
        title="agentflow monitor",
        description="Workflow execution monitoring",
        version=__version__,
    )

    ws_manager = WebSocketManager()

    if event_bus is not None:
        event_bus.subscribe(ws_manager.send_event)

    app.include_router(create_routes(monitor=monitor))
    app.include_router(create_ws_router(ws_manager, monitor=monitor))

    @app.get("/", response_class=HTMLResponse)
    async def root():
        return HTMLResponse(content=_INDEX_HTML)

    app.state.ws_manager = ws_manager
    return app
