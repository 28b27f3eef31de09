"""Monitoring REST API routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException


def create_routes(monitor: Any = None) -> APIRouter:
    router = APIRouter(prefix="/api")

    def _require_monitor():
        if monitor is None:
            raise HTTPException(status_code=503, detail="Execution monitor not available")
        return monitor

    @router.get("/status")
    async def get_status():
        if monitor is None:
            return {"status": "idle", "runs": 0, "active": []}
        runs = monitor.list_runs()
        active = monitor.active_runs()
        return {
            "status": "running" if active else "idle",
            "runs": len(runs),
            "active": active,
        }

    @router.get("/runs")
    async def list_runs():
        return {"runs": _require_monitor().list_runs()}

    @router.get("/runs/{run_id}")
    async def get_run(run_id: str):
        try:
            return _require_monitor().get_status(run_id)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Unknown run '{run_id}'")

    @router.get("/runs/{run_id}/trace")
    async def get_run_trace(run_id: str):
        try:
            return {"run_id": run_id, "events": _require_monitor().get_trace(run_id)}
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Unknown run '{run_id}'")

    @router.get("/runs/{run_id}/result")
    async def get_run_result(run_id: str):
        try:
            result = _require_monitor().get_result(run_id)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Unknown run '{run_id}'")
        if result is None:
            raise HTTPException(status_code=409, detail=f"Run '{run_id}' is still in flight")
        return result

    return router
