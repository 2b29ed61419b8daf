"""Harvest refresh + observability API."""
from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request
from pydantic import BaseModel

from harvester.errors import HarvestError

logger = logging.getLogger("harvester.api")

harvest_router = APIRouter(prefix="/api/harvest", tags=["harvest"])


class RefreshRequest(BaseModel):
    background: bool = True
    trigger: str = "api"


def _get_harvest_engine(request: Request):
    engine = getattr(request.app.state, "harvest_engine", None)
    if not engine:
        raise HTTPException(status_code=503, detail="Harvest engine not initialized")
    return engine


async def _run_background_refresh(engine, operation_id: str, trigger: str) -> None:
    try:
        await engine.refresh(operation_id, trigger)
    except HarvestError:
        # Already recorded on the operation and logged by the engine.
        logger.debug("Background refresh %s failed", operation_id)


@harvest_router.get("/status")
async def get_harvest_status(request: Request):
    """Return engine status, including live and recent refresh operations."""
    engine = _get_harvest_engine(request)
    observability = await engine.get_observability_snapshot()
    return {
        "status": "active",
        "harvest_engine": "ready",
        "lastStats": getattr(engine, "last_stats", {}),
        "operations": observability,
    }


@harvest_router.get("/operations")
async def list_harvest_operations(request: Request, limit: int = Query(20, ge=1, le=200)):
    """List recent refresh operations."""
    engine = _get_harvest_engine(request)
    operations = await engine.list_operations(limit=limit)
    return {"status": "ok", "count": len(operations), "items": operations}


@harvest_router.get("/operations/{operation_id}")
async def get_harvest_operation(request: Request, operation_id: str):
    """Get one refresh operation by ID."""
    engine = _get_harvest_engine(request)
    operation = await engine.get_operation(operation_id)
    if not operation:
        raise HTTPException(status_code=404, detail=f"Operation {operation_id} not found")
    return operation


@harvest_router.post("/refresh")
async def trigger_refresh(request: Request, background_tasks: BackgroundTasks, body: RefreshRequest):
    """Trigger a refresh run with operation tracking."""
    engine = _get_harvest_engine(request)

    if body.background:
        operation_id = await engine.start_operation("refresh", trigger=body.trigger)
        background_tasks.add_task(_run_background_refresh, engine, operation_id, body.trigger)
        return {
            "status": "ok",
            "mode": "background",
            "message": "Refresh triggered in background",
            "operationId": operation_id,
        }

    try:
        stats = await engine.refresh(None, body.trigger)
    except HarvestError as exc:
        raise HTTPException(status_code=500, detail=f"Refresh failed: {exc}") from exc
    operation_id = str(stats.get("operation_id") or "")
    operation = await engine.get_operation(operation_id) if operation_id else None
    return {
        "status": "ok",
        "mode": "foreground",
        "operationId": operation_id,
        "stats": stats,
        "operation": operation,
    }
