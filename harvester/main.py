"""Metadata harvester FastAPI service: main application entry point."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from harvester import config
from harvester.db import connection, migrations
from harvester.errors import HarvestError
from harvester.graph.memory import InMemoryGraphStore
from harvester.harvest.engine import HarvestEngine
from harvester.observability import initialize as initialize_observability, shutdown as shutdown_observability
from harvester.routers.harvest import harvest_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("harvester")


async def _refresh_quietly(engine: HarvestEngine, trigger: str) -> None:
    try:
        await engine.refresh(trigger=trigger)
    except HarvestError:
        # The engine has already logged the failure and rolled back.
        logger.warning("Scheduled refresh (%s) did not complete", trigger)


async def _refresh_loop(engine: HarvestEngine, interval_seconds: int) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        await _refresh_quietly(engine, "interval")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("Metadata harvester starting up")
    initialize_observability(app)

    # 1. Relational sink
    db = await connection.get_connection()
    await migrations.ensure_schema(db)

    # 2. Metadata graph source
    if config.GRAPH_SNAPSHOT_PATH.exists():
        store = InMemoryGraphStore.from_snapshot(config.GRAPH_SNAPSHOT_PATH)
    else:
        logger.warning("Graph snapshot %s not found; starting with an empty store", config.GRAPH_SNAPSHOT_PATH)
        store = InMemoryGraphStore()

    # 3. Harvest engine
    engine = HarvestEngine(db, store)
    app.state.harvest_engine = engine

    # 4. Background refresh tasks
    tasks: list[asyncio.Task] = []
    if config.STARTUP_REFRESH:
        tasks.append(asyncio.create_task(_refresh_quietly(engine, "startup")))
    if config.REFRESH_INTERVAL_SECONDS > 0:
        tasks.append(asyncio.create_task(_refresh_loop(engine, config.REFRESH_INTERVAL_SECONDS)))
    app.state.refresh_tasks = tasks

    yield

    logger.info("Metadata harvester shutting down")
    for task in tasks:
        task.cancel()
    for task in tasks:
        try:
            await task
        except asyncio.CancelledError:
            pass

    shutdown_observability(app)
    await connection.close_connection()


app = FastAPI(
    title="Metadata Harvester API",
    description="Incremental harvest of a metadata graph into relational history tables",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(harvest_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "db": "connected" if connection.is_connected() else "disconnected",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("harvester.main:app", host=config.HOST, port=config.PORT)
