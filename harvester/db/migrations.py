"""Database migration dispatcher.

Routes schema application to the SQLite or Postgres implementation. Any
failure is raised as a fatal ``SchemaError``.
"""
from __future__ import annotations

import logging
from typing import Any

import aiosqlite
try:
    import asyncpg
except ImportError:
    asyncpg = None

from harvester.db import postgres_migrations, sqlite_migrations
from harvester.errors import SchemaError

logger = logging.getLogger("harvester.db")


async def run_migrations(db: Any) -> None:
    """Ensure every harvest table exists on the provided connection."""
    if isinstance(db, aiosqlite.Connection):
        logger.info("Running SQLite migrations...")
        runner = sqlite_migrations.run_migrations
    elif asyncpg and isinstance(db, (asyncpg.Pool, asyncpg.Connection)):
        logger.info("Running Postgres migrations...")
        runner = postgres_migrations.run_migrations
    else:
        raise SchemaError(
            f"Unknown database connection type: {type(db).__name__}",
            operation="ensure_schema",
        )

    try:
        await runner(db)
    except Exception as exc:
        raise SchemaError("Schema application failed", operation="ensure_schema") from exc


ensure_schema = run_migrations
