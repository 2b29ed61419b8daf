"""Repository factory to abstract DB backend (SQLite vs Postgres)."""
from __future__ import annotations

from typing import Any
import aiosqlite

from harvester.db.repositories.history import SqliteHistoryRepository


def get_history_repository(db: Any):
    if isinstance(db, aiosqlite.Connection):
        return SqliteHistoryRepository(db)
    from harvester.db.repositories.postgres.history import PostgresHistoryRepository
    return PostgresHistoryRepository(db)
