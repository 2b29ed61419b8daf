"""PostgreSQL schema creation for the harvest tables."""
from __future__ import annotations

import logging
from typing import Any

from harvester.db.schema import ALL_TABLES, SYNC_TIME_COLUMN, ColumnType, TableDefinition

logger = logging.getLogger("harvester.db")

SCHEMA_VERSION = 1

_POSTGRES_TYPES = {
    ColumnType.TEXT: "TEXT",
    ColumnType.INTEGER: "BIGINT",
    ColumnType.BOOLEAN: "BOOLEAN",
    ColumnType.TIMESTAMP: "TIMESTAMPTZ",
}


def table_ddl(table: TableDefinition) -> list[str]:
    columns = []
    for column in table.columns:
        not_null = " NOT NULL" if column.name in table.key_columns else ""
        columns.append(f"    {column.name} {_POSTGRES_TYPES[column.type]}{not_null}")
    if not table.history:
        columns.append(f"    PRIMARY KEY ({', '.join(table.key_columns)})")
    body = ",\n".join(columns)
    statements = [f"CREATE TABLE IF NOT EXISTS {table.name} (\n{body}\n)"]
    for column in table.columns:
        statements.append(
            f"ALTER TABLE {table.name} ADD COLUMN IF NOT EXISTS {column.name} {_POSTGRES_TYPES[column.type]}"
        )
    if table.history:
        key_list = ", ".join([*table.key_columns, f"{SYNC_TIME_COLUMN} DESC"])
        statements.append(
            f"CREATE INDEX IF NOT EXISTS idx_{table.name}_latest ON {table.name}({key_list})"
        )
    return statements


async def run_migrations(db: Any) -> None:
    """Create all harvest tables. Idempotent. Accepts an asyncpg Pool or Connection."""
    async def _apply(conn: Any) -> None:
        async with conn.transaction():
            await conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER NOT NULL,
                    applied TIMESTAMPTZ NOT NULL DEFAULT now()
                )
                """
            )
            for table in ALL_TABLES:
                for statement in table_ddl(table):
                    await conn.execute(statement)
            current_version = await conn.fetchval("SELECT MAX(version) FROM schema_version") or 0
            if current_version < SCHEMA_VERSION:
                await conn.execute("INSERT INTO schema_version (version) VALUES ($1)", SCHEMA_VERSION)
                logger.info("Postgres migrations complete, schema version %s", SCHEMA_VERSION)

    if hasattr(db, "acquire"):
        async with db.acquire() as conn:
            await _apply(conn)
    else:
        await _apply(db)
