"""SQLite schema creation and versioning for the harvest tables.

CREATE statements are generated from the table catalog and use IF NOT EXISTS
for idempotent runs. Columns added to the catalog after a database was
created are appended with ALTER TABLE.
"""
from __future__ import annotations

import logging

import aiosqlite

from harvester.db.schema import ALL_TABLES, SYNC_TIME_COLUMN, ColumnType, TableDefinition

logger = logging.getLogger("harvester.db")

SCHEMA_VERSION = 1

_SQLITE_TYPES = {
    ColumnType.TEXT: "TEXT",
    ColumnType.INTEGER: "INTEGER",
    ColumnType.BOOLEAN: "INTEGER",
    ColumnType.TIMESTAMP: "TEXT",
}

_SCHEMA_VERSION_TABLE = """
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied   TEXT NOT NULL DEFAULT (datetime('now'))
);
"""


def table_ddl(table: TableDefinition) -> list[str]:
    columns = []
    for column in table.columns:
        not_null = " NOT NULL" if column.name in table.key_columns else ""
        columns.append(f"    {column.name:<32} {_SQLITE_TYPES[column.type]}{not_null}")
    if not table.history:
        columns.append(f"    PRIMARY KEY ({', '.join(table.key_columns)})")
    body = ",\n".join(columns)
    statements = [f"CREATE TABLE IF NOT EXISTS {table.name} (\n{body}\n)"]
    if table.history:
        key_list = ", ".join([*table.key_columns, f"{SYNC_TIME_COLUMN} DESC"])
        statements.append(
            f"CREATE INDEX IF NOT EXISTS idx_{table.name}_latest ON {table.name}({key_list})"
        )
    return statements


async def _existing_columns(db: aiosqlite.Connection, table: str) -> set[str]:
    async with db.execute(f"PRAGMA table_info({table})") as cur:
        rows = await cur.fetchall()
    return {row[1] for row in rows}


async def _ensure_columns(db: aiosqlite.Connection, table: TableDefinition) -> None:
    existing = await _existing_columns(db, table.name)
    for column in table.columns:
        if column.name in existing:
            continue
        logger.info("Adding column %s.%s", table.name, column.name)
        await db.execute(f"ALTER TABLE {table.name} ADD COLUMN {column.name} {_SQLITE_TYPES[column.type]}")


async def _current_version(db: aiosqlite.Connection) -> int:
    async with db.execute("SELECT MAX(version) FROM schema_version") as cur:
        row = await cur.fetchone()
    return row[0] if row and row[0] else 0


async def run_migrations(db: aiosqlite.Connection) -> None:
    """Create all harvest tables. Idempotent."""
    await db.executescript(_SCHEMA_VERSION_TABLE)
    current_version = await _current_version(db)

    for table in ALL_TABLES:
        for statement in table_ddl(table):
            await db.execute(statement)
        await _ensure_columns(db, table)

    if current_version < SCHEMA_VERSION:
        await db.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
        logger.info("Migrations complete, schema version %s", SCHEMA_VERSION)
    await db.commit()
