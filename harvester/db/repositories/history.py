"""SQLite implementation of the harvest history and reference table access."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import aiosqlite

from harvester.db.schema import SYNC_TIME_COLUMN, ColumnType, TableDefinition

logger = logging.getLogger("harvester.db")


def _encode(column_type: ColumnType, value: Any) -> Any:
    if value is None:
        return None
    if column_type == ColumnType.TIMESTAMP and isinstance(value, datetime):
        dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc).isoformat()
    if column_type == ColumnType.BOOLEAN:
        return 1 if value else 0
    return value


def _decode(column_type: ColumnType, value: Any) -> Any:
    if value is None:
        return None
    if column_type == ColumnType.TIMESTAMP and isinstance(value, str):
        return datetime.fromisoformat(value)
    if column_type == ColumnType.BOOLEAN:
        return bool(value)
    return value


def _column_list(table: TableDefinition, row: dict[str, Any]) -> list[str]:
    unknown = [name for name in row if name not in table.column_types]
    if unknown:
        raise KeyError(f"Columns not defined for {table.name}: {unknown}")
    return [name for name in table.column_names if name in row]


class SqliteHistoryRepository:
    """Append-only history rows plus insert-or-ignore reference rows.

    Transaction boundaries are explicit: ``begin`` issues BEGIN and nothing
    is committed until ``commit``.
    """

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def begin(self) -> None:
        await self.db.execute("BEGIN")

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()

    async def get_latest_row(
        self,
        table: TableDefinition,
        key: dict[str, Any],
        order_column: str = SYNC_TIME_COLUMN,
    ) -> Optional[dict[str, Any]]:
        where = " AND ".join(f"{name} = ?" for name in key)
        params = tuple(_encode(table.column_types[name], value) for name, value in key.items())
        async with self.db.execute(
            f"SELECT * FROM {table.name} WHERE {where} ORDER BY {order_column} DESC LIMIT 1",
            params,
        ) as cur:
            row = await cur.fetchone()
            names = [description[0] for description in cur.description]
        if row is None:
            return None
        data = dict(zip(names, row))
        return {
            name: _decode(table.column_types[name], data.get(name))
            for name in table.column_names
            if name in data
        }

    async def insert_row(self, table: TableDefinition, row: dict[str, Any]) -> None:
        columns = _column_list(table, row)
        placeholders = ", ".join("?" for _ in columns)
        await self.db.execute(
            f"INSERT INTO {table.name} ({', '.join(columns)}) VALUES ({placeholders})",
            tuple(_encode(table.column_types[name], row[name]) for name in columns),
        )

    async def insert_reference_row(self, table: TableDefinition, row: dict[str, Any]) -> bool:
        """Insert unless the key already exists. Returns True when a row was added."""
        columns = _column_list(table, row)
        placeholders = ", ".join("?" for _ in columns)
        async with self.db.execute(
            f"""INSERT INTO {table.name} ({', '.join(columns)}) VALUES ({placeholders})
                ON CONFLICT({', '.join(table.key_columns)}) DO NOTHING""",
            tuple(_encode(table.column_types[name], row[name]) for name in columns),
        ) as cur:
            return (cur.rowcount or 0) > 0

    async def count_rows(self, table: TableDefinition) -> int:
        async with self.db.execute(f"SELECT COUNT(*) FROM {table.name}") as cur:
            row = await cur.fetchone()
        return int(row[0]) if row else 0
