"""PostgreSQL implementation of the harvest history and reference table access."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

import asyncpg

from harvester.db.schema import SYNC_TIME_COLUMN, ColumnType, TableDefinition


def _encode(column_type: ColumnType, value: Any) -> Any:
    if value is None:
        return None
    if column_type == ColumnType.TIMESTAMP and isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    if column_type == ColumnType.BOOLEAN:
        return bool(value)
    return value


class PostgresHistoryRepository:
    """History rows on PostgreSQL.

    When given a pool, ``begin`` acquires a dedicated connection and holds it
    until ``commit`` or ``rollback`` so that every statement of a run shares
    one transaction.
    """

    def __init__(self, db: Any):
        self.db = db
        self._conn: Any = None
        self._tx: Any = None
        self._owns_conn = False

    @property
    def _active(self) -> Any:
        return self._conn if self._conn is not None else self.db

    async def begin(self) -> None:
        if isinstance(self.db, asyncpg.Pool):
            self._conn = await self.db.acquire()
            self._owns_conn = True
        else:
            self._conn = self.db
            self._owns_conn = False
        self._tx = self._conn.transaction()
        await self._tx.start()

    async def _release(self) -> None:
        if self._owns_conn and self._conn is not None:
            await self.db.release(self._conn)
        self._conn = None
        self._tx = None
        self._owns_conn = False

    async def commit(self) -> None:
        try:
            if self._tx is not None:
                await self._tx.commit()
        finally:
            await self._release()

    async def rollback(self) -> None:
        try:
            if self._tx is not None:
                await self._tx.rollback()
        finally:
            await self._release()

    async def get_latest_row(
        self,
        table: TableDefinition,
        key: dict[str, Any],
        order_column: str = SYNC_TIME_COLUMN,
    ) -> Optional[dict[str, Any]]:
        names = list(key)
        where = " AND ".join(f"{name} = ${idx}" for idx, name in enumerate(names, start=1))
        record = await self._active.fetchrow(
            f"SELECT * FROM {table.name} WHERE {where} ORDER BY {order_column} DESC LIMIT 1",
            *[_encode(table.column_types[name], key[name]) for name in names],
        )
        if record is None:
            return None
        data = dict(record)
        return {name: data.get(name) for name in table.column_names if name in data}

    async def insert_row(self, table: TableDefinition, row: dict[str, Any]) -> None:
        columns = [name for name in table.column_names if name in row]
        unknown = [name for name in row if name not in table.column_types]
        if unknown:
            raise KeyError(f"Columns not defined for {table.name}: {unknown}")
        placeholders = ", ".join(f"${idx}" for idx in range(1, len(columns) + 1))
        await self._active.execute(
            f"INSERT INTO {table.name} ({', '.join(columns)}) VALUES ({placeholders})",
            *[_encode(table.column_types[name], row[name]) for name in columns],
        )

    async def insert_reference_row(self, table: TableDefinition, row: dict[str, Any]) -> bool:
        columns = [name for name in table.column_names if name in row]
        unknown = [name for name in row if name not in table.column_types]
        if unknown:
            raise KeyError(f"Columns not defined for {table.name}: {unknown}")
        placeholders = ", ".join(f"${idx}" for idx in range(1, len(columns) + 1))
        status = await self._active.execute(
            f"""INSERT INTO {table.name} ({', '.join(columns)}) VALUES ({placeholders})
                ON CONFLICT ({', '.join(table.key_columns)}) DO NOTHING""",
            *[_encode(table.column_types[name], row[name]) for name in columns],
        )
        # asyncpg returns the command tag, e.g. "INSERT 0 1"
        return str(status).rsplit(" ", 1)[-1] == "1"

    async def count_rows(self, table: TableDefinition) -> int:
        return int(await self._active.fetchval(f"SELECT COUNT(*) FROM {table.name}") or 0)
