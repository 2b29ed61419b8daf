"""Gate-and-append writer bound to one run's sink transaction."""
from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Optional

from harvester.db.schema import SYNC_TIME_COLUMN, TableDefinition
from harvester.errors import SinkError
from harvester.harvest.gate import GateDecision, decide
from harvester.observability import record_rows

logger = logging.getLogger("harvester.writer")


class HistoryWriter:
    """Appends history rows only when the gate sees new information.

    Sink failures are raised as ``SinkError`` and never absorbed here.
    """

    def __init__(self, repository: Any):
        self.repository = repository
        self.inserted: Counter[str] = Counter()
        self.skipped: Counter[str] = Counter()
        self.reference_inserted: Counter[str] = Counter()

    async def sync_row(self, table: TableDefinition, row: Optional[dict[str, Any]]) -> GateDecision:
        if not row:
            self.skipped[table.name] += 1
            return GateDecision.SKIP
        key = {name: row.get(name) for name in table.key_columns}
        missing = [name for name, value in key.items() if value is None]
        if missing:
            raise SinkError(
                f"Row for {table.name} has no business key {missing}",
                operation="sync_row",
                identifiers={"table": table.name},
            )

        try:
            latest = await self.repository.get_latest_row(table, key, SYNC_TIME_COLUMN)
        except Exception as exc:
            raise SinkError(
                f"Unable to read latest {table.name} row",
                operation="get_latest_row",
                identifiers={"table": table.name, **key},
            ) from exc

        decision = decide(latest, row)
        if decision == GateDecision.SKIP:
            self.skipped[table.name] += 1
            record_rows(table.name, "skipped")
            return decision

        try:
            await self.repository.insert_row(table, row)
        except Exception as exc:
            raise SinkError(
                f"Unable to insert {table.name} row",
                operation="insert_row",
                identifiers={"table": table.name, **key},
            ) from exc
        self.inserted[table.name] += 1
        record_rows(table.name, "inserted")
        logger.debug("Inserted %s row for %s", table.name, key)
        return decision

    async def sync_reference_row(self, table: TableDefinition, row: dict[str, Any]) -> bool:
        key = {name: row.get(name) for name in table.key_columns}
        if any(value is None for value in key.values()):
            return False
        try:
            added = await self.repository.insert_reference_row(table, row)
        except Exception as exc:
            raise SinkError(
                f"Unable to insert {table.name} reference row",
                operation="insert_reference_row",
                identifiers={"table": table.name, **key},
            ) from exc
        if added:
            self.reference_inserted[table.name] += 1
            record_rows(table.name, "reference")
        return added

    def stats(self) -> dict[str, Any]:
        return {
            "rows_inserted": sum(self.inserted.values()),
            "rows_skipped": sum(self.skipped.values()),
            "reference_rows_inserted": sum(self.reference_inserted.values()),
            "inserted_by_table": dict(self.inserted),
            "skipped_by_table": dict(self.skipped),
        }
