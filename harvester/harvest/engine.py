"""Harvest engine: one refresh run is one sink transaction.

Runs go OPEN -> BEGIN -> every configured element type -> COMMIT. Any
failure after BEGIN rolls the whole run back and surfaces a ``HarvestError``.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from harvester import config
from harvester.db import migrations, schema
from harvester.db.factory import get_history_repository
from harvester.errors import HarvestError, SinkError
from harvester.graph.store import MetadataGraphStore
from harvester.harvest import projector
from harvester.harvest.audit import AuditLog
from harvester.harvest.operations import OperationTracker
from harvester.harvest.processors import HarvestContext
from harvester.harvest.registry import HandlerRegistry, build_default_registry
from harvester.harvest.resolvers import EnrichmentResolvers
from harvester.harvest.traversal import TraversalDriver
from harvester.harvest.writer import HistoryWriter
from harvester.observability import record_refresh, start_span

logger = logging.getLogger("harvester.engine")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class HarvestEngine:
    """Drives refresh runs from a metadata graph store into the relational sink."""

    def __init__(
        self,
        db: Any,  # aiosqlite.Connection or asyncpg.Pool
        store: MetadataGraphStore,
        *,
        registry: Optional[HandlerRegistry] = None,
        element_types: Optional[Sequence[str]] = None,
        page_size: Optional[int] = None,
        max_depth: Optional[int] = None,
        repository_factory: Callable[[Any], Any] = get_history_repository,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.store = store
        self.registry = registry or build_default_registry()
        self.element_types = list(element_types or config.ELEMENT_TYPES)
        unknown = [name for name in self.element_types if name not in self.registry]
        if unknown:
            raise ValueError(f"No harvest processor registered for: {', '.join(unknown)}")
        self.page_size = page_size or config.PAGE_SIZE
        self.max_depth = max_depth or config.MAX_DEPTH
        self._repository_factory = repository_factory
        self._clock = clock
        self._run_lock = asyncio.Lock()
        self.operations = OperationTracker()
        self.last_stats: dict[str, Any] = {}

    # ── Operation tracking ──

    async def start_operation(self, kind: str, trigger: str = "api") -> str:
        return await self.operations.start(kind, trigger)

    async def list_operations(self, limit: int = 20) -> list[dict[str, Any]]:
        return await self.operations.recent(limit)

    async def get_operation(self, operation_id: str) -> dict[str, Any] | None:
        return await self.operations.get(operation_id)

    async def get_observability_snapshot(self) -> dict[str, Any]:
        snapshot = await self.operations.snapshot()
        snapshot["refreshInProgress"] = self._run_lock.locked()
        snapshot["elementTypes"] = list(self.element_types)
        return snapshot

    # ── Refresh ──

    async def refresh(self, operation_id: str | None = None, trigger: str = "api") -> dict[str, Any]:
        """Harvest every configured element type in one transaction.

        Returns run stats; raises ``HarvestError`` after rolling back.
        Overlapping calls wait for the running refresh to finish.
        """
        if not operation_id:
            operation_id = await self.operations.start("refresh", trigger)
        async with self._run_lock:
            return await self._refresh_locked(operation_id)

    async def _refresh_locked(self, operation_id: str) -> dict[str, Any]:
        t0 = time.monotonic()
        audit = AuditLog()
        stats: dict[str, Any] = {"operation_id": operation_id, "elements_processed": {}}
        repository = None
        in_transaction = False

        with start_span("harvest.refresh", {"operation_id": operation_id}):
            try:
                await self.operations.update(operation_id, phase="schema")
                await migrations.ensure_schema(self.db)

                repository = self._repository_factory(self.db)
                try:
                    await repository.begin()
                except Exception as exc:
                    raise SinkError("Unable to begin transaction", operation="begin") from exc
                in_transaction = True

                traversal = TraversalDriver(self.store, audit, self.page_size, self.max_depth)
                ctx = HarvestContext(
                    writer=HistoryWriter(repository),
                    resolvers=EnrichmentResolvers(self.store, traversal, audit),
                    traversal=traversal,
                    audit=audit,
                    clock=self._clock,
                )

                for row in projector.project_reference_levels():
                    await ctx.writer.sync_reference_row(schema.REFERENCE_LEVEL, row)

                for type_name in self.element_types:
                    await self.operations.update(operation_id, phase=type_name)
                    with start_span("harvest.type", {"type_name": type_name}):
                        await self._harvest_type(ctx, type_name)
                    await self.operations.update(
                        operation_id,
                        counters={"rowsInserted": ctx.writer.stats()["rows_inserted"], **dict(ctx.processed)},
                    )

                await self.operations.update(operation_id, phase="commit")
                try:
                    await repository.commit()
                except Exception as exc:
                    raise SinkError("Unable to commit harvest transaction", operation="commit") from exc
                in_transaction = False

                stats.update(ctx.writer.stats())
                stats["elements_processed"] = dict(ctx.processed)
                stats["audit_issues"] = audit.total
                stats["duration_ms"] = int((time.monotonic() - t0) * 1000)
                await self.operations.finish(
                    operation_id, status="completed", duration_ms=stats["duration_ms"], stats=stats
                )
                record_refresh("completed", stats["duration_ms"])
                self.last_stats = stats
                logger.info(
                    "Refresh complete: %d rows inserted, %d skipped, %d audit issues in %dms",
                    stats["rows_inserted"],
                    stats["rows_skipped"],
                    stats["audit_issues"],
                    stats["duration_ms"],
                )
                return stats
            except asyncio.CancelledError:
                await self._abort(repository, in_transaction, operation_id)
                await self.operations.finish(
                    operation_id,
                    status="cancelled",
                    duration_ms=int((time.monotonic() - t0) * 1000),
                    stats=stats,
                )
                raise
            except Exception as exc:
                await self._abort(repository, in_transaction, operation_id)
                stats["audit_issues"] = audit.total
                stats["duration_ms"] = int((time.monotonic() - t0) * 1000)
                detail = str(exc)
                if isinstance(exc, HarvestError) and (exc.operation or exc.identifiers):
                    detail = f"{detail} [operation={exc.operation or '-'} {exc.identifiers}]"
                await self.operations.finish(
                    operation_id, status="failed", duration_ms=stats["duration_ms"], stats=stats, error=detail
                )
                record_refresh("failed", stats["duration_ms"])
                if isinstance(exc, HarvestError):
                    raise
                raise HarvestError("Refresh failed", operation="refresh") from exc

    async def _abort(self, repository: Any, in_transaction: bool, operation_id: str) -> None:
        if not in_transaction or repository is None:
            return
        try:
            await repository.rollback()
        except Exception:
            logger.exception("Rollback failed for operation %s", operation_id)

    async def _harvest_type(self, ctx: HarvestContext, type_name: str) -> None:
        processor = self.registry.get(type_name)
        async for element in ctx.traversal.for_each_of_type(type_name):
            await processor(ctx, element)
            ctx.processed[type_name] += 1
