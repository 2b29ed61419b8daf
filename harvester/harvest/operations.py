"""In-memory record of refresh runs for the status API."""
from __future__ import annotations

import asyncio
import logging
import uuid
from collections import OrderedDict
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger("harvester.operations")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Operation:
    id: str
    kind: str
    trigger: str
    status: str = "running"
    phase: str = "queued"
    startedAt: str = field(default_factory=_now)
    finishedAt: str = ""
    durationMs: int = 0
    counters: dict[str, Any] = field(default_factory=dict)
    stats: dict[str, Any] = field(default_factory=dict)
    error: str = ""


class OperationTracker:
    """Keeps the newest ``max_history`` operations, newest first."""

    def __init__(self, max_history: int = 50):
        self.max_history = max_history
        self._operations: OrderedDict[str, Operation] = OrderedDict()
        self._lock = asyncio.Lock()

    async def start(self, kind: str, trigger: str) -> str:
        operation = Operation(id=f"OP-{uuid.uuid4()}", kind=kind, trigger=trigger)
        async with self._lock:
            self._operations[operation.id] = operation
            self._operations.move_to_end(operation.id, last=False)
            while len(self._operations) > self.max_history:
                self._operations.popitem(last=True)
        logger.info("Operation started [%s] %s (trigger=%s)", operation.id, kind, trigger)
        return operation.id

    async def update(
        self,
        operation_id: Optional[str],
        *,
        phase: Optional[str] = None,
        counters: Optional[dict[str, Any]] = None,
    ) -> None:
        async with self._lock:
            operation = self._operations.get(operation_id or "")
            if operation is None:
                return
            if phase:
                operation.phase = phase
                logger.info("Operation [%s] phase=%s", operation_id, phase)
            if counters:
                operation.counters.update(counters)

    async def finish(
        self,
        operation_id: Optional[str],
        *,
        status: str,
        duration_ms: int,
        stats: Optional[dict[str, Any]] = None,
        error: str = "",
    ) -> None:
        async with self._lock:
            operation = self._operations.get(operation_id or "")
            if operation is None:
                return
            operation.status = operation.phase = status
            operation.finishedAt = _now()
            operation.durationMs = duration_ms
            operation.stats.update(stats or {})
            operation.error = error
        if status == "failed":
            logger.error("Operation failed [%s]: %s", operation_id, error)
        else:
            logger.info("Operation finished [%s] status=%s", operation_id, status)

    async def get(self, operation_id: str) -> Optional[dict[str, Any]]:
        async with self._lock:
            operation = self._operations.get(operation_id)
            return asdict(operation) if operation else None

    async def recent(self, limit: int = 20) -> list[dict[str, Any]]:
        async with self._lock:
            return [asdict(op) for op in list(self._operations.values())[: max(1, limit)]]

    async def snapshot(self) -> dict[str, Any]:
        async with self._lock:
            operations = list(self._operations.values())
            active = [asdict(op) for op in operations if op.status == "running"]
            return {
                "activeOperationCount": len(active),
                "activeOperations": active,
                "recentOperations": [asdict(op) for op in operations[:5]],
                "trackedOperationCount": len(operations),
            }
