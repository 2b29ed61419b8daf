"""Run-scoped audit log for non-fatal harvest issues."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from harvester.observability import record_enrichment_failure

logger = logging.getLogger("harvester.audit")


@dataclass(frozen=True)
class AuditRecord:
    component: str
    operation: str
    exception_class: str
    message: str
    element_guid: str = ""
    recorded_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict[str, Any]:
        return {
            "component": self.component,
            "operation": self.operation,
            "exceptionClass": self.exception_class,
            "message": self.message,
            "elementGuid": self.element_guid,
            "recordedAt": self.recorded_at,
        }


class AuditLog:
    """Records recoverable failures without interrupting the run."""

    def __init__(self, max_records: int = 500):
        self._records: list[AuditRecord] = []
        self._max_records = max_records
        self.total = 0

    def log_exception(
        self,
        component: str,
        operation: str,
        error: BaseException,
        *,
        element_guid: str = "",
    ) -> AuditRecord:
        record = AuditRecord(
            component=component,
            operation=operation,
            exception_class=type(error).__name__,
            message=str(error),
            element_guid=element_guid,
        )
        self.total += 1
        if len(self._records) < self._max_records:
            self._records.append(record)
        logger.warning(
            "Recoverable failure in %s.%s for %s: %s: %s",
            component,
            operation,
            element_guid or "-",
            record.exception_class,
            record.message,
        )
        record_enrichment_failure(operation)
        return record

    def log_warning(self, component: str, operation: str, message: str, *, element_guid: str = "") -> None:
        record = AuditRecord(
            component=component,
            operation=operation,
            exception_class="",
            message=message,
            element_guid=element_guid,
        )
        self.total += 1
        if len(self._records) < self._max_records:
            self._records.append(record)
        logger.warning("%s.%s for %s: %s", component, operation, element_guid or "-", message)

    @property
    def records(self) -> list[AuditRecord]:
        return list(self._records)

    def summary(self, limit: int = 20) -> list[dict[str, Any]]:
        return [record.to_dict() for record in self._records[:limit]]
