"""Harvest error taxonomy."""
from __future__ import annotations

from typing import Any


class GraphStoreError(Exception):
    """Raised by a metadata graph store when a query cannot be answered."""


class HarvestError(Exception):
    """Fatal error that aborts a refresh run.

    ``operation`` names the step that failed and ``identifiers`` carries the
    table, guid or type name that was being processed. The inner cause is
    chained via ``raise ... from``.
    """

    def __init__(self, message: str, *, operation: str = "", identifiers: dict[str, Any] | None = None):
        super().__init__(message)
        self.operation = operation
        self.identifiers = dict(identifiers or {})

    def __str__(self) -> str:
        base = super().__str__()
        cause = self.__cause__
        if cause is not None:
            return f"{base} (caused by {type(cause).__name__}: {cause})"
        return base


class SchemaError(HarvestError):
    """Schema could not be applied to the relational sink."""


class SinkError(HarvestError):
    """A relational sink statement or transaction call failed."""


class TraversalError(HarvestError):
    """A top-level element type could not be enumerated."""
