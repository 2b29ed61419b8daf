"""Upsert gate: decide whether a freshly projected row carries new information."""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from harvester.db.schema import SYNC_TIME_COLUMN

_MISSING = object()


class GateDecision(str, Enum):
    INSERT = "insert"
    SKIP = "skip"


def new_information(
    latest: Optional[dict[str, Any]],
    candidate: Optional[dict[str, Any]],
    ignored_column: str = SYNC_TIME_COLUMN,
) -> bool:
    """Return True when ``candidate`` differs from the latest stored row.

    Only the columns present in ``latest`` are compared. A column that exists
    solely in ``candidate`` does not count as a difference, so an optional
    column added to a table later is picked up on the next real change rather
    than producing a new row for every key at once.
    """
    if not candidate:
        return False
    if latest is None:
        return True

    for column, stored in latest.items():
        if column == ignored_column:
            continue
        current = candidate.get(column, _MISSING)
        if stored is not None:
            if current is _MISSING or current != stored:
                return True
        elif current is not _MISSING and current is not None:
            return True
    return False


def decide(
    latest: Optional[dict[str, Any]],
    candidate: Optional[dict[str, Any]],
    ignored_column: str = SYNC_TIME_COLUMN,
) -> GateDecision:
    if new_information(latest, candidate, ignored_column):
        return GateDecision.INSERT
    return GateDecision.SKIP
