"""Repository package for database access."""

from .history import SqliteHistoryRepository

__all__ = [
    "SqliteHistoryRepository",
]
