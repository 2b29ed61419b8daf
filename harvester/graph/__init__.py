"""Metadata graph store interface and implementations."""

from harvester.graph.memory import InMemoryGraphStore
from harvester.graph.store import MetadataGraphStore, PageCursor

__all__ = [
    "InMemoryGraphStore",
    "MetadataGraphStore",
    "PageCursor",
]
