"""Read-only query surface of a metadata graph store."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from harvester.models import Direction, Element, RelatedElement, Relationship


@dataclass(frozen=True)
class PageCursor:
    start_from: int = 0
    page_size: int = 100

    def next(self) -> "PageCursor":
        return PageCursor(self.start_from + self.page_size, self.page_size)


class MetadataGraphStore(Protocol):
    """Paged, read-only queries over elements and relationships.

    A page past the end is returned as an empty list or ``None``.
    """

    async def get_elements_by_type(
        self, type_name: str, cursor: PageCursor
    ) -> Optional[list[Element]]:
        ...

    async def get_related_elements(
        self,
        element_guid: str,
        direction: Direction,
        relationship_type: Optional[str],
        cursor: PageCursor,
    ) -> Optional[list[RelatedElement]]:
        ...

    async def get_element_by_guid(self, element_guid: str) -> Optional[Element]:
        ...

    async def find_elements_by_exact_property(
        self, type_name: str, property_name: str, value: str
    ) -> list[Element]:
        ...

    async def get_relationship_by_guid(self, relationship_guid: str) -> Optional[Relationship]:
        ...
