"""In-memory metadata graph store backed by a YAML snapshot."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml

from harvester.errors import GraphStoreError
from harvester.graph.store import PageCursor
from harvester.models import Direction, Element, RelatedElement, Relationship

logger = logging.getLogger("harvester.graph")


class InMemoryGraphStore:
    """Holds elements and relationships in insertion order and pages over them."""

    def __init__(
        self,
        elements: Iterable[Element] = (),
        relationships: Iterable[Relationship] = (),
    ):
        self._elements: dict[str, Element] = {}
        self._relationships: dict[str, Relationship] = {}
        for element in elements:
            self.add_element(element)
        for relationship in relationships:
            self.add_relationship(relationship)

    # ── Mutation (loading only; the harvest never writes back) ──

    def add_element(self, element: Element) -> Element:
        self._elements[element.guid] = element
        return element

    def add_relationship(self, relationship: Relationship) -> Relationship:
        self._relationships[relationship.guid] = relationship
        return relationship

    def replace_element(self, element: Element) -> None:
        if element.guid not in self._elements:
            raise KeyError(element.guid)
        self._elements[element.guid] = element

    @classmethod
    def from_snapshot(cls, path: Path) -> "InMemoryGraphStore":
        """Load a snapshot with top-level ``elements`` and ``relationships`` lists."""
        with open(path, "r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle) or {}
        return cls.from_dict(payload)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "InMemoryGraphStore":
        elements = [Element.model_validate(raw) for raw in payload.get("elements") or []]
        relationships = [Relationship.model_validate(raw) for raw in payload.get("relationships") or []]
        store = cls(elements, relationships)
        logger.info(
            "Loaded graph snapshot: %d elements, %d relationships",
            len(store._elements),
            len(store._relationships),
        )
        return store

    # ── Queries ──

    @staticmethod
    def _page(items: list[Any], cursor: PageCursor) -> list[Any]:
        if cursor.start_from < 0 or cursor.page_size <= 0:
            raise GraphStoreError(f"Invalid page cursor: {cursor}")
        return items[cursor.start_from : cursor.start_from + cursor.page_size]

    async def get_elements_by_type(self, type_name: str, cursor: PageCursor) -> list[Element]:
        matches = [element for element in self._elements.values() if element.is_type_of(type_name)]
        return self._page(matches, cursor)

    async def get_related_elements(
        self,
        element_guid: str,
        direction: Direction,
        relationship_type: Optional[str],
        cursor: PageCursor,
    ) -> list[RelatedElement]:
        views: list[RelatedElement] = []
        for relationship in self._relationships.values():
            if relationship_type and not relationship.type.is_type_of(relationship_type):
                continue
            if direction in (Direction.DESCENDANT, Direction.EITHER) and relationship.end1_guid == element_guid:
                far = self._elements.get(relationship.end2_guid)
                if far is not None:
                    views.append(RelatedElement(relationship=relationship, element=far, starting_at_end=1))
                    continue
            if direction in (Direction.ANCESTOR, Direction.EITHER) and relationship.end2_guid == element_guid:
                far = self._elements.get(relationship.end1_guid)
                if far is not None:
                    views.append(RelatedElement(relationship=relationship, element=far, starting_at_end=2))
        return self._page(views, cursor)

    async def get_element_by_guid(self, element_guid: str) -> Optional[Element]:
        return self._elements.get(element_guid)

    async def find_elements_by_exact_property(
        self, type_name: str, property_name: str, value: str
    ) -> list[Element]:
        return [
            element
            for element in self._elements.values()
            if element.is_type_of(type_name) and element.properties.get(property_name) == value
        ]

    async def get_relationship_by_guid(self, relationship_guid: str) -> Optional[Relationship]:
        return self._relationships.get(relationship_guid)
