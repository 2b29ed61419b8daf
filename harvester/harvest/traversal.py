"""Paged traversal over the metadata graph store."""
from __future__ import annotations

import logging
from typing import AsyncIterator, Callable, Optional, Sequence

from harvester.errors import TraversalError
from harvester.graph.store import MetadataGraphStore, PageCursor
from harvester.harvest.audit import AuditLog
from harvester.models import Direction, Element, RelatedElement

logger = logging.getLogger("harvester.traversal")


class TraversalDriver:
    """Exhaustive page-by-page iteration over elements and related elements.

    Every iterator is a fresh async generator: it starts at offset 0, advances
    by ``page_size`` and stops at the first empty page.
    """

    def __init__(self, store: MetadataGraphStore, audit: AuditLog, page_size: int = 100, max_depth: int = 32):
        self.store = store
        self.audit = audit
        self.page_size = max(1, int(page_size))
        self.max_depth = max(1, int(max_depth))

    async def for_each_of_type(self, type_name: str) -> AsyncIterator[Element]:
        """Yield every element of ``type_name``. A page failure is fatal."""
        cursor = PageCursor(0, self.page_size)
        while True:
            try:
                page = await self.store.get_elements_by_type(type_name, cursor)
            except Exception as exc:
                raise TraversalError(
                    f"Unable to page through {type_name}",
                    operation="for_each_of_type",
                    identifiers={"type_name": type_name, "start_from": cursor.start_from},
                ) from exc
            if not page:
                return
            for element in page:
                yield element
            cursor = cursor.next()

    async def for_each_related(
        self,
        element_guid: str,
        relationship_type: Optional[str] = None,
        direction: Direction = Direction.DESCENDANT,
        *,
        raise_errors: bool = False,
    ) -> AsyncIterator[RelatedElement]:
        """Yield related elements; a page failure ends the sequence and is audited.

        With ``raise_errors`` the store's exception propagates unaudited, for
        callers that must tell an empty result from a failed one.
        """
        cursor = PageCursor(0, self.page_size)
        while True:
            try:
                page = await self.store.get_related_elements(element_guid, direction, relationship_type, cursor)
            except Exception as exc:
                if raise_errors:
                    raise
                self.audit.log_exception(
                    "traversal",
                    f"for_each_related:{relationship_type or '*'}",
                    exc,
                    element_guid=element_guid,
                )
                return
            if not page:
                return
            for related in page:
                yield related
            cursor = cursor.next()

    async def first_related(
        self,
        element_guid: str,
        relationship_type: str,
        direction: Direction = Direction.DESCENDANT,
    ) -> Optional[RelatedElement]:
        """First related element in page order, or None."""
        try:
            page = await self.store.get_related_elements(
                element_guid, direction, relationship_type, PageCursor(0, 1)
            )
        except Exception as exc:
            self.audit.log_exception(
                "traversal",
                f"first_related:{relationship_type}",
                exc,
                element_guid=element_guid,
            )
            return None
        return page[0] if page else None

    async def descend(
        self,
        root: Element,
        child_relationships: Sequence[str],
        *,
        leaf_filter: Optional[Callable[[Element], bool]] = None,
    ) -> AsyncIterator[tuple[Element, int]]:
        """Depth-first walk below ``root`` yielding ``(leaf, depth)`` pairs.

        A node with structural children is recursed into and not yielded.
        Each element is visited at most once, and nodes deeper than
        ``max_depth`` are not expanded.
        """
        visited: set[str] = {root.guid}
        stack: list[tuple[Element, int]] = [(root, 0)]
        while stack:
            node, depth = stack.pop()
            children: list[Element] = []
            for relationship_type in child_relationships:
                async for related in self.for_each_related(node.guid, relationship_type, Direction.DESCENDANT):
                    children.append(related.element)

            if not children:
                if node is not root and (leaf_filter is None or leaf_filter(node)):
                    yield node, depth
                continue

            if depth >= self.max_depth:
                self.audit.log_warning(
                    "traversal",
                    "descend",
                    f"depth limit {self.max_depth} reached; {len(children)} children not visited",
                    element_guid=node.guid,
                )
                continue

            fresh = []
            for child in children:
                if child.guid in visited:
                    logger.debug("Skipping revisit of %s below %s", child.guid, root.guid)
                    continue
                visited.add(child.guid)
                fresh.append((child, depth + 1))
            stack.extend(reversed(fresh))
