"""Element type name → processor dispatch."""
from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from harvester.models import Element

if TYPE_CHECKING:
    from harvester.harvest.processors import HarvestContext

ElementProcessor = Callable[["HarvestContext", Element], Awaitable[None]]


class HandlerRegistry:
    """Maps top-level type names to the processor that enriches and projects them.

    The store enumerates subtypes under their registered super type, so a
    ``CSVFile`` is handled by the ``DataAsset`` processor. Dispatch happens
    once per type, not per element.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, ElementProcessor] = {}

    def register(self, type_name: str, processor: ElementProcessor) -> None:
        self._handlers[type_name] = processor

    def get(self, type_name: str) -> Optional[ElementProcessor]:
        return self._handlers.get(type_name)

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._handlers

    @property
    def type_names(self) -> list[str]:
        return list(self._handlers)


def build_default_registry() -> HandlerRegistry:
    from harvester.harvest import processors

    registry = HandlerRegistry()
    registry.register("DataAsset", processors.process_data_asset)
    registry.register("Glossary", processors.process_glossary)
    registry.register("Collection", processors.process_collection)
    registry.register("Project", processors.process_project)
    registry.register("Team", processors.process_team)
    registry.register("ToDo", processors.process_to_do)
    registry.register("PersonRole", processors.process_person_role)
    registry.register("UserIdentity", processors.process_user_identity)
    return registry
