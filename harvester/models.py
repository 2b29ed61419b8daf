"""Pydantic models for metadata graph elements and relationships."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class Direction(str, Enum):
    """Which end of a relationship the starting element sits on."""

    DESCENDANT = "descendant"  # start at end 1, far element at end 2
    ANCESTOR = "ancestor"  # start at end 2, far element at end 1
    EITHER = "either"


class OriginCategory(str, Enum):
    LOCAL_COHORT = "LOCAL_COHORT"
    EXPORT_ARCHIVE = "EXPORT_ARCHIVE"
    CONTENT_PACK = "CONTENT_PACK"
    DEREGISTERED_REPOSITORY = "DEREGISTERED_REPOSITORY"
    CONFIGURATION = "CONFIGURATION"
    EXTERNAL_SOURCE = "EXTERNAL_SOURCE"
    UNKNOWN = "UNKNOWN"


# ── Element building blocks ─────────────────────────────────────────

class ElementType(BaseModel):
    type_name: str
    super_type_names: list[str] = Field(default_factory=list)
    description: str = ""

    def is_type_of(self, type_name: str) -> bool:
        return type_name == self.type_name or type_name in self.super_type_names


class ElementOrigin(BaseModel):
    metadata_collection_id: Optional[str] = None
    metadata_collection_name: Optional[str] = None
    origin_category: OriginCategory = OriginCategory.LOCAL_COHORT
    source_server: Optional[str] = None


class ElementVersions(BaseModel):
    created_by: Optional[str] = None
    create_time: Optional[datetime] = None
    updated_by: Optional[str] = None
    update_time: Optional[datetime] = None
    maintained_by: list[str] = Field(default_factory=list)
    version: int = 0


class ElementClassification(BaseModel):
    name: str
    properties: dict[str, Any] = Field(default_factory=dict)
    versions: ElementVersions = Field(default_factory=ElementVersions)


class CorrelationHeader(BaseModel):
    """One external system's view of an element."""

    external_scope_guid: str
    external_scope_name: Optional[str] = None
    external_identifier: Optional[str] = None
    external_instance_created_by: Optional[str] = None
    external_instance_creation_time: Optional[datetime] = None
    external_instance_last_updated_by: Optional[str] = None
    external_instance_last_update_time: Optional[datetime] = None
    external_instance_version: Optional[int] = None
    last_synchronized: Optional[datetime] = None
    mapping_properties: dict[str, Any] = Field(default_factory=dict)


# ── Graph nodes and edges ───────────────────────────────────────────

class Element(BaseModel):
    guid: str
    type: ElementType
    properties: dict[str, Any] = Field(default_factory=dict)
    classifications: list[ElementClassification] = Field(default_factory=list)
    origin: ElementOrigin = Field(default_factory=ElementOrigin)
    versions: ElementVersions = Field(default_factory=ElementVersions)
    correlations: list[CorrelationHeader] = Field(default_factory=list)

    @property
    def type_name(self) -> str:
        return self.type.type_name

    def is_type_of(self, type_name: str) -> bool:
        return self.type.is_type_of(type_name)

    def get_classification(self, name: str) -> Optional[ElementClassification]:
        for classification in self.classifications:
            if classification.name == name:
                return classification
        return None


class Relationship(BaseModel):
    guid: str
    type: ElementType
    end1_guid: str
    end2_guid: str
    label_at_end1: Optional[str] = None
    label_at_end2: Optional[str] = None
    properties: dict[str, Any] = Field(default_factory=dict)
    effective_from: Optional[datetime] = None
    effective_to: Optional[datetime] = None
    versions: ElementVersions = Field(default_factory=ElementVersions)

    @property
    def type_name(self) -> str:
        return self.type.type_name


class RelatedElement(BaseModel):
    """A relationship paired with the element at its far end."""

    relationship: Relationship
    element: Element
    starting_at_end: int = 1

    @property
    def relationship_type(self) -> str:
        return self.relationship.type_name
