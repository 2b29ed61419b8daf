"""Declarative catalog of the harvest target tables.

History tables are append-only: a new row is inserted whenever the projected
values for a business key differ from the latest stored row. Reference tables
are keyed lookups written with insert-or-ignore.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

SYNC_TIME_COLUMN = "sync_time"


class ColumnType(str, Enum):
    TEXT = "text"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"


@dataclass(frozen=True)
class ColumnDefinition:
    name: str
    type: ColumnType = ColumnType.TEXT
    description: str = ""


@dataclass(frozen=True)
class TableDefinition:
    name: str
    description: str
    key_columns: tuple[str, ...]
    columns: tuple[ColumnDefinition, ...]
    history: bool = True
    column_types: dict[str, ColumnType] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "column_types", {column.name: column.type for column in self.columns})
        missing = [key for key in self.key_columns if key not in self.column_types]
        if missing:
            raise ValueError(f"Table {self.name} key columns not defined: {missing}")
        if self.history and SYNC_TIME_COLUMN not in self.column_types:
            raise ValueError(f"History table {self.name} has no {SYNC_TIME_COLUMN} column")

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]


def _text(*names: str) -> tuple[ColumnDefinition, ...]:
    return tuple(ColumnDefinition(name) for name in names)


def _int(*names: str) -> tuple[ColumnDefinition, ...]:
    return tuple(ColumnDefinition(name, ColumnType.INTEGER) for name in names)


def _ts(*names: str) -> tuple[ColumnDefinition, ...]:
    return tuple(ColumnDefinition(name, ColumnType.TIMESTAMP) for name in names)


def _bool(*names: str) -> tuple[ColumnDefinition, ...]:
    return tuple(ColumnDefinition(name, ColumnType.BOOLEAN) for name in names)


_SYNC = _ts(SYNC_TIME_COLUMN)


# ── History tables ─────────────────────────────────────────────────

ASSET = TableDefinition(
    name="om_asset",
    description="Data assets with their governance classifications",
    key_columns=("asset_guid",),
    columns=(
        *_text("asset_guid", "open_metadata_type", "metadata_collection_id", "creation_by"),
        *_ts("creation_time", "last_update_time"),
        *_text("last_updated_by", "maintained_by", "zone_names", "owner_guid", "owner_type"),
        *_text("origin_org_guid", "origin_biz_cap_guid"),
        *_ts("archived"),
        *_int("confidentiality_level", "criticality_level", "confidence_level"),
        *_text(
            "resource_name",
            "resource_description",
            "version_identifier",
            "display_name",
            "display_description",
            "qualified_name",
            "display_summary",
            "abbreviation",
            "usage",
            "additional_properties",
            "license_type_guid",
            "resource_location_guid",
            "tags",
            "semantic_term_guid",
        ),
        *_SYNC,
    ),
)

DATA_FIELD = TableDefinition(
    name="om_data_field",
    description="Leaf schema attributes reached from an asset",
    key_columns=("data_field_guid",),
    columns=(
        *_text("data_field_guid", "data_field_name", "version_identifier", "semantic_term_guid"),
        *_bool("has_profile"),
        *_int("confidentiality_level"),
        *_text("qualified_name", "asset_guid", "tags"),
        *_SYNC,
    ),
)

GLOSSARY = TableDefinition(
    name="om_glossary",
    description="Glossaries with term and category counts",
    key_columns=("glossary_guid",),
    columns=(
        *_text("glossary_guid", "metadata_collection_id"),
        *_ts("creation_time", "last_update_time"),
        *_text(
            "classifications",
            "owner_guid",
            "owner_type",
            "display_name",
            "description",
            "language",
            "qualified_name",
            "usage",
            "additional_properties",
            "license_type_guid",
        ),
        *_int("num_terms", "num_categories", "num_linked_terms"),
        *_SYNC,
    ),
)

TERM_ACTIVITY = TableDefinition(
    name="om_term_activity",
    description="Glossary term usage and feedback",
    key_columns=("term_guid",),
    columns=(
        *_text("term_guid"),
        *_ts("creation_time"),
        *_text("owner_guid", "owner_type"),
        *_int("confidentiality_level", "criticality_level", "confidence_level"),
        *_text("term_name", "qualified_name", "term_summary", "version_identifier", "glossary_guid"),
        *_ts("last_feedback_time"),
        *_int("num_linked_elements"),
        *_ts("last_linked_time"),
        *_SYNC,
    ),
)

COLLABORATION_ACTIVITY = TableDefinition(
    name="om_collaboration_activity",
    description="Feedback counters attached to an element",
    key_columns=("element_guid",),
    columns=(
        *_text("element_guid"),
        *_int("num_comments", "num_ratings", "avg_rating", "num_tags", "num_likes"),
        *_SYNC,
    ),
)

CERTIFICATION = TableDefinition(
    name="om_certification",
    description="Certifications awarded to elements",
    key_columns=("certification_guid",),
    columns=(
        *_text("certification_guid", "referenceable_guid", "certification_type_guid"),
        *_ts("start_timestamp", "end_timestamp"),
        *_SYNC,
    ),
)

RELATED_ASSET = TableDefinition(
    name="om_related_asset",
    description="Relationships that connect two assets",
    key_columns=("relationship_guid",),
    columns=(
        *_text(
            "relationship_guid",
            "open_metadata_type",
            "end1_guid",
            "end1_attribute_name",
            "end2_guid",
            "end2_attribute_name",
        ),
        *_SYNC,
    ),
)

CORRELATION_PROPERTIES = TableDefinition(
    name="om_correlation_properties",
    description="External system identifiers correlated with elements",
    key_columns=("element_guid", "external_scope_guid"),
    columns=(
        *_text("element_guid", "external_scope_guid", "external_scope_name"),
        *_bool("home_owned"),
        *_text("open_metadata_type", "external_identifier"),
        *_ts("last_confirmed_sync_time"),
        *_text("creation_by", "creation_by_identity_guid"),
        *_ts("creation_time"),
        *_text("last_updated_by", "last_updated_by_identity_guid"),
        *_ts("last_update_time"),
        *_int("version"),
        *_text("additional_properties"),
        *_SYNC,
    ),
)

COLLECTION = TableDefinition(
    name="om_collection",
    description="Collections with recursive membership summary",
    key_columns=("collection_guid",),
    columns=(
        *_text("collection_guid", "open_metadata_type", "qualified_name", "display_name", "description"),
        *_int("num_members"),
        *_text("member_types", "parent_collection_guid"),
        *_SYNC,
    ),
)

PROJECT = TableDefinition(
    name="om_project",
    description="Projects and their place in the project hierarchy",
    key_columns=("project_guid",),
    columns=(
        *_text("project_guid", "qualified_name", "display_name", "description", "project_status"),
        *_ts("start_date", "planned_end_date"),
        *_text("parent_project_guid", "top_project_name"),
        *_SYNC,
    ),
)

DEPARTMENT = TableDefinition(
    name="om_department",
    description="Teams with manager and parent team",
    key_columns=("department_guid",),
    columns=(
        *_text("department_guid", "department_name", "manager_identity_guid", "parent_department_guid"),
        *_SYNC,
    ),
)

ROLE = TableDefinition(
    name="om_role",
    description="Person roles",
    key_columns=("role_guid",),
    columns=(
        *_text("role_guid", "role_name", "open_metadata_type"),
        *_int("headcount"),
        *_SYNC,
    ),
)

ROLE_TO_PROFILE = TableDefinition(
    name="om_role_to_profile",
    description="Appointments of people to roles",
    key_columns=("relationship_guid",),
    columns=(
        *_text("relationship_guid", "role_guid", "profile_guid", "user_identity_guid"),
        *_ts("start_timestamp", "end_timestamp"),
        *_SYNC,
    ),
)

USER_IDENTITY = TableDefinition(
    name="om_user_identity",
    description="User identities with profile and organisation placement",
    key_columns=("user_identity_guid",),
    columns=(
        *_text(
            "user_identity_guid",
            "user_id",
            "distinguished_name",
            "profile_guid",
            "employee_number",
            "preferred_name",
            "resident_country",
            "department_guid",
            "location_guid",
            "organization_name",
        ),
        *_SYNC,
    ),
)

CONTRIBUTION = TableDefinition(
    name="om_contribution",
    description="Karma points earned by users",
    key_columns=("user_identity_guid",),
    columns=(
        *_text("user_identity_guid"),
        *_int("karma_points"),
        *_SYNC,
    ),
)

TO_DO = TableDefinition(
    name="om_to_do",
    description="Actions assigned to people",
    key_columns=("to_do_guid",),
    columns=(
        *_text("to_do_guid", "qualified_name", "display_name", "to_do_type"),
        *_ts("creation_time"),
        *_int("priority"),
        *_ts("due_time", "last_review_time", "completion_time"),
        *_text(
            "to_do_status",
            "to_do_source_guid",
            "to_do_source_type",
            "assigned_actor_guid",
            "assigned_actor_type",
        ),
        *_SYNC,
    ),
)


# ── Reference tables ───────────────────────────────────────────────

ASSET_TYPE = TableDefinition(
    name="om_asset_type",
    description="Open metadata types seen on harvested assets",
    key_columns=("open_metadata_type",),
    columns=_text("open_metadata_type", "type_description", "super_types"),
    history=False,
)

LOCATION = TableDefinition(
    name="om_location",
    description="Locations of resources and people",
    key_columns=("location_guid",),
    columns=_text("location_guid", "location_name", "open_metadata_type"),
    history=False,
)

LICENSE_TYPE = TableDefinition(
    name="om_license_type",
    description="License types attached to elements",
    key_columns=("license_type_guid",),
    columns=_text("license_type_guid", "license_name", "description"),
    history=False,
)

METADATA_COLLECTION = TableDefinition(
    name="om_metadata_collection",
    description="Home metadata collections of harvested elements",
    key_columns=("metadata_collection_id",),
    columns=_text(
        "metadata_collection_id",
        "metadata_collection_name",
        "provenance_type",
        "deployed_implementation_type",
    ),
    history=False,
)

EXTERNAL_USER = TableDefinition(
    name="om_external_user",
    description="External user ids mapped to canonical user identities",
    key_columns=("external_user", "external_scope_guid"),
    columns=_text("external_user", "external_scope_guid", "user_identity_guid"),
    history=False,
)

CERTIFICATION_TYPE = TableDefinition(
    name="om_certification_type",
    description="Certification types",
    key_columns=("certification_type_guid",),
    columns=_text("certification_type_guid", "certification_title", "certification_summary"),
    history=False,
)

REFERENCE_LEVEL = TableDefinition(
    name="om_reference_level",
    description="Names of governance level identifiers",
    key_columns=("classification_name", "identifier"),
    columns=(
        *_text("classification_name"),
        *_int("identifier"),
        *_text("display_name", "description"),
    ),
    history=False,
)


HISTORY_TABLES: tuple[TableDefinition, ...] = (
    ASSET,
    DATA_FIELD,
    GLOSSARY,
    TERM_ACTIVITY,
    COLLABORATION_ACTIVITY,
    CERTIFICATION,
    RELATED_ASSET,
    CORRELATION_PROPERTIES,
    COLLECTION,
    PROJECT,
    DEPARTMENT,
    ROLE,
    ROLE_TO_PROFILE,
    USER_IDENTITY,
    CONTRIBUTION,
    TO_DO,
)

REFERENCE_TABLES: tuple[TableDefinition, ...] = (
    ASSET_TYPE,
    LOCATION,
    LICENSE_TYPE,
    METADATA_COLLECTION,
    EXTERNAL_USER,
    CERTIFICATION_TYPE,
    REFERENCE_LEVEL,
)

ALL_TABLES: tuple[TableDefinition, ...] = HISTORY_TABLES + REFERENCE_TABLES

TABLES_BY_NAME: dict[str, TableDefinition] = {table.name: table for table in ALL_TABLES}


def get_table(name: str) -> TableDefinition:
    try:
        return TABLES_BY_NAME[name]
    except KeyError:
        raise KeyError(f"Unknown harvest table: {name}") from None
