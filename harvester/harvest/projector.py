"""Row projection: pure functions from enriched elements to table rows.

Each ``project_*`` function builds a brand-new row dict for one target table.
Columns whose value is unknown are left out of the row, which the sink stores
as NULL. History rows always carry their business key and ``sync_time``.
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from harvester.db.schema import SYNC_TIME_COLUMN
from harvester.harvest.properties import (
    as_utc,
    frame_list,
    get_datetime,
    get_int,
    get_map_json,
    get_string,
    get_string_list,
    status_identifier,
    truncate,
)
from harvester.harvest.resolvers import (
    AggregateCounters,
    CorrelationFacts,
    MembershipSummary,
    TermActivity,
    display_name_of,
)
from harvester.models import Element, ElementOrigin, ElementType, OriginCategory, Relationship

Row = dict[str, Any]

OWNER_GUID_LIMIT = 80
OWNER_TYPE_LIMIT = 40

ASSET_PROPERTY_COLUMNS = {
    "name": "resource_name",
    "resourceDescription": "resource_description",
    "versionIdentifier": "version_identifier",
    "displayName": "display_name",
    "description": "display_description",
    "qualifiedName": "qualified_name",
    "displaySummary": "display_summary",
    "abbreviation": "abbreviation",
    "usage": "usage",
}

GLOSSARY_PROPERTY_COLUMNS = {
    "displayName": "display_name",
    "description": "description",
    "language": "language",
    "qualifiedName": "qualified_name",
    "usage": "usage",
}

TERM_PROPERTY_COLUMNS = {
    "displayName": "term_name",
    "qualifiedName": "qualified_name",
    "summary": "term_summary",
    "versionIdentifier": "version_identifier",
}

LEVEL_CLASSIFICATIONS = {
    "ConfidentialityLevel": "confidentiality_level",
    "CriticalityLevel": "criticality_level",
    "ConfidenceLevel": "confidence_level",
}

# Governance level names seeded into om_reference_level.
REFERENCE_LEVELS: dict[str, list[tuple[int, str, str]]] = {
    "ConfidentialityLevel": [
        (0, "Unclassified", "The data is public information."),
        (1, "Internal", "The data should not be exposed outside of this organization."),
        (2, "Confidential", "The data should be protected and only shared with people with a need to see it."),
        (3, "Sensitive", "The data is sensitive and inappropriate use may adversely impact the data subject."),
        (4, "Restricted", "The data is very valuable and must be restricted to a very small number of people."),
        (99, "Other", "Another confidentiality level."),
    ],
    "CriticalityLevel": [
        (0, "Unclassified", "There is no assessment of the criticality of this data."),
        (1, "Marginal", "The data is of minor importance to the organization."),
        (2, "Important", "The data is important to the running of some of the organization's processes."),
        (3, "Critical", "The data is critical to the operation of the organization."),
        (4, "Catastrophic", "The loss of the data would be catastrophic to the organization."),
        (99, "Other", "Another criticality level."),
    ],
    "ConfidenceLevel": [
        (0, "Unclassified", "There is no assessment of the confidence level of this data."),
        (1, "AdHoc", "The data comes from an ad hoc process."),
        (2, "Transactional", "The data comes from a transactional system so it may have a narrow scope."),
        (3, "Authoritative", "The data comes from an authoritative source."),
        (4, "Derived", "The data is derived from other data through an analytical process."),
        (5, "Obsolete", "The data comes from an obsolete source and must no longer be used."),
        (99, "Other", "Another confidence level."),
    ],
}


def _put(row: Row, column: str, value: Any) -> None:
    if value is not None:
        row[column] = value


def _copy_properties(row: Row, properties: dict[str, Any], mapping: dict[str, str]) -> None:
    for property_name, column in mapping.items():
        _put(row, column, get_string(properties, property_name))


def _ownership(row: Row, element: Element) -> None:
    ownership = element.get_classification("Ownership")
    if ownership is None:
        return
    _put(row, "owner_guid", truncate(get_string(ownership.properties, "owner"), OWNER_GUID_LIMIT))
    _put(row, "owner_type", truncate(get_string(ownership.properties, "ownerTypeName"), OWNER_TYPE_LIMIT))


def _levels(row: Row, element: Element, columns: tuple[str, ...] = tuple(LEVEL_CLASSIFICATIONS.values())) -> None:
    for classification_name, column in LEVEL_CLASSIFICATIONS.items():
        if column not in columns:
            continue
        classification = element.get_classification(classification_name)
        if classification is not None:
            row[column] = status_identifier(classification.properties)


def _start(key_column: str, guid: str, sync_time: datetime) -> Row:
    return {key_column: guid, SYNC_TIME_COLUMN: as_utc(sync_time)}


# ── History rows ───────────────────────────────────────────────────

def project_asset(
    element: Element,
    *,
    sync_time: datetime,
    location: Optional[Element] = None,
    license_type: Optional[Element] = None,
    tags: Optional[str] = None,
    semantic_term: Optional[Element] = None,
) -> Row:
    versions = element.versions
    row = _start("asset_guid", element.guid, sync_time)
    _put(row, "open_metadata_type", element.type_name)
    _put(row, "metadata_collection_id", element.origin.metadata_collection_id)
    _put(row, "creation_by", versions.created_by)
    _put(row, "creation_time", as_utc(versions.create_time))
    _put(row, "last_update_time", as_utc(versions.update_time or versions.create_time))
    _put(row, "last_updated_by", versions.updated_by or versions.created_by)
    if versions.maintained_by:
        row["maintained_by"] = frame_list(versions.maintained_by)
    elif versions.created_by:
        row["maintained_by"] = frame_list([versions.created_by])

    zones = element.get_classification("AssetZoneMembership")
    if zones is not None:
        row["zone_names"] = frame_list(get_string_list(zones.properties, "zoneMembership"))

    _ownership(row, element)

    origin = element.get_classification("DigitalResourceOrigin")
    if origin is not None:
        _put(row, "origin_org_guid", get_string(origin.properties, "organization"))
        _put(row, "origin_biz_cap_guid", get_string(origin.properties, "businessCapability"))

    memento = element.get_classification("Memento")
    if memento is not None:
        _put(
            row,
            "archived",
            get_datetime(memento.properties, "archiveDate") or as_utc(memento.versions.create_time),
        )

    _levels(row, element)
    _copy_properties(row, element.properties, ASSET_PROPERTY_COLUMNS)
    _put(row, "additional_properties", get_map_json(element.properties, "additionalProperties"))
    _put(row, "license_type_guid", license_type.guid if license_type else None)
    _put(row, "resource_location_guid", location.guid if location else None)
    _put(row, "tags", tags)
    _put(row, "semantic_term_guid", semantic_term.guid if semantic_term else None)
    return row


def project_data_field(
    attribute: Element,
    asset: Element,
    *,
    sync_time: datetime,
    semantic_term: Optional[Element] = None,
    has_profile: bool = False,
    tags: Optional[str] = None,
) -> Row:
    row = _start("data_field_guid", attribute.guid, sync_time)
    _put(row, "data_field_name", display_name_of(attribute))
    _put(row, "version_identifier", get_string(attribute.properties, "versionIdentifier"))
    _put(row, "semantic_term_guid", semantic_term.guid if semantic_term else None)
    row["has_profile"] = bool(has_profile)
    _levels(row, attribute, ("confidentiality_level",))
    _put(row, "qualified_name", get_string(asset.properties, "qualifiedName"))
    row["asset_guid"] = asset.guid
    _put(row, "tags", tags)
    return row


def project_glossary(
    glossary: Element,
    *,
    sync_time: datetime,
    num_terms: int,
    num_categories: int,
    num_linked_terms: int,
    license_type: Optional[Element] = None,
) -> Row:
    row = _start("glossary_guid", glossary.guid, sync_time)
    _put(row, "metadata_collection_id", glossary.origin.metadata_collection_id)
    _put(row, "creation_time", as_utc(glossary.versions.create_time))
    _put(row, "last_update_time", as_utc(glossary.versions.update_time or glossary.versions.create_time))
    row["classifications"] = frame_list(classification.name for classification in glossary.classifications)
    _ownership(row, glossary)
    _copy_properties(row, glossary.properties, GLOSSARY_PROPERTY_COLUMNS)
    _put(row, "additional_properties", get_map_json(glossary.properties, "additionalProperties"))
    row["num_terms"] = num_terms
    row["num_categories"] = num_categories
    row["num_linked_terms"] = num_linked_terms
    _put(row, "license_type_guid", license_type.guid if license_type else None)
    return row


def project_term_activity(
    term: Element,
    glossary_guid: str,
    activity: TermActivity,
    *,
    sync_time: datetime,
) -> Row:
    row = _start("term_guid", term.guid, sync_time)
    _put(row, "creation_time", as_utc(term.versions.create_time))
    _ownership(row, term)
    _levels(row, term)
    _copy_properties(row, term.properties, TERM_PROPERTY_COLUMNS)
    row["glossary_guid"] = glossary_guid
    _put(row, "last_feedback_time", activity.last_feedback_time)
    row["num_linked_elements"] = activity.num_linked_elements
    _put(row, "last_linked_time", activity.last_linked_time)
    return row


def project_collaboration(element_guid: str, counters: AggregateCounters, *, sync_time: datetime) -> Row:
    row = _start("element_guid", element_guid, sync_time)
    row["num_comments"] = counters.num_comments
    row["num_ratings"] = counters.num_ratings
    row["avg_rating"] = counters.avg_rating
    row["num_tags"] = counters.num_tags
    row["num_likes"] = counters.num_likes
    return row


def project_certification(
    relationship: Relationship,
    referenceable_guid: str,
    certification_type_guid: str,
    *,
    sync_time: datetime,
) -> Row:
    row = _start("certification_guid", relationship.guid, sync_time)
    row["referenceable_guid"] = referenceable_guid
    row["certification_type_guid"] = certification_type_guid
    _put(row, "start_timestamp", get_datetime(relationship.properties, "start") or as_utc(relationship.effective_from))
    _put(row, "end_timestamp", get_datetime(relationship.properties, "end") or as_utc(relationship.effective_to))
    return row


def project_related_asset(relationship: Relationship, *, sync_time: datetime) -> Row:
    row = _start("relationship_guid", relationship.guid, sync_time)
    row["open_metadata_type"] = relationship.type_name
    row["end1_guid"] = relationship.end1_guid
    _put(row, "end1_attribute_name", relationship.label_at_end1)
    row["end2_guid"] = relationship.end2_guid
    _put(row, "end2_attribute_name", relationship.label_at_end2)
    return row


def project_correlation(element: Element, facts: CorrelationFacts, *, sync_time: datetime) -> Row:
    header = facts.header
    row = _start("element_guid", element.guid, sync_time)
    row["external_scope_guid"] = header.external_scope_guid
    _put(row, "external_scope_name", header.external_scope_name)
    row["home_owned"] = element.origin.origin_category != OriginCategory.EXTERNAL_SOURCE
    row["open_metadata_type"] = element.type_name
    _put(row, "external_identifier", header.external_identifier)
    _put(row, "last_confirmed_sync_time", as_utc(header.last_synchronized))
    _put(row, "creation_by", header.external_instance_created_by)
    _put(row, "creation_by_identity_guid", facts.created_by_identity_guid)
    _put(row, "creation_time", as_utc(header.external_instance_creation_time))
    _put(row, "last_updated_by", header.external_instance_last_updated_by)
    _put(row, "last_updated_by_identity_guid", facts.updated_by_identity_guid)
    _put(row, "last_update_time", as_utc(header.external_instance_last_update_time))
    _put(row, "version", header.external_instance_version)
    if header.mapping_properties:
        row["additional_properties"] = json.dumps(header.mapping_properties, sort_keys=True, default=str)
    return row


def project_collection(
    collection: Element,
    summary: MembershipSummary,
    *,
    sync_time: datetime,
    parent: Optional[Element] = None,
) -> Row:
    row = _start("collection_guid", collection.guid, sync_time)
    row["open_metadata_type"] = collection.type_name
    _put(row, "qualified_name", get_string(collection.properties, "qualifiedName"))
    _put(row, "display_name", display_name_of(collection))
    _put(row, "description", get_string(collection.properties, "description"))
    row["num_members"] = summary.num_members
    row["member_types"] = frame_list(summary.member_types)
    _put(row, "parent_collection_guid", parent.guid if parent else None)
    return row


def project_project(
    project: Element,
    *,
    sync_time: datetime,
    parent: Optional[Element] = None,
    top_project_name: Optional[str] = None,
) -> Row:
    row = _start("project_guid", project.guid, sync_time)
    _put(row, "qualified_name", get_string(project.properties, "qualifiedName"))
    _put(row, "display_name", display_name_of(project))
    _put(row, "description", get_string(project.properties, "description"))
    _put(row, "project_status", get_string(project.properties, "projectStatus"))
    _put(row, "start_date", get_datetime(project.properties, "startDate"))
    _put(row, "planned_end_date", get_datetime(project.properties, "plannedEndDate"))
    _put(row, "parent_project_guid", parent.guid if parent else None)
    _put(row, "top_project_name", top_project_name)
    return row


def project_department(
    team: Element,
    *,
    sync_time: datetime,
    manager_identity_guid: Optional[str] = None,
    parent: Optional[Element] = None,
) -> Row:
    row = _start("department_guid", team.guid, sync_time)
    _put(row, "department_name", display_name_of(team))
    _put(row, "manager_identity_guid", manager_identity_guid)
    _put(row, "parent_department_guid", parent.guid if parent else None)
    return row


def project_role(role: Element, *, sync_time: datetime) -> Row:
    row = _start("role_guid", role.guid, sync_time)
    _put(row, "role_name", get_string(role.properties, "title") or display_name_of(role))
    row["open_metadata_type"] = role.type_name
    _put(row, "headcount", get_int(role.properties, "headCount"))
    return row


def project_role_to_profile(
    relationship: Relationship,
    role_guid: str,
    profile_guid: str,
    *,
    sync_time: datetime,
    user_identity_guid: Optional[str] = None,
) -> Row:
    row = _start("relationship_guid", relationship.guid, sync_time)
    row["role_guid"] = role_guid
    row["profile_guid"] = profile_guid
    _put(row, "user_identity_guid", user_identity_guid)
    _put(row, "start_timestamp", as_utc(relationship.effective_from))
    _put(row, "end_timestamp", as_utc(relationship.effective_to))
    return row


def project_user_identity(
    identity: Element,
    *,
    sync_time: datetime,
    profile: Optional[Element] = None,
    department: Optional[Element] = None,
    location: Optional[Element] = None,
    organization_name: Optional[str] = None,
) -> Row:
    row = _start("user_identity_guid", identity.guid, sync_time)
    _put(row, "user_id", get_string(identity.properties, "userId"))
    _put(row, "distinguished_name", get_string(identity.properties, "distinguishedName"))
    if profile is not None:
        row["profile_guid"] = profile.guid
        _put(row, "employee_number", get_string(profile.properties, "employeeNumber"))
        _put(row, "preferred_name", get_string(profile.properties, "preferredName"))
        _put(row, "resident_country", get_string(profile.properties, "residentCountry"))
    _put(row, "department_guid", department.guid if department else None)
    _put(row, "location_guid", location.guid if location else None)
    _put(row, "organization_name", organization_name)
    return row


def project_contribution(user_identity_guid: str, karma_points: int, *, sync_time: datetime) -> Row:
    row = _start("user_identity_guid", user_identity_guid, sync_time)
    row["karma_points"] = karma_points
    return row


def project_to_do(
    to_do: Element,
    *,
    sync_time: datetime,
    source: Optional[Element] = None,
    actor: Optional[Element] = None,
) -> Row:
    properties = to_do.properties
    row = _start("to_do_guid", to_do.guid, sync_time)
    _put(row, "qualified_name", get_string(properties, "qualifiedName"))
    _put(row, "display_name", get_string(properties, "name") or display_name_of(to_do))
    _put(row, "to_do_type", get_string(properties, "toDoType"))
    _put(row, "creation_time", get_datetime(properties, "creationTime") or as_utc(to_do.versions.create_time))
    _put(row, "priority", get_int(properties, "priority"))
    _put(row, "due_time", get_datetime(properties, "dueTime"))
    _put(row, "last_review_time", get_datetime(properties, "lastReviewTime"))
    _put(row, "completion_time", get_datetime(properties, "completionTime"))
    _put(row, "to_do_status", get_string(properties, "toDoStatus"))
    if source is not None:
        row["to_do_source_guid"] = source.guid
        row["to_do_source_type"] = source.type_name
    if actor is not None:
        row["assigned_actor_guid"] = actor.guid
        row["assigned_actor_type"] = actor.type_name
    return row


# ── Reference rows ─────────────────────────────────────────────────

def project_asset_type(element_type: ElementType) -> Row:
    row = {"open_metadata_type": element_type.type_name}
    _put(row, "type_description", element_type.description or None)
    row["super_types"] = json.dumps(element_type.super_type_names)
    return row


def project_location(location: Element) -> Row:
    row = {"location_guid": location.guid}
    _put(row, "location_name", display_name_of(location))
    row["open_metadata_type"] = location.type_name
    return row


def project_license_type(license_type: Element) -> Row:
    row = {"license_type_guid": license_type.guid}
    _put(row, "license_name", get_string(license_type.properties, "title") or display_name_of(license_type))
    _put(row, "description", get_string(license_type.properties, "description"))
    return row


def project_metadata_collection(origin: ElementOrigin, deployed_implementation_type: Optional[str] = None) -> Row:
    row = {"metadata_collection_id": origin.metadata_collection_id}
    _put(row, "metadata_collection_name", origin.metadata_collection_name)
    row["provenance_type"] = origin.origin_category.value
    _put(row, "deployed_implementation_type", deployed_implementation_type)
    return row


def project_external_user(external_user: str, external_scope_guid: str, user_identity_guid: Optional[str]) -> Row:
    row = {"external_user": external_user, "external_scope_guid": external_scope_guid}
    _put(row, "user_identity_guid", user_identity_guid)
    return row


def project_certification_type(certification_type: Element) -> Row:
    row = {"certification_type_guid": certification_type.guid}
    _put(row, "certification_title", get_string(certification_type.properties, "title") or display_name_of(certification_type))
    _put(row, "certification_summary", get_string(certification_type.properties, "summary"))
    return row


def project_reference_levels() -> list[Row]:
    rows = []
    for classification_name, levels in REFERENCE_LEVELS.items():
        for identifier, display_name, description in levels:
            rows.append(
                {
                    "classification_name": classification_name,
                    "identifier": identifier,
                    "display_name": display_name,
                    "description": description,
                }
            )
    return rows
