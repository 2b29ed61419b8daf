"""Per-type harvest processors.

Each processor gathers facts through the resolvers, projects rows and hands
them to the run's ``HistoryWriter``. Graph failures are absorbed by the
resolvers and traversal; sink failures propagate to the engine.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from harvester.db import schema
from harvester.harvest import projector
from harvester.harvest.audit import AuditLog
from harvester.harvest.resolvers import (
    ASSET_TYPE,
    PERSON_ROLE_APPOINTMENT,
    PROFILE_IDENTITY,
    SCHEMA_ATTRIBUTE,
    TEAM_STRUCTURE,
    EnrichmentResolvers,
    display_name_of,
)
from harvester.harvest.traversal import TraversalDriver
from harvester.harvest.writer import HistoryWriter
from harvester.models import Direction, Element

logger = logging.getLogger("harvester.processors")

CATEGORY_ANCHOR = "CategoryAnchor"
TERM_ANCHOR = "TermAnchor"
TERM_CATEGORIZATION = "TermCategorization"
COLLECTION_MEMBERSHIP = "CollectionMembership"
PROJECT_HIERARCHY = "ProjectHierarchy"
TO_DO_SOURCE = "ToDoSource"
ACTION_ASSIGNMENT = "ActionAssignment"

SCHEMA_CHILD_RELATIONSHIPS = (
    "AttributeForSchema",
    "NestedSchemaAttribute",
    "SchemaAttributeType",
    "SchemaTypeOption",
)


@dataclass
class HarvestContext:
    """Collaborators for one run."""

    writer: HistoryWriter
    resolvers: EnrichmentResolvers
    traversal: TraversalDriver
    audit: AuditLog
    clock: Callable[[], datetime]
    processed: Counter = field(default_factory=Counter)


# ── Shared steps ───────────────────────────────────────────────────

async def _sync_metadata_collection(ctx: HarvestContext, element: Element) -> None:
    if not element.origin.metadata_collection_id:
        return
    deployed_type = await ctx.resolvers.deployed_implementation_type(element)
    await ctx.writer.sync_reference_row(
        schema.METADATA_COLLECTION,
        projector.project_metadata_collection(element.origin, deployed_type),
    )


async def _sync_correlations(ctx: HarvestContext, element: Element) -> None:
    for facts in await ctx.resolvers.correlation_properties(element):
        header = facts.header
        for user, identity_guid in (
            (header.external_instance_created_by, facts.created_by_identity_guid),
            (header.external_instance_last_updated_by, facts.updated_by_identity_guid),
        ):
            if user:
                await ctx.writer.sync_reference_row(
                    schema.EXTERNAL_USER,
                    projector.project_external_user(user, header.external_scope_guid, identity_guid),
                )
        await ctx.writer.sync_row(
            schema.CORRELATION_PROPERTIES,
            projector.project_correlation(element, facts, sync_time=ctx.clock()),
        )


async def _sync_version_users(ctx: HarvestContext, element: Element) -> None:
    """Map the creator, last updater and maintainers to user identities."""
    if not element.origin.metadata_collection_id:
        return
    versions = element.versions
    user_ids = [versions.created_by, versions.updated_by, *versions.maintained_by]
    for user_id in dict.fromkeys(u for u in user_ids if u):
        identity_guid = await ctx.resolvers.user_identity_for(user_id)
        await ctx.writer.sync_reference_row(
            schema.EXTERNAL_USER,
            projector.project_external_user(user_id, element.origin.metadata_collection_id, identity_guid),
        )


async def _sync_associated_elements(
    ctx: HarvestContext,
    element: Element,
    owning_asset: Element | None = None,
    *,
    descend_schema: bool = True,
) -> None:
    """Version users, correlations, feedback counters, certifications, related assets and schema."""
    await _sync_version_users(ctx, element)
    await _sync_correlations(ctx, element)

    counters = await ctx.resolvers.collaboration_counters(element.guid)
    if counters.has_activity:
        await ctx.writer.sync_row(
            schema.COLLABORATION_ACTIVITY,
            projector.project_collaboration(element.guid, counters, sync_time=ctx.clock()),
        )

    for certification in counters.certifications:
        certification_type = certification.element
        await ctx.writer.sync_reference_row(
            schema.CERTIFICATION_TYPE,
            projector.project_certification_type(certification_type),
        )
        await ctx.writer.sync_row(
            schema.CERTIFICATION,
            projector.project_certification(
                certification.relationship,
                element.guid,
                certification_type.guid,
                sync_time=ctx.clock(),
            ),
        )

    related_assets = counters.related_assets if element.is_type_of(ASSET_TYPE) else []
    for relationship in related_assets:
        full = await ctx.resolvers.relationship(relationship.guid) or relationship
        await ctx.writer.sync_row(
            schema.RELATED_ASSET,
            projector.project_related_asset(full, sync_time=ctx.clock()),
        )

    if descend_schema and owning_asset is not None:
        for schema_type in counters.schema_types:
            await _process_schema_type(ctx, schema_type, owning_asset)


async def _process_schema_type(ctx: HarvestContext, schema_type: Element, asset: Element) -> None:
    async for attribute, _depth in ctx.traversal.descend(
        schema_type,
        SCHEMA_CHILD_RELATIONSHIPS,
        leaf_filter=lambda node: node.is_type_of(SCHEMA_ATTRIBUTE),
    ):
        semantic_term = await ctx.resolvers.associated_semantic_term(attribute.guid)
        has_profile = await ctx.resolvers.has_profile(attribute.guid)
        tags = await ctx.resolvers.associated_tags(attribute.guid)
        await ctx.writer.sync_row(
            schema.DATA_FIELD,
            projector.project_data_field(
                attribute,
                asset,
                sync_time=ctx.clock(),
                semantic_term=semantic_term,
                has_profile=has_profile,
                tags=tags,
            ),
        )
        ctx.processed["SchemaAttribute"] += 1
        await _sync_associated_elements(ctx, attribute, asset, descend_schema=False)


# ── Top-level processors ───────────────────────────────────────────

async def process_data_asset(ctx: HarvestContext, asset: Element) -> None:
    resolvers = ctx.resolvers
    location = await resolvers.associated_location(asset.guid)
    license_type = await resolvers.associated_license(asset.guid)
    tags = await resolvers.associated_tags(asset.guid)
    semantic_term = await resolvers.associated_semantic_term(asset.guid)

    await ctx.writer.sync_reference_row(schema.ASSET_TYPE, projector.project_asset_type(asset.type))
    if location is not None:
        await ctx.writer.sync_reference_row(schema.LOCATION, projector.project_location(location))
    if license_type is not None:
        await ctx.writer.sync_reference_row(schema.LICENSE_TYPE, projector.project_license_type(license_type))
    await _sync_metadata_collection(ctx, asset)

    await ctx.writer.sync_row(
        schema.ASSET,
        projector.project_asset(
            asset,
            sync_time=ctx.clock(),
            location=location,
            license_type=license_type,
            tags=tags,
            semantic_term=semantic_term,
        ),
    )
    await _sync_associated_elements(ctx, asset, asset)


async def _process_glossary_term(ctx: HarvestContext, term: Element, glossary_guid: str) -> None:
    activity = await ctx.resolvers.term_activity(term.guid)
    await ctx.writer.sync_row(
        schema.TERM_ACTIVITY,
        projector.project_term_activity(term, glossary_guid, activity, sync_time=ctx.clock()),
    )
    ctx.processed["GlossaryTerm"] += 1
    await _sync_associated_elements(ctx, term, descend_schema=False)


async def process_glossary(ctx: HarvestContext, glossary: Element) -> None:
    traversal = ctx.traversal
    num_categories = 0
    num_linked_terms = 0
    async for category in traversal.for_each_related(glossary.guid, CATEGORY_ANCHOR, Direction.DESCENDANT):
        num_categories += 1
        async for _ in traversal.for_each_related(category.element.guid, TERM_CATEGORIZATION, Direction.DESCENDANT):
            num_linked_terms += 1

    num_terms = 0
    async for term in traversal.for_each_related(glossary.guid, TERM_ANCHOR, Direction.DESCENDANT):
        num_terms += 1
        await _process_glossary_term(ctx, term.element, glossary.guid)

    license_type = await ctx.resolvers.associated_license(glossary.guid)
    if license_type is not None:
        await ctx.writer.sync_reference_row(schema.LICENSE_TYPE, projector.project_license_type(license_type))
    await _sync_metadata_collection(ctx, glossary)

    await ctx.writer.sync_row(
        schema.GLOSSARY,
        projector.project_glossary(
            glossary,
            sync_time=ctx.clock(),
            num_terms=num_terms,
            num_categories=num_categories,
            num_linked_terms=num_linked_terms,
            license_type=license_type,
        ),
    )


async def process_collection(ctx: HarvestContext, collection: Element) -> None:
    summary = await ctx.resolvers.membership_summary(collection, COLLECTION_MEMBERSHIP)
    parent = await ctx.resolvers.hierarchy_parent(collection.guid, COLLECTION_MEMBERSHIP)
    await ctx.writer.sync_row(
        schema.COLLECTION,
        projector.project_collection(collection, summary, sync_time=ctx.clock(), parent=parent),
    )


async def process_project(ctx: HarvestContext, project: Element) -> None:
    parent = await ctx.resolvers.hierarchy_parent(project.guid, PROJECT_HIERARCHY)
    top = await ctx.resolvers.top_ancestor(project, PROJECT_HIERARCHY) if parent is not None else project
    await ctx.writer.sync_row(
        schema.PROJECT,
        projector.project_project(
            project,
            sync_time=ctx.clock(),
            parent=parent,
            top_project_name=display_name_of(top),
        ),
    )


async def process_team(ctx: HarvestContext, team: Element) -> None:
    parent = await ctx.resolvers.hierarchy_parent(team.guid, TEAM_STRUCTURE)
    manager = await ctx.resolvers.team_manager(team.guid)
    await ctx.writer.sync_row(
        schema.DEPARTMENT,
        projector.project_department(team, sync_time=ctx.clock(), manager_identity_guid=manager, parent=parent),
    )


async def process_to_do(ctx: HarvestContext, to_do: Element) -> None:
    source = await ctx.traversal.first_related(to_do.guid, TO_DO_SOURCE, Direction.ANCESTOR)
    actor = await ctx.traversal.first_related(to_do.guid, ACTION_ASSIGNMENT, Direction.ANCESTOR)
    await ctx.writer.sync_row(
        schema.TO_DO,
        projector.project_to_do(
            to_do,
            sync_time=ctx.clock(),
            source=source.element if source else None,
            actor=actor.element if actor else None,
        ),
    )


async def process_person_role(ctx: HarvestContext, role: Element) -> None:
    await ctx.writer.sync_row(schema.ROLE, projector.project_role(role, sync_time=ctx.clock()))
    async for appointment in ctx.traversal.for_each_related(role.guid, PERSON_ROLE_APPOINTMENT, Direction.ANCESTOR):
        profile = appointment.element
        identity_guid = await ctx.resolvers.user_identity_for_role(role.guid, profile.guid)
        await ctx.writer.sync_row(
            schema.ROLE_TO_PROFILE,
            projector.project_role_to_profile(
                appointment.relationship,
                role.guid,
                profile.guid,
                sync_time=ctx.clock(),
                user_identity_guid=identity_guid,
            ),
        )


async def process_user_identity(ctx: HarvestContext, identity: Element) -> None:
    resolvers = ctx.resolvers
    profile_view = await ctx.traversal.first_related(identity.guid, PROFILE_IDENTITY, Direction.ANCESTOR)
    profile = profile_view.element if profile_view else None
    location = department = None
    organization_name = None
    if profile is not None:
        location = await resolvers.profile_location(profile.guid)
        department = await resolvers.department_for_profile(profile.guid)
        if department is not None:
            organization_name = await resolvers.organization_name(department)
    if location is not None:
        await ctx.writer.sync_reference_row(schema.LOCATION, projector.project_location(location))

    await ctx.writer.sync_row(
        schema.USER_IDENTITY,
        projector.project_user_identity(
            identity,
            sync_time=ctx.clock(),
            profile=profile,
            department=department,
            location=location,
            organization_name=organization_name,
        ),
    )

    if profile is not None:
        karma_points = await resolvers.karma_points(profile.guid)
        if karma_points is not None:
            await ctx.writer.sync_row(
                schema.CONTRIBUTION,
                projector.project_contribution(identity.guid, karma_points, sync_time=ctx.clock()),
            )
