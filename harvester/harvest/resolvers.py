"""Enrichment resolvers: single-purpose lookups that follow relationships outward.

Every resolver answers "not found" with ``None`` (or an empty result) and
absorbs query failures into the audit log. Resolvers only read from the
graph store; none of them touches the relational sink.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from harvester.graph.store import MetadataGraphStore
from harvester.harvest.audit import AuditLog
from harvester.harvest.properties import as_utc, frame_list, get_int, get_string
from harvester.harvest.traversal import TraversalDriver
from harvester.models import (
    CorrelationHeader,
    Direction,
    Element,
    OriginCategory,
    RelatedElement,
    Relationship,
)

logger = logging.getLogger("harvester.resolvers")

# ── Relationship and type names ────────────────────────────────────

ASSET_TYPE = "Asset"
SCHEMA_TYPE = "SchemaType"
SCHEMA_ATTRIBUTE = "SchemaAttribute"
CERTIFICATION_TYPE = "CertificationType"
USER_IDENTITY_TYPE = "UserIdentity"

ASSET_LOCATION = "AssetLocation"
PROFILE_LOCATION = "ProfileLocation"
LICENSE = "License"
ATTACHED_TAG = "AttachedTag"
ATTACHED_LIKE = "AttachedLike"
ATTACHED_RATING = "AttachedRating"
ATTACHED_COMMENT = "AttachedComment"
SEMANTIC_ASSIGNMENT = "SemanticAssignment"
CERTIFICATION = "Certification"
ASSET_SCHEMA_TYPE = "AssetSchemaType"
ASSOCIATED_ANNOTATION = "AssociatedAnnotation"
TEAM_STRUCTURE = "TeamStructure"
TEAM_LEADERSHIP = "TeamLeadership"
TEAM_MEMBERSHIP = "TeamMembership"
PERSON_ROLE_APPOINTMENT = "PersonRoleAppointment"
PROFILE_IDENTITY = "ProfileIdentity"
PERSONAL_CONTRIBUTION = "PersonalContribution"

FEEDBACK_RELATIONSHIPS = frozenset({ATTACHED_TAG, ATTACHED_COMMENT, ATTACHED_RATING, ATTACHED_LIKE})

STAR_RATINGS = {
    "NotRecommended": 0,
    "OneStar": 1,
    "TwoStar": 2,
    "ThreeStar": 3,
    "FourStar": 4,
    "FiveStar": 5,
}


def count_stars(value: object) -> int:
    return STAR_RATINGS.get(str(value), 0) if value is not None else 0


def display_name_of(element: Element) -> Optional[str]:
    for name in ("displayName", "name", "title", "qualifiedName"):
        value = get_string(element.properties, name)
        if value:
            return value
    return None


# ── Resolver outputs ───────────────────────────────────────────────

@dataclass
class AggregateCounters:
    """Feedback counters plus the structural neighbours found in the same scan."""

    num_comments: int = 0
    num_ratings: int = 0
    total_stars: int = 0
    num_tags: int = 0
    num_likes: int = 0
    certifications: list[RelatedElement] = field(default_factory=list)
    schema_types: list[Element] = field(default_factory=list)
    related_assets: list[Relationship] = field(default_factory=list)

    @property
    def avg_rating(self) -> int:
        if self.num_ratings > 0 and self.total_stars > 0:
            return self.total_stars // self.num_ratings
        return 0

    @property
    def has_activity(self) -> bool:
        return any((self.num_comments, self.num_ratings, self.num_tags, self.num_likes))


@dataclass(frozen=True)
class CorrelationFacts:
    header: CorrelationHeader
    created_by_identity_guid: Optional[str] = None
    updated_by_identity_guid: Optional[str] = None


@dataclass(frozen=True)
class TermActivity:
    last_feedback_time: Optional[datetime] = None
    num_linked_elements: int = 0
    last_linked_time: Optional[datetime] = None


@dataclass(frozen=True)
class MembershipSummary:
    num_members: int = 0
    member_types: tuple[str, ...] = ()


class EnrichmentResolvers:
    """Lookups used to enrich an element before projection."""

    COMPONENT = "resolvers"

    def __init__(self, store: MetadataGraphStore, traversal: TraversalDriver, audit: AuditLog):
        self.store = store
        self.traversal = traversal
        self.audit = audit

    def _failed(self, operation: str, element_guid: str, error: Exception) -> None:
        self.audit.log_exception(self.COMPONENT, operation, error, element_guid=element_guid)

    async def _first_element(self, element_guid: str, relationship_type: str, direction: Direction) -> Optional[Element]:
        related = await self.traversal.first_related(element_guid, relationship_type, direction)
        return related.element if related else None

    # ── One-hop lookups ──

    async def associated_location(self, element_guid: str) -> Optional[Element]:
        return await self._first_element(element_guid, ASSET_LOCATION, Direction.ANCESTOR)

    async def profile_location(self, profile_guid: str) -> Optional[Element]:
        return await self._first_element(profile_guid, PROFILE_LOCATION, Direction.DESCENDANT)

    async def associated_license(self, element_guid: str) -> Optional[Element]:
        return await self._first_element(element_guid, LICENSE, Direction.DESCENDANT)

    async def associated_semantic_term(self, element_guid: str) -> Optional[Element]:
        return await self._first_element(element_guid, SEMANTIC_ASSIGNMENT, Direction.DESCENDANT)

    async def hierarchy_parent(
        self,
        element_guid: str,
        hierarchy_relationship_type: str,
    ) -> Optional[Element]:
        return await self._first_element(element_guid, hierarchy_relationship_type, Direction.ANCESTOR)

    async def has_profile(self, element_guid: str) -> bool:
        return await self.traversal.first_related(element_guid, ASSOCIATED_ANNOTATION, Direction.DESCENDANT) is not None

    async def associated_tags(self, element_guid: str) -> Optional[str]:
        """Tag names as ``:a:b:``; ``::`` when untagged; None when the lookup failed."""
        try:
            names = []
            async for related in self.traversal.for_each_related(
                element_guid, ATTACHED_TAG, Direction.DESCENDANT, raise_errors=True
            ):
                name = get_string(related.element.properties, "tagName")
                if name is not None:
                    names.append(name)
            return frame_list(names)
        except Exception as exc:
            self._failed("associated_tags", element_guid, exc)
            return None

    # ── Collaboration scan ──

    async def count_attached_comments(self, comment_guid: str) -> int:
        """Number of comments nested below ``comment_guid`` (excluding itself).

        Each reply counts once. Replies already counted are not revisited,
        so reply loops terminate.
        """
        visited = {comment_guid}
        worklist: list[tuple[str, int]] = [(comment_guid, 0)]
        total = 0
        try:
            while worklist:
                guid, depth = worklist.pop()
                if depth >= self.traversal.max_depth:
                    self.audit.log_warning(
                        self.COMPONENT,
                        "count_attached_comments",
                        f"depth limit {self.traversal.max_depth} reached",
                        element_guid=guid,
                    )
                    continue
                async for related in self.traversal.for_each_related(guid, ATTACHED_COMMENT, Direction.DESCENDANT):
                    reply_guid = related.element.guid
                    if reply_guid in visited:
                        continue
                    visited.add(reply_guid)
                    total += 1
                    worklist.append((reply_guid, depth + 1))
        except Exception as exc:
            self._failed("count_attached_comments", comment_guid, exc)
        return total

    async def collaboration_counters(self, element_guid: str) -> AggregateCounters:
        """Scan every related element once and classify it by relationship type."""
        counters = AggregateCounters()
        try:
            async for related in self.traversal.for_each_related(element_guid, None, Direction.DESCENDANT):
                relationship_type = related.relationship_type
                far = related.element
                if relationship_type == ATTACHED_TAG:
                    counters.num_tags += 1
                elif relationship_type == ATTACHED_LIKE:
                    counters.num_likes += 1
                elif relationship_type == ATTACHED_RATING:
                    counters.num_ratings += 1
                    counters.total_stars += count_stars(far.properties.get("stars"))
                elif relationship_type == ATTACHED_COMMENT:
                    counters.num_comments += 1 + await self.count_attached_comments(far.guid)
                elif relationship_type == CERTIFICATION or far.is_type_of(CERTIFICATION_TYPE):
                    counters.certifications.append(related)
                elif relationship_type == ASSET_SCHEMA_TYPE and far.is_type_of(SCHEMA_TYPE):
                    counters.schema_types.append(far)
                elif far.is_type_of(ASSET_TYPE):
                    counters.related_assets.append(related.relationship)
        except Exception as exc:
            self._failed("collaboration_counters", element_guid, exc)
        return counters

    async def term_activity(self, term_guid: str) -> TermActivity:
        last_feedback: Optional[datetime] = None
        last_link: Optional[datetime] = None
        linked = 0
        try:
            async for related in self.traversal.for_each_related(term_guid, None, Direction.EITHER):
                created = as_utc(related.relationship.versions.create_time)
                if related.relationship_type in FEEDBACK_RELATIONSHIPS:
                    if created and (last_feedback is None or created > last_feedback):
                        last_feedback = created
                elif related.relationship_type == SEMANTIC_ASSIGNMENT:
                    linked += 1
                    if created and (last_link is None or created > last_link):
                        last_link = created
        except Exception as exc:
            self._failed("term_activity", term_guid, exc)
        return TermActivity(last_feedback, linked, last_link)

    # ── Correlation ──

    async def user_identity_for(self, user_id: Optional[str]) -> Optional[str]:
        """Guid of the UserIdentity whose ``userId`` matches exactly."""
        if not user_id:
            return None
        try:
            matches = await self.store.find_elements_by_exact_property(USER_IDENTITY_TYPE, "userId", user_id)
        except Exception as exc:
            self._failed("user_identity_for", user_id, exc)
            return None
        return matches[0].guid if matches else None

    async def correlation_properties(self, element: Element) -> list[CorrelationFacts]:
        facts = []
        for header in element.correlations:
            created = await self.user_identity_for(header.external_instance_created_by)
            updated = await self.user_identity_for(header.external_instance_last_updated_by)
            facts.append(CorrelationFacts(header, created, updated))
        return facts

    async def deployed_implementation_type(self, element: Element) -> Optional[str]:
        """Implementation type of an externally sourced element's home collection."""
        collection_id = element.origin.metadata_collection_id
        if element.origin.origin_category != OriginCategory.EXTERNAL_SOURCE or not collection_id:
            return None
        try:
            capability = await self.store.get_element_by_guid(collection_id)
        except Exception as exc:
            self._failed("deployed_implementation_type", collection_id, exc)
            return None
        if capability is None:
            return None
        return get_string(capability.properties, "deployedImplementationType")

    async def relationship(self, relationship_guid: str) -> Optional[Relationship]:
        try:
            return await self.store.get_relationship_by_guid(relationship_guid)
        except Exception as exc:
            self._failed("relationship", relationship_guid, exc)
            return None

    # ── Hierarchies ──

    async def top_ancestor(self, element: Element, hierarchy_relationship_type: str) -> Element:
        """Climb ``hierarchy_parent`` until it runs out; returns the top-most element."""
        visited = {element.guid}
        current = element
        for _ in range(self.traversal.max_depth):
            parent = await self.hierarchy_parent(current.guid, hierarchy_relationship_type)
            if parent is None:
                return current
            if parent.guid in visited:
                self.audit.log_warning(
                    self.COMPONENT,
                    "top_ancestor",
                    f"{hierarchy_relationship_type} cycle through {parent.guid}",
                    element_guid=element.guid,
                )
                return current
            visited.add(parent.guid)
            current = parent
        self.audit.log_warning(
            self.COMPONENT,
            "top_ancestor",
            f"depth limit {self.traversal.max_depth} reached",
            element_guid=element.guid,
        )
        return current

    async def organization_name(self, team: Element) -> Optional[str]:
        top = await self.top_ancestor(team, TEAM_STRUCTURE)
        return display_name_of(top)

    async def user_identity_for_role(self, role_guid: str, profile_guid: str) -> Optional[str]:
        """User identity of a profile bound to ``role_guid``.

        Falls back to an identity with no role binding. Identities bound to
        another role are never returned.
        """
        default_guid = None
        async for related in self.traversal.for_each_related(profile_guid, PROFILE_IDENTITY, Direction.DESCENDANT):
            bound_role = related.relationship.properties.get("roleGUID")
            if bound_role == role_guid:
                return related.element.guid
            if bound_role is None and default_guid is None:
                default_guid = related.element.guid
        return default_guid

    async def team_manager(self, team_guid: str) -> Optional[str]:
        """User identity of the person appointed to the team's leadership role."""
        leadership = await self.traversal.first_related(team_guid, TEAM_LEADERSHIP, Direction.ANCESTOR)
        if leadership is None:
            return None
        role_guid = leadership.element.guid
        appointment = await self.traversal.first_related(role_guid, PERSON_ROLE_APPOINTMENT, Direction.ANCESTOR)
        if appointment is None:
            return None
        return await self.user_identity_for_role(role_guid, appointment.element.guid)

    async def department_for_profile(self, profile_guid: str) -> Optional[Element]:
        async for appointment in self.traversal.for_each_related(
            profile_guid, PERSON_ROLE_APPOINTMENT, Direction.DESCENDANT
        ):
            role_guid = appointment.element.guid
            team = await self._first_element(role_guid, TEAM_MEMBERSHIP, Direction.DESCENDANT)
            if team is None:
                team = await self._first_element(role_guid, TEAM_LEADERSHIP, Direction.DESCENDANT)
            if team is not None:
                return team
        return None

    async def karma_points(self, profile_guid: str) -> Optional[int]:
        record = await self._first_element(profile_guid, PERSONAL_CONTRIBUTION, Direction.DESCENDANT)
        if record is None:
            return None
        return get_int(record.properties, "karmaPoints")

    # ── Collections ──

    async def membership_summary(self, collection: Element, membership_relationship: str) -> MembershipSummary:
        """Leaf members reachable below ``collection`` and their distinct type names."""
        count = 0
        type_names: set[str] = set()
        try:
            async for member, _depth in self.traversal.descend(collection, (membership_relationship,)):
                count += 1
                type_names.add(member.type_name)
        except Exception as exc:
            self._failed("membership_summary", collection.guid, exc)
        return MembershipSummary(count, tuple(sorted(type_names)))
