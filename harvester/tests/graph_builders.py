"""Helpers for building small metadata graphs in tests."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from harvester.graph.memory import InMemoryGraphStore
from harvester.models import (
    CorrelationHeader,
    Element,
    ElementClassification,
    ElementOrigin,
    ElementType,
    ElementVersions,
    Relationship,
)

CREATED = datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)


def element(
    guid: str,
    type_name: str,
    super_types: Iterable[str] = (),
    *,
    classifications: dict[str, dict[str, Any]] | None = None,
    origin: ElementOrigin | None = None,
    created_by: str | None = "garygeeke",
    updated_by: str | None = None,
    maintained_by: list[str] | None = None,
    correlations: list[CorrelationHeader] | None = None,
    **properties: Any,
) -> Element:
    return Element(
        guid=guid,
        type=ElementType(type_name=type_name, super_type_names=list(super_types)),
        properties=properties,
        classifications=[
            ElementClassification(name=name, properties=props)
            for name, props in (classifications or {}).items()
        ],
        origin=origin or ElementOrigin(),
        versions=ElementVersions(
            created_by=created_by,
            create_time=CREATED,
            updated_by=updated_by,
            maintained_by=maintained_by or [],
        ),
        correlations=correlations or [],
    )


def relationship(
    guid: str,
    type_name: str,
    end1: str,
    end2: str,
    *,
    created: datetime | None = None,
    **properties: Any,
) -> Relationship:
    return Relationship(
        guid=guid,
        type=ElementType(type_name=type_name),
        end1_guid=end1,
        end2_guid=end2,
        properties=properties,
        versions=ElementVersions(create_time=created or CREATED),
    )


class GraphBuilder:
    """Accumulates elements and relationships, then builds a store."""

    def __init__(self) -> None:
        self.store = InMemoryGraphStore()
        self._rel_seq = 0

    def add(self, *elements: Element) -> "GraphBuilder":
        for item in elements:
            self.store.add_element(item)
        return self

    def link(self, type_name: str, end1: str, end2: str, guid: str | None = None, **kwargs: Any) -> Relationship:
        self._rel_seq += 1
        rel = relationship(guid or f"rel-{self._rel_seq}", type_name, end1, end2, **kwargs)
        self.store.add_relationship(rel)
        return rel


ASSET_SUPERS = ("DataAsset", "Asset", "Referenceable")


def build_sample_graph() -> InMemoryGraphStore:
    """A graph that touches every top-level processor."""
    g = GraphBuilder()
    g.add(
        element(
            "asset-1",
            "CSVFile",
            ("DataFile", *ASSET_SUPERS),
            classifications={
                "Ownership": {"owner": "user-1", "ownerTypeName": "UserIdentity"},
                "ConfidentialityLevel": {"statusIdentifier": 2},
                "AssetZoneMembership": {"zoneMembership": ["quarantine", "data-lake"]},
            },
            origin=ElementOrigin(metadata_collection_id="mc-1", metadata_collection_name="cocoMDS1"),
            updated_by="erinoverview",
            maintained_by=["erinoverview", "peterprofile"],
            correlations=[
                CorrelationHeader(
                    external_scope_guid="ext-1",
                    external_scope_name="Catalog",
                    external_identifier="csv-001",
                    external_instance_created_by="erinoverview",
                    external_instance_version=3,
                )
            ],
            qualifiedName="file://data/weekly.csv",
            name="weekly.csv",
            displayName="Weekly Measurements",
            description="Weekly patient measurements",
        ),
        element("asset-2", "DataSet", ASSET_SUPERS, qualifiedName="dataset://weekly", name="Weekly"),
        element("loc-1", "Location", qualifiedName="loc://hospital", displayName="Hospital"),
        element("tag-a", "InformalTag", tagName="a"),
        element("tag-b", "InformalTag", tagName="b"),
        element("c1", "Comment", text="root"),
        element("c2", "Comment", text="reply"),
        element("c3", "Comment", text="reply to reply"),
        element("r1", "Rating", stars="FourStar"),
        element("cert-type-1", "CertificationType", title="Data Quality"),
        element("st-1", "TabularSchemaType", ("ComplexSchemaType", "SchemaType")),
        element("col-1", "TabularColumn", ("SchemaAttribute",), displayName="patient_id"),
        element("col-2", "TabularColumn", ("SchemaAttribute",), displayName="weight"),
        element("glossary-1", "Glossary", qualifiedName="glossary://clinical", displayName="Clinical"),
        element("cat-1", "GlossaryCategory", displayName="Patients"),
        element("term-1", "GlossaryTerm", displayName="Patient Id", qualifiedName="term://patient-id"),
        element("team-top", "Team", displayName="Coco Pharmaceuticals"),
        element("team-child", "Team", displayName="Clinical Trials"),
        element("role-1", "PersonRole", title="Trial Lead", headCount=1),
        element("person-1", "Person", employeeNumber="E-104", preferredName="Erin"),
        element("user-1", "UserIdentity", userId="erinoverview", distinguishedName="cn=erin"),
        element("todo-1", "ToDo", name="Review weekly file", priority=2, toDoStatus="OPEN"),
        element("coll-1", "Collection", displayName="Trial Data"),
        element("coll-2", "Collection", displayName="Raw Files"),
        element("proj-parent", "Project", displayName="Drug Trial Program"),
        element("proj-child", "Project", displayName="Weekly Measurements Project"),
    )
    g.link("AssetLocation", "loc-1", "asset-1")
    g.link("AttachedTag", "asset-1", "tag-a")
    g.link("AttachedTag", "asset-1", "tag-b")
    g.link("AttachedComment", "asset-1", "c1")
    g.link("AttachedComment", "c1", "c2")
    g.link("AttachedComment", "c2", "c3")
    g.link("AttachedRating", "asset-1", "r1")
    g.link("Certification", "asset-1", "cert-type-1", guid="cert-rel-1")
    g.link("AssetSchemaType", "asset-1", "st-1")
    g.link("AttributeForSchema", "st-1", "col-1")
    g.link("AttributeForSchema", "st-1", "col-2")
    g.link("DataContentForDataSet", "asset-1", "asset-2", guid="asset-link-1")
    g.link("TermAnchor", "glossary-1", "term-1")
    g.link("CategoryAnchor", "glossary-1", "cat-1")
    g.link("TermCategorization", "cat-1", "term-1")
    g.link("SemanticAssignment", "col-1", "term-1")
    g.link("TeamStructure", "team-top", "team-child")
    g.link("TeamLeadership", "role-1", "team-child")
    g.link("PersonRoleAppointment", "person-1", "role-1", guid="appointment-1")
    g.link("ProfileIdentity", "person-1", "user-1")
    g.link("ActionAssignment", "role-1", "todo-1")
    g.link("CollectionMembership", "coll-1", "asset-2")
    g.link("CollectionMembership", "coll-1", "coll-2")
    g.link("CollectionMembership", "coll-2", "asset-1")
    g.link("ProjectHierarchy", "proj-parent", "proj-child")
    return g.store
