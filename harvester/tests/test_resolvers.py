import unittest

from harvester.errors import GraphStoreError
from harvester.graph.memory import InMemoryGraphStore
from harvester.harvest.audit import AuditLog
from harvester.harvest.resolvers import EnrichmentResolvers, count_stars
from harvester.harvest.traversal import TraversalDriver
from harvester.tests.graph_builders import GraphBuilder, build_sample_graph, element


def _resolvers(store, **kwargs) -> EnrichmentResolvers:
    audit = AuditLog()
    traversal = TraversalDriver(store, audit, **kwargs)
    return EnrichmentResolvers(store, traversal, audit)


class _FailingLookupStore:
    async def find_elements_by_exact_property(self, type_name, property_name, value):
        raise GraphStoreError("index offline")


class EnrichmentResolverTests(unittest.IsolatedAsyncioTestCase):
    async def test_tags_are_framed(self) -> None:
        g = GraphBuilder()
        g.add(element("a1", "DataSet"), element("a2", "DataSet"), element("t1", "InformalTag", tagName="a"))
        g.add(element("t2", "InformalTag", tagName="b"))
        g.link("AttachedTag", "a1", "t1")
        g.link("AttachedTag", "a1", "t2")
        resolvers = _resolvers(g.store)

        self.assertEqual(await resolvers.associated_tags("a1"), ":a:b:")
        self.assertEqual(await resolvers.associated_tags("a2"), "::")

    async def test_nested_comment_count_excludes_root(self) -> None:
        g = GraphBuilder()
        g.add(element("root", "Comment"), element("child", "Comment"), element("grandchild", "Comment"))
        g.link("AttachedComment", "root", "child")
        g.link("AttachedComment", "child", "grandchild")
        resolvers = _resolvers(g.store)

        self.assertEqual(await resolvers.count_attached_comments("root"), 2)
        self.assertEqual(await resolvers.count_attached_comments("grandchild"), 0)

    async def test_comment_cycle_terminates(self) -> None:
        g = GraphBuilder()
        g.add(element("c1", "Comment"), element("c2", "Comment"), element("c3", "Comment"))
        g.link("AttachedComment", "c1", "c2")
        g.link("AttachedComment", "c2", "c3")
        g.link("AttachedComment", "c3", "c1")
        resolvers = _resolvers(g.store)

        self.assertEqual(await resolvers.count_attached_comments("c1"), 2)

    async def test_collaboration_counters_on_sample_asset(self) -> None:
        resolvers = _resolvers(build_sample_graph())

        counters = await resolvers.collaboration_counters("asset-1")

        self.assertEqual(counters.num_comments, 3)
        self.assertEqual(counters.num_tags, 2)
        self.assertEqual(counters.num_ratings, 1)
        self.assertEqual(counters.avg_rating, 4)
        self.assertEqual(counters.num_likes, 0)
        self.assertEqual([c.relationship.guid for c in counters.certifications], ["cert-rel-1"])
        self.assertEqual([s.guid for s in counters.schema_types], ["st-1"])
        self.assertEqual([r.guid for r in counters.related_assets], ["asset-link-1"])
        self.assertTrue(counters.has_activity)

    async def test_average_rating_rounds_down(self) -> None:
        g = GraphBuilder()
        g.add(element("a1", "DataSet"), element("r1", "Rating", stars="FiveStar"), element("r2", "Rating", stars="TwoStar"))
        g.link("AttachedRating", "a1", "r1")
        g.link("AttachedRating", "a1", "r2")
        resolvers = _resolvers(g.store)

        counters = await resolvers.collaboration_counters("a1")

        self.assertEqual(counters.total_stars, 7)
        self.assertEqual(counters.avg_rating, 3)

    def test_count_stars(self) -> None:
        self.assertEqual(count_stars("FiveStar"), 5)
        self.assertEqual(count_stars("NotRecommended"), 0)
        self.assertEqual(count_stars("Stellar"), 0)
        self.assertEqual(count_stars(None), 0)

    async def test_user_identity_requires_exact_match(self) -> None:
        g = GraphBuilder()
        g.add(element("u1", "UserIdentity", userId="erin"), element("u2", "UserIdentity", userId="erinoverview"))
        resolvers = _resolvers(g.store)

        self.assertEqual(await resolvers.user_identity_for("erinoverview"), "u2")
        self.assertEqual(await resolvers.user_identity_for("erin"), "u1")
        self.assertIsNone(await resolvers.user_identity_for("Erin"))
        self.assertIsNone(await resolvers.user_identity_for(None))

    async def test_user_identity_lookup_failure_is_audited(self) -> None:
        audit = AuditLog()
        store = _FailingLookupStore()
        resolvers = EnrichmentResolvers(store, TraversalDriver(store, audit), audit)

        self.assertIsNone(await resolvers.user_identity_for("erinoverview"))
        self.assertEqual(audit.total, 1)
        self.assertEqual(audit.records[0].operation, "user_identity_for")

    async def test_team_manager_and_department(self) -> None:
        store = build_sample_graph()
        resolvers = _resolvers(store)

        self.assertEqual(await resolvers.team_manager("team-child"), "user-1")
        self.assertIsNone(await resolvers.team_manager("team-top"))

        department = await resolvers.department_for_profile("person-1")
        self.assertEqual(department.guid, "team-child")
        self.assertEqual(await resolvers.organization_name(department), "Coco Pharmaceuticals")

    async def test_user_identity_for_role_prefers_bound_identity(self) -> None:
        g = GraphBuilder()
        g.add(
            element("person", "Person"),
            element("u-default", "UserIdentity", userId="p1"),
            element("u-role", "UserIdentity", userId="p1-admin"),
        )
        g.link("ProfileIdentity", "person", "u-default")
        g.link("ProfileIdentity", "person", "u-role", roleGUID="role-9")
        resolvers = _resolvers(g.store)

        self.assertEqual(await resolvers.user_identity_for_role("role-9", "person"), "u-role")
        self.assertEqual(await resolvers.user_identity_for_role("role-1", "person"), "u-default")

    async def test_user_identity_for_role_skips_other_roles(self) -> None:
        g = GraphBuilder()
        g.add(
            element("person", "Person"),
            element("u-role", "UserIdentity", userId="p1-admin"),
            element("u-default", "UserIdentity", userId="p1"),
            element("other", "Person"),
        )
        g.link("ProfileIdentity", "person", "u-role", roleGUID="role-9")
        g.link("ProfileIdentity", "person", "u-default")
        g.link("ProfileIdentity", "other", "u-role", roleGUID="role-9")
        resolvers = _resolvers(g.store)

        self.assertEqual(await resolvers.user_identity_for_role("role-1", "person"), "u-default")
        self.assertEqual(await resolvers.user_identity_for_role("role-9", "person"), "u-role")
        self.assertIsNone(await resolvers.user_identity_for_role("role-1", "other"))

    async def test_failed_tag_lookup_is_not_an_empty_tag_set(self) -> None:
        class _TagOutageStore(InMemoryGraphStore):
            async def get_related_elements(self, element_guid, direction, relationship_type, cursor):
                if relationship_type == "AttachedTag":
                    raise GraphStoreError("tag index offline")
                return await super().get_related_elements(element_guid, direction, relationship_type, cursor)

        store = _TagOutageStore([element("a1", "DataSet")])
        resolvers = _resolvers(store)

        self.assertIsNone(await resolvers.associated_tags("a1"))
        self.assertEqual(resolvers.audit.total, 1)
        self.assertEqual(resolvers.audit.records[0].operation, "associated_tags")
        self.assertEqual(resolvers.audit.records[0].exception_class, "GraphStoreError")

    async def test_organization_climb_survives_cycle(self) -> None:
        g = GraphBuilder()
        g.add(element("t1", "Team", displayName="One"), element("t2", "Team", displayName="Two"))
        g.link("TeamStructure", "t1", "t2")
        g.link("TeamStructure", "t2", "t1")
        resolvers = _resolvers(g.store)

        name = await resolvers.organization_name(await g.store.get_element_by_guid("t2"))

        self.assertEqual(name, "One")
        self.assertEqual(resolvers.audit.total, 1)

    async def test_membership_summary_counts_leaves(self) -> None:
        store = build_sample_graph()
        resolvers = _resolvers(store)

        summary = await resolvers.membership_summary(await store.get_element_by_guid("coll-1"), "CollectionMembership")

        self.assertEqual(summary.num_members, 2)
        self.assertEqual(summary.member_types, ("CSVFile", "DataSet"))

    async def test_term_activity_tracks_semantic_assignments(self) -> None:
        resolvers = _resolvers(build_sample_graph())

        activity = await resolvers.term_activity("term-1")

        self.assertEqual(activity.num_linked_elements, 1)
        self.assertIsNotNone(activity.last_linked_time)
        self.assertIsNone(activity.last_feedback_time)


if __name__ == "__main__":
    unittest.main()
