import tempfile
import unittest
from pathlib import Path

from harvester.errors import GraphStoreError
from harvester.graph.memory import InMemoryGraphStore
from harvester.graph.store import PageCursor
from harvester.models import Direction, OriginCategory

SNAPSHOT = """
elements:
  - guid: asset-1
    type:
      type_name: CSVFile
      super_type_names: [DataFile, DataAsset, Asset]
    properties:
      qualifiedName: file://weekly.csv
    origin:
      metadata_collection_id: mc-1
      origin_category: EXTERNAL_SOURCE
    versions:
      created_by: erinoverview
      create_time: 2025-03-01T09:30:00Z
  - guid: user-1
    type:
      type_name: UserIdentity
    properties:
      userId: erinoverview
  - guid: tag-1
    type:
      type_name: InformalTag
    properties:
      tagName: weekly
relationships:
  - guid: rel-1
    type:
      type_name: AttachedTag
    end1_guid: asset-1
    end2_guid: tag-1
"""


class InMemoryGraphStoreTests(unittest.IsolatedAsyncioTestCase):
    async def test_snapshot_loads_elements_and_relationships(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "graph.yaml"
            path.write_text(SNAPSHOT, encoding="utf-8")
            store = InMemoryGraphStore.from_snapshot(path)

        assets = await store.get_elements_by_type("DataAsset", PageCursor(0, 10))
        self.assertEqual([a.guid for a in assets], ["asset-1"])
        self.assertEqual(assets[0].origin.origin_category, OriginCategory.EXTERNAL_SOURCE)
        self.assertIsNotNone(assets[0].versions.create_time.tzinfo)

        tags = await store.get_related_elements("asset-1", Direction.DESCENDANT, "AttachedTag", PageCursor())
        self.assertEqual(tags[0].element.properties["tagName"], "weekly")

        users = await store.find_elements_by_exact_property("UserIdentity", "userId", "erinoverview")
        self.assertEqual([u.guid for u in users], ["user-1"])
        self.assertEqual((await store.get_relationship_by_guid("rel-1")).end2_guid, "tag-1")

    async def test_empty_snapshot(self) -> None:
        store = InMemoryGraphStore.from_dict({})

        self.assertEqual(await store.get_elements_by_type("DataAsset", PageCursor()), [])

    async def test_invalid_cursor_raises(self) -> None:
        store = InMemoryGraphStore()

        with self.assertRaises(GraphStoreError):
            await store.get_elements_by_type("DataAsset", PageCursor(-1, 10))

    def test_replace_requires_existing_element(self) -> None:
        store = InMemoryGraphStore.from_dict({"elements": [{"guid": "a", "type": {"type_name": "DataSet"}}]})

        with self.assertRaises(KeyError):
            store.replace_element(store._elements["a"].model_copy(update={"guid": "b"}))

    def test_cursor_advances_by_page(self) -> None:
        self.assertEqual(PageCursor(0, 25).next(), PageCursor(25, 25))


if __name__ == "__main__":
    unittest.main()
