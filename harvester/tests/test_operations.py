import unittest

from harvester.harvest.operations import OperationTracker


class OperationTrackerTests(unittest.IsolatedAsyncioTestCase):
    async def test_lifecycle(self) -> None:
        tracker = OperationTracker()
        op_id = await tracker.start("refresh", "api")

        await tracker.update(op_id, phase="DataAsset", counters={"rowsInserted": 2})
        running = await tracker.snapshot()
        await tracker.finish(op_id, status="completed", duration_ms=12, stats={"rows_inserted": 2})
        done = await tracker.get(op_id)

        self.assertEqual(running["activeOperationCount"], 1)
        self.assertEqual(running["activeOperations"][0]["phase"], "DataAsset")
        self.assertEqual(done["status"], "completed")
        self.assertEqual(done["counters"], {"rowsInserted": 2})
        self.assertEqual(done["stats"]["rows_inserted"], 2)
        self.assertTrue(done["finishedAt"])
        self.assertEqual((await tracker.snapshot())["activeOperationCount"], 0)

    async def test_history_is_bounded_and_newest_first(self) -> None:
        tracker = OperationTracker(max_history=3)
        ids = [await tracker.start("refresh", f"t{i}") for i in range(5)]

        recent = await tracker.recent(limit=10)

        self.assertEqual([op["id"] for op in recent], list(reversed(ids[2:])))
        self.assertIsNone(await tracker.get(ids[0]))

    async def test_snapshots_are_copies(self) -> None:
        tracker = OperationTracker()
        op_id = await tracker.start("refresh", "api")

        (await tracker.get(op_id))["counters"]["rowsInserted"] = 99

        self.assertEqual((await tracker.get(op_id))["counters"], {})

    async def test_unknown_operation_is_ignored(self) -> None:
        tracker = OperationTracker()

        await tracker.update("OP-missing", phase="commit")
        await tracker.finish(None, status="failed", duration_ms=0, error="boom")

        self.assertEqual(await tracker.recent(), [])


if __name__ == "__main__":
    unittest.main()
