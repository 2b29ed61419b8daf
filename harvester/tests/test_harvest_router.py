import types
import unittest

from fastapi import BackgroundTasks, HTTPException

from harvester.errors import SinkError
from harvester.routers import harvest as harvest_router


class _FakeHarvestEngine:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.started_ops: list[dict] = []
        self.refresh_calls: list[dict] = []
        self.last_stats = {"rows_inserted": 4}

    async def get_observability_snapshot(self):
        return {"activeOperationCount": 0, "activeOperations": [], "recentOperations": [], "trackedOperationCount": 1}

    async def list_operations(self, limit=20):
        return [{"id": "OP-1", "status": "completed"}, {"id": "OP-0", "status": "failed"}][:limit]

    async def get_operation(self, operation_id):
        if operation_id == "OP-404":
            return None
        return {"id": operation_id, "status": "completed"}

    async def start_operation(self, kind, trigger="api"):
        self.started_ops.append({"kind": kind, "trigger": trigger})
        return "OP-STARTED"

    async def refresh(self, operation_id=None, trigger="api"):
        self.refresh_calls.append({"operation_id": operation_id, "trigger": trigger})
        if self.fail:
            raise SinkError("Unable to insert om_asset row", operation="insert_row")
        return {"operation_id": operation_id or "OP-FOREGROUND", "rows_inserted": 3}


class HarvestRouterTests(unittest.IsolatedAsyncioTestCase):
    def _request(self, engine):
        return types.SimpleNamespace(
            app=types.SimpleNamespace(
                state=types.SimpleNamespace(harvest_engine=engine)
            )
        )

    async def test_status_includes_observability(self) -> None:
        payload = await harvest_router.get_harvest_status(self._request(_FakeHarvestEngine()))

        self.assertEqual(payload["status"], "active")
        self.assertEqual(payload["lastStats"]["rows_inserted"], 4)
        self.assertIn("operations", payload)

    async def test_missing_engine_is_503(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            await harvest_router.get_harvest_status(self._request(None))

        self.assertEqual(ctx.exception.status_code, 503)

    async def test_operations_listing_and_lookup(self) -> None:
        request = self._request(_FakeHarvestEngine())

        listing = await harvest_router.list_harvest_operations(request, limit=1)
        operation = await harvest_router.get_harvest_operation(request, "OP-1")
        with self.assertRaises(HTTPException) as ctx:
            await harvest_router.get_harvest_operation(request, "OP-404")

        self.assertEqual(listing["count"], 1)
        self.assertEqual(operation["id"], "OP-1")
        self.assertEqual(ctx.exception.status_code, 404)

    async def test_refresh_background_returns_operation_id(self) -> None:
        engine = _FakeHarvestEngine()
        background = BackgroundTasks()

        payload = await harvest_router.trigger_refresh(
            self._request(engine),
            background,
            harvest_router.RefreshRequest(background=True, trigger="api"),
        )

        self.assertEqual(payload["operationId"], "OP-STARTED")
        self.assertEqual(payload["mode"], "background")
        self.assertEqual(len(background.tasks), 1)
        self.assertEqual(engine.started_ops[0]["kind"], "refresh")
        self.assertEqual(engine.refresh_calls, [])

    async def test_background_refresh_runs_with_started_operation(self) -> None:
        engine = _FakeHarvestEngine(fail=True)

        await harvest_router._run_background_refresh(engine, "OP-STARTED", "api")

        self.assertEqual(engine.refresh_calls, [{"operation_id": "OP-STARTED", "trigger": "api"}])

    async def test_refresh_foreground_returns_stats(self) -> None:
        engine = _FakeHarvestEngine()

        payload = await harvest_router.trigger_refresh(
            self._request(engine),
            BackgroundTasks(),
            harvest_router.RefreshRequest(background=False, trigger="manual"),
        )

        self.assertEqual(payload["mode"], "foreground")
        self.assertEqual(payload["stats"]["rows_inserted"], 3)
        self.assertEqual(payload["operation"]["id"], "OP-FOREGROUND")
        self.assertEqual(engine.refresh_calls[0]["trigger"], "manual")

    async def test_refresh_foreground_failure_is_500(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            await harvest_router.trigger_refresh(
                self._request(_FakeHarvestEngine(fail=True)),
                BackgroundTasks(),
                harvest_router.RefreshRequest(background=False),
            )

        self.assertEqual(ctx.exception.status_code, 500)
        self.assertIn("om_asset", ctx.exception.detail)


if __name__ == "__main__":
    unittest.main()
