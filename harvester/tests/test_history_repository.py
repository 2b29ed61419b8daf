import unittest
from datetime import datetime, timedelta, timezone

import aiosqlite

from harvester.db import schema
from harvester.db.factory import get_history_repository
from harvester.db.migrations import run_migrations
from harvester.db.repositories.history import SqliteHistoryRepository
from harvester.errors import SchemaError


class SqliteHistoryRepositoryTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = await aiosqlite.connect(":memory:")
        self.db.row_factory = aiosqlite.Row
        await run_migrations(self.db)
        self.repo = SqliteHistoryRepository(self.db)

    async def asyncTearDown(self) -> None:
        await self.db.close()

    async def test_factory_returns_sqlite_repository(self) -> None:
        self.assertIsInstance(get_history_repository(self.db), SqliteHistoryRepository)

    async def test_migrations_are_idempotent(self) -> None:
        await run_migrations(self.db)
        await run_migrations(self.db)

        async with self.db.execute("SELECT COUNT(*) FROM schema_version") as cur:
            (versions,) = await cur.fetchone()
        self.assertEqual(versions, 1)
        for table in schema.ALL_TABLES:
            self.assertEqual(await self.repo.count_rows(table), 0)

    async def test_migrations_add_missing_columns(self) -> None:
        await self.db.execute("DROP TABLE om_contribution")
        await self.db.execute("CREATE TABLE om_contribution (user_identity_guid TEXT NOT NULL, sync_time TEXT)")
        await self.db.commit()

        await run_migrations(self.db)

        async with self.db.execute("PRAGMA table_info(om_contribution)") as cur:
            columns = {row[1] for row in await cur.fetchall()}
        self.assertIn("karma_points", columns)

    async def test_unknown_connection_type_is_schema_error(self) -> None:
        with self.assertRaises(SchemaError):
            await run_migrations(object())

    async def test_latest_row_is_decoded(self) -> None:
        first = datetime(2025, 5, 1, 12, 0, tzinfo=timezone.utc)
        await self.repo.insert_row(
            schema.DATA_FIELD,
            {"data_field_guid": "f1", "data_field_name": "old", "has_profile": False, "sync_time": first},
        )
        await self.repo.insert_row(
            schema.DATA_FIELD,
            {
                "data_field_guid": "f1",
                "data_field_name": "new",
                "has_profile": True,
                "confidentiality_level": 3,
                "sync_time": first + timedelta(hours=1),
            },
        )
        await self.db.commit()

        latest = await self.repo.get_latest_row(schema.DATA_FIELD, {"data_field_guid": "f1"})

        self.assertEqual(latest["data_field_name"], "new")
        self.assertIs(latest["has_profile"], True)
        self.assertEqual(latest["confidentiality_level"], 3)
        self.assertEqual(latest["sync_time"], first + timedelta(hours=1))
        self.assertIsNone(latest["semantic_term_guid"])
        self.assertIsNone(await self.repo.get_latest_row(schema.DATA_FIELD, {"data_field_guid": "missing"}))

    async def test_composite_key_lookup(self) -> None:
        now = datetime(2025, 5, 1, tzinfo=timezone.utc)
        for scope, identifier in (("ext-1", "a"), ("ext-2", "b")):
            await self.repo.insert_row(
                schema.CORRELATION_PROPERTIES,
                {
                    "element_guid": "e1",
                    "external_scope_guid": scope,
                    "external_identifier": identifier,
                    "home_owned": True,
                    "sync_time": now,
                },
            )

        latest = await self.repo.get_latest_row(
            schema.CORRELATION_PROPERTIES, {"element_guid": "e1", "external_scope_guid": "ext-2"}
        )

        self.assertEqual(latest["external_identifier"], "b")

    async def test_reference_rows_insert_or_ignore(self) -> None:
        row = {"location_guid": "loc-1", "location_name": "Hospital", "open_metadata_type": "Location"}

        self.assertTrue(await self.repo.insert_reference_row(schema.LOCATION, row))
        self.assertFalse(await self.repo.insert_reference_row(schema.LOCATION, {**row, "location_name": "Clinic"}))

        async with self.db.execute("SELECT location_name FROM om_location") as cur:
            rows = await cur.fetchall()
        self.assertEqual([r["location_name"] for r in rows], ["Hospital"])

    async def test_unknown_column_is_rejected(self) -> None:
        with self.assertRaises(KeyError):
            await self.repo.insert_row(schema.CONTRIBUTION, {"user_identity_guid": "u1", "bogus": 1})

    async def test_rollback_discards_transaction(self) -> None:
        await self.repo.begin()
        await self.repo.insert_row(
            schema.CONTRIBUTION,
            {"user_identity_guid": "u1", "karma_points": 5, "sync_time": datetime.now(timezone.utc)},
        )
        await self.repo.rollback()

        self.assertEqual(await self.repo.count_rows(schema.CONTRIBUTION), 0)


if __name__ == "__main__":
    unittest.main()
