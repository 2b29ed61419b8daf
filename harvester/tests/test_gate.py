import unittest
from datetime import datetime, timezone

from harvester.harvest.gate import GateDecision, decide, new_information


class UpsertGateTests(unittest.TestCase):
    def test_no_latest_row_means_insert(self) -> None:
        self.assertTrue(new_information(None, {"asset_guid": "a1"}))
        self.assertEqual(decide(None, {"asset_guid": "a1"}), GateDecision.INSERT)

    def test_empty_candidate_is_always_skipped(self) -> None:
        self.assertFalse(new_information(None, {}))
        self.assertFalse(new_information({"asset_guid": "a1"}, {}))
        self.assertFalse(new_information({"asset_guid": "a1"}, None))

    def test_identical_rows_are_skipped(self) -> None:
        row = {"asset_guid": "a1", "display_name": "Weekly", "confidentiality_level": 2}
        self.assertEqual(decide(dict(row), dict(row)), GateDecision.SKIP)

    def test_column_only_in_candidate_is_not_a_change(self) -> None:
        latest = {"A": 1, "B": 2}
        candidate = {"A": 1, "B": 2, "C": 3}
        self.assertFalse(new_information(latest, candidate))

    def test_changed_value_is_a_change(self) -> None:
        self.assertTrue(new_information({"A": 1, "B": 2}, {"A": 1, "B": 3}))

    def test_value_dropped_from_candidate_is_a_change(self) -> None:
        self.assertTrue(new_information({"A": 1, "B": 2}, {"A": 1}))

    def test_null_becoming_known_is_a_change(self) -> None:
        self.assertTrue(new_information({"A": 1, "B": None}, {"A": 1, "B": "x"}))

    def test_null_staying_unknown_is_not_a_change(self) -> None:
        self.assertFalse(new_information({"A": 1, "B": None}, {"A": 1}))
        self.assertFalse(new_information({"A": 1, "B": None}, {"A": 1, "B": None}))

    def test_sync_time_is_ignored(self) -> None:
        latest = {"A": 1, "sync_time": datetime(2025, 1, 1, tzinfo=timezone.utc)}
        candidate = {"A": 1, "sync_time": datetime(2025, 6, 1, tzinfo=timezone.utc)}
        self.assertEqual(decide(latest, candidate), GateDecision.SKIP)

    def test_custom_ignored_column(self) -> None:
        latest = {"A": 1, "seen": 1}
        candidate = {"A": 1, "seen": 2}
        self.assertFalse(new_information(latest, candidate, ignored_column="seen"))
        self.assertTrue(new_information(latest, candidate))


if __name__ == "__main__":
    unittest.main()
