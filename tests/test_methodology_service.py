"""
Unit tests for MethodologyService functionality.

Tests zone persistence for club and team scopes, methodology entries,
positional profiles and per-team training rule toggles.
"""
import unittest

from coachdesk.models.attributes import AttributesV2
from coachdesk.models.zone import PitchZone
from coachdesk.services.backend import MemoryBackend
from coachdesk.services.feeds import PLAYING_TABLE, PROFILES_TABLE, TOGGLES_TABLE, TRAINING_TABLE
from coachdesk.services.methodology_service import CLUB_ZONES_TITLE, MethodologyService


def zone(zone_id, x, y, title="Zone"):
    return PitchZone(id=zone_id, x=x, y=y, width=20, height=20, title=title)


class TestZonePersistence(unittest.IsolatedAsyncioTestCase):
    """Test loading and saving zone collections."""

    async def asyncSetUp(self) -> None:
        self.backend = MemoryBackend()
        self.service = MethodologyService(self.backend)

    async def test_no_zones_yet(self) -> None:
        result = await self.service.get_zones("c1")
        self.assertTrue(result.ok)
        self.assertEqual(result.zones, [])

    async def test_first_save_creates_club_record(self) -> None:
        result = await self.service.save_zones("c1", "coach-1", [zone("a", 0, 0)])

        self.assertTrue(result.ok)
        records = self.backend.rows(PLAYING_TABLE)
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0]["title"], CLUB_ZONES_TITLE)
        self.assertIsNone(records[0]["team_id"])
        self.assertEqual(records[0]["created_by_coach_id"], "coach-1")

        loaded = await self.service.get_zones("c1")
        self.assertEqual(loaded.zones, [zone("a", 0, 0)])

    async def test_second_save_updates_same_record(self) -> None:
        await self.service.save_zones("c1", "coach-1", [zone("a", 0, 0)])
        await self.service.save_zones("c1", "coach-1", [zone("a", 0, 0), zone("b", 50, 50)])

        records = self.backend.rows(PLAYING_TABLE)
        self.assertEqual(len(records), 1)
        self.assertEqual(len(records[0]["zones"]), 2)

    async def test_existing_record_without_zones_is_used(self) -> None:
        self.backend.seed(PLAYING_TABLE, [
            {"id": "m1", "club_id": "c1", "team_id": None, "title": "Build-up", "display_order": 0},
        ])
        await self.service.save_zones("c1", "coach-1", [zone("a", 0, 0)])

        records = self.backend.rows(PLAYING_TABLE)
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0]["id"], "m1")
        self.assertEqual(records[0]["zones"][0]["id"], "a")

    async def test_record_holding_zones_is_preferred(self) -> None:
        self.backend.seed(PLAYING_TABLE, [
            {"id": "m1", "club_id": "c1", "team_id": None, "title": "Build-up", "display_order": 0},
            {"id": "m2", "club_id": "c1", "team_id": None, "title": "Zones", "display_order": 1,
             "zones": []},
        ])
        await self.service.save_zones("c1", "coach-1", [zone("a", 0, 0)])

        by_id = {r["id"]: r for r in self.backend.rows(PLAYING_TABLE)}
        self.assertNotIn("zones", by_id["m1"])
        self.assertEqual(len(by_id["m2"]["zones"]), 1)

    async def test_team_and_club_zones_are_separate(self) -> None:
        await self.service.save_zones("c1", "coach-1", [zone("club", 0, 0)])
        await self.service.save_zones("c1", "coach-2", [zone("team", 50, 50)], team_id="t1")

        self.assertEqual([z.id for z in (await self.service.get_zones("c1")).zones], ["club"])
        team = await self.service.get_zones("c1", team_id="t1")
        self.assertEqual([z.id for z in team.zones], ["team"])
        self.assertEqual(len(self.backend.rows(PLAYING_TABLE)), 2)

    async def test_invalid_collection_is_not_written(self) -> None:
        result = await self.service.save_zones("c1", "coach-1", [zone("a", 0, 0), zone("b", 10, 10)])
        self.assertFalse(result.ok)
        self.assertIn("overlap", result.error)
        self.assertEqual(self.backend.rows(PLAYING_TABLE), [])

    async def test_load_failure(self) -> None:
        self.backend.fail_next_fetches(1, error="Network error")
        result = await self.service.get_zones("c1")
        self.assertEqual(result.error, "Network error")

    async def test_write_failure(self) -> None:
        self.backend.fail_next_writes(1, error="Network error")
        result = await self.service.save_zones("c1", "coach-1", [zone("a", 0, 0)])
        self.assertEqual(result.error, "Network error")


class TestMethodologyEntries(unittest.IsolatedAsyncioTestCase):
    """Test methodology entries, profiles and training rule toggles."""

    async def asyncSetUp(self) -> None:
        self.backend = MemoryBackend()
        self.service = MethodologyService(self.backend)

    async def test_entries_are_appended(self) -> None:
        first = await self.service.create_entry("training", "c1", "coach-1", "Rondo")
        second = await self.service.create_entry("training", "c1", "coach-1", "Finishing")

        self.assertEqual(first.row["display_order"], 0)
        self.assertEqual(second.row["display_order"], 1)
        self.assertEqual(len(self.backend.rows(TRAINING_TABLE)), 2)

    async def test_entry_validation(self) -> None:
        self.assertEqual((await self.service.create_entry("set-pieces", "c1", "x", "T")).error,
                         "Unknown methodology kind: set-pieces")
        self.assertEqual((await self.service.create_entry("playing", "c1", "x", " ")).error,
                         "Title cannot be empty")

    async def test_profiles_migrate_legacy_attributes(self) -> None:
        self.backend.seed(PROFILES_TABLE, [
            {"id": "p1", "club_id": "c1", "team_id": None, "position_key": "CB",
             "attributes": ["Heading", "Tackling"], "display_order": 1},
            {"id": "p2", "club_id": "c1", "team_id": None, "position_key": "ST",
             "attributes": {"in_possession": ["Finishing"], "out_of_possession": ["Pressing"]},
             "display_order": 0},
        ])
        result = await self.service.get_positional_profiles("c1")

        self.assertEqual([p.id for p in result.profiles], ["p2", "p1"])
        self.assertEqual(result.profiles[1].attributes,
                         AttributesV2(in_possession=["Heading", "Tackling"]))

    async def test_profile_attributes_are_saved_in_current_shape(self) -> None:
        self.backend.seed(PROFILES_TABLE, [
            {"id": "p1", "club_id": "c1", "position_key": "CB", "attributes": ["Heading"]},
        ])
        result = await self.service.save_profile_attributes(
            "p1", AttributesV2(["Heading"], ["Marking"]))

        self.assertTrue(result.ok)
        self.assertEqual(self.backend.rows(PROFILES_TABLE)[0]["attributes"],
                         {"in_possession": ["Heading"], "out_of_possession": ["Marking"]})

    async def test_training_rule_toggle_upserts(self) -> None:
        await self.service.toggle_training_rule("t1", "tr1", False)
        await self.service.toggle_training_rule("t1", "tr1", True)
        await self.service.toggle_training_rule("t1", "tr2", False)

        self.assertEqual(len(self.backend.rows(TOGGLES_TABLE)), 2)
        toggles = await self.service.get_training_rule_toggles("t1")
        self.assertEqual(toggles, {"tr1": True, "tr2": False})
        self.assertFalse(MethodologyService.rule_enabled(toggles, "tr2"))
        self.assertTrue(MethodologyService.rule_enabled(toggles, "tr3"))

    async def test_toggle_load_failure_enables_everything(self) -> None:
        self.backend.fail_next_fetches(1)
        with self.assertLogs("coachdesk.services.methodology_service", level="WARNING"):
            toggles = await self.service.get_training_rule_toggles("t1")
        self.assertEqual(toggles, {})
        self.assertTrue(MethodologyService.rule_enabled(toggles, "tr1"))


if __name__ == "__main__":
    unittest.main()
