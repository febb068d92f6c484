"""
Unit tests for optimistic row commands and the command manager.
"""
import unittest

from coachdesk.models.rows import CoachingRule, LocalRow
from coachdesk.services.backend import MemoryBackend
from coachdesk.services.commands import (
    CommandManager,
    DeleteRowCommand,
    InsertRowCommand,
    ToggleActiveCommand,
    UpdateRowCommand,
)
from coachdesk.services.subscription import LocalCollection

RULES = "coaching_rules"


class CommandTestCase(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self) -> None:
        self.backend = MemoryBackend()
        rows = [
            {"id": "r1", "content": "Play forward", "club_id": "c1", "is_active": True},
            {"id": "r2", "content": "Stay compact", "club_id": "c1", "is_active": True},
        ]
        self.backend.seed(RULES, rows)
        self.collection = LocalCollection()
        self.collection.replace([LocalRow(CoachingRule.from_dict(r)) for r in self.backend.rows(RULES)])

    def update(self, row_id, patch, **kwargs):
        return UpdateRowCommand(self.collection, self.backend, RULES,
                                CoachingRule.from_dict, row_id, patch, **kwargs)

    def server_row(self, row_id):
        return next(r for r in self.backend.rows(RULES) if r["id"] == row_id)


class TestRowCommands(CommandTestCase):
    """Test apply, commit and revert."""

    async def test_update_applies_server_row(self) -> None:
        result = await self.update("r1", {"content": "Play wide"}).execute()

        self.assertTrue(result.ok)
        self.assertEqual(self.collection.get("r1").row.content, "Play wide")
        self.assertIsNotNone(self.collection.get("r1").row.updated_at)
        self.assertEqual(self.server_row("r1")["content"], "Play wide")

    async def test_failed_update_is_reverted(self) -> None:
        self.backend.fail_next_writes(1, error="Network error")
        with self.assertLogs("coachdesk.services", level="ERROR"):
            result = await self.update("r1", {"content": "Play wide"}).execute()

        self.assertFalse(result.ok)
        self.assertEqual(result.error, "Network error")
        self.assertEqual(self.collection.get("r1").row.content, "Play forward")

    async def test_update_timeout_is_reverted(self) -> None:
        self.backend.latency = 0.05
        result = await self.update("r1", {"content": "Play wide"}, timeout=0.01).execute()

        self.assertFalse(result.ok)
        self.assertIn("timeout after 0.01 seconds", result.error)
        self.assertEqual(self.collection.get("r1").row.content, "Play forward")

    async def test_update_missing_row(self) -> None:
        result = await self.update("missing", {"content": "x"}).execute()
        self.assertFalse(result.ok)
        self.assertIn("row not found", result.error)

    async def test_finish_editing_clears_flag_on_success_only(self) -> None:
        self.collection.set_editing("r1", True)
        self.backend.fail_next_writes(1)
        await self.update("r1", {"content": "A"}, finish_editing=True).execute()
        self.assertTrue(self.collection.get("r1").is_editing)

        await self.update("r1", {"content": "A"}, finish_editing=True).execute()
        self.assertFalse(self.collection.get("r1").is_editing)

    async def test_toggle_keeps_editing_flag(self) -> None:
        self.collection.set_editing("r2", True)
        command = ToggleActiveCommand(self.collection, self.backend, RULES,
                                      CoachingRule.from_dict, "r2")
        result = await command.execute()

        self.assertTrue(result.ok)
        self.assertFalse(self.collection.get("r2").row.is_active)
        self.assertTrue(self.collection.get("r2").is_editing)
        self.assertFalse(self.server_row("r2")["is_active"])

    async def test_failed_delete_restores_position(self) -> None:
        self.backend.fail_next_writes(1)
        command = DeleteRowCommand(self.collection, self.backend, RULES,
                                   CoachingRule.from_dict, "r2")
        result = await command.execute()

        self.assertFalse(result.ok)
        self.assertEqual([r.id for r in self.collection.rows], ["r1", "r2"])

    async def test_insert_prepends_saved_row(self) -> None:
        command = InsertRowCommand(self.collection, self.backend, RULES,
                                   CoachingRule.from_dict,
                                   {"content": "Win second balls", "club_id": "c1"})
        result = await command.execute()

        self.assertTrue(result.ok)
        self.assertEqual(self.collection.rows[0].id, result.row["id"])
        self.assertEqual(len(self.backend.rows(RULES)), 3)

    async def test_failed_insert_changes_nothing(self) -> None:
        self.backend.fail_next_writes(1)
        command = InsertRowCommand(self.collection, self.backend, RULES,
                                   CoachingRule.from_dict, {"content": "x"})
        result = await command.execute()
        self.assertFalse(result.ok)
        self.assertEqual(len(self.collection.rows), 2)

    async def test_inverse_requires_execution(self) -> None:
        with self.assertRaises(RuntimeError):
            self.update("r1", {"content": "x"}).inverse()


class TestCommandManager(CommandTestCase):
    """Test undo/redo history."""

    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        self.manager = CommandManager()

    async def test_undo_redo_update(self) -> None:
        await self.manager.execute_command(self.update("r1", {"content": "Play wide"}))
        self.assertTrue(self.manager.can_undo())

        result = await self.manager.undo()
        self.assertTrue(result.ok)
        self.assertEqual(self.server_row("r1")["content"], "Play forward")
        self.assertEqual(self.collection.get("r1").row.content, "Play forward")
        self.assertTrue(self.manager.can_redo())

        await self.manager.redo()
        self.assertEqual(self.server_row("r1")["content"], "Play wide")
        self.assertFalse(self.manager.can_redo())

    async def test_undo_toggle(self) -> None:
        await self.manager.execute_command(ToggleActiveCommand(
            self.collection, self.backend, RULES, CoachingRule.from_dict, "r1"))
        await self.manager.undo()
        self.assertTrue(self.server_row("r1")["is_active"])
        await self.manager.redo()
        self.assertFalse(self.server_row("r1")["is_active"])

    async def test_undo_delete_restores_row(self) -> None:
        await self.manager.execute_command(DeleteRowCommand(
            self.collection, self.backend, RULES, CoachingRule.from_dict, "r2"))
        self.assertIsNone(self.collection.get("r2"))

        await self.manager.undo()
        self.assertEqual(self.server_row("r2")["content"], "Stay compact")
        self.assertIsNotNone(self.collection.get("r2"))

        await self.manager.redo()
        self.assertIsNone(self.collection.get("r2"))
        self.assertEqual(len(self.backend.rows(RULES)), 1)

    async def test_undo_insert_deletes_row(self) -> None:
        result = await self.manager.execute_command(InsertRowCommand(
            self.collection, self.backend, RULES, CoachingRule.from_dict, {"content": "New"}))
        await self.manager.undo()
        self.assertIsNone(self.collection.get(result.row["id"]))
        self.assertEqual(len(self.backend.rows(RULES)), 2)

    async def test_failed_command_is_not_recorded(self) -> None:
        self.backend.fail_next_writes(1)
        await self.manager.execute_command(self.update("r1", {"content": "x"}))
        self.assertFalse(self.manager.can_undo())
        self.assertEqual(self.manager.get_command_history(), [])

    async def test_nothing_to_undo(self) -> None:
        result = await self.manager.undo()
        self.assertEqual(result.error, "Nothing to undo")
        self.assertEqual((await self.manager.redo()).error, "Nothing to redo")

    async def test_history_is_bounded(self) -> None:
        manager = CommandManager(max_history=2)
        for content in ("a", "b", "c"):
            await manager.execute_command(self.update("r1", {"content": content}))
        self.assertEqual(len(manager.get_command_history()), 2)
        self.assertEqual(manager.get_command_history()[0], "Update coaching_rules content")

    async def test_new_command_clears_redo(self) -> None:
        await self.manager.execute_command(self.update("r1", {"content": "a"}))
        await self.manager.undo()
        await self.manager.execute_command(self.update("r2", {"content": "b"}))
        self.assertFalse(self.manager.can_redo())
        self.manager.clear_history()
        self.assertFalse(self.manager.can_undo())


if __name__ == "__main__":
    unittest.main()
