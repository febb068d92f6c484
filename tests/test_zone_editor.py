"""
Unit tests for the pitch zone editor.

Tests drawing, dragging, the edit modal with its two-step delete, read-only
tooltips and the zone change callback.
"""
import unittest

import pytest

from coachdesk.models.zone import PitchZone
from coachdesk.services.zone_editor import EditorMode, ZoneEditModal, ZonePitchEditor
from coachdesk.services.zone_geometry import CanvasSize
from coachdesk.utils.constants import DEFAULT_ZONE_TITLE, ZONE_COLORS

CANVAS = CanvasSize(800, 450)


def zone(zone_id, x, y, width=20.0, height=20.0, **kwargs):
    return PitchZone(id=zone_id, x=x, y=y, width=width, height=height,
                     title=kwargs.pop("title", zone_id.upper()), **kwargs)


class EditorTestCase(unittest.TestCase):

    def setUp(self) -> None:
        self.changes = []
        self.editor = ZonePitchEditor(
            initial_zones=[
                zone("a", 10, 10, color=ZONE_COLORS[0]),
                zone("b", 50, 10, color=ZONE_COLORS[1]),
            ],
            on_zones_change=self.changes.append,
            canvas=CANVAS,
        )

    def draw(self, start, end):
        self.editor.pointer_down(*start)
        self.editor.pointer_move(*end)
        return self.editor.pointer_up()


class TestDrawing(EditorTestCase):
    """Test drawing new zones on empty pitch."""

    def test_valid_drawing_creates_zone_and_opens_modal(self) -> None:
        created = self.draw((80, 270), (240, 360))

        self.assertIsNotNone(created)
        self.assertEqual(created.title, DEFAULT_ZONE_TITLE)
        self.assertEqual(created.color, ZONE_COLORS[2])
        self.assertAlmostEqual(created.x, 10.0)
        self.assertAlmostEqual(created.y, 60.0)
        self.assertAlmostEqual(created.width, 20.0)
        self.assertAlmostEqual(created.height, 20.0)
        self.assertEqual(self.editor.mode, EditorMode.EDITING_MODAL_OPEN)
        self.assertEqual(self.editor.modal.zone.id, created.id)
        self.assertEqual(len(self.changes[-1]), 3)

    def test_drawing_below_minimum_width_is_discarded(self) -> None:
        """4% to 8% of an 800px canvas is a 4% wide rectangle."""
        created = self.draw((32, 270), (64, 400))

        self.assertIsNone(created)
        self.assertEqual(len(self.editor.zones), 2)
        self.assertEqual(self.editor.mode, EditorMode.IDLE)
        self.assertEqual(self.changes, [])

    def test_drawing_below_minimum_height_is_discarded(self) -> None:
        self.assertIsNone(self.draw((80, 270), (400, 280)))

    def test_preview_tracks_validity(self) -> None:
        self.editor.pointer_down(40, 300)
        self.editor.pointer_move(200, 400)
        self.assertTrue(self.editor.preview.is_valid)
        self.assertEqual(self.editor.preview.stroke, "#EFBF04")

        self.editor.pointer_move(200, 60)
        self.assertFalse(self.editor.preview.is_valid)
        self.assertEqual(self.editor.preview.stroke, "#EF4444")

    def test_overlapping_drawing_is_discarded(self) -> None:
        created = self.draw((40, 300), (200, 60))
        self.assertIsNone(created)
        self.assertEqual(len(self.editor.zones), 2)

    def test_pointer_leave_ends_drawing(self) -> None:
        self.editor.pointer_down(80, 270)
        self.editor.pointer_move(240, 360)
        created = self.editor.pointer_leave()
        self.assertIsNotNone(created)
        self.assertEqual(self.editor.mode, EditorMode.EDITING_MODAL_OPEN)

    def test_drawing_is_clamped_to_canvas(self) -> None:
        created = self.draw((700, 350), (900, 600))
        self.assertAlmostEqual(created.x + created.width, 100.0)
        self.assertAlmostEqual(created.y + created.height, 100.0)

    def test_click_on_empty_pitch_clears_selection(self) -> None:
        self.editor.pointer_down(160, 90)
        self.assertEqual(self.editor.selected_zone_id, "a")
        self.editor.click_empty()
        self.assertIsNone(self.editor.selected_zone_id)
        self.assertEqual(self.editor.mode, EditorMode.IDLE)


class TestMoving(EditorTestCase):
    """Test moving zones by drag and by position."""

    def test_move_into_free_space(self) -> None:
        self.assertTrue(self.editor.move_zone("a", 10, 60))
        self.assertEqual((self.editor.get_zone("a").x, self.editor.get_zone("a").y), (10, 60))
        self.assertEqual(len(self.changes), 1)

    def test_overlapping_move_leaves_zone_unchanged(self) -> None:
        self.assertFalse(self.editor.move_zone("a", 45, 10))
        moved = self.editor.get_zone("a")
        self.assertEqual((moved.x, moved.y), (10, 10))
        self.assertEqual(self.changes, [])

    def test_move_is_clamped_to_pitch(self) -> None:
        self.assertTrue(self.editor.move_zone("b", 120, 95))
        moved = self.editor.get_zone("b")
        self.assertEqual((moved.x, moved.y), (80.0, 80.0))

    def test_drag_moves_zone(self) -> None:
        self.editor.pointer_down(160, 90)
        self.editor.pointer_move(320, 90)
        self.assertEqual(self.editor.drag_position()[0], "a")
        self.editor.pointer_up()

        self.assertAlmostEqual(self.editor.get_zone("a").x, 30.0)
        self.assertIsNone(self.editor.modal)

    def test_click_without_drag_opens_modal(self) -> None:
        self.editor.pointer_down(160, 90)
        self.editor.pointer_up()
        self.assertEqual(self.editor.mode, EditorMode.EDITING_MODAL_OPEN)
        self.assertEqual(self.editor.modal.zone.id, "a")

    def test_drag_bound_keeps_zone_on_canvas(self) -> None:
        # zone "a" is 160x90 pixels on an 800x450 canvas
        self.assertEqual(self.editor.drag_bound("a", 700, 400), (640, 360))
        self.assertEqual(self.editor.drag_bound("a", -20, -5), (0.0, 0.0))
        self.assertEqual(self.editor.drag_bound("a", 100, 100), (100, 100))

    def test_read_only_rejects_moves(self) -> None:
        self.editor.read_only = True
        self.assertFalse(self.editor.move_zone("a", 10, 60))


class TestModal(EditorTestCase):
    """Test the zone edit modal."""

    def test_save_replaces_zone_in_place(self) -> None:
        self.editor.open_zone("b")
        self.editor.modal.title = "  Right Half Space "
        self.editor.modal.description = "Overload here"
        self.editor.modal.set_color(ZONE_COLORS[5])

        self.assertTrue(self.editor.save_modal())
        saved = self.editor.get_zone("b")
        self.assertEqual(saved.title, "Right Half Space")
        self.assertEqual(saved.description, "Overload here")
        self.assertEqual(saved.color, ZONE_COLORS[5])
        self.assertEqual([z.id for z in self.editor.zones], ["a", "b"])
        self.assertEqual(self.editor.mode, EditorMode.IDLE)

    def test_save_disabled_while_title_empty(self) -> None:
        self.editor.open_zone("a")
        self.editor.modal.title = "   "
        self.assertFalse(self.editor.modal.can_save)
        self.assertFalse(self.editor.save_modal())
        self.assertEqual(self.editor.get_zone("a").title, "A")
        self.assertEqual(self.editor.mode, EditorMode.EDITING_MODAL_OPEN)

    def test_delete_requires_two_activations(self) -> None:
        self.editor.open_zone("a")
        self.assertEqual(self.editor.modal.delete_label, "Delete Zone")

        self.assertFalse(self.editor.press_delete())
        self.assertIsNotNone(self.editor.get_zone("a"))
        self.assertEqual(self.editor.modal.delete_label, "Confirm Delete")

        self.assertTrue(self.editor.press_delete())
        self.assertIsNone(self.editor.get_zone("a"))
        self.assertIsNone(self.editor.modal)
        self.assertEqual([z.id for z in self.changes[-1]], ["b"])

    def test_cancel_discards_draft(self) -> None:
        self.editor.open_zone("a")
        self.editor.modal.title = "Changed"
        self.editor.cancel_modal()
        self.assertEqual(self.editor.get_zone("a").title, "A")
        self.assertEqual(self.changes, [])

    def test_pointer_ignored_while_modal_open(self) -> None:
        self.editor.open_zone("a")
        self.editor.pointer_down(400, 400)
        self.assertEqual(self.editor.mode, EditorMode.EDITING_MODAL_OPEN)

    def test_unknown_color_is_rejected(self) -> None:
        modal = ZoneEditModal(zone("a", 0, 0))
        with self.assertRaises(ValueError):
            modal.set_color("#123456")


class TestTooltip(EditorTestCase):
    """Test the hover tooltip."""

    def test_read_only_hover_shows_title(self) -> None:
        self.editor.read_only = True
        self.editor.pointer_move(160, 90)
        tooltip = self.editor.tooltip
        self.assertIsNotNone(tooltip)
        self.assertEqual(tooltip.zone.id, "a")
        self.assertEqual(tooltip.text, "A")

    def test_read_only_pointer_down_does_nothing(self) -> None:
        self.editor.read_only = True
        self.editor.pointer_down(400, 400)
        self.editor.pointer_move(600, 440)
        self.assertIsNone(self.editor.pointer_up())
        self.assertEqual(self.editor.mode, EditorMode.IDLE)
        self.assertFalse(self.editor.open_zone("a"))

    def test_editable_hover_invites_description(self) -> None:
        self.editor.pointer_move(160, 90)
        self.assertEqual(self.editor.tooltip.text, "A\nClick to add a description")

    def test_description_is_shown(self) -> None:
        self.editor.load_zones([zone("c", 0, 0, 50, 50, description="Press high")])
        self.editor.pointer_move(10, 10)
        self.assertEqual(self.editor.tooltip.text, "C\nPress high")

    def test_no_tooltip_off_zone_or_after_leave(self) -> None:
        self.editor.pointer_move(400, 400)
        self.assertIsNone(self.editor.tooltip)
        self.editor.pointer_move(160, 90)
        self.editor.pointer_leave()
        self.assertIsNone(self.editor.tooltip)


def test_load_zones_replaces_collection_and_emits():
    emitted = []
    editor = ZonePitchEditor(initial_zones=[zone("a", 0, 0)], on_zones_change=emitted.append)
    editor.load_zones([zone("x", 30, 30), zone("y", 60, 60)])
    assert [z.id for z in editor.zones] == ["x", "y"]
    assert [z.id for z in emitted[-1]] == ["x", "y"]
    assert editor.mode is EditorMode.IDLE


def test_resize_keeps_percentage_positions():
    editor = ZonePitchEditor(initial_zones=[zone("a", 10, 10)], canvas=CANVAS)
    editor.resize(1600, 900)
    rect = editor.zone_pixel_rect(editor.get_zone("a"))
    assert (rect.x, rect.y, rect.width, rect.height) == pytest.approx((160, 90, 320, 180))
