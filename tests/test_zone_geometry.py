"""
Unit tests for zone geometry.

Tests overlap detection, placement checks, palette assignment, id generation
and conversion between canvas pixels and pitch percentages.
"""
import random
import re
import unittest
from unittest.mock import patch

import pytest

from coachdesk.models.zone import PitchZone, ZoneRect
from coachdesk.services.zone_geometry import (
    CanvasSize,
    ZoneValidationError,
    can_place_zone,
    clamp_position,
    do_zones_overlap,
    generate_zone_id,
    get_next_zone_color,
    is_within_pitch,
    meets_minimum_size,
    normalize_rect,
    percent_to_pixel,
    pixel_to_percent,
    rect_to_percent,
)
from coachdesk.utils.constants import ZONE_COLORS

ZONE_ID_PATTERN = re.compile(r"^zone-\d+-[0-9a-z]{9}$")


def make_zone(zone_id, x, y, width=20.0, height=20.0, color=None):
    return PitchZone(id=zone_id, x=x, y=y, width=width, height=height,
                     title=zone_id, color=color)


class TestOverlap(unittest.TestCase):
    """Test the rectangle overlap test."""

    def test_overlapping_zones(self) -> None:
        a = make_zone("a", 10, 10)
        b = make_zone("b", 20, 20)
        self.assertTrue(do_zones_overlap(a, b))
        self.assertTrue(do_zones_overlap(b, a))

    def test_zone_inside_another(self) -> None:
        outer = make_zone("outer", 0, 0, 50, 50)
        inner = make_zone("inner", 10, 10, 5, 5)
        self.assertTrue(do_zones_overlap(outer, inner))

    def test_touching_edges_do_not_overlap(self) -> None:
        """Zones sharing a boundary exactly are allowed side by side."""
        left = make_zone("left", 10, 10)
        right = make_zone("right", 30, 10)
        below = make_zone("below", 10, 30)
        self.assertFalse(do_zones_overlap(left, right))
        self.assertFalse(do_zones_overlap(left, below))

    def test_separate_zones(self) -> None:
        self.assertFalse(do_zones_overlap(make_zone("a", 0, 0), make_zone("b", 60, 60)))

    def test_works_on_plain_rectangles(self) -> None:
        self.assertTrue(do_zones_overlap(ZoneRect(0, 0, 10, 10), ZoneRect(5, 5, 10, 10)))


class TestPlacement(unittest.TestCase):
    """Test placement checks against an existing collection."""

    def setUp(self) -> None:
        self.existing = [make_zone("a", 10, 10), make_zone("b", 50, 10)]

    def test_free_space_is_placeable(self) -> None:
        self.assertTrue(can_place_zone(make_zone("c", 10, 60), self.existing))

    def test_overlap_is_rejected(self) -> None:
        self.assertFalse(can_place_zone(make_zone("c", 15, 15), self.existing))

    def test_zone_ignores_itself(self) -> None:
        """Moving a zone slightly must not collide with its own old position."""
        moved = self.existing[0].moved_to(12, 12)
        self.assertTrue(can_place_zone(moved, self.existing))

    def test_empty_collection(self) -> None:
        self.assertTrue(can_place_zone(make_zone("c", 0, 0, 100, 100), []))


def test_can_place_matches_overlap_for_random_pairs():
    rng = random.Random(42)
    for _ in range(500):
        a = make_zone("a", rng.uniform(0, 90), rng.uniform(0, 90),
                      rng.uniform(1, 40), rng.uniform(1, 40))
        b = make_zone("b", rng.uniform(0, 90), rng.uniform(0, 90),
                      rng.uniform(1, 40), rng.uniform(1, 40))
        assert can_place_zone(a, [b]) is not do_zones_overlap(a, b)


def test_shared_edge_never_overlaps_for_random_sizes():
    rng = random.Random(7)
    for _ in range(200):
        a = make_zone("a", rng.uniform(0, 40), rng.uniform(0, 40),
                      rng.uniform(1, 30), rng.uniform(1, 30))
        b = make_zone("b", a.x + a.width, rng.uniform(0, 40),
                      rng.uniform(1, 30), rng.uniform(1, 30))
        assert not do_zones_overlap(a, b)


class TestZoneColors(unittest.TestCase):
    """Test palette assignment."""

    def test_first_zone_gets_first_color(self) -> None:
        self.assertEqual(get_next_zone_color([]), ZONE_COLORS[0])

    def test_first_unused_color_is_chosen(self) -> None:
        zones = [make_zone("a", 0, 0, color=ZONE_COLORS[0]),
                 make_zone("b", 30, 0, color=ZONE_COLORS[2])]
        self.assertEqual(get_next_zone_color(zones), ZONE_COLORS[1])

    def test_color_is_unused_below_palette_size(self) -> None:
        zones = []
        for i in range(len(ZONE_COLORS) - 1):
            zones.append(make_zone(f"z{i}", 0, 0, color=get_next_zone_color(zones)))
            color = get_next_zone_color(zones)
            self.assertNotIn(color, {z.color for z in zones})

    def test_full_palette_wraps_by_collection_size(self) -> None:
        zones = [make_zone(f"z{i}", 0, 0, color=c) for i, c in enumerate(ZONE_COLORS)]
        self.assertEqual(get_next_zone_color(zones), ZONE_COLORS[0])
        zones.append(make_zone("extra", 0, 0, color=ZONE_COLORS[3]))
        self.assertEqual(get_next_zone_color(zones), ZONE_COLORS[1])


class _ScriptedRng:
    """Returns one repeated character per generated suffix."""

    def __init__(self, letters):
        self.letters = list(letters)
        self.calls = 0

    def choice(self, alphabet):
        letter = self.letters[self.calls // 9]
        self.calls += 1
        return letter


class TestZoneIds(unittest.TestCase):
    """Test zone id generation."""

    def test_id_format(self) -> None:
        self.assertRegex(generate_zone_id(), ZONE_ID_PATTERN)

    def test_ids_are_distinct(self) -> None:
        ids = {generate_zone_id() for _ in range(100)}
        self.assertEqual(len(ids), 100)

    def test_collision_is_drawn_again(self) -> None:
        with patch("coachdesk.services.zone_geometry.now_ms", return_value=1700000000000):
            zone_id = generate_zone_id(
                existing_ids=["zone-1700000000000-aaaaaaaaa"],
                rng=_ScriptedRng("ab"),
            )
        self.assertEqual(zone_id, "zone-1700000000000-bbbbbbbbb")


class TestCoordinateSpaces(unittest.TestCase):
    """Test pixel and percentage conversions."""

    def test_pixel_to_percent(self) -> None:
        canvas = CanvasSize(800, 450)
        self.assertEqual(pixel_to_percent(400, 225, canvas), (50.0, 50.0))
        self.assertEqual(pixel_to_percent(0, 0, canvas), (0.0, 0.0))

    def test_percent_to_pixel(self) -> None:
        self.assertEqual(percent_to_pixel(25, 100, CanvasSize(800, 450)), (200.0, 450.0))

    def test_rect_to_percent(self) -> None:
        rect = rect_to_percent(ZoneRect(80, 45, 160, 90), CanvasSize(800, 450))
        self.assertAlmostEqual(rect.x, 10.0)
        self.assertAlmostEqual(rect.y, 10.0)
        self.assertAlmostEqual(rect.width, 20.0)
        self.assertAlmostEqual(rect.height, 20.0)

    def test_non_positive_canvas_is_rejected(self) -> None:
        with self.assertRaises(ZoneValidationError):
            pixel_to_percent(10, 10, CanvasSize(0, 450))
        with self.assertRaises(ZoneValidationError):
            percent_to_pixel(10, 10, CanvasSize(800, -1))


def test_percent_pixel_round_trip():
    rng = random.Random(3)
    for _ in range(300):
        canvas = CanvasSize(rng.uniform(1, 4000), rng.uniform(1, 4000))
        point = (rng.uniform(0, 100), rng.uniform(0, 100))
        back = pixel_to_percent(*percent_to_pixel(*point, canvas), canvas)
        assert back == pytest.approx(point)


@pytest.mark.parametrize("start,end", [
    ((10, 10), (50, 40)),
    ((50, 40), (10, 10)),
    ((50, 10), (10, 40)),
])
def test_normalize_rect_any_direction(start, end):
    rect = normalize_rect(start, end)
    assert (rect.x, rect.y, rect.width, rect.height) == (10, 10, 40, 30)


def test_minimum_size_applies_to_each_dimension():
    assert meets_minimum_size(ZoneRect(0, 0, 5, 5))
    assert not meets_minimum_size(ZoneRect(0, 0, 4.99, 50))
    assert not meets_minimum_size(ZoneRect(0, 0, 50, 4.99))


def test_clamp_position_keeps_zone_on_pitch():
    zone = make_zone("a", 0, 0, 20, 30)
    assert clamp_position(zone, 95, 95) == (80.0, 70.0)
    assert clamp_position(zone, -10, -5) == (0.0, 0.0)
    assert clamp_position(zone, 40, 40) == (40, 40)


def test_is_within_pitch():
    assert is_within_pitch(make_zone("a", 80, 80, 20, 20))
    assert not is_within_pitch(make_zone("a", 85, 80, 20, 20))
    assert not is_within_pitch(make_zone("a", -1, 0, 20, 20))
