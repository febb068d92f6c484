"""
Zone geometry for the playing methodology pitch editor.

Pure functions over percentage-space rectangles: overlap detection, placement
checks, color assignment, id generation and conversion between the pixel space
of a drawing canvas and the percentage space zones are stored in.
"""

from __future__ import annotations

import random
import string
from typing import Iterable, NamedTuple, Optional, Protocol, Sequence, Tuple

from ..models.zone import PitchZone, ZoneRect
from ..utils import now_ms
from ..utils.constants import (
    MIN_ZONE_SIZE, PITCH_EXTENT, ZONE_COLORS, ZONE_ID_PREFIX
)

_ID_ALPHABET = string.digits + string.ascii_lowercase
_ID_SUFFIX_LENGTH = 9
_BOUNDS_EPSILON = 1e-9


class ZoneValidationError(ValueError):
    """Raised when geometry helpers receive unusable input."""
    pass


class Rectangular(Protocol):
    x: float
    y: float
    width: float
    height: float


class CanvasSize(NamedTuple):
    """Current pixel size of a drawing canvas."""
    width: float
    height: float


def _check_canvas(canvas: CanvasSize) -> None:
    if canvas.width <= 0 or canvas.height <= 0:
        raise ZoneValidationError(
            f"Canvas dimensions must be positive, got {canvas.width}x{canvas.height}"
        )


def do_zones_overlap(a: Rectangular, b: Rectangular) -> bool:
    """
    Axis-aligned rectangle overlap test.

    Zones that exactly share a boundary do not overlap.
    """
    return not (
        a.x + a.width <= b.x or   # a is left of b
        b.x + b.width <= a.x or   # b is left of a
        a.y + a.height <= b.y or  # a is above b
        b.y + b.height <= a.y     # b is above a
    )


def can_place_zone(candidate: PitchZone, existing_zones: Iterable[PitchZone]) -> bool:
    """
    Check if a zone can be placed without overlapping the existing zones.

    A zone never conflicts with the zone sharing its own id, so moving or
    editing a zone is validated against its siblings only.
    """
    return not any(
        zone.id != candidate.id and do_zones_overlap(candidate, zone)
        for zone in existing_zones
    )


def get_next_zone_color(existing_zones: Sequence[PitchZone]) -> str:
    """
    Pick the first palette color not used by any existing zone.

    Once every palette color is taken the choice wraps around by collection
    size, so with more than eight zones two zones may share a color.
    """
    used = {zone.color for zone in existing_zones if zone.color}
    for color in ZONE_COLORS:
        if color not in used:
            return color
    return ZONE_COLORS[len(existing_zones) % len(ZONE_COLORS)]


def generate_zone_id(existing_ids: Optional[Iterable[str]] = None,
                     rng: Optional[random.Random] = None) -> str:
    """
    Generate a zone id of the form ``zone-<epoch ms>-<9 random chars>``.

    Args:
        existing_ids: Ids already present in the collection; a generated id
            colliding with one of them is discarded and drawn again
        rng: Random source (defaults to the module-level generator)

    Returns:
        An id unique within ``existing_ids``
    """
    taken = set(existing_ids or ())
    source = rng or random
    while True:
        suffix = "".join(source.choice(_ID_ALPHABET) for _ in range(_ID_SUFFIX_LENGTH))
        zone_id = f"{ZONE_ID_PREFIX}-{now_ms()}-{suffix}"
        if zone_id not in taken:
            return zone_id


# ---------- Coordinate spaces ---------- #

def pixel_to_percent(x: float, y: float, canvas: CanvasSize) -> Tuple[float, float]:
    """Convert a canvas pixel point to pitch percentage coordinates."""
    _check_canvas(canvas)
    return (x / canvas.width) * PITCH_EXTENT, (y / canvas.height) * PITCH_EXTENT


def percent_to_pixel(x: float, y: float, canvas: CanvasSize) -> Tuple[float, float]:
    """Convert pitch percentage coordinates to a canvas pixel point."""
    _check_canvas(canvas)
    return (x / PITCH_EXTENT) * canvas.width, (y / PITCH_EXTENT) * canvas.height


def rect_to_percent(rect: ZoneRect, canvas: CanvasSize) -> ZoneRect:
    """Convert a pixel-space rectangle to percentage space."""
    x, y = pixel_to_percent(rect.x, rect.y, canvas)
    width, height = pixel_to_percent(rect.width, rect.height, canvas)
    return ZoneRect(x, y, width, height)


def rect_to_pixel(rect: Rectangular, canvas: CanvasSize) -> ZoneRect:
    """Convert a percentage-space rectangle to pixel space."""
    x, y = percent_to_pixel(rect.x, rect.y, canvas)
    width, height = percent_to_pixel(rect.width, rect.height, canvas)
    return ZoneRect(x, y, width, height)


def normalize_rect(start: Tuple[float, float], end: Tuple[float, float]) -> ZoneRect:
    """Rectangle spanned by two drag points, whatever the drag direction."""
    return ZoneRect(
        x=min(start[0], end[0]),
        y=min(start[1], end[1]),
        width=abs(end[0] - start[0]),
        height=abs(end[1] - start[1]),
    )


def meets_minimum_size(rect: Rectangular, minimum: float = MIN_ZONE_SIZE) -> bool:
    """Check a percentage-space rectangle against the minimum zone size."""
    return rect.width >= minimum and rect.height >= minimum


def clamp_position(zone: Rectangular, x: float, y: float) -> Tuple[float, float]:
    """Clamp a top-left position so the zone stays on the pitch."""
    clamped_x = max(0.0, min(PITCH_EXTENT - zone.width, x))
    clamped_y = max(0.0, min(PITCH_EXTENT - zone.height, y))
    return clamped_x, clamped_y


def is_within_pitch(zone: Rectangular) -> bool:
    """Check that a percentage-space rectangle lies fully inside the pitch."""
    return (
        zone.x >= 0 and zone.y >= 0 and
        zone.width > 0 and zone.height > 0 and
        zone.x + zone.width <= PITCH_EXTENT + _BOUNDS_EPSILON and
        zone.y + zone.height <= PITCH_EXTENT + _BOUNDS_EPSILON
    )
