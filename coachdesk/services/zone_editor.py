"""
Interactive pitch zone editor.

The editor owns a zone collection and turns pointer gestures reported in canvas
pixels into validated zone changes. It never talks to storage: every change to
the collection is emitted through ``on_zones_change`` and the owning page
decides how to persist it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from ..models.zone import PitchZone, ZoneRect
from ..utils.constants import (
    DEFAULT_PITCH_HEIGHT, DEFAULT_PITCH_WIDTH, DEFAULT_ZONE_TITLE, MIN_ZONE_SIZE,
    PREVIEW_INVALID_FILL, PREVIEW_INVALID_STROKE, PREVIEW_VALID_FILL,
    PREVIEW_VALID_STROKE, ZONE_COLORS
)
from .zone_geometry import (
    CanvasSize, can_place_zone, clamp_position, generate_zone_id,
    get_next_zone_color, meets_minimum_size, normalize_rect, pixel_to_percent,
    rect_to_percent, rect_to_pixel
)

logger = logging.getLogger(__name__)

ZonesCallback = Callable[[List[PitchZone]], None]

_CANDIDATE_ID = "candidate"


class EditorMode(Enum):
    """Gesture states of the pitch editor."""
    IDLE = "idle"
    DRAWING = "drawing"
    ZONE_SELECTED = "zone-selected"
    EDITING_MODAL_OPEN = "editing-modal-open"


@dataclass
class DrawingPreview:
    """Candidate rectangle shown while drawing, in canvas pixels."""
    rect: ZoneRect
    is_valid: bool

    @property
    def fill(self) -> str:
        return PREVIEW_VALID_FILL if self.is_valid else PREVIEW_INVALID_FILL

    @property
    def stroke(self) -> str:
        return PREVIEW_VALID_STROKE if self.is_valid else PREVIEW_INVALID_STROKE


@dataclass
class ZoneTooltip:
    """Hover information for a zone at a pixel position."""
    zone: PitchZone
    x: float
    y: float
    read_only: bool

    @property
    def text(self) -> str:
        if self.zone.description:
            return f"{self.zone.title}\n{self.zone.description}"
        if self.read_only:
            return self.zone.title
        return f"{self.zone.title}\nClick to add a description"


class ZoneEditModal:
    """
    Edit form for one zone.

    Edits are held as a draft until saved. Deleting takes two activations of
    the delete control: the first arms the confirmation, the second commits.
    """

    def __init__(self, zone: PitchZone, allow_delete: bool = True):
        self.zone = zone
        self.title = zone.title
        self.description = zone.description
        self.color = zone.color
        self.allow_delete = allow_delete
        self.delete_armed = False

    @property
    def can_save(self) -> bool:
        return bool(self.title.strip())

    @property
    def delete_label(self) -> str:
        return "Confirm Delete" if self.delete_armed else "Delete Zone"

    def set_color(self, color: str) -> None:
        if color not in ZONE_COLORS:
            raise ValueError(f"Unknown zone color: {color}")
        self.color = color

    def build_zone(self) -> Optional[PitchZone]:
        """The edited zone, or None while the title is empty."""
        if not self.can_save:
            return None
        return self.zone.with_details(
            title=self.title.strip(),
            description=self.description.strip(),
            color=self.color,
        )

    def press_delete(self) -> bool:
        """Activate the delete control; True once the deletion is confirmed."""
        if not self.allow_delete:
            return False
        if self.delete_armed:
            return True
        self.delete_armed = True
        return False


@dataclass
class _DragState:
    zone_id: str
    pointer_start: Tuple[float, float]
    origin: Tuple[float, float]
    moved: bool = False


class ZonePitchEditor:
    """
    Drawing and editing state machine over a pitch zone collection.

    Pointer coordinates are canvas pixels; zones are stored and checked for
    overlap in percentage space.
    """

    def __init__(self, initial_zones: Optional[List[PitchZone]] = None,
                 on_zones_change: Optional[ZonesCallback] = None,
                 read_only: bool = False,
                 canvas: Optional[CanvasSize] = None,
                 min_zone_size: float = MIN_ZONE_SIZE):
        self._zones: List[PitchZone] = list(initial_zones or [])
        self.on_zones_change = on_zones_change
        self.read_only = read_only
        self.canvas = canvas or CanvasSize(DEFAULT_PITCH_WIDTH, DEFAULT_PITCH_HEIGHT)
        self.min_zone_size = min_zone_size

        self.mode = EditorMode.IDLE
        self.selected_zone_id: Optional[str] = None
        self.hovered_zone_id: Optional[str] = None
        self.modal: Optional[ZoneEditModal] = None
        self.preview: Optional[DrawingPreview] = None

        self._pointer: Optional[Tuple[float, float]] = None
        self._drawing_start: Optional[Tuple[float, float]] = None
        self._drag: Optional[_DragState] = None

    # ---------- Collection ---------- #

    @property
    def zones(self) -> List[PitchZone]:
        return list(self._zones)

    def get_zone(self, zone_id: str) -> Optional[PitchZone]:
        return next((z for z in self._zones if z.id == zone_id), None)

    def load_zones(self, zones: List[PitchZone]) -> None:
        """Replace the collection with zones supplied by the owning page."""
        self._zones = list(zones)
        self._reset_gesture()
        self.modal = None
        self.selected_zone_id = None
        self.mode = EditorMode.IDLE
        self._emit()

    def resize(self, width: float, height: float) -> None:
        """Track the current canvas size; stored zones are unaffected."""
        self.canvas = CanvasSize(width, height)

    def _set_zones(self, zones: List[PitchZone]) -> None:
        self._zones = zones
        self._emit()

    def _emit(self) -> None:
        if self.on_zones_change is not None:
            self.on_zones_change(self.zones)

    # ---------- Hit testing ---------- #

    def zone_at(self, x: float, y: float) -> Optional[PitchZone]:
        """Topmost zone under a pixel point."""
        px, py = pixel_to_percent(x, y, self.canvas)
        for zone in reversed(self._zones):
            if zone.x <= px <= zone.x + zone.width and zone.y <= py <= zone.y + zone.height:
                return zone
        return None

    def zone_pixel_rect(self, zone: PitchZone) -> ZoneRect:
        return rect_to_pixel(zone, self.canvas)

    def _clamp_to_canvas(self, x: float, y: float) -> Tuple[float, float]:
        return (
            max(0.0, min(self.canvas.width, x)),
            max(0.0, min(self.canvas.height, y)),
        )

    # ---------- Pointer gestures ---------- #

    def pointer_down(self, x: float, y: float) -> None:
        """Start drawing on empty pitch, or grab the zone under the pointer."""
        if self.read_only or self.mode is EditorMode.EDITING_MODAL_OPEN:
            return

        zone = self.zone_at(x, y)
        if zone is None:
            self.mode = EditorMode.DRAWING
            self._drawing_start = self._clamp_to_canvas(x, y)
            self.selected_zone_id = None
            self.preview = None
            return

        self.selected_zone_id = zone.id
        self.mode = EditorMode.ZONE_SELECTED
        self._drag = _DragState(zone_id=zone.id, pointer_start=(x, y), origin=(zone.x, zone.y))

    def pointer_move(self, x: float, y: float) -> None:
        """Update hover, the drawing candidate, or the dragged zone preview."""
        self._pointer = (x, y)

        if self.mode is EditorMode.DRAWING and self._drawing_start is not None:
            rect = normalize_rect(self._drawing_start, self._clamp_to_canvas(x, y))
            self.preview = DrawingPreview(rect=rect, is_valid=self._candidate_fits(rect))
            return

        if self._drag is not None:
            start_x, start_y = self._drag.pointer_start
            if (x, y) != (start_x, start_y):
                self._drag.moved = True
            return

        hovered = self.zone_at(x, y)
        self.hovered_zone_id = hovered.id if hovered else None

    def pointer_up(self) -> Optional[PitchZone]:
        """
        Finish the current gesture.

        Returns:
            The zone created by a drawing gesture, if one was committed
        """
        if self.mode is EditorMode.DRAWING:
            return self._finish_drawing()

        if self._drag is not None:
            drag = self._drag
            self._drag = None
            if drag.moved and self._pointer is not None:
                self._finish_drag(drag, self._pointer)
            else:
                self.open_zone(drag.zone_id)
        return None

    def pointer_leave(self) -> Optional[PitchZone]:
        """Leaving the canvas ends a gesture like releasing the pointer."""
        created = self.pointer_up()
        self.hovered_zone_id = None
        self._pointer = None
        return created

    def click_empty(self) -> None:
        """A click on empty pitch clears the selection."""
        if self.mode is EditorMode.ZONE_SELECTED:
            self.mode = EditorMode.IDLE
        self.selected_zone_id = None

    def _candidate_fits(self, rect: ZoneRect) -> bool:
        percent = rect_to_percent(rect, self.canvas)
        candidate = PitchZone(_CANDIDATE_ID, percent.x, percent.y, percent.width, percent.height)
        return can_place_zone(candidate, self._zones)

    def _finish_drawing(self) -> Optional[PitchZone]:
        preview = self.preview
        self._reset_gesture()
        self.mode = EditorMode.IDLE

        if preview is None:
            return None

        percent = rect_to_percent(preview.rect, self.canvas)
        if not meets_minimum_size(percent, self.min_zone_size):
            logger.debug("Discarded zone below minimum size: %.2fx%.2f", percent.width, percent.height)
            return None

        zone = PitchZone(
            id=generate_zone_id(z.id for z in self._zones),
            x=percent.x,
            y=percent.y,
            width=percent.width,
            height=percent.height,
            title=DEFAULT_ZONE_TITLE,
            description="",
            color=get_next_zone_color(self._zones),
        )
        if not can_place_zone(zone, self._zones):
            logger.debug("Discarded overlapping zone candidate")
            return None

        self._set_zones(self._zones + [zone])
        self.selected_zone_id = zone.id
        self.modal = ZoneEditModal(zone, allow_delete=not self.read_only)
        self.mode = EditorMode.EDITING_MODAL_OPEN
        return zone

    def _finish_drag(self, drag: _DragState, pointer: Tuple[float, float]) -> None:
        start_x, start_y = pixel_to_percent(*drag.pointer_start, self.canvas)
        end_x, end_y = pixel_to_percent(*pointer, self.canvas)
        self.move_zone(
            drag.zone_id,
            drag.origin[0] + (end_x - start_x),
            drag.origin[1] + (end_y - start_y),
        )

    def drag_bound(self, zone_id: str, x: float, y: float) -> Tuple[float, float]:
        """Clamp a dragged zone's pixel position so it stays on the canvas."""
        zone = self.get_zone(zone_id)
        if zone is None:
            return x, y
        rect = self.zone_pixel_rect(zone)
        return (
            max(0.0, min(self.canvas.width - rect.width, x)),
            max(0.0, min(self.canvas.height - rect.height, y)),
        )

    def drag_position(self) -> Optional[Tuple[str, ZoneRect]]:
        """Pixel rectangle of the zone being dragged, clamped to the canvas."""
        if self._drag is None or not self._drag.moved or self._pointer is None:
            return None
        zone = self.get_zone(self._drag.zone_id)
        if zone is None:
            return None
        rect = self.zone_pixel_rect(zone)
        x, y = self.drag_bound(
            zone.id,
            rect.x + self._pointer[0] - self._drag.pointer_start[0],
            rect.y + self._pointer[1] - self._drag.pointer_start[1],
        )
        return zone.id, ZoneRect(x, y, rect.width, rect.height)

    def move_zone(self, zone_id: str, x: float, y: float) -> bool:
        """
        Move a zone to a percentage position.

        The position is clamped to the pitch, then rejected if the zone would
        overlap a sibling; a rejected move leaves the zone where it was.
        """
        if self.read_only:
            return False
        zone = self.get_zone(zone_id)
        if zone is None:
            return False

        moved = zone.moved_to(*clamp_position(zone, x, y))
        if not can_place_zone(moved, self._zones):
            logger.debug("Rejected move of %s: would overlap", zone_id)
            return False

        self._set_zones([moved if z.id == zone_id else z for z in self._zones])
        return True

    def _reset_gesture(self) -> None:
        self._drawing_start = None
        self._drag = None
        self.preview = None

    # ---------- Modal ---------- #

    def open_zone(self, zone_id: str) -> bool:
        """Select a zone and open its edit modal."""
        if self.read_only:
            return False
        zone = self.get_zone(zone_id)
        if zone is None:
            return False
        self.selected_zone_id = zone_id
        self.modal = ZoneEditModal(zone)
        self.mode = EditorMode.EDITING_MODAL_OPEN
        return True

    def save_modal(self) -> bool:
        """Commit the modal's draft; Save is unavailable while the title is empty."""
        if self.modal is None:
            return False
        updated = self.modal.build_zone()
        if updated is None:
            return False

        if any(z.id == updated.id for z in self._zones):
            self._set_zones([updated if z.id == updated.id else z for z in self._zones])
        else:
            self._set_zones(self._zones + [updated])
        self._close_modal()
        return True

    def press_delete(self) -> bool:
        """Activate the modal's delete control; True when the zone was removed."""
        if self.modal is None or not self.modal.press_delete():
            return False
        zone_id = self.modal.zone.id
        self._set_zones([z for z in self._zones if z.id != zone_id])
        self._close_modal()
        return True

    def cancel_modal(self) -> None:
        """Close the modal, discarding its draft."""
        if self.modal is not None:
            self._close_modal()

    def _close_modal(self) -> None:
        self.modal = None
        self.selected_zone_id = None
        self.mode = EditorMode.IDLE

    # ---------- Tooltip ---------- #

    @property
    def tooltip(self) -> Optional[ZoneTooltip]:
        """Hover tooltip, hidden while drawing or while the modal is open."""
        if (self.hovered_zone_id is None or self._pointer is None
                or self.mode is EditorMode.DRAWING or self.modal is not None):
            return None
        zone = self.get_zone(self.hovered_zone_id)
        if zone is None:
            return None
        return ZoneTooltip(zone=zone, x=self._pointer[0], y=self._pointer[1],
                           read_only=self.read_only)
