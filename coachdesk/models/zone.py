"""Pitch zone models for the playing methodology editor."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Optional


@dataclass
class ZoneRect:
    """Axis-aligned rectangle given by its top-left corner and extent."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def to_dict(self) -> Dict:
        """Convert to dictionary for serialization."""
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass
class PitchZone:
    """
    A coach-authored rectangular region of interest on a pitch diagram.

    Coordinates and extent are percentages of the pitch width/height, so a zone
    is independent of the resolution it was drawn at.
    """
    id: str
    x: float  # 0-100, left to right
    y: float  # 0-100, top to bottom
    width: float
    height: float
    title: str = ""
    description: str = ""
    color: Optional[str] = None

    @property
    def rect(self) -> ZoneRect:
        return ZoneRect(self.x, self.y, self.width, self.height)

    def moved_to(self, x: float, y: float) -> PitchZone:
        """Return a copy of the zone at a new top-left position."""
        return replace(self, x=x, y=y)

    def with_details(self, title: str, description: str,
                     color: Optional[str] = None) -> PitchZone:
        """Return a copy with new descriptive fields; color kept unless given."""
        return replace(
            self,
            title=title,
            description=description,
            color=color if color is not None else self.color,
        )

    def to_dict(self) -> Dict:
        """Convert to dictionary for serialization."""
        data = {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "title": self.title,
            "description": self.description,
        }
        if self.color is not None:
            data["color"] = self.color
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> PitchZone:
        """Create from dictionary."""
        return cls(
            id=str(data["id"]),
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data["width"]),
            height=float(data["height"]),
            title=data.get("title") or "",
            description=data.get("description") or "",
            color=data.get("color"),
        )
