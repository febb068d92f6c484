"""
Domain rows mirrored from the hosted relational backend.

Rows are plain records keyed by ``id``. Timestamps stay as the ISO strings the
backend returns; their format is owned by the store, not by this package.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Generic, List, Optional, TypeVar

from .attributes import AttributesV2, parse_attributes
from .zone import PitchZone


@dataclass
class CoachingRule:
    """A coaching rule, either club-wide (no team) or team specific."""
    id: str
    content: str
    is_active: bool = True
    coach_id: Optional[str] = None
    club_id: Optional[str] = None
    team_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "content": self.content,
            "is_active": self.is_active,
            "coach_id": self.coach_id,
            "club_id": self.club_id,
            "team_id": self.team_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CoachingRule:
        """Create from dictionary."""
        return cls(
            id=str(data["id"]),
            content=data.get("content") or "",
            is_active=bool(data.get("is_active", True)),
            coach_id=data.get("coach_id"),
            club_id=data.get("club_id"),
            team_id=data.get("team_id"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


@dataclass
class MethodologyEntry:
    """A playing or training methodology row; playing rows may carry pitch zones."""
    id: str
    club_id: str
    title: str
    team_id: Optional[str] = None
    created_by_coach_id: Optional[str] = None
    description: Optional[str] = None
    display_order: Optional[int] = None
    is_active: Optional[bool] = True
    zones: Optional[List[PitchZone]] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "club_id": self.club_id,
            "team_id": self.team_id,
            "created_by_coach_id": self.created_by_coach_id,
            "title": self.title,
            "description": self.description,
            "display_order": self.display_order,
            "is_active": self.is_active,
            "zones": [z.to_dict() for z in self.zones] if self.zones is not None else None,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> MethodologyEntry:
        """Create from dictionary."""
        zones = data.get("zones")
        return cls(
            id=str(data["id"]),
            club_id=data.get("club_id") or "",
            title=data.get("title") or "",
            team_id=data.get("team_id"),
            created_by_coach_id=data.get("created_by_coach_id"),
            description=data.get("description"),
            display_order=data.get("display_order"),
            is_active=data.get("is_active", True),
            zones=[PitchZone.from_dict(z) for z in zones] if zones is not None else None,
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


@dataclass
class PositionalProfile:
    """Attributes a club or team expects from a position."""
    id: str
    club_id: str
    position_key: str
    team_id: Optional[str] = None
    custom_position_name: Optional[str] = None
    attributes: AttributesV2 = field(default_factory=AttributesV2)
    is_active: Optional[bool] = True
    display_order: Optional[int] = None

    @property
    def display_name(self) -> str:
        return self.custom_position_name or self.position_key

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary; attributes are always written in v2 shape."""
        return {
            "id": self.id,
            "club_id": self.club_id,
            "team_id": self.team_id,
            "position_key": self.position_key,
            "custom_position_name": self.custom_position_name,
            "attributes": self.attributes.to_dict(),
            "is_active": self.is_active,
            "display_order": self.display_order,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PositionalProfile:
        """Create from dictionary, migrating legacy attribute payloads."""
        return cls(
            id=str(data["id"]),
            club_id=data.get("club_id") or "",
            position_key=data.get("position_key") or "",
            team_id=data.get("team_id"),
            custom_position_name=data.get("custom_position_name"),
            attributes=parse_attributes(data.get("attributes")),
            is_active=data.get("is_active", True),
            display_order=data.get("display_order"),
        )


@dataclass
class TrainingSession:
    """A planned or completed training session for a team."""
    id: str
    team_id: str
    title: str = ""
    coach_id: Optional[str] = None
    session_date: Optional[str] = None
    duration_minutes: Optional[int] = None
    notes: str = ""
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "team_id": self.team_id,
            "title": self.title,
            "coach_id": self.coach_id,
            "session_date": self.session_date,
            "duration_minutes": self.duration_minutes,
            "notes": self.notes,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TrainingSession:
        """Create from dictionary."""
        return cls(
            id=str(data["id"]),
            team_id=data.get("team_id") or "",
            title=data.get("title") or "",
            coach_id=data.get("coach_id"),
            session_date=data.get("session_date"),
            duration_minutes=data.get("duration_minutes"),
            notes=data.get("notes") or "",
            created_at=data.get("created_at"),
        )


@dataclass
class TrainingRuleToggle:
    """Per-team override enabling or disabling a club training rule."""
    id: str
    team_id: str
    training_rule_id: str
    is_enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "team_id": self.team_id,
            "training_rule_id": self.training_rule_id,
            "is_enabled": self.is_enabled,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TrainingRuleToggle:
        return cls(
            id=str(data["id"]),
            team_id=data.get("team_id") or "",
            training_rule_id=data.get("training_rule_id") or "",
            is_enabled=bool(data.get("is_enabled", True)),
        )


R = TypeVar("R")


@dataclass
class LocalRow(Generic[R]):
    """
    A server row together with client-only UI state.

    ``is_editing`` never travels to the backend; it survives refreshes because
    collections are reconciled by row id.
    """
    row: R
    is_editing: bool = False

    @property
    def id(self) -> str:
        return self.row.id  # type: ignore[attr-defined]

    def with_row(self, row: R) -> LocalRow[R]:
        return replace(self, row=row)

    def to_dict(self) -> Dict[str, Any]:
        data = self.row.to_dict()  # type: ignore[attr-defined]
        data["is_editing"] = self.is_editing
        return data
