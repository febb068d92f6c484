"""
Methodology persistence: pitch zones, methodology entries, positional profiles
and per-team training rule toggles.

Club-level records have no team (``team_id is null``); team records carry the
team id. Zone collections are stored on a playing methodology record.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..models.attributes import AttributesV2
from ..models.feed_state import FeedFilter
from ..models.rows import MethodologyEntry, PositionalProfile, TrainingRuleToggle
from ..models.zone import PitchZone
from ..utils.constants import WRITE_TIMEOUT_SECONDS
from .backend import CollectionBackend, FetchResult, guarded_call
from .commands import ActionResult
from .feeds import PLAYING_TABLE, PROFILES_TABLE, TOGGLES_TABLE, TRAINING_TABLE, scoped_filter
from .zone_validator import ZoneValidationService

logger = logging.getLogger(__name__)

CLUB_ZONES_TITLE = "Playing Methodology"
CLUB_ZONES_DESCRIPTION = "Club playing methodology with pitch zones"
TEAM_ZONES_DESCRIPTION = "Team playing methodology with pitch zones"

METHODOLOGY_TABLES = {"playing": PLAYING_TABLE, "training": TRAINING_TABLE}


@dataclass
class ZonesResult:
    zones: List[PitchZone] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ProfilesResult:
    profiles: List[PositionalProfile] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class MethodologyService:
    """
    Service for club and team methodology configuration.

    Args:
        backend: Backend the records live in
        validator: Zone collection validator run before every zone save
        timeout: Client-side timeout of each backend call
    """

    def __init__(self, backend: CollectionBackend,
                 validator: Optional[ZoneValidationService] = None,
                 timeout: float = WRITE_TIMEOUT_SECONDS):
        self.backend = backend
        self.validator = validator or ZoneValidationService()
        self.timeout = timeout

    async def _fetch(self, flt: FeedFilter, label: str) -> FetchResult:
        return await guarded_call(self.backend.fetch(flt), self.timeout,
                                  label=label, failure=FetchResult)

    # ---------- Zones ---------- #

    async def _zone_records(self, club_id: str, team_id: Optional[str]) -> FetchResult:
        flt = scoped_filter(PLAYING_TABLE, club_id, team_id, order_by="display_order")
        return await self._fetch(flt, "Load zones")

    async def get_zones(self, club_id: str, team_id: Optional[str] = None) -> ZonesResult:
        """
        Load the zone collection of a club (or of one of its teams).

        A scope without any zones yet yields an empty collection, not an error.
        """
        result = await self._zone_records(club_id, team_id)
        if not result.ok:
            return ZonesResult(error=result.error)

        record = next((r for r in result.rows if r.get("zones") is not None), None)
        if record is None:
            return ZonesResult()
        return ZonesResult(zones=[PitchZone.from_dict(z) for z in record["zones"]])

    async def save_zones(self, club_id: str, coach_id: str, zones: Sequence[PitchZone],
                         team_id: Optional[str] = None) -> ActionResult:
        """
        Persist a full zone collection.

        The record already holding zones is updated; otherwise any record of
        the scope gets the zones; otherwise a new record is created.
        """
        validation = self.validator.validate_collection(zones)
        if not validation.is_valid:
            return ActionResult(error="; ".join(validation.errors))

        payload = [zone.to_dict() for zone in zones]
        records = await self._zone_records(club_id, team_id)
        if not records.ok:
            return ActionResult(error=records.error)

        target = next((r for r in records.rows if r.get("zones") is not None), None)
        if target is None and records.rows:
            target = records.rows[0]

        if target is not None:
            result = await guarded_call(
                self.backend.update(PLAYING_TABLE, str(target["id"]), {"zones": payload}),
                self.timeout, label="Save zones",
            )
        else:
            result = await guarded_call(
                self.backend.insert(PLAYING_TABLE, {
                    "club_id": club_id,
                    "team_id": team_id,
                    "created_by_coach_id": coach_id,
                    "title": CLUB_ZONES_TITLE,
                    "description": CLUB_ZONES_DESCRIPTION if team_id is None else TEAM_ZONES_DESCRIPTION,
                    "zones": payload,
                    "display_order": 0,
                    "is_active": True,
                }),
                self.timeout, label="Save zones",
            )

        if not result.ok:
            logger.error("Error saving zones for club %s team %s: %s", club_id, team_id, result.error)
            return ActionResult(error=result.error)
        logger.info("Saved %d zones for club %s team %s", len(payload), club_id, team_id)
        return ActionResult(row=result.row)

    # ---------- Methodology entries ---------- #

    async def create_entry(self, kind: str, club_id: str, coach_id: str, title: str,
                           description: str = "", team_id: Optional[str] = None) -> ActionResult:
        """Append a playing or training methodology entry at the end of its scope."""
        table = METHODOLOGY_TABLES.get(kind)
        if table is None:
            return ActionResult(error=f"Unknown methodology kind: {kind}")
        if not title or not title.strip():
            return ActionResult(error="Title cannot be empty")

        existing = await self._fetch(scoped_filter(table, club_id, team_id), "Create methodology")
        if not existing.ok:
            return ActionResult(error=existing.error)
        orders = [r.get("display_order") for r in existing.rows if r.get("display_order") is not None]
        next_order = max(orders) + 1 if orders else 0

        result = await guarded_call(
            self.backend.insert(table, {
                "club_id": club_id,
                "team_id": team_id,
                "created_by_coach_id": coach_id,
                "title": title.strip(),
                "description": description,
                "display_order": next_order,
            }),
            self.timeout, label="Create methodology",
        )
        if not result.ok:
            return ActionResult(error=result.error)
        return ActionResult(row=MethodologyEntry.from_dict(result.row).to_dict())

    # ---------- Positional profiles ---------- #

    async def get_positional_profiles(self, club_id: str,
                                      team_id: Optional[str] = None) -> ProfilesResult:
        """Load profiles; legacy attribute lists are migrated on the way in."""
        result = await self._fetch(
            scoped_filter(PROFILES_TABLE, club_id, team_id, order_by="display_order"),
            "Load positional profiles",
        )
        if not result.ok:
            return ProfilesResult(error=result.error)
        return ProfilesResult(profiles=[PositionalProfile.from_dict(r) for r in result.rows])

    async def save_profile_attributes(self, profile_id: str,
                                      attributes: AttributesV2) -> ActionResult:
        """Write attributes back, always in the current shape."""
        result = await guarded_call(
            self.backend.update(PROFILES_TABLE, profile_id, {"attributes": attributes.to_dict()}),
            self.timeout, label="Save positional profile",
        )
        if not result.ok:
            return ActionResult(error=result.error)
        return ActionResult(row=result.row)

    # ---------- Training rule toggles ---------- #

    async def get_training_rule_toggles(self, team_id: str) -> Dict[str, bool]:
        """Map of training rule id to enabled flag; rules without a toggle are absent."""
        result = await self._fetch(FeedFilter.build(TOGGLES_TABLE, team_id=team_id),
                                   "Load training rule toggles")
        if not result.ok:
            logger.warning("Training rule toggles for team %s unavailable: %s", team_id, result.error)
            return {}
        toggles = [TrainingRuleToggle.from_dict(r) for r in result.rows]
        return {t.training_rule_id: t.is_enabled for t in toggles}

    async def toggle_training_rule(self, team_id: str, training_rule_id: str,
                                   is_enabled: bool) -> ActionResult:
        """Enable or disable a club training rule for one team."""
        result = await guarded_call(
            self.backend.upsert(TOGGLES_TABLE, {
                "team_id": team_id,
                "training_rule_id": training_rule_id,
                "is_enabled": is_enabled,
            }, on_conflict=("team_id", "training_rule_id")),
            self.timeout, label="Toggle training rule",
        )
        if not result.ok:
            return ActionResult(error=result.error)
        return ActionResult(row=result.row)

    @staticmethod
    def rule_enabled(toggles: Dict[str, Any], training_rule_id: str) -> bool:
        """Club training rules are enabled for a team unless toggled off."""
        return bool(toggles.get(training_rule_id, True))
