"""
Coaching rule operations for the club and team rule lists.

Foreground actions run through optimistic commands with the write timeout.
Failures come back as ``ActionResult.error`` for inline display and are never
retried automatically.
"""
import logging
from typing import Optional

from ..models.feed_state import FeedFilter
from ..models.rows import CoachingRule
from ..utils.constants import WRITE_TIMEOUT_SECONDS
from .backend import CollectionBackend, guarded_call
from .commands import (
    ActionResult, CommandManager, DeleteRowCommand, InsertRowCommand,
    ToggleActiveCommand, UpdateRowCommand
)
from .feeds import RULES_TABLE, TEAMS_TABLE
from .subscription import LocalCollection

logger = logging.getLogger(__name__)


class RuleValidationError(ValueError):
    """Raised when rule content is unusable."""
    pass


class RulesService:
    """
    Service for editing one rule list (club-wide or team).

    Args:
        backend: Backend the writes go to
        collection: Local rule list shared with the feed subscription
        club_id: Owning club; club-wide rules have no team
        team_id: Owning team for a team rule list
        coach_id: Author of club-wide rules
        commands: Command history (a new manager by default)
    """

    def __init__(self, backend: CollectionBackend, collection: LocalCollection,
                 club_id: Optional[str] = None, team_id: Optional[str] = None,
                 coach_id: Optional[str] = None,
                 commands: Optional[CommandManager] = None,
                 write_timeout: float = WRITE_TIMEOUT_SECONDS):
        if team_id is None and club_id is None:
            raise ValueError("A rule list needs a club or a team")
        self.backend = backend
        self.collection = collection
        self.club_id = club_id
        self.team_id = team_id
        self.coach_id = coach_id
        self.commands = commands or CommandManager()
        self.write_timeout = write_timeout

    @property
    def is_team_list(self) -> bool:
        return self.team_id is not None

    @staticmethod
    def validate_content(content: str) -> str:
        """Return stripped content, raising if nothing is left."""
        if content is None or not content.strip():
            raise RuleValidationError("Rule content cannot be empty")
        return content.strip()

    async def _team_coach_id(self) -> ActionResult:
        result = await guarded_call(
            self.backend.fetch_one(FeedFilter.build(TEAMS_TABLE, id=self.team_id)),
            self.write_timeout,
            label="Add rule",
        )
        if not result.ok:
            return ActionResult(error=result.error)
        if result.row is None:
            logger.error("Team %s not found, rule not added", self.team_id)
            return ActionResult(error=f"Team {self.team_id} not found")
        return ActionResult(row=result.row)

    async def add_rule(self, content: str) -> ActionResult:
        """Insert a rule; the saved row is prepended to the list."""
        try:
            content = self.validate_content(content)
        except RuleValidationError as e:
            return ActionResult(error=str(e))

        if self.is_team_list:
            # Team rules are owned by the team's coach
            team = await self._team_coach_id()
            if not team.ok:
                return team
            payload = {
                "team_id": self.team_id,
                "club_id": team.row.get("club_id") or self.club_id,
                "coach_id": team.row.get("coach_id"),
                "content": content,
                "is_active": True,
            }
        else:
            payload = {
                "club_id": self.club_id,
                "team_id": None,
                "coach_id": self.coach_id,
                "content": content,
                "is_active": True,
            }

        return await self.commands.execute_command(InsertRowCommand(
            self.collection, self.backend, RULES_TABLE, CoachingRule.from_dict,
            payload, self.write_timeout,
        ))

    def start_edit(self, rule_id: str) -> bool:
        return self.collection.set_editing(rule_id, True)

    def cancel_edit(self, rule_id: str) -> bool:
        return self.collection.set_editing(rule_id, False)

    async def save_rule(self, rule_id: str, content: str) -> ActionResult:
        """Write new content; the rule leaves edit mode only if the write succeeds."""
        try:
            content = self.validate_content(content)
        except RuleValidationError as e:
            return ActionResult(error=str(e))

        return await self.commands.execute_command(UpdateRowCommand(
            self.collection, self.backend, RULES_TABLE, CoachingRule.from_dict,
            rule_id, {"content": content}, finish_editing=True,
            timeout=self.write_timeout,
        ))

    async def delete_rule(self, rule_id: str) -> ActionResult:
        return await self.commands.execute_command(DeleteRowCommand(
            self.collection, self.backend, RULES_TABLE, CoachingRule.from_dict,
            rule_id, self.write_timeout,
        ))

    async def toggle_active(self, rule_id: str) -> ActionResult:
        return await self.commands.execute_command(ToggleActiveCommand(
            self.collection, self.backend, RULES_TABLE, CoachingRule.from_dict,
            rule_id, self.write_timeout,
        ))

    async def undo(self) -> ActionResult:
        return await self.commands.undo()

    async def redo(self) -> ActionResult:
        return await self.commands.redo()
