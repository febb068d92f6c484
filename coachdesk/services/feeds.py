"""
Feed catalog and subscription ownership.

A feed is a named, filter-scoped collection a view keeps in sync. The catalog
below maps each feed to its table, row type and ordering. ``FeedManager``
gives every view its own ``ResilientSubscription`` per feed and stops a
view's previous one before another filter is started for it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from ..models.feed_state import FeedFilter, RetryPolicy
from ..models.rows import (
    CoachingRule, MethodologyEntry, PositionalProfile, TrainingRuleToggle,
    TrainingSession
)
from .backend import CollectionBackend
from .subscription import LocalCollection, ResilientSubscription, Sleeper

logger = logging.getLogger(__name__)

RULES_TABLE = "coaching_rules"
PLAYING_TABLE = "playing_methodology"
TRAINING_TABLE = "training_methodology"
PROFILES_TABLE = "positional_profiles"
SESSIONS_TABLE = "sessions"
TOGGLES_TABLE = "team_training_rule_toggles"
TEAMS_TABLE = "teams"


class Feed(Enum):
    CLUB_RULES = "club_rules"
    TEAM_RULES = "team_rules"
    PLAYING_METHODOLOGY = "playing_methodology"
    TRAINING_METHODOLOGY = "training_methodology"
    POSITIONAL_PROFILES = "positional_profiles"
    SESSIONS = "sessions"
    TRAINING_RULE_TOGGLES = "training_rule_toggles"


@dataclass(frozen=True)
class FeedSpec:
    table: str
    row_factory: Callable
    order_by: Optional[str] = None
    descending: bool = False


FEED_CATALOG: Dict[Feed, FeedSpec] = {
    Feed.CLUB_RULES: FeedSpec(RULES_TABLE, CoachingRule.from_dict, "created_at", True),
    Feed.TEAM_RULES: FeedSpec(RULES_TABLE, CoachingRule.from_dict, "created_at", True),
    Feed.PLAYING_METHODOLOGY: FeedSpec(PLAYING_TABLE, MethodologyEntry.from_dict, "display_order"),
    Feed.TRAINING_METHODOLOGY: FeedSpec(TRAINING_TABLE, MethodologyEntry.from_dict, "display_order"),
    Feed.POSITIONAL_PROFILES: FeedSpec(PROFILES_TABLE, PositionalProfile.from_dict, "display_order"),
    Feed.SESSIONS: FeedSpec(SESSIONS_TABLE, TrainingSession.from_dict, "session_date", True),
    Feed.TRAINING_RULE_TOGGLES: FeedSpec(TOGGLES_TABLE, TrainingRuleToggle.from_dict),
}


def scoped_filter(table: str, club_id: str, team_id: Optional[str] = None,
                  order_by: Optional[str] = None, descending: bool = False) -> FeedFilter:
    """Club scope is ``team_id is null``; team scope is ``team_id = T``."""
    if team_id is None:
        return FeedFilter.build(table, null_columns=("team_id",), order_by=order_by,
                                descending=descending, club_id=club_id)
    return FeedFilter.build(table, order_by=order_by, descending=descending,
                            club_id=club_id, team_id=team_id)


def feed_filter(feed: Feed, *, club_id: Optional[str] = None,
                team_id: Optional[str] = None) -> FeedFilter:
    """
    Build the filter of a catalog feed.

    Raises:
        ValueError: If an id the feed is scoped by is missing
    """
    spec = FEED_CATALOG[feed]

    if feed is Feed.CLUB_RULES:
        if not club_id:
            raise ValueError("Club rules need a club id")
        return scoped_filter(spec.table, club_id, None, spec.order_by, spec.descending)

    if feed in (Feed.TEAM_RULES, Feed.SESSIONS, Feed.TRAINING_RULE_TOGGLES):
        if not team_id:
            raise ValueError(f"{feed.value} needs a team id")
        return FeedFilter.build(spec.table, order_by=spec.order_by,
                                descending=spec.descending, team_id=team_id)

    if not club_id:
        raise ValueError(f"{feed.value} needs a club id")
    return scoped_filter(spec.table, club_id, team_id, spec.order_by, spec.descending)


DEFAULT_VIEW = "default"


class FeedManager:
    """
    Owns the live subscriptions of one client.

    Subscriptions belong to views: each (view, feed) pair has its own
    ``ResilientSubscription`` and local collection, so two views on the same
    filter keep independent copies and closing one never affects the other.

    Args:
        backend: Backend every subscription reads from
        policy: Retry policy handed to each subscription
        sleep: Delay function handed to each subscription
    """

    def __init__(self, backend: CollectionBackend, policy: Optional[RetryPolicy] = None,
                 sleep: Sleeper = asyncio.sleep):
        self.backend = backend
        self.policy = policy or RetryPolicy()
        self.sleep = sleep
        self._subscriptions: Dict[Tuple[str, Feed], ResilientSubscription] = {}
        self._lock = asyncio.Lock()

    def get(self, feed: Feed, view: str = DEFAULT_VIEW) -> Optional[ResilientSubscription]:
        return self._subscriptions.get((view, feed))

    async def open(self, feed: Feed, *, club_id: Optional[str] = None,
                   team_id: Optional[str] = None,
                   view: str = DEFAULT_VIEW) -> ResilientSubscription:
        """
        Start (or reuse) a view's subscription to a feed.

        When the view was showing the feed under another filter, its old
        subscription is stopped before the new one starts. Opening a
        subscription that gave up acts as a remount and restarts it.
        """
        flt = feed_filter(feed, club_id=club_id, team_id=team_id)
        key = (view, feed)

        async with self._lock:
            subscription = self._subscriptions.get(key)
            if subscription is not None and subscription.feed_filter.key != flt.key:
                await self._stop_key(key)
                subscription = None

            if subscription is None:
                spec = FEED_CATALOG[feed]
                subscription = ResilientSubscription(
                    self.backend, flt, spec.row_factory,
                    policy=self.policy, sleep=self.sleep,
                    name=feed.value, collection=LocalCollection(),
                )
                self._subscriptions[key] = subscription

        if subscription.gave_up:
            await subscription.stop()
        if not subscription.is_live:
            logger.info("Opening feed %s for view %s", flt.key, view)
            await subscription.start()
        return subscription

    async def close(self, feed: Feed, view: str = DEFAULT_VIEW) -> bool:
        """Unmount a view's feed."""
        async with self._lock:
            return await self._stop_key((view, feed))

    async def close_view(self, view: str) -> int:
        """Unmount every feed of a view; returns how many were closed."""
        async with self._lock:
            keys = [key for key in self._subscriptions if key[0] == view]
            for key in keys:
                await self._stop_key(key)
            return len(keys)

    async def close_all(self) -> None:
        async with self._lock:
            for key in list(self._subscriptions):
                await self._stop_key(key)

    async def _stop_key(self, key: Tuple[str, Feed]) -> bool:
        subscription = self._subscriptions.pop(key, None)
        if subscription is None:
            return False
        logger.info("Closing feed %s for view %s", subscription.feed_filter.key, key[0])
        await subscription.stop()
        return True

    def statuses(self) -> List[Dict]:
        return [dict(sub.status(), view=view)
                for (view, _feed), sub in self._subscriptions.items()]
