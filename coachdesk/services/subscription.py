"""
Reconnecting realtime subscription for one filtered collection.

A ``ResilientSubscription`` keeps a client-side copy of a server-side filtered
set eventually consistent with server mutations:

- on start it fetches the collection, then opens a change channel scoped to
  the same filter;
- every change notification triggers a full re-fetch (never an in-place patch)
  which is reconciled with the local rows by id so client-only flags such as
  ``is_editing`` survive;
- a failed or timed-out refresh is retried with linear backoff
  (``attempt * base_delay``) up to ``max_attempts`` times, then dropped until
  the next change event;
- a channel reporting an error or timeout is torn down and re-created with the
  same bounded backoff; when retries run out the feed stays unsubscribed until
  it is started again;
- stopping closes the channel before anything else can open one and makes any
  refresh still in flight a no-op.
"""

from __future__ import annotations

import asyncio
import logging
from typing import (
    Awaitable, Callable, Dict, Generic, List, Optional, Set, TypeVar
)

from ..models.feed_state import FeedFilter, RetryPolicy, RetryState, SubscriptionState
from ..models.rows import LocalRow
from ..utils import with_timeout
from ..utils.constants import CHANNEL_ERROR, CHANNEL_SUBSCRIBED, CHANNEL_TIMED_OUT
from .backend import BackendError, ChangeChannel, CollectionBackend

logger = logging.getLogger(__name__)

R = TypeVar("R")

RowFactory = Callable[[Dict], R]
Listener = Callable[[List[LocalRow[R]]], None]
Sleeper = Callable[[float], Awaitable[None]]


def reconcile(previous: List[LocalRow[R]], fresh: List[R]) -> List[LocalRow[R]]:
    """
    Merge a freshly fetched collection with locally held UI state.

    The server order and content win; ``is_editing`` is carried over for rows
    whose id is still present. Rows that disappeared are dropped.
    """
    editing = {local.id: local.is_editing for local in previous}
    return [LocalRow(row=row, is_editing=editing.get(row.id, False)) for row in fresh]  # type: ignore[attr-defined]


class LocalCollection(Generic[R]):
    """Client-side cached list owned by one view."""

    def __init__(self) -> None:
        self._rows: List[LocalRow[R]] = []
        self._listeners: List[Listener] = []
        self.loading = False

    @property
    def rows(self) -> List[LocalRow[R]]:
        return list(self._rows)

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def replace(self, rows: List[LocalRow[R]]) -> None:
        self._rows = list(rows)
        for listener in list(self._listeners):
            listener(self.rows)

    def get(self, row_id: str) -> Optional[LocalRow[R]]:
        return next((r for r in self._rows if r.id == row_id), None)

    def index_of(self, row_id: str) -> int:
        return next((i for i, r in enumerate(self._rows) if r.id == row_id), -1)

    def put(self, local: LocalRow[R], index: Optional[int] = None) -> None:
        """Replace the row with the same id, or insert it at ``index`` (default: first)."""
        rows = list(self._rows)
        position = self.index_of(local.id)
        if position >= 0:
            rows[position] = local
        else:
            rows.insert(0 if index is None else index, local)
        self.replace(rows)

    def remove(self, row_id: str) -> Optional[LocalRow[R]]:
        removed = self.get(row_id)
        if removed is not None:
            self.replace([r for r in self._rows if r.id != row_id])
        return removed

    def set_editing(self, row_id: str, is_editing: bool) -> bool:
        local = self.get(row_id)
        if local is None:
            return False
        self.put(LocalRow(row=local.row, is_editing=is_editing))
        return True

    def apply_refresh(self, fresh: List[R]) -> None:
        self.replace(reconcile(self._rows, fresh))


class ResilientSubscription(Generic[R]):
    """
    One (feed, filter) subscription with bounded retry.

    Args:
        backend: Persistence and change-feed service
        feed_filter: Server-side set mirrored by this subscription
        row_factory: Builds a domain row from a raw backend dictionary
        policy: Retry attempts, backoff base and read timeout
        sleep: Awaitable delay function, injectable for tests
        name: Label used in log messages
        collection: Local collection to fill (a new one by default)
    """

    def __init__(self, backend: CollectionBackend, feed_filter: FeedFilter,
                 row_factory: RowFactory, *, policy: Optional[RetryPolicy] = None,
                 sleep: Sleeper = asyncio.sleep, name: Optional[str] = None,
                 collection: Optional[LocalCollection[R]] = None):
        self.backend = backend
        self.feed_filter = feed_filter
        self.row_factory = row_factory
        self.policy = policy or RetryPolicy()
        self.name = name or feed_filter.key
        self.collection: LocalCollection[R] = collection or LocalCollection()

        self.state = SubscriptionState.UNSUBSCRIBED
        self.retry = RetryState()
        self.last_error: Optional[str] = None

        self._sleep = sleep
        self._live = False
        self._channel: Optional[ChangeChannel] = None
        self._generation = 0
        self._gave_up = False
        self._tasks: Set[asyncio.Task] = set()
        self._fetch_seq = 0
        self._applied_seq = 0

    # ---------- Public API ---------- #

    @property
    def rows(self) -> List[LocalRow[R]]:
        return self.collection.rows

    @property
    def is_live(self) -> bool:
        return self._live

    @property
    def gave_up(self) -> bool:
        """True once channel retries ran out; cleared by the next start."""
        return self._gave_up

    async def start(self) -> None:
        """Fetch the collection, then open the change channel."""
        if self._live:
            return
        self._live = True
        self._gave_up = False
        self.retry = RetryState()
        self.collection.loading = True
        try:
            await self._refresh_with_retry(reason="initial load")
        finally:
            self.collection.loading = False
        if self._live:
            await self._open_channel()

    async def stop(self) -> None:
        """Tear down: close the channel and ignore any refresh still running."""
        self._live = False
        self._generation += 1
        current = asyncio.current_task()
        pending = [t for t in self._tasks if t is not current]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        await self._close_channel()
        self.retry.is_subscribed = False
        self.state = SubscriptionState.UNSUBSCRIBED

    async def refresh(self) -> bool:
        """Re-fetch now, with the same bounded retry as a change event."""
        return await self._refresh_with_retry(reason="manual refresh")

    async def wait_idle(self) -> None:
        """Wait until no refresh or reconnect task is pending."""
        await asyncio.sleep(0)
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
            await asyncio.sleep(0)

    def status(self) -> Dict:
        return {
            "name": self.name,
            "filter": self.feed_filter.key,
            "state": self.state.value,
            "attempt": self.retry.attempt,
            "is_subscribed": self.retry.is_subscribed,
            "loading": self.collection.loading,
            "row_count": len(self.collection.rows),
            "last_error": self.last_error,
        }

    # ---------- Fetching ---------- #

    def _spawn(self, coro: Awaitable) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _fetch_once(self) -> None:
        self._fetch_seq += 1
        seq = self._fetch_seq
        result = await with_timeout(
            self.backend.fetch(self.feed_filter),
            self.policy.read_timeout,
            label=f"{self.name} fetch",
        )
        if not result.ok:
            raise BackendError(result.error)
        rows = [self.row_factory(raw) for raw in result.rows]

        # A refresh finishing after teardown, or behind a newer one, is dropped
        if not self._live or seq < self._applied_seq:
            return
        self._applied_seq = seq
        self.collection.apply_refresh(rows)

    async def _refresh_with_retry(self, reason: str) -> bool:
        attempt = 0
        generation = self._generation
        while True:
            try:
                await self._fetch_once()
                self.last_error = None
                return True
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self.last_error = str(exc)
                if not self.policy.can_retry(attempt):
                    logger.error("%s: %s failed after %d retries: %s",
                                 self.name, reason, attempt, exc)
                    return False
                attempt += 1
                delay = self.policy.delay_for(attempt)
                logger.warning("%s: %s failed (%s), retry %d in %.1fs",
                               self.name, reason, exc, attempt, delay)
                await self._sleep(delay)
                if not self._live or generation != self._generation:
                    return False

    def _on_change(self, generation: int) -> None:
        if not self._live or generation != self._generation:
            return
        self._spawn(self._refresh_with_retry(reason="change refresh"))

    # ---------- Channel ---------- #

    async def _open_channel(self) -> None:
        await self._close_channel()
        if not self._live:
            return

        self._generation += 1
        generation = self._generation
        self.state = SubscriptionState.SUBSCRIBING
        try:
            channel = await with_timeout(
                self.backend.subscribe(
                    self.feed_filter,
                    lambda: self._on_change(generation),
                    lambda status: self._on_status(generation, status),
                ),
                self.policy.read_timeout,
                label=f"{self.name} subscribe",
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("%s: failed to create subscription: %s", self.name, exc)
            self.last_error = str(exc)
            self._channel_failed(generation)
            return

        if not self._live or generation != self._generation or self._gave_up:
            await channel.close()
            return
        self._channel = channel

    async def _close_channel(self) -> None:
        channel, self._channel = self._channel, None
        if channel is not None and channel.is_open:
            await channel.close()

    def _on_status(self, generation: int, status: str) -> None:
        if not self._live or generation != self._generation:
            return
        if status == CHANNEL_SUBSCRIBED:
            self.state = SubscriptionState.SUBSCRIBED
            self.retry.is_subscribed = True
            self.retry.reset()
            self.last_error = None
        elif status in (CHANNEL_ERROR, CHANNEL_TIMED_OUT):
            logger.warning("%s: subscription reported %s, retrying", self.name, status)
            self.retry.is_subscribed = False
            self.last_error = status
            self._channel_failed(generation)

    def _channel_failed(self, generation: int) -> None:
        if not self._live or generation != self._generation:
            return
        if not self.policy.can_retry(self.retry.attempt):
            logger.error("%s: giving up after %d subscription retries",
                         self.name, self.retry.attempt)
            self._gave_up = True
            self.state = SubscriptionState.UNSUBSCRIBED
            self._spawn(self._close_channel())
            return

        self.retry.attempt += 1
        delay = self.policy.delay_for(self.retry.attempt)
        self.retry.delays.append(delay)
        self.state = SubscriptionState.ERRORING
        self._spawn(self._reconnect_after(delay, generation))

    async def _reconnect_after(self, delay: float, generation: int) -> None:
        await self._sleep(delay)
        if self._live and generation == self._generation:
            await self._open_channel()
