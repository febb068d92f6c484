"""
Persistence and change-subscription interfaces.

The hosted backend (relational store, realtime change feed) is an external
collaborator. Everything in this package reaches it through the narrow
``CollectionBackend`` interface defined here. ``MemoryBackend`` implements it
in-process for local runs and tests, including change notification and
channel-status fault injection.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, BinaryIO, Callable, Dict, List, Optional, Tuple

from ..models.feed_state import FeedFilter
from ..utils import OperationTimeout, with_timeout
from ..utils.constants import (
    CHANNEL_CLOSED, CHANNEL_ERROR, CHANNEL_SUBSCRIBED, WRITE_TIMEOUT_SECONDS
)

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[], None]
StatusCallback = Callable[[str], None]


class BackendError(Exception):
    """Raised by backends when the store cannot complete a request."""
    pass


@dataclass
class FetchResult:
    """Rows of a collection read, or the error that prevented it."""
    rows: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class WriteResult:
    """Row returned by a write, or the error that prevented it."""
    row: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ChangeChannel(ABC):
    """Handle of one open change subscription."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        pass

    @abstractmethod
    async def close(self) -> None:
        """Unsubscribe; no callbacks fire after this returns."""
        pass


class CollectionBackend(ABC):
    """Narrow interface to the hosted relational store and its change feed."""

    @abstractmethod
    async def fetch(self, feed_filter: FeedFilter) -> FetchResult:
        """Read every row matching the filter, in the filter's order."""
        pass

    @abstractmethod
    async def insert(self, table: str, row: Dict[str, Any]) -> WriteResult:
        pass

    @abstractmethod
    async def update(self, table: str, row_id: str, patch: Dict[str, Any]) -> WriteResult:
        pass

    @abstractmethod
    async def delete(self, table: str, row_id: str) -> WriteResult:
        pass

    @abstractmethod
    async def upsert(self, table: str, row: Dict[str, Any],
                     on_conflict: Tuple[str, ...]) -> WriteResult:
        """Insert, or update the row whose ``on_conflict`` columns match."""
        pass

    @abstractmethod
    async def subscribe(self, feed_filter: FeedFilter, on_change: ChangeCallback,
                        on_status: Optional[StatusCallback] = None) -> ChangeChannel:
        """
        Open a change subscription scoped to ``feed_filter``.

        ``on_change`` fires on any insert, update or delete touching the
        filtered set and carries no payload. ``on_status`` receives channel
        status strings (``SUBSCRIBED``, ``CHANNEL_ERROR``, ``TIMED_OUT``,
        ``CLOSED``).
        """
        pass

    async def fetch_one(self, feed_filter: FeedFilter) -> WriteResult:
        """Read the first row matching a filter (``row`` is None if absent)."""
        result = await self.fetch(feed_filter)
        if not result.ok:
            return WriteResult(error=result.error)
        return WriteResult(row=result.rows[0] if result.rows else None)


@dataclass
class UploadResult:
    """Opaque storage path of an uploaded file, or the error that prevented it."""
    path: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class FileStorage(ABC):
    """Opaque file storage (club logos, profile pictures)."""

    @abstractmethod
    def upload(self, file: BinaryIO, owner_id: str,
               filename: Optional[str] = None) -> UploadResult:
        pass


async def guarded_call(awaitable: Awaitable, seconds: float = WRITE_TIMEOUT_SECONDS,
                       label: str = "Operation", failure: Callable[..., Any] = WriteResult):
    """
    Await a foreground backend call under a client-side timeout.

    Timeouts and store errors are logged and returned as ``failure(error=...)``
    so callers always receive a ``{data, error}`` record instead of an exception.
    """
    try:
        return await with_timeout(awaitable, seconds, label=label)
    except (OperationTimeout, BackendError) as exc:
        logger.error("%s failed: %s", label, exc)
        return failure(error=str(exc))


# ---------- In-memory implementation ---------- #

class MemoryChannel(ChangeChannel):
    """Change subscription held by ``MemoryBackend``."""

    def __init__(self, backend: MemoryBackend, feed_filter: FeedFilter,
                 on_change: ChangeCallback, on_status: Optional[StatusCallback]):
        self.backend = backend
        self.feed_filter = feed_filter
        self.on_change = on_change
        self.on_status = on_status
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open

    def report_status(self, status: str) -> None:
        if self._open and self.on_status is not None:
            self.on_status(status)

    def notify(self) -> None:
        if self._open:
            self.on_change()

    async def close(self) -> None:
        if not self._open:
            return
        self._open = False
        self.backend._channels.remove(self)
        if self.on_status is not None:
            self.on_status(CHANNEL_CLOSED)


class MemoryBackend(CollectionBackend):
    """
    In-process backend.

    Rows are stored per table as dictionaries keyed by id. Each write notifies
    open channels whose filter matches the row before or after the write.
    Failures can be queued to exercise retry paths.
    """

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self._tables: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._channels: List[MemoryChannel] = []
        self._last_timestamp: Optional[datetime] = None

        self._fetch_failures: List[str] = []
        self._write_failures: List[str] = []
        self._subscribe_failures: List[str] = []
        self.fetch_delay = 0.0
        self.fetch_count = 0
        self.subscribe_count = 0

    # ---------- Fault injection ---------- #

    def fail_next_fetches(self, count: int, error: str = "Network error") -> None:
        self._fetch_failures.extend([error] * count)

    def fail_next_writes(self, count: int, error: str = "Network error") -> None:
        self._write_failures.extend([error] * count)

    def fail_next_subscribes(self, count: int, status: str = CHANNEL_ERROR) -> None:
        """Queue channel statuses reported instead of ``SUBSCRIBED``."""
        self._subscribe_failures.extend([status] * count)

    def broadcast_status(self, status: str, table: Optional[str] = None) -> None:
        """Report a status on every open channel (of one table, if given)."""
        for channel in list(self._channels):
            if table is None or channel.feed_filter.table == table:
                channel.report_status(status)

    @property
    def open_channels(self) -> List[MemoryChannel]:
        return list(self._channels)

    # ---------- Helpers ---------- #

    def _table(self, table: str) -> Dict[str, Dict[str, Any]]:
        return self._tables.setdefault(table, {})

    def _next_timestamp(self) -> str:
        now = datetime.now(timezone.utc)
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now.isoformat()

    async def _pause(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)

    def _notify(self, table: str, *rows: Optional[Dict[str, Any]]) -> None:
        for channel in list(self._channels):
            if channel.feed_filter.table != table:
                continue
            if any(row is not None and channel.feed_filter.matches(row) for row in rows):
                channel.notify()

    def seed(self, table: str, rows: List[Dict[str, Any]]) -> None:
        """Load rows without notifying subscribers."""
        store = self._table(table)
        for row in rows:
            data = dict(row)
            data.setdefault("id", str(uuid.uuid4()))
            data.setdefault("created_at", self._next_timestamp())
            store[str(data["id"])] = data

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return [copy.deepcopy(r) for r in self._table(table).values()]

    # ---------- CollectionBackend ---------- #

    async def fetch(self, feed_filter: FeedFilter) -> FetchResult:
        self.fetch_count += 1
        if self.fetch_delay:
            await asyncio.sleep(self.fetch_delay)
        await self._pause()
        if self._fetch_failures:
            return FetchResult(error=self._fetch_failures.pop(0))
        rows = [r for r in self._table(feed_filter.table).values() if feed_filter.matches(r)]
        return FetchResult(rows=copy.deepcopy(feed_filter.sort(rows)))

    async def insert(self, table: str, row: Dict[str, Any]) -> WriteResult:
        await self._pause()
        if self._write_failures:
            return WriteResult(error=self._write_failures.pop(0))
        data = dict(row)
        data.setdefault("id", str(uuid.uuid4()))
        timestamp = self._next_timestamp()
        data.setdefault("created_at", timestamp)
        data.setdefault("updated_at", timestamp)
        store = self._table(table)
        if str(data["id"]) in store:
            return WriteResult(error=f"Duplicate id {data['id']} in {table}")
        store[str(data["id"])] = data
        self._notify(table, data)
        return WriteResult(row=copy.deepcopy(data))

    async def update(self, table: str, row_id: str, patch: Dict[str, Any]) -> WriteResult:
        await self._pause()
        if self._write_failures:
            return WriteResult(error=self._write_failures.pop(0))
        store = self._table(table)
        if row_id not in store:
            return WriteResult(error=f"Row {row_id} not found in {table}")
        before = dict(store[row_id])
        store[row_id].update(patch)
        store[row_id]["updated_at"] = self._next_timestamp()
        self._notify(table, before, store[row_id])
        return WriteResult(row=copy.deepcopy(store[row_id]))

    async def delete(self, table: str, row_id: str) -> WriteResult:
        await self._pause()
        if self._write_failures:
            return WriteResult(error=self._write_failures.pop(0))
        removed = self._table(table).pop(row_id, None)
        if removed is None:
            return WriteResult(error=f"Row {row_id} not found in {table}")
        self._notify(table, removed)
        return WriteResult()

    async def upsert(self, table: str, row: Dict[str, Any],
                     on_conflict: Tuple[str, ...]) -> WriteResult:
        for existing in self._table(table).values():
            if all(existing.get(col) == row.get(col) for col in on_conflict):
                patch = {k: v for k, v in row.items() if k not in on_conflict}
                return await self.update(table, str(existing["id"]), patch)
        return await self.insert(table, row)

    async def subscribe(self, feed_filter: FeedFilter, on_change: ChangeCallback,
                        on_status: Optional[StatusCallback] = None) -> ChangeChannel:
        self.subscribe_count += 1
        await self._pause()
        channel = MemoryChannel(self, feed_filter, on_change, on_status)
        self._channels.append(channel)
        status = self._subscribe_failures.pop(0) if self._subscribe_failures else CHANNEL_SUBSCRIBED
        # Status arrives asynchronously, as it does from a realtime server
        asyncio.get_running_loop().call_soon(channel.report_status, status)
        logger.debug("Opened channel on %s", feed_filter.key)
        return channel
