"""
HTTP backend for a hosted PostgREST-style store.

Reads and writes map onto ``/rest/v1/<table>`` with PostgREST filter query
parameters. Change subscription is implemented by polling: a channel re-reads
its filtered set on an interval and fires ``on_change`` whenever the content
differs from the previous read.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Tuple

import requests

from ..models.feed_state import FeedFilter
from ..utils.constants import (
    CHANNEL_CLOSED, CHANNEL_ERROR, CHANNEL_SUBSCRIBED, DEFAULT_POLL_INTERVAL_SECONDS,
    WRITE_TIMEOUT_SECONDS
)
from .backend import (
    BackendError, ChangeCallback, ChangeChannel, CollectionBackend, FetchResult,
    StatusCallback, WriteResult
)

logger = logging.getLogger(__name__)


def query_params(feed_filter: FeedFilter) -> Dict[str, str]:
    """PostgREST query parameters selecting a filtered, ordered set."""
    params = {"select": "*"}
    for column, value in feed_filter.equals:
        params[column] = f"eq.{value}"
    for column in feed_filter.null_columns:
        params[column] = "is.null"
    if feed_filter.order_by:
        direction = "desc" if feed_filter.descending else "asc"
        params["order"] = f"{feed_filter.order_by}.{direction}"
    return params


class PollingChannel(ChangeChannel):
    """Change channel that polls the filtered set."""

    def __init__(self, backend: "RestBackend", feed_filter: FeedFilter,
                 on_change: ChangeCallback, on_status: Optional[StatusCallback],
                 interval: float):
        self.backend = backend
        self.feed_filter = feed_filter
        self.on_change = on_change
        self.on_status = on_status
        self.interval = interval
        self._fingerprint: Optional[str] = None
        self._task: Optional[asyncio.Task] = None
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def start(self) -> None:
        self._open = True
        self._task = asyncio.ensure_future(self._run())

    def _report(self, status: str) -> None:
        if self.on_status is not None:
            self.on_status(status)

    async def _run(self) -> None:
        while self._open:
            result = await self.backend.fetch(self.feed_filter)
            if not self._open:
                return
            if not result.ok:
                logger.warning("Polling %s failed: %s", self.feed_filter.key, result.error)
                self._open = False
                self._report(CHANNEL_ERROR)
                return

            fingerprint = json.dumps(result.rows, sort_keys=True, default=str)
            if self._fingerprint is None:
                self._report(CHANNEL_SUBSCRIBED)
            elif fingerprint != self._fingerprint:
                self.on_change()
            self._fingerprint = fingerprint
            await asyncio.sleep(self.interval)

    async def close(self) -> None:
        if self._task is None:
            return
        was_open, self._open = self._open, False
        task, self._task = self._task, None
        if task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        if was_open:
            self._report(CHANNEL_CLOSED)


class RestBackend(CollectionBackend):
    """
    Backend talking to a hosted store over HTTP with ``requests``.

    Blocking requests run in a worker thread so the event loop stays free.

    Args:
        base_url: Project URL, e.g. ``https://example.supabase.co``
        api_key: Key sent as ``apikey`` and bearer token
        poll_interval: Seconds between polls of an open channel
        session: Preconfigured ``requests.Session`` (a new one by default)
        request_timeout: Socket timeout of a single HTTP request
    """

    def __init__(self, base_url: str, api_key: Optional[str] = None,
                 poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
                 session: Optional[requests.Session] = None,
                 request_timeout: float = WRITE_TIMEOUT_SECONDS):
        self.base_url = base_url.rstrip("/")
        self.poll_interval = poll_interval
        self.request_timeout = request_timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })
        if api_key:
            self.session.headers.update({
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
            })

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    def _request(self, method: str, table: str, params: Optional[Dict[str, str]] = None,
                 payload: Any = None, prefer: Optional[str] = None) -> Any:
        headers = {"Prefer": prefer} if prefer else None
        try:
            r = self.session.request(method, self._url(table), params=params, json=payload,
                                     headers=headers, timeout=self.request_timeout)
            r.raise_for_status()
        except requests.exceptions.HTTPError as e:
            detail = e.response.text if e.response is not None else ""
            raise BackendError(f"{method} {table} failed: {e} {detail}".strip()) from e
        except requests.exceptions.RequestException as e:
            raise BackendError(f"{method} {table} failed: {e}") from e

        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise BackendError(f"{method} {table} returned invalid JSON") from e

    async def _call(self, *args, **kwargs) -> Any:
        return await asyncio.to_thread(self._request, *args, **kwargs)

    @staticmethod
    def _first(rows: Any) -> Optional[Dict[str, Any]]:
        if isinstance(rows, list):
            return rows[0] if rows else None
        return rows

    async def fetch(self, feed_filter: FeedFilter) -> FetchResult:
        try:
            rows = await self._call("GET", feed_filter.table, params=query_params(feed_filter))
        except BackendError as e:
            return FetchResult(error=str(e))
        return FetchResult(rows=list(rows or []))

    async def insert(self, table: str, row: Dict[str, Any]) -> WriteResult:
        try:
            rows = await self._call("POST", table, params={"select": "*"}, payload=row,
                                    prefer="return=representation")
        except BackendError as e:
            return WriteResult(error=str(e))
        return WriteResult(row=self._first(rows))

    async def update(self, table: str, row_id: str, patch: Dict[str, Any]) -> WriteResult:
        try:
            rows = await self._call("PATCH", table, params={"id": f"eq.{row_id}", "select": "*"},
                                    payload=patch, prefer="return=representation")
        except BackendError as e:
            return WriteResult(error=str(e))
        row = self._first(rows)
        if row is None:
            return WriteResult(error=f"Row {row_id} not found in {table}")
        return WriteResult(row=row)

    async def delete(self, table: str, row_id: str) -> WriteResult:
        try:
            await self._call("DELETE", table, params={"id": f"eq.{row_id}"})
        except BackendError as e:
            return WriteResult(error=str(e))
        return WriteResult()

    async def upsert(self, table: str, row: Dict[str, Any],
                     on_conflict: Tuple[str, ...]) -> WriteResult:
        try:
            rows = await self._call(
                "POST", table,
                params={"on_conflict": ",".join(on_conflict), "select": "*"},
                payload=row,
                prefer="resolution=merge-duplicates,return=representation",
            )
        except BackendError as e:
            return WriteResult(error=str(e))
        return WriteResult(row=self._first(rows))

    async def subscribe(self, feed_filter: FeedFilter, on_change: ChangeCallback,
                        on_status: Optional[StatusCallback] = None) -> ChangeChannel:
        channel = PollingChannel(self, feed_filter, on_change, on_status, self.poll_interval)
        channel.start()
        logger.debug("Polling %s every %.1fs", feed_filter.key, self.poll_interval)
        return channel

    def close(self) -> None:
        self.session.close()

