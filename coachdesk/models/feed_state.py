"""Feed filters, subscription states and retry policy for realtime sync."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..utils.constants import (
    BASE_RETRY_DELAY_SECONDS, MAX_RETRIES, READ_TIMEOUT_SECONDS
)


class SubscriptionState(Enum):
    """Lifecycle of one feed subscription."""
    UNSUBSCRIBED = "unsubscribed"
    SUBSCRIBING = "subscribing"
    SUBSCRIBED = "subscribed"
    ERRORING = "erroring"


@dataclass(frozen=True)
class FeedFilter:
    """
    A filter selecting a server-side set of rows.

    Attributes:
        table: Backend table name
        equals: (column, value) pairs that must match exactly
        null_columns: Columns that must be null
        order_by: Column used to order fetched rows
        descending: Sort direction for ``order_by``
    """
    table: str
    equals: Tuple[Tuple[str, str], ...] = ()
    null_columns: Tuple[str, ...] = ()
    order_by: Optional[str] = None
    descending: bool = False

    @classmethod
    def build(cls, table: str, *, null_columns: Tuple[str, ...] = (),
              order_by: Optional[str] = None, descending: bool = False,
              **equals: str) -> FeedFilter:
        """Create a filter from keyword equality clauses."""
        return cls(
            table=table,
            equals=tuple(sorted(equals.items())),
            null_columns=tuple(sorted(null_columns)),
            order_by=order_by,
            descending=descending,
        )

    @property
    def key(self) -> str:
        """Stable identifier of the filtered set, e.g. ``coaching_rules:team_id=eq.T``."""
        return f"{self.table}:{self.describe()}"

    def describe(self) -> str:
        """Render the clauses in PostgREST filter syntax."""
        clauses = [f"{col}=eq.{val}" for col, val in self.equals]
        clauses.extend(f"{col}=is.null" for col in self.null_columns)
        return ",".join(clauses)

    def matches(self, row: Dict[str, Any]) -> bool:
        """Check whether a raw row belongs to this filtered set."""
        for column, value in self.equals:
            if str(row.get(column)) != str(value) or row.get(column) is None:
                return False
        return all(row.get(column) is None for column in self.null_columns)

    def sort(self, rows: list) -> list:
        """Order raw rows as the backend would."""
        if not self.order_by:
            return list(rows)
        column = self.order_by
        present = [r for r in rows if r.get(column) is not None]
        missing = [r for r in rows if r.get(column) is None]
        present.sort(key=lambda r: r[column], reverse=self.descending)
        return present + missing


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded linear backoff: attempt ``n`` waits ``n * base_delay`` seconds."""
    max_attempts: int = MAX_RETRIES
    base_delay: float = BASE_RETRY_DELAY_SECONDS
    read_timeout: float = READ_TIMEOUT_SECONDS

    def delay_for(self, attempt: int) -> float:
        return attempt * self.base_delay

    def can_retry(self, attempt: int) -> bool:
        """Whether another attempt may be scheduled after ``attempt`` failures."""
        return attempt < self.max_attempts


@dataclass
class RetryState:
    """Mutable retry bookkeeping of one subscription."""
    attempt: int = 0
    is_subscribed: bool = False
    delays: List[float] = field(default_factory=list)

    def reset(self) -> None:
        self.attempt = 0
