"""
Time helpers for the CoachDesk application.

This module contains clock accessors and the client-side timeout wrapper used
by every persistence call.
"""
import asyncio
import time
from typing import Awaitable, Optional, TypeVar

T = TypeVar("T")


class OperationTimeout(TimeoutError):
    """Raised when a backend operation exceeds its client-side safety timeout."""

    def __init__(self, label: str, seconds: float):
        super().__init__(f"{label} timeout after {seconds:g} seconds")
        self.label = label
        self.seconds = seconds


def now_ts() -> float:
    """
    Get current timestamp in epoch seconds.

    Returns:
        Current time as floating point epoch seconds
    """
    return time.time()


def now_ms() -> int:
    """Get current timestamp in whole epoch milliseconds."""
    return int(now_ts() * 1000)


async def with_timeout(awaitable: Awaitable[T], seconds: float,
                       label: Optional[str] = None) -> T:
    """
    Await an operation, giving up after ``seconds``.

    Args:
        awaitable: Coroutine or future to wait for
        seconds: Client-side safety timeout
        label: Operation name used in the timeout message

    Returns:
        Result of the awaited operation

    Raises:
        OperationTimeout: If the operation did not finish in time
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as exc:
        raise OperationTimeout(label or "Operation", seconds) from exc
