"""Asyncio event loop running in a daemon thread, shared by the UI front ends."""
import asyncio
import threading
from typing import Any, Optional


class BackgroundLoop:
    """Event loop in a daemon thread; UI handlers submit coroutines to it."""

    def __init__(self, name: str = "coachdesk-sync"):
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def run(self, coro, timeout: Optional[float] = None) -> Any:
        """Run a coroutine on the loop and wait for its result."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(timeout)

    def submit(self, coro) -> "asyncio.Future":
        """Schedule a coroutine without waiting; returns a concurrent future."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def stop(self) -> None:
        if self.loop.is_closed():
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=5)
        self.loop.close()
