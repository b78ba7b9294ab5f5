"""
A dedicated asyncio loop on a daemon thread. Streamlit reruns the script
on every interaction; timers (reveal, debounce) and fire-and-forget writes
need a loop that outlives a single rerun.
"""

from __future__ import annotations
import asyncio
import threading
from concurrent.futures import Future
from typing import Any, Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")


class BackgroundLoop:
    def __init__(self) -> None:
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._run, name="chat-core-loop", daemon=True
        )
        self._thread.start()

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def submit(self, coro: Awaitable[T]) -> Future:
        """Schedule a coroutine on the loop; returns a concurrent Future."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def call(
        self, fn: Callable[..., T], *args: Any, timeout: Optional[float] = 10.0
    ) -> T:
        """Run a plain callable on the loop thread and wait for its result."""

        async def _invoke() -> T:
            return fn(*args)

        return self.submit(_invoke()).result(timeout=timeout)

    def stop(self) -> None:
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=2)
