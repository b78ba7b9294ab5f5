"""
Single-handle debouncer on the running asyncio loop. Each trigger pushes
the deadline back; only the last trigger in a burst runs the action.
"""

from __future__ import annotations
import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Debouncer:
    def __init__(self, action: Callable[[], None], delay: float):
        self.action = action
        self.delay = delay
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def flush(self) -> None:
        """Run a pending action now instead of waiting for the deadline."""
        if self._handle is None:
            return
        self.cancel()
        self._fire()

    def _fire(self) -> None:
        self._handle = None
        try:
            self.action()
        except Exception:
            logger.exception("Debounced action failed")
