"""
Purpose: Simulated streaming. Reveals an already received reply one
character per tick so the UI can render a typewriter effect.

One owned asyncio task at a time: start() always cancels the previous run,
cancel() never commits partial text. When a run reaches the end of the text
the owning message's final content is committed exactly once through
`on_complete(message_id, text)`.
"""

from __future__ import annotations
import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

REVEAL_INTERVAL_SECONDS = 0.03


class RevealScheduler:
    def __init__(
        self,
        on_complete: Callable[[str, str], None],
        *,
        interval: float = REVEAL_INTERVAL_SECONDS,
    ):
        self.on_complete = on_complete
        self.interval = interval
        self.listeners: list[Callable[[str], None]] = []

        self.message_id: Optional[str] = None
        self.text: str = ""
        self.cursor: int = 0
        self.partial_text: str = ""
        self.running: bool = False
        self._task: Optional[asyncio.Task] = None

    @property
    def is_revealing(self) -> bool:
        return self.running

    def add_listener(self, callback: Callable[[str], None]) -> None:
        """Called with the partial text after every tick."""
        self.listeners.append(callback)

    def start(self, message_id: str, text: str) -> None:
        self.cancel()
        self.message_id = message_id
        self.text = text
        self.cursor = 0
        self.partial_text = ""
        self.running = True
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug("Reveal started for %s (%d chars)", message_id, len(text))

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            logger.debug("Reveal cancelled for %s at %d", self.message_id, self.cursor)
        self._task = None
        self.running = False
        self.message_id = None
        self.text = ""
        self.cursor = 0
        self.partial_text = ""

    async def wait(self) -> None:
        """Return once the current run has committed or been cancelled."""
        task = self._task
        if task is None:
            return
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    async def _run(self) -> None:
        while self.cursor < len(self.text):
            self.partial_text += self.text[self.cursor]
            self.cursor += 1
            self._notify()
            await asyncio.sleep(self.interval)
        self._finish()

    def _finish(self) -> None:
        message_id, text = self.message_id, self.text
        self._task = None
        self.running = False
        self.message_id = None
        self.text = ""
        self.cursor = 0
        self.partial_text = ""
        try:
            self.on_complete(message_id, text)
        except Exception:
            logger.exception("Committing revealed text for %s failed", message_id)

    def _notify(self) -> None:
        for callback in self.listeners:
            try:
                callback(self.partial_text)
            except Exception:
                logger.exception("Reveal listener failed")
