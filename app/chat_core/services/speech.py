"""
Purpose: text-to-speech integration. Read assistant replies aloud.

OpenAISpeechSynthesizer renders an utterance to MP3 with the OpenAI TTS
model, then hands the clip to an AudioQueue that the UI drains into an
autoplaying <audio> element. The browser does not report playback end
back to Python, so "end" fires after the estimated clip duration.
"""

from __future__ import annotations
import asyncio
import logging
from collections import deque
from typing import Callable, Optional

from ..interfaces import Utterance

logger = logging.getLogger(__name__)

WORDS_PER_SECOND = 2.6


def tts_bytes(
    text: str,
    client,
    *,
    voice: str = "alloy",
    model: str = "gpt-4o-mini-tts",
    speed: float = 1.0,
    max_chars: int = 4000,
) -> bytes:
    """Return raw MP3 bytes for `text`."""
    safe = (text or "").strip()
    if not safe:
        return b""
    if len(safe) > max_chars:
        safe = safe[: max_chars - 1].rstrip() + "…"

    resp = client.audio.speech.create(
        model=model, voice=voice, input=safe, speed=speed, response_format="mp3"
    )
    if hasattr(resp, "read"):
        return resp.read()
    return getattr(resp, "content", b"") or b""


def estimate_duration(text: str, rate: float = 1.0) -> float:
    words = len((text or "").split())
    return words / (WORDS_PER_SECOND * max(rate, 0.1))


class AudioQueue:
    """Clips waiting to be played by the UI, with their playback settings."""

    def __init__(self) -> None:
        self._clips: deque[tuple[bytes, Utterance]] = deque()

    def put(self, clip: bytes, utterance: Utterance) -> None:
        self._clips.append((clip, utterance))

    def pop(self) -> Optional[tuple[bytes, Utterance]]:
        return self._clips.popleft() if self._clips else None

    def clear(self) -> None:
        self._clips.clear()

    def __len__(self) -> int:
        return len(self._clips)


class OpenAISpeechSynthesizer:
    def __init__(
        self,
        client,
        queue: AudioQueue,
        *,
        voice: str = "alloy",
        model: str = "gpt-4o-mini-tts",
    ):
        self.client = client
        self.queue = queue
        self.voice = voice
        self.model = model
        self._task: Optional[asyncio.Task] = None

    def speak(
        self,
        utterance: Utterance,
        *,
        on_start: Callable[[], None],
        on_end: Callable[[], None],
    ) -> None:
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(
            self._play(utterance, on_start, on_end)
        )

    async def _play(self, utterance: Utterance, on_start, on_end) -> None:
        try:
            clip = await asyncio.to_thread(
                tts_bytes,
                utterance.text,
                self.client,
                voice=self.voice,
                model=self.model,
                speed=utterance.rate,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Speech synthesis failed: %s", e)
            on_end()
            return
        if not clip:
            on_end()
            return
        self.queue.put(clip, utterance)
        on_start()
        await asyncio.sleep(estimate_duration(utterance.text, utterance.rate))
        on_end()

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self.queue.clear()
