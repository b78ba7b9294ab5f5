"""
Purpose: Routes speech through the same paths as typed text.
- Dictation: one-shot recognition; the final transcript is appended to the
  compose text, never sent automatically.
- Read-out: one utterance at a time, Markdown stripped before synthesis.
"""

from __future__ import annotations
import asyncio
import logging
from typing import Optional

from .interfaces import SpeechRecognizer, SpeechSynthesizer, Utterance
from .utils.markdown import strip_markdown

logger = logging.getLogger(__name__)


class VoiceBridge:
    def __init__(
        self,
        recognizer: Optional[SpeechRecognizer] = None,
        synthesizer: Optional[SpeechSynthesizer] = None,
        *,
        rate: float = 0.9,
        pitch: float = 1.0,
        volume: float = 0.8,
    ):
        self.recognizer = recognizer
        self.synthesizer = synthesizer
        self.rate = rate
        self.pitch = pitch
        self.volume = volume

        self.compose_text: str = ""
        self.is_listening: bool = False
        self.is_speaking: bool = False
        self._listen_task: Optional[asyncio.Task] = None

    def start_listening(self) -> Optional[asyncio.Task]:
        if self.recognizer is None or self.is_listening:
            return None
        self.is_listening = True
        self._listen_task = asyncio.get_running_loop().create_task(self._listen())
        return self._listen_task

    async def _listen(self) -> Optional[str]:
        try:
            transcript = (await self.recognizer.recognize_once()).strip()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Speech recognition failed: %s", e)
            return None
        finally:
            self.is_listening = False
            self._listen_task = None
        if transcript:
            self.compose_text = (
                f"{self.compose_text} {transcript}" if self.compose_text.strip() else transcript
            )
        return transcript

    def stop_listening(self) -> None:
        if self._listen_task is not None:
            self._listen_task.cancel()
        self._listen_task = None
        self.is_listening = False

    def take_compose_text(self) -> str:
        """Hand the compose text to the caller and clear it."""
        text, self.compose_text = self.compose_text, ""
        return text

    def speak(self, text: str) -> None:
        if self.synthesizer is None:
            return
        self.stop()
        plain = strip_markdown(text)
        if not plain:
            return
        self.synthesizer.speak(
            Utterance(plain, rate=self.rate, pitch=self.pitch, volume=self.volume),
            on_start=self._on_start,
            on_end=self._on_end,
        )

    def stop(self) -> None:
        if self.synthesizer is not None:
            self.synthesizer.cancel()
        self.is_speaking = False

    def _on_start(self) -> None:
        self.is_speaking = True

    def _on_end(self) -> None:
        self.is_speaking = False
