"""
Purpose: speech-to-text integration. Allow voice-based inputs.

One listening session = one recorded clip = one final transcript. The UI
records the clip (audio_recorder_streamlit) and hands it to submit_audio();
recognize_once() waits for that clip and transcribes it with Whisper.
"""

from __future__ import annotations
import asyncio
import base64
import io
import uuid
from typing import Optional


def transcribe_wav_bytes(
    wav_bytes: bytes, client, *, model: str = "whisper-1", language: str = "en"
) -> str:
    """Transcribe WAV audio bytes to text using an OpenAI client."""
    with io.BytesIO(wav_bytes) as buf:
        buf.name = "input.wav"
        resp = client.audio.transcriptions.create(
            model=model, file=buf, language=language
        )
    return (resp.text or "").strip()


class WhisperSpeechRecognizer:
    def __init__(self, client, *, model: str = "whisper-1", language: str = "en"):
        self.client = client
        self.model = model
        self.language = language
        self._pending: Optional[asyncio.Future] = None

    @property
    def armed(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def submit_audio(self, wav_bytes: bytes) -> bool:
        """Feed the clip for the armed session. Returns False if none is armed."""
        if not self.armed:
            return False
        self._pending.set_result(wav_bytes)
        return True

    async def recognize_once(self) -> str:
        self._pending = asyncio.get_running_loop().create_future()
        try:
            wav_bytes = await self._pending
        finally:
            self._pending = None
        if not wav_bytes:
            return ""
        return await asyncio.to_thread(
            transcribe_wav_bytes,
            wav_bytes,
            self.client,
            model=self.model,
            language=self.language,
        )


def autoplay_html(mp3_bytes: bytes, *, volume: float = 1.0, rate: float = 1.0) -> str:
    """Return an HTML snippet that auto-plays MP3 bytes (hidden)."""
    if not mp3_bytes:
        return ""
    b64 = base64.b64encode(mp3_bytes).decode("ascii")
    el_id = f"tts_{uuid.uuid4().hex}"
    return f"""
    <audio id="{el_id}" autoplay playsinline preload="auto" style="display:none">
      <source src="data:audio/mpeg;base64,{b64}" type="audio/mpeg">
    </audio>
    <script>
      (function() {{
        const a = document.getElementById("{el_id}");
        if (a) {{
          a.volume = {volume:.2f};
          a.playbackRate = {rate:.2f};
          a.play().catch(() => {{}});
        }}
      }})();
    </script>
    """
