"""
Builds a ChatSessionController from Settings: OpenRouter for completions,
one JSON file per browser guest id for guest storage, Firestore for signed-in users when a project
is configured, and OpenAI speech services when an OpenAI key is present.
"""

from __future__ import annotations
import logging
import re
import uuid
from pathlib import Path
from typing import Optional

from openai import OpenAI

from .config import Settings, get_settings
from .controller import ChatSessionController
from .persistence import JsonFileKeyValueStorage, PersistenceAdapter
from .persistence.firestore import FirestoreDocumentStore
from .services.llm_openai import OpenRouterCompletionClient
from .services.speech import AudioQueue, OpenAISpeechSynthesizer
from .services.voice import WhisperSpeechRecognizer
from .voice_bridge import VoiceBridge

logger = logging.getLogger(__name__)

GUEST_ID_PATTERN = re.compile(r"[0-9a-f]{32}")


def new_guest_id() -> str:
    return uuid.uuid4().hex


def is_guest_id(value: Optional[str]) -> bool:
    return bool(value) and GUEST_ID_PATTERN.fullmatch(value) is not None


def guest_storage(directory: Path, guest_id: str) -> JsonFileKeyValueStorage:
    """Key-value storage private to one browser's guest id."""
    if not is_guest_id(guest_id):
        raise ValueError(f"Invalid guest id: {guest_id!r}")
    return JsonFileKeyValueStorage(Path(directory) / f"{guest_id}.json")


def build_remote_store(settings: Settings):
    if not settings.firestore_project:
        logger.info("FIRESTORE_PROJECT not set; signed-in history will not persist")
        return None
    return FirestoreDocumentStore(project=settings.firestore_project)


def build_voice(settings: Settings, audio_queue: AudioQueue) -> VoiceBridge:
    if not settings.openai_api_key:
        return VoiceBridge()
    client = OpenAI(api_key=settings.openai_api_key)
    return VoiceBridge(
        WhisperSpeechRecognizer(client),
        OpenAISpeechSynthesizer(client, audio_queue),
    )


def build_controller(
    settings: Optional[Settings] = None,
    *,
    guest_id: str,
    audio_queue: Optional[AudioQueue] = None,
) -> ChatSessionController:
    """`guest_id` names the browser's private guest storage (see new_guest_id)."""
    settings = settings or get_settings()
    completion = OpenRouterCompletionClient(
        settings.openrouter_api_key,
        base_url=settings.openrouter_base_url,
        timeout=settings.completion_timeout_seconds,
    )
    persistence = PersistenceAdapter(
        guest_storage(settings.guest_storage_dir, guest_id),
        build_remote_store(settings),
    )
    return ChatSessionController(
        completion,
        persistence,
        voice=build_voice(settings, audio_queue or AudioQueue()),
        reveal_interval=settings.reveal_interval_seconds,
        sync_delay=settings.sync_debounce_seconds,
    )
