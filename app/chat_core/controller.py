"""
Purpose: The single orchestration point for a chat session. Wires the
persistence adapter, identity monitor, conversation store, message pipeline,
reveal scheduler and voice bridge, and is the only object the UI talks to.

Key responsibilities:
- Start the session in the right scope and follow auth edges.
- Send / edit-and-resend, new chat, load and delete conversations.
- Preferences (theme, model) written through to the active scope.
- Voice dictation and read-out, export and copy helpers.
- close(): cancel a loading scope transition and the reveal, abandon
  in-flight sends, stop speech.
- view(): one consistent copy of the renderable state for a UI thread.

Testing: Pure unit tests with fakes: scripted CompletionClient, in-memory
key-value and document stores, fake speech services.
"""

from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Callable, Optional

from .catalog import known_model_id
from .conversations import ConversationStore
from .export import export_filename, export_markdown
from .identity import IdentityMonitor
from .interfaces import CompletionClient
from .models import Attachment, Conversation, Message, Preferences, SessionState
from .persistence import PersistenceAdapter
from .pipeline import SYNC_DEBOUNCE_SECONDS, MessagePipeline
from .reveal import REVEAL_INTERVAL_SECONDS
from .utils.markdown import clipboard_text
from .voice_bridge import VoiceBridge

logger = logging.getLogger(__name__)


@dataclass
class ChatView:
    """Copy of what the UI renders, taken on the loop thread."""

    messages: list[Message]
    conversations: list[Conversation]
    current_conversation_id: Optional[str]
    preferences: Preferences
    is_typewriting: bool
    is_loading: bool
    is_switching: bool
    is_speaking: bool
    export: tuple[str, str]


class ChatSessionController:
    def __init__(
        self,
        completion: CompletionClient,
        persistence: PersistenceAdapter,
        *,
        voice: Optional[VoiceBridge] = None,
        reveal_interval: float = REVEAL_INTERVAL_SECONDS,
        sync_delay: float = SYNC_DEBOUNCE_SECONDS,
    ):
        self.session = SessionState()
        self.persistence = persistence
        self.conversation_store = ConversationStore(persistence, self.session)
        self.pipeline = MessagePipeline(
            completion,
            self.conversation_store,
            self.session,
            reveal_interval=reveal_interval,
            sync_delay=sync_delay,
        )
        self.identity = IdentityMonitor(
            persistence, self.session, self.conversation_store, self.pipeline
        )
        self.voice = voice or VoiceBridge()

    # ---------------------------
    # Lifecycle
    # ---------------------------
    async def start(self, user_id: Optional[str] = None) -> None:
        """Load the initial scope: the signed-in user if any, else guest."""
        await self.identity.on_auth_state_changed(user_id)

    def on_auth_state_changed(self, user_id: Optional[str]) -> asyncio.Task:
        return self.identity.on_auth_state_changed(user_id)

    async def close(self) -> None:
        await self.identity.cancel()
        self.pipeline.abort()
        self.voice.stop()
        self.voice.stop_listening()
        await self.persistence.drain()

    # ---------------------------
    # Read-only views for the UI
    # ---------------------------
    @property
    def messages(self) -> list[Message]:
        return self.pipeline.messages

    @property
    def conversations(self) -> list[Conversation]:
        return self.conversation_store.conversations()

    @property
    def current_conversation_id(self) -> Optional[str]:
        return self.session.active_conversation_id

    @property
    def preferences(self) -> Preferences:
        return self.session.preferences

    @property
    def typewriter_text(self) -> str:
        return self.pipeline.reveal.partial_text

    @property
    def is_typewriting(self) -> bool:
        return self.pipeline.reveal.is_revealing

    @property
    def revealing_message_id(self) -> Optional[str]:
        return self.pipeline.reveal.message_id

    @property
    def is_loading(self) -> bool:
        return self.pipeline.is_sending

    @property
    def is_switching(self) -> bool:
        return self.session.switching

    def view(self, today: Optional[date] = None) -> ChatView:
        """Snapshot for a UI running on another thread. Call it on the loop."""
        return ChatView(
            messages=[replace(m) for m in self.pipeline.messages],
            conversations=[
                replace(c, messages=list(c.messages)) for c in self.conversations
            ],
            current_conversation_id=self.session.active_conversation_id,
            preferences=replace(self.session.preferences),
            is_typewriting=self.is_typewriting,
            is_loading=self.is_loading,
            is_switching=self.is_switching,
            is_speaking=self.voice.is_speaking,
            export=self.export_chat(today),
        )

    def reveal_frame(self) -> tuple[str, bool]:
        """(partial text, still revealing) for the typewriter placeholder."""
        return self.typewriter_text, self.is_typewriting

    # ---------------------------
    # Messages and conversations
    # ---------------------------
    def send(
        self, text: str, attachments: Optional[list[Attachment]] = None
    ) -> Optional[asyncio.Task]:
        return self.pipeline.send(text, attachments)

    def edit_last(self, new_text: str) -> Optional[asyncio.Task]:
        return self.pipeline.edit_last(new_text)

    def new_chat(self) -> None:
        """Close the open chat (after saving it) and start an empty one."""
        self.pipeline.flush()
        self.pipeline.abort()
        self.pipeline.replace_messages([])
        self.session.active_conversation_id = None
        self.conversation_store.save_session([])

    def clear_chat(self, confirm: Callable[[], bool]) -> bool:
        if not confirm():
            return False
        self.new_chat()
        return True

    def load_conversation(self, conversation_id: str) -> bool:
        if self.conversation_store.get(conversation_id) is None:
            return False
        self.pipeline.flush()
        self.pipeline.abort()
        messages = self.conversation_store.load(conversation_id)
        self.pipeline.replace_messages(messages or [])
        self.conversation_store.save_session(self.pipeline.messages)
        return True

    def delete_conversation(self, conversation_id: str) -> None:
        if self.conversation_store.delete(conversation_id):
            self.pipeline.abort()
            self.pipeline.replace_messages([])
            self.conversation_store.save_session([])

    # ---------------------------
    # Preferences
    # ---------------------------
    def toggle_theme(self) -> bool:
        prefs = self.session.preferences
        prefs.theme_is_dark = not prefs.theme_is_dark
        self._save_preferences()
        return prefs.theme_is_dark

    def set_selected_model(self, model_id: str) -> str:
        self.session.preferences.selected_model_id = known_model_id(model_id)
        self._save_preferences()
        return self.session.preferences.selected_model_id

    def _save_preferences(self) -> None:
        if self.session.switching:
            logger.warning("Backend switch in progress; preferences not saved")
            return
        self.persistence.save_preferences(self.session.scope, self.session.preferences)

    # ---------------------------
    # Voice
    # ---------------------------
    def start_listening(self) -> Optional[asyncio.Task]:
        return self.voice.start_listening()

    def speak_message(self, text: str) -> None:
        self.voice.speak(text)

    def stop_speaking(self) -> None:
        self.voice.stop()

    # ---------------------------
    # Export and copy
    # ---------------------------
    def export_chat(self, today: Optional[date] = None) -> tuple[str, str]:
        """Returns (filename, markdown) for the open chat."""
        return (
            export_filename(today or date.today()),
            export_markdown(self.pipeline.messages),
        )

    @staticmethod
    def copy_message(content: str, is_structured: bool = False) -> str:
        return clipboard_text(content, is_structured)
