"""
Canonical data shapes, shared truth for typing/validation between layers.

Typical contents:
- Role (closed user/assistant tag) and Message.
- Conversation (title, ordered messages, timestamps).
- Scope (guest or a signed-in user) and SessionState (transient, not persisted).
- Preferences (theme + selected model), namespaced per scope.

Testing: Trivial; mostly types. Title derivation and id generation are
covered in test_models.py.
"""

from __future__ import annotations
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

DEFAULT_MODEL_ID = "mistralai/mistral-7b-instruct:free"
TITLE_MAX_WORDS = 6
TITLE_ELLIPSIS = "…"
NEW_CHAT_TITLE = "New Chat"
NO_RESPONSE_TEXT = "No response received."

_last_id_ms = 0


def now() -> datetime:
    """Timezone-aware local time; stored and remote timestamps compare safely."""
    return datetime.now().astimezone()


def new_id() -> str:
    """Millisecond timestamp id, bumped so successive ids never collide."""
    global _last_id_ms
    now_ms = time.time_ns() // 1_000_000
    _last_id_ms = max(now_ms, _last_id_ms + 1)
    return str(_last_id_ms)


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ScopeKind(str, Enum):
    GUEST = "guest"
    AUTHENTICATED = "authenticated"


class PipelineState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    REVEALING = "revealing"
    SETTLED = "settled"
    FAILED = "failed"


@dataclass(frozen=True)
class Scope:
    kind: ScopeKind
    user_id: Optional[str] = None

    @property
    def is_guest(self) -> bool:
        return self.kind is ScopeKind.GUEST

    @classmethod
    def authenticated(cls, user_id: str) -> "Scope":
        if not user_id:
            raise ValueError("An authenticated scope needs a user id.")
        return cls(ScopeKind.AUTHENTICATED, user_id)

    def __str__(self) -> str:
        return "guest" if self.is_guest else f"user:{self.user_id}"


GUEST = Scope(ScopeKind.GUEST)


@dataclass
class Message:
    role: Role
    content: str
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=now)
    is_structured_text: bool = False


@dataclass
class Attachment:
    name: str
    size: int

    def describe(self) -> str:
        return f"📎 {self.name} ({self.size} bytes)"


@dataclass
class Conversation:
    id: str
    title: str
    messages: list[Message] = field(default_factory=list)
    created_at: datetime = field(default_factory=now)
    updated_at: datetime = field(default_factory=now)


@dataclass
class Preferences:
    theme_is_dark: bool = False
    selected_model_id: str = DEFAULT_MODEL_ID


@dataclass
class ScopeSnapshot:
    """Everything a scope holds durably, as returned by a load."""

    conversations: list[Conversation] = field(default_factory=list)
    preferences: Preferences = field(default_factory=Preferences)
    active_messages: list[Message] = field(default_factory=list)
    current_conversation_id: Optional[str] = None


@dataclass
class SessionState:
    scope: Scope = GUEST
    active_conversation_id: Optional[str] = None
    preferences: Preferences = field(default_factory=Preferences)
    switching: bool = False

    @property
    def identity(self) -> Optional[str]:
        return self.scope.user_id


def title_for(first_user_text: str) -> str:
    """First six words plus an ellipsis, or the text itself when it is shorter."""
    words = first_user_text.split()
    if not words:
        return NEW_CHAT_TITLE
    if len(words) <= TITLE_MAX_WORDS:
        return first_user_text
    return " ".join(words[:TITLE_MAX_WORDS]) + TITLE_ELLIPSIS


def first_user_text(messages: list[Message]) -> str:
    return next((m.content for m in messages if m.role is Role.USER), "")
