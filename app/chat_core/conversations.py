"""
Purpose: In-memory collection of conversations for the active scope, plus
the id of the open one. Single source of truth between backend switches;
every mutation is written through the persistence adapter.

Key responsibilities:
- Create a conversation the first time an exchange settles, update it after.
- Derive titles from the first user message.
- Surface conversations most recently updated first.
- Drop writes while a backend switch is in progress (the scope is stale).

Persistence failures never roll back the in-memory mutation.
"""

from __future__ import annotations
import logging
from typing import Optional

from .models import (
    Conversation,
    Message,
    SessionState,
    first_user_text,
    new_id,
    now,
    title_for,
)
from .persistence import PersistenceAdapter

logger = logging.getLogger(__name__)


class ConversationStore:
    def __init__(self, persistence: PersistenceAdapter, session: SessionState):
        self.persistence = persistence
        self.session = session
        self._conversations: dict[str, Conversation] = {}

    @property
    def current_id(self) -> Optional[str]:
        return self.session.active_conversation_id

    def conversations(self) -> list[Conversation]:
        """All conversations, most recently updated first."""
        return sorted(
            self._conversations.values(), key=lambda c: c.updated_at, reverse=True
        )

    def get(self, conversation_id: str) -> Optional[Conversation]:
        return self._conversations.get(conversation_id)

    def __len__(self) -> int:
        return len(self._conversations)

    def upsert_from_messages(self, messages: list[Message]) -> Optional[Conversation]:
        """Create the current conversation or refresh it from `messages`."""
        if not messages:
            return None
        stamp = now()
        title = title_for(first_user_text(messages))
        conv_id = self.session.active_conversation_id
        conv = self._conversations.get(conv_id) if conv_id else None

        if conv is None:
            conv = Conversation(
                id=conv_id or new_id(),
                title=title,
                messages=list(messages),
                created_at=stamp,
                updated_at=stamp,
            )
            self._conversations[conv.id] = conv
            self.session.active_conversation_id = conv.id
            logger.info("Created conversation %s (%s)", conv.id, conv.title)
        else:
            conv.title = title
            conv.messages = list(messages)
            conv.updated_at = max(stamp, conv.created_at)

        self._write(lambda scope: self.persistence.save_conversation(scope, conv))
        return conv

    def load(self, conversation_id: str) -> Optional[list[Message]]:
        """Make `conversation_id` current and return its messages, or None if unknown."""
        conv = self._conversations.get(conversation_id)
        if conv is None:
            logger.info("Conversation %s not found", conversation_id)
            return None
        self.session.active_conversation_id = conversation_id
        return list(conv.messages)

    def delete(self, conversation_id: str) -> bool:
        """Remove a conversation. Returns True when it was the open one."""
        if self._conversations.pop(conversation_id, None) is None:
            return False
        logger.info("Deleted conversation %s", conversation_id)
        self._write(
            lambda scope: self.persistence.delete_conversation(scope, conversation_id)
        )
        if self.session.active_conversation_id == conversation_id:
            self.session.active_conversation_id = None
            return True
        return False

    def save_session(self, messages: list[Message]) -> None:
        self._write(
            lambda scope: self.persistence.save_session(
                scope, messages, self.session.active_conversation_id
            )
        )

    def replace(
        self, conversations: list[Conversation], current_id: Optional[str] = None
    ) -> None:
        self._conversations = {c.id: c for c in conversations}
        self.session.active_conversation_id = current_id

    def clear(self) -> None:
        self._conversations = {}
        self.session.active_conversation_id = None

    def _write(self, op) -> None:
        if self.session.switching:
            logger.warning("Backend switch in progress; dropped write for %s", self.session.scope)
            return
        op(self.session.scope)
