"""
Purpose: Uniform save/load/delete of conversations and preferences against
the backend named by an explicit Scope. No business logic and no cache:
every read and write goes to the backend.

Guest scope: synchronous key-value storage; unreadable or corrupt data is
treated as empty, write failures are logged.
Authenticated scope: asynchronous document store; writes are fire-and-forget
tasks whose failures are logged and otherwise swallowed.
"""

from __future__ import annotations
import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional

from ..catalog import known_model_id
from ..errors import StorageError
from ..interfaces import DocumentStore, KeyValueStorage
from ..models import Conversation, Message, Preferences, Scope, ScopeSnapshot
from .codec import (
    conversation_body,
    conversation_from_dict,
    conversation_to_dict,
    message_from_dict,
    message_to_dict,
    preferences_from_user_doc,
    preferences_to_user_doc,
)
from .local_storage import (
    GUEST_CONVERSATIONS_KEY,
    GUEST_CURRENT_CHAT_KEY,
    GUEST_KEYS,
    GUEST_MESSAGES_KEY,
    GUEST_MODEL_KEY,
    GUEST_THEME_KEY,
)

logger = logging.getLogger(__name__)


class PersistenceAdapter:
    def __init__(
        self, local: KeyValueStorage, remote: Optional[DocumentStore] = None
    ) -> None:
        self.local = local
        self.remote = remote
        self._tasks: set[asyncio.Task] = set()
        self._tails: dict[str, asyncio.Task] = {}

    # ---------------------------
    # Reads
    # ---------------------------
    async def load(self, scope: Scope) -> ScopeSnapshot:
        if scope.is_guest:
            return self._load_guest()
        return await self._load_remote(scope.user_id)

    def _read_json(self, key: str) -> Any:
        try:
            raw = self.local.get_item(key)
        except (StorageError, OSError) as e:
            logger.warning("Guest storage unavailable reading %s: %s", key, e)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Corrupt guest data under %s; treating as empty", key)
            return None

    def _decode_list(self, raw: Any, decode, label: str) -> list:
        if not isinstance(raw, list):
            return []
        out = []
        for item in raw:
            try:
                out.append(decode(item))
            except (ValueError, KeyError, TypeError) as e:
                logger.warning("Skipping malformed guest %s: %s", label, e)
        return out

    def _load_guest(self) -> ScopeSnapshot:
        conversations = self._decode_list(
            self._read_json(GUEST_CONVERSATIONS_KEY),
            lambda d: conversation_from_dict(d["id"], d),
            "conversation",
        )
        messages = self._decode_list(
            self._read_json(GUEST_MESSAGES_KEY), message_from_dict, "message"
        )
        theme = self._read_json(GUEST_THEME_KEY)
        model = self._read_json(GUEST_MODEL_KEY)
        current_id = self._read_json(GUEST_CURRENT_CHAT_KEY)
        return ScopeSnapshot(
            conversations=conversations,
            preferences=Preferences(
                theme_is_dark=theme == "dark",
                selected_model_id=known_model_id(model if isinstance(model, str) else None),
            ),
            active_messages=messages,
            current_conversation_id=current_id if isinstance(current_id, str) else None,
        )

    async def _load_remote(self, user_id: str) -> ScopeSnapshot:
        if self.remote is None:
            logger.warning("No remote document store configured; user %s starts empty", user_id)
            return ScopeSnapshot()

        preferences = Preferences()
        try:
            preferences = preferences_from_user_doc(await self.remote.get_user(user_id))
        except Exception:
            logger.exception("Loading preferences for user %s failed", user_id)

        conversations: list[Conversation] = []
        try:
            for conv_id, doc in await self.remote.list_conversations(user_id):
                try:
                    conversations.append(conversation_from_dict(conv_id, doc))
                except ValueError as e:
                    logger.warning("Skipping malformed conversation %s: %s", conv_id, e)
        except Exception:
            logger.exception("Loading conversations for user %s failed", user_id)

        return ScopeSnapshot(conversations=conversations, preferences=preferences)

    # ---------------------------
    # Writes
    # ---------------------------
    def save_conversation(self, scope: Scope, conversation: Conversation) -> None:
        if scope.is_guest:
            stored = self._read_json(GUEST_CONVERSATIONS_KEY)
            stored = [
                c
                for c in (stored if isinstance(stored, list) else [])
                if isinstance(c, dict) and c.get("id") != conversation.id
            ]
            stored.insert(0, conversation_to_dict(conversation))
            self._write_json(GUEST_CONVERSATIONS_KEY, stored)
            return
        self._spawn(
            scope,
            f"conversation:{conversation.id}",
            lambda remote: remote.set_conversation(
                scope.user_id,
                conversation.id,
                conversation_body(conversation, native_time=True),
            ),
            f"saving conversation {conversation.id}",
        )

    def delete_conversation(self, scope: Scope, conversation_id: str) -> None:
        if scope.is_guest:
            stored = self._read_json(GUEST_CONVERSATIONS_KEY)
            if not isinstance(stored, list):
                return
            kept = [
                c for c in stored if isinstance(c, dict) and c.get("id") != conversation_id
            ]
            if len(kept) != len(stored):
                self._write_json(GUEST_CONVERSATIONS_KEY, kept)
            return
        self._spawn(
            scope,
            f"conversation:{conversation_id}",
            lambda remote: remote.delete_conversation(scope.user_id, conversation_id),
            f"deleting conversation {conversation_id}",
        )

    def save_preferences(self, scope: Scope, prefs: Preferences) -> None:
        if scope.is_guest:
            self._write_json(GUEST_THEME_KEY, "dark" if prefs.theme_is_dark else "light")
            self._write_json(GUEST_MODEL_KEY, prefs.selected_model_id)
            return
        self._spawn(
            scope,
            "user",
            lambda remote: remote.merge_user(
                scope.user_id, preferences_to_user_doc(prefs)
            ),
            "saving preferences",
        )

    def save_session(
        self, scope: Scope, messages: list[Message], current_id: Optional[str]
    ) -> None:
        """Persist the open chat so a guest reload restores it. Remote scopes skip this."""
        if not scope.is_guest:
            return
        if messages:
            self._write_json(GUEST_MESSAGES_KEY, [message_to_dict(m) for m in messages])
        else:
            self._remove(GUEST_MESSAGES_KEY)
        if current_id:
            self._write_json(GUEST_CURRENT_CHAT_KEY, current_id)
        else:
            self._remove(GUEST_CURRENT_CHAT_KEY)

    def purge_guest(self) -> None:
        for key in GUEST_KEYS:
            self._remove(key)
        logger.info("Guest storage purged")

    def _write_json(self, key: str, value: Any) -> None:
        try:
            self.local.set_item(key, json.dumps(value, ensure_ascii=False))
        except (StorageError, OSError) as e:
            logger.warning("Guest storage write to %s failed: %s", key, e)

    def _remove(self, key: str) -> None:
        try:
            self.local.remove_item(key)
        except (StorageError, OSError) as e:
            logger.warning("Guest storage removal of %s failed: %s", key, e)

    def _spawn(
        self,
        scope: Scope,
        key: str,
        make_call: Callable[[DocumentStore], Awaitable[None]],
        what: str,
    ) -> None:
        """Run a remote write in the background, after earlier writes to the same document."""
        if self.remote is None:
            logger.warning("No remote document store configured; dropped %s for %s", what, scope)
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; dropped %s for %s", what, scope)
            return
        key = f"{scope}/{key}"
        previous = self._tails.get(key)
        task = loop.create_task(
            self._guarded(previous, make_call, self.remote, scope, what)
        )
        self._tasks.add(task)
        self._tails[key] = task
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(lambda t: self._release_tail(key, t))

    def _release_tail(self, key: str, task: asyncio.Task) -> None:
        if self._tails.get(key) is task:
            del self._tails[key]

    @staticmethod
    async def _guarded(
        previous: Optional[asyncio.Task],
        make_call: Callable[[DocumentStore], Awaitable[None]],
        remote: DocumentStore,
        scope: Scope,
        what: str,
    ) -> None:
        if previous is not None:
            await asyncio.wait([previous])
        try:
            await make_call(remote)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Remote write failed while %s for %s", what, scope)

    async def drain(self) -> None:
        """Wait for outstanding remote writes (teardown and tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
