"""
Purpose: Follows sign-in / sign-out edges from the auth provider and moves
the session between scopes.

States: guest, authenticated(user_id).
On every transition:
1. settle the old scope (flush the pending sync against it),
2. mark the session as switching (sends and writes are rejected),
3. cancel the reveal and any in-flight send, clear conversations,
   messages and preferences,
4. purge guest storage when leaving guest for a signed-in user,
5. load the target scope and apply it, unless a newer transition started.

Authenticated data is never deleted on sign-out; it stays in the remote
store and is simply not loaded.
"""

from __future__ import annotations
import asyncio
import logging
from typing import Optional

from .conversations import ConversationStore
from .models import GUEST, Preferences, Scope, SessionState
from .persistence import PersistenceAdapter
from .pipeline import MessagePipeline

logger = logging.getLogger(__name__)


class IdentityMonitor:
    def __init__(
        self,
        persistence: PersistenceAdapter,
        session: SessionState,
        conversations: ConversationStore,
        pipeline: MessagePipeline,
    ):
        self.persistence = persistence
        self.session = session
        self.conversations = conversations
        self.pipeline = pipeline
        self._generation = 0
        self._transition: Optional[asyncio.Task] = None

    @property
    def scope(self) -> Scope:
        return self.session.scope

    @property
    def is_switching(self) -> bool:
        return self.session.switching

    def on_auth_state_changed(self, user_id: Optional[str]) -> asyncio.Task:
        """Auth provider callback. A newer edge supersedes one still loading."""
        if self._transition is not None and not self._transition.done():
            self._transition.cancel()
        target = Scope.authenticated(user_id) if user_id else GUEST
        self._transition = asyncio.get_running_loop().create_task(self.enter(target))
        return self._transition

    async def cancel(self) -> None:
        """Stop a transition that is still loading and leave the switching state."""
        self._generation += 1
        task, self._transition = self._transition, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait([task])
        self.session.switching = False

    async def sign_in(self, user_id: str) -> None:
        await self.enter(Scope.authenticated(user_id))

    async def sign_out(self) -> None:
        await self.enter(GUEST)

    async def enter(self, target: Scope) -> None:
        self._generation += 1
        generation = self._generation
        previous = self.session.scope

        if not self.session.switching:
            self.pipeline.flush()
        self.session.switching = True

        self.pipeline.abort()
        self.pipeline.replace_messages([])
        self.conversations.clear()
        self.session.preferences = Preferences()

        if previous.is_guest and not target.is_guest:
            self.persistence.purge_guest()

        snapshot = await self.persistence.load(target)
        if generation != self._generation:
            logger.info("Discarded stale load for %s", target)
            return

        self.session.scope = target
        self.conversations.replace(
            snapshot.conversations, current_id=snapshot.current_conversation_id
        )
        self.session.preferences = snapshot.preferences
        self.pipeline.replace_messages(snapshot.active_messages)
        self.session.switching = False
        logger.info(
            "Scope %s -> %s (%d conversations)",
            previous,
            target,
            len(snapshot.conversations),
        )
