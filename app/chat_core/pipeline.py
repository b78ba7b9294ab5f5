"""
Purpose: Owns the active message list and runs one exchange at a time:
send -> remote completion -> assistant message -> reveal.

State per send: idle -> sending -> (revealing -> settled) | failed.
- At most one send is outstanding; a second send while sending is ignored,
  so message order is the order sends were made.
- Revealing does not block the next send; a new send cancels the reveal.
- Every settled exchange (and every committed reveal) schedules a debounced
  sync into the ConversationStore, so bursts coalesce into one write.

Failures of the completion call become a visible assistant message; they are
never raised to the caller and never retried.
"""

from __future__ import annotations
import asyncio
import logging
from typing import Optional

from .conversations import ConversationStore
from .interfaces import CompletionClient
from .models import (
    NO_RESPONSE_TEXT,
    Attachment,
    Message,
    PipelineState,
    Role,
    SessionState,
)
from .reveal import REVEAL_INTERVAL_SECONDS, RevealScheduler
from .utils.debounce import Debouncer

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_TEXT = "Unknown error occurred"
SYNC_DEBOUNCE_SECONDS = 1.0


def fold_attachments(text: str, attachments: Optional[list[Attachment]]) -> str:
    """Append one line per attachment to the message text."""
    if not attachments:
        return text
    info = "\n".join(a.describe() for a in attachments)
    return f"{text}\n\n{info}" if text else info


def describe_error(exc: BaseException) -> str:
    return f"Error: {str(exc) or UNKNOWN_ERROR_TEXT}"


class MessagePipeline:
    def __init__(
        self,
        completion: CompletionClient,
        conversations: ConversationStore,
        session: SessionState,
        *,
        reveal_interval: float = REVEAL_INTERVAL_SECONDS,
        sync_delay: float = SYNC_DEBOUNCE_SECONDS,
    ):
        self.completion = completion
        self.conversations = conversations
        self.session = session
        self.messages: list[Message] = []
        self.state = PipelineState.IDLE
        self.reveal = RevealScheduler(self._commit_reveal, interval=reveal_interval)
        self._sync = Debouncer(self.sync_now, sync_delay)
        self._inflight: Optional[asyncio.Task] = None
        self._epoch = 0

    @property
    def is_sending(self) -> bool:
        return self.state is PipelineState.SENDING

    def send(
        self, text: str, attachments: Optional[list[Attachment]] = None
    ) -> Optional[asyncio.Task]:
        """
        Append the user message now and start the exchange in the background.
        Returns the exchange task, or None when the send was ignored.
        """
        text = text or ""
        if not text.strip() and not attachments:
            logger.debug("Ignored empty send")
            return None
        if self.is_sending:
            logger.debug("Ignored send while another is in flight")
            return None
        if self.session.switching:
            logger.debug("Ignored send during backend switch")
            return None

        self.reveal.cancel()
        content = fold_attachments(text, attachments)
        self.messages.append(Message(Role.USER, content))
        self.state = PipelineState.SENDING

        prompt = text if text.strip() else content
        model = self.session.preferences.selected_model_id
        task = asyncio.get_running_loop().create_task(
            self._exchange(prompt, model, self._epoch)
        )
        self._inflight = task
        return task

    async def _exchange(self, prompt: str, model: str, epoch: int) -> Optional[Message]:
        try:
            reply = await self.completion.complete(
                model, [{"role": Role.USER.value, "content": prompt}]
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if epoch != self._epoch:
                return None
            logger.warning("Completion with %s failed: %s", model, e)
            error = Message(Role.ASSISTANT, describe_error(e))
            self.messages.append(error)
            self._inflight = None
            self.state = PipelineState.FAILED
            self._sync.trigger()
            return error

        if epoch != self._epoch:
            return None
        reply_msg = Message(Role.ASSISTANT, "", is_structured_text=True)
        self.messages.append(reply_msg)
        self._inflight = None
        self.state = PipelineState.REVEALING
        self.reveal.start(reply_msg.id, reply or NO_RESPONSE_TEXT)
        self._sync.trigger()
        return reply_msg

    def edit_last(self, new_text: str) -> Optional[asyncio.Task]:
        """Drop the last user message and everything after it, then resend."""
        if self.is_sending or self.session.switching:
            return None
        if not (new_text or "").strip():
            return None
        idx = next(
            (i for i in range(len(self.messages) - 1, -1, -1)
             if self.messages[i].role is Role.USER),
            None,
        )
        if idx is None:
            return None
        self.reveal.cancel()
        del self.messages[idx:]
        return self.send(new_text)

    def _commit_reveal(self, message_id: str, text: str) -> None:
        msg = next((m for m in self.messages if m.id == message_id), None)
        if msg is None:
            return
        msg.content = text
        if self.state is PipelineState.REVEALING:
            self.state = PipelineState.SETTLED
        self._sync.trigger()

    def sync_now(self) -> None:
        """Write the active message list into the ConversationStore."""
        if not self.messages or self.session.switching:
            return
        self.conversations.upsert_from_messages(self.messages)
        self.conversations.save_session(self.messages)

    def flush(self) -> None:
        self._sync.flush()

    def abort(self) -> None:
        """Cancel the reveal, abandon any in-flight send and drop pending syncs."""
        self._epoch += 1
        self.reveal.cancel()
        self._sync.cancel()
        if self._inflight is not None:
            self._inflight.cancel()
            self._inflight = None
        self.state = PipelineState.IDLE

    def replace_messages(self, messages: list[Message]) -> None:
        self.messages = list(messages)
