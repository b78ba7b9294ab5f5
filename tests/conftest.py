"""Shared fakes and fixtures for the chat core tests.

Provides:
- ScriptedCompletion: a CompletionClient returning queued replies/errors
- FakeRecognizer / FakeSynthesizer: speech services without audio
- Storage fixtures (in-memory key-value and document stores)
- A controller wired with zero reveal interval and zero sync delay
"""

import asyncio
from typing import Optional

import pytest

from chat_core.controller import ChatSessionController
from chat_core.persistence import (
    InMemoryDocumentStore,
    InMemoryKeyValueStorage,
    PersistenceAdapter,
)
from chat_core.voice_bridge import VoiceBridge


class ScriptedCompletion:
    """Returns queued replies in order; an Exception in the queue is raised."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls: list[tuple[str, list[dict[str, str]]]] = []
        self.gate: Optional[asyncio.Event] = None

    def hold(self) -> asyncio.Event:
        """Block replies until the returned event is set."""
        self.gate = asyncio.Event()
        return self.gate

    async def complete(self, model, messages):
        self.calls.append((model, messages))
        if self.gate is not None:
            await self.gate.wait()
        reply = self.replies.pop(0) if self.replies else "ok"
        if isinstance(reply, BaseException):
            raise reply
        return reply


class FakeRecognizer:
    def __init__(self, transcript: str = "", error: Optional[Exception] = None):
        self.transcript = transcript
        self.error = error
        self.sessions = 0

    async def recognize_once(self) -> str:
        self.sessions += 1
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.transcript


class FakeSynthesizer:
    """Records utterances; start/end are fired by the test."""

    def __init__(self):
        self.spoken = []
        self.cancels = 0
        self.callbacks = None

    def speak(self, utterance, *, on_start, on_end):
        self.spoken.append(utterance)
        self.callbacks = (on_start, on_end)

    def cancel(self):
        self.cancels += 1
        self.callbacks = None


class GatedDocumentStore(InMemoryDocumentStore):
    """Blocks list_conversations per user until the test releases it."""

    def __init__(self):
        super().__init__()
        self.gates: dict[str, asyncio.Event] = {}

    def gate(self, user_id):
        self.gates[user_id] = asyncio.Event()
        return self.gates[user_id]

    async def list_conversations(self, user_id):
        if user_id in self.gates:
            await self.gates[user_id].wait()
        return await super().list_conversations(user_id)


async def settle(controller: ChatSessionController) -> None:
    """Let the reveal finish and the debounced sync fire."""
    await controller.pipeline.reveal.wait()
    for _ in range(3):
        await asyncio.sleep(0)
    await controller.persistence.drain()


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def local_storage():
    return InMemoryKeyValueStorage()


@pytest.fixture
def remote_store():
    return InMemoryDocumentStore()


@pytest.fixture
def persistence(local_storage, remote_store):
    return PersistenceAdapter(local_storage, remote_store)


@pytest.fixture
def completion():
    return ScriptedCompletion()


@pytest.fixture
def synthesizer():
    return FakeSynthesizer()


@pytest.fixture
def controller(completion, persistence, synthesizer):
    return ChatSessionController(
        completion,
        persistence,
        voice=VoiceBridge(FakeRecognizer("dictated words"), synthesizer),
        reveal_interval=0,
        sync_delay=0,
    )
