"""
Abstractions for pluggable services. Inversion of control: the core depends
on these protocols, not on OpenRouter, Firestore or a browser. Enables fakes
in tests and future swaps.

Common protocols:
- CompletionClient.complete(model, messages) -> reply text
- KeyValueStorage.get_item / set_item / remove_item (guest scope, synchronous)
- DocumentStore (authenticated scope, asynchronous, keyed by user id)
- SpeechRecognizer.recognize_once() -> final transcript
- SpeechSynthesizer.speak(utterance, on_start, on_end) / cancel()

Testing: Use simple fake implementations to test the controller without
network calls.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol


class CompletionClient(Protocol):
    async def complete(self, model: str, messages: list[dict[str, str]]) -> str: ...


class KeyValueStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class DocumentStore(Protocol):
    async def get_user(self, user_id: str) -> Optional[dict[str, Any]]: ...

    async def merge_user(self, user_id: str, data: dict[str, Any]) -> None: ...

    async def list_conversations(
        self, user_id: str
    ) -> list[tuple[str, dict[str, Any]]]: ...

    async def set_conversation(
        self, user_id: str, conversation_id: str, data: dict[str, Any]
    ) -> None: ...

    async def delete_conversation(self, user_id: str, conversation_id: str) -> None: ...


@dataclass(frozen=True)
class Utterance:
    text: str
    rate: float = 0.9
    pitch: float = 1.0
    volume: float = 0.8
    lang: str = "en-US"


class SpeechRecognizer(Protocol):
    async def recognize_once(self) -> str: ...


class SpeechSynthesizer(Protocol):
    def speak(
        self,
        utterance: Utterance,
        *,
        on_start: Callable[[], None],
        on_end: Callable[[], None],
    ) -> None: ...

    def cancel(self) -> None: ...
