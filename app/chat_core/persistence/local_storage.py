"""
Purpose: Durable key-value storage for guest scope (the localStorage of this
client). Values are JSON strings; keys are namespaced constants.

What is inside:
InMemoryKeyValueStorage with get/set/remove (tests, ephemeral sessions).
JsonFileKeyValueStorage: one JSON object on disk, rewritten atomically.

Testing:
In-memory: simple state tests.
File: tmp_path fixture; corrupt file reads as empty.
"""

from __future__ import annotations
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from ..errors import StorageError

logger = logging.getLogger(__name__)

KEY_PREFIX = "ai-chat-client-guest"
GUEST_MESSAGES_KEY = f"{KEY_PREFIX}-history"
GUEST_CONVERSATIONS_KEY = f"{KEY_PREFIX}-conversations"
GUEST_THEME_KEY = f"{KEY_PREFIX}-theme"
GUEST_MODEL_KEY = f"{KEY_PREFIX}-model"
GUEST_CURRENT_CHAT_KEY = f"{KEY_PREFIX}-current-chat"

GUEST_KEYS = (
    GUEST_MESSAGES_KEY,
    GUEST_CONVERSATIONS_KEY,
    GUEST_THEME_KEY,
    GUEST_MODEL_KEY,
    GUEST_CURRENT_CHAT_KEY,
)


class InMemoryKeyValueStorage:
    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class JsonFileKeyValueStorage:
    """Key-value pairs persisted as a single JSON object in `path`."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StorageError(f"Cannot read {self.path}: {e}") from e
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Guest storage file %s is corrupt; ignoring it", self.path)
            return {}
        if not isinstance(data, dict):
            logger.warning("Guest storage file %s is not an object; ignoring it", self.path)
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write(self, items: dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(items, f, ensure_ascii=False)
                os.replace(tmp_path, self.path)
            finally:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
        except OSError as e:
            raise StorageError(f"Cannot write {self.path}: {e}") from e

    def get_item(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._read()
        items[key] = value
        self._write(items)

    def remove_item(self, key: str) -> None:
        items = self._read()
        if items.pop(key, None) is not None:
            self._write(items)

    def keys(self) -> list[str]:
        return list(self._read())
