"""
Purpose: In-process document store with the same shape as the remote one:
a user document per user id plus a conversations collection under it.
Used for tests and for running the authenticated flow without Firestore.
"""

from __future__ import annotations
import copy
from typing import Any, Optional


class InMemoryDocumentStore:
    def __init__(self) -> None:
        self.users: dict[str, dict[str, Any]] = {}
        self.conversations: dict[str, dict[str, dict[str, Any]]] = {}

    async def get_user(self, user_id: str) -> Optional[dict[str, Any]]:
        doc = self.users.get(user_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def merge_user(self, user_id: str, data: dict[str, Any]) -> None:
        self.users.setdefault(user_id, {}).update(copy.deepcopy(data))

    async def list_conversations(
        self, user_id: str
    ) -> list[tuple[str, dict[str, Any]]]:
        docs = self.conversations.get(user_id, {})
        ordered = sorted(
            docs.items(), key=lambda item: item[1]["updatedAt"], reverse=True
        )
        return [(cid, copy.deepcopy(doc)) for cid, doc in ordered]

    async def set_conversation(
        self, user_id: str, conversation_id: str, data: dict[str, Any]
    ) -> None:
        self.conversations.setdefault(user_id, {})[conversation_id] = copy.deepcopy(
            data
        )

    async def delete_conversation(self, user_id: str, conversation_id: str) -> None:
        self.conversations.get(user_id, {}).pop(conversation_id, None)
