"""
Purpose: Per-user document store on Cloud Firestore.

Layout:
Users/{uid}                        -> {isDarkMode, selectedModelId}
Users/{uid}/conversations/{convId} -> {title, messages[], createdAt, updatedAt}

Timestamps are written as datetimes and come back as Firestore's
DatetimeWithNanoseconds (a datetime subclass).
"""

from __future__ import annotations
from typing import Any, Optional

from google.api_core import exceptions as gexc
from google.cloud import firestore

from ..errors import StorageError

USERS_COLLECTION = "Users"
CONVERSATIONS_COLLECTION = "conversations"


class FirestoreDocumentStore:
    def __init__(self, project: Optional[str] = None, client=None):
        self.client = client or firestore.AsyncClient(project=project)

    def _user(self, user_id: str):
        return self.client.collection(USERS_COLLECTION).document(user_id)

    def _conversations(self, user_id: str):
        return self._user(user_id).collection(CONVERSATIONS_COLLECTION)

    async def get_user(self, user_id: str) -> Optional[dict[str, Any]]:
        try:
            snap = await self._user(user_id).get()
        except gexc.GoogleAPICallError as e:
            raise StorageError(f"Loading user {user_id} failed: {e}") from e
        return snap.to_dict() if snap.exists else None

    async def merge_user(self, user_id: str, data: dict[str, Any]) -> None:
        try:
            await self._user(user_id).set(data, merge=True)
        except gexc.GoogleAPICallError as e:
            raise StorageError(f"Saving user {user_id} failed: {e}") from e

    async def list_conversations(
        self, user_id: str
    ) -> list[tuple[str, dict[str, Any]]]:
        query = self._conversations(user_id).order_by(
            "updatedAt", direction=firestore.Query.DESCENDING
        )
        try:
            return [(doc.id, doc.to_dict()) async for doc in query.stream()]
        except gexc.GoogleAPICallError as e:
            raise StorageError(f"Loading conversations for {user_id} failed: {e}") from e

    async def set_conversation(
        self, user_id: str, conversation_id: str, data: dict[str, Any]
    ) -> None:
        try:
            await self._conversations(user_id).document(conversation_id).set(data)
        except gexc.GoogleAPICallError as e:
            raise StorageError(
                f"Saving conversation {conversation_id} failed: {e}"
            ) from e

    async def delete_conversation(self, user_id: str, conversation_id: str) -> None:
        try:
            await self._conversations(user_id).document(conversation_id).delete()
        except gexc.GoogleAPICallError as e:
            raise StorageError(
                f"Deleting conversation {conversation_id} failed: {e}"
            ) from e
