"""
Purpose: Map messages/conversations/preferences to storage documents and back.

Guest scope stores JSON, so timestamps travel as ISO-8601 strings.
The document store keeps native datetimes (Firestore converts them to its
Timestamp type and hands back datetime subclasses).

Decoding is tolerant: a malformed record raises ValueError and the caller
drops it; it never takes the whole collection down.
"""

from __future__ import annotations
from datetime import datetime
from typing import Any

from ..catalog import known_model_id
from ..models import Conversation, Message, Preferences, Role


def _encode_time(value: datetime, *, native: bool) -> Any:
    return value if native else value.isoformat()


def _decode_time(value: Any) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    elif not isinstance(value, datetime):
        raise ValueError(f"Unsupported timestamp value: {value!r}")
    # naive values are local time
    return value if value.tzinfo else value.astimezone()


def message_to_dict(msg: Message, *, native_time: bool = False) -> dict[str, Any]:
    return {
        "id": msg.id,
        "role": msg.role.value,
        "content": msg.content,
        "createdAt": _encode_time(msg.created_at, native=native_time),
        "isStructuredText": msg.is_structured_text,
    }


def message_from_dict(data: dict[str, Any]) -> Message:
    try:
        return Message(
            id=str(data["id"]),
            role=Role(data["role"]),
            content=str(data.get("content") or ""),
            created_at=_decode_time(data["createdAt"]),
            is_structured_text=bool(data.get("isStructuredText", False)),
        )
    except (KeyError, TypeError) as e:
        raise ValueError(f"Malformed message record: {e}") from e


def conversation_body(conv: Conversation, *, native_time: bool) -> dict[str, Any]:
    """Conversation fields without the id (the document key carries it)."""
    return {
        "title": conv.title,
        "messages": [message_to_dict(m, native_time=native_time) for m in conv.messages],
        "createdAt": _encode_time(conv.created_at, native=native_time),
        "updatedAt": _encode_time(conv.updated_at, native=native_time),
    }


def conversation_to_dict(conv: Conversation) -> dict[str, Any]:
    return {"id": conv.id, **conversation_body(conv, native_time=False)}


def conversation_from_dict(conv_id: str, data: dict[str, Any]) -> Conversation:
    try:
        return Conversation(
            id=str(conv_id),
            title=str(data["title"]),
            messages=[message_from_dict(m) for m in data.get("messages") or []],
            created_at=_decode_time(data["createdAt"]),
            updated_at=_decode_time(data["updatedAt"]),
        )
    except (KeyError, TypeError) as e:
        raise ValueError(f"Malformed conversation record: {e}") from e


def preferences_to_user_doc(prefs: Preferences) -> dict[str, Any]:
    return {
        "isDarkMode": prefs.theme_is_dark,
        "selectedModelId": prefs.selected_model_id,
    }


def preferences_from_user_doc(data: dict[str, Any] | None) -> Preferences:
    data = data or {}
    return Preferences(
        theme_is_dark=bool(data.get("isDarkMode", False)),
        selected_model_id=known_model_id(data.get("selectedModelId")),
    )
