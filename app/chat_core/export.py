"""Markdown transcript export for the download button."""

from __future__ import annotations
from datetime import date

from .models import Message, Role

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def role_label(role: Role) -> str:
    match role:
        case Role.USER:
            return "You"
        case Role.ASSISTANT:
            return "Assistant"


def export_markdown(messages: list[Message]) -> str:
    return "".join(
        f"**{role_label(m.role)}** ({m.created_at:{TIMESTAMP_FORMAT}})\n{m.content}\n\n"
        for m in messages
    )


def export_filename(today: date) -> str:
    return f"chat-export-{today.isoformat()}.md"
