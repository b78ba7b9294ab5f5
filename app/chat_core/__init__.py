"""Session and conversation state for the AI chat client."""

from .controller import ChatSessionController
from .models import (
    GUEST,
    Attachment,
    Conversation,
    Message,
    Preferences,
    Role,
    Scope,
    title_for,
)

__all__ = [
    "ChatSessionController",
    "GUEST",
    "Attachment",
    "Conversation",
    "Message",
    "Preferences",
    "Role",
    "Scope",
    "title_for",
]
