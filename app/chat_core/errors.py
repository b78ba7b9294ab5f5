"""
Purpose: Exceptions raised inside the core. Callers at the edges (pipeline,
persistence adapter) catch these and turn them into assistant error
messages or log lines; nothing here reaches the UI as an exception.
"""

from __future__ import annotations
from typing import Optional


class ChatCoreError(Exception):
    """Base class for errors raised by the chat core."""


class CompletionError(ChatCoreError):
    """The completion endpoint could not be reached or returned a failure."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StorageError(ChatCoreError):
    """A local or remote persistence operation failed."""
