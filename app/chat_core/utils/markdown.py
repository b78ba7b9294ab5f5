"""Helpers for turning Markdown replies into plain text (speech, clipboard)."""

from __future__ import annotations
import re

_FENCE = re.compile(r"^\s*```[A-Za-z0-9_+-]*\s*$", re.MULTILINE)
_HEADING = re.compile(r"^\s{0,3}#{1,6}\s*", re.MULTILINE)
_BULLET = re.compile(r"^\s*[-*+]\s+", re.MULTILINE)
_NUMBERED = re.compile(r"^\s*\d+[.)]\s+", re.MULTILINE)
_LINK = re.compile(r"\[([^\]]*)\]\([^)]*\)")
_EMPHASIS = re.compile(r"(\*\*|__|\*|_|~~|`)")
_CLIPBOARD_MARKUP = re.compile(r"[#*`_~\[\]()]")
_NEWLINES = re.compile(r"\n+")


def strip_markdown(text: str) -> str:
    """
    Remove heading, emphasis and list markers plus code fences so the text
    reads naturally when spoken. Fenced code content is kept.
    """
    t = _FENCE.sub("", text or "")
    t = _HEADING.sub("", t)
    t = _BULLET.sub("", t)
    t = _NUMBERED.sub("", t)
    t = _LINK.sub(r"\1", t)
    t = _EMPHASIS.sub("", t)
    return _NEWLINES.sub("\n", t).strip()


def clipboard_text(content: str, is_structured: bool = False) -> str:
    if not is_structured:
        return content
    return _NEWLINES.sub("\n", _CLIPBOARD_MARKUP.sub("", content)).strip()
