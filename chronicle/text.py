"""Text normalisation and truncation helpers."""

from __future__ import annotations

import hashlib
import re

_WHITESPACE_RE = re.compile(r"\s+")
_ELLIPSIS = "…"


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def content_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to at most ``limit`` characters, marking the cut with an ellipsis."""

    if len(text) <= limit:
        return text
    if limit <= 1:
        return text[:limit]
    return text[: limit - 1].rstrip() + _ELLIPSIS


def excerpt(text: str, limit: int) -> tuple[str, bool]:
    """Leading part of ``text`` within ``limit`` characters, cut on a safe boundary.

    Boundaries are tried from coarse to fine: paragraph, line, sentence, word.
    A boundary is only used when it keeps at least half of the budget. Returns
    the excerpt and whether anything was cut.
    """

    text = text.strip()
    if len(text) <= limit:
        return text, False

    window = text[: max(limit - 1, 0)]
    floor = limit // 2
    for boundary in ("\n\n", "\n", ". ", " "):
        pos = window.rfind(boundary)
        if pos >= floor:
            cut = pos + 1 if boundary == ". " else pos
            return window[:cut].rstrip() + _ELLIPSIS, True
    return window.rstrip() + _ELLIPSIS, True


__all__ = ["collapse_whitespace", "content_hash", "truncate", "excerpt"]
