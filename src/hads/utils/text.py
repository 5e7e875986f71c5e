"""Text helpers shared by indexing and querying."""

from __future__ import annotations

import re
from html import escape
from typing import Iterable, List

_TOKEN_PATTERN = re.compile(r"[^\W_]+")
_HEADING_PATTERN = re.compile(r"^[ \t]{0,3}#{1,6}[ \t]+(.+?)[ \t]*#*[ \t]*$", re.MULTILINE)
_WHITESPACE = re.compile(r"\s+")
# Characters Python-Markdown accepts after a backslash.
_MARKDOWN_SPECIALS = re.compile(r"([\\`*_{}\[\]()#+\-.!])")


def tokenize(text: str) -> List[str]:
    """Case-fold ``text`` and split it on non-alphanumeric boundaries.

    Indexing and querying must both go through this function so that a term
    present verbatim in a document is always retrievable by searching it.
    """
    if not text:
        return []
    return _TOKEN_PATTERN.findall(text.casefold())


def extract_title(text: str, fallback: str) -> str:
    """Return the first markdown heading in ``text`` or ``fallback``."""
    match = _HEADING_PATTERN.search(text)
    if match:
        title = match.group(1).strip()
        if title:
            return title
    return fallback


def markdown_literal(text: str) -> str:
    """Escape ``text`` so markdown renders it verbatim, with no markup or HTML."""
    return _MARKDOWN_SPECIALS.sub(r"\\\1", escape(text, quote=False))


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def make_excerpt(text: str, terms: Iterable[str], *, width: int = 160) -> str:
    """Cut a window of ``text`` around the first occurrence of any term.

    Falls back to the beginning of the document when no term is found
    verbatim (for instance when it only occurs inside a longer word).
    """
    flat = collapse_whitespace(text)
    if len(flat) <= width:
        return flat

    # Offsets must index ``flat`` itself; casefolding can change its length.
    positions = []
    for term in terms:
        if not term:
            continue
        match = re.search(re.escape(term), flat, re.IGNORECASE)
        if match:
            positions.append(match.start())
    start = 0
    if positions:
        start = max(min(positions) - width // 3, 0)
    end = min(start + width, len(flat))
    start = max(end - width, 0)

    excerpt = flat[start:end].strip()
    if start > 0:
        excerpt = "…" + excerpt
    if end < len(flat):
        excerpt = excerpt + "…"
    return excerpt
