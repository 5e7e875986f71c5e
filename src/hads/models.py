"""Core hads data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict


class ContentClass(str, Enum):
    """What kind of document a path holds, decided from its name."""

    MARKDOWN = "markdown"
    IMAGE = "image"
    SOURCE_CODE = "source-code"
    OTHER = "other"

    @property
    def indexable(self) -> bool:
        return self in (ContentClass.MARKDOWN, ContentClass.SOURCE_CODE)


@dataclass(slots=True)
class IndexEntry:
    """Search metadata derived from the current content of one document.

    ``marker`` is the SHA-256 of the file bytes the entry was built from and
    is compared on re-reads to detect unchanged files.
    """

    route: str
    title: str
    terms: Dict[str, int] = field(default_factory=dict)
    text: str = ""
    marker: str = ""


@dataclass(slots=True)
class SearchResult:
    route: str
    title: str
    excerpt: str
    score: float
