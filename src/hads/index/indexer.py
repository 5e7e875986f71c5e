"""In-memory inverted index over the documents under the root."""

from __future__ import annotations

import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from hads.errors import PathOutsideRootError
from hads.index.search import rank_postings
from hads.matcher import classify
from hads.models import ContentClass, IndexEntry, SearchResult
from hads.store import DocumentStore
from hads.utils.files import content_hash, route_name
from hads.utils.text import extract_title, make_excerpt, tokenize

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class IndexStats:
    indexed: int = 0
    removed: int = 0
    skipped: int = 0
    failed: int = 0
    processed_routes: list[str] = field(default_factory=list)

    def increment(self, status: str, route: str) -> None:
        if status == "indexed":
            self.indexed += 1
        elif status == "removed":
            self.removed += 1
        elif status == "skipped":
            self.skipped += 1
        else:
            self.failed += 1
        self.processed_routes.append(route)


class SearchIndex:
    """Term postings for every markdown and source file under the root.

    ``build`` scans the whole tree, ``update`` refreshes a single route. Both
    read files outside the lock and only hold it to swap entries, so queries
    never see a half-replaced document.
    """

    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self._entries: Dict[str, IndexEntry] = {}
        self._postings: Dict[str, Dict[str, int]] = {}
        self._lock = threading.Lock()
        self._build_lock = threading.Lock()
        self._building = False
        self._touched_during_build: Set[str] = set()
        self.ready = threading.Event()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, route: object) -> bool:
        with self._lock:
            return route in self._entries

    def get(self, route: str) -> Optional[IndexEntry]:
        with self._lock:
            return self._entries.get(route)

    def routes(self) -> List[str]:
        with self._lock:
            return sorted(self._entries)

    def postings_for(self, term: str) -> Dict[str, int]:
        with self._lock:
            return dict(self._postings.get(term, {}))

    def build(self) -> IndexStats:
        """Index every indexable file below the root.

        Files that cannot be read or decoded are logged and skipped. Entries
        for files that vanished since the previous build are dropped.
        Overlapping calls run one after another.
        """
        with self._build_lock:
            return self._build()

    def _build(self) -> IndexStats:
        with self._lock:
            self._building = True
            self._touched_during_build.clear()

        stats = IndexStats()
        seen: Set[str] = set()
        try:
            for route in self.store.iter_routes():
                if not classify(route).indexable:
                    continue
                seen.add(route)
                try:
                    entry = self._read_entry(route)
                except (OSError, UnicodeDecodeError, PathOutsideRootError) as exc:
                    LOGGER.warning("Skipping %s: %s", route, exc)
                    stats.increment("failed", route)
                    continue

                with self._lock:
                    if route in self._touched_during_build:
                        stats.increment("skipped", route)
                        continue
                    self._replace(route, entry)
                stats.increment("indexed", route)

            with self._lock:
                stale = [
                    route
                    for route in self._entries
                    if route not in seen and route not in self._touched_during_build
                ]
                for route in stale:
                    self._discard(route)
                    stats.increment("removed", route)
        finally:
            with self._lock:
                self._building = False
                self._touched_during_build.clear()
            self.ready.set()

        LOGGER.info(
            "Indexed %d documents (%d failed) under %s",
            stats.indexed,
            stats.failed,
            self.store.root,
        )
        return stats

    def update(self, route: str) -> str:
        """Re-derive the entry for ``route`` from the file on disk.

        Returns ``"indexed"``, ``"unchanged"``, ``"removed"`` or ``"skipped"``.
        A file that no longer exists simply loses its entry.
        """
        if not classify(route).indexable:
            self.remove(route)
            return "skipped"

        try:
            entry = self._read_entry(route)
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError, PathOutsideRootError):
            entry = None
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.warning("Cannot index %s: %s", route, exc)
            entry = None

        with self._lock:
            if self._building:
                self._touched_during_build.add(route)
            if entry is None:
                existed = self._discard(route)
                return "removed" if existed else "skipped"
            current = self._entries.get(route)
            if current is not None and current.marker == entry.marker:
                return "unchanged"
            self._replace(route, entry)
        LOGGER.debug("Reindexed %s", route)
        return "indexed"

    def remove(self, route: str) -> bool:
        with self._lock:
            if self._building:
                self._touched_during_build.add(route)
            return self._discard(route)

    def search(self, query: str, *, limit: Optional[int] = None) -> List[SearchResult]:
        """Rank documents against ``query``; blank queries match nothing."""
        terms = tokenize(query)
        if not terms:
            return []

        with self._lock:
            matches = rank_postings(terms, self._postings)
            if limit is not None:
                matches = matches[: max(limit, 0)]
            hits = [(match, self._entries[match.route]) for match in matches]

        return [
            SearchResult(
                route=match.route,
                title=entry.title,
                excerpt=make_excerpt(entry.text, terms),
                score=match.score,
            )
            for match, entry in hits
        ]

    def _read_entry(self, route: str) -> IndexEntry:
        data = self.store.read_bytes(route)
        text = data.decode("utf-8")
        name = route_name(route)
        if classify(route) is ContentClass.MARKDOWN:
            title = extract_title(text, name)
        else:
            title = name
        return IndexEntry(
            route=route,
            title=title,
            terms=dict(Counter(tokenize(text))),
            text=text,
            marker=content_hash(data),
        )

    # The helpers below expect self._lock to be held.

    def _replace(self, route: str, entry: IndexEntry) -> None:
        self._discard(route)
        self._entries[route] = entry
        for term, count in entry.terms.items():
            self._postings.setdefault(term, {})[route] = count

    def _discard(self, route: str) -> bool:
        previous = self._entries.pop(route, None)
        if previous is None:
            return False
        for term in previous.terms:
            routes = self._postings.get(term)
            if routes is None:
                continue
            routes.pop(route, None)
            if not routes:
                del self._postings[term]
        return True
