"""Shared fixtures for the hads test-suite."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, Union

import pytest

from hads.index.indexer import SearchIndex
from hads.render import Renderer
from hads.resolver import Resolver
from hads.store import DocumentStore

Content = Union[str, bytes]


@pytest.fixture
def make_tree(tmp_path: Path) -> Callable[[Dict[str, Content]], Path]:
    """Write ``{relative path: content}`` below a fresh root folder."""
    root = tmp_path / "docs"
    root.mkdir()

    def _make(files: Dict[str, Content]) -> Path:
        for relative, content in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content, encoding="utf-8")
        return root

    return _make


@pytest.fixture
def store(make_tree) -> DocumentStore:
    return DocumentStore(make_tree({}))


@pytest.fixture
def index(store: DocumentStore) -> SearchIndex:
    return SearchIndex(store)


@pytest.fixture
def resolver(store: DocumentStore, index: SearchIndex) -> Resolver:
    return Resolver(store, index, Renderer(index))
