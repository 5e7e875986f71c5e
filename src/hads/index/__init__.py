"""In-memory full text index over the document tree."""

from hads.index.indexer import IndexStats, SearchIndex

__all__ = ["IndexStats", "SearchIndex"]
