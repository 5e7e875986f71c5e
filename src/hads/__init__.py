"""hads - browse, search and edit a tree of documents over HTTP."""

__version__ = "0.1.0"
