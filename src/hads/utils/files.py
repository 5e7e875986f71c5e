"""Utility helpers for routes and file contents."""

from __future__ import annotations

import hashlib
import posixpath
import re
from pathlib import PurePosixPath

from hads.errors import PathOutsideRootError
from hads.matcher import is_markdown

MARKDOWN_EXTENSION = ".md"

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def normalize_route(route: str) -> str:
    """Collapse ``.``/``..`` segments and duplicate slashes.

    The result always starts with ``/``; ``..`` segments can never climb
    above it because normalization is done against an absolute path.
    """
    if "\0" in route:
        raise PathOutsideRootError(route)
    cleaned = route.replace("\\", "/").lstrip("/")
    return posixpath.normpath("/" + cleaned) if cleaned else "/"


def join_route(directory: str, name: str) -> str:
    return normalize_route(posixpath.join(directory, name))


def ensure_markdown_extension(route: str) -> str:
    """Return ``route`` with a markdown extension, appending ``.md`` if needed."""
    if route.endswith("/") or is_markdown(route):
        return route
    return route + MARKDOWN_EXTENSION


def route_name(route: str) -> str:
    return PurePosixPath(route).name or "/"


def safe_upload_name(filename: str | None, fallback: str) -> str:
    """Strip directories and unsafe characters from an uploaded file name."""
    name = PurePosixPath((filename or "").replace("\\", "/")).name
    name = _UNSAFE_NAME_CHARS.sub("_", name).strip("._")
    return name or fallback


def content_hash(data: bytes) -> str:
    """Compute SHA256 hash for file contents."""
    return hashlib.sha256(data).hexdigest()
