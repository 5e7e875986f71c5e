"""Exceptions raised by the document store."""

from __future__ import annotations


class HadsError(Exception):
    """Base class for hads errors."""


class PathOutsideRootError(HadsError, ValueError):
    """A route resolved to a location outside the served root."""

    def __init__(self, route: str) -> None:
        super().__init__(f"Route escapes the document root: {route}")
        self.route = route


class CreateFailure(HadsError):
    """Creating a document or one of its parent directories failed."""

    def __init__(self, route: str, reason: str) -> None:
        super().__init__(f"Cannot create {route}: {reason}")
        self.route = route
        self.reason = reason


class WriteFailure(HadsError):
    """Saving content to a document failed or the target is not a file."""

    def __init__(self, route: str, reason: str) -> None:
        super().__init__(f"Cannot write {route}: {reason}")
        self.route = route
        self.reason = reason
