"""Filesystem-backed access to the documents under the served root."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator

from hads.errors import CreateFailure, PathOutsideRootError, WriteFailure
from hads.utils.files import join_route, normalize_route, safe_upload_name

LOGGER = logging.getLogger(__name__)

SKIPPED_DIRECTORIES = frozenset({"node_modules", "__pycache__"})


class DocumentStore:
    """Reads and writes documents addressed by their root-relative route.

    All path math goes through :meth:`path_for`; nothing else in the code
    base joins a route to the root.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(os.path.realpath(str(Path(root).expanduser())))

    def path_for(self, route: str) -> Path:
        """Normalize ``route`` and join it to the root.

        Raises :class:`PathOutsideRootError` when the real location of the
        result (after following symlinks) is not inside the root.
        """
        normalized = normalize_route(route)
        candidate = self.root
        if normalized != "/":
            candidate = self.root.joinpath(*normalized.strip("/").split("/"))
        real = os.path.realpath(str(candidate))
        root_str = str(self.root)
        if real != root_str and not real.startswith(root_str.rstrip(os.sep) + os.sep):
            raise PathOutsideRootError(route)
        return candidate

    def route_for(self, path: Path) -> str:
        relative = Path(path).relative_to(self.root)
        return normalize_route(relative.as_posix())

    def stat(self, route: str) -> os.stat_result:
        return self.path_for(route).stat()

    def read_bytes(self, route: str) -> bytes:
        return self.path_for(route).read_bytes()

    def write_text(self, route: str, content: str) -> Path:
        """Overwrite an existing regular file; never creates one."""
        try:
            path = self.path_for(route)
        except PathOutsideRootError as exc:
            raise WriteFailure(route, str(exc)) from exc
        if not path.is_file():
            raise WriteFailure(route, "not an existing file")
        try:
            with path.open("w", encoding="utf-8", newline="") as handle:
                handle.write(content)
        except OSError as exc:
            raise WriteFailure(route, exc.strerror or str(exc)) from exc
        return path

    def create(self, route: str) -> Path:
        """Create an empty file at ``route`` along with missing parents."""
        try:
            path = self.path_for(route)
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("x", encoding="utf-8"):
                pass
        except FileExistsError:
            # Another request created it first.
            if not path.is_file():
                raise CreateFailure(route, "something other than a file is in the way")
        except PathOutsideRootError as exc:
            raise CreateFailure(route, str(exc)) from exc
        except OSError as exc:
            raise CreateFailure(route, exc.strerror or str(exc)) from exc
        LOGGER.info("Created %s", path)
        return path

    def iter_routes(self) -> Iterator[str]:
        """Yield the route of every regular file below the root, sorted.

        Hidden entries and dependency folders are skipped.
        """
        for dirpath, dirnames, filenames in os.walk(self.root, onerror=self._log_walk_error):
            dirnames[:] = sorted(
                name
                for name in dirnames
                if not name.startswith(".") and name not in SKIPPED_DIRECTORIES
            )
            for name in sorted(filenames):
                if name.startswith("."):
                    continue
                path = Path(dirpath) / name
                if path.is_file():
                    yield self.route_for(path)

    def save_upload(self, directory: str, filename: str | None, data: bytes) -> str:
        """Store uploaded bytes under ``directory`` without overwriting."""
        name = safe_upload_name(filename, fallback="upload")
        folder = self.path_for(directory)
        folder.mkdir(parents=True, exist_ok=True)

        stem, suffix = os.path.splitext(name)
        counter = 0
        while True:
            candidate = name if counter == 0 else f"{stem}-{counter}{suffix}"
            route = join_route(directory, candidate)
            path = self.path_for(route)
            try:
                with path.open("xb") as handle:
                    handle.write(data)
            except FileExistsError:
                counter += 1
                continue
            LOGGER.info("Stored upload %s (%d bytes)", route, len(data))
            return route

    @staticmethod
    def _log_walk_error(error: OSError) -> None:
        LOGGER.warning("Cannot scan %s: %s", error.filename, error)
