"""Resolve a request route to a filesystem action.

Each request gets its own :class:`ResolutionContext` and walks the states
below until it reaches ``RENDER_PAGE``::

    STAT_PATH -> ROOT_FILE_FALLBACK -> STAT_PATH -> ... -> RENDER_PAGE
    STAT_PATH -> MISSING_PATH -> (create) -> STAT_PATH -> RENDER_PAGE
    STAT_PATH -> MISSING_PATH -> Redirect

Every state is a coroutine that takes the context and returns the next
state, or a terminal outcome, so transitions can be exercised one at a time.
"""

from __future__ import annotations

import asyncio
import logging
import stat as stat_module
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Dict, Mapping, Optional, Sequence, Union
from urllib.parse import quote

from hads.config import ROOT_FILES
from hads.errors import CreateFailure, PathOutsideRootError, WriteFailure
from hads.index.indexer import SearchIndex
from hads.matcher import classify, source_language
from hads.models import ContentClass
from hads.render import SEARCH_RESULTS_TITLE, Renderer
from hads.store import DocumentStore
from hads.utils.files import ensure_markdown_extension, join_route, normalize_route, route_name
from hads.utils.text import markdown_literal

LOGGER = logging.getLogger(__name__)

FALSE_VALUES = frozenset({"0", "false", "no", "off"})


class State(str, Enum):
    STAT_PATH = "stat_path"
    ROOT_FILE_FALLBACK = "root_file_fallback"
    MISSING_PATH = "missing_path"
    RENDER_PAGE = "render_page"


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    NO_HOME_PAGE = "no_home_page"
    CREATE_CONFLICT = "create_conflict"
    CREATE_FAILURE = "create_failure"
    NOT_A_DOCUMENT = "not_a_document"


@dataclass(slots=True)
class ResolutionError:
    kind: ErrorKind
    title: str
    message: str

    @classmethod
    def not_found(cls) -> "ResolutionError":
        return cls(
            ErrorKind.NOT_FOUND,
            "404 Error",
            "## File not found ¯\\\\\\_(ツ)\\_/¯\n"
            "> *There's a glitch in the matrix...*\n\n"
            "Go back to the [home page](/) or search for the document instead.",
        )

    @classmethod
    def no_home_page(cls) -> "ResolutionError":
        return cls(
            ErrorKind.NO_HOME_PAGE,
            "404 Error",
            "## No home page (╥﹏╥)\n"
            "Do you want to create an [index.md](/index.md?create=1) or "
            "[readme.md](/readme.md?create=1) file perhaps?",
        )

    @classmethod
    def create_conflict(cls, route: str) -> "ResolutionError":
        target = route.rstrip("/") + "/index.md"
        return cls(
            ErrorKind.CREATE_CONFLICT,
            "Error",
            f"## Cannot create file <code>{markdown_literal(route)}</code>\n"
            "A directory already exists at this path. "
            f"Try creating [{markdown_literal(target)}]({quote(target)}?create=1) instead.",
        )

    @classmethod
    def create_failure(cls, route: str, reason: str) -> "ResolutionError":
        return cls(
            ErrorKind.CREATE_FAILURE,
            "Error",
            f"## Cannot create file <code>{markdown_literal(route)}</code>\n"
            f"> {markdown_literal(reason)}\n\n"
            "Check that the parent folders are writable and try again.",
        )

    @classmethod
    def not_a_document(cls, route: str) -> "ResolutionError":
        return cls(
            ErrorKind.NOT_A_DOCUMENT,
            "Error",
            f"## <code>{markdown_literal(route)}</code> is not a document\n"
            "Something other than a regular file is in the way. "
            "Rename it or open the folder's other files directly.",
        )


@dataclass(slots=True)
class RequestFlags:
    create: bool = False
    edit: bool = False
    raw: bool = False
    search: Optional[str] = None

    @classmethod
    def from_query(cls, query: Mapping[str, str]) -> "RequestFlags":
        search = (query.get("search") or "").strip() or None
        return cls(
            create=has_query_option(query, "create"),
            edit=has_query_option(query, "edit"),
            raw=has_query_option(query, "raw"),
            search=search,
        )


def has_query_option(query: Mapping[str, str], name: str) -> bool:
    if name not in query:
        return False
    return (query.get(name) or "").strip().lower() not in FALSE_VALUES


@dataclass(slots=True)
class ResolutionContext:
    """Per-request resolver state. Never shared between requests."""

    route: str
    flags: RequestFlags = field(default_factory=RequestFlags)
    root_index: int = -1
    fallback_route: Optional[str] = None
    error: Optional[ResolutionError] = None
    title: Optional[str] = None
    created: bool = False

    @property
    def edit(self) -> bool:
        return self.error is None and (self.flags.edit or self.flags.create)

    def fail(self, error: ResolutionError) -> State:
        self.error = error
        self.title = error.title
        self.route = "/"
        return State.RENDER_PAGE


@dataclass(slots=True)
class Page:
    title: str
    route: str
    icon: str
    content: str
    edit: bool = False
    search: Optional[str] = None
    error: Optional[ErrorKind] = None

    @property
    def template(self) -> str:
        return "edit.html" if self.edit else "file.html"


@dataclass(slots=True)
class Redirect:
    location: str


@dataclass(slots=True)
class RawFile:
    path: Path


class _NotHandled:
    """Marker for routes this resolver does not own."""

    def __repr__(self) -> str:
        return "NOT_HANDLED"


NOT_HANDLED = _NotHandled()

Outcome = Union[Page, Redirect, RawFile, _NotHandled]
Transition = Union[State, Redirect]


class Resolver:
    """Drive a :class:`ResolutionContext` through the resolution states."""

    def __init__(
        self,
        store: DocumentStore,
        index: SearchIndex,
        renderer: Renderer,
        *,
        root_files: Sequence[str] = ROOT_FILES,
    ) -> None:
        self.store = store
        self.index = index
        self.renderer = renderer
        self.root_files = tuple(root_files)
        self._states: Dict[State, Callable[[ResolutionContext], Awaitable[Transition]]] = {
            State.STAT_PATH: self.stat_path,
            State.ROOT_FILE_FALLBACK: self.root_file_fallback,
            State.MISSING_PATH: self.missing_path,
        }

    def new_context(self, route: str, flags: Optional[RequestFlags] = None) -> ResolutionContext:
        try:
            route = normalize_route(route)
        except PathOutsideRootError:
            route = "/"
            context = ResolutionContext(route=route, flags=flags or RequestFlags())
            context.fail(ResolutionError.not_found())
            return context
        return ResolutionContext(route=route, flags=flags or RequestFlags())

    async def resolve(self, route: str, flags: Optional[RequestFlags] = None) -> Outcome:
        context = self.new_context(route, flags)
        state = State.RENDER_PAGE if context.error else State.STAT_PATH
        while state is not State.RENDER_PAGE:
            LOGGER.debug("%s: %s", state.value, context.route)
            transition = await self._states[state](context)
            if isinstance(transition, Redirect):
                return transition
            state = transition
        return await self.render_page(context)

    async def stat_path(self, context: ResolutionContext) -> Transition:
        try:
            info = await asyncio.to_thread(self.store.stat, context.route)
        except PathOutsideRootError:
            LOGGER.warning("Rejected route outside root: %s", context.route)
            if context.fallback_route is not None:
                # A root-file candidate pointing outside counts as missing.
                return State.MISSING_PATH
            return context.fail(ResolutionError.not_found())
        except OSError:
            return State.MISSING_PATH

        if stat_module.S_ISDIR(info.st_mode):
            if context.flags.search or context.error:
                return State.RENDER_PAGE
            if context.flags.create:
                return context.fail(ResolutionError.create_conflict(context.route))
            if context.fallback_route is not None:
                return context.fail(ResolutionError.not_a_document(context.route))
            return State.ROOT_FILE_FALLBACK

        if stat_module.S_ISREG(info.st_mode):
            return State.RENDER_PAGE
        return context.fail(ResolutionError.not_a_document(context.route))

    async def root_file_fallback(self, context: ResolutionContext) -> Transition:
        if context.fallback_route is None:
            context.fallback_route = context.route
        context.root_index += 1
        if context.root_index >= len(self.root_files):
            return State.MISSING_PATH
        context.route = join_route(context.fallback_route, self.root_files[context.root_index])
        return State.STAT_PATH

    async def missing_path(self, context: ResolutionContext) -> Transition:
        if context.flags.create:
            return await self._create(context)

        if context.fallback_route is not None and context.root_index < len(self.root_files) - 1:
            return State.ROOT_FILE_FALLBACK

        if context.fallback_route == "/":
            return context.fail(ResolutionError.no_home_page())
        return context.fail(ResolutionError.not_found())

    async def _create(self, context: ResolutionContext) -> Transition:
        fixed = ensure_markdown_extension(context.route)
        if fixed != context.route:
            return Redirect(quote(fixed) + "?create=1")

        route = context.route
        if context.created:
            return context.fail(ResolutionError.create_failure(route, "the file vanished after creation"))
        try:
            await asyncio.to_thread(self.store.create, route)
        except CreateFailure as exc:
            LOGGER.error("%s", exc)
            return context.fail(ResolutionError.create_failure(route, exc.reason))

        context.created = True
        await asyncio.to_thread(self.index.update, route)
        return State.STAT_PATH

    async def render_page(self, context: ResolutionContext) -> Outcome:
        """Pick what to show for a resolved context.

        Precedence: error, search, raw bytes, then the content class.
        """
        title = context.title
        search = context.flags.search

        if context.error is not None:
            content = await self.renderer.render_markdown(context.error.message)
            return Page(
                title=title or context.error.title,
                route=context.route,
                icon="octicon-alert",
                content=content,
                error=context.error.kind,
            )

        if search:
            content, _ = await self.renderer.render_search(search)
            return Page(
                title=title or SEARCH_RESULTS_TITLE,
                route=context.route,
                icon="octicon-search",
                content=content,
                search=search,
            )

        path = self.store.path_for(context.route)
        if context.flags.raw:
            return RawFile(path)

        content_class = classify(path)
        try:
            if content_class is ContentClass.MARKDOWN:
                if context.edit:
                    content = await self.renderer.render_raw(path)
                else:
                    content = await self.renderer.render_file(path)
                icon = "octicon-file"
            elif content_class is ContentClass.IMAGE:
                content = await self.renderer.render_image_file(context.route)
                icon = "octicon-file-media"
            elif content_class is ContentClass.SOURCE_CODE:
                content = await self.renderer.render_source_code(path, source_language(path))
                icon = "octicon-file-code"
            else:
                return NOT_HANDLED
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.warning("Cannot render %s: %s", context.route, exc)
            context.fail(ResolutionError.not_found())
            return await self.render_page(context)

        return Page(
            title=title or route_name(context.route),
            route=context.route,
            icon=icon,
            content=content,
            edit=context.edit and content_class is ContentClass.MARKDOWN,
        )

    async def save(self, route: str, content: str) -> Outcome:
        """Write ``content`` to an existing file, reindex it and show it."""
        try:
            route = normalize_route(route)
            path = await asyncio.to_thread(self.store.write_text, route, content)
        except (WriteFailure, PathOutsideRootError) as exc:
            LOGGER.warning("Save refused: %s", exc)
            return NOT_HANDLED

        await asyncio.to_thread(self.index.update, route)
        try:
            html = await self.renderer.render_file(path)
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.warning("Cannot render %s after saving: %s", route, exc)
            return NOT_HANDLED
        return Page(title=route_name(route), route=route, icon="octicon-file", content=html)
