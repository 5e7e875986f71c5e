"""Tests for the path resolution state machine."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import pytest

from hads.index.indexer import SearchIndex
from hads.resolver import (
    NOT_HANDLED,
    ErrorKind,
    Page,
    RawFile,
    Redirect,
    RequestFlags,
    ResolutionContext,
    Resolver,
    State,
)
from hads.store import DocumentStore


def _resolve(resolver: Resolver, route: str, **flags) -> object:
    return asyncio.run(resolver.resolve(route, RequestFlags(**flags)))


def _files(root: Path) -> list[str]:
    return sorted(str(p.relative_to(root)) for p in root.rglob("*"))


class TestRequestFlags:
    """Tests for query flag parsing."""

    def test_presence_enables_flag(self) -> None:
        flags = RequestFlags.from_query({"create": "1", "edit": "", "raw": "yes"})

        assert flags.create and flags.edit and flags.raw
        assert flags.search is None

    def test_false_values_disable_flag(self) -> None:
        flags = RequestFlags.from_query({"create": "0", "edit": "false"})

        assert not flags.create
        assert not flags.edit

    def test_search_is_trimmed(self) -> None:
        assert RequestFlags.from_query({"search": "  alpha "}).search == "alpha"
        assert RequestFlags.from_query({"search": "   "}).search is None


class TestTransitions:
    """Each state on its own."""

    def test_stat_regular_file(self, make_tree, resolver: Resolver) -> None:
        make_tree({"a.md": "x"})
        context = ResolutionContext(route="/a.md")

        assert asyncio.run(resolver.stat_path(context)) is State.RENDER_PAGE

    def test_stat_missing(self, resolver: Resolver) -> None:
        context = ResolutionContext(route="/missing.md")

        assert asyncio.run(resolver.stat_path(context)) is State.MISSING_PATH

    def test_stat_directory_enters_fallback(self, make_tree, resolver: Resolver) -> None:
        make_tree({"docs/x.py": ""})
        context = ResolutionContext(route="/docs")

        assert asyncio.run(resolver.stat_path(context)) is State.ROOT_FILE_FALLBACK

    def test_stat_directory_with_search(self, make_tree, resolver: Resolver) -> None:
        make_tree({"docs/x.py": ""})
        context = ResolutionContext(route="/docs", flags=RequestFlags(search="x"))

        assert asyncio.run(resolver.stat_path(context)) is State.RENDER_PAGE
        assert context.error is None

    def test_stat_directory_with_create(self, make_tree, resolver: Resolver) -> None:
        make_tree({"docs/x.py": ""})
        context = ResolutionContext(route="/docs", flags=RequestFlags(create=True))

        assert asyncio.run(resolver.stat_path(context)) is State.RENDER_PAGE
        assert context.error.kind is ErrorKind.CREATE_CONFLICT
        assert context.route == "/"

    def test_fallback_advances_cursor(self, resolver: Resolver) -> None:
        context = ResolutionContext(route="/docs")

        assert asyncio.run(resolver.root_file_fallback(context)) is State.STAT_PATH
        assert context.route == "/docs/index.md"
        assert context.root_index == 0
        assert context.fallback_route == "/docs"

        asyncio.run(resolver.root_file_fallback(context))
        assert context.route == "/docs/README.md"
        asyncio.run(resolver.root_file_fallback(context))
        assert context.route == "/docs/readme.md"

    def test_missing_with_candidates_left(self, resolver: Resolver) -> None:
        context = ResolutionContext(route="/docs/index.md", root_index=0, fallback_route="/docs")

        assert asyncio.run(resolver.missing_path(context)) is State.ROOT_FILE_FALLBACK

    def test_missing_after_last_candidate(self, resolver: Resolver) -> None:
        context = ResolutionContext(route="/docs/readme.md", root_index=2, fallback_route="/docs")

        assert asyncio.run(resolver.missing_path(context)) is State.RENDER_PAGE
        assert context.error.kind is ErrorKind.NOT_FOUND

    def test_missing_at_root_after_last_candidate(self, resolver: Resolver) -> None:
        context = ResolutionContext(route="/readme.md", root_index=2, fallback_route="/")

        assert asyncio.run(resolver.missing_path(context)) is State.RENDER_PAGE
        assert context.error.kind is ErrorKind.NO_HOME_PAGE

    def test_missing_create_redirects_without_extension(
        self, store: DocumentStore, resolver: Resolver
    ) -> None:
        context = ResolutionContext(route="/notes", flags=RequestFlags(create=True))

        transition = asyncio.run(resolver.missing_path(context))

        assert transition == Redirect("/notes.md?create=1")
        assert _files(store.root) == []


class TestFallback:
    """Directory routes resolve to their root file."""

    def test_only_lowercase_readme(self, make_tree, resolver: Resolver) -> None:
        make_tree({"readme.md": "# Read me\nlowercase readme"})

        page = _resolve(resolver, "/")

        assert isinstance(page, Page)
        assert "lowercase readme" in page.content
        assert page.route == "/readme.md"
        assert page.title == "readme.md"
        assert page.error is None

    def test_index_takes_precedence(self, make_tree, resolver: Resolver) -> None:
        make_tree({"index.md": "from index", "README.md": "from README"})

        page = _resolve(resolver, "/")

        assert page.route == "/index.md"
        assert "from index" in page.content

    def test_subdirectory(self, make_tree, resolver: Resolver) -> None:
        make_tree({"guide/README.md": "guide home"})

        page = _resolve(resolver, "/guide/")

        assert page.route == "/guide/README.md"

    def test_no_home_page(self, resolver: Resolver) -> None:
        """An empty tree reports a missing home page, not a plain 404."""
        page = _resolve(resolver, "/")

        assert page.error is ErrorKind.NO_HOME_PAGE
        assert "/index.md?create=1" in page.content
        assert page.title == "404 Error"
        assert page.edit is False

    def test_empty_subdirectory_is_not_found(self, make_tree, resolver: Resolver) -> None:
        make_tree({"empty/image.png": b""})

        page = _resolve(resolver, "/empty")

        assert page.error is ErrorKind.NOT_FOUND
        assert page.route == "/"

    def test_root_file_that_is_a_directory(self, make_tree, resolver: Resolver) -> None:
        """A folder named like a root file is reported, never descended into."""
        make_tree({"index.md/README.md": "nested"})

        page = _resolve(resolver, "/")

        assert page.error is ErrorKind.NOT_A_DOCUMENT

    def test_root_file_outside_root_is_skipped(
        self, make_tree, resolver: Resolver, tmp_path: Path
    ) -> None:
        """A root file symlinked out of the tree counts as missing."""
        root = make_tree({"readme.md": "inside"})
        outside = tmp_path / "outside.md"
        outside.write_text("outside", encoding="utf-8")
        os.symlink(outside, root / "index.md")

        page = _resolve(resolver, "/")

        assert page.route == "/readme.md"
        assert "inside" in page.content

    def test_only_root_file_outside_root(
        self, store: DocumentStore, resolver: Resolver, tmp_path: Path
    ) -> None:
        outside = tmp_path / "outside.md"
        outside.write_text("outside", encoding="utf-8")
        os.symlink(outside, store.root / "index.md")

        page = _resolve(resolver, "/")

        assert page.error is ErrorKind.NO_HOME_PAGE
        assert "outside" not in page.content


class TestMissing:
    """Plain lookups of missing files."""

    def test_not_found(self, resolver: Resolver) -> None:
        page = _resolve(resolver, "/nope.md")

        assert page.error is ErrorKind.NOT_FOUND
        assert "File not found" in page.content
        assert page.route == "/"

    def test_not_found_wins_over_search(self, resolver: Resolver) -> None:
        page = _resolve(resolver, "/nope.md", search="anything")

        assert page.error is ErrorKind.NOT_FOUND
        assert page.search is None

    def test_traversal_stays_inside_root(self, resolver: Resolver) -> None:
        page = _resolve(resolver, "/../../etc/passwd")

        assert page.error is ErrorKind.NOT_FOUND

    def test_symlink_escape(self, store: DocumentStore, resolver: Resolver, tmp_path: Path) -> None:
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "secret.md").write_text("top secret", encoding="utf-8")
        os.symlink(outside, store.root / "link")

        page = _resolve(resolver, "/link/secret.md")

        assert page.error is ErrorKind.NOT_FOUND
        assert "top secret" not in page.content


class TestCreate:
    """The create-on-demand flow."""

    def test_create_flow(self, store: DocumentStore, index: SearchIndex, resolver: Resolver) -> None:
        """/notes redirects once, then creates and opens an empty editor."""
        first = _resolve(resolver, "/notes", create=True)

        assert first == Redirect("/notes.md?create=1")
        assert not (store.root / "notes.md").exists()

        second = _resolve(resolver, "/notes.md", create=True)

        assert isinstance(second, Page)
        assert second.edit is True
        assert second.content == ""
        assert second.route == "/notes.md"
        assert (store.root / "notes.md").read_text(encoding="utf-8") == ""
        assert "/notes.md" in index

    def test_create_with_parents(self, store: DocumentStore, resolver: Resolver) -> None:
        page = _resolve(resolver, "/a/b/c.md", create=True)

        assert page.edit is True
        assert (store.root / "a" / "b" / "c.md").is_file()

    def test_create_existing_file_opens_editor(self, make_tree, resolver: Resolver) -> None:
        make_tree({"a.md": "# Existing"})

        page = _resolve(resolver, "/a.md", create=True)

        assert page.edit is True
        assert page.content == "# Existing"

    def test_create_at_directory(self, make_tree, store: DocumentStore, resolver: Resolver) -> None:
        """Creating over a folder never writes anything."""
        make_tree({"docs/a.py": "x = 1"})
        before = _files(store.root)

        page = _resolve(resolver, "/docs", create=True)

        assert page.error is ErrorKind.CREATE_CONFLICT
        assert page.edit is False
        assert _files(store.root) == before
        assert 'href="/docs/index.md?create=1"' in page.content

    def test_create_at_root(self, store: DocumentStore, resolver: Resolver) -> None:
        page = _resolve(resolver, "/", create=True)

        assert page.error is ErrorKind.CREATE_CONFLICT
        assert _files(store.root) == []
        assert 'href="/index.md?create=1"' in page.content

    def test_create_failure(self, make_tree, resolver: Resolver) -> None:
        make_tree({"blocker": "a regular file"})

        page = _resolve(resolver, "/blocker/child.md", create=True)

        assert page.error is ErrorKind.CREATE_FAILURE
        assert page.route == "/"
        assert page.edit is False
        assert "something other than a file is in the way" in page.content
        assert "Cannot create /blocker" not in page.content


class TestRenderPage:
    """Dispatch once a route is resolved."""

    def test_markdown_view(self, make_tree, resolver: Resolver) -> None:
        make_tree({"a.md": "# Title\n*body*"})

        page = _resolve(resolver, "/a.md")

        assert "<em>body</em>" in page.content
        assert page.icon == "octicon-file"
        assert page.edit is False
        assert page.template == "file.html"

    def test_markdown_edit_view(self, make_tree, resolver: Resolver) -> None:
        make_tree({"a.md": "# Title\n*body*"})

        page = _resolve(resolver, "/a.md", edit=True)

        assert page.content == "# Title\n*body*"
        assert page.edit is True
        assert page.template == "edit.html"

    def test_image_view(self, make_tree, resolver: Resolver) -> None:
        make_tree({"images/logo.png": b"\x89PNG"})

        page = _resolve(resolver, "/images/logo.png")

        assert "/images/logo.png?raw=1" in page.content
        assert page.icon == "octicon-file-media"

    def test_source_view(self, make_tree, resolver: Resolver) -> None:
        make_tree({"src/app.py": "def main():\n    pass\n"})

        page = _resolve(resolver, "/src/app.py", edit=True)

        assert 'class="highlight"' in page.content
        assert page.icon == "octicon-file-code"
        assert page.edit is False

    def test_raw(self, make_tree, store: DocumentStore, resolver: Resolver) -> None:
        make_tree({"a.md": "# raw"})

        outcome = _resolve(resolver, "/a.md", raw=True)

        assert outcome == RawFile(store.root / "a.md")

    def test_raw_after_fallback(self, make_tree, store: DocumentStore, resolver: Resolver) -> None:
        make_tree({"README.md": "# raw"})

        assert _resolve(resolver, "/", raw=True) == RawFile(store.root / "README.md")

    def test_search_on_directory(self, make_tree, index: SearchIndex, resolver: Resolver) -> None:
        make_tree({"index.md": "home", "notes/a.md": "# A\nneedle"})
        index.build()

        page = _resolve(resolver, "/", search="needle")

        assert page.search == "needle"
        assert page.title == "Search results"
        assert page.icon == "octicon-search"
        assert "/notes/a.md" in page.content
        assert page.route == "/"

    def test_search_wins_over_raw(self, make_tree, index: SearchIndex, resolver: Resolver) -> None:
        make_tree({"a.md": "needle"})
        index.build()

        page = _resolve(resolver, "/a.md", search="needle", raw=True)

        assert isinstance(page, Page)
        assert page.search == "needle"

    def test_unknown_content_is_not_handled(self, make_tree, resolver: Resolver) -> None:
        make_tree({"report.pdf": b"%PDF"})

        assert _resolve(resolver, "/report.pdf") is NOT_HANDLED

    def test_error_disables_edit(self, resolver: Resolver) -> None:
        page = _resolve(resolver, "/missing.md", edit=True)

        assert page.error is ErrorKind.NOT_FOUND
        assert page.edit is False
        assert page.icon == "octicon-alert"


class TestSave:
    """The edit/save entry point."""

    def test_save_existing(
        self, make_tree, store: DocumentStore, index: SearchIndex, resolver: Resolver
    ) -> None:
        make_tree({"a.md": "old"})
        index.build()

        page = asyncio.run(resolver.save("/a.md", "# Saved\nbrandnew"))

        assert isinstance(page, Page)
        assert "brandnew" in page.content
        assert "<h1" in page.content
        assert page.edit is False
        assert (store.root / "a.md").read_text(encoding="utf-8") == "# Saved\nbrandnew"
        assert [r.route for r in index.search("brandnew")] == ["/a.md"]
        assert index.search("old") == []

    def test_save_refuses_missing_file(self, store: DocumentStore, resolver: Resolver) -> None:
        outcome = asyncio.run(resolver.save("/ghost.md", "content"))

        assert outcome is NOT_HANDLED
        assert not (store.root / "ghost.md").exists()

    def test_save_refuses_directory(self, make_tree, resolver: Resolver) -> None:
        make_tree({"docs/a.md": "x"})

        assert asyncio.run(resolver.save("/docs", "content")) is NOT_HANDLED


@pytest.mark.parametrize("route", ["/", "/docs", "/docs/"])
def test_contexts_are_independent(make_tree, resolver: Resolver, route: str) -> None:
    """Two resolutions never share fallback state."""
    make_tree({"readme.md": "root", "docs/README.md": "docs"})

    first = _resolve(resolver, route)
    second = _resolve(resolver, route)

    assert first == second
