"""Content classification by file name.

Every predicate here is pure: it looks at the name only and never touches
the filesystem.
"""

from __future__ import annotations

from pathlib import PurePath
from typing import Dict, Union

from hads.models import ContentClass

PathLike = Union[str, PurePath]

MARKDOWN_EXTENSIONS = frozenset({".md", ".markdown", ".mdown", ".mkd", ".mkdn"})

IMAGE_EXTENSIONS = frozenset(
    {".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".bmp", ".ico"}
)

# Extension -> Pygments lexer alias.
SOURCE_LANGUAGES: Dict[str, str] = {
    ".py": "python",
    ".js": "javascript",
    ".mjs": "javascript",
    ".ts": "typescript",
    ".jsx": "jsx",
    ".tsx": "tsx",
    ".json": "json",
    ".html": "html",
    ".htm": "html",
    ".css": "css",
    ".scss": "scss",
    ".less": "less",
    ".xml": "xml",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".toml": "toml",
    ".ini": "ini",
    ".cfg": "ini",
    ".sh": "bash",
    ".bash": "bash",
    ".zsh": "zsh",
    ".ps1": "powershell",
    ".bat": "batch",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".hpp": "cpp",
    ".cs": "csharp",
    ".java": "java",
    ".kt": "kotlin",
    ".scala": "scala",
    ".go": "go",
    ".rs": "rust",
    ".rb": "ruby",
    ".php": "php",
    ".pl": "perl",
    ".lua": "lua",
    ".r": "r",
    ".swift": "swift",
    ".m": "objective-c",
    ".sql": "sql",
    ".pug": "pug",
    ".vue": "vue",
    ".dart": "dart",
    ".ex": "elixir",
    ".exs": "elixir",
    ".erl": "erlang",
    ".hs": "haskell",
    ".clj": "clojure",
    ".groovy": "groovy",
}

SOURCE_FILENAMES: Dict[str, str] = {
    "Makefile": "make",
    "Dockerfile": "docker",
    "CMakeLists.txt": "cmake",
    "Gemfile": "ruby",
    "Rakefile": "ruby",
}


def _name(path: PathLike) -> str:
    return PurePath(str(path)).name


def _suffix(path: PathLike) -> str:
    return PurePath(str(path)).suffix.lower()


def is_markdown(path: PathLike) -> bool:
    return _suffix(path) in MARKDOWN_EXTENSIONS


def is_image(path: PathLike) -> bool:
    return _suffix(path) in IMAGE_EXTENSIONS


def is_source_code(path: PathLike) -> bool:
    return _name(path) in SOURCE_FILENAMES or _suffix(path) in SOURCE_LANGUAGES


def source_language(path: PathLike) -> str:
    """Lexer alias for a source file, or the bare extension when unknown."""
    name = _name(path)
    if name in SOURCE_FILENAMES:
        return SOURCE_FILENAMES[name]
    suffix = _suffix(path)
    return SOURCE_LANGUAGES.get(suffix, suffix.lstrip("."))


def classify(path: PathLike) -> ContentClass:
    if is_markdown(path):
        return ContentClass.MARKDOWN
    if is_image(path):
        return ContentClass.IMAGE
    if is_source_code(path):
        return ContentClass.SOURCE_CODE
    return ContentClass.OTHER
