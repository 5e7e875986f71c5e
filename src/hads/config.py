"""Application configuration defaults."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

ROOT_FILES: tuple[str, ...] = ("index.md", "README.md", "readme.md")
DEFAULT_UPLOAD_LIMIT = 10 * 1024 * 1024


@dataclass(slots=True)
class AppConfig:
    root: Path = Path(".")
    host: str = "localhost"
    port: int = 4040
    open_browser: bool = False
    upload_limit: int = DEFAULT_UPLOAD_LIMIT
    upload_dir: str = "images"
    root_files: tuple[str, ...] = ROOT_FILES
    index_on_startup: bool = True

    def resolve_root(self, base_dir: Path | None = None) -> Path:
        root = Path(self.root).expanduser()
        if not root.is_absolute() and base_dir is not None:
            root = base_dir / root
        return root.resolve()

    @property
    def server_url(self) -> str:
        return f"http://{self.host}:{self.port}"
