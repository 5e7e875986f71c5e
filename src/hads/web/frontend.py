"""HTML pages and static assets for the hads web UI."""

from __future__ import annotations

from importlib.resources import files
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from hads import __version__
from hads.resolver import Page

ASSETS_PREFIX = "/_hads"
STYLESHEETS = ["/css/github-markdown.css", "/css/style.css"]
SCRIPTS = ["/js/client.js"]


def _package_dir(name: str) -> Path:
    return Path(str(files("hads.web").joinpath(name)))


templates = Jinja2Templates(directory=str(_package_dir("templates")))


def mount_assets(app: FastAPI) -> None:
    app.mount(
        ASSETS_PREFIX,
        StaticFiles(directory=str(_package_dir("static"))),
        name="assets",
    )


def render_page(request: Request, page: Page, *, highlight_css: str = "") -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        page.template,
        {
            "title": page.title,
            "route": page.route,
            "icon": page.icon,
            "search": page.search,
            "content": page.content,
            "error": page.error.value if page.error else None,
            "assets": ASSETS_PREFIX,
            "styles": STYLESHEETS,
            "scripts": SCRIPTS,
            "highlight_css": highlight_css,
            "version": __version__,
        },
    )
