"""FastAPI application serving the document tree."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from fastapi import APIRouter, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse, RedirectResponse, Response
from pydantic import BaseModel, ValidationError

from hads import __version__
from hads.config import AppConfig
from hads.index.indexer import SearchIndex
from hads.render import Renderer
from hads.resolver import Page, RawFile, Redirect, RequestFlags, Resolver
from hads.store import DocumentStore
from hads.web.frontend import mount_assets, render_page

LOGGER = logging.getLogger(__name__)

UPLOAD_ROUTE = "/_upload"

router = APIRouter()


class SavePayload(BaseModel):
    content: str


def _log_build_result(task: asyncio.Task) -> None:
    if task.cancelled():
        LOGGER.info("Index build cancelled")
        return
    exc = task.exception()
    if exc is not None:
        LOGGER.error("Index build failed: %s", exc, exc_info=exc)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    config: AppConfig = app.state.config
    index: SearchIndex = app.state.index
    task = None
    if config.index_on_startup:
        LOGGER.info("Indexing %s in the background", index.store.root)
        task = asyncio.create_task(asyncio.to_thread(index.build))
        task.add_done_callback(_log_build_result)
    app.state.index_task = task
    try:
        yield
    finally:
        if task is not None and not task.done():
            task.cancel()


def create_app(config: AppConfig | None = None, *, base_dir: Path | None = None) -> FastAPI:
    """Wire store, index, renderer and resolver into a FastAPI app."""
    config = config or AppConfig()
    store = DocumentStore(config.resolve_root(base_dir or Path.cwd()))
    index = SearchIndex(store)
    renderer = Renderer(index)

    app = FastAPI(title="hads", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.store = store
    app.state.index = index
    app.state.renderer = renderer
    app.state.resolver = Resolver(store, index, renderer, root_files=config.root_files)
    app.state.index_task = None

    mount_assets(app)
    app.include_router(router)
    return app


def _respond(request: Request, outcome: object) -> Response:
    if isinstance(outcome, Redirect):
        return RedirectResponse(outcome.location, status_code=302)
    if isinstance(outcome, RawFile):
        return FileResponse(outcome.path)
    if isinstance(outcome, Page):
        renderer: Renderer = request.app.state.renderer
        return render_page(request, outcome, highlight_css=renderer.highlight_css())
    raise HTTPException(status_code=404, detail="Not Found")


@router.post(UPLOAD_ROUTE)
async def upload_file(request: Request, file: UploadFile = File(...)) -> str:
    config: AppConfig = request.app.state.config
    store: DocumentStore = request.app.state.store

    data = await file.read(config.upload_limit + 1)
    await file.close()
    if len(data) > config.upload_limit:
        raise HTTPException(
            status_code=413,
            detail=f"File too large, the limit is {config.upload_limit} bytes",
        )

    try:
        route = await asyncio.to_thread(store.save_upload, config.upload_dir, file.filename, data)
    except (OSError, ValueError) as exc:
        LOGGER.error("Unable to store upload %s: %s", file.filename, exc)
        raise HTTPException(status_code=500, detail="Unable to store the uploaded file") from exc
    return route.lstrip("/")


@router.get("/{full_path:path}")
async def get_document(request: Request, full_path: str) -> Response:
    resolver: Resolver = request.app.state.resolver
    flags = RequestFlags.from_query(request.query_params)
    outcome = await resolver.resolve("/" + full_path, flags)
    return _respond(request, outcome)


@router.post("/{full_path:path}")
async def save_document(request: Request, full_path: str) -> Response:
    resolver: Resolver = request.app.state.resolver

    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            payload = SavePayload.model_validate(await request.json())
        except (ValidationError, ValueError) as exc:
            raise HTTPException(status_code=422, detail="Invalid save payload") from exc
        content = payload.content
    else:
        form = await request.form()
        content = form.get("content")
        if not isinstance(content, str):
            raise HTTPException(status_code=400, detail="Missing content")

    outcome = await resolver.save("/" + full_path, content)
    return _respond(request, outcome)
