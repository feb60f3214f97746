"""Lookbook Generator — FastAPI Application.

This module defines the FastAPI ``app`` instance, the REST routes, and the
``main()`` CLI function that launches the uvicorn server.

Architecture
------------
The server holds a single :class:`~lookbook.core.session.LookbookSession` on
``app.state``.  Generation runs as a background task after the request has
been validated, so ``POST /api/generate`` returns immediately and clients
poll ``GET /api/status`` until every archetype is done or failed.

Endpoints
---------
========  ================================  ====================================
Method    Path                              Purpose
========  ================================  ====================================
GET       ``/api/archetypes``               Labels and prompts
POST      ``/api/source``                   Upload the source photo
POST      ``/api/generate``                 Start generating archetypes
POST      ``/api/regenerate/{label}``       Generate one archetype again
GET       ``/api/status``                   Per-archetype state
GET       ``/api/items/{label}/image``      Download one generated image
GET       ``/api/lookbook``                 Download the lookbook page
POST      ``/api/reset``                    Discard photo and results
========  ================================  ====================================

Usage
-----
CLI (installed entry point)::

    lookbook

Direct invocation::

    python -m lookbook.api.main
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import quote

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from lookbook import __version__
from lookbook.api.models import GenerateRequest, SourceRequest, StatusResponse
from lookbook.core.archetypes import Archetype
from lookbook.core.config import config
from lookbook.core.errors import (
    CompositionError,
    DuplicateArchetypeError,
    IncompleteRunError,
    InvalidSourceImageError,
    ItemInFlightError,
    ItemNotReadyError,
    LookbookError,
    NoSourceImageError,
    UnknownArchetypeError,
)
from lookbook.core.export import LOOKBOOK_FILENAME, item_filename
from lookbook.core.session import LookbookSession

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Application lifecycle — session setup and teardown.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the session on startup and release the backend on shutdown.

    The generation backend is chosen by ``LOOKBOOK_GENERATION_BACKEND``.
    Nothing is loaded or contacted until the first generation request.
    """
    app.state.session = LookbookSession.from_config(config)
    logger.info("Session initialised with backend '%s'.", app.state.session.client.name)

    yield

    await app.state.session.close()
    logger.info("Session closed on shutdown.")


app = FastAPI(
    title="Lookbook Generator",
    description="Generates a Hamburg '84 archetype lookbook from a single photo.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _session(request: Request) -> LookbookSession:
    return request.app.state.session


def _attachment(payload: bytes, media_type: str, filename: str) -> Response:
    return Response(
        content=payload,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )


# ---------------------------------------------------------------------------
# Background runners.  Errors are logged because no client is waiting.
# ---------------------------------------------------------------------------


async def _generate_in_background(session: LookbookSession, archetypes: list[Archetype]) -> None:
    try:
        await session.generate_all(archetypes)
    except LookbookError as e:
        logger.warning("Generation run did not start: %s", e)


async def _regenerate_in_background(session: LookbookSession, archetype: Archetype) -> None:
    try:
        await session.regenerate(archetype)
    except LookbookError as e:
        logger.warning("Regeneration of %s did not start: %s", archetype, e)


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.get("/api/archetypes")
async def list_archetypes() -> dict:
    """Return every archetype label with its prompt."""
    return {
        "version": __version__,
        "archetypes": [
            {"name": archetype.label, "prompt": archetype.prompt} for archetype in Archetype
        ],
    }


@app.post("/api/source")
async def set_source(req: SourceRequest, request: Request) -> dict:
    """Store the source photo and clear previous results.

    Raises:
        HTTPException: 400 for a malformed data URL, 409 while generating.
    """
    session = _session(request)
    try:
        source = session.set_source(req.image)
    except InvalidSourceImageError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except ItemInFlightError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e

    return {"success": True, "media_type": source.media_type, "size": len(source.payload)}


@app.post("/api/generate")
async def generate(
    req: GenerateRequest, request: Request, background_tasks: BackgroundTasks
) -> dict:
    """Start generating the requested archetypes (all by default).

    The request is validated synchronously; the generation itself runs in
    the background.

    Raises:
        HTTPException: 400 for unknown or duplicate archetypes, 409 without a
            source photo or while a run is in progress.
    """
    session = _session(request)
    try:
        archetypes = session.prepare_run(req.archetypes)
    except (UnknownArchetypeError, DuplicateArchetypeError) as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except (NoSourceImageError, ItemInFlightError) as e:
        raise HTTPException(status_code=409, detail=str(e)) from e

    background_tasks.add_task(_generate_in_background, session, archetypes)
    logger.info("Queued generation of %d archetypes.", len(archetypes))
    return {"success": True, "archetypes": [archetype.label for archetype in archetypes]}


@app.post("/api/regenerate/{label}")
async def regenerate(label: str, request: Request, background_tasks: BackgroundTasks) -> dict:
    """Generate one archetype again.

    Raises:
        HTTPException: 404 for an unknown archetype or one outside the
            current run, 409 without a source photo, while a run is active
            or while the archetype is queued or being generated.
    """
    session = _session(request)
    try:
        archetype = session.check_regeneration(label)
    except (UnknownArchetypeError, ItemNotReadyError) as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except (NoSourceImageError, ItemInFlightError) as e:
        raise HTTPException(status_code=409, detail=str(e)) from e

    background_tasks.add_task(_regenerate_in_background, session, archetype)
    return {"success": True, "archetype": archetype.label}


@app.get("/api/status", response_model=StatusResponse)
async def status(request: Request) -> StatusResponse:
    """Return the state of every archetype in the current run."""
    session = _session(request)
    return StatusResponse(
        has_source=session.source is not None,
        running=session.is_running,
        complete=session.is_complete,
        items=session.status(),
    )


@app.get("/api/items/{label}/image")
async def item_image(label: str, request: Request) -> Response:
    """Download the generated image of one archetype.

    Raises:
        HTTPException: 404 for an unknown archetype, 409 unless it is done.
    """
    session = _session(request)
    try:
        archetype = Archetype.from_label(label)
        image = session.item_image(archetype)
    except UnknownArchetypeError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ItemNotReadyError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e

    return _attachment(image.payload, image.media_type, item_filename(archetype))


@app.get("/api/lookbook")
async def lookbook(request: Request) -> Response:
    """Render and download the lookbook page.

    Raises:
        HTTPException: 409 unless every archetype is done, 500 if rendering
            fails.
    """
    session = _session(request)
    try:
        page = await asyncio.to_thread(session.build_lookbook)
    except IncompleteRunError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except CompositionError as e:
        logger.error("Failed to create lookbook: %s", e)
        raise HTTPException(
            status_code=500,
            detail=f"Sorry, there was an error creating your lookbook: {e}",
        ) from e

    return _attachment(page.payload, page.media_type, LOOKBOOK_FILENAME)


@app.post("/api/reset")
async def reset(request: Request) -> dict:
    """Discard the source photo and every result.

    Raises:
        HTTPException: 409 while generating.
    """
    try:
        _session(request).reset()
    except ItemInFlightError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return {"success": True}


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :data:`~lookbook.core.config.config`
    (``LOOKBOOK_SERVER_HOST`` / ``LOOKBOOK_SERVER_PORT``).  Defaults to
    ``0.0.0.0:7860``.

    Registered as the ``lookbook`` console script in ``pyproject.toml``.
    """
    import uvicorn

    uvicorn.run(
        "lookbook.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
