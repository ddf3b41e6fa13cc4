"""Past Forward — FastAPI Application.

This module is the single entry point for the web application.  It defines
the FastAPI ``app`` instance, all REST API routes, and the ``main()`` CLI
function that launches the uvicorn server.

Architecture
------------
The application serves a single photo session, mirroring the single-user
browser app it backs:

- **Session state** lives in one :class:`~pastforward.core.session.PastForwardSession`
  created at startup and stored on ``app.state``.
- **Generation** runs in a FastAPI background task so ``POST /api/generate``
  answers immediately; clients poll ``GET /api/results``.
- **Images** travel as ``data:`` URLs in JSON and as raw bytes on the
  download endpoints.
- **Errors** raised by the core (:class:`~pastforward.core.errors.PastForwardError`)
  are mapped to HTTP status codes by a single exception handler.

Endpoints
---------
========  ===================================  ====================================
Method    Path                                 Purpose
========  ===================================  ====================================
GET       ``/api/config``                      Version, decades, worker count
POST      ``/api/photo``                       Upload a photo (new cycle)
POST      ``/api/generate``                    Start a batch over all decades
GET       ``/api/results``                     Per-decade state snapshot
POST      ``/api/decades/{d}/regenerate``      Regenerate one decade
PUT       ``/api/decades/{d}/caption``         Set or clear a caption override
GET       ``/api/decades/{d}/download``        Raw image of one decade
GET       ``/api/decades/{d}/share``           Share payload of one decade
GET       ``/api/album``                       Download the composed album
GET       ``/api/album/share``                 Share payload of the album
POST      ``/api/reset``                       Start over
========  ===================================  ====================================

Usage
-----
CLI (installed entry point)::

    pastforward

Direct invocation::

    python -m pastforward.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from pastforward import __version__
from pastforward.api.models import (
    CaptionRequest,
    DecadeResult,
    PhotoRequest,
    RegenerateResponse,
    ResultsResponse,
    ShareResponse,
)
from pastforward.core.config import config
from pastforward.core.errors import (
    BatchInProgressError,
    CompositionFailure,
    MissingInputsError,
    MissingSourceImageError,
    PastForwardError,
    ResultUnavailableError,
    UnknownDecadeError,
)
from pastforward.core.exports import ShareBundle, album_filename
from pastforward.core.generator_client import build_generator_client
from pastforward.core.result_store import ResultEntry, entries_in_order
from pastforward.core.session import PastForwardSession

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# ---------------------------------------------------------------------------
# Application lifecycle: session setup and teardown.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    On startup:
        Builds the configured generator client and a fresh
        :class:`PastForwardSession`, stored on ``app.state``.

    On shutdown:
        Resets the session so late generator completions are discarded.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    # --- Startup -----------------------------------------------------------
    client = build_generator_client(config)
    app.state.session = PastForwardSession(config, client)
    logger.info(
        "Session initialised (%d decades, %d workers, backend=%s).",
        len(app.state.session.catalog),
        config.worker_count,
        client.name,
    )

    yield  # Application runs here.

    # --- Shutdown ----------------------------------------------------------
    app.state.session.start_over()
    logger.info("Session discarded on shutdown.")


# ---------------------------------------------------------------------------
# FastAPI application instance.
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Past Forward",
    description="Generate yourself through the decades and collect the results into an album.",
    version=__version__,
    lifespan=lifespan,
)

# Allow cross-origin requests so the frontend can be served from a different
# port during development.  In production, restrict ``allow_origins`` to the
# actual deployment domain.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error mapping.
# ---------------------------------------------------------------------------

_STATUS_BY_ERROR: dict[type[PastForwardError], int] = {
    UnknownDecadeError: 404,
    MissingSourceImageError: 400,
    BatchInProgressError: 409,
    ResultUnavailableError: 409,
    MissingInputsError: 409,
    CompositionFailure: 500,
}

_ALBUM_WAIT_MESSAGE = "Please wait for all images to finish generating."
_ALBUM_FAILURE_MESSAGE = "Sorry, there was an error creating your album. Please try again."


@app.exception_handler(PastForwardError)
async def handle_core_error(request: Request, exc: PastForwardError) -> JSONResponse:
    """Translate core errors into ``{"detail": ...}`` responses.

    Album errors use fixed, user-facing wording; their technical cause is
    already logged by the compositor.
    """
    status_code = next(
        (code for error_type, code in _STATUS_BY_ERROR.items() if isinstance(exc, error_type)),
        500,
    )
    content: dict = {"detail": str(exc)}
    if isinstance(exc, MissingInputsError):
        content = {"detail": _ALBUM_WAIT_MESSAGE, "missing": exc.missing}
    elif isinstance(exc, CompositionFailure):
        content = {"detail": _ALBUM_FAILURE_MESSAGE}
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content=content)


# ---------------------------------------------------------------------------
# Serialisation helpers.
# ---------------------------------------------------------------------------


def _session() -> PastForwardSession:
    return app.state.session


def _decade_result(session: PastForwardSession, decade: str, entry: ResultEntry | None) -> DecadeResult:
    """Serialise one decade; decades without an entry report ``pending``."""
    return DecadeResult(
        decade=decade,
        label=session.catalog.label(decade),
        status=session.store.status(decade).value,
        image=entry.payload if entry else None,
        error=entry.error if entry else None,
        caption=session.store.get_caption(decade),
    )


def _results(session: PastForwardSession) -> ResultsResponse:
    snapshot = session.store.snapshot()
    return ResultsResponse(
        has_photo=session.source_image is not None,
        generating=session.is_generating,
        album_ready=session.album_ready(),
        decades=[
            _decade_result(session, decade, entry)
            for decade, entry in entries_in_order(snapshot, session.catalog)
        ],
    )


def _share_response(bundle: ShareBundle) -> ShareResponse:
    return ShareResponse(
        filename=bundle.filename,
        title=bundle.title,
        text=bundle.text,
        mime_type=bundle.mime_type,
        data_url=bundle.to_data_url(),
    )


def _attachment(data: bytes, filename: str, media_type: str) -> Response:
    return Response(
        content=data,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.get("/api/config")
async def get_config() -> dict:
    """Return the application configuration for the frontend.

    Returns:
        Dictionary with keys ``version``, ``decades`` (``id`` and ``label``
        per catalog entry), ``worker_count``, and ``backend``.
    """
    session = _session()
    return {
        "version": __version__,
        "decades": [{"id": decade.id, "label": decade.label} for decade in session.catalog],
        "worker_count": session.scheduler.worker_count,
        "backend": session.client.name,
    }


@app.post("/api/photo")
async def upload_photo(req: PhotoRequest) -> ResultsResponse:
    """Upload a new photo, clearing every previous result and caption.

    Raises:
        HTTPException: 400 if the payload is not a readable image.
    """
    session = _session()
    try:
        session.upload_photo(req.image)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _results(session)


@app.post("/api/generate", status_code=202)
async def generate(background_tasks: BackgroundTasks) -> ResultsResponse:
    """Start a batch over every decade.

    Every decade is marked pending before the response is sent; the worker
    pool then runs as a background task.

    Raises:
        MissingSourceImageError: (400) if no photo is uploaded.
        BatchInProgressError: (409) if a batch is already running.
    """
    session = _session()
    batch = session.begin_batch()
    background_tasks.add_task(session.drain, batch)
    return _results(session)


@app.get("/api/results")
async def get_results() -> ResultsResponse:
    """Return the state of every decade in catalog order."""
    return _results(_session())


@app.post("/api/decades/{decade}/regenerate")
async def regenerate_decade(decade: str) -> RegenerateResponse:
    """Regenerate one decade and wait for the result.

    A decade that is already pending is left untouched and reported with
    ``regenerated`` set to ``False``.
    """
    session = _session()
    regenerated = await session.regenerate(decade)
    return RegenerateResponse(
        regenerated=regenerated,
        result=_decade_result(session, decade, session.entry(decade)),
    )


@app.put("/api/decades/{decade}/caption")
async def set_caption(decade: str, req: CaptionRequest) -> DecadeResult:
    """Set or clear the caption override shown in the album."""
    session = _session()
    session.set_caption(decade, req.caption)
    return _decade_result(session, decade, session.entry(decade))


@app.get("/api/decades/{decade}/download")
async def download_decade(decade: str) -> Response:
    """Download the raw generated image of one decade."""
    filename, image = _session().decade_download(decade)
    return _attachment(image.data, filename, image.mime_type)


@app.get("/api/decades/{decade}/share")
async def share_decade(decade: str) -> ShareResponse:
    """Return the share-sheet payload of one decade."""
    return _share_response(_session().decade_share(decade))


@app.get("/api/album")
async def download_album() -> Response:
    """Compose and download the album JPEG.

    Raises:
        MissingInputsError: (409) until every decade is done.
        CompositionFailure: (500) if rendering fails.
    """
    data = await _session().build_album()
    return _attachment(data, album_filename(), "image/jpeg")


@app.get("/api/album/share")
async def share_album() -> ShareResponse:
    """Compose the album and return its share-sheet payload."""
    return _share_response(await _session().album_share())


@app.post("/api/reset")
async def reset() -> ResultsResponse:
    """Start over: forget the photo, results, and caption overrides."""
    session = _session()
    session.start_over()
    return _results(session)


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :data:`~pastforward.core.config.config` (which
    loads from ``PASTFORWARD_SERVER_HOST`` and ``PASTFORWARD_SERVER_PORT``
    environment variables).  Defaults to ``0.0.0.0:7860``.

    This function is registered as the ``pastforward`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(level=config.log_level, format=LOG_FORMAT)
    uvicorn.run(
        "pastforward.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
