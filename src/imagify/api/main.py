"""Imagify Relay - FastAPI Application.

This module is the single entry point for the relay server.  It defines the
FastAPI ``app`` instance, the REST routes, and the ``main()`` CLI function
that launches the uvicorn server.

Architecture
------------
The relay is deliberately thin:

- **Configuration** is read once from the environment by
  :data:`~imagify.core.config.config`.  The upstream credential never leaves
  the server.
- **Image generation** is delegated to
  :class:`~imagify.core.relay.InferenceRelay`, which owns retry and error
  classification.  This module only maps its result onto HTTP.
- **CORS** allows exactly one origin.  Preflight ``OPTIONS`` requests are
  answered directly with ``204 No Content``.

Endpoints
---------
========  ==========================  ======================================
Method    Path                        Purpose
========  ==========================  ======================================
POST      ``/api/image/generate``     Generate an image from a prompt
GET       ``/api/health``             Liveness and configuration status
OPTIONS   any                         CORS preflight (204, empty body)
========  ==========================  ======================================

Usage
-----
CLI (installed entry point)::

    imagify-relay

Direct invocation::

    python -m imagify.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from imagify import __version__
from imagify.api.models import ErrorResponse, GenerateRequest, HealthResponse
from imagify.core.config import ImagifyConfig, config
from imagify.core.relay import InferenceRelay, RelayFailure

logger = logging.getLogger(__name__)

ALLOWED_METHODS = "GET,POST,OPTIONS"
ALLOWED_HEADERS = "Content-Type, Authorization"
PAYLOAD_TOO_LARGE_MESSAGE = "Request body is too large."

router = APIRouter()


def create_app(app_config: ImagifyConfig | None = None) -> FastAPI:
    """Build the relay application.

    Args:
        app_config: Configuration to use.  Defaults to the global
            :data:`~imagify.core.config.config` instance.

    Returns:
        A configured :class:`FastAPI` instance.
    """
    cfg = app_config or config

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Create the relay on startup and release its HTTP client on shutdown."""
        app.state.relay = InferenceRelay(cfg)
        if cfg.is_configured:
            logger.info(f"Relay ready, upstream: {cfg.upstream_url}")
        else:
            logger.warning("HF_TOKEN is not set; generation requests will fail.")

        yield  # Application runs here.

        await app.state.relay.close()
        logger.info("Relay HTTP client closed on shutdown.")

    app = FastAPI(
        title="Imagify Relay",
        description="Text-to-image relay in front of the Hugging Face Inference API.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = cfg

    # A single fixed origin is allowed.  Starlette's CORSMiddleware answers
    # preflights with 200 and a body, so the headers are set here instead.
    @app.middleware("http")
    async def cors(request: Request, call_next):
        if request.method == "OPTIONS":
            response = Response(status_code=204)
        else:
            response = await call_next(request)
        response.headers["Access-Control-Allow-Origin"] = cfg.allowed_origin
        response.headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
        response.headers["Access-Control-Allow-Headers"] = ALLOWED_HEADERS
        return response

    app.include_router(router)
    return app


def get_relay(request: Request) -> InferenceRelay:
    """FastAPI dependency returning the relay created by the lifespan handler."""
    return request.app.state.relay


def _failure_response(failure: RelayFailure) -> JSONResponse:
    return JSONResponse(
        status_code=failure.status_code,
        content=ErrorResponse.from_failure(failure).to_content(),
    )


async def _read_body(request: Request, limit: int) -> bytes | None:
    """Read the request body, or return ``None`` once it exceeds *limit* bytes."""
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > limit:
        return None

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            return None
    return bytes(body)


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@router.post("/api/image/generate")
async def generate_image(
    request: Request,
    relay: InferenceRelay = Depends(get_relay),
) -> Response:
    """Generate an image and return its raw bytes.

    The body is parsed by hand so that a malformed or missing prompt is
    classified by the relay as ``InvalidRequest`` (400) instead of
    producing a framework-level 422.  Bodies larger than
    ``max_body_bytes`` are refused with 413 before parsing.

    Returns:
        200 with the image bytes, ``Content-Type`` mirrored from upstream
        and ``Cache-Control: no-store``; otherwise a JSON
        ``{"error", "details"?}`` body with the error kind's status.
    """
    limit = request.app.state.config.max_body_bytes
    raw = await _read_body(request, limit)
    if raw is None:
        logger.warning(f"Rejected generate request body larger than {limit} bytes")
        return JSONResponse(
            status_code=413,
            content=ErrorResponse(error=PAYLOAD_TOO_LARGE_MESSAGE).to_content(),
        )

    try:
        prompt = GenerateRequest.model_validate_json(raw).prompt
    except ValidationError:
        prompt = None

    result = await relay.generate(prompt)

    if isinstance(result, RelayFailure):
        logger.error(
            f"Error in /api/image/generate: {result.kind.value} (status {result.status_code})"
        )
        return _failure_response(result)

    return Response(
        content=result.content,
        media_type=result.content_type,
        headers={"Cache-Control": "no-store"},
    )


@router.get("/api/health")
async def health(request: Request) -> HealthResponse:
    """Report liveness and whether the upstream credential is present."""
    cfg: ImagifyConfig = request.app.state.config
    return HealthResponse(version=__version__, configured=cfg.is_configured)


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :data:`~imagify.core.config.config` (which
    loads from ``IMAGIFY_SERVER_HOST`` and ``IMAGIFY_SERVER_PORT``).
    Defaults to ``0.0.0.0:3001``.

    Registered as the ``imagify-relay`` console script in ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(
        "imagify.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
