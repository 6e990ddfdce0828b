"""FastAPI application factory for the extractor HTTP surface.

Routes
------
* ``GET /health``  → ``200 {"ok": true}``
* ``GET /extract?url=…`` → flattened extraction result, or ``{"error": …}``
  with a status chosen by :func:`~atlas_extractor.core.response_mapper.map_exception`.

Extraction is blocking, so it runs on a worker thread; a semaphore caps
how many run at once and excess requests wait for a free slot.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from atlas_extractor.config import Settings
from atlas_extractor.core.extraction_service import ExtractionService
from atlas_extractor.core.host_policy import ensure_allowed
from atlas_extractor.core.response_mapper import error_payload, map_exception, to_payload
from atlas_extractor.exceptions import AtlasExtractorError, ErrorCategory
from atlas_extractor.version import __version__

logger = logging.getLogger(__name__)

URL_REQUIRED_MESSAGE: str = "url is required"

_HTTP_ERROR_MESSAGES: dict[int, str] = {
    404: "not found",
    405: "method not allowed",
}

_QUIET_CATEGORIES: frozenset[ErrorCategory] = frozenset(
    {ErrorCategory.VALIDATION, ErrorCategory.BLOCKED, ErrorCategory.EXTRACTION}
)


def _json(status: int, payload: dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=status, content=payload)


def _slots(request: Request) -> asyncio.Semaphore:
    """Return the app-wide semaphore, creating it inside the running loop."""
    state = request.app.state
    if state.slots is None:
        state.slots = asyncio.Semaphore(state.settings.workers)
    return state.slots


def create_app(service: ExtractionService, settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI app around an already wired *service*."""
    app = FastAPI(
        title="Atlas Extractor",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.service = service
    app.state.settings = settings or Settings()
    app.state.slots = None

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = _HTTP_ERROR_MESSAGES.get(exc.status_code, str(exc.detail))
        return _json(exc.status_code, error_payload(message))

    @app.get("/health")
    async def health() -> JSONResponse:
        return _json(200, {"ok": True})

    @app.get("/extract")
    async def extract(request: Request, url: str | None = None) -> JSONResponse:
        if url is None or not url.strip():
            return _json(400, error_payload(URL_REQUIRED_MESSAGE))
        url = url.strip()

        svc: ExtractionService = request.app.state.service
        try:
            ensure_allowed(url)
            async with _slots(request):
                result = await asyncio.to_thread(svc.extract, url)
        except AtlasExtractorError as exc:
            mapped = map_exception(exc)
            if exc.category in _QUIET_CATEGORIES:
                logger.info("Extraction of %s refused: %s", url, exc)
            else:
                logger.warning("Extraction of %s failed upstream: %s", url, exc)
            return _json(mapped.status, mapped.to_payload())
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected failure while extracting %s", url)
            mapped = map_exception(exc)
            return _json(mapped.status, mapped.to_payload())

        return _json(200, to_payload(result))

    return app
