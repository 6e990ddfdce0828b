"""HTTP layer — FastAPI application exposing ``/health`` and ``/extract``.

May import from ``core``, ``config`` and ``exceptions``; receives its
extraction service fully wired, never builds infrastructure itself.
"""

from atlas_extractor.api.app import create_app

__all__: list[str] = ["create_app"]
