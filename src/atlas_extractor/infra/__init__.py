"""Infrastructure layer — external system integration.

This layer wraps all interaction with httpx and yt-dlp.  Every raw
third-party exception must be caught here and re-raised as an
:class:`~atlas_extractor.exceptions.AtlasExtractorError` subclass.

Rules
-----
* No imports from ``cli`` or ``api``.
* No user-facing output (no ``print()``, no Rich rendering).
* Must expose clean, typed interfaces consumed by the core layer.
"""

from atlas_extractor.infra.http_fetcher import HttpxFetcher
from atlas_extractor.infra.ytdlp_engine import YtDlpEngine

__all__: list[str] = [
    "HttpxFetcher",
    "YtDlpEngine",
]
