"""Core / service layer — pure business logic and data transformations.

Rules
-----
* No ``print()`` calls.
* No filesystem or network I/O.
* No imports from ``cli``, ``api`` or ``infra``.
* All functions must be fully typed and deterministic.
"""

from atlas_extractor.core.extraction_service import ExtractionService
from atlas_extractor.core.host_policy import ensure_allowed, is_blocked
from atlas_extractor.core.models import (
    AudioVariant,
    ErrorResult,
    ExtractResult,
    LinkType,
    PlaylistItem,
    PlaylistResult,
    ServiceIdentity,
    StreamResult,
)
from atlas_extractor.core.protocols import ExtractionEngine, Fetcher

__all__: list[str] = [
    "AudioVariant",
    "ErrorResult",
    "ExtractResult",
    "ExtractionEngine",
    "ExtractionService",
    "Fetcher",
    "LinkType",
    "PlaylistItem",
    "PlaylistResult",
    "ServiceIdentity",
    "StreamResult",
    "ensure_allowed",
    "is_blocked",
]
