"""Custom exception hierarchy for atlas-extractor.

All exceptions that cross layer boundaries must inherit from
:class:`AtlasExtractorError`.  Raw third-party exceptions (from httpx or
yt-dlp) must NEVER propagate beyond the infrastructure layer — they must
be caught and re-raised as a typed subclass defined here.

Every error carries a :class:`ErrorCategory` tag.  Outer layers dispatch
on ``exc.category`` rather than on the concrete subclass, so an upstream
failure can be told apart from a parsing failure without type checks.

Hierarchy
---------
AtlasExtractorError
├── InvalidURLError              VALIDATION
├── BlockedError                 BLOCKED
├── ExtractionError              EXTRACTION
│   ├── ParsingError
│   └── ContentUnavailableError
├── UpstreamError                RATE_LIMITED | TRANSPORT (by kind)
├── EngineError                  UNEXPECTED
└── EnvironmentError             UNEXPECTED
"""

from __future__ import annotations

import enum


class ErrorCategory(enum.Enum):
    """Failure categories understood by the response mapper."""

    VALIDATION = "validation"
    BLOCKED = "blocked"
    EXTRACTION = "extraction"
    RATE_LIMITED = "rate_limited"
    TRANSPORT = "transport"
    UNEXPECTED = "unexpected"


class AtlasExtractorError(Exception):
    """Base exception for all atlas-extractor errors.

    Every caller-visible error condition must map to a subclass of this
    exception so that the HTTP front and the one-shot CLI can render a
    clean message without leaking internal stack traces.
    """

    category: ErrorCategory = ErrorCategory.UNEXPECTED

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint: str | None = hint
        """Optional actionable guidance shown below the error message."""


# --- Input validation ------------------------------------------------------

class InvalidURLError(AtlasExtractorError):
    """Raised when the provided URL is missing or blank."""

    category = ErrorCategory.VALIDATION


# --- Policy ----------------------------------------------------------------

class BlockedError(AtlasExtractorError):
    """Raised when a URL targets a denylisted host or service."""

    category = ErrorCategory.BLOCKED


# --- Extraction ------------------------------------------------------------

class ExtractionError(AtlasExtractorError):
    """Raised when the extraction engine cannot handle the URL or content."""

    category = ErrorCategory.EXTRACTION


class CollectionError(ExtractionError):
    """Raised when a URL expected to be one stream resolves to a collection."""


class ParsingError(ExtractionError):
    """Raised when a URL cannot be parsed or classified by any strategy."""


class ContentUnavailableError(ExtractionError):
    """Raised when the target content is unavailable (private, removed, etc.)."""


class EngineError(AtlasExtractorError):
    """Raised when the extraction engine fails in an unexpected way."""


# --- Upstream / network ----------------------------------------------------

class UpstreamFailure(enum.Enum):
    """Kinds of upstream failure raised by the fetcher."""

    RATE_LIMITED = "rate_limited"
    TRANSPORT = "transport"


class UpstreamError(AtlasExtractorError):
    """Raised by the fetcher when the upstream exchange fails.

    The ``kind`` tag distinguishes anti-bot rate limiting (HTTP 429) from
    plain transport failures.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: UpstreamFailure,
        url: str | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.kind: UpstreamFailure = kind
        self.url: str | None = url
        self.category = (
            ErrorCategory.RATE_LIMITED
            if kind is UpstreamFailure.RATE_LIMITED
            else ErrorCategory.TRANSPORT
        )

    @property
    def rate_limited(self) -> bool:
        return self.kind is UpstreamFailure.RATE_LIMITED


# --- Environment / tooling -------------------------------------------------

class EnvironmentError(AtlasExtractorError):
    """Raised when a required runtime dependency is not available."""


def append_ytdlp_upgrade_suggestion(hint: str) -> str:
    """Append yt-dlp upgrade guidance to an existing hint text.

    The suggestion is appended only once and preserves the original
    hint content verbatim.
    """
    marker = "Also try updating yt-dlp:"
    if marker in hint:
        return hint
    return "\n".join(
        (
            hint,
            marker,
            "    pip install --upgrade yt-dlp",
        )
    )
