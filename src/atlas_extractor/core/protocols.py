"""Protocols (interfaces) consumed by the core layer.

These define the contracts that infrastructure adapters must satisfy.
Core code depends ONLY on these protocols — never on concrete
implementations — preserving the dependency inversion principle.
"""

from __future__ import annotations

from typing import Protocol

from atlas_extractor.core.models import (
    FetchRequest,
    FetchResponse,
    LinkType,
    PlaylistInfo,
    ServiceIdentity,
    StreamInfo,
)


class ExtractionEngine(Protocol):
    """Contract for site-aware extraction backends.

    Implementations pick a per-site strategy from the URL and must map
    all backend-specific exceptions to
    :class:`~atlas_extractor.exceptions.AtlasExtractorError` subclasses.
    """

    def resolve_service(self, url: str) -> ServiceIdentity:
        """Return the platform that owns *url*.

        Raises
        ------
        ParsingError
            When no strategy accepts the URL.
        """
        ...  # pragma: no cover

    def classify(self, url: str) -> LinkType:
        """Tell whether *url* points at a stream or a playlist.

        Raises
        ------
        ParsingError
            When the URL cannot be classified.
        """
        ...  # pragma: no cover

    def fetch_stream_info(self, url: str) -> StreamInfo:
        """Fetch title, uploader, duration and audio renditions for *url*.

        Raises
        ------
        ExtractionError
            When the content cannot be extracted.
        UpstreamError
            When the upstream rate-limits or the transport fails.
        """
        ...  # pragma: no cover

    def fetch_playlist_info(self, url: str) -> PlaylistInfo:
        """Fetch the playlist title and its (possibly lazy) member entries.

        Raises
        ------
        ExtractionError
            When the content cannot be extracted.
        UpstreamError
            When the upstream rate-limits or the transport fails.
        """
        ...  # pragma: no cover


class Fetcher(Protocol):
    """Contract for the single network egress point.

    Implementations perform exactly one HTTP exchange per call and never
    retry.
    """

    def execute(self, request: FetchRequest) -> FetchResponse:
        """Perform *request* and return the final response.

        Raises
        ------
        UpstreamError
            With ``kind=RATE_LIMITED`` when the upstream answers HTTP 429,
            with ``kind=TRANSPORT`` for any network-level failure.
        """
        ...  # pragma: no cover
