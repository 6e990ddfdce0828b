"""Core extraction service — orchestrates service lookup, classification and shaping.

This is the central service class consumed by the HTTP front and the
one-shot CLI.  It depends on an
:class:`~atlas_extractor.core.protocols.ExtractionEngine` injected at
construction time (dependency inversion), keeping the core free of any
external-system imports.

Guarantees
----------
* Pure orchestration — no I/O of its own, no ``print()``.
* Only :class:`~atlas_extractor.exceptions.AtlasExtractorError` subclasses escape.
* Stateless between calls; one instance is safely shared by worker threads.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable
from typing import TypeVar

from atlas_extractor.core.models import (
    ErrorResult,
    ExtractResult,
    LinkType,
    PlaylistItem,
    PlaylistResult,
    ServiceIdentity,
    StreamResult,
)
from atlas_extractor.core.protocols import ExtractionEngine
from atlas_extractor.core.stream_ranker import select_audio_variants
from atlas_extractor.exceptions import (
    AtlasExtractorError,
    CollectionError,
    EngineError,
    InvalidURLError,
    ParsingError,
)

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

PLAYLIST_ITEM_LIMIT: int = 200
"""Maximum number of playlist members kept, in engine order."""

SERVICE_BLOCKED_MESSAGE: str = "service blocked"

BLOCKED_SERVICES: frozenset[str] = frozenset(
    {
        "Youtube",
        "YoutubeTab",
        "YoutubePlaylist",
        "YoutubeYtBe",
        "YoutubeYtUser",
        "YoutubeShortsAudioPivot",
        "YoutubeMusicSearchURL",
        "YoutubeSearchURL",
        "YoutubeClip",
        "YoutubeConsentRedirect",
        "YoutubeLivestreamEmbed",
        "YoutubeNotification",
        "YoutubeFavourites",
        "YoutubeHistory",
        "YoutubeRecommended",
        "YoutubeSubscriptions",
        "YoutubeWatchLater",
        "YoutubeTruncatedID",
        "YoutubeTruncatedURL",
    }
)
"""Engine keys of the strategies that are never extracted."""


class ExtractionService:
    """Stateless service that turns a media page URL into an :data:`ExtractResult`.

    Parameters
    ----------
    engine:
        Any object satisfying the :class:`ExtractionEngine` protocol.
    blocked_services:
        Engine service keys that are refused without further work.
    playlist_limit:
        Cap on the number of playlist items consumed from the engine.
    """

    def __init__(
        self,
        engine: ExtractionEngine,
        *,
        blocked_services: frozenset[str] = BLOCKED_SERVICES,
        playlist_limit: int = PLAYLIST_ITEM_LIMIT,
    ) -> None:
        self._engine: ExtractionEngine = engine
        self._blocked_services: frozenset[str] = blocked_services
        self._playlist_limit: int = playlist_limit

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def extract(self, url: str) -> ExtractResult:
        """Resolve *url* to a stream or a playlist.

        Returns :class:`ErrorResult` when the URL belongs to a blocked
        service; no metadata is fetched in that case.

        Raises
        ------
        InvalidURLError
            If *url* is blank.
        ExtractionError
            If the engine cannot parse or extract the content.
        UpstreamError
            If the upstream rate-limits or the network fails.
        EngineError
            If the engine fails in an unexpected way.
        """
        url = self._validate_url(url)
        service = self._call(self._engine.resolve_service, url)

        if service.id in self._blocked_services:
            logger.info("Refusing %s: service %s is blocked", url, service.id)
            return ErrorResult(message=SERVICE_BLOCKED_MESSAGE)

        link_type = self._classify(url)
        logger.debug("Resolved %s to %s (%s)", url, service.name, link_type.value)

        if link_type is LinkType.PLAYLIST:
            return self._extract_playlist(service, url)
        if link_type is LinkType.UNKNOWN:
            return self._extract_unknown(service, url)
        return self._extract_stream(service, url)

    # ------------------------------------------------------------------
    # URL validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_url(url: str) -> str:
        """Raise :class:`InvalidURLError` for blank input; return it stripped."""
        stripped = url.strip() if url else ""
        if not stripped:
            raise InvalidURLError("url is required")
        return stripped

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _classify(self, url: str) -> LinkType:
        """Classify *url*, treating a parsing failure as a plain stream."""
        try:
            return self._call(self._engine.classify, url)
        except ParsingError as exc:
            logger.debug("Classification failed for %s, assuming stream: %s", url, exc)
            return LinkType.STREAM

    def _extract_playlist(self, service: ServiceIdentity, url: str) -> PlaylistResult:
        info = self._call(self._engine.fetch_playlist_info, url)
        entries = self._call(
            lambda: list(itertools.islice(info.entries, self._playlist_limit)),
        )
        items = tuple(PlaylistItem(title=entry.title, url=entry.url) for entry in entries)
        return PlaylistResult(
            service=service.name,
            url=url,
            title=info.title,
            items=items,
        )

    def _extract_unknown(self, service: ServiceIdentity, url: str) -> ExtractResult:
        """Extract as a stream, or list the members if the page is a collection."""
        try:
            return self._extract_stream(service, url)
        except CollectionError:
            logger.debug("%s holds several media items, listing them", url)
            return self._extract_playlist(service, url)

    def _extract_stream(self, service: ServiceIdentity, url: str) -> StreamResult:
        info = self._call(self._engine.fetch_stream_info, url)
        variants = select_audio_variants(info.audio_candidates)
        return StreamResult(
            service=service.name,
            url=url,
            title=info.title,
            uploader=info.uploader,
            duration=info.duration,
            audio_streams=tuple(variants),
        )

    # ------------------------------------------------------------------
    # Engine delegation (safe boundary)
    # ------------------------------------------------------------------

    @staticmethod
    def _call(func: Callable[..., _T], *args: object) -> _T:
        """Call into the engine and ensure only our exceptions escape."""
        try:
            return func(*args)
        except AtlasExtractorError:
            # Already one of ours.
            raise
        except Exception as exc:
            raise EngineError(f"Unexpected engine error: {exc}") from exc
