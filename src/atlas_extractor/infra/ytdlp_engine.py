"""yt-dlp backed implementation of :class:`~atlas_extractor.core.protocols.ExtractionEngine`.

Each yt-dlp extractor class is one per-site strategy: the first class
whose URL pattern accepts a URL owns it.  This module and
:mod:`atlas_extractor.infra.ytdlp_bridge` are the **only** places that
import ``yt_dlp``.  All yt-dlp exceptions are caught here and re-raised
as typed :class:`~atlas_extractor.exceptions.AtlasExtractorError`
subclasses — nothing raw escapes the infrastructure boundary.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from functools import cached_property
from typing import Any

from atlas_extractor.core.models import (
    AudioCandidate,
    AudioFormat,
    DeliveryMethod,
    LinkType,
    PlaylistEntry,
    PlaylistInfo,
    ServiceIdentity,
    StreamInfo,
)
from atlas_extractor.core.protocols import Fetcher
from atlas_extractor.exceptions import (
    AtlasExtractorError,
    CollectionError,
    ContentUnavailableError,
    EngineError,
    EnvironmentError,
    ExtractionError,
    ParsingError,
    UpstreamError,
    UpstreamFailure,
    append_ytdlp_upgrade_suggestion,
)

logger = logging.getLogger(__name__)

engine_logger = logging.getLogger("atlas_extractor.engine")
"""Receives yt-dlp's own diagnostic output."""

GENERIC_EXTRACTOR_KEY: str = "Generic"

_COLLECTION_SUFFIXES: tuple[str, ...] = (
    "Playlist",
    "Album",
    "Set",
    "Sets",
    "Tab",
    "User",
    "Channel",
    "Collection",
    "Show",
    "Series",
    "Artist",
    "Likes",
)

_MIME_BY_EXT: dict[str, str] = {
    "m4a": "audio/mp4",
    "mp4": "audio/mp4",
    "mp3": "audio/mpeg",
    "opus": "audio/opus",
    "ogg": "audio/ogg",
    "oga": "audio/ogg",
    "webm": "audio/webm",
    "weba": "audio/webm",
    "aac": "audio/aac",
    "flac": "audio/flac",
    "wav": "audio/wav",
}

_DELIVERY_BY_PROTOCOL: dict[str, DeliveryMethod] = {
    "http": DeliveryMethod.PROGRESSIVE_HTTP,
    "https": DeliveryMethod.PROGRESSIVE_HTTP,
    "m3u8": DeliveryMethod.HLS,
    "m3u8_native": DeliveryMethod.HLS,
    "http_dash_segments": DeliveryMethod.DASH,
    "http_dash_segments_generator": DeliveryMethod.DASH,
    "ism": DeliveryMethod.SS,
}

YdlFactory = Callable[[dict[str, Any]], Any]


def _require_ytdlp() -> Any:
    try:
        import yt_dlp
        import yt_dlp.utils
    except ModuleNotFoundError as exc:
        raise EnvironmentError(
            "yt-dlp is not installed. Install with: pip install yt-dlp",
        ) from exc
    return yt_dlp


# ---------------------------------------------------------------------------
# Raw-dict → domain-model parsers (pure)
# ---------------------------------------------------------------------------

def _to_int(value: Any) -> int:
    try:
        return int(value) if value is not None else 0
    except (TypeError, ValueError):
        return 0


def _kbps_to_bps(value: Any) -> int:
    if not isinstance(value, (int, float)) or value <= 0:
        return 0
    return int(round(value * 1000))


def is_audio_only(fmt: dict[str, Any]) -> bool:
    """Return ``True`` for formats that carry audio and no video."""
    acodec = fmt.get("acodec")
    vcodec = fmt.get("vcodec")
    if acodec == "none":
        return False
    if vcodec == "none":
        return True
    # Codec-less formats (plain radio streams, direct files) count as audio
    # unless they declare picture dimensions.
    return vcodec is None and not fmt.get("height") and not fmt.get("width")


def audio_candidate_from_format(fmt: dict[str, Any]) -> AudioCandidate:
    """Convert one yt-dlp format dict to an :class:`AudioCandidate`."""
    ext = fmt.get("audio_ext")
    if not ext or ext == "none":
        ext = fmt.get("ext")
    audio_format = (
        AudioFormat(name=str(ext), mime_type=_MIME_BY_EXT.get(str(ext).lower(), ""))
        if ext
        else None
    )
    tbr = fmt.get("tbr")
    abr = fmt.get("abr")
    return AudioCandidate(
        content=fmt.get("url"),
        format=audio_format,
        bitrate=_kbps_to_bps(tbr if tbr is not None else abr),
        average_bitrate=_kbps_to_bps(abr),
        delivery_method=_DELIVERY_BY_PROTOCOL.get(str(fmt.get("protocol") or "")),
    )


def audio_candidates_from_info(info: dict[str, Any]) -> list[AudioCandidate]:
    """Pull the audio-only candidates out of a processed info dict."""
    raw: object = info.get("formats")
    if not isinstance(raw, list) or not raw:
        # Single-format results describe the media directly.
        raw = [info] if info.get("url") else []
    return [
        audio_candidate_from_format(entry)
        for entry in raw
        if isinstance(entry, dict) and is_audio_only(entry)
    ]


def playlist_entry_from_dict(entry: dict[str, Any]) -> PlaylistEntry:
    url = entry.get("url") or entry.get("webpage_url")
    if not url:
        # Media embedded in a page carries only its formats.
        formats = entry.get("formats")
        if isinstance(formats, list):
            url = next((f.get("url") for f in formats if isinstance(f, dict) and f.get("url")), None)
    return PlaylistEntry(title=str(entry.get("title") or ""), url=str(url or ""))


def _iter_causes(exc: BaseException) -> Iterator[BaseException]:
    """Walk every exception reachable through yt-dlp's and Python's chaining."""
    seen: set[int] = set()
    pending: list[BaseException] = [exc]
    while pending:
        current = pending.pop(0)
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        exc_info = getattr(current, "exc_info", None)
        if isinstance(exc_info, tuple) and len(exc_info) > 1:
            pending.append(exc_info[1])
        for linked in (
            getattr(current, "cause", None),
            current.__cause__,
            current.__context__,
        ):
            if isinstance(linked, BaseException):
                pending.append(linked)


def _clean_message(message: str) -> str:
    return message.removeprefix("ERROR: ").strip()


class YtDlpEngine:
    """Concrete :class:`ExtractionEngine` backed by the yt-dlp Python API.

    Usage::

        engine = YtDlpEngine(HttpxFetcher())
        info = engine.fetch_stream_info("https://soundcloud.com/artist/track")

    Parameters
    ----------
    fetcher:
        Egress for every request yt-dlp makes.  ``None`` leaves yt-dlp on
        its built-in network handlers.
    extractors:
        Strategy classes to match against, in priority order.  Defaults
        to every extractor yt-dlp ships, generic last.
    ydl_factory:
        Builds a ``YoutubeDL``-like object from an options dict.
    """

    # Substrings in yt-dlp error messages that indicate the content itself
    # is unavailable (as opposed to a transient or extraction error).
    _UNAVAILABLE_SIGNALS: tuple[str, ...] = (
        "unavailable",
        "private",
        "removed",
        "not available",
        "has been deleted",
        "geo restricted",
        "not found",
        "account terminated",
    )

    def __init__(
        self,
        fetcher: Fetcher | None = None,
        *,
        extractors: Sequence[Any] | None = None,
        ydl_factory: YdlFactory | None = None,
    ) -> None:
        self._fetcher: Fetcher | None = fetcher
        self._given_extractors: Sequence[Any] | None = extractors
        self._ydl_factory: YdlFactory = ydl_factory or self._build_ydl

    # ------------------------------------------------------------------
    # Options and construction
    # ------------------------------------------------------------------

    @staticmethod
    def _base_opts() -> dict[str, Any]:
        """Return yt-dlp options shared by every extraction."""
        return {
            "quiet": True,
            "no_warnings": True,
            "no_color": True,
            "noprogress": True,
            # Do not write any files to disk.
            "skip_download": True,
            "logger": engine_logger,
        }

    @classmethod
    def _stream_opts(cls) -> dict[str, Any]:
        return {
            **cls._base_opts(),
            "noplaylist": True,
            # Collections are reported, never resolved entry by entry.
            "extract_flat": "in_playlist",
            "format": "bestaudio/best",
            "ignore_no_formats_error": True,
        }

    @classmethod
    def _playlist_opts(cls) -> dict[str, Any]:
        return {**cls._base_opts(), "extract_flat": "in_playlist"}

    def _build_ydl(self, params: dict[str, Any]) -> Any:
        yt_dlp = _require_ytdlp()
        if self._fetcher is None:
            return yt_dlp.YoutubeDL(params)
        from atlas_extractor.infra.ytdlp_bridge import FetcherYoutubeDL

        return FetcherYoutubeDL(params, fetcher=self._fetcher)

    @cached_property
    def _extractors(self) -> Sequence[Any]:
        if self._given_extractors is not None:
            return self._given_extractors
        _require_ytdlp()
        from yt_dlp.extractor import gen_extractor_classes

        return list(gen_extractor_classes())

    # ------------------------------------------------------------------
    # Protocol methods
    # ------------------------------------------------------------------

    def resolve_service(self, url: str) -> ServiceIdentity:
        """Return the identity of the first strategy accepting *url*.

        Raises
        ------
        ParsingError
            When *url* is blank or no strategy accepts it.
        """
        extractor = self._match_extractor(url)
        name = str(extractor.IE_NAME).split(":", 1)[0]
        return ServiceIdentity(id=extractor.ie_key(), name=name)

    def classify(self, url: str) -> LinkType:
        """Classify *url* from its strategy alone, without network access."""
        key = self._match_extractor(url).ie_key()
        if key == GENERIC_EXTRACTOR_KEY:
            return LinkType.UNKNOWN
        if key.endswith(_COLLECTION_SUFFIXES):
            return LinkType.PLAYLIST
        return LinkType.STREAM

    def fetch_stream_info(self, url: str) -> StreamInfo:
        """Run a full extraction and collect the audio-only renditions.

        Raises
        ------
        CollectionError
            When the page resolves to a collection of media items.
        ExtractionError
            When yt-dlp cannot extract the page.
        ContentUnavailableError
            When the content is private, removed or geo-restricted.
        UpstreamError
            When the fetcher reported rate limiting or a transport failure.
        """
        ydl = self._ydl_factory(self._stream_opts())
        try:
            info = self._extract(ydl, url, process=True)
        finally:
            ydl.close()

        if info.get("_type") == "playlist":
            raise CollectionError(
                "URL resolves to a collection, not a single stream.",
                hint="Use the collection's own playlist URL.",
            )

        return StreamInfo(
            title=str(info.get("title") or ""),
            uploader=str(info.get("uploader") or info.get("channel") or ""),
            duration=_to_int(info.get("duration")),
            audio_candidates=tuple(audio_candidates_from_info(info)),
        )

    def fetch_playlist_info(self, url: str) -> PlaylistInfo:
        """Run a flat extraction; member entries are produced lazily.

        The ``YoutubeDL`` instance stays open until the entries iterator
        is exhausted or discarded, since later pages are fetched on demand.
        """
        ydl = self._ydl_factory(self._playlist_opts())
        try:
            info = self._extract(ydl, url, process=False)
        except BaseException:
            ydl.close()
            raise

        return PlaylistInfo(
            title=str(info.get("title") or ""),
            entries=self._iter_entries(ydl, info.get("entries") or ()),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _match_extractor(self, url: str) -> Any:
        stripped = url.strip()
        if not stripped:
            raise ParsingError("URL must not be empty.")
        for extractor in self._extractors:
            if extractor.suitable(stripped):
                return extractor
        raise ParsingError(f"No extractor accepts {stripped}")

    def _extract(self, ydl: Any, url: str, *, process: bool) -> dict[str, Any]:
        yt_dlp = _require_ytdlp()
        try:
            info: Any = ydl.extract_info(url, download=False, process=process)
        except yt_dlp.utils.DownloadError as exc:
            raise self._map_error(exc) from exc
        except AtlasExtractorError:
            raise
        except Exception as exc:
            raise EngineError(f"Unexpected yt-dlp error: {exc}") from exc

        if info is None:
            raise ExtractionError(
                "yt-dlp returned no metadata for the given URL.",
                hint="The URL may not point to playable media.",
            )
        if not isinstance(info, dict):
            raise EngineError("yt-dlp returned an unexpected data structure.")
        return dict(info)  # shallow copy, detached from yt-dlp internals

    def _iter_entries(self, ydl: Any, entries: Iterable[Any]) -> Iterator[PlaylistEntry]:
        yt_dlp = _require_ytdlp()
        try:
            for entry in entries:
                if isinstance(entry, dict):
                    yield playlist_entry_from_dict(entry)
        except (yt_dlp.utils.DownloadError, yt_dlp.utils.ExtractorError) as exc:
            raise self._map_error(exc) from exc
        finally:
            ydl.close()

    # ------------------------------------------------------------------
    # Exception mapping
    # ------------------------------------------------------------------

    @classmethod
    def _map_error(cls, exc: Exception) -> AtlasExtractorError:
        """Translate a yt-dlp failure into a domain exception.

        Upstream failures travel through yt-dlp as causes of its own
        errors; when one is found it is surfaced unchanged.
        """
        from yt_dlp.networking.exceptions import HTTPError, TransportError

        causes = list(_iter_causes(exc))
        for cause in causes:
            if isinstance(cause, UpstreamError):
                return cause
        for cause in causes:
            if isinstance(cause, HTTPError) and cause.status == 429:
                return UpstreamError(
                    "Rate limited by upstream.",
                    kind=UpstreamFailure.RATE_LIMITED,
                )
            if isinstance(cause, TransportError):
                return UpstreamError(
                    _clean_message(str(cause)),
                    kind=UpstreamFailure.TRANSPORT,
                )

        message = _clean_message(str(exc))
        if any(signal in message.lower() for signal in cls._UNAVAILABLE_SIGNALS):
            return ContentUnavailableError(
                message,
                hint="The content may be private, removed, or geo-restricted.",
            )
        logger.debug("Extraction failed: %s", message)
        return ExtractionError(
            message,
            hint=append_ytdlp_upgrade_suggestion(
                "The site may have changed its page format.",
            ),
        )
