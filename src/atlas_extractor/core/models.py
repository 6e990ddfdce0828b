"""Domain models for atlas-extractor.

All models are **frozen** dataclasses — immutable value objects with no
behaviour beyond data access.  They carry zero I/O, zero dependencies on
external packages, and must remain pure across the entire lifecycle.

Two families live here:

* Engine-side models (:class:`ServiceIdentity`, :class:`AudioCandidate`,
  :class:`StreamInfo`, :class:`PlaylistInfo`) describe what the extraction
  engine reports.
* Result models (:class:`AudioVariant`, :class:`PlaylistItem` and the
  :data:`ExtractResult` union) describe what the service hands back.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Union


# ---------------------------------------------------------------------------
# Engine vocabulary
# ---------------------------------------------------------------------------

class LinkType(enum.Enum):
    """What a URL points at, as far as the engine can tell from the URL."""

    STREAM = "stream"
    PLAYLIST = "playlist"
    UNKNOWN = "unknown"


class DeliveryMethod(enum.Enum):
    """How the bytes of an audio rendition are delivered."""

    PROGRESSIVE_HTTP = "progressive_http"
    DASH = "dash"
    HLS = "hls"
    SS = "ss"


@dataclass(frozen=True, slots=True)
class ServiceIdentity:
    """The content platform that owns a URL."""

    id: str
    """Stable engine key for the platform strategy (e.g. ``Soundcloud``)."""

    name: str
    """Human-readable platform name used in responses."""


@dataclass(frozen=True, slots=True)
class AudioFormat:
    """Container format of an audio rendition."""

    name: str
    mime_type: str


@dataclass(frozen=True, slots=True)
class AudioCandidate:
    """One raw audio rendition as reported by the engine, before filtering."""

    content: str | None
    """Direct media URL; may be blank for renditions the engine cannot resolve."""

    format: AudioFormat | None
    bitrate: int
    average_bitrate: int
    delivery_method: DeliveryMethod | None


@dataclass(frozen=True, slots=True)
class StreamInfo:
    """Stream metadata returned by the engine for a single media page."""

    title: str
    uploader: str
    duration: int
    """Duration in seconds; ``0`` when unknown."""

    audio_candidates: tuple[AudioCandidate, ...] = ()


@dataclass(frozen=True, slots=True)
class PlaylistEntry:
    """One member of a playlist as reported by the engine."""

    title: str
    url: str


@dataclass(frozen=True)
class PlaylistInfo:
    """Playlist metadata returned by the engine.

    ``entries`` may be a lazy iterable — consumers must only iterate the
    prefix they need.
    """

    title: str
    entries: Iterable[PlaylistEntry] = field(default=())


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class AudioVariant:
    """A playable audio rendition included in a stream result."""

    url: str
    format: str
    mime_type: str
    bitrate: int
    average_bitrate: int
    delivery: str
    """Lower-cased delivery method name, ``""`` when unknown."""


@dataclass(frozen=True, slots=True)
class PlaylistItem:
    """A playlist member included in a playlist result."""

    title: str
    url: str


@dataclass(frozen=True, slots=True)
class StreamResult:
    """Successful extraction of a single stream."""

    service: str
    url: str
    title: str
    uploader: str
    duration: int
    audio_streams: tuple[AudioVariant, ...] = ()


@dataclass(frozen=True, slots=True)
class PlaylistResult:
    """Successful extraction of a playlist (at most 200 items)."""

    service: str
    url: str
    title: str
    items: tuple[PlaylistItem, ...] = ()


@dataclass(frozen=True, slots=True)
class ErrorResult:
    """An extraction that was refused or failed, carrying only a message."""

    message: str


ExtractResult = Union[StreamResult, PlaylistResult, ErrorResult]
"""Tagged union returned by :meth:`ExtractionService.extract`."""


# ---------------------------------------------------------------------------
# Upstream exchange
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class FetchRequest:
    """An outbound HTTP request issued on behalf of the engine."""

    method: str
    url: str
    headers: tuple[tuple[str, tuple[str, ...]], ...] = ()
    """``(name, values)`` pairs; a name may carry several values."""

    body: bytes | None = None


@dataclass(frozen=True, slots=True)
class FetchResponse:
    """What came back from the upstream after redirects were followed."""

    status: int
    headers: tuple[tuple[str, str], ...]
    content: bytes
    final_url: str
    encoding: str = "utf-8"

    @property
    def text(self) -> str:
        return self.content.decode(self.encoding, errors="replace")

    def header(self, name: str) -> str | None:
        """Return the first value of header *name* (case-insensitive)."""
        wanted = name.lower()
        return next(
            (value for key, value in self.headers if key.lower() == wanted),
            None,
        )
