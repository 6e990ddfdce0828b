"""Translate extraction outcomes into wire payloads and HTTP statuses.

The flattened result shape is stable: every key is present for every
variant, with unused fields empty, zero or ``None``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from atlas_extractor.core.models import (
    AudioVariant,
    ErrorResult,
    ExtractResult,
    PlaylistItem,
    PlaylistResult,
    StreamResult,
)
from atlas_extractor.exceptions import ErrorCategory

_STATUS_BY_CATEGORY: dict[ErrorCategory, int] = {
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.BLOCKED: 403,
    ErrorCategory.EXTRACTION: 400,
    ErrorCategory.RATE_LIMITED: 502,
    ErrorCategory.TRANSPORT: 502,
    ErrorCategory.UNEXPECTED: 502,
}


@dataclass(frozen=True, slots=True)
class MappedError:
    """Status code and message for a failed request."""

    status: int
    message: str

    def to_payload(self) -> dict[str, Any]:
        return error_payload(self.message)


def error_payload(message: str) -> dict[str, Any]:
    """Body used by the HTTP front for non-200 answers."""
    return {"error": message}


def _audio_stream_payload(variant: AudioVariant) -> dict[str, Any]:
    return {
        "url": variant.url,
        "format": variant.format,
        "mimeType": variant.mime_type,
        "bitrate": variant.bitrate,
        "averageBitrate": variant.average_bitrate,
        "delivery": variant.delivery,
    }


def _item_payload(item: PlaylistItem) -> dict[str, Any]:
    return {"title": item.title, "url": item.url}


def to_payload(result: ExtractResult) -> dict[str, Any]:
    """Flatten *result* into the stable JSON shape.

    Keys: ``type``, ``service``, ``url``, ``title``, ``uploader``,
    ``duration``, ``audioStreams``, ``items``, ``error``.
    """
    if isinstance(result, StreamResult):
        return {
            "type": "stream",
            "service": result.service,
            "url": result.url,
            "title": result.title,
            "uploader": result.uploader,
            "duration": result.duration,
            "audioStreams": [_audio_stream_payload(v) for v in result.audio_streams],
            "items": [],
            "error": None,
        }
    if isinstance(result, PlaylistResult):
        return {
            "type": "playlist",
            "service": result.service,
            "url": result.url,
            "title": result.title,
            "uploader": "",
            "duration": 0,
            "audioStreams": [],
            "items": [_item_payload(item) for item in result.items],
            "error": None,
        }
    if isinstance(result, ErrorResult):
        return {
            "type": "error",
            "service": "",
            "url": "",
            "title": "",
            "uploader": "",
            "duration": 0,
            "audioStreams": [],
            "items": [],
            "error": result.message,
        }
    raise TypeError(f"Unsupported result type: {type(result).__name__}")


def status_for_category(category: ErrorCategory) -> int:
    """Return the HTTP status used for failures of *category*."""
    return _STATUS_BY_CATEGORY[category]


def map_exception(exc: BaseException) -> MappedError:
    """Map any failure to a status and a caller-facing message.

    Library errors are mapped by their ``category`` tag; anything else is
    an unexpected upstream-side failure (502).
    """
    category = getattr(exc, "category", None)
    if not isinstance(category, ErrorCategory):
        category = ErrorCategory.UNEXPECTED
    message = str(exc) or type(exc).__name__
    return MappedError(status=status_for_category(category), message=message)
