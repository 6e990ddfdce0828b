"""Shared pytest fixtures and configuration for the atlas-extractor test suite.

Guidelines
----------
* No internet access in any test.
* yt-dlp and httpx must be faked at the infra boundary.
* Core tests must be pure — no side effects.
* Tests must not depend on OS state.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from atlas_extractor.core.models import (
    AudioCandidate,
    AudioFormat,
    DeliveryMethod,
    LinkType,
    ServiceIdentity,
    StreamInfo,
)


def make_candidate(**overrides: Any) -> AudioCandidate:
    """Factory with sensible defaults for concise tests."""
    defaults: dict[str, Any] = {
        "content": "https://cdn.example.com/a.m4a",
        "format": AudioFormat(name="m4a", mime_type="audio/mp4"),
        "bitrate": 128_000,
        "average_bitrate": 0,
        "delivery_method": DeliveryMethod.PROGRESSIVE_HTTP,
    }
    defaults.update(overrides)
    return AudioCandidate(**defaults)


@pytest.fixture()
def engine() -> MagicMock:
    """A fake ExtractionEngine resolving everything to a plain stream."""
    fake = MagicMock()
    fake.resolve_service.return_value = ServiceIdentity(id="Soundcloud", name="soundcloud")
    fake.classify.return_value = LinkType.STREAM
    fake.fetch_stream_info.return_value = StreamInfo(
        title="Song A",
        uploader="Artist",
        duration=215,
        audio_candidates=(make_candidate(),),
    )
    return fake
