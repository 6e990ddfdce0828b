"""Tests for ExtractionService (core/extraction_service.py).

The :class:`ExtractionEngine` dependency is **mocked** — no internet
access, no yt-dlp invocation.  These tests verify:

* URL validation
* The blocked-service safety net (no metadata fetched)
* Classification fallback to the stream path
* Playlist capping at 200 items, in engine order, consumed lazily
* Stream shaping and ranking
* Exception propagation and wrapping
"""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import MagicMock

import pytest

from atlas_extractor.core.extraction_service import (
    PLAYLIST_ITEM_LIMIT,
    SERVICE_BLOCKED_MESSAGE,
    ExtractionService,
)
from atlas_extractor.core.models import (
    AudioCandidate,
    ErrorResult,
    LinkType,
    PlaylistEntry,
    PlaylistInfo,
    PlaylistResult,
    ServiceIdentity,
    StreamInfo,
    StreamResult,
)
from atlas_extractor.exceptions import (
    CollectionError,
    EngineError,
    ErrorCategory,
    ExtractionError,
    InvalidURLError,
    ParsingError,
    UpstreamError,
    UpstreamFailure,
)

TRACK_URL = "https://example.com/track/1"
SET_URL = "https://example.com/sets/mix"


def _playlist(count: int) -> PlaylistInfo:
    return PlaylistInfo(
        title="Mix",
        entries=tuple(
            PlaylistEntry(title=f"Track {i}", url=f"https://example.com/t/{i}")
            for i in range(count)
        ),
    )


# ---------------------------------------------------------------------------
# URL validation
# ---------------------------------------------------------------------------

class TestURLValidation:
    @pytest.mark.parametrize("url", ["", "   ", "\t\n"])
    def test_blank_url_raises(self, engine: MagicMock, url: str) -> None:
        svc = ExtractionService(engine)
        with pytest.raises(InvalidURLError, match="url is required"):
            svc.extract(url)
        engine.resolve_service.assert_not_called()

    def test_url_is_stripped_before_use(self, engine: MagicMock) -> None:
        result = ExtractionService(engine).extract(f"  {TRACK_URL}  ")
        engine.resolve_service.assert_called_once_with(TRACK_URL)
        assert isinstance(result, StreamResult)
        assert result.url == TRACK_URL


# ---------------------------------------------------------------------------
# Blocked services
# ---------------------------------------------------------------------------

class TestBlockedService:
    def test_youtube_service_short_circuits(self, engine: MagicMock) -> None:
        engine.resolve_service.return_value = ServiceIdentity(id="Youtube", name="youtube")
        result = ExtractionService(engine).extract("https://yewtu.be/watch?v=dQw4w9WgXcQ")

        assert result == ErrorResult(message=SERVICE_BLOCKED_MESSAGE)
        engine.classify.assert_not_called()
        engine.fetch_stream_info.assert_not_called()
        engine.fetch_playlist_info.assert_not_called()

    def test_matches_identity_not_display_name(self, engine: MagicMock) -> None:
        engine.resolve_service.return_value = ServiceIdentity(id="Soundcloud", name="youtube")
        result = ExtractionService(engine).extract(TRACK_URL)
        assert isinstance(result, StreamResult)

    def test_custom_blocklist(self, engine: MagicMock) -> None:
        svc = ExtractionService(engine, blocked_services=frozenset({"Soundcloud"}))
        assert isinstance(svc.extract(TRACK_URL), ErrorResult)

    def test_resolve_failure_propagates(self, engine: MagicMock) -> None:
        engine.resolve_service.side_effect = ParsingError("No extractor accepts x")
        with pytest.raises(ParsingError):
            ExtractionService(engine).extract("x")


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

class TestClassification:
    def test_parsing_failure_falls_back_to_stream(self, engine: MagicMock) -> None:
        engine.classify.side_effect = ParsingError("cannot classify")
        result = ExtractionService(engine).extract(TRACK_URL)
        assert isinstance(result, StreamResult)
        engine.fetch_playlist_info.assert_not_called()

    def test_unknown_takes_stream_path(self, engine: MagicMock) -> None:
        engine.classify.return_value = LinkType.UNKNOWN
        assert isinstance(ExtractionService(engine).extract(TRACK_URL), StreamResult)

    def test_other_classification_errors_propagate(self, engine: MagicMock) -> None:
        engine.classify.side_effect = UpstreamError("down", kind=UpstreamFailure.TRANSPORT)
        with pytest.raises(UpstreamError):
            ExtractionService(engine).extract(TRACK_URL)

    def test_unknown_page_holding_a_collection_is_listed(self, engine: MagicMock) -> None:
        engine.classify.return_value = LinkType.UNKNOWN
        engine.fetch_stream_info.side_effect = CollectionError("several media items")
        engine.fetch_playlist_info.return_value = _playlist(2)

        result = ExtractionService(engine).extract(TRACK_URL)

        assert isinstance(result, PlaylistResult)
        assert result.url == TRACK_URL
        assert [i.title for i in result.items] == ["Track 0", "Track 1"]
        engine.fetch_playlist_info.assert_called_once_with(TRACK_URL)

    def test_stream_link_resolving_to_collection_is_refused(self, engine: MagicMock) -> None:
        engine.fetch_stream_info.side_effect = CollectionError("several media items")
        with pytest.raises(CollectionError):
            ExtractionService(engine).extract(TRACK_URL)
        engine.fetch_playlist_info.assert_not_called()


# ---------------------------------------------------------------------------
# Playlists
# ---------------------------------------------------------------------------

class TestPlaylist:
    def test_shapes_playlist_result(self, engine: MagicMock) -> None:
        engine.classify.return_value = LinkType.PLAYLIST
        engine.fetch_playlist_info.return_value = _playlist(3)

        result = ExtractionService(engine).extract(SET_URL)

        assert isinstance(result, PlaylistResult)
        assert result.service == "soundcloud"
        assert result.url == SET_URL
        assert result.title == "Mix"
        assert [i.title for i in result.items] == ["Track 0", "Track 1", "Track 2"]
        engine.fetch_stream_info.assert_not_called()

    def test_caps_at_first_200_in_order(self, engine: MagicMock) -> None:
        engine.classify.return_value = LinkType.PLAYLIST
        engine.fetch_playlist_info.return_value = _playlist(250)

        result = ExtractionService(engine).extract(SET_URL)

        assert isinstance(result, PlaylistResult)
        assert len(result.items) == PLAYLIST_ITEM_LIMIT == 200
        assert result.items[0].url == "https://example.com/t/0"
        assert result.items[-1].title == "Track 199"
        assert result.items[-1].url == "https://example.com/t/199"

    def test_lazy_entries_consumed_only_up_to_limit(self, engine: MagicMock) -> None:
        pulled: list[int] = []

        def _entries() -> Iterator[PlaylistEntry]:
            for i in range(1000):
                pulled.append(i)
                yield PlaylistEntry(title=str(i), url=f"https://example.com/{i}")

        engine.classify.return_value = LinkType.PLAYLIST
        engine.fetch_playlist_info.return_value = PlaylistInfo(title="Big", entries=_entries())

        result = ExtractionService(engine, playlist_limit=5).extract(SET_URL)

        assert isinstance(result, PlaylistResult)
        assert len(result.items) == 5
        assert len(pulled) == 5

    def test_empty_playlist(self, engine: MagicMock) -> None:
        engine.classify.return_value = LinkType.PLAYLIST
        engine.fetch_playlist_info.return_value = PlaylistInfo(title="Empty")
        result = ExtractionService(engine).extract(SET_URL)
        assert isinstance(result, PlaylistResult)
        assert result.items == ()

    def test_error_while_paging_is_typed(self, engine: MagicMock) -> None:
        def _entries() -> Iterator[PlaylistEntry]:
            yield PlaylistEntry(title="0", url="https://example.com/0")
            raise RuntimeError("page 2 exploded")

        engine.classify.return_value = LinkType.PLAYLIST
        engine.fetch_playlist_info.return_value = PlaylistInfo(title="Big", entries=_entries())

        with pytest.raises(EngineError, match="page 2 exploded"):
            ExtractionService(engine).extract(SET_URL)


# ---------------------------------------------------------------------------
# Streams
# ---------------------------------------------------------------------------

class TestStream:
    def test_shapes_and_ranks_stream(self, engine: MagicMock) -> None:
        engine.fetch_stream_info.return_value = StreamInfo(
            title="Song A",
            uploader="Artist",
            duration=215,
            audio_candidates=(
                AudioCandidate("https://cdn/1", None, 128_000, 0, None),
                AudioCandidate("https://cdn/2", None, 0, 192_000, None),
            ),
        )

        result = ExtractionService(engine).extract(TRACK_URL)

        assert isinstance(result, StreamResult)
        assert result.service == "soundcloud"
        assert result.url == TRACK_URL
        assert result.title == "Song A"
        assert result.uploader == "Artist"
        assert result.duration == 215
        assert [v.url for v in result.audio_streams] == ["https://cdn/2", "https://cdn/1"]

    def test_blank_content_dropped(self, engine: MagicMock) -> None:
        engine.fetch_stream_info.return_value = StreamInfo(
            title="t",
            uploader="u",
            duration=0,
            audio_candidates=(
                AudioCandidate("", None, 999_000, 0, None),
                AudioCandidate("https://cdn/ok", None, 1, 0, None),
            ),
        )
        result = ExtractionService(engine).extract(TRACK_URL)
        assert isinstance(result, StreamResult)
        assert [v.url for v in result.audio_streams] == ["https://cdn/ok"]


# ---------------------------------------------------------------------------
# Error propagation
# ---------------------------------------------------------------------------

class TestErrors:
    def test_extraction_error_propagates_unchanged(self, engine: MagicMock) -> None:
        original = ExtractionError("Unsupported URL")
        engine.fetch_stream_info.side_effect = original
        with pytest.raises(ExtractionError) as exc_info:
            ExtractionService(engine).extract(TRACK_URL)
        assert exc_info.value is original

    def test_rate_limit_keeps_its_tag(self, engine: MagicMock) -> None:
        engine.fetch_stream_info.side_effect = UpstreamError(
            "Rate limited", kind=UpstreamFailure.RATE_LIMITED,
        )
        with pytest.raises(UpstreamError) as exc_info:
            ExtractionService(engine).extract(TRACK_URL)
        assert exc_info.value.category is ErrorCategory.RATE_LIMITED

    def test_unexpected_engine_error_wrapped(self, engine: MagicMock) -> None:
        engine.fetch_stream_info.side_effect = KeyError("formats")
        with pytest.raises(EngineError, match="Unexpected engine error") as exc_info:
            ExtractionService(engine).extract(TRACK_URL)
        assert isinstance(exc_info.value.__cause__, KeyError)
        assert exc_info.value.category is ErrorCategory.UNEXPECTED
