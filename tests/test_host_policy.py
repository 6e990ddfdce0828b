"""Tests for the host denylist (core/host_policy.py)."""

from __future__ import annotations

import pytest

from atlas_extractor.core.host_policy import BLOCKED_HOSTS, ensure_allowed, is_blocked
from atlas_extractor.exceptions import BlockedError, ErrorCategory


class TestBlockedHosts:
    @pytest.mark.parametrize(
        "url",
        [
            "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
            "http://youtube.com/",
            "https://youtu.be/dQw4w9WgXcQ",
            "https://music.youtube.com/playlist?list=abc",
            "https://www.youtube-nocookie.com/embed/abc",
            "https://M.YouTube.COM/watch?v=x",
            "ftp://youtube.com/some/path",
            "https://youtube.com.example.net/x",
            "  https://youtu.be/abc  ",
        ],
    )
    def test_denylisted_hosts_are_blocked(self, url: str) -> None:
        assert is_blocked(url) is True

    def test_every_denylist_entry_blocks_itself(self) -> None:
        for host in BLOCKED_HOSTS:
            assert is_blocked(f"https://{host}/anything")


class TestAllowedHosts:
    @pytest.mark.parametrize(
        "url",
        [
            "https://soundcloud.com/artist/track",
            "https://artist.bandcamp.com/album/x",
            "https://example.com/watch?v=youtube.com",
            "https://example.com/youtube.com/path",
        ],
    )
    def test_other_hosts_pass(self, url: str) -> None:
        assert is_blocked(url) is False

    @pytest.mark.parametrize(
        "url",
        [
            "",
            "not a url",
            "youtube.com/watch?v=x",
            "http://[::1",
        ],
    )
    def test_unparseable_or_hostless_input_is_not_blocked(self, url: str) -> None:
        assert is_blocked(url) is False


class TestEnsureAllowed:
    def test_blocked_host_raises(self) -> None:
        with pytest.raises(BlockedError, match="blocked host") as exc_info:
            ensure_allowed("https://youtu.be/abc")
        assert exc_info.value.category is ErrorCategory.BLOCKED

    def test_allowed_host_passes(self) -> None:
        assert ensure_allowed("https://soundcloud.com/artist/track") is None
