"""Host denylist applied before any extraction work happens.

Pure function — no I/O, no network access, no DNS resolution.
"""

from __future__ import annotations

from urllib.parse import urlsplit

from atlas_extractor.exceptions import BlockedError

BLOCKED_HOST_MESSAGE: str = "blocked host"

BLOCKED_HOSTS: frozenset[str] = frozenset(
    {
        "youtube.com",
        "youtu.be",
        "music.youtube.com",
        "youtube-nocookie.com",
    }
)


def is_blocked(raw_url: str) -> bool:
    """Return ``True`` when the host of *raw_url* contains a denylisted name.

    Matching is a substring test on the lower-cased host, so sub-domains
    and look-alike hosts such as ``m.youtube.com.evil`` are caught too.
    A URL that cannot be parsed is reported as *not* blocked: extraction
    will fail on it later with a clearer message.
    """
    try:
        host = urlsplit(raw_url.strip()).hostname
    except ValueError:
        return False
    if not host:
        return False
    host = host.lower()
    return any(blocked in host for blocked in BLOCKED_HOSTS)


def ensure_allowed(raw_url: str) -> None:
    """Raise :class:`BlockedError` when *raw_url* targets a denylisted host."""
    if is_blocked(raw_url):
        raise BlockedError(BLOCKED_HOST_MESSAGE)
