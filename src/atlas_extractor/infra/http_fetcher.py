"""httpx-backed implementation of :class:`~atlas_extractor.core.protocols.Fetcher`.

This module is the **only** place in the codebase that imports ``httpx``.
It performs exactly one exchange per call (redirects followed by httpx)
and never retries.  All httpx exceptions are re-raised as
:class:`~atlas_extractor.exceptions.UpstreamError`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from http.cookiejar import CookieJar, DefaultCookiePolicy
from types import TracebackType

import httpx

from atlas_extractor.config import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_USER_AGENT,
)
from atlas_extractor.core.models import FetchRequest, FetchResponse
from atlas_extractor.exceptions import UpstreamError, UpstreamFailure

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_CONNECT_TIMEOUT",
    "DEFAULT_REQUEST_TIMEOUT",
    "DEFAULT_USER_AGENT",
    "HttpxFetcher",
    "build_headers",
]

_BODYLESS_METHODS: frozenset[str] = frozenset({"GET", "HEAD"})


def _cookieless_jar() -> CookieJar:
    """A jar whose policy accepts no domain, so it never stores a cookie."""
    return CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))


def build_headers(
    user_agent: str,
    headers: Iterable[tuple[str, Iterable[str]]],
) -> list[tuple[str, str]]:
    """Merge caller headers over the default User-Agent.

    The first value of a name replaces any earlier header of that name
    (case-insensitive); further values of the same name are appended.
    """
    merged: list[tuple[str, str]] = [("User-Agent", user_agent)]
    for name, values in headers:
        if not name:
            continue
        values = list(values)
        if not values:
            continue
        lowered = name.lower()
        merged = [(key, value) for key, value in merged if key.lower() != lowered]
        merged.extend((name, value) for value in values)
    return merged


class HttpxFetcher:
    """Concrete :class:`Fetcher` backed by one shared :class:`httpx.Client`.

    Usage::

        with HttpxFetcher() as fetcher:
            response = fetcher.execute(FetchRequest("GET", "https://example.com/"))

    The client pools connections across exchanges and is safe to share
    between worker threads.  Its cookie jar refuses every cookie, so
    nothing set by one response is replayed on another request; cookies
    that matter travel explicitly in the request headers.  Pass
    *transport* to route traffic elsewhere (tests use
    :class:`httpx.MockTransport`).
    """

    def __init__(
        self,
        *,
        transport: httpx.BaseTransport | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self._user_agent: str = user_agent
        self._client: httpx.Client = httpx.Client(
            transport=transport,
            follow_redirects=True,
            timeout=httpx.Timeout(request_timeout, connect=connect_timeout),
            cookies=_cookieless_jar(),
        )

    @property
    def user_agent(self) -> str:
        return self._user_agent

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    def close(self) -> None:
        """Release pooled connections.  Further calls to :meth:`execute` fail."""
        self._client.close()

    def __enter__(self) -> HttpxFetcher:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Protocol method
    # ------------------------------------------------------------------

    def execute(self, request: FetchRequest) -> FetchResponse:
        """Send *request* and return the final response after redirects.

        Raises
        ------
        UpstreamError
            ``kind=RATE_LIMITED`` when the upstream answers 429,
            ``kind=TRANSPORT`` for timeouts and any other network failure.
        """
        method = request.method.upper()
        body = None if method in _BODYLESS_METHODS else request.body
        headers = build_headers(self._user_agent, request.headers)

        try:
            response = self._client.request(
                method,
                request.url,
                headers=headers,
                content=body,
            )
        except httpx.TimeoutException as exc:
            raise UpstreamError(
                f"Timed out while fetching {request.url}",
                kind=UpstreamFailure.TRANSPORT,
                url=request.url,
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(
                f"Request to {request.url} failed: {exc}",
                kind=UpstreamFailure.TRANSPORT,
                url=request.url,
            ) from exc

        if response.status_code == 429:
            logger.warning("Upstream rate limited %s %s", method, request.url)
            raise UpstreamError(
                f"Rate limited by upstream: {request.url}",
                kind=UpstreamFailure.RATE_LIMITED,
                url=request.url,
                hint="The site is challenging automated requests; try again later.",
            )

        logger.debug("%s %s -> %d", method, request.url, response.status_code)
        return FetchResponse(
            status=response.status_code,
            headers=tuple(response.headers.multi_items()),
            content=response.content,
            final_url=str(response.url),
            encoding=response.encoding or "utf-8",
        )
