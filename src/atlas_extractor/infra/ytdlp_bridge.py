"""Route yt-dlp network traffic through a :class:`~atlas_extractor.core.protocols.Fetcher`.

yt-dlp talks to the network through pluggable request handlers.
:class:`FetcherRH` is such a handler; :class:`FetcherYoutubeDL` installs
one per ``YoutubeDL`` instance and ranks it above the built-in handlers,
which makes the fetcher the sole egress point for extraction.

Upstream failures are handed to yt-dlp as its own networking errors
with the original :class:`~atlas_extractor.exceptions.UpstreamError`
chained as the cause, so the engine can recover the tagged failure
from the resulting ``DownloadError``.
"""

from __future__ import annotations

import email.message
import io
import urllib.request
from collections.abc import Iterable
from typing import Any

import yt_dlp
from yt_dlp.networking.common import Request, RequestHandler, Response
from yt_dlp.networking.exceptions import HTTPError, TransportError
from yt_dlp.utils.networking import HTTPHeaderDict, std_headers

from atlas_extractor.core.models import FetchRequest, FetchResponse
from atlas_extractor.core.protocols import Fetcher
from atlas_extractor.exceptions import UpstreamError

# httpx already decoded the body, so these no longer describe it.
_DROPPED_RESPONSE_HEADERS: frozenset[str] = frozenset(
    {"content-encoding", "content-length", "transfer-encoding"}
)

_HANDLED_EXTENSIONS: tuple[str, ...] = (
    "cookiejar",
    "timeout",
    "legacy_ssl",
    "keep_header_casing",
)

FETCHER_PREFERENCE: int = 1000


def _read_body(data: Any) -> bytes | None:
    """Normalise a yt-dlp request payload to bytes."""
    if data is None:
        return None
    if isinstance(data, bytes):
        return data
    if hasattr(data, "read"):
        return data.read()
    return b"".join(data)


class _CookieResponse:
    """Adapter exposing response headers the way :mod:`http.cookiejar` expects."""

    def __init__(self, headers: Iterable[tuple[str, str]]) -> None:
        self._message = email.message.Message()
        for name, value in headers:
            self._message[name] = value

    def info(self) -> email.message.Message:
        return self._message


class FetcherRH(RequestHandler):
    """yt-dlp request handler that delegates every exchange to a fetcher."""

    RH_NAME = "atlas-fetcher"
    _SUPPORTED_URL_SCHEMES = ("http", "https")
    # Proxies are the fetcher's concern.
    _SUPPORTED_PROXY_SCHEMES = None

    def __init__(self, *, fetcher: Fetcher, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._fetcher: Fetcher = fetcher

    def _check_extensions(self, extensions: dict[str, Any]) -> None:
        super()._check_extensions(extensions)
        for key in _HANDLED_EXTENSIONS:
            extensions.pop(key, None)

    # ------------------------------------------------------------------
    # Request translation
    # ------------------------------------------------------------------

    def _cookiejar(self, request: Request) -> Any:
        cookiejar = request.extensions.get("cookiejar")
        return self.cookiejar if cookiejar is None else cookiejar

    def _outbound_headers(self, request: Request) -> tuple[tuple[str, tuple[str, ...]], ...]:
        merged: dict[str, tuple[str, str]] = {}
        for source in (self.headers or {}, request.headers):
            for name, value in source.items():
                merged[name.lower()] = (name, value)

        cookiejar = self._cookiejar(request)
        if cookiejar is not None:
            carrier = urllib.request.Request(request.url)
            cookiejar.add_cookie_header(carrier)
            cookie = carrier.get_header("Cookie")
            if cookie:
                merged["cookie"] = ("Cookie", cookie)

        return tuple((name, (value,)) for name, value in merged.values())

    def _store_cookies(self, request: Request, response: FetchResponse) -> None:
        cookiejar = self._cookiejar(request)
        if cookiejar is None:
            return
        cookiejar.extract_cookies(
            _CookieResponse(response.headers),
            urllib.request.Request(response.final_url),
        )

    @staticmethod
    def _response_headers(response: FetchResponse) -> dict[str, str]:
        return {
            name: value
            for name, value in response.headers
            if name.lower() not in _DROPPED_RESPONSE_HEADERS
        }

    # ------------------------------------------------------------------
    # RequestHandler hook
    # ------------------------------------------------------------------

    def _send(self, request: Request) -> Response:
        fetch_request = FetchRequest(
            method=request.method,
            url=request.url,
            headers=self._outbound_headers(request),
            body=_read_body(request.data),
        )
        try:
            fetched = self._fetcher.execute(fetch_request)
        except UpstreamError as exc:
            if exc.rate_limited:
                limited = Response(
                    io.BytesIO(b""),
                    request.url,
                    {},
                    status=429,
                    reason="Too Many Requests",
                )
                raise HTTPError(limited) from exc
            raise TransportError(str(exc), cause=exc, handler=self) from exc

        self._store_cookies(request, fetched)
        response = Response(
            io.BytesIO(fetched.content),
            fetched.final_url,
            self._response_headers(fetched),
            status=fetched.status,
        )
        if not 200 <= fetched.status < 300:
            raise HTTPError(response)
        return response


def prefer_fetcher(handler: RequestHandler, request: Request) -> int:
    """Request-director preference that ranks :class:`FetcherRH` first."""
    return FETCHER_PREFERENCE if isinstance(handler, FetcherRH) else 0


def with_fetcher_user_agent(params: dict[str, Any], fetcher: Fetcher) -> dict[str, Any]:
    """Return *params* with the fetcher's User-Agent in ``http_headers``.

    yt-dlp otherwise sends a random browser User-Agent on every request,
    which would override the one the fetcher was configured with.
    Fetchers without a ``user_agent`` leave yt-dlp's headers untouched.
    """
    user_agent = getattr(fetcher, "user_agent", None)
    if not user_agent:
        return params
    headers = HTTPHeaderDict(std_headers, params.get("http_headers"))
    headers["User-Agent"] = user_agent
    return {**params, "http_headers": headers}


class FetcherYoutubeDL(yt_dlp.YoutubeDL):
    """``YoutubeDL`` whose request director prefers a :class:`FetcherRH`."""

    def __init__(self, params: dict[str, Any], *, fetcher: Fetcher) -> None:
        # Must be set before ``super().__init__`` builds the request director.
        self._atlas_fetcher: Fetcher = fetcher
        super().__init__(with_fetcher_user_agent(params, fetcher))

    def build_request_director(self, handlers: Any, preferences: Any = None) -> Any:
        director = super().build_request_director(handlers, preferences)
        director.add_handler(
            FetcherRH(
                fetcher=self._atlas_fetcher,
                logger=director.logger,
                headers=self.params.get("http_headers"),
                cookiejar=self.cookiejar,
            )
        )
        director.preferences.add(prefer_fetcher)
        return director
