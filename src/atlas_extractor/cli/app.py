"""CLI application entry point for atlas-extractor.

This module is the **sole error boundary** for the process.  It catches
:class:`~atlas_extractor.exceptions.AtlasExtractorError`,
``KeyboardInterrupt``, and any unexpected ``Exception``, rendering
user-friendly messages via Rich and returning well-defined exit codes.

Two modes share the same wiring:

* ``atlas-extractor`` — serve the HTTP API (uvicorn).
* ``atlas-extractor --extract <url>`` — extract once, print the flattened
  JSON result to stdout, exit.

Architecture notes
------------------
* No business logic lives here — all work is delegated to the core/service,
  infrastructure and api layers.
* This module is the only place that builds the infrastructure graph and
  translates between the domain world and the OS process exit code.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import TYPE_CHECKING

from atlas_extractor.cli import exit_codes
from atlas_extractor.cli.console import configure_logging, console
from atlas_extractor.config import Settings
from atlas_extractor.core.extraction_service import ExtractionService
from atlas_extractor.core.protocols import Fetcher
from atlas_extractor.exceptions import AtlasExtractorError
from atlas_extractor.version import __version__

if TYPE_CHECKING:
    from atlas_extractor.infra.http_fetcher import HttpxFetcher

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    """Construct the top-level argument parser.

    Flags override the matching environment variables.
    """
    parser = argparse.ArgumentParser(
        prog="atlas-extractor",
        description="Resolve media page URLs to audio streams or playlists.",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--extract",
        metavar="URL",
        default=None,
        help="Extract a single URL, print the JSON result and exit.",
    )
    parser.add_argument("--host", default=None, help="Interface to bind (env: HOST).")
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on (env: PORT, default 4001).",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Concurrent extractions (env: EXTRACTOR_WORKERS, default 4).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug output, including yt-dlp's.",
    )
    return parser


def _resolve_settings(args: argparse.Namespace) -> Settings:
    settings = Settings()
    overrides: dict[str, object] = {}
    if args.host:
        overrides["host"] = args.host
    if args.port is not None and 0 < args.port < 65536:
        overrides["port"] = args.port
    if args.workers is not None and args.workers > 0:
        overrides["workers"] = args.workers
    return settings.model_copy(update=overrides) if overrides else settings


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------

def build_fetcher(settings: Settings) -> HttpxFetcher:
    """Create the shared upstream fetcher; the caller closes it."""
    from atlas_extractor.infra.http_fetcher import HttpxFetcher

    return HttpxFetcher(
        user_agent=settings.user_agent,
        connect_timeout=settings.connect_timeout,
        request_timeout=settings.request_timeout,
    )


def build_service(settings: Settings, fetcher: Fetcher) -> ExtractionService:
    """Instantiate the engine and the extraction service once, over *fetcher*."""
    from atlas_extractor.infra.ytdlp_engine import YtDlpEngine

    return ExtractionService(YtDlpEngine(fetcher))


# ---------------------------------------------------------------------------
# Command dispatch
# ---------------------------------------------------------------------------

def _handle_extract(url: str, settings: Settings) -> int:
    """Extract *url* once and write the flattened result to stdout.

    Failures are reported in-band as an ``error`` result; the exit code
    tells caller-correctable failures apart from upstream ones.
    """
    from atlas_extractor.core.host_policy import ensure_allowed
    from atlas_extractor.core.models import ErrorResult, ExtractResult
    from atlas_extractor.core.response_mapper import map_exception, to_payload

    status = 200
    result: ExtractResult
    try:
        ensure_allowed(url)
        with build_fetcher(settings) as fetcher:
            result = build_service(settings, fetcher).extract(url)
    except AtlasExtractorError as exc:
        mapped = map_exception(exc)
        status, result = mapped.status, ErrorResult(message=mapped.message)
        if exc.hint:
            console.print(f"[yellow]Hint:[/yellow] {exc.hint}")
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unexpected failure extracting %s", url)
        mapped = map_exception(exc)
        status, result = mapped.status, ErrorResult(message=mapped.message)

    sys.stdout.write(json.dumps(to_payload(result), ensure_ascii=False) + "\n")
    sys.stdout.flush()
    return exit_codes.for_status(status)


def _handle_serve(settings: Settings) -> int:
    """Build the app and block in uvicorn until interrupted."""
    import uvicorn

    from atlas_extractor.api.app import create_app

    with build_fetcher(settings) as fetcher:
        app = create_app(build_service(settings, fetcher), settings)
        logger.info(
            "Extractor listening on %s:%d (%d workers)",
            settings.host,
            settings.port,
            settings.workers,
        )
        uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
    return exit_codes.SUCCESS


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    """Run the atlas-extractor CLI.

    Parameters
    ----------
    argv:
        Explicit argument list.  When ``None`` (default), ``sys.argv[1:]``
        is used.  Accepting *argv* enables deterministic testing without
        monkeypatching.

    Returns
    -------
    int
        OS process exit code.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    settings = _resolve_settings(args)

    if args.extract is not None:
        url = args.extract.strip()
        if not url:
            parser.error("--extract requires a non-blank URL")
        return _handle_extract(url, settings)

    return _handle_serve(settings)


# ---------------------------------------------------------------------------
# Script-level error boundary
# ---------------------------------------------------------------------------

def cli() -> None:
    """Top-level error boundary invoked by the console-script entry point.

    This function wraps :func:`main` and guarantees the process never
    exits with a raw stack trace during normal usage.
    """
    try:
        code = main()
        sys.exit(code)
    except AtlasExtractorError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        if exc.hint:
            console.print(f"[yellow]Hint:[/yellow] {exc.hint}")
        sys.exit(exit_codes.GENERAL_ERROR)
    except KeyboardInterrupt:
        console.print("\n[yellow]Aborted by user.[/yellow]")
        sys.exit(exit_codes.KEYBOARD_INTERRUPT)
    except Exception as exc:  # noqa: BLE001
        console.print(
            "[bold red]Unexpected error.[/bold red] "
            "Please report this issue.\n"
            f"  {type(exc).__name__}: {exc}"
        )
        sys.exit(exit_codes.UNEXPECTED_ERROR)
