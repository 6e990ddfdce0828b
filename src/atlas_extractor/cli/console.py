"""CLI console and logging helpers with optional Rich support.

This module intentionally avoids module-level imports of optional UI
dependencies so bootstrap paths (``--help``, ``--version``) remain
functional even when Rich is not installed.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

from atlas_extractor.exceptions import EnvironmentError

LOG_FORMAT: str = "%(name)s: %(message)s"
PLAIN_LOG_FORMAT: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _load_rich_console_class() -> type[Any]:
	"""Return ``rich.console.Console`` class or raise ``EnvironmentError``."""
	try:
		from rich.console import Console
	except ModuleNotFoundError as exc:
		raise EnvironmentError(
			"rich is not installed. Install with: pip install rich",
		) from exc
	return Console


def get_rich_console() -> Any:
	"""Create a Rich console instance targeting stderr."""
	console_class = _load_rich_console_class()
	return console_class(stderr=True)


def _build_log_handler() -> logging.Handler:
	"""Return a ``RichHandler`` on stderr, or a plain stream handler."""
	try:
		from rich.logging import RichHandler
	except ModuleNotFoundError:
		handler: logging.Handler = logging.StreamHandler(sys.stderr)
		handler.setFormatter(logging.Formatter(PLAIN_LOG_FORMAT))
		return handler
	handler = RichHandler(
		console=get_rich_console(),
		show_path=False,
		rich_tracebacks=True,
	)
	handler.setFormatter(logging.Formatter(LOG_FORMAT))
	return handler


def configure_logging(verbose: bool = False) -> None:
	"""Install our stderr handler on the root logger, replacing a previous one.

	yt-dlp chatter arrives on ``atlas_extractor.engine`` at DEBUG and only
	shows up with *verbose*.
	"""
	root = logging.getLogger()
	for existing in list(root.handlers):
		if getattr(existing, "_atlas_handler", False):
			root.removeHandler(existing)
	handler = _build_log_handler()
	handler._atlas_handler = True  # type: ignore[attr-defined]
	root.addHandler(handler)
	root.setLevel(logging.DEBUG if verbose else logging.INFO)
	# httpx logs every request at INFO.
	logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


class _ConsoleProxy:
	"""Minimal ``print``-compatible proxy with Rich fallback."""

	def print(self, *objects: object) -> None:
		"""Render with Rich when available, else plain stderr print."""
		try:
			rich_console = get_rich_console()
		except EnvironmentError:
			print(*objects, file=sys.stderr)
			return
		rich_console.print(*objects)


console = _ConsoleProxy()
