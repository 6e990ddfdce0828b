"""Exit-code constants used by the CLI layer.

Centralised here so that every exit path uses a well-known, tested
value rather than magic integers scattered across the codebase.
"""

from __future__ import annotations

SUCCESS: int = 0
"""Clean exit — command completed without error."""

GENERAL_ERROR: int = 1
"""A caller-correctable failure (bad URL, blocked, unsupported content)."""

KEYBOARD_INTERRUPT: int = 130
"""User pressed Ctrl+C.  Follows POSIX convention (128 + SIGINT=2)."""

UNEXPECTED_ERROR: int = 2
"""An upstream or unexpected failure; retrying later may help."""


def for_status(status: int) -> int:
    """Map an HTTP-equivalent status to a process exit code."""
    if status < 400:
        return SUCCESS
    if status < 500:
        return GENERAL_ERROR
    return UNEXPECTED_ERROR
