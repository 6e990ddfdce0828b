"""Allow ``python -m atlas_extractor`` invocation.

This module simply delegates to the CLI error-boundary entry point so
that ``python -m atlas_extractor`` behaves identically to the
``atlas-extractor`` console script.
"""

from __future__ import annotations

from atlas_extractor.cli.app import cli

if __name__ == "__main__":
    cli()
