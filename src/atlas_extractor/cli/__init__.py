"""CLI layer — argument parsing, process bootstrap, and error boundary.

This package is the outermost layer of the application.  It may import
from ``core``, ``infra``, ``api`` and ``config``, but no other layer may
import from ``cli``.
"""
