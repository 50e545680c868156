"""
Notebook Store - the versioned note store behind a personal notebook backend.

Notes live in folders, keep a dense append-only version history, move in and
out of a trash via a soft-delete flag, and can be exported to and merged back
from a portable JSON dataset.

This version uses synchronous operations.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("notebook-store")
except PackageNotFoundError:
    __version__ = "0.3.0"
