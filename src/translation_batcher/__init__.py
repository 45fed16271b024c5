"""Translation Batcher: rate-limited, deduplicated translation lookups.

Spreads text-lookup requests from many actors across host cycles, collapses
identical requests, shares a fixed per-cycle budget fairly, and routes the
asynchronous results back to everyone who asked.

Version Management
------------------
``__version__`` is read from the installed package metadata.  The single
source of truth is the ``version`` field in ``pyproject.toml``.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__: str = version("translation-batcher")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
