"""
Top-level public API surface. Stable facades only.
Canonical entrypoint: import crypto_tracker; build a CryptoTracker from
providers.defaults and a JsonLedgerStore. Does not import cli.
"""

from __future__ import annotations

from . import core, events, models, providers, rng
from ._version import __version__
from .ledger import JsonLedgerStore, LedgerStore
from .service import CryptoTracker

# Do not add exports without updating __all__.
__all__ = [
    "__version__",
    "CryptoTracker",
    "JsonLedgerStore",
    "LedgerStore",
    "core",
    "events",
    "models",
    "providers",
    "rng",
]
