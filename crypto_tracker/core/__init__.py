"""
Stable facade: error taxonomy only. Do not add exports without updating __all__.
"""

from __future__ import annotations

from .errors import (
    AllProvidersExhausted,
    CryptoTrackerError,
    PersistenceError,
    ProviderError,
    TransientNetworkError,
    ValidationError,
)

# Do not add exports without updating __all__.
__all__ = [
    "AllProvidersExhausted",
    "CryptoTrackerError",
    "PersistenceError",
    "ProviderError",
    "TransientNetworkError",
    "ValidationError",
]
