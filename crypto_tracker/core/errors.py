"""
Shared exception types for crypto_tracker.

Provider-layer code raises these; the engine facade catches them at its
boundary and degrades to cached or placeholder data. Only ValidationError is
meant to reach the caller of the public surface.
"""

from __future__ import annotations

from typing import List, Optional


class CryptoTrackerError(Exception):
    """Base exception for crypto_tracker; catch this for any package-raised error."""

    pass


class TransientNetworkError(CryptoTrackerError):
    """Transport failure or timeout talking to a provider. Retried by the invoker."""

    pass


class ProviderError(CryptoTrackerError):
    """A provider call failed for good: semantic error or retries exhausted."""

    def __init__(
        self,
        provider_name: str,
        message: str,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(f"{provider_name}: {message}")
        self.provider_name = provider_name
        self.message = message
        self.cause = cause


class AllProvidersExhausted(CryptoTrackerError):
    """Every provider failed the same logical operation. Triggers degraded mode."""

    def __init__(self, operation: str, errors: Optional[List[str]] = None) -> None:
        self.operation = operation
        self.errors = list(errors or [])
        detail = "; ".join(self.errors) if self.errors else "no providers configured"
        super().__init__(f"All providers failed for {operation}: {detail}")


class ValidationError(CryptoTrackerError):
    """Rejected ledger input (e.g. non-positive amount). Never persisted."""

    pass


class PersistenceError(CryptoTrackerError):
    """Ledger load/save failure."""

    pass


__all__ = [
    "AllProvidersExhausted",
    "CryptoTrackerError",
    "PersistenceError",
    "ProviderError",
    "TransientNetworkError",
    "ValidationError",
]
