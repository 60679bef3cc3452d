"""
Provider architecture for crypto market data.

Providers implement MarketDataProvider and are registered via a config-driven
priority list. Every call goes through a per-provider rate limiter and
retry/backoff; the selector fails over to the next provider by priority.
"""

from __future__ import annotations

from .base import MarketDataProvider, ProviderHealth, ProviderStatus
from .registry import ProviderRegistry
from .resilience import RateLimiter, ResilientInvoker, RetryConfig, resilient_call
from .selector import ProviderSelector

__all__ = [
    "MarketDataProvider",
    "ProviderHealth",
    "ProviderStatus",
    "ProviderRegistry",
    "ProviderSelector",
    "RateLimiter",
    "ResilientInvoker",
    "RetryConfig",
    "resilient_call",
]
