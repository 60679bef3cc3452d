"""
Provider interface and health tracking.

Every market data source implements MarketDataProvider and returns the
normalized records from crypto_tracker.models. Providers raise
TransientNetworkError for transport problems (retried) and ProviderError for
everything else (not retried).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import List, Optional, Protocol, runtime_checkable

from ..models import Asset, FiatCurrency, PriceHistoryPoint
from ..timeutils import to_iso, utc_now


class ProviderStatus(enum.Enum):
    """Health status of a data provider."""

    OK = "OK"
    DEGRADED = "DEGRADED"
    DOWN = "DOWN"


@dataclass
class ProviderHealth:
    """Mutable health state for a single provider instance."""

    provider_name: str
    status: ProviderStatus = ProviderStatus.OK
    last_ok_at: Optional[str] = None
    fail_count: int = 0
    last_error: Optional[str] = None

    def record_success(self) -> None:
        self.status = ProviderStatus.OK
        self.fail_count = 0
        self.last_ok_at = to_iso(utc_now())
        self.last_error = None

    def record_failure(self, error: str) -> None:
        self.fail_count += 1
        self.last_error = error[:500]
        if self.fail_count >= 5:
            self.status = ProviderStatus.DOWN
        elif self.fail_count >= 2:
            self.status = ProviderStatus.DEGRADED


@runtime_checkable
class MarketDataProvider(Protocol):
    """Protocol for crypto market data providers."""

    @property
    def provider_name(self) -> str: ...

    @property
    def priority(self) -> int:
        """Lower is preferred."""
        ...

    @property
    def supports_fiat(self) -> bool: ...

    @property
    def requests_per_minute(self) -> int: ...

    def fetch_top(self, limit: int = 100) -> List[Asset]:
        """Top listings by market cap (or volume where the source has no caps)."""
        ...

    def fetch_by_id(self, asset_id: str) -> Asset: ...

    def fetch_history(self, asset_id: str, days: int) -> List[PriceHistoryPoint]: ...

    def fetch_fiat_rates(self) -> List[FiatCurrency]: ...

    def fetch_exchange_rate(self, from_code: str, to_code: str) -> float:
        """Units of to_code per one unit of from_code."""
        ...

    def ping(self) -> bool: ...
