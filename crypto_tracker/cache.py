"""
Quote caches: bulk market snapshot, price history and fiat rates.

The snapshot has no expiry: a stale quote is preferable to a gap, so entries
stay until a later refresh overwrites them. History and fiat-rate entries
carry an absolute expiry instant and a read at or after it is a miss.
All caches are safe to share between the refresh threads and callers.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Generic, Hashable, Iterable, List, Optional, Tuple, TypeVar

from .models import Asset, FiatCurrency, HistorySeries, normalize_asset_id
from .timeutils import utc_now

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    value: V
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class TtlCache(Generic[K, V]):
    """Thread-safe map whose entries expire ttl_seconds after being stored."""

    def __init__(self, ttl_seconds: float, clock: Clock = time.monotonic) -> None:
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: Dict[K, CacheEntry[V]] = {}
        self._lock = threading.Lock()

    def get(self, key: K) -> Optional[V]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            return entry.value

    def put(self, key: K, value: V) -> None:
        entry = CacheEntry(value=value, expires_at=self._clock() + self.ttl_seconds)
        with self._lock:
            self._entries[key] = entry

    def invalidate(self, key: Optional[K] = None) -> None:
        """Drop one key, or everything when key is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class SnapshotCache:
    """Last known quote per asset id. Never evicts."""

    def __init__(self) -> None:
        self._assets: Dict[str, Asset] = {}
        self._lock = threading.Lock()
        self.last_refreshed: Optional[datetime] = None

    def upsert_all(self, assets: Iterable[Asset]) -> int:
        """Overwrite the given assets; ids missing from this batch keep their old quote."""
        count = 0
        with self._lock:
            for asset in assets:
                self._assets[normalize_asset_id(asset.id)] = asset
                count += 1
            self.last_refreshed = utc_now()
        return count

    def upsert(self, asset: Asset) -> None:
        with self._lock:
            self._assets[normalize_asset_id(asset.id)] = asset

    def get(self, asset_id: str) -> Optional[Asset]:
        with self._lock:
            return self._assets.get(normalize_asset_id(asset_id))

    def values(self) -> List[Asset]:
        with self._lock:
            return list(self._assets.values())

    def is_empty(self) -> bool:
        with self._lock:
            return not self._assets

    def __len__(self) -> int:
        with self._lock:
            return len(self._assets)


class FiatTable:
    """Fiat currencies by code. Replaced as a whole when reloaded."""

    def __init__(self) -> None:
        self._by_code: Dict[str, FiatCurrency] = {}
        self._lock = threading.Lock()

    def replace(self, currencies: Iterable[FiatCurrency]) -> None:
        table = {c.code.upper(): c for c in currencies if c.is_usable}
        with self._lock:
            self._by_code = table

    def get(self, code: str) -> Optional[FiatCurrency]:
        with self._lock:
            return self._by_code.get(code.upper())

    def values(self) -> List[FiatCurrency]:
        with self._lock:
            return sorted(self._by_code.values(), key=lambda c: c.code)

    def is_empty(self) -> bool:
        with self._lock:
            return not self._by_code


class QuoteCache:
    """Everything the engine knows about the market, rebuildable from providers."""

    def __init__(
        self,
        history_ttl_s: float = 300.0,
        fiat_rate_ttl_s: float = 120.0,
        clock: Clock = time.monotonic,
    ) -> None:
        self.snapshot = SnapshotCache()
        self.history: TtlCache[Tuple[str, int], HistorySeries] = TtlCache(history_ttl_s, clock)
        self.fiat_rates: TtlCache[Tuple[str, str], float] = TtlCache(fiat_rate_ttl_s, clock)
        self.fiat = FiatTable()
