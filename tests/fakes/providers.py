"""
Fake market data providers and ledger store for tests: deterministic data,
fail-N-then-succeed, always-fail.

No live network; used by the selector, service and CLI tests.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from crypto_tracker.core.errors import PersistenceError, ProviderError, TransientNetworkError
from crypto_tracker.currencies import default_fiat_currencies
from crypto_tracker.models import Asset, FiatCurrency, Ledger, PriceHistoryPoint, normalize_asset_id

# Deterministic timestamp for reproducible tests.
FAKE_UPDATED_AT = datetime(2026, 1, 1, tzinfo=timezone.utc)

DEFAULT_PRICES = {"bitcoin": 50000.0, "ethereum": 3000.0, "solana": 150.0}


def make_asset(asset_id: str, price: float, rank: Optional[int] = None, provider: str = "") -> Asset:
    return Asset(
        id=asset_id,
        name=asset_id.capitalize(),
        symbol=asset_id[:3].upper(),
        price=price,
        market_cap=price * 1_000_000,
        rank=rank,
        last_updated=FAKE_UPDATED_AT,
        provider_name=provider,
    )


# ---------------------------------------------------------------------------
# Always succeed with deterministic data
# ---------------------------------------------------------------------------


class FakeProvider:
    """Provider that always answers from in-memory tables. No network."""

    def __init__(
        self,
        name: str,
        priority: int = 1,
        prices: Optional[Dict[str, float]] = None,
        *,
        supports_fiat: bool = False,
        requests_per_minute: int = 60000,
        exchange_rates: Optional[Dict[tuple, float]] = None,
        fiat: Optional[List[FiatCurrency]] = None,
        history_days_missing: bool = False,
    ):
        self._name = name
        self.priority = priority
        self.supports_fiat = supports_fiat
        self.requests_per_minute = requests_per_minute
        self.prices = dict(DEFAULT_PRICES if prices is None else prices)
        self.exchange_rates = dict(exchange_rates or {})
        self.fiat = fiat if fiat is not None else default_fiat_currencies()
        self.history_days_missing = history_days_missing
        self.calls: Counter = Counter()
        self.ping_ok = True
        self.down = False

    @property
    def provider_name(self) -> str:
        return self._name

    @property
    def call_count(self) -> int:
        return sum(self.calls.values())

    def _before(self, method: str) -> None:
        self.calls[method] += 1
        if self.down:
            raise RuntimeError(f"{self._name} is down")

    def fetch_top(self, limit: int = 100) -> List[Asset]:
        self._before("fetch_top")
        ordered = sorted(self.prices.items(), key=lambda kv: -kv[1])
        return [
            make_asset(asset_id, price, rank=i, provider=self._name)
            for i, (asset_id, price) in enumerate(ordered[:limit], start=1)
        ]

    def fetch_by_id(self, asset_id: str) -> Asset:
        self._before("fetch_by_id")
        key = normalize_asset_id(asset_id)
        if key not in self.prices:
            raise ProviderError(self._name, f"unknown asset {key}")
        return make_asset(key, self.prices[key], provider=self._name)

    def fetch_history(self, asset_id: str, days: int) -> List[PriceHistoryPoint]:
        self._before("fetch_history")
        key = normalize_asset_id(asset_id)
        if self.history_days_missing or key not in self.prices:
            raise ProviderError(self._name, f"no history for {key}")
        n = 24 * days if days <= 1 else days
        step = timedelta(hours=1) if days <= 1 else timedelta(days=1)
        return [
            PriceHistoryPoint(timestamp=FAKE_UPDATED_AT + i * step, price=self.prices[key], volume=1.0)
            for i in range(n)
        ]

    def fetch_fiat_rates(self) -> List[FiatCurrency]:
        self._before("fetch_fiat_rates")
        return list(self.fiat) if self.supports_fiat else []

    def fetch_exchange_rate(self, from_code: str, to_code: str) -> float:
        self._before("fetch_exchange_rate")
        key = (from_code.upper(), to_code.upper())
        if key not in self.exchange_rates:
            raise ProviderError(self._name, f"no rate for {key[0]}/{key[1]}")
        return self.exchange_rates[key]

    def ping(self) -> bool:
        self._before("ping")
        return self.ping_ok


# ---------------------------------------------------------------------------
# Fail N times then succeed
# ---------------------------------------------------------------------------


class FakeProviderFailNThenSucceed(FakeProvider):
    """Fails the first N calls of any method with a transient error, then answers."""

    def __init__(self, name: str, fail_times: int, priority: int = 1, **kwargs):
        super().__init__(name, priority, **kwargs)
        self._fail_times = fail_times

    def _before(self, method: str) -> None:
        super()._before(method)
        if self.call_count <= self._fail_times:
            raise TransientNetworkError(f"{self._name} simulated failure #{self.call_count}")


# ---------------------------------------------------------------------------
# Always fail
# ---------------------------------------------------------------------------


class FakeProviderAlwaysFail(FakeProvider):
    """Every call fails. transient=True raises retryable errors, else a plain RuntimeError."""

    def __init__(self, name: str, priority: int = 1, *, transient: bool = False, **kwargs):
        super().__init__(name, priority, **kwargs)
        self._transient = transient

    def _before(self, method: str) -> None:
        super()._before(method)
        if self._transient:
            raise TransientNetworkError(f"{self._name} is unreachable")
        raise RuntimeError(f"{self._name} is down")

    def ping(self) -> bool:
        self.calls["ping"] += 1
        return False


# ---------------------------------------------------------------------------
# Ledger store
# ---------------------------------------------------------------------------


class InMemoryLedgerStore:
    """LedgerStore that keeps a serialized copy; fail_save simulates a broken disk."""

    def __init__(self, ledger: Optional[Ledger] = None, *, fail_save: bool = False):
        self._data = (ledger or Ledger()).to_dict()
        self.fail_save = fail_save
        self.save_count = 0

    def load(self) -> Ledger:
        return Ledger.from_dict(self._data)

    def save(self, ledger: Ledger) -> None:
        if self.fail_save:
            raise PersistenceError("simulated write failure")
        self._data = ledger.to_dict()
        self.save_count += 1
