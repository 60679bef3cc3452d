"""
Quote caches: TTL expiry with an injected clock, snapshot upsert semantics.
"""
from __future__ import annotations

from crypto_tracker.cache import CacheEntry, FiatTable, QuoteCache, SnapshotCache, TtlCache
from crypto_tracker.models import FiatCurrency
from tests.fakes.providers import make_asset


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestTtlCache:
    def test_hit_before_expiry(self):
        clock = FakeClock()
        cache = TtlCache(300, clock=clock)
        cache.put(("bitcoin", 7), "series")
        clock.advance(299)
        assert cache.get(("bitcoin", 7)) == "series"

    def test_miss_at_expiry_and_evicted(self):
        clock = FakeClock()
        cache = TtlCache(300, clock=clock)
        cache.put("k", 1)
        clock.advance(300)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_put_refreshes_expiry(self):
        clock = FakeClock()
        cache = TtlCache(10, clock=clock)
        cache.put("k", 1)
        clock.advance(8)
        cache.put("k", 2)
        clock.advance(8)
        assert cache.get("k") == 2

    def test_invalidate(self):
        cache = TtlCache(10)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.invalidate("a")
        assert cache.get("a") is None
        assert cache.get("b") == 2
        cache.invalidate()
        assert len(cache) == 0

    def test_entry_expiry_boundary(self):
        entry = CacheEntry(value=1, expires_at=10.0)
        assert not entry.is_expired(9.999)
        assert entry.is_expired(10.0)


class TestSnapshotCache:
    def test_upsert_keeps_assets_missing_from_later_refresh(self):
        snap = SnapshotCache()
        snap.upsert_all([make_asset("bitcoin", 1.0), make_asset("dogecoin", 0.1)])
        snap.upsert_all([make_asset("bitcoin", 2.0)])
        assert snap.get("bitcoin").price == 2.0
        assert snap.get("dogecoin").price == 0.1
        assert len(snap) == 2

    def test_lookup_is_case_insensitive(self):
        snap = SnapshotCache()
        snap.upsert(make_asset("bitcoin", 1.0))
        assert snap.get(" BitCoin ") is not None

    def test_last_refreshed_set_by_bulk_upsert(self):
        snap = SnapshotCache()
        assert snap.is_empty()
        assert snap.last_refreshed is None
        assert snap.upsert_all([make_asset("bitcoin", 1.0)]) == 1
        assert snap.last_refreshed is not None


class TestFiatTable:
    def test_replace_drops_unusable_rates(self):
        table = FiatTable()
        table.replace(
            [
                FiatCurrency(code="eur", name="Euro", symbol="€", rate_to_base=0.9),
                FiatCurrency(code="XXX", name="Broken", symbol="?", rate_to_base=0.0),
            ]
        )
        assert [c.code for c in table.values()] == ["eur"]
        assert table.get("EUR") is not None
        assert table.get("XXX") is None


def test_quote_cache_ttls():
    clock = FakeClock()
    cache = QuoteCache(history_ttl_s=300, fiat_rate_ttl_s=120, clock=clock)
    cache.history.put(("bitcoin", 7), "h")
    cache.fiat_rates.put(("USD", "EUR"), 0.9)
    clock.advance(121)
    assert cache.fiat_rates.get(("USD", "EUR")) is None
    assert cache.history.get(("bitcoin", 7)) == "h"
    clock.advance(180)
    assert cache.history.get(("bitcoin", 7)) is None
