"""
Provider registry and default provider construction.
"""
from __future__ import annotations

import logging

import pytest

from crypto_tracker.providers.aggregators.coincap import CoinCapProvider
from crypto_tracker.providers.aggregators.coingecko import CoinGeckoProvider
from crypto_tracker.providers.base import MarketDataProvider
from crypto_tracker.providers.cex.binance import BinanceProvider
from crypto_tracker.providers.defaults import create_default_providers, create_default_registry
from crypto_tracker.providers.registry import ProviderRegistry
from tests.fakes.providers import FakeProvider


class TestProviderRegistry:
    def test_register_and_get_instance(self):
        registry = ProviderRegistry()
        fake = FakeProvider("fake")
        registry.register("Fake", fake)
        assert registry.names == ["fake"]
        assert registry.get("FAKE") is fake

    def test_class_factory_instantiated_once(self):
        registry = ProviderRegistry()
        registry.register("coingecko", CoinGeckoProvider)
        first = registry.get("coingecko")
        assert isinstance(first, CoinGeckoProvider)
        assert registry.get("coingecko") is first

    def test_unknown_name_raises(self):
        with pytest.raises(KeyError, match="Unknown provider"):
            ProviderRegistry().get("nope")

    def test_build_chain_sorts_by_priority_and_skips_unknown(self, caplog):
        registry = ProviderRegistry()
        registry.register("slow", FakeProvider("slow", priority=5))
        registry.register("fast", FakeProvider("fast", priority=1))
        with caplog.at_level(logging.WARNING):
            chain = registry.build_chain(["slow", "ghost", "fast"])
        assert [p.provider_name for p in chain] == ["fast", "slow"]
        assert "ghost" in caplog.text

    def test_build_chain_defaults_to_all(self):
        registry = ProviderRegistry()
        registry.register("a", FakeProvider("a", priority=2))
        registry.register("b", FakeProvider("b", priority=1))
        assert [p.provider_name for p in registry.build_chain()] == ["b", "a"]


class TestDefaults:
    def test_default_registry_has_builtin_providers(self):
        assert set(create_default_registry().names) == {"coingecko", "coincap", "binance"}

    def test_default_providers_ordered_and_conform(self):
        providers = create_default_providers(priority=["binance", "coincap", "coingecko"])
        assert [type(p) for p in providers] == [CoinGeckoProvider, CoinCapProvider, BinanceProvider]
        for p in providers:
            assert isinstance(p, MarketDataProvider)

    def test_builtin_provider_metadata(self):
        gecko, cap, binance = CoinGeckoProvider(), CoinCapProvider(), BinanceProvider()
        assert (gecko.provider_name, gecko.priority, gecko.supports_fiat, gecko.requests_per_minute) == (
            "CoinGecko", 1, True, 50,
        )
        assert (cap.provider_name, cap.priority, cap.supports_fiat, cap.requests_per_minute) == (
            "CoinCap", 2, False, 200,
        )
        assert (binance.provider_name, binance.priority, binance.supports_fiat) == ("Binance", 3, True)

    def test_priority_from_env(self, monkeypatch):
        monkeypatch.setenv("CRYPTO_TRACKER_CONFIG", "/nonexistent/config.yaml")
        monkeypatch.setenv("CRYPTO_TRACKER_PROVIDERS", "binance")
        providers = create_default_providers()
        assert [p.provider_name for p in providers] == ["Binance"]
