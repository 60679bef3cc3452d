"""
Default provider registry configuration.

Registers built-in providers and builds the provider list from config.yaml.
To add a new provider, register it here and add it to the priority list.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from .aggregators.coincap import CoinCapProvider
from .aggregators.coingecko import CoinGeckoProvider
from .base import MarketDataProvider
from .cex.binance import BinanceProvider
from .registry import ProviderRegistry

logger = logging.getLogger(__name__)

# Default provider priority (config.yaml can override these)
DEFAULT_PRIORITY = ["coingecko", "coincap", "binance"]


def create_default_registry() -> ProviderRegistry:
    """Create a registry with all built-in providers."""
    registry = ProviderRegistry()
    registry.register("coingecko", CoinGeckoProvider)
    registry.register("coincap", CoinCapProvider)
    registry.register("binance", BinanceProvider)
    return registry


def create_default_providers(
    registry: Optional[ProviderRegistry] = None,
    priority: Optional[List[str]] = None,
) -> List[MarketDataProvider]:
    """Build the enabled providers, ordered by rank."""
    from ..config import provider_priority

    reg = registry or create_default_registry()
    order = priority or provider_priority() or DEFAULT_PRIORITY
    providers = reg.build_chain(order)
    logger.debug("Enabled providers: %s", [p.provider_name for p in providers])
    return providers
