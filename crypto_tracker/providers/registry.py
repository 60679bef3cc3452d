"""
Provider registry: central catalog of available providers.

Providers register here by name. A configured priority list decides which of
them are built; the selector then orders them by their own priority rank.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type, Union

from .base import MarketDataProvider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Registry mapping provider names to classes/instances.

    Usage:
        registry = ProviderRegistry()
        registry.register("coingecko", CoinGeckoProvider)
        registry.register("binance", BinanceProvider)

        providers = registry.build_chain(["coingecko", "binance"])
    """

    def __init__(self) -> None:
        self._factories: Dict[str, Any] = {}
        self._instances: Dict[str, MarketDataProvider] = {}

    def register(
        self,
        name: str,
        factory: Union[Type[MarketDataProvider], MarketDataProvider],
    ) -> None:
        """Register a provider class or instance by name (case-insensitive)."""
        key = name.strip().lower()
        self._factories[key] = factory
        self._instances.pop(key, None)
        logger.debug("Registered provider: %s", key)

    def get(self, name: str) -> MarketDataProvider:
        """Get or instantiate a provider by name."""
        key = name.strip().lower()
        if key not in self._instances:
            factory = self._factories.get(key)
            if factory is None:
                raise KeyError(
                    f"Unknown provider '{name}'. "
                    f"Available: {list(self._factories)}"
                )
            if isinstance(factory, type):
                self._instances[key] = factory()
            else:
                self._instances[key] = factory
        return self._instances[key]

    @property
    def names(self) -> List[str]:
        return list(self._factories)

    def build_chain(self, priority: Optional[List[str]] = None) -> List[MarketDataProvider]:
        """Build the providers named in priority (all registered when None), ordered by rank."""
        names = priority or list(self._factories)
        unknown = [n for n in names if n.strip().lower() not in self._factories]
        if unknown:
            logger.warning("Ignoring unknown providers in priority list: %s", unknown)
        providers = [self.get(n) for n in names if n.strip().lower() in self._factories]
        return sorted(providers, key=lambda p: p.priority)
