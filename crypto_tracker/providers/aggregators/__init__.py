"""Market data aggregator providers (listings across many exchanges)."""
from __future__ import annotations

from .coincap import CoinCapProvider
from .coingecko import CoinGeckoProvider

__all__ = ["CoinCapProvider", "CoinGeckoProvider"]
