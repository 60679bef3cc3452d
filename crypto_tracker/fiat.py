"""
Fiat currency table and conversion between fiat codes.

Conversion order:
  a) unexpired cached pair rate
  b) active provider's direct rate (fiat-capable providers only)
  c) cross rate through USD from the fiat table
  d) identity rate 1 (logged, never cached)
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .cache import QuoteCache
from .core.errors import CryptoTrackerError
from .currencies import default_fiat_currencies
from .models import FiatCurrency
from .providers.selector import ProviderSelector

logger = logging.getLogger(__name__)


def _normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


class CurrencyConverter:
    """Fiat conversions backed by the shared QuoteCache and the provider selector."""

    def __init__(self, cache: QuoteCache, selector: ProviderSelector) -> None:
        self._cache = cache
        self._selector = selector

    def load_currencies(self) -> List[FiatCurrency]:
        """
        Refresh the fiat table from the active provider when it supports fiat.

        Falls back to the built-in table when nothing was loaded and the table
        is still empty.
        """
        active = self._selector.active
        if active is not None and active.supports_fiat:
            try:
                currencies = self._selector.invoke(active, "fetch_fiat_rates")
            except CryptoTrackerError as exc:
                logger.warning("Failed to load fiat currencies from %s: %s", active.provider_name, exc)
            else:
                if currencies:
                    self._cache.fiat.replace(currencies)
                    logger.debug("Loaded %d fiat currencies from %s", len(currencies), active.provider_name)

        if self._cache.fiat.is_empty():
            logger.warning("Using built-in fiat currency table")
            self._cache.fiat.replace(default_fiat_currencies())
        return self._cache.fiat.values()

    def currencies(self) -> List[FiatCurrency]:
        if self._cache.fiat.is_empty():
            return self.load_currencies()
        return self._cache.fiat.values()

    def rate(self, from_code: str, to_code: str) -> float:
        src, dst = _normalize_code(from_code), _normalize_code(to_code)
        if not src or not dst or src == dst:
            return 1.0

        key = (src, dst)
        cached = self._cache.fiat_rates.get(key)
        if cached is not None:
            return cached

        direct = self._direct_rate(src, dst)
        if direct is not None:
            self._cache.fiat_rates.put(key, direct)
            return direct

        cross = self._cross_rate(src, dst)
        if cross is not None:
            self._cache.fiat_rates.put(key, cross)
            return cross

        logger.warning("No exchange rate for %s -> %s, using 1", src, dst)
        return 1.0

    def convert(self, amount: float, from_code: str, to_code: str) -> float:
        src, dst = _normalize_code(from_code), _normalize_code(to_code)
        if not src or not dst or src == dst:
            return amount
        return amount * self.rate(src, dst)

    def _direct_rate(self, src: str, dst: str) -> Optional[float]:
        active = self._selector.active
        if active is None or not active.supports_fiat:
            return None
        try:
            rate = float(self._selector.invoke(active, "fetch_exchange_rate", src, dst))
        except (CryptoTrackerError, TypeError, ValueError) as exc:
            logger.warning("Direct rate %s -> %s from %s failed: %s", src, dst, active.provider_name, exc)
            return None
        return rate if rate > 0 else None

    def _cross_rate(self, src: str, dst: str) -> Optional[float]:
        if self._cache.fiat.is_empty():
            self.load_currencies()
        src_cur = self._cache.fiat.get(src)
        dst_cur = self._cache.fiat.get(dst)
        if src_cur is None or dst_cur is None:
            return None
        return dst_cur.from_base(src_cur.to_base(1.0))
