"""
CryptoTracker: the engine facade consumed by the CLI (or any presentation layer).

Owns the provider selector, the quote caches, the ledger and the refresh
timers for its whole lifetime. Network and provider failures never leave
this class as exceptions: callers get stale cache, placeholder or synthetic
data, a logged warning and a data_updated notification with degraded=True.
Only ValidationError reaches the caller, from the transaction mutators.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Sequence

from .cache import QuoteCache
from .config import EngineSettings
from .core.errors import AllProvidersExhausted, PersistenceError, ValidationError
from .events import DATA_UPDATED, PORTFOLIO_UPDATED, EventBus
from .fiat import CurrencyConverter
from .history import synthesize_history
from .ledger import LedgerStore
from .models import (
    BASE_CURRENCY,
    Asset,
    FiatCurrency,
    HistorySeries,
    PortfolioAsset,
    PortfolioSummary,
    PriceHistoryPoint,
    Transaction,
    normalize_asset_id,
)
from .portfolio import summarize, value_holdings
from .providers.base import MarketDataProvider, ProviderHealth
from .providers.selector import ProviderSelector
from .scheduler import InFlightGuard, RefreshScheduler

logger = logging.getLogger(__name__)


def _sort_key(asset: Asset) -> tuple:
    return (asset.rank is None, asset.rank or 0, -asset.market_cap)


class CryptoTracker:
    """
    Resilient multi-provider market data plus ledger-based portfolio valuation.

    Typical use:
        tracker = CryptoTracker(create_default_providers(), JsonLedgerStore(path)).start()
        tracker.events.subscribe(DATA_UPDATED, on_data)
        ...
        tracker.stop()
    """

    def __init__(
        self,
        providers: Sequence[MarketDataProvider],
        ledger_store: LedgerStore,
        settings: Optional[EngineSettings] = None,
        event_bus: Optional[EventBus] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.selector = ProviderSelector(providers, retry_config=self.settings.retry, sleep=sleep)
        self.cache = QuoteCache(
            history_ttl_s=self.settings.history_ttl_s,
            fiat_rate_ttl_s=self.settings.fiat_rate_ttl_s,
            clock=clock,
        )
        self.converter = CurrencyConverter(self.cache, self.selector)
        self.events = event_bus or EventBus()

        self._ledger_store = ledger_store
        self._ledger = ledger_store.load()
        self._ledger_lock = threading.RLock()

        self._portfolio: Optional[List[PortfolioAsset]] = None
        self._last_prices: Dict[str, float] = {}
        self._portfolio_lock = threading.Lock()

        self._market_guard = InFlightGuard("market refresh")
        self._portfolio_guard = InFlightGuard("portfolio refresh")
        self._degraded = False

        self._initialized = threading.Event()
        self._init_lock = threading.Lock()
        self._init_started = False
        self._init_thread: Optional[threading.Thread] = None

        self.scheduler = RefreshScheduler(
            self.refresh_market_data,
            self.refresh_portfolio,
            market_interval_s=self.settings.market_interval_s,
            portfolio_interval_s=self.settings.portfolio_interval_s,
            market_enabled=self.settings.market_refresh_enabled,
            portfolio_enabled=self.settings.portfolio_refresh_enabled,
        )

    # -- lifecycle ---------------------------------------------------------

    def initialize(self) -> None:
        """
        Acquire the active provider and seed the caches. Runs once; later calls
        wait for the first run to finish.
        """
        with self._init_lock:
            first = not self._init_started
            self._init_started = True
        if not first:
            self._initialized.wait()
            return
        try:
            data = self.selector.acquire_active(self.settings.top_limit)
            if data:
                self.cache.snapshot.upsert_all(data)
                self._degraded = False
            else:
                self._degraded = True
            self.converter.load_currencies()
        finally:
            self._initialized.set()
        unpriced = self._revalue()
        self.events.publish(DATA_UPDATED, degraded=self._degraded or unpriced)
        self.events.publish(PORTFOLIO_UPDATED)

    def _initialize_in_background(self) -> None:
        try:
            self.initialize()
        except Exception:
            logger.exception("Engine initialization failed")
            self._initialized.set()

    def _begin_initialization(self) -> None:
        with self._init_lock:
            if self._init_started or self._init_thread is not None:
                return
            self._init_thread = threading.Thread(
                target=self._initialize_in_background, name="tracker-init", daemon=True
            )
            self._init_thread.start()

    def _ensure_initialized(self) -> None:
        if self._initialized.is_set():
            return
        self._begin_initialization()
        if not self._initialized.wait(self.settings.init_timeout_s):
            logger.warning(
                "Provider initialization not finished after %.0fs; serving cached data",
                self.settings.init_timeout_s,
            )

    def start(self) -> "CryptoTracker":
        """Begin background initialization and the refresh timers."""
        self._begin_initialization()
        self.scheduler.start()
        return self

    def stop(self) -> None:
        self.scheduler.stop()

    close = stop

    def __enter__(self) -> "CryptoTracker":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop()

    # -- state -------------------------------------------------------------

    @property
    def active_provider_name(self) -> str:
        return self.selector.active_name

    @property
    def available_providers(self) -> List[str]:
        return self.selector.provider_names

    @property
    def is_degraded(self) -> bool:
        return self._degraded

    @property
    def is_initialized(self) -> bool:
        return self._initialized.is_set()

    def provider_health(self) -> Dict[str, ProviderHealth]:
        return self.selector.health()

    # -- refresh -----------------------------------------------------------

    def refresh_market_data(self, wait: bool = False) -> bool:
        """
        Reload the top listings from the active provider (failing over).

        Returns False when a market refresh was already in flight. With
        wait=True it waits for that refresh to finish and then runs its own.
        """
        with self._market_guard.claim(blocking=wait) as claimed:
            if not claimed:
                return False
            try:
                data = self.selector.fetch_from_active(
                    "fetch_top", self.settings.top_limit, require_result=True
                )
            except AllProvidersExhausted as exc:
                self._degraded = True
                logger.warning("Market refresh failed, serving cached data: %s", exc)
            else:
                count = self.cache.snapshot.upsert_all(data)
                self._degraded = False
                logger.debug("Market refresh stored %d assets from %s", count, self.active_provider_name)
            degraded = self._degraded
        self.events.publish(DATA_UPDATED, degraded=degraded)
        return True

    def refresh_portfolio(self, wait: bool = False) -> bool:
        """Re-value holdings. Returns False when a portfolio refresh was already in flight."""
        with self._portfolio_guard.claim(blocking=wait) as claimed:
            if not claimed:
                return False
            unpriced = self._revalue()
        if unpriced:
            self.events.publish(DATA_UPDATED, degraded=True)
        self.events.publish(PORTFOLIO_UPDATED)
        return True

    def refresh_now(self) -> None:
        """Full reload: market data, fiat table, then portfolio."""
        self._ensure_initialized()
        self._reload()

    def _reload(self) -> None:
        self.refresh_market_data(wait=True)
        self.converter.load_currencies()
        self.refresh_portfolio(wait=True)

    def test_active_provider_connectivity(self) -> bool:
        return self.selector.ping_active()

    def switch_provider(self, name: str) -> bool:
        """
        Force a provider active and reload everything. False for unknown names.

        A market refresh already in flight cannot fail over away from the new
        choice; the reload waits for it and then runs against the new provider.
        """
        self._ensure_initialized()
        try:
            self.selector.switch_to(name)
        except KeyError as exc:
            logger.warning("Cannot switch provider: %s", exc)
            return False
        self._reload()
        return True

    # -- market data ---------------------------------------------------------

    def _favorite_ids(self) -> List[str]:
        with self._ledger_lock:
            return list(self._ledger.favorites)

    def _with_favorite(self, asset: Asset, favorites: Sequence[str]) -> Asset:
        flag = asset.id in favorites
        return asset if asset.is_favorite == flag else replace(asset, is_favorite=flag)

    def get_assets(self) -> List[Asset]:
        self._ensure_initialized()
        favorites = self._favorite_ids()
        assets = [self._with_favorite(a, favorites) for a in self.cache.snapshot.values()]
        return sorted(assets, key=_sort_key)

    def _lookup_asset(self, asset_id: str, notify: bool = True) -> Asset:
        """Cache, then every provider, then a placeholder. notify=False leaves the degraded event to the caller."""
        key = normalize_asset_id(asset_id)
        cached = self.cache.snapshot.get(key)
        if cached is not None:
            return cached
        try:
            asset = self.selector.fetch_first("fetch_by_id", key, require_result=True)
        except AllProvidersExhausted as exc:
            logger.warning("No provider knows %s, using placeholder: %s", key, exc)
            if notify:
                self.events.publish(DATA_UPDATED, degraded=True)
            return Asset.placeholder_for(key)
        if normalize_asset_id(asset.id) != key:
            asset = replace(asset, id=key)
        self.cache.snapshot.upsert(asset)
        return asset

    def get_asset_by_id(self, asset_id: str) -> Asset:
        """Always returns an Asset; a placeholder when no provider can quote it."""
        self._ensure_initialized()
        return self._with_favorite(self._lookup_asset(asset_id), self._favorite_ids())

    def get_favorites(self) -> List[Asset]:
        self._ensure_initialized()
        favorites = self._favorite_ids()
        assets = [self._with_favorite(self._lookup_asset(fid, notify=False), favorites) for fid in favorites]
        if any(a.placeholder for a in assets):
            self.events.publish(DATA_UPDATED, degraded=True)
        return assets

    def toggle_favorite(self, asset_id: str) -> bool:
        """Add or remove asset_id from favorites. Returns the new favorite state."""
        key = normalize_asset_id(asset_id)
        with self._ledger_lock:
            if key in self._ledger.favorites:
                self._ledger.favorites.remove(key)
                state = False
            else:
                self._ledger.favorites.append(key)
                state = True
            self._persist()
        self.events.publish(DATA_UPDATED, degraded=self._degraded)
        return state

    def get_history_series(self, asset_id: str, days: int = 7) -> HistorySeries:
        """History with provenance; synthetic when every provider fails."""
        self._ensure_initialized()
        key = normalize_asset_id(asset_id)
        days = max(1, int(days))
        cached = self.cache.history.get((key, days))
        if cached is not None:
            return cached
        try:
            source, points = self.selector.fetch_first_from(
                "fetch_history", key, days, require_result=True
            )
        except AllProvidersExhausted as exc:
            logger.warning("History for %s (%dd) unavailable, synthesizing: %s", key, days, exc)
            self.events.publish(DATA_UPDATED, degraded=True)
            quote = self.cache.snapshot.get(key)
            return synthesize_history(key, days, quote.price if quote is not None else None)
        series = HistorySeries(points=list(points), source=source)
        self.cache.history.put((key, days), series)
        return series

    def get_history(self, asset_id: str, days: int = 7) -> List[PriceHistoryPoint]:
        return list(self.get_history_series(asset_id, days).points)

    # -- fiat --------------------------------------------------------------

    def get_fiat_currencies(self) -> List[FiatCurrency]:
        self._ensure_initialized()
        return self.converter.currencies()

    def convert(self, amount: float, from_code: str, to_code: str) -> float:
        return self.converter.convert(amount, from_code, to_code)

    # -- ledger ------------------------------------------------------------

    def _persist(self) -> None:
        """Write the whole ledger. Caller holds the ledger lock."""
        try:
            self._ledger_store.save(self._ledger)
        except PersistenceError as exc:
            logger.error("Ledger change kept in memory only: %s", exc)

    def _complete(self, tx: Transaction) -> Transaction:
        """Fill symbol/name from the quote cache when the caller left them blank."""
        key = normalize_asset_id(tx.asset_id)
        if tx.asset_symbol and tx.asset_name and tx.asset_id == key:
            return tx
        quote = self.cache.snapshot.get(key)
        return replace(
            tx,
            asset_id=key,
            asset_symbol=tx.asset_symbol or (quote.symbol if quote is not None else key.upper()),
            asset_name=tx.asset_name or (quote.name if quote is not None else key.upper()),
        )

    def _after_ledger_change(self) -> None:
        if self._revalue():
            self.events.publish(DATA_UPDATED, degraded=True)
        self.events.publish(PORTFOLIO_UPDATED)

    def add_transaction(self, tx: Transaction) -> Transaction:
        """Validate, append and persist. Raises ValidationError for bad input or a reused id."""
        tx.validate()
        tx = self._complete(tx)
        with self._ledger_lock:
            if any(t.id == tx.id for t in self._ledger.transactions):
                raise ValidationError(f"Transaction {tx.id} already exists")
            self._ledger.transactions.append(tx)
            self._persist()
        logger.info("Added %s of %s %s", tx.kind.value, tx.amount, tx.asset_id)
        self._after_ledger_change()
        return tx

    def update_transaction(self, tx: Transaction) -> bool:
        """Replace the transaction with the same id. False when no such id exists."""
        tx.validate()
        tx = self._complete(tx)
        with self._ledger_lock:
            for i, existing in enumerate(self._ledger.transactions):
                if existing.id == tx.id:
                    self._ledger.transactions[i] = tx
                    break
            else:
                logger.warning("Update rejected: no transaction %s", tx.id)
                return False
            self._persist()
        self._after_ledger_change()
        return True

    def delete_transaction(self, transaction_id: str) -> bool:
        with self._ledger_lock:
            before = len(self._ledger.transactions)
            self._ledger.transactions = [t for t in self._ledger.transactions if t.id != transaction_id]
            if len(self._ledger.transactions) == before:
                logger.warning("Delete rejected: no transaction %s", transaction_id)
                return False
            self._persist()
        self._after_ledger_change()
        return True

    def get_transactions(self) -> List[Transaction]:
        """All transactions, newest first."""
        with self._ledger_lock:
            txs = list(self._ledger.transactions)
        return sorted(txs, key=lambda t: t.timestamp, reverse=True)

    # -- portfolio ---------------------------------------------------------

    def _revalue(self) -> bool:
        """
        Price every holding and store the result. Returns True when some asset
        had no live quote.

        Prices are resolved without holding the portfolio lock, and no event is
        published from here; callers notify once the pass is over.
        """
        with self._ledger_lock:
            txs = list(self._ledger.transactions)
        with self._portfolio_lock:
            last_prices = dict(self._last_prices)

        unpriced: List[str] = []

        def lookup(asset_id: str) -> Asset:
            asset = self._lookup_asset(asset_id, notify=False)
            if asset.placeholder:
                unpriced.append(asset.id)
            return asset

        assets = value_holdings(txs, lookup, last_prices)
        with self._portfolio_lock:
            self._last_prices.update({a.asset_id: a.current_price for a in assets if not a.price_stale})
            self._portfolio = assets
        return bool(unpriced)

    def _current_portfolio(self) -> List[PortfolioAsset]:
        with self._portfolio_lock:
            cached = self._portfolio
        if cached is None:
            if self._revalue():
                self.events.publish(DATA_UPDATED, degraded=True)
            with self._portfolio_lock:
                cached = self._portfolio or []
        return list(cached)

    def get_portfolio_assets(self) -> List[PortfolioAsset]:
        self._ensure_initialized()
        return self._current_portfolio()

    def get_portfolio_summary(self) -> PortfolioSummary:
        self._ensure_initialized()
        return summarize(self._current_portfolio())

    def get_portfolio_value(self, currency: str = BASE_CURRENCY) -> float:
        """Current portfolio value, converted from USD into currency."""
        value = self.get_portfolio_summary().current_value
        return self.convert(value, BASE_CURRENCY, currency)
