"""
Provider failover: ordered providers, one active at a time.

The active provider serves bulk listing refreshes. When it fails (after the
invoker's retries) the remaining providers are tried in priority order and the
first one that answers becomes active. Single-asset lookups and history go
through every provider in priority order regardless of which one is active,
since one provider missing one asset is not a total failure.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..core.errors import AllProvidersExhausted, CryptoTrackerError
from .base import MarketDataProvider, ProviderHealth
from .resilience import ResilientInvoker, RetryConfig

logger = logging.getLogger(__name__)


def _has_result(result: Any) -> bool:
    return result is not None and not (isinstance(result, (list, tuple)) and len(result) == 0)


class ProviderSelector:
    """Holds the ordered provider list and the active provider pointer."""

    def __init__(
        self,
        providers: Sequence[MarketDataProvider],
        retry_config: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        # sorted() is stable: equal priorities keep registration order
        self._providers: List[MarketDataProvider] = sorted(providers, key=lambda p: p.priority)
        self._invokers: Dict[str, ResilientInvoker] = {}
        self._health: Dict[str, ProviderHealth] = {}
        for p in self._providers:
            name = p.provider_name
            self._invokers[name] = ResilientInvoker(
                name, p.requests_per_minute, retry_config=retry_config, sleep=sleep
            )
            self._health[name] = ProviderHealth(provider_name=name)
        self._active: Optional[MarketDataProvider] = None
        # bumped on every change of the active provider
        self._generation = 0
        self._lock = threading.RLock()

    @property
    def providers(self) -> List[MarketDataProvider]:
        return list(self._providers)

    @property
    def provider_names(self) -> List[str]:
        return [p.provider_name for p in self._providers]

    @property
    def active(self) -> Optional[MarketDataProvider]:
        with self._lock:
            return self._active

    @property
    def active_name(self) -> str:
        active = self.active
        return active.provider_name if active is not None else "None"

    def _snapshot(self) -> Tuple[Optional[MarketDataProvider], int]:
        with self._lock:
            return self._active, self._generation

    def _set_active(self, provider: Optional[MarketDataProvider]) -> None:
        with self._lock:
            self._active = provider
            self._generation += 1

    def _replace_active(self, provider: MarketDataProvider, generation: int) -> bool:
        """Make provider active only if nothing changed the active provider since generation."""
        with self._lock:
            if self._generation != generation:
                return False
            self._active = provider
            self._generation += 1
            return True

    def invoke(self, provider: MarketDataProvider, method: str, *args: Any) -> Any:
        """One resilient call to provider.method(*args), recording health."""
        name = provider.provider_name
        health = self._health[name]
        try:
            result = self._invokers[name].call(getattr(provider, method), *args)
        except CryptoTrackerError as exc:
            health.record_failure(str(exc))
            raise
        health.record_success()
        return result

    def acquire_active(self, limit: int = 100) -> Optional[list]:
        """
        Probe providers in priority order with a top-listings fetch.

        The first provider returning a non-empty result becomes active and its
        data is returned so the caller can seed the cache. Returns None when
        every provider failed (degraded mode); active stays unset.
        """
        logger.info("Initializing market data providers...")
        _, generation = self._snapshot()
        for provider in self._providers:
            name = provider.provider_name
            try:
                data = self.invoke(provider, "fetch_top", limit)
            except CryptoTrackerError as exc:
                logger.warning("Failed to load startup market data from %s: %s", name, exc)
                continue
            if data:
                if self._replace_active(provider, generation):
                    logger.info("Using %s API", name)
                else:
                    logger.info("Startup data from %s; keeping %s chosen meanwhile", name, self.active_name)
                return data
            logger.warning("%s returned no market data during startup", name)

        logger.error("All providers failed to provide startup market data")
        return None

    def fetch_from_active(self, method: str, *args: Any, require_result: bool = False) -> Any:
        """
        Run method on the active provider, failing over in priority order.

        The provider that just failed is not retried; the first provider that
        succeeds becomes active, unless the active provider was changed (e.g.
        a manual switch) while this call was running. Raises
        AllProvidersExhausted when none succeed.
        """
        current, generation = self._snapshot()
        candidates = [current] if current is not None else []
        candidates += [p for p in self._providers if p is not current]
        errors: List[str] = []

        for provider in candidates:
            name = provider.provider_name
            try:
                result = self.invoke(provider, method, *args)
            except CryptoTrackerError as exc:
                errors.append(str(exc))
                logger.warning("%s failed on %s: %s", method, name, exc)
                continue
            if require_result and not _has_result(result):
                errors.append(f"{name}: empty result")
                logger.warning("%s returned no data for %s", name, method)
                continue
            if provider is not current:
                if self._replace_active(provider, generation):
                    logger.info("Switched to %s API", name)
                else:
                    logger.info("%s answered %s, keeping %s chosen meanwhile", name, method, self.active_name)
            return result

        raise AllProvidersExhausted(method, errors)

    def fetch_first_from(
        self, method: str, *args: Any, require_result: bool = False
    ) -> Tuple[str, Any]:
        """Like fetch_first, but also returns the name of the provider that answered."""
        errors: List[str] = []
        for provider in self._providers:
            name = provider.provider_name
            try:
                result = self.invoke(provider, method, *args)
            except CryptoTrackerError as exc:
                errors.append(str(exc))
                logger.warning("%s%r failed on %s: %s", method, args, name, exc)
                continue
            if require_result and not _has_result(result):
                errors.append(f"{name}: empty result")
                continue
            return name, result
        raise AllProvidersExhausted(method, errors)

    def fetch_first(self, method: str, *args: Any, require_result: bool = False) -> Any:
        """Query every provider in priority order; does not change the active provider."""
        return self.fetch_first_from(method, *args, require_result=require_result)[1]

    def get(self, name: str) -> MarketDataProvider:
        wanted = name.strip().lower()
        for provider in self._providers:
            if provider.provider_name.lower() == wanted:
                return provider
        raise KeyError(f"Unknown provider '{name}'. Available: {self.provider_names}")

    def switch_to(self, name: str) -> MarketDataProvider:
        """Force the named provider active, unconditionally."""
        provider = self.get(name)
        self._set_active(provider)
        logger.info("Switched to %s API (manual)", provider.provider_name)
        return provider

    def ping_active(self) -> bool:
        active = self.active
        if active is None:
            return False
        try:
            return bool(active.ping())
        except Exception as exc:
            logger.warning("Connectivity test for %s raised: %s", active.provider_name, exc)
            return False

    def health(self) -> Dict[str, ProviderHealth]:
        """Return health status for all providers."""
        return dict(self._health)
