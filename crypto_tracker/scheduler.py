"""
Background refresh timers.

Two independent periodic tasks drive the engine: market data (30 s) and
portfolio valuation (60 s). Each tick runs on its own worker thread so a slow
provider never delays the timer; overlapping runs of the same kind are
refused by an InFlightGuard held by the refresh itself.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

logger = logging.getLogger(__name__)


class InFlightGuard:
    """Non-blocking single-flight claim: a second claim while one is held is refused."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def claim(self, blocking: bool = False) -> Iterator[bool]:
        """Yield True when claimed. blocking=True waits for the holder to finish."""
        acquired = self._lock.acquire(blocking=blocking)
        if not acquired:
            logger.debug("%s already in flight - skipped", self.name)
        try:
            yield acquired
        finally:
            if acquired:
                self._lock.release()


class PeriodicTask:
    """Daemon timer that dispatches func every interval_s seconds while enabled."""

    def __init__(
        self,
        name: str,
        interval_s: float,
        func: Callable[[], None],
        enabled: bool = True,
    ) -> None:
        self.name = name
        self.interval_s = float(interval_s)
        self._func = func
        self._enabled = threading.Event()
        if enabled:
            self._enabled.set()
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def enabled(self) -> bool:
        return self._enabled.is_set()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def enable(self) -> None:
        self._enabled.set()

    def disable(self) -> None:
        self._enabled.clear()

    def start(self) -> None:
        if self.running:
            return
        self._stopped.clear()
        self._thread = threading.Thread(target=self._loop, name=f"{self.name}-timer", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stopped.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def run_once(self) -> None:
        """Run func on the calling thread; exceptions are logged, never raised."""
        try:
            self._func()
        except Exception:
            logger.exception("%s tick failed", self.name)

    def dispatch(self) -> threading.Thread:
        worker = threading.Thread(target=self.run_once, name=f"{self.name}-tick", daemon=True)
        worker.start()
        return worker

    def _loop(self) -> None:
        while not self._stopped.wait(self.interval_s):
            if self._enabled.is_set():
                self.dispatch()


class RefreshScheduler:
    """The market and portfolio timers, started and stopped together."""

    def __init__(
        self,
        market_refresh: Callable[[], None],
        portfolio_refresh: Callable[[], None],
        market_interval_s: float = 30.0,
        portfolio_interval_s: float = 60.0,
        market_enabled: bool = True,
        portfolio_enabled: bool = True,
    ) -> None:
        self.market = PeriodicTask("market-refresh", market_interval_s, market_refresh, market_enabled)
        self.portfolio = PeriodicTask(
            "portfolio-refresh", portfolio_interval_s, portfolio_refresh, portfolio_enabled
        )

    def start(self) -> None:
        self.market.start()
        self.portfolio.start()
        logger.info(
            "Refresh timers started (market %.0fs, portfolio %.0fs)",
            self.market.interval_s,
            self.portfolio.interval_s,
        )

    def stop(self, timeout: Optional[float] = None) -> None:
        self.market.stop(timeout)
        self.portfolio.stop(timeout)
