"""
Resilience primitives: per-provider rate limiting and retry with exponential
backoff.

Every network call to a provider goes through a ResilientInvoker so that the
provider's published request ceiling is respected and transient transport
failures are retried before the failover selector gives up on the provider.
"""
from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional, TypeVar

import requests

from ..core.errors import ProviderError, TransientNetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRANSIENT_TYPES = (
    TransientNetworkError,
    requests.ConnectionError,
    requests.Timeout,
    ConnectionError,
    TimeoutError,
)


def is_transient(exc: BaseException) -> bool:
    """Transport failures and timeouts are retried; HTTP status and parse errors are not."""
    return isinstance(exc, _TRANSIENT_TYPES)


@dataclass
class RetryConfig:
    """Configuration for retry with exponential backoff."""

    max_retries: int = 3
    base_delay_s: float = 1.0
    backoff_factor: float = 2.0
    max_delay_s: float = 60.0

    def delay_for(self, retry: int) -> float:
        """Seconds to wait before retry number `retry` (1-based): 2, 4, 8 s by default."""
        return min(self.base_delay_s * (self.backoff_factor ** retry), self.max_delay_s)


class RateLimiter:
    """
    Counting permit pool that throttles sustained throughput to a per-minute ceiling.

    permits = max(1, rpm // 60) calls may be in flight at once. A permit goes
    back to the pool only release_delay_s after its call completes, and each
    permit gets rpm // permits calls per minute, so no 60 s window ever sees
    more than rpm calls.
    """

    def __init__(
        self,
        requests_per_minute: int,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ) -> None:
        rpm = max(1, int(requests_per_minute or 0))
        self.requests_per_minute = rpm
        self.permits = max(1, rpm // 60)
        calls_per_permit = rpm // self.permits
        self.release_delay_s = max(0.001, 60.0 / calls_per_permit)
        self._semaphore = threading.BoundedSemaphore(self.permits)
        self._timer_factory = timer_factory

    def acquire(self, timeout: Optional[float] = None) -> bool:
        return self._semaphore.acquire(timeout=timeout)

    def release_later(self) -> None:
        timer = self._timer_factory(self.release_delay_s, self._semaphore.release)
        timer.daemon = True
        timer.start()

    @contextmanager
    def permit(self) -> Iterator[None]:
        self.acquire()
        try:
            yield
        finally:
            self.release_later()


def resilient_call(
    func: Callable[..., T],
    *args: Any,
    provider_name: str,
    retry_config: Optional[RetryConfig] = None,
    limiter: Optional[RateLimiter] = None,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any,
) -> T:
    """
    Execute a provider call under rate limiting and retry-with-backoff.

    Each attempt takes its own permit. Transient failures are retried up to
    max_retries times; anything else is raised at once as ProviderError.
    Raises ProviderError once retries are exhausted.
    """
    cfg = retry_config or RetryConfig()
    attempts = cfg.max_retries + 1
    last_err: Optional[BaseException] = None

    for attempt in range(1, attempts + 1):
        try:
            if limiter is None:
                return func(*args, **kwargs)
            with limiter.permit():
                return func(*args, **kwargs)
        except ProviderError:
            raise
        except Exception as exc:
            if not is_transient(exc):
                raise ProviderError(provider_name, f"{type(exc).__name__}: {exc}", exc) from exc
            last_err = exc
            if attempt < attempts:
                delay = cfg.delay_for(attempt)
                logger.warning(
                    "Retry %d/%d for %s in %.1fs: %s",
                    attempt, cfg.max_retries, provider_name, delay, exc,
                )
                sleep(delay)

    raise ProviderError(
        provider_name, f"failed after {attempts} attempts: {last_err}", last_err
    ) from last_err


class ResilientInvoker:
    """Rate limiter plus retry policy bound to one provider."""

    def __init__(
        self,
        provider_name: str,
        requests_per_minute: int,
        retry_config: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.provider_name = provider_name
        self.limiter = RateLimiter(requests_per_minute)
        self.retry_config = retry_config or RetryConfig()
        self._sleep = sleep

    def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        return resilient_call(
            func,
            *args,
            provider_name=self.provider_name,
            retry_config=self.retry_config,
            limiter=self.limiter,
            sleep=self._sleep,
            **kwargs,
        )
