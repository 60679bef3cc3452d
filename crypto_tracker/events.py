"""
Publish/subscribe for engine notifications.

Delivery is at-least-once and best-effort: every subscriber registered at
publish time is called once per publish, a failing subscriber is logged and
does not stop delivery to the others, and no ordering is guaranteed across
subscribers.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List

from .timeutils import utc_now

logger = logging.getLogger(__name__)

DATA_UPDATED = "data_updated"
PORTFOLIO_UPDATED = "portfolio_updated"


@dataclass(frozen=True)
class Notification:
    name: str
    degraded: bool = False
    at: datetime = field(default_factory=utc_now)


Subscriber = Callable[[Notification], None]


class EventBus:
    """Callback registry keyed by event name."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Subscriber]] = {}
        self._lock = threading.Lock()

    def subscribe(self, name: str, callback: Subscriber) -> Callable[[], None]:
        """Register callback for name. Returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.setdefault(name, []).append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                subs = self._subscribers.get(name, [])
                if callback in subs:
                    subs.remove(callback)

        return _unsubscribe

    def publish(self, name: str, *, degraded: bool = False) -> Notification:
        note = Notification(name=name, degraded=degraded)
        with self._lock:
            subs = list(self._subscribers.get(name, []))
        for callback in subs:
            try:
                callback(note)
            except Exception:
                logger.exception("Subscriber for %s raised", name)
        return note

    def subscriber_count(self, name: str) -> int:
        with self._lock:
            return len(self._subscribers.get(name, []))
