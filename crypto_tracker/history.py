"""
Synthetic price history for degraded mode.

When no provider can return history for an asset the charts still need a
series. The generated curve is a gentle sine wave around the last known price
with small uniform noise; it is deterministic per (asset, days, UTC date) so a
chart does not jump between redraws on the same day.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional

import numpy as np

from .models import HistorySeries, PriceHistoryPoint, normalize_asset_id
from .rng import SALT_SYNTHETIC_HISTORY, rng_for
from .timeutils import utc_now

DEFAULT_BASE_PRICE = 100.0
WAVE_AMPLITUDE = 0.05
WAVE_STEP = 0.1
NOISE = 0.01
SYNTHETIC_SOURCE = "synthetic"


def point_count(days: int) -> int:
    """Hourly points for up to one day, daily points beyond that."""
    days = max(1, int(days))
    return 24 * days if days <= 1 else days


def synthesize_history(
    asset_id: str,
    days: int,
    base_price: Optional[float] = None,
    *,
    now: Optional[datetime] = None,
    rng: Optional[np.random.Generator] = None,
) -> HistorySeries:
    days = max(1, int(days))
    base = float(base_price) if base_price is not None and base_price > 0 else DEFAULT_BASE_PRICE
    now = now or utc_now()
    if rng is None:
        key = f"{normalize_asset_id(asset_id)}|{days}|{now.date().isoformat()}"
        rng = rng_for(key, SALT_SYNTHETIC_HISTORY)

    n = point_count(days)
    step = timedelta(hours=1) if days <= 1 else timedelta(days=1)
    start = now - timedelta(days=days)

    i = np.arange(n, dtype=float)
    noise = rng.uniform(-NOISE, NOISE, size=n)
    prices = base * (1.0 + WAVE_AMPLITUDE * np.sin(WAVE_STEP * i) + noise)
    volumes = base * 1000.0 * (1.0 + rng.uniform(0.0, 0.5, size=n))

    points: List[PriceHistoryPoint] = [
        PriceHistoryPoint(timestamp=start + k * step, price=float(prices[k]), volume=float(volumes[k]))
        for k in range(n)
    ]
    return HistorySeries(points=points, source=SYNTHETIC_SOURCE, synthetic=True)
