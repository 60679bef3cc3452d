"""
CoinCap market data provider.

Uses the public CoinCap v2 API (no authentication required):
  GET https://api.coincap.io/v2/assets?limit={n}
  GET https://api.coincap.io/v2/assets/{id}
  GET https://api.coincap.io/v2/assets/{id}/history?interval=d1

CoinCap quotes USD only; it does not serve fiat rates.
"""
from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, List

from ...core.errors import ProviderError
from ...models import Asset, FiatCurrency, PriceHistoryPoint, normalize_asset_id
from ...timeutils import from_unix_ms, utc_now
from ..http import HttpProvider, to_float, to_optional_float, to_optional_int

COINCAP_BASE_URL = "https://api.coincap.io/v2"


class CoinCapProvider(HttpProvider):
    """Top listings, quotes and daily history from CoinCap."""

    name = "CoinCap"
    base_url = COINCAP_BASE_URL
    priority = 2
    supports_fiat = False
    requests_per_minute = 200
    ping_path = "assets?limit=1"

    def _row_to_asset(self, row: Dict[str, Any]) -> Asset:
        price = to_float(row.get("priceUsd"))
        change_pct = to_float(row.get("changePercent24Hr"))
        ts = row.get("timestamp")
        return Asset(
            id=normalize_asset_id(row["id"]),
            name=row.get("name") or row["id"],
            symbol=str(row.get("symbol") or "").upper(),
            price=price,
            market_cap=to_float(row.get("marketCapUsd")),
            price_change_24h=change_pct / 100.0 * price,
            price_change_pct_24h=change_pct,
            volume_24h=to_optional_float(row.get("volumeUsd24Hr")),
            circulating_supply=to_optional_float(row.get("supply")),
            total_supply=to_optional_float(row.get("maxSupply")),
            rank=to_optional_int(row.get("rank")),
            last_updated=from_unix_ms(ts) if ts else utc_now(),
            provider_name=self.name,
        )

    def fetch_top(self, limit: int = 100) -> List[Asset]:
        payload = self._get_json("assets", params={"limit": limit})
        rows = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(rows, list):
            raise ProviderError(self.name, "assets response missing data")
        ts = payload.get("timestamp")
        assets = []
        for row in rows:
            if isinstance(row, dict) and row.get("id"):
                assets.append(self._row_to_asset({**row, "timestamp": ts}))
        return assets

    def fetch_by_id(self, asset_id: str) -> Asset:
        key = normalize_asset_id(asset_id)
        payload = self._get_json(f"assets/{key}")
        row = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(row, dict) or not row.get("id"):
            raise ProviderError(self.name, f"asset {key} not found")
        return self._row_to_asset({**row, "timestamp": payload.get("timestamp")})

    def fetch_history(self, asset_id: str, days: int) -> List[PriceHistoryPoint]:
        key = normalize_asset_id(asset_id)
        end = utc_now()
        start = end - timedelta(days=days)
        interval = "h1" if days <= 1 else "d1"
        payload = self._get_json(
            f"assets/{key}/history",
            params={
                "interval": interval,
                "start": int(start.timestamp() * 1000),
                "end": int(end.timestamp() * 1000),
            },
        )
        rows = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(rows, list):
            raise ProviderError(self.name, f"history for {key} missing data")
        return [
            PriceHistoryPoint(
                timestamp=from_unix_ms(row["time"]),
                price=to_float(row.get("priceUsd")),
                volume=to_float(row.get("volumeUsd")),
            )
            for row in rows
            if isinstance(row, dict) and row.get("time") is not None
        ]

    def fetch_fiat_rates(self) -> List[FiatCurrency]:
        return []

    def fetch_exchange_rate(self, from_code: str, to_code: str) -> float:
        raise ProviderError(self.name, "fiat exchange rates not supported")
