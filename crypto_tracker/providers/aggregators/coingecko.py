"""
CoinGecko market data provider.

Uses the public CoinGecko API (no authentication required):
  GET https://api.coingecko.com/api/v3/coins/markets
  GET https://api.coingecko.com/api/v3/coins/{id}
  GET https://api.coingecko.com/api/v3/coins/{id}/market_chart
  GET https://api.coingecko.com/api/v3/simple/price

Fiat rates are derived from the BTC price quoted in each fiat currency.
"""
from __future__ import annotations

from typing import Any, Dict, List

from ...core.errors import ProviderError
from ...currencies import FIAT_NAMES, fiat_name, fiat_symbol
from ...models import Asset, FiatCurrency, PriceHistoryPoint, normalize_asset_id
from ...timeutils import from_unix_ms, parse_utc, utc_now
from ..http import HttpProvider, to_float, to_optional_float, to_optional_int

COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"


def _parse_updated(value: Any):
    if not value:
        return utc_now()
    try:
        return parse_utc(str(value))
    except ValueError:
        return utc_now()


class CoinGeckoProvider(HttpProvider):
    """Top listings, quotes, history and fiat rates from CoinGecko."""

    name = "CoinGecko"
    base_url = COINGECKO_BASE_URL
    priority = 1
    supports_fiat = True
    requests_per_minute = 50

    def fetch_top(self, limit: int = 100) -> List[Asset]:
        data = self._get_json(
            "coins/markets",
            params={
                "vs_currency": "usd",
                "order": "market_cap_desc",
                "per_page": limit,
                "page": 1,
                "sparkline": "false",
            },
        )
        if not isinstance(data, list):
            raise ProviderError(self.name, "coins/markets did not return a list")
        return [self._market_row_to_asset(row) for row in data if isinstance(row, dict) and row.get("id")]

    def _market_row_to_asset(self, row: Dict[str, Any]) -> Asset:
        return Asset(
            id=normalize_asset_id(row["id"]),
            name=row.get("name") or row["id"],
            symbol=str(row.get("symbol") or "").upper(),
            price=to_float(row.get("current_price")),
            market_cap=to_float(row.get("market_cap")),
            price_change_24h=to_float(row.get("price_change_24h")),
            price_change_pct_24h=to_float(row.get("price_change_percentage_24h")),
            volume_24h=to_optional_float(row.get("total_volume")),
            circulating_supply=to_optional_float(row.get("circulating_supply")),
            total_supply=to_optional_float(row.get("total_supply")),
            rank=to_optional_int(row.get("market_cap_rank")),
            last_updated=_parse_updated(row.get("last_updated")),
            provider_name=self.name,
        )

    def fetch_by_id(self, asset_id: str) -> Asset:
        key = normalize_asset_id(asset_id)
        data = self._get_json(
            f"coins/{key}",
            params={
                "localization": "false",
                "tickers": "false",
                "community_data": "false",
                "developer_data": "false",
            },
        )
        market = data.get("market_data") if isinstance(data, dict) else None
        if not isinstance(market, dict):
            raise ProviderError(self.name, f"coins/{key} response missing market_data")

        def usd(field: str) -> Any:
            value = market.get(field)
            return value.get("usd") if isinstance(value, dict) else value

        return Asset(
            id=normalize_asset_id(data.get("id") or key),
            name=data.get("name") or key,
            symbol=str(data.get("symbol") or key).upper(),
            price=to_float(usd("current_price")),
            market_cap=to_float(usd("market_cap")),
            price_change_24h=to_float(market.get("price_change_24h")),
            price_change_pct_24h=to_float(market.get("price_change_percentage_24h")),
            volume_24h=to_optional_float(usd("total_volume")),
            circulating_supply=to_optional_float(market.get("circulating_supply")),
            total_supply=to_optional_float(market.get("total_supply")),
            rank=to_optional_int(data.get("market_cap_rank")),
            last_updated=_parse_updated(data.get("last_updated")),
            provider_name=self.name,
        )

    def fetch_history(self, asset_id: str, days: int) -> List[PriceHistoryPoint]:
        key = normalize_asset_id(asset_id)
        data = self._get_json(
            f"coins/{key}/market_chart",
            params={"vs_currency": "usd", "days": days},
        )
        prices = data.get("prices") if isinstance(data, dict) else None
        if not isinstance(prices, list):
            raise ProviderError(self.name, f"market_chart for {key} missing prices")
        volumes = data.get("total_volumes") or []
        points = []
        for i, pair in enumerate(prices):
            volume = volumes[i][1] if i < len(volumes) and len(volumes[i]) > 1 else 0.0
            points.append(
                PriceHistoryPoint(
                    timestamp=from_unix_ms(pair[0]),
                    price=to_float(pair[1]),
                    volume=to_float(volume),
                )
            )
        return points

    def _btc_prices(self, codes: List[str]) -> Dict[str, float]:
        data = self._get_json(
            "simple/price",
            params={"ids": "bitcoin", "vs_currencies": ",".join(c.lower() for c in codes)},
        )
        quotes = data.get("bitcoin") if isinstance(data, dict) else None
        if not isinstance(quotes, dict):
            raise ProviderError(self.name, "simple/price response missing bitcoin")
        return {k.upper(): to_float(v) for k, v in quotes.items()}

    def fetch_fiat_rates(self) -> List[FiatCurrency]:
        btc = self._btc_prices(list(FIAT_NAMES))
        btc_usd = btc.get("USD", 0.0)
        if btc_usd <= 0:
            raise ProviderError(self.name, "no BTC/USD quote to derive fiat rates")
        now = utc_now()
        return [
            FiatCurrency(
                code=code,
                name=fiat_name(code),
                symbol=fiat_symbol(code),
                rate_to_base=btc[code] / btc_usd,
                last_updated=now,
            )
            for code in FIAT_NAMES
            if btc.get(code, 0.0) > 0
        ]

    def fetch_exchange_rate(self, from_code: str, to_code: str) -> float:
        src, dst = from_code.upper(), to_code.upper()
        if src == dst:
            return 1.0
        btc = self._btc_prices([src, dst])
        if btc.get(src, 0.0) <= 0 or btc.get(dst, 0.0) <= 0:
            raise ProviderError(self.name, f"no BTC quote for {src}/{dst}")
        return btc[dst] / btc[src]
