"""
Binance spot market provider.

Uses the public Binance API (no authentication required):
  GET https://api.binance.com/api/v3/ticker/24hr[?symbol={pair}]
  GET https://api.binance.com/api/v3/klines?symbol={pair}&interval={1h|1d}
  GET https://api.binance.com/api/v3/ping

Assets are USDT pairs; ids are either well-known CoinGecko-style ids (mapped
below) or the lowercase base symbol. Binance has no fiat endpoint, so fiat
rates come from a fixed table.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, List

from ...core.errors import ProviderError
from ...currencies import FALLBACK_RATES_TO_USD, fiat_name, fiat_symbol
from ...models import Asset, FiatCurrency, PriceHistoryPoint, normalize_asset_id
from ...timeutils import from_unix_ms, utc_now
from ..http import HttpProvider, to_float

BINANCE_BASE_URL = "https://api.binance.com/api/v3"
QUOTE_ASSET = "USDT"

_ID_TO_PAIR = {
    "bitcoin": "BTCUSDT",
    "ethereum": "ETHUSDT",
    "binancecoin": "BNBUSDT",
    "ripple": "XRPUSDT",
    "cardano": "ADAUSDT",
    "solana": "SOLUSDT",
    "polkadot": "DOTUSDT",
    "dogecoin": "DOGEUSDT",
    "litecoin": "LTCUSDT",
    "chainlink": "LINKUSDT",
    "stellar": "XLMUSDT",
    "vechain": "VETUSDT",
    "monero": "XMRUSDT",
    "eos": "EOSUSDT",
    "tezos": "XTZUSDT",
    "cosmos": "ATOMUSDT",
}

_SYMBOL_NAMES = {
    "btc": "Bitcoin",
    "eth": "Ethereum",
    "bnb": "Binance Coin",
    "xrp": "Ripple",
    "ada": "Cardano",
    "sol": "Solana",
    "dot": "Polkadot",
    "doge": "Dogecoin",
    "ltc": "Litecoin",
    "link": "Chainlink",
    "xlm": "Stellar",
    "vet": "VeChain",
    "xmr": "Monero",
    "eos": "EOS",
    "xtz": "Tezos",
    "atom": "Cosmos",
}


def pair_for(asset_id: str) -> str:
    key = normalize_asset_id(asset_id)
    return _ID_TO_PAIR.get(key, f"{key.upper()}{QUOTE_ASSET}")


class BinanceProvider(HttpProvider):
    """Quotes and klines for USDT pairs on Binance."""

    name = "Binance"
    base_url = BINANCE_BASE_URL
    priority = 3
    supports_fiat = True
    requests_per_minute = 1200
    timeout_s = 10.0

    def _ticker_to_asset(self, asset_id: str, ticker: Dict[str, Any]) -> Asset:
        pair = str(ticker.get("symbol", ""))
        base = pair[: -len(QUOTE_ASSET)].lower() if pair.endswith(QUOTE_ASSET) else asset_id
        price = to_float(ticker.get("lastPrice"))
        return Asset(
            id=normalize_asset_id(asset_id),
            name=_SYMBOL_NAMES.get(base, base.upper()),
            symbol=base.upper(),
            price=price,
            price_change_24h=to_float(ticker.get("priceChange")),
            price_change_pct_24h=to_float(ticker.get("priceChangePercent")),
            volume_24h=to_float(ticker.get("volume")) * price,
            last_updated=utc_now(),
            provider_name=self.name,
        )

    def fetch_top(self, limit: int = 100) -> List[Asset]:
        tickers = self._get_json("ticker/24hr")
        if not isinstance(tickers, list):
            raise ProviderError(self.name, "ticker/24hr did not return a list")
        usdt = [
            t for t in tickers
            if isinstance(t, dict) and str(t.get("symbol", "")).endswith(QUOTE_ASSET)
        ]
        usdt.sort(key=lambda t: to_float(t.get("quoteVolume", t.get("volume"))), reverse=True)
        assets = []
        for rank, ticker in enumerate(usdt[:limit], start=1):
            base = ticker["symbol"][: -len(QUOTE_ASSET)].lower()
            asset = self._ticker_to_asset(base, ticker)
            assets.append(replace(asset, rank=rank))
        return assets

    def fetch_by_id(self, asset_id: str) -> Asset:
        ticker = self._get_json("ticker/24hr", params={"symbol": pair_for(asset_id)})
        if not isinstance(ticker, dict) or "lastPrice" not in ticker:
            raise ProviderError(self.name, f"no ticker for {asset_id}")
        return self._ticker_to_asset(asset_id, ticker)

    def fetch_history(self, asset_id: str, days: int) -> List[PriceHistoryPoint]:
        hourly = days <= 1
        klines = self._get_json(
            "klines",
            params={
                "symbol": pair_for(asset_id),
                "interval": "1h" if hourly else "1d",
                "limit": 24 * days if hourly else days,
            },
        )
        if not isinstance(klines, list):
            raise ProviderError(self.name, f"klines for {asset_id} did not return a list")
        # kline row: [open_time, open, high, low, close, volume, ...]
        return [
            PriceHistoryPoint(
                timestamp=from_unix_ms(k[0]),
                price=to_float(k[4]),
                volume=to_float(k[5]),
            )
            for k in klines
            if isinstance(k, list) and len(k) > 5
        ]

    def fetch_fiat_rates(self) -> List[FiatCurrency]:
        now = utc_now()
        return [
            FiatCurrency(
                code=code,
                name=fiat_name(code),
                symbol=fiat_symbol(code),
                rate_to_base=rate,
                last_updated=now,
            )
            for code, rate in FALLBACK_RATES_TO_USD.items()
        ]

    def fetch_exchange_rate(self, from_code: str, to_code: str) -> float:
        src, dst = from_code.upper(), to_code.upper()
        if src == dst:
            return 1.0
        src_rate = FALLBACK_RATES_TO_USD.get(src)
        dst_rate = FALLBACK_RATES_TO_USD.get(dst)
        if not src_rate or not dst_rate:
            raise ProviderError(self.name, f"no fixed rate for {src}/{dst}")
        return dst_rate / src_rate
