"""
HTTP providers parse their public API payloads and map failures onto the
error taxonomy. requests.get is patched; no live network.
"""
from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests

from crypto_tracker.core.errors import ProviderError, TransientNetworkError
from crypto_tracker.providers.aggregators.coincap import CoinCapProvider
from crypto_tracker.providers.aggregators.coingecko import CoinGeckoProvider
from crypto_tracker.providers.base import MarketDataProvider
from crypto_tracker.providers.cex.binance import BinanceProvider, pair_for

GET = "crypto_tracker.providers.http.requests.get"


def _response(payload, status_code=200):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    return resp


@pytest.mark.parametrize("cls", [CoinGeckoProvider, CoinCapProvider, BinanceProvider])
def test_builtin_providers_satisfy_protocol(cls):
    assert isinstance(cls(), MarketDataProvider)


def test_builtin_priorities_and_limits():
    assert [(p.name, p.priority, p.requests_per_minute) for p in (CoinGeckoProvider, CoinCapProvider, BinanceProvider)] == [
        ("CoinGecko", 1, 50),
        ("CoinCap", 2, 200),
        ("Binance", 3, 1200),
    ]


class TestHttpErrors:
    @patch(GET)
    def test_rate_limited_is_provider_error(self, mock_get):
        mock_get.return_value = _response({}, status_code=429)
        with pytest.raises(ProviderError, match="429"):
            CoinGeckoProvider().fetch_top(10)

    @patch(GET)
    def test_server_error_is_provider_error(self, mock_get):
        mock_get.return_value = _response({}, status_code=503)
        with pytest.raises(ProviderError, match="HTTP 503"):
            CoinCapProvider().fetch_by_id("bitcoin")

    @patch(GET)
    def test_connection_error_is_transient(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("refused")
        with pytest.raises(TransientNetworkError):
            BinanceProvider().fetch_by_id("bitcoin")

    @patch(GET)
    def test_timeout_is_transient(self, mock_get):
        mock_get.side_effect = requests.Timeout("slow")
        with pytest.raises(TransientNetworkError):
            CoinGeckoProvider().fetch_history("bitcoin", 7)

    @patch(GET)
    def test_invalid_json_is_provider_error(self, mock_get):
        resp = _response(None)
        resp.json.side_effect = ValueError("no json")
        mock_get.return_value = resp
        with pytest.raises(ProviderError, match="invalid JSON"):
            CoinCapProvider().fetch_top(5)

    @patch(GET)
    def test_ping(self, mock_get):
        mock_get.return_value = _response({"gecko_says": "(V3) To the Moon!"})
        assert CoinGeckoProvider().ping() is True
        mock_get.return_value = _response({}, status_code=500)
        assert CoinGeckoProvider().ping() is False
        mock_get.side_effect = requests.ConnectionError("down")
        assert CoinGeckoProvider().ping() is False

    @patch(GET)
    def test_request_carries_timeout_and_user_agent(self, mock_get):
        mock_get.return_value = _response({})
        BinanceProvider().ping()
        args, kwargs = mock_get.call_args
        assert args[0] == "https://api.binance.com/api/v3/ping"
        assert kwargs["timeout"] == 10.0
        assert "User-Agent" in kwargs["headers"]


class TestCoinGecko:
    @patch(GET)
    def test_fetch_top(self, mock_get):
        mock_get.return_value = _response(
            [
                {
                    "id": "bitcoin",
                    "symbol": "btc",
                    "name": "Bitcoin",
                    "current_price": 50000,
                    "market_cap": 1e12,
                    "market_cap_rank": 1,
                    "price_change_24h": 500,
                    "price_change_percentage_24h": 1.0,
                    "total_volume": 3e10,
                    "circulating_supply": 19e6,
                    "total_supply": None,
                    "last_updated": "2026-01-01T00:00:00.000Z",
                },
                {"symbol": "no-id"},
            ]
        )
        [btc] = CoinGeckoProvider().fetch_top(2)
        assert btc.id == "bitcoin"
        assert btc.symbol == "BTC"
        assert btc.price == 50000.0
        assert btc.rank == 1
        assert btc.total_supply is None
        assert btc.provider_name == "CoinGecko"
        assert btc.last_updated.year == 2026
        assert mock_get.call_args.kwargs["params"]["per_page"] == 2

    @patch(GET)
    def test_fetch_by_id_reads_usd_market_data(self, mock_get):
        mock_get.return_value = _response(
            {
                "id": "ethereum",
                "symbol": "eth",
                "name": "Ethereum",
                "market_cap_rank": 2,
                "market_data": {
                    "current_price": {"usd": 3000, "eur": 2700},
                    "market_cap": {"usd": 3.6e11},
                    "total_volume": {"usd": 1e10},
                    "price_change_24h": -30,
                    "price_change_percentage_24h": -1.0,
                },
            }
        )
        eth = CoinGeckoProvider().fetch_by_id("Ethereum")
        assert eth.price == 3000.0
        assert eth.market_cap == 3.6e11
        assert eth.price_change_24h == -30.0
        assert mock_get.call_args.args[0].endswith("/coins/ethereum")

    @patch(GET)
    def test_fetch_by_id_without_market_data(self, mock_get):
        mock_get.return_value = _response({"id": "x"})
        with pytest.raises(ProviderError, match="market_data"):
            CoinGeckoProvider().fetch_by_id("x")

    @patch(GET)
    def test_fetch_history(self, mock_get):
        mock_get.return_value = _response(
            {
                "prices": [[1767225600000, 100.0], [1767312000000, 101.5]],
                "total_volumes": [[1767225600000, 5.0]],
            }
        )
        points = CoinGeckoProvider().fetch_history("bitcoin", 2)
        assert [p.price for p in points] == [100.0, 101.5]
        assert [p.volume for p in points] == [5.0, 0.0]
        assert points[0].timestamp.year == 2026

    @patch(GET)
    def test_fiat_rates_derived_from_btc(self, mock_get):
        mock_get.return_value = _response({"bitcoin": {"usd": 50000, "eur": 45000, "rub": 0}})
        rates = {c.code: c.rate_to_base for c in CoinGeckoProvider().fetch_fiat_rates()}
        assert rates == {"USD": 1.0, "EUR": pytest.approx(0.9)}

    @patch(GET)
    def test_exchange_rate(self, mock_get):
        mock_get.return_value = _response({"bitcoin": {"usd": 50000, "eur": 45000}})
        assert CoinGeckoProvider().fetch_exchange_rate("usd", "eur") == pytest.approx(0.9)
        assert CoinGeckoProvider().fetch_exchange_rate("EUR", "EUR") == 1.0


class TestCoinCap:
    @patch(GET)
    def test_fetch_top(self, mock_get):
        mock_get.return_value = _response(
            {
                "data": [
                    {
                        "id": "bitcoin",
                        "rank": "1",
                        "symbol": "BTC",
                        "name": "Bitcoin",
                        "supply": "19000000",
                        "maxSupply": "21000000",
                        "marketCapUsd": "950000000000",
                        "volumeUsd24Hr": "20000000000",
                        "priceUsd": "50000",
                        "changePercent24Hr": "2",
                    }
                ],
                "timestamp": 1767225600000,
            }
        )
        [btc] = CoinCapProvider().fetch_top(1)
        assert btc.rank == 1
        assert btc.price == 50000.0
        assert btc.price_change_24h == pytest.approx(1000.0)
        assert btc.total_supply == 21e6
        assert btc.provider_name == "CoinCap"

    @patch(GET)
    def test_unknown_asset(self, mock_get):
        mock_get.return_value = _response({"error": "bitcoinz not found"})
        with pytest.raises(ProviderError, match="not found"):
            CoinCapProvider().fetch_by_id("bitcoinz")

    @patch(GET)
    def test_history_interval_follows_window(self, mock_get):
        mock_get.return_value = _response({"data": [{"priceUsd": "1.5", "time": 1767225600000}]})
        [point] = CoinCapProvider().fetch_history("dogecoin", 1)
        assert point.price == 1.5
        assert mock_get.call_args.kwargs["params"]["interval"] == "h1"
        CoinCapProvider().fetch_history("dogecoin", 30)
        assert mock_get.call_args.kwargs["params"]["interval"] == "d1"

    def test_no_fiat(self):
        provider = CoinCapProvider()
        assert provider.supports_fiat is False
        assert provider.fetch_fiat_rates() == []
        with pytest.raises(ProviderError):
            provider.fetch_exchange_rate("USD", "EUR")


class TestBinance:
    def test_pair_mapping(self):
        assert pair_for("bitcoin") == "BTCUSDT"
        assert pair_for("Solana") == "SOLUSDT"
        assert pair_for("pepe") == "PEPEUSDT"

    @patch(GET)
    def test_fetch_top_ranks_usdt_pairs_by_quote_volume(self, mock_get):
        mock_get.return_value = _response(
            [
                {"symbol": "ETHUSDT", "lastPrice": "3000", "quoteVolume": "100", "volume": "1"},
                {"symbol": "BTCUSDT", "lastPrice": "50000", "quoteVolume": "900", "volume": "2"},
                {"symbol": "ETHBTC", "lastPrice": "0.06", "quoteVolume": "5000"},
            ]
        )
        assets = BinanceProvider().fetch_top(10)
        assert [(a.id, a.rank, a.name) for a in assets] == [("btc", 1, "Bitcoin"), ("eth", 2, "Ethereum")]
        assert assets[0].volume_24h == 100000.0

    @patch(GET)
    def test_fetch_by_id_keeps_requested_id(self, mock_get):
        mock_get.return_value = _response({"symbol": "BTCUSDT", "lastPrice": "42000", "priceChange": "10"})
        btc = BinanceProvider().fetch_by_id("bitcoin")
        assert btc.id == "bitcoin"
        assert btc.symbol == "BTC"
        assert btc.price == 42000.0
        assert mock_get.call_args.kwargs["params"] == {"symbol": "BTCUSDT"}

    @patch(GET)
    def test_fetch_by_id_error_payload(self, mock_get):
        mock_get.return_value = _response({"code": -1121, "msg": "Invalid symbol."})
        with pytest.raises(ProviderError, match="no ticker"):
            BinanceProvider().fetch_by_id("nothing")

    @patch(GET)
    def test_klines_close_prices(self, mock_get):
        mock_get.return_value = _response(
            [[1767225600000, "1", "2", "0.5", "1.5", "10", 0], [1767229200000, "1.5", "2", "1", "1.8", "12", 0]]
        )
        points = BinanceProvider().fetch_history("bitcoin", 1)
        assert [p.price for p in points] == [1.5, 1.8]
        params = mock_get.call_args.kwargs["params"]
        assert params["interval"] == "1h"
        assert params["limit"] == 24

    def test_fixed_fiat_table(self):
        provider = BinanceProvider()
        assert {c.code for c in provider.fetch_fiat_rates()} == {"USD", "EUR", "GBP", "RUB", "CNY"}
        assert provider.fetch_exchange_rate("USD", "EUR") == pytest.approx(0.85)
        with pytest.raises(ProviderError):
            provider.fetch_exchange_rate("USD", "JPY")
