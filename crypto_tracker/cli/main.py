"""
Top-level CLI dispatcher: crypto-tracker <command> [args...].
Builds one CryptoTracker from config, runs the command, prints pandas tables.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable, List, Optional

import pandas as pd

from crypto_tracker.config import EngineSettings, get_config, ledger_path, log_level
from crypto_tracker.core.errors import ValidationError
from crypto_tracker.ledger import JsonLedgerStore
from crypto_tracker.models import Asset, Transaction, TransactionKind
from crypto_tracker.portfolio import summary_frame
from crypto_tracker.providers.defaults import create_default_providers
from crypto_tracker.service import CryptoTracker
from crypto_tracker.timeutils import parse_utc, to_iso, utc_now

logger = logging.getLogger(__name__)

TrackerFactory = Callable[[], CryptoTracker]

_KINDS = {k.value.lower(): k for k in TransactionKind}


def build_tracker() -> CryptoTracker:
    """Engine wired from config.yaml / env. Timers are not started."""
    cfg = get_config()
    return CryptoTracker(
        create_default_providers(),
        JsonLedgerStore(ledger_path()),
        settings=EngineSettings.from_config(cfg),
    )


def _table(df: pd.DataFrame) -> str:
    if df.empty:
        return "(no data)"
    return df.to_string(index=False, float_format=lambda v: f"{v:,.6g}")


def assets_frame(assets: List[Asset]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "rank": a.rank,
                "id": a.id,
                "symbol": a.symbol,
                "price": a.price,
                "change_24h_pct": a.price_change_pct_24h,
                "market_cap": a.market_cap,
                "fav": "*" if a.is_favorite else "",
                "source": a.provider_name or ("placeholder" if a.placeholder else ""),
            }
            for a in assets
        ],
        columns=["rank", "id", "symbol", "price", "change_24h_pct", "market_cap", "fav", "source"],
    )


def _cmd_assets(tracker: CryptoTracker, args: argparse.Namespace) -> int:
    assets = tracker.get_assets()[: args.limit]
    if tracker.is_degraded:
        print("[degraded] no provider reachable, showing cached data")
    print(_table(assets_frame(assets)))
    return 0


def _cmd_asset(tracker: CryptoTracker, args: argparse.Namespace) -> int:
    asset = tracker.get_asset_by_id(args.asset_id)
    print(_table(assets_frame([asset])))
    return 1 if asset.placeholder else 0


def _cmd_history(tracker: CryptoTracker, args: argparse.Namespace) -> int:
    series = tracker.get_history_series(args.asset_id, args.days)
    df = pd.DataFrame(
        [{"timestamp": to_iso(p.timestamp), "price": p.price, "volume": p.volume} for p in series.points],
        columns=["timestamp", "price", "volume"],
    )
    label = "synthetic (no provider available)" if series.synthetic else series.source
    print(f"{args.asset_id} {args.days}d history from {label}")
    print(_table(df))
    return 0


def _cmd_convert(tracker: CryptoTracker, args: argparse.Namespace) -> int:
    result = tracker.convert(args.amount, args.from_code, args.to_code)
    print(f"{args.amount:,.2f} {args.from_code.upper()} = {result:,.2f} {args.to_code.upper()}")
    return 0


def _cmd_fiat(tracker: CryptoTracker, args: argparse.Namespace) -> int:
    df = pd.DataFrame(
        [
            {"code": c.code, "name": c.name, "symbol": c.symbol, "per_usd": c.rate_to_base}
            for c in tracker.get_fiat_currencies()
        ],
        columns=["code", "name", "symbol", "per_usd"],
    )
    print(_table(df))
    return 0


def _cmd_portfolio(tracker: CryptoTracker, args: argparse.Namespace) -> int:
    summary = tracker.get_portfolio_summary()
    print(_table(summary_frame(summary.assets)))
    value = tracker.convert(summary.current_value, "USD", args.currency)
    invested = tracker.convert(summary.total_invested, "USD", args.currency)
    print(
        f"\nValue {value:,.2f} {args.currency.upper()}  invested {invested:,.2f}  "
        f"P/L {summary.total_profit_loss_pct:+.2f}%"
    )
    return 0


def _cmd_tx_add(tracker: CryptoTracker, args: argparse.Namespace) -> int:
    tx = Transaction(
        asset_id=args.asset_id,
        kind=_KINDS[args.kind],
        amount=args.amount,
        price_per_unit=args.price,
        fee=args.fee,
        exchange=args.exchange,
        note=args.note,
        timestamp=parse_utc(args.date) if args.date else utc_now(),
    )
    try:
        saved = tracker.add_transaction(tx)
    except ValidationError as exc:
        print(f"Rejected: {exc}", file=sys.stderr)
        return 2
    print(f"Added {saved.id}")
    return 0


def _cmd_tx_list(tracker: CryptoTracker, args: argparse.Namespace) -> int:
    df = pd.DataFrame(
        [
            {
                "id": t.id,
                "date": to_iso(t.timestamp),
                "asset": t.asset_symbol or t.asset_id,
                "kind": t.kind.value,
                "amount": t.amount,
                "price": t.price_per_unit,
                "fee": t.fee,
                "total": t.total_cost,
            }
            for t in tracker.get_transactions()
        ],
        columns=["id", "date", "asset", "kind", "amount", "price", "fee", "total"],
    )
    print(_table(df))
    return 0


def _cmd_tx_delete(tracker: CryptoTracker, args: argparse.Namespace) -> int:
    if tracker.delete_transaction(args.transaction_id):
        print(f"Deleted {args.transaction_id}")
        return 0
    print(f"No transaction {args.transaction_id}", file=sys.stderr)
    return 1


def _cmd_favorite(tracker: CryptoTracker, args: argparse.Namespace) -> int:
    state = tracker.toggle_favorite(args.asset_id)
    print(f"{args.asset_id}: {'favorite' if state else 'not favorite'}")
    return 0


def _cmd_providers(tracker: CryptoTracker, args: argparse.Namespace) -> int:
    if args.switch:
        if not tracker.switch_provider(args.switch):
            print(f"Unknown provider {args.switch}. Available: {', '.join(tracker.available_providers)}")
            return 1
    else:
        tracker.initialize()
    df = pd.DataFrame(
        [
            {
                "provider": h.provider_name,
                "status": h.status.value,
                "fail_count": h.fail_count,
                "last_ok_at": h.last_ok_at or "",
                "last_error": h.last_error or "",
            }
            for h in tracker.provider_health().values()
        ],
        columns=["provider", "status", "fail_count", "last_ok_at", "last_error"],
    )
    print(f"Active provider: {tracker.active_provider_name}")
    print(_table(df))
    return 0


def _cmd_ping(tracker: CryptoTracker, args: argparse.Namespace) -> int:
    tracker.initialize()
    ok = tracker.test_active_provider_connectivity()
    print(f"{tracker.active_provider_name}: {'OK' if ok else 'unreachable'}")
    return 0 if ok else 1


_COMMANDS = {
    "assets": _cmd_assets,
    "asset": _cmd_asset,
    "history": _cmd_history,
    "convert": _cmd_convert,
    "fiat": _cmd_fiat,
    "portfolio": _cmd_portfolio,
    "tx-add": _cmd_tx_add,
    "tx-list": _cmd_tx_list,
    "tx-delete": _cmd_tx_delete,
    "favorite": _cmd_favorite,
    "providers": _cmd_providers,
    "ping": _cmd_ping,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crypto-tracker",
        description="Multi-provider crypto market data and portfolio tracker",
    )
    parser.add_argument("--log-level", default=None, help="Override logging level (default from config)")
    sub = parser.add_subparsers(dest="command", help="command")

    p = sub.add_parser("assets", help="Top listings")
    p.add_argument("--limit", type=int, default=20)

    p = sub.add_parser("asset", help="One asset by id")
    p.add_argument("asset_id")

    p = sub.add_parser("history", help="Price history for an asset")
    p.add_argument("asset_id")
    p.add_argument("--days", type=int, default=7)

    p = sub.add_parser("convert", help="Convert between fiat currencies")
    p.add_argument("amount", type=float)
    p.add_argument("from_code")
    p.add_argument("to_code")

    sub.add_parser("fiat", help="Fiat currency table")

    p = sub.add_parser("portfolio", help="Holdings valued at current prices")
    p.add_argument("--currency", default="USD")

    p = sub.add_parser("tx-add", help="Record a transaction")
    p.add_argument("asset_id")
    p.add_argument("--kind", choices=sorted(_KINDS), default="buy")
    p.add_argument("--amount", type=float, required=True)
    p.add_argument("--price", type=float, required=True, help="Price per unit in USD")
    p.add_argument("--fee", type=float, default=0.0)
    p.add_argument("--exchange", default="")
    p.add_argument("--note", default="")
    p.add_argument("--date", default=None, help="ISO timestamp (default now)")

    sub.add_parser("tx-list", help="List transactions")

    p = sub.add_parser("tx-delete", help="Delete a transaction")
    p.add_argument("transaction_id")

    p = sub.add_parser("favorite", help="Toggle a favorite")
    p.add_argument("asset_id")

    p = sub.add_parser("providers", help="Active provider and health")
    p.add_argument("--switch", default=None, help="Force this provider active")

    sub.add_parser("ping", help="Connectivity test of the active provider")
    return parser


def main(argv: Optional[List[str]] = None, tracker_factory: Optional[TrackerFactory] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=(args.log_level or log_level()).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    tracker = (tracker_factory or build_tracker)()
    try:
        return _COMMANDS[args.command](tracker, args)
    finally:
        tracker.stop()


if __name__ == "__main__":
    raise SystemExit(main())
