"""
Portfolio valuation: ledger transactions plus current quotes -> holdings.

Holdings are never stored; every pass rebuilds them from the full
transaction list. Per asset:
  amount          = sum(buy amounts) - sum(sell amounts)
  total_invested  = sum(buy total_cost)
  average_buy     = total_invested / sum(buy amounts)   (0 if no buys)
Transfers are recorded but move neither amount nor cost basis. Holdings with
amount <= 0 are dropped. Shares of the portfolio are computed only after every
holding has been priced.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional

import pandas as pd

from .models import (
    Asset,
    PortfolioAsset,
    PortfolioSummary,
    Transaction,
    TransactionKind,
    normalize_asset_id,
)

logger = logging.getLogger(__name__)

PriceLookup = Callable[[str], Optional[Asset]]

_COLUMNS = ["asset_id", "kind", "amount", "cost"]


def transactions_frame(transactions: Iterable[Transaction]) -> pd.DataFrame:
    """One row per transaction with signed buy/sell columns."""
    rows = [
        {
            "asset_id": normalize_asset_id(t.asset_id),
            "kind": t.kind.value,
            "amount": float(t.amount),
            "cost": float(t.total_cost),
        }
        for t in transactions
    ]
    df = pd.DataFrame(rows, columns=_COLUMNS)
    if df.empty:
        return df.assign(buy_amount=[], sell_amount=[], buy_cost=[])
    is_buy = df["kind"] == TransactionKind.BUY.value
    is_sell = df["kind"] == TransactionKind.SELL.value
    df["buy_amount"] = df["amount"].where(is_buy, 0.0)
    df["sell_amount"] = df["amount"].where(is_sell, 0.0)
    df["buy_cost"] = df["cost"].where(is_buy, 0.0)
    return df


def aggregate_holdings(transactions: Iterable[Transaction]) -> pd.DataFrame:
    """Net amount, invested and average buy price per asset id (index)."""
    df = transactions_frame(transactions)
    if df.empty:
        return pd.DataFrame(columns=["amount", "total_invested", "average_buy_price"])
    grouped = df.groupby("asset_id", sort=False)[["buy_amount", "sell_amount", "buy_cost"]].sum()
    out = pd.DataFrame(index=grouped.index)
    out["amount"] = grouped["buy_amount"] - grouped["sell_amount"]
    out["total_invested"] = grouped["buy_cost"]
    bought = grouped["buy_amount"]
    out["average_buy_price"] = (grouped["buy_cost"] / bought.where(bought > 0)).fillna(0.0)
    return out


def _resolve_price(
    asset_id: str,
    price_lookup: PriceLookup,
    last_prices: Dict[str, float],
) -> tuple:
    """(price, stale, quote) for one asset; falls back to the last known price."""
    try:
        quote = price_lookup(asset_id)
    except Exception as exc:
        logger.warning("Price lookup for %s failed: %s", asset_id, exc)
        quote = None
    if quote is not None and not quote.placeholder:
        return quote.price, False, quote
    logger.warning("No live price for %s, keeping last known price", asset_id)
    return last_prices.get(asset_id, 0.0), True, quote


def value_holdings(
    transactions: List[Transaction],
    price_lookup: PriceLookup,
    last_prices: Optional[Dict[str, float]] = None,
) -> List[PortfolioAsset]:
    """
    Rebuild priced holdings from the ledger.

    price_lookup returns the current quote for an asset id (a placeholder or
    None counts as a failed lookup). last_prices holds the previous pass's
    prices and is used, with price_stale set, when a lookup fails.
    """
    last_prices = last_prices or {}
    holdings = aggregate_holdings(transactions)
    by_asset: Dict[str, List[Transaction]] = {}
    for t in transactions:
        by_asset.setdefault(normalize_asset_id(t.asset_id), []).append(t)

    assets: List[PortfolioAsset] = []
    for asset_id, row in holdings.iterrows():
        amount = float(row["amount"])
        if amount <= 0:
            continue
        price, stale, quote = _resolve_price(asset_id, price_lookup, last_prices)
        txs = by_asset.get(asset_id, [])
        first = txs[0] if txs else None
        symbol = (quote.symbol if quote is not None and not quote.placeholder else "") or (
            first.asset_symbol if first else ""
        )
        name = (quote.name if quote is not None and not quote.placeholder else "") or (
            first.asset_name if first else ""
        )
        assets.append(
            PortfolioAsset(
                asset_id=asset_id,
                symbol=symbol or asset_id.upper(),
                name=name or asset_id.upper(),
                amount=amount,
                total_invested=float(row["total_invested"]),
                average_buy_price=float(row["average_buy_price"]),
                current_price=float(price),
                price_stale=stale,
                transactions=list(txs),
            )
        )

    apply_portfolio_shares(assets)
    assets.sort(key=lambda a: a.current_value, reverse=True)
    return assets


def apply_portfolio_shares(assets: List[PortfolioAsset]) -> None:
    """Set share_pct on each holding; all zero when the portfolio is worth nothing."""
    total = sum(a.current_value for a in assets)
    for a in assets:
        a.share_pct = a.current_value / total * 100.0 if total > 0 else 0.0


def summarize(assets: List[PortfolioAsset]) -> PortfolioSummary:
    return PortfolioSummary(
        total_invested=sum(a.total_invested for a in assets),
        current_value=sum(a.current_value for a in assets),
        assets=list(assets),
    )


def summary_frame(assets: List[PortfolioAsset]) -> pd.DataFrame:
    """Tabular view of holdings for display."""
    return pd.DataFrame(
        [
            {
                "asset": a.symbol,
                "amount": a.amount,
                "avg_buy": a.average_buy_price,
                "price": a.current_price,
                "value": a.current_value,
                "invested": a.total_invested,
                "pnl": a.profit_loss,
                "pnl_pct": a.profit_loss_pct,
                "share_pct": a.share_pct,
                "stale": a.price_stale,
            }
            for a in assets
        ],
        columns=[
            "asset", "amount", "avg_buy", "price", "value",
            "invested", "pnl", "pnl_pct", "share_pct", "stale",
        ],
    )
