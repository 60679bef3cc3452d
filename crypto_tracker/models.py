"""
Data contracts for market data and the portfolio ledger.

Quote records (Asset, FiatCurrency, PriceHistoryPoint) are frozen dataclasses:
caches hand them out to many readers, so nobody may mutate a shared instance.
Portfolio records are derived on every valuation pass and never persisted.
"""

from __future__ import annotations

import enum
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .core.errors import ValidationError
from .timeutils import parse_utc, to_iso, utc_now

BASE_CURRENCY = "USD"


def normalize_asset_id(asset_id: str) -> str:
    """Identity key used across providers and caches."""
    return (asset_id or "").strip().lower()


@dataclass(frozen=True)
class Asset:
    """Normalized quote for one crypto asset."""

    id: str
    name: str
    symbol: str
    price: float = 0.0
    market_cap: float = 0.0
    price_change_24h: float = 0.0
    price_change_pct_24h: float = 0.0
    volume_24h: Optional[float] = None
    circulating_supply: Optional[float] = None
    total_supply: Optional[float] = None
    rank: Optional[int] = None
    is_favorite: bool = False
    last_updated: datetime = field(default_factory=utc_now)
    provider_name: str = ""
    placeholder: bool = False

    @classmethod
    def placeholder_for(cls, asset_id: str) -> "Asset":
        """Minimal record served when no provider knows the asset."""
        key = normalize_asset_id(asset_id)
        return cls(
            id=key,
            name=key.upper(),
            symbol=key.upper(),
            price=0.0,
            placeholder=True,
        )


@dataclass(frozen=True)
class FiatCurrency:
    """
    Fiat currency with its rate against the common base (USD).

    rate_to_base is units of this currency per one USD (EUR ~0.9, RUB ~90).
    """

    code: str
    name: str
    symbol: str
    rate_to_base: float
    last_updated: datetime = field(default_factory=utc_now)

    @property
    def is_usable(self) -> bool:
        return self.rate_to_base > 0

    def to_base(self, amount: float) -> float:
        return amount / self.rate_to_base

    def from_base(self, amount: float) -> float:
        return amount * self.rate_to_base


@dataclass(frozen=True)
class PriceHistoryPoint:
    timestamp: datetime
    price: float
    volume: float = 0.0


@dataclass(frozen=True)
class HistorySeries:
    """History points plus provenance. Synthetic series are degraded-mode placeholders."""

    points: List[PriceHistoryPoint]
    source: str
    synthetic: bool = False


class TransactionKind(enum.Enum):
    BUY = "Buy"
    SELL = "Sell"
    TRANSFER = "Transfer"


@dataclass(frozen=True)
class Transaction:
    """One ledger entry. Replaced wholesale on update; never edited in place."""

    asset_id: str
    kind: TransactionKind
    amount: float
    price_per_unit: float
    fee: float = 0.0
    asset_symbol: str = ""
    asset_name: str = ""
    exchange: str = ""
    timestamp: datetime = field(default_factory=utc_now)
    note: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def total_cost(self) -> float:
        return self.amount * self.price_per_unit + self.fee

    def validate(self) -> None:
        """Raise ValidationError for input the ledger must reject."""
        if not normalize_asset_id(self.asset_id):
            raise ValidationError("Select an asset")
        if not isinstance(self.kind, TransactionKind):
            raise ValidationError(f"Unknown transaction kind: {self.kind!r}")
        if not (math.isfinite(self.amount) and self.amount > 0):
            raise ValidationError("Enter a positive amount")
        if not math.isfinite(self.price_per_unit):
            raise ValidationError("Price per unit must be a number")
        if self.price_per_unit < 0:
            raise ValidationError("Price per unit cannot be negative")
        if not math.isfinite(self.fee):
            raise ValidationError("Fee must be a number")
        if self.fee < 0:
            raise ValidationError("Fee cannot be negative")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "asset_id": self.asset_id,
            "asset_symbol": self.asset_symbol,
            "asset_name": self.asset_name,
            "kind": self.kind.value,
            "amount": self.amount,
            "price_per_unit": self.price_per_unit,
            "fee": self.fee,
            "exchange": self.exchange,
            "timestamp": to_iso(self.timestamp),
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        return cls(
            id=str(data["id"]),
            asset_id=str(data["asset_id"]),
            asset_symbol=str(data.get("asset_symbol", "")),
            asset_name=str(data.get("asset_name", "")),
            kind=TransactionKind(data["kind"]),
            amount=float(data["amount"]),
            price_per_unit=float(data["price_per_unit"]),
            fee=float(data.get("fee", 0.0)),
            exchange=str(data.get("exchange", "")),
            timestamp=parse_utc(data["timestamp"]),
            note=str(data.get("note", "")),
        )


@dataclass
class PortfolioAsset:
    """Derived holding for one asset. Rebuilt on every valuation pass."""

    asset_id: str
    symbol: str
    name: str
    amount: float = 0.0
    total_invested: float = 0.0
    average_buy_price: float = 0.0
    current_price: float = 0.0
    price_stale: bool = False
    share_pct: float = 0.0
    transactions: List[Transaction] = field(default_factory=list)

    @property
    def current_value(self) -> float:
        return self.amount * self.current_price

    @property
    def profit_loss(self) -> float:
        return self.current_value - self.total_invested

    @property
    def profit_loss_pct(self) -> float:
        if self.total_invested > 0:
            return self.profit_loss / self.total_invested * 100.0
        return 0.0


@dataclass
class PortfolioSummary:
    total_invested: float
    current_value: float
    assets: List[PortfolioAsset]
    last_updated: datetime = field(default_factory=utc_now)

    @property
    def total_profit_loss(self) -> float:
        return self.current_value - self.total_invested

    @property
    def total_profit_loss_pct(self) -> float:
        if self.total_invested > 0:
            return self.total_profit_loss / self.total_invested * 100.0
        return 0.0


@dataclass
class Ledger:
    """The only durable state: transactions plus the favorites set."""

    transactions: List[Transaction] = field(default_factory=list)
    favorites: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transactions": [t.to_dict() for t in self.transactions],
            "favorites": list(self.favorites),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Ledger":
        favorites: List[str] = []
        for fav in data.get("favorites") or []:
            key = normalize_asset_id(str(fav))
            if key and key not in favorites:
                favorites.append(key)
        return cls(
            transactions=[Transaction.from_dict(t) for t in data.get("transactions") or []],
            favorites=favorites,
        )
