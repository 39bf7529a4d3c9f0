"""
Ledger data model: positions, accounts, transactions, prices.

All records are immutable. The engine returns modified copies
(dataclasses.replace); it never mutates what the caller passed in.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from folio_core.money import ZERO, to_decimal


class AssetType(Enum):
    """Type declared by whoever created the position."""

    CRYPTO = "crypto"
    STOCK = "stock"
    ETF = "etf"
    CASH = "cash"
    MANUAL = "manual"


class AssetClass(Enum):
    """Resolved classification used for grouping and exposure."""

    CRYPTO = "crypto"
    EQUITY = "equity"
    METALS = "metals"
    CASH = "cash"
    OTHER = "other"


class TransactionType(Enum):
    BUY = "buy"
    SELL = "sell"


class AccountKind(Enum):
    BROKERAGE = "brokerage"
    BANK = "bank"
    WALLET = "wallet"
    EXCHANGE = "exchange"
    MANUAL = "manual"


MANUAL_DATA_SOURCE = "manual"


def new_id() -> str:
    return str(uuid.uuid4())


def _coerce(obj: object, name: str, *, optional: bool = False) -> None:
    value = getattr(obj, name)
    if value is None and optional:
        return
    object.__setattr__(obj, name, to_decimal(value))


@dataclass(frozen=True)
class Position:
    """
    One held unit of an asset.

    cost_basis is the total cost of the amount currently held; average cost is
    always derived (average_cost), never stored. version is bumped by the store
    on every committed change and used for optimistic concurrency checks.
    """

    id: str
    symbol: str
    name: str
    type: AssetType
    amount: Decimal
    cost_basis: Decimal | None = None
    asset_class: AssetClass | None = None
    asset_class_override: AssetClass | None = None
    account_id: str | None = None
    purchase_date: date | None = None
    is_debt: bool = False
    chain: str | None = None
    protocol: str | None = None
    wallet_address: str | None = None
    price_key: str | None = None
    added_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.type, AssetType):
            object.__setattr__(self, "type", AssetType(str(self.type).lower()))
        _coerce(self, "amount")
        _coerce(self, "cost_basis", optional=True)

    @property
    def average_cost(self) -> Decimal | None:
        """cost_basis / amount, or None when either is missing or amount is zero."""
        if self.cost_basis is None or self.amount == 0:
            return None
        return self.cost_basis / self.amount


@dataclass(frozen=True)
class AccountConnection:
    """Where an account's data comes from: 'manual' or a synced provider name."""

    data_source: str = MANUAL_DATA_SOURCE
    address: str | None = None

    @property
    def is_manual(self) -> bool:
        return self.data_source == MANUAL_DATA_SOURCE


@dataclass(frozen=True)
class Account:
    """A named holding context (brokerage, bank, wallet, exchange)."""

    id: str
    name: str
    kind: AccountKind = AccountKind.MANUAL
    is_active: bool = True
    connection: AccountConnection = field(default_factory=AccountConnection)
    slug: str | None = None
    added_at: datetime | None = None

    @property
    def settles_cash(self) -> bool:
        """Trades in this account move a linked cash balance."""
        return self.kind == AccountKind.BROKERAGE


@dataclass(frozen=True)
class Transaction:
    """Append-only record of a ledger-mutating event. Never edited after creation."""

    id: str
    type: TransactionType
    symbol: str
    name: str
    asset_type: AssetType
    amount: Decimal
    price_per_unit: Decimal
    total_value: Decimal
    position_id: str
    date: date
    created_at: datetime
    cost_basis_at_execution: Decimal | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        _coerce(self, "amount")
        _coerce(self, "price_per_unit")
        _coerce(self, "total_value")
        _coerce(self, "cost_basis_at_execution", optional=True)

    @property
    def realized_pnl(self) -> Decimal | None:
        """Proceeds minus attributed cost basis. Only defined for sells."""
        if self.type != TransactionType.SELL:
            return None
        return self.total_value - (self.cost_basis_at_execution or ZERO)


@dataclass(frozen=True)
class PriceData:
    """Market price snapshot for one symbol."""

    symbol: str
    price: Decimal
    change_24h: Decimal = ZERO
    change_percent_24h: Decimal = ZERO
    last_updated: datetime | None = None

    def __post_init__(self) -> None:
        _coerce(self, "price")
        _coerce(self, "change_24h")
        _coerce(self, "change_percent_24h")


@dataclass(frozen=True)
class CustomPrice:
    """User-set price. Always wins over the market price."""

    price: Decimal
    set_at: datetime | None = None
    note: str | None = None

    def __post_init__(self) -> None:
        _coerce(self, "price")


@dataclass(frozen=True)
class PricedPosition:
    """A position plus its resolved price and value. value is negative for debt."""

    position: Position
    current_price: Decimal
    value: Decimal
    change_24h: Decimal = ZERO
    change_percent_24h: Decimal = ZERO
    has_custom_price: bool = False
    allocation: Decimal = ZERO

    @property
    def id(self) -> str:
        return self.position.id

    @property
    def symbol(self) -> str:
        return self.position.symbol

    @property
    def name(self) -> str:
        return self.position.name

    @property
    def type(self) -> AssetType:
        return self.position.type

    @property
    def amount(self) -> Decimal:
        return self.position.amount

    @property
    def is_debt(self) -> bool:
        return self.position.is_debt

    @property
    def protocol(self) -> str | None:
        return self.position.protocol
