"""
Trade execution engine: buy, partial sell, full sell.

Pure functions. Each returns a TradeResult describing what changed relative to
the input position; nothing is mutated and nothing is persisted here.

Cost basis is the total cost of the held amount. A sell attributes cost basis
pro rata (cost_basis * sold / held) and the remainder is computed by
subtraction, so attributed + remaining equals the prior cost basis exactly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal

from folio_core.classification import classify
from folio_core.errors import ValidationError
from folio_core.models import AssetType, Position, Transaction, TransactionType, new_id
from folio_core.money import HUNDRED, ZERO, Number, to_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TradeResult:
    """
    Outcome of one trade.

    Exactly one of updated_position / new_position is set for a buy. A partial
    sell sets updated_position; a full sell sets removed_position_id and the
    caller must delete that position.
    """

    transaction: Transaction
    updated_position: Position | None = None
    new_position: Position | None = None
    removed_position_id: str | None = None

    @property
    def position_id(self) -> str:
        return self.transaction.position_id


def _positive(value: Number | None, field: str) -> Decimal:
    d = to_decimal(value, default=None)
    if d is None or d <= 0:
        raise ValidationError("must be a positive number", field=field)
    return d


def _non_negative(value: Number | None, field: str) -> Decimal:
    d = to_decimal(value, default=None)
    if d is None or d < 0:
        raise ValidationError("must be zero or positive", field=field)
    return d


def buy(
    existing: Position | None,
    amount: Number,
    price_per_unit: Number | None = None,
    total_cost: Number | None = None,
    *,
    date: date | None = None,
    notes: str | None = None,
    symbol: str | None = None,
    name: str | None = None,
    asset_type: AssetType | None = None,
    account_id: str | None = None,
    now: datetime | None = None,
) -> TradeResult:
    """
    Buy into an existing position, or open a new lot when existing is None.

    Parameters
    ----------
    existing : Position to merge into, or None
    amount : units bought (> 0)
    price_per_unit : price per unit; may be omitted when total_cost is given
    total_cost : explicit total paid (fees included); wins over amount * price
    symbol, name, asset_type, account_id : used only for a new lot

    Returns
    -------
    TradeResult with updated_position (merge) or new_position (new lot).
    """
    qty = _positive(amount, "amount")
    cost = None
    if total_cost is not None:
        cost = _non_negative(total_cost, "total_cost")
    price = to_decimal(price_per_unit)
    if price <= 0:
        if cost is None:
            raise ValidationError("must be a positive number", field="price_per_unit")
        price = cost / qty
    if cost is None:
        cost = qty * price

    if existing is None and not (symbol or "").strip():
        raise ValidationError("required for a new position", field="symbol")

    now = now or datetime.now()
    trade_date = date or now.date()

    if existing is not None:
        position = replace(
            existing,
            amount=existing.amount + qty,
            cost_basis=(existing.cost_basis or ZERO) + cost,
            purchase_date=existing.purchase_date or trade_date,
            updated_at=now,
        )
        updated, created = position, None
    else:
        sym = symbol.strip()
        kind = asset_type or AssetType.MANUAL
        position = Position(
            id=new_id(),
            symbol=sym,
            name=(name or sym).strip(),
            type=kind,
            amount=qty,
            cost_basis=cost,
            asset_class=classify(sym, kind),
            account_id=account_id,
            purchase_date=trade_date,
            added_at=now,
            updated_at=now,
        )
        updated, created = None, position

    tx = Transaction(
        id=new_id(),
        type=TransactionType.BUY,
        symbol=position.symbol,
        name=position.name,
        asset_type=position.type,
        amount=qty,
        price_per_unit=price,
        total_value=cost,
        position_id=position.id,
        date=trade_date,
        created_at=now,
        notes=notes,
    )
    logger.debug("buy %s %s @ %s (total %s) -> %s", qty, position.symbol, price, cost, position.id)
    return TradeResult(transaction=tx, updated_position=updated, new_position=created)


def sell_partial(
    position: Position,
    sell_amount: Number,
    sell_price: Number,
    *,
    date: date | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> TradeResult:
    """
    Sell part of a position.

    Requires 0 < sell_amount <= position.amount and sell_price >= 0. Selling
    exactly the held amount is treated as a full sell (removal signal, no
    updated position) so a zero-amount position is never produced.
    """
    qty = _positive(sell_amount, "sell_amount")
    price = _non_negative(sell_price, "sell_price")
    if qty > position.amount:
        raise ValidationError("amount exceeds position", field="sell_amount")
    if qty == position.amount:
        return sell_all(position, price, date=date, notes=notes, now=now)

    now = now or datetime.now()
    trade_date = date or now.date()

    if position.cost_basis is None:
        attributed = ZERO
        remaining = None
    else:
        attributed = position.cost_basis * qty / position.amount
        remaining = position.cost_basis - attributed

    updated = replace(
        position,
        amount=position.amount - qty,
        cost_basis=remaining,
        updated_at=now,
    )
    tx = Transaction(
        id=new_id(),
        type=TransactionType.SELL,
        symbol=position.symbol,
        name=position.name,
        asset_type=position.type,
        amount=qty,
        price_per_unit=price,
        total_value=qty * price,
        position_id=position.id,
        date=trade_date,
        created_at=now,
        cost_basis_at_execution=attributed,
        notes=notes,
    )
    logger.debug("sell %s of %s %s @ %s", qty, position.amount, position.symbol, price)
    return TradeResult(transaction=tx, updated_position=updated)


def sell_all(
    position: Position,
    sell_price: Number,
    *,
    date: date | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> TradeResult:
    """Sell the whole position. The entire cost basis is attributed to the sale."""
    price = _non_negative(sell_price, "sell_price")
    if position.amount <= 0:
        raise ValidationError("position has nothing to sell", field="amount")

    now = now or datetime.now()
    trade_date = date or now.date()

    tx = Transaction(
        id=new_id(),
        type=TransactionType.SELL,
        symbol=position.symbol,
        name=position.name,
        asset_type=position.type,
        amount=position.amount,
        price_per_unit=price,
        total_value=position.amount * price,
        position_id=position.id,
        date=trade_date,
        created_at=now,
        cost_basis_at_execution=position.cost_basis or ZERO,
        notes=notes,
    )
    logger.debug("sell all %s %s @ %s", position.amount, position.symbol, price)
    return TradeResult(transaction=tx, removed_position_id=position.id)


def sell_percent(
    position: Position,
    percent: Number,
    sell_price: Number,
    *,
    date: date | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> TradeResult:
    """Sell a percentage (0, 100] of the position. 100 is a full sell."""
    p = _positive(percent, "sell_percent")
    if p > HUNDRED:
        raise ValidationError("cannot exceed 100", field="sell_percent")
    if p == HUNDRED:
        return sell_all(position, sell_price, date=date, notes=notes, now=now)
    return sell_partial(position, position.amount * p / HUNDRED, sell_price, date=date, notes=notes, now=now)
