"""
Tests for the trade engine: buy, sell_partial, sell_all, sell_percent.
"""

from dataclasses import FrozenInstanceError
from datetime import date, datetime
from decimal import Decimal

import pytest

from folio_core.errors import ValidationError
from folio_core.models import AssetClass, AssetType, Position, TransactionType
from folio_core.trades import buy, sell_all, sell_partial, sell_percent

NOW = datetime(2024, 6, 1, 12, 0, 0)


def _position(amount="10", cost_basis="1000", **kwargs) -> Position:
    defaults = dict(id="pos-1", symbol="AAPL", name="Apple Inc.", type=AssetType.STOCK)
    defaults.update(kwargs)
    return Position(amount=Decimal(amount), cost_basis=None if cost_basis is None else Decimal(cost_basis), **defaults)


# --- buy ---


def test_buy_new_position_cost_basis_equals_total_cost():
    result = buy(None, 5, 200, symbol="AAPL", asset_type=AssetType.STOCK, now=NOW)
    assert result.updated_position is None
    pos = result.new_position
    assert pos.amount == Decimal("5")
    assert pos.cost_basis == Decimal("1000")
    assert pos.purchase_date == NOW.date()
    assert pos.asset_class == AssetClass.EQUITY
    assert result.transaction.type == TransactionType.BUY
    assert result.transaction.total_value == Decimal("1000")
    assert result.transaction.position_id == pos.id


def test_buy_explicit_total_cost_wins():
    result = buy(None, 2, 100, total_cost=205, symbol="ETH", asset_type=AssetType.CRYPTO, now=NOW)
    assert result.new_position.cost_basis == Decimal("205")
    assert result.transaction.price_per_unit == Decimal("100")


def test_buy_price_derived_from_total_cost():
    result = buy(None, 4, None, total_cost=1000, symbol="SOL", asset_type=AssetType.CRYPTO, now=NOW)
    assert result.transaction.price_per_unit == Decimal("250")
    assert result.new_position.cost_basis == Decimal("1000")


def test_buy_merges_into_existing():
    existing = _position(purchase_date=date(2023, 1, 1))
    result = buy(existing, 2, 150, now=NOW)
    assert result.new_position is None
    pos = result.updated_position
    assert pos.id == existing.id
    assert pos.amount == Decimal("12")
    assert pos.cost_basis == Decimal("1300")
    assert pos.purchase_date == date(2023, 1, 1)


def test_buy_merge_with_missing_cost_basis_treated_as_zero():
    existing = _position(cost_basis=None)
    result = buy(existing, 1, 100, now=NOW)
    assert result.updated_position.cost_basis == Decimal("100")
    assert result.updated_position.purchase_date == NOW.date()


def test_buy_does_not_mutate_input():
    existing = _position()
    buy(existing, 2, 150, now=NOW)
    assert existing.amount == Decimal("10")
    assert existing.cost_basis == Decimal("1000")


@pytest.mark.parametrize("amount", [0, -1, "abc", None])
def test_buy_rejects_bad_amount(amount):
    with pytest.raises(ValidationError) as exc:
        buy(None, amount, 100, symbol="BTC")
    assert exc.value.field == "amount"


def test_buy_rejects_missing_price():
    with pytest.raises(ValidationError) as exc:
        buy(None, 1, 0, symbol="BTC")
    assert exc.value.field == "price_per_unit"


def test_buy_rejects_negative_total_cost():
    with pytest.raises(ValidationError) as exc:
        buy(None, 1, 100, total_cost=-5, symbol="BTC")
    assert exc.value.field == "total_cost"


def test_buy_zero_total_cost_derives_zero_price():
    result = buy(None, 50, None, total_cost=0, symbol="ARB", asset_type=AssetType.CRYPTO, now=NOW)
    assert result.new_position.amount == Decimal("50")
    assert result.new_position.cost_basis == Decimal("0")
    assert result.transaction.price_per_unit == Decimal("0")
    assert result.transaction.total_value == Decimal("0")


def test_buy_new_lot_requires_symbol():
    with pytest.raises(ValidationError) as exc:
        buy(None, 1, 100)
    assert exc.value.field == "symbol"


# --- sell_partial ---


def test_sell_partial_scenario():
    pos = _position("10", "1000")
    result = sell_partial(pos, 4, 150, now=NOW)
    tx = result.transaction
    assert tx.cost_basis_at_execution == Decimal("400")
    assert result.updated_position.amount == Decimal("6")
    assert result.updated_position.cost_basis == Decimal("600")
    assert tx.total_value == Decimal("600")
    assert tx.realized_pnl == Decimal("200")
    assert result.removed_position_id is None


@pytest.mark.parametrize("sell", ["1", "3", "0.1", "9.99999999"])
def test_sell_partial_conserves_cost_basis(sell):
    pos = _position("10", "1000")
    result = sell_partial(pos, Decimal(sell), 1, now=NOW)
    remaining = result.updated_position.cost_basis
    assert result.transaction.cost_basis_at_execution + remaining == pos.cost_basis
    assert result.updated_position.amount == pos.amount - Decimal(sell)


def test_sell_partial_conserves_with_repeating_fraction():
    pos = _position("3", "100")
    result = sell_partial(pos, 1, 50, now=NOW)
    assert result.transaction.cost_basis_at_execution + result.updated_position.cost_basis == Decimal("100")


def test_sell_partial_exceeding_amount_rejected():
    with pytest.raises(ValidationError) as exc:
        sell_partial(_position("10"), 11, 100)
    assert exc.value.field == "sell_amount"
    assert "exceeds" in exc.value.message


@pytest.mark.parametrize("amount", [0, -2])
def test_sell_partial_rejects_non_positive_amount(amount):
    with pytest.raises(ValidationError):
        sell_partial(_position(), amount, 100)


def test_sell_partial_rejects_negative_price():
    with pytest.raises(ValidationError) as exc:
        sell_partial(_position(), 1, -1)
    assert exc.value.field == "sell_price"


def test_sell_partial_zero_price_allowed():
    result = sell_partial(_position(), 1, 0, now=NOW)
    assert result.transaction.total_value == Decimal("0")
    assert result.transaction.realized_pnl == Decimal("-100")


def test_sell_partial_full_amount_becomes_full_sell():
    pos = _position("10", "1000")
    result = sell_partial(pos, 10, 120, now=NOW)
    assert result.updated_position is None
    assert result.removed_position_id == pos.id
    assert result.transaction.cost_basis_at_execution == Decimal("1000")
    assert result.transaction.amount == Decimal("10")


def test_sell_partial_without_cost_basis():
    pos = _position("10", None)
    result = sell_partial(pos, 4, 10, now=NOW)
    assert result.transaction.cost_basis_at_execution == Decimal("0")
    assert result.updated_position.cost_basis is None


# --- sell_all ---


def test_sell_all_removes_position():
    pos = _position("10", "1000")
    result = sell_all(pos, 130, now=NOW)
    assert result.removed_position_id == pos.id
    assert result.updated_position is None
    assert result.transaction.amount == pos.amount
    assert result.transaction.cost_basis_at_execution == Decimal("1000")
    assert result.transaction.realized_pnl == Decimal("300")


def test_sell_all_rejects_empty_position():
    with pytest.raises(ValidationError):
        sell_all(_position("0"), 10)


# --- sell_percent ---


def test_sell_percent_routes_to_partial():
    result = sell_percent(_position("10", "1000"), 25, 100, now=NOW)
    assert result.transaction.amount == Decimal("2.5")
    assert result.updated_position.cost_basis == Decimal("750")


def test_sell_percent_hundred_is_full_sell():
    pos = _position()
    assert sell_percent(pos, 100, 100, now=NOW).removed_position_id == pos.id


def test_sell_percent_over_hundred_rejected():
    with pytest.raises(ValidationError) as exc:
        sell_percent(_position(), 101, 100)
    assert exc.value.field == "sell_percent"


# --- Transaction immutability ---


def test_transaction_is_frozen():
    tx = sell_all(_position(), 100, now=NOW).transaction
    with pytest.raises(FrozenInstanceError):
        tx.amount = Decimal("1")
