"""
Tests for the valuation engine.
"""

from decimal import Decimal

import pytest

from folio_core.models import AssetType, CustomPrice, Position, PriceData
from folio_core.valuation import (
    aggregate_positions_by_symbol,
    extract_currency_code,
    value_position,
    value_positions,
)

PRICES = {
    "btc": PriceData(symbol="BTC", price=50000, change_24h=1000, change_percent_24h=2),
    "eth": PriceData(symbol="ETH", price=3000, change_24h=-30, change_percent_24h=-1),
    "sol": PriceData(symbol="SOL", price=100),
    "usdc": PriceData(symbol="USDC", price=1),
    "aapl": PriceData(symbol="AAPL", price=180, change_24h="1.8", change_percent_24h=1),
    "googl": PriceData(symbol="GOOGL", price=140),
}


def _pos(symbol, amount, type=AssetType.CRYPTO, id=None, **kwargs) -> Position:
    return Position(id=id or f"id-{symbol}", symbol=symbol, name=symbol, type=type, amount=amount, **kwargs)


# --- value_position ---


def test_market_price_value_and_change():
    priced = value_position(_pos("BTC", "0.5"), PRICES)
    assert priced.current_price == Decimal("50000")
    assert priced.value == Decimal("25000")
    assert priced.change_24h == Decimal("500")
    assert priced.change_percent_24h == Decimal("2")
    assert priced.has_custom_price is False
    assert priced.allocation == 0


def test_upper_case_price_key_fallback():
    prices = {"PRIVATE": PriceData(symbol="PRIVATE", price=4)}
    assert value_position(_pos("private", 10, AssetType.MANUAL), prices).value == Decimal("40")


def test_price_key_overrides_symbol():
    prices = {"wrapped-btc-key": PriceData(symbol="WBTC", price=49000)}
    priced = value_position(_pos("WBTC", 1, price_key="wrapped-btc-key"), prices)
    assert priced.value == Decimal("49000")


def test_custom_price_wins_and_has_no_change():
    priced = value_position(_pos("BTC", 2), PRICES, custom_prices={"btc": CustomPrice(price=60000)})
    assert priced.value == Decimal("120000")
    assert priced.has_custom_price is True
    assert priced.change_24h == 0
    assert priced.change_percent_24h == 0


def test_missing_price_values_at_zero():
    priced = value_position(_pos("NOPE", 10), PRICES)
    assert priced.current_price == 0
    assert priced.value == 0


def test_debt_value_negative_and_change_inverted():
    priced = value_position(_pos("ETH", 2, is_debt=True), PRICES)
    assert priced.value == Decimal("-6000")
    assert priced.change_24h == Decimal("60")


def test_cash_uses_fx_rate():
    cash = _pos("CASH_CHF_123", 1000, AssetType.CASH)
    priced = value_position(cash, PRICES, fx_rates={"CHF": Decimal("1.1")})
    assert priced.current_price == Decimal("1.1")
    assert priced.value == Decimal("1100.0")


def test_cash_missing_fx_rate_degrades_to_one():
    priced = value_position(_pos("CASH_PLN_1", 500, AssetType.CASH), PRICES, fx_rates={})
    assert priced.value == Decimal("500")


def test_cash_base_currency_ignores_table():
    priced = value_position(_pos("CASH_USD_1", 250, AssetType.CASH), PRICES, fx_rates={"USD": 2})
    assert priced.value == Decimal("250")


def test_valuation_is_idempotent():
    positions = [_pos("BTC", 1), _pos("ETH", 3), _pos("CASH_USD_1", 10, AssetType.CASH)]
    assert value_positions(positions, PRICES) == value_positions(positions, PRICES)


# --- value_positions ---


def test_allocation_and_ordering():
    positions = [
        _pos("ETH", 10),
        _pos("USDC", 1000, is_debt=True),
        _pos("BTC", 1),
        _pos("SOL", 200),
    ]
    priced = value_positions(positions, PRICES)
    assert [p.symbol for p in priced] == ["BTC", "ETH", "SOL", "USDC"]
    gross = Decimal("50000") + Decimal("30000") + Decimal("20000")
    assert priced[0].allocation == Decimal("50000") / gross * 100
    assert priced[-1].allocation < 0


def test_value_positions_empty():
    assert value_positions([], PRICES) == []


# --- extract_currency_code ---


@pytest.mark.parametrize(
    "symbol,expected",
    [
        ("CASH_CHF_123", "CHF"),
        ("PLN_123", "PLN"),
        ("usd", "USD"),
        ("USDC", "USDC"),
        ("BITCOIN", "BITCOIN"),
        ("CASH_USD_revolut", "USD"),
    ],
)
def test_extract_currency_code(symbol, expected):
    assert extract_currency_code(symbol) == expected


# --- aggregate_positions_by_symbol ---


def test_aggregate_by_symbol_nets_rows():
    priced = value_positions([_pos("BTC", 1, id="a"), _pos("BTC", "0.5", id="b"), _pos("ETH", 1)], PRICES)
    merged = aggregate_positions_by_symbol(priced)
    assert len(merged) == 2
    btc = next(p for p in merged if p.symbol == "BTC")
    assert btc.amount == Decimal("1.5")
    assert btc.value == Decimal("75000")


def test_aggregate_by_symbol_nets_debt():
    priced = value_positions([_pos("ETH", 3, id="a"), _pos("ETH", 1, id="b", is_debt=True)], PRICES)
    merged = aggregate_positions_by_symbol(priced)
    assert len(merged) == 1
    assert merged[0].amount == Decimal("2")
    assert merged[0].value == Decimal("6000")
    assert merged[0].is_debt is False


def test_aggregate_by_symbol_keeps_types_apart():
    priced = value_positions([_pos("GOOGL", 1, AssetType.STOCK), _pos("GOOGL", 1, AssetType.MANUAL, id="m")], PRICES)
    assert len(aggregate_positions_by_symbol(priced)) == 2
