"""
Tests for core types: money helpers, models, errors, settings.
"""

from decimal import Decimal

import pytest

from folio_core.config import DEFAULT_ASSUMED_PERP_LEVERAGE, DEFAULT_RISK_FREE_RATE, LedgerSettings
from folio_core.errors import StaleSnapshotError, ValidationError
from folio_core.models import (
    Account,
    AccountConnection,
    AccountKind,
    AssetType,
    Position,
    PriceData,
    Transaction,
    TransactionType,
)
from folio_core.money import ZERO, pct, safe_div, to_decimal


# --- Money ---


@pytest.mark.parametrize(
    "raw,expected",
    [
        (0.1, Decimal("0.1")),
        ("1,250.50", Decimal("1250.50")),
        (" 7 ", Decimal("7")),
        (Decimal("3"), Decimal("3")),
        (None, ZERO),
        ("abc", ZERO),
        (float("nan"), ZERO),
        (float("inf"), ZERO),
        (True, ZERO),
    ],
)
def test_to_decimal(raw, expected):
    assert to_decimal(raw) == expected


def test_to_decimal_custom_default():
    assert to_decimal("x", default=None) is None


def test_safe_div_and_pct():
    assert safe_div(Decimal("1"), ZERO) == ZERO
    assert safe_div(Decimal("6"), Decimal("3")) == Decimal("2")
    assert pct(Decimal("25"), Decimal("200")) == Decimal("12.5")
    assert pct(Decimal("25"), ZERO) == ZERO


# --- Models ---


def test_position_coerces_numbers():
    p = Position(id="1", symbol="BTC", name="Bitcoin", type="crypto", amount=0.1, cost_basis="5000")
    assert p.type == AssetType.CRYPTO
    assert p.amount == Decimal("0.1")
    assert p.cost_basis == Decimal("5000")
    assert p.version == 0


def test_position_average_cost():
    p = Position(id="1", symbol="ETH", name="Ethereum", type=AssetType.CRYPTO, amount=4, cost_basis=8000)
    assert p.average_cost == Decimal("2000")
    assert Position(id="2", symbol="X", name="X", type=AssetType.MANUAL, amount=0, cost_basis=1).average_cost is None
    assert Position(id="3", symbol="X", name="X", type=AssetType.MANUAL, amount=1).average_cost is None


def test_account_settles_cash_only_for_brokerage():
    assert Account(id="a", name="Broker", kind=AccountKind.BROKERAGE).settles_cash
    assert not Account(id="b", name="Bank", kind=AccountKind.BANK).settles_cash
    assert Account(id="c", name="Manual").connection.is_manual
    assert not AccountConnection(data_source="debank").is_manual


def test_transaction_realized_pnl_only_for_sells():
    common = dict(
        id="t", symbol="AAPL", name="Apple", asset_type=AssetType.STOCK, amount=4,
        price_per_unit=150, position_id="p", date=None, created_at=None,
    )
    sell = Transaction(type=TransactionType.SELL, total_value=600, cost_basis_at_execution=400, **common)
    buy = Transaction(type=TransactionType.BUY, total_value=600, **common)
    assert sell.realized_pnl == Decimal("200")
    assert buy.realized_pnl is None


def test_price_data_defaults():
    data = PriceData(symbol="BTC", price="50000")
    assert data.price == Decimal("50000")
    assert data.change_24h == ZERO


# --- Errors ---


def test_validation_error_carries_field():
    err = ValidationError("must be greater than 0", field="amount")
    assert isinstance(err, ValueError)
    assert err.field == "amount"
    assert str(err) == "amount: must be greater than 0"


def test_stale_snapshot_error_message():
    err = StaleSnapshotError("p-1", 2, 3)
    assert "p-1" in str(err)
    assert (err.expected, err.actual) == (2, 3)


# --- Settings ---


def test_settings_defaults_from_empty_env():
    settings = LedgerSettings.from_env({})
    assert settings.base_currency == "USD"
    assert settings.risk_free_rate == DEFAULT_RISK_FREE_RATE
    assert settings.top_n == 10
    assert settings.assumed_perp_leverage == DEFAULT_ASSUMED_PERP_LEVERAGE


def test_settings_read_env():
    settings = LedgerSettings.from_env(
        {
            "FOLIO_BASE_CURRENCY": "chf",
            "FOLIO_RISK_FREE_RATE": "0.03",
            "FOLIO_TOP_N": "5",
            "FOLIO_ASSUMED_PERP_LEVERAGE": "10",
        }
    )
    assert settings.base_currency == "CHF"
    assert settings.risk_free_rate == Decimal("0.03")
    assert settings.top_n == 5
    assert settings.assumed_perp_leverage == Decimal("10")


def test_settings_invalid_values_fall_back():
    settings = LedgerSettings.from_env(
        {"FOLIO_RISK_FREE_RATE": "lots", "FOLIO_TOP_N": "-1", "FOLIO_ASSUMED_PERP_LEVERAGE": "0"}
    )
    assert settings.risk_free_rate == DEFAULT_RISK_FREE_RATE
    assert settings.top_n == 10
    assert settings.assumed_perp_leverage == DEFAULT_ASSUMED_PERP_LEVERAGE
