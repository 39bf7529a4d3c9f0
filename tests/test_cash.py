"""
Tests for cash side effects and cash-account housekeeping.
"""

from datetime import datetime
from decimal import Decimal

from folio_core.cash import (
    aggregate_cash_by_currency,
    apply_cash_delta,
    extract_cash_account_name,
    find_cash_position,
    is_manual_account_name_taken,
    link_orphaned_cash_positions,
)
from folio_core.errors import NEGATIVE_CASH, UNFUNDED_BUY
from folio_core.models import Account, AccountConnection, AssetType, Position
from folio_core.valuation import value_positions

NOW = datetime(2024, 6, 1, 12, 0, 0)


def _cash(amount="5000", account_id="acct-1", symbol="CASH_USD_1", name="Broker (USD)", id="cash-1") -> Position:
    return Position(
        id=id,
        symbol=symbol,
        name=name,
        type=AssetType.CASH,
        amount=Decimal(amount),
        cost_basis=Decimal(amount),
        account_id=account_id,
    )


# --- apply_cash_delta ---


def test_buy_deducts_from_cash():
    result = apply_cash_delta([_cash()], "acct-1", Decimal("-2000"), now=NOW)
    assert result.updated_cash_position.amount == Decimal("3000")
    assert result.updated_cash_position.cost_basis == Decimal("3000")
    assert result.warning is None
    assert result.new_cash_position is None


def test_overspend_commits_negative_balance_with_warning():
    result = apply_cash_delta([_cash()], "acct-1", Decimal("-6000"), now=NOW)
    cash = result.updated_cash_position
    assert cash.amount == Decimal("-1000")
    assert cash.cost_basis == Decimal("-1000")
    assert result.warning.kind == NEGATIVE_CASH
    assert result.warning.position_id == "cash-1"


def test_sell_credits_cash():
    result = apply_cash_delta([_cash()], "acct-1", 600, now=NOW)
    assert result.updated_cash_position.amount == Decimal("5600")


def test_missing_cash_created_on_credit():
    result = apply_cash_delta([], "acct-9", 250, currency="eur", now=NOW)
    created = result.new_cash_position
    assert created.symbol.startswith("CASH_EUR_")
    assert created.name == "Cash (EUR)"
    assert created.amount == Decimal("250")
    assert created.cost_basis == Decimal("250")
    assert created.account_id == "acct-9"
    assert result.warning is None


def test_missing_cash_on_debit_warns_without_mutation():
    result = apply_cash_delta([_cash(account_id="other")], "acct-1", -100, now=NOW)
    assert not result.changed
    assert result.warning.kind == UNFUNDED_BUY
    assert result.warning.account_id == "acct-1"


def test_zero_delta_is_noop():
    result = apply_cash_delta([_cash()], "acct-1", 0, now=NOW)
    assert not result.changed
    assert result.warning is None


def test_find_cash_prefers_currency():
    usd = _cash()
    eur = _cash(symbol="CASH_EUR_2", id="cash-2", name="Broker (EUR)")
    assert find_cash_position([usd, eur], "acct-1", "EUR") is eur
    assert find_cash_position([usd, eur], "acct-1", "CHF") is usd
    assert find_cash_position([usd, eur], "acct-2") is None


# --- Account names ---


def test_extract_cash_account_name():
    assert extract_cash_account_name("Revolut (EUR)") == "Revolut"
    assert extract_cash_account_name("Savings") == "Savings"
    assert extract_cash_account_name("") == "Manual"


def test_manual_account_name_taken_ignores_synced():
    accounts = [
        Account(id="a", name="My  Bank"),
        Account(id="b", name="Ledger", connection=AccountConnection(data_source="helius")),
    ]
    assert is_manual_account_name_taken("my bank", accounts)
    assert not is_manual_account_name_taken("Ledger", accounts)


def test_link_orphaned_creates_and_reuses_accounts():
    positions = [
        _cash(account_id=None, name="Revolut (EUR)", symbol="CASH_EUR_1", id="c1"),
        _cash(account_id=None, name="Revolut (USD)", symbol="CASH_USD_2", id="c2"),
        Position(id="btc", symbol="BTC", name="Bitcoin", type=AssetType.CRYPTO, amount=1),
    ]
    result = link_orphaned_cash_positions(positions, [], now=NOW)
    assert result is not None
    new_positions, accounts = result
    assert len(accounts) == 1
    assert accounts[0].name == "Revolut"
    assert new_positions[0].account_id == accounts[0].id
    assert new_positions[1].account_id == accounts[0].id
    assert new_positions[2].account_id is None


def test_link_orphaned_matches_existing_account():
    accounts = [Account(id="rev", name="Revolut", slug="revolut")]
    positions = [_cash(account_id=None, name="revolut (CHF)", symbol="CASH_CHF_1")]
    new_positions, new_accounts = link_orphaned_cash_positions(positions, accounts, now=NOW)
    assert new_positions[0].account_id == "rev"
    assert len(new_accounts) == 1


def test_link_orphaned_recreates_dangling_account_id():
    positions = [_cash(account_id="gone", name="Wise (GBP)", symbol="CASH_GBP_1")]
    new_positions, accounts = link_orphaned_cash_positions(positions, [], now=NOW)
    assert accounts[0].id == "gone"
    assert new_positions[0].account_id == "gone"


def test_link_orphaned_returns_none_when_consistent():
    accounts = [Account(id="acct-1", name="Broker")]
    assert link_orphaned_cash_positions([_cash()], accounts, now=NOW) is None


# --- aggregate_cash_by_currency ---


def test_aggregate_cash_by_currency():
    positions = [
        _cash("100", symbol="CASH_USD_1", id="u1"),
        _cash("300", symbol="CASH_USD_2", id="u2"),
        _cash("200", symbol="CASH_EUR_3", id="e1"),
    ]
    priced = value_positions(positions, {}, fx_rates={"EUR": Decimal("1.1")})
    rows = aggregate_cash_by_currency(priced)
    assert [r.name for r in rows] == ["USD", "EUR"]
    assert rows[0].amount == Decimal("400")
    assert rows[0].value == Decimal("400")
    assert rows[1].value == Decimal("220.0")


def test_aggregate_cash_empty():
    assert aggregate_cash_by_currency([]) == []
