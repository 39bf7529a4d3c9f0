"""
Cash side effects of trades, plus cash-account housekeeping.

A brokerage buy deducts its cost from the account's cash position and a sell
credits its proceeds. A cash position's cost basis always equals its balance.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal

from folio_core.classification import effective_asset_class
from folio_core.errors import NEGATIVE_CASH, UNFUNDED_BUY, ConsistencyWarning
from folio_core.models import (
    Account,
    AccountConnection,
    AssetClass,
    AssetType,
    Position,
    PricedPosition,
    TransactionType,
    new_id,
)
from folio_core.money import ZERO, Number, to_decimal
from folio_core.trades import TradeResult
from folio_core.valuation import extract_currency_code

logger = logging.getLogger(__name__)

DEFAULT_CASH_ACCOUNT_NAME = "Manual"

_ACCOUNT_NAME_RE = re.compile(r"^(.+?)\s*\(")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class CashDeltaResult:
    """At most one of updated_cash_position / new_cash_position is set."""

    updated_cash_position: Position | None = None
    new_cash_position: Position | None = None
    warning: ConsistencyWarning | None = None

    @property
    def changed(self) -> bool:
        return self.updated_cash_position is not None or self.new_cash_position is not None


def is_cash_position(position: Position) -> bool:
    return effective_asset_class(position) == AssetClass.CASH


def find_cash_position(
    positions: Iterable[Position],
    account_id: str,
    currency: str | None = None,
) -> Position | None:
    """Cash position linked to account_id, preferring one in the given currency."""
    matches = [p for p in positions if p.account_id == account_id and is_cash_position(p)]
    if not matches:
        return None
    if currency:
        for p in matches:
            if extract_currency_code(p.symbol) == currency.upper():
                return p
    return matches[0]


def cash_delta_for(result: TradeResult) -> Decimal:
    """Signed cash movement of a trade: buys spend, sells receive."""
    tx = result.transaction
    if tx.type == TransactionType.BUY:
        return -tx.total_value
    return tx.total_value


def apply_cash_delta(
    positions: Sequence[Position],
    account_id: str,
    delta: Number,
    *,
    currency: str = "USD",
    now: datetime | None = None,
) -> CashDeltaResult:
    """
    Move the account's cash balance by delta.

    Found: balance + delta, committed even when negative (with a warning).
    Not found, delta > 0: a new cash position holding delta is created.
    Not found, delta < 0: nothing changes; an unfunded_buy warning is returned.
    """
    amount = to_decimal(delta)
    if amount == 0:
        return CashDeltaResult()
    now = now or datetime.now()

    cash = find_cash_position(positions, account_id, currency)
    if cash is not None:
        balance = cash.amount + amount
        updated = replace(cash, amount=balance, cost_basis=balance, updated_at=now)
        warning = None
        if balance < 0:
            warning = ConsistencyWarning(
                kind=NEGATIVE_CASH,
                message=f"Cash balance for {cash.name} is negative ({balance})",
                position_id=cash.id,
                account_id=account_id,
                amount=balance,
            )
            logger.warning("Negative cash balance %s on %s (account %s)", balance, cash.id, account_id)
        return CashDeltaResult(updated_cash_position=updated, warning=warning)

    if amount > 0:
        code = currency.upper()
        created = Position(
            id=new_id(),
            symbol=f"CASH_{code}_{int(now.timestamp() * 1000)}",
            name=f"Cash ({code})",
            type=AssetType.CASH,
            amount=amount,
            cost_basis=amount,
            asset_class=AssetClass.CASH,
            account_id=account_id,
            added_at=now,
            updated_at=now,
        )
        logger.info("Created cash position %s for account %s with %s", created.symbol, account_id, amount)
        return CashDeltaResult(new_cash_position=created)

    logger.warning("No cash position for account %s; %s not deducted", account_id, -amount)
    return CashDeltaResult(
        warning=ConsistencyWarning(
            kind=UNFUNDED_BUY,
            message=f"No cash position linked to account {account_id}; cost of {-amount} was not deducted",
            account_id=account_id,
            amount=amount,
        )
    )


# --- Account names ---


def to_slug(name: str) -> str:
    return _WHITESPACE_RE.sub("-", name.lower().strip())


def normalize_account_name(name: str) -> str:
    return _WHITESPACE_RE.sub(" ", name.lower().strip())


def extract_cash_account_name(position_name: str) -> str:
    """'Revolut (EUR)' -> 'Revolut'. Empty names fall back to 'Manual'."""
    match = _ACCOUNT_NAME_RE.match(position_name or "")
    name = match.group(1).strip() if match else (position_name or "").strip()
    return name or DEFAULT_CASH_ACCOUNT_NAME


def is_manual_account_name_taken(name: str, accounts: Iterable[Account]) -> bool:
    target = normalize_account_name(name)
    return any(
        normalize_account_name(a.name) == target
        for a in accounts
        if a.connection.is_manual
    )


def link_orphaned_cash_positions(
    positions: Sequence[Position],
    accounts: Sequence[Account],
    *,
    now: datetime | None = None,
) -> tuple[list[Position], list[Account]] | None:
    """
    Attach every cash position to a manual account.

    The account is matched by the name in the position's name ('Revolut (EUR)'
    -> 'Revolut'), by normalized name or slug. Missing accounts are created; a
    dangling account_id is reused as the new account's id. Returns new lists,
    or None when nothing changed.
    """
    now = now or datetime.now()
    out_positions = list(positions)
    out_accounts = list(accounts)
    by_name: dict[str, str] = {}
    by_slug: dict[str, str] = {}
    for a in accounts:
        if a.connection.is_manual:
            by_name[normalize_account_name(a.name)] = a.id
            if a.slug:
                by_slug[a.slug] = a.id
    known_ids = {a.id for a in accounts}
    changed = False

    def _create(account_id: str, name: str, normalized: str, slug: str) -> None:
        out_accounts.append(
            Account(id=account_id, name=name, connection=AccountConnection(), slug=slug, added_at=now)
        )
        by_name[normalized] = account_id
        by_slug[slug] = account_id
        known_ids.add(account_id)

    for i, p in enumerate(out_positions):
        if not is_cash_position(p):
            continue
        name = extract_cash_account_name(p.name)
        normalized = normalize_account_name(name)
        slug = to_slug(name)
        matched = by_name.get(normalized) or by_slug.get(slug)

        if p.account_id:
            if p.account_id in known_ids:
                continue
            target = matched
            if target is None:
                target = p.account_id
                _create(target, name, normalized, slug)
                changed = True
            if target != p.account_id:
                out_positions[i] = replace(p, account_id=target, updated_at=now)
                changed = True
        else:
            target = matched
            if target is None:
                target = new_id()
                _create(target, name, normalized, slug)
            out_positions[i] = replace(p, account_id=target, updated_at=now)
            changed = True

    if not changed:
        return None
    return out_positions, out_accounts


def aggregate_cash_by_currency(priced: Iterable[PricedPosition]) -> list[PricedPosition]:
    """One row per currency, named by its code, sorted by value descending."""
    rows = list(priced)
    if not rows:
        return []
    total = sum((p.value for p in rows if p.value > 0), ZERO)

    def _alloc(value: Decimal) -> Decimal:
        return max(ZERO, value) / total * 100 if total > 0 else ZERO

    merged: dict[str, PricedPosition] = {}
    for p in rows:
        code = extract_currency_code(p.symbol)
        prev = merged.get(code)
        if prev is None:
            merged[code] = replace(p, position=replace(p.position, name=code), allocation=_alloc(p.value))
        else:
            value = prev.value + p.value
            merged[code] = replace(
                prev,
                position=replace(prev.position, amount=prev.amount + p.amount),
                value=value,
                allocation=_alloc(value),
            )
    return sorted(merged.values(), key=lambda p: p.value, reverse=True)
