"""
Execution-layer types: ledger snapshot, delta, execution result.

A LedgerDelta is always relative to the snapshot it was computed from;
expected_versions records the version of every existing position it touches so
a store can refuse it once any of them has moved on.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from folio_core.errors import ConsistencyWarning
from folio_core.models import Account, CustomPrice, Position, PriceData, Transaction


@dataclass(frozen=True)
class LedgerSnapshot:
    """Immutable view of the ledger at one version."""

    positions: tuple[Position, ...] = ()
    accounts: tuple[Account, ...] = ()
    prices: Mapping[str, PriceData] = field(default_factory=dict)
    custom_prices: Mapping[str, CustomPrice] = field(default_factory=dict)
    fx_rates: Mapping[str, Decimal] = field(default_factory=dict)
    version: int = 0

    def position(self, position_id: str | None) -> Position | None:
        if not position_id:
            return None
        for p in self.positions:
            if p.id == position_id:
                return p
        return None

    def account(self, account_id: str | None) -> Account | None:
        if not account_id:
            return None
        for a in self.accounts:
            if a.id == account_id:
                return a
        return None

    def positions_for_symbol(self, symbol: str) -> list[Position]:
        s = symbol.strip().lower()
        return [p for p in self.positions if p.symbol.lower() == s]

    def find_by_symbol(self, symbol: str) -> Position | None:
        """First position with this symbol, preferring one not linked to an account."""
        matches = self.positions_for_symbol(symbol)
        if not matches:
            return None
        for p in matches:
            if not p.account_id:
                return p
        return matches[0]


@dataclass(frozen=True)
class LedgerDelta:
    """Changes produced by one action. Applied atomically or not at all."""

    transaction: Transaction | None = None
    upserts: tuple[Position, ...] = ()
    removals: tuple[str, ...] = ()
    custom_prices: Mapping[str, CustomPrice] = field(default_factory=dict)
    warnings: tuple[ConsistencyWarning, ...] = ()
    base_version: int = 0
    expected_versions: Mapping[str, int] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return (
            self.transaction is None
            and not self.upserts
            and not self.removals
            and not self.custom_prices
        )


@dataclass(frozen=True)
class ExecutionResult:
    """Typed outcome of LedgerExecutor.execute. field names the input at fault on failure."""

    success: bool
    summary: str = ""
    error: str | None = None
    field: str | None = None
    warnings: tuple[ConsistencyWarning, ...] = ()
    transaction: Transaction | None = None
    delta: LedgerDelta | None = None


@dataclass
class RejectedActionLog:
    """One entry for a rejected action."""

    reason: str
    timestamp: datetime
    action: Any = None
    field: str | None = None
