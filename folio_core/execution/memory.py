"""
In-memory ledger store.

Keeps positions, accounts, prices and the transaction log in process memory.
Used by tests and the example scripts. Market prices are injected the same way
a sync adapter would push them (set_prices / set_fx_rates).
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from dataclasses import replace
from decimal import Decimal

from folio_core.errors import StaleSnapshotError
from folio_core.execution.store import LedgerStore
from folio_core.execution.types import LedgerDelta, LedgerSnapshot
from folio_core.models import Account, CustomPrice, Position, PriceData, Transaction
from folio_core.money import to_decimal

logger = logging.getLogger(__name__)


class InMemoryLedgerStore(LedgerStore):
    """
    Ledger store backed by dicts.

    apply() checks every expected position version before touching anything,
    then bumps the version of each updated position.
    """

    def __init__(
        self,
        positions: Iterable[Position] = (),
        accounts: Iterable[Account] = (),
        *,
        prices: Mapping[str, PriceData] | None = None,
        custom_prices: Mapping[str, CustomPrice] | None = None,
        fx_rates: Mapping[str, Decimal | float | str] | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._positions: dict[str, Position] = {p.id: p for p in positions}
        self._accounts: dict[str, Account] = {a.id: a for a in accounts}
        self._prices: dict[str, PriceData] = {}
        self._custom_prices: dict[str, CustomPrice] = {}
        self._fx_rates: dict[str, Decimal] = {}
        self._transactions: list[Transaction] = []
        self._version = 0
        if prices:
            self.set_prices(prices)
        if custom_prices:
            self._custom_prices.update({k.lower(): v for k, v in custom_prices.items()})
        if fx_rates:
            self.set_fx_rates(fx_rates)

    def set_prices(self, prices: Mapping[str, PriceData]) -> None:
        """Merge market prices, keyed by lower-cased symbol."""
        with self._lock:
            self._prices.update({k.lower(): v for k, v in prices.items()})

    def set_fx_rates(self, rates: Mapping[str, Decimal | float | str]) -> None:
        """Merge FX rates (currency -> base), keyed by upper-cased code."""
        with self._lock:
            self._fx_rates.update({k.upper(): to_decimal(v) for k, v in rates.items()})

    def add_account(self, account: Account) -> None:
        with self._lock:
            self._accounts[account.id] = account

    def get_snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return self._snapshot()

    def _snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            positions=tuple(self._positions.values()),
            accounts=tuple(self._accounts.values()),
            prices=dict(self._prices),
            custom_prices=dict(self._custom_prices),
            fx_rates=dict(self._fx_rates),
            version=self._version,
        )

    def apply(self, delta: LedgerDelta) -> LedgerSnapshot:
        with self._lock:
            for position_id, expected in delta.expected_versions.items():
                current = self._positions.get(position_id)
                actual = current.version if current is not None else None
                if actual != expected:
                    raise StaleSnapshotError(position_id, expected, actual)

            for position in delta.upserts:
                current = self._positions.get(position.id)
                version = current.version + 1 if current is not None else position.version
                self._positions[position.id] = replace(position, version=version)
            for position_id in delta.removals:
                self._positions.pop(position_id, None)
            for symbol, custom in delta.custom_prices.items():
                self._custom_prices[symbol.lower()] = custom
            if delta.transaction is not None:
                self._transactions.append(delta.transaction)
            self._version += 1
            logger.debug(
                "Applied delta: %d upserts, %d removals (version %d)",
                len(delta.upserts),
                len(delta.removals),
                self._version,
            )
            return self._snapshot()

    def get_transactions(self) -> list[Transaction]:
        with self._lock:
            return list(self._transactions)
