"""
Ledger store abstraction.

LedgerStore ABC: get_snapshot, apply, get_transactions.
InMemoryLedgerStore implements it for tests and scripts; a database-backed
store implements the same interface and the same version check.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from folio_core.execution.types import LedgerDelta, LedgerSnapshot
from folio_core.models import Transaction


class LedgerStore(ABC):
    """
    Persistence boundary of the ledger.

    apply() must be atomic: either every change in the delta is applied or
    none is. A delta whose expected_versions no longer match the stored
    positions must be refused with StaleSnapshotError.
    """

    @abstractmethod
    def get_snapshot(self) -> LedgerSnapshot:
        """Return the current immutable snapshot."""
        ...

    @abstractmethod
    def apply(self, delta: LedgerDelta) -> LedgerSnapshot:
        """Apply delta atomically and return the resulting snapshot."""
        ...

    @abstractmethod
    def get_transactions(self) -> list[Transaction]:
        """Return the append-only transaction log, oldest first."""
        ...
