"""
Error taxonomy for the ledger core.

ValidationError rejects a single mutating call before anything is applied.
ConsistencyWarning is non-fatal: the mutation commits and the warning travels
with the result so the caller can display it.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


class ValidationError(ValueError):
    """A required field is missing or out of range. `field` names the offending input."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def __str__(self) -> str:
        if self.field:
            return f"{self.field}: {self.message}"
        return self.message


class StaleSnapshotError(RuntimeError):
    """A delta was computed against a position version that is no longer current."""

    def __init__(self, position_id: str, expected: int, actual: int | None) -> None:
        super().__init__(
            f"position {position_id} changed since snapshot (expected version {expected}, found {actual})"
        )
        self.position_id = position_id
        self.expected = expected
        self.actual = actual


NEGATIVE_CASH = "negative_cash"
UNFUNDED_BUY = "unfunded_buy"


@dataclass(frozen=True)
class ConsistencyWarning:
    """Non-fatal ledger inconsistency surfaced to the caller."""

    kind: str
    message: str
    position_id: str | None = None
    account_id: str | None = None
    amount: Decimal | None = None
