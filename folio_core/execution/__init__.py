"""
Execution layer: ledger store abstraction and the action executor.

LedgerStore interface; in-memory store; LedgerExecutor with per-position
locking, optimistic version checks, rejection log and observers.
"""

from folio_core.execution.store import LedgerStore
from folio_core.execution.memory import InMemoryLedgerStore
from folio_core.execution.executor import LedgerExecutor, LedgerObserver
from folio_core.execution.types import ExecutionResult, LedgerDelta, LedgerSnapshot, RejectedActionLog

__all__ = [
    "LedgerStore",
    "InMemoryLedgerStore",
    "LedgerExecutor",
    "LedgerObserver",
    "ExecutionResult",
    "LedgerDelta",
    "LedgerSnapshot",
    "RejectedActionLog",
]
