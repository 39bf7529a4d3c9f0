"""
Ledger executor: run parsed actions against a LedgerStore.

Flow per action: parse/validate -> lock position -> lock account -> snapshot
-> trade engine -> cash side effect (brokerage accounts only) -> delta
-> store.apply -> observers. ValidationError and StaleSnapshotError never
escape execute(); they become a failed ExecutionResult and an entry in the
rejection log.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping, Sequence
from contextlib import nullcontext
from dataclasses import replace
from datetime import datetime
from typing import Any, Protocol

from folio_core.actions import (
    AddCashAction,
    BuyAction,
    ParsedAction,
    RemoveAction,
    SellAllAction,
    SellPartialAction,
    SetPriceAction,
    UpdateCashAction,
    UpdatePositionAction,
    parse_action,
)
from folio_core.cash import apply_cash_delta, cash_delta_for, extract_cash_account_name, is_cash_position
from folio_core.config import get_settings
from folio_core.errors import ConsistencyWarning, StaleSnapshotError, ValidationError
from folio_core.execution.store import LedgerStore
from folio_core.execution.types import ExecutionResult, LedgerDelta, LedgerSnapshot, RejectedActionLog
from folio_core.models import AssetClass, AssetType, CustomPrice, Position, new_id
from folio_core.trades import TradeResult, buy, sell_all, sell_partial, sell_percent
from folio_core.valuation import extract_currency_code

logger = logging.getLogger(__name__)


class LedgerObserver(Protocol):
    """Post-commit callback: the applied delta and the snapshot after it."""

    def __call__(self, delta: LedgerDelta, snapshot: LedgerSnapshot) -> None:
        ...


def _fmt(value: Any) -> str:
    return f"{value:,}" if value is not None else "?"


class LedgerExecutor:
    """
    Apply actions to a ledger store one at a time per position.

    Submissions touching the same position (or symbol, for new lots) are
    serialised by a per-key lock, and a second lock per account serialises
    trades that settle against the same cash position. The store's version
    check catches writers outside this executor; the action then fails
    rather than applying a stale delta.
    """

    def __init__(
        self,
        store: LedgerStore,
        *,
        observers: Sequence[LedgerObserver] = (),
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.observers: list[LedgerObserver] = list(observers)
        self._clock = clock
        self._rejected_log: list[RejectedActionLog] = []
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def get_rejected_log(self) -> list[RejectedActionLog]:
        """Return log of rejected actions."""
        return list(self._rejected_log)

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @staticmethod
    def _account_for(action: ParsedAction, snapshot: LedgerSnapshot) -> str | None:
        """Account whose shared cash position this action may touch."""
        account_id = getattr(action, "matched_account_id", None)
        if account_id:
            return account_id
        matched = getattr(action, "matched_position_id", None)
        position = snapshot.position(matched) if matched else snapshot.find_by_symbol(action.symbol)
        return position.account_id if position is not None else None

    def _reject(self, reason: str, action: Any, field: str | None = None) -> ExecutionResult:
        self._rejected_log.append(
            RejectedActionLog(reason=reason, timestamp=self._clock(), action=action, field=field)
        )
        logger.info("Action rejected: %s%s", f"{field}: " if field else "", reason)
        return ExecutionResult(success=False, error=reason, field=field)

    def execute(self, action: ParsedAction | Mapping[str, Any]) -> ExecutionResult:
        """
        Validate and apply one action.

        Accepts a ParsedAction or a raw payload (passed through parse_action).
        """
        if isinstance(action, Mapping):
            try:
                action = parse_action(action, today=self._clock().date())
            except ValidationError as exc:
                return self._reject(exc.message, action, exc.field)

        matched = getattr(action, "matched_position_id", None)
        key = f"position:{matched}" if matched else f"symbol:{action.symbol.lower()}"
        # Position lock first, then account lock; never the other way round.
        with self._lock_for(key):
            account_id = self._account_for(action, self.store.get_snapshot())
            account_lock = self._lock_for(f"account:{account_id}") if account_id else nullcontext()
            with account_lock:
                snapshot = self.store.get_snapshot()
                try:
                    delta, summary = self._plan(action, snapshot)
                    after = self.store.apply(delta)
                except ValidationError as exc:
                    return self._reject(exc.message, action, exc.field)
                except StaleSnapshotError as exc:
                    return self._reject(str(exc), action, "matched_position_id" if matched else None)

        logger.info("Committed %s: %s", action.kind, summary)
        for obs in self.observers:
            obs(delta, after)
        return ExecutionResult(
            success=True,
            summary=summary,
            warnings=delta.warnings,
            transaction=delta.transaction,
            delta=delta,
        )

    # --- Planning: action + snapshot -> delta ---

    def _plan(self, action: ParsedAction, snapshot: LedgerSnapshot) -> tuple[LedgerDelta, str]:
        if isinstance(action, BuyAction):
            return self._plan_buy(action, snapshot)
        if isinstance(action, SellPartialAction):
            return self._plan_sell_partial(action, snapshot)
        if isinstance(action, SellAllAction):
            return self._plan_sell_all(action, snapshot)
        if isinstance(action, AddCashAction):
            return self._plan_add_cash(action, snapshot)
        if isinstance(action, UpdateCashAction):
            return self._plan_update_cash(action, snapshot)
        if isinstance(action, RemoveAction):
            return self._plan_remove(action, snapshot)
        if isinstance(action, UpdatePositionAction):
            return self._plan_update_position(action, snapshot)
        if isinstance(action, SetPriceAction):
            return self._plan_set_price(action, snapshot)
        raise ValidationError(f"unknown action {action!r}", field="action")

    def _matched(self, action: ParsedAction, snapshot: LedgerSnapshot) -> Position:
        matched_id = getattr(action, "matched_position_id", None)
        if matched_id:
            position = snapshot.position(matched_id)
            if position is None:
                raise ValidationError("No matching position found", field="matched_position_id")
            return position
        position = snapshot.find_by_symbol(action.symbol)
        if position is None:
            raise ValidationError(f"No position found for {action.symbol}", field="symbol")
        return position

    def _trade_delta(self, result: TradeResult, source: Position | None, snapshot: LedgerSnapshot) -> LedgerDelta:
        expected: dict[str, int] = {}
        upserts: list[Position] = []
        removals: list[str] = []
        if source is not None:
            expected[source.id] = source.version
        if result.updated_position is not None:
            upserts.append(result.updated_position)
        if result.new_position is not None:
            upserts.append(result.new_position)
        if result.removed_position_id is not None:
            removals.append(result.removed_position_id)

        warnings: list[ConsistencyWarning] = []
        traded = result.updated_position or result.new_position or source
        account = snapshot.account(traded.account_id if traded is not None else None)
        if account is not None and account.settles_cash:
            cash = apply_cash_delta(
                snapshot.positions,
                account.id,
                cash_delta_for(result),
                currency=get_settings().base_currency,
                now=self._clock(),
            )
            if cash.updated_cash_position is not None:
                current = snapshot.position(cash.updated_cash_position.id)
                expected[current.id] = current.version
                upserts.append(cash.updated_cash_position)
            if cash.new_cash_position is not None:
                upserts.append(cash.new_cash_position)
            if cash.warning is not None:
                warnings.append(cash.warning)

        return LedgerDelta(
            transaction=result.transaction,
            upserts=tuple(upserts),
            removals=tuple(removals),
            warnings=tuple(warnings),
            base_version=snapshot.version,
            expected_versions=expected,
        )

    def _plan_buy(self, action: BuyAction, snapshot: LedgerSnapshot) -> tuple[LedgerDelta, str]:
        existing = None
        if action.matched_position_id:
            existing = snapshot.position(action.matched_position_id)
            if existing is None:
                raise ValidationError("No matching position found", field="matched_position_id")
        result = buy(
            existing,
            action.amount,
            action.price_per_unit,
            action.total_cost,
            date=action.date,
            symbol=action.symbol,
            name=action.name,
            asset_type=action.asset_type,
            account_id=action.matched_account_id,
            now=self._clock(),
        )
        return self._trade_delta(result, existing, snapshot), f"Bought {action.amount} {action.symbol}"

    def _plan_sell_partial(self, action: SellPartialAction, snapshot: LedgerSnapshot) -> tuple[LedgerDelta, str]:
        position = self._matched(action, snapshot)
        if action.sell_percent is not None:
            result = sell_percent(position, action.sell_percent, action.sell_price, date=action.date, now=self._clock())
            summary = f"Sold {action.sell_percent}% of {position.symbol}"
        else:
            result = sell_partial(position, action.sell_amount, action.sell_price, date=action.date, now=self._clock())
            summary = f"Sold {action.sell_amount} {position.symbol}"
        return self._trade_delta(result, position, snapshot), summary

    def _plan_sell_all(self, action: SellAllAction, snapshot: LedgerSnapshot) -> tuple[LedgerDelta, str]:
        position = self._matched(action, snapshot)
        result = sell_all(position, action.sell_price, date=action.date, now=self._clock())
        return self._trade_delta(result, position, snapshot), f"Sold all {position.symbol}"

    def _plan_add_cash(self, action: AddCashAction, snapshot: LedgerSnapshot) -> tuple[LedgerDelta, str]:
        now = self._clock()
        if action.matched_position_id:
            target = snapshot.position(action.matched_position_id)
            if target is None:
                raise ValidationError("No matching cash position found", field="matched_position_id")
            if not is_cash_position(target):
                raise ValidationError("not a cash position", field="matched_position_id")
            balance = target.amount + action.amount
            updated = replace(target, amount=balance, cost_basis=balance, updated_at=now)
            delta = LedgerDelta(
                upserts=(updated,),
                base_version=snapshot.version,
                expected_versions={target.id: target.version},
            )
            return delta, f"Added {_fmt(action.amount)} {action.currency} to {target.name}"

        if action.matched_account_id:
            cash = apply_cash_delta(
                snapshot.positions, action.matched_account_id, action.amount, currency=action.currency, now=now
            )
            if cash.updated_cash_position is not None:
                current = snapshot.position(cash.updated_cash_position.id)
                delta = LedgerDelta(
                    upserts=(cash.updated_cash_position,),
                    base_version=snapshot.version,
                    expected_versions={current.id: current.version},
                )
                return delta, f"Added {_fmt(action.amount)} {action.currency} to {current.name}"

        label = (action.account_name or "").strip()
        created = Position(
            id=new_id(),
            symbol=f"CASH_{action.currency}_{int(now.timestamp() * 1000)}",
            name=f"{label} ({action.currency})" if label else f"Cash ({action.currency})",
            type=AssetType.CASH,
            amount=action.amount,
            cost_basis=action.amount,
            asset_class=AssetClass.CASH,
            account_id=action.matched_account_id,
            added_at=now,
            updated_at=now,
        )
        delta = LedgerDelta(upserts=(created,), base_version=snapshot.version)
        return delta, f"Added {_fmt(action.amount)} {action.currency}"

    def _plan_update_cash(self, action: UpdateCashAction, snapshot: LedgerSnapshot) -> tuple[LedgerDelta, str]:
        target = snapshot.position(action.matched_position_id)
        if target is not None and not is_cash_position(target):
            raise ValidationError("not a cash position", field="matched_position_id")
        if target is None:
            cash_positions = [p for p in snapshot.positions if is_cash_position(p)]
            candidates = [
                p
                for p in cash_positions
                if extract_currency_code(p.symbol) == action.currency
                and (action.matched_account_id is None or p.account_id == action.matched_account_id)
                and (
                    action.account_name is None
                    or extract_cash_account_name(p.name).lower() == action.account_name.lower()
                )
            ]
            if len(candidates) == 1:
                target = candidates[0]
            elif not candidates and len(cash_positions) == 1:
                target = cash_positions[0]
        if target is None:
            raise ValidationError("No matching cash position found", field="matched_position_id")
        updated = replace(target, amount=action.amount, cost_basis=action.amount, updated_at=self._clock())
        delta = LedgerDelta(
            upserts=(updated,),
            base_version=snapshot.version,
            expected_versions={target.id: target.version},
        )
        return delta, f"Updated {target.name} to {_fmt(action.amount)}"

    def _plan_remove(self, action: RemoveAction, snapshot: LedgerSnapshot) -> tuple[LedgerDelta, str]:
        if action.matched_position_id:
            targets = [self._matched(action, snapshot)]
        else:
            targets = snapshot.positions_for_symbol(action.symbol)
            if not targets:
                raise ValidationError(f"No position found for {action.symbol}", field="symbol")
        delta = LedgerDelta(
            removals=tuple(p.id for p in targets),
            base_version=snapshot.version,
            expected_versions={p.id: p.version for p in targets},
        )
        return delta, f"Removed {action.symbol}"

    def _plan_update_position(self, action: UpdatePositionAction, snapshot: LedgerSnapshot) -> tuple[LedgerDelta, str]:
        position = self._matched(action, snapshot)
        if position.wallet_address:
            raise ValidationError("Cannot edit wallet-synced positions", field="matched_position_id")
        changes: dict[str, Any] = {"updated_at": self._clock()}
        if action.amount is not None:
            changes["amount"] = action.amount
        if action.cost_basis is not None:
            changes["cost_basis"] = action.cost_basis
        if action.date is not None:
            changes["purchase_date"] = action.date
        updated = replace(position, **changes)
        delta = LedgerDelta(
            upserts=(updated,),
            base_version=snapshot.version,
            expected_versions={position.id: position.version},
        )
        return delta, f"Updated {position.symbol} position"

    def _plan_set_price(self, action: SetPriceAction, snapshot: LedgerSnapshot) -> tuple[LedgerDelta, str]:
        custom = CustomPrice(price=action.new_price, set_at=self._clock(), note=action.note)
        delta = LedgerDelta(custom_prices={action.symbol.lower(): custom}, base_version=snapshot.version)
        return delta, f"Set {action.symbol} price to ${_fmt(action.new_price)}"
