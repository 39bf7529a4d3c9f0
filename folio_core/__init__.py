"""
folio-core: Position ledger and trade-execution engine for a multi-asset portfolio.

No I/O, no providers, no UI. Pure functions over immutable snapshots; Decimal money.
"""

__version__ = "0.1.0"

from folio_core.models import (
    Account,
    AccountConnection,
    AccountKind,
    AssetClass,
    AssetType,
    CustomPrice,
    Position,
    PriceData,
    PricedPosition,
    Transaction,
    TransactionType,
)
from folio_core.errors import ConsistencyWarning, StaleSnapshotError, ValidationError
from folio_core.classification import classify, detect_perp_trade, get_category_service
from folio_core.valuation import value_position, value_positions
from folio_core.trades import TradeResult, buy, sell_all, sell_partial, sell_percent
from folio_core.cash import CashDeltaResult, apply_cash_delta
from folio_core.exposure import LEVERAGE_UNDEFINED, PortfolioSummary, aggregate
from folio_core.actions import ParsedAction, parse_action

__all__ = [
    "Account",
    "AccountConnection",
    "AccountKind",
    "AssetClass",
    "AssetType",
    "CustomPrice",
    "Position",
    "PriceData",
    "PricedPosition",
    "Transaction",
    "TransactionType",
    "ConsistencyWarning",
    "StaleSnapshotError",
    "ValidationError",
    "classify",
    "detect_perp_trade",
    "get_category_service",
    "value_position",
    "value_positions",
    "TradeResult",
    "buy",
    "sell_all",
    "sell_partial",
    "sell_percent",
    "CashDeltaResult",
    "apply_cash_delta",
    "LEVERAGE_UNDEFINED",
    "PortfolioSummary",
    "aggregate",
    "ParsedAction",
    "parse_action",
]
