"""
Load positions, prices and net-worth history from CSV or DataFrame.

Column names are normalised (lower-case, aliases mapped) so exports from
spreadsheets and brokers load without manual renaming.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

import pandas as pd

from folio_core.classification import effective_asset_class
from folio_core.models import AssetType, Position, PriceData, PricedPosition, new_id
from folio_core.money import to_decimal

logger = logging.getLogger(__name__)

# Output columns of positions_to_dataframe
TABLE_COLUMNS = ("id", "symbol", "name", "type", "asset_class", "amount", "cost_basis", "account_id", "is_debt")
VALUED_COLUMNS = ("price", "value", "change_24h", "allocation")

_ALIASES = {
    "ticker": "symbol",
    "asset": "symbol",
    "qty": "amount",
    "quantity": "amount",
    "units": "amount",
    "shares": "amount",
    "cost": "cost_basis",
    "costbasis": "cost_basis",
    "cost basis": "cost_basis",
    "total_cost": "cost_basis",
    "asset_type": "type",
    "kind": "type",
    "account": "account_id",
    "date": "purchase_date",
    "purchased": "purchase_date",
    "debt": "is_debt",
    "close": "price",
    "last": "price",
    "change": "change_24h",
    "change_pct": "change_percent_24h",
    "change_percent": "change_percent_24h",
    "value": "total_value",
    "net_worth": "total_value",
}


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Ensure columns are lowercase; map common aliases to canonical names."""
    out = df.copy()
    out.columns = [str(c).lower().strip() for c in out.columns]
    renames = {k: v for k, v in _ALIASES.items() if k in out.columns and v not in out.columns}
    return out.rename(columns=renames)


def _cell(row: pd.Series, name: str):
    if name not in row.index:
        return None
    value = row[name]
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    return value


def _text(row: pd.Series, name: str) -> str | None:
    value = _cell(row, name)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _flag(row: pd.Series, name: str) -> bool:
    value = _cell(row, name)
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y")
    return bool(value) if value is not None else False


def _asset_type(raw: str | None) -> AssetType:
    if raw is None:
        return AssetType.MANUAL
    try:
        return AssetType(raw.lower())
    except ValueError:
        logger.debug("Unknown asset type %r, using manual", raw)
        return AssetType.MANUAL


def load_positions_dataframe(df: pd.DataFrame) -> list[Position]:
    """
    Build positions from a DataFrame.

    Parameters
    ----------
    df : pd.DataFrame
        One row per position; needs at least symbol and amount columns.

    Returns
    -------
    list of Position
        Rows without a symbol are skipped. Missing ids are generated.
    """
    out = _normalize_columns(df)
    missing = [c for c in ("symbol", "amount") if c not in out.columns]
    if missing:
        raise ValueError(f"missing required columns: {', '.join(missing)}")

    positions = []
    for _, row in out.iterrows():
        symbol = _text(row, "symbol")
        if symbol is None:
            continue
        cost = _cell(row, "cost_basis")
        purchased = _cell(row, "purchase_date")
        position = Position(
            id=_text(row, "id") or new_id(),
            symbol=symbol,
            name=_text(row, "name") or symbol,
            type=_asset_type(_text(row, "type")),
            amount=to_decimal(_cell(row, "amount")),
            cost_basis=to_decimal(cost) if cost is not None else None,
            account_id=_text(row, "account_id"),
            purchase_date=pd.Timestamp(purchased).date() if purchased is not None else None,
            is_debt=_flag(row, "is_debt"),
            protocol=_text(row, "protocol"),
            price_key=_text(row, "price_key"),
        )
        positions.append(position)
    return positions


def load_positions_csv(path: str | Path) -> list[Position]:
    """Load positions from a CSV file. See load_positions_dataframe."""
    return load_positions_dataframe(pd.read_csv(path))


def load_prices_dataframe(df: pd.DataFrame) -> dict[str, PriceData]:
    """
    Build a price map keyed by lower-cased symbol.

    Expects symbol and price columns (close/last accepted); change columns are optional.
    """
    out = _normalize_columns(df)
    if "symbol" not in out.columns or "price" not in out.columns:
        raise ValueError("price data needs symbol and price columns")
    prices: dict[str, PriceData] = {}
    for _, row in out.iterrows():
        symbol = _text(row, "symbol")
        if symbol is None:
            continue
        prices[symbol.lower()] = PriceData(
            symbol=symbol,
            price=_cell(row, "price"),
            change_24h=_cell(row, "change_24h"),
            change_percent_24h=_cell(row, "change_percent_24h"),
        )
    return prices


def load_history_dataframe(df: pd.DataFrame, *, date_column: str | None = None) -> pd.Series:
    """
    Net-worth history as a float Series with a DatetimeIndex named 'date'.

    Uses the total_value column (value / net_worth accepted).
    """
    out = _normalize_columns(df)
    if date_column is not None:
        date_col = _ALIASES.get(date_column.lower().strip(), date_column.lower().strip())
    else:
        date_col = "purchase_date" if "purchase_date" in out.columns else out.columns[0]
    if "total_value" not in out.columns:
        raise ValueError("history needs a total_value column")
    series = pd.Series(
        pd.to_numeric(out["total_value"], errors="coerce").to_numpy(),
        index=pd.to_datetime(out[date_col]),
        name="total_value",
    ).dropna().sort_index()
    series.index.name = "date"
    return series


def load_history_csv(path: str | Path, *, date_column: str | None = None) -> pd.Series:
    """Load net-worth history from CSV. See load_history_dataframe."""
    return load_history_dataframe(pd.read_csv(path), date_column=date_column)


def positions_to_dataframe(rows: Iterable[Position | PricedPosition]) -> pd.DataFrame:
    """
    Tabulate positions (or valued positions) for display or export.

    Money columns are floats; valued rows add price, value, change and allocation.
    """
    records = []
    for row in rows:
        priced = row if isinstance(row, PricedPosition) else None
        p = priced.position if priced is not None else row
        record = {
            "id": p.id,
            "symbol": p.symbol,
            "name": p.name,
            "type": p.type.value,
            "asset_class": effective_asset_class(p).value,
            "amount": float(p.amount),
            "cost_basis": float(p.cost_basis) if p.cost_basis is not None else None,
            "account_id": p.account_id,
            "is_debt": p.is_debt,
        }
        if priced is not None:
            record.update(
                {
                    "price": float(priced.current_price),
                    "value": float(priced.value),
                    "change_24h": float(priced.change_24h),
                    "allocation": float(priced.allocation),
                }
            )
        records.append(record)
    columns = list(TABLE_COLUMNS)
    if any(isinstance(r, dict) and "value" in r for r in records):
        columns += list(VALUED_COLUMNS)
    return pd.DataFrame.from_records(records, columns=columns)
