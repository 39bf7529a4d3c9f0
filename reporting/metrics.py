"""
Performance metrics: total return, CAGR, drawdown, volatility, Sharpe; unrealized and realized PnL.

Input is a net-worth history of (date, value) pairs. CAGR uses 365-day years;
volatility is annualised over 252 trading days.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Sequence, Union

import numpy as np
import pandas as pd

from folio_core.config import get_settings
from folio_core.models import PricedPosition, Transaction, TransactionType
from folio_core.money import ZERO

DAYS_PER_YEAR = 365
TRADING_DAYS_PER_YEAR = 252

MIN_DAYS_FOR_CAGR = 30
RECOMMENDED_DAYS_FOR_CAGR = 365
MIN_POINTS_FOR_VOLATILITY = 30
RECOMMENDED_POINTS_FOR_VOLATILITY = 60
MIN_POINTS_FOR_SHARPE = 60

History = Union[Sequence[tuple[Union[date, datetime], float]], pd.Series]


@dataclass
class DataQuality:
    """Reliability notes for metrics computed over short histories."""

    cagr_warning: str | None = None
    volatility_warning: str | None = None
    sharpe_warning: str | None = None
    has_insufficient_data: bool = False


@dataclass
class PerformanceMetrics:
    """Net-worth performance over a period. Percentages are in percent (10.0 = 10%)."""

    total_return: float = 0.0
    total_return_absolute: float = 0.0
    cagr: float = 0.0
    max_drawdown: float = 0.0
    max_drawdown_absolute: float = 0.0
    max_drawdown_date: date | None = None
    current_drawdown: float = 0.0
    sharpe_ratio: float = 0.0
    volatility: float = 0.0
    period_days: int = 0
    data_points: int = 0
    risk_free_rate: float = 0.0
    data_quality: DataQuality = field(default_factory=DataQuality)


@dataclass
class Drawdown:
    max_percent: float
    max_absolute: float
    max_date: date | None
    current_percent: float
    peak: float


@dataclass
class UnrealizedPnL:
    pnl: float
    pnl_percent: float
    annualized_return: float
    holding_days: int


def _as_date(value: date | datetime | pd.Timestamp) -> date:
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, datetime):
        return value.date()
    return value


def _normalize_history(history: History) -> tuple[list[date], np.ndarray]:
    if isinstance(history, pd.Series):
        series = history.dropna().sort_index()
        dates = [_as_date(pd.Timestamp(ix)) for ix in series.index]
        return dates, series.to_numpy(dtype=float)
    pairs = sorted(((_as_date(d), float(v)) for d, v in history), key=lambda p: p[0])
    return [d for d, _ in pairs], np.array([v for _, v in pairs], dtype=float)


def calculate_cagr(start_value: float, end_value: float, period_days: int) -> float:
    """
    Compound annual growth rate in percent.

    0 for a non-positive start or period; -100 when the end value is wiped out
    (zero or negative net worth).
    """
    if start_value <= 0 or period_days <= 0:
        return 0.0
    if end_value <= 0:
        return -100.0
    years = period_days / DAYS_PER_YEAR
    return ((end_value / start_value) ** (1.0 / years) - 1.0) * 100.0


def calculate_drawdown(dates: Sequence[date], values: np.ndarray) -> Drawdown:
    """Largest and current decline from the running peak."""
    if len(values) < 2:
        peak = float(values[0]) if len(values) else 0.0
        return Drawdown(0.0, 0.0, None, 0.0, peak)
    peaks = np.maximum.accumulate(values)
    absolute = peaks - values
    with np.errstate(divide="ignore", invalid="ignore"):
        percent = np.where(peaks > 0, absolute / peaks * 100.0, 0.0)
    i = int(np.argmax(percent))
    max_percent = float(percent[i])
    peak = float(peaks[-1])
    current = (peak - float(values[-1])) / peak * 100.0 if peak > 0 else 0.0
    if max_percent <= 0:
        return Drawdown(0.0, 0.0, None, current, peak)
    return Drawdown(max_percent, float(absolute[i]), dates[i], current, peak)


def daily_returns(values: np.ndarray) -> np.ndarray:
    """Period-over-period returns, skipping steps whose previous value is not positive."""
    if len(values) < 2:
        return np.array([], dtype=float)
    prev = values[:-1]
    curr = values[1:]
    mask = prev > 0
    return (curr[mask] - prev[mask]) / prev[mask]


def annualized_volatility(returns: np.ndarray) -> float:
    """Sample standard deviation of returns, annualised, in percent."""
    if len(returns) < 2:
        return 0.0
    return float(np.std(returns, ddof=1) * np.sqrt(TRADING_DAYS_PER_YEAR) * 100.0)


def sharpe_ratio(annual_return: float, annual_volatility: float, risk_free_rate: float) -> float:
    """(return - risk free) / volatility, all as decimals. 0 when volatility is 0."""
    if annual_volatility <= 0:
        return 0.0
    return (annual_return - risk_free_rate) / annual_volatility


def _data_quality(period_days: int, points: int) -> DataQuality:
    q = DataQuality()
    if period_days < MIN_DAYS_FOR_CAGR:
        q.cagr_warning = (
            f"Only {period_days} days of data. CAGR requires at least {MIN_DAYS_FOR_CAGR} days."
        )
        q.has_insufficient_data = True
    elif period_days < RECOMMENDED_DAYS_FOR_CAGR:
        q.cagr_warning = (
            f"Annualized from {period_days} days. {RECOMMENDED_DAYS_FOR_CAGR}+ days recommended."
        )
    if points < MIN_POINTS_FOR_VOLATILITY:
        q.volatility_warning = (
            f"Only {points} data points. Volatility requires at least {MIN_POINTS_FOR_VOLATILITY}."
        )
        q.has_insufficient_data = True
    elif points < RECOMMENDED_POINTS_FOR_VOLATILITY:
        q.volatility_warning = (
            f"Based on {points} data points. {RECOMMENDED_POINTS_FOR_VOLATILITY}+ recommended."
        )
    if points < MIN_POINTS_FOR_SHARPE:
        q.sharpe_warning = f"Insufficient data for a reliable Sharpe ratio. Need {MIN_POINTS_FOR_SHARPE}+ points."
        q.has_insufficient_data = True
    return q


def compute_performance(
    snapshots: History,
    risk_free_rate: float | None = None,
) -> PerformanceMetrics:
    """
    Compute performance metrics from a net-worth history.

    Parameters
    ----------
    snapshots : sequence of (date, value) or pd.Series indexed by date
        Net worth over time; sorted here, need not be ordered.
    risk_free_rate : float, optional
        Annual rate as a decimal (default from FOLIO_RISK_FREE_RATE).

    Returns
    -------
    PerformanceMetrics
    """
    rate = float(get_settings().risk_free_rate) if risk_free_rate is None else float(risk_free_rate)
    dates, values = _normalize_history(snapshots)
    if len(values) < 2:
        return PerformanceMetrics(
            data_points=len(values),
            risk_free_rate=rate,
            data_quality=DataQuality(
                cagr_warning="Insufficient data",
                volatility_warning="Insufficient data",
                sharpe_warning="Insufficient data",
                has_insufficient_data=True,
            ),
        )

    start, end = float(values[0]), float(values[-1])
    period_days = (dates[-1] - dates[0]).days
    absolute = end - start
    cagr = calculate_cagr(start, end, period_days)
    dd = calculate_drawdown(dates, values)
    vol = annualized_volatility(daily_returns(values))

    return PerformanceMetrics(
        total_return=absolute / start * 100.0 if start > 0 else 0.0,
        total_return_absolute=absolute,
        cagr=cagr,
        max_drawdown=dd.max_percent,
        max_drawdown_absolute=dd.max_absolute,
        max_drawdown_date=dd.max_date,
        current_drawdown=dd.current_percent,
        sharpe_ratio=sharpe_ratio(cagr / 100.0, vol / 100.0, rate),
        volatility=vol,
        period_days=period_days,
        data_points=len(values),
        risk_free_rate=rate,
        data_quality=_data_quality(period_days, len(values)),
    )


def unrealized_pnl(position: PricedPosition, today: date | None = None) -> UnrealizedPnL:
    """Gain of current value over cost basis, annualised from the purchase date."""
    cost = float(position.position.cost_basis or 0)
    if cost == 0:
        return UnrealizedPnL(0.0, 0.0, 0.0, 0)
    value = float(position.value)
    pnl = value - cost
    holding_days = 0
    annualized = 0.0
    purchased = position.position.purchase_date
    if purchased is not None:
        holding_days = ((today or date.today()) - purchased).days
        if holding_days > 0 and cost > 0:
            annualized = calculate_cagr(cost, value, holding_days)
    return UnrealizedPnL(pnl, pnl / cost * 100.0, annualized, holding_days)


def realized_pnl(transactions: Iterable[Transaction]) -> Decimal:
    """Sum of realized PnL over sell transactions."""
    return sum(
        (tx.realized_pnl for tx in transactions if tx.type == TransactionType.SELL),
        ZERO,
    )


def sharpe_label(sharpe: float) -> str:
    if sharpe >= 3:
        return "Excellent"
    if sharpe >= 2:
        return "Very Good"
    if sharpe >= 1:
        return "Good"
    if sharpe >= 0:
        return "Below Average"
    return "Poor"


def drawdown_label(drawdown: float) -> str:
    if drawdown <= 5:
        return "Low Risk"
    if drawdown <= 10:
        return "Moderate"
    if drawdown <= 20:
        return "Elevated"
    if drawdown <= 30:
        return "High"
    return "Severe"
