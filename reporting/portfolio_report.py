"""
Portfolio report: print summary from PortfolioSummary and optional PerformanceMetrics.
"""

from __future__ import annotations

from folio_core.exposure import PortfolioSummary
from reporting.metrics import PerformanceMetrics, drawdown_label, sharpe_label


def _money(value) -> str:
    return f"{float(value):,.2f}"


def _pct(value) -> str:
    return f"{float(value):.2f}%"


def print_report(summary: PortfolioSummary, performance: PerformanceMetrics | None = None) -> PortfolioSummary:
    """
    Print a portfolio summary (and performance, when given).

    Parameters
    ----------
    summary : PortfolioSummary
        Output of folio_core.exposure.aggregate().
    performance : PerformanceMetrics, optional
        Output of compute_performance() over the net-worth history.

    Returns
    -------
    PortfolioSummary
        The summary passed in (e.g. for chaining).
    """
    leverage = f"{float(summary.leverage):.2f}x" if summary.leverage is not None else "n/a"
    print("--- Portfolio Summary ---")
    print(f"Net worth:        {_money(summary.net_worth)}")
    print(f"Gross assets:     {_money(summary.gross_assets)}")
    print(f"Total debts:      {_money(summary.total_debts)} ({_pct(summary.debt_ratio)})")
    print(f"Cash equivalents: {_money(summary.cash_equivalents_for_leverage)} ({_pct(summary.cash_percentage)})")
    print(f"Long exposure:    {_money(summary.long_exposure)}")
    print(f"Short exposure:   {_money(summary.short_exposure)}")
    print(f"Gross exposure:   {_money(summary.gross_exposure)}")
    print(f"Leverage:         {leverage}")
    print(f"Cash yield (est): {_money(summary.expected_cash_yield)} at {_pct(summary.risk_free_rate * 100)}")
    if summary.perps.gross_notional:
        print(f"Perps notional:   {_money(summary.perps.gross_notional)} (utilization {_pct(summary.perps.utilization_rate)})")
    if summary.categories:
        print("Allocation:")
        for cat in summary.categories:
            print(f"  {cat.category.value:<14}{_money(cat.value):>16}  {_pct(cat.percentage):>8}")
    if summary.top_positions:
        print("Top positions:")
        for p in summary.top_positions:
            print(f"  {p.symbol:<14}{_money(p.value):>16}  {_pct(p.allocation):>8}")
    print(
        f"Concentration:    HHI {float(summary.concentration.herfindahl_index):.0f}, "
        f"top 1 {_pct(summary.concentration.top1_percentage)}, "
        f"{summary.concentration.asset_count} assets"
    )

    if performance is not None:
        print("--- Performance ---")
        print(f"Total return:     {_money(performance.total_return_absolute)} ({performance.total_return:.2f}%)")
        print(f"CAGR:             {performance.cagr:.2f}%")
        print(f"Volatility:       {performance.volatility:.2f}%")
        print(f"Sharpe ratio:     {performance.sharpe_ratio:.2f} ({sharpe_label(performance.sharpe_ratio)})")
        print(
            f"Max drawdown:     {_money(performance.max_drawdown_absolute)} "
            f"({performance.max_drawdown:.2f}%, {drawdown_label(performance.max_drawdown)})"
        )
        print(f"Period:           {performance.period_days} days, {performance.data_points} points")
        quality = performance.data_quality
        for note in (quality.cagr_warning, quality.volatility_warning, quality.sharpe_warning):
            if note:
                print(f"  ! {note}")
    print("-------------------------")
    return summary
