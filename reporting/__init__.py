"""
Reporting on top of folio-core.

Loads positions, prices and net-worth history with pandas; computes
performance metrics with numpy; prints portfolio reports.
"""

from reporting.data_loader import (
    load_history_csv,
    load_history_dataframe,
    load_positions_csv,
    load_positions_dataframe,
    load_prices_dataframe,
    positions_to_dataframe,
)
from reporting.metrics import PerformanceMetrics, compute_performance, realized_pnl, unrealized_pnl
from reporting.portfolio_report import print_report

__all__ = [
    "load_history_csv",
    "load_history_dataframe",
    "load_positions_csv",
    "load_positions_dataframe",
    "load_prices_dataframe",
    "positions_to_dataframe",
    "PerformanceMetrics",
    "compute_performance",
    "realized_pnl",
    "unrealized_pnl",
    "print_report",
]
