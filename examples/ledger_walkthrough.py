"""
Ledger walkthrough using folio-core and the reporting package.

Demonstrates: load CSV -> in-memory store -> buy / sell / cash actions via the
executor -> valuation -> aggregation -> performance report.
"""

import logging
from decimal import Decimal
from pathlib import Path

import pandas as pd

from folio_core import Account, AccountKind, aggregate, value_positions
from folio_core.execution import InMemoryLedgerStore, LedgerExecutor
from reporting import (
    compute_performance,
    load_history_csv,
    load_positions_csv,
    load_prices_dataframe,
    positions_to_dataframe,
    print_report,
    realized_pnl,
)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    data_dir = Path(__file__).resolve().parent / "data"

    positions = load_positions_csv(data_dir / "positions.csv")
    prices = load_prices_dataframe(pd.read_csv(data_dir / "prices.csv"))
    broker = Account(id="acct-broker", name="Brokerage", kind=AccountKind.BROKERAGE)

    store = InMemoryLedgerStore(
        positions,
        [broker],
        prices=prices,
        fx_rates={"CHF": Decimal("1.1")},
    )
    executor = LedgerExecutor(store, observers=[lambda delta, snap: print(f"  committed v{snap.version}")])

    actions = [
        {"action": "buy", "symbol": "AAPL", "amount": 5, "pricePerUnit": 180, "matchedPositionId": "p-aapl", "assetType": "stock"},
        {"action": "sell_partial", "symbol": "ETH", "sellAmount": 1, "sellPrice": 3000},
        {"action": "add_cash", "currency": "EUR", "amount": "2k", "accountName": "Savings"},
        {"action": "set_price", "symbol": "PRIVATE", "newPrice": 12},
        # rejected: more than held
        {"action": "sell_partial", "symbol": "BTC", "sellAmount": 3, "sellPrice": 50000},
    ]
    for payload in actions:
        result = executor.execute(payload)
        status = "ok" if result.success else f"rejected ({result.field}: {result.error})"
        print(f"{payload['action']}: {result.summary or ''} {status}")
        for warning in result.warnings:
            print(f"  warning: {warning.message}")

    snapshot = store.get_snapshot()
    priced = value_positions(snapshot.positions, snapshot.prices, snapshot.custom_prices, snapshot.fx_rates)
    print(positions_to_dataframe(priced).to_string(index=False))
    print(f"Realized PnL: {realized_pnl(store.get_transactions()):,.2f}")

    summary = aggregate(priced)
    performance = compute_performance(load_history_csv(data_dir / "net_worth_history.csv"))
    print_report(summary, performance)


if __name__ == "__main__":
    main()
