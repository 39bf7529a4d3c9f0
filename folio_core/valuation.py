"""
Valuation engine: prices a snapshot of positions.

Price resolution per position:
  custom price -> market price (price_key, else symbol) -> no price (0)
Each lookup tries the lower-case key first, then upper-case. Cash is valued at
1 x FX rate of its currency. Debt carries negative value and inverted 24h change.

Every function here is total: bad numbers degrade to zero and are logged at
debug level; nothing raises.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace
from decimal import Decimal

from folio_core.classification import effective_asset_class
from folio_core.models import AssetClass, CustomPrice, Position, PriceData, PricedPosition
from folio_core.money import ONE, ZERO, pct, to_decimal

logger = logging.getLogger(__name__)

CASH_PREFIX = "CASH_"

PriceMap = Mapping[str, PriceData]
CustomPriceMap = Mapping[str, CustomPrice]
FxRateMap = Mapping[str, Decimal]


def _lookup(table: Mapping | None, key: str | None):
    if not table or not key:
        return None
    hit = table.get(key.lower())
    if hit is None:
        hit = table.get(key.upper())
    return hit


def extract_currency_code(symbol: str) -> str:
    """
    Currency code of a cash symbol.

    CASH_CHF_123 -> CHF, CASH_USD_revolut -> USD, PLN_123 -> PLN, usd -> USD.
    Anything without an underscore is returned upper-cased (USDC -> USDC).
    """
    s = (symbol or "").strip().upper()
    if s.startswith(CASH_PREFIX):
        parts = s.split("_")
        return parts[1] if len(parts) > 1 and parts[1] else s
    if "_" in s:
        return s.split("_", 1)[0]
    return s


def fx_rate_for(currency: str, fx_rates: FxRateMap | None, base_currency: str = "USD") -> Decimal:
    """Rate converting one unit of currency into the base currency. Missing -> 1."""
    if currency.upper() == base_currency.upper():
        return ONE
    raw = _lookup(fx_rates, currency)
    rate = to_decimal(raw, default=None)
    if rate is None or rate <= 0:
        logger.debug("No FX rate for %s, assuming 1.0", currency)
        return ONE
    return rate


def value_position(
    position: Position,
    prices: PriceMap | None,
    custom_prices: CustomPriceMap | None = None,
    fx_rates: FxRateMap | None = None,
    *,
    base_currency: str = "USD",
) -> PricedPosition:
    """
    Price and value a single position.

    Parameters
    ----------
    position : Position
    prices : mapping of lower-cased symbol (or price key) -> PriceData
    custom_prices : mapping of symbol -> CustomPrice; always wins over market
    fx_rates : mapping of currency code -> rate into base currency

    Returns
    -------
    PricedPosition with allocation 0 (filled by value_positions).
    """
    amount = to_decimal(position.amount)
    sign = -1 if position.is_debt else 1

    if effective_asset_class(position) == AssetClass.CASH:
        rate = fx_rate_for(extract_currency_code(position.symbol), fx_rates, base_currency)
        return PricedPosition(
            position=position,
            current_price=rate,
            value=sign * amount * rate,
        )

    custom = _lookup(custom_prices, position.symbol)
    if custom is not None:
        price = to_decimal(custom.price)
        return PricedPosition(
            position=position,
            current_price=price,
            value=sign * amount * price,
            has_custom_price=True,
        )

    data = _lookup(prices, position.price_key) if position.price_key else None
    if data is None:
        data = _lookup(prices, position.symbol)
    if data is None:
        logger.debug("No price for %s (%s), valuing at 0", position.symbol, position.id)
        return PricedPosition(position=position, current_price=ZERO, value=ZERO)

    price = to_decimal(data.price)
    return PricedPosition(
        position=position,
        current_price=price,
        value=sign * amount * price,
        change_24h=sign * amount * to_decimal(data.change_24h),
        change_percent_24h=to_decimal(data.change_percent_24h),
    )


def _sort_key(p: PricedPosition) -> tuple:
    return (p.is_debt, -abs(p.value), p.symbol.lower())


def value_positions(
    positions: Iterable[Position],
    prices: PriceMap | None,
    custom_prices: CustomPriceMap | None = None,
    fx_rates: FxRateMap | None = None,
    *,
    base_currency: str = "USD",
) -> list[PricedPosition]:
    """
    Value a whole snapshot.

    Allocation is each value as a percentage of gross (positive) assets, so
    debts get a negative allocation. Assets come before debts, each group by
    absolute value descending, ties by symbol.
    """
    priced = [
        value_position(p, prices, custom_prices, fx_rates, base_currency=base_currency)
        for p in positions
    ]
    gross = sum((p.value for p in priced if p.value > 0), ZERO)
    out = []
    for p in priced:
        allocation = p.value / gross * 100 if gross > 0 else ZERO
        out.append(_with_allocation(p, allocation))
    out.sort(key=_sort_key)
    return out


def _with_allocation(p: PricedPosition, allocation: Decimal) -> PricedPosition:
    return PricedPosition(
        position=p.position,
        current_price=p.current_price,
        value=p.value,
        change_24h=p.change_24h,
        change_percent_24h=p.change_percent_24h,
        has_custom_price=p.has_custom_price,
        allocation=allocation,
    )


def aggregate_positions_by_symbol(priced: Iterable[PricedPosition]) -> list[PricedPosition]:
    """
    Net rows sharing symbol and type into one row per asset.

    Debt rows subtract their amount. The merged row keeps the first row's
    position (with the netted amount) and is flagged as debt only when the
    net value is negative. Allocation is recomputed over the merged rows.
    """
    groups: dict[str, list[PricedPosition]] = {}
    for p in priced:
        key = f"{p.symbol.lower()}-{p.type.value}"
        groups.setdefault(key, []).append(p)

    merged = []
    for rows in groups.values():
        first = rows[0]
        net_amount = sum((-r.amount if r.is_debt else r.amount for r in rows), ZERO)
        value = sum((r.value for r in rows), ZERO)
        change = sum((r.change_24h for r in rows), ZERO)
        is_debt = value < 0
        position = first.position
        if len(rows) > 1 or position.is_debt != is_debt:
            position = replace(position, amount=abs(net_amount), is_debt=is_debt)
        merged.append(
            PricedPosition(
                position=position,
                current_price=first.current_price,
                value=value,
                change_24h=change,
                change_percent_24h=first.change_percent_24h,
                has_custom_price=any(r.has_custom_price for r in rows),
            )
        )

    gross = sum((p.value for p in merged if p.value > 0), ZERO)
    out = [_with_allocation(p, pct(p.value, gross) if gross > 0 else ZERO) for p in merged]
    out.sort(key=_sort_key)
    return out


def total_value(priced: Iterable[PricedPosition]) -> Decimal:
    """Sum of values, debts included (negative)."""
    return sum((p.value for p in priced), ZERO)
