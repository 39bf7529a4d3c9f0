"""
Aggregation and exposure: portfolio-level numbers from a valued snapshot.

Every row is put in one exposure class (classify_exposure). Perp trade rows
(perp-long / perp-short) are notional exposure, not holdings: they never count
toward net worth. Cash, stablecoins and perp margin are cash equivalents and
never count as long exposure.

All functions are pure and accept an empty snapshot.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from folio_core.classification import (
    ExposureCategory,
    MainCategory,
    detect_perp_trade,
    effective_asset_class,
    exposure_category,
    is_perp_protocol,
    is_stablecoin,
    main_category_for_class,
)
from folio_core.config import get_settings
from folio_core.models import AssetClass, PricedPosition
from folio_core.money import ZERO, Number, pct, safe_div, to_decimal

# Leverage reported when net worth is zero or negative.
LEVERAGE_UNDEFINED = None

DUST_THRESHOLD = Decimal("100")


class ExposureClass(Enum):
    PERP_LONG = "perp-long"
    PERP_SHORT = "perp-short"
    PERP_MARGIN = "perp-margin"
    PERP_SPOT = "perp-spot"
    CASH = "cash"
    BORROWED_CASH = "borrowed-cash"
    SPOT_LONG = "spot-long"
    SPOT_SHORT = "spot-short"

    @property
    def is_perp_notional(self) -> bool:
        return self in (ExposureClass.PERP_LONG, ExposureClass.PERP_SHORT)

    @property
    def is_cash_equivalent(self) -> bool:
        return self in (ExposureClass.CASH, ExposureClass.PERP_MARGIN)


@dataclass(frozen=True)
class CategoryTotal:
    category: MainCategory
    value: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class ExposureTotal:
    category: ExposureCategory
    value: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class ConcentrationMetrics:
    """HHI is on a 0-10000 scale (10000 = one asset)."""

    herfindahl_index: Decimal = ZERO
    top1_percentage: Decimal = ZERO
    top5_percentage: Decimal = ZERO
    top10_percentage: Decimal = ZERO
    position_count: int = 0
    asset_count: int = 0


@dataclass(frozen=True)
class PerpsMetrics:
    """Margin used is estimated as gross notional / assumed leverage."""

    collateral: Decimal = ZERO
    spot_value: Decimal = ZERO
    long_notional: Decimal = ZERO
    short_notional: Decimal = ZERO
    net_notional: Decimal = ZERO
    gross_notional: Decimal = ZERO
    margin_used: Decimal = ZERO
    utilization_rate: Decimal = ZERO


@dataclass(frozen=True)
class PortfolioSummary:
    gross_assets: Decimal = ZERO
    total_debts: Decimal = ZERO
    net_worth: Decimal = ZERO
    change_24h: Decimal = ZERO
    spot_long_value: Decimal = ZERO
    perps_long_exposure: Decimal = ZERO
    perps_short_exposure: Decimal = ZERO
    cash_equivalents_for_leverage: Decimal = ZERO
    long_exposure: Decimal = ZERO
    short_exposure: Decimal = ZERO
    net_exposure: Decimal = ZERO
    gross_exposure: Decimal = ZERO
    leverage: Decimal | None = LEVERAGE_UNDEFINED
    cash_percentage: Decimal = ZERO
    debt_ratio: Decimal = ZERO
    risk_free_rate: Decimal = ZERO
    expected_cash_yield: Decimal = ZERO
    categories: tuple[CategoryTotal, ...] = ()
    exposure_categories: tuple[ExposureTotal, ...] = ()
    top_positions: tuple[PricedPosition, ...] = ()
    concentration: ConcentrationMetrics = field(default_factory=ConcentrationMetrics)
    perps: PerpsMetrics = field(default_factory=PerpsMetrics)


def _is_debt(p: PricedPosition) -> bool:
    return p.is_debt or p.value < 0


def classify_exposure(p: PricedPosition) -> ExposureClass:
    """Exposure class of one valued row."""
    debt = _is_debt(p)
    if is_perp_protocol(p.protocol):
        trade = detect_perp_trade(p.name)
        if trade.is_long:
            return ExposureClass.PERP_LONG
        if trade.is_short:
            return ExposureClass.PERP_SHORT
        if is_stablecoin(p.symbol):
            return ExposureClass.PERP_MARGIN
        return ExposureClass.PERP_SPOT
    if effective_asset_class(p.position) == AssetClass.CASH or is_stablecoin(p.symbol):
        return ExposureClass.BORROWED_CASH if debt else ExposureClass.CASH
    return ExposureClass.SPOT_SHORT if debt else ExposureClass.SPOT_LONG


def _split(priced: Iterable[PricedPosition]) -> tuple[Decimal, Decimal]:
    gross = ZERO
    debts = ZERO
    for p in priced:
        if classify_exposure(p).is_perp_notional:
            continue
        if _is_debt(p):
            debts += abs(p.value)
        else:
            gross += p.value
    return gross, debts


def calculate_net_worth(priced: Iterable[PricedPosition]) -> Decimal:
    """Gross assets minus debts, perp notional excluded."""
    gross, debts = _split(priced)
    return gross - debts


def filter_dust_positions(
    priced: Iterable[PricedPosition],
    threshold: Number = DUST_THRESHOLD,
) -> list[PricedPosition]:
    """Drop rows whose absolute value is below threshold. Large debts are kept."""
    limit = to_decimal(threshold)
    return [p for p in priced if abs(p.value) >= limit]


def _top_sort_key(p: PricedPosition) -> tuple:
    return (-p.value, p.symbol.lower())


def concentration_metrics(holdings: Sequence[PricedPosition]) -> ConcentrationMetrics:
    """Concentration over positive holdings, grouped by symbol."""
    by_asset: dict[str, Decimal] = {}
    for p in holdings:
        key = p.symbol.lower()
        by_asset[key] = by_asset.get(key, ZERO) + p.value
    total = sum(by_asset.values(), ZERO)
    if total <= 0:
        return ConcentrationMetrics(position_count=len(holdings), asset_count=len(by_asset))
    shares = sorted((v / total * 100 for v in by_asset.values()), reverse=True)
    return ConcentrationMetrics(
        herfindahl_index=sum((s * s for s in shares), ZERO),
        top1_percentage=sum(shares[:1], ZERO),
        top5_percentage=sum(shares[:5], ZERO),
        top10_percentage=sum(shares[:10], ZERO),
        position_count=len(holdings),
        asset_count=len(by_asset),
    )


def aggregate(
    valued_positions: Iterable[PricedPosition],
    risk_free_rate: Number | None = None,
    top_n: int | None = None,
) -> PortfolioSummary:
    """
    Summarise a valued snapshot.

    Parameters
    ----------
    valued_positions : rows from valuation.value_positions
    risk_free_rate : annual rate used for expected_cash_yield (settings default)
    top_n : number of top positions to keep (settings default)

    Returns
    -------
    PortfolioSummary. leverage is LEVERAGE_UNDEFINED when net worth <= 0.
    """
    settings = get_settings()
    rate = to_decimal(risk_free_rate) if risk_free_rate is not None else settings.risk_free_rate
    limit = settings.top_n if top_n is None else top_n
    rows = list(valued_positions)

    gross = debts = change = ZERO
    spot_long = perps_long = perps_short = cash_eq = ZERO
    collateral = perp_spot = ZERO
    by_category: dict[MainCategory, Decimal] = {}
    by_exposure: dict[ExposureCategory, Decimal] = {}
    holdings: list[PricedPosition] = []

    for p in rows:
        cls = classify_exposure(p)
        if cls == ExposureClass.PERP_LONG:
            perps_long += abs(p.value)
            continue
        if cls == ExposureClass.PERP_SHORT:
            perps_short += abs(p.value)
            continue

        change += p.change_24h
        main = main_category_for_class(effective_asset_class(p.position))
        by_category[main] = by_category.get(main, ZERO) + p.value
        if _is_debt(p):
            debts += abs(p.value)
            continue

        gross += p.value
        holdings.append(p)
        if main == MainCategory.CRYPTO:
            exp = exposure_category(p.symbol, p.type)
            by_exposure[exp] = by_exposure.get(exp, ZERO) + p.value
        if cls.is_cash_equivalent:
            cash_eq += p.value
            if cls == ExposureClass.PERP_MARGIN:
                collateral += p.value
        else:
            spot_long += p.value
            if cls == ExposureClass.PERP_SPOT:
                perp_spot += p.value

    net_worth = gross - debts
    long_exposure = spot_long + perps_long
    short_exposure = perps_short
    gross_exposure = long_exposure + short_exposure
    leverage = gross_exposure / net_worth if net_worth > 0 else LEVERAGE_UNDEFINED

    perp_gross = perps_long + perps_short
    margin_used = safe_div(perp_gross, settings.assumed_perp_leverage)
    perps = PerpsMetrics(
        collateral=collateral,
        spot_value=perp_spot,
        long_notional=perps_long,
        short_notional=perps_short,
        net_notional=perps_long - perps_short,
        gross_notional=perp_gross,
        margin_used=margin_used,
        utilization_rate=pct(margin_used, collateral),
    )

    categories = tuple(
        CategoryTotal(cat, value, pct(value, gross))
        for cat, value in sorted(by_category.items(), key=lambda kv: (-kv[1], kv[0].value))
        if value != 0
    )
    exposures = tuple(
        ExposureTotal(cat, value, pct(value, gross))
        for cat, value in sorted(by_exposure.items(), key=lambda kv: (-kv[1], kv[0].value))
        if value != 0
    )
    top = tuple(sorted(holdings, key=_top_sort_key)[: max(limit, 0)])

    return PortfolioSummary(
        gross_assets=gross,
        total_debts=debts,
        net_worth=net_worth,
        change_24h=change,
        spot_long_value=spot_long,
        perps_long_exposure=perps_long,
        perps_short_exposure=perps_short,
        cash_equivalents_for_leverage=cash_eq,
        long_exposure=long_exposure,
        short_exposure=short_exposure,
        net_exposure=long_exposure - short_exposure,
        gross_exposure=gross_exposure,
        leverage=leverage,
        cash_percentage=pct(cash_eq, gross),
        debt_ratio=pct(debts, gross),
        risk_free_rate=rate,
        expected_cash_yield=cash_eq * rate,
        categories=categories,
        exposure_categories=exposures,
        top_positions=top,
        concentration=concentration_metrics(holdings),
        perps=perps,
    )
