"""
Settings read from the environment.

Library code never requires these to be set; every value has a default.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache

from folio_core.money import to_decimal

logger = logging.getLogger(__name__)

BASE_CURRENCY_ENV = "FOLIO_BASE_CURRENCY"
RISK_FREE_RATE_ENV = "FOLIO_RISK_FREE_RATE"
TOP_N_ENV = "FOLIO_TOP_N"
ASSUMED_PERP_LEVERAGE_ENV = "FOLIO_ASSUMED_PERP_LEVERAGE"

DEFAULT_BASE_CURRENCY = "USD"
DEFAULT_RISK_FREE_RATE = Decimal("0.05")
DEFAULT_TOP_N = 10
DEFAULT_ASSUMED_PERP_LEVERAGE = Decimal("5")


def _env_decimal(name: str, default: Decimal, env: dict[str, str]) -> Decimal:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    value = to_decimal(raw, default=None)
    if value is None or value < 0:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default
    return value


def _env_int(name: str, default: int, env: dict[str, str]) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default
    if value < 0:
        logger.warning("Ignoring negative %s=%r, using %s", name, raw, default)
        return default
    return value


@dataclass(frozen=True)
class LedgerSettings:
    """Tunables for valuation and aggregation."""

    base_currency: str = DEFAULT_BASE_CURRENCY
    risk_free_rate: Decimal = DEFAULT_RISK_FREE_RATE
    top_n: int = DEFAULT_TOP_N
    assumed_perp_leverage: Decimal = DEFAULT_ASSUMED_PERP_LEVERAGE

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> "LedgerSettings":
        """Build settings from os.environ (or the given mapping)."""
        env = dict(os.environ) if env is None else env
        base = (env.get(BASE_CURRENCY_ENV) or DEFAULT_BASE_CURRENCY).strip().upper() or DEFAULT_BASE_CURRENCY
        leverage = _env_decimal(ASSUMED_PERP_LEVERAGE_ENV, DEFAULT_ASSUMED_PERP_LEVERAGE, env)
        if leverage == 0:
            logger.warning("%s must be positive, using %s", ASSUMED_PERP_LEVERAGE_ENV, DEFAULT_ASSUMED_PERP_LEVERAGE)
            leverage = DEFAULT_ASSUMED_PERP_LEVERAGE
        return cls(
            base_currency=base,
            risk_free_rate=_env_decimal(RISK_FREE_RATE_ENV, DEFAULT_RISK_FREE_RATE, env),
            top_n=_env_int(TOP_N_ENV, DEFAULT_TOP_N, env),
            assumed_perp_leverage=leverage,
        )


@lru_cache(maxsize=1)
def get_settings() -> LedgerSettings:
    """Process-wide settings, read once from the environment."""
    return LedgerSettings.from_env()
