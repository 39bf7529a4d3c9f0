"""
Parsed actions: typed ledger commands built from untrusted input.

Each action kind is its own frozen dataclass carrying only what that kind
needs. parse_action() is the single entry point for raw payloads (typically
produced by a natural-language interpreter); it validates every required field
and raises ValidationError naming the field instead of guessing.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Union

from folio_core.errors import ValidationError
from folio_core.models import AssetType
from folio_core.money import ONE, ZERO, to_decimal

_ABBREVIATED_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*([kmb])?$")
_SUFFIX = {"k": Decimal("1000"), "m": Decimal("1000000"), "b": Decimal("1000000000")}
_DATE_FORMATS = ("%Y/%m/%d", "%m/%d/%Y", "%d.%m.%Y", "%b %d %Y", "%b %d, %Y", "%B %d %Y", "%B %d, %Y", "%d %B %Y")


@dataclass(frozen=True, kw_only=True)
class _Action:
    symbol: str
    asset_type: AssetType | None = None
    confidence: float = 1.0
    summary: str = ""


@dataclass(frozen=True, kw_only=True)
class BuyAction(_Action):
    amount: Decimal
    price_per_unit: Decimal | None = None
    total_cost: Decimal | None = None
    name: str | None = None
    date: date | None = None
    matched_position_id: str | None = None
    matched_account_id: str | None = None
    account_name: str | None = None
    kind: str = "buy"


@dataclass(frozen=True, kw_only=True)
class SellPartialAction(_Action):
    """Exactly one of sell_amount / sell_percent is set."""

    sell_price: Decimal
    sell_amount: Decimal | None = None
    sell_percent: Decimal | None = None
    date: date | None = None
    matched_position_id: str | None = None
    kind: str = "sell_partial"


@dataclass(frozen=True, kw_only=True)
class SellAllAction(_Action):
    sell_price: Decimal
    date: date | None = None
    matched_position_id: str | None = None
    kind: str = "sell_all"


@dataclass(frozen=True, kw_only=True)
class AddCashAction(_Action):
    amount: Decimal
    currency: str = "USD"
    account_name: str | None = None
    matched_position_id: str | None = None
    matched_account_id: str | None = None
    kind: str = "add_cash"


@dataclass(frozen=True, kw_only=True)
class RemoveAction(_Action):
    matched_position_id: str | None = None
    kind: str = "remove"


@dataclass(frozen=True, kw_only=True)
class UpdatePositionAction(_Action):
    """At least one of amount / cost_basis / date is set."""

    matched_position_id: str | None = None
    amount: Decimal | None = None
    cost_basis: Decimal | None = None
    date: date | None = None
    kind: str = "update_position"


@dataclass(frozen=True, kw_only=True)
class SetPriceAction(_Action):
    new_price: Decimal
    note: str | None = None
    kind: str = "set_price"


@dataclass(frozen=True, kw_only=True)
class UpdateCashAction(_Action):
    amount: Decimal
    currency: str = "USD"
    account_name: str | None = None
    matched_position_id: str | None = None
    matched_account_id: str | None = None
    kind: str = "update_cash"


ParsedAction = Union[
    BuyAction,
    SellPartialAction,
    SellAllAction,
    AddCashAction,
    RemoveAction,
    UpdatePositionAction,
    SetPriceAction,
    UpdateCashAction,
]


def parse_abbreviated_number(raw: str | int | float | Decimal | None) -> Decimal | None:
    """'52k' -> 52000, '1.5m' -> 1500000, '$3,200' -> 3200. None when unparseable."""
    if raw is None or isinstance(raw, bool):
        return None
    if not isinstance(raw, str):
        return to_decimal(raw, default=None)
    cleaned = raw.replace("$", "").replace(",", "").strip().lower()
    match = _ABBREVIATED_RE.match(cleaned)
    if not match:
        return None
    value = Decimal(match.group(1))
    suffix = match.group(2)
    return value * _SUFFIX[suffix] if suffix else value


def resolve_date(value: Any, today: date | None = None) -> date:
    """
    Resolve a user-supplied date.

    Accepts date/datetime objects, 'today', 'yesterday', 'tomorrow', ISO
    strings and a handful of common written formats. None means today.
    """
    today = today or date.today()
    if value is None:
        return today
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    lowered = text.lower()
    if lowered in ("", "today", "now"):
        return today
    if lowered == "yesterday":
        return today - timedelta(days=1)
    if lowered == "tomorrow":
        return today + timedelta(days=1)
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValidationError(f"unrecognised date {text!r}", field="date")


# --- Payload helpers ---


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _raw(payload: Mapping[str, Any], name: str) -> Any:
    if name in payload:
        return payload[name]
    return payload.get(_camel(name))


def _text(payload: Mapping[str, Any], name: str) -> str | None:
    value = _raw(payload, name)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _number(payload: Mapping[str, Any], name: str, *, required: bool = False) -> Decimal | None:
    value = _raw(payload, name)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError("is required", field=name)
        return None
    number = parse_abbreviated_number(value)
    if number is None:
        raise ValidationError(f"not a number: {value!r}", field=name)
    return number


def _positive(payload: Mapping[str, Any], name: str, *, required: bool = False) -> Decimal | None:
    number = _number(payload, name, required=required)
    if number is not None and number <= 0:
        raise ValidationError("must be greater than 0", field=name)
    return number


def _non_negative(payload: Mapping[str, Any], name: str, *, required: bool = False) -> Decimal | None:
    number = _number(payload, name, required=required)
    if number is not None and number < 0:
        raise ValidationError("must not be negative", field=name)
    return number


def _optional_date(payload: Mapping[str, Any], today: date | None) -> date | None:
    value = _raw(payload, "date")
    if value is None:
        return None
    return resolve_date(value, today)


def _asset_type(payload: Mapping[str, Any], default: AssetType | None = None) -> AssetType | None:
    value = _text(payload, "asset_type")
    if value is None:
        return default
    try:
        return AssetType(value.lower())
    except ValueError:
        raise ValidationError(f"unknown asset type {value!r}", field="asset_type") from None


def _confidence(payload: Mapping[str, Any]) -> float:
    value = _raw(payload, "confidence")
    if value is None:
        return 1.0
    number = to_decimal(value, default=None)
    if number is None or number < ZERO or number > ONE:
        raise ValidationError("must be between 0 and 1", field="confidence")
    return float(number)


def _symbol(payload: Mapping[str, Any]) -> str:
    symbol = _text(payload, "symbol")
    if symbol is None:
        raise ValidationError("is required", field="symbol")
    return symbol.upper()


def _currency(payload: Mapping[str, Any]) -> str:
    return (_text(payload, "currency") or _text(payload, "symbol") or "USD").upper()


def parse_action(payload: Mapping[str, Any], *, today: date | None = None) -> ParsedAction:
    """
    Build a typed action from an untrusted mapping.

    The kind is read from 'action' (or 'kind'). Keys may be snake_case or
    camelCase. Numbers may be abbreviated strings ('52k', '$3,200').

    Raises
    ------
    ValidationError with field set to the offending key.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("payload must be a mapping", field="action")
    kind = (_text(payload, "action") or _text(payload, "kind") or "").lower()
    common = {
        "confidence": _confidence(payload),
        "summary": _text(payload, "summary") or "",
    }

    if kind == "buy":
        amount = _positive(payload, "amount", required=True)
        price = _non_negative(payload, "price_per_unit")
        total = _non_negative(payload, "total_cost")
        if not price and total is None:
            raise ValidationError("price_per_unit or total_cost is required", field="price_per_unit")
        return BuyAction(
            symbol=_symbol(payload),
            asset_type=_asset_type(payload, AssetType.CRYPTO),
            amount=amount,
            price_per_unit=price,
            total_cost=total,
            name=_text(payload, "name"),
            date=_optional_date(payload, today),
            matched_position_id=_text(payload, "matched_position_id"),
            matched_account_id=_text(payload, "matched_account_id"),
            account_name=_text(payload, "account_name"),
            **common,
        )

    if kind == "sell_partial":
        sell_amount = _positive(payload, "sell_amount")
        sell_percent = _positive(payload, "sell_percent")
        if sell_amount is None and sell_percent is None:
            raise ValidationError("sell_amount or sell_percent is required", field="sell_amount")
        if sell_amount is not None and sell_percent is not None:
            raise ValidationError("give either sell_amount or sell_percent, not both", field="sell_percent")
        if sell_percent is not None and sell_percent > 100:
            raise ValidationError("cannot exceed 100", field="sell_percent")
        return SellPartialAction(
            symbol=_symbol(payload),
            asset_type=_asset_type(payload),
            sell_amount=sell_amount,
            sell_percent=sell_percent,
            sell_price=_non_negative(payload, "sell_price", required=True),
            date=_optional_date(payload, today),
            matched_position_id=_text(payload, "matched_position_id"),
            **common,
        )

    if kind == "sell_all":
        return SellAllAction(
            symbol=_symbol(payload),
            asset_type=_asset_type(payload),
            sell_price=_non_negative(payload, "sell_price", required=True),
            date=_optional_date(payload, today),
            matched_position_id=_text(payload, "matched_position_id"),
            **common,
        )

    if kind == "add_cash":
        currency = _currency(payload)
        return AddCashAction(
            symbol=currency,
            asset_type=AssetType.CASH,
            amount=_positive(payload, "amount", required=True),
            currency=currency,
            account_name=_text(payload, "account_name"),
            matched_position_id=_text(payload, "matched_position_id"),
            matched_account_id=_text(payload, "matched_account_id"),
            **common,
        )

    if kind == "update_cash":
        currency = _currency(payload)
        return UpdateCashAction(
            symbol=currency,
            asset_type=AssetType.CASH,
            amount=_non_negative(payload, "amount", required=True),
            currency=currency,
            account_name=_text(payload, "account_name"),
            matched_position_id=_text(payload, "matched_position_id"),
            matched_account_id=_text(payload, "matched_account_id"),
            **common,
        )

    if kind == "remove":
        return RemoveAction(
            symbol=_symbol(payload),
            asset_type=_asset_type(payload),
            matched_position_id=_text(payload, "matched_position_id"),
            **common,
        )

    if kind == "update_position":
        amount = _non_negative(payload, "amount")
        cost_basis = _non_negative(payload, "cost_basis")
        when = _optional_date(payload, today)
        if amount is None and cost_basis is None and when is None:
            raise ValidationError("no fields to update", field="amount")
        return UpdatePositionAction(
            symbol=_symbol(payload),
            asset_type=_asset_type(payload),
            matched_position_id=_text(payload, "matched_position_id"),
            amount=amount,
            cost_basis=cost_basis,
            date=when,
            **common,
        )

    if kind == "set_price":
        price = _raw(payload, "new_price")
        field = "new_price" if price is not None else "price"
        return SetPriceAction(
            symbol=_symbol(payload),
            asset_type=_asset_type(payload),
            new_price=_positive(payload, field, required=True),
            note=_text(payload, "note"),
            **common,
        )

    raise ValidationError(f"unknown action {kind!r}", field="action")
