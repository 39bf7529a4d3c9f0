"""
Tests for asset classification and perp trade detection.
"""

import pytest

from folio_core.classification import (
    ExposureCategory,
    MainCategory,
    classify,
    detect_perp_trade,
    effective_asset_class,
    get_category_service,
    is_perp_protocol,
    is_stablecoin,
)
from folio_core.models import AssetClass, AssetType, Position


# --- classify ---


def test_override_always_wins():
    assert classify("BTC", AssetType.CRYPTO, AssetClass.OTHER) == AssetClass.OTHER
    assert classify("CASH_USD_1", AssetType.CASH, AssetClass.EQUITY) == AssetClass.EQUITY


@pytest.mark.parametrize(
    "symbol,declared,expected",
    [
        ("BTC", AssetType.CRYPTO, AssetClass.CRYPTO),
        ("AAPL", AssetType.STOCK, AssetClass.EQUITY),
        ("SPY", AssetType.ETF, AssetClass.EQUITY),
        ("CASH_EUR_123", AssetType.MANUAL, AssetClass.CASH),
        ("whatever", AssetType.CASH, AssetClass.CASH),
        ("GLD", AssetType.ETF, AssetClass.METALS),
        ("PAXG", AssetType.CRYPTO, AssetClass.METALS),
        ("usd", AssetType.MANUAL, AssetClass.CASH),
        ("USDC", AssetType.MANUAL, AssetClass.CRYPTO),
        ("QQQ", AssetType.MANUAL, AssetClass.EQUITY),
        ("House", AssetType.MANUAL, AssetClass.OTHER),
    ],
)
def test_classify_table(symbol, declared, expected):
    assert classify(symbol, declared) == expected


def test_classify_normalizes_symbol():
    assert classify("  cash_chf_9 ", AssetType.MANUAL) == AssetClass.CASH


def test_classify_accepts_string_type():
    assert classify("AAPL", "stock") == AssetClass.EQUITY


def test_effective_asset_class_uses_override():
    pos = Position(id="1", symbol="BTC", name="Bitcoin", type=AssetType.CRYPTO, amount=1, asset_class_override=AssetClass.CASH)
    assert effective_asset_class(pos) == AssetClass.CASH


def test_classify_is_deterministic():
    assert [classify("ETH", AssetType.CRYPTO) for _ in range(3)] == [AssetClass.CRYPTO] * 3


# --- CategoryService ---


def test_sub_categories():
    svc = get_category_service()
    assert svc.sub_category("WBTC", AssetType.CRYPTO) == "btc"
    assert svc.sub_category("stETH", AssetType.CRYPTO) == "eth"
    assert svc.sub_category("USDT", AssetType.CRYPTO) == "stablecoins"
    assert svc.sub_category("UNI", AssetType.CRYPTO) == "tokens"
    assert svc.sub_category("VOO", AssetType.STOCK) == "etfs"
    assert svc.sub_category("MSFT", AssetType.STOCK) == "stocks"
    assert svc.sub_category("SLV", AssetType.ETF) == "silver"


def test_asset_category_key_and_label():
    svc = get_category_service()
    assert svc.asset_category("BTC", AssetType.CRYPTO) == "crypto_btc"
    assert svc.asset_category("CASH_USD_1", AssetType.CASH) == "cash"
    assert svc.category_label("crypto_btc") == "BTC"
    assert svc.category_label("cash") == "Cash"


def test_exposure_category_priority():
    svc = get_category_service()
    assert svc.exposure_category("USDC", AssetType.CRYPTO) == ExposureCategory.STABLECOINS
    assert svc.exposure_category("AAVE", AssetType.CRYPTO) == ExposureCategory.DEFI
    assert svc.exposure_category("DOGE", AssetType.CRYPTO) == ExposureCategory.MEME
    assert svc.exposure_category("XMR", AssetType.CRYPTO) == ExposureCategory.PRIVACY
    assert svc.exposure_category("PT-sUSDe", AssetType.CRYPTO) == ExposureCategory.STABLECOINS
    assert svc.exposure_category("AAPL", AssetType.STOCK) == ExposureCategory.TOKENS


def test_main_category():
    svc = get_category_service()
    assert svc.main_category("BTC", AssetType.CRYPTO) == MainCategory.CRYPTO
    assert svc.main_category("XAUT", AssetType.CRYPTO) == MainCategory.METALS


@pytest.mark.parametrize("symbol", ["USDC", "usdt", "DAI", "FRAX", "LUSD", "PYUSD", "EURC", "PT-sUSDe"])
def test_is_stablecoin(symbol):
    assert is_stablecoin(symbol)


@pytest.mark.parametrize("symbol", ["BTC", "ETH", "AAPL", ""])
def test_is_not_stablecoin(symbol):
    assert not is_stablecoin(symbol)


def test_underlying_fiat_currency():
    svc = get_category_service()
    assert svc.underlying_fiat_currency("USDC") == "USD"
    assert svc.underlying_fiat_currency("EURC") == "EUR"
    assert svc.underlying_fiat_currency("chf") == "CHF"
    assert svc.underlying_fiat_currency("BTC") is None


@pytest.mark.parametrize("protocol", ["Hyperliquid", "Lighter", "Ethereal", "hyperliquid perps"])
def test_is_perp_protocol(protocol):
    assert is_perp_protocol(protocol)


def test_is_not_perp_protocol():
    assert not is_perp_protocol("Aave V3")
    assert not is_perp_protocol(None)


def test_validate_categories_reports_overlaps():
    overlaps = dict(get_category_service().validate_categories())
    # every reported token really is in more than one table
    assert all(len(tables) > 1 for tables in overlaps.values())


# --- detect_perp_trade ---


@pytest.mark.parametrize(
    "name,is_long,is_short",
    [
        ("BTC Long (Hyperliquid)", True, False),
        ("ETH Short (Lighter)", False, True),
        ("SOL Long", True, False),
        ("SOL Short", False, True),
        ("BTC LONG", True, False),
        ("btc long", True, False),
        ("Eth SHORT", False, True),
    ],
)
def test_detect_perp_trade(name, is_long, is_short):
    result = detect_perp_trade(name)
    assert result.is_perp_trade
    assert result.is_long == is_long
    assert result.is_short == is_short


@pytest.mark.parametrize("name", ["Bitcoin", "Longhorn Token", "", None])
def test_detect_perp_trade_negative(name):
    result = detect_perp_trade(name)
    assert (result.is_perp_trade, result.is_long, result.is_short) == (False, False, False)
