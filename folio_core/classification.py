"""
Asset classification: symbol + declared type (+ optional override) -> asset class.

Single source of truth for categorisation. Valuation, cash resolution and
exposure all ask this module; none of them re-derive a class on their own.

Resolution order for classify():
  1. explicit override
  2. authoritative symbol table (CASH_<CCY>_<id> symbols, metals)
  3. declared type; untyped (manual) positions fall back to the heuristic
     symbol tables (fiat -> cash, known crypto -> crypto, known ETF -> equity)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from folio_core.models import AssetClass, AssetType

if TYPE_CHECKING:
    from folio_core.models import Position


class MainCategory(Enum):
    CRYPTO = "crypto"
    EQUITIES = "equities"
    METALS = "metals"
    CASH = "cash"
    OTHER = "other"


class ExposureCategory(Enum):
    """Finer breakdown of crypto exposure. Non-crypto assets fall back to TOKENS."""

    STABLECOINS = "stablecoins"
    BTC = "btc"
    ETH = "eth"
    SOL = "sol"
    DEFI = "defi"
    RWA = "rwa"
    PRIVACY = "privacy"
    AI = "ai"
    MEME = "meme"
    TOKENS = "tokens"


NO_SUB_CATEGORY = "none"

USD_STABLECOINS = frozenset({
    "usd", "usdt", "usdc", "dai", "busd", "tusd", "usdp", "usdd", "frax", "lusd",
    "gusd", "susd", "cusd", "ust", "mim", "fei", "ousd", "dola", "rai",
    "pyusd", "usdm", "gho", "crvusd", "mkusd", "usds", "dusd", "husd", "xusd",
    "usde", "susde", "wusde", "usdai", "usd0", "usd0++", "fdusd", "usdb", "usdx",
    "usdy", "usdz", "zusd", "musd", "pusd", "ausd", "rusd", "cgusd",
    "wxdai", "xdai", "sdai", "susds", "stusdt",
})

EUR_STABLECOINS = frozenset({
    "euroc", "eurt", "ceur", "ageur", "jeur", "eur", "eurc", "eure", "eura", "steur", "seur",
})

GBP_STABLECOINS = frozenset({"gbpt", "gbpc"})

STABLECOINS = USD_STABLECOINS | EUR_STABLECOINS | GBP_STABLECOINS

BTC_LIKE = frozenset({
    "btc", "wbtc", "btcb", "renbtc", "hbtc", "sbtc", "tbtc", "pbtc",
    "obtc", "fbtc", "mbtc", "ibtc", "bbtc", "ebtc", "xbtc", "rbtc",
    "btc.b", "cbbtc", "lbtc", "btcpx",
})

ETH_LIKE = frozenset({
    "eth", "weth", "steth", "wsteth", "reth", "cbeth", "seth", "meth",
    "frxeth", "sfrxeth", "oeth", "ankreth", "seth2", "reth2", "eeth", "weeth",
    "ezeth", "rseth", "pufeth", "sweth", "ethx", "unsteth",
})

SOL_LIKE = frozenset({
    "sol", "wsol", "msol", "jitosol", "bsol", "stsol", "scnsol", "lsol",
    "hsol", "csol", "dsol", "vsol", "risksol", "laine", "bonksol", "jupsol",
    "inf", "phsol", "jsol",
})

FIAT_CURRENCIES = frozenset({
    "usd", "eur", "gbp", "chf", "jpy", "cny", "cad", "aud", "nzd",
    "hkd", "sgd", "sek", "nok", "dkk", "krw", "inr", "brl", "mxn",
    "zar", "aed", "thb", "pln", "czk", "ils", "php", "idr", "myr",
    "try", "rub", "huf", "ron", "bgn", "hrk", "isk", "twd", "vnd",
})

PERP_PROTOCOLS = frozenset({"hyperliquid", "lighter", "ethereal", "vertex", "drift"})

DEFI_TOKENS = frozenset({
    "uni", "uniswap", "sushi", "cake", "crv", "bal", "joe", "velo", "aero", "sky",
    "gmx", "dydx", "perp", "rune", "osmo", "ray", "orca", "jup", "jupiter",
    "1inch", "dodo", "bnt", "knc", "camelot", "thena", "velodrome", "aerodrome",
    "aave", "comp", "compound", "mkr", "maker", "ldo", "lido", "rpl",
    "morpho", "euler", "rdnt", "benqi", "qi", "xvs", "fxs", "spell", "alcx", "lqty",
    "yfi", "cvx", "btrfly", "ohm", "pendle", "rbn", "dpx", "jones", "umami", "bifi",
    "snx", "lyra", "premia", "hegic", "stg", "hop", "acx", "syn", "celr", "lz",
    "inst", "gns", "api3", "band", "uma", "ren", "eigen", "ethfi", "ena",
    "arb", "op", "strk", "matic", "pol", "zk", "manta", "scr", "mnt",
    "avax", "ftm", "celo", "glmr", "kava", "atom", "dot", "ksm", "link", "pyth",
})

RWA_TOKENS = frozenset({
    "ondo", "maple", "mpl", "goldfinch", "gfi", "cfg", "syrup", "cpool", "tru",
    "paxg", "xaut", "tgold", "dgld", "pmgt", "cache", "cgo",
    "rwa", "realt", "parcl", "buidl", "rsv",
})

PRIVACY_TOKENS = frozenset({
    "xmr", "zec", "dash", "scrt", "rose", "arrr", "firo", "beam", "grin",
    "nym", "dero", "xhv", "oxen", "mask", "torn", "rail", "zano",
})

AI_TOKENS = frozenset({
    "fet", "agix", "ocean", "vvv", "giza", "rndr", "render", "tao", "akt", "grt",
    "ar", "fil", "storj", "sc", "nmr", "ctxc", "vana", "prime", "ai16z", "virtual",
    "goat", "act", "arc", "griffain", "fartcoin", "zerebro", "aixbt", "grass",
    "io", "wld", "jasmy", "pha", "nos", "near",
})

MEME_TOKENS = frozenset({
    "doge", "shib", "pepe", "floki", "bonk", "wif", "meme", "wojak", "turbo",
    "brett", "mog", "popcat", "pnut", "neiro", "toshi", "degen", "ponke",
    "wen", "myro", "slerf", "bome", "trump", "mother",
})

ETFS = frozenset({
    "spy", "spx", "voo", "ivv", "qqq", "qqqm", "dia", "iwm", "vti", "vtv", "vug",
    "schd", "schx", "schb", "splg", "sptm", "itot",
    "xlk", "xlf", "xle", "xlv", "xli", "xlp", "xly", "xlb", "xlu", "xlre",
    "vgt", "vht", "vde", "vnq", "vfh", "vis", "vox", "vpu", "vaw", "vdc",
    "vxus", "vea", "vwo", "efa", "eem", "iefa", "iemg", "vgk", "vpl", "fxi",
    "bnd", "agg", "lqd", "tlt", "ief", "shy", "tip", "vcit", "vcsh", "bndx",
    "arkk", "arkw", "arkg", "arkf", "arkq", "soxx", "smh", "botz", "robo", "hack",
    "kweb", "cqqq", "mchi", "gld", "slv", "gdx", "gldm", "iau", "uso", "ung",
    "tqqq", "sqqq", "upro", "spxu", "soxl", "soxs",
    "gbtc", "ethe", "bito", "bitq", "blok", "ibit", "btco", "arkb",
    "ewg", "ewq", "ewu", "ezu", "hedj", "dbeu", "ieur", "fez",
})

METALS_GOLD = frozenset({
    "xaut", "paxg", "xau", "tgold", "dgld", "pmgt", "cache", "cgo",
    "gld", "iau", "gldm", "sgol", "phys", "bar", "aau", "aaau",
})
METALS_SILVER = frozenset({"xag", "xage", "slv", "sivr", "pslv"})
METALS_PLATINUM = frozenset({"pplt", "xpt"})
METALS_PALLADIUM = frozenset({"pall", "xpd"})
METALS_MINERS = frozenset({"gdx", "gdxj", "sil", "silj", "ring"})

CASH_SYMBOL_PREFIX = "cash_"

MAIN_CATEGORY_LABELS = {
    MainCategory.CRYPTO: "Crypto",
    MainCategory.EQUITIES: "Equities",
    MainCategory.METALS: "Metals",
    MainCategory.CASH: "Cash",
    MainCategory.OTHER: "Other",
}

SUB_CATEGORY_LABELS = {
    "crypto_btc": "BTC",
    "crypto_eth": "ETH",
    "crypto_sol": "SOL",
    "crypto_stablecoins": "Stablecoins",
    "crypto_tokens": "Tokens",
    "crypto_perps": "Perps",
    "equities_stocks": "Stocks",
    "equities_etfs": "ETFs",
    "metals_gold": "Gold",
    "metals_silver": "Silver",
    "metals_platinum": "Platinum",
    "metals_palladium": "Palladium",
    "metals_miners": "Miners",
}

_PENDLE_PREFIXES = ("pt-", "yt-", "pt_", "yt_")
_PENDLE_USD_HINTS = ("usd", "dai", "frax", "gho", "lusd", "mkusd", "crvusd", "pyusd", "dola", "mim", "fdusd")
_PERP_TRADE_RE = re.compile(r"\b(long|short)\b\s*(?:\(|$)", re.IGNORECASE)

_MAIN_TO_CLASS = {
    MainCategory.CRYPTO: AssetClass.CRYPTO,
    MainCategory.EQUITIES: AssetClass.EQUITY,
    MainCategory.METALS: AssetClass.METALS,
    MainCategory.CASH: AssetClass.CASH,
    MainCategory.OTHER: AssetClass.OTHER,
}

_CLASS_TO_MAIN = {v: k for k, v in _MAIN_TO_CLASS.items()}


def normalize_symbol(symbol: str | None) -> str:
    return (symbol or "").strip().lower()


def _is_pendle(symbol: str) -> bool:
    return symbol.startswith(_PENDLE_PREFIXES) or "pt-" in symbol or "yt-" in symbol


def _pendle_underlying(symbol: str) -> ExposureCategory | None:
    """Pendle PT/YT tokens inherit the class of their underlying."""
    if any(h in symbol for h in ("usd", "dai", "eur", "frax", "gho", "lusd")):
        return ExposureCategory.STABLECOINS
    if "eth" in symbol:
        return ExposureCategory.ETH
    if "btc" in symbol:
        return ExposureCategory.BTC
    if "sol" in symbol:
        return ExposureCategory.SOL
    return None


@dataclass(frozen=True)
class PerpTrade:
    """Result of detect_perp_trade."""

    is_perp_trade: bool
    is_long: bool
    is_short: bool


def detect_perp_trade(name: str | None) -> PerpTrade:
    """Recognise perp trade names such as 'BTC Long (Hyperliquid)' or 'SOL Short'."""
    match = _PERP_TRADE_RE.search(name or "")
    if not match:
        return PerpTrade(False, False, False)
    side = match.group(1).lower()
    return PerpTrade(True, side == "long", side == "short")


class CategoryService:
    """
    Hierarchical asset categorisation: main category, sub-category, exposure
    category. Stateless apart from its lookup tables; use get_category_service().
    """

    def is_stablecoin(self, symbol: str) -> bool:
        s = normalize_symbol(symbol)
        if s in STABLECOINS:
            return True
        if s.startswith(_PENDLE_PREFIXES):
            return any(h in s for h in _PENDLE_USD_HINTS + ("eur", "gbp"))
        return False

    def is_perp_protocol(self, protocol: str | None) -> bool:
        if not protocol:
            return False
        p = protocol.strip().lower()
        return p in PERP_PROTOCOLS or any(name in p for name in PERP_PROTOCOLS)

    def underlying_fiat_currency(self, symbol: str) -> str | None:
        """Fiat a stablecoin or cash symbol is pegged to (USDC -> USD), else None."""
        s = normalize_symbol(symbol)
        if s in FIAT_CURRENCIES:
            return s.upper()
        if s in USD_STABLECOINS:
            return "USD"
        if s in EUR_STABLECOINS:
            return "EUR"
        if s in GBP_STABLECOINS:
            return "GBP"
        if s.startswith(_PENDLE_PREFIXES):
            if any(h in s for h in _PENDLE_USD_HINTS):
                return "USD"
            if "eur" in s:
                return "EUR"
            if "gbp" in s:
                return "GBP"
        if s.endswith(("dai", "usd", "usdc", "usdt", "frax")):
            return "USD"
        return None

    def is_known_etf(self, symbol: str) -> bool:
        s = normalize_symbol(symbol)
        if s in ETFS:
            return True
        base, dot, _suffix = s.rpartition(".")
        return bool(dot) and bool(base) and base in ETFS

    def is_metal(self, symbol: str) -> bool:
        s = normalize_symbol(symbol)
        return (
            s in METALS_GOLD
            or s in METALS_SILVER
            or s in METALS_PLATINUM
            or s in METALS_PALLADIUM
            or s in METALS_MINERS
        )

    def metal_sub_category(self, symbol: str) -> str:
        s = normalize_symbol(symbol)
        if s in METALS_GOLD:
            return "gold"
        if s in METALS_SILVER:
            return "silver"
        if s in METALS_PLATINUM:
            return "platinum"
        if s in METALS_PALLADIUM:
            return "palladium"
        return "miners"

    def main_category(self, symbol: str, declared_type: AssetType | AssetClass | str | None = None) -> MainCategory:
        s = normalize_symbol(symbol)
        t = _type_value(declared_type)
        if t == "cash" or s.startswith(CASH_SYMBOL_PREFIX):
            return MainCategory.CASH
        if t == "metals" or self.is_metal(s):
            return MainCategory.METALS
        if t in ("stock", "etf", "equity"):
            return MainCategory.EQUITIES
        if t == "crypto":
            return MainCategory.CRYPTO
        if t == "other":
            return MainCategory.OTHER
        # untyped / manual: guess from the symbol
        if s in FIAT_CURRENCIES:
            return MainCategory.CASH
        if s in STABLECOINS or s in BTC_LIKE or s in ETH_LIKE or s in SOL_LIKE:
            return MainCategory.CRYPTO
        if s in ETFS:
            return MainCategory.EQUITIES
        return MainCategory.OTHER

    def sub_category(self, symbol: str, declared_type: AssetType | AssetClass | str | None = None) -> str:
        s = normalize_symbol(symbol)
        t = _type_value(declared_type)
        main = self.main_category(symbol, declared_type)
        if main == MainCategory.METALS:
            return self.metal_sub_category(s)
        if main == MainCategory.CRYPTO:
            if s in STABLECOINS:
                return "stablecoins"
            if s in BTC_LIKE:
                return "btc"
            if s in ETH_LIKE:
                return "eth"
            if s in SOL_LIKE:
                return "sol"
            if _is_pendle(s):
                underlying = _pendle_underlying(s)
                if underlying is not None:
                    return underlying.value
            return "tokens"
        if main == MainCategory.EQUITIES:
            if t == "etf" or self.is_known_etf(s):
                return "etfs"
            return "stocks"
        return NO_SUB_CATEGORY

    def exposure_category(self, symbol: str, declared_type: AssetType | AssetClass | str | None = None) -> ExposureCategory:
        """Priority: stablecoins > btc > eth > sol > defi > rwa > privacy > ai > meme > tokens."""
        if self.main_category(symbol, declared_type) != MainCategory.CRYPTO:
            return ExposureCategory.TOKENS
        s = normalize_symbol(symbol)
        for table, category in (
            (STABLECOINS, ExposureCategory.STABLECOINS),
            (BTC_LIKE, ExposureCategory.BTC),
            (ETH_LIKE, ExposureCategory.ETH),
            (SOL_LIKE, ExposureCategory.SOL),
            (DEFI_TOKENS, ExposureCategory.DEFI),
            (RWA_TOKENS, ExposureCategory.RWA),
            (PRIVACY_TOKENS, ExposureCategory.PRIVACY),
            (AI_TOKENS, ExposureCategory.AI),
            (MEME_TOKENS, ExposureCategory.MEME),
        ):
            if s in table:
                return category
        if _is_pendle(s):
            return _pendle_underlying(s) or ExposureCategory.DEFI
        return ExposureCategory.TOKENS

    def asset_category(self, symbol: str, declared_type: AssetType | AssetClass | str | None = None) -> str:
        """Combined key in main_sub form ('crypto_btc', 'equities_etfs', 'cash')."""
        main = self.main_category(symbol, declared_type)
        sub = self.sub_category(symbol, declared_type)
        if sub == NO_SUB_CATEGORY or main in (MainCategory.CASH, MainCategory.OTHER):
            return main.value
        return f"{main.value}_{sub}"

    def category_label(self, category: str) -> str:
        if "_" in category:
            return SUB_CATEGORY_LABELS.get(category, category)
        try:
            return MAIN_CATEGORY_LABELS[MainCategory(category)]
        except ValueError:
            return category

    def asset_class(self, symbol: str, declared_type: AssetType | AssetClass | str | None = None) -> AssetClass:
        return _MAIN_TO_CLASS[self.main_category(symbol, declared_type)]

    def validate_categories(self) -> list[tuple[str, list[str]]]:
        """Tokens listed in more than one exposure table, sorted by token."""
        tables = {
            "stablecoins": STABLECOINS,
            "btc": BTC_LIKE,
            "eth": ETH_LIKE,
            "sol": SOL_LIKE,
            "defi": DEFI_TOKENS,
            "rwa": RWA_TOKENS,
            "privacy": PRIVACY_TOKENS,
            "ai": AI_TOKENS,
            "meme": MEME_TOKENS,
        }
        seen: dict[str, list[str]] = {}
        for name, table in tables.items():
            for token in table:
                seen.setdefault(token, []).append(name)
        return sorted((t, names) for t, names in seen.items() if len(names) > 1)


def _type_value(declared_type: AssetType | AssetClass | str | None) -> str | None:
    if declared_type is None:
        return None
    if isinstance(declared_type, (AssetType, AssetClass)):
        return declared_type.value
    return str(declared_type).strip().lower()


_instance: CategoryService | None = None


def get_category_service() -> CategoryService:
    global _instance
    if _instance is None:
        _instance = CategoryService()
    return _instance


def classify(
    symbol: str,
    declared_type: AssetType | AssetClass | str | None,
    override: AssetClass | None = None,
) -> AssetClass:
    """Resolve the asset class. override, when given, wins unconditionally."""
    if override is not None:
        return override
    return get_category_service().asset_class(symbol, declared_type)


def effective_asset_class(position: Position) -> AssetClass:
    """Asset class of a position: manual override, else classify(symbol, type)."""
    return classify(position.symbol, position.type, position.asset_class_override)


def main_category_for_class(asset_class: AssetClass) -> MainCategory:
    return _CLASS_TO_MAIN[asset_class]


def is_stablecoin(symbol: str) -> bool:
    return get_category_service().is_stablecoin(symbol)


def is_perp_protocol(protocol: str | None) -> bool:
    return get_category_service().is_perp_protocol(protocol)


def exposure_category(symbol: str, declared_type: AssetType | AssetClass | str | None = None) -> ExposureCategory:
    return get_category_service().exposure_category(symbol, declared_type)
