"""Market detection and static market lookup tables."""

from enum import Enum
from types import MappingProxyType


class StockMarket(str, Enum):
    TW = "TW"
    US = "US"
    UK = "UK"
    EU = "EU"


# Trading currency per market. GBP/EUR listings may still be overridden
# per transaction.
MARKET_CURRENCY = MappingProxyType({
    StockMarket.TW: "TWD",
    StockMarket.US: "USD",
    StockMarket.UK: "USD",
    StockMarket.EU: "EUR",
})

# Markets whose sale/purchase subtotal (shares × price) is truncated to a
# whole currency unit before fees are applied.
FLOOR_ROUNDING_MARKETS: frozenset[StockMarket] = frozenset({StockMarket.TW})

# Yahoo Finance suffix per market, used by the quote adapter.
YAHOO_SUFFIX = MappingProxyType({
    StockMarket.TW: ".TW",
    StockMarket.US: "",
    StockMarket.UK: ".L",
    StockMarket.EU: ".AS",
})


def detect_market(ticker: str) -> StockMarket:
    """Guess the market from the ticker pattern.

    - digit-leading tickers (0050, 2330, 6547R) trade in Taiwan
    - a ".L" suffix is the London Stock Exchange
    - everything else is treated as a US listing
    """
    if not ticker or not ticker.strip():
        return StockMarket.US
    ticker = ticker.strip().upper()
    if ticker[0].isdigit():
        return StockMarket.TW
    if ticker.endswith(".L"):
        return StockMarket.UK
    return StockMarket.US


def currency_for_market(market: StockMarket) -> str:
    return MARKET_CURRENCY.get(market, "USD")


def uses_floor_rounding(market: StockMarket) -> bool:
    return market in FLOOR_ROUNDING_MARKETS
