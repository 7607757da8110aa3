"""Current prices and exchange rates via yfinance."""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional, Protocol

import yfinance as yf

from ..core.exceptions import QuoteFetchError
from ..core.markets import YAHOO_SUFFIX, StockMarket, currency_for_market, detect_market
from ..core.models import CurrentPrice

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Quote:
    ticker: str
    price: Decimal
    currency: str
    exchange_rate: Decimal  # ticker currency -> home currency

    def as_current_price(self) -> CurrentPrice:
        return CurrentPrice(price=self.price, exchange_rate=self.exchange_rate)


class QuoteProvider(Protocol):
    def fetch_quote(
        self, ticker: str, home_currency: str, market: Optional[StockMarket] = None
    ) -> Quote: ...

    def historical_rate(self, from_currency: str, to_currency: str, on_date: date) -> Optional[Decimal]: ...


def yahoo_symbol(ticker: str, market: Optional[StockMarket] = None) -> str:
    """Map a portfolio ticker to its Yahoo Finance symbol (2330 -> 2330.TW)."""
    market = market or detect_market(ticker)
    ticker = ticker.upper()
    suffix = YAHOO_SUFFIX.get(market, "")
    if suffix and not ticker.endswith(suffix):
        return ticker + suffix
    return ticker


def fx_symbol(from_currency: str, to_currency: str) -> str:
    return f"{from_currency.upper()}{to_currency.upper()}=X"


class YahooQuoteProvider:
    """Fetches last prices and FX rates from Yahoo Finance."""

    @staticmethod
    def _last_price(symbol: str) -> Optional[Decimal]:
        ticker = yf.Ticker(symbol)
        try:
            price = getattr(ticker.fast_info, "last_price", None)
            if price is not None and price > 0:
                return Decimal(str(price)).quantize(Decimal("0.0001"))
        except (KeyError, AttributeError, ValueError) as e:
            logger.debug("fast_info failed for %s: %s", symbol, e)
        hist = ticker.history(period="5d")
        if not hist.empty:
            return Decimal(str(hist["Close"].iloc[-1])).quantize(Decimal("0.0001"))
        return None

    def current_rate(self, from_currency: str, to_currency: str) -> Decimal:
        if from_currency.upper() == to_currency.upper():
            return Decimal("1")
        rate = self._last_price(fx_symbol(from_currency, to_currency))
        if rate is None:
            raise QuoteFetchError(f"No exchange rate for {from_currency}/{to_currency}")
        return rate

    def fetch_quote(
        self, ticker: str, home_currency: str, market: Optional[StockMarket] = None
    ) -> Quote:
        """Last price of ``ticker`` and its rate to ``home_currency``.

        ``market`` is the listing recorded on the transactions; it is only
        guessed from the ticker when not given.
        """
        market = market or detect_market(ticker)
        symbol = yahoo_symbol(ticker, market)
        price = self._last_price(symbol)
        if price is None:
            raise QuoteFetchError(f"No price for {ticker} ({symbol})")
        currency = currency_for_market(market)
        return Quote(
            ticker=ticker.upper(),
            price=price,
            currency=currency,
            exchange_rate=self.current_rate(currency, home_currency),
        )

    def historical_rate(self, from_currency: str, to_currency: str, on_date: date) -> Optional[Decimal]:
        """Closing FX rate on ``on_date``, or the last close within the week before it."""
        if from_currency.upper() == to_currency.upper():
            return Decimal("1")
        symbol = fx_symbol(from_currency, to_currency)
        hist = yf.Ticker(symbol).history(
            start=(on_date - timedelta(days=7)).isoformat(),
            end=(on_date + timedelta(days=1)).isoformat(),
        )
        if hist.empty:
            logger.warning("No historical rate for %s on %s", symbol, on_date.isoformat())
            return None
        return Decimal(str(hist["Close"].iloc[-1])).quantize(Decimal("0.000001"))
