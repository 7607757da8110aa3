"""Stock split adjustment.

Historical transactions are never rewritten. Adjusted share counts and
prices are computed on demand from the known split events, so that
pre-split trades line up with today's post-split share count.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable

from .markets import StockMarket
from .models import AdjustedTransactionValues, StockSplit, StockTransaction

ONE = Decimal("1.0")


def cumulative_split_ratio(
    symbol: str,
    market: StockMarket,
    on_date: date,
    splits: Iterable[StockSplit],
) -> Decimal:
    """Product of the ratios of every split dated strictly after ``on_date``.

    Returns 1.0 when no split applies.
    """
    symbol = symbol.upper()
    applicable = sorted(
        (
            s for s in splits
            if s.symbol.upper() == symbol
            and s.market == market
            and s.split_date > on_date
        ),
        key=lambda s: s.split_date,
    )
    ratio = ONE
    for split in applicable:
        ratio *= split.split_ratio
    return ratio


def adjusted_shares(
    original_shares: Decimal,
    symbol: str,
    market: StockMarket,
    on_date: date,
    splits: Iterable[StockSplit],
) -> Decimal:
    return original_shares * cumulative_split_ratio(symbol, market, on_date, splits)


def adjusted_price(
    original_price: Decimal,
    symbol: str,
    market: StockMarket,
    on_date: date,
    splits: Iterable[StockSplit],
) -> Decimal:
    ratio = cumulative_split_ratio(symbol, market, on_date, splits)
    if ratio == 0:
        return original_price
    return original_price / ratio


def adjusted_values(
    transaction: StockTransaction,
    splits: Iterable[StockSplit],
) -> AdjustedTransactionValues:
    """Split-adjusted shares and price for one transaction."""
    ratio = cumulative_split_ratio(
        transaction.ticker, transaction.market, transaction.transaction_date, splits
    )
    price = transaction.price_per_share
    return AdjustedTransactionValues(
        original_shares=transaction.shares,
        adjusted_shares=transaction.shares * ratio,
        original_price=price,
        adjusted_price=price / ratio if ratio != 0 else price,
        split_ratio=ratio,
    )
