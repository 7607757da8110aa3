"""Build XIRR cash flows from transaction history and current valuations.

Buys are outflows and sells are inflows, both in home currency. The
current market value of what is still held is appended as a final inflow
dated ``as_of``. Transactions whose exchange rate cannot be resolved are
left out and reported back to the caller.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, Mapping, Optional

from ..calculator import PortfolioCalculator
from ..models import (
    CashFlow,
    CurrentPrice,
    MissingExchangeRate,
    StockSplit,
    StockTransaction,
    TransactionType,
    XirrResult,
)
from .xirr import calculate_xirr

logger = logging.getLogger(__name__)

# (from_currency, to_currency, on_date) -> rate, or None when unknown.
HistoricalRateLookup = Callable[[str, str, date], Optional[Decimal]]


def resolve_exchange_rate(
    tx: StockTransaction,
    home_currency: str,
    rate_lookup: Optional[HistoricalRateLookup] = None,
) -> Optional[Decimal]:
    """Rate to home currency for one transaction.

    1. the rate recorded on the transaction
    2. 1.0 when the transaction trades in home currency
    3. the historical rate on the transaction date, if a lookup is given
    """
    if tx.exchange_rate is not None:
        return tx.exchange_rate
    if tx.currency.upper() == home_currency.upper():
        return Decimal("1")
    if rate_lookup is None:
        return None
    return rate_lookup(tx.currency, home_currency, tx.transaction_date)


def _transaction_flows(
    transactions: list[StockTransaction],
    home_currency: str,
    rate_lookup: Optional[HistoricalRateLookup],
) -> tuple[list[CashFlow], list[MissingExchangeRate]]:
    flows: list[CashFlow] = []
    missing: list[MissingExchangeRate] = []

    for tx in transactions:
        if tx.transaction_type not in (TransactionType.BUY, TransactionType.SELL):
            continue
        rate = resolve_exchange_rate(tx, home_currency, rate_lookup)
        if rate is None:
            missing.append(MissingExchangeRate(tx.transaction_date, tx.currency))
            logger.warning(
                "Missing exchange rate for transaction %s (%s) on %s",
                tx.id, tx.ticker, tx.transaction_date.isoformat(),
            )
            continue
        if tx.transaction_type == TransactionType.BUY:
            flows.append(CashFlow(-tx.total_cost_source * rate, tx.transaction_date))
        else:
            proceeds = (tx.shares * tx.price_per_share - tx.fees) * rate
            flows.append(CashFlow(proceeds, tx.transaction_date))

    return flows, missing


def _live_sorted(transactions: Iterable[StockTransaction]) -> list[StockTransaction]:
    return sorted((t for t in transactions if not t.is_deleted), key=lambda t: t.sort_key)


def build_portfolio_cash_flows(
    transactions: Iterable[StockTransaction],
    splits: Iterable[StockSplit],
    current_prices: Mapping[str, CurrentPrice],
    as_of: date,
    home_currency: str,
    rate_lookup: Optional[HistoricalRateLookup] = None,
) -> tuple[list[CashFlow], list[MissingExchangeRate]]:
    """Cash flows for the whole portfolio, ending with today's market value."""
    live = _live_sorted(transactions)
    flows, missing = _transaction_flows(live, home_currency, rate_lookup)

    prices = {k.upper(): v for k, v in current_prices.items()}
    positions = PortfolioCalculator.recalculate_all_positions_with_split_adjustments(live, list(splits))
    current_value = Decimal("0")
    for position in positions:
        quote = prices.get(position.ticker)
        if quote is None:
            logger.debug("No current price for position %s", position.ticker)
            continue
        current_value += position.total_shares * quote.price * quote.exchange_rate

    if current_value > 0:
        flows.append(CashFlow(current_value, as_of))
    return flows, missing


def build_position_cash_flows(
    ticker: str,
    transactions: Iterable[StockTransaction],
    splits: Iterable[StockSplit],
    current_price: Optional[CurrentPrice],
    as_of: date,
    home_currency: str,
    rate_lookup: Optional[HistoricalRateLookup] = None,
) -> tuple[list[CashFlow], list[MissingExchangeRate]]:
    """Cash flows for a single ticker, ending with its market value."""
    ticker = ticker.upper()
    live = [t for t in _live_sorted(transactions) if t.ticker == ticker]
    flows, missing = _transaction_flows(live, home_currency, rate_lookup)

    if current_price is not None:
        position = PortfolioCalculator.calculate_position_with_split_adjustments(ticker, live, splits)
        if position.total_shares > 0:
            value = position.total_shares * current_price.price * current_price.exchange_rate
            flows.append(CashFlow(value, as_of))
    return flows, missing


def calculate_portfolio_xirr(
    transactions: Iterable[StockTransaction],
    splits: Iterable[StockSplit],
    current_prices: Mapping[str, CurrentPrice],
    as_of: date,
    home_currency: str,
    rate_lookup: Optional[HistoricalRateLookup] = None,
    max_iterations: int = 100,
    tolerance: float = 1e-7,
) -> XirrResult:
    live = _live_sorted(transactions)
    flows, missing = build_portfolio_cash_flows(
        live, splits, current_prices, as_of, home_currency, rate_lookup
    )
    logger.debug("XIRR: %d cash flows", len(flows))
    return XirrResult(
        xirr=calculate_xirr(flows, max_iterations, tolerance),
        cash_flow_count=len(flows),
        as_of=as_of,
        earliest_transaction_date=live[0].transaction_date if live else None,
        missing_exchange_rates=missing,
    )


def calculate_position_xirr(
    ticker: str,
    transactions: Iterable[StockTransaction],
    splits: Iterable[StockSplit],
    current_price: Optional[CurrentPrice],
    as_of: date,
    home_currency: str,
    rate_lookup: Optional[HistoricalRateLookup] = None,
    max_iterations: int = 100,
    tolerance: float = 1e-7,
) -> XirrResult:
    ticker = ticker.upper()
    live = [t for t in _live_sorted(transactions) if t.ticker == ticker]
    if not live:
        return XirrResult(xirr=None, cash_flow_count=0, as_of=as_of)

    flows, missing = build_position_cash_flows(
        ticker, live, splits, current_price, as_of, home_currency, rate_lookup
    )
    return XirrResult(
        xirr=calculate_xirr(flows, max_iterations, tolerance),
        cash_flow_count=len(flows),
        as_of=as_of,
        earliest_transaction_date=live[0].transaction_date,
        missing_exchange_rates=missing,
    )
