"""Position and profit/loss calculator (moving average cost)."""

from decimal import Decimal
from typing import Callable, Iterable, Optional

from .exceptions import InvalidTransactionError
from .models import Position, StockSplit, StockTransaction, TransactionType, UnrealizedPnl
from .splits import adjusted_values

ZERO = Decimal("0")


def _ordered_for_ticker(ticker: str, transactions: Iterable[StockTransaction]) -> list[StockTransaction]:
    ticker = ticker.upper()
    return sorted(
        (t for t in transactions if t.ticker == ticker and not t.is_deleted),
        key=lambda t: t.sort_key,
    )


def _home_cost(tx: StockTransaction) -> Decimal:
    # No exchange rate recorded: the trade was settled in home currency.
    home = tx.total_cost_home
    return home if home is not None else tx.total_cost_source


def _fold_position(
    ticker: str,
    transactions: list[StockTransaction],
    shares_of: Callable[[StockTransaction], Decimal],
) -> Position:
    shares = ZERO
    cost_home = ZERO
    cost_source = ZERO

    for tx in transactions:
        qty = shares_of(tx)
        if tx.transaction_type in (TransactionType.BUY, TransactionType.ADJUSTMENT):
            shares += qty
            cost_home += _home_cost(tx)
            cost_source += tx.total_cost_source
        elif tx.transaction_type == TransactionType.SELL:
            if shares > 0:
                avg_home = cost_home / shares
                avg_source = cost_source / shares
                cost_home -= qty * avg_home
                cost_source -= qty * avg_source
                shares -= qty
        elif tx.transaction_type == TransactionType.SPLIT:
            # Manual split: the ratio sits in the shares column, cost unchanged.
            shares *= tx.shares

        shares = max(shares, ZERO)
        cost_home = max(cost_home, ZERO)
        cost_source = max(cost_source, ZERO)

    return Position(
        ticker=ticker,
        total_shares=shares,
        total_cost_home=cost_home,
        total_cost_source=cost_source,
        average_cost_per_share_home=cost_home / shares if shares > 0 else ZERO,
        average_cost_per_share_source=cost_source / shares if shares > 0 else ZERO,
    )


def _distinct_tickers(transactions: list[StockTransaction]) -> list[str]:
    seen: dict[str, None] = {}
    for t in transactions:
        seen.setdefault(t.ticker, None)
    return list(seen)


class PortfolioCalculator:
    """Replays transaction history into positions and computes PnL.

    Positions are always rebuilt from the full history; nothing is cached.
    """

    @staticmethod
    def calculate_position(ticker: str, transactions: Iterable[StockTransaction]) -> Position:
        """Moving-average-cost position for ``ticker`` from raw transaction values."""
        ordered = _ordered_for_ticker(ticker, transactions)
        return _fold_position(ticker.upper(), ordered, lambda tx: tx.shares)

    @staticmethod
    def calculate_position_with_split_adjustments(
        ticker: str,
        transactions: Iterable[StockTransaction],
        splits: Iterable[StockSplit],
    ) -> Position:
        """Same fold as calculate_position, using split-adjusted share counts.

        Total cost is unaffected by a split, so only share quantities change.
        """
        split_list = list(splits)
        ordered = _ordered_for_ticker(ticker, transactions)
        return _fold_position(
            ticker.upper(),
            ordered,
            lambda tx: adjusted_values(tx, split_list).adjusted_shares,
        )

    @staticmethod
    def recalculate_all_positions(transactions: Iterable[StockTransaction]) -> list[Position]:
        live = [t for t in transactions if not t.is_deleted]
        return [
            PortfolioCalculator.calculate_position(ticker, live)
            for ticker in _distinct_tickers(live)
        ]

    @staticmethod
    def recalculate_all_positions_with_split_adjustments(
        transactions: Iterable[StockTransaction],
        splits: Iterable[StockSplit],
    ) -> list[Position]:
        live = [t for t in transactions if not t.is_deleted]
        split_list = list(splits)
        return [
            PortfolioCalculator.calculate_position_with_split_adjustments(ticker, live, split_list)
            for ticker in _distinct_tickers(live)
        ]

    @staticmethod
    def calculate_unrealized_pnl(
        position: Position,
        current_price: Decimal,
        exchange_rate: Decimal,
    ) -> UnrealizedPnl:
        if position.total_shares == 0:
            return UnrealizedPnl(ZERO, ZERO, ZERO)

        value_home = position.total_shares * current_price * exchange_rate
        pnl = value_home - position.total_cost_home
        pct = pnl / position.total_cost_home * 100 if position.total_cost_home > 0 else ZERO
        return UnrealizedPnl(
            current_value_home=value_home,
            unrealized_pnl_home=pnl,
            unrealized_pnl_percentage=pct,
        )

    @staticmethod
    def calculate_realized_pnl(
        position_before_sell: Position,
        sell_transaction: StockTransaction,
        exchange_rate: Optional[Decimal] = None,
    ) -> Decimal:
        """Realized gain in home currency for one sell, by average cost.

        ``exchange_rate`` overrides the rate stored on the transaction; when
        neither is present the sale is taken to be in home currency.
        """
        if sell_transaction.transaction_type != TransactionType.SELL:
            raise InvalidTransactionError(
                f"Transaction must be a sell transaction, got {sell_transaction.transaction_type.value}"
            )

        rate = exchange_rate if exchange_rate is not None else sell_transaction.exchange_rate
        if rate is None:
            rate = Decimal("1")

        cost_basis = sell_transaction.shares * position_before_sell.average_cost_per_share_home
        proceeds = (sell_transaction.subtotal - sell_transaction.fees) * rate
        return proceeds - cost_basis
