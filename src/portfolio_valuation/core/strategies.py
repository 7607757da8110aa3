"""Sources of external cash flows for return calculation.

By default a portfolio's buys and sells are its external cash flows. When
the user funds the portfolio through a separate currency ledger, the
ledger's deposits and withdrawals are the external flows instead, and
buys/sells become internal moves between cash and securities.
"""

from datetime import date
from decimal import Decimal
from typing import Optional, Protocol, Sequence

from .models import (
    CashFlowEvent,
    CashFlowSource,
    CurrencyLedger,
    CurrencyTransaction,
    CurrencyTransactionType,
    Portfolio,
    StockTransaction,
    TransactionType,
)

T = CurrencyTransactionType

DEFAULT_TOP_UP_NOTE_PREFIX = "補足買入"

# Ledger transactions that show a genuinely separate funding ledger.
FUNDING_MARKERS = frozenset({T.INITIAL_BALANCE, T.DEPOSIT, T.WITHDRAW})

# Investor-side sign per ledger type: money put in is negative.
_LEDGER_SIGN = {
    T.INITIAL_BALANCE: Decimal("-1"),
    T.DEPOSIT: Decimal("-1"),
    T.OTHER_INCOME: Decimal("-1"),
    T.EXCHANGE_BUY: Decimal("-1"),
    T.WITHDRAW: Decimal("1"),
    T.OTHER_EXPENSE: Decimal("1"),
    T.EXCHANGE_SELL: Decimal("1"),
}


class CashFlowStrategy(Protocol):
    name: str

    def is_applicable(
        self,
        portfolio: Portfolio,
        stock_transactions: Sequence[StockTransaction],
        ledgers: Sequence[CurrencyLedger],
    ) -> bool: ...

    def get_cash_flow_events(
        self,
        portfolio: Portfolio,
        from_date: date,
        to_date: date,
        stock_transactions: Sequence[StockTransaction],
        ledgers: Sequence[CurrencyLedger],
        currency_transactions: Sequence[CurrencyTransaction],
    ) -> list[CashFlowEvent]: ...


def _has_trading_activity(portfolio: Portfolio, stock_transactions: Sequence[StockTransaction]) -> bool:
    return any(
        t.portfolio_id == portfolio.id
        and not t.is_deleted
        and t.transaction_type in (TransactionType.BUY, TransactionType.SELL)
        for t in stock_transactions
    )


class StockTransactionCashFlowStrategy:
    """Buys are investments (negative), sells are withdrawals (positive)."""

    name = "stock_transaction"

    def is_applicable(self, portfolio, stock_transactions, ledgers) -> bool:
        return True

    def get_cash_flow_events(
        self,
        portfolio: Portfolio,
        from_date: date,
        to_date: date,
        stock_transactions: Sequence[StockTransaction],
        ledgers: Sequence[CurrencyLedger] = (),
        currency_transactions: Sequence[CurrencyTransaction] = (),
    ) -> list[CashFlowEvent]:
        selected = sorted(
            (
                t for t in stock_transactions
                if t.portfolio_id == portfolio.id
                and not t.is_deleted
                and from_date <= t.transaction_date <= to_date
                and t.transaction_type in (TransactionType.BUY, TransactionType.SELL)
            ),
            key=lambda t: t.sort_key,
        )
        events = []
        for t in selected:
            if t.transaction_type == TransactionType.BUY:
                amount = -t.total_cost_source
            else:
                amount = t.shares * t.price_per_share - t.fees
            events.append(CashFlowEvent(
                portfolio_id=t.portfolio_id,
                source_id=t.id,
                transaction_date=t.transaction_date,
                amount=amount,
                currency_code=t.currency,
                source=CashFlowSource.STOCK_TRANSACTION,
            ))
        return events


class CurrencyLedgerCashFlowStrategy:
    """Explicit external flows on the portfolio's bound currency ledger.

    Ledger rows linked to a stock transaction are internal (cash moving
    into or out of securities) unless they are a top-up, recognized by the
    notes prefix. Exchanges count as external only on a ledger that is not
    in the home currency.
    """

    name = "currency_ledger"

    def __init__(self, top_up_note_prefix: str = DEFAULT_TOP_UP_NOTE_PREFIX):
        self.top_up_note_prefix = top_up_note_prefix

    def _bound_ledger(self, portfolio: Portfolio, ledgers: Sequence[CurrencyLedger]):
        for ledger in ledgers:
            if ledger.id == portfolio.bound_currency_ledger_id:
                return ledger
        return None

    def is_applicable(self, portfolio, stock_transactions, ledgers) -> bool:
        ledger = self._bound_ledger(portfolio, ledgers)
        if ledger is None or not ledger.is_active:
            return False
        if portfolio.user_id and ledger.user_id and ledger.user_id != portfolio.user_id:
            return False
        return _has_trading_activity(portfolio, stock_transactions)

    def _is_top_up(self, tx: CurrencyTransaction) -> bool:
        return bool(tx.notes) and tx.notes.lower().startswith(self.top_up_note_prefix.lower())

    def _is_external(self, tx: CurrencyTransaction, home_ledger: bool) -> bool:
        kind = tx.transaction_type
        if tx.related_stock_transaction_id is not None and not self._is_top_up(tx):
            if kind in (T.SPEND, T.OTHER_INCOME, T.EXCHANGE_BUY, T.EXCHANGE_SELL):
                return False
        if kind in (T.EXCHANGE_BUY, T.EXCHANGE_SELL):
            return not home_ledger
        return kind in _LEDGER_SIGN

    def get_cash_flow_events(
        self,
        portfolio: Portfolio,
        from_date: date,
        to_date: date,
        stock_transactions: Sequence[StockTransaction],
        ledgers: Sequence[CurrencyLedger],
        currency_transactions: Sequence[CurrencyTransaction],
    ) -> list[CashFlowEvent]:
        ledger = self._bound_ledger(portfolio, ledgers)
        currency = ledger.currency_code if ledger else portfolio.base_currency
        home_ledger = currency.upper() == portfolio.home_currency.upper()

        selected = sorted(
            (
                t for t in currency_transactions
                if t.ledger_id == portfolio.bound_currency_ledger_id
                and not t.is_deleted
                and from_date <= t.transaction_date <= to_date
                and self._is_external(t, home_ledger)
            ),
            key=lambda t: t.sort_key,
        )
        return [
            CashFlowEvent(
                portfolio_id=portfolio.id,
                source_id=t.id,
                transaction_date=t.transaction_date,
                amount=_LEDGER_SIGN[t.transaction_type] * t.foreign_amount,
                currency_code=currency,
                source=CashFlowSource.CURRENCY_LEDGER,
            )
            for t in selected
        ]


def select_cash_flow_strategy(
    portfolio: Portfolio,
    stock_transactions: Sequence[StockTransaction],
    ledgers: Sequence[CurrencyLedger],
    currency_transactions: Sequence[CurrencyTransaction],
    ledger_strategy: Optional[CashFlowStrategy] = None,
    stock_strategy: Optional[CashFlowStrategy] = None,
) -> CashFlowStrategy:
    """Pick the cash-flow source for a portfolio.

    The ledger strategy wins only when the bound ledger carries real
    funding activity (an initial balance, deposit or withdrawal) and is
    applicable; otherwise buys and sells are used.
    """
    ledger_strategy = ledger_strategy or CurrencyLedgerCashFlowStrategy()
    stock_strategy = stock_strategy or StockTransactionCashFlowStrategy()

    has_funding = any(
        t.ledger_id == portfolio.bound_currency_ledger_id
        and not t.is_deleted
        and t.transaction_type in FUNDING_MARKERS
        for t in currency_transactions
    )
    if has_funding and ledger_strategy.is_applicable(portfolio, stock_transactions, ledgers):
        return ledger_strategy
    return stock_strategy
