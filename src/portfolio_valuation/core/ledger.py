"""Foreign-currency ledger calculations (moving average cost).

A ledger holds a balance of one foreign currency. Every unit shares one
blended home-currency cost; exchanges in add cost, spending removes cost
at the current average, and interest adds units at zero cost.
"""

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from .models import CurrencyTransaction, CurrencyTransactionType, LedgerSummary

ZERO = Decimal("0")

T = CurrencyTransactionType

# Units in, with an exchange cost.
COST_BEARING_INCOME = frozenset({T.EXCHANGE_BUY, T.INITIAL_BALANCE})
# Units in, without an exchange cost.
COSTLESS_INCOME = frozenset({T.INTEREST, T.OTHER_INCOME})
# Units out, at current average cost.
OUTFLOWS = frozenset({T.EXCHANGE_SELL, T.SPEND, T.OTHER_EXPENSE, T.WITHDRAW})

# Income that can fund a later purchase, for rate imputation.
FUNDING_INCOME = COST_BEARING_INCOME | COSTLESS_INCOME


def _q(value: Decimal, places: str) -> Decimal:
    return value.quantize(Decimal(places), rounding=ROUND_HALF_UP)


def _live_ordered(
    transactions: Iterable[CurrencyTransaction],
    as_of: Optional[date] = None,
) -> list[CurrencyTransaction]:
    return sorted(
        (
            t for t in transactions
            if not t.is_deleted and (as_of is None or t.transaction_date <= as_of)
        ),
        key=lambda t: t.sort_key,
    )


@dataclass
class _LedgerState:
    balance: Decimal = ZERO
    total_cost: Decimal = ZERO
    realized_pnl: Decimal = ZERO

    @property
    def average_cost(self) -> Decimal:
        return self.total_cost / self.balance if self.balance > 0 else ZERO

    def apply(self, tx: CurrencyTransaction) -> None:
        kind = tx.transaction_type
        amount = tx.foreign_amount

        if kind in COST_BEARING_INCOME or kind == T.DEPOSIT:
            self.balance += amount
            self.total_cost += tx.home_cost
        elif kind in COSTLESS_INCOME:
            self.balance += amount
        elif kind in OUTFLOWS:
            if self.balance > 0:
                cost_basis = self.average_cost * amount
                if kind == T.EXCHANGE_SELL:
                    self.realized_pnl += tx.home_cost - cost_basis
                self.total_cost -= cost_basis
                self.balance -= amount

        self.balance = max(self.balance, ZERO)
        self.total_cost = max(self.total_cost, ZERO)


def _fold(
    transactions: Iterable[CurrencyTransaction],
    as_of: Optional[date] = None,
) -> _LedgerState:
    state = _LedgerState()
    for tx in _live_ordered(transactions, as_of):
        state.apply(tx)
    return state


class CurrencyLedgerCalculator:
    """Balance, cost basis and realized PnL of a currency ledger.

    Every method accepts an optional ``as_of`` date; only transactions on
    or before it are folded in.
    """

    @staticmethod
    def calculate_balance(
        transactions: Iterable[CurrencyTransaction],
        as_of: Optional[date] = None,
    ) -> Decimal:
        return _fold(transactions, as_of).balance

    @staticmethod
    def calculate_total_cost(
        transactions: Iterable[CurrencyTransaction],
        as_of: Optional[date] = None,
    ) -> Decimal:
        return _q(_fold(transactions, as_of).total_cost, "0.01")

    @staticmethod
    def calculate_average_cost(
        transactions: Iterable[CurrencyTransaction],
        as_of: Optional[date] = None,
    ) -> Decimal:
        """Home-currency cost per foreign unit, 6 decimals. 0 for an empty balance."""
        state = _fold(transactions, as_of)
        if state.balance <= 0:
            return ZERO
        return _q(state.average_cost, "0.000001")

    @staticmethod
    def calculate_realized_pnl(
        transactions: Iterable[CurrencyTransaction],
        as_of: Optional[date] = None,
    ) -> Decimal:
        """Accumulated gain on EXCHANGE_SELL: home proceeds minus average cost."""
        return _q(_fold(transactions, as_of).realized_pnl, "0.01")

    @staticmethod
    def summarize(
        transactions: Iterable[CurrencyTransaction],
        as_of: Optional[date] = None,
    ) -> LedgerSummary:
        state = _fold(transactions, as_of)
        return LedgerSummary(
            balance=state.balance,
            total_cost=_q(state.total_cost, "0.01"),
            average_cost=_q(state.average_cost, "0.000001"),
            realized_pnl=_q(state.realized_pnl, "0.01"),
        )

    @staticmethod
    def validate_spend(transactions: Iterable[CurrencyTransaction], amount: Decimal) -> bool:
        return CurrencyLedgerCalculator.calculate_balance(transactions) >= amount

    @staticmethod
    def calculate_exchange_rate_for_purchase(
        transactions: Iterable[CurrencyTransaction],
        purchase_date: date,
        purchase_amount: Decimal,
    ) -> Decimal:
        """Impute the home/foreign rate that funded a purchase, LIFO.

        Expenses dated before the purchase are assumed to have consumed the
        oldest income first. The purchase then draws on what is left,
        newest income first. Only units drawn from exchanges (EXCHANGE_BUY,
        INITIAL_BALANCE) carry an exchange cost; units drawn from interest
        or other income reduce the amount still to fund at no cost. Deposits
        are not traced.

        Returns:
            Weighted home cost ÷ weighted foreign amount over exchange-sourced
            portions, 6 decimals; 0 when nothing exchange-sourced was drawn.
        """
        live = _live_ordered(transactions, as_of=purchase_date)

        income = [t for t in live if t.transaction_type in FUNDING_INCOME]
        total_expenses = sum(
            (
                t.foreign_amount for t in live
                if t.transaction_type in OUTFLOWS and t.transaction_date < purchase_date
            ),
            ZERO,
        )

        # Oldest income absorbs earlier expenses first.
        remaining: list[tuple[CurrencyTransaction, Decimal]] = []
        to_absorb = total_expenses
        for tx in income:
            consumed = min(tx.foreign_amount, to_absorb)
            to_absorb -= consumed
            remaining.append((tx, tx.foreign_amount - consumed))

        weighted_cost = ZERO
        weighted_amount = ZERO
        to_fund = purchase_amount
        for tx, available in reversed(remaining):
            if to_fund <= 0:
                break
            if available <= 0:
                continue
            drawn = min(available, to_fund)
            to_fund -= drawn
            if tx.transaction_type in COST_BEARING_INCOME:
                weighted_cost += tx.home_cost * (drawn / tx.foreign_amount)
                weighted_amount += drawn

        if weighted_amount <= 0:
            return ZERO
        return _q(weighted_cost / weighted_amount, "0.000001")
