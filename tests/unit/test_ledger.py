"""Tests for CurrencyLedgerCalculator."""

from datetime import date
from decimal import Decimal

import pytest

from portfolio_valuation.core.ledger import CurrencyLedgerCalculator
from portfolio_valuation.core.models import CurrencyTransaction, CurrencyTransactionType


def _ctx(kind, amount, day, home=None, rate=None, **kwargs):
    return CurrencyTransaction(
        ledger_id="usd",
        transaction_date=day,
        transaction_type=CurrencyTransactionType(kind),
        foreign_amount=Decimal(str(amount)),
        home_amount=Decimal(str(home)) if home is not None else None,
        exchange_rate=Decimal(str(rate)) if rate is not None else None,
        **kwargs,
    )


D1 = date(2024, 1, 1)
D2 = date(2024, 2, 1)
D3 = date(2024, 3, 1)
D4 = date(2024, 4, 1)


class TestBalanceAndCost:
    def test_initial_balance_then_spend(self):
        txs = [
            _ctx("initial_balance", 1000, D1, home=30000),
            _ctx("spend", 200, D2),
        ]
        s = CurrencyLedgerCalculator.summarize(txs)
        assert s.balance == Decimal("800")
        assert s.total_cost == Decimal("24000.00")
        assert s.average_cost == Decimal("30")
        assert s.realized_pnl == Decimal("0")

    def test_exchange_buys_blend_average(self):
        txs = [
            _ctx("exchange_buy", 1000, D1, home=30000),
            _ctx("exchange_buy", 1000, D2, home=32000),
        ]
        assert CurrencyLedgerCalculator.calculate_average_cost(txs) == Decimal("31")
        assert CurrencyLedgerCalculator.calculate_total_cost(txs) == Decimal("62000")

    def test_interest_adds_units_at_zero_cost(self):
        txs = [
            _ctx("exchange_buy", 1000, D1, home=30000),
            _ctx("interest", 100, D2),
        ]
        assert CurrencyLedgerCalculator.calculate_balance(txs) == Decimal("1100")
        assert CurrencyLedgerCalculator.calculate_total_cost(txs) == Decimal("30000")
        assert CurrencyLedgerCalculator.calculate_average_cost(txs) == Decimal("27.272727")

    def test_deposit_cost_from_rate(self):
        txs = [_ctx("deposit", 500, D1, rate=31)]
        assert CurrencyLedgerCalculator.calculate_total_cost(txs) == Decimal("15500")

    def test_withdraw_and_expense_are_outflows(self):
        txs = [
            _ctx("exchange_buy", 1000, D1, home=30000),
            _ctx("withdraw", 100, D2),
            _ctx("other_expense", 100, D3),
        ]
        s = CurrencyLedgerCalculator.summarize(txs)
        assert s.balance == Decimal("800")
        assert s.average_cost == Decimal("30")

    def test_overspend_clamps_to_zero(self):
        txs = [
            _ctx("exchange_buy", 100, D1, home=3000),
            _ctx("spend", 150, D2),
        ]
        s = CurrencyLedgerCalculator.summarize(txs)
        assert s.balance == Decimal("0")
        assert s.total_cost == Decimal("0")
        assert s.average_cost == Decimal("0")

    def test_spend_from_empty_ledger_is_noop(self):
        assert CurrencyLedgerCalculator.calculate_balance([_ctx("spend", 50, D1)]) == Decimal("0")

    def test_deleted_ignored(self):
        txs = [
            _ctx("exchange_buy", 1000, D1, home=30000),
            _ctx("spend", 500, D2, is_deleted=True),
        ]
        assert CurrencyLedgerCalculator.calculate_balance(txs) == Decimal("1000")

    def test_history_sorted_before_folding(self):
        txs = [
            _ctx("spend", 200, D2),
            _ctx("initial_balance", 1000, D1, home=30000),
        ]
        assert CurrencyLedgerCalculator.calculate_balance(txs) == Decimal("800")

    def test_as_of_cutoff(self):
        txs = [
            _ctx("exchange_buy", 1000, D1, home=30000),
            _ctx("exchange_buy", 1000, D3, home=34000),
        ]
        assert CurrencyLedgerCalculator.calculate_balance(txs, as_of=D2) == Decimal("1000")
        assert CurrencyLedgerCalculator.calculate_average_cost(txs, as_of=D2) == Decimal("30")
        assert CurrencyLedgerCalculator.calculate_average_cost(txs) == Decimal("32")

    def test_empty_ledger(self):
        s = CurrencyLedgerCalculator.summarize([])
        assert s.balance == Decimal("0")
        assert s.average_cost == Decimal("0")


class TestRealizedPnl:
    def test_exchange_sell_gain(self):
        txs = [
            _ctx("exchange_buy", 1000, D1, home=30000),
            _ctx("exchange_sell", 500, D2, home=16000),
        ]
        assert CurrencyLedgerCalculator.calculate_realized_pnl(txs) == Decimal("1000.00")
        assert CurrencyLedgerCalculator.calculate_total_cost(txs) == Decimal("15000")

    def test_exchange_sell_loss_from_rate(self):
        txs = [
            _ctx("exchange_buy", 1000, D1, home=30000),
            _ctx("exchange_sell", 1000, D2, rate=29),
        ]
        assert CurrencyLedgerCalculator.calculate_realized_pnl(txs) == Decimal("-1000")

    def test_spend_realizes_nothing(self):
        txs = [
            _ctx("exchange_buy", 1000, D1, home=30000),
            _ctx("spend", 500, D2),
        ]
        assert CurrencyLedgerCalculator.calculate_realized_pnl(txs) == Decimal("0")


class TestValidateSpend:
    def test_within_balance(self):
        txs = [_ctx("exchange_buy", 1000, D1, home=30000)]
        assert CurrencyLedgerCalculator.validate_spend(txs, Decimal("1000"))

    def test_beyond_balance(self):
        txs = [_ctx("exchange_buy", 1000, D1, home=30000)]
        assert not CurrencyLedgerCalculator.validate_spend(txs, Decimal("1000.01"))


class TestExchangeRateForPurchase:
    def test_single_exchange(self):
        txs = [_ctx("exchange_buy", 100, D1, home=3000)]
        rate = CurrencyLedgerCalculator.calculate_exchange_rate_for_purchase(txs, D2, Decimal("50"))
        assert rate == Decimal("30")

    def test_newest_income_drawn_first(self):
        txs = [
            _ctx("exchange_buy", 1000, D1, home=30000),
            _ctx("exchange_buy", 1000, D2, home=32000),
        ]
        rate = CurrencyLedgerCalculator.calculate_exchange_rate_for_purchase(txs, D3, Decimal("800"))
        assert rate == Decimal("32")

    def test_spills_into_older_tranche(self):
        txs = [
            _ctx("exchange_buy", 1000, D1, home=30000),
            _ctx("exchange_buy", 1000, D2, home=32000),
        ]
        rate = CurrencyLedgerCalculator.calculate_exchange_rate_for_purchase(txs, D3, Decimal("1200"))
        # (32000 + 200 × 30) / 1200
        assert rate == Decimal("31.666667")

    def test_earlier_expenses_consume_oldest_income(self):
        txs = [
            _ctx("exchange_buy", 1000, D1, home=30000),
            _ctx("exchange_buy", 500, D2, home=16000),
            _ctx("spend", 1000, D3),
        ]
        # Only the second tranche is left
        rate = CurrencyLedgerCalculator.calculate_exchange_rate_for_purchase(txs, D4, Decimal("500"))
        assert rate == Decimal("32")

    def test_same_day_expense_not_subtracted(self):
        txs = [
            _ctx("exchange_buy", 1000, D1, home=30000),
            _ctx("spend", 1000, D2),
        ]
        rate = CurrencyLedgerCalculator.calculate_exchange_rate_for_purchase(txs, D2, Decimal("500"))
        assert rate == Decimal("30")

    def test_interest_reduces_amount_without_cost(self):
        txs = [
            _ctx("exchange_buy", 1000, D1, home=30000),
            _ctx("interest", 100, D2),
        ]
        rate = CurrencyLedgerCalculator.calculate_exchange_rate_for_purchase(txs, D3, Decimal("300"))
        assert rate == Decimal("30")

    def test_only_costless_income_drawn(self):
        txs = [
            _ctx("exchange_buy", 1000, D1, home=30000),
            _ctx("interest", 100, D2),
        ]
        rate = CurrencyLedgerCalculator.calculate_exchange_rate_for_purchase(txs, D3, Decimal("50"))
        assert rate == Decimal("0")

    def test_deposit_not_traced(self):
        txs = [
            _ctx("exchange_buy", 100, date(2024, 1, 1), home=3000),
            _ctx("deposit", 100, date(2024, 2, 1), home=3100),
        ]
        rate = CurrencyLedgerCalculator.calculate_exchange_rate_for_purchase(
            txs, date(2024, 3, 1), Decimal("100")
        )
        assert rate == Decimal("30")

    def test_other_income_drawn_before_older_exchange_deposit_skipped(self):
        txs = [
            _ctx("exchange_buy", 100, D1, home=3000),
            _ctx("deposit", 100, D2, home=3100),
            _ctx("other_income", 50, D3),
        ]
        # 50 from other income at no cost, remaining 50 from the exchange
        rate = CurrencyLedgerCalculator.calculate_exchange_rate_for_purchase(txs, D4, Decimal("100"))
        assert rate == Decimal("30")

    def test_only_deposits_imputes_zero(self):
        txs = [_ctx("deposit", 100, D1, home=3100)]
        assert CurrencyLedgerCalculator.calculate_exchange_rate_for_purchase(txs, D2, Decimal("50")) == Decimal("0")

    def test_future_income_not_used(self):
        txs = [
            _ctx("exchange_buy", 1000, D1, home=30000),
            _ctx("exchange_buy", 1000, D3, home=34000),
        ]
        rate = CurrencyLedgerCalculator.calculate_exchange_rate_for_purchase(txs, D2, Decimal("100"))
        assert rate == Decimal("30")

    @pytest.mark.parametrize("txs", [[], [_ctx("spend", 10, D1)]])
    def test_nothing_to_draw(self, txs):
        assert CurrencyLedgerCalculator.calculate_exchange_rate_for_purchase(txs, D2, Decimal("10")) == Decimal("0")
