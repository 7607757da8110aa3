"""Tests for core.finance.cash_flows — XIRR inputs built from transactions."""

from datetime import date
from decimal import Decimal

import pytest

from portfolio_valuation.core.finance import (
    build_portfolio_cash_flows,
    build_position_cash_flows,
    calculate_portfolio_xirr,
    calculate_position_xirr,
    resolve_exchange_rate,
)
from portfolio_valuation.core.markets import StockMarket
from portfolio_valuation.core.models import (
    CurrentPrice,
    MissingExchangeRate,
    StockSplit,
    StockTransaction,
    TransactionType,
)

BUY_DAY = date(2023, 1, 1)
AS_OF = date(2024, 1, 1)


def _tx(ticker, kind, shares, price, day=BUY_DAY, fees=0, rate=None, **kwargs):
    return StockTransaction(
        ticker=ticker,
        transaction_type=TransactionType(kind),
        shares=Decimal(str(shares)),
        price_per_share=Decimal(str(price)),
        transaction_date=day,
        fees=Decimal(str(fees)),
        exchange_rate=Decimal(str(rate)) if rate is not None else None,
        **kwargs,
    )


def _price(price, rate=1):
    return CurrentPrice(price=Decimal(str(price)), exchange_rate=Decimal(str(rate)))


class TestResolveExchangeRate:
    def test_recorded_rate_wins(self):
        assert resolve_exchange_rate(_tx("AAPL", "buy", 1, 1, rate=30), "TWD") == Decimal("30")

    def test_home_currency_trade(self):
        assert resolve_exchange_rate(_tx("2330", "buy", 1, 1), "TWD") == Decimal("1")

    def test_lookup_used_for_foreign_trade(self):
        calls = []

        def lookup(from_ccy, to_ccy, on_date):
            calls.append((from_ccy, to_ccy, on_date))
            return Decimal("30.5")

        assert resolve_exchange_rate(_tx("AAPL", "buy", 1, 1), "TWD", lookup) == Decimal("30.5")
        assert calls == [("USD", "TWD", BUY_DAY)]

    def test_unresolved(self):
        assert resolve_exchange_rate(_tx("AAPL", "buy", 1, 1), "TWD") is None


class TestPortfolioCashFlows:
    def test_buy_and_terminal_value(self):
        txs = [_tx("AAPL", "buy", 10, 100, fees=1, rate=30)]
        flows, missing = build_portfolio_cash_flows(txs, [], {"AAPL": _price(120, 31)}, AS_OF, "TWD")
        assert [(f.amount, f.date) for f in flows] == [
            (Decimal("-30030"), BUY_DAY),
            (Decimal("37200"), AS_OF),
        ]
        assert missing == []

    def test_sell_is_inflow_net_of_fees(self):
        txs = [
            _tx("AAPL", "buy", 10, 100, rate=30),
            _tx("AAPL", "sell", 10, 120, day=date(2023, 6, 1), fees=1, rate=31),
        ]
        flows, _ = build_portfolio_cash_flows(txs, [], {"AAPL": _price(150, 31)}, AS_OF, "TWD")
        assert [f.amount for f in flows] == [Decimal("-30000"), Decimal("37169")]

    def test_terminal_value_uses_split_adjusted_shares(self):
        txs = [_tx("NVDA", "buy", 10, 400, rate=1)]
        splits = [StockSplit("NVDA", StockMarket.US, date(2023, 6, 1), Decimal("4"))]
        flows, _ = build_portfolio_cash_flows(txs, splits, {"nvda": _price(120)}, AS_OF, "USD")
        assert flows[-1].amount == Decimal("4800")

    def test_position_without_price_adds_no_value(self):
        txs = [_tx("AAPL", "buy", 10, 100, rate=30)]
        flows, _ = build_portfolio_cash_flows(txs, [], {}, AS_OF, "TWD")
        assert len(flows) == 1

    def test_missing_rate_reported_and_skipped(self):
        txs = [
            _tx("AAPL", "buy", 10, 100),
            _tx("2330", "buy", 1000, 500),
        ]
        flows, missing = build_portfolio_cash_flows(txs, [], {}, AS_OF, "TWD")
        assert [f.amount for f in flows] == [Decimal("-500000")]
        assert missing == [MissingExchangeRate(BUY_DAY, "USD")]

    def test_lookup_fills_missing_rate(self):
        txs = [_tx("AAPL", "buy", 10, 100)]
        flows, missing = build_portfolio_cash_flows(
            txs, [], {}, AS_OF, "TWD", lambda f, t, d: Decimal("30")
        )
        assert flows[0].amount == Decimal("-30000")
        assert missing == []

    def test_deleted_and_split_rows_ignored(self):
        txs = [
            _tx("AAPL", "buy", 10, 100, rate=30),
            _tx("AAPL", "buy", 10, 100, rate=30, is_deleted=True),
            _tx("AAPL", "split", 2, 0, day=date(2023, 6, 1)),
        ]
        flows, _ = build_portfolio_cash_flows(txs, [], {}, AS_OF, "TWD")
        assert [f.amount for f in flows] == [Decimal("-30000")]


class TestPositionCashFlows:
    def test_only_requested_ticker(self):
        txs = [
            _tx("AAPL", "buy", 10, 100, rate=30),
            _tx("MSFT", "buy", 5, 300, rate=30),
        ]
        flows, _ = build_position_cash_flows("aapl", txs, [], _price(120, 30), AS_OF, "TWD")
        assert [f.amount for f in flows] == [Decimal("-30000"), Decimal("36000")]

    def test_closed_position_has_no_terminal_value(self):
        txs = [
            _tx("AAPL", "buy", 10, 100, rate=30),
            _tx("AAPL", "sell", 10, 120, day=date(2023, 6, 1), rate=30),
        ]
        flows, _ = build_position_cash_flows("AAPL", txs, [], _price(150, 30), AS_OF, "TWD")
        assert len(flows) == 2


class TestXirrUseCases:
    def test_portfolio_xirr(self):
        txs = [_tx("AAPL", "buy", 10, 100, fees=1, rate=30)]
        result = calculate_portfolio_xirr(txs, [], {"AAPL": _price(120, 31)}, AS_OF, "TWD")
        assert result.cash_flow_count == 2
        assert result.as_of == AS_OF
        assert result.earliest_transaction_date == BUY_DAY
        assert result.xirr == pytest.approx(37200 / 30030 - 1, abs=1e-6)

    def test_portfolio_xirr_reports_missing_rates(self):
        txs = [_tx("AAPL", "buy", 10, 100)]
        result = calculate_portfolio_xirr(txs, [], {"AAPL": _price(120, 31)}, AS_OF, "TWD")
        assert result.xirr is None
        assert result.missing_exchange_rates == [MissingExchangeRate(BUY_DAY, "USD")]

    def test_position_xirr(self):
        txs = [
            _tx("AAPL", "buy", 10, 100, rate=1),
            _tx("MSFT", "buy", 1, 100, rate=1),
        ]
        result = calculate_position_xirr("AAPL", txs, [], _price(110), AS_OF, "USD")
        assert result.cash_flow_count == 2
        assert result.xirr == pytest.approx(0.1, abs=1e-6)

    def test_position_xirr_without_history(self):
        result = calculate_position_xirr("TSLA", [], [], _price(200), AS_OF, "USD")
        assert result.xirr is None
        assert result.cash_flow_count == 0
        assert result.earliest_transaction_date is None
