"""Load an immutable input snapshot (transactions, splits, ledgers) from JSON.

The calculators never read files themselves; the CLI loads one snapshot
and hands the lists to them.

Layout::

    {
      "portfolios": [{"id": "p1", "home_currency": "TWD", "bound_currency_ledger_id": "l1"}],
      "stock_transactions": [{"id": "t1", "portfolio_id": "p1", "ticker": "AAPL",
                              "type": "buy", "shares": "10", "price": "100",
                              "fees": "1", "exchange_rate": "30", "date": "2024-01-02"}],
      "splits": [{"symbol": "AAPL", "market": "US", "date": "2024-06-10", "ratio": "4"}],
      "ledgers": [{"id": "l1", "currency_code": "USD"}],
      "currency_transactions": [{"id": "c1", "ledger_id": "l1", "type": "exchange_buy",
                                 "foreign_amount": "1000", "home_amount": "30000",
                                 "date": "2024-01-01"}],
      "prices": {"AAPL": {"price": "180", "exchange_rate": "31"}},
      "valuation": {"start_value": "...", "end_value": "...", "period_start": "...",
                    "period_end": "...", "snapshots": [...]}
    }

Amounts are strings (or numbers) parsed as Decimal.
"""

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional

from ..core.config import get_config
from ..core.exceptions import SnapshotLoadError
from ..core.markets import StockMarket
from ..core.models import (
    CurrencyLedger,
    CurrencyTransaction,
    CurrencyTransactionType,
    CurrentPrice,
    Portfolio,
    StockSplit,
    StockTransaction,
    TransactionType,
    ValuationSnapshot,
)


@dataclass
class ValuationPeriod:
    start_value: Decimal
    end_value: Decimal
    period_start: date
    period_end: date
    snapshots: list[ValuationSnapshot] = field(default_factory=list)


@dataclass
class Snapshot:
    portfolios: list[Portfolio] = field(default_factory=list)
    stock_transactions: list[StockTransaction] = field(default_factory=list)
    splits: list[StockSplit] = field(default_factory=list)
    ledgers: list[CurrencyLedger] = field(default_factory=list)
    currency_transactions: list[CurrencyTransaction] = field(default_factory=list)
    prices: dict[str, CurrentPrice] = field(default_factory=dict)
    valuation: Optional[ValuationPeriod] = None

    def portfolio(self, portfolio_id: str) -> Optional[Portfolio]:
        return next((p for p in self.portfolios if p.id == portfolio_id), None)

    def transactions_for(self, portfolio_id: str) -> list[StockTransaction]:
        return [t for t in self.stock_transactions if t.portfolio_id == portfolio_id]

    def ledger_transactions(self, ledger_id: str) -> list[CurrencyTransaction]:
        return [t for t in self.currency_transactions if t.ledger_id == ledger_id]


def _dec(value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise SnapshotLoadError(f"Invalid number: {value!r}")


def _opt_dec(value: Any) -> Optional[Decimal]:
    return None if value is None else _dec(value)


def _date(value: Any) -> date:
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise SnapshotLoadError(f"Invalid date: {value!r}. Use YYYY-MM-DD")


def _opt_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        raise SnapshotLoadError(f"Invalid timestamp: {value!r}")


def _stock_transaction(row: dict) -> StockTransaction:
    market = row.get("market")
    return StockTransaction(
        id=str(row.get("id", "")),
        portfolio_id=str(row.get("portfolio_id", "")),
        ticker=row["ticker"],
        transaction_type=TransactionType(row["type"]),
        shares=_dec(row["shares"]),
        price_per_share=_dec(row.get("price", "0")),
        fees=_dec(row.get("fees", "0")),
        exchange_rate=_opt_dec(row.get("exchange_rate")),
        transaction_date=_date(row["date"]),
        market=StockMarket(market) if market else None,
        currency=row.get("currency"),
        currency_ledger_id=row.get("currency_ledger_id"),
        notes=row.get("notes", ""),
        is_deleted=bool(row.get("is_deleted", False)),
        created_at=_opt_datetime(row.get("created_at")),
    )


def _currency_transaction(row: dict) -> CurrencyTransaction:
    return CurrencyTransaction(
        id=str(row.get("id", "")),
        ledger_id=str(row["ledger_id"]),
        transaction_date=_date(row["date"]),
        transaction_type=CurrencyTransactionType(row["type"]),
        foreign_amount=_dec(row["foreign_amount"]),
        home_amount=_opt_dec(row.get("home_amount")),
        exchange_rate=_opt_dec(row.get("exchange_rate")),
        related_stock_transaction_id=row.get("related_stock_transaction_id"),
        notes=row.get("notes", ""),
        is_deleted=bool(row.get("is_deleted", False)),
        created_at=_opt_datetime(row.get("created_at")),
    )


def _valuation(row: dict) -> ValuationPeriod:
    return ValuationPeriod(
        start_value=_dec(row["start_value"]),
        end_value=_dec(row["end_value"]),
        period_start=_date(row["period_start"]),
        period_end=_date(row["period_end"]),
        snapshots=[
            ValuationSnapshot(
                date=_date(s["date"]),
                value_before=_dec(s["value_before"]),
                value_after=_dec(s["value_after"]),
            )
            for s in row.get("snapshots", [])
        ],
    )


def parse_snapshot(data: dict) -> Snapshot:
    """Build a Snapshot from a decoded JSON document.

    Portfolios and ledgers without a home currency, and portfolios without
    a base currency, take the configured defaults.
    """
    cfg = get_config()
    try:
        return Snapshot(
            portfolios=[
                Portfolio(
                    id=str(p["id"]),
                    user_id=str(p.get("user_id", "")),
                    name=p.get("name", ""),
                    base_currency=p.get("base_currency", cfg.default_foreign_currency),
                    home_currency=p.get("home_currency", cfg.home_currency),
                    bound_currency_ledger_id=p.get("bound_currency_ledger_id"),
                )
                for p in data.get("portfolios", [])
            ],
            stock_transactions=[_stock_transaction(r) for r in data.get("stock_transactions", [])],
            splits=[
                StockSplit(
                    symbol=s["symbol"].upper(),
                    market=StockMarket(s["market"]),
                    split_date=_date(s["date"]),
                    split_ratio=_dec(s["ratio"]),
                    description=s.get("description", ""),
                )
                for s in data.get("splits", [])
            ],
            ledgers=[
                CurrencyLedger(
                    id=str(l["id"]),
                    currency_code=l["currency_code"],
                    user_id=str(l.get("user_id", "")),
                    name=l.get("name", ""),
                    home_currency=l.get("home_currency", cfg.home_currency),
                    is_active=bool(l.get("is_active", True)),
                )
                for l in data.get("ledgers", [])
            ],
            currency_transactions=[_currency_transaction(r) for r in data.get("currency_transactions", [])],
            prices={
                ticker.upper(): CurrentPrice(
                    price=_dec(p["price"]),
                    exchange_rate=_dec(p.get("exchange_rate", "1")),
                )
                for ticker, p in data.get("prices", {}).items()
            },
            valuation=_valuation(data["valuation"]) if data.get("valuation") else None,
        )
    except KeyError as e:
        raise SnapshotLoadError(f"Missing field: {e.args[0]}")
    except ValueError as e:
        raise SnapshotLoadError(str(e))
    except (TypeError, AttributeError) as e:
        raise SnapshotLoadError(f"Malformed snapshot: {e}")


def load_snapshot(path: Path) -> Snapshot:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        raise SnapshotLoadError(f"Cannot read {path}: {e}")
    except json.JSONDecodeError as e:
        raise SnapshotLoadError(f"Invalid JSON in {path}: {e}")
    if not isinstance(data, dict):
        raise SnapshotLoadError("Snapshot must be a JSON object")
    return parse_snapshot(data)
