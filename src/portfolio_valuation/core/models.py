"""Data models for the portfolio valuation engine."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_FLOOR, Decimal
from enum import Enum
from typing import Optional

from .markets import StockMarket, currency_for_market, detect_market, uses_floor_rounding


class TransactionType(str, Enum):
    BUY = "buy"
    SELL = "sell"
    SPLIT = "split"
    ADJUSTMENT = "adjustment"


class CurrencyTransactionType(str, Enum):
    EXCHANGE_BUY = "exchange_buy"
    EXCHANGE_SELL = "exchange_sell"
    INITIAL_BALANCE = "initial_balance"
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    INTEREST = "interest"
    SPEND = "spend"
    OTHER_INCOME = "other_income"
    OTHER_EXPENSE = "other_expense"


class CashFlowSource(str, Enum):
    STOCK_TRANSACTION = "stock_transaction"
    CURRENCY_LEDGER = "currency_ledger"


@dataclass
class Portfolio:
    id: str
    user_id: str = ""
    name: str = ""
    base_currency: str = "USD"
    home_currency: str = "TWD"
    bound_currency_ledger_id: Optional[str] = None


@dataclass
class StockTransaction:
    """A single buy/sell/split/adjustment row.

    For SPLIT rows the split ratio is carried in ``shares``.
    """
    ticker: str
    transaction_type: TransactionType
    shares: Decimal
    price_per_share: Decimal
    transaction_date: date
    fees: Decimal = Decimal("0")
    exchange_rate: Optional[Decimal] = None
    market: Optional[StockMarket] = None
    currency: Optional[str] = None
    portfolio_id: str = ""
    id: str = ""
    currency_ledger_id: Optional[str] = None
    notes: str = ""
    is_deleted: bool = False
    created_at: Optional[datetime] = None

    def __post_init__(self):
        self.ticker = self.ticker.strip().upper()
        if self.market is None:
            self.market = detect_market(self.ticker)
        if self.currency is None:
            self.currency = currency_for_market(self.market)

    @property
    def uses_floor_rounding(self) -> bool:
        """Keyed on the ticker pattern, not the recorded market."""
        return uses_floor_rounding(detect_market(self.ticker))

    @property
    def subtotal(self) -> Decimal:
        """shares × price, truncated to a whole unit for Taiwan-pattern tickers."""
        value = self.shares * self.price_per_share
        if self.uses_floor_rounding:
            value = value.to_integral_value(rounding=ROUND_FLOOR)
        return value

    @property
    def total_cost_source(self) -> Decimal:
        return self.subtotal + self.fees

    @property
    def total_cost_home(self) -> Optional[Decimal]:
        if self.exchange_rate is None:
            return None
        return self.total_cost_source * self.exchange_rate

    @property
    def has_exchange_rate(self) -> bool:
        return self.exchange_rate is not None

    @property
    def sort_key(self) -> tuple:
        return (self.transaction_date, self.created_at or datetime.min)


@dataclass(frozen=True)
class StockSplit:
    symbol: str
    market: StockMarket
    split_date: date
    split_ratio: Decimal  # share multiplier: 1-to-4 is 4, 2-into-1 is 0.5
    description: str = ""


@dataclass(frozen=True)
class AdjustedTransactionValues:
    original_shares: Decimal
    adjusted_shares: Decimal
    original_price: Decimal
    adjusted_price: Decimal
    split_ratio: Decimal

    @property
    def has_split_adjustment(self) -> bool:
        return self.split_ratio != Decimal("1")


@dataclass(frozen=True)
class Position:
    """Derived holding state for one ticker. Never persisted."""
    ticker: str
    total_shares: Decimal = Decimal("0")
    total_cost_home: Decimal = Decimal("0")
    total_cost_source: Decimal = Decimal("0")
    average_cost_per_share_home: Decimal = Decimal("0")
    average_cost_per_share_source: Decimal = Decimal("0")


@dataclass(frozen=True)
class UnrealizedPnl:
    current_value_home: Decimal
    unrealized_pnl_home: Decimal
    unrealized_pnl_percentage: Decimal


@dataclass
class CurrencyLedger:
    id: str
    currency_code: str
    user_id: str = ""
    name: str = ""
    home_currency: str = "TWD"
    is_active: bool = True


@dataclass
class CurrencyTransaction:
    ledger_id: str
    transaction_date: date
    transaction_type: CurrencyTransactionType
    foreign_amount: Decimal
    home_amount: Optional[Decimal] = None
    exchange_rate: Optional[Decimal] = None
    related_stock_transaction_id: Optional[str] = None
    notes: str = ""
    id: str = ""
    is_deleted: bool = False
    created_at: Optional[datetime] = None

    @property
    def home_cost(self) -> Decimal:
        """Home-currency value of the foreign amount, as recorded."""
        if self.home_amount is not None:
            return self.home_amount
        if self.exchange_rate is not None:
            return self.foreign_amount * self.exchange_rate
        return Decimal("0")

    @property
    def sort_key(self) -> tuple:
        return (self.transaction_date, self.created_at or datetime.min)


@dataclass(frozen=True)
class LedgerSummary:
    balance: Decimal
    total_cost: Decimal
    average_cost: Decimal
    realized_pnl: Decimal


@dataclass(frozen=True)
class CashFlow:
    """XIRR input. Negative = money invested, positive = money returned."""
    amount: Decimal
    date: date


@dataclass(frozen=True)
class ReturnCashFlow:
    """Modified Dietz input. Positive = contribution into the portfolio."""
    date: date
    amount: Decimal


@dataclass(frozen=True)
class ValuationSnapshot:
    """Portfolio value immediately before and after an external cash flow."""
    date: date
    value_before: Decimal
    value_after: Decimal


@dataclass(frozen=True)
class CashFlowEvent:
    """External cash flow for return calculation.

    The amount is signed from the investor's side: investment negative,
    withdrawal positive.
    """
    portfolio_id: str
    source_id: str
    transaction_date: date
    amount: Decimal
    currency_code: str
    source: CashFlowSource

    def as_return_cash_flow(self) -> ReturnCashFlow:
        return ReturnCashFlow(date=self.transaction_date, amount=-self.amount)

    def as_xirr_cash_flow(self) -> CashFlow:
        return CashFlow(amount=self.amount, date=self.transaction_date)


@dataclass(frozen=True)
class CurrentPrice:
    """Latest price in the ticker's own currency plus the rate to home currency."""
    price: Decimal
    exchange_rate: Decimal = Decimal("1")


@dataclass(frozen=True)
class MissingExchangeRate:
    transaction_date: date
    currency: str


@dataclass
class XirrResult:
    xirr: Optional[float]
    cash_flow_count: int
    as_of: date
    earliest_transaction_date: Optional[date] = None
    missing_exchange_rates: list[MissingExchangeRate] = field(default_factory=list)

    @property
    def xirr_percentage(self) -> Optional[float]:
        if self.xirr is None:
            return None
        return self.xirr * 100
