"""Portfolio return calculations.

Pure functions for XIRR, Modified Dietz and time-weighted returns.
No database access or I/O.

Usage:
    from portfolio_valuation.core.finance import calculate_xirr, calculate_modified_dietz
"""

from .cash_flows import (
    build_portfolio_cash_flows,
    build_position_cash_flows,
    calculate_portfolio_xirr,
    calculate_position_xirr,
    resolve_exchange_rate,
)
from .returns import (
    annualize_return,
    calculate_modified_dietz,
    calculate_time_weighted_return,
)
from .xirr import calculate_xirr

__all__ = [
    "calculate_xirr",
    "calculate_modified_dietz",
    "calculate_time_weighted_return",
    "annualize_return",
    "resolve_exchange_rate",
    "build_portfolio_cash_flows",
    "build_position_cash_flows",
    "calculate_portfolio_xirr",
    "calculate_position_xirr",
]
