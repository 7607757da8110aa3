"""Money-weighted and time-weighted period returns.

All functions are pure — they accept values and cash flows and return
Decimal fractions (Decimal("0.125") means +12.5%). None means the return
is undefined for the inputs, never zero.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from ..models import ReturnCashFlow, ValuationSnapshot


def calculate_modified_dietz(
    start_value: Decimal,
    end_value: Decimal,
    period_start: date,
    period_end: date,
    cash_flows: Iterable[ReturnCashFlow],
) -> Optional[Decimal]:
    """Modified Dietz return over [period_start, period_end].

    Formula: (End - Start - ΣCF) / (Start + Σ(CF × W))
    where W = (TotalDays - DaysSinceStart) / TotalDays.

    Args:
        start_value: Portfolio value at the start of the period.
        end_value: Portfolio value at the end of the period.
        period_start: First day of the period.
        period_end: Last day of the period.
        cash_flows: External flows; positive = contribution, negative =
            withdrawal. Flows dated outside the period are ignored.

    Returns:
        The period return, or None when the period has no length or the
        weighted capital base is not positive.
    """
    total_days = (period_end - period_start).days
    if total_days <= 0:
        return None

    total_flow = Decimal("0")
    weighted_flow = Decimal("0")
    for cf in cash_flows:
        if cf.date < period_start or cf.date > period_end:
            continue
        days_since_start = (cf.date - period_start).days
        weight = Decimal(total_days - days_since_start) / Decimal(total_days)
        total_flow += cf.amount
        weighted_flow += cf.amount * weight

    denominator = start_value + weighted_flow
    if denominator <= 0:
        return None
    return (end_value - start_value - total_flow) / denominator


def calculate_time_weighted_return(
    start_value: Decimal,
    end_value: Decimal,
    snapshots: Iterable[ValuationSnapshot],
) -> Optional[Decimal]:
    """Time-Weighted Return chained across external cash-flow events.

    Each sub-period runs from the previous event's value_after (start_value
    for the first) to the next event's value_before; the last one ends at
    end_value. Sub-periods starting from a non-positive value are skipped.

    Returns:
        Π(1 + R_i) - 1, or None when no sub-period could be measured.
    """
    ordered = [
        s for _, s in sorted(enumerate(snapshots), key=lambda pair: (pair[1].date, pair[0]))
    ]

    factor = Decimal("1")
    running_start = start_value
    measured = False

    for snapshot in ordered:
        if running_start > 0:
            factor *= snapshot.value_before / running_start
            measured = True
        running_start = snapshot.value_after

    if running_start > 0:
        factor *= end_value / running_start
        measured = True

    return factor - 1 if measured else None


def annualize_return(period_return: Decimal, days: int) -> Optional[Decimal]:
    """Convert a cumulative period return to an annual rate (365-day year).

    Returns None for non-positive day counts or a total loss beyond -100%.
    """
    if days <= 0 or period_return <= -1:
        return None
    growth = float(1 + period_return) ** (365.0 / days)
    return Decimal(str(growth)) - 1
