"""XIRR: annualized internal rate of return for irregularly dated cash flows.

Newton-Raphson converges quickly for ordinary histories but can diverge
for extreme patterns (same-day round trips, very short holding periods).
When it fails, a bracketing bisection is used instead.
"""

import math
from typing import Iterable, Optional

from ..models import CashFlow

MIN_RATE = -0.999
MAX_RATE = 1_000_000.0
INITIAL_GUESS = 0.1
NPV_EPSILON = 1e-7
DERIVATIVE_EPSILON = 1e-10


def _discount(rate: float, years: float) -> float:
    """(1 + rate) ** -years, saturating to inf instead of raising."""
    try:
        return math.exp(-years * math.log1p(rate))
    except OverflowError:
        return math.inf


def _npv(amounts: list[float], years: list[float], rate: float) -> float:
    return sum(a * _discount(rate, t) if a else 0.0 for a, t in zip(amounts, years))


def _npv_derivative(amounts: list[float], years: list[float], rate: float) -> float:
    return sum(-t * a * _discount(rate, t + 1) if a and t else 0.0 for a, t in zip(amounts, years))


def _same_sign(a: float, b: float) -> bool:
    return (a > 0 and b > 0) or (a < 0 and b < 0)


def _bisection(amounts: list[float], years: list[float], max_iterations: int = 100) -> Optional[float]:
    low = MIN_RATE
    high = 10.0

    npv_low = _npv(amounts, years, low)
    npv_high = _npv(amounts, years, high)
    if math.isnan(npv_low) or math.isnan(npv_high):
        return None

    if abs(npv_low) < NPV_EPSILON:
        return round(low, 6)
    if abs(npv_high) < NPV_EPSILON:
        return round(high, 6)

    # Very short holding periods annualize to huge rates: widen the bracket.
    while _same_sign(npv_low, npv_high) and high < MAX_RATE:
        high = min(MAX_RATE, high * 10)
        npv_high = _npv(amounts, years, high)
        if abs(npv_high) < NPV_EPSILON:
            return round(high, 6)

    if math.isnan(npv_high) or _same_sign(npv_low, npv_high):
        return None

    for _ in range(max_iterations):
        mid = (low + high) / 2
        npv_mid = _npv(amounts, years, mid)
        if abs(npv_mid) < NPV_EPSILON:
            return round(mid, 6)
        if _same_sign(npv_low, npv_mid):
            low, npv_low = mid, npv_mid
        else:
            high, npv_high = mid, npv_mid

    return round((low + high) / 2, 6)


def calculate_xirr(
    cash_flows: Iterable[CashFlow],
    max_iterations: int = 100,
    tolerance: float = 1e-7,
) -> Optional[float]:
    """Solve for the annual rate r such that Σ amount / (1 + r)^(days/365) = 0.

    Args:
        cash_flows: Dated amounts. Negative = invested, positive = returned.
        max_iterations: Newton-Raphson (and bisection) iteration cap.
        tolerance: Convergence threshold on successive rate estimates.

    Returns:
        The rate as a fraction rounded to 6 decimals (0.1 means 10% p.a.),
        or None when fewer than two flows are given, the flows do not
        contain both signs, or no rate brackets a sign change.
    """
    flows = sorted(cash_flows, key=lambda cf: cf.date)
    if len(flows) < 2:
        return None
    if not any(cf.amount > 0 for cf in flows) or not any(cf.amount < 0 for cf in flows):
        return None

    first = flows[0].date
    years = [(cf.date - first).days / 365.0 for cf in flows]
    amounts = [float(cf.amount) for cf in flows]

    rate = INITIAL_GUESS
    for _ in range(max_iterations):
        npv = _npv(amounts, years, rate)
        derivative = _npv_derivative(amounts, years, rate)
        if math.isnan(npv) or math.isnan(derivative):
            break

        if abs(derivative) < DERIVATIVE_EPSILON:
            rate += 0.1
            continue

        new_rate = rate - npv / derivative
        if abs(new_rate - rate) < tolerance:
            return round(new_rate, 6)

        if math.isnan(new_rate) or math.isinf(new_rate):
            break

        rate = min(max(new_rate, MIN_RATE), MAX_RATE)

    return _bisection(amounts, years, max_iterations)
