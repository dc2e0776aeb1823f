"""
Cash-flow analytics against a flat yield or a discount curve.

A discounting model is either an InterestRate (flat yield, discounting from
settlement) or any curve exposing ``df(dates)``; curve discount factors are
taken settlement-forward, D(T)/D(settle). Flows paid on or before the
settlement date, and coupons trading ex-coupon, are excluded.
"""
from __future__ import annotations

import numpy as np
import pandas as pd
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from .cashflows import CashFlow, Schedule, as_schedule
from .config import ACCURACY, MAX_ITERATIONS, YIELD_GUESS, Z_SPREAD_GUESS, DURATION_BUMP
from .errors import InvalidScheduleError
from .rates import Compounding, InterestRate
from .solver import solve
from .utils import DayCounter, as_day_counter, yearfrac

BASIS_POINT = 1.0e-4


class DurationType(Enum):
    MACAULAY = "macaulay"
    MODIFIED = "modified"
    EFFECTIVE = "effective"


def live_flows(schedule: Schedule, settle: pd.Timestamp) -> List[CashFlow]:
    """
    Flows still owed to a buyer settling on ``settle``.

    A flow trading ex-coupon stays only when it also repays principal; its
    coupon part is dropped by the amount helpers.
    """
    settle = pd.Timestamp(settle)
    return [
        cf
        for cf in as_schedule(schedule)
        if not cf.has_occurred(settle) and (cf.principal != 0.0 or not cf.trading_ex_coupon(settle))
    ]


def _amounts(flows: Sequence[CashFlow], settle: pd.Timestamp) -> np.ndarray:
    return np.array([cf.amount_owed(settle) for cf in flows], dtype=float)


def _times(flows: Sequence[CashFlow], day_counter: DayCounter, settle: pd.Timestamp) -> np.ndarray:
    return np.array([day_counter.year_fraction(settle, cf.date) for cf in flows], dtype=float)


def _owes_coupon(cf: CashFlow, settle: pd.Timestamp) -> bool:
    return cf.is_coupon and cf.nominal is not None and not cf.trading_ex_coupon(settle)


def _annuity_weights(flows: Sequence[CashFlow], settle: pd.Timestamp) -> np.ndarray:
    return np.array(
        [cf.nominal * cf.accrual_period() if _owes_coupon(cf, settle) else 0.0 for cf in flows],
        dtype=float,
    )


def discount_factors(flows: Sequence[CashFlow], discount, settle: pd.Timestamp) -> np.ndarray:
    settle = pd.Timestamp(settle)
    if len(flows) == 0:
        return np.empty(0, dtype=float)

    if isinstance(discount, InterestRate):
        t = _times(flows, discount.day_counter, settle)
        return np.asarray(discount.discount_factor(t), dtype=float)

    dfs = np.asarray(discount.df([cf.date for cf in flows]), dtype=float)
    df_settle = float(discount.df([settle])[0])
    return dfs / df_settle


# ---------- Flat-rate pricing kernels ----------
# a: amounts, w: fixed weights (1 for a yield, curve DFs for a z-spread), t: times

def _price(a: np.ndarray, w: np.ndarray, t: np.ndarray, rate: InterestRate) -> float:
    return float(np.sum(a * w * rate.discount_factor(t)))


def _price_derivative(a, w, t, rate: InterestRate) -> Optional[float]:
    B = rate.discount_factor(t)
    r, f = rate.rate, float(rate.frequency)

    if rate.compounding is Compounding.SIMPLE:
        dB = -t * B * B
    elif rate.compounding is Compounding.COMPOUNDED:
        dB = -t * B / (1.0 + r / f)
    elif rate.compounding is Compounding.CONTINUOUS:
        dB = -t * B
    else:
        return None
    return float(np.sum(a * w * dB))


def _price_second_derivative(a, w, t, rate: InterestRate) -> Optional[float]:
    B = rate.discount_factor(t)
    r, f = rate.rate, float(rate.frequency)

    if rate.compounding is Compounding.SIMPLE:
        d2B = 2.0 * t * t * B ** 3
    elif rate.compounding is Compounding.COMPOUNDED:
        d2B = t * (t + 1.0 / f) * B / (1.0 + r / f) ** 2
    elif rate.compounding is Compounding.CONTINUOUS:
        d2B = t * t * B
    else:
        return None
    return float(np.sum(a * w * d2B))


def _bumped_prices(a, w, t, rate: InterestRate, h: float) -> Tuple[float, float]:
    return _price(a, w, t, rate.with_rate(rate.rate + h)), _price(a, w, t, rate.with_rate(rate.rate - h))


def _residual_scale(target_npv: float) -> float:
    """Divisor that makes an NPV residual relative to the target (floored at 1)."""
    return max(1.0, abs(float(target_npv)))


def _rate_lower_bound(compounding: Compounding, frequency: int, t: np.ndarray) -> Optional[float]:
    """Smallest rate keeping every compound factor positive."""
    eps = 1e-8
    if compounding in (Compounding.COMPOUNDED, Compounding.SIMPLE_THEN_COMPOUNDED):
        return -float(frequency) + eps
    if compounding is Compounding.SIMPLE:
        t_max = float(np.max(t)) if len(t) else 0.0
        return -1.0 / t_max + eps if t_max > 0.0 else None
    return None


# ---------- Curve / yield analytics ----------

def npv(schedule: Schedule, discount, settle: pd.Timestamp) -> float:
    flows = live_flows(schedule, settle)
    return float(np.sum(_amounts(flows, settle) * discount_factors(flows, discount, settle)))


def bps(schedule: Schedule, discount, settle: pd.Timestamp) -> float:
    """NPV change of the coupons for a one-basis-point change in their rate."""
    flows = live_flows(schedule, settle)
    return float(np.sum(_annuity_weights(flows, settle) * discount_factors(flows, discount, settle))) * BASIS_POINT


def atm_rate(schedule: Schedule, curve, settle: pd.Timestamp, target_npv: Optional[float] = None) -> float:
    """Coupon rate that makes the schedule worth target_npv (its own NPV if None)."""
    flows = live_flows(schedule, settle)
    dfs = discount_factors(flows, curve, settle)
    annuity = float(np.sum(_annuity_weights(flows, settle) * dfs))

    coupon_pv = float(np.sum([cf.coupon_amount * df for cf, df in zip(flows, dfs) if _owes_coupon(cf, settle)]))
    total = float(np.sum(_amounts(flows, settle) * dfs))
    non_coupon_pv = total - coupon_pv

    target = total if target_npv is None else float(target_npv)
    target -= non_coupon_pv
    if target == 0.0:
        return 0.0
    if annuity == 0.0:
        raise ValueError("No coupon annuity to solve an ATM rate against.")
    return target / annuity


def solve_yield(
    schedule: Schedule,
    target_npv: float,
    day_counter: DayCounter,
    compounding: Compounding,
    frequency: int,
    settle: pd.Timestamp,
    accuracy: float = ACCURACY,
    max_iterations: int = MAX_ITERATIONS,
    guess: float = YIELD_GUESS,
) -> float:
    """Flat yield that discounts the remaining flows to target_npv."""
    flows = live_flows(schedule, settle)
    if not flows:
        raise ValueError("No remaining cash flows after settlement.")

    template = InterestRate(guess, day_counter, compounding, frequency)
    a = _amounts(flows, settle)
    w = np.ones_like(a)
    t = _times(flows, template.day_counter, settle)

    scale = _residual_scale(target_npv)

    def objective(y: float) -> float:
        return (_price(a, w, t, template.with_rate(y)) - target_npv) / scale

    derivative = None
    if _price_derivative(a, w, t, template) is not None:
        def derivative(y: float) -> float:
            return _price_derivative(a, w, t, template.with_rate(y)) / scale

    return solve(
        objective,
        guess,
        accuracy=accuracy,
        max_iterations=max_iterations,
        derivative=derivative,
        lower=_rate_lower_bound(compounding, frequency, t),
    )


def duration(
    schedule: Schedule,
    rate: InterestRate,
    settle: pd.Timestamp,
    duration_type: DurationType = DurationType.MODIFIED,
) -> float:
    """
    MACAULAY: sum(t * PV) / P.
    MODIFIED: -dP/dy / P, analytic except for simple-then-compounded rates.
    EFFECTIVE: -dP/dy / P from a symmetric yield bump.
    """
    flows = live_flows(schedule, settle)
    if not flows:
        return 0.0

    a = _amounts(flows, settle)
    w = np.ones_like(a)
    t = _times(flows, rate.day_counter, settle)
    P = _price(a, w, t, rate)
    if P == 0.0:
        return 0.0

    if duration_type is DurationType.MACAULAY:
        return float(np.sum(t * a * rate.discount_factor(t))) / P

    dPdy = None
    if duration_type is DurationType.MODIFIED:
        dPdy = _price_derivative(a, w, t, rate)
    if dPdy is None:
        up, down = _bumped_prices(a, w, t, rate, DURATION_BUMP)
        dPdy = (up - down) / (2.0 * DURATION_BUMP)
    return -dPdy / P


def convexity(schedule: Schedule, rate: InterestRate, settle: pd.Timestamp) -> float:
    """d2P/dy2 / P."""
    flows = live_flows(schedule, settle)
    if not flows:
        return 0.0

    a = _amounts(flows, settle)
    w = np.ones_like(a)
    t = _times(flows, rate.day_counter, settle)
    P = _price(a, w, t, rate)
    if P == 0.0:
        return 0.0

    d2P = _price_second_derivative(a, w, t, rate)
    if d2P is None:
        up, down = _bumped_prices(a, w, t, rate, DURATION_BUMP)
        d2P = (up - 2.0 * P + down) / DURATION_BUMP ** 2
    return d2P / P


def basis_point_value(schedule: Schedule, rate: InterestRate, settle: pd.Timestamp) -> float:
    """
    Second-order NPV change for a +1bp yield move.

    Convexity enters the gamma term as the plain second derivative ratio,
    without the extra division by 100 some price-quoted conventions apply.
    """
    P = npv(schedule, rate, settle)
    mod = duration(schedule, rate, settle, DurationType.MODIFIED)
    conv = convexity(schedule, rate, settle)
    return -mod * P * BASIS_POINT + 0.5 * conv * P * BASIS_POINT ** 2


def yield_value_basis_point(schedule: Schedule, rate: InterestRate, settle: pd.Timestamp) -> float:
    """Yield move produced by a 0.01 change in NPV (first order)."""
    P = npv(schedule, rate, settle)
    mod = duration(schedule, rate, settle, DurationType.MODIFIED)
    return 0.01 / (-P * mod)


def z_spread_npv(
    schedule: Schedule,
    curve,
    spread: float,
    day_counter: DayCounter,
    compounding: Compounding,
    frequency: int,
    settle: pd.Timestamp,
) -> float:
    """NPV with each curve DF scaled by the spread's own discount factor from settlement."""
    flows = live_flows(schedule, settle)
    rate = InterestRate(spread, day_counter, compounding, frequency)
    a = _amounts(flows, settle)
    w = discount_factors(flows, curve, settle)
    t = _times(flows, rate.day_counter, settle)
    return _price(a, w, t, rate)


def z_spread(
    schedule: Schedule,
    curve,
    target_npv: float,
    day_counter: DayCounter,
    compounding: Compounding,
    frequency: int,
    settle: pd.Timestamp,
    accuracy: float = ACCURACY,
    max_iterations: int = MAX_ITERATIONS,
    guess: float = Z_SPREAD_GUESS,
) -> float:
    """Constant spread over the curve that reprices the flows to target_npv."""
    flows = live_flows(schedule, settle)
    if not flows:
        raise ValueError("No remaining cash flows after settlement.")

    template = InterestRate(guess, day_counter, compounding, frequency)
    a = _amounts(flows, settle)
    w = discount_factors(flows, curve, settle)
    t = _times(flows, template.day_counter, settle)

    scale = _residual_scale(target_npv)

    def objective(s: float) -> float:
        return (_price(a, w, t, template.with_rate(s)) - target_npv) / scale

    derivative = None
    if _price_derivative(a, w, t, template) is not None:
        def derivative(s: float) -> float:
            return _price_derivative(a, w, t, template.with_rate(s)) / scale

    return solve(
        objective,
        guess,
        accuracy=accuracy,
        max_iterations=max_iterations,
        derivative=derivative,
        lower=_rate_lower_bound(compounding, frequency, t),
    )


def weighted_average_life(
    today: pd.Timestamp,
    amounts: Sequence[float],
    schedule: Sequence[pd.Timestamp],
) -> pd.Timestamp:
    """
    Principal-weighted average repayment date.

    Only repayments after today count; weights use ACT/365F year fractions
    and the result is rounded down to the day.
    """
    if len(amounts) != len(schedule):
        raise InvalidScheduleError("Amount list is incompatible with schedule")

    today = pd.Timestamp(today)
    dates = [pd.Timestamp(d) for d in schedule]
    a = np.array(amounts, dtype=float)
    live = np.array([d > today for d in dates], dtype=bool)

    total = float(np.sum(a[live]))
    if total == 0.0:
        return today

    years = np.array([yearfrac(today, d, "ACT/365F") if alive else 0.0 for d, alive in zip(dates, live)])
    wal_years = float(np.sum(a[live] / total * years[live]))

    # round first so a whole number of days does not floor to the day before
    days = int(np.floor(round(wal_years * 365.0, 9)))
    return today.normalize() + pd.Timedelta(days=days)
