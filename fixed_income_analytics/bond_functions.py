"""
Bond-level analytics.

Each function resolves the settlement date (explicit ``settle``, else the
bond's settlement rule applied to ``val_date``, else to today), checks that
the bond is tradable there, and converts between per-100 bond quantities
and the currency amounts of the cash-flow analytics:

    dirty = npv * 100 / notional(settle)
    clean = dirty - accrued
"""
from __future__ import annotations

import pandas as pd
from typing import Optional, Sequence, Tuple

from . import analytics, cashflows
from .analytics import DurationType
from .bonds import Bond
from .cashflows import CashFlow
from .config import ACCURACY, MAX_ITERATIONS, YIELD_GUESS, Z_SPREAD_GUESS
from .errors import NotTradableError
from .rates import Compounding, InterestRate
from .utils import DayCounter


def resolve_settlement(
    bond: Bond,
    settle: Optional[pd.Timestamp] = None,
    val_date: Optional[pd.Timestamp] = None,
) -> pd.Timestamp:
    if settle is not None:
        return pd.Timestamp(settle)
    return bond.settlement_date(val_date)


def _tradable_settlement(bond: Bond, settle=None, val_date=None) -> pd.Timestamp:
    settle = resolve_settlement(bond, settle, val_date)
    if not bond.is_tradable(settle):
        raise NotTradableError(settle, bond.maturity_date, bond.bond_id)
    return settle


def _flat_rate(yield_: float, day_counter: DayCounter, compounding: Compounding, frequency: int) -> InterestRate:
    return InterestRate(yield_, day_counter, compounding, frequency)


# ---------- Date inspectors ----------

def start_date(bond: Bond) -> pd.Timestamp:
    return bond.start_date


def maturity_date(bond: Bond) -> pd.Timestamp:
    return bond.maturity_date


def is_tradable(bond: Bond, settle=None, val_date=None) -> bool:
    return bond.is_tradable(resolve_settlement(bond, settle, val_date))


# ---------- Cash-flow inspectors ----------
# navigation only, so these also work on expired bonds

def previous_cash_flow(bond: Bond, ref_date=None, val_date=None) -> Optional[CashFlow]:
    return cashflows.previous_cash_flow(bond.cashflows, resolve_settlement(bond, ref_date, val_date))


def next_cash_flow(bond: Bond, ref_date=None, val_date=None) -> Optional[CashFlow]:
    return cashflows.next_cash_flow(bond.cashflows, resolve_settlement(bond, ref_date, val_date))


def previous_cash_flow_date(bond: Bond, ref_date=None, val_date=None) -> Optional[pd.Timestamp]:
    return cashflows.previous_cash_flow_date(bond.cashflows, resolve_settlement(bond, ref_date, val_date))


def next_cash_flow_date(bond: Bond, ref_date=None, val_date=None) -> Optional[pd.Timestamp]:
    return cashflows.next_cash_flow_date(bond.cashflows, resolve_settlement(bond, ref_date, val_date))


def previous_cash_flow_amount(bond: Bond, ref_date=None, val_date=None) -> Optional[float]:
    return cashflows.previous_cash_flow_amount(bond.cashflows, resolve_settlement(bond, ref_date, val_date))


def next_cash_flow_amount(bond: Bond, ref_date=None, val_date=None) -> Optional[float]:
    return cashflows.next_cash_flow_amount(bond.cashflows, resolve_settlement(bond, ref_date, val_date))


# ---------- Coupon inspectors ----------

def previous_coupon_rate(bond: Bond, settle=None, val_date=None) -> float:
    return cashflows.previous_coupon_rate(bond.cashflows, _tradable_settlement(bond, settle, val_date))


def next_coupon_rate(bond: Bond, settle=None, val_date=None) -> float:
    return cashflows.next_coupon_rate(bond.cashflows, _tradable_settlement(bond, settle, val_date))


def accrual_start_date(bond: Bond, settle=None, val_date=None) -> Optional[pd.Timestamp]:
    return cashflows.accrual_start_date(bond.cashflows, _tradable_settlement(bond, settle, val_date))


def accrual_end_date(bond: Bond, settle=None, val_date=None) -> Optional[pd.Timestamp]:
    return cashflows.accrual_end_date(bond.cashflows, _tradable_settlement(bond, settle, val_date))


def reference_period_start(bond: Bond, settle=None, val_date=None) -> Optional[pd.Timestamp]:
    """Start of the regular coupon period the accruing coupon is quoted on."""
    return cashflows.reference_period_start(bond.cashflows, _tradable_settlement(bond, settle, val_date))


def reference_period_end(bond: Bond, settle=None, val_date=None) -> Optional[pd.Timestamp]:
    return cashflows.reference_period_end(bond.cashflows, _tradable_settlement(bond, settle, val_date))


def accrual_period(bond: Bond, settle=None, val_date=None) -> float:
    return cashflows.accrual_period(bond.cashflows, _tradable_settlement(bond, settle, val_date))


def accrual_days(bond: Bond, settle=None, val_date=None) -> int:
    return cashflows.accrual_days(bond.cashflows, _tradable_settlement(bond, settle, val_date))


def accrued_period(bond: Bond, settle=None, val_date=None) -> float:
    return cashflows.accrued_period(bond.cashflows, _tradable_settlement(bond, settle, val_date))


def accrued_days(bond: Bond, settle=None, val_date=None) -> int:
    return cashflows.accrued_days(bond.cashflows, _tradable_settlement(bond, settle, val_date))


def accrued_amount(bond: Bond, settle=None, val_date=None) -> float:
    """Accrued interest per 100 of the notional outstanding at settlement."""
    settle = _tradable_settlement(bond, settle, val_date)
    return cashflows.accrued_amount(bond.cashflows, settle) * 100.0 / bond.notional(settle)


def accrued_days_and_amount(bond: Bond, settle=None, val_date=None) -> Tuple[int, float]:
    settle = _tradable_settlement(bond, settle, val_date)
    return accrued_days(bond, settle), accrued_amount(bond, settle)


# ---------- Curve functions ----------

def dirty_price(bond: Bond, curve, settle=None, val_date=None) -> float:
    settle = _tradable_settlement(bond, settle, val_date)
    return analytics.npv(bond.cashflows, curve, settle) * 100.0 / bond.notional(settle)


def clean_price(bond: Bond, curve, settle=None, val_date=None) -> float:
    settle = _tradable_settlement(bond, settle, val_date)
    return dirty_price(bond, curve, settle) - accrued_amount(bond, settle)


def bps(bond: Bond, curve, settle=None, val_date=None) -> float:
    settle = _tradable_settlement(bond, settle, val_date)
    return analytics.bps(bond.cashflows, curve, settle) * 100.0 / bond.notional(settle)


def atm_rate(bond: Bond, curve, settle=None, val_date=None, clean_price: Optional[float] = None) -> float:
    """Coupon rate at which the bond is worth clean_price (its curve value if None)."""
    settle = _tradable_settlement(bond, settle, val_date)
    target = None
    if clean_price is not None:
        dirty = clean_price + accrued_amount(bond, settle)
        target = dirty / 100.0 * bond.notional(settle)
    return analytics.atm_rate(bond.cashflows, curve, settle, target)


# ---------- Yield functions ----------

def dirty_price_from_yield(
    bond: Bond,
    yield_: float,
    day_counter: DayCounter,
    compounding: Compounding,
    frequency: int,
    settle=None,
    val_date=None,
) -> float:
    settle = _tradable_settlement(bond, settle, val_date)
    rate = _flat_rate(yield_, day_counter, compounding, frequency)
    return analytics.npv(bond.cashflows, rate, settle) * 100.0 / bond.notional(settle)


def clean_price_from_yield(
    bond: Bond,
    yield_: float,
    day_counter: DayCounter,
    compounding: Compounding,
    frequency: int,
    settle=None,
    val_date=None,
) -> float:
    settle = _tradable_settlement(bond, settle, val_date)
    dirty = dirty_price_from_yield(bond, yield_, day_counter, compounding, frequency, settle)
    return dirty - accrued_amount(bond, settle)


def bps_from_yield(
    bond: Bond,
    yield_: float,
    day_counter: DayCounter,
    compounding: Compounding,
    frequency: int,
    settle=None,
    val_date=None,
) -> float:
    settle = _tradable_settlement(bond, settle, val_date)
    rate = _flat_rate(yield_, day_counter, compounding, frequency)
    return analytics.bps(bond.cashflows, rate, settle) * 100.0 / bond.notional(settle)


def bond_yield(
    bond: Bond,
    price: float,
    day_counter: DayCounter,
    compounding: Compounding,
    frequency: int,
    settle=None,
    val_date=None,
    accuracy: float = ACCURACY,
    max_iterations: int = MAX_ITERATIONS,
    guess: float = YIELD_GUESS,
    clean: bool = True,
) -> float:
    """Yield that reprices the bond to ``price`` (clean unless clean=False)."""
    settle = _tradable_settlement(bond, settle, val_date)
    dirty = price + accrued_amount(bond, settle) if clean else price
    target_npv = dirty / 100.0 * bond.notional(settle)
    return analytics.solve_yield(
        bond.cashflows, target_npv, day_counter, compounding, frequency, settle, accuracy, max_iterations, guess
    )


def duration(
    bond: Bond,
    yield_: float,
    day_counter: DayCounter,
    compounding: Compounding,
    frequency: int,
    duration_type: DurationType = DurationType.MODIFIED,
    settle=None,
    val_date=None,
) -> float:
    settle = _tradable_settlement(bond, settle, val_date)
    rate = _flat_rate(yield_, day_counter, compounding, frequency)
    return analytics.duration(bond.cashflows, rate, settle, duration_type)


def convexity(
    bond: Bond,
    yield_: float,
    day_counter: DayCounter,
    compounding: Compounding,
    frequency: int,
    settle=None,
    val_date=None,
) -> float:
    settle = _tradable_settlement(bond, settle, val_date)
    rate = _flat_rate(yield_, day_counter, compounding, frequency)
    return analytics.convexity(bond.cashflows, rate, settle)


def basis_point_value(
    bond: Bond,
    yield_: float,
    day_counter: DayCounter,
    compounding: Compounding,
    frequency: int,
    settle=None,
    val_date=None,
) -> float:
    """Price change per 100 face for a +1bp yield move."""
    settle = _tradable_settlement(bond, settle, val_date)
    rate = _flat_rate(yield_, day_counter, compounding, frequency)
    return analytics.basis_point_value(bond.cashflows, rate, settle) * 100.0 / bond.notional(settle)


def yield_value_basis_point(
    bond: Bond,
    yield_: float,
    day_counter: DayCounter,
    compounding: Compounding,
    frequency: int,
    settle=None,
    val_date=None,
) -> float:
    """Yield change for a 0.01 move in the per-100 price."""
    settle = _tradable_settlement(bond, settle, val_date)
    rate = _flat_rate(yield_, day_counter, compounding, frequency)
    return analytics.yield_value_basis_point(bond.cashflows, rate, settle) * bond.notional(settle) / 100.0


# ---------- Z-spread functions ----------

def clean_price_from_z_spread(
    bond: Bond,
    curve,
    z_spread: float,
    day_counter: DayCounter,
    compounding: Compounding,
    frequency: int,
    settle=None,
    val_date=None,
) -> float:
    settle = _tradable_settlement(bond, settle, val_date)
    pv = analytics.z_spread_npv(bond.cashflows, curve, z_spread, day_counter, compounding, frequency, settle)
    return pv * 100.0 / bond.notional(settle) - accrued_amount(bond, settle)


def z_spread(
    bond: Bond,
    clean_price: float,
    curve,
    day_counter: DayCounter,
    compounding: Compounding,
    frequency: int,
    settle=None,
    val_date=None,
    accuracy: float = ACCURACY,
    max_iterations: int = MAX_ITERATIONS,
    guess: float = Z_SPREAD_GUESS,
) -> float:
    settle = _tradable_settlement(bond, settle, val_date)
    dirty = clean_price + accrued_amount(bond, settle)
    target_npv = dirty / 100.0 * bond.notional(settle)
    return analytics.z_spread(
        bond.cashflows, curve, target_npv, day_counter, compounding, frequency, settle, accuracy, max_iterations, guess
    )


# ---------- Weighted average life ----------

def weighted_average_life(
    today: pd.Timestamp,
    amounts: Sequence[float],
    schedule: Sequence[pd.Timestamp],
) -> pd.Timestamp:
    return analytics.weighted_average_life(today, amounts, schedule)


def bond_weighted_average_life(bond: Bond, today: Optional[pd.Timestamp] = None) -> pd.Timestamp:
    """WAL over the bond's principal repayments."""
    today = pd.Timestamp.today().normalize() if today is None else pd.Timestamp(today)
    redemptions = bond.redemptions
    return analytics.weighted_average_life(
        today, [cf.principal for cf in redemptions], [cf.date for cf in redemptions]
    )


class BondPricer:
    """Prices bonds off one curve; returns (dirty, clean, accrued) per 100."""

    def __init__(self, curve):
        self.curve = curve

    def price(
        self,
        bond: Bond,
        val_date: Optional[pd.Timestamp] = None,
        settle: Optional[pd.Timestamp] = None,
    ) -> Tuple[float, float, float]:
        settle = _tradable_settlement(bond, settle, val_date)
        dirty = dirty_price(bond, self.curve, settle)
        ai = accrued_amount(bond, settle)
        return dirty, dirty - ai, ai
