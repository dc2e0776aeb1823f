from __future__ import annotations

import numpy as np
import pandas as pd
from dataclasses import dataclass
from collections.abc import Sequence
from typing import Iterable, Iterator, List, Optional, Tuple

from .errors import InvalidScheduleError
from .utils import DayCounter, as_day_counter


def _ts(d) -> Optional[pd.Timestamp]:
    return None if d is None else pd.Timestamp(d)


@dataclass(frozen=True)
class CashFlow:
    """
    A single scheduled payment.

    Coupon-bearing flows carry an accrual period; fixed and floating coupons
    also carry the rate and nominal they accrue on. ``principal`` is the part
    of ``amount`` that repays notional.
    """
    date: pd.Timestamp
    amount: float
    accrual_start: Optional[pd.Timestamp] = None
    accrual_end: Optional[pd.Timestamp] = None
    rate: Optional[float] = None
    nominal: Optional[float] = None
    day_counter: Optional[DayCounter] = None
    principal: float = 0.0
    ex_coupon_date: Optional[pd.Timestamp] = None
    ref_period_start: Optional[pd.Timestamp] = None
    ref_period_end: Optional[pd.Timestamp] = None

    def __post_init__(self):
        object.__setattr__(self, "date", pd.Timestamp(self.date))
        object.__setattr__(self, "amount", float(self.amount))
        object.__setattr__(self, "accrual_start", _ts(self.accrual_start))
        object.__setattr__(self, "accrual_end", _ts(self.accrual_end))
        object.__setattr__(self, "ex_coupon_date", _ts(self.ex_coupon_date))
        object.__setattr__(self, "ref_period_start", _ts(self.ref_period_start))
        object.__setattr__(self, "ref_period_end", _ts(self.ref_period_end))
        if self.day_counter is not None:
            object.__setattr__(self, "day_counter", as_day_counter(self.day_counter))

        if (self.accrual_start is None) != (self.accrual_end is None):
            raise InvalidScheduleError(f"{self.date.date()}: accrual start and end must be given together")
        if self.is_coupon and self.day_counter is None:
            raise InvalidScheduleError(f"{self.date.date()}: coupon needs a day counter")

    @property
    def is_coupon(self) -> bool:
        return self.accrual_start is not None

    @property
    def coupon_amount(self) -> float:
        return self.amount - self.principal

    @property
    def reference_period_start(self) -> Optional[pd.Timestamp]:
        """Start of the regular period the coupon is quoted on; differs from accrual_start on a stub."""
        return self.accrual_start if self.ref_period_start is None else self.ref_period_start

    @property
    def reference_period_end(self) -> Optional[pd.Timestamp]:
        return self.accrual_end if self.ref_period_end is None else self.ref_period_end

    def has_occurred(self, ref_date: pd.Timestamp) -> bool:
        """Paid on or before ref_date; same-day flows count as paid."""
        return self.date <= pd.Timestamp(ref_date)

    def trading_ex_coupon(self, ref_date: pd.Timestamp) -> bool:
        return self.ex_coupon_date is not None and pd.Timestamp(ref_date) >= self.ex_coupon_date

    def amount_owed(self, ref_date: pd.Timestamp) -> float:
        """Part of the flow a buyer settling on ref_date receives; ex-coupon keeps only the principal."""
        if self.has_occurred(ref_date):
            return 0.0
        if self.trading_ex_coupon(ref_date):
            return self.principal
        return self.amount

    def accrual_period(self) -> float:
        if not self.is_coupon:
            return 0.0
        return self.day_counter.year_fraction(self.accrual_start, self.accrual_end)

    def accrual_days(self) -> int:
        if not self.is_coupon:
            return 0
        return self.day_counter.day_count(self.accrual_start, self.accrual_end)

    def accrues_at(self, d: pd.Timestamp) -> bool:
        d = pd.Timestamp(d)
        return self.is_coupon and self.accrual_start <= d < self.accrual_end

    def accrued_period(self, d: pd.Timestamp) -> float:
        if not self.accrues_at(d):
            return 0.0
        return self.day_counter.year_fraction(self.accrual_start, pd.Timestamp(d))

    def accrued_days(self, d: pd.Timestamp) -> int:
        if not self.accrues_at(d):
            return 0
        return self.day_counter.day_count(self.accrual_start, pd.Timestamp(d))

    def accrued_amount(self, d: pd.Timestamp) -> float:
        """
        Interest accrued from accrual_start to d.

        Negative while trading ex-coupon: the buyer is owed the remainder of
        a coupon that goes to the seller.
        """
        d = pd.Timestamp(d)
        if not self.accrues_at(d):
            return 0.0

        period = self.accrual_period()
        if period <= 0.0:
            return 0.0

        if self.rate is not None and self.nominal is not None:
            accrued = self.nominal * self.rate * self.accrued_period(d)
            full = self.nominal * self.rate * period
        else:
            accrued = self.coupon_amount * self.accrued_period(d) / period
            full = self.coupon_amount

        if self.trading_ex_coupon(d):
            return accrued - full
        return accrued


class Schedule(Sequence):
    """Immutable, strictly date-ordered sequence of cash flows."""

    def __init__(self, flows: Iterable[CashFlow]):
        flows = tuple(flows)
        if not flows:
            raise InvalidScheduleError("Schedule needs at least one cash flow.")

        for prev, nxt in zip(flows[:-1], flows[1:]):
            if nxt.date <= prev.date:
                raise InvalidScheduleError(
                    f"Cash flow dates must be strictly increasing: {prev.date.date()} then {nxt.date.date()}"
                )
        self._flows: Tuple[CashFlow, ...] = flows

    def __getitem__(self, i):
        return self._flows[i]

    def __len__(self) -> int:
        return len(self._flows)

    def __iter__(self) -> Iterator[CashFlow]:
        return iter(self._flows)

    def __repr__(self) -> str:
        return f"Schedule({len(self)} flows, {self._flows[0].date.date()} -> {self._flows[-1].date.date()})"

    @property
    def dates(self) -> List[pd.Timestamp]:
        return [cf.date for cf in self._flows]

    @property
    def amounts(self) -> np.ndarray:
        return np.array([cf.amount for cf in self._flows], dtype=float)

    def coupons(self) -> List[CashFlow]:
        return [cf for cf in self._flows if cf.is_coupon]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [
                (cf.date, cf.amount, cf.principal, cf.accrual_start, cf.accrual_end, cf.rate, cf.nominal)
                for cf in self._flows
            ],
            columns=["pay_date", "cashflow", "principal", "accrual_start", "accrual_end", "rate", "nominal"],
        )


def as_schedule(flows) -> Schedule:
    return flows if isinstance(flows, Schedule) else Schedule(flows)


# ---------- Date inspectors ----------

def start_date(schedule: Schedule) -> pd.Timestamp:
    starts = [cf.accrual_start for cf in schedule if cf.is_coupon]
    return min(starts + [schedule[0].date])


def maturity_date(schedule: Schedule) -> pd.Timestamp:
    ends = [cf.accrual_end for cf in schedule if cf.is_coupon]
    return max(ends + [schedule[-1].date])


# ---------- Cash-flow inspectors ----------

def previous_cash_flow(schedule: Schedule, ref_date: pd.Timestamp) -> Optional[CashFlow]:
    """Last flow paid on or before ref_date."""
    paid = [cf for cf in schedule if cf.has_occurred(ref_date)]
    return paid[-1] if paid else None


def next_cash_flow(schedule: Schedule, ref_date: pd.Timestamp) -> Optional[CashFlow]:
    """First flow paid after ref_date."""
    for cf in schedule:
        if not cf.has_occurred(ref_date):
            return cf
    return None


def previous_cash_flow_date(schedule: Schedule, ref_date: pd.Timestamp) -> Optional[pd.Timestamp]:
    cf = previous_cash_flow(schedule, ref_date)
    return None if cf is None else cf.date


def next_cash_flow_date(schedule: Schedule, ref_date: pd.Timestamp) -> Optional[pd.Timestamp]:
    cf = next_cash_flow(schedule, ref_date)
    return None if cf is None else cf.date


def previous_cash_flow_amount(schedule: Schedule, ref_date: pd.Timestamp) -> Optional[float]:
    cf = previous_cash_flow(schedule, ref_date)
    return None if cf is None else cf.amount


def next_cash_flow_amount(schedule: Schedule, ref_date: pd.Timestamp) -> Optional[float]:
    cf = next_cash_flow(schedule, ref_date)
    return None if cf is None else cf.amount


def previous_coupon_rate(schedule: Schedule, ref_date: pd.Timestamp) -> float:
    cf = previous_cash_flow(schedule, ref_date)
    if cf is None or cf.rate is None:
        return 0.0
    return cf.rate


def next_coupon_rate(schedule: Schedule, ref_date: pd.Timestamp) -> float:
    cf = next_cash_flow(schedule, ref_date)
    if cf is None or cf.rate is None:
        return 0.0
    return cf.rate


# ---------- Accrual inspectors ----------

def accruing_coupon(schedule: Schedule, settle: pd.Timestamp) -> Optional[CashFlow]:
    """Coupon whose [accrual_start, accrual_end) contains settle."""
    settle = pd.Timestamp(settle)
    for cf in schedule:
        if cf.accrues_at(settle):
            return cf
    return None


def accrual_start_date(schedule: Schedule, settle: pd.Timestamp) -> Optional[pd.Timestamp]:
    cf = accruing_coupon(schedule, settle)
    return None if cf is None else cf.accrual_start


def accrual_end_date(schedule: Schedule, settle: pd.Timestamp) -> Optional[pd.Timestamp]:
    cf = accruing_coupon(schedule, settle)
    return None if cf is None else cf.accrual_end


def accrual_period(schedule: Schedule, settle: pd.Timestamp) -> float:
    cf = accruing_coupon(schedule, settle)
    return 0.0 if cf is None else cf.accrual_period()


def accrual_days(schedule: Schedule, settle: pd.Timestamp) -> int:
    cf = accruing_coupon(schedule, settle)
    return 0 if cf is None else cf.accrual_days()


def accrued_period(schedule: Schedule, settle: pd.Timestamp) -> float:
    cf = accruing_coupon(schedule, settle)
    return 0.0 if cf is None else cf.accrued_period(settle)


def accrued_days(schedule: Schedule, settle: pd.Timestamp) -> int:
    cf = accruing_coupon(schedule, settle)
    return 0 if cf is None else cf.accrued_days(settle)


def accrued_amount(schedule: Schedule, settle: pd.Timestamp) -> float:
    """
    Accrued interest in currency units (not per 100).

    Zero when settle falls outside every accrual period, e.g. before the
    first period starts or on/after the last one ends.
    """
    cf = accruing_coupon(schedule, settle)
    return 0.0 if cf is None else cf.accrued_amount(settle)


def reference_period_start(schedule: Schedule, settle: pd.Timestamp) -> Optional[pd.Timestamp]:
    cf = accruing_coupon(schedule, settle)
    return None if cf is None else cf.reference_period_start


def reference_period_end(schedule: Schedule, settle: pd.Timestamp) -> Optional[pd.Timestamp]:
    cf = accruing_coupon(schedule, settle)
    return None if cf is None else cf.reference_period_end
