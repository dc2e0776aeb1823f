from __future__ import annotations

import bisect
import logging
import pandas as pd
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from .cashflows import CashFlow, Schedule, as_schedule, maturity_date as schedule_maturity, start_date as schedule_start
from .config import DEFAULT_SETTLEMENT_DAYS
from .errors import InvalidScheduleError
from .rates import Compounding, Frequency
from .utils import advance, as_day_counter, schedule_dates

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Bond:
    """
    Bond as a cash-flow schedule plus its outstanding-notional step function.

    notional_dates[0] is the start of the first notional period; each later
    date is where the notional changes, ending with maturity where it drops
    to 0. On a change date the new notional already applies.
    """
    bond_id: str
    issue_date: pd.Timestamp
    cashflows: Schedule
    notional_dates: Tuple[pd.Timestamp, ...]
    notionals: Tuple[float, ...]
    settlement_days: int = DEFAULT_SETTLEMENT_DAYS
    business_days: bool = False

    def __post_init__(self):
        object.__setattr__(self, "issue_date", pd.Timestamp(self.issue_date))
        object.__setattr__(self, "cashflows", as_schedule(self.cashflows))
        object.__setattr__(self, "notional_dates", tuple(pd.Timestamp(d) for d in self.notional_dates))
        object.__setattr__(self, "notionals", tuple(float(n) for n in self.notionals))

        if len(self.notional_dates) != len(self.notionals) or len(self.notionals) < 2:
            raise InvalidScheduleError(f"{self.bond_id}: notional dates and notionals must match (at least 2 entries)")
        if any(b <= a for a, b in zip(self.notional_dates[:-1], self.notional_dates[1:])):
            raise InvalidScheduleError(f"{self.bond_id}: notional dates must be strictly increasing")
        if self.notionals[-1] != 0.0:
            raise InvalidScheduleError(f"{self.bond_id}: notional must drop to 0 at maturity")

    @property
    def maturity_date(self) -> pd.Timestamp:
        return schedule_maturity(self.cashflows)

    @property
    def start_date(self) -> pd.Timestamp:
        return schedule_start(self.cashflows)

    @property
    def redemptions(self) -> List[CashFlow]:
        return [cf for cf in self.cashflows if cf.principal != 0.0]

    def notional(self, d: Optional[pd.Timestamp] = None) -> float:
        """Outstanding notional at d (settlement of today's trade if None)."""
        d = self.settlement_date() if d is None else pd.Timestamp(d)
        dates = self.notional_dates

        if d > dates[-1]:
            return 0.0

        i = bisect.bisect_left(dates, d, 1)
        if d < dates[i]:
            return self.notionals[i - 1]
        return self.notionals[i]

    def settlement_date(self, val_date: Optional[pd.Timestamp] = None) -> pd.Timestamp:
        val_date = pd.Timestamp.today().normalize() if val_date is None else pd.Timestamp(val_date)
        settle = advance(val_date, self.settlement_days, self.business_days)
        return max(settle, self.issue_date)

    def is_tradable(self, settle: pd.Timestamp) -> bool:
        return self.notional(settle) != 0.0


def _notional_schedule(
    cashflows: Schedule,
    issue_date: pd.Timestamp,
    face: Optional[float],
) -> Tuple[List[pd.Timestamp], List[float]]:
    dates: List[pd.Timestamp] = []
    notionals: List[float] = []

    for cf in cashflows.coupons():
        if cf.nominal is None:
            continue
        if not notionals or cf.nominal != notionals[-1]:
            dates.append(cf.accrual_start)
            notionals.append(cf.nominal)

    if not notionals:
        if face is None:
            face = sum(cf.principal for cf in cashflows) or cashflows[-1].amount
        dates.append(min(issue_date, schedule_start(cashflows)))
        notionals.append(float(face))

    dates.append(schedule_maturity(cashflows))
    notionals.append(0.0)
    return dates, notionals


def bond_from_cashflows(
    bond_id: str,
    issue_date: pd.Timestamp,
    cashflows,
    face: Optional[float] = None,
    settlement_days: int = DEFAULT_SETTLEMENT_DAYS,
    business_days: bool = False,
) -> Bond:
    """Bond over an already generated schedule; notionals come from coupon nominals."""
    schedule = as_schedule(cashflows)
    issue_date = pd.Timestamp(issue_date)
    dates, notionals = _notional_schedule(schedule, issue_date, face)
    return Bond(bond_id, issue_date, schedule, tuple(dates), tuple(notionals), settlement_days, business_days)


def fixed_rate_bond(
    bond_id: str,
    issue_date: pd.Timestamp,
    maturity_date: pd.Timestamp,
    coupon_rate: float,
    freq: int = 2,
    day_count: str = "30/360",
    face: float = 100.0,
    redemption: float = 100.0,
    settlement_days: int = DEFAULT_SETTLEMENT_DAYS,
    business_days: bool = False,
    sinking_schedule: Optional[Mapping[pd.Timestamp, float]] = None,
    ex_coupon_days: int = 0,
    accrual_start: Optional[pd.Timestamp] = None,
) -> Bond:
    """
    Fixed-rate bond with maturity-anchored coupon dates.

    sinking_schedule maps coupon dates to the face amount repaid on them;
    coupons accrue on the notional outstanding at the period start.
    redemption is the repayment price per 100 of face.
    """
    issue_date = pd.Timestamp(issue_date)
    start = issue_date if accrual_start is None else pd.Timestamp(accrual_start)
    dc = as_day_counter(day_count)
    dates = schedule_dates(start, maturity_date, freq)
    # a short first period is quoted on the full regular period before its end
    regular_start = pd.Timestamp(maturity_date) - pd.DateOffset(months=(12 // freq) * (len(dates) - 1))

    sinking: Dict[pd.Timestamp, float] = {pd.Timestamp(d): float(a) for d, a in (sinking_schedule or {}).items()}
    unknown = [d for d in sinking if d not in dates[1:-1]]
    if unknown:
        raise InvalidScheduleError(f"{bond_id}: sinking dates {[d.date() for d in unknown]} are not coupon dates before maturity")
    if sum(sinking.values()) >= face:
        raise InvalidScheduleError(f"{bond_id}: sinking schedule repays the whole face before maturity")

    flows: List[CashFlow] = []
    outstanding = float(face)
    for s, e in zip(dates[:-1], dates[1:]):
        coupon = outstanding * coupon_rate * dc.year_fraction(s, e)
        repaid = outstanding if e == dates[-1] else sinking.get(e, 0.0)
        principal = repaid * redemption / 100.0
        ex_date = e - pd.Timedelta(days=ex_coupon_days) if ex_coupon_days > 0 else None
        ref_start = regular_start if s == dates[0] and regular_start != s else None

        flows.append(
            CashFlow(
                date=e,
                amount=coupon + principal,
                accrual_start=s,
                accrual_end=e,
                rate=coupon_rate,
                nominal=outstanding,
                day_counter=dc,
                principal=principal,
                ex_coupon_date=ex_date,
                ref_period_start=ref_start,
            )
        )
        outstanding -= repaid

    return bond_from_cashflows(bond_id, issue_date, Schedule(flows), face, settlement_days, business_days)


def zero_coupon_bond(
    bond_id: str,
    issue_date: pd.Timestamp,
    maturity_date: pd.Timestamp,
    face: float = 100.0,
    redemption: float = 100.0,
    settlement_days: int = DEFAULT_SETTLEMENT_DAYS,
    business_days: bool = False,
) -> Bond:
    amount = face * redemption / 100.0
    schedule = Schedule([CashFlow(date=maturity_date, amount=amount, principal=amount)])
    return bond_from_cashflows(bond_id, issue_date, schedule, face, settlement_days, business_days)


def floating_rate_bond(
    bond_id: str,
    issue_date: pd.Timestamp,
    maturity_date: pd.Timestamp,
    forecast_curve,
    spread: float = 0.0,
    gearing: float = 1.0,
    freq: int = 4,
    day_count: str = "ACT/360",
    face: float = 100.0,
    fixings: Optional[Mapping[pd.Timestamp, float]] = None,
    fixing_days: int = 2,
    settlement_days: int = DEFAULT_SETTLEMENT_DAYS,
    business_days: bool = False,
) -> Bond:
    """
    Floating-rate bond with coupon rates set at construction.

    A period fixing on or after the forecast curve's reference date uses the
    curve's simple forward over the period unless a fixing is supplied;
    earlier fixings must be supplied.
    """
    issue_date = pd.Timestamp(issue_date)
    dc = as_day_counter(day_count)
    dates = schedule_dates(issue_date, maturity_date, freq)
    known = {pd.Timestamp(d): float(r) for d, r in (fixings or {}).items()}
    reference = pd.Timestamp(forecast_curve.reference_date)

    flows: List[CashFlow] = []
    for s, e in zip(dates[:-1], dates[1:]):
        fixing_date = advance(s, -fixing_days, business_days)

        if fixing_date in known:
            index_rate = known[fixing_date]
        elif fixing_date < reference:
            raise ValueError(f"{bond_id}: missing fixing for {fixing_date.date()}")
        else:
            index_rate = forecast_curve.forward_rate(s, e, Compounding.SIMPLE, Frequency.ANNUAL, dc).rate

        rate = gearing * index_rate + spread
        coupon = face * rate * dc.year_fraction(s, e)
        principal = float(face) if e == dates[-1] else 0.0

        flows.append(
            CashFlow(
                date=e,
                amount=coupon + principal,
                accrual_start=s,
                accrual_end=e,
                rate=rate,
                nominal=float(face),
                day_counter=dc,
                principal=principal,
            )
        )

    logger.debug("%s: %d floating coupons set off curve at %s", bond_id, len(flows), reference.date())
    return bond_from_cashflows(bond_id, issue_date, Schedule(flows), face, settlement_days, business_days)
