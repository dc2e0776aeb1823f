from __future__ import annotations

import pandas as pd
from dataclasses import dataclass
from typing import List

from .config import DEFAULT_SETTLEMENT_DAYS


def _normalize(convention: str) -> str:
    return convention.upper().replace(" ", "")


def _thirty_360_days(start: pd.Timestamp, end: pd.Timestamp, european: bool) -> int:
    y1, m1, d1 = start.year, start.month, start.day
    y2, m2, d2 = end.year, end.month, end.day

    if european:
        d1 = min(d1, 30)
        d2 = min(d2, 30)
    else:
        # 30/360 US convention
        if d1 == 31:
            d1 = 30
        if d2 == 31 and d1 == 30:
            d2 = 30

    return (y2 - y1) * 360 + (m2 - m1) * 30 + (d2 - d1)


def _days_in_year(year: int) -> int:
    return 366 if pd.Timestamp(year=year, month=1, day=1).is_leap_year else 365


def day_count(start: pd.Timestamp, end: pd.Timestamp, convention: str) -> int:
    """Day-count numerator between two dates (actual days or 30/360 days)."""
    start = pd.Timestamp(start)
    end = pd.Timestamp(end)
    convention = _normalize(convention)

    if convention in ("30/360", "30/360US"):
        return _thirty_360_days(start, end, european=False)
    if convention == "30E/360":
        return _thirty_360_days(start, end, european=True)
    return (end - start).days


def yearfrac(start: pd.Timestamp, end: pd.Timestamp, convention: str) -> float:
    """
    Year fraction between two dates under a day count convention.

    Supported:
    - ACT/365, ACT/365F
    - ACT/360
    - 30/360, 30/360US (US bond basis)
    - 30E/360 (Eurobond basis)
    - ACT/ACT, ACT/ACTISDA

    Reversed dates give the negated fraction.
    """
    start = pd.Timestamp(start)
    end = pd.Timestamp(end)

    convention = _normalize(convention)
    if end < start:
        return -yearfrac(end, start, convention)

    if convention in ("ACT/365", "ACT/365F"):
        return (end - start).days / 365.0

    if convention == "ACT/360":
        return (end - start).days / 360.0

    if convention in ("30/360", "30/360US", "30E/360"):
        return day_count(start, end, convention) / 360.0

    if convention in ("ACT/ACT", "ACT/ACTISDA"):
        if start.year == end.year:
            return (end - start).days / _days_in_year(start.year)

        next_jan1 = pd.Timestamp(year=start.year + 1, month=1, day=1)
        last_jan1 = pd.Timestamp(year=end.year, month=1, day=1)
        return (
            (next_jan1 - start).days / _days_in_year(start.year)
            + (end.year - start.year - 1)
            + (end - last_jan1).days / _days_in_year(end.year)
        )

    raise ValueError(f"Unsupported day count convention: {convention}")


@dataclass(frozen=True)
class DayCounter:
    """
    Named day count convention.

    Anything exposing ``year_fraction(start, end)`` can stand in for it.
    """
    name: str = "ACT/365"

    def __post_init__(self):
        # fail fast on unknown conventions
        yearfrac(pd.Timestamp("2000-01-01"), pd.Timestamp("2000-07-01"), self.name)

    def year_fraction(self, start: pd.Timestamp, end: pd.Timestamp) -> float:
        return yearfrac(start, end, self.name)

    def day_count(self, start: pd.Timestamp, end: pd.Timestamp) -> int:
        return day_count(start, end, self.name)

    def __str__(self) -> str:
        return self.name


def as_day_counter(day_counter) -> DayCounter:
    if isinstance(day_counter, str):
        return DayCounter(day_counter)
    return day_counter


def advance(date: pd.Timestamp, days: int, business_days: bool = False) -> pd.Timestamp:
    """
    Move a date by a number of days.

    Business days skip weekends only; holiday calendars are not modelled.
    """
    date = pd.Timestamp(date)
    if days == 0:
        return date
    if business_days:
        return date + pd.offsets.BDay(days)
    return date + pd.Timedelta(days=days)


def settlement_date(
    val_date: pd.Timestamp,
    lag_days: int = DEFAULT_SETTLEMENT_DAYS,
    business_days: bool = False,
) -> pd.Timestamp:
    """Settlement date: valuation date advanced by lag_days."""
    return advance(val_date, lag_days, business_days)


def schedule_dates(start: pd.Timestamp, maturity: pd.Timestamp, freq: int = 2) -> List[pd.Timestamp]:
    """
    Backward-generated coupon dates [start, ..., maturity].

    Each date is maturity minus a whole number of periods, so month-end
    maturities stay anchored. A short first period is kept as a stub.
    """
    start = pd.Timestamp(start)
    maturity = pd.Timestamp(maturity)

    if maturity <= start:
        raise ValueError("Maturity must be after schedule start.")
    if freq not in (1, 2, 3, 4, 6, 12):
        raise ValueError(f"Unsupported coupon frequency: {freq}")

    months = 12 // freq
    dates: List[pd.Timestamp] = [maturity]

    k = 1
    while True:
        d = maturity - pd.DateOffset(months=k * months)
        if d <= start:
            break
        dates.append(pd.Timestamp(d))
        k += 1

    dates.append(start)
    return dates[::-1]
