from __future__ import annotations

import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from scipy.interpolate import CubicSpline

from .config import CURVE_DAY_COUNT
from .rates import Compounding, Frequency, InterestRate
from .utils import DayCounter, as_day_counter

INTERPOLATIONS = ("log_linear", "linear", "cubic")
NON_LOCAL_INTERPOLATIONS = frozenset({"cubic"})

# time step used for instantaneous rates at the reference date
_SHORT_TIME = 1e-4


@dataclass(frozen=True, eq=False)
class TermStructure:
    """
    Discount curve over bootstrapped pillar discount factors.

    The reference date is an implicit knot with DF = 1.0, so
    ``discount(reference_date) == 1.0`` exactly.

    - log_linear: linear in log DF (piecewise flat forwards), local.
    - linear: linear in DF, local.
    - cubic: natural cubic spline on log DF, non-local.
    - Before the reference date: raises.
    - Past the last pillar: raises unless extrapolate=True, in which case the
      last segment's log-DF slope is continued.
    """
    reference_date: pd.Timestamp
    pillar_dates: Tuple[pd.Timestamp, ...]
    discount_factors: np.ndarray
    day_counter: DayCounter = DayCounter(CURVE_DAY_COUNT)
    interpolation: str = "log_linear"
    extrapolate: bool = False

    _times: np.ndarray = field(init=False, repr=False)
    _log_dfs: np.ndarray = field(init=False, repr=False)
    _spline: Optional[CubicSpline] = field(init=False, repr=False, default=None)

    def __post_init__(self):
        ref = pd.Timestamp(self.reference_date)
        dates = tuple(pd.Timestamp(d) for d in self.pillar_dates)
        dfs = np.array(self.discount_factors, dtype=float)
        dc = as_day_counter(self.day_counter)

        object.__setattr__(self, "reference_date", ref)
        object.__setattr__(self, "pillar_dates", dates)
        object.__setattr__(self, "discount_factors", dfs)
        object.__setattr__(self, "day_counter", dc)

        if self.interpolation not in INTERPOLATIONS:
            raise ValueError(f"Unknown interpolation '{self.interpolation}', expected one of {INTERPOLATIONS}")
        if len(dates) == 0:
            raise ValueError("Curve needs at least one pillar.")
        if len(dates) != len(dfs):
            raise ValueError("Pillar dates and discount factors must have the same length.")
        if dates[0] <= ref:
            raise ValueError("First pillar must be after the reference date.")
        if any(b <= a for a, b in zip(dates[:-1], dates[1:])):
            raise ValueError("Pillar dates must be strictly increasing.")
        if not np.all(np.isfinite(dfs)) or np.any(dfs <= 0.0):
            raise ValueError("Discount factors must be positive and finite.")

        times = np.r_[0.0, [dc.year_fraction(ref, d) for d in dates]]
        if np.any(np.diff(times) <= 0.0):
            raise ValueError(f"Pillar times must be strictly increasing under {dc}.")

        log_dfs = np.r_[0.0, np.log(dfs)]
        object.__setattr__(self, "_times", times)
        object.__setattr__(self, "_log_dfs", log_dfs)

        if self.interpolation == "cubic":
            object.__setattr__(self, "_spline", CubicSpline(times, log_dfs, bc_type="natural"))

    # ---------- time axis ----------

    def time(self, date: pd.Timestamp) -> float:
        return self.day_counter.year_fraction(self.reference_date, date)

    def _to_times(self, dates: Iterable[pd.Timestamp]) -> np.ndarray:
        dates_list = [pd.Timestamp(d) for d in dates]
        if any(d < self.reference_date for d in dates_list):
            raise ValueError(f"Requested date before curve reference date {self.reference_date.date()}.")
        return np.array([self.time(d) for d in dates_list], dtype=float)

    # ---------- discount factors ----------

    def _df_from_times(self, t: np.ndarray) -> np.ndarray:
        times, log_dfs = self._times, self._log_dfs
        t_max = times[-1]

        beyond = t > t_max
        if np.any(beyond) and not self.extrapolate:
            raise ValueError("Requested date beyond last pillar (extrapolation disabled).")

        out = np.empty_like(t, dtype=float)
        inside = ~beyond

        if np.any(inside):
            ti = t[inside]
            if self.interpolation == "log_linear":
                out[inside] = np.exp(np.interp(ti, times, log_dfs))
            elif self.interpolation == "linear":
                out[inside] = np.interp(ti, times, np.exp(log_dfs))
            else:
                out[inside] = np.exp(self._spline(ti))

        if np.any(beyond):
            slope = (log_dfs[-1] - log_dfs[-2]) / (times[-1] - times[-2])
            out[beyond] = np.exp(log_dfs[-1] + slope * (t[beyond] - t_max))

        out[t == 0.0] = 1.0
        return out

    def df(self, dates: Iterable[pd.Timestamp]) -> np.ndarray:
        return self._df_from_times(self._to_times(dates))

    def discount(self, date: pd.Timestamp) -> float:
        return float(self.df([date])[0])

    # ---------- rates ----------

    def zero_rate(
        self,
        date: pd.Timestamp,
        compounding: Compounding = Compounding.CONTINUOUS,
        frequency: int = Frequency.ANNUAL,
        day_counter: Optional[DayCounter] = None,
    ) -> InterestRate:
        dc = self.day_counter if day_counter is None else as_day_counter(day_counter)
        date = pd.Timestamp(date)

        if date == self.reference_date:
            compound = 1.0 / float(self._df_from_times(np.array([_SHORT_TIME]))[0])
            return InterestRate.implied_rate(compound, dc, compounding, frequency, _SHORT_TIME)

        t = dc.year_fraction(self.reference_date, date)
        return InterestRate.implied_rate(1.0 / self.discount(date), dc, compounding, frequency, t)

    def forward_rate(
        self,
        d1: pd.Timestamp,
        d2: pd.Timestamp,
        compounding: Compounding = Compounding.CONTINUOUS,
        frequency: int = Frequency.ANNUAL,
        day_counter: Optional[DayCounter] = None,
    ) -> InterestRate:
        d1, d2 = pd.Timestamp(d1), pd.Timestamp(d2)
        if d2 <= d1:
            raise ValueError(f"Forward end {d2.date()} must be after start {d1.date()}.")

        dc = self.day_counter if day_counter is None else as_day_counter(day_counter)
        df1, df2 = self.df([d1, d2])
        return InterestRate.implied_rate(df1 / df2, dc, compounding, frequency, dc.year_fraction(d1, d2))

    # ---------- inspectors ----------

    @property
    def pillars(self) -> List[Tuple[pd.Timestamp, float]]:
        return list(zip(self.pillar_dates, self.discount_factors.tolist()))

    @property
    def max_date(self) -> pd.Timestamp:
        return self.pillar_dates[-1]

    @property
    def is_local(self) -> bool:
        return self.interpolation not in NON_LOCAL_INTERPOLATIONS


def flat_curve(
    reference_date: pd.Timestamp,
    rate: float,
    max_date: pd.Timestamp,
    day_counter: DayCounter = DayCounter(CURVE_DAY_COUNT),
    extrapolate: bool = True,
) -> TermStructure:
    """Continuously compounded flat curve with a single pillar at max_date."""
    dc = as_day_counter(day_counter)
    t = dc.year_fraction(reference_date, max_date)
    return TermStructure(
        reference_date,
        (pd.Timestamp(max_date),),
        np.array([np.exp(-rate * t)]),
        dc,
        "log_linear",
        extrapolate,
    )


def curve_report(curve: TermStructure, dates: Optional[Sequence[pd.Timestamp]] = None) -> pd.DataFrame:
    """QC table at the pillars (or at the given dates)."""
    dates = list(curve.pillar_dates) if dates is None else [pd.Timestamp(d) for d in dates]
    dfs = curve.df(dates)
    taus = np.array([curve.time(d) for d in dates], dtype=float)

    with np.errstate(divide="ignore", invalid="ignore"):
        zeros = np.where(taus > 0.0, -np.log(dfs) / taus, np.nan)

    return pd.DataFrame(
        {
            "date": pd.to_datetime(dates),
            "tau": taus,
            "df": dfs,
            "zero_cc": zeros,
            "df_positive": dfs > 0,
            "df_monotone": np.r_[True, np.diff(dfs) <= 1e-10],
        }
    )
