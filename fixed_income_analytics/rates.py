from __future__ import annotations

import math
import numpy as np
import pandas as pd
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Union

from .utils import DayCounter, as_day_counter

ArrayLike = Union[float, np.ndarray]


class Compounding(Enum):
    SIMPLE = "simple"
    COMPOUNDED = "compounded"
    CONTINUOUS = "continuous"
    SIMPLE_THEN_COMPOUNDED = "simple_then_compounded"


class Frequency(IntEnum):
    ONCE = 0
    ANNUAL = 1
    SEMIANNUAL = 2
    QUARTERLY = 4
    MONTHLY = 12


_NEEDS_FREQUENCY = (Compounding.COMPOUNDED, Compounding.SIMPLE_THEN_COMPOUNDED)


@dataclass(frozen=True)
class InterestRate:
    """
    Rate plus the conventions needed to turn it into discount factors.

    compound_factor / discount_factor accept a scalar time or a numpy array
    of times (year fractions under day_counter).
    """
    rate: float
    day_counter: DayCounter = DayCounter("ACT/365")
    compounding: Compounding = Compounding.COMPOUNDED
    frequency: int = Frequency.ANNUAL

    def __post_init__(self):
        object.__setattr__(self, "day_counter", as_day_counter(self.day_counter))
        object.__setattr__(self, "rate", float(self.rate))
        if self.compounding in _NEEDS_FREQUENCY and int(self.frequency) <= 0:
            raise ValueError(f"{self.compounding.value} compounding needs a positive frequency")

    def compound_factor(self, t: ArrayLike) -> ArrayLike:
        t = np.asarray(t, dtype=float)
        r = self.rate
        f = float(self.frequency)

        if self.compounding is Compounding.SIMPLE:
            out = 1.0 + r * t
        elif self.compounding is Compounding.COMPOUNDED:
            out = np.power(1.0 + r / f, f * t)
        elif self.compounding is Compounding.CONTINUOUS:
            out = np.exp(r * t)
        else:
            out = np.where(t <= 1.0 / f, 1.0 + r * t, np.power(1.0 + r / f, f * t))

        return float(out) if out.ndim == 0 else out

    def discount_factor(self, t: ArrayLike) -> ArrayLike:
        return 1.0 / self.compound_factor(t)

    def time(self, start: pd.Timestamp, end: pd.Timestamp) -> float:
        return self.day_counter.year_fraction(start, end)

    def compound_factor_between(self, start: pd.Timestamp, end: pd.Timestamp) -> float:
        return self.compound_factor(self.time(start, end))

    def discount_factor_between(self, start: pd.Timestamp, end: pd.Timestamp) -> float:
        return self.discount_factor(self.time(start, end))

    def with_rate(self, rate: float) -> "InterestRate":
        return InterestRate(rate, self.day_counter, self.compounding, self.frequency)

    @classmethod
    def implied_rate(
        cls,
        compound: float,
        day_counter: DayCounter,
        compounding: Compounding,
        frequency: int,
        t: float,
    ) -> "InterestRate":
        """Rate whose compound factor over t equals ``compound``."""
        if compound <= 0.0:
            raise ValueError(f"positive compound factor required: {compound}")

        if compound == 1.0:
            if t < 0.0:
                raise ValueError(f"non-negative time required: {t}")
            return cls(0.0, day_counter, compounding, frequency)

        if t <= 0.0:
            raise ValueError(f"positive time required: {t}")

        f = float(frequency)
        if compounding is Compounding.SIMPLE:
            r = (compound - 1.0) / t
        elif compounding is Compounding.COMPOUNDED:
            r = (compound ** (1.0 / (f * t)) - 1.0) * f
        elif compounding is Compounding.CONTINUOUS:
            r = math.log(compound) / t
        elif t <= 1.0 / f:
            r = (compound - 1.0) / t
        else:
            r = (compound ** (1.0 / (f * t)) - 1.0) * f

        return cls(r, day_counter, compounding, frequency)

    def equivalent_rate(
        self,
        compounding: Compounding,
        frequency: int,
        t: float,
        day_counter: DayCounter = None,
    ) -> "InterestRate":
        dc = self.day_counter if day_counter is None else as_day_counter(day_counter)
        return InterestRate.implied_rate(self.compound_factor(t), dc, compounding, frequency, t)

    def __str__(self) -> str:
        return f"{self.rate:.6%} {self.day_counter} {self.compounding.value} freq={int(self.frequency)}"
