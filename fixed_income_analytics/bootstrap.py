"""
Curve bootstrapping.

Pillar discount factors are solved one at a time in pillar order, each with
the earlier pillars held fixed, so that every helper's implied quote matches
its market quote. Non-local interpolation (cubic) moves earlier segments when
a later pillar changes, so after the local pass the whole pillar set is
re-solved until the discount factors stop moving.
"""
from __future__ import annotations

import logging
import numpy as np
import pandas as pd
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from .config import (
    BOOTSTRAP_ACCURACY,
    BOOTSTRAP_MAX_ITERATIONS,
    BOOTSTRAP_GLOBAL_ACCURACY,
    BOOTSTRAP_MAX_GLOBAL_ITERATIONS,
    MIN_DISCOUNT_FACTOR,
    CURVE_DAY_COUNT,
)
from .curves import INTERPOLATIONS, NON_LOCAL_INTERPOLATIONS, TermStructure
from .errors import ConvergenceError, CurveBuildError
from .helpers import RateHelper
from .solver import solve
from .utils import DayCounter, as_day_counter

logger = logging.getLogger(__name__)

# zero rate used to extend the previous pillar into a first guess
_GUESS_RATE = 0.05
# bound on the forward rate between adjacent pillars, either sign
_MAX_RATE = 1.0


class BootstrapState(Enum):
    SEEDED = "seeded"
    SOLVING = "solving"
    BUILT = "built"
    FAILED = "failed"


@dataclass(frozen=True)
class PillarResult:
    index: int
    pillar_date: pd.Timestamp
    discount_factor: float
    market_quote: float
    implied_quote: float

    @property
    def residual(self) -> float:
        return self.implied_quote - self.market_quote


class Bootstrapper:
    """Builds one TermStructure from a set of rate helpers."""

    def __init__(
        self,
        helpers: Sequence[RateHelper],
        reference_date: pd.Timestamp,
        day_counter: DayCounter = DayCounter(CURVE_DAY_COUNT),
        interpolation: str = "log_linear",
        accuracy: float = BOOTSTRAP_ACCURACY,
        max_iterations: int = BOOTSTRAP_MAX_ITERATIONS,
        global_accuracy: float = BOOTSTRAP_GLOBAL_ACCURACY,
        max_global_iterations: int = BOOTSTRAP_MAX_GLOBAL_ITERATIONS,
        extrapolate: bool = False,
    ):
        if interpolation not in INTERPOLATIONS:
            raise ValueError(f"Unknown interpolation '{interpolation}', expected one of {INTERPOLATIONS}")

        self.reference_date = pd.Timestamp(reference_date)
        self.helpers: List[RateHelper] = sorted(helpers, key=lambda h: h.pillar_date)
        self.day_counter = as_day_counter(day_counter)
        self.interpolation = interpolation
        self.accuracy = accuracy
        self.max_iterations = max_iterations
        self.global_accuracy = global_accuracy
        self.max_global_iterations = max_global_iterations
        self.extrapolate = extrapolate

        self.state = BootstrapState.SEEDED
        self.results: List[PillarResult] = []
        self.curve: Optional[TermStructure] = None

        self._validate()
        self.pillar_dates = [h.pillar_date for h in self.helpers]
        self._times = np.array([self.day_counter.year_fraction(self.reference_date, d) for d in self.pillar_dates])

    def _validate(self) -> None:
        if not self.helpers:
            raise CurveBuildError("no rate helpers to bootstrap")

        ref = self.reference_date
        for i, h in enumerate(self.helpers):
            if h.pillar_date <= ref:
                raise CurveBuildError(f"pillar on or before reference date {ref.date()}", i, h.pillar_date)
            if h.earliest_date < ref:
                raise CurveBuildError(
                    f"helper needs curve date {h.earliest_date.date()} before reference date {ref.date()}",
                    i,
                    h.pillar_date,
                )
            if i > 0 and h.pillar_date == self.helpers[i - 1].pillar_date:
                raise CurveBuildError("duplicate pillar date", i, h.pillar_date)

    def _curve(self, dfs: np.ndarray, n: int, extrapolate: bool = False) -> TermStructure:
        return TermStructure(
            self.reference_date,
            self.pillar_dates[:n],
            dfs[:n],
            self.day_counter,
            self.interpolation,
            extrapolate,
        )

    def _guess(self, dfs: np.ndarray, i: int) -> float:
        prev_df = 1.0 if i == 0 else dfs[i - 1]
        prev_t = 0.0 if i == 0 else self._times[i - 1]
        return float(prev_df * np.exp(-_GUESS_RATE * (self._times[i] - prev_t)))

    def _bounds(self, dfs: np.ndarray, i: int):
        prev_df = 1.0 if i == 0 else dfs[i - 1]
        dt = self._times[i] - (0.0 if i == 0 else self._times[i - 1])
        lower = max(MIN_DISCOUNT_FACTOR, float(prev_df * np.exp(-_MAX_RATE * dt)))
        return lower, float(prev_df * np.exp(_MAX_RATE * dt))

    def _solve_pillar(self, i: int, dfs: np.ndarray, n: int, guess: float) -> float:
        helper = self.helpers[i]
        lower, upper = self._bounds(dfs, i)
        market = helper.market_quote
        trial = dfs.copy()

        def objective(x: float) -> float:
            trial[i] = x
            return helper.implied_quote(self._curve(trial, n)) - market

        try:
            x = solve(
                objective,
                guess,
                accuracy=self.accuracy,
                max_iterations=self.max_iterations,
                lower=lower,
                upper=upper,
            )
        except ConvergenceError as exc:
            raise CurveBuildError(f"pillar solve failed: {exc}", i, helper.pillar_date) from exc

        logger.debug("pillar %d (%s) solved: df=%.12f", i, helper.pillar_date.date(), x)
        return x

    def build(self) -> TermStructure:
        n = len(self.helpers)
        dfs = np.ones(n, dtype=float)
        self.state = BootstrapState.SOLVING

        try:
            for i in range(n):
                dfs[i] = self._solve_pillar(i, dfs, i + 1, self._guess(dfs, i))

            if self.interpolation in NON_LOCAL_INTERPOLATIONS:
                self._global_passes(dfs)
        except CurveBuildError:
            self.state = BootstrapState.FAILED
            raise

        curve = self._curve(dfs, n, self.extrapolate)
        self.results = [
            PillarResult(i, h.pillar_date, float(dfs[i]), h.market_quote, h.implied_quote(curve))
            for i, h in enumerate(self.helpers)
        ]
        self.curve = curve
        self.state = BootstrapState.BUILT

        logger.info(
            "bootstrapped %d pillars (%s, %s -> %s)",
            n,
            self.interpolation,
            self.reference_date.date(),
            curve.max_date.date(),
        )
        return curve

    def _global_passes(self, dfs: np.ndarray) -> None:
        n = len(dfs)
        change = float("inf")

        for iteration in range(1, self.max_global_iterations + 1):
            previous = dfs.copy()
            for i in range(n):
                dfs[i] = self._solve_pillar(i, dfs, n, dfs[i])

            change = float(np.max(np.abs(dfs - previous)))
            logger.debug("global pass %d: max df change %.3e", iteration, change)
            if change < self.global_accuracy:
                return

        raise CurveBuildError(
            f"global bootstrap did not converge in {self.max_global_iterations} passes (max df change {change:.3e})"
        )


def bootstrap_curve(helpers: Sequence[RateHelper], reference_date: pd.Timestamp, **kwargs) -> TermStructure:
    return Bootstrapper(helpers, reference_date, **kwargs).build()


class PiecewiseYieldCurve:
    """
    Bootstrapped curve that rebuilds itself when a helper quote changes.

    A quote change only marks the curve dirty; the rebuild happens on the
    next read. Quote updates and reads must not run concurrently.
    """

    def __init__(self, reference_date: pd.Timestamp, helpers: Sequence[RateHelper], **kwargs):
        self.reference_date = pd.Timestamp(reference_date)
        self.helpers = list(helpers)
        self._kwargs = kwargs

        self._curve: Optional[TermStructure] = None
        self._results: List[PillarResult] = []
        self._state = BootstrapState.SEEDED
        self._builds = 0

        for h in self.helpers:
            h.quote.register_observer(self._on_quote_change)

    def _on_quote_change(self) -> None:
        if self._curve is not None:
            logger.debug("quote changed, curve at %s marked dirty", self.reference_date.date())
        self._curve = None
        self._state = BootstrapState.SEEDED

    def detach(self) -> None:
        for h in self.helpers:
            h.quote.unregister_observer(self._on_quote_change)

    @property
    def dirty(self) -> bool:
        return self._curve is None

    @property
    def state(self) -> BootstrapState:
        return self._state

    @property
    def results(self) -> List[PillarResult]:
        if self.dirty:
            self.recalculate()
        return list(self._results)

    def recalculate(self) -> TermStructure:
        bootstrapper = Bootstrapper(self.helpers, self.reference_date, **self._kwargs)
        try:
            curve = bootstrapper.build()
        finally:
            self._state = bootstrapper.state

        self._curve = curve
        self._results = bootstrapper.results
        self._builds += 1
        if self._builds > 1:
            logger.info("curve at %s rebuilt after quote change", self.reference_date.date())
        return curve

    @property
    def curve(self) -> TermStructure:
        if self._curve is None:
            return self.recalculate()
        return self._curve

    # ---------- TermStructure queries ----------

    def df(self, dates):
        return self.curve.df(dates)

    def discount(self, date):
        return self.curve.discount(date)

    def time(self, date):
        return self.curve.time(date)

    def zero_rate(self, date, *args, **kwargs):
        return self.curve.zero_rate(date, *args, **kwargs)

    def forward_rate(self, d1, d2, *args, **kwargs):
        return self.curve.forward_rate(d1, d2, *args, **kwargs)

    @property
    def pillars(self):
        return self.curve.pillars

    @property
    def max_date(self):
        return self.curve.max_date


def bootstrap_report(curve, helpers: Sequence[RateHelper]) -> pd.DataFrame:
    """Per-helper calibration table: market vs implied quote at each pillar."""
    rows = []
    for h in sorted(helpers, key=lambda h: h.pillar_date):
        implied = h.implied_quote(curve)
        rows.append(
            {
                "pillar": h.pillar_date,
                "helper": type(h).__name__,
                "df": curve.discount(h.pillar_date),
                "market_quote": h.market_quote,
                "implied_quote": implied,
                "residual": implied - h.market_quote,
            }
        )
    return pd.DataFrame(rows)
