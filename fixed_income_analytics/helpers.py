"""
Rate helpers: market instruments the bootstrapper calibrates the curve to.

Each helper wraps a live quote and answers two questions: which date it
pins down on the curve (pillar_date), and what its quote would be on a
trial curve (implied_quote).
"""
from __future__ import annotations

import numpy as np
import pandas as pd
from abc import ABC, abstractmethod
from typing import Optional

from . import bond_functions
from .bonds import Bond
from .errors import NotTradableError
from .quotes import SimpleQuote, as_quote
from .rates import Compounding, Frequency, InterestRate
from .utils import as_day_counter, schedule_dates


class RateHelper(ABC):
    def __init__(self, quote):
        self._quote = as_quote(quote)

    @property
    def quote(self) -> SimpleQuote:
        return self._quote

    @property
    def market_quote(self) -> float:
        return self._quote.value

    @property
    @abstractmethod
    def pillar_date(self) -> pd.Timestamp:
        ...

    @property
    def earliest_date(self) -> pd.Timestamp:
        """First date the helper reads off the curve."""
        return self.pillar_date

    @abstractmethod
    def implied_quote(self, curve) -> float:
        ...

    def quote_error(self, curve) -> float:
        return self.implied_quote(curve) - self.market_quote

    def __repr__(self) -> str:
        return f"{type(self).__name__}(pillar={self.pillar_date.date()}, quote={self._quote._value!r})"


class DepositRateHelper(RateHelper):
    """Money-market deposit quoted as a rate over [start_date, maturity_date]."""

    def __init__(
        self,
        quote,
        start_date: pd.Timestamp,
        maturity_date: pd.Timestamp,
        day_counter="ACT/360",
        compounding: Compounding = Compounding.SIMPLE,
        frequency: int = Frequency.ANNUAL,
    ):
        super().__init__(quote)
        self.start_date = pd.Timestamp(start_date)
        self.maturity_date = pd.Timestamp(maturity_date)
        if self.maturity_date <= self.start_date:
            raise ValueError("Deposit maturity must be after its start date.")

        self.day_counter = as_day_counter(day_counter)
        self.compounding = compounding
        self.frequency = frequency

    @classmethod
    def from_tenor(cls, quote, start_date: pd.Timestamp, months: int, **kwargs) -> "DepositRateHelper":
        start_date = pd.Timestamp(start_date)
        return cls(quote, start_date, start_date + pd.DateOffset(months=months), **kwargs)

    @property
    def pillar_date(self) -> pd.Timestamp:
        return self.maturity_date

    @property
    def earliest_date(self) -> pd.Timestamp:
        return self.start_date

    def implied_quote(self, curve) -> float:
        df_start, df_end = curve.df([self.start_date, self.maturity_date])
        t = self.day_counter.year_fraction(self.start_date, self.maturity_date)
        return InterestRate.implied_rate(
            float(df_start / df_end), self.day_counter, self.compounding, self.frequency, t
        ).rate


class SwapRateHelper(RateHelper):
    """
    Par rate of a vanilla fixed-for-floating swap.

    Single curve: (D(start) - D(maturity)) / sum(tau_i * D(t_i)) over the
    fixed leg. With discount_curve, the trial curve only forecasts the
    floating leg and discount_curve discounts both legs.
    """

    def __init__(
        self,
        quote,
        start_date: pd.Timestamp,
        maturity_date: pd.Timestamp,
        fixed_frequency: int = 1,
        fixed_day_counter="30/360",
        floating_frequency: int = 2,
        floating_day_counter="ACT/360",
        discount_curve=None,
    ):
        super().__init__(quote)
        self.start_date = pd.Timestamp(start_date)
        self.maturity_date = pd.Timestamp(maturity_date)
        self.fixed_day_counter = as_day_counter(fixed_day_counter)
        self.floating_day_counter = as_day_counter(floating_day_counter)
        self.discount_curve = discount_curve

        self.fixed_dates = schedule_dates(self.start_date, self.maturity_date, fixed_frequency)
        self.floating_dates = schedule_dates(self.start_date, self.maturity_date, floating_frequency)
        self._fixed_taus = np.array(
            [self.fixed_day_counter.year_fraction(s, e) for s, e in zip(self.fixed_dates[:-1], self.fixed_dates[1:])]
        )

    @classmethod
    def from_tenor(cls, quote, start_date: pd.Timestamp, years: int, **kwargs) -> "SwapRateHelper":
        start_date = pd.Timestamp(start_date)
        return cls(quote, start_date, start_date + pd.DateOffset(years=years), **kwargs)

    @property
    def pillar_date(self) -> pd.Timestamp:
        return self.maturity_date

    @property
    def earliest_date(self) -> pd.Timestamp:
        return self.start_date

    def annuity(self, discount_curve) -> float:
        return float(np.sum(self._fixed_taus * discount_curve.df(self.fixed_dates[1:])))

    def floating_leg_value(self, forecast_curve, discount_curve) -> float:
        if discount_curve is forecast_curve:
            df_start, df_end = forecast_curve.df([self.start_date, self.maturity_date])
            return float(df_start - df_end)

        fwd = forecast_curve.df(self.floating_dates)
        # forward * tau over each period is D(s)/D(e) - 1 on the forecast curve
        accrual = fwd[:-1] / fwd[1:] - 1.0
        return float(np.sum(accrual * discount_curve.df(self.floating_dates[1:])))

    def implied_quote(self, curve) -> float:
        discount = curve if self.discount_curve is None else self.discount_curve
        return self.floating_leg_value(curve, discount) / self.annuity(discount)


class FixedRateBondHelper(RateHelper):
    """Bond quoted at a clean price per 100; implied quote is the curve clean price."""

    def __init__(
        self,
        quote,
        bond: Bond,
        settle: Optional[pd.Timestamp] = None,
        val_date: Optional[pd.Timestamp] = None,
    ):
        super().__init__(quote)
        self.bond = bond
        self.settle = bond_functions.resolve_settlement(bond, settle, val_date)
        if not bond.is_tradable(self.settle):
            raise NotTradableError(self.settle, bond.maturity_date, bond.bond_id)

    @property
    def pillar_date(self) -> pd.Timestamp:
        return self.bond.maturity_date

    @property
    def earliest_date(self) -> pd.Timestamp:
        return self.settle

    def implied_quote(self, curve) -> float:
        return bond_functions.clean_price(self.bond, curve, self.settle)
