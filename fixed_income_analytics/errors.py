from __future__ import annotations

import pandas as pd
from typing import Optional


class FixedIncomeError(Exception):
    """Base class for analytics and curve-construction failures."""


class InvalidScheduleError(FixedIncomeError, ValueError):
    """Cash-flow dates out of order, or amount/date lists of different length."""


class NotTradableError(FixedIncomeError, ValueError):
    def __init__(
        self,
        settlement_date: pd.Timestamp,
        maturity_date: pd.Timestamp,
        bond_id: Optional[str] = None,
    ):
        self.settlement_date = pd.Timestamp(settlement_date)
        self.maturity_date = pd.Timestamp(maturity_date)
        self.bond_id = bond_id

        prefix = f"{bond_id}: " if bond_id else ""
        super().__init__(
            f"{prefix}non tradable at {self.settlement_date.date()} "
            f"(maturity being {self.maturity_date.date()})"
        )


class ConvergenceError(FixedIncomeError, RuntimeError):
    def __init__(self, message: str, iterations: int = 0, x: float = float("nan"), fx: float = float("nan")):
        self.iterations = iterations
        self.x = x
        self.fx = fx
        super().__init__(f"{message} (iterations={iterations}, x={x!r}, f(x)={fx!r})")


class CurveBuildError(FixedIncomeError, RuntimeError):
    def __init__(
        self,
        message: str,
        pillar_index: Optional[int] = None,
        pillar_date: Optional[pd.Timestamp] = None,
    ):
        self.pillar_index = pillar_index
        self.pillar_date = None if pillar_date is None else pd.Timestamp(pillar_date)
        if pillar_index is not None:
            where = f"pillar {pillar_index}"
            if self.pillar_date is not None:
                where += f" ({self.pillar_date.date()})"
            message = f"{where}: {message}"
        super().__init__(message)
