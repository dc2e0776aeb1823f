"""
Batch fan-out over the bond analytics.

One task per request, run on a thread pool. Requests share nothing mutable
(a built TermStructure is read-only), and the failure of one item is
recorded on its result instead of aborting the batch.
"""
from __future__ import annotations

import logging
import pandas as pd
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple

from . import bond_functions
from .analytics import DurationType
from .bonds import Bond
from .config import ACCURACY, MAX_ITERATIONS, YIELD_GUESS
from .rates import Compounding, Frequency
from .utils import DayCounter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class YieldRequest:
    id: str
    bond: Bond
    clean_price: float
    day_counter: DayCounter = DayCounter("ACT/365")
    compounding: Compounding = Compounding.COMPOUNDED
    frequency: int = Frequency.ANNUAL
    settle: Optional[pd.Timestamp] = None
    val_date: Optional[pd.Timestamp] = None
    accuracy: float = ACCURACY
    max_iterations: int = MAX_ITERATIONS
    guess: float = YIELD_GUESS


@dataclass(frozen=True)
class DurationRequest:
    id: str
    bond: Bond
    yield_: float
    day_counter: DayCounter = DayCounter("ACT/365")
    compounding: Compounding = Compounding.COMPOUNDED
    frequency: int = Frequency.ANNUAL
    duration_type: DurationType = DurationType.MODIFIED
    settle: Optional[pd.Timestamp] = None
    val_date: Optional[pd.Timestamp] = None


@dataclass(frozen=True)
class AccruedRequest:
    id: str
    bond: Bond
    settle: Optional[pd.Timestamp] = None
    val_date: Optional[pd.Timestamp] = None


@dataclass(frozen=True)
class WalRequest:
    id: str
    today: pd.Timestamp
    amounts: Tuple[float, ...]
    schedule: Tuple[pd.Timestamp, ...]


@dataclass(frozen=True)
class BondFunctionsRequest:
    id: str
    bond: Bond
    clean_price: float
    day_counter: DayCounter = DayCounter("ACT/365")
    compounding: Compounding = Compounding.COMPOUNDED
    frequency: int = Frequency.ANNUAL
    settle: Optional[pd.Timestamp] = None
    val_date: Optional[pd.Timestamp] = None


@dataclass(frozen=True)
class BatchResult:
    id: str
    result: Any = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


Task = Tuple[str, Callable[[], Any]]


def _run_one(task_id: str, fn: Callable[[], Any]) -> BatchResult:
    try:
        return BatchResult(task_id, fn())
    except Exception as exc:
        logger.warning("batch item %s failed: %s: %s", task_id, type(exc).__name__, exc)
        return BatchResult(task_id, None, str(exc), type(exc).__name__)


def run_batch(tasks: Sequence[Task], max_workers: Optional[int] = None) -> List[BatchResult]:
    """Run (id, callable) tasks concurrently; results come back in input order."""
    if not tasks:
        return []

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [pool.submit(_run_one, task_id, fn) for task_id, fn in tasks]
        return [f.result() for f in futures]


def calculate_yields(requests: Sequence[YieldRequest], max_workers: Optional[int] = None) -> List[BatchResult]:
    def task(r: YieldRequest):
        return lambda: bond_functions.bond_yield(
            r.bond,
            r.clean_price,
            r.day_counter,
            r.compounding,
            r.frequency,
            r.settle,
            r.val_date,
            r.accuracy,
            r.max_iterations,
            r.guess,
        )

    return run_batch([(r.id, task(r)) for r in requests], max_workers)


def calculate_durations(requests: Sequence[DurationRequest], max_workers: Optional[int] = None) -> List[BatchResult]:
    def task(r: DurationRequest):
        return lambda: bond_functions.duration(
            r.bond, r.yield_, r.day_counter, r.compounding, r.frequency, r.duration_type, r.settle, r.val_date
        )

    return run_batch([(r.id, task(r)) for r in requests], max_workers)


def calculate_accrued(requests: Sequence[AccruedRequest], max_workers: Optional[int] = None) -> List[BatchResult]:
    def task(r: AccruedRequest):
        return lambda: bond_functions.accrued_amount(r.bond, r.settle, r.val_date)

    return run_batch([(r.id, task(r)) for r in requests], max_workers)


def calculate_wal(requests: Sequence[WalRequest], max_workers: Optional[int] = None) -> List[BatchResult]:
    def task(r: WalRequest):
        return lambda: bond_functions.weighted_average_life(r.today, r.amounts, r.schedule)

    return run_batch([(r.id, task(r)) for r in requests], max_workers)


def _bond_functions_summary(r: BondFunctionsRequest) -> dict:
    settle = bond_functions.resolve_settlement(r.bond, r.settle, r.val_date)
    days, accrued = bond_functions.accrued_days_and_amount(r.bond, settle)
    y = bond_functions.bond_yield(r.bond, r.clean_price, r.day_counter, r.compounding, r.frequency, settle)

    return {
        "settlement_date": settle,
        "accrued_days": days,
        "accrued_amount": accrued,
        "weighted_average_life": bond_functions.bond_weighted_average_life(r.bond, settle),
        "yield": y,
        "modified_duration": bond_functions.duration(
            r.bond, y, r.day_counter, r.compounding, r.frequency, DurationType.MODIFIED, settle
        ),
    }


def calculate_bond_functions(
    requests: Sequence[BondFunctionsRequest],
    max_workers: Optional[int] = None,
) -> List[BatchResult]:
    return run_batch([(r.id, (lambda r=r: _bond_functions_summary(r))) for r in requests], max_workers)


def results_to_frame(results: Sequence[BatchResult]) -> pd.DataFrame:
    """One row per item; dict results are spread into columns."""
    rows = []
    for res in results:
        row = {"id": res.id, "error": res.error, "error_type": res.error_type}
        if isinstance(res.result, dict):
            row.update(res.result)
        else:
            row["result"] = res.result
        rows.append(row)
    return pd.DataFrame(rows)
