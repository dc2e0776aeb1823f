"""
Scalar root finder shared by yield, z-spread and curve-bootstrap solves.

Safeguarded Newton-Raphson: analytic derivative when supplied, centred
numeric derivative otherwise. When a Newton step is unusable (flat
derivative, step outside the valid domain or outside a known sign-change
bracket) the solve finishes with Brent's method on a bracket, searching
outward geometrically for one if none is known yet.
"""
from __future__ import annotations

import logging
import math
from typing import Callable, Optional, Tuple

from scipy.optimize import brentq

from .config import (
    ACCURACY,
    MAX_ITERATIONS,
    DERIVATIVE_FLOOR,
    NUMERIC_BUMP,
    BRACKET_STEP,
    BRACKET_GROWTH,
    MAX_BRACKET_ITERATIONS,
)
from .errors import ConvergenceError

logger = logging.getLogger(__name__)

Objective = Callable[[float], float]

# brentq stops on bracket width; keep it at machine resolution so the
# |f(x)| < accuracy test decides convergence
_XTOL = 1e-15


def _inside(x: float, lower: Optional[float], upper: Optional[float]) -> bool:
    return (lower is None or x >= lower) and (upper is None or x <= upper)


def _clip(x: float, lower: Optional[float], upper: Optional[float]) -> float:
    if lower is not None and x < lower:
        return lower
    if upper is not None and x > upper:
        return upper
    return x


def _straddles(fa: float, fb: float) -> bool:
    return math.isfinite(fa) and math.isfinite(fb) and fa * fb <= 0.0


def numeric_derivative(
    f: Objective,
    x: float,
    fx: Optional[float] = None,
    lower: Optional[float] = None,
    upper: Optional[float] = None,
    bump: float = NUMERIC_BUMP,
) -> float:
    """Centred difference with a relative bump; one-sided at a domain edge."""
    h = bump * max(1.0, abs(x))
    up, down = x + h, x - h

    if not _inside(up, lower, upper):
        fx = f(x) if fx is None else fx
        return (fx - f(down)) / h
    if not _inside(down, lower, upper):
        fx = f(x) if fx is None else fx
        return (f(up) - fx) / h
    return (f(up) - f(down)) / (2.0 * h)


def find_bracket(
    f: Objective,
    x: float,
    fx: float,
    step: float = BRACKET_STEP,
    lower: Optional[float] = None,
    upper: Optional[float] = None,
    max_evaluations: int = MAX_BRACKET_ITERATIONS,
) -> Tuple[float, float]:
    """
    Expand outward from x until f changes sign.

    Returns (lo, hi) with lo < hi. Raises ConvergenceError when the
    evaluation cap is hit first.
    """
    if not math.isfinite(fx):
        raise ConvergenceError("objective not finite at bracket start", 0, x, fx)

    a, fa = x, fx
    b = _clip(x + step, lower, upper)
    if b == a:
        b = _clip(x - step, lower, upper)
    fb = f(b)

    for _ in range(max_evaluations):
        if _straddles(fa, fb):
            return (a, b) if a < b else (b, a)

        # grow on the side that looks closer to the root
        if math.isfinite(fb) and abs(fa) < abs(fb):
            a = _clip(a + BRACKET_GROWTH * (a - b), lower, upper)
            fa = f(a)
        else:
            b = _clip(b + BRACKET_GROWTH * (b - a), lower, upper)
            fb = f(b)

    raise ConvergenceError("unable to bracket root", max_evaluations, b, fb)


def _bracketed_solve(
    f: Objective,
    x: float,
    fx: float,
    pos: Optional[float],
    neg: Optional[float],
    accuracy: float,
    remaining: int,
    lower: Optional[float],
    upper: Optional[float],
    step: float,
    used: int = 0,
) -> float:
    if remaining <= 0:
        raise ConvergenceError("maximum iterations reached", used, x, fx)

    if pos is not None and neg is not None:
        lo, hi = min(pos, neg), max(pos, neg)
    else:
        lo, hi = find_bracket(f, x, fx, step, lower, upper)

    root, info = brentq(f, lo, hi, xtol=_XTOL, maxiter=remaining, full_output=True, disp=False)
    froot = float(f(root))
    if not info.converged or not abs(froot) < accuracy:
        raise ConvergenceError("bracketed solve did not reach accuracy", used + info.iterations, root, froot)

    logger.debug("bracketed solve converged to %.12g in %d iterations", root, used + info.iterations)
    return float(root)


def solve(
    f: Objective,
    guess: float,
    accuracy: float = ACCURACY,
    max_iterations: int = MAX_ITERATIONS,
    derivative: Optional[Objective] = None,
    lower: Optional[float] = None,
    upper: Optional[float] = None,
    step: float = BRACKET_STEP,
) -> float:
    """
    Find x with |f(x)| < accuracy.

    Parameters
    ----------
    f : objective
    guess : starting point
    accuracy : tolerance on |f(x)|
    max_iterations : iteration budget shared by the Newton and bracketed stages
    derivative : optional analytic f'(x)
    lower, upper : valid domain for x (inclusive)
    step : first outward step of the bracket search

    Raises
    ------
    ConvergenceError
    """
    if max_iterations < 1:
        raise ValueError("max_iterations must be positive")

    x = _clip(float(guess), lower, upper)
    fx = float("nan")
    pos: Optional[float] = None
    neg: Optional[float] = None

    for iteration in range(1, max_iterations + 1):
        fx = float(f(x))
        if abs(fx) < accuracy:
            logger.debug("newton converged to %.12g in %d iterations", x, iteration)
            return x

        if math.isfinite(fx):
            if fx > 0.0:
                pos = x
            else:
                neg = x

        if derivative is not None:
            dfx = float(derivative(x))
        else:
            dfx = numeric_derivative(f, x, fx, lower, upper)

        candidate = None
        if math.isfinite(fx) and math.isfinite(dfx) and abs(dfx) >= DERIVATIVE_FLOOR:
            candidate = x - fx / dfx
            if not _inside(candidate, lower, upper):
                candidate = None
            elif pos is not None and neg is not None and not (min(pos, neg) <= candidate <= max(pos, neg)):
                candidate = None

        if candidate is None:
            return _bracketed_solve(
                f, x, fx, pos, neg, accuracy, max_iterations - iteration, lower, upper, step, iteration
            )

        x = candidate

    raise ConvergenceError("maximum iterations reached", max_iterations, x, fx)
