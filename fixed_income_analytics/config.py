# config.py
# Purpose: Numerical defaults shared by the solver, analytics and bootstrap modules

from __future__ import annotations

# Root finder
ACCURACY = 1e-10
MAX_ITERATIONS = 100
DERIVATIVE_FLOOR = 1e-14
NUMERIC_BUMP = 1e-6
BRACKET_STEP = 0.1
BRACKET_GROWTH = 1.6
MAX_BRACKET_ITERATIONS = 50

# Yield / spread solves
YIELD_GUESS = 0.05
Z_SPREAD_GUESS = 0.0
DURATION_BUMP = 1e-5

# Curve bootstrap
BOOTSTRAP_ACCURACY = 1e-10
BOOTSTRAP_MAX_ITERATIONS = 100
BOOTSTRAP_GLOBAL_ACCURACY = 1e-10
BOOTSTRAP_MAX_GLOBAL_ITERATIONS = 100
MIN_DISCOUNT_FACTOR = 1e-6
CURVE_DAY_COUNT = "ACT/365"

# Bonds
DEFAULT_SETTLEMENT_DAYS = 2
