"""
Fixed Income Analytics

Modules:
- utils: day count, settlement lag, schedule dates
- rates: InterestRate with compounding conventions
- solver: safeguarded Newton root finder shared by yield, z-spread and bootstrap
- cashflows: CashFlow / Schedule + date and accrual inspectors
- analytics: NPV, yield, duration, convexity, z-spread, WAL over a schedule
- curves: TermStructure (discount curve) + QC report
- quotes: observable market quotes
- helpers: deposit / swap / bond rate helpers
- bootstrap: pillar-by-pillar curve bootstrap + lazily rebuilt curve
- bonds: Bond objects + fixed / zero / floating builders
- bond_functions: per-bond analytics (per 100 face)
- batch: thread-pool fan-out with per-item error isolation
- step_conditions: snapshot hook for finite-difference solvers
"""
from .analytics import DurationType
from .bonds import Bond, bond_from_cashflows, fixed_rate_bond, floating_rate_bond, zero_coupon_bond
from .bootstrap import Bootstrapper, BootstrapState, PiecewiseYieldCurve, bootstrap_curve
from .cashflows import CashFlow, Schedule
from .curves import TermStructure
from .errors import ConvergenceError, CurveBuildError, FixedIncomeError, InvalidScheduleError, NotTradableError
from .helpers import DepositRateHelper, FixedRateBondHelper, RateHelper, SwapRateHelper
from .quotes import SimpleQuote
from .rates import Compounding, Frequency, InterestRate
from .utils import DayCounter
