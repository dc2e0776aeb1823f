import numpy as np
import pandas as pd
import pytest

from fixed_income_analytics import bond_functions as bf
from fixed_income_analytics.analytics import DurationType
from fixed_income_analytics.bonds import fixed_rate_bond
from fixed_income_analytics.curves import flat_curve
from fixed_income_analytics.errors import NotTradableError
from fixed_income_analytics.rates import Compounding, Frequency
from fixed_income_analytics.utils import DayCounter

DC = DayCounter("ACT/365")
SEMI = (DC, Compounding.COMPOUNDED, Frequency.SEMIANNUAL)


@pytest.fixture(scope="module")
def val_date():
    return pd.Timestamp("2026-02-13")


@pytest.fixture(scope="module")
def curve(val_date):
    return flat_curve(val_date, 0.04, val_date + pd.DateOffset(years=10))


@pytest.fixture(scope="module")
def bond():
    return fixed_rate_bond("CORP_5Y_5PCT", "2021-02-15", "2031-02-15", 0.05, freq=2, day_count="30/360")


@pytest.fixture(scope="module")
def sinker():
    return fixed_rate_bond(
        "SINK_6PCT_2028",
        "2024-01-15",
        "2028-01-15",
        0.06,
        freq=1,
        sinking_schedule={"2026-01-15": 25.0, "2027-01-15": 25.0},
    )


def test_dirty_clean_identity(curve, val_date, bond):
    dirty, clean, ai = bf.BondPricer(curve).price(bond, val_date, pd.Timestamp("2026-05-20"))
    assert np.isfinite(dirty) and np.isfinite(clean) and np.isfinite(ai)
    assert abs((dirty - ai) - clean) < 1e-10, "clean must equal dirty - accrued"
    assert dirty == pytest.approx(bf.dirty_price(bond, curve, pd.Timestamp("2026-05-20")))


def test_accrued_interest_zero_on_coupon_date(curve, val_date, bond):
    """Coupon cycle is Feb 15 / Aug 15 and T+2 from the 13th lands on the 15th."""
    dirty, clean, ai = bf.BondPricer(curve).price(bond, val_date)
    assert abs(ai) < 1e-10, "Accrued interest should be ~0 on coupon date"
    assert abs(dirty - clean) < 1e-10, "Dirty and clean should match on coupon date"


def test_accrued_interest_positive_day_after_coupon_date(bond):
    settle = pd.Timestamp("2026-02-16")
    assert bf.accrued_amount(bond, settle) == pytest.approx(100.0 * 0.05 / 360.0)
    assert bf.accrued_days(bond, settle) == 1


def test_accrual_inspectors(bond):
    settle = pd.Timestamp("2026-05-15")
    assert bf.accrued_days_and_amount(bond, settle) == (90, pytest.approx(1.25))
    assert bf.accrual_start_date(bond, settle) == pd.Timestamp("2026-02-15")
    assert bf.accrual_end_date(bond, settle) == pd.Timestamp("2026-08-15")
    assert bf.accrual_period(bond, settle) == pytest.approx(0.5)
    assert bf.accrual_days(bond, settle) == 180
    assert bf.accrued_period(bond, settle) == pytest.approx(0.25)
    assert bf.previous_coupon_rate(bond, settle) == pytest.approx(0.05)
    assert bf.next_coupon_rate(bond, settle) == pytest.approx(0.05)
    assert bf.start_date(bond) == pd.Timestamp("2021-02-15")
    assert bf.maturity_date(bond) == pd.Timestamp("2031-02-15")


def test_settlement_from_val_date(bond, val_date):
    assert bf.accrued_amount(bond, val_date=pd.Timestamp("2026-05-13")) == pytest.approx(1.25)
    assert bf.is_tradable(bond, val_date=val_date)


def test_expired_bond_not_tradable(curve, bond):
    at_maturity = pd.Timestamp("2031-02-15")
    assert not bf.is_tradable(bond, at_maturity)

    with pytest.raises(NotTradableError) as err:
        bf.accrued_amount(bond, at_maturity)
    assert err.value.maturity_date == at_maturity
    assert "CORP_5Y_5PCT" in str(err.value)

    for fn in (bf.clean_price, bf.dirty_price, bf.bps):
        with pytest.raises(NotTradableError):
            fn(bond, curve, at_maturity)
    with pytest.raises(NotTradableError):
        bf.bond_yield(bond, 100.0, *SEMI, at_maturity)


def test_cash_flow_navigation_works_after_maturity(bond):
    after = pd.Timestamp("2031-03-01")
    assert bf.previous_cash_flow_date(bond, after) == pd.Timestamp("2031-02-15")
    assert bf.previous_cash_flow_amount(bond, after) == pytest.approx(102.5)
    assert bf.next_cash_flow(bond, after) is None
    assert bf.next_cash_flow_date(bond, pd.Timestamp("2026-05-15")) == pd.Timestamp("2026-08-15")
    assert bf.next_cash_flow_amount(bond, pd.Timestamp("2026-05-15")) == pytest.approx(2.5)
    assert bf.previous_cash_flow(bond, pd.Timestamp("2021-01-01")) is None


def test_clean_price_decreases_in_yield(bond):
    settle = pd.Timestamp("2026-05-15")
    prices = [bf.clean_price_from_yield(bond, y, *SEMI, settle) for y in np.linspace(0.01, 0.09, 9)]
    assert np.all(np.diff(prices) < 0.0)


def test_yield_round_trip(bond):
    settle = pd.Timestamp("2026-05-15")
    clean = bf.clean_price_from_yield(bond, 0.0475, *SEMI, settle)
    assert bf.bond_yield(bond, clean, *SEMI, settle) == pytest.approx(0.0475, abs=1e-8)

    dirty = bf.dirty_price_from_yield(bond, 0.0475, *SEMI, settle)
    assert dirty - clean == pytest.approx(bf.accrued_amount(bond, settle))
    assert bf.bond_yield(bond, dirty, *SEMI, settle, clean=False) == pytest.approx(0.0475, abs=1e-8)


def test_par_bond_yields_coupon_on_coupon_date(bond):
    settle = pd.Timestamp("2026-02-15")
    dc = DayCounter("30/360")
    y = bf.bond_yield(bond, 100.0, dc, Compounding.COMPOUNDED, Frequency.SEMIANNUAL, settle)
    assert y == pytest.approx(0.05, abs=1e-8)


def test_z_spread_recovery(curve, bond):
    settle = pd.Timestamp("2026-05-15")
    clean = bf.clean_price_from_z_spread(bond, curve, 0.015, *SEMI, settle)
    assert clean < bf.clean_price(bond, curve, settle)
    assert bf.z_spread(bond, clean, curve, *SEMI, settle) == pytest.approx(0.015, abs=1e-8)


def test_atm_rate_recovers_coupon(curve, bond):
    settle = pd.Timestamp("2026-05-15")
    assert bf.atm_rate(bond, curve, settle) == pytest.approx(0.05, abs=1e-12)

    own_clean = bf.clean_price(bond, curve, settle)
    assert bf.atm_rate(bond, curve, settle, clean_price=own_clean) == pytest.approx(0.05, abs=1e-10)
    assert bf.atm_rate(bond, curve, settle, clean_price=own_clean + 1.0) > 0.05


def test_bps_matches_coupon_bump(curve):
    settle = pd.Timestamp("2026-05-15")
    base = fixed_rate_bond("B0", "2021-02-15", "2031-02-15", 0.05)
    bumped = fixed_rate_bond("B1", "2021-02-15", "2031-02-15", 0.0501)
    diff = bf.dirty_price(bumped, curve, settle) - bf.dirty_price(base, curve, settle)
    assert bf.bps(base, curve, settle) == pytest.approx(diff, rel=1e-9)
    assert bf.bps_from_yield(base, 0.04, *SEMI, settle) > 0.0


def test_duration_and_convexity(bond):
    settle = pd.Timestamp("2026-05-15")
    mac = bf.duration(bond, 0.045, *SEMI, DurationType.MACAULAY, settle)
    mod = bf.duration(bond, 0.045, *SEMI, DurationType.MODIFIED, settle)
    assert 0.0 < mod < mac < 5.0
    assert bf.convexity(bond, 0.045, *SEMI, settle) > 0.0


def test_basis_point_value_and_yvbp(bond):
    settle = pd.Timestamp("2026-05-15")
    bpv = bf.basis_point_value(bond, 0.045, *SEMI, settle)
    moved = bf.clean_price_from_yield(bond, 0.0451, *SEMI, settle) - bf.clean_price_from_yield(bond, 0.045, *SEMI, settle)
    assert bpv < 0.0
    assert bpv == pytest.approx(moved, rel=1e-4)

    yvbp = bf.yield_value_basis_point(bond, 0.045, *SEMI, settle)
    assert yvbp < 0.0
    # a 0.01 price move in yield terms is a fraction of a basis point here
    assert abs(yvbp) < 1e-4


def test_amortizing_accrued_is_per_100_outstanding(sinker):
    settle = pd.Timestamp("2026-07-15")
    assert sinker.notional(settle) == 75.0
    assert bf.accrued_amount(sinker, settle) == pytest.approx(3.0)


def test_amortizing_price_per_100_outstanding(sinker):
    settle = pd.Timestamp("2026-07-15")
    dirty = bf.dirty_price_from_yield(sinker, 0.06, DayCounter("30/360"), Compounding.COMPOUNDED, Frequency.ANNUAL, settle)
    # priced at its own coupon a sinker sits near par per 100 outstanding
    assert dirty - bf.accrued_amount(sinker, settle) == pytest.approx(100.0, abs=0.5)


def test_bond_weighted_average_life(sinker, bond):
    assert bf.bond_weighted_average_life(sinker, pd.Timestamp("2024-01-15")) == pd.Timestamp("2027-04-16")
    assert bf.bond_weighted_average_life(bond, pd.Timestamp("2026-02-15")) == pd.Timestamp("2031-02-15")
    assert bf.weighted_average_life(
        pd.Timestamp("2026-01-01"), [100.0], [pd.Timestamp("2027-01-01")]
    ) == pd.Timestamp("2027-01-01")


def test_reference_period_inspectors(bond):
    settle = pd.Timestamp("2026-05-15")
    assert bf.reference_period_start(bond, settle) == pd.Timestamp("2026-02-15")
    assert bf.reference_period_end(bond, settle) == pd.Timestamp("2026-08-15")

    stub = fixed_rate_bond("UST_2010", "2005-03-15", "2010-08-31", 0.02375, day_count="ACT/ACT")
    assert bf.reference_period_start(stub, pd.Timestamp("2005-05-02")) == pd.Timestamp("2005-02-28")
    assert bf.reference_period_end(stub, pd.Timestamp("2005-05-02")) == pd.Timestamp("2005-08-31")

    with pytest.raises(NotTradableError):
        bf.reference_period_start(bond, pd.Timestamp("2031-02-15"))


def test_final_ex_coupon_window_still_prices_redemption():
    bond = fixed_rate_bond("EX_2030", "2020-01-15", "2030-01-15", 0.05, ex_coupon_days=7)
    settle = pd.Timestamp("2030-01-10")
    curve = flat_curve(pd.Timestamp("2030-01-08"), 0.03, pd.Timestamp("2031-01-08"))

    dirty = bf.dirty_price(bond, curve, settle)
    ai = bf.accrued_amount(bond, settle)
    assert 99.0 < dirty < 100.0
    # five days of the final coupon go to the seller
    assert ai == pytest.approx(-100.0 * 0.05 * 5 / 360.0)
    assert bf.clean_price(bond, curve, settle) == pytest.approx(dirty - ai)
    assert bf.bond_yield(bond, bf.clean_price(bond, curve, settle), *SEMI, settle) > 0.0


@pytest.mark.parametrize("face", [1e6, 1e7])
def test_yield_and_z_spread_independent_of_face(curve, face):
    settle = pd.Timestamp("2026-05-15")
    small = fixed_rate_bond("SMALL", "2021-02-15", "2031-02-15", 0.05)
    big = fixed_rate_bond("BIG", "2021-02-15", "2031-02-15", 0.05, face=face)
    dc = DayCounter("30/360")

    expected = bf.bond_yield(small, 98.5, dc, Compounding.COMPOUNDED, Frequency.SEMIANNUAL, settle)
    y = bf.bond_yield(big, 98.5, dc, Compounding.COMPOUNDED, Frequency.SEMIANNUAL, settle)
    assert y == pytest.approx(expected, abs=1e-9)

    clean = bf.clean_price_from_yield(big, 0.0475, *SEMI, settle)
    assert bf.bond_yield(big, clean, *SEMI, settle) == pytest.approx(0.0475, abs=1e-8)

    clean = bf.clean_price_from_z_spread(big, curve, 0.015, *SEMI, settle)
    assert bf.z_spread(big, clean, curve, *SEMI, settle) == pytest.approx(0.015, abs=1e-8)
