import pandas as pd
import pytest

from fixed_income_analytics.bonds import Bond, fixed_rate_bond, floating_rate_bond, zero_coupon_bond
from fixed_income_analytics.curves import flat_curve
from fixed_income_analytics.errors import InvalidScheduleError
from fixed_income_analytics.rates import Compounding, Frequency
from fixed_income_analytics.utils import DayCounter


@pytest.fixture(scope="module")
def val_date():
    return pd.Timestamp("2026-02-13")


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


@pytest.fixture(scope="module")
def curve(val_date):
    return flat_curve(val_date, 0.04, val_date + pd.DateOffset(years=10))


def test_bullet_schedule(bond):
    assert len(bond.cashflows) == 20
    assert bond.start_date == pd.Timestamp("2021-02-15")
    assert bond.maturity_date == pd.Timestamp("2031-02-15")
    assert bond.cashflows[0].amount == pytest.approx(2.5)
    assert bond.cashflows[-1].amount == pytest.approx(102.5)
    assert [cf.date for cf in bond.redemptions] == [pd.Timestamp("2031-02-15")]


def test_bullet_notional_steps_to_zero_at_maturity(bond):
    assert bond.notional(pd.Timestamp("2021-02-15")) == 100.0
    assert bond.notional(pd.Timestamp("2031-02-14")) == 100.0
    assert bond.notional(pd.Timestamp("2031-02-15")) == 0.0
    assert bond.notional(pd.Timestamp("2032-01-01")) == 0.0
    assert bond.is_tradable(pd.Timestamp("2031-02-14"))
    assert not bond.is_tradable(pd.Timestamp("2031-02-15"))


def test_sinking_notional_changes_on_repayment_date(sinker):
    assert sinker.notional(pd.Timestamp("2024-01-15")) == 100.0
    assert sinker.notional(pd.Timestamp("2026-01-14")) == 100.0
    # on a change date the new notional already applies
    assert sinker.notional(pd.Timestamp("2026-01-15")) == 75.0
    assert sinker.notional(pd.Timestamp("2027-06-30")) == 50.0
    assert sinker.notional(pd.Timestamp("2028-01-15")) == 0.0


def test_sinking_coupons_accrue_on_outstanding(sinker):
    amounts = [cf.amount for cf in sinker.cashflows]
    assert amounts == pytest.approx([6.0, 31.0, 29.5, 53.0])
    assert [cf.principal for cf in sinker.redemptions] == pytest.approx([25.0, 25.0, 50.0])
    assert [cf.nominal for cf in sinker.cashflows] == [100.0, 100.0, 75.0, 50.0]


def test_redemption_price_scales_principal():
    bond = fixed_rate_bond("PREM", "2024-01-15", "2027-01-15", 0.04, freq=1, redemption=101.0)
    assert bond.cashflows[-1].principal == pytest.approx(101.0)
    assert bond.notional(pd.Timestamp("2025-01-15")) == 100.0


def test_invalid_sinking_schedules():
    with pytest.raises(InvalidScheduleError):
        fixed_rate_bond("BAD", "2024-01-15", "2028-01-15", 0.06, freq=1, sinking_schedule={"2026-03-01": 10.0})
    with pytest.raises(InvalidScheduleError):
        # maturity is not a sinking date
        fixed_rate_bond("BAD", "2024-01-15", "2028-01-15", 0.06, freq=1, sinking_schedule={"2028-01-15": 10.0})
    with pytest.raises(InvalidScheduleError):
        fixed_rate_bond(
            "BAD", "2024-01-15", "2028-01-15", 0.06, freq=1, sinking_schedule={"2025-01-15": 60.0, "2026-01-15": 40.0}
        )


def test_bond_validation(bond):
    with pytest.raises(InvalidScheduleError):
        Bond("X", bond.issue_date, bond.cashflows, bond.notional_dates, (100.0, 100.0))
    with pytest.raises(InvalidScheduleError):
        Bond("X", bond.issue_date, bond.cashflows, bond.notional_dates[::-1], bond.notionals)
    with pytest.raises(InvalidScheduleError):
        Bond("X", bond.issue_date, bond.cashflows, bond.notional_dates[:1], bond.notionals[:1])


def test_settlement_date(bond, val_date):
    assert bond.settlement_date(val_date) == pd.Timestamp("2026-02-15")

    # 2026-02-13 is a Friday
    weekday_lag = fixed_rate_bond("BD", "2021-02-15", "2031-02-15", 0.05, business_days=True)
    assert weekday_lag.settlement_date(val_date) == pd.Timestamp("2026-02-17")


def test_settlement_not_before_issue(val_date):
    new_issue = fixed_rate_bond("NEW", "2026-02-20", "2031-02-20", 0.045)
    assert new_issue.settlement_date(val_date) == pd.Timestamp("2026-02-20")


def test_ex_coupon_dates():
    bond = fixed_rate_bond("EX", "2025-03-01", "2027-03-01", 0.05, ex_coupon_days=7)
    assert all(cf.ex_coupon_date == cf.date - pd.Timedelta(days=7) for cf in bond.cashflows)
    assert bond.cashflows[0].trading_ex_coupon(pd.Timestamp("2025-08-26"))


def test_accrual_start_before_issue():
    bond = fixed_rate_bond("REOPEN", "2026-01-10", "2030-09-15", 0.04, accrual_start="2025-09-15")
    assert bond.start_date == pd.Timestamp("2025-09-15")
    assert bond.cashflows[0].amount == pytest.approx(2.0)
    assert bond.settlement_date(pd.Timestamp("2026-01-05")) == pd.Timestamp("2026-01-10")


def test_zero_coupon_bond():
    zcb = zero_coupon_bond("ZCB", "2020-01-01", "2030-01-01", face=1000.0)
    assert len(zcb.cashflows) == 1
    assert zcb.cashflows[0].amount == pytest.approx(1000.0)
    assert zcb.notional(pd.Timestamp("2025-06-30")) == 1000.0
    assert zcb.notional(pd.Timestamp("2030-01-01")) == 0.0


def test_floating_coupons_from_forward_curve(curve):
    frn = floating_rate_bond("FRN", "2026-02-17", "2028-02-17", curve, spread=0.01, freq=4)
    dc = DayCounter("ACT/360")
    assert len(frn.cashflows) == 8

    for cf in frn.cashflows:
        fwd = curve.forward_rate(cf.accrual_start, cf.accrual_end, Compounding.SIMPLE, Frequency.ANNUAL, dc).rate
        assert cf.rate == pytest.approx(fwd + 0.01, rel=1e-12)
        assert cf.amount - cf.principal == pytest.approx(100.0 * cf.rate * dc.year_fraction(cf.accrual_start, cf.accrual_end))

    assert frn.cashflows[-1].principal == 100.0


def test_floating_past_fixing_must_be_supplied(curve):
    with pytest.raises(ValueError):
        floating_rate_bond("FRN_OLD", "2025-11-17", "2027-11-17", curve, spread=0.01, freq=4)

    frn = floating_rate_bond(
        "FRN_OLD",
        "2025-11-17",
        "2027-11-17",
        curve,
        spread=0.01,
        gearing=1.0,
        freq=4,
        fixings={"2025-11-15": 0.043},
    )
    assert frn.cashflows[0].rate == pytest.approx(0.053)
    assert frn.cashflows[1].rate != pytest.approx(0.053)


def test_short_first_stub_reference_period():
    bond = fixed_rate_bond("UST_2010", "2005-03-15", "2010-08-31", 0.02375, day_count="ACT/ACT")
    stub, regular = bond.cashflows[0], bond.cashflows[1]
    assert stub.accrual_start == pd.Timestamp("2005-03-15")
    assert stub.reference_period_start == pd.Timestamp("2005-02-28")
    assert stub.reference_period_end == pd.Timestamp("2005-08-31")
    assert regular.ref_period_start is None
    assert regular.reference_period_start == regular.accrual_start


def test_regular_first_period_has_no_reference_override(bond):
    assert all(cf.ref_period_start is None for cf in bond.cashflows)
