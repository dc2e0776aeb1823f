import numpy as np

from fixed_income_analytics.step_conditions import SnapshotCondition


def test_snapshot_taken_only_at_its_time():
    cond = SnapshotCondition(0.5)
    grid = np.linspace(0.0, 1.0, 5)

    cond.apply_to(grid, 0.25)
    assert cond.values is None

    cond.apply_to(grid, 0.5)
    np.testing.assert_array_equal(cond.values, grid)
    assert cond.time == 0.5


def test_snapshot_is_a_copy():
    cond = SnapshotCondition(1.0)
    values = np.array([1.0, 2.0, 3.0])
    cond.apply_to(values, 1.0)
    values[:] = 0.0
    np.testing.assert_array_equal(cond.values, [1.0, 2.0, 3.0])


def test_later_snapshot_replaces_earlier():
    cond = SnapshotCondition(2.0)
    cond.apply_to(np.ones(3), 2.0)
    cond.apply_to(np.full(3, 7.0), 2.0 + 1e-12)
    np.testing.assert_array_equal(cond.values, np.full(3, 7.0))
