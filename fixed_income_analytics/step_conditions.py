from __future__ import annotations

import numpy as np
from typing import Optional


class SnapshotCondition:
    """Step condition that keeps a copy of the solution array at one time t."""

    def __init__(self, t: float):
        self._t = float(t)
        self._values: Optional[np.ndarray] = None

    def apply_to(self, values: np.ndarray, t: float) -> None:
        if np.isclose(t, self._t):
            self._values = np.array(values, dtype=float, copy=True)

    @property
    def time(self) -> float:
        return self._t

    @property
    def values(self) -> Optional[np.ndarray]:
        return self._values
