from __future__ import annotations

import math
from typing import Callable, List, Optional

Observer = Callable[[], None]


class SimpleQuote:
    """
    Mutable market quote that notifies its observers when the value changes.

    Observers are plain callables taking no arguments and are called
    synchronously from set_value.
    """

    def __init__(self, value: Optional[float] = None):
        self._value = None if value is None else float(value)
        self._observers: List[Observer] = []

    @property
    def value(self) -> float:
        if not self.is_valid:
            raise ValueError("Invalid quote: no value set.")
        return self._value

    @property
    def is_valid(self) -> bool:
        return self._value is not None and math.isfinite(self._value)

    def set_value(self, value: Optional[float]) -> float:
        """Set a new value; returns the change (0.0 when nothing changed)."""
        new = None if value is None else float(value)
        old = self._value

        if new == old:
            return 0.0

        self._value = new
        for observer in list(self._observers):
            observer()

        if new is None or old is None:
            return float("nan")
        return new - old

    def register_observer(self, observer: Observer) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def unregister_observer(self, observer: Observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def __float__(self) -> float:
        return self.value

    def __repr__(self) -> str:
        return f"SimpleQuote({self._value!r})"


def as_quote(quote) -> SimpleQuote:
    return quote if isinstance(quote, SimpleQuote) else SimpleQuote(quote)
