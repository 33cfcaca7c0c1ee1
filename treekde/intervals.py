"""Closed real intervals used for density and prior bounds."""

from __future__ import annotations

import math
from typing import NamedTuple


class Interval(NamedTuple):
    """Closed interval ``[lo, hi]``; ``lo > hi`` encodes the empty set."""

    lo: float
    hi: float

    @classmethod
    def empty(cls) -> "Interval":
        return cls(math.inf, -math.inf)

    @classmethod
    def zero(cls) -> "Interval":
        return cls(0.0, 0.0)

    @property
    def is_empty(self) -> bool:
        return self.lo > self.hi

    def add(self, other: "Interval") -> "Interval":
        """Interval sum (Minkowski sum of the two ranges)."""

        return Interval(self.lo + other.lo, self.hi + other.hi)

    def union(self, other: "Interval") -> "Interval":
        """Smallest interval covering both operands."""

        return Interval(min(self.lo, other.lo), max(self.hi, other.hi))

    def open_upper(self) -> "Interval":
        """Drop the upper bound, keeping the lower one."""

        return Interval(self.lo, math.inf)

    def contains(self, value: float, *, rtol: float = 0.0, atol: float = 0.0) -> bool:
        slack = atol + rtol * abs(value)
        return (self.lo - slack) <= value <= (self.hi + slack)


__all__ = ["Interval"]
