"""Axis-aligned bounding boxes and distance-interval queries."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .dtypes import FLOAT_DTYPE, as_float


@dataclass(frozen=True, eq=False)
class Bound:
    """Per-dimension interval box over a set of points.

    An empty bound has ``lo = +inf`` and ``hi = -inf`` in every dimension,
    so that the union with any point or box yields that point or box.
    """

    lo: np.ndarray
    hi: np.ndarray

    @classmethod
    def empty(cls, dim: int) -> "Bound":
        return cls(
            np.full((dim,), np.inf, dtype=FLOAT_DTYPE),
            np.full((dim,), -np.inf, dtype=FLOAT_DTYPE),
        )

    @classmethod
    def from_points(cls, points: np.ndarray) -> "Bound":
        """Tightest box around ``points`` with shape ``(n, dim)``."""

        pts = as_float(points)
        if pts.shape[0] == 0:
            return cls.empty(pts.shape[1])
        return cls(np.min(pts, axis=0), np.max(pts, axis=0))

    @property
    def dim(self) -> int:
        return int(self.lo.shape[0])

    @property
    def is_empty(self) -> bool:
        return bool(np.any(self.lo > self.hi))

    @property
    def mid(self) -> np.ndarray:
        return 0.5 * (self.lo + self.hi)

    def union(self, other: "Bound") -> "Bound":
        """Smallest box covering ``self`` and ``other``."""

        return Bound(np.minimum(self.lo, other.lo), np.maximum(self.hi, other.hi))

    def union_point(self, point: np.ndarray) -> "Bound":
        """Smallest box covering ``self`` and ``point``."""

        p = as_float(point)
        return Bound(np.minimum(self.lo, p), np.maximum(self.hi, p))

    def contains(self, point: np.ndarray) -> bool:
        p = as_float(point)
        return bool(np.all((self.lo <= p) & (p <= self.hi)))

    def min_distance_sq(self, point: np.ndarray) -> float:
        """Smallest squared distance from ``point`` to any point of the box."""

        if self.is_empty:
            return float(np.inf)
        p = as_float(point)
        clipped = np.clip(p, self.lo, self.hi)
        delta = p - clipped
        return float(np.dot(delta, delta))

    def max_distance_sq(self, point: np.ndarray) -> float:
        """Largest squared distance from ``point`` to any point of the box."""

        if self.is_empty:
            return float(-np.inf)
        p = as_float(point)
        far = np.maximum(np.abs(p - self.lo), np.abs(self.hi - p))
        return float(np.dot(far, far))

    def min_distance_sq_to(self, other: "Bound") -> float:
        """Smallest squared distance between points of two boxes."""

        if self.is_empty or other.is_empty:
            return float(np.inf)
        gap = np.maximum(
            0.0,
            np.maximum(other.lo - self.hi, self.lo - other.hi),
        )
        return float(np.dot(gap, gap))

    def max_distance_sq_to(self, other: "Bound") -> float:
        """Largest squared distance between points of two boxes."""

        if self.is_empty or other.is_empty:
            return float(-np.inf)
        far = np.maximum(np.abs(self.hi - other.lo), np.abs(other.hi - self.lo))
        return float(np.dot(far, far))

    def min_to_mid_sq(self, other: "Bound") -> float:
        """Squared distance from this box to the midpoint of ``other``."""

        return self.min_distance_sq(other.mid)


__all__ = ["Bound"]
