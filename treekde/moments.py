"""Sufficient statistics for closed-form Epanechnikov kernel sums.

For points ``r_i`` the sum of squared distances to a query ``q`` is

    sum_i |q - r_i|^2 = count * q.q - 2 * q.mass + sumsq

so as long as every ``r_i`` lies inside the kernel support, the kernel
total ``sum_i (1 - |q - r_i|^2 / h^2)`` only needs ``count``, ``mass`` and
``sumsq``. These statistics merge by addition, so they can be built
bottom-up over a tree in any order.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .bounds import Bound
from .dtypes import FLOAT_DTYPE, as_float
from .errors import EmptyMomentError
from .intervals import Interval
from .kernels import EpanechnikovKernel


@dataclass(frozen=True, eq=False)
class MomentInfo:
    """Count, vector sum and sum of squared norms of a point set."""

    count: int
    mass: np.ndarray
    sumsq: float

    @classmethod
    def empty(cls, dim: int) -> "MomentInfo":
        return cls(0, np.zeros((dim,), dtype=FLOAT_DTYPE), 0.0)

    @classmethod
    def from_points(cls, points: np.ndarray) -> "MomentInfo":
        pts = as_float(points)
        return cls(
            int(pts.shape[0]),
            np.sum(pts, axis=0),
            float(np.sum(pts * pts)),
        )

    @property
    def dim(self) -> int:
        return int(self.mass.shape[0])

    @property
    def is_empty(self) -> bool:
        return self.count == 0

    @property
    def centroid(self) -> np.ndarray:
        if self.is_empty:
            raise EmptyMomentError("centroid of an empty MomentInfo is undefined")
        return self.mass / self.count

    def merge(self, other: "MomentInfo") -> "MomentInfo":
        """Statistics of the union of both point sets."""

        if other.is_empty:
            return self
        if self.is_empty:
            return other
        return MomentInfo(
            self.count + other.count,
            self.mass + other.mass,
            self.sumsq + other.sumsq,
        )

    def kernel_sum(self, kernel: EpanechnikovKernel, query: np.ndarray) -> float:
        """Exact kernel total at ``query``.

        Only valid when every summarised point is within the kernel
        bandwidth of ``query``; an empty summary contributes zero.
        """

        if self.is_empty:
            return 0.0
        q = as_float(query)
        quadratic = self.count * float(np.dot(q, q)) - 2.0 * float(np.dot(q, self.mass)) + self.sumsq
        return self.count - quadratic * kernel.inv_bandwidth_sq

    def kernel_sums(self, kernel: EpanechnikovKernel, queries: np.ndarray) -> np.ndarray:
        """Vectorised :meth:`kernel_sum` over rows of ``queries``."""

        q = as_float(queries)
        if self.is_empty:
            return np.zeros((q.shape[0],), dtype=FLOAT_DTYPE)
        quadratic = self.count * np.sum(q * q, axis=1) - 2.0 * (q @ self.mass) + self.sumsq
        return self.count - quadratic * kernel.inv_bandwidth_sq

    def _kernel_sum_at(
        self,
        kernel: EpanechnikovKernel,
        distance_sq: float,
        center_dot_center: float,
    ) -> float:
        # q.q - 2 q.r + r.r expressed through the distance to the centroid.
        quadratic = (distance_sq - center_dot_center) * self.count + self.sumsq
        return self.count - quadratic * kernel.inv_bandwidth_sq

    def kernel_sum_range(self, kernel: EpanechnikovKernel, query_bound: Bound) -> Interval:
        """Interval containing :meth:`kernel_sum` for every query in ``query_bound``."""

        if self.is_empty:
            raise EmptyMomentError("kernel sum range over an empty MomentInfo")
        center = self.centroid
        center_dot_center = float(np.dot(center, center))
        return Interval(
            self._kernel_sum_at(kernel, query_bound.max_distance_sq(center), center_dot_center),
            self._kernel_sum_at(kernel, query_bound.min_distance_sq(center), center_dot_center),
        )


__all__ = ["MomentInfo"]
