"""Epanechnikov kernel used for both class densities."""

from __future__ import annotations

import math
from dataclasses import dataclass

import jax.numpy as jnp
from jaxtyping import Array


def unit_ball_volume(dim: int) -> float:
    """Volume of the unit ball in ``dim`` dimensions."""

    return math.pi ** (0.5 * dim) / math.gamma(0.5 * dim + 1.0)


@dataclass(frozen=True)
class EpanechnikovKernel:
    """Unnormalised kernel ``max(0, 1 - d^2 / h^2)`` with bandwidth ``h``."""

    bandwidth: float

    def __post_init__(self) -> None:
        if not (self.bandwidth > 0.0) or not math.isfinite(self.bandwidth):
            raise ValueError(f"bandwidth must be finite and > 0, received {self.bandwidth}")

    @property
    def bandwidth_sq(self) -> float:
        return float(self.bandwidth) * float(self.bandwidth)

    @property
    def inv_bandwidth_sq(self) -> float:
        return 1.0 / self.bandwidth_sq

    def eval_unnorm_on_sq(self, distance_sq: float) -> float:
        """Kernel value at squared distance ``distance_sq``."""

        value = 1.0 - float(distance_sq) * self.inv_bandwidth_sq
        return value if value > 0.0 else 0.0

    def norm_constant(self, dim: int) -> float:
        """Integral of the unnormalised kernel over ``R^dim``."""

        volume = unit_ball_volume(dim) * self.bandwidth**dim
        return 2.0 * volume / (dim + 2.0)


def epanechnikov_on_sq(distance_sq: Array, inv_bandwidth_sq: Array) -> Array:
    """Vectorised unnormalised kernel for jax arrays of squared distances."""

    return jnp.maximum(1.0 - distance_sq * inv_bandwidth_sq, 0.0)


__all__ = ["EpanechnikovKernel", "epanechnikov_on_sq", "unit_ball_volume"]
