"""Classifier parameters, traversal settings and derived constants."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .dtypes import LABEL_DTYPE
from .intervals import Interval
from .kernels import EpanechnikovKernel
from .labels import Label

# Relative width of the undecided band around the threshold.
THRESHOLD_TOLERANCE = 1e-3


@dataclass(frozen=True)
class KernelClassifierParams:
    """Problem parameters for two-class kernel density classification."""

    bandwidth_pos: float
    bandwidth_neg: float
    threshold: float = 0.5
    per_class_bounds: bool = False

    def validate(self) -> "KernelClassifierParams":
        for name in ("bandwidth_pos", "bandwidth_neg"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0.0:
                raise ValueError(f"{name} must be finite and > 0, received {value!r}")
        if not (0.0 < self.threshold < 1.0):
            raise ValueError(f"threshold must lie in (0, 1), received {self.threshold!r}")
        return self

    @property
    def epsilon(self) -> float:
        return min(self.threshold, 1.0 - self.threshold) * THRESHOLD_TOLERANCE

    @property
    def kernel_pos(self) -> EpanechnikovKernel:
        return EpanechnikovKernel(float(self.bandwidth_pos))

    @property
    def kernel_neg(self) -> EpanechnikovKernel:
        return EpanechnikovKernel(float(self.bandwidth_neg))


@dataclass(frozen=True)
class TraversalConfig:
    """Tree and scheduling parameters for the dual-tree walk."""

    leaf_size: int = 16
    frontier_depth: int = 0
    max_workers: int = 1

    def validate(self) -> "TraversalConfig":
        if self.leaf_size < 1:
            raise ValueError(f"leaf_size must be >= 1, received {self.leaf_size}")
        if self.frontier_depth < 0:
            raise ValueError(f"frontier_depth must be >= 0, received {self.frontier_depth}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, received {self.max_workers}")
        return self


_GLOBAL_TRAVERSAL_CONFIG: Optional[TraversalConfig] = None


def set_default_traversal_config(config: Optional[TraversalConfig]) -> None:
    """Set the module-level fallback configuration for classification runs."""

    if config is not None:
        config.validate()

    global _GLOBAL_TRAVERSAL_CONFIG
    _GLOBAL_TRAVERSAL_CONFIG = config


def resolve_traversal_config(config: Optional[TraversalConfig]) -> TraversalConfig:
    """Return ``config``, else the module default, else built-in defaults."""

    if config is not None:
        return config.validate()
    if _GLOBAL_TRAVERSAL_CONFIG is not None:
        return _GLOBAL_TRAVERSAL_CONFIG
    return TraversalConfig()


@dataclass(frozen=True)
class ThresholdConstants:
    """Per-class factors for the dominance test.

    Positive wins for a region when

        const_pos.lo * density_pos.lo * pi_pos.lo
            > const_neg.hi * density_neg.hi * pi_neg.hi

    The factors fold in the kernel normalisation, the class sizes and the
    threshold, widened by ``epsilon`` so ties stay undecided.
    """

    const_pos: Interval
    const_neg: Interval
    norm_pos: float
    norm_neg: float

    @classmethod
    def compute(
        cls,
        params: KernelClassifierParams,
        dim: int,
        count_pos: int,
        count_neg: int,
    ) -> "ThresholdConstants":
        if count_pos < 1 or count_neg < 1:
            raise ValueError(
                "both classes need at least one reference point; "
                f"received count_pos={count_pos}, count_neg={count_neg}"
            )
        threshold = params.threshold
        epsilon = params.epsilon
        norm_pos = params.kernel_pos.norm_constant(dim) * count_pos
        norm_neg = params.kernel_neg.norm_constant(dim) * count_neg
        return cls(
            const_pos=Interval(
                (1.0 - threshold - epsilon) / norm_pos,
                (1.0 - threshold + epsilon) / norm_pos,
            ),
            const_neg=Interval(
                (threshold - epsilon) / norm_neg,
                (threshold + epsilon) / norm_neg,
            ),
            norm_pos=norm_pos,
            norm_neg=norm_neg,
        )

    def dominant_label(
        self,
        density_pos: Interval,
        density_neg: Interval,
        pi_pos: Interval,
        pi_neg: Interval,
    ) -> Label:
        """Label certified by interval densities and priors.

        Returns ``Label.EITHER`` when neither class provably dominates.
        """

        if (
            self.const_pos.lo * density_pos.lo * pi_pos.lo
            > self.const_neg.hi * density_neg.hi * pi_neg.hi
        ):
            return Label.POS
        if (
            self.const_neg.lo * density_neg.lo * pi_neg.lo
            > self.const_pos.hi * density_pos.hi * pi_pos.hi
        ):
            return Label.NEG
        return Label.EITHER

    def dominant_labels(
        self,
        pos_lo: np.ndarray,
        pos_hi: np.ndarray,
        neg_lo: np.ndarray,
        neg_hi: np.ndarray,
        pi_pos: np.ndarray,
    ) -> np.ndarray:
        """Vectorised :meth:`dominant_label` for exact per-point priors."""

        pi_neg = 1.0 - pi_pos
        with np.errstate(invalid="ignore"):
            pos_wins = self.const_pos.lo * pos_lo * pi_pos > self.const_neg.hi * neg_hi * pi_neg
            neg_wins = self.const_neg.lo * neg_lo * pi_neg > self.const_pos.hi * pos_hi * pi_pos
        labels = np.full(pos_lo.shape, int(Label.EITHER), dtype=LABEL_DTYPE)
        labels = np.where(neg_wins, int(Label.NEG), labels)
        labels = np.where(pos_wins, int(Label.POS), labels)
        return labels.astype(LABEL_DTYPE)


__all__ = [
    "THRESHOLD_TOLERANCE",
    "KernelClassifierParams",
    "ThresholdConstants",
    "TraversalConfig",
    "resolve_traversal_config",
    "set_default_traversal_config",
]
