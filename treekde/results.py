"""Accumulators carried through the dual-tree walk.

``Postponed`` holds evidence resolved for a whole query subtree that has
not been pushed to its points yet. ``Delta`` bounds what one reference
node may still add to a query node. ``SummaryResult`` bounds the totals of
every point below a query node, ``QueryResults`` stores the per-point
``Result`` rows and ``GlobalResult`` tallies final labels for a run.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np

from .bounds import Bound
from .config import ThresholdConstants
from .dtypes import FLOAT_DTYPE, LABEL_DTYPE, as_float
from .intervals import Interval
from .kdtree import KDTree
from .kernels import EpanechnikovKernel
from .labels import Label, is_resolved, narrow, narrow_array, widen
from .moments import MomentInfo


class Delta(NamedTuple):
    """Bound on the densities a reference node can still contribute."""

    d_density_pos: Interval
    d_density_neg: Interval

    @classmethod
    def zero(cls) -> "Delta":
        return cls(Interval.zero(), Interval.zero())

    def add(self, other: "Delta") -> "Delta":
        return Delta(
            self.d_density_pos.add(other.d_density_pos),
            self.d_density_neg.add(other.d_density_neg),
        )


@dataclass(frozen=True, eq=False)
class Postponed:
    """Contribution recorded for a query subtree but not yet applied."""

    moment_info_pos: MomentInfo
    moment_info_neg: MomentInfo
    label: Label = Label.EITHER

    @classmethod
    def empty(cls, dim: int) -> "Postponed":
        return cls(MomentInfo.empty(dim), MomentInfo.empty(dim), Label.EITHER)

    @property
    def is_trivial(self) -> bool:
        return (
            self.label == Label.EITHER
            and self.moment_info_pos.is_empty
            and self.moment_info_neg.is_empty
        )

    def merge(self, other: "Postponed") -> "Postponed":
        """Combine two postponed contributions for the same points."""

        if other.is_trivial:
            return self
        return Postponed(
            self.moment_info_pos.merge(other.moment_info_pos),
            self.moment_info_neg.merge(other.moment_info_neg),
            narrow(self.label, other.label),
        )

    def with_label(self, label: Label) -> "Postponed":
        return Postponed(
            self.moment_info_pos,
            self.moment_info_neg,
            narrow(self.label, label),
        )

    def cleared(self) -> "Postponed":
        return Postponed.empty(self.moment_info_pos.dim)


class Result(NamedTuple):
    """Exact running totals and label of a single query point."""

    density_pos: float
    density_neg: float
    label: Label


@dataclass(frozen=True)
class SummaryResult:
    """Interval bounds over all point results of a query subtree."""

    density_pos: Interval
    density_neg: Interval
    label: Label

    @classmethod
    def initial(cls) -> "SummaryResult":
        return cls(Interval.zero(), Interval.zero(), Label.EITHER)

    @classmethod
    def from_results(
        cls,
        density_pos: np.ndarray,
        density_neg: np.ndarray,
        labels: np.ndarray,
    ) -> "SummaryResult":
        """Summary over a block of point results.

        Rows whose label is already decided stop accumulating, so their
        totals only bound the true densities from below.
        """

        decided = (labels == int(Label.POS)) | (labels == int(Label.NEG))
        open_hi = bool(np.any(decided))
        return cls(
            Interval(
                float(np.min(density_pos)),
                math.inf if open_hi else float(np.max(density_pos)),
            ),
            Interval(
                float(np.min(density_neg)),
                math.inf if open_hi else float(np.max(density_neg)),
            ),
            Label(int(np.bitwise_or.reduce(labels.astype(LABEL_DTYPE)))),
        )

    @property
    def is_resolved(self) -> bool:
        return is_resolved(self.label)

    def start_reaccumulate(self) -> "SummaryResult":
        return SummaryResult(Interval.empty(), Interval.empty(), Label.NEITHER)

    def accumulate(self, other: "SummaryResult") -> "SummaryResult":
        return SummaryResult(
            self.density_pos.union(other.density_pos),
            self.density_neg.union(other.density_neg),
            widen(self.label, other.label),
        )

    def accumulate_result(self, result: Result) -> "SummaryResult":
        decided = is_resolved(result.label)
        pos_hi = math.inf if decided else result.density_pos
        neg_hi = math.inf if decided else result.density_neg
        return SummaryResult(
            self.density_pos.union(Interval(result.density_pos, pos_hi)),
            self.density_neg.union(Interval(result.density_neg, neg_hi)),
            widen(self.label, result.label),
        )

    def finish_reaccumulate(self) -> "SummaryResult":
        return self

    def apply_delta(self, delta: Delta) -> "SummaryResult":
        return SummaryResult(
            self.density_pos.add(delta.d_density_pos),
            self.density_neg.add(delta.d_density_neg),
            self.label,
        )

    def apply_postponed(
        self,
        postponed: Postponed,
        query_bound: Bound,
        kernel_pos: EpanechnikovKernel,
        kernel_neg: EpanechnikovKernel,
    ) -> "SummaryResult":
        """Fold a node's own postponed contribution into the bounds."""

        density_pos = self.density_pos
        density_neg = self.density_neg
        if not postponed.moment_info_pos.is_empty:
            density_pos = density_pos.add(
                postponed.moment_info_pos.kernel_sum_range(kernel_pos, query_bound)
            )
        if not postponed.moment_info_neg.is_empty:
            density_neg = density_neg.add(
                postponed.moment_info_neg.kernel_sum_range(kernel_neg, query_bound)
            )
        label = self.label
        if postponed.label != Label.EITHER:
            label = narrow(label, postponed.label)
        return SummaryResult(density_pos, density_neg, label)

    def open_upper(self) -> "SummaryResult":
        return SummaryResult(
            self.density_pos.open_upper(),
            self.density_neg.open_upper(),
            self.label,
        )


@dataclass(frozen=True)
class GlobalResult:
    """Run-level tally of final labels."""

    count_pos: int = 0
    count_unknown: int = 0

    @classmethod
    def from_labels(cls, labels: np.ndarray) -> "GlobalResult":
        return cls(
            count_pos=int(np.sum(labels == int(Label.POS))),
            count_unknown=int(np.sum(labels == int(Label.EITHER))),
        )

    def merge(self, other: "GlobalResult") -> "GlobalResult":
        return GlobalResult(
            self.count_pos + other.count_pos,
            self.count_unknown + other.count_unknown,
        )

    def report(self, num_queries: int) -> dict[str, float]:
        """Counts and percentages of positive and undecided queries."""

        scale = 100.0 / num_queries if num_queries > 0 else 0.0
        return {
            "count_pos": self.count_pos,
            "percent_pos": self.count_pos * scale,
            "count_unknown": self.count_unknown,
            "percent_unknown": self.count_unknown * scale,
        }


class QueryResults:
    """Per-point results of a query tree, stored in tree order.

    Each query leaf owns the rows ``[node_start, node_end)``; a branch of
    the walk only writes the rows of its own subtree.
    """

    def __init__(
        self,
        tree: KDTree,
        priors: np.ndarray,
        kernel_pos: EpanechnikovKernel,
        kernel_neg: EpanechnikovKernel,
        constants: ThresholdConstants,
    ) -> None:
        n = tree.num_points
        self.tree = tree
        self.priors = as_float(priors)[tree.indices]
        self.kernel_pos = kernel_pos
        self.kernel_neg = kernel_neg
        self.constants = constants
        self.density_pos = np.zeros((n,), dtype=FLOAT_DTYPE)
        self.density_neg = np.zeros((n,), dtype=FLOAT_DTYPE)
        self.labels = np.full((n,), int(Label.EITHER), dtype=LABEL_DTYPE)

    def __len__(self) -> int:
        return int(self.labels.shape[0])

    def row(self, index: int) -> Result:
        return Result(
            float(self.density_pos[index]),
            float(self.density_neg[index]),
            Label(int(self.labels[index])),
        )

    def undecided(self, node: int) -> np.ndarray:
        start, end = self.tree.point_range(node)
        return self.labels[start:end] == int(Label.EITHER)

    def apply_postponed(self, node: int, postponed: Postponed) -> None:
        """Apply a postponed contribution exactly to every point of ``node``."""

        if postponed.is_trivial:
            return
        start, end = self.tree.point_range(node)
        points = self.tree.points[start:end]
        if postponed.label != Label.EITHER:
            self.labels[start:end] = narrow_array(self.labels[start:end], int(postponed.label))
        if not postponed.moment_info_pos.is_empty:
            self.density_pos[start:end] += postponed.moment_info_pos.kernel_sums(
                self.kernel_pos, points
            )
        if not postponed.moment_info_neg.is_empty:
            self.density_neg[start:end] += postponed.moment_info_neg.kernel_sums(
                self.kernel_neg, points
            )

    def add_densities(
        self,
        node: int,
        density_pos: np.ndarray,
        density_neg: np.ndarray,
        mask: np.ndarray,
    ) -> None:
        start, end = self.tree.point_range(node)
        self.density_pos[start:end] += np.where(mask, density_pos, 0.0)
        self.density_neg[start:end] += np.where(mask, density_neg, 0.0)

    def resolve_with_pending(self, node: int, pending: Delta, mask: np.ndarray) -> int:
        """Run the dominance test on ``node``'s points with ``pending`` still unvisited.

        Returns the number of points whose label was decided.
        """

        start, end = self.tree.point_range(node)
        pos = self.density_pos[start:end]
        neg = self.density_neg[start:end]
        decided = self.constants.dominant_labels(
            pos + pending.d_density_pos.lo,
            pos + pending.d_density_pos.hi,
            neg + pending.d_density_neg.lo,
            neg + pending.d_density_neg.hi,
            self.priors[start:end],
        )
        update = mask & (decided != int(Label.EITHER))
        if np.any(update):
            self.labels[start:end] = narrow_array(self.labels[start:end], decided, update)
        return int(np.sum(update))

    def summarize(self, node: int) -> SummaryResult:
        start, end = self.tree.point_range(node)
        return SummaryResult.from_results(
            self.density_pos[start:end],
            self.density_neg[start:end],
            self.labels[start:end],
        )

    def finalize(self, node: int) -> GlobalResult:
        """Decide remaining points of ``node`` from their exact totals."""

        start, end = self.tree.point_range(node)
        undecided = self.labels[start:end] == int(Label.EITHER)
        pos = self.density_pos[start:end]
        neg = self.density_neg[start:end]
        decided = self.constants.dominant_labels(pos, pos, neg, neg, self.priors[start:end])
        self.labels[start:end] = narrow_array(self.labels[start:end], decided, undecided)
        return GlobalResult.from_labels(self.labels[start:end])

    def in_input_order(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return ``(density_pos, density_neg, labels)`` in input row order."""

        order = self.tree.indices
        density_pos = np.empty_like(self.density_pos)
        density_neg = np.empty_like(self.density_neg)
        labels = np.empty_like(self.labels)
        density_pos[order] = self.density_pos
        density_neg[order] = self.density_neg
        labels[order] = self.labels
        return density_pos, density_neg, labels


__all__ = [
    "Delta",
    "GlobalResult",
    "Postponed",
    "QueryResults",
    "Result",
    "SummaryResult",
]
