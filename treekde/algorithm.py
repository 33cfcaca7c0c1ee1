"""Pruning policy for two-class kernel density classification."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from .config import KernelClassifierParams, ThresholdConstants
from .intervals import Interval
from .kdtree import KDTree
from .labels import Label
from .protocols import PairDecision, PairOutcome
from .results import Delta, GlobalResult, Postponed, SummaryResult
from .stats import NodeStat

logger = logging.getLogger(__name__)


class KernelClassifierAlgorithm:
    """Exclusion, inclusion and termination rules for the classifier walk.

    Parameters
    ----------
    params : KernelClassifierParams
        Bandwidths, threshold and the bound-check mode.
    constants : ThresholdConstants
        Dominance-test factors derived from ``params`` and class sizes.
    query_tree, reference_tree : KDTree
        Trees being walked; they may be the same object.
    query_stats, reference_stats : sequence of NodeStat
        Per-node statistics indexed by node id.
    """

    def __init__(
        self,
        params: KernelClassifierParams,
        constants: ThresholdConstants,
        query_tree: KDTree,
        query_stats: Sequence[NodeStat],
        reference_tree: KDTree,
        reference_stats: Sequence[NodeStat],
    ) -> None:
        self.params = params
        self.constants = constants
        self.kernel_pos = params.kernel_pos
        self.kernel_neg = params.kernel_neg
        self.query_stats = query_stats
        self.reference_stats = reference_stats
        self.dim = query_tree.dimension
        self._query_bounds = [query_tree.node_bound(i) for i in range(query_tree.num_nodes)]
        self._reference_bounds = [
            reference_tree.node_bound(i) for i in range(reference_tree.num_nodes)
        ]
        self._inclusion_radius_sq = min(
            self.kernel_pos.bandwidth_sq, self.kernel_neg.bandwidth_sq
        )

    def initial_postponed(self) -> Postponed:
        return Postponed.empty(self.dim)

    def initial_summary(self) -> SummaryResult:
        return SummaryResult.initial()

    def zero_delta(self) -> Delta:
        return Delta.zero()

    def _is_inclusion(self, q_node: int, r_node: int) -> bool:
        q_bound = self._query_bounds[q_node]
        if self.params.per_class_bounds:
            r_stat = self.reference_stats[r_node]
            pos_ok = (
                r_stat.count_pos == 0
                or r_stat.bound_pos.max_distance_sq_to(q_bound) < self.kernel_pos.bandwidth_sq
            )
            neg_ok = (
                r_stat.count_neg == 0
                or r_stat.bound_neg.max_distance_sq_to(q_bound) < self.kernel_neg.bandwidth_sq
            )
            return pos_ok and neg_ok
        r_bound = self._reference_bounds[r_node]
        return r_bound.max_distance_sq_to(q_bound) < self._inclusion_radius_sq

    def consider_pair_intrinsic(self, q_node: int, r_node: int) -> PairDecision:
        """Classify a node pair as excluded, included or approximate.

        Only reads shared statistics. For ``INCLUSION`` the returned
        ``postponed`` must be merged into the query node by the caller;
        for ``APPROXIMATE`` the ``delta`` bounds the pair's contribution.
        """

        q_bound = self._query_bounds[q_node]
        r_stat = self.reference_stats[r_node]

        d_density_pos_hi = 0.0
        if r_stat.count_pos > 0:
            d_density_pos_hi = self.kernel_pos.eval_unnorm_on_sq(
                r_stat.bound_pos.min_distance_sq_to(q_bound)
            )
        d_density_neg_hi = 0.0
        if r_stat.count_neg > 0:
            d_density_neg_hi = self.kernel_neg.eval_unnorm_on_sq(
                r_stat.bound_neg.min_distance_sq_to(q_bound)
            )

        if d_density_pos_hi == 0.0 and d_density_neg_hi == 0.0:
            logger.debug("Exclusion: q=%d r=%d", q_node, r_node)
            return PairDecision(PairOutcome.EXCLUSION)

        if self._is_inclusion(q_node, r_node):
            logger.debug("Inclusion: q=%d r=%d", q_node, r_node)
            return PairDecision(
                PairOutcome.INCLUSION,
                postponed=Postponed(r_stat.moment_info_pos, r_stat.moment_info_neg),
            )

        delta = Delta(
            Interval(0.0, r_stat.count_pos * d_density_pos_hi),
            Interval(0.0, r_stat.count_neg * d_density_neg_hi),
        )
        return PairDecision(PairOutcome.APPROXIMATE, delta=delta)

    def consider_pair_extrinsic(
        self,
        q_node: int,
        r_node: int,
        delta: Delta,
        summary: SummaryResult,
        global_result: GlobalResult,
    ) -> bool:
        """Global gate on recursion; the classifier never vetoes here."""

        return True

    def consider_query_termination(
        self,
        q_node: int,
        summary: SummaryResult,
        global_result: GlobalResult,
    ) -> Optional[Label]:
        """Return the label that ends recursion for ``q_node``, or ``None``."""

        if summary.is_resolved:
            return summary.label
        q_stat = self.query_stats[q_node]
        label = self.constants.dominant_label(
            summary.density_pos,
            summary.density_neg,
            q_stat.pi_pos,
            q_stat.pi_neg,
        )
        if label != Label.EITHER:
            logger.debug("Termination: q=%d label=%s", q_node, label.name)
            return label
        return None

    def heuristic(self, q_node: int, r_node: int) -> float:
        """Smaller values are visited first."""

        return self._reference_bounds[r_node].min_to_mid_sq(self._query_bounds[q_node])

    def summarize_node(
        self,
        q_node: int,
        summary: SummaryResult,
        postponed: Postponed,
    ) -> SummaryResult:
        """Bounds for ``q_node`` including its own postponed contribution."""

        combined = summary.apply_postponed(
            postponed,
            self._query_bounds[q_node],
            self.kernel_pos,
            self.kernel_neg,
        )
        if combined.is_resolved:
            # Decided subtrees stop accumulating; only the lower bound holds.
            return combined.open_upper()
        return combined


__all__ = ["KernelClassifierAlgorithm"]
