"""Depth-first dual-tree traversal engine.

The engine is problem-agnostic: it walks (query node, reference node)
pairs and delegates every pruning decision to a
:class:`~treekde.protocols.DualTreeAlgorithm`, every leaf pair to a
:class:`~treekde.protocols.LeafPairVisitor` and all per-point state to a
:class:`~treekde.protocols.QueryResultStore`.

Per query node the engine keeps two values:

``postponed[q]``
    contributions recorded for every point below ``q`` but not yet pushed
    down. Pushed into both children right before ``q`` is split.
``summary[q]``
    bounds over the point results below ``q``, refreshed bottom-up after
    every split of ``q`` and every base case at ``q``.

A branch only ever writes the entries of its own query subtree, so
branches rooted at disjoint subtrees can run on separate threads.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, NamedTuple, Optional

from .protocols import (
    DualTreeAlgorithm,
    LeafPairVisitor,
    PairOutcome,
    QueryResultStore,
    TreeTopologyProtocol,
)

logger = logging.getLogger(__name__)


class TraversalStats(NamedTuple):
    """Work counters for one traversal (or a merge of several)."""

    pairs_considered: int = 0
    exclusions: int = 0
    inclusions: int = 0
    approximations: int = 0
    terminations: int = 0
    base_cases: int = 0
    points_visited: int = 0

    def merge(self, other: "TraversalStats") -> "TraversalStats":
        return TraversalStats(*(a + b for a, b in zip(self, other)))


def log_traversal_stats(
    stats: TraversalStats,
    *,
    level: int = logging.INFO,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Log traversal counters using the provided (or module) logger."""

    target_logger = logger or logging.getLogger(__name__)
    target_logger.log(
        level,
        (
            "Dual-tree traversal: pairs=%d, exclusions=%d, inclusions=%d, "
            "approximations=%d, terminations=%d, base_cases=%d, points_visited=%d"
        ),
        stats.pairs_considered,
        stats.exclusions,
        stats.inclusions,
        stats.approximations,
        stats.terminations,
        stats.base_cases,
        stats.points_visited,
    )


class _Counters:
    __slots__ = TraversalStats._fields

    def __init__(self) -> None:
        for name in self.__slots__:
            setattr(self, name, 0)

    def freeze(self) -> TraversalStats:
        return TraversalStats(*(getattr(self, name) for name in self.__slots__))


PairObserver = Callable[[int, int, Any], None]


class DualTreeTraversal:
    """Recursive dual-tree walk parameterised by an algorithm policy.

    Args:
        algorithm: Pruning policy (pair tests, termination, heuristic).
        visitor: Exact evaluator for leaf pairs.
        results: Per-point result store of the query tree.
        query_tree: Query tree topology.
        reference_tree: Reference tree topology; may be ``query_tree``.
        global_result: Run-level tally handed to the global-gate tests.
        pair_observer: Optional callback receiving ``(q, r, bounds)`` for
            every pair considered, where ``bounds`` is the summary of ``q``
            widened by everything the walk has not visited yet.
    """

    def __init__(
        self,
        algorithm: DualTreeAlgorithm,
        visitor: LeafPairVisitor,
        results: QueryResultStore,
        query_tree: TreeTopologyProtocol,
        reference_tree: TreeTopologyProtocol,
        *,
        global_result: Any = None,
        pair_observer: Optional[PairObserver] = None,
    ) -> None:
        self.algorithm = algorithm
        self.visitor = visitor
        self.results = results
        self.query_tree = query_tree
        self.reference_tree = reference_tree
        self.global_result = global_result
        self.pair_observer = pair_observer
        num_nodes = query_tree.num_nodes
        self._postponed: List[Any] = [algorithm.initial_postponed() for _ in range(num_nodes)]
        self._summary: List[Any] = [algorithm.initial_summary() for _ in range(num_nodes)]

    def run(self, q_root: int, r_root: int) -> tuple[Any, TraversalStats]:
        """Walk ``q_root``'s subtree against ``r_root``'s and finalize it.

        Returns the branch's global-result tally and its work counters.
        """

        counters = _Counters()
        decision = self.algorithm.consider_pair_intrinsic(q_root, r_root)
        self._record(decision.outcome, counters)
        if decision.outcome is PairOutcome.INCLUSION:
            self._postponed[q_root] = self._postponed[q_root].merge(decision.postponed)
        elif decision.outcome is PairOutcome.APPROXIMATE:
            self._recurse(q_root, r_root, decision.delta, self.algorithm.zero_delta(), counters)
        global_result = self._finalize(q_root)
        return global_result, counters.freeze()

    def _record(self, outcome: PairOutcome, counters: _Counters) -> None:
        if outcome is PairOutcome.EXCLUSION:
            counters.exclusions += 1
        elif outcome is PairOutcome.INCLUSION:
            counters.inclusions += 1
        else:
            counters.approximations += 1

    def _recurse(
        self,
        q_node: int,
        r_node: int,
        delta: Any,
        pending: Any,
        counters: _Counters,
    ) -> None:
        counters.pairs_considered += 1
        summary = self.algorithm.summarize_node(
            q_node, self._summary[q_node], self._postponed[q_node]
        )
        bounds = summary.apply_delta(delta).apply_delta(pending)
        if self.pair_observer is not None:
            self.pair_observer(q_node, r_node, bounds)

        if not self.algorithm.consider_pair_extrinsic(
            q_node, r_node, delta, bounds, self.global_result
        ):
            return
        label = self.algorithm.consider_query_termination(q_node, bounds, self.global_result)
        if label is not None:
            counters.terminations += 1
            self._postponed[q_node] = self._postponed[q_node].with_label(label)
            return

        q_leaf = self.query_tree.is_leaf(q_node)
        r_leaf = self.reference_tree.is_leaf(r_node)
        if q_leaf and r_leaf:
            self._base_case(q_node, r_node, pending, counters)
        elif not q_leaf and (
            r_leaf or self.query_tree.count(q_node) >= self.reference_tree.count(r_node)
        ):
            self._split_query(q_node, r_node, pending, counters)
        else:
            self._split_reference(q_node, r_node, pending, counters)

    def _base_case(self, q_node: int, r_node: int, pending: Any, counters: _Counters) -> None:
        postponed = self._postponed[q_node]
        self.results.apply_postponed(q_node, postponed)
        self._postponed[q_node] = postponed.cleared()
        visit = self.visitor.visit_leaf_pair(q_node, r_node, pending, self.results)
        counters.base_cases += 1
        counters.points_visited += visit.points_visited
        self._summary[q_node] = self.results.summarize(q_node)

    def _split_query(self, q_node: int, r_node: int, pending: Any, counters: _Counters) -> None:
        children = self.query_tree.children(q_node)
        postponed = self._postponed[q_node]
        if not postponed.is_trivial:
            for child in children:
                self._postponed[child] = self._postponed[child].merge(postponed)
            self._postponed[q_node] = postponed.cleared()

        for child in children:
            decision = self.algorithm.consider_pair_intrinsic(child, r_node)
            self._record(decision.outcome, counters)
            if decision.outcome is PairOutcome.INCLUSION:
                self._postponed[child] = self._postponed[child].merge(decision.postponed)
            elif decision.outcome is PairOutcome.APPROXIMATE:
                self._recurse(child, r_node, decision.delta, pending, counters)

        summary = self._summary[q_node].start_reaccumulate()
        for child in children:
            summary = summary.accumulate(
                self.algorithm.summarize_node(
                    child, self._summary[child], self._postponed[child]
                )
            )
        self._summary[q_node] = summary.finish_reaccumulate()

    def _split_reference(
        self, q_node: int, r_node: int, pending: Any, counters: _Counters
    ) -> None:
        approximate = []
        for child in self.reference_tree.children(r_node):
            decision = self.algorithm.consider_pair_intrinsic(q_node, child)
            self._record(decision.outcome, counters)
            if decision.outcome is PairOutcome.INCLUSION:
                self._postponed[q_node] = self._postponed[q_node].merge(decision.postponed)
            elif decision.outcome is PairOutcome.APPROXIMATE:
                approximate.append(
                    (self.algorithm.heuristic(q_node, child), child, decision.delta)
                )
        approximate.sort(key=lambda item: item[0])

        for position, (_, child, delta) in enumerate(approximate):
            # Siblings visited later still owe their contribution.
            child_pending = pending
            for _, _, later in approximate[position + 1 :]:
                child_pending = child_pending.add(later)
            self._recurse(q_node, child, delta, child_pending, counters)

    def _finalize(self, q_node: int) -> Any:
        postponed = self._postponed[q_node]
        self._postponed[q_node] = postponed.cleared()
        if self.query_tree.is_leaf(q_node):
            self.results.apply_postponed(q_node, postponed)
            return self.results.finalize(q_node)
        left, right = self.query_tree.children(q_node)
        for child in (left, right):
            self._postponed[child] = self._postponed[child].merge(postponed)
        return self._finalize(left).merge(self._finalize(right))


__all__ = ["DualTreeTraversal", "PairObserver", "TraversalStats", "log_traversal_stats"]
