"""Public entry points for dual-tree kernel density classification."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
from beartype import beartype
from jaxtyping import ArrayLike, jaxtyped

from .algorithm import KernelClassifierAlgorithm
from .config import (
    KernelClassifierParams,
    ThresholdConstants,
    TraversalConfig,
    resolve_traversal_config,
)
from .kdtree import KDTree, build_kdtree
from .labels import Label, classification_name
from .results import GlobalResult, QueryResults
from .stats import _validate_labels, _validate_priors, compute_node_stats
from .traversal import DualTreeTraversal, TraversalStats, log_traversal_stats
from .visitor import KernelPairVisitor

logger = logging.getLogger(__name__)

StatsLogger = Callable[[TraversalStats], None]


@dataclass(frozen=True)
class ClassificationResult:
    """Per-query labels and densities, in the caller's query order.

    ``kernel_sum_*`` are unnormalised kernel totals; ``density_*`` divide
    them by the class' kernel normalisation times its reference count.
    Totals are exact for points decided after a full evaluation and
    partial sums for points whose label was certified early.
    """

    labels: np.ndarray
    density_pos: np.ndarray
    density_neg: np.ndarray
    kernel_sum_pos: np.ndarray
    kernel_sum_neg: np.ndarray
    global_result: GlobalResult
    stats: TraversalStats

    @property
    def num_queries(self) -> int:
        return int(self.labels.shape[0])

    def classifications(self) -> list[str]:
        """``"POSITIVE"``, ``"NEGATIVE"`` or ``"UNKNOWN"`` per query."""

        return [classification_name(Label(int(value))) for value in self.labels]

    def report(self) -> dict[str, float]:
        return self.global_result.report(self.num_queries)


def _run_branches(
    traversal: DualTreeTraversal,
    branches: tuple[int, ...],
    max_workers: int,
) -> tuple[GlobalResult, TraversalStats]:
    def run_branch(q_node: int) -> tuple[GlobalResult, TraversalStats]:
        return traversal.run(q_node, 0)

    if max_workers > 1 and len(branches) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            outcomes = list(executor.map(run_branch, branches))
    else:
        outcomes = [run_branch(q_node) for q_node in branches]

    global_result = GlobalResult()
    stats = TraversalStats()
    for branch_result, branch_stats in outcomes:
        global_result = global_result.merge(branch_result)
        stats = stats.merge(branch_stats)
    return global_result, stats


def _classify_trees(
    params: KernelClassifierParams,
    config: TraversalConfig,
    query_tree: KDTree,
    query_labels: Optional[np.ndarray],
    query_priors: np.ndarray,
    reference_tree: KDTree,
    reference_is_pos: np.ndarray,
    stats_logger: Optional[StatsLogger],
) -> ClassificationResult:
    reference_stats = compute_node_stats(reference_tree, reference_is_pos)
    if query_tree is reference_tree:
        query_stats = compute_node_stats(query_tree, query_labels, query_priors)
    else:
        query_stats = compute_node_stats(query_tree, None, query_priors)

    root = reference_stats[0]
    constants = ThresholdConstants.compute(
        params, reference_tree.dimension, root.count_pos, root.count_neg
    )
    algorithm = KernelClassifierAlgorithm(
        params, constants, query_tree, query_stats, reference_tree, reference_stats
    )
    visitor = KernelPairVisitor(
        params, query_tree, reference_tree, reference_is_pos[reference_tree.indices]
    )
    results = QueryResults(
        query_tree, query_priors, params.kernel_pos, params.kernel_neg, constants
    )
    traversal = DualTreeTraversal(algorithm, visitor, results, query_tree, reference_tree)

    branches = query_tree.frontier(config.frontier_depth)
    logger.debug(
        "Classifying %d queries against %d references in %d branch(es)",
        query_tree.num_points,
        reference_tree.num_points,
        len(branches),
    )
    global_result, stats = _run_branches(traversal, branches, config.max_workers)

    log_traversal_stats(stats, level=logging.DEBUG, logger=logger)
    if stats_logger is not None:
        try:
            stats_logger(stats)
        except Exception:
            logger.exception("stats_logger raised", exc_info=True)

    kernel_sum_pos, kernel_sum_neg, labels = results.in_input_order()
    report = global_result.report(query_tree.num_points)
    logger.info(
        "Classified %d queries: %d positive (%.2f%%), %d unknown (%.2f%%)",
        query_tree.num_points,
        report["count_pos"],
        report["percent_pos"],
        report["count_unknown"],
        report["percent_unknown"],
    )
    return ClassificationResult(
        labels=labels,
        density_pos=kernel_sum_pos / constants.norm_pos,
        density_neg=kernel_sum_neg / constants.norm_neg,
        kernel_sum_pos=kernel_sum_pos,
        kernel_sum_neg=kernel_sum_neg,
        global_result=global_result,
        stats=stats,
    )


@jaxtyped(typechecker=beartype)
def classify(
    reference_points: ArrayLike,
    reference_labels: ArrayLike,
    query_points: ArrayLike,
    query_priors: Optional[ArrayLike],
    params: KernelClassifierParams,
    *,
    traversal_config: Optional[TraversalConfig] = None,
    stats_logger: Optional[StatsLogger] = None,
) -> ClassificationResult:
    """Classify query points by comparing prior-weighted class densities.

    A query is positive when

        (1 - t) * pi * f_pos(x)  >  t * (1 - pi) * f_neg(x)

    holds with margin ``min(t, 1 - t) * 1e-3`` (and negative for the
    reverse), where ``f_*`` are Epanechnikov kernel density estimates over
    each reference class and ``pi`` is the query's positive prior.

    Args:
        reference_points: Reference coordinates with shape ``(n_ref, dim)``.
        reference_labels: Class per reference point; truthy means positive.
            Both classes must be present.
        query_points: Query coordinates with shape ``(n_queries, dim)``.
        query_priors: Positive-class prior per query in ``[0, 1]``;
            ``None`` means 0.5 for every query.
        params: Bandwidths, threshold and bound-check mode.
        traversal_config: Leaf size and branch scheduling. Falls back to
            :func:`~treekde.config.set_default_traversal_config`.
        stats_logger: Optional callback receiving the run's
            :class:`~treekde.traversal.TraversalStats`.

    Returns:
        A :class:`ClassificationResult` in query order.
    """

    params.validate()
    config = resolve_traversal_config(traversal_config)
    reference_tree = build_kdtree(reference_points, leaf_size=config.leaf_size)
    query_tree = build_kdtree(query_points, leaf_size=config.leaf_size)
    if query_tree.dimension != reference_tree.dimension:
        raise ValueError(
            "query_points and reference_points must share dim; "
            f"received {query_tree.dimension} and {reference_tree.dimension}"
        )
    reference_is_pos = _validate_labels(reference_labels, reference_tree.num_points)
    priors = _validate_priors(query_priors, query_tree.num_points)
    return _classify_trees(
        params,
        config,
        query_tree,
        None,
        priors,
        reference_tree,
        reference_is_pos,
        stats_logger,
    )


@jaxtyped(typechecker=beartype)
def classify_monochromatic(
    points: ArrayLike,
    labels: ArrayLike,
    priors: Optional[ArrayLike],
    params: KernelClassifierParams,
    *,
    traversal_config: Optional[TraversalConfig] = None,
    stats_logger: Optional[StatsLogger] = None,
) -> ClassificationResult:
    """Classify every point of a labelled set against the set itself.

    One tree serves as both query and reference tree. Each point's own
    kernel contribution is included in its class density.
    """

    params.validate()
    config = resolve_traversal_config(traversal_config)
    tree = build_kdtree(points, leaf_size=config.leaf_size)
    is_pos = _validate_labels(labels, tree.num_points)
    priors_arr = _validate_priors(priors, tree.num_points)
    return _classify_trees(
        params,
        config,
        tree,
        is_pos,
        priors_arr,
        tree,
        is_pos,
        stats_logger,
    )


__all__ = ["ClassificationResult", "StatsLogger", "classify", "classify_monochromatic"]
