"""Tests for the generic dual-tree traversal engine."""

import logging

import numpy as np
import pytest

from treekde import (
    DualTreeTraversal,
    GlobalResult,
    KernelClassifierAlgorithm,
    KernelClassifierParams,
    KernelPairVisitor,
    Label,
    QueryResults,
    ThresholdConstants,
    TraversalStats,
    build_kdtree,
    compute_node_stats,
    log_traversal_stats,
)

from .problem_fixtures import brute_force_sums, make_two_class_problem


class _MonotoneLabelResults(QueryResults):
    """Result store that checks decided labels are never rewritten."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.snapshot = self.labels.copy()
        self.checks = 0

    def summarize(self, node):
        decided = self.snapshot != int(Label.EITHER)
        assert np.all(self.labels[decided] == self.snapshot[decided])
        self.snapshot = self.labels.copy()
        self.checks += 1
        return super().summarize(node)


def _build(problem, params, *, leaf_size=4, results_cls=QueryResults, pair_observer=None):
    reference_tree = build_kdtree(problem.reference_points, leaf_size=leaf_size)
    query_tree = build_kdtree(problem.query_points, leaf_size=leaf_size)
    reference_stats = compute_node_stats(reference_tree, problem.reference_labels)
    query_stats = compute_node_stats(query_tree, None, problem.query_priors)
    root = reference_stats[0]
    constants = ThresholdConstants.compute(params, 2, root.count_pos, root.count_neg)
    algorithm = KernelClassifierAlgorithm(
        params, constants, query_tree, query_stats, reference_tree, reference_stats
    )
    visitor = KernelPairVisitor(
        params,
        query_tree,
        reference_tree,
        problem.reference_labels[reference_tree.indices],
    )
    results = results_cls(
        query_tree, problem.query_priors, params.kernel_pos, params.kernel_neg, constants
    )
    traversal = DualTreeTraversal(
        algorithm,
        visitor,
        results,
        query_tree,
        reference_tree,
        pair_observer=pair_observer,
    )
    return traversal, results, query_tree


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_summary_bounds_contain_true_densities(seed):
    problem = make_two_class_problem(n_ref=80, n_query=30, dim=2, seed=seed)
    params = KernelClassifierParams(0.7, 0.5)
    true_pos, true_neg = brute_force_sums(
        problem.reference_points,
        problem.reference_labels,
        problem.query_points,
        params.bandwidth_pos,
        params.bandwidth_neg,
    )
    observed = []

    def observer(q_node, r_node, bounds):
        observed.append((q_node, bounds))

    traversal, _, query_tree = _build(problem, params, pair_observer=observer)
    traversal.run(0, 0)

    assert observed
    tol = 1e-9
    for q_node, bounds in observed:
        start, end = query_tree.point_range(q_node)
        rows = query_tree.indices[start:end]
        assert np.all(bounds.density_pos.lo <= true_pos[rows] + tol)
        assert np.all(true_pos[rows] <= bounds.density_pos.hi + tol)
        assert np.all(bounds.density_neg.lo <= true_neg[rows] + tol)
        assert np.all(true_neg[rows] <= bounds.density_neg.hi + tol)


def test_decided_labels_are_never_rewritten():
    problem = make_two_class_problem(n_ref=120, n_query=40, dim=2, seed=3)
    params = KernelClassifierParams(0.5, 0.5)
    traversal, results, _ = _build(problem, params, results_cls=_MonotoneLabelResults)
    global_result, stats = traversal.run(0, 0)

    assert results.checks > 0
    assert isinstance(global_result, GlobalResult)
    assert stats.base_cases == results.checks
    assert not np.any(results.labels == int(Label.NEITHER))


def test_run_counts_work_and_tallies_labels():
    problem = make_two_class_problem(n_ref=60, n_query=20, dim=2, seed=6)
    params = KernelClassifierParams(0.6, 0.6)
    traversal, results, _ = _build(problem, params)
    global_result, stats = traversal.run(0, 0)

    assert stats.pairs_considered >= 1
    assert stats.approximations >= 1
    assert stats.points_visited >= 0
    labels = results.labels
    assert global_result.count_pos == int(np.sum(labels == int(Label.POS)))
    assert global_result.count_unknown == int(np.sum(labels == int(Label.EITHER)))


def test_branches_over_frontier_match_single_run():
    problem = make_two_class_problem(n_ref=60, n_query=32, dim=2, seed=8)
    params = KernelClassifierParams(0.6, 0.6)

    single, single_results, _ = _build(problem, params)
    single_global, _ = single.run(0, 0)

    branched, branched_results, query_tree = _build(problem, params)
    total = GlobalResult()
    for q_node in query_tree.frontier(2):
        branch_global, _ = branched.run(q_node, 0)
        total = total.merge(branch_global)

    assert total == single_global
    np.testing.assert_array_equal(branched_results.labels, single_results.labels)


def test_traversal_stats_merge_and_log(caplog):
    a = TraversalStats(1, 2, 3, 4, 5, 6, 7)
    b = TraversalStats(pairs_considered=10)
    merged = a.merge(b)
    assert merged.pairs_considered == 11
    assert merged.points_visited == 7

    with caplog.at_level(logging.INFO, logger="treekde.traversal"):
        log_traversal_stats(merged)
    assert "pairs=11" in caplog.text
    assert "exclusions=2" in caplog.text
