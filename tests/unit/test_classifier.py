"""End-to-end tests for the public classification entry points."""

import logging

import numpy as np
import pytest

from treekde import (
    ClassificationResult,
    KernelClassifierParams,
    Label,
    TraversalConfig,
    TraversalStats,
    brute_force_classify,
    classify,
    classify_monochromatic,
    set_default_traversal_config,
)

from .problem_fixtures import brute_force_sums, make_two_class_problem


def _separated_clusters():
    refs = np.concatenate([np.zeros((20, 2)), np.full((20, 2), 10.0)], axis=0)
    labels = np.concatenate([np.ones(20, dtype=bool), np.zeros(20, dtype=bool)])
    return refs, labels


def test_point_on_positive_cluster_is_positive():
    refs, labels = _separated_clusters()
    params = KernelClassifierParams(1.0, 1.0, threshold=0.5)

    result = classify(refs, labels, np.array([[0.0, 0.0]]), np.array([0.5]), params)

    assert result.classifications() == ["POSITIVE"]
    assert result.labels[0] == int(Label.POS)
    assert np.isclose(result.density_neg[0], 0.0)
    assert np.isclose(result.kernel_sum_pos[0], 20.0)
    assert result.global_result.count_pos == 1
    assert result.global_result.count_unknown == 0


def test_point_between_clusters_with_no_mass_is_unknown():
    refs, labels = _separated_clusters()
    params = KernelClassifierParams(1.0, 1.0)

    result = classify(refs, labels, np.array([[5.0, 5.0], [10.0, 10.0]]), None, params)

    assert result.classifications() == ["UNKNOWN", "NEGATIVE"]
    assert result.report()["count_unknown"] == 1
    assert np.isclose(result.report()["percent_unknown"], 50.0)


@pytest.mark.parametrize("per_class_bounds", [False, True])
@pytest.mark.parametrize("leaf_size", [1, 4, 16])
def test_labels_match_brute_force(per_class_bounds, leaf_size):
    problem = make_two_class_problem(n_ref=50, n_query=10, dim=2, seed=0)
    params = KernelClassifierParams(0.8, 0.8, threshold=0.5, per_class_bounds=per_class_bounds)

    result = classify(
        problem.reference_points,
        problem.reference_labels,
        problem.query_points,
        problem.query_priors,
        params,
        traversal_config=TraversalConfig(leaf_size=leaf_size),
    )
    expected = brute_force_classify(
        problem.reference_points,
        problem.reference_labels,
        problem.query_points,
        problem.query_priors,
        params,
    )

    np.testing.assert_array_equal(result.labels, expected)


@pytest.mark.parametrize("seed", [1, 2, 3])
def test_larger_problems_match_brute_force(seed):
    problem = make_two_class_problem(n_ref=400, n_query=150, dim=3, seed=seed)
    params = KernelClassifierParams(0.6, 0.9, threshold=0.3)

    result = classify(
        problem.reference_points,
        problem.reference_labels,
        problem.query_points,
        problem.query_priors,
        params,
        traversal_config=TraversalConfig(leaf_size=8),
    )
    expected = brute_force_classify(
        problem.reference_points,
        problem.reference_labels,
        problem.query_points,
        problem.query_priors,
        params,
        backend="tiled",
        point_block_size=64,
    )

    np.testing.assert_array_equal(result.labels, expected)
    assert result.stats.pairs_considered > 0


def test_undecided_points_report_exact_densities():
    problem = make_two_class_problem(n_ref=50, n_query=10, dim=2, seed=0)
    params = KernelClassifierParams(5.0, 5.0, threshold=0.5)
    priors = np.full(10, 0.5)
    # Wide kernels fold most reference nodes in through their moments.
    result = classify(
        problem.reference_points,
        problem.reference_labels,
        problem.query_points,
        priors,
        params,
    )
    true_pos, true_neg = brute_force_sums(
        problem.reference_points,
        problem.reference_labels,
        problem.query_points,
        5.0,
        5.0,
    )
    undecided = result.labels == int(Label.EITHER)
    np.testing.assert_allclose(result.kernel_sum_pos[undecided], true_pos[undecided], rtol=1e-9)
    np.testing.assert_allclose(result.kernel_sum_neg[undecided], true_neg[undecided], rtol=1e-9)
    assert np.all(result.kernel_sum_pos <= true_pos + 1e-9)
    assert np.all(result.kernel_sum_neg <= true_neg + 1e-9)


def test_parallel_frontier_matches_sequential():
    problem = make_two_class_problem(n_ref=200, n_query=64, dim=2, seed=5)
    params = KernelClassifierParams(0.5, 0.5)
    args = (
        problem.reference_points,
        problem.reference_labels,
        problem.query_points,
        problem.query_priors,
        params,
    )

    sequential = classify(*args, traversal_config=TraversalConfig(leaf_size=4))
    parallel = classify(
        *args,
        traversal_config=TraversalConfig(leaf_size=4, frontier_depth=2, max_workers=4),
    )

    np.testing.assert_array_equal(parallel.labels, sequential.labels)
    assert parallel.global_result == sequential.global_result


def test_default_traversal_config_is_used():
    problem = make_two_class_problem(n_ref=40, n_query=8, dim=2, seed=2)
    params = KernelClassifierParams(0.7, 0.7)
    try:
        set_default_traversal_config(TraversalConfig(leaf_size=2, frontier_depth=1))
        result = classify(
            problem.reference_points,
            problem.reference_labels,
            problem.query_points,
            problem.query_priors,
            params,
        )
    finally:
        set_default_traversal_config(None)
    expected = brute_force_classify(
        problem.reference_points,
        problem.reference_labels,
        problem.query_points,
        problem.query_priors,
        params,
    )
    np.testing.assert_array_equal(result.labels, expected)


def test_monochromatic_matches_brute_force_on_same_points():
    problem = make_two_class_problem(n_ref=80, n_query=1, dim=2, seed=7)
    priors = np.full(80, 0.5)
    params = KernelClassifierParams(0.6, 0.6)

    result = classify_monochromatic(
        problem.reference_points,
        problem.reference_labels,
        priors,
        params,
        traversal_config=TraversalConfig(leaf_size=4),
    )
    expected = brute_force_classify(
        problem.reference_points,
        problem.reference_labels,
        problem.reference_points,
        priors,
        params,
    )
    assert isinstance(result, ClassificationResult)
    assert result.num_queries == 80
    np.testing.assert_array_equal(result.labels, expected)


def test_stats_logger_receives_stats_and_errors_are_logged(caplog):
    refs, labels = _separated_clusters()
    params = KernelClassifierParams(1.0, 1.0)
    received = []

    classify(refs, labels, np.zeros((1, 2)), None, params, stats_logger=received.append)
    assert len(received) == 1
    assert isinstance(received[0], TraversalStats)

    def broken(stats):
        raise RuntimeError("sink unavailable")

    with caplog.at_level(logging.ERROR, logger="treekde.classifier"):
        result = classify(refs, labels, np.zeros((1, 2)), None, params, stats_logger=broken)
    assert result.classifications() == ["POSITIVE"]
    assert "stats_logger raised" in caplog.text


def test_classify_rejects_bad_inputs():
    refs, labels = _separated_clusters()
    params = KernelClassifierParams(1.0, 1.0)
    with pytest.raises(ValueError):
        classify(refs, labels, np.zeros((1, 3)), None, params)
    with pytest.raises(ValueError):
        classify(refs, np.ones(40, dtype=bool), np.zeros((1, 2)), None, params)
    with pytest.raises(ValueError):
        classify(refs, labels, np.zeros((1, 2)), np.array([1.2]), params)
    with pytest.raises(ValueError):
        classify(refs, labels, np.zeros((1, 2)), None, KernelClassifierParams(1.0, 1.0, 2.0))
    with pytest.raises(ValueError):
        classify(refs, labels[:10], np.zeros((1, 2)), None, params)
