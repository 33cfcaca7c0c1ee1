"""Tests for the all-pairs reference classifier."""

import numpy as np
import pytest

from treekde import (
    KernelClassifierParams,
    Label,
    brute_force_classify,
    brute_force_kernel_sums,
)

from .problem_fixtures import brute_force_sums, make_two_class_problem


def test_dense_and_tiled_backends_agree():
    problem = make_two_class_problem(n_ref=75, n_query=12, dim=3, seed=11)
    params = KernelClassifierParams(0.9, 0.7)

    dense = brute_force_kernel_sums(
        problem.reference_points,
        problem.reference_labels,
        problem.query_points,
        params,
        backend="dense",
    )
    tiled = brute_force_kernel_sums(
        problem.reference_points,
        problem.reference_labels,
        problem.query_points,
        params,
        backend="tiled",
        point_block_size=16,
    )
    expected = brute_force_sums(
        problem.reference_points,
        problem.reference_labels,
        problem.query_points,
        0.9,
        0.7,
    )
    for got_dense, got_tiled, want in zip(dense, tiled, expected):
        np.testing.assert_allclose(got_dense, want, rtol=1e-10, atol=1e-12)
        np.testing.assert_allclose(got_tiled, want, rtol=1e-10, atol=1e-12)


def test_brute_force_classify_on_separated_clusters():
    refs = np.concatenate([np.zeros((5, 2)), np.full((5, 2), 4.0)], axis=0)
    labels = np.array([1] * 5 + [0] * 5)
    queries = np.array([[0.1, 0.0], [4.0, 3.9], [2.0, 2.0]])
    params = KernelClassifierParams(1.0, 1.0)

    labels_out = brute_force_classify(refs, labels, queries, None, params)

    np.testing.assert_array_equal(
        labels_out, np.array([Label.POS, Label.NEG, Label.EITHER], dtype=np.int8)
    )


def test_priors_shift_the_decision():
    refs = np.array([[0.0], [0.5]])
    labels = np.array([True, False])
    queries = np.array([[0.25], [0.25]])
    params = KernelClassifierParams(1.0, 1.0)

    labels_out = brute_force_classify(refs, labels, queries, np.array([0.9, 0.1]), params)

    np.testing.assert_array_equal(labels_out, np.array([Label.POS, Label.NEG], dtype=np.int8))


def test_brute_force_validates_inputs():
    params = KernelClassifierParams(1.0, 1.0)
    with pytest.raises(ValueError):
        brute_force_kernel_sums(np.zeros((3, 2)), np.ones(3), np.zeros((2, 3)), params)
    with pytest.raises(ValueError):
        brute_force_kernel_sums(
            np.zeros((3, 2)), np.ones(3), np.zeros((2, 2)), params, point_block_size=0
        )
