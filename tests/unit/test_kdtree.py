"""Tests for the host-side KD-tree builder."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from treekde import build_kdtree


def _sample_points(n: int = 32, dim: int = 3) -> np.ndarray:
    key = jax.random.PRNGKey(123)
    return np.asarray(jax.random.uniform(key, (n, dim), minval=-1.0, maxval=1.0))


def test_build_kdtree_reorders_points_consistently():
    points = _sample_points(n=37, dim=3)
    tree = build_kdtree(points, leaf_size=4)

    assert tree.num_points == 37
    assert tree.dimension == 3
    np.testing.assert_allclose(tree.points, points[tree.indices])
    np.testing.assert_array_equal(np.sort(tree.indices), np.arange(37))
    assert int(tree.node_start[0]) == 0
    assert int(tree.node_end[0]) == 37


def test_children_partition_parent_range():
    tree = build_kdtree(_sample_points(n=50, dim=2), leaf_size=5)
    for node in range(tree.num_nodes):
        if tree.is_leaf(node):
            assert tree.count(node) <= 5
            continue
        left, right = tree.children(node)
        assert left > node and right > node
        assert tree.node_start[left] == tree.node_start[node]
        assert tree.node_end[left] == tree.node_start[right]
        assert tree.node_end[right] == tree.node_end[node]
        assert int(tree.parent[left]) == node


def test_node_bounds_contain_their_points():
    tree = build_kdtree(_sample_points(n=40, dim=3), leaf_size=3)
    for node in range(tree.num_nodes):
        start, end = tree.point_range(node)
        bound = tree.node_bound(node)
        assert all(bound.contains(p) for p in tree.points[start:end])


def test_leaf_buffers_pad_with_invalid_slots():
    tree = build_kdtree(_sample_points(n=21, dim=2), leaf_size=4)
    assert tree.leaf_points.shape == (tree.num_leaves, 4, 2)
    assert tree.leaf_points.dtype == jnp.float64
    valid = np.asarray(tree.leaf_valid_mask)
    for ordinal, node in enumerate(tree.leaf_nodes):
        count = tree.count(int(node))
        assert valid[ordinal].sum() == count
        start, _ = tree.point_range(int(node))
        np.testing.assert_array_equal(
            tree.leaf_point_ids[ordinal, :count], np.arange(start, start + count)
        )
        np.testing.assert_allclose(
            np.asarray(tree.leaf_points[ordinal, :count]), tree.points[start : start + count]
        )
        assert int(tree.node_to_leaf[int(node)]) == ordinal


def test_frontier_covers_every_point_once():
    tree = build_kdtree(_sample_points(n=64, dim=2), leaf_size=4)
    for depth in range(0, 6):
        nodes = tree.frontier(depth)
        covered = np.zeros(tree.num_points, dtype=int)
        for node in nodes:
            start, end = tree.point_range(node)
            covered[start:end] += 1
        assert np.all(covered == 1)
    assert tree.frontier(0) == (0,)


def test_identical_points_still_split_to_leaf_size():
    points = np.zeros((20, 2))
    tree = build_kdtree(points, leaf_size=3)
    assert all(tree.count(int(node)) <= 3 for node in tree.leaf_nodes)


@pytest.mark.parametrize(
    "points",
    [np.zeros((0, 2)), np.zeros((3,)), np.array([[0.0, np.nan]])],
)
def test_build_kdtree_rejects_invalid_points(points):
    with pytest.raises(ValueError):
        build_kdtree(points)


def test_build_kdtree_rejects_bad_leaf_size():
    with pytest.raises(ValueError):
        build_kdtree(_sample_points(n=4, dim=2), leaf_size=0)
