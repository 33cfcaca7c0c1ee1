"""Host-side KD-tree with padded leaf buffers for jitted leaf kernels."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

import jax.numpy as jnp
import numpy as np
from beartype import beartype
from jaxtyping import Array, ArrayLike, jaxtyped

from .bounds import Bound
from .dtypes import FLOAT_DTYPE, INDEX_DTYPE, as_device_float, as_float, as_index


@dataclass(frozen=True, eq=False)
class KDTree:
    """KD-tree container plus precomputed topology metadata.

    Nodes are numbered in pre-order, so every node's children have larger
    indices than the node itself and every subtree owns the contiguous
    point range ``[node_start, node_end)`` of ``points``.
    """

    points: np.ndarray
    indices: np.ndarray
    node_start: np.ndarray
    node_end: np.ndarray
    parent: np.ndarray
    left_child: np.ndarray
    right_child: np.ndarray
    node_depth: np.ndarray
    split_dim: np.ndarray
    split_value: np.ndarray
    bbox_min: np.ndarray
    bbox_max: np.ndarray
    leaf_nodes: np.ndarray
    node_to_leaf: np.ndarray
    leaf_point_ids: np.ndarray
    leaf_points: Array
    leaf_valid_mask: Array
    leaf_size: int

    @property
    def num_points(self) -> int:
        """Return the number of points in the tree."""

        return int(self.points.shape[0])

    @property
    def dimension(self) -> int:
        """Return spatial dimensionality of the points."""

        return int(self.points.shape[1])

    @property
    def num_nodes(self) -> int:
        return int(self.node_start.shape[0])

    @property
    def num_leaves(self) -> int:
        return int(self.leaf_nodes.shape[0])

    def is_leaf(self, node: int) -> bool:
        return bool(self.left_child[node] < 0)

    def children(self, node: int) -> tuple[int, int]:
        return int(self.left_child[node]), int(self.right_child[node])

    def count(self, node: int) -> int:
        return int(self.node_end[node] - self.node_start[node])

    def point_range(self, node: int) -> tuple[int, int]:
        return int(self.node_start[node]), int(self.node_end[node])

    def node_bound(self, node: int) -> Bound:
        return Bound(self.bbox_min[node], self.bbox_max[node])

    def frontier(self, depth: int) -> tuple[int, ...]:
        """Nodes at ``depth``, plus shallower leaves; together they cover all points."""

        selected = (self.node_depth == depth) | (
            (self.node_depth < depth) & (self.left_child < 0)
        )
        return tuple(int(node) for node in np.nonzero(selected)[0])


def _validate_points(points: ArrayLike) -> np.ndarray:
    points_arr = as_float(points)
    if points_arr.ndim != 2:
        raise ValueError(
            "points must have shape (n_points, dim); "
            f"received ndim={points_arr.ndim}"
        )
    if points_arr.shape[0] < 1:
        raise ValueError("points must contain at least one row")
    if points_arr.shape[1] < 1:
        raise ValueError("points must have dim >= 1")
    if not np.all(np.isfinite(points_arr)):
        raise ValueError("points must be finite")
    return points_arr


class _TopologyBuilder:
    """Recursive median splitter that records nodes in pre-order."""

    def __init__(self, points: np.ndarray, leaf_size: int) -> None:
        self.points = points
        self.leaf_size = leaf_size
        self.order = np.arange(points.shape[0], dtype=INDEX_DTYPE)
        self.start: List[int] = []
        self.end: List[int] = []
        self.parent: List[int] = []
        self.left: List[int] = []
        self.right: List[int] = []
        self.depth: List[int] = []
        self.split_dim: List[int] = []
        self.split_value: List[float] = []
        self.mins: List[np.ndarray] = []
        self.maxs: List[np.ndarray] = []

    def build(self, start: int, end: int, parent: int, depth: int) -> int:
        node = len(self.start)
        segment = self.points[self.order[start:end]]
        mins = np.min(segment, axis=0)
        maxs = np.max(segment, axis=0)
        self.start.append(start)
        self.end.append(end)
        self.parent.append(parent)
        self.left.append(-1)
        self.right.append(-1)
        self.depth.append(depth)
        self.split_dim.append(-1)
        self.split_value.append(np.nan)
        self.mins.append(mins)
        self.maxs.append(maxs)

        count = end - start
        if count <= self.leaf_size:
            return node

        dim = int(np.argmax(maxs - mins))
        local = np.argsort(segment[:, dim], kind="stable")
        self.order[start:end] = self.order[start:end][local]
        mid = start + count // 2
        self.split_dim[node] = dim
        self.split_value[node] = float(self.points[self.order[mid], dim])

        self.left[node] = self.build(start, mid, node, depth + 1)
        self.right[node] = self.build(mid, end, node, depth + 1)
        return node


def _leaf_buffers(
    points_sorted: np.ndarray,
    node_start: np.ndarray,
    node_end: np.ndarray,
    leaf_nodes: np.ndarray,
    leaf_size: int,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    num_leaves = leaf_nodes.shape[0]
    dim = points_sorted.shape[1]
    point_ids = np.full((num_leaves, leaf_size), -1, dtype=INDEX_DTYPE)
    leaf_points = np.zeros((num_leaves, leaf_size, dim), dtype=FLOAT_DTYPE)
    for ordinal, node in enumerate(leaf_nodes):
        start, end = int(node_start[node]), int(node_end[node])
        count = end - start
        point_ids[ordinal, :count] = np.arange(start, end, dtype=INDEX_DTYPE)
        leaf_points[ordinal, :count] = points_sorted[start:end]
    return point_ids, leaf_points, point_ids >= 0


@jaxtyped(typechecker=beartype)
def build_kdtree(points: ArrayLike, *, leaf_size: int = 16) -> KDTree:
    """Build a KD-tree over ``points`` by median splits on the widest axis.

    Args:
        points: Point coordinates with shape ``(n_points, dim)``.
        leaf_size: Maximum number of points stored in a leaf.

    Returns:
        A :class:`KDTree` whose ``points`` are reordered so that each node
        covers a contiguous slice; ``indices[i]`` is the input row of
        ``points[i]``.
    """

    points_arr = _validate_points(points)
    if leaf_size < 1:
        raise ValueError(f"leaf_size must be >= 1, received {leaf_size}")

    builder = _TopologyBuilder(points_arr, int(leaf_size))
    builder.build(0, points_arr.shape[0], -1, 0)

    left_child = as_index(builder.left)
    node_start = as_index(builder.start)
    node_end = as_index(builder.end)
    leaf_nodes = np.nonzero(left_child < 0)[0].astype(INDEX_DTYPE)
    node_to_leaf = np.full(left_child.shape, -1, dtype=INDEX_DTYPE)
    node_to_leaf[leaf_nodes] = np.arange(leaf_nodes.shape[0], dtype=INDEX_DTYPE)

    points_sorted = points_arr[builder.order]
    point_ids, leaf_points, leaf_valid = _leaf_buffers(
        points_sorted, node_start, node_end, leaf_nodes, int(leaf_size)
    )

    return KDTree(
        points=points_sorted,
        indices=builder.order.copy(),
        node_start=node_start,
        node_end=node_end,
        parent=as_index(builder.parent),
        left_child=left_child,
        right_child=as_index(builder.right),
        node_depth=as_index(builder.depth),
        split_dim=as_index(builder.split_dim),
        split_value=as_float(builder.split_value),
        bbox_min=np.stack(builder.mins).astype(FLOAT_DTYPE),
        bbox_max=np.stack(builder.maxs).astype(FLOAT_DTYPE),
        leaf_nodes=leaf_nodes,
        node_to_leaf=node_to_leaf,
        leaf_point_ids=point_ids,
        leaf_points=as_device_float(leaf_points),
        leaf_valid_mask=jnp.asarray(leaf_valid, dtype=jnp.bool_),
        leaf_size=int(leaf_size),
    )


__all__ = ["KDTree", "build_kdtree"]
