"""Exact leaf-to-leaf kernel evaluation on padded device buffers."""

from __future__ import annotations

from typing import NamedTuple

import jax
import jax.numpy as jnp
import numpy as np
from jaxtyping import Array

from .config import KernelClassifierParams
from .dtypes import as_device_float
from .kdtree import KDTree
from .kernels import epanechnikov_on_sq
from .results import Delta, QueryResults


class LeafVisit(NamedTuple):
    """Work done by one base case."""

    points_visited: int
    points_decided: int


@jax.jit
def _leaf_pair_kernel_sums(
    query_leaf_points: Array,
    query_ordinal: Array,
    reference_leaf_points: Array,
    reference_pos_weight: Array,
    reference_neg_weight: Array,
    reference_ordinal: Array,
    inv_bandwidth_sq_pos: Array,
    inv_bandwidth_sq_neg: Array,
) -> tuple[Array, Array]:
    """Per-class unnormalised kernel sums of one query leaf against one reference leaf.

    Padding slots of the reference leaf carry zero weight; padding rows of
    the query leaf produce values the caller discards.
    """

    q = query_leaf_points[query_ordinal]
    r = reference_leaf_points[reference_ordinal]
    diff = q[:, None, :] - r[None, :, :]
    dist_sq = jnp.sum(diff * diff, axis=-1)
    k_pos = epanechnikov_on_sq(dist_sq, inv_bandwidth_sq_pos)
    k_neg = epanechnikov_on_sq(dist_sq, inv_bandwidth_sq_neg)
    sum_pos = jnp.sum(k_pos * reference_pos_weight[reference_ordinal][None, :], axis=1)
    sum_neg = jnp.sum(k_neg * reference_neg_weight[reference_ordinal][None, :], axis=1)
    return sum_pos, sum_neg


def _class_weights(tree: KDTree, is_pos_sorted: np.ndarray) -> tuple[Array, Array]:
    ids = tree.leaf_point_ids
    valid = ids >= 0
    pos = valid & is_pos_sorted[np.where(valid, ids, 0)]
    neg = valid & ~pos
    return (
        as_device_float(pos),
        as_device_float(neg),
    )


class KernelPairVisitor:
    """Base case of the walk: exact sums for the undecided points of a query leaf.

    Args:
        params: Classifier parameters supplying both bandwidths.
        query_tree: Tree owning the query leaves.
        reference_tree: Tree owning the reference leaves.
        reference_is_pos: Boolean class of each reference point in tree order.
    """

    def __init__(
        self,
        params: KernelClassifierParams,
        query_tree: KDTree,
        reference_tree: KDTree,
        reference_is_pos: np.ndarray,
    ) -> None:
        self.query_tree = query_tree
        self.reference_tree = reference_tree
        self._inv_pos = as_device_float(params.kernel_pos.inv_bandwidth_sq)
        self._inv_neg = as_device_float(params.kernel_neg.inv_bandwidth_sq)
        self._pos_weight, self._neg_weight = _class_weights(
            reference_tree, np.asarray(reference_is_pos, dtype=bool)
        )

    def visit_leaf_pair(
        self,
        q_leaf: int,
        r_leaf: int,
        pending: Delta,
        results: QueryResults,
    ) -> LeafVisit:
        active = results.undecided(q_leaf)
        if not np.any(active):
            return LeafVisit(0, 0)

        q_ordinal = int(self.query_tree.node_to_leaf[q_leaf])
        r_ordinal = int(self.reference_tree.node_to_leaf[r_leaf])
        sum_pos, sum_neg = _leaf_pair_kernel_sums(
            self.query_tree.leaf_points,
            q_ordinal,
            self.reference_tree.leaf_points,
            self._pos_weight,
            self._neg_weight,
            r_ordinal,
            self._inv_pos,
            self._inv_neg,
        )
        count = self.query_tree.count(q_leaf)
        results.add_densities(
            q_leaf,
            np.asarray(sum_pos)[:count],
            np.asarray(sum_neg)[:count],
            active,
        )
        decided = results.resolve_with_pending(q_leaf, pending, active)
        return LeafVisit(int(np.sum(active)), decided)


__all__ = ["KernelPairVisitor", "LeafVisit"]
