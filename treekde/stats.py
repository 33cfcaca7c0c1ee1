"""Per-node bottom-up statistics for query and reference trees.

Every node carries the moment summaries and bounding boxes of its
positive and negative points, plus the range of query priors below it.
Statistics merge commutatively and associatively, so internal nodes are
built from their children in any order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
from beartype import beartype
from jaxtyping import ArrayLike, jaxtyped

from .bounds import Bound
from .dtypes import FLOAT_DTYPE, as_float
from .intervals import Interval
from .kdtree import KDTree
from .moments import MomentInfo


@dataclass(frozen=True, eq=False)
class NodeStat:
    """Aggregate over the points of one tree node."""

    moment_info_pos: MomentInfo
    moment_info_neg: MomentInfo
    bound_pos: Bound
    bound_neg: Bound
    count_pos: int
    count_neg: int
    pi_pos: Interval
    pi_neg: Interval

    @classmethod
    def empty(cls, dim: int) -> "NodeStat":
        return cls(
            MomentInfo.empty(dim),
            MomentInfo.empty(dim),
            Bound.empty(dim),
            Bound.empty(dim),
            0,
            0,
            Interval.empty(),
            Interval.empty(),
        )

    @classmethod
    def from_points(
        cls,
        points: np.ndarray,
        is_pos: np.ndarray,
        priors: np.ndarray,
    ) -> "NodeStat":
        """Statistic for a leaf holding ``points`` with classes and priors."""

        pts = as_float(points)
        pos = np.asarray(is_pos, dtype=bool)
        pi = as_float(priors)
        pos_points = pts[pos]
        neg_points = pts[~pos]
        if pi.shape[0] > 0:
            pi_pos = Interval(float(np.min(pi)), float(np.max(pi)))
            pi_neg = Interval(1.0 - pi_pos.hi, 1.0 - pi_pos.lo)
        else:
            pi_pos = pi_neg = Interval.empty()
        return cls(
            MomentInfo.from_points(pos_points),
            MomentInfo.from_points(neg_points),
            Bound.from_points(pos_points),
            Bound.from_points(neg_points),
            int(pos_points.shape[0]),
            int(neg_points.shape[0]),
            pi_pos,
            pi_neg,
        )

    @property
    def count(self) -> int:
        return self.count_pos + self.count_neg

    def merge(self, other: "NodeStat") -> "NodeStat":
        """Statistic of the union of two disjoint point sets."""

        return NodeStat(
            self.moment_info_pos.merge(other.moment_info_pos),
            self.moment_info_neg.merge(other.moment_info_neg),
            self.bound_pos.union(other.bound_pos),
            self.bound_neg.union(other.bound_neg),
            self.count_pos + other.count_pos,
            self.count_neg + other.count_neg,
            self.pi_pos.union(other.pi_pos),
            self.pi_neg.union(other.pi_neg),
        )


def _validate_labels(labels: Optional[ArrayLike], num_points: int) -> np.ndarray:
    if labels is None:
        return np.zeros((num_points,), dtype=bool)
    labels_arr = np.asarray(labels)
    if labels_arr.shape != (num_points,):
        raise ValueError(
            f"labels must have shape ({num_points},); received {labels_arr.shape}"
        )
    if labels_arr.dtype != np.bool_:
        if not np.all(np.isin(labels_arr, (0, 1))):
            raise ValueError("labels must be boolean or 0/1 valued")
    return labels_arr.astype(bool)


def _validate_priors(priors: Optional[ArrayLike], num_points: int) -> np.ndarray:
    if priors is None:
        return np.full((num_points,), 0.5, dtype=FLOAT_DTYPE)
    priors_arr = as_float(priors)
    if priors_arr.shape != (num_points,):
        raise ValueError(
            f"priors must have shape ({num_points},); received {priors_arr.shape}"
        )
    if not np.all((priors_arr >= 0.0) & (priors_arr <= 1.0)):
        raise ValueError("priors must lie in [0, 1]")
    return priors_arr


@jaxtyped(typechecker=beartype)
def compute_node_stats(
    tree: KDTree,
    labels: Optional[ArrayLike] = None,
    priors: Optional[ArrayLike] = None,
) -> tuple[NodeStat, ...]:
    """Compute a :class:`NodeStat` for every node of ``tree``.

    Parameters
    ----------
    tree : KDTree
        Tree whose ``points`` are in tree order.
    labels : ArrayLike, optional
        Per-point class in input order (truthy means positive). Query trees
        may omit it, in which case every point counts as negative.
    priors : ArrayLike, optional
        Per-point positive prior in input order. Reference trees may omit
        it (defaults to 0.5).

    Returns
    -------
    tuple[NodeStat, ...]
        Statistics indexed by node id.
    """

    num_points = tree.num_points
    is_pos = _validate_labels(labels, num_points)[tree.indices]
    pi = _validate_priors(priors, num_points)[tree.indices]

    stats: list[Optional[NodeStat]] = [None] * tree.num_nodes
    # Pre-order numbering puts children after parents; walk backwards.
    for node in range(tree.num_nodes - 1, -1, -1):
        if tree.is_leaf(node):
            start, end = tree.point_range(node)
            stats[node] = NodeStat.from_points(
                tree.points[start:end], is_pos[start:end], pi[start:end]
            )
        else:
            left, right = tree.children(node)
            stats[node] = stats[left].merge(stats[right])
    return tuple(stats)


__all__ = ["NodeStat", "compute_node_stats"]
