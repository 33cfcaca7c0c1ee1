"""All-pairs reference classifier used to validate the pruned traversal."""

from __future__ import annotations

from functools import partial
from typing import Literal, Optional

import jax
import jax.numpy as jnp
import numpy as np
from beartype import beartype
from jaxtyping import Array, ArrayLike, jaxtyped

from .config import KernelClassifierParams, ThresholdConstants
from .dtypes import as_device_float, as_float
from .kdtree import _validate_points
from .kernels import epanechnikov_on_sq
from .stats import _validate_labels, _validate_priors


def _pairwise_squared_distances(queries: Array, points: Array) -> Array:
    """Return squared pairwise distances with shape ``(n_queries, n_points)``."""

    deltas = queries[:, None, :] - points[None, :, :]
    return jnp.sum(deltas * deltas, axis=-1)


@jax.jit
def _kernel_sums_dense(
    queries: Array,
    points: Array,
    pos_weight: Array,
    neg_weight: Array,
    inv_bandwidth_sq_pos: Array,
    inv_bandwidth_sq_neg: Array,
) -> tuple[Array, Array]:
    d2 = _pairwise_squared_distances(queries, points)
    sum_pos = jnp.sum(epanechnikov_on_sq(d2, inv_bandwidth_sq_pos) * pos_weight[None, :], axis=1)
    sum_neg = jnp.sum(epanechnikov_on_sq(d2, inv_bandwidth_sq_neg) * neg_weight[None, :], axis=1)
    return sum_pos, sum_neg


@partial(jax.jit, static_argnames=("block_size",))
def _kernel_sums_tiled(
    queries: Array,
    points: Array,
    pos_weight: Array,
    neg_weight: Array,
    inv_bandwidth_sq_pos: Array,
    inv_bandwidth_sq_neg: Array,
    *,
    block_size: int,
) -> tuple[Array, Array]:
    num_points, dim = points.shape
    num_blocks = (num_points + block_size - 1) // block_size
    pad = num_blocks * block_size - num_points
    if pad > 0:
        points = jnp.concatenate([points, jnp.zeros((pad, dim), dtype=points.dtype)], axis=0)
        # Padding rows carry zero weight in both classes.
        zeros = jnp.zeros((pad,), dtype=pos_weight.dtype)
        pos_weight = jnp.concatenate([pos_weight, zeros])
        neg_weight = jnp.concatenate([neg_weight, zeros])

    n_queries = queries.shape[0]
    init = (
        jnp.zeros((n_queries,), dtype=queries.dtype),
        jnp.zeros((n_queries,), dtype=queries.dtype),
    )

    def body(block_idx, state):
        acc_pos, acc_neg = state
        start = block_idx * block_size
        block_points = jax.lax.dynamic_slice(points, (start, 0), (block_size, dim))
        block_pos = jax.lax.dynamic_slice(pos_weight, (start,), (block_size,))
        block_neg = jax.lax.dynamic_slice(neg_weight, (start,), (block_size,))
        part_pos, part_neg = _kernel_sums_dense(
            queries,
            block_points,
            block_pos,
            block_neg,
            inv_bandwidth_sq_pos,
            inv_bandwidth_sq_neg,
        )
        return acc_pos + part_pos, acc_neg + part_neg

    return jax.lax.fori_loop(0, num_blocks, body, init)


@jaxtyped(typechecker=beartype)
def brute_force_kernel_sums(
    reference_points: ArrayLike,
    reference_labels: ArrayLike,
    query_points: ArrayLike,
    params: KernelClassifierParams,
    *,
    backend: Literal["dense", "tiled"] = "dense",
    point_block_size: int = 1024,
) -> tuple[np.ndarray, np.ndarray]:
    """Exact unnormalised per-class kernel sums for every query point.

    Args:
        reference_points: Reference coordinates with shape ``(n_ref, dim)``.
        reference_labels: Boolean class per reference point (``True`` is
            positive).
        query_points: Query coordinates with shape ``(n_queries, dim)``.
        params: Classifier parameters supplying the two bandwidths.
        backend: ``dense`` builds the full pairwise matrix; ``tiled``
            accumulates blockwise over reference points with lower memory.
        point_block_size: Block size used by the tiled backend.

    Returns:
        Tuple ``(kernel_sum_pos, kernel_sum_neg)`` of shape ``(n_queries,)``.
    """

    params.validate()
    refs = _validate_points(reference_points)
    queries = _validate_points(query_points)
    if queries.shape[1] != refs.shape[1]:
        raise ValueError(
            "query_points and reference_points must share dim; "
            f"received {queries.shape[1]} and {refs.shape[1]}"
        )
    if backend not in {"dense", "tiled"}:
        raise ValueError("backend must be one of: 'dense', 'tiled'")
    if point_block_size < 1:
        raise ValueError(f"point_block_size must be >= 1, received {point_block_size}")

    is_pos = _validate_labels(reference_labels, refs.shape[0])
    args = (
        as_device_float(queries),
        as_device_float(refs),
        as_device_float(is_pos),
        as_device_float(~is_pos),
        as_device_float(params.kernel_pos.inv_bandwidth_sq),
        as_device_float(params.kernel_neg.inv_bandwidth_sq),
    )
    if backend == "dense":
        sum_pos, sum_neg = _kernel_sums_dense(*args)
    else:
        sum_pos, sum_neg = _kernel_sums_tiled(*args, block_size=int(point_block_size))
    return (
        as_float(sum_pos),
        as_float(sum_neg),
    )


@jaxtyped(typechecker=beartype)
def brute_force_classify(
    reference_points: ArrayLike,
    reference_labels: ArrayLike,
    query_points: ArrayLike,
    query_priors: Optional[ArrayLike],
    params: KernelClassifierParams,
    *,
    backend: Literal["dense", "tiled"] = "dense",
    point_block_size: int = 1024,
) -> np.ndarray:
    """Label every query point from exact all-pairs kernel sums.

    Applies the same dominance test as the pruned classifier, so points
    inside the tolerance band around the threshold stay ``Label.EITHER``.
    Returns labels in query order as ``int8`` :class:`~treekde.labels.Label`
    values.
    """

    sum_pos, sum_neg = brute_force_kernel_sums(
        reference_points,
        reference_labels,
        query_points,
        params,
        backend=backend,
        point_block_size=point_block_size,
    )
    refs = as_float(reference_points)
    is_pos = _validate_labels(reference_labels, refs.shape[0])
    priors = _validate_priors(query_priors, sum_pos.shape[0])
    constants = ThresholdConstants.compute(
        params,
        refs.shape[1],
        int(np.sum(is_pos)),
        int(np.sum(~is_pos)),
    )
    return constants.dominant_labels(sum_pos, sum_pos, sum_neg, sum_neg, priors)


__all__ = ["brute_force_classify", "brute_force_kernel_sums"]
