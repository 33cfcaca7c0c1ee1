"""Smoke check: pruned classification against the all-pairs reference.

Run from the repository root:
    python examples/classify_smoke.py --n-ref 2000 --n-query 500
"""

from __future__ import annotations

import argparse
import logging

import jax
import jax.numpy as jnp
import numpy as np

from treekde import (
    KernelClassifierParams,
    TraversalConfig,
    brute_force_classify,
    classify,
    log_traversal_stats,
)


def _make_problem(n_ref: int, n_query: int, dim: int, seed: int):
    key = jax.random.PRNGKey(seed)
    k_pos, k_neg, k_query, k_prior = jax.random.split(key, 4)
    half = n_ref // 2
    pos = jax.random.normal(k_pos, (half, dim)) * 0.6 - 0.5
    neg = jax.random.normal(k_neg, (n_ref - half, dim)) * 0.6 + 0.5
    refs = jnp.concatenate([pos, neg], axis=0)
    labels = np.concatenate([np.ones(half, dtype=bool), np.zeros(n_ref - half, dtype=bool)])
    queries = jax.random.uniform(k_query, (n_query, dim), minval=-1.5, maxval=1.5)
    priors = jax.random.uniform(k_prior, (n_query,), minval=0.2, maxval=0.8)
    return np.asarray(refs), labels, np.asarray(queries), np.asarray(priors)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--n-ref", type=int, default=2000)
    parser.add_argument("--n-query", type=int, default=500)
    parser.add_argument("--dim", type=int, default=2)
    parser.add_argument("--bandwidth", type=float, default=0.4)
    parser.add_argument("--leaf-size", type=int, default=32)
    parser.add_argument("--frontier-depth", type=int, default=0)
    parser.add_argument("--workers", type=int, default=1)
    parser.add_argument("--seed", type=int, default=0)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    refs, labels, queries, priors = _make_problem(args.n_ref, args.n_query, args.dim, args.seed)
    params = KernelClassifierParams(args.bandwidth, args.bandwidth)
    config = TraversalConfig(
        leaf_size=args.leaf_size,
        frontier_depth=args.frontier_depth,
        max_workers=args.workers,
    )

    result = classify(
        refs,
        labels,
        queries,
        priors,
        params,
        traversal_config=config,
        stats_logger=log_traversal_stats,
    )
    expected = brute_force_classify(refs, labels, queries, priors, params, backend="tiled")

    mismatches = int(np.sum(result.labels != expected))
    print(f"report: {result.report()}")
    print(f"label mismatches vs all-pairs reference: {mismatches}")


if __name__ == "__main__":
    main()
