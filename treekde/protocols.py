"""Structural protocols for the generic dual-tree walk.

The traversal engine only talks to these capabilities, so a different
dual-tree problem (density estimation, range counting, ...) can reuse it
by supplying its own algorithm, leaf visitor and result store.
"""

from __future__ import annotations

import enum
from typing import Any, NamedTuple, Optional, Protocol

from .bounds import Bound


class PairOutcome(enum.Enum):
    """Decision for a (query node, reference node) pair."""

    EXCLUSION = "exclusion"
    INCLUSION = "inclusion"
    APPROXIMATE = "approximate"


class PairDecision(NamedTuple):
    """Result of an intrinsic pair test.

    ``delta`` is set for ``APPROXIMATE`` pairs; ``postponed`` holds the
    contribution to fold into the query node for ``INCLUSION`` pairs.
    """

    outcome: PairOutcome
    delta: Any = None
    postponed: Any = None


class TreeTopologyProtocol(Protocol):
    """Minimal structure needed for parent/child traversal."""

    @property
    def num_nodes(self) -> int: ...

    def is_leaf(self, node: int) -> bool: ...

    def children(self, node: int) -> tuple[int, int]: ...

    def count(self, node: int) -> int: ...

    def node_bound(self, node: int) -> Bound: ...


class DualTreeAlgorithm(Protocol):
    """Pruning policy for one dual-tree problem."""

    def initial_postponed(self) -> Any: ...

    def initial_summary(self) -> Any: ...

    def zero_delta(self) -> Any: ...

    def consider_pair_intrinsic(self, q_node: int, r_node: int) -> PairDecision: ...

    def consider_pair_extrinsic(
        self,
        q_node: int,
        r_node: int,
        delta: Any,
        summary: Any,
        global_result: Any,
    ) -> bool: ...

    def consider_query_termination(
        self,
        q_node: int,
        summary: Any,
        global_result: Any,
    ) -> Optional[Any]: ...

    def heuristic(self, q_node: int, r_node: int) -> float: ...

    def summarize_node(self, q_node: int, summary: Any, postponed: Any) -> Any: ...


class LeafPairVisitor(Protocol):
    """Exact evaluation of a query leaf against a reference leaf.

    ``visit_leaf_pair`` returns an object with a ``points_visited`` count.
    """

    def visit_leaf_pair(
        self,
        q_leaf: int,
        r_leaf: int,
        pending: Any,
        results: Any,
    ) -> Any: ...


class QueryResultStore(Protocol):
    """Per-point results, addressed by query node."""

    def apply_postponed(self, node: int, postponed: Any) -> None: ...

    def summarize(self, node: int) -> Any: ...

    def finalize(self, node: int) -> Any: ...


__all__ = [
    "DualTreeAlgorithm",
    "LeafPairVisitor",
    "PairDecision",
    "PairOutcome",
    "QueryResultStore",
    "TreeTopologyProtocol",
]
