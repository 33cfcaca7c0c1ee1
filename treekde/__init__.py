"""treekde: dual-tree pruned kernel density classification."""

from jax import config as _jax_config

# Kernel totals over many reference points need float64 accumulation.
_jax_config.update("jax_enable_x64", True)

from .algorithm import KernelClassifierAlgorithm
from .bounds import Bound
from .classifier import (
    ClassificationResult,
    StatsLogger,
    classify,
    classify_monochromatic,
)
from .config import (
    THRESHOLD_TOLERANCE,
    KernelClassifierParams,
    ThresholdConstants,
    TraversalConfig,
    resolve_traversal_config,
    set_default_traversal_config,
)
from .dense import brute_force_classify, brute_force_kernel_sums
from .dtypes import FLOAT_DTYPE, INDEX_DTYPE, LABEL_DTYPE
from .errors import EmptyMomentError, LabelContradictionError, TreeKDEError
from .intervals import Interval
from .kdtree import KDTree, build_kdtree
from .kernels import EpanechnikovKernel, unit_ball_volume
from .labels import Label, classification_name, narrow, widen
from .moments import MomentInfo
from .protocols import (
    DualTreeAlgorithm,
    LeafPairVisitor,
    PairDecision,
    PairOutcome,
    QueryResultStore,
    TreeTopologyProtocol,
)
from .results import (
    Delta,
    GlobalResult,
    Postponed,
    QueryResults,
    Result,
    SummaryResult,
)
from .stats import NodeStat, compute_node_stats
from .traversal import DualTreeTraversal, TraversalStats, log_traversal_stats
from .visitor import KernelPairVisitor, LeafVisit

__all__ = [
    "FLOAT_DTYPE",
    "INDEX_DTYPE",
    "LABEL_DTYPE",
    "THRESHOLD_TOLERANCE",
    "Bound",
    "ClassificationResult",
    "Delta",
    "DualTreeAlgorithm",
    "DualTreeTraversal",
    "EmptyMomentError",
    "EpanechnikovKernel",
    "GlobalResult",
    "Interval",
    "KDTree",
    "KernelClassifierAlgorithm",
    "KernelClassifierParams",
    "KernelPairVisitor",
    "Label",
    "LabelContradictionError",
    "LeafPairVisitor",
    "LeafVisit",
    "MomentInfo",
    "NodeStat",
    "PairDecision",
    "PairOutcome",
    "Postponed",
    "QueryResultStore",
    "QueryResults",
    "Result",
    "StatsLogger",
    "SummaryResult",
    "ThresholdConstants",
    "TraversalConfig",
    "TraversalStats",
    "TreeKDEError",
    "TreeTopologyProtocol",
    "brute_force_classify",
    "brute_force_kernel_sums",
    "build_kdtree",
    "classification_name",
    "classify",
    "classify_monochromatic",
    "compute_node_stats",
    "log_traversal_stats",
    "narrow",
    "resolve_traversal_config",
    "set_default_traversal_config",
    "unit_ball_volume",
    "widen",
]
