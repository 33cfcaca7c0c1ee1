"""Four-valued classification labels.

A label is a set of still-possible outcomes. Evidence about a single
subtree or point only ever removes outcomes (``narrow``), while summaries
over siblings keep every outcome any sibling still allows (``widen``).
"""

from __future__ import annotations

import enum

import numpy as np

from .dtypes import LABEL_DTYPE
from .errors import LabelContradictionError


class Label(enum.IntFlag):
    """Possible classification outcomes as a bit set."""

    NEITHER = 0
    POS = 1
    NEG = 2
    EITHER = 3


_CLASSIFICATION_NAMES = {
    Label.POS: "POSITIVE",
    Label.NEG: "NEGATIVE",
    Label.EITHER: "UNKNOWN",
}


def narrow(current: Label, evidence: Label) -> Label:
    """Intersect ``current`` with new ``evidence``.

    Raises
    ------
    LabelContradictionError
        If the intersection is empty.
    """

    result = Label(int(current) & int(evidence))
    if result == Label.NEITHER:
        raise LabelContradictionError(
            f"conflicting labels: {Label(current)!r} and {Label(evidence)!r}"
        )
    return result


def widen(left: Label, right: Label) -> Label:
    """Union of outcomes allowed by two sibling summaries."""

    return Label(int(left) | int(right))


def is_resolved(label: Label) -> bool:
    """Return ``True`` when exactly one class remains possible."""

    return label == Label.POS or label == Label.NEG


def narrow_array(current: np.ndarray, evidence, mask=None) -> np.ndarray:
    """Vectorised :func:`narrow` over per-point label arrays."""

    current = np.asarray(current, dtype=LABEL_DTYPE)
    evidence = np.broadcast_to(np.asarray(evidence, dtype=LABEL_DTYPE), current.shape)
    result = np.bitwise_and(current, evidence)
    if mask is not None:
        result = np.where(mask, result, current)
    if np.any(result == int(Label.NEITHER)):
        bad = int(np.argmax(result == int(Label.NEITHER)))
        raise LabelContradictionError(
            "conflicting labels at row "
            f"{bad}: {Label(int(current[bad]))!r} and {Label(int(evidence[bad]))!r}"
        )
    return result.astype(LABEL_DTYPE)


def classification_name(label: Label) -> str:
    """Map a final label onto ``POSITIVE``/``NEGATIVE``/``UNKNOWN``."""

    try:
        return _CLASSIFICATION_NAMES[Label(label)]
    except KeyError:
        raise LabelContradictionError(f"label {Label(label)!r} is not a final outcome")


__all__ = [
    "Label",
    "classification_name",
    "is_resolved",
    "narrow",
    "narrow_array",
    "widen",
]
