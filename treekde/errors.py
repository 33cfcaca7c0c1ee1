"""Exception types raised by the classification core."""

from __future__ import annotations


class TreeKDEError(Exception):
    """Base class for internal consistency failures."""


class LabelContradictionError(TreeKDEError, RuntimeError):
    """Two pieces of evidence narrowed a label to NEITHER."""


class EmptyMomentError(TreeKDEError, ValueError):
    """A kernel-sum range was requested over an empty point summary."""


__all__ = ["EmptyMomentError", "LabelContradictionError", "TreeKDEError"]
