"""Tests for four-valued labels and their narrow/widen operations."""

import numpy as np
import pytest

from treekde import Label, LabelContradictionError, classification_name, narrow, widen
from treekde.labels import is_resolved, narrow_array


def test_narrow_intersects_outcomes():
    assert narrow(Label.EITHER, Label.POS) == Label.POS
    assert narrow(Label.EITHER, Label.NEG) == Label.NEG
    assert narrow(Label.POS, Label.EITHER) == Label.POS
    assert narrow(Label.EITHER, Label.EITHER) == Label.EITHER


def test_narrow_to_neither_raises_contradiction():
    with pytest.raises(LabelContradictionError):
        narrow(Label.POS, Label.NEG)


def test_resolved_label_never_changes_under_consistent_evidence():
    label = narrow(Label.EITHER, Label.NEG)
    for evidence in (Label.EITHER, Label.NEG, Label.EITHER):
        label = narrow(label, evidence)
        assert label == Label.NEG
    with pytest.raises(LabelContradictionError):
        narrow(label, Label.POS)


def test_widen_unions_sibling_outcomes():
    assert widen(Label.POS, Label.NEG) == Label.EITHER
    assert widen(Label.NEITHER, Label.POS) == Label.POS
    assert widen(Label.NEG, Label.NEG) == Label.NEG


def test_is_resolved_only_for_single_class():
    assert is_resolved(Label.POS)
    assert is_resolved(Label.NEG)
    assert not is_resolved(Label.EITHER)
    assert not is_resolved(Label.NEITHER)


def test_narrow_array_respects_mask():
    current = np.array([3, 3, 1], dtype=np.int8)
    out = narrow_array(current, 2, mask=np.array([True, False, False]))
    np.testing.assert_array_equal(out, np.array([2, 3, 1], dtype=np.int8))


def test_narrow_array_raises_on_conflicting_row():
    current = np.array([3, 1], dtype=np.int8)
    with pytest.raises(LabelContradictionError):
        narrow_array(current, np.array([2, 2], dtype=np.int8))


def test_classification_names():
    assert classification_name(Label.POS) == "POSITIVE"
    assert classification_name(Label.NEG) == "NEGATIVE"
    assert classification_name(Label.EITHER) == "UNKNOWN"
    with pytest.raises(LabelContradictionError):
        classification_name(Label.NEITHER)
