"""Tests for value coercion and the missing-value and weight policy."""

import math

import numpy as np
import pytest

from statify.formatting import format_pvalue, round_half_away
from statify.missing import (
    WeightAdjustment,
    adjust_cells,
    adjust_weight,
    case_weight,
    is_missing,
)
from statify.schema import (
    Measure,
    MissingSpec,
    VariableSpec,
    coerce_value,
    ensure_same_length,
    sort_values,
)


def _spec(**missing):
    return VariableSpec(name="v", missing=MissingSpec.from_dict(missing))


def test_coerce_value_rules():
    assert coerce_value(None) is None
    assert coerce_value(float("nan")) is None
    assert coerce_value("   ") is None
    assert coerce_value(" 3.5 ") == 3.5
    assert coerce_value(np.int64(4)) == 4.0
    assert coerce_value(True) == "True"
    assert coerce_value(" abc ") == "abc"
    assert coerce_value("inf") == "inf"


def test_measure_parse_defaults_to_scale():
    assert Measure.parse("Nominal") is Measure.NOMINAL
    assert Measure.parse("unknown") is Measure.SCALE
    assert not Measure.NOMINAL.is_numeric


def test_variable_spec_from_dict_accepts_both_code_keys():
    spec = VariableSpec.from_dict(
        {"name": "age", "measure": "scale", "missing": {"discreteCodes": [99], "range": {"min": 0, "max": 5}}}
    )
    assert spec.missing.discrete_codes == (99,)
    assert spec.missing.range == (0.0, 5.0)
    other = VariableSpec.from_dict({"name": "age", "missing": {"discrete": ["x"], "range": [1, 2]}})
    assert other.missing.discrete_codes == ("x",)
    assert other.missing.range == (1.0, 2.0)
    with pytest.raises(ValueError, match="name"):
        VariableSpec.from_dict({"measure": "scale"})


def test_null_and_blank_are_missing():
    spec = _spec()
    assert is_missing(None, spec, True)
    assert is_missing("", spec, False)
    assert is_missing(float("nan"), spec, True)
    assert not is_missing(0, spec, True)


def test_discrete_codes_compare_numerically_for_numeric_variables():
    spec = _spec(discrete=["99", 98.0])
    assert is_missing(99, spec, True)
    assert is_missing("98", spec, True)
    assert not is_missing(97, spec, True)


def test_discrete_codes_compare_as_text_for_string_variables():
    spec = _spec(discrete=["NA", 9])
    assert is_missing(" NA ", spec, False)
    assert is_missing("9", spec, False)
    assert not is_missing("na", spec, False)


def test_missing_range_is_inclusive_and_numeric_only():
    spec = _spec(range={"min": -9, "max": -1})
    assert is_missing(-9, spec, True)
    assert is_missing(-1, spec, True)
    assert is_missing(-5.5, spec, True)
    assert not is_missing(0, spec, True)
    assert not is_missing(-5, spec, False)


def test_adjust_weight_modes():
    assert adjust_weight(2.5, WeightAdjustment.NO_ADJUSTMENT) == 2.5
    assert adjust_weight(2.5, WeightAdjustment.ROUND_CASE) == 3.0
    assert adjust_weight(2.5, WeightAdjustment.TRUNCATE_CASE) == 2.0
    assert adjust_weight(2.5, WeightAdjustment.ROUND_CELL) == 2.5
    assert adjust_weight(0.4, WeightAdjustment.ROUND_CASE) is None
    assert adjust_weight(0.9, WeightAdjustment.TRUNCATE_CASE) is None


@pytest.mark.parametrize("raw", [0, -1, "abc", None, float("nan"), math.inf])
def test_invalid_weights_disqualify_case(raw):
    assert adjust_weight(raw) is None


def test_case_weight_treats_absent_entries_as_unit():
    assert case_weight(None, 3) == 1.0
    assert case_weight([2.0, None], 1) == 1.0
    assert case_weight(["2"], 0) == 2.0
    assert case_weight([0.0], 0) is None


def test_weight_adjustment_parse():
    assert WeightAdjustment.parse("roundCell") is WeightAdjustment.ROUND_CELL
    assert WeightAdjustment.parse(None) is WeightAdjustment.NO_ADJUSTMENT
    assert WeightAdjustment.TRUNCATE_CELL.is_cell_level
    with pytest.raises(ValueError, match="non-integer weight mode"):
        WeightAdjustment.parse("sometimes")


def test_adjust_cells_round_and_truncate():
    counts = np.array([[1.5, 2.4], [0.6, 3.0]])
    assert np.array_equal(adjust_cells(counts, WeightAdjustment.ROUND_CELL), [[2.0, 2.0], [1.0, 3.0]])
    assert np.array_equal(adjust_cells(counts, WeightAdjustment.TRUNCATE_CELL), [[1.0, 2.0], [0.0, 3.0]])
    assert np.array_equal(adjust_cells(counts, WeightAdjustment.ROUND_CASE), counts)


def test_sort_values_numeric_and_natural():
    assert sort_values([3.0, 1.0, 2.0, None]) == [1.0, 2.0, 3.0]
    assert sort_values(["item10", "item2", "Item1"]) == ["Item1", "item2", "item10"]


def test_ensure_same_length():
    assert ensure_same_length([1, 2], None, ["a", "b"]) == 2
    with pytest.raises(ValueError, match="equal length"):
        ensure_same_length([1, 2], [1])


def test_round_half_away_and_pvalue_format():
    assert round_half_away(2.25, 1) == 2.3
    assert round_half_away(-0.05, 1) == -0.1
    assert round_half_away(2.675, 2) == 2.68
    assert format_pvalue(0.0004) == "<0.001"
    assert format_pvalue(0.04567) == "0.046"
    assert format_pvalue(None) == ""
