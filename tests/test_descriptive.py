"""Tests for the weighted descriptive moment calculator."""

import numpy as np
import pytest
from scipy import stats

from statify.descriptive import (
    DescriptiveOptions,
    MomentAccumulator,
    describe,
    weighted_percentile,
)

SCALE = {"name": "score", "measure": "scale"}


def test_unit_weights_are_a_no_op():
    data = [2.0, 4.0, 4.0, 5.0, 7.0, 9.0, 10.5]
    plain = describe(data, SCALE)
    weighted = describe(data, SCALE, weights=[1] * len(data))
    assert plain == weighted
    assert np.isclose(plain.mean, np.mean(data))
    assert np.isclose(plain.variance, np.var(data, ddof=1))


def test_moments_match_scipy_bias_corrected_estimators():
    data = [1.0, 2.0, 2.5, 3.0, 7.0, 8.0, 12.0]
    result = describe(data, SCALE)
    assert result.skewness == pytest.approx(stats.skew(data, bias=False), rel=1e-10)
    assert result.kurtosis == pytest.approx(stats.kurtosis(data, bias=False), rel=1e-10)
    assert result.se_mean == pytest.approx(stats.sem(data), rel=1e-12)
    assert result.sum == pytest.approx(sum(data))
    assert result.range == pytest.approx(11.0)


def test_known_standard_errors_for_five_cases():
    result = describe([1, 2, 3, 4, 5], SCALE)
    assert result.skewness == pytest.approx(0.0, abs=1e-12)
    assert result.kurtosis == pytest.approx(-1.2)
    assert result.se_skewness == pytest.approx(0.9128709, rel=1e-6)
    assert result.se_kurtosis == pytest.approx(2.0, rel=1e-6)


def test_frequency_weights_equal_replicated_cases():
    weighted = describe([1.0, 2.0, 3.0], SCALE, weights=[2, 1, 1])
    replicated = describe([1.0, 1.0, 2.0, 3.0], SCALE)
    assert weighted.n == 3
    assert weighted.valid_weight_sum == 4.0
    for field in ("mean", "variance", "skewness", "kurtosis", "se_mean"):
        assert getattr(weighted, field) == pytest.approx(getattr(replicated, field))


@pytest.mark.parametrize(
    "data,variance_defined,skew_defined,kurt_defined",
    [
        ([5.0], False, False, False),
        ([1.0, 2.0], True, False, False),
        ([1.0, 2.0, 4.0], True, True, False),
        ([1.0, 2.0, 4.0, 8.0], True, True, True),
    ],
)
def test_statistics_are_none_below_weight_thresholds(data, variance_defined, skew_defined, kurt_defined):
    result = describe(data, SCALE)
    assert (result.variance is not None) is variance_defined
    assert (result.skewness is not None) is skew_defined
    assert (result.kurtosis is not None) is kurt_defined


def test_zero_variance_gives_none_shape_statistics():
    result = describe([4, 4, 4, 4, 4], SCALE)
    assert result.variance == 0.0
    assert result.skewness is None
    assert result.kurtosis is None


def test_no_valid_cases_returns_all_none():
    result = describe([None, "", 99], {"name": "x", "missing": {"discrete": [99]}})
    assert result.n == 0
    assert result.n_total == 3
    assert result.mean is None
    assert result.variance is None
    assert result.median_unweighted is None
    assert result.z_scores is None
    assert result.missing_weight_sum == 3.0


def test_missing_codes_and_invalid_weights():
    data = [1.0, 99.0, None, 3.0, 5.0]
    weights = [1.0, 1.0, 1.0, 0.0, "x"]
    result = describe(data, {"name": "x", "missing": {"discrete": [99]}}, weights=weights)
    assert result.n == 1
    assert result.valid_weight_sum == 1.0
    assert result.missing_weight_sum == 2.0


def test_median_is_unweighted_and_percentiles_are_weighted():
    result = describe([1.0, 2.0, 3.0], SCALE, weights=[10, 1, 1])
    assert result.median_unweighted == 2.0
    assert result.percentiles["50"] == 1.0


def test_weighted_average_percentiles():
    result = describe([1, 2, 3, 4], SCALE)
    assert result.percentiles == {"25": 1.25, "50": 2.5, "75": 3.75}
    assert result.iqr == pytest.approx(2.5)
    assert weighted_percentile([1.0], [1.0], 1.0, 50) == 1.0
    assert weighted_percentile([], [], 0.0, 50) is None


def test_mode_includes_text_values():
    result = describe(["a", "b", "b", 1], {"name": "mixed", "measure": "nominal"})
    assert result.mode == ("b",)
    assert result.n == 1


def test_z_scores_align_with_original_cases():
    options = DescriptiveOptions(save_standardized=True)
    result = describe([2, None, 4, 6], SCALE, options=options)
    assert result.z_scores == pytest.approx((-1.0, None, 0.0, 1.0))
    assert describe([2, 4, 6], SCALE).z_scores is None
    assert describe([3, 3, 3], SCALE, options=options).z_scores is None


def test_options_from_dict_accepts_camel_case():
    assert DescriptiveOptions.from_dict({"saveStandardized": True}).save_standardized
    assert not DescriptiveOptions.from_dict(None).save_standardized


def test_inputs_are_not_mutated_and_reruns_are_identical():
    data = [3, 1, None, 2]
    weights = [1.0, 2.0, 1.0, 0.5]
    first = describe(data, SCALE, weights=weights)
    second = describe(data, SCALE, weights=weights)
    assert first == second
    assert data == [3, 1, None, 2]
    assert weights == [1.0, 2.0, 1.0, 0.5]


def test_moment_accumulator_empty():
    acc = MomentAccumulator.from_values([], [])
    assert acc.N == 0
    assert acc.mean is None
    assert acc.variance is None


def test_moments_do_not_depend_on_measurement_level():
    data = [1, 2, 2, 3, 5, "n/a"]
    scale = describe(data, SCALE)
    for measure in ("ordinal", "nominal", "date"):
        other = describe(data, {"name": "score", "measure": measure})
        assert other.mean == pytest.approx(scale.mean)
        assert other.variance == pytest.approx(scale.variance)
        assert other.skewness == pytest.approx(scale.skewness)
    nominal = describe(data, {"name": "score", "measure": "nominal"})
    assert nominal.n == 5
    assert nominal.mode == scale.mode
