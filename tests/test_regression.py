"""Tests for OLS, the linearity test and collinearity diagnostics."""

import numpy as np
import pytest
from scipy import stats

from statify.errors import InsufficientDataError, SingularMatrixError
from statify.stats.regression import (
    LinearityOptions,
    collinearity_diagnostics,
    fit_ols,
    linearity_test,
    variance_inflation,
)

# Fixed perturbations keep the tests deterministic.
NOISE = np.array([0.3, -0.2, 0.1, 0.4, -0.5, 0.2, -0.1, -0.3, 0.25, -0.15, 0.05, -0.05])


def test_exact_line_recovers_coefficients():
    x = np.arange(1.0, 11.0)
    y = 2.0 + 3.0 * x
    fit = fit_ols(y, x)
    assert np.allclose(fit.beta, [2.0, 3.0])
    assert fit.sse == pytest.approx(0.0, abs=1e-12)
    assert fit.r_squared == pytest.approx(1.0)
    assert fit.df == 8
    assert fit.standardized[0] is None
    assert fit.standardized[1] == pytest.approx(1.0)


def test_inference_matches_scipy_linregress():
    x = np.arange(12.0)
    y = 1.5 + 0.8 * x + NOISE
    fit = fit_ols(y, x)
    ref = stats.linregress(x, y)
    assert fit.beta[1] == pytest.approx(ref.slope)
    assert fit.beta[0] == pytest.approx(ref.intercept)
    assert fit.std_error[1] == pytest.approx(ref.stderr)
    assert fit.std_error[0] == pytest.approx(ref.intercept_stderr)
    assert fit.p_value[1] == pytest.approx(ref.pvalue, rel=1e-6, abs=1e-300)
    assert fit.r_squared == pytest.approx(ref.rvalue**2)


def test_multiple_regression_matches_numpy_and_anova_adds_up():
    rng = np.random.default_rng(3)
    x = rng.normal(size=(30, 3))
    y = 1.0 + x @ np.array([0.5, -1.0, 2.0]) + rng.normal(scale=0.5, size=30)
    fit = fit_ols(y, x)
    design = np.column_stack([np.ones(30), x])
    expected, *_ = np.linalg.lstsq(design, y, rcond=None)
    assert np.allclose(fit.beta, expected)
    assert fit.ssr + fit.sse == pytest.approx(fit.sst)
    assert fit.df == 26
    assert fit.f_stat == pytest.approx((fit.ssr / 3) / fit.mse)
    assert fit.f_p_value == pytest.approx(stats.f.sf(fit.f_stat, 3, 26), rel=1e-8, abs=1e-300)
    assert fit.adj_r_squared == pytest.approx(1 - (1 - fit.r_squared) * 29 / 26)
    assert len(fit.fitted) == len(fit.residuals) == 30


def test_incomplete_rows_are_dropped_listwise():
    x = [1.0, 2.0, np.nan, 4.0, 5.0, 6.0]
    y = [3.1, 4.9, 7.0, None, 11.2, 12.8]
    fit = fit_ols(y, x)
    assert fit.n == 4


def test_too_few_cases_raise():
    with pytest.raises(InsufficientDataError, match="at least 3"):
        fit_ols([1.0, 2.0], [1.0, 2.0])


def test_collinear_regressors_raise_singular_matrix():
    x1 = np.arange(8.0)
    x = np.column_stack([x1, 2.0 * x1])
    with pytest.raises(SingularMatrixError):
        fit_ols(x1 + 1.0, x)


def test_zero_standard_error_gives_none_t_and_p():
    x = np.array([-1.0, 1.0, -1.0, 1.0, -1.0, 1.0, -1.0, 1.0])
    fit = fit_ols(np.full(8, 4.0), x)
    assert fit.sst == 0.0
    assert fit.t_stat == (None, None)
    assert fit.p_value == (None, None)
    assert fit.r_squared is None
    assert fit.standardized == (None, None)


def test_linearity_accepts_linear_data():
    x = np.arange(1.0, 13.0)
    exact = linearity_test(2.0 + 3.0 * x, x)
    assert exact.p_value > 0.05
    assert exact.f_stat == 0.0
    noisy = linearity_test(2.0 + 3.0 * x + NOISE, x)
    assert noisy.p_value > 0.05
    assert noisy.df1 == 2
    assert noisy.df2 == 12 - 4


def test_linearity_rejects_quadratic_data():
    x = np.arange(1.0, 13.0)
    exact = linearity_test(x**2, x)
    assert exact.p_value <= 0.05
    noisy = linearity_test(0.5 * x**2 - x + NOISE, x)
    assert noisy.p_value <= 0.05
    assert noisy.f_stat > 10


def test_linearity_f_matches_nested_model_formula():
    x = np.arange(1.0, 13.0)
    y = np.log(x) * 4.0 + NOISE
    result = linearity_test(y, x, max_power=2)
    restricted = fit_ols(y, x)
    z = (np.asarray(restricted.fitted) - np.mean(restricted.fitted)) / np.std(restricted.fitted)
    unrestricted = fit_ols(y, np.column_stack([x, z**2]))
    expected = (restricted.sse - unrestricted.sse) / (unrestricted.sse / (12 - 3))
    assert result.f_stat == pytest.approx(expected)
    assert result.p_value == pytest.approx(stats.f.sf(expected, 1, 9), rel=1e-8)


def test_linearity_preconditions():
    with pytest.raises(InsufficientDataError, match="constant"):
        linearity_test([1.0, 2.0, 3.0, 4.0, 5.0, 6.0], np.full(6, 2.0), names=["dose"])
    with pytest.raises(InsufficientDataError, match="at least 3"):
        linearity_test([1.0, 2.0], [1.0, 2.0])
    with pytest.raises(InsufficientDataError, match="more than 4"):
        linearity_test([1.0, 4.0, 9.0, 16.0], [1.0, 2.0, 3.0, 4.0])
    with pytest.raises(ValueError, match="max_power"):
        LinearityOptions(max_power=1)
    assert LinearityOptions.from_dict({"maxPower": 4}).max_power == 4


def test_collinearity_condition_index_grows_with_correlation():
    x1 = np.array([-3.0, -2.0, -1.0, 0.0, 1.0, 2.0, 3.0, 4.0])
    orthogonal = np.column_stack([x1, [1.0, -1.0, 1.0, -1.0, -1.0, 1.0, -1.0, 1.0]])
    correlated = np.column_stack([x1, 2.0 * x1 + 1e-9 * NOISE[:8]])
    low = collinearity_diagnostics(orthogonal)
    high = collinearity_diagnostics(correlated)
    assert max(high.condition_indices) > 10 * max(low.condition_indices)


def test_collinearity_structure():
    rng = np.random.default_rng(11)
    x = rng.normal(loc=5.0, size=(40, 3))
    diag = collinearity_diagnostics(x, names=["a", "b", "c"])
    assert diag.variables == ("(Constant)", "a", "b", "c")
    assert list(diag.eigenvalues) == sorted(diag.eigenvalues, reverse=True)
    assert diag.condition_indices[0] == pytest.approx(1.0)
    assert sum(diag.eigenvalues) == pytest.approx(4.0)
    proportions = np.array(diag.variance_proportions)
    assert proportions.shape == (4, 4)
    assert np.allclose(proportions.sum(axis=1), 1.0)


@pytest.mark.parametrize("seed", range(25))
def test_collinearity_generic_three_regressor_designs(seed):
    rng = np.random.default_rng(seed)
    x = rng.normal(size=(30, 3))
    diag = collinearity_diagnostics(x)
    scaled = np.column_stack([np.ones(30) / np.sqrt(30), x / np.linalg.norm(x, axis=0)])
    expected = np.sort(np.linalg.eigvalsh(scaled.T @ scaled))[::-1]
    assert np.allclose(diag.eigenvalues, expected, atol=1e-12)
    assert np.allclose(np.array(diag.variance_proportions).sum(axis=1), 1.0)
    assert all(c >= 1.0 for c in diag.condition_indices[1:])


def test_collinearity_two_by_two_uses_closed_form():
    x = np.array([1.0, 2.0, 3.0, 4.0])
    diag = collinearity_diagnostics(x)
    scaled = np.column_stack([np.ones(4) / 2.0, x / np.linalg.norm(x)])
    expected = np.sort(np.linalg.eigvalsh(scaled.T @ scaled))[::-1]
    assert np.allclose(diag.eigenvalues, expected)


def test_collinearity_zero_column_raises():
    with pytest.raises(InsufficientDataError, match="identically zero"):
        collinearity_diagnostics(np.column_stack([np.arange(5.0), np.zeros(5)]))


def test_variance_inflation():
    rng = np.random.default_rng(5)
    a = rng.normal(size=50)
    b = 0.8 * a + 0.6 * rng.normal(size=50)
    c = rng.normal(size=50)
    result = variance_inflation(np.column_stack([a, b, c]), names=["a", "b", "c"])
    r2_a = fit_ols(a, np.column_stack([b, c])).r_squared
    assert result.vif[0] == pytest.approx(1.0 / (1.0 - r2_a))
    assert result.tolerance[0] == pytest.approx(1.0 - r2_a)
    assert result.vif[2] < result.vif[0]
    assert np.allclose(result.correlation, np.corrcoef(np.column_stack([a, b, c]), rowvar=False))


def test_variance_inflation_perfect_fit_and_single_regressor():
    x1 = np.arange(10.0)
    result = variance_inflation(np.column_stack([x1, 3.0 * x1 + 2.0]))
    assert result.vif == (None, None)
    single = variance_inflation(x1)
    assert single.vif == (1.0,)
    with pytest.raises(InsufficientDataError, match="constant"):
        variance_inflation(np.column_stack([x1, np.ones(10)]))


def test_regression_reruns_are_identical():
    x = np.arange(12.0)
    y = 1.0 + 0.5 * x + NOISE
    assert fit_ols(y, x) == fit_ols(y, x)
    assert linearity_test(y, x) == linearity_test(y, x)
