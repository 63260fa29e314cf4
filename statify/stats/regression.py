"""Provide the regression engine used by the regression and diagnostics calculators.

This module supports:
- ordinary least-squares fits with coefficient inference and ANOVA,
- a nested-model (RESET-style) linearity test on powers of the fitted values,
- eigen-based collinearity diagnostics on the scaled cross-product matrix, and
- variance inflation factors with tolerances.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..errors import InsufficientDataError
from ..schema import require_mapping
from .linalg import invert, matmul, matvec, symmetric_eigen, transpose
from .special import f_upper_p, t_two_sided_p

logger = logging.getLogger(__name__)

CONSTANT_EPSILON = 1e-12
EIGEN_FLOOR = 1e-12
DEFAULT_MAX_POWER = 3
EXACT_FIT_RTOL = 1e-12
CONSTANT_LABEL = "(Constant)"


@dataclass(frozen=True)
class RegressionResult:
    """Container for an ordinary least-squares fit.

    Coefficient tuples are ordered intercept first, then one entry per
    regressor column. ``None`` marks a statistic that is undefined for that
    coefficient (no standardized intercept, zero standard error).
    """

    beta: Tuple[float, ...]
    std_error: Tuple[float, ...]
    standardized: Tuple[Optional[float], ...]
    t_stat: Tuple[Optional[float], ...]
    p_value: Tuple[Optional[float], ...]
    sse: float
    sst: float
    ssr: float
    df: int
    n: int
    n_params: int
    mse: float
    r_squared: Optional[float]
    adj_r_squared: Optional[float]
    f_stat: Optional[float]
    f_p_value: Optional[float]
    fitted: Tuple[float, ...]
    residuals: Tuple[float, ...]

    @property
    def df_regression(self) -> int:
        return self.n_params - 1


@dataclass(frozen=True)
class LinearityOptions:
    max_power: int = DEFAULT_MAX_POWER

    def __post_init__(self) -> None:
        if int(self.max_power) < 2:
            raise ValueError(f"max_power must be at least 2; got {self.max_power}.")

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None) -> "LinearityOptions":
        if not raw:
            return cls()
        raw = require_mapping(raw, "Linearity options")
        power = raw.get("max_power", raw.get("maxPower", DEFAULT_MAX_POWER))
        return cls(max_power=int(power))


@dataclass(frozen=True)
class LinearityResult:
    """Nested-model comparison of the linear fit against added fitted-value powers."""

    f_stat: Optional[float]
    df1: int
    df2: int
    p_value: float
    sse_restricted: float
    sse_unrestricted: float
    max_power: int
    n: int
    notes: str = ""


@dataclass(frozen=True)
class EigenDiagnostics:
    """Eigen-decomposition of the scaled design cross-product matrix.

    ``variance_proportions[j][i]`` is the share of the variance of coefficient
    ``j`` (constant first) associated with dimension ``i``.
    """

    variables: Tuple[str, ...]
    eigenvalues: Tuple[float, ...]
    eigenvectors: Tuple[Tuple[float, ...], ...]
    condition_indices: Tuple[float, ...]
    variance_proportions: Tuple[Tuple[float, ...], ...]


@dataclass(frozen=True)
class VifResult:
    variables: Tuple[str, ...]
    r_squared: Tuple[float, ...]
    tolerance: Tuple[float, ...]
    vif: Tuple[Optional[float], ...]
    correlation: Tuple[Tuple[float, ...], ...]


def _default_names(p: int) -> Tuple[str, ...]:
    return tuple(f"x{j + 1}" for j in range(p))


def _as_design(x: Any, n_rows: Optional[int] = None) -> np.ndarray:
    x_arr = np.array(x, dtype=float)
    if x_arr.ndim == 1:
        x_arr = x_arr.reshape(-1, 1)
    if x_arr.ndim != 2:
        raise ValueError(f"Independent data must be a vector or an n x p matrix; got shape {x_arr.shape}.")
    if n_rows is not None and x_arr.shape[0] != n_rows:
        raise ValueError(
            f"Dependent and independent data must have the same number of rows; "
            f"got {n_rows} and {x_arr.shape[0]}."
        )
    return x_arr


def _complete_cases(y: Any, x: Any) -> Tuple[np.ndarray, np.ndarray]:
    """Copy inputs to float arrays and drop rows with any non-finite entry."""
    y_arr = np.array(y, dtype=float).reshape(-1)
    x_arr = _as_design(x, n_rows=len(y_arr))
    mask = np.isfinite(y_arr) & np.all(np.isfinite(x_arr), axis=1)
    dropped = int(len(y_arr) - np.sum(mask))
    if dropped:
        logger.debug("Dropped %d incomplete case(s) listwise", dropped)
    return y_arr[mask], x_arr[mask]


def _resolve_names(names: Optional[Sequence[str]], p: int) -> Tuple[str, ...]:
    if names is None:
        return _default_names(p)
    if len(names) != p:
        raise ValueError(f"Expected {p} variable names; got {len(names)}.")
    return tuple(str(name) for name in names)


def _constant_columns(x_arr: np.ndarray) -> list[int]:
    if x_arr.shape[0] == 0:
        return []
    spans = np.max(x_arr, axis=0) - np.min(x_arr, axis=0)
    return [int(j) for j in np.flatnonzero(spans < CONSTANT_EPSILON)]


def fit_ols(y: Any, x: Any) -> RegressionResult:
    """Fit ``y = b0 + X b`` by ordinary least squares.

    Args:
        y: Dependent values, length ``n``.
        x: Independent values as an ``n x p`` matrix (or a length-``n`` vector
            for a single regressor) without an intercept column.

    Returns:
        RegressionResult: Coefficients with standard errors, t statistics,
        two-sided p-values and ANOVA sums of squares.

    Raises:
        InsufficientDataError: If ``n <= p + 1`` after listwise deletion.
        SingularMatrixError: If ``X'X`` has no usable pivot.

    Note:
        Rows with any non-finite value are dropped before fitting. Standard
        errors of zero yield ``None`` for the matching t statistic and p-value.

    References:
        Ordinary least squares via the normal equations.
    """
    y_arr, x_arr = _complete_cases(y, x)
    n, p = x_arr.shape
    if n <= p + 1:
        raise InsufficientDataError(
            f"Regression with {p} independent variable(s) needs at least {p + 2} "
            f"complete cases; got {n}."
        )
    logger.debug("Fitting OLS with n=%d cases and p=%d regressors", n, p)

    design = np.column_stack([np.ones(n), x_arr])
    design_t = transpose(design)
    xtx_inv = invert(matmul(design_t, design))
    beta = matvec(xtx_inv, matvec(design_t, y_arr))

    fitted = matvec(design, beta)
    resid = y_arr - fitted
    y_mean = float(np.mean(y_arr))
    sse = float(np.sum(resid**2))
    sst = float(np.sum((y_arr - y_mean) ** 2))
    ssr = float(np.sum((fitted - y_mean) ** 2))

    dof = n - p - 1
    mse = sse / dof
    variances = np.maximum(mse * np.diag(xtx_inv), 0.0)
    std_error = np.sqrt(variances)

    t_stats: list[Optional[float]] = []
    p_values: list[Optional[float]] = []
    for coef, se in zip(beta, std_error):
        if se > 0:
            t_val = float(coef / se)
            t_stats.append(t_val)
            p_values.append(t_two_sided_p(t_val, dof))
        else:
            t_stats.append(None)
            p_values.append(None)

    sd_y = float(np.std(y_arr, ddof=1))
    standardized: list[Optional[float]] = [None]
    for j in range(p):
        if sd_y > 0:
            sd_x = float(np.std(x_arr[:, j], ddof=1))
            standardized.append(float(beta[j + 1] * sd_x / sd_y))
        else:
            standardized.append(None)

    r_squared: Optional[float] = None
    adj_r_squared: Optional[float] = None
    if sst > 0:
        r_squared = ssr / sst
        adj_r_squared = 1.0 - (1.0 - r_squared) * (n - 1) / dof

    f_stat: Optional[float] = None
    f_p_value: Optional[float] = None
    if p > 0 and mse > 0:
        f_stat = (ssr / p) / mse
        f_p_value = f_upper_p(f_stat, p, dof)

    return RegressionResult(
        beta=tuple(float(b) for b in beta),
        std_error=tuple(float(s) for s in std_error),
        standardized=tuple(standardized),
        t_stat=tuple(t_stats),
        p_value=tuple(p_values),
        sse=sse,
        sst=sst,
        ssr=ssr,
        df=dof,
        n=n,
        n_params=p + 1,
        mse=mse,
        r_squared=r_squared,
        adj_r_squared=adj_r_squared,
        f_stat=f_stat,
        f_p_value=f_p_value,
        fitted=tuple(float(v) for v in fitted),
        residuals=tuple(float(v) for v in resid),
    )


def linearity_test(
    y: Any,
    x: Any,
    max_power: int = DEFAULT_MAX_POWER,
    names: Optional[Sequence[str]] = None,
) -> LinearityResult:
    """Run a nested extra-sum-of-squares F-test for curvature.

    The restricted model regresses ``y`` on ``X``. The unrestricted model adds
    powers ``2..max_power`` of the restricted fitted values, standardised to
    zero mean and unit variance first.

    Args:
        y: Dependent values.
        x: Independent values (``n x p`` or a vector).
        max_power (int, optional): Highest fitted-value power. Defaults to 3.
        names (Sequence[str], optional): Regressor names for error messages.

    Returns:
        LinearityResult: ``F = [(SSE_r - SSE_u)/q] / [SSE_u/(n - k_total)]``
        with ``q = max_power - 1`` and its upper-tail p-value.

    Raises:
        InsufficientDataError: If there are fewer than ``p + 2`` complete
            cases, a regressor is constant, or the unrestricted model has no
            residual degrees of freedom.
        SingularMatrixError: If the augmented design is singular.
    """
    options = LinearityOptions(max_power=max_power)
    y_arr, x_arr = _complete_cases(y, x)
    n, p = x_arr.shape
    labels = _resolve_names(names, p)

    if n < p + 2:
        raise InsufficientDataError(
            f"Linearity test needs at least {p + 2} complete cases; got {n}."
        )
    constant = _constant_columns(x_arr)
    if constant:
        raise InsufficientDataError(
            f"Independent variable '{labels[constant[0]]}' is constant; "
            "linearity test is undefined."
        )

    q = options.max_power - 1
    k_total = p + 1 + q
    df2 = n - k_total
    if df2 <= 0:
        raise InsufficientDataError(
            f"Linearity test with {q} added power term(s) needs more than {k_total} "
            f"complete cases; got {n}."
        )

    restricted = fit_ols(y_arr, x_arr)
    sse_r = restricted.sse
    tolerance = EXACT_FIT_RTOL * restricted.sst
    if sse_r <= tolerance:
        logger.info("Restricted model fits exactly; linearity is not rejected")
        return LinearityResult(
            f_stat=0.0,
            df1=q,
            df2=df2,
            p_value=1.0,
            sse_restricted=sse_r,
            sse_unrestricted=sse_r,
            max_power=options.max_power,
            n=n,
            notes="Restricted model fits exactly; F set to 0.",
        )

    fitted = np.asarray(restricted.fitted)
    fit_sd = float(np.std(fitted))
    if fit_sd < CONSTANT_EPSILON:
        raise InsufficientDataError(
            "Fitted values are constant; powers of the fitted values cannot be formed."
        )
    z = (fitted - float(np.mean(fitted))) / fit_sd
    augmented = np.column_stack([x_arr] + [z**k for k in range(2, options.max_power + 1)])
    unrestricted = fit_ols(y_arr, augmented)
    sse_u = unrestricted.sse

    if sse_u <= tolerance:
        logger.info("Unrestricted model fits exactly; linearity is rejected")
        return LinearityResult(
            f_stat=None,
            df1=q,
            df2=df2,
            p_value=0.0,
            sse_restricted=sse_r,
            sse_unrestricted=sse_u,
            max_power=options.max_power,
            n=n,
            notes="Unrestricted model fits exactly; F is unbounded.",
        )

    notes = ""
    ss_diff = sse_r - sse_u
    if ss_diff < 0:
        ss_diff = 0.0
        notes = "SSE_restricted < SSE_unrestricted from rounding; clamped numerator to 0."
    f_stat = (ss_diff / q) / (sse_u / df2)
    p_value = f_upper_p(f_stat, q, df2)
    logger.debug("Linearity F=%.6g on (%d, %d) df, p=%.6g", f_stat, q, df2, p_value)
    return LinearityResult(
        f_stat=float(f_stat),
        df1=q,
        df2=df2,
        p_value=float(p_value),
        sse_restricted=sse_r,
        sse_unrestricted=sse_u,
        max_power=options.max_power,
        n=n,
        notes=notes,
    )


def collinearity_diagnostics(
    x: Any, names: Optional[Sequence[str]] = None
) -> EigenDiagnostics:
    """Compute condition indices and variance-decomposition proportions.

    Args:
        x: Independent values (``n x p`` or a vector), no intercept column.
        names (Sequence[str], optional): Regressor names.

    Returns:
        EigenDiagnostics: Eigenvalues in descending order, eigenvectors as
        columns, ``sqrt(lambda_max / lambda_i)`` condition indices and the
        proportions matrix indexed ``[variable][dimension]``.

    Raises:
        InsufficientDataError: If there are no complete cases or a regressor
            is identically zero.

    Note:
        The constant column is scaled by ``1/sqrt(n)`` and every other column
        by its Euclidean norm before forming the cross-product matrix, so
        condition indices do not depend on variable units. Eigenvalues are
        floored at ``1e-12`` in the index and proportion formulas.

    References:
        Belsley, Kuh and Welsch (1980), Regression Diagnostics, ch. 3.
    """
    x_arr = _as_design(x)
    x_arr = x_arr[np.all(np.isfinite(x_arr), axis=1)]
    n, p = x_arr.shape
    labels = (CONSTANT_LABEL,) + _resolve_names(names, p)
    if n == 0:
        raise InsufficientDataError("Collinearity diagnostics need at least one complete case.")

    norms = np.sqrt(np.sum(x_arr**2, axis=0))
    for j, norm in enumerate(norms):
        if norm == 0:
            raise InsufficientDataError(
                f"Independent variable '{labels[j + 1]}' is identically zero."
            )
    scaled = np.column_stack([np.ones(n) / math.sqrt(n), x_arr / norms])
    cross = matmul(transpose(scaled), scaled)
    values, vectors = symmetric_eigen(cross)

    floored = np.maximum(values, EIGEN_FLOOR)
    condition = np.sqrt(floored[0] / floored)
    phi = vectors**2 / floored[np.newaxis, :]
    proportions = phi / np.sum(phi, axis=1, keepdims=True)
    logger.debug("Largest condition index %.6g over %d dimensions", condition[-1], len(condition))

    return EigenDiagnostics(
        variables=labels,
        eigenvalues=tuple(float(v) for v in np.maximum(values, 0.0)),
        eigenvectors=tuple(tuple(float(v) for v in row) for row in vectors),
        condition_indices=tuple(float(c) for c in condition),
        variance_proportions=tuple(tuple(float(v) for v in row) for row in proportions),
    )


def variance_inflation(x: Any, names: Optional[Sequence[str]] = None) -> VifResult:
    """Regress each independent variable on the others to obtain VIF and tolerance.

    A regressor that the others reproduce exactly has tolerance 0 and a VIF of
    ``None``.

    Raises:
        InsufficientDataError: If a regressor is constant or there are too
            few complete cases for the auxiliary regressions.
    """
    x_arr = _as_design(x)
    x_arr = x_arr[np.all(np.isfinite(x_arr), axis=1)]
    n, p = x_arr.shape
    labels = _resolve_names(names, p)
    constant = _constant_columns(x_arr)
    if n < 2 or constant:
        which = f"'{labels[constant[0]]}' is constant" if constant else "there are too few cases"
        raise InsufficientDataError(f"Variance inflation is undefined: {which}.")

    r_squared: list[float] = []
    tolerance: list[float] = []
    vif: list[Optional[float]] = []
    for j in range(p):
        if p == 1:
            r2 = 0.0
        else:
            aux = fit_ols(x_arr[:, j], np.delete(x_arr, j, axis=1))
            r2 = min(max(float(aux.r_squared or 0.0), 0.0), 1.0)
        tol = 1.0 - r2
        r_squared.append(r2)
        tolerance.append(tol)
        vif.append(1.0 / tol if tol > CONSTANT_EPSILON else None)

    if p == 1:
        corr = np.ones((1, 1))
    else:
        corr = np.corrcoef(x_arr, rowvar=False)

    return VifResult(
        variables=labels,
        r_squared=tuple(r_squared),
        tolerance=tuple(tolerance),
        vif=tuple(vif),
        correlation=tuple(tuple(float(v) for v in row) for row in corr),
    )
