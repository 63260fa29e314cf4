"""
Numerical core shared by the calculators.

All functions operate on arrays and primitive types; no variable metadata or
missing-value logic is included.

Modules:
    special:
        Log-gamma, the regularized incomplete beta function, and the
        Student-t and F distributions built on them.

    linalg:
        Transpose and products, Gauss-Jordan inversion with partial pivoting,
        and symmetric eigen-decomposition (closed-form 2x2, Jacobi otherwise).

    regression:
        OLS with inference and ANOVA, the fitted-value-power linearity test,
        collinearity eigen-diagnostics and variance inflation factors.
"""

from .linalg import invert, matmul, matvec, symmetric_eigen, transpose
from .regression import (
    EigenDiagnostics,
    LinearityResult,
    RegressionResult,
    VifResult,
    collinearity_diagnostics,
    fit_ols,
    linearity_test,
    variance_inflation,
)
from .special import (
    f_cdf,
    log_gamma,
    regularized_incomplete_beta,
    student_t_cdf,
)

__all__ = [
    "invert",
    "matmul",
    "matvec",
    "symmetric_eigen",
    "transpose",
    "EigenDiagnostics",
    "LinearityResult",
    "RegressionResult",
    "VifResult",
    "collinearity_diagnostics",
    "fit_ols",
    "linearity_test",
    "variance_inflation",
    "f_cdf",
    "log_gamma",
    "regularized_incomplete_beta",
    "student_t_cdf",
]
