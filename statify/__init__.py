"""
An in-process statistics engine for tabular case data.

Turns raw columns plus variable metadata into descriptive statistics,
weighted contingency tables, t-tests and regression diagnostics.

Modules:
    - schema / missing: Typed cell values, variable metadata and the
      missing-value and case-weight policy.
    - descriptive: Weighted moments, percentiles, mode and z-scores.
    - crosstabs: Weighted R x C tables, residuals, chi-square and association.
    - compare_means: Independent-samples and paired-samples t-tests.
    - stats: Special functions, linear algebra and the regression engine.
    - worker: Request/response boundary and batch execution.
"""

__version__ = "1.0.0"

from .compare_means import (
    IndependentTTestOptions,
    independent_samples_t_test,
    paired_samples_t_test,
)
from .crosstabs import CrosstabOptions, crosstab
from .descriptive import DescriptiveOptions, MomentAccumulator, describe
from .errors import InsufficientDataError, SingularMatrixError, StatifyError
from .missing import WeightAdjustment, adjust_weight, is_missing
from .schema import Measure, MissingSpec, VariableSpec, coerce_value
from .stats.regression import (
    LinearityOptions,
    collinearity_diagnostics,
    fit_ols,
    linearity_test,
    variance_inflation,
)
from .worker import handle_request, run_batch

__all__ = [
    # Data model
    "Measure",
    "MissingSpec",
    "VariableSpec",
    "coerce_value",
    "WeightAdjustment",
    "adjust_weight",
    "is_missing",
    # Calculators
    "DescriptiveOptions",
    "MomentAccumulator",
    "describe",
    "CrosstabOptions",
    "crosstab",
    "IndependentTTestOptions",
    "independent_samples_t_test",
    "paired_samples_t_test",
    "LinearityOptions",
    "fit_ols",
    "linearity_test",
    "collinearity_diagnostics",
    "variance_inflation",
    # Boundary
    "handle_request",
    "run_batch",
    # Errors
    "StatifyError",
    "InsufficientDataError",
    "SingularMatrixError",
]
