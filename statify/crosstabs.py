"""Weighted two-way contingency tables with residual and association statistics.

Expected counts are kept at full precision for every derived statistic; only
the ``expected`` display field of each cell is rounded.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from scipy import stats as scipy_stats

from .errors import InsufficientDataError
from .formatting import round_half_away
from .missing import WeightAdjustment, adjust_cells, case_weight, is_missing
from .schema import (
    Value,
    VariableSpec,
    coerce_value,
    ensure_same_length,
    is_numeric_value,
    require_mapping,
    sort_values,
)

logger = logging.getLogger(__name__)

EXPECTED_DECIMALS = 1


@dataclass(frozen=True)
class CrosstabOptions:
    noninteger_weights: WeightAdjustment = WeightAdjustment.NO_ADJUSTMENT

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None) -> "CrosstabOptions":
        if not raw:
            return cls()
        raw = require_mapping(raw, "Crosstabs options")
        mode = raw.get("noninteger_weights", raw.get("nonintegerWeights"))
        return cls(noninteger_weights=WeightAdjustment.parse(mode))


@dataclass(frozen=True)
class ContingencyTable:
    row_categories: Tuple[Value, ...]
    col_categories: Tuple[Value, ...]
    counts: Tuple[Tuple[float, ...], ...]
    row_totals: Tuple[float, ...]
    col_totals: Tuple[float, ...]
    grand_total: float

    @property
    def shape(self) -> Tuple[int, int]:
        return len(self.row_categories), len(self.col_categories)

    def as_array(self) -> np.ndarray:
        return np.array(self.counts, dtype=float).reshape(self.shape)


@dataclass(frozen=True)
class CellStatistics:
    """Observed count and derived statistics of one table cell."""

    row: Value
    col: Value
    count: float
    expected: float
    expected_exact: float
    residual: float
    standardized_residual: Optional[float]
    adjusted_residual: Optional[float]
    row_percent: Optional[float]
    col_percent: Optional[float]
    total_percent: float


@dataclass(frozen=True)
class ChiSquare:
    value: float
    df: int
    p_value: Optional[float]


@dataclass(frozen=True)
class CrosstabResult:
    """Table, cell statistics and association measures for one row/column pair.

    Attributes:
        valid_weight_sum: Weight of the cases valid on both variables, taken
            after case-level weight adjustment but before any cell-level
            rounding or truncation.
        missing_weight_sum: Weight of the cases missing on either variable.
        table: The table after cell-level adjustment. Its ``grand_total``
            therefore differs from ``valid_weight_sum`` under ``roundCell`` or
            ``truncateCell``, and every statistic is computed from the
            adjusted counts.
    """

    row_variable: str
    col_variable: str
    n_total: int
    valid_weight_sum: float
    missing_weight_sum: float
    table: ContingencyTable
    cells: Tuple[Tuple[CellStatistics, ...], ...]
    pearson_chi_square: ChiSquare
    likelihood_ratio: ChiSquare
    phi: Optional[float]
    cramers_v: Optional[float]
    contingency_coefficient: Optional[float]
    gamma: Optional[float]
    tau_b: Optional[float]
    tau_c: Optional[float]
    somers_d: Optional[float]
    kappa: Optional[float]


def build_table(
    row_data: Sequence[Any],
    col_data: Sequence[Any],
    row_variable: VariableSpec,
    col_variable: VariableSpec,
    weights: Sequence[Any] | None = None,
    mode: WeightAdjustment = WeightAdjustment.NO_ADJUSTMENT,
) -> Tuple[ContingencyTable, float, float]:
    """Build the weighted R x C table.

    Returns:
        tuple: ``(table, valid_weight_sum, missing_weight_sum)``. The weight
        sums are taken before any cell-level adjustment.
    """
    ensure_same_length(row_data, col_data, weights)

    pairs: List[Tuple[Value, Value, float]] = []
    row_seen: Dict[Value, None] = {}
    col_seen: Dict[Value, None] = {}
    valid_weight = 0.0
    missing_weight = 0.0
    for i, (row_raw, col_raw) in enumerate(zip(row_data, col_data)):
        weight = case_weight(weights, i, mode)
        if weight is None:
            continue
        row_value = coerce_value(row_raw)
        col_value = coerce_value(col_raw)
        row_missing = is_missing(row_value, row_variable, is_numeric_value(row_value))
        col_missing = is_missing(col_value, col_variable, is_numeric_value(col_value))
        if row_missing or col_missing:
            missing_weight += weight
            continue
        row_seen[row_value] = None
        col_seen[col_value] = None
        valid_weight += weight
        pairs.append((row_value, col_value, weight))

    row_categories = sort_values(list(row_seen))
    col_categories = sort_values(list(col_seen))
    row_index = {value: k for k, value in enumerate(row_categories)}
    col_index = {value: k for k, value in enumerate(col_categories)}

    counts = np.zeros((len(row_categories), len(col_categories)))
    for row_value, col_value, weight in pairs:
        counts[row_index[row_value], col_index[col_value]] += weight
    counts = adjust_cells(counts, mode)

    table = ContingencyTable(
        row_categories=tuple(row_categories),
        col_categories=tuple(col_categories),
        counts=tuple(tuple(float(v) for v in row) for row in counts),
        row_totals=tuple(float(v) for v in counts.sum(axis=1)),
        col_totals=tuple(float(v) for v in counts.sum(axis=0)),
        grand_total=float(counts.sum()),
    )
    return table, valid_weight, missing_weight


def expected_counts(table: ContingencyTable) -> np.ndarray:
    """Full-precision expected counts ``row_total * col_total / W``."""
    if table.grand_total <= 0:
        raise InsufficientDataError("Expected counts are undefined for an empty table.")
    return np.outer(table.row_totals, table.col_totals) / table.grand_total


def _cell_statistics(table: ContingencyTable, expected: np.ndarray) -> Tuple[Tuple[CellStatistics, ...], ...]:
    observed = table.as_array()
    total = table.grand_total
    rows = []
    for i, row_value in enumerate(table.row_categories):
        row_total = table.row_totals[i]
        cells = []
        for j, col_value in enumerate(table.col_categories):
            col_total = table.col_totals[j]
            count = float(observed[i, j])
            e = float(expected[i, j])
            residual = count - e
            standardized = residual / math.sqrt(e) if e > 0 else None
            denom = e * (1.0 - row_total / total) * (1.0 - col_total / total)
            adjusted = residual / math.sqrt(denom) if denom > 0 else None
            cells.append(
                CellStatistics(
                    row=row_value,
                    col=col_value,
                    count=count,
                    expected=round_half_away(e, EXPECTED_DECIMALS),
                    expected_exact=e,
                    residual=residual,
                    standardized_residual=standardized,
                    adjusted_residual=adjusted,
                    row_percent=100.0 * count / row_total if row_total > 0 else None,
                    col_percent=100.0 * count / col_total if col_total > 0 else None,
                    total_percent=100.0 * count / total,
                )
            )
        rows.append(tuple(cells))
    return tuple(rows)


def _chi_square_p(value: float, df: int) -> float:
    return float(scipy_stats.chi2.sf(value, df))


def pearson_chi_square(table: ContingencyTable, expected: np.ndarray) -> ChiSquare:
    """Pearson chi-square; reported as 0 with df 0 when R <= 1 or C <= 1."""
    r, c = table.shape
    if r <= 1 or c <= 1:
        return ChiSquare(value=0.0, df=0, p_value=None)
    observed = table.as_array()
    mask = expected > 0
    value = float(np.sum((observed[mask] - expected[mask]) ** 2 / expected[mask]))
    df = (r - 1) * (c - 1)
    return ChiSquare(value=value, df=df, p_value=_chi_square_p(value, df))


def likelihood_ratio_chi_square(table: ContingencyTable, expected: np.ndarray) -> ChiSquare:
    r, c = table.shape
    if r <= 1 or c <= 1:
        return ChiSquare(value=0.0, df=0, p_value=None)
    observed = table.as_array()
    mask = (observed > 0) & (expected > 0)
    value = 2.0 * float(np.sum(observed[mask] * np.log(observed[mask] / expected[mask])))
    value = max(value, 0.0)
    df = (r - 1) * (c - 1)
    return ChiSquare(value=value, df=df, p_value=_chi_square_p(value, df))


def _concordance(observed: np.ndarray) -> Tuple[float, float]:
    """Weighted concordant and discordant pair counts, each pair counted once."""
    r, c = observed.shape
    concordant = 0.0
    discordant = 0.0
    for i in range(r - 1):
        for j in range(c):
            f = observed[i, j]
            if f <= 0:
                continue
            concordant += f * float(observed[i + 1 :, j + 1 :].sum())
            discordant += f * float(observed[i + 1 :, :j].sum())
    return concordant, discordant


def ordinal_measures(table: ContingencyTable) -> Dict[str, Optional[float]]:
    """Gamma, Kendall's tau-b and tau-c, and symmetric Somers' d."""
    observed = table.as_array()
    total = table.grand_total
    concordant, discordant = _concordance(observed)
    diff = concordant - discordant
    # Tie-corrected denominators count ordered pairs, so they are twice the
    # unordered pair counts above.
    d_row = total**2 - float(np.sum(np.square(table.row_totals)))
    d_col = total**2 - float(np.sum(np.square(table.col_totals)))
    q = min(table.shape)

    gamma = diff / (concordant + discordant) if concordant + discordant > 0 else None
    tau_b = 2.0 * diff / math.sqrt(d_row * d_col) if d_row > 0 and d_col > 0 else None
    tau_c = 2.0 * q * diff / (total**2 * (q - 1)) if q > 1 and total > 0 else None
    somers_d = 2.0 * diff / (0.5 * (d_row + d_col)) if d_row + d_col > 0 else None
    return {"gamma": gamma, "tau_b": tau_b, "tau_c": tau_c, "somers_d": somers_d}


def cohen_kappa(table: ContingencyTable) -> Optional[float]:
    """Agreement for square tables whose row and column categories coincide."""
    if table.row_categories != table.col_categories or table.grand_total <= 0:
        return None
    observed = table.as_array()
    total = table.grand_total
    agreement = float(np.trace(observed))
    chance = float(np.dot(table.row_totals, table.col_totals))
    denominator = total**2 - chance
    if denominator == 0:
        return None
    return (total * agreement - chance) / denominator


def crosstab(
    row_data: Sequence[Any],
    col_data: Sequence[Any],
    row_variable: VariableSpec | Mapping[str, Any],
    col_variable: VariableSpec | Mapping[str, Any],
    weights: Sequence[Any] | None = None,
    options: CrosstabOptions | None = None,
) -> CrosstabResult:
    """Cross-tabulate two variables with optional case weights.

    Args:
        row_data: Raw values of the row variable.
        col_data: Raw values of the column variable, index-aligned.
        row_variable: Row variable definition.
        col_variable: Column variable definition.
        weights: Optional case weights.
        options: ``CrosstabOptions`` selecting the non-integer weight policy.

    Returns:
        CrosstabResult: The table, per-cell statistics, chi-square tests and
        association measures.

    Raises:
        InsufficientDataError: If no case has valid values on both variables
            and a valid weight.
    """
    row_spec = VariableSpec.from_dict(row_variable)
    col_spec = VariableSpec.from_dict(col_variable)
    opts = options or CrosstabOptions()

    table, valid_weight, missing_weight = build_table(
        row_data, col_data, row_spec, col_spec, weights, opts.noninteger_weights
    )
    if table.grand_total <= 0:
        raise InsufficientDataError(
            f"No valid cases for {row_spec.display_name} by {col_spec.display_name}."
        )
    logger.debug(
        "%s x %s: %dx%d table, W=%g", row_spec.name, col_spec.name, *table.shape, table.grand_total
    )

    expected = expected_counts(table)
    pearson = pearson_chi_square(table, expected)
    total = table.grand_total
    q = min(table.shape)
    if pearson.df > 0:
        phi: Optional[float] = math.sqrt(pearson.value / total)
        cramers_v: Optional[float] = math.sqrt(pearson.value / (total * (q - 1)))
        contingency: Optional[float] = math.sqrt(pearson.value / (pearson.value + total))
    else:
        phi = cramers_v = contingency = None

    ordinal = ordinal_measures(table)
    return CrosstabResult(
        row_variable=row_spec.name,
        col_variable=col_spec.name,
        n_total=len(row_data),
        valid_weight_sum=valid_weight,
        missing_weight_sum=missing_weight,
        table=table,
        cells=_cell_statistics(table, expected),
        pearson_chi_square=pearson,
        likelihood_ratio=likelihood_ratio_chi_square(table, expected),
        phi=phi,
        cramers_v=cramers_v,
        contingency_coefficient=contingency,
        gamma=ordinal["gamma"],
        tau_b=ordinal["tau_b"],
        tau_c=ordinal["tau_c"],
        somers_d=ordinal["somers_d"],
        kappa=cohen_kappa(table),
    )
