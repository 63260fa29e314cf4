"""Independent-samples and paired-samples t-tests."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from scipy import stats as scipy_stats

from .errors import InsufficientDataError
from .missing import is_missing
from .schema import (
    VariableSpec,
    coerce_value,
    ensure_same_length,
    is_numeric_value,
    require_mapping,
)
from .stats.special import t_two_sided_p

logger = logging.getLogger(__name__)

CONFIDENCE_LEVEL = 0.95


@dataclass(frozen=True)
class IndependentTTestOptions:
    """How cases are assigned to the two groups.

    Either both ``group1`` and ``group2`` codes are given, or ``cut_point``
    splits the grouping variable into ``>= cut_point`` (group 1) and
    ``< cut_point`` (group 2).
    """

    group1: Any = None
    group2: Any = None
    cut_point: Optional[float] = None

    def __post_init__(self) -> None:
        if self.cut_point is None and (self.group1 is None or self.group2 is None):
            raise ValueError("Define both group1 and group2, or a cut_point.")

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None) -> "IndependentTTestOptions":
        raw = require_mapping(raw or {}, "Independent t-test options")
        define = require_mapping(raw.get("defineGroups") or {}, "defineGroups")
        cut = raw.get("cut_point", raw.get("cutPoint"))
        if cut is None and define.get("cutPoint"):
            cut = raw.get("cutPointValue", 0)
        if cut is not None:
            cut_value = coerce_value(cut)
            if not is_numeric_value(cut_value):
                raise ValueError(f"Cut point must be numeric; got {cut!r}.")
            return cls(cut_point=cut_value)
        return cls(group1=raw.get("group1"), group2=raw.get("group2"))


@dataclass(frozen=True)
class GroupStatistics:
    label: str
    n: int
    mean: Optional[float]
    std_dev: Optional[float]
    se_mean: Optional[float]


@dataclass(frozen=True)
class LeveneResult:
    f_stat: Optional[float]
    df1: int
    df2: int
    p_value: Optional[float]


@dataclass(frozen=True)
class TTestRow:
    """One row of the independent-samples test table."""

    label: str
    t_stat: Optional[float]
    df: Optional[float]
    p_value: Optional[float]
    mean_difference: float
    se_difference: float
    ci_lower: Optional[float]
    ci_upper: Optional[float]


@dataclass(frozen=True)
class IndependentTTestResult:
    variable: str
    grouping_variable: str
    group1: GroupStatistics
    group2: GroupStatistics
    levene: LeveneResult
    equal_variances: TTestRow
    unequal_variances: TTestRow


@dataclass(frozen=True)
class PairedTTestResult:
    variable1: str
    variable2: str
    n: int
    stats1: GroupStatistics
    stats2: GroupStatistics
    correlation: Optional[float]
    correlation_p_value: Optional[float]
    mean_difference: float
    sd_difference: float
    se_difference: float
    t_stat: Optional[float]
    df: int
    p_value: Optional[float]
    ci_lower: Optional[float]
    ci_upper: Optional[float]


def _confidence_interval(
    center: float, se: float, df: Optional[float]
) -> Tuple[Optional[float], Optional[float]]:
    if df is None or df <= 0 or not math.isfinite(se):
        return None, None
    t_crit = float(scipy_stats.t.ppf(0.5 + CONFIDENCE_LEVEL / 2.0, df))
    return center - t_crit * se, center + t_crit * se


def _group_statistics(label: str, values: np.ndarray) -> GroupStatistics:
    n = int(values.size)
    mean = float(np.mean(values)) if n else None
    sd = float(np.std(values, ddof=1)) if n > 1 else None
    return GroupStatistics(
        label=label,
        n=n,
        mean=mean,
        std_dev=sd,
        se_mean=sd / math.sqrt(n) if sd is not None else None,
    )


def _valid_number(raw: Any, spec: VariableSpec) -> Optional[float]:
    if is_missing(raw, spec, spec.measure.is_numeric):
        return None
    value = coerce_value(raw)
    return value if is_numeric_value(value) else None


def _label(value: Any) -> str:
    coerced = coerce_value(value)
    if isinstance(coerced, float) and coerced.is_integer():
        return str(int(coerced))
    return str(coerced)


def levene_test(group1: np.ndarray, group2: np.ndarray) -> LeveneResult:
    """Levene's test on absolute deviations from the group means.

    Returns ``None`` statistics when every absolute deviation within each
    group is the same, which leaves the test without a denominator.
    """
    df2 = int(group1.size + group2.size - 2)
    spreads = [np.ptp(np.abs(g - np.mean(g))) for g in (group1, group2)]
    if df2 <= 0 or max(spreads) == 0:
        return LeveneResult(f_stat=None, df1=1, df2=df2, p_value=None)
    statistic, pvalue = scipy_stats.levene(group1, group2, center="mean")
    return LeveneResult(f_stat=float(statistic), df1=1, df2=df2, p_value=float(pvalue))


def _pooled_row(g1: np.ndarray, g2: np.ndarray) -> TTestRow:
    n1, n2 = g1.size, g2.size
    df = n1 + n2 - 2
    diff = float(np.mean(g1) - np.mean(g2))
    pooled = ((n1 - 1) * np.var(g1, ddof=1) + (n2 - 1) * np.var(g2, ddof=1)) / df
    se = float(math.sqrt(pooled * (1.0 / n1 + 1.0 / n2)))
    t_stat = diff / se if se > 0 else None
    lower, upper = _confidence_interval(diff, se, df)
    return TTestRow(
        label="Equal variances assumed",
        t_stat=t_stat,
        df=float(df),
        p_value=t_two_sided_p(t_stat, df) if t_stat is not None else None,
        mean_difference=diff,
        se_difference=se,
        ci_lower=lower,
        ci_upper=upper,
    )


def _welch_row(g1: np.ndarray, g2: np.ndarray) -> TTestRow:
    n1, n2 = g1.size, g2.size
    diff = float(np.mean(g1) - np.mean(g2))
    part1 = float(np.var(g1, ddof=1)) / n1
    part2 = float(np.var(g2, ddof=1)) / n2
    se = math.sqrt(part1 + part2)
    t_stat: Optional[float] = None
    df: Optional[float] = None
    if se > 0:
        t_stat = diff / se
        df = (part1 + part2) ** 2 / (part1**2 / (n1 - 1) + part2**2 / (n2 - 1))
    lower, upper = _confidence_interval(diff, se, df)
    return TTestRow(
        label="Equal variances not assumed",
        t_stat=t_stat,
        df=df,
        p_value=t_two_sided_p(t_stat, df) if t_stat is not None else None,
        mean_difference=diff,
        se_difference=se,
        ci_lower=lower,
        ci_upper=upper,
    )


def independent_samples_t_test(
    data: Sequence[Any],
    groups: Sequence[Any],
    variable: VariableSpec | Mapping[str, Any],
    grouping_variable: VariableSpec | Mapping[str, Any],
    options: IndependentTTestOptions,
) -> IndependentTTestResult:
    """Compare the means of two independent groups.

    Args:
        data: Test variable values.
        groups: Grouping variable values, index-aligned with ``data``.
        variable: Test variable definition.
        grouping_variable: Grouping variable definition.
        options: Group codes or cut point.

    Returns:
        IndependentTTestResult: Group statistics, Levene's test and the
        pooled and Welch-Satterthwaite t-test rows.

    Raises:
        InsufficientDataError: If either group has fewer than two cases.
    """
    spec = VariableSpec.from_dict(variable)
    group_spec = VariableSpec.from_dict(grouping_variable)
    ensure_same_length(data, groups)

    first: List[float] = []
    second: List[float] = []
    code1 = coerce_value(options.group1)
    code2 = coerce_value(options.group2)
    for raw, group_raw in zip(data, groups):
        value = _valid_number(raw, spec)
        if value is None or is_missing(group_raw, group_spec, group_spec.measure.is_numeric):
            continue
        group_value = coerce_value(group_raw)
        if options.cut_point is not None:
            if not is_numeric_value(group_value):
                continue
            (first if group_value >= options.cut_point else second).append(value)
        elif group_value == code1:
            first.append(value)
        elif group_value == code2:
            second.append(value)

    if options.cut_point is not None:
        labels = (f">= {options.cut_point:g}", f"< {options.cut_point:g}")
    else:
        labels = (_label(options.group1), _label(options.group2))
    g1 = np.asarray(first, dtype=float)
    g2 = np.asarray(second, dtype=float)
    logger.debug("%s by %s: group sizes %d and %d", spec.name, group_spec.name, g1.size, g2.size)
    if g1.size < 2 or g2.size < 2:
        raise InsufficientDataError(
            f"Each group needs at least 2 valid cases; got {g1.size} and {g2.size}."
        )

    return IndependentTTestResult(
        variable=spec.name,
        grouping_variable=group_spec.name,
        group1=_group_statistics(labels[0], g1),
        group2=_group_statistics(labels[1], g2),
        levene=levene_test(g1, g2),
        equal_variances=_pooled_row(g1, g2),
        unequal_variances=_welch_row(g1, g2),
    )


def _pearson(x: np.ndarray, y: np.ndarray) -> Optional[float]:
    dx = x - np.mean(x)
    dy = y - np.mean(y)
    sxx = float(np.sum(dx**2))
    syy = float(np.sum(dy**2))
    if sxx <= 0 or syy <= 0:
        return None
    r = float(np.sum(dx * dy)) / math.sqrt(sxx * syy)
    return min(max(r, -1.0), 1.0)


def paired_samples_t_test(
    data1: Sequence[Any],
    data2: Sequence[Any],
    variable1: VariableSpec | Mapping[str, Any],
    variable2: VariableSpec | Mapping[str, Any],
) -> PairedTTestResult:
    """Compare two related measurements on the same cases.

    Pairs with a missing or non-numeric value on either side are dropped.
    The difference is ``variable1 - variable2``.

    Raises:
        InsufficientDataError: If fewer than two complete pairs remain.
    """
    spec1 = VariableSpec.from_dict(variable1)
    spec2 = VariableSpec.from_dict(variable2)
    ensure_same_length(data1, data2)

    pairs = [
        (a, b)
        for a, b in (
            (_valid_number(r1, spec1), _valid_number(r2, spec2)) for r1, r2 in zip(data1, data2)
        )
        if a is not None and b is not None
    ]
    n = len(pairs)
    if n < 2:
        raise InsufficientDataError(f"Paired t-test needs at least 2 complete pairs; got {n}.")
    x = np.array([p[0] for p in pairs])
    y = np.array([p[1] for p in pairs])
    diff = x - y

    r = _pearson(x, y)
    r_p: Optional[float] = None
    if r is not None and n > 2:
        if abs(r) >= 1.0:
            r_p = 0.0
        else:
            r_t = r * math.sqrt((n - 2) / (1.0 - r * r))
            r_p = t_two_sided_p(r_t, n - 2)

    df = n - 1
    mean_diff = float(np.mean(diff))
    sd_diff = float(np.std(diff, ddof=1))
    se_diff = sd_diff / math.sqrt(n)
    t_stat = mean_diff / se_diff if se_diff > 0 else None
    lower, upper = _confidence_interval(mean_diff, se_diff, df)

    return PairedTTestResult(
        variable1=spec1.name,
        variable2=spec2.name,
        n=n,
        stats1=_group_statistics(spec1.display_name, x),
        stats2=_group_statistics(spec2.display_name, y),
        correlation=r,
        correlation_p_value=r_p,
        mean_difference=mean_diff,
        sd_difference=sd_diff,
        se_difference=se_diff,
        t_stat=t_stat,
        df=df,
        p_value=t_two_sided_p(t_stat, df) if t_stat is not None else None,
        ci_lower=lower,
        ci_upper=upper,
    )
