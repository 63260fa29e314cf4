"""Weighted descriptive statistics for one variable.

Moments are accumulated in two passes over the valid cases: the first pass
gives the weighted mean, the second accumulates central power sums around it.
Statistics that need more weight than is available are reported as ``None``.

Moments are taken for every valid value that coerces to a number, whatever
the measurement level: ordinal codes, date serials and numeric nominal codes
all contribute. The measurement level only decides how user-missing codes
and ranges are applied. Text values never enter the moments; they feed the
mode only.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .missing import case_weight, is_missing
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

DEFAULT_PERCENTILES: Tuple[float, ...] = (25.0, 50.0, 75.0)


@dataclass(frozen=True)
class DescriptiveOptions:
    save_standardized: bool = False

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None) -> "DescriptiveOptions":
        if not raw:
            return cls()
        raw = require_mapping(raw, "Descriptives options")
        flag = raw.get("save_standardized", raw.get("saveStandardized", False))
        return cls(save_standardized=bool(flag))


@dataclass(frozen=True)
class MomentAccumulator:
    """Weighted power sums about the mean.

    Attributes:
        W: Sum of valid case weights.
        S: Weighted sum of values.
        M2, M3, M4: Weighted central power sums.
        minimum, maximum: Range of the valid values.
        N: Number of valid cases.
    """

    W: float = 0.0
    S: float = 0.0
    M2: float = 0.0
    M3: float = 0.0
    M4: float = 0.0
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    N: int = 0

    @classmethod
    def from_values(cls, values: Sequence[float], weights: Sequence[float]) -> "MomentAccumulator":
        x = np.asarray(values, dtype=float)
        w = np.asarray(weights, dtype=float)
        if x.size == 0:
            return cls()
        total_weight = float(np.sum(w))
        weighted_sum = float(np.sum(w * x))
        mean = weighted_sum / total_weight
        dev = x - mean
        return cls(
            W=total_weight,
            S=weighted_sum,
            M2=float(np.sum(w * dev**2)),
            M3=float(np.sum(w * dev**3)),
            M4=float(np.sum(w * dev**4)),
            minimum=float(np.min(x)),
            maximum=float(np.max(x)),
            N=int(x.size),
        )

    @property
    def mean(self) -> Optional[float]:
        return self.S / self.W if self.W > 0 else None

    @property
    def variance(self) -> Optional[float]:
        if self.W <= 1:
            return None
        return self.M2 / (self.W - 1.0)

    @property
    def std_dev(self) -> Optional[float]:
        var = self.variance
        return math.sqrt(var) if var is not None else None

    @property
    def se_mean(self) -> Optional[float]:
        sd = self.std_dev
        return sd / math.sqrt(self.W) if sd is not None else None

    @property
    def skewness(self) -> Optional[float]:
        var = self.variance
        if self.W < 3 or not var:
            return None
        w = self.W
        return w * self.M3 / ((w - 1.0) * (w - 2.0) * var**1.5)

    @property
    def se_skewness(self) -> Optional[float]:
        if self.W < 3:
            return None
        w = self.W
        return math.sqrt(6.0 * w * (w - 1.0) / ((w - 2.0) * (w + 1.0) * (w + 3.0)))

    @property
    def kurtosis(self) -> Optional[float]:
        var = self.variance
        if self.W < 4 or not var:
            return None
        w = self.W
        numerator = w * (w + 1.0) * self.M4 - 3.0 * self.M2**2 * (w - 1.0)
        return numerator / ((w - 1.0) * (w - 2.0) * (w - 3.0) * var**2)

    @property
    def se_kurtosis(self) -> Optional[float]:
        se_skew = self.se_skewness
        if self.W < 4 or se_skew is None:
            return None
        w = self.W
        return math.sqrt(4.0 * (w**2 - 1.0) * se_skew**2 / ((w - 3.0) * (w + 5.0)))


@dataclass(frozen=True)
class DescriptiveResult:
    variable: str
    n_total: int
    n: int
    valid_weight_sum: float
    missing_weight_sum: float
    mean: Optional[float] = None
    sum: Optional[float] = None
    variance: Optional[float] = None
    std_dev: Optional[float] = None
    se_mean: Optional[float] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    range: Optional[float] = None
    skewness: Optional[float] = None
    se_skewness: Optional[float] = None
    kurtosis: Optional[float] = None
    se_kurtosis: Optional[float] = None
    median_unweighted: Optional[float] = None
    percentiles: Dict[str, Optional[float]] = field(default_factory=dict)
    iqr: Optional[float] = None
    mode: Tuple[Value, ...] = ()
    z_scores: Optional[Tuple[Optional[float], ...]] = None


def weighted_percentile(
    sorted_values: Sequence[float], cumulative: Sequence[float], total: float, p: float
) -> Optional[float]:
    """Weighted-average (``(W + 1) p``) percentile over a frequency table.

    Args:
        sorted_values: Distinct values in ascending order.
        cumulative: Cumulative weights aligned with ``sorted_values``.
        total: Sum of weights ``W``.
        p: Percentile in ``[0, 100]``.
    """
    if total <= 0 or not len(sorted_values):
        return None
    rank = (total + 1.0) * p / 100.0
    if rank <= 1.0:
        return float(sorted_values[0])
    if rank >= total:
        return float(sorted_values[-1])
    lower_pos = math.floor(rank)
    upper_pos = math.ceil(rank)
    cc = np.asarray(cumulative, dtype=float)
    last = len(sorted_values) - 1
    lower = sorted_values[min(int(np.searchsorted(cc, lower_pos, side="left")), last)]
    upper = sorted_values[min(int(np.searchsorted(cc, upper_pos, side="left")), last)]
    frac = rank - lower_pos
    return float((1.0 - frac) * lower + frac * upper)


def _frequency_table(values: Sequence[Value], weights: Sequence[float]) -> Tuple[List[Value], List[float]]:
    totals: Dict[Value, float] = {}
    for value, weight in zip(values, weights):
        totals[value] = totals.get(value, 0.0) + weight
    keys = sort_values(list(totals))
    return keys, [totals[k] for k in keys]


def _modes(values: Sequence[Value], weights: Sequence[float]) -> Tuple[Value, ...]:
    keys, freqs = _frequency_table(values, weights)
    if not keys:
        return ()
    top = max(freqs)
    return tuple(k for k, f in zip(keys, freqs) if f == top)


def describe(
    data: Sequence[Any],
    variable: VariableSpec | Mapping[str, Any],
    weights: Sequence[Any] | None = None,
    options: DescriptiveOptions | None = None,
) -> DescriptiveResult:
    """Compute weighted descriptive statistics for one variable.

    Args:
        data: Raw case values; never modified.
        variable: Variable definition with missing-value rules.
        weights: Optional case weights. ``None`` (or a ``None`` entry) is a
            unit weight; non-numeric or non-positive weights exclude the case.
        options: ``DescriptiveOptions``; defaults to no z-scores.

    Returns:
        DescriptiveResult: Counts, moments with standard errors, unweighted
        median, weighted percentiles, modes and optional z-scores. All
        statistics are ``None`` when there are no valid cases.

    Note:
        The median is computed from the sorted valid values without weights
        while every moment is weighted.
    """
    spec = VariableSpec.from_dict(variable)
    opts = options or DescriptiveOptions()
    n_total = ensure_same_length(data, weights)
    numeric_measure = spec.measure.is_numeric

    numeric_values: List[float] = []
    numeric_weights: List[float] = []
    numeric_index: List[int] = []
    mode_values: List[Value] = []
    mode_weights: List[float] = []
    missing_weight = 0.0
    invalid_weight = 0

    for i, raw in enumerate(data):
        weight = case_weight(weights, i)
        if weight is None:
            invalid_weight += 1
            continue
        if is_missing(raw, spec, numeric_measure):
            missing_weight += weight
            continue
        value = coerce_value(raw)
        mode_values.append(value)
        mode_weights.append(weight)
        if is_numeric_value(value):
            numeric_values.append(value)
            numeric_weights.append(weight)
            numeric_index.append(i)

    if invalid_weight:
        logger.debug("%s: excluded %d case(s) with invalid weights", spec.name, invalid_weight)
    logger.debug("%s: %d valid numeric case(s) of %d", spec.name, len(numeric_values), n_total)

    acc = MomentAccumulator.from_values(numeric_values, numeric_weights)
    modes = _modes(mode_values, mode_weights)
    base = dict(
        variable=spec.name,
        n_total=n_total,
        n=acc.N,
        valid_weight_sum=acc.W,
        missing_weight_sum=missing_weight,
        mode=modes,
    )
    if acc.N == 0:
        return DescriptiveResult(**base)

    keys, freqs = _frequency_table(numeric_values, numeric_weights)
    cumulative = np.cumsum(freqs)
    percentiles = {
        f"{p:g}": weighted_percentile(keys, cumulative, acc.W, p) for p in DEFAULT_PERCENTILES
    }
    q1, q3 = percentiles["25"], percentiles["75"]

    std_dev = acc.std_dev
    z_scores: Optional[Tuple[Optional[float], ...]] = None
    if opts.save_standardized and std_dev:
        mean = acc.mean
        scores: List[Optional[float]] = [None] * n_total
        for idx, value in zip(numeric_index, numeric_values):
            scores[idx] = (value - mean) / std_dev
        z_scores = tuple(scores)

    return DescriptiveResult(
        **base,
        mean=acc.mean,
        sum=acc.S,
        variance=acc.variance,
        std_dev=std_dev,
        se_mean=acc.se_mean,
        minimum=acc.minimum,
        maximum=acc.maximum,
        range=acc.maximum - acc.minimum,
        skewness=acc.skewness,
        se_skewness=acc.se_skewness,
        kurtosis=acc.kurtosis,
        se_kurtosis=acc.se_kurtosis,
        median_unweighted=float(np.median(numeric_values)),
        percentiles=percentiles,
        iqr=q3 - q1 if q1 is not None and q3 is not None else None,
        z_scores=z_scores,
    )
