"""Missing-value classification and per-case weight policy.

A value is missing when it is null/blank, equals one of the variable's
discrete missing codes, or falls inside its declared missing range. A case
weight is usable when it is a finite number greater than zero after the
configured non-integer adjustment.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Optional, Sequence

import numpy as np

from .schema import Value, VariableSpec, coerce_value, is_numeric_value


class WeightAdjustment(str, Enum):
    """How non-integer case weights are treated in weighted tables."""

    NO_ADJUSTMENT = "noAdjustment"
    ROUND_CASE = "roundCase"
    TRUNCATE_CASE = "truncateCase"
    ROUND_CELL = "roundCell"
    TRUNCATE_CELL = "truncateCell"

    @classmethod
    def parse(cls, raw: Any) -> "WeightAdjustment":
        if isinstance(raw, WeightAdjustment):
            return raw
        if raw is None:
            return cls.NO_ADJUSTMENT
        text = str(raw).strip()
        for member in cls:
            if text in (member.value, member.name, member.name.lower()):
                return member
        raise ValueError(
            f"Unknown non-integer weight mode '{raw}'; expected one of "
            f"{[m.value for m in cls]}"
        )

    @property
    def is_cell_level(self) -> bool:
        return self in (WeightAdjustment.ROUND_CELL, WeightAdjustment.TRUNCATE_CELL)


def _round_half_away(value: float) -> float:
    return math.copysign(math.floor(abs(value) + 0.5), value)


def _matches_code(value: Value, code: Any, is_numeric: bool) -> bool:
    code_value = coerce_value(code)
    if is_numeric and is_numeric_value(value) and is_numeric_value(code_value):
        return value == code_value
    if code_value is None:
        return False
    return _as_text(value) == _as_text(code_value)


def _as_text(value: Value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def is_missing(raw: Any, spec: VariableSpec | None, is_numeric: bool) -> bool:
    """Classify one raw value as missing for ``spec``.

    Args:
        raw: Raw cell value.
        spec: Variable definition carrying discrete codes and range; ``None``
            means only system-missing values are recognised.
        is_numeric: Compare codes numerically (and honour the range) when
            ``True``; compare as text otherwise.

    Returns:
        bool: ``True`` when the case must be excluded for this variable.
    """
    value = coerce_value(raw)
    if value is None:
        return True
    if spec is None:
        return False
    missing = spec.missing
    for code in missing.discrete_codes:
        if _matches_code(value, code, is_numeric):
            return True
    if is_numeric and missing.range is not None and is_numeric_value(value):
        low, high = missing.range
        if low <= value <= high:
            return True
    return False


def adjust_weight(raw: Any, mode: WeightAdjustment = WeightAdjustment.NO_ADJUSTMENT) -> Optional[float]:
    """Return the usable case weight or ``None`` when the case is disqualified."""
    value = coerce_value(raw)
    if not is_numeric_value(value) or value <= 0:
        return None
    if mode is WeightAdjustment.ROUND_CASE:
        value = _round_half_away(value)
    elif mode is WeightAdjustment.TRUNCATE_CASE:
        value = float(math.floor(value))
    return value if value > 0 else None


def case_weight(
    weights: Sequence[Any] | None,
    index: int,
    mode: WeightAdjustment = WeightAdjustment.NO_ADJUSTMENT,
) -> Optional[float]:
    """Weight of case ``index``; absent vectors and ``None`` entries count as 1."""
    if weights is None:
        return 1.0
    raw = weights[index]
    if raw is None:
        raw = 1.0
    return adjust_weight(raw, mode)


def adjust_cells(counts: np.ndarray, mode: WeightAdjustment) -> np.ndarray:
    """Apply cell-level rounding or truncation to a weighted count table."""
    table = np.asarray(counts, dtype=float).copy()
    if mode is WeightAdjustment.ROUND_CELL:
        table = np.floor(table + 0.5)
    elif mode is WeightAdjustment.TRUNCATE_CELL:
        table = np.floor(table)
    return table
