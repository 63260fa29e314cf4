"""
Display rounding helpers.

Statistics are always computed at full precision; only fields that are meant
for display are passed through these helpers.
"""

from __future__ import annotations

import math
from typing import Optional


def round_half_away(value: Optional[float], ndigits: int = 0) -> Optional[float]:
    """
    Round to ``ndigits`` decimals with ties away from zero.

    Python's ``round`` uses banker's rounding, which does not match the
    fixed-decimal output users compare against (2.25 -> 2.3, -0.05 -> -0.1).
    """
    if value is None or not math.isfinite(value):
        return value
    scale = 10.0**ndigits
    # repr-based nudge keeps values like 2.675 (stored as 2.67499...) rounding up
    shifted = float(f"{abs(value) * scale:.12g}")
    return math.copysign(math.floor(shifted + 0.5) / scale, value)


def format_pvalue(value: Optional[float]) -> str:
    """Format p-values consistently for tables and CLI output."""
    if value is None or not math.isfinite(value):
        return "NaN" if value is not None else ""
    if value < 1e-3:
        return "<0.001"
    return f"{value:.3f}"


def format_statistic(value: Optional[float], ndigits: int = 3) -> str:
    if value is None:
        return ""
    if not math.isfinite(value):
        return f"{value}"
    return f"{round_half_away(value, ndigits):.{ndigits}f}"
