"""Define typed cell values and variable metadata shared by all calculators."""

from __future__ import annotations

import math
import numbers
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Sequence, Tuple, Union

Value = Union[float, str, None]


class Measure(str, Enum):
    """Measurement level of a variable."""

    NOMINAL = "nominal"
    ORDINAL = "ordinal"
    SCALE = "scale"
    DATE = "date"

    @classmethod
    def parse(cls, raw: Any) -> "Measure":
        if isinstance(raw, Measure):
            return raw
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            # Unknown levels are treated as scale.
            return cls.SCALE

    @property
    def is_numeric(self) -> bool:
        return self in (Measure.SCALE, Measure.ORDINAL, Measure.DATE)


def coerce_value(raw: Any) -> Value:
    """Normalise one raw cell into ``float``, stripped text, or ``None``.

    Args:
        raw: Cell as supplied by the caller (number, string, ``None``, numpy
            scalar, ...).

    Returns:
        ``None`` for null, NaN and blank strings; ``float`` for finite numbers
        and numeric strings; stripped ``str`` otherwise. Booleans are text.

    Note:
        This is the single place where string/number coercion happens. Missing
        value classification and category building both rely on it.
    """
    if raw is None:
        return None
    if isinstance(raw, bool):
        return str(raw)
    if isinstance(raw, numbers.Real):
        value = float(raw)
        return value if math.isfinite(value) else None
    text = str(raw).strip()
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        return text
    return value if math.isfinite(value) else text


def is_numeric_value(value: Value) -> bool:
    return isinstance(value, float)


def require_mapping(raw: Any, what: str) -> Mapping[str, Any]:
    """Return ``raw`` if it is a mapping; otherwise raise ``ValueError``."""
    if not isinstance(raw, Mapping):
        raise ValueError(f"{what} must be a mapping; got {type(raw).__name__}.")
    return raw


@dataclass(frozen=True)
class MissingSpec:
    """User-defined missing values for one variable.

    Attributes:
        discrete_codes: Individual values that mark a case as missing.
        range: Inclusive ``(low, high)`` numeric interval of missing values,
            or ``None``.
    """

    discrete_codes: Tuple[Any, ...] = ()
    range: Optional[Tuple[float, float]] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None) -> "MissingSpec":
        if not raw:
            return cls()
        raw = require_mapping(raw, "Missing-value definition")
        codes = raw.get("discrete", raw.get("discreteCodes", raw.get("discrete_codes")))
        rng = raw.get("range")
        parsed_range: Optional[Tuple[float, float]] = None
        if rng is not None:
            if isinstance(rng, Mapping):
                low, high = rng.get("min"), rng.get("max")
            else:
                low, high = rng
            low_v, high_v = coerce_value(low), coerce_value(high)
            if is_numeric_value(low_v) and is_numeric_value(high_v):
                parsed_range = (float(low_v), float(high_v))
        return cls(discrete_codes=tuple(codes or ()), range=parsed_range)


@dataclass(frozen=True)
class VariableSpec:
    """Metadata for one analysed variable, immutable per invocation."""

    name: str
    measure: Measure = Measure.SCALE
    missing: MissingSpec = field(default_factory=MissingSpec)
    label: str = ""

    @property
    def display_name(self) -> str:
        return self.label or self.name

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | "VariableSpec") -> "VariableSpec":
        if isinstance(raw, VariableSpec):
            return raw
        raw = require_mapping(raw, "Variable definition")
        if "name" not in raw:
            raise ValueError("Variable definition requires a 'name'.")
        return cls(
            name=str(raw["name"]),
            measure=Measure.parse(raw.get("measure", "scale")),
            missing=MissingSpec.from_dict(raw.get("missing")),
            label=str(raw.get("label") or ""),
        )


def ensure_same_length(*vectors: Sequence[Any] | None) -> int:
    """Return the common length of index-aligned vectors (``None`` skipped)."""
    lengths = {len(v) for v in vectors if v is not None}
    if len(lengths) > 1:
        raise ValueError(f"Case vectors must have equal length; got {sorted(lengths)}.")
    return lengths.pop() if lengths else 0


def _natural_key(text: str) -> Tuple[Any, ...]:
    parts = re.split(r"(\d+(?:\.\d+)?)", text)
    return tuple((0, float(part)) if i % 2 else (1, part.lower()) for i, part in enumerate(parts) if part)


def sort_values(values: Sequence[Value]) -> list[Value]:
    """Sort non-null values numerically when all are numbers, else naturally as text."""
    present = [v for v in values if v is not None]
    if all(is_numeric_value(v) for v in present):
        return sorted(present)
    return sorted(present, key=lambda v: _natural_key(str(v)))
