"""
Load tabular case data and turn columns into calculator inputs.
"""

# Columns are read with pandas and handed to the calculators as plain Python
# lists, with pandas' NaN markers replaced by None so the missing-value policy
# sees one representation of system-missing.

from __future__ import annotations

import logging
from typing import Any, List, Sequence

import numpy as np
import pandas as pd

from .missing import is_missing
from .schema import VariableSpec, coerce_value, is_numeric_value

logger = logging.getLogger(__name__)


def load_dataset(path: str) -> pd.DataFrame:
    """Read a CSV file of cases (rows) by variables (columns).

    Args:
        path: CSV path. The first row holds variable names.

    Returns:
        pandas.DataFrame: Raw cases with surrounding whitespace stripped from
        the column names.

    Raises:
        ValueError: If the file has no columns.
    """
    df = pd.read_csv(path, skipinitialspace=True)
    if df.columns.empty:
        raise ValueError(f"No columns found in {path}.")
    df.columns = [str(col).strip() for col in df.columns]
    logger.info("Loaded %d case(s) and %d variable(s) from %s", len(df), len(df.columns), path)
    return df


def column_values(df: pd.DataFrame, name: str) -> List[Any]:
    """Return one column as a list with NaN replaced by ``None``."""
    if name not in df.columns:
        raise ValueError(f"Variable '{name}' not found; available: {list(df.columns)}")
    return [None if pd.isna(value) else value for value in df[name].tolist()]


def numeric_vector(values: Sequence[Any], spec: VariableSpec | None = None) -> np.ndarray:
    """Convert raw values to floats, with missing and non-numeric cases as NaN."""
    out = np.full(len(values), np.nan)
    for i, raw in enumerate(values):
        if spec is not None and is_missing(raw, spec, spec.measure.is_numeric):
            continue
        value = coerce_value(raw)
        if is_numeric_value(value):
            out[i] = value
    return out


def numeric_matrix(columns: Sequence[Sequence[Any]], specs: Sequence[VariableSpec | None]) -> np.ndarray:
    """Stack raw columns into an ``n x p`` float matrix for the regression engine."""
    if len(columns) != len(specs):
        raise ValueError(f"Got {len(columns)} data column(s) for {len(specs)} variable(s).")
    if not columns:
        raise ValueError("At least one independent variable is required.")
    return np.column_stack([numeric_vector(col, spec) for col, spec in zip(columns, specs)])
