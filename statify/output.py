"""Convert calculator results into plain messages and display tables.

This module is the boundary between frozen result dataclasses and the
serialisable responses (plain dicts, JSON) or pandas tables shown to users.
"""

from __future__ import annotations

import dataclasses
import json
import math
import os
from enum import Enum
from typing import Any, Mapping, Sequence

import numpy as np
import pandas as pd

from .formatting import format_pvalue, round_half_away


def to_plain(value: Any) -> Any:
    """Recursively convert results into JSON-compatible Python objects.

    Dataclasses become dicts, enums their values, tuples and arrays lists,
    numpy scalars Python numbers. Non-finite floats become ``None`` so a
    consumer never receives NaN in a numeric field.
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, np.ndarray):
        return [to_plain(v) for v in value.tolist()]
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def to_json(payload: Any, indent: int | None = 2) -> str:
    return json.dumps(to_plain(payload), indent=indent)


def save_json(payload: Any, path: str) -> str:
    """Write ``payload`` as JSON, creating the parent directory if needed."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(to_json(payload))
        handle.write("\n")
    return path


def coefficient_table(response: Mapping[str, Any]) -> pd.DataFrame:
    """Coefficient table for a regression response."""
    names = response.get("variables") or [f"b{j}" for j in range(len(response["beta"]))]
    return pd.DataFrame(
        {
            "Variable": names,
            "B": response["beta"],
            "Std. Error": response["std_error"],
            "Beta": response["standardized"],
            "t": response["t_stat"],
            "Sig.": [format_pvalue(p) for p in response["p_value"]],
        }
    )


def cell_table(response: Mapping[str, Any]) -> pd.DataFrame:
    """Long-format cell table for a crosstabs response."""
    rows = [cell for row in response["cells"] for cell in row]
    df = pd.DataFrame(rows)
    return df.rename(
        columns={
            "row": "Row",
            "col": "Column",
            "count": "Count",
            "expected": "Expected",
            "residual": "Residual",
            "standardized_residual": "Std. Residual",
            "adjusted_residual": "Adj. Residual",
        }
    ).drop(columns=["expected_exact"], errors="ignore")


def summary_table(response: Mapping[str, Any], ndigits: int = 4) -> pd.DataFrame:
    """Two-column statistic/value table of the scalar fields of a response."""
    records = []
    for key, value in response.items():
        if isinstance(value, (list, dict)):
            continue
        if isinstance(value, float):
            value = round_half_away(value, ndigits)
        records.append({"Statistic": key, "Value": value})
    return pd.DataFrame(records, columns=["Statistic", "Value"])


def response_table(kind: str, response: Mapping[str, Any]) -> pd.DataFrame:
    """Pick the display table matching a calculator response."""
    if kind == "regression":
        return coefficient_table(response)
    if kind == "crosstabs":
        return cell_table(response)
    return summary_table(response)


def format_tables(kind: str, responses: Sequence[Mapping[str, Any]]) -> str:
    blocks = []
    for response in responses:
        if "error" in response:
            blocks.append(f"Error: {response['error']}")
        else:
            blocks.append(response_table(kind, response).to_string(index=False))
    return "\n\n".join(blocks)
