"""Tests for CSV loading, output shaping and the command-line entrypoint."""

import json

import numpy as np
import pandas as pd
import pytest

from statify.cli import main
from statify.data_processing import column_values, load_dataset, numeric_matrix, numeric_vector
from statify.missing import WeightAdjustment
from statify.output import cell_table, coefficient_table, summary_table, to_plain
from statify.schema import VariableSpec


@pytest.fixture
def csv_path(tmp_path):
    path = tmp_path / "cases.csv"
    path.write_text(
        "x, y, group, w\n"
        "1,2.9,a,1\n"
        "2,5.2,b,2\n"
        "3,6.8,a,1\n"
        "4,9.1,b,1\n"
        "5,,a,1\n"
        "6,13.2,b,1\n"
        "7,14.7,a,1\n"
        "8,17.1,b,1\n"
    )
    return str(path)


def test_load_dataset_strips_columns_and_maps_nan(csv_path):
    df = load_dataset(csv_path)
    assert list(df.columns) == ["x", "y", "group", "w"]
    y = column_values(df, "y")
    assert y[4] is None
    assert y[0] == pytest.approx(2.9)
    with pytest.raises(ValueError, match="not found"):
        column_values(df, "height")


def test_numeric_conversion_applies_missing_rules():
    spec = VariableSpec.from_dict({"name": "x", "missing": {"discrete": [99]}})
    vec = numeric_vector([1, "2", None, "abc", 99], spec)
    assert vec[:2].tolist() == [1.0, 2.0]
    assert np.isnan(vec[2:]).all()
    matrix = numeric_matrix([[1, 2], [3, 4]], [None, None])
    assert matrix.shape == (2, 2)
    with pytest.raises(ValueError, match="2 data column"):
        numeric_matrix([[1, 2], [3, 4]], [None])


def test_to_plain_flattens_numpy_and_enums():
    plain = to_plain({"a": np.float64("nan"), "b": np.arange(3), "c": WeightAdjustment.ROUND_CELL, "d": (1, 2.5)})
    assert plain == {"a": None, "b": [0, 1, 2], "c": "roundCell", "d": [1, 2.5]}


def test_display_tables():
    response = {
        "variables": ["(Constant)", "x"],
        "beta": [1.0, 2.0],
        "std_error": [0.1, 0.2],
        "standardized": [None, 0.9],
        "t_stat": [10.0, 10.0],
        "p_value": [0.00001, 0.0004],
        "n": 10,
    }
    table = coefficient_table(response)
    assert list(table["Variable"]) == ["(Constant)", "x"]
    assert list(table["Sig."]) == ["<0.001", "<0.001"]
    summary = summary_table(response)
    assert list(summary["Statistic"]) == ["n"]
    cells = cell_table({"cells": [[{"row": "a", "col": "y", "count": 2.0, "expected_exact": 1.5}]]})
    assert "expected_exact" not in cells.columns
    assert isinstance(cells, pd.DataFrame)


def test_main_writes_json(csv_path, tmp_path, capsys):
    out = tmp_path / "results" / "regression.json"
    code = main(["regression", "--input", csv_path, "--var", "y", "--var", "x", "--output", str(out)])
    assert code == 0
    printed = json.loads(capsys.readouterr().out)
    saved = json.loads(out.read_text())
    assert printed == saved
    assert saved["variables"] == ["(Constant)", "x"]
    assert saved["n"] == 7


def test_main_descriptives_for_each_variable(csv_path, capsys):
    code = main(["descriptives", "--input", csv_path, "--var", "x", "--var", "y", "--weights", "w"])
    assert code == 0
    printed = json.loads(capsys.readouterr().out)
    assert [r["variable"] for r in printed] == ["x", "y"]
    assert printed[0]["valid_weight_sum"] == pytest.approx(9.0)


def test_main_table_format(csv_path, capsys):
    code = main(
        ["independent_t", "--input", csv_path, "--var", "x", "--var", "group", "--group1", "a", "--group2", "b", "--format", "table"]
    )
    assert code == 0
    assert "Statistic" in capsys.readouterr().out


def test_main_reports_errors(csv_path, capsys):
    assert main(["regression", "--input", csv_path, "--var", "y", "--var", "height"]) == 1
    assert "not found" in json.loads(capsys.readouterr().out)["error"]
    assert main(["crosstabs", "--input", csv_path, "--var", "group"]) == 1
    assert "exactly 2" in json.loads(capsys.readouterr().out)["error"]
    assert main(["paired_t", "--input", csv_path, "--var", "x", "--var", "y", "--missing-range", "0", "100"]) == 1
    assert "at least 2" in json.loads(capsys.readouterr().out)["error"]
