"""Command-line front end: run one calculator on columns of a CSV file."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pandas as pd

from .data_processing import column_values, load_dataset
from .missing import WeightAdjustment
from .output import format_tables, save_json, to_json
from .schema import Measure
from .worker import CALCULATORS, handle_request

logger = logging.getLogger(__name__)

Job = Tuple[str, Dict[str, Any]]


def _build_arg_parser() -> argparse.ArgumentParser:
    """Build command-line parser for module execution."""
    parser = argparse.ArgumentParser(
        description="Run a statify calculator on variables from a CSV file."
    )
    parser.add_argument("kind", choices=sorted(CALCULATORS), help="Calculator to run.")
    parser.add_argument("--input", required=True, help="Path to input CSV file.")
    parser.add_argument(
        "--var",
        action="append",
        required=True,
        dest="variables",
        help=(
            "Variable (column) name; repeat as needed. Regression and linearity: "
            "dependent first. Crosstabs: row then column. Independent t-test: "
            "test variable then grouping variable."
        ),
    )
    parser.add_argument("--weights", default=None, help="Optional weight column.")
    parser.add_argument(
        "--measure",
        choices=[m.value for m in Measure],
        default=None,
        help="Measurement level applied to every variable (default: scale; nominal for crosstabs).",
    )
    parser.add_argument("--group1", default=None, help="Group 1 code for the independent t-test.")
    parser.add_argument("--group2", default=None, help="Group 2 code for the independent t-test.")
    parser.add_argument(
        "--cut-point",
        type=float,
        default=None,
        help="Split the grouping variable at this value instead of group codes.",
    )
    parser.add_argument(
        "--save-standardized",
        action="store_true",
        help="Include z-scores in descriptives output.",
    )
    parser.add_argument(
        "--noninteger-weights",
        choices=[m.value for m in WeightAdjustment],
        default=WeightAdjustment.NO_ADJUSTMENT.value,
        help="Crosstabs policy for non-integer weights.",
    )
    parser.add_argument(
        "--max-power",
        type=int,
        default=3,
        help="Highest fitted-value power for the linearity test (default: 3).",
    )
    parser.add_argument(
        "--missing-codes",
        nargs="+",
        default=None,
        help="Discrete user-missing codes applied to every variable.",
    )
    parser.add_argument(
        "--missing-range",
        nargs=2,
        type=float,
        metavar=("LOW", "HIGH"),
        default=None,
        help="Inclusive user-missing range applied to every variable.",
    )
    parser.add_argument(
        "--format",
        choices=["json", "table"],
        default="json",
        help="Output format printed to stdout (default: json).",
    )
    parser.add_argument("--output", default=None, help="Write the JSON response to this path.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser


def _variable(name: str, args: argparse.Namespace, default_measure: Measure) -> Dict[str, Any]:
    missing: Dict[str, Any] = {}
    if args.missing_codes:
        missing["discrete"] = list(args.missing_codes)
    if args.missing_range:
        missing["range"] = {"min": args.missing_range[0], "max": args.missing_range[1]}
    return {
        "name": name,
        "measure": args.measure or default_measure.value,
        "missing": missing,
    }


def _require(kind: str, names: List[str], count: Optional[int] = None, minimum: int = 1) -> None:
    if count is not None and len(names) != count:
        raise ValueError(f"{kind} needs exactly {count} --var argument(s); got {len(names)}.")
    if len(names) < minimum:
        raise ValueError(f"{kind} needs at least {minimum} --var argument(s); got {len(names)}.")


def build_jobs(args: argparse.Namespace, df: pd.DataFrame) -> List[Job]:
    """Translate parsed arguments and loaded data into calculator requests."""
    kind = args.kind
    names: List[str] = args.variables
    weights = column_values(df, args.weights) if args.weights else None

    if kind == "descriptives":
        options = {"saveStandardized": args.save_standardized}
        return [
            (
                kind,
                {
                    "variable": _variable(name, args, Measure.SCALE),
                    "data": column_values(df, name),
                    "weights": weights,
                    "options": options,
                },
            )
            for name in names
        ]

    if kind == "crosstabs":
        _require(kind, names, count=2)
        row, col = names
        request = {
            "variable": {
                "row": _variable(row, args, Measure.NOMINAL),
                "col": _variable(col, args, Measure.NOMINAL),
            },
            "data": {"row": column_values(df, row), "col": column_values(df, col)},
            "weights": weights,
            "options": {"nonintegerWeights": args.noninteger_weights},
        }
        return [(kind, request)]

    if kind in ("regression", "linearity"):
        _require(kind, names, minimum=2)
        dependent, independent = names[0], names[1:]
        request = {
            "variables": {
                "dependent": _variable(dependent, args, Measure.SCALE),
                "independent": [_variable(n, args, Measure.SCALE) for n in independent],
            },
            "data": {
                "dependent": column_values(df, dependent),
                "independent": [column_values(df, n) for n in independent],
            },
            "options": {"maxPower": args.max_power},
        }
        return [(kind, request)]

    if kind in ("collinearity", "vif"):
        request = {
            "variables": {"independent": [_variable(n, args, Measure.SCALE) for n in names]},
            "data": {"independent": [column_values(df, n) for n in names]},
        }
        return [(kind, request)]

    if kind == "independent_t":
        _require(kind, names, count=2)
        test_var, group_var = names
        options: Dict[str, Any] = {"group1": args.group1, "group2": args.group2}
        if args.cut_point is not None:
            options = {"cutPoint": args.cut_point}
        request = {
            "variable": _variable(test_var, args, Measure.SCALE),
            "groupingVariable": _variable(group_var, args, Measure.NOMINAL),
            "data": column_values(df, test_var),
            "groupingData": column_values(df, group_var),
            "options": options,
        }
        return [(kind, request)]

    _require(kind, names, count=2)
    return [
        (
            kind,
            {
                "variables": [_variable(n, args, Measure.SCALE) for n in names],
                "data": [column_values(df, n) for n in names],
            },
        )
    ]


def _emit(kind: str, responses: List[Mapping[str, Any]], args: argparse.Namespace) -> None:
    payload: Any = responses[0] if len(responses) == 1 else responses
    if args.output:
        save_json(payload, args.output)
        logger.info("Wrote %s response to %s", kind, args.output)
    if args.format == "table":
        print(format_tables(kind, responses))
    else:
        print(to_json(payload))


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint; returns 0 on success and 1 when any response is an error."""
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    try:
        df = load_dataset(args.input)
        jobs = build_jobs(args, df)
    except (OSError, ValueError) as exc:
        logger.error("Could not prepare %s request: %s", args.kind, exc)
        _emit(args.kind, [{"error": str(exc)}], args)
        return 1

    responses = [handle_request(kind, request) for kind, request in jobs]
    _emit(args.kind, responses, args)
    failed = sum("error" in response for response in responses)
    if failed:
        logger.error("%d of %d %s request(s) failed", failed, len(responses), args.kind)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
