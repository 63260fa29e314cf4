"""Message boundary in front of the calculators.

Each request is a plain mapping ``{variable(s), data, weights, options}``.
``handle_request`` answers with the calculator result flattened into plain
Python objects, or with ``{"error": message}``. Calculator failures never
escape as exceptions.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ProcessPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .compare_means import (
    IndependentTTestOptions,
    independent_samples_t_test,
    paired_samples_t_test,
)
from .crosstabs import CrosstabOptions, crosstab
from .data_processing import numeric_matrix, numeric_vector
from .descriptive import DescriptiveOptions, describe
from .errors import StatifyError
from .output import to_plain
from .schema import VariableSpec, require_mapping
from .stats.regression import (
    CONSTANT_LABEL,
    LinearityOptions,
    collinearity_diagnostics,
    fit_ols,
    linearity_test,
    variance_inflation,
)

logger = logging.getLogger(__name__)

Response = Dict[str, Any]


def _field(request: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if name in request:
            return request[name]
    raise KeyError(names[0])


def _options(request: Mapping[str, Any]) -> Any:
    return request.get("options")


def _run_descriptives(request: Mapping[str, Any]) -> Response:
    result = describe(
        _field(request, "data"),
        _field(request, "variable"),
        weights=request.get("weights"),
        options=DescriptiveOptions.from_dict(_options(request)),
    )
    return to_plain(result)


def _run_crosstabs(request: Mapping[str, Any]) -> Response:
    variables = _field(request, "variable", "variables")
    data = _field(request, "data")
    result = crosstab(
        _field(data, "row"),
        _field(data, "col", "column"),
        _field(variables, "row"),
        _field(variables, "col", "column"),
        weights=request.get("weights"),
        options=CrosstabOptions.from_dict(_options(request)),
    )
    return to_plain(result)


def _independent_design(request: Mapping[str, Any]) -> Tuple[List[VariableSpec], Any]:
    variables = _field(request, "variables", "variable")
    data = _field(request, "data")
    specs = [VariableSpec.from_dict(v) for v in _field(variables, "independent")]
    x = numeric_matrix(_field(data, "independent"), specs)
    return specs, x


def _regression_inputs(request: Mapping[str, Any]):
    variables = _field(request, "variables", "variable")
    data = _field(request, "data")
    y_spec = VariableSpec.from_dict(_field(variables, "dependent"))
    y = numeric_vector(_field(data, "dependent"), y_spec)
    x_specs, x = _independent_design(request)
    return y_spec, y, x_specs, x


def _run_regression(request: Mapping[str, Any]) -> Response:
    y_spec, y, x_specs, x = _regression_inputs(request)
    response = to_plain(fit_ols(y, x))
    response["dependent"] = y_spec.name
    response["variables"] = [CONSTANT_LABEL] + [spec.name for spec in x_specs]
    return response


def _run_linearity(request: Mapping[str, Any]) -> Response:
    y_spec, y, x_specs, x = _regression_inputs(request)
    options = LinearityOptions.from_dict(_options(request))
    result = linearity_test(y, x, max_power=options.max_power, names=[s.name for s in x_specs])
    response = to_plain(result)
    response["dependent"] = y_spec.name
    return response


def _run_collinearity(request: Mapping[str, Any]) -> Response:
    specs, x = _independent_design(request)
    return to_plain(collinearity_diagnostics(x, names=[s.name for s in specs]))


def _run_vif(request: Mapping[str, Any]) -> Response:
    specs, x = _independent_design(request)
    return to_plain(variance_inflation(x, names=[s.name for s in specs]))


def _run_independent_t(request: Mapping[str, Any]) -> Response:
    result = independent_samples_t_test(
        _field(request, "data"),
        _field(request, "groupingData", "grouping_data"),
        _field(request, "variable"),
        _field(request, "groupingVariable", "grouping_variable"),
        options=IndependentTTestOptions.from_dict(_options(request)),
    )
    return to_plain(result)


def _run_paired_t(request: Mapping[str, Any]) -> Response:
    variables = _field(request, "variables")
    data = _field(request, "data")
    if len(variables) != 2 or len(data) != 2:
        raise ValueError("Paired t-test needs exactly two variables and two data vectors.")
    return to_plain(paired_samples_t_test(data[0], data[1], variables[0], variables[1]))


CALCULATORS: Dict[str, Callable[[Mapping[str, Any]], Response]] = {
    "descriptives": _run_descriptives,
    "crosstabs": _run_crosstabs,
    "regression": _run_regression,
    "linearity": _run_linearity,
    "collinearity": _run_collinearity,
    "vif": _run_vif,
    "independent_t": _run_independent_t,
    "paired_t": _run_paired_t,
}


def handle_request(kind: str, request: Mapping[str, Any]) -> Response:
    """Run one calculator and shape its result or failure as a response.

    Args:
        kind: Calculator name, one of ``CALCULATORS``.
        request: Mapping with the calculator's variables, data, weights and
            options.

    Returns:
        dict: The plain result, or ``{"error": message}``. Errors are never
        accompanied by partial results.
    """
    handler = CALCULATORS.get(kind)
    if handler is None:
        message = f"Unknown calculator '{kind}'; expected one of {sorted(CALCULATORS)}"
        logger.warning(message)
        return {"error": message}
    try:
        return handler(require_mapping(request, f"{kind} request"))
    except StatifyError as exc:
        logger.warning("%s failed: %s", kind, exc)
        return {"error": str(exc)}
    except KeyError as exc:
        message = f"Malformed {kind} request: missing field {exc.args[0]!r}"
        logger.warning(message)
        return {"error": message}
    except (AttributeError, TypeError, ValueError) as exc:
        logger.warning("%s rejected its request: %s", kind, exc)
        return {"error": str(exc)}


def _run_job(job: Tuple[str, Mapping[str, Any]]) -> Response:
    kind, request = job
    return handle_request(kind, request)


def run_batch(
    jobs: Iterable[Tuple[str, Mapping[str, Any]]], max_workers: Optional[int] = None
) -> List[Response]:
    """Run ``(kind, request)`` jobs in separate processes, keeping input order."""
    tasks: Sequence[Tuple[str, Mapping[str, Any]]] = list(jobs)
    if not tasks:
        return []
    workers = (os.cpu_count() or 1) if max_workers is None else int(max_workers)
    workers = max(1, min(workers, len(tasks)))
    logger.info("Running %d calculator job(s) on %d worker process(es)", len(tasks), workers)
    with ProcessPoolExecutor(max_workers=workers) as ex:
        return list(ex.map(_run_job, tasks))
