from __future__ import annotations
from typing import Any, Dict, List, MutableMapping, Sequence

from ..core.constants import ANALYSIS_KINDS, _MIN_RECOMMENDED_ROWS, _MISSING_WARNING_RATIO
from ..core.errors import InvalidSelectionError, UnsupportedAnalysisKindError
from ..core.state import _with_phase, _emit_callback
from ..core.types import AnalysisRequest, Dataset


def validate_dataset(dataset: Dataset, required_columns: Sequence[str] = ()) -> Dict[str, Any]:
    """
    Report missing required columns as errors, and sparse numeric columns or
    very small datasets as warnings. Never raises.
    """
    errors: List[Dict[str, Any]] = []
    warnings: List[Dict[str, Any]] = []

    known = set(dataset.column_keys)
    for name in required_columns:
        if name not in known:
            errors.append(
                {
                    "column": name,
                    "message": f"Required column '{name}' not found in dataset",
                    "severity": "error",
                }
            )

    for column in dataset.columns:
        if column.stats is None or not dataset.row_count:
            continue
        missing_ratio = column.stats.null_count / dataset.row_count
        if missing_ratio > _MISSING_WARNING_RATIO:
            warnings.append(
                {
                    "column": column.key,
                    "message": f"Column '{column.key}' has {missing_ratio * 100:.1f}% missing values",
                    "severity": "warning",
                }
            )

    if dataset.row_count < _MIN_RECOMMENDED_ROWS:
        warnings.append(
            {
                "message": (
                    f"Dataset has only {dataset.row_count} rows. Statistical analyses may not be "
                    f"reliable with small sample sizes."
                ),
                "severity": "warning",
            }
        )

    is_valid = not errors
    return {
        "isValid": is_valid,
        "errors": errors,
        "warnings": warnings,
        "summary": (
            f"Validation {'passed' if is_valid else 'failed'}. "
            f"{len(errors)} error(s), {len(warnings)} warning(s)."
        ),
    }


def required_columns(request: AnalysisRequest) -> List[str]:
    columns = list(request.features)
    if request.target and request.kind not in ("descriptive_stats", "correlation"):
        columns.append(request.target)
    return columns


def check_request(dataset: Dataset, request: AnalysisRequest) -> None:
    """Raise when the request has an unknown kind, the wrong number of variables, or names absent columns."""
    kind = request.kind
    if kind not in ANALYSIS_KINDS:
        raise UnsupportedAnalysisKindError(kind)

    if kind == "linear_regression" and (len(request.features) != 1 or not request.target):
        raise InvalidSelectionError(
            "Linear regression needs exactly one predictor and a target",
            variables=[*request.features, *([request.target] if request.target else [])],
        )
    if kind == "correlation" and len(request.features) < 2:
        raise InvalidSelectionError("Correlation needs at least two variables", variables=request.features)
    if kind == "descriptive_stats" and not request.features:
        raise InvalidSelectionError("Descriptive statistics need at least one variable")

    missing = [name for name in required_columns(request) if not dataset.has_column(name)]
    if missing:
        raise InvalidSelectionError(f"Unknown column(s): {', '.join(missing)}", variables=missing)


def validate_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    dataset: Dataset = state["dataset"]
    request: AnalysisRequest = state["request"]

    check_request(dataset, request)
    payload = validate_dataset(dataset, required_columns(request))
    payload["kind"] = request.kind

    update = _with_phase(state, "validate", payload)
    _emit_callback(state, "validate", payload)
    return update
