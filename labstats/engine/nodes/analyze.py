from __future__ import annotations
from typing import Any, Callable, Dict, MutableMapping, Optional
import logging

from ..analyses import (
    correlation_matrix,
    descriptive_statistics,
    linear_regression,
    ml_classification,
    ml_regression,
)
from ..core.random_source import RandomSource
from ..core.state import _with_phase, _emit_callback
from ..core.types import AnalysisRequest, AnalysisResult, Dataset
from .validate import check_request

logger = logging.getLogger(__name__)

_Runner = Callable[[Dataset, AnalysisRequest, Optional[RandomSource]], AnalysisResult]


def _run_descriptive(dataset: Dataset, request: AnalysisRequest, _source: Optional[RandomSource]) -> AnalysisResult:
    return descriptive_statistics(
        dataset.rows, request.features, exclude_outliers=request.options.remove_outliers
    )


def _run_correlation(dataset: Dataset, request: AnalysisRequest, _source: Optional[RandomSource]) -> AnalysisResult:
    return correlation_matrix(dataset.rows, request.features)


def _run_linear(dataset: Dataset, request: AnalysisRequest, _source: Optional[RandomSource]) -> AnalysisResult:
    x_variable = request.features[0] if request.features else ""
    return linear_regression(dataset.rows, x_variable, request.target or "")


def _run_ml_regression(dataset: Dataset, request: AnalysisRequest, source: Optional[RandomSource]) -> AnalysisResult:
    return ml_regression(
        dataset.rows, request.features, request.target or "", request.options, random_source=source
    )


def _run_ml_classification(dataset: Dataset, request: AnalysisRequest, source: Optional[RandomSource]) -> AnalysisResult:
    return ml_classification(
        dataset.rows, request.features, request.target or "", request.options, random_source=source
    )


ANALYSES: Dict[str, _Runner] = {
    "descriptive_stats": _run_descriptive,
    "correlation": _run_correlation,
    "linear_regression": _run_linear,
    "ml_regression": _run_ml_regression,
    "ml_classification": _run_ml_classification,
}


def analyze(
    dataset: Dataset,
    request: AnalysisRequest,
    *,
    random_source: Optional[RandomSource] = None,
) -> AnalysisResult:
    """
    Run the analysis named by ``request.kind`` against ``dataset``.

    The request is checked first, so bad selections fail the same way they
    do inside the pipeline.
    """
    check_request(dataset, request)
    runner = ANALYSES[request.kind]
    logger.info(
        "running analysis",
        extra={"kind": request.kind, "features": list(request.features), "target": request.target},
    )
    return runner(dataset, request, random_source)


def analyze_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    dataset: Dataset = state["dataset"]
    request: AnalysisRequest = state["request"]

    result = analyze(dataset, request, random_source=state.get("random_source"))
    payload = result.to_dict()

    update = _with_phase(state, "analyze", payload, result=result)
    _emit_callback(state, "analyze", payload)
    return update
