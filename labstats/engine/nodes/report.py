from __future__ import annotations
from typing import Any, Dict, List, MutableMapping, Tuple
import html
import logging

from ..core.constants import _REPORT_TEMPLATE_NAME
from ..core.state import _with_phase, _emit_callback
from ..core.types import (
    AnalysisRequest,
    AnalysisResult,
    CorrelationResult,
    Dataset,
    DescriptiveStatsResult,
    LinearRegressionResult,
    MLClassificationResult,
    MLRegressionResult,
)
from ..core.utils import _JINJA_ENV
from .charts import generate_chart_artifacts

logger = logging.getLogger(__name__)

_TITLES = {
    "descriptive_stats": "Descriptive Statistics",
    "correlation": "Correlation Analysis",
    "linear_regression": "Linear Regression",
    "ml_regression": "Regression Model",
    "ml_classification": "Classification Model",
}


def _fmt(value: Any, digits: int = 4) -> str:
    if value is None:
        return "n/a"
    if isinstance(value, float):
        return f"{value:.{digits}f}"
    return str(value)


def _metric_rows(result: AnalysisResult) -> List[Tuple[str, str]]:
    """Headline figures shown in the report's metrics table."""
    if isinstance(result, DescriptiveStatsResult):
        return [
            (s.name, f"mean {_fmt(s.mean)}, sd {_fmt(s.std)}, median {_fmt(s.median)}, IQR {_fmt(s.iqr)}")
            for s in result.variables
        ]
    if isinstance(result, CorrelationResult):
        return [
            (f"{entry.var1} / {entry.var2}", f"r = {_fmt(entry.correlation, 3)} (p ≈ {entry.p_value}, n = {entry.n})")
            for entry in result.correlation_matrix
            if entry.var1 != entry.var2
        ]
    if isinstance(result, LinearRegressionResult):
        return [
            ("Equation", result.equation),
            ("R²", _fmt(result.r_squared)),
            ("Correlation", _fmt(result.correlation)),
            ("p-value", f"{result.p_value} ({result.significance_level})"),
            ("Standard error", _fmt(result.standard_error)),
            ("n", str(result.n)),
        ]
    if isinstance(result, MLRegressionResult):
        rows = [
            ("Algorithm", result.algorithm),
            ("Training / test size", f"{result.training_size} / {result.test_size}"),
            ("Rows dropped", str(result.rows_dropped)),
            ("R² (train / test)", f"{_fmt(result.r_squared.training)} / {_fmt(result.r_squared.testing)}"),
            ("RMSE (train / test)", f"{_fmt(result.rmse.training)} / {_fmt(result.rmse.testing)}"),
            ("MAE (train / test)", f"{_fmt(result.mae.training)} / {_fmt(result.mae.testing)}"),
        ]
        if result.cross_validation is not None:
            cv = result.cross_validation
            rows.append(("Cross-validation R²", f"{_fmt(cv.mean_score)} ± {_fmt(cv.std_score)} ({len(cv.scores)} folds)"))
        return rows
    if isinstance(result, MLClassificationResult):
        return [
            ("Algorithm", result.algorithm),
            ("Training / test size", f"{result.training_size} / {result.test_size}"),
            ("Rows dropped", str(result.rows_dropped)),
            ("Classes", ", ".join(result.classes)),
            (f"Accuracy ({result.evaluation_partition})", _fmt(result.accuracy)),
            ("Precision / recall / F1", f"{_fmt(result.precision)} / {_fmt(result.recall)} / {_fmt(result.f1_score)}"),
        ]
    return []


def _report_text(title: str, result: AnalysisResult, metric_rows: List[Tuple[str, str]], warnings: List[str]) -> str:
    lines = [title, "=" * len(title), "", result.summary, ""]
    if metric_rows:
        lines.append("Key figures:")
        lines.extend(f"  {label}: {value}" for label, value in metric_rows)
        lines.append("")
    recommendations = list(getattr(result, "recommendations", ()) or ())
    if recommendations:
        lines.append("Recommendations:")
        lines.extend(f"  - {item}" for item in recommendations)
        lines.append("")
    if warnings:
        lines.append("Data warnings:")
        lines.extend(f"  - {item}" for item in warnings)
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


def report_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    """
    Render the analysis result as a plain-text and an HTML report and attach
    the charts for the result kind. Rendering problems never fail the run;
    the HTML falls back to a minimal page and a missing chart is skipped.
    """
    dataset: Dataset = state["dataset"]
    request: AnalysisRequest = state["request"]
    result: AnalysisResult = state["result"]
    phases = state.get("phase_outputs", {})
    validation = phases.get("validate", {}) or {}

    title = _TITLES.get(request.kind, request.kind)
    metric_rows = _metric_rows(result)
    warnings = [w.get("message", "") for w in validation.get("warnings", []) or []]
    report_text = _report_text(title, result, metric_rows, warnings)

    artifact_contents = dict(state.get("artifact_contents", {}))
    try:
        charts = generate_chart_artifacts(dataset, result, exclude_outliers=request.options.remove_outliers)
    except Exception:
        logger.exception("failed to render charts", extra={"kind": request.kind})
        charts = {}
    artifact_contents.update(charts)

    html_context = {
        "title": title,
        "summary": result.summary,
        "dataset": {"rows": dataset.row_count, "columns": len(dataset.columns), "format": dataset.source_format},
        "metrics": metric_rows,
        "recommendations": list(getattr(result, "recommendations", ()) or ()),
        "warnings": warnings,
        "charts": [
            {"path": key, "name": key.rsplit("/", 1)[-1], "description": spec.get("description")}
            for key, spec in sorted(charts.items())
        ],
    }

    html_report = f"<html><body><h1>{html.escape(title)}</h1><p>{html.escape(result.summary)}</p></body></html>"
    try:
        template = _JINJA_ENV.get_template(_REPORT_TEMPLATE_NAME)
        html_report = template.render(html_context)
    except Exception as e:
        logger.exception("failed to render HTML report: %s", e)

    artifact_contents["results/report.txt"] = {
        "kind": "text",
        "text": report_text,
        "description": "Plain-text report of the analysis result.",
        "contentType": "text/plain",
    }
    artifact_contents["results/report.html"] = {
        "kind": "html",
        "html": html_report,
        "description": "Formatted HTML report of the analysis result.",
        "contentType": "text/html",
    }

    payload = {
        "title": title,
        "summary": result.summary,
        "reportArtifacts": {
            "text": "results/report.txt",
            "html": "results/report.html",
        },
        "charts": sorted(charts),
    }

    update = _with_phase(state, "report", payload, artifact_contents=artifact_contents)
    _emit_callback(state, "report", payload)
    return update
