from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

from ..analyses.descriptive import remove_outliers
from ..core.constants import _MAX_CHART_POINTS, _MAX_HEATMAP_COLUMNS
from ..core.numeric import finite_values
from ..core.types import (
    AnalysisResult,
    CorrelationResult,
    Dataset,
    DescriptiveStatsResult,
    LinearRegressionResult,
    MLClassificationResult,
    MLRegressionResult,
)
from ..core.utils import _figure_png, _get_pyplot, _sanitize_filename

logger = logging.getLogger(__name__)


def _thin(values: Sequence[Any], limit: int = _MAX_CHART_POINTS) -> List[Any]:
    if len(values) <= limit:
        return list(values)
    step = len(values) / limit
    return [values[int(i * step)] for i in range(limit)]


def _box_plot_series(
    dataset: Dataset, result: DescriptiveStatsResult, *, exclude_outliers: bool = False
) -> Tuple[List[List[float]], List[str]]:
    """Values drawn per variable; the same outlier filter as the statistics when ``exclude_outliers``."""
    data: List[List[float]] = []
    labels: List[str] = []
    for summary in result.variables:
        raw = dataset.values(summary.name)
        values = remove_outliers(raw) if exclude_outliers else finite_values(raw)
        if not values:
            continue
        data.append(_thin(values))
        labels.append(summary.name)
    return data, labels


def _render_box_plots(
    dataset: Dataset, result: DescriptiveStatsResult, *, exclude_outliers: bool = False
) -> Optional[bytes]:
    data, labels = _box_plot_series(dataset, result, exclude_outliers=exclude_outliers)
    if not data:
        return None

    plt = _get_pyplot()
    width = max(6, min(12, 1.2 * len(data)))
    fig, ax = plt.subplots(figsize=(width, 4.5))
    box = ax.boxplot(data, patch_artist=True, vert=True)
    for patch in box["boxes"]:
        patch.set(facecolor="#22c55e", alpha=0.6)
    for median in box["medians"]:
        median.set(color="#0f172a", linewidth=1.5)
    ax.set_xticks(range(1, len(labels) + 1))
    ax.set_xticklabels(labels)
    ax.set_title("Box Plot Distribution by Variable")
    ax.set_ylabel("Value")
    ax.grid(True, axis="y", linestyle="--", linewidth=0.5, alpha=0.5)
    fig.tight_layout()
    return _figure_png(fig)


def _render_correlation_heatmap(result: CorrelationResult) -> Optional[bytes]:
    labels = list(result.variables)[:_MAX_HEATMAP_COLUMNS]
    if len(labels) < 2:
        return None
    matrix = [[result.coefficient(left, right) for right in labels] for left in labels]

    plt = _get_pyplot()
    fig_size = max(6, min(12, 0.75 * len(labels)))
    fig, ax = plt.subplots(figsize=(fig_size, fig_size))
    heatmap = ax.imshow(matrix, cmap="coolwarm", vmin=-1, vmax=1)
    ax.set_xticks(range(len(labels)))
    ax.set_xticklabels(labels, rotation=45, ha="right")
    ax.set_yticks(range(len(labels)))
    ax.set_yticklabels(labels)
    for i, row in enumerate(matrix):
        for j, value in enumerate(row):
            ax.text(j, i, f"{value:.2f}", ha="center", va="center", fontsize=8)
    ax.set_title("Correlation Heatmap")
    fig.colorbar(heatmap, ax=ax, fraction=0.046, pad=0.04, label="Correlation")
    fig.tight_layout()
    return _figure_png(fig)


def _render_regression_scatter(result: LinearRegressionResult) -> Optional[bytes]:
    points = _thin(result.predictions)
    if len(points) < 2:
        return None
    xs = [point.x for point in points]
    ys = [point.y for point in points]

    plt = _get_pyplot()
    fig, ax = plt.subplots(figsize=(6, 4))
    ax.scatter(xs, ys, s=24, alpha=0.75, c="#7c3aed", edgecolors="none", label="Observed")
    low, high = min(xs), max(xs)
    ax.plot(
        [low, high],
        [result.slope * low + result.intercept, result.slope * high + result.intercept],
        color="#dc2626",
        linewidth=1.5,
        label=result.equation,
    )
    ax.set_title(f"{result.y_variable} vs {result.x_variable}")
    ax.set_xlabel(result.x_variable)
    ax.set_ylabel(result.y_variable)
    ax.legend(loc="best", fontsize=8)
    ax.grid(True, linestyle="--", linewidth=0.5, alpha=0.4)
    fig.tight_layout()
    return _figure_png(fig)


def _render_residual_plot(result: MLRegressionResult) -> Optional[bytes]:
    training = _thin(result.residual_plots.training)
    testing = _thin(result.residual_plots.testing)
    if not training and not testing:
        return None

    plt = _get_pyplot()
    fig, ax = plt.subplots(figsize=(6, 4))
    if training:
        ax.scatter(
            [p.predicted for p in training],
            [p.residual for p in training],
            s=20, alpha=0.6, c="#2563eb", edgecolors="none", label="Training",
        )
    if testing:
        ax.scatter(
            [p.predicted for p in testing],
            [p.residual for p in testing],
            s=20, alpha=0.8, c="#f97316", edgecolors="none", label="Testing",
        )
    ax.axhline(0.0, color="#0f172a", linewidth=1.0)
    ax.set_title(f"Residuals for {result.target}")
    ax.set_xlabel("Predicted")
    ax.set_ylabel("Residual")
    ax.legend(loc="best", fontsize=8)
    ax.grid(True, linestyle="--", linewidth=0.5, alpha=0.4)
    fig.tight_layout()
    return _figure_png(fig)


def _render_confusion_matrix(result: MLClassificationResult) -> Optional[bytes]:
    labels = list(result.confusion_matrix.labels)
    matrix = [list(row) for row in result.confusion_matrix.matrix]
    if not labels:
        return None

    plt = _get_pyplot()
    fig_size = max(4, min(10, 1.2 * len(labels) + 2))
    fig, ax = plt.subplots(figsize=(fig_size, fig_size))
    image = ax.imshow(matrix, cmap="Blues")
    ax.set_xticks(range(len(labels)))
    ax.set_xticklabels(labels, rotation=45, ha="right")
    ax.set_yticks(range(len(labels)))
    ax.set_yticklabels(labels)
    for i, row in enumerate(matrix):
        for j, count in enumerate(row):
            ax.text(j, i, str(count), ha="center", va="center", fontsize=9)
    ax.set_xlabel("Predicted")
    ax.set_ylabel("Actual")
    ax.set_title(f"Confusion Matrix ({result.evaluation_partition})")
    fig.colorbar(image, ax=ax, fraction=0.046, pad=0.04)
    fig.tight_layout()
    return _figure_png(fig)


def generate_chart_artifacts(
    dataset: Dataset, result: AnalysisResult, *, exclude_outliers: bool = False
) -> Dict[str, Dict[str, Any]]:
    """PNG artifacts for ``result``, keyed by their path under the analysis prefix."""
    artifacts: Dict[str, Dict[str, Any]] = {}

    if isinstance(result, DescriptiveStatsResult):
        rendered = _render_box_plots(dataset, result, exclude_outliers=exclude_outliers)
        if rendered:
            artifacts["results/graphs/box_plots.png"] = {
                "kind": "image",
                "data": rendered,
                "description": "Box plots summarizing the distribution of the selected variables.",
                "contentType": "image/png",
            }
    elif isinstance(result, CorrelationResult):
        rendered = _render_correlation_heatmap(result)
        if rendered:
            artifacts["results/graphs/correlation_heatmap.png"] = {
                "kind": "image",
                "data": rendered,
                "description": "Heatmap of pairwise Pearson correlation coefficients.",
                "contentType": "image/png",
            }
    elif isinstance(result, LinearRegressionResult):
        rendered = _render_regression_scatter(result)
        if rendered:
            slug = _sanitize_filename(f"{result.y_variable}_vs_{result.x_variable}")
            artifacts[f"results/graphs/{slug}_regression.png"] = {
                "kind": "image",
                "data": rendered,
                "description": (
                    f"Scatter plot of {result.y_variable} against {result.x_variable} with the fitted line."
                ),
                "contentType": "image/png",
            }
    elif isinstance(result, MLRegressionResult):
        rendered = _render_residual_plot(result)
        if rendered:
            artifacts["results/graphs/residuals.png"] = {
                "kind": "image",
                "data": rendered,
                "description": f"Residuals against predicted values for {result.target}.",
                "contentType": "image/png",
            }
    elif isinstance(result, MLClassificationResult):
        rendered = _render_confusion_matrix(result)
        if rendered:
            artifacts["results/graphs/confusion_matrix.png"] = {
                "kind": "image",
                "data": rendered,
                "description": f"Confusion matrix for {result.target} on the {result.evaluation_partition} partition.",
                "contentType": "image/png",
            }
    return artifacts
