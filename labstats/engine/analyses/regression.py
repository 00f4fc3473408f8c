from __future__ import annotations
from typing import Any, Dict, List, Mapping, Optional, Sequence
import logging
import math

from ..core.constants import (
    IMPORTANCE_METHOD,
    P_VALUE_METHOD,
    _CV_UNSTABLE_STD,
    _OVERFIT_RECOMMENDATION_GAP,
    _OVERFIT_SUMMARY_GAP,
    _REGRESSION_STRENGTH_LABELS,
)
from ..core.errors import InsufficientDataError, InvalidSelectionError, SingularSystemError
from ..core.numeric import (
    estimate_p_value,
    mean,
    mean_absolute_error,
    mean_squared_error,
    pearson,
    r_squared,
    significance_tier,
    to_finite,
)
from ..core.random_source import RandomSource
from ..core.types import (
    AnalysisOptions,
    Coefficient,
    CrossValidationSummary,
    FeatureImportance,
    LinearPrediction,
    LinearRegressionResult,
    MLRegressionResult,
    Partitioned,
    PartitionMetric,
    RegressionPoint,
    ResidualPoint,
)
from .extraction import check_model_selection, extract_rows
from .importance import feature_importance
from .linalg import fit_normal_equation, predict
from .splitting import cross_validate, train_test_split

logger = logging.getLogger(__name__)


def _fixed(value: float) -> str:
    text = f"{value:.4f}"
    # values that round to zero print unsigned
    return "0.0000" if text == "-0.0000" else text


def format_equation(slope: float, intercept: float) -> str:
    magnitude = _fixed(abs(intercept))
    sign = "-" if intercept < 0 and magnitude != "0.0000" else "+"
    return f"y = {_fixed(slope)}x {sign} {magnitude}"


def _strength(r: float) -> str:
    for threshold, label in _REGRESSION_STRENGTH_LABELS:
        if abs(r) > threshold:
            return label
    return "weak"


def linear_regression(
    rows: Sequence[Mapping[str, Any]], x_variable: str, y_variable: str
) -> LinearRegressionResult:
    """Closed-form ordinary least squares of ``y_variable`` on a single predictor."""
    xs: List[float] = []
    ys: List[float] = []
    for row in rows:
        x = to_finite(row.get(x_variable))
        y = to_finite(row.get(y_variable))
        if x is None or y is None:
            continue
        xs.append(x)
        ys.append(y)

    n = len(xs)
    if n < 2:
        raise InsufficientDataError(
            f"Linear regression of {y_variable!r} on {x_variable!r} needs at least 2 complete rows, found {n}",
            variables=[x_variable, y_variable],
        )

    mx, my = mean(xs), mean(ys)
    sxx = math.fsum((x - mx) ** 2 for x in xs)
    if sxx == 0:
        raise SingularSystemError(
            f"Predictor {x_variable!r} is constant; the slope is undefined",
            variables=[x_variable],
        )
    r = pearson(xs, ys)
    if r is None:
        raise InsufficientDataError(
            f"Response {y_variable!r} is constant; correlation is undefined",
            variables=[y_variable],
        )

    sxy = math.fsum((x - mx) * (y - my) for x, y in zip(xs, ys))
    slope = sxy / sxx
    intercept = my - slope * mx

    predictions = []
    residuals = []
    for x, y in zip(xs, ys):
        fitted = slope * x + intercept
        residual = y - fitted
        predictions.append(LinearPrediction(x=x, y=y, y_predicted=fitted, residual=residual))
        residuals.append(residual)

    ss_res = math.fsum(res * res for res in residuals)
    standard_error = math.sqrt(ss_res / (n - 2)) if n > 2 else 0.0
    p_value = estimate_p_value(r, n)
    significance = significance_tier(p_value)
    r2 = r * r

    direction = "positive" if slope > 0 else "negative"
    movement = "increases" if slope > 0 else "decreases"
    p_text = "<0.001" if p_value < 0.001 else f"{p_value:.3f}"
    summary = (
        f"Linear regression analysis of {y_variable} vs {x_variable} (n={n}) shows a "
        f"{_strength(r)} {direction} relationship (r={r:.3f}, R²={r2:.3f}). "
        f"For each unit increase in {x_variable}, {y_variable} {movement} by {abs(slope):.4f} units. "
        f"The model is {significance.replace('_', ' ')} (p={p_text}), "
        f"explaining {r2 * 100:.1f}% of the variance in {y_variable}."
    )

    return LinearRegressionResult(
        x_variable=x_variable,
        y_variable=y_variable,
        n=n,
        equation=format_equation(slope, intercept),
        slope=slope,
        intercept=intercept,
        r_squared=r2,
        correlation=r,
        p_value=p_value,
        p_value_method=P_VALUE_METHOD,
        standard_error=standard_error,
        predictions=tuple(predictions),
        residuals=tuple(residuals),
        significance_level=significance,
        summary=summary,
    )


def _partition_metrics(actual: Sequence[float], predicted: Sequence[float]) -> Dict[str, float]:
    mse = mean_squared_error(actual, predicted)
    return {
        "r_squared": r_squared(actual, predicted),
        "mse": mse,
        "rmse": math.sqrt(mse),
        "mae": mean_absolute_error(actual, predicted),
    }


def _metric(name: str, training: Mapping[str, float], testing: Optional[Mapping[str, float]]) -> PartitionMetric:
    return PartitionMetric(training=training[name], testing=None if testing is None else testing[name])


def _regression_summary(
    algorithm: str,
    training_size: int,
    split_ratio: float,
    train_r2: float,
    test_r2: Optional[float],
    cv: Optional[CrossValidationSummary],
) -> str:
    parts = [f"{algorithm} trained on {training_size} samples ({split_ratio * 100:.0f}% split)."]
    if test_r2 is None:
        parts.append(f"Training R²: {train_r2:.4f}. No rows were held out for testing.")
    else:
        parts.append(f"Training R²: {train_r2:.4f}, Test R²: {test_r2:.4f}.")
        if abs(train_r2 - test_r2) > _OVERFIT_SUMMARY_GAP:
            parts.append("Significant difference between training and test performance may indicate overfitting.")
        else:
            parts.append("Model generalizes well to test data.")
    if cv is not None:
        parts.append(
            f"Cross-validation ({cv.folds}-fold): Mean R² = {cv.mean_score:.4f} ± {cv.std_score:.4f}."
        )
    return " ".join(parts)


def _regression_recommendations(
    train_r2: float,
    test_r2: Optional[float],
    cv: Optional[CrossValidationSummary],
    importance: Sequence[FeatureImportance],
) -> List[str]:
    recommendations: List[str] = []
    reference_r2 = train_r2 if test_r2 is None else test_r2
    if reference_r2 < 0.5:
        recommendations.append(
            "Low R² - model may not fit data well. Consider polynomial features or a different model."
        )
    else:
        recommendations.append("Model explains a good portion of variance.")
    if test_r2 is not None:
        if abs(train_r2 - test_r2) > _OVERFIT_RECOMMENDATION_GAP:
            recommendations.append("Large train/test gap suggests overfitting.")
        else:
            recommendations.append("Model generalizes well.")
    if cv is None:
        recommendations.append("Consider enabling cross-validation for more robust evaluation.")
    elif cv.std_score > _CV_UNSTABLE_STD:
        recommendations.append("High cross-validation variance suggests an unstable model.")
    else:
        recommendations.append("Cross-validation shows consistent performance.")
    recommendations.append("Visualize residual plots to check for patterns.")
    if len(importance) > 1:
        top = importance[0]
        recommendations.append(f"Top feature: {top.feature} (importance: {top.importance:.3f})")
    return recommendations


def ml_regression(
    rows: Sequence[Mapping[str, Any]],
    features: Sequence[str],
    target: str,
    options: Optional[AnalysisOptions] = None,
    *,
    random_source: Optional[RandomSource] = None,
) -> MLRegressionResult:
    """
    Multivariate linear regression with a train/test split.

    Rows with a missing or non-numeric predictor or target are dropped first;
    the split, the normal-equation fit and the optional k-fold
    cross-validation all run on the surviving rows.
    """
    options = options or AnalysisOptions()
    check_model_selection(features, target)
    if options.split_strategy == "stratified":
        raise InvalidSelectionError(
            "Stratified splitting needs a categorical target; use the random strategy for regression",
            variables=[target],
        )

    extracted = extract_rows(rows, features, target, numeric_target=True)
    xs, ys = extracted.features, [float(y) for y in extracted.targets]
    n = len(ys)
    if n < 2:
        raise InsufficientDataError(
            f"Regression on {target!r} needs at least 2 complete rows, found {n}",
            variables=[*features, target],
        )

    source = random_source or RandomSource(options.random_seed)
    split = train_test_split(n, options.split_ratio, source)
    if split.training_size < 2:
        raise InsufficientDataError(
            f"Training partition has {split.training_size} row(s); at least 2 are required",
            variables=[*features, target],
        )

    train_x = [xs[i] for i in split.training_indices]
    train_y = [ys[i] for i in split.training_indices]
    test_x = [xs[i] for i in split.testing_indices]
    test_y = [ys[i] for i in split.testing_indices]

    intercept, weights = fit_normal_equation(train_x, train_y, names=features)
    train_pred = [predict(intercept, weights, row) for row in train_x]
    test_pred = [predict(intercept, weights, row) for row in test_x]

    training = _partition_metrics(train_y, train_pred)
    testing = _partition_metrics(test_y, test_pred) if test_y else None

    importance = feature_importance(rows, features, target)

    cv = None
    if options.cross_validation_folds:
        cv = cross_validate(xs, ys, options.cross_validation_folds)

    algorithm = (
        "Linear Regression (Univariate)"
        if len(features) == 1
        else f"Multivariate Linear Regression ({len(features)} features)"
    )
    test_r2 = None if testing is None else testing["r_squared"]

    return MLRegressionResult(
        algorithm=algorithm,
        model_kind="trained",
        features=tuple(features),
        target=target,
        training_size=split.training_size,
        test_size=split.test_size,
        split_ratio=options.split_ratio,
        split_strategy=options.split_strategy,
        random_seed=source.seed,
        rows_used=n,
        rows_dropped=extracted.rows_dropped,
        intercept=intercept,
        coefficients=tuple(Coefficient(feature=name, value=value) for name, value in zip(features, weights)),
        r_squared=_metric("r_squared", training, testing),
        mse=_metric("mse", training, testing),
        rmse=_metric("rmse", training, testing),
        mae=_metric("mae", training, testing),
        feature_importance=tuple(importance),
        importance_method=IMPORTANCE_METHOD,
        predictions=Partitioned(
            training=tuple(RegressionPoint(actual=a, predicted=p, residual=a - p) for a, p in zip(train_y, train_pred)),
            testing=tuple(RegressionPoint(actual=a, predicted=p, residual=a - p) for a, p in zip(test_y, test_pred)),
        ),
        residual_plots=Partitioned(
            training=tuple(ResidualPoint(predicted=p, residual=a - p) for a, p in zip(train_y, train_pred)),
            testing=tuple(ResidualPoint(predicted=p, residual=a - p) for a, p in zip(test_y, test_pred)),
        ),
        cross_validation=cv,
        summary=_regression_summary(
            algorithm, split.training_size, options.split_ratio, training["r_squared"], test_r2, cv
        ),
        recommendations=tuple(_regression_recommendations(training["r_squared"], test_r2, cv, importance)),
    )
