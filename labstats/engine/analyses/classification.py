from __future__ import annotations
from collections import Counter
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
import logging
import math

from ..core.constants import (
    IMPORTANCE_METHOD,
    _DECISION_THRESHOLD,
    _LOGISTIC_ITERATIONS,
    _LOGISTIC_LEARNING_RATE,
    _ML_ALGORITHMS,
)
from ..core.errors import InsufficientDataError, InvalidSelectionError
from ..core.numeric import label_key, mean, population_std
from ..core.random_source import RandomSource
from ..core.types import (
    AnalysisOptions,
    ClassificationPoint,
    ClassReport,
    ConfusionMatrix,
    FeatureImportance,
    MLClassificationResult,
    Partitioned,
)
from .extraction import check_model_selection, extract_rows
from .importance import feature_importance
from .splitting import train_test_split

logger = logging.getLogger(__name__)

TRAINED_ALGORITHM = "Logistic Regression (Gradient Descent)"
BASELINE_ALGORITHM = "Majority Class Baseline"


def sigmoid(z: float) -> float:
    if z >= 0:
        return 1.0 / (1.0 + math.exp(-z))
    e = math.exp(z)
    return e / (1.0 + e)


def standardize(rows: Sequence[Sequence[float]]) -> Tuple[List[float], List[float]]:
    """Column means and population standard deviations; a zero deviation becomes 1."""
    width = len(rows[0])
    means: List[float] = []
    stds: List[float] = []
    for col in range(width):
        column = [row[col] for row in rows]
        means.append(mean(column))
        std = population_std(column)
        stds.append(std if std > 0 else 1.0)
    return means, stds


def _scale(rows: Sequence[Sequence[float]], means: Sequence[float], stds: Sequence[float]) -> List[List[float]]:
    return [[(value - m) / s for value, m, s in zip(row, means, stds)] for row in rows]


def train_logistic(
    features: Sequence[Sequence[float]],
    labels: Sequence[int],
    *,
    iterations: int = _LOGISTIC_ITERATIONS,
    learning_rate: float = _LOGISTIC_LEARNING_RATE,
) -> Tuple[List[float], float]:
    """Full-batch gradient descent on the log-loss, starting from zero weights."""
    n = len(features)
    width = len(features[0])
    weights = [0.0] * width
    bias = 0.0
    step = learning_rate / n
    for _ in range(iterations):
        grad_w = [0.0] * width
        grad_b = 0.0
        for row, label in zip(features, labels):
            z = bias + sum(w * x for w, x in zip(weights, row))
            error = sigmoid(z) - label
            for j in range(width):
                grad_w[j] += error * row[j]
            grad_b += error
        for j in range(width):
            weights[j] -= step * grad_w[j]
        bias -= step * grad_b
    return weights, bias


def _predict_class(weights: Sequence[float], bias: float, row: Sequence[float]) -> int:
    z = bias + sum(w * x for w, x in zip(weights, row))
    return 1 if sigmoid(z) >= _DECISION_THRESHOLD else 0


def _evaluate(
    actual: Sequence[str], predicted: Sequence[str], classes: Sequence[str]
) -> Dict[str, Any]:
    index = {label: i for i, label in enumerate(classes)}
    size = len(classes)
    matrix = [[0] * size for _ in range(size)]
    correct = 0
    for truth, guess in zip(actual, predicted):
        matrix[index[truth]][index[guess]] += 1
        if truth == guess:
            correct += 1

    report: List[ClassReport] = []
    for i, label in enumerate(classes):
        tp = matrix[i][i]
        fp = sum(matrix[r][i] for r in range(size) if r != i)
        fn = sum(matrix[i][c] for c in range(size) if c != i)
        support = sum(matrix[i])
        precision = tp / (tp + fp) if tp + fp else 0.0
        recall = tp / (tp + fn) if tp + fn else 0.0
        f1 = 2 * precision * recall / (precision + recall) if precision + recall else 0.0
        report.append(ClassReport(class_label=label, precision=precision, recall=recall, f1_score=f1, support=support))

    total = sum(item.support for item in report)
    return {
        "accuracy": correct / len(actual) if actual else 0.0,
        "precision": sum(r.precision * r.support for r in report) / total if total else 0.0,
        "recall": sum(r.recall * r.support for r in report) / total if total else 0.0,
        "f1_score": sum(r.f1_score * r.support for r in report) / total if total else 0.0,
        "matrix": tuple(tuple(row) for row in matrix),
        "report": tuple(report),
    }


def _recommendations(
    metrics: Mapping[str, Any], importance: Sequence[FeatureImportance], trained: bool
) -> List[str]:
    accuracy = metrics["accuracy"]
    out: List[str] = []
    if accuracy < 0.6:
        out.append("Low accuracy - consider more features or a different algorithm.")
    elif accuracy > 0.9:
        out.append("Excellent accuracy - the model performs very well.")
    else:
        out.append("Good accuracy - the model is performing well.")
    if importance:
        out.append(f"Top feature: {importance[0].feature} (importance: {importance[0].importance:.3f})")
    if accuracy > 0.85 and metrics["recall"] < 0.8:
        out.append("Low recall - the model is missing positive cases. Consider class balancing.")
    if accuracy > 0.85 and metrics["precision"] < 0.8:
        out.append("Low precision - the model has many false positives. Consider adjusting the threshold.")
    out.append("Try different feature combinations to optimize performance.")
    if trained:
        out.append(f"Model uses gradient descent with {_LOGISTIC_ITERATIONS} iterations.")
    else:
        out.append("More than two classes found; predictions use the majority training class only.")
    return out


def ml_classification(
    rows: Sequence[Mapping[str, Any]],
    features: Sequence[str],
    target: str,
    options: Optional[AnalysisOptions] = None,
    *,
    random_source: Optional[RandomSource] = None,
) -> MLClassificationResult:
    """
    Binary logistic classifier with a majority-class fallback.

    Two classes train a logistic model on standardized predictors. More than
    two classes fall back to predicting the most frequent training label and
    the result is tagged ``modelKind="baseline"``.
    """
    options = options or AnalysisOptions()
    check_model_selection(features, target)
    if options.ml_algorithm not in _ML_ALGORITHMS:
        raise InvalidSelectionError(
            f"Unsupported mlAlgorithm {options.ml_algorithm!r}; available: {', '.join(_ML_ALGORITHMS)}"
        )

    extracted = extract_rows(rows, features, target, numeric_target=False)
    n = extracted.rows_used
    if n == 0:
        raise InsufficientDataError(
            f"No complete rows for classification of {target!r}", variables=[*features, target]
        )
    labels = [label_key(value) for value in extracted.targets]

    source = random_source or RandomSource(options.random_seed)
    split = train_test_split(
        n, options.split_ratio, source, labels=labels, strategy=options.split_strategy
    )
    if split.training_size == 0:
        raise InsufficientDataError(
            f"Training partition is empty with {n} row(s) and splitRatio {options.split_ratio}",
            variables=[*features, target],
        )

    classes: List[str] = []
    for i in (*split.training_indices, *split.testing_indices):
        if labels[i] not in classes:
            classes.append(labels[i])
    if len(classes) < 2:
        raise InvalidSelectionError(
            f"Target {target!r} has a single class ({classes[0]!r}); classification needs at least two",
            variables=[target],
        )

    train_x = [extracted.features[i] for i in split.training_indices]
    test_x = [extracted.features[i] for i in split.testing_indices]
    train_labels = [labels[i] for i in split.training_indices]
    test_labels = [labels[i] for i in split.testing_indices]

    trained = len(classes) == 2
    if trained:
        means, stds = standardize(train_x)
        scaled_train = _scale(train_x, means, stds)
        scaled_test = _scale(test_x, means, stds)
        encoded = [classes.index(label) for label in train_labels]
        weights, bias = train_logistic(scaled_train, encoded)
        train_pred = [classes[_predict_class(weights, bias, row)] for row in scaled_train]
        test_pred = [classes[_predict_class(weights, bias, row)] for row in scaled_test]
        algorithm = TRAINED_ALGORITHM
    else:
        majority = max(Counter(train_labels).items(), key=lambda item: item[1])[0]
        logger.warning(
            "more than two classes; falling back to majority-class baseline",
            extra={"target": target, "classes": len(classes), "majority": majority},
        )
        train_pred = [majority] * len(train_labels)
        test_pred = [majority] * len(test_labels)
        algorithm = BASELINE_ALGORITHM

    if test_labels:
        partition = "testing"
        metrics = _evaluate(test_labels, test_pred, classes)
    else:
        partition = "training"
        metrics = _evaluate(train_labels, train_pred, classes)

    importance = feature_importance(rows, features, target)

    ratio_text = f"{options.split_ratio * 100:.0f}% split"
    accuracy_text = f"{'Test' if partition == 'testing' else 'Training'} accuracy: {metrics['accuracy'] * 100:.2f}%."
    if trained:
        summary = (
            f"Trained logistic regression classifier with gradient descent ({_LOGISTIC_ITERATIONS} iterations) "
            f"on {split.training_size} samples ({ratio_text}). {accuracy_text} "
            f"Model uses standardized features and sigmoid activation for binary classification."
        )
    else:
        summary = (
            f"Found {len(classes)} classes; predicted the majority training class on "
            f"{split.training_size} samples ({ratio_text}). {accuracy_text} "
            f"This is a baseline, not a trained model."
        )

    return MLClassificationResult(
        algorithm=algorithm,
        model_kind="trained" if trained else "baseline",
        features=tuple(features),
        target=target,
        training_size=split.training_size,
        test_size=split.test_size,
        split_ratio=options.split_ratio,
        split_strategy=options.split_strategy,
        random_seed=source.seed,
        rows_used=n,
        rows_dropped=extracted.rows_dropped,
        classes=tuple(classes),
        evaluation_partition=partition,
        accuracy=metrics["accuracy"],
        precision=metrics["precision"],
        recall=metrics["recall"],
        f1_score=metrics["f1_score"],
        confusion_matrix=ConfusionMatrix(labels=tuple(classes), matrix=metrics["matrix"]),
        classification_report=metrics["report"],
        feature_importance=tuple(importance),
        importance_method=IMPORTANCE_METHOD,
        predictions=Partitioned(
            training=tuple(ClassificationPoint(actual=a, predicted=p) for a, p in zip(train_labels, train_pred)),
            testing=tuple(ClassificationPoint(actual=a, predicted=p) for a, p in zip(test_labels, test_pred)),
        ),
        summary=summary,
        recommendations=tuple(_recommendations(metrics, importance, trained)),
    )
