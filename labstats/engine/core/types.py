from __future__ import annotations
from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Any, ClassVar, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union, IO

from .constants import (
    _DEFAULT_SPLIT_RATIO,
    _ML_ALGORITHMS,
    _SPLIT_STRATEGIES,
)
from .errors import InvalidSelectionError

# type alias used across the code
BinaryInput = Union[bytes, bytearray, IO[bytes]]
Row = Mapping[str, Any]


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _serialize(value: Any) -> Any:
    if isinstance(value, _Payload):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_serialize(item) for item in value]
    if isinstance(value, Mapping):
        return {key: _serialize(item) for key, item in value.items()}
    return value


class _Payload:
    """Mixin giving dataclasses a camelCase ``to_dict``; ``result_type`` becomes the ``type`` tag."""

    result_type: ClassVar[Optional[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.result_type:
            out["type"] = self.result_type
        for f in fields(self):  # type: ignore[arg-type]
            key = f.metadata.get("key") or _camel(f.name)
            out[key] = _serialize(getattr(self, f.name))
        return out


def _integral(value: Any) -> Any:
    """Integral floats such as ``7.0`` become ints; anything else is returned unchanged for validation."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def freeze_rows(rows: Iterable[Mapping[str, Any]]) -> Tuple[Mapping[str, Any], ...]:
    """Read-only copies of ``rows`` padded so every row carries every key, in first-seen order."""
    materialized = [dict(row) for row in rows]
    keys: Dict[str, None] = {}
    for row in materialized:
        for key in row:
            keys.setdefault(key, None)
    frozen = []
    for row in materialized:
        padded = {key: row.get(key) for key in keys}
        frozen.append(MappingProxyType(padded))
    return tuple(frozen)


@dataclass(frozen=True)
class ColumnStats(_Payload):
    count: int
    null_count: int
    mean: float
    median: float
    std: float
    min: float
    max: float


@dataclass(frozen=True)
class Column(_Payload):
    key: str
    display_name: str
    type: str
    stats: Optional[ColumnStats] = None

    @property
    def is_numeric(self) -> bool:
        return self.type == "numeric"


@dataclass(frozen=True)
class Dataset:
    rows: Tuple[Mapping[str, Any], ...]
    columns: Tuple[Column, ...] = ()
    source_format: str = "rows"
    bytes_read: int = 0

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_keys(self) -> List[str]:
        if self.columns:
            return [column.key for column in self.columns]
        return list(self.rows[0].keys()) if self.rows else []

    @property
    def numeric_keys(self) -> List[str]:
        return [column.key for column in self.columns if column.is_numeric]

    def column(self, key: str) -> Column:
        for column in self.columns:
            if column.key == key:
                return column
        raise KeyError(key)

    def has_column(self, key: str) -> bool:
        return key in self.column_keys

    def values(self, key: str) -> List[Any]:
        return [row.get(key) for row in self.rows]


@dataclass(frozen=True)
class Split(_Payload):
    training_indices: Tuple[int, ...]
    testing_indices: Tuple[int, ...]

    @property
    def training_size(self) -> int:
        return len(self.training_indices)

    @property
    def test_size(self) -> int:
        return len(self.testing_indices)


@dataclass(frozen=True)
class AnalysisOptions(_Payload):
    split_ratio: float = _DEFAULT_SPLIT_RATIO
    random_seed: Optional[int] = None
    cross_validation_folds: Optional[int] = None
    ml_algorithm: str = "logistic"
    split_strategy: str = "random"
    remove_outliers: bool = False

    def __post_init__(self) -> None:
        ratio = self.split_ratio
        if isinstance(ratio, bool) or not isinstance(ratio, (int, float)) or not 0 < ratio <= 1:
            raise InvalidSelectionError(f"splitRatio must be in (0, 1], got {ratio!r}")
        folds = self.cross_validation_folds
        if folds is not None and (isinstance(folds, bool) or not isinstance(folds, int) or folds < 2):
            raise InvalidSelectionError(f"crossValidationFolds must be an integer >= 2, got {folds!r}")
        seed = self.random_seed
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
            raise InvalidSelectionError(f"randomSeed must be an integer, got {seed!r}")
        if self.split_strategy not in _SPLIT_STRATEGIES:
            raise InvalidSelectionError(
                f"splitStrategy must be one of {', '.join(_SPLIT_STRATEGIES)}, got {self.split_strategy!r}"
            )

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "AnalysisOptions":
        data = data or {}
        seed = data.get("randomSeed")
        return cls(
            split_ratio=data.get("splitRatio", _DEFAULT_SPLIT_RATIO),
            random_seed=_integral(seed),
            cross_validation_folds=data.get("crossValidationFolds"),
            ml_algorithm=data.get("mlAlgorithm") or _ML_ALGORITHMS[0],
            split_strategy=data.get("splitStrategy") or "random",
            remove_outliers=bool(data.get("removeOutliers", False)),
        )


@dataclass(frozen=True)
class AnalysisRequest(_Payload):
    """
    What to compute and over which columns.

    ``features`` holds the variables for descriptive/correlation analyses and
    the predictors for regression/classification; ``target`` is the response.
    """

    kind: str
    features: Tuple[str, ...] = ()
    target: Optional[str] = None
    options: AnalysisOptions = field(default_factory=AnalysisOptions)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AnalysisRequest":
        features = data.get("features")
        if features is None:
            features = data.get("variables") or []
        if isinstance(features, str):
            features = [features]
        return cls(
            kind=str(data.get("kind") or data.get("type") or ""),
            features=tuple(str(name) for name in features),
            target=data.get("target"),
            options=AnalysisOptions.from_dict(data.get("options")),
        )


# ---- results ----

@dataclass(frozen=True)
class VariableSummary(_Payload):
    name: str
    count: int
    mean: float
    median: float
    std: float
    variance: float
    min: float
    max: float
    range: float
    q1: float
    q3: float
    iqr: float


@dataclass(frozen=True)
class DescriptiveStatsResult(_Payload):
    result_type: ClassVar[str] = "descriptive_stats"
    variables: Tuple[VariableSummary, ...]
    summary: str


@dataclass(frozen=True)
class CorrelationEntry(_Payload):
    var1: str
    var2: str
    correlation: float
    p_value: float
    n: int


@dataclass(frozen=True)
class HeatmapCell(_Payload):
    x: str
    y: str
    value: float


@dataclass(frozen=True)
class StrongCorrelation(_Payload):
    pair: str
    var1: str
    var2: str
    correlation: float
    interpretation: str


@dataclass(frozen=True)
class CorrelationResult(_Payload):
    result_type: ClassVar[str] = "correlation"
    variables: Tuple[str, ...]
    correlation_matrix: Tuple[CorrelationEntry, ...]
    heatmap_data: Tuple[HeatmapCell, ...]
    strong_correlations: Tuple[StrongCorrelation, ...]
    p_value_method: str
    summary: str

    def coefficient(self, left: str, right: str) -> float:
        for entry in self.correlation_matrix:
            if (entry.var1, entry.var2) in ((left, right), (right, left)):
                return entry.correlation
        raise KeyError((left, right))

    def as_matrix(self) -> List[List[float]]:
        return [[self.coefficient(left, right) for right in self.variables] for left in self.variables]


@dataclass(frozen=True)
class LinearPrediction(_Payload):
    x: float
    y: float
    y_predicted: float
    residual: float


@dataclass(frozen=True)
class LinearRegressionResult(_Payload):
    result_type: ClassVar[str] = "linear_regression"
    x_variable: str
    y_variable: str
    n: int
    equation: str
    slope: float
    intercept: float
    r_squared: float
    correlation: float
    p_value: float
    p_value_method: str
    standard_error: float
    predictions: Tuple[LinearPrediction, ...]
    residuals: Tuple[float, ...]
    significance_level: str
    summary: str


@dataclass(frozen=True)
class PartitionMetric(_Payload):
    training: float
    testing: Optional[float]


@dataclass(frozen=True)
class Coefficient(_Payload):
    feature: str
    value: float


@dataclass(frozen=True)
class FeatureImportance(_Payload):
    feature: str
    importance: float


@dataclass(frozen=True)
class CrossValidationSummary(_Payload):
    folds: int
    scores: Tuple[float, ...]
    mean_score: float
    std_score: float


@dataclass(frozen=True)
class RegressionPoint(_Payload):
    actual: float
    predicted: float
    residual: float


@dataclass(frozen=True)
class ResidualPoint(_Payload):
    predicted: float
    residual: float


@dataclass(frozen=True)
class ClassificationPoint(_Payload):
    actual: str
    predicted: str


@dataclass(frozen=True)
class Partitioned(_Payload):
    training: Tuple[Any, ...]
    testing: Tuple[Any, ...]


@dataclass(frozen=True)
class MLRegressionResult(_Payload):
    result_type: ClassVar[str] = "ml_regression"
    algorithm: str
    model_kind: str
    features: Tuple[str, ...]
    target: str
    training_size: int
    test_size: int
    split_ratio: float
    split_strategy: str
    random_seed: int
    rows_used: int
    rows_dropped: int
    intercept: float
    coefficients: Tuple[Coefficient, ...]
    r_squared: PartitionMetric
    mse: PartitionMetric
    rmse: PartitionMetric
    mae: PartitionMetric
    feature_importance: Tuple[FeatureImportance, ...]
    importance_method: str
    predictions: Partitioned
    residual_plots: Partitioned
    cross_validation: Optional[CrossValidationSummary]
    summary: str
    recommendations: Tuple[str, ...]


@dataclass(frozen=True)
class ClassReport(_Payload):
    class_label: str = field(metadata={"key": "class"})
    precision: float = 0.0
    recall: float = 0.0
    f1_score: float = 0.0
    support: int = 0


@dataclass(frozen=True)
class ConfusionMatrix(_Payload):
    labels: Tuple[str, ...]
    matrix: Tuple[Tuple[int, ...], ...]


@dataclass(frozen=True)
class MLClassificationResult(_Payload):
    result_type: ClassVar[str] = "ml_classification"
    algorithm: str
    model_kind: str
    features: Tuple[str, ...]
    target: str
    training_size: int
    test_size: int
    split_ratio: float
    split_strategy: str
    random_seed: int
    rows_used: int
    rows_dropped: int
    classes: Tuple[str, ...]
    evaluation_partition: str
    accuracy: float
    precision: float
    recall: float
    f1_score: float
    confusion_matrix: ConfusionMatrix
    classification_report: Tuple[ClassReport, ...]
    feature_importance: Tuple[FeatureImportance, ...]
    importance_method: str
    predictions: Partitioned
    summary: str
    recommendations: Tuple[str, ...]


AnalysisResult = Union[
    DescriptiveStatsResult,
    CorrelationResult,
    LinearRegressionResult,
    MLRegressionResult,
    MLClassificationResult,
]


@dataclass
class AnalysisRun:
    phases: Dict[str, Dict[str, Any]]
    result: AnalysisResult
    manifest: Dict[str, Any]
    artifact_contents: Dict[str, Dict[str, Any]]
    dataset: Optional[Dataset] = None
