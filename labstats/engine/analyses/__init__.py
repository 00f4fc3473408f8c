from .columns import build_dataset, infer_columns
from .descriptive import descriptive_statistics, remove_outliers, summarize_variable
from .correlation import correlation_matrix
from .regression import linear_regression, ml_regression
from .classification import ml_classification
from .importance import feature_importance
from .linalg import fit_normal_equation, solve_linear_system
from .splitting import cross_validate, train_test_split

__all__ = [
    "build_dataset",
    "correlation_matrix",
    "cross_validate",
    "descriptive_statistics",
    "feature_importance",
    "fit_normal_equation",
    "infer_columns",
    "linear_regression",
    "ml_classification",
    "ml_regression",
    "remove_outliers",
    "solve_linear_system",
    "summarize_variable",
    "train_test_split",
]
