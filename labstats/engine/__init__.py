"""Statistical and machine-learning analysis engine."""
from .app import build_graph, run_analysis
from .nodes.analyze import analyze
from .nodes.validate import validate_dataset
from .io.ingest import ingest_dataset, rows_to_dataset
from .core.errors import (
    AnalysisError,
    InsufficientDataError,
    InvalidSelectionError,
    SingularSystemError,
    UnsupportedAnalysisKindError,
)
from .core.random_source import RandomSource
from .core.types import AnalysisOptions, AnalysisRequest, AnalysisRun, Dataset

__all__ = [
    "AnalysisError",
    "AnalysisOptions",
    "AnalysisRequest",
    "AnalysisRun",
    "Dataset",
    "InsufficientDataError",
    "InvalidSelectionError",
    "RandomSource",
    "SingularSystemError",
    "UnsupportedAnalysisKindError",
    "analyze",
    "build_graph",
    "ingest_dataset",
    "rows_to_dataset",
    "run_analysis",
    "validate_dataset",
]
