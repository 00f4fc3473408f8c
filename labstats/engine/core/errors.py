"""Error taxonomy raised by the analysis engine.

Every error derives from :class:`AnalysisError`, itself a ``ValueError`` so
callers that only care about "bad input" can catch the builtin.  None of these
are transient: retrying the same request on the same data fails the same way.
"""
from __future__ import annotations

from typing import Iterable, Tuple


class AnalysisError(ValueError):
    def __init__(self, message: str, *, variables: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.message = message
        self.variables: Tuple[str, ...] = tuple(variables)


class InsufficientDataError(AnalysisError):
    """Too few valid numeric values to compute the requested statistic."""


class SingularSystemError(AnalysisError):
    """The normal-equation matrix has no unique solution (collinear predictors)."""


class InvalidSelectionError(AnalysisError):
    """The requested variables or options do not fit the dataset."""


class UnsupportedAnalysisKindError(AnalysisError):
    def __init__(self, kind: str) -> None:
        super().__init__(f"Unsupported analysis kind: {kind!r}")
        self.kind = kind


__all__ = [
    "AnalysisError",
    "InsufficientDataError",
    "InvalidSelectionError",
    "SingularSystemError",
    "UnsupportedAnalysisKindError",
]
