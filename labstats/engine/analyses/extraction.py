from __future__ import annotations
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence
import logging

from ..core.errors import InvalidSelectionError
from ..core.numeric import to_finite

logger = logging.getLogger(__name__)


@dataclass
class ExtractedRows:
    """Predictor matrix and target column for the rows that survived cleaning."""

    features: List[List[float]]
    targets: List[Any]
    rows_dropped: int

    @property
    def rows_used(self) -> int:
        return len(self.targets)


def check_model_selection(features: Sequence[str], target: Optional[str]) -> None:
    if not features:
        raise InvalidSelectionError("At least one predictor variable is required")
    if not target:
        raise InvalidSelectionError("A target variable is required", variables=features)
    if target in features:
        raise InvalidSelectionError(
            f"Target {target!r} cannot also be a predictor", variables=[target]
        )


def extract_rows(
    rows: Sequence[Mapping[str, Any]],
    features: Sequence[str],
    target: str,
    *,
    numeric_target: bool,
) -> ExtractedRows:
    """
    Keep rows whose predictors are all finite numbers and whose target is
    present (and finite when ``numeric_target``); everything else is dropped
    before any splitting so indices refer to surviving rows only.
    """
    matrix: List[List[float]] = []
    targets: List[Any] = []
    dropped = 0
    for row in rows:
        values = [to_finite(row.get(name)) for name in features]
        raw_target = row.get(target)
        label: Any = to_finite(raw_target) if numeric_target else raw_target
        if isinstance(label, str) and not label.strip():
            label = None
        if label is None or any(value is None for value in values):
            dropped += 1
            continue
        matrix.append([float(value) for value in values])  # type: ignore[arg-type]
        targets.append(label)

    if dropped:
        logger.info(
            "dropped rows with missing or non-numeric values",
            extra={"rows_dropped": dropped, "rows_used": len(targets), "target": target},
        )
    return ExtractedRows(features=matrix, targets=targets, rows_dropped=dropped)
