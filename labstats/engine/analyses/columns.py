from __future__ import annotations
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from ..core.constants import _NULL_SENTINELS
from ..core.numeric import (
    finite_values,
    is_numeric_value,
    mean,
    median,
    population_std,
)
from ..core.types import Column, ColumnStats, Dataset, freeze_rows


def _column_stats(values: Sequence[Any], row_count: int) -> ColumnStats:
    numbers = finite_values(values)
    if not numbers:
        return ColumnStats(
            count=0, null_count=row_count, mean=0.0, median=0.0, std=0.0, min=0.0, max=0.0
        )
    return ColumnStats(
        count=len(numbers),
        null_count=row_count - len(numbers),
        mean=mean(numbers),
        median=median(numbers),
        std=population_std(numbers),
        min=min(numbers),
        max=max(numbers),
    )


def infer_columns(
    rows: Sequence[Mapping[str, Any]],
    display_names: Optional[Mapping[str, str]] = None,
) -> List[Column]:
    """
    Classify every column of ``rows`` as numeric or text.

    Keys come from the first row. A column is numeric when all of its
    non-null values are numbers or numeric strings; a column with no
    non-null values is text.
    """
    if not rows:
        return []
    display_names = display_names or {}
    columns: List[Column] = []
    for key in rows[0].keys():
        values = [row.get(key) for row in rows]
        present = [value for value in values if value is not None and not _is_blank(value)]
        numeric = bool(present) and all(is_numeric_value(value) for value in present)
        columns.append(
            Column(
                key=key,
                display_name=display_names.get(key, key),
                type="numeric" if numeric else "text",
                stats=_column_stats(values, len(rows)) if numeric else None,
            )
        )
    return columns


def _is_blank(value: Any) -> bool:
    return isinstance(value, str) and value.strip() in _NULL_SENTINELS


def build_dataset(
    rows: Iterable[Mapping[str, Any]],
    *,
    source_format: str = "rows",
    bytes_read: int = 0,
    display_names: Optional[Mapping[str, str]] = None,
) -> Dataset:
    frozen = freeze_rows(rows)
    return Dataset(
        rows=frozen,
        columns=tuple(infer_columns(frozen, display_names)),
        source_format=source_format,
        bytes_read=bytes_read,
    )
