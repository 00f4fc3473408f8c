from __future__ import annotations
from typing import Any, List, Mapping, Sequence

from ..core.constants import _OUTLIER_IQR_MULTIPLIER
from ..core.errors import InsufficientDataError, InvalidSelectionError
from ..core.numeric import (
    finite_values,
    mean,
    median,
    population_std,
    population_variance,
    quantile,
)
from ..core.types import DescriptiveStatsResult, VariableSummary


def summarize_variable(name: str, values: Sequence[Any]) -> VariableSummary:
    numbers = finite_values(values)
    if not numbers:
        raise InsufficientDataError(
            f"No valid numeric values for variable {name!r}", variables=[name]
        )
    q1 = quantile(numbers, 0.25)
    q3 = quantile(numbers, 0.75)
    low = min(numbers)
    high = max(numbers)
    return VariableSummary(
        name=name,
        count=len(numbers),
        mean=mean(numbers),
        median=median(numbers),
        std=population_std(numbers),
        variance=population_variance(numbers),
        min=low,
        max=high,
        range=high - low,
        q1=q1,
        q3=q3,
        iqr=q3 - q1,
    )


def _fmt(value: float) -> str:
    return f"{value:.2f}"


def descriptive_statistics(
    rows: Sequence[Mapping[str, Any]],
    variables: Sequence[str],
    *,
    exclude_outliers: bool = False,
) -> DescriptiveStatsResult:
    if not variables:
        raise InvalidSelectionError("Descriptive statistics need at least one variable")
    summaries: List[VariableSummary] = []
    for name in variables:
        values: Sequence[Any] = [row.get(name) for row in rows]
        if exclude_outliers:
            values = remove_outliers(values)
        summaries.append(summarize_variable(name, values))
    parts = [
        f"{item.name}: M={_fmt(item.mean)}, SD={_fmt(item.std)}, range=[{_fmt(item.min)}, {_fmt(item.max)}]"
        for item in summaries
    ]
    summary = (
        f"Descriptive statistics calculated for {len(summaries)} variable(s). "
        + "; ".join(parts)
        + "."
    )
    return DescriptiveStatsResult(variables=tuple(summaries), summary=summary)


def remove_outliers(values: Sequence[Any]) -> List[float]:
    """Finite values inside the ``1.5 * IQR`` fences around the quartiles, in input order."""
    numbers = finite_values(values)
    if not numbers:
        return []
    q1 = quantile(numbers, 0.25)
    q3 = quantile(numbers, 0.75)
    spread = (q3 - q1) * _OUTLIER_IQR_MULTIPLIER
    lower, upper = q1 - spread, q3 + spread
    return [x for x in numbers if lower <= x <= upper]

