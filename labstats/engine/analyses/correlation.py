from __future__ import annotations
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from ..core.constants import P_VALUE_METHOD, _STRONG_CORRELATION_THRESHOLD
from ..core.errors import InsufficientDataError, InvalidSelectionError
from ..core.numeric import estimate_p_value, finite_values, interpret_correlation, pearson
from ..core.types import CorrelationEntry, CorrelationResult, HeatmapCell, StrongCorrelation


def correlation_matrix(
    rows: Sequence[Mapping[str, Any]], variables: Sequence[str]
) -> CorrelationResult:
    """
    Pairwise Pearson correlations for ``variables``.

    Each variable is filtered to its own finite values and the pair is
    truncated to the shorter series, so rows are not aligned when one side has
    gaps. Pairs are visited for ``i <= j``; the diagonal is 1 by definition.
    """
    if len(variables) < 2:
        raise InvalidSelectionError(
            "Correlation analysis needs at least two variables", variables=variables
        )

    series: Dict[str, List[float]] = {
        name: finite_values([row.get(name) for row in rows]) for name in variables
    }

    entries: List[CorrelationEntry] = []
    coefficients: Dict[Tuple[str, str], float] = {}
    strong: List[StrongCorrelation] = []

    for i, left in enumerate(variables):
        for right in variables[i:]:
            n = min(len(series[left]), len(series[right]))
            if left == right:
                if n == 0:
                    raise InsufficientDataError(
                        f"No valid numeric values for variable {left!r}", variables=[left]
                    )
                r = 1.0
            else:
                value = pearson(series[left][:n], series[right][:n])
                if value is None:
                    raise InsufficientDataError(
                        f"Correlation between {left!r} and {right!r} is undefined "
                        f"(needs at least two values with non-zero variance)",
                        variables=[left, right],
                    )
                r = value
            entries.append(
                CorrelationEntry(var1=left, var2=right, correlation=r, p_value=estimate_p_value(r, n), n=n)
            )
            coefficients[(left, right)] = r
            coefficients[(right, left)] = r
            if left != right and abs(r) > _STRONG_CORRELATION_THRESHOLD:
                strong.append(
                    StrongCorrelation(
                        pair=f"{left} vs {right}",
                        var1=left,
                        var2=right,
                        correlation=r,
                        interpretation=interpret_correlation(r),
                    )
                )

    heatmap = [
        HeatmapCell(x=x, y=y, value=coefficients[(x, y)])
        for x in variables
        for y in variables
    ]

    return CorrelationResult(
        variables=tuple(variables),
        correlation_matrix=tuple(entries),
        heatmap_data=tuple(heatmap),
        strong_correlations=tuple(strong),
        p_value_method=P_VALUE_METHOD,
        summary=_summarize(strong),
    )


def _summarize(strong: Sequence[StrongCorrelation]) -> str:
    if not strong:
        return (
            f"No strong correlations (|r| > {_STRONG_CORRELATION_THRESHOLD}) detected between variables."
        )
    details = "; ".join(
        f"{item.pair} (r={item.correlation:.3f}, {item.interpretation})" for item in strong
    )
    return f"Found {len(strong)} strong correlation(s): {details}."
