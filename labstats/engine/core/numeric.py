from __future__ import annotations
from typing import Any, List, Optional, Sequence
import math

from .constants import (
    _NULL_SENTINELS,
    _P_VALUE_BUCKETS,
    _P_VALUE_FLOOR,
    _CORRELATION_STRENGTH_LABELS,
)


def _parse_float(text: str) -> Optional[float]:
    trimmed = text.strip()
    if not trimmed or trimmed in _NULL_SENTINELS:
        return None
    try:
        return float(trimmed)
    except ValueError:
        return None


def is_numeric_value(value: Any) -> bool:
    """True for ints/floats and strings that parse as a float in full. Booleans are not numbers."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    if isinstance(value, str):
        return _parse_float(value) is not None
    return False


def to_finite(value: Any) -> Optional[float]:
    """Coerce a cell to a finite float, or ``None`` when it is null, text, NaN or infinite."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        parsed = _parse_float(value)
        if parsed is None:
            return None
        number = parsed
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def finite_values(values: Sequence[Any]) -> List[float]:
    out: List[float] = []
    for value in values:
        number = to_finite(value)
        if number is not None:
            out.append(number)
    return out


def mean(xs: Sequence[float]) -> float:
    if not xs:
        return 0.0
    return math.fsum(xs) / len(xs)


def median(xs: Sequence[float]) -> float:
    if not xs:
        return 0.0
    ordered = sorted(xs)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2.0


def population_variance(xs: Sequence[float]) -> float:
    if not xs:
        return 0.0
    mu = mean(xs)
    return math.fsum((x - mu) ** 2 for x in xs) / len(xs)


def population_std(xs: Sequence[float]) -> float:
    return math.sqrt(population_variance(xs))


def quantile(xs: Sequence[float], p: float) -> float:
    """
    Linear interpolation between order statistics (p in [0,1]),
    position ``p * (n - 1)`` on the sorted values.
    """
    if not xs:
        return 0.0
    ordered = sorted(xs)
    p = max(0.0, min(1.0, float(p)))
    pos = p * (len(ordered) - 1)
    lo = math.floor(pos)
    hi = math.ceil(pos)
    if lo == hi:
        return ordered[lo]
    frac = pos - lo
    return ordered[lo] * (1.0 - frac) + ordered[hi] * frac


def pearson(xs: Sequence[float], ys: Sequence[float]) -> Optional[float]:
    """Pearson r over aligned finite samples; ``None`` when undefined (n < 2 or zero variance)."""
    n = min(len(xs), len(ys))
    if n < 2:
        return None
    xs = xs[:n]
    ys = ys[:n]
    mx = mean(xs)
    my = mean(ys)
    sxy = math.fsum((x - mx) * (y - my) for x, y in zip(xs, ys))
    sxx = math.fsum((x - mx) ** 2 for x in xs)
    syy = math.fsum((y - my) ** 2 for y in ys)
    denominator = math.sqrt(sxx * syy)
    if denominator == 0:
        return None
    r = sxy / denominator
    return max(-1.0, min(1.0, r))


def t_statistic(r: float, n: int) -> float:
    if n <= 2:
        return 0.0
    remainder = 1.0 - r * r
    if remainder <= 0:
        return math.inf
    return abs(r * math.sqrt(n - 2) / math.sqrt(remainder))


def estimate_p_value(r: float, n: int) -> float:
    """
    Coarse two-sided p-value for a correlation coefficient.

    Buckets the t statistic instead of integrating the Student-t tail, so the
    value is only ever one of a handful of levels.
    """
    t = t_statistic(r, n)
    for threshold, p_value in _P_VALUE_BUCKETS:
        if t > threshold:
            return p_value
    return _P_VALUE_FLOOR


def significance_tier(p_value: float) -> str:
    if p_value < 0.01:
        return "highly_significant"
    if p_value < 0.05:
        return "significant"
    return "not_significant"


def correlation_direction(r: float) -> str:
    return "positive" if r > 0 else "negative"


def interpret_correlation(r: float) -> str:
    magnitude = abs(r)
    strength = "Very weak"
    for threshold, label in _CORRELATION_STRENGTH_LABELS:
        if magnitude >= threshold:
            strength = label
            break
    return f"{strength} {correlation_direction(r)} correlation"


def r_squared(actual: Sequence[float], predicted: Sequence[float]) -> float:
    if not actual:
        return 0.0
    mu = mean(actual)
    ss_tot = math.fsum((y - mu) ** 2 for y in actual)
    ss_res = math.fsum((y - p) ** 2 for y, p in zip(actual, predicted))
    if ss_tot == 0:
        return 1.0 if ss_res == 0 else 0.0
    return 1.0 - ss_res / ss_tot


def mean_squared_error(actual: Sequence[float], predicted: Sequence[float]) -> float:
    if not actual:
        return 0.0
    return math.fsum((y - p) ** 2 for y, p in zip(actual, predicted)) / len(actual)


def mean_absolute_error(actual: Sequence[float], predicted: Sequence[float]) -> float:
    if not actual:
        return 0.0
    return math.fsum(abs(y - p) for y, p in zip(actual, predicted)) / len(actual)


def label_key(value: Any) -> str:
    """String form of a class label; integral floats read as ints so ``1.0`` and ``1`` agree."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, str):
        return value.strip()
    return str(value)
