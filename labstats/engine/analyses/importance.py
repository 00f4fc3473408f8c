from __future__ import annotations
from typing import Any, Dict, List, Mapping, Sequence

from ..core.numeric import label_key, pearson, to_finite
from ..core.types import FeatureImportance


def _target_encoder(values: Sequence[Any]):
    """Numeric targets pass through; any boolean or text value makes the target categorical, coded in first-seen order."""
    present = [value for value in values if value is not None]
    categorical = any(
        isinstance(value, bool) or (isinstance(value, str) and to_finite(value) is None)
        for value in present
    )
    if not categorical:
        return to_finite

    codes: Dict[str, int] = {}
    for value in present:
        codes.setdefault(label_key(value), len(codes))

    def encode(value: Any):
        if value is None:
            return None
        return float(codes[label_key(value)])

    return encode


def feature_importance(
    rows: Sequence[Mapping[str, Any]],
    features: Sequence[str],
    target: str,
) -> List[FeatureImportance]:
    """
    Rank ``features`` by ``|pearson r|`` against ``target``.

    A univariate proxy rather than a model-derived importance. Features with
    fewer than two aligned rows, or a constant side, score 0. The sort is
    stable so ties keep the input order.
    """
    encode = _target_encoder([row.get(target) for row in rows])
    ranked: List[FeatureImportance] = []
    for feature in features:
        xs: List[float] = []
        ys: List[float] = []
        for row in rows:
            x = to_finite(row.get(feature))
            y = encode(row.get(target))
            if x is None or y is None:
                continue
            xs.append(x)
            ys.append(y)
        r = pearson(xs, ys) if len(xs) >= 2 else None
        ranked.append(FeatureImportance(feature=feature, importance=abs(r) if r is not None else 0.0))
    ranked.sort(key=lambda item: item.importance, reverse=True)
    return ranked
