from __future__ import annotations
from typing import Callable, Dict, Hashable, List, Optional, Sequence, Tuple
import logging
import math

from ..core.errors import SingularSystemError
from ..core.numeric import mean, population_std, r_squared
from ..core.random_source import RandomSource
from ..core.types import CrossValidationSummary, Split
from .linalg import fit_normal_equation, predict

logger = logging.getLogger(__name__)

FitFunction = Callable[[Sequence[Sequence[float]], Sequence[float]], Tuple[float, List[float]]]


def _shuffle(indices: List[int], source: RandomSource) -> None:
    # Fisher-Yates from the end
    for i in range(len(indices) - 1, 0, -1):
        j = source.index_below(i + 1)
        indices[i], indices[j] = indices[j], indices[i]


def _stratified_quotas(sizes: Sequence[int], ratio: float, total: int) -> List[int]:
    exact = [size * ratio for size in sizes]
    quotas = [math.floor(value) for value in exact]
    remaining = total - sum(quotas)
    order = sorted(range(len(sizes)), key=lambda idx: (-(exact[idx] - quotas[idx]), idx))
    for idx in order[:max(0, remaining)]:
        quotas[idx] += 1
    return quotas


def train_test_split(
    n: int,
    split_ratio: float,
    random_source: Optional[RandomSource] = None,
    *,
    labels: Optional[Sequence[Hashable]] = None,
    strategy: str = "random",
) -> Split:
    """
    Partition ``range(n)`` into training and testing indices.

    The training side always holds ``floor(n * split_ratio)`` indices. The
    random strategy shuffles once and takes the head; the stratified strategy
    shuffles each class (first-seen order) with the same source and gives
    every class a largest-remainder share of the training quota.
    """
    source = random_source or RandomSource()
    train_size = math.floor(n * split_ratio)

    if strategy == "stratified":
        if labels is None or len(labels) != n:
            raise ValueError("stratified splitting needs one label per row")
        groups: Dict[Hashable, List[int]] = {}
        for index, label in enumerate(labels):
            groups.setdefault(label, []).append(index)
        members = list(groups.values())
        quotas = _stratified_quotas([len(group) for group in members], split_ratio, train_size)
        training: List[int] = []
        testing: List[int] = []
        for group, quota in zip(members, quotas):
            _shuffle(group, source)
            training.extend(group[:quota])
            testing.extend(group[quota:])
        return Split(training_indices=tuple(training), testing_indices=tuple(testing))

    indices = list(range(n))
    _shuffle(indices, source)
    return Split(
        training_indices=tuple(indices[:train_size]),
        testing_indices=tuple(indices[train_size:]),
    )


def _fold_bounds(n: int, folds: int) -> List[Tuple[int, int]]:
    size = n // folds
    bounds = []
    for fold in range(folds):
        start = fold * size
        end = n if fold == folds - 1 else start + size
        bounds.append((start, end))
    return bounds


def cross_validate(
    features: Sequence[Sequence[float]],
    targets: Sequence[float],
    folds: int,
    *,
    fit: FitFunction = fit_normal_equation,
) -> CrossValidationSummary:
    """
    K-fold cross-validation over contiguous blocks of the rows, without shuffling.

    Blocks are ``n // folds`` rows long with the last block taking the
    remainder. Folds leaving fewer than two training rows, an empty test
    block or a singular training fit are skipped, so fewer than ``folds``
    scores may come back.
    """
    if folds < 2:
        raise ValueError("folds must be >= 2")
    n = len(targets)
    scores: List[float] = []
    for fold, (start, end) in enumerate(_fold_bounds(n, folds)):
        train_x = list(features[:start]) + list(features[end:])
        train_y = list(targets[:start]) + list(targets[end:])
        test_x = features[start:end]
        test_y = targets[start:end]
        if len(train_y) < 2 or len(test_y) < 1:
            logger.debug(
                "skipping cross-validation fold",
                extra={"fold": fold, "train_rows": len(train_y), "test_rows": len(test_y)},
            )
            continue
        try:
            intercept, coefficients = fit(train_x, train_y)
        except SingularSystemError:
            logger.debug(
                "skipping singular cross-validation fold",
                extra={"fold": fold, "train_rows": len(train_y), "test_rows": len(test_y)},
            )
            continue
        predicted = [predict(intercept, coefficients, row) for row in test_x]
        scores.append(r_squared(list(test_y), predicted))

    return CrossValidationSummary(
        folds=folds,
        scores=tuple(scores),
        mean_score=mean(scores) if scores else 0.0,
        std_score=population_std(scores) if len(scores) > 1 else 0.0,
    )
