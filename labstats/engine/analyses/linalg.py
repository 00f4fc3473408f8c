from __future__ import annotations
from typing import List, Sequence, Tuple

from ..core.constants import _PIVOT_TOLERANCE
from ..core.errors import SingularSystemError


def solve_linear_system(
    matrix: Sequence[Sequence[float]],
    rhs: Sequence[float],
    *,
    names: Sequence[str] = (),
) -> List[float]:
    """
    Solve ``A x = b`` by Gaussian elimination with partial pivoting.

    At each column the row with the largest absolute entry is swapped into
    the pivot position. A pivot at or below ``_PIVOT_TOLERANCE`` times the
    largest entry of ``A`` means the system has no unique solution and raises
    :class:`SingularSystemError`. ``names`` only feeds the error message.
    """
    n = len(matrix)
    if n == 0 or len(rhs) != n or any(len(row) != n for row in matrix):
        raise ValueError("matrix must be square and match the right-hand side")

    augmented = [list(map(float, row)) + [float(value)] for row, value in zip(matrix, rhs)]
    scale = max((abs(value) for row in matrix for value in row), default=0.0)
    tolerance = _PIVOT_TOLERANCE * max(scale, 1.0)

    for col in range(n):
        pivot_row = max(range(col, n), key=lambda r: abs(augmented[r][col]))
        pivot = augmented[pivot_row][col]
        if abs(pivot) <= tolerance:
            raise SingularSystemError(
                "Normal equation is singular; predictors are collinear or constant",
                variables=names,
            )
        if pivot_row != col:
            augmented[col], augmented[pivot_row] = augmented[pivot_row], augmented[col]
        for r in range(col + 1, n):
            factor = augmented[r][col] / pivot
            if factor == 0.0:
                continue
            row = augmented[r]
            pivot_values = augmented[col]
            for c in range(col, n + 1):
                row[c] -= factor * pivot_values[c]

    solution = [0.0] * n
    for r in range(n - 1, -1, -1):
        acc = augmented[r][n]
        for c in range(r + 1, n):
            acc -= augmented[r][c] * solution[c]
        solution[r] = acc / augmented[r][r]
    return solution


def fit_normal_equation(
    features: Sequence[Sequence[float]],
    targets: Sequence[float],
    *,
    names: Sequence[str] = (),
) -> Tuple[float, List[float]]:
    """
    Ordinary least squares with an intercept via ``(X^T X) beta = X^T y``.

    Returns ``(intercept, coefficients)``.
    """
    if not features:
        raise ValueError("at least one observation is required")
    width = len(features[0]) + 1
    xtx = [[0.0] * width for _ in range(width)]
    xty = [0.0] * width
    for row, target in zip(features, targets):
        design = [1.0, *row]
        for i in range(width):
            xi = design[i]
            xty[i] += xi * target
            xtx_row = xtx[i]
            for j in range(i, width):
                xtx_row[j] += xi * design[j]
    for i in range(width):
        for j in range(i):
            xtx[i][j] = xtx[j][i]

    beta = solve_linear_system(xtx, xty, names=names)
    return beta[0], beta[1:]


def predict(intercept: float, coefficients: Sequence[float], row: Sequence[float]) -> float:
    return intercept + sum(c * x for c, x in zip(coefficients, row))
