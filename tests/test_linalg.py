import pytest

from labstats.engine.analyses import fit_normal_equation, solve_linear_system
from labstats.engine.core.errors import SingularSystemError


def test_partial_pivoting_handles_zero_leading_entry():
    assert solve_linear_system([[0, 1], [1, 0]], [2, 3]) == pytest.approx([3.0, 2.0])


def test_three_by_three():
    matrix = [[2, 1, -1], [-3, -1, 2], [-2, 1, 2]]
    assert solve_linear_system(matrix, [8, -11, -3]) == pytest.approx([2.0, 3.0, -1.0])


def test_singular_matrix_raises_with_names():
    with pytest.raises(SingularSystemError) as excinfo:
        solve_linear_system([[1, 2], [2, 4]], [1, 2], names=["a", "b"])
    assert excinfo.value.variables == ("a", "b")


def test_shape_mismatch_is_a_value_error():
    with pytest.raises(ValueError):
        solve_linear_system([[1, 2]], [1])


def test_normal_equation_recovers_exact_coefficients():
    features = [[float(i), float((i * i) % 7)] for i in range(12)]
    targets = [1.0 + 2.0 * a - 3.0 * b for a, b in features]
    intercept, coefficients = fit_normal_equation(features, targets)
    assert intercept == pytest.approx(1.0)
    assert coefficients == pytest.approx([2.0, -3.0])
