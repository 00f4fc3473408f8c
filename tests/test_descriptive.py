import math

import pytest

from labstats.engine.analyses import descriptive_statistics, remove_outliers, summarize_variable
from labstats.engine.core.errors import InsufficientDataError, InvalidSelectionError


def test_summary_of_one_to_five():
    rows = [{"x": value} for value in [1, 2, 3, 4, 5]]
    result = descriptive_statistics(rows, ["x"])
    summary = result.variables[0]
    assert summary.count == 5
    assert summary.mean == 3
    assert summary.median == 3
    assert summary.min == 1
    assert summary.max == 5
    assert summary.range == 4
    assert summary.q1 == 2
    assert summary.q3 == 4
    assert summary.iqr == 2
    assert summary.variance == pytest.approx(2.0)
    assert summary.std == pytest.approx(math.sqrt(2.0))


def test_non_numeric_and_null_cells_are_skipped():
    rows = [{"x": 1}, {"x": "n/a"}, {"x": None}, {"x": "3"}, {"x": float("nan")}]
    summary = descriptive_statistics(rows, ["x"]).variables[0]
    assert summary.count == 2
    assert summary.mean == 2


def test_summary_text_lists_every_variable():
    rows = [{"a": 1, "b": 10}, {"a": 3, "b": 30}]
    result = descriptive_statistics(rows, ["a", "b"])
    assert result.summary.startswith("Descriptive statistics calculated for 2 variable(s).")
    assert "a: M=2.00, SD=1.00, range=[1.00, 3.00]" in result.summary
    assert "b: M=20.00" in result.summary
    payload = result.to_dict()
    assert payload["type"] == "descriptive_stats"
    assert payload["variables"][0]["name"] == "a"


def test_variable_without_values_raises_with_its_name():
    rows = [{"x": 1, "label": "a"}, {"x": 2, "label": "b"}]
    with pytest.raises(InsufficientDataError) as excinfo:
        descriptive_statistics(rows, ["x", "label"])
    assert excinfo.value.variables == ("label",)
    assert "label" in str(excinfo.value)


def test_empty_selection_is_rejected():
    with pytest.raises(InvalidSelectionError):
        descriptive_statistics([{"x": 1}], [])


def test_remove_outliers_uses_iqr_fences():
    assert remove_outliers([1, 2, 3, 4, 100]) == [1, 2, 3, 4]
    assert remove_outliers([]) == []
    rows = [{"x": value} for value in [1, 2, 3, 4, 100]]
    trimmed = descriptive_statistics(rows, ["x"], exclude_outliers=True).variables[0]
    assert trimmed.max == 4
    assert trimmed.count == 4


def test_single_value():
    summary = summarize_variable("x", [7])
    assert summary.std == 0
    assert summary.q1 == summary.q3 == 7
