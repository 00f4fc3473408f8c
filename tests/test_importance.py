import pytest

from labstats.engine.analyses import feature_importance


def test_ranks_by_absolute_correlation():
    rows = [
        {"strong": i, "weak": (i * 5) % 3, "flat": 1, "y": 10 - 2 * i}
        for i in range(10)
    ]
    ranked = feature_importance(rows, ["flat", "weak", "strong"], "y")
    assert [item.feature for item in ranked][0] == "strong"
    assert ranked[0].importance == pytest.approx(1.0)
    flat = [item for item in ranked if item.feature == "flat"][0]
    assert flat.importance == 0.0
    for item in ranked:
        assert 0.0 <= item.importance <= 1.0


def test_ties_keep_input_order():
    rows = [{"a": 1, "b": 1, "y": i} for i in range(4)]
    ranked = feature_importance(rows, ["a", "b"], "y")
    assert [item.feature for item in ranked] == ["a", "b"]


def test_categorical_target_is_coded_in_first_seen_order():
    rows = [{"x": i, "label": "no" if i < 5 else "yes"} for i in range(10)]
    ranked = feature_importance(rows, ["x"], "label")
    assert ranked[0].importance > 0.8


def test_rows_with_missing_values_are_skipped():
    rows = [{"x": 1, "y": 2}, {"x": None, "y": 3}, {"x": "n/a", "y": 5}]
    ranked = feature_importance(rows, ["x"], "y")
    assert ranked[0].importance == 0.0


def test_boolean_target_is_categorical():
    rows = [{"x": i, "flag": i >= 10} for i in range(20)]
    ranked = feature_importance(rows, ["x"], "flag")
    assert ranked[0].importance > 0.8
