import pytest

from labstats.engine.analyses.columns import build_dataset, infer_columns


ROWS = [
    {"dose": 1, "group": "a", "note": None, "flag": True},
    {"dose": "2.5", "group": "b", "note": "", "flag": False},
    {"dose": None, "group": "a", "note": "null", "flag": True},
]


def test_infer_columns_classifies_numeric_and_text():
    columns = {column.key: column for column in infer_columns(ROWS)}
    assert columns["dose"].type == "numeric"
    assert columns["group"].type == "text"
    # no non-null values at all
    assert columns["note"].type == "text"
    # booleans are categorical
    assert columns["flag"].type == "text"


def test_numeric_column_stats():
    dose = infer_columns(ROWS)[0]
    assert dose.stats is not None
    assert dose.stats.count == 2
    assert dose.stats.null_count == 1
    assert dose.stats.mean == pytest.approx(1.75)
    assert dose.stats.min == 1
    assert dose.stats.max == 2.5
    assert infer_columns(ROWS)[1].stats is None


def test_inference_is_deterministic():
    first = [column.to_dict() for column in infer_columns(ROWS)]
    second = [column.to_dict() for column in infer_columns(ROWS)]
    assert first == second
    assert [c["key"] for c in first] == ["dose", "group", "note", "flag"]


def test_build_dataset_pads_rows_and_freezes_them():
    dataset = build_dataset([{"a": 1}, {"a": 2, "b": "x"}])
    assert dataset.column_keys == ["a", "b"]
    assert dataset.rows[0]["b"] is None
    assert dataset.numeric_keys == ["a"]
    with pytest.raises(TypeError):
        dataset.rows[0]["a"] = 5  # type: ignore[index]
    with pytest.raises(KeyError):
        dataset.column("missing")


def test_empty_dataset():
    dataset = build_dataset([])
    assert dataset.row_count == 0
    assert dataset.columns == ()
