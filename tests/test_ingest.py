import gzip
import io
import json

import pytest

from labstats.engine import ingest_dataset, rows_to_dataset


def test_csv_cells_are_coerced():
    body = b"a,b,label\n1,2.5,x\n3,,y\n"
    dataset = ingest_dataset("data.csv", body)
    assert dataset.source_format == "csv"
    assert dataset.bytes_read == len(body)
    assert dataset.row_count == 2
    assert dataset.rows[0]["a"] == 1
    assert dataset.rows[0]["b"] == 2.5
    assert dataset.rows[1]["b"] is None
    assert dataset.numeric_keys == ["a", "b"]
    assert dataset.column("label").type == "text"


def test_null_sentinels_become_none():
    dataset = ingest_dataset("data.csv", b"v\nNULL\nNaN\nnull\n  \n4\n")
    # the whitespace-only row is skipped entirely
    assert [row["v"] for row in dataset.rows] == [None, None, None, 4]


def test_duplicate_and_blank_headers():
    dataset = ingest_dataset("data.csv", b"\xef\xbb\xbfa,a,\n1,2,3\n")
    assert dataset.column_keys == ["a", "a_2", "column_3"]
    assert dataset.column("a_2").display_name == "a"


def test_ragged_rows_are_padded_and_extended():
    dataset = ingest_dataset("data.csv", b"x,y\n1\n2,3,4\n")
    assert dataset.column_keys == ["x", "y", "column_3"]
    assert dataset.rows[0]["y"] is None
    assert dataset.rows[1]["column_3"] == 4


def test_tsv_and_stream_input():
    dataset = ingest_dataset("data.tsv", io.BytesIO(b"a\tb\n1\t2\n"))
    assert dataset.source_format == "tsv"
    assert dataset.rows[0] == {"a": 1, "b": 2}


def test_empty_csv_has_no_rows():
    dataset = ingest_dataset("empty.csv", b"")
    assert dataset.row_count == 0
    assert dataset.columns == ()


@pytest.mark.parametrize(
    "payload",
    [
        [{"x": 1, "y": "a"}, {"x": 2, "y": "b"}],
        {"rows": [{"x": 1, "y": "a"}, {"x": 2, "y": "b"}]},
    ],
)
def test_json_rows(payload):
    dataset = ingest_dataset("data.json", json.dumps(payload).encode())
    assert dataset.source_format == "json"
    assert dataset.row_count == 2
    assert dataset.numeric_keys == ["x"]


def test_single_json_object_is_one_row():
    dataset = ingest_dataset("data.json", b'{"x": "5"}')
    assert dataset.rows[0]["x"] == 5


def test_invalid_json_is_a_value_error():
    with pytest.raises(ValueError):
        ingest_dataset("data.json", b"{not json")


def test_jsonl_skips_malformed_lines(caplog):
    body = b'{"x": 1}\n\nnot json\n{"x": 2}\n[1, 2]\n'
    dataset = ingest_dataset("data.jsonl", body)
    assert dataset.source_format == "jsonl"
    assert [row["x"] for row in dataset.rows] == [1, 2]
    assert any("malformed" in record.getMessage() for record in caplog.records)


def test_gzip_is_unwrapped_by_suffix():
    dataset = ingest_dataset("data.csv.gz", gzip.compress(b"a,b\n1,2\n3,4\n"))
    assert dataset.source_format == "csv"
    assert dataset.row_count == 2


def test_invalid_gzip():
    with pytest.raises(ValueError):
        ingest_dataset("data.csv.gz", b"plain text")


def test_parquet():
    pd = pytest.importorskip("pandas")
    pytest.importorskip("pyarrow")
    frame = pd.DataFrame({"a": [1.0, None, 3.0], "b": ["x", "y", None]})
    buffer = io.BytesIO()
    frame.to_parquet(buffer)
    dataset = ingest_dataset("data.parquet", buffer.getvalue())
    assert dataset.source_format == "parquet"
    assert dataset.rows[1]["a"] is None
    assert dataset.rows[2]["b"] is None
    assert dataset.numeric_keys == ["a"]


def test_rows_keep_cells_as_given():
    dataset = rows_to_dataset([{"x": "5", "y": 1}])
    assert dataset.source_format == "rows"
    assert dataset.rows[0]["x"] == "5"
    assert dataset.numeric_keys == ["x", "y"]
