import json

import pytest

from labstats.common.documents import (
    matrix_from_document,
    persist_analysis_outputs,
    result_key_for,
    to_document,
)
from labstats.engine import run_analysis


def test_nested_lists_are_flattened():
    document = to_document({"matrix": [[1, 2], (3, 4)], "labels": ("a", "b")})
    assert document["matrix"] == {
        "_type": "nested_array",
        "rows": [{"values": [1, 2]}, {"values": [3, 4]}],
    }
    assert document["labels"] == ["a", "b"]


def test_max_items_truncates_flat_lists():
    assert to_document({"values": list(range(10))}, max_items=3) == {"values": [0, 1, 2]}


def test_matrix_round_trips_through_either_shape():
    matrix = [[1, 0], [0, 1]]
    assert matrix_from_document(to_document(matrix)) == matrix
    assert matrix_from_document(matrix) == matrix
    with pytest.raises(ValueError):
        matrix_from_document({"_type": "other"})
    with pytest.raises(ValueError):
        matrix_from_document(5)


def test_persist_writes_phases_artifacts_result_and_manifest(fake_s3):
    rows = [{"a": i, "b": (i * 3) % 5, "label": "x" if i % 2 else "y"} for i in range(12)]
    run = run_analysis(
        {"kind": "ml_classification", "features": ["a", "b"], "target": "label", "options": {"randomSeed": 1}},
        rows=rows,
        analysis_id="run1",
    )
    keys = persist_analysis_outputs(
        "run1", "bucket", run, s3_client=fake_s3, source_input={"bucket": "in", "key": "data.csv"}
    )

    assert keys["result"] == result_key_for("run1")
    assert keys["manifest"] == "analyses/run1/results/manifest.json"
    assert keys["phase:analyze"] == "analyses/run1/phases/analyze.json"

    stored = fake_s3.keys("bucket")
    assert "analyses/run1/results/report.html" in stored
    assert "analyses/run1/results/graphs/confusion_matrix.png" in stored
    assert fake_s3.content_type("bucket", "analyses/run1/results/graphs/confusion_matrix.png") == "image/png"

    document = json.loads(fake_s3.body("bucket", keys["result"]))
    assert document["analysisId"] == "run1"
    assert document["links"]["input"] == "s3://in/data.csv"
    assert document["result"]["type"] == "ml_classification"
    # the confusion matrix is stored without nested arrays
    assert document["result"]["confusionMatrix"]["matrix"]["_type"] == "nested_array"

    analyze_phase = json.loads(fake_s3.body("bucket", keys["phase:analyze"]))
    assert analyze_phase["confusionMatrix"]["matrix"]["_type"] == "nested_array"
    manifest = json.loads(fake_s3.body("bucket", keys["manifest"]))
    assert manifest["analysisId"] == "run1"
