import pytest

from labstats.engine import AnalysisRequest, rows_to_dataset, validate_dataset
from labstats.engine.core.errors import InvalidSelectionError, UnsupportedAnalysisKindError
from labstats.engine.nodes.validate import check_request, required_columns


def _dataset(n=12):
    return rows_to_dataset([{"x": i, "y": i * 2, "sparse": i if i < 3 else None} for i in range(n)])


def test_clean_dataset_passes():
    report = validate_dataset(_dataset(), ["x", "y"])
    assert report["isValid"] is True
    assert report["errors"] == []
    assert report["summary"] == "Validation passed. 0 error(s), 1 warning(s)."
    assert report["warnings"][0]["message"] == "Column 'sparse' has 75.0% missing values"


def test_missing_required_column_is_an_error():
    report = validate_dataset(_dataset(), ["z"])
    assert report["isValid"] is False
    assert report["errors"][0]["message"] == "Required column 'z' not found in dataset"
    assert report["summary"].startswith("Validation failed. 1 error(s)")


def test_small_dataset_warning():
    report = validate_dataset(_dataset(4))
    messages = [warning["message"] for warning in report["warnings"]]
    assert any("only 4 rows" in message for message in messages)


def test_required_columns_include_target_for_models():
    request = AnalysisRequest.from_dict({"kind": "ml_regression", "features": ["x"], "target": "y"})
    assert required_columns(request) == ["x", "y"]
    descriptive = AnalysisRequest.from_dict({"kind": "descriptive_stats", "variables": ["x"], "target": "y"})
    assert required_columns(descriptive) == ["x"]


@pytest.mark.parametrize(
    "payload,error",
    [
        ({"kind": "anova", "features": ["x"]}, UnsupportedAnalysisKindError),
        ({"kind": "linear_regression", "features": ["x", "y"], "target": "y"}, InvalidSelectionError),
        ({"kind": "correlation", "features": ["x"]}, InvalidSelectionError),
        ({"kind": "descriptive_stats", "features": []}, InvalidSelectionError),
        ({"kind": "ml_regression", "features": ["x"], "target": "nope"}, InvalidSelectionError),
    ],
)
def test_check_request_rejects_bad_selections(payload, error):
    with pytest.raises(error):
        check_request(_dataset(), AnalysisRequest.from_dict(payload))


def test_bad_options_are_rejected_when_parsed():
    with pytest.raises(InvalidSelectionError):
        AnalysisRequest.from_dict({"kind": "ml_regression", "options": {"splitRatio": 0}})
    with pytest.raises(InvalidSelectionError):
        AnalysisRequest.from_dict({"kind": "ml_regression", "options": {"crossValidationFolds": 1}})
    with pytest.raises(InvalidSelectionError):
        AnalysisRequest.from_dict({"kind": "ml_regression", "options": {"splitStrategy": "time"}})


def test_random_seed_must_be_integral():
    with pytest.raises(InvalidSelectionError):
        AnalysisRequest.from_dict({"kind": "ml_regression", "options": {"randomSeed": 3.7}})
    with pytest.raises(InvalidSelectionError):
        AnalysisRequest.from_dict({"kind": "ml_regression", "options": {"randomSeed": "abc"}})
    request = AnalysisRequest.from_dict({"kind": "ml_regression", "options": {"randomSeed": 7.0}})
    assert request.options.random_seed == 7
