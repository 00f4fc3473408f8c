import pytest

from labstats.engine import (
    AnalysisRequest,
    InvalidSelectionError,
    RandomSource,
    UnsupportedAnalysisKindError,
    analyze,
    rows_to_dataset,
    run_analysis,
)
from labstats.engine.core.constants import PHASE_ORDER


ROWS = [
    {"dose": i, "response": 3 * i + 2 + (i % 3) * 0.5, "weight": 50 + (i * 7) % 13, "group": "hi" if i > 9 else "lo"}
    for i in range(20)
]


def _png(spec):
    return spec["data"][:8] == b"\x89PNG\r\n\x1a\n"


def test_descriptive_run_produces_phases_and_artifacts():
    seen = []
    run = run_analysis(
        {"kind": "descriptive_stats", "variables": ["dose", "weight"]},
        rows=ROWS,
        analysis_id="abc",
        on_phase=lambda phase, payload, index, total: seen.append((phase, index, total)),
    )
    assert list(run.phases) == PHASE_ORDER
    assert [phase for phase, _, _ in seen] == PHASE_ORDER
    assert all(total == len(PHASE_ORDER) for _, _, total in seen)

    artifacts = run.artifact_contents
    for key in ["results/report.txt", "results/report.html", "results/result.json"]:
        assert key in artifacts
    assert _png(artifacts["results/graphs/box_plots.png"])
    assert "Descriptive Statistics" in artifacts["results/report.txt"]["text"]
    assert artifacts["results/result.json"]["data"]["type"] == "descriptive_stats"

    manifest = run.manifest
    assert manifest["analysisId"] == "abc"
    assert manifest["basePath"] == "analyses/abc/"
    assert manifest["resultType"] == "descriptive_stats"
    keys = [entry["key"] for entry in manifest["artifacts"]]
    assert "analyses/abc/phases/ingest.json" in keys
    assert "analyses/abc/results/manifest.json" in keys
    assert "analyses/abc/results/graphs/box_plots.png" in keys


@pytest.mark.parametrize(
    "request_payload,chart",
    [
        ({"kind": "correlation", "features": ["dose", "response", "weight"]}, "results/graphs/correlation_heatmap.png"),
        ({"kind": "linear_regression", "features": ["dose"], "target": "response"}, "results/graphs/response_vs_dose_regression.png"),
        (
            {"kind": "ml_regression", "features": ["dose", "weight"], "target": "response", "options": {"randomSeed": 42}},
            "results/graphs/residuals.png",
        ),
        (
            {"kind": "ml_classification", "features": ["dose"], "target": "group", "options": {"randomSeed": 42}},
            "results/graphs/confusion_matrix.png",
        ),
    ],
)
def test_each_kind_renders_its_chart(request_payload, chart):
    run = run_analysis(request_payload, rows=ROWS)
    assert run.result.to_dict()["type"] == request_payload["kind"]
    assert _png(run.artifact_contents[chart])
    assert run.phases["report"]["charts"] == [chart]


def test_csv_body_is_ingested():
    body = b"x,y\n1,5\n2,7\n3,9\n4,11\n"
    run = run_analysis({"kind": "linear_regression", "features": ["x"], "target": "y"}, body=body, source_key="pts.csv")
    assert run.phases["ingest"]["sourceFormat"] == "csv"
    assert run.phases["ingest"]["rows"] == 4
    assert run.result.equation == "y = 2.0000x + 3.0000"
    assert run.phases["validate"]["warnings"]


def test_unknown_kind_is_rejected():
    with pytest.raises(UnsupportedAnalysisKindError):
        run_analysis({"kind": "anova", "features": ["dose"]}, rows=ROWS)


def test_unknown_column_is_rejected():
    with pytest.raises(InvalidSelectionError) as excinfo:
        run_analysis({"kind": "ml_regression", "features": ["dose", "missing"], "target": "response"}, rows=ROWS)
    assert excinfo.value.variables == ("missing",)


def test_exactly_one_data_source():
    with pytest.raises(ValueError):
        run_analysis({"kind": "descriptive_stats", "features": ["dose"]})
    with pytest.raises(ValueError):
        run_analysis({"kind": "descriptive_stats", "features": ["dose"]}, rows=ROWS, body=b"a\n1\n")


def test_random_source_is_passed_through():
    request = {"kind": "ml_regression", "features": ["dose"], "target": "response"}
    first = run_analysis(request, rows=ROWS, random_source=RandomSource(9))
    second = run_analysis(request, rows=ROWS, random_source=RandomSource(9))
    assert first.result.random_seed == 9
    assert first.result.to_dict() == second.result.to_dict()


def test_analyze_without_the_graph():
    dataset = rows_to_dataset(ROWS)
    request = AnalysisRequest.from_dict({"kind": "correlation", "features": ["dose", "response"]})
    result = analyze(dataset, request)
    assert result.strong_correlations[0].pair == "dose vs response"
    with pytest.raises(UnsupportedAnalysisKindError):
        analyze(dataset, AnalysisRequest(kind="anova"))


@pytest.mark.parametrize(
    "request_payload,variables",
    [
        ({"kind": "descriptive_stats", "features": ["nope"]}, ("nope",)),
        ({"kind": "ml_regression", "features": ["nope"], "target": "response"}, ("nope",)),
        ({"kind": "linear_regression", "features": ["dose", "nope"], "target": "response"}, ("dose", "nope", "response")),
    ],
)
def test_analyze_checks_the_selection(request_payload, variables):
    dataset = rows_to_dataset(ROWS)
    with pytest.raises(InvalidSelectionError) as excinfo:
        analyze(dataset, AnalysisRequest.from_dict(request_payload))
    assert excinfo.value.variables == variables
