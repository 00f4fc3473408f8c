from labstats.engine.analyses import descriptive_statistics
from labstats.engine.analyses.columns import build_dataset
from labstats.engine.nodes.charts import _box_plot_series, generate_chart_artifacts


ROWS = [{"x": value} for value in [1, 2, 3, 4, 100]]


def test_box_plot_draws_the_values_the_statistics_used():
    dataset = build_dataset(ROWS)
    trimmed = descriptive_statistics(dataset.rows, ["x"], exclude_outliers=True)
    data, labels = _box_plot_series(dataset, trimmed, exclude_outliers=True)
    assert labels == ["x"]
    assert data == [[1.0, 2.0, 3.0, 4.0]]
    assert max(data[0]) == trimmed.variables[0].max


def test_box_plot_keeps_outliers_by_default():
    dataset = build_dataset(ROWS)
    result = descriptive_statistics(dataset.rows, ["x"])
    data, _ = _box_plot_series(dataset, result)
    assert data == [[1.0, 2.0, 3.0, 4.0, 100.0]]


def test_box_plot_artifact_is_png():
    dataset = build_dataset(ROWS)
    result = descriptive_statistics(dataset.rows, ["x"], exclude_outliers=True)
    artifacts = generate_chart_artifacts(dataset, result, exclude_outliers=True)
    spec = artifacts["results/graphs/box_plots.png"]
    assert spec["contentType"] == "image/png"
    assert spec["data"].startswith(b"\x89PNG")
