from pathlib import Path

PHASE_ORDER = [
    "ingest",
    "profile",
    "validate",
    "analyze",
    "report",
    "finalize",
]

ANALYSIS_KINDS = [
    "descriptive_stats",
    "correlation",
    "linear_regression",
    "ml_regression",
    "ml_classification",
]

_NULL_SENTINELS = {"", "null", "NULL", "NaN", "nan"}

_DEFAULT_SPLIT_RATIO = 0.8
_SPLIT_STRATEGIES = ("random", "stratified")
_ML_ALGORITHMS = ("logistic",)

# linear congruential generator
_LCG_MULTIPLIER = 9301
_LCG_INCREMENT = 49297
_LCG_MODULUS = 233280

_LOGISTIC_ITERATIONS = 1000
_LOGISTIC_LEARNING_RATE = 0.1
_DECISION_THRESHOLD = 0.5

_PIVOT_TOLERANCE = 1e-12

_STRONG_CORRELATION_THRESHOLD = 0.7
_CORRELATION_STRENGTH_LABELS = [
    (0.9, "Very strong"),
    (0.7, "Strong"),
    (0.5, "Moderate"),
    (0.3, "Weak"),
]
_REGRESSION_STRENGTH_LABELS = [
    (0.7, "strong"),
    (0.4, "moderate"),
]

# (t threshold, p-value) pairs, checked in order; anything below falls to _P_VALUE_FLOOR
_P_VALUE_BUCKETS = [
    (3.5, 0.001),
    (2.5, 0.01),
    (2.0, 0.05),
    (1.5, 0.1),
]
_P_VALUE_FLOOR = 0.2
P_VALUE_METHOD = "t_bucket_approximation"
IMPORTANCE_METHOD = "abs_pearson"

_MISSING_WARNING_RATIO = 0.5
_MIN_RECOMMENDED_ROWS = 10
_OUTLIER_IQR_MULTIPLIER = 1.5

_OVERFIT_SUMMARY_GAP = 0.1
_OVERFIT_RECOMMENDATION_GAP = 0.2
_CV_UNSTABLE_STD = 0.1

_MAX_PREVIEW_ROWS = 5
_MAX_CHART_POINTS = 2000
_MAX_HEATMAP_COLUMNS = 12

_DELIMITED_STREAM_CHUNK_SIZE = 64 * 1024

_TEMPLATE_DIR = Path(__file__).resolve().parents[1] / "templates"
_REPORT_TEMPLATE_NAME = "report.html.j2"
