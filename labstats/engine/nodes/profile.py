from __future__ import annotations
from typing import Any, Dict, MutableMapping

from ..core.state import _with_phase, _emit_callback
from ..core.types import Dataset


def profile_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    dataset: Dataset = state["dataset"]
    profiles = [column.to_dict() for column in dataset.columns]
    completeness = 0.0
    numeric = [column for column in dataset.columns if column.stats is not None]
    if numeric and dataset.row_count:
        completeness = sum(c.stats.count / dataset.row_count for c in numeric) / len(numeric)

    payload = {
        "rowCount": dataset.row_count,
        "columnProfiles": profiles,
        "numericColumns": dataset.numeric_keys,
        "textColumns": [column.key for column in dataset.columns if not column.is_numeric],
        "numericCompleteness": completeness,
    }
    update = _with_phase(state, "profile", payload)
    _emit_callback(state, "profile", payload)
    return update
