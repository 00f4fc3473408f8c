from __future__ import annotations
from typing import Any, Dict, MutableMapping

from ..core.constants import _MAX_PREVIEW_ROWS
from ..core.state import _with_phase, _emit_callback
from ..core.types import Dataset
from ..core.utils import _format_preview
from ..io.ingest import ingest_dataset, rows_to_dataset


def ingest_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    dataset = state.get("dataset")
    if not isinstance(dataset, Dataset):
        rows = state.get("rows")
        if rows is not None:
            dataset = rows_to_dataset(rows)
        else:
            body = state.get("raw_input")
            if body is None:
                raise ValueError("one of dataset, rows or raw_input is required")
            source = state.get("source", {}) or {}
            dataset = ingest_dataset(source.get("key", "dataset.csv"), body)

    preview = [
        {key: _format_preview(value) for key, value in row.items()}
        for row in dataset.rows[:_MAX_PREVIEW_ROWS]
    ]
    payload = {
        "rows": dataset.row_count,
        "columns": dataset.column_keys,
        "bytesRead": dataset.bytes_read,
        "sourceFormat": dataset.source_format,
        "preview": preview,
    }

    update = _with_phase(state, "ingest", payload, dataset=dataset, raw_input=None, rows=None)
    _emit_callback(state, "ingest", payload)
    return update
