from __future__ import annotations

import uuid
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from langgraph.graph import END, StateGraph

from .nodes import (
    ingest_node, profile_node, validate_node, analyze_node, report_node, finalize_node
)
from .core.random_source import RandomSource
from .core.state import AnalysisState, PhaseCallback
from .core.types import AnalysisRequest, AnalysisRun, BinaryInput, Dataset
from .core.utils import _ensure_bytes


def build_graph():
    g = StateGraph(AnalysisState)
    g.add_node("ingest", ingest_node)
    g.add_node("profile", profile_node)
    g.add_node("validate", validate_node)
    g.add_node("analyze", analyze_node)
    g.add_node("report", report_node)
    g.add_node("finalize", finalize_node)

    g.set_entry_point("ingest")
    g.add_edge("ingest", "profile")
    g.add_edge("profile", "validate")
    g.add_edge("validate", "analyze")
    g.add_edge("analyze", "report")
    g.add_edge("report", "finalize")
    g.add_edge("finalize", END)
    return g.compile()


PIPELINE = build_graph()


def run_analysis(
    request: Union[AnalysisRequest, Mapping[str, Any]],
    *,
    dataset: Optional[Dataset] = None,
    rows: Optional[Iterable[Mapping[str, Any]]] = None,
    body: Optional[BinaryInput] = None,
    source_key: str = "dataset.csv",
    analysis_id: Optional[str] = None,
    artifact_prefix: Optional[str] = None,
    random_source: Optional[RandomSource] = None,
    on_phase: Optional[PhaseCallback] = None,
) -> AnalysisRun:
    """
    Run one analysis through ingest, profile, validate, analyze, report and
    finalize. Exactly one of ``dataset``, ``rows`` or ``body`` supplies the
    data; ``body`` is parsed according to ``source_key``'s extension.
    Analysis errors propagate unchanged.
    """
    supplied = [value is not None for value in (dataset, rows, body)]
    if sum(supplied) != 1:
        raise ValueError("exactly one of dataset, rows or body is required")
    if not isinstance(request, AnalysisRequest):
        request = AnalysisRequest.from_dict(request)

    analysis_id = analysis_id or uuid.uuid4().hex
    initial_state: Dict[str, Any] = {
        "analysis_id": analysis_id,
        "artifact_prefix": artifact_prefix or f"analyses/{analysis_id}",
        "request": request,
        "source": {"key": source_key},
        "phase_outputs": {},
        "artifact_contents": {},
    }
    if dataset is not None:
        initial_state["dataset"] = dataset
    elif rows is not None:
        initial_state["rows"] = [dict(row) for row in rows]
    else:
        # bytes only; file objects do not belong in graph state
        initial_state["raw_input"] = _ensure_bytes(body)  # type: ignore[arg-type]
    if random_source is not None:
        initial_state["random_source"] = random_source
    if on_phase:
        initial_state["_callback"] = on_phase

    final_state = PIPELINE.invoke(initial_state)

    return AnalysisRun(
        phases=final_state.get("phase_outputs", {}) or {},
        result=final_state["result"],
        manifest=final_state.get("manifest", {}) or {},
        artifact_contents=final_state.get("artifact_contents", {}) or {},
        dataset=final_state.get("dataset"),
    )
