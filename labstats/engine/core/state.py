from __future__ import annotations
from typing import Any, Callable, Dict, Mapping, MutableMapping, Optional, TypedDict

from .constants import PHASE_ORDER
from .types import AnalysisRequest, Dataset

PhaseCallback = Callable[[str, Mapping[str, Any], int, int], None]


class AnalysisState(TypedDict, total=False):
    analysis_id: str
    artifact_prefix: str
    request: AnalysisRequest
    source: Dict[str, Any]
    raw_input: Optional[bytes]
    rows: Optional[list]
    dataset: Dataset
    result: Any
    phase_outputs: Dict[str, Dict[str, Any]]
    artifact_contents: Dict[str, Dict[str, Any]]
    manifest: Dict[str, Any]
    random_source: Any
    _callback: Optional[PhaseCallback]


def _with_phase(state: MutableMapping[str, Any], phase: str, payload: Dict[str, Any], **extra: Any) -> Dict[str, Any]:
    phases = dict(state.get("phase_outputs", {}))
    phases[phase] = payload
    update: Dict[str, Any] = {"phase_outputs": phases}
    update.update(extra)
    return update


def _emit_callback(state: Mapping[str, Any], phase: str, payload: Mapping[str, Any]) -> None:
    callback = state.get("_callback")
    if not callable(callback):
        return
    index = PHASE_ORDER.index(phase)
    callback(phase, payload, index, len(PHASE_ORDER))
