from __future__ import annotations
from typing import Any, Dict, List, Mapping, MutableMapping

from ..core.constants import PHASE_ORDER
from ..core.state import _with_phase, _emit_callback
from ..core.types import AnalysisResult, Dataset
from ..core.utils import _guess_content_type_for_artifact


def _default_description_for_artifact(relative_key: str, spec: Mapping[str, Any]) -> str:
    if relative_key.startswith("results/graphs/") or spec.get("kind") == "image":
        return "Chart generated for the analysis result."
    if relative_key.endswith(".html"):
        return "HTML artifact generated for the analysis result."
    if relative_key.endswith(".txt"):
        return "Text artifact generated for the analysis result."
    if relative_key.endswith(".json"):
        return "JSON artifact generated for the analysis result."
    return "Generated artifact from the analysis pipeline."


def _manifest_entries_for_artifacts(
    artifact_contents: Mapping[str, Mapping[str, Any]],
    artifact_prefix: str,
) -> List[Dict[str, Any]]:
    entries: List[Dict[str, Any]] = []
    for relative_key in sorted(artifact_contents.keys()):
        spec = artifact_contents[relative_key]
        description = spec.get("description")
        if not isinstance(description, str) or not description.strip():
            description = _default_description_for_artifact(relative_key, spec)
        entries.append(
            {
                "name": relative_key.replace("/", "_"),
                "description": description,
                "contentType": _guess_content_type_for_artifact(relative_key, spec),
                "key": f"{artifact_prefix}/{relative_key}",
            }
        )
    return entries


def finalize_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    dataset: Dataset = state["dataset"]
    result: AnalysisResult = state["result"]
    phases: Dict[str, Dict[str, Any]] = state.get("phase_outputs", {})
    artifact_prefix: str = state.get("artifact_prefix") or "analyses/local"

    result_document = result.to_dict()
    artifact_contents: Dict[str, Dict[str, Any]] = dict(state.get("artifact_contents", {}))
    artifact_contents["results/result.json"] = {
        "kind": "json",
        "data": result_document,
        "description": "Analysis result document.",
        "contentType": "application/json",
    }

    manifest_entries: List[Dict[str, Any]] = []
    for phase in PHASE_ORDER:
        if phase not in phases and phase != "finalize":
            continue
        manifest_entries.append(
            {
                "name": f"{phase}_json",
                "description": f"Serialized output for the {phase} phase.",
                "contentType": "application/json",
                "key": f"{artifact_prefix}/phases/{phase}.json",
            }
        )
    manifest_entries.extend(_manifest_entries_for_artifacts(artifact_contents, artifact_prefix))
    manifest_entries.append(
        {
            "name": "results_manifest",
            "description": "Manifest describing generated analysis artifacts.",
            "contentType": "application/json",
            "key": f"{artifact_prefix}/results/manifest.json",
        }
    )

    validation = phases.get("validate", {}) or {}
    manifest = {
        "analysisId": state.get("analysis_id"),
        "basePath": artifact_prefix + "/",
        "resultType": result_document.get("type"),
        "rows": dataset.row_count,
        "rowsUsed": result_document.get("rowsUsed", dataset.row_count),
        "rowsDropped": result_document.get("rowsDropped", 0),
        "warnings": len(validation.get("warnings", []) or []),
        "artifacts": manifest_entries,
    }

    payload = {
        "resultType": manifest["resultType"],
        "summary": result.summary,
        "artifactCount": len(artifact_contents),
    }

    update = _with_phase(
        state,
        "finalize",
        payload,
        manifest=manifest,
        artifact_contents=artifact_contents,
    )
    _emit_callback(state, "finalize", payload)
    return update
