"""Helpers for turning analysis runs into stored documents."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - import only for static typing
    from labstats.engine.core.types import AnalysisRun
else:  # pragma: no cover
    AnalysisRun = Any  # type: ignore[misc,assignment]


DOCUMENT_VERSION = "2024.10"
NESTED_ARRAY_TYPE = "nested_array"


def result_key_for(analysis_id: str) -> str:
    return f"analyses/{analysis_id}/results/result.json"


def manifest_key_for(analysis_id: str) -> str:
    return f"analyses/{analysis_id}/results/manifest.json"


def phase_key_for(analysis_id: str, phase: str) -> str:
    return f"analyses/{analysis_id}/phases/{phase}.json"


def artifact_key_for(analysis_id: str, relative: str) -> str:
    return f"analyses/{analysis_id}/{relative}"


def error_key_for(analysis_id: str) -> str:
    return f"analyses/{analysis_id}/results/error.json"


def to_document(value: Any, *, max_items: Optional[int] = None) -> Any:
    """
    Make ``value`` storable in a document store without nested arrays.

    A list holding lists becomes ``{"_type": "nested_array", "rows":
    [{"values": [...]}, ...]}``. Other lists are kept, optionally cut to
    ``max_items``. Tuples are treated as lists.
    """
    if isinstance(value, Mapping):
        return {str(key): to_document(item, max_items=max_items) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        if any(isinstance(item, (list, tuple)) for item in value):
            return {
                "_type": NESTED_ARRAY_TYPE,
                "rows": [
                    {"values": list(row) if isinstance(row, (list, tuple)) else [row]}
                    for row in value
                ],
            }
        items = list(value) if max_items is None else list(value)[:max_items]
        return [to_document(item, max_items=max_items) for item in items]
    return value


def matrix_from_document(value: Any) -> List[List[Any]]:
    """Accept either a nested list or the flattened ``nested_array`` record."""
    if isinstance(value, Mapping):
        if value.get("_type") != NESTED_ARRAY_TYPE:
            raise ValueError("expected a nested_array document")
        return [list(row.get("values", [])) for row in value.get("rows", [])]
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return [list(row) for row in value]
    raise ValueError(f"cannot read a matrix from {type(value).__name__}")


def _json_bytes(data: Any) -> bytes:
    return json.dumps(data, indent=2, default=str).encode("utf-8")


def _bytes_for_artifact(spec: Mapping[str, Any]) -> bytes:
    kind = spec.get("kind")
    if kind == "json":
        return _json_bytes(spec.get("data"))
    if kind == "text":
        text = spec.get("text", "")
        if isinstance(text, bytes):
            return text
        return str(text).encode("utf-8")
    if kind == "html":
        html = spec.get("html")
        if isinstance(html, bytes):
            return html
        return str(html or spec.get("text", "")).encode("utf-8")
    if kind in {"image", "binary"}:
        data = spec.get("data", b"")
        if isinstance(data, memoryview):
            data = data.tobytes()
        if not isinstance(data, (bytes, bytearray)):
            raise ValueError("Binary artifact data must be bytes-like")
        return bytes(data)
    raise ValueError(f"Unsupported artifact kind: {kind}")


def build_result_document(
    analysis_id: str,
    run: "AnalysisRun",
    *,
    source_input: Optional[Mapping[str, Any]] = None,
    artifact_bucket: Optional[str] = None,
    document_version: str = DOCUMENT_VERSION,
) -> Dict[str, Any]:
    links: Dict[str, str] = {}
    if source_input:
        bucket = source_input.get("bucket")
        key = source_input.get("key")
        if bucket and key:
            links["input"] = f"s3://{bucket}/{key}"
    if artifact_bucket:
        links["resultsManifest"] = f"s3://{artifact_bucket}/{manifest_key_for(analysis_id)}"
        links["resultsJson"] = f"s3://{artifact_bucket}/{result_key_for(analysis_id)}"

    profile = run.phases.get("profile", {}) or {}
    schema = [
        {"key": column.get("key"), "type": column.get("type")}
        for column in profile.get("columnProfiles", []) or []
        if isinstance(column, Mapping)
    ]

    return {
        "analysisId": analysis_id,
        "documentVersion": document_version,
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "schema": schema,
        "links": links,
        "validation": run.phases.get("validate", {}),
        "result": run.result.to_dict(),
        "artifactManifest": run.manifest,
    }


def persist_analysis_outputs(
    analysis_id: str,
    bucket: str,
    run: "AnalysisRun",
    *,
    s3_client,
    source_input: Optional[Mapping[str, Any]] = None,
) -> Dict[str, str]:
    """Upload phase payloads, artifacts, the result document and the manifest to S3.

    Returns the uploaded keys, including ``result`` and ``manifest``.
    """

    uploaded: Dict[str, str] = {}
    for phase, payload in run.phases.items():
        key = phase_key_for(analysis_id, phase)
        s3_client.put_object(
            Bucket=bucket,
            Key=key,
            Body=_json_bytes(to_document(payload)),
            ContentType="application/json",
        )
        uploaded[f"phase:{phase}"] = key

    for relative_key, spec in run.artifact_contents.items():
        if relative_key == "results/result.json":
            continue
        key = artifact_key_for(analysis_id, relative_key)
        s3_client.put_object(
            Bucket=bucket,
            Key=key,
            Body=_bytes_for_artifact(spec),
            ContentType=spec.get("contentType") or "application/octet-stream",
        )

    result_key = result_key_for(analysis_id)
    document = build_result_document(
        analysis_id, run, source_input=source_input, artifact_bucket=bucket
    )
    s3_client.put_object(
        Bucket=bucket,
        Key=result_key,
        Body=_json_bytes(to_document(document)),
        ContentType="application/json",
    )
    uploaded["result"] = result_key

    manifest_key = manifest_key_for(analysis_id)
    s3_client.put_object(
        Bucket=bucket,
        Key=manifest_key,
        Body=_json_bytes(run.manifest),
        ContentType="application/json",
    )
    uploaded["manifest"] = manifest_key
    return uploaded


__all__ = [
    "DOCUMENT_VERSION",
    "NESTED_ARRAY_TYPE",
    "artifact_key_for",
    "build_result_document",
    "error_key_for",
    "manifest_key_for",
    "matrix_from_document",
    "persist_analysis_outputs",
    "phase_key_for",
    "result_key_for",
    "to_document",
]
