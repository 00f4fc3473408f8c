import json
import logging
import os
import time
from typing import Any, Dict, Mapping

import boto3

from labstats.common.documents import error_key_for, persist_analysis_outputs
from labstats.engine import AnalysisError, AnalysisRequest, run_analysis
from labstats.engine.core.constants import PHASE_ORDER

s3 = boto3.client("s3")
ddb = boto3.resource("dynamodb")

TABLE_NAME = os.environ["ANALYSES_TABLE"]
ARTIFACTS_BUCKET = os.environ.get("ARTIFACTS_BUCKET")

STATUS_RUNNING = "RUNNING"
STATUS_SUCCEEDED = "SUCCEEDED"
STATUS_FAILED = "FAILED"

logger = logging.getLogger("labstats.analysis")
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())


def ddb_table():
    return ddb.Table(TABLE_NAME)


def now_epoch() -> int:
    return int(time.time())


def ddb_upsert_status(analysis_id: str, status: str, **attrs) -> None:
    expr_names = {"#s": "status"}
    expr_vals = {":s": status, ":u": now_epoch()}
    set_clauses = ["#s = :s", "updatedAt = :u"]

    for k, v in attrs.items():
        placeholder = f":{k}"
        expr_vals[placeholder] = v
        set_clauses.append(f"{k} = {placeholder}")

    ddb_table().update_item(
        Key={"pk": f"analysis#{analysis_id}", "sk": "meta"},
        UpdateExpression="SET " + ", ".join(set_clauses),
        ExpressionAttributeNames=expr_names,
        ExpressionAttributeValues=expr_vals,
    )


def _json_bytes(data: Any) -> bytes:
    return json.dumps(data, indent=2, default=str).encode("utf-8")


def _phase_callback(analysis_id: str):
    def _callback(phase: str, payload: Mapping[str, Any], index: int, total: int) -> None:
        progress = int(((index + 1) / total) * 100)
        try:
            ddb_upsert_status(
                analysis_id,
                STATUS_RUNNING,
                currentPhase=phase,
                phaseIndex=index,
                phaseCount=total,
                progress=progress,
            )
        except Exception:  # pragma: no cover - status streaming must not halt the analysis
            logger.warning("failed to stream phase status", extra={"analysis_id": analysis_id, "phase": phase})

    return _callback


def _mark_failed(analysis_id: str, error_text: str, **attrs) -> None:
    try:
        ddb_upsert_status(analysis_id, STATUS_FAILED, error=error_text[:1000], completedAt=now_epoch(), **attrs)
    except Exception:
        logger.exception("failed to upsert FAILED status", extra={"analysis_id": analysis_id})


def main(event, _ctx) -> Dict[str, Any]:
    analysis_id = event.get("analysisId")
    payload_input = event.get("input") or {}
    bucket = payload_input.get("bucket")
    key = payload_input.get("key")
    request_payload = event.get("request")

    if not analysis_id or not bucket or not key or not request_payload:
        raise ValueError("analysisId, input.bucket, input.key and request are required")

    logger.info("processing analysis", extra={"analysis_id": analysis_id, "input": f"s3://{bucket}/{key}"})

    try:
        ddb_upsert_status(analysis_id, STATUS_RUNNING, inputKey=key, currentPhase=PHASE_ORDER[0], progress=0)
    except Exception:
        logger.warning("failed to upsert initial RUNNING status", extra={"analysis_id": analysis_id})

    target_bucket = ARTIFACTS_BUCKET or bucket

    try:
        request = AnalysisRequest.from_dict(request_payload)
        obj = s3.get_object(Bucket=bucket, Key=key)
        body = obj["Body"]
        try:
            raw = body.read()
        finally:
            body.close()

        run = run_analysis(
            request,
            body=raw,
            source_key=key,
            analysis_id=analysis_id,
            on_phase=_phase_callback(analysis_id),
        )
        keys = persist_analysis_outputs(
            analysis_id, target_bucket, run, s3_client=s3, source_input=payload_input
        )

        try:
            ddb_upsert_status(
                analysis_id,
                STATUS_SUCCEEDED,
                resultKey=keys["result"],
                manifestKey=keys["manifest"],
                resultType=run.manifest.get("resultType"),
                completedAt=now_epoch(),
            )
        except Exception:
            logger.exception("failed to upsert SUCCEEDED status", extra={"analysis_id": analysis_id})

        logger.info("wrote analysis results", extra={"analysis_id": analysis_id, "result_key": keys["result"]})
        return {"ok": True, "analysisId": analysis_id, "resultKey": keys["result"], "manifestKey": keys["manifest"]}

    except AnalysisError as e:
        # data or request problem; terminal, retrying cannot help
        err_txt = f"{type(e).__name__}: {e.message}"
        logger.info("analysis rejected", extra={"analysis_id": analysis_id, "error": err_txt})
        _mark_failed(analysis_id, err_txt, errorType=type(e).__name__, errorVariables=list(e.variables))
        return {"ok": False, "analysisId": analysis_id, "error": err_txt, "errorType": type(e).__name__}

    except Exception as e:
        err_txt = f"{type(e).__name__}: {e}"
        logger.exception("analysis failed", extra={"analysis_id": analysis_id})
        _mark_failed(analysis_id, err_txt)

        try:
            s3.put_object(
                Bucket=target_bucket,
                Key=error_key_for(analysis_id),
                Body=_json_bytes({"analysisId": analysis_id, "error": err_txt}),
                ContentType="application/json",
            )
        except Exception:
            logger.exception("failed to write error artifact", extra={"analysis_id": analysis_id})

        raise
