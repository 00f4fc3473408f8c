# labstats/api/app.py
from __future__ import annotations

import base64
import binascii
import json
import logging
import os
import time
import uuid
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import ClientError
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum
from pydantic import BaseModel

from labstats.common.documents import persist_analysis_outputs, result_key_for
from labstats.engine import (
    AnalysisError,
    AnalysisRequest,
    InsufficientDataError,
    SingularSystemError,
    ingest_dataset,
    run_analysis,
    validate_dataset,
)
from labstats.engine.core.constants import _MAX_PREVIEW_ROWS
from labstats.engine.core.utils import _format_preview

# ---- Env ----
RESULTS_BUCKET = os.environ.get("RESULTS_BUCKET")    # optional; results are persisted when set
METRICS_NAMESPACE = os.environ.get("METRICS_NAMESPACE", "Labstats/API")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# ---- Logging & Observability ----
logger = logging.getLogger("labstats.api")
if not logger.handlers:
    logging.basicConfig(level=logging.INFO)
logger.setLevel(LOG_LEVEL)

# ---- AWS ----
s3 = boto3.client("s3")
cloudwatch = boto3.client("cloudwatch")

# ---- App ----
app = FastAPI(title="Labstats Analysis API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["*"],
    allow_credentials=False,
)


# ---- Models ----
class InspectDataset(BaseModel):
    """Uploaded file to parse and describe."""
    filename: str = "dataset.csv"
    content_base64: str


class CreateAnalysis(BaseModel):
    """Analysis request plus its data, either inline rows or an uploaded file."""
    request: Dict[str, Any]
    rows: List[Dict[str, Any]] | None = None
    filename: str | None = None
    content_base64: str | None = None


# ---- Helpers ----
def record_metric(name: str, value: float = 1, unit: str = "Count", dimensions: Optional[Dict[str, str]] = None) -> None:
    metric = {"MetricName": name, "Value": value, "Unit": unit}
    if dimensions:
        metric["Dimensions"] = [{"Name": key, "Value": val} for key, val in dimensions.items()]
    try:
        cloudwatch.put_metric_data(Namespace=METRICS_NAMESPACE, MetricData=[metric])
    except Exception as exc:  # pragma: no cover
        logger.debug("failed to emit metric", extra={"metric": name, "error": str(exc)})


def status_for_error(exc: AnalysisError) -> int:
    """422 when the data cannot support the analysis; 400 when the request itself is wrong."""
    if isinstance(exc, (InsufficientDataError, SingularSystemError)):
        return 422
    return 400


def _decode_upload(content_base64: str) -> bytes:
    try:
        return base64.b64decode(content_base64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(status_code=400, detail="content_base64 is not valid base64") from exc


def _error_detail(exc: AnalysisError) -> Dict[str, Any]:
    return {"error": type(exc).__name__, "message": exc.message, "variables": list(exc.variables)}


# ---- Routes ----
@app.get("/health")
def health():
    return {"ok": True}


@app.post("/datasets/inspect")
def inspect_dataset(body: InspectDataset):
    raw = _decode_upload(body.content_base64)
    try:
        dataset = ingest_dataset(body.filename, raw)
    except (ValueError, TypeError) as exc:
        record_metric("DatasetRejected")
        raise HTTPException(status_code=400, detail=f"Could not parse {body.filename}: {exc}") from exc

    record_metric("DatasetInspected", dimensions={"Format": dataset.source_format})
    return {
        "filename": body.filename,
        "sourceFormat": dataset.source_format,
        "rowCount": dataset.row_count,
        "columns": [column.to_dict() for column in dataset.columns],
        "preview": [
            {key: _format_preview(value) for key, value in row.items()}
            for row in dataset.rows[:_MAX_PREVIEW_ROWS]
        ],
        "validation": validate_dataset(dataset),
    }


@app.post("/analyses")
def create_analysis(body: CreateAnalysis):
    if (body.rows is None) == (body.content_base64 is None):
        raise HTTPException(status_code=400, detail="provide exactly one of rows or content_base64")

    try:
        request = AnalysisRequest.from_dict(body.request)
    except AnalysisError as exc:
        record_metric("AnalysisValidationError")
        raise HTTPException(status_code=400, detail=_error_detail(exc)) from exc
    except (TypeError, ValueError) as exc:
        record_metric("AnalysisValidationError")
        raise HTTPException(status_code=400, detail=f"Invalid analysis request: {exc}") from exc

    analysis_id = uuid.uuid4().hex
    data_kwargs: Dict[str, Any]
    if body.rows is not None:
        data_kwargs = {"rows": body.rows}
    else:
        data_kwargs = {
            "body": _decode_upload(body.content_base64 or ""),
            "source_key": body.filename or "dataset.csv",
        }

    try:
        run = run_analysis(request, analysis_id=analysis_id, **data_kwargs)
    except AnalysisError as exc:
        status = status_for_error(exc)
        record_metric("AnalysisFailed", dimensions={"Kind": request.kind, "ErrorType": type(exc).__name__})
        logger.info(
            "analysis rejected",
            extra={"analysis_id": analysis_id, "kind": request.kind, "error": exc.message, "status_code": status},
        )
        raise HTTPException(status_code=status, detail=_error_detail(exc)) from exc
    except ValueError as exc:
        record_metric("DatasetRejected")
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    response: Dict[str, Any] = {
        "analysisId": analysis_id,
        "result": run.result.to_dict(),
        "validation": run.phases.get("validate", {}),
        "manifest": run.manifest,
    }

    if RESULTS_BUCKET:
        try:
            keys = persist_analysis_outputs(analysis_id, RESULTS_BUCKET, run, s3_client=s3)
        except ClientError as exc:
            logger.exception("failed to persist analysis", extra={"analysis_id": analysis_id})
            record_metric("AnalysisPersistError")
            raise HTTPException(status_code=500, detail="Failed to persist analysis") from exc
        response["resultKey"] = keys["result"]
        response["manifestKey"] = keys["manifest"]

    record_metric("AnalysisCompleted", dimensions={"Kind": request.kind})
    return response


@app.get("/analyses/{analysis_id}")
def get_analysis(analysis_id: str):
    if not RESULTS_BUCKET:
        raise HTTPException(status_code=404, detail="Analysis storage is not configured")
    try:
        obj = s3.get_object(Bucket=RESULTS_BUCKET, Key=result_key_for(analysis_id))
    except ClientError as e:
        code = e.response.get("Error", {}).get("Code")
        if code in ("404", "NoSuchKey", "NotFound"):
            raise HTTPException(status_code=404, detail="Analysis not found")
        logger.exception("failed to read analysis", extra={"analysis_id": analysis_id})
        raise HTTPException(status_code=500, detail="Failed to read analysis")
    try:
        document = json.loads(obj["Body"].read())
    except json.JSONDecodeError as exc:
        logger.exception("analysis document is not valid JSON", extra={"analysis_id": analysis_id})
        raise HTTPException(status_code=500, detail="Stored analysis is corrupt") from exc
    return document


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    try:
        response = await call_next(request)
        duration_ms = int((time.time() - start) * 1000)
        logger.info(
            "request completed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "request_id": request_id,
            },
        )
        response.headers.setdefault("x-request-id", request_id)
        return response
    except Exception:
        duration_ms = int((time.time() - start) * 1000)
        logger.exception(
            "request failed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "request_id": request_id,
                "duration_ms": duration_ms,
            },
        )
        raise


handler = Mangum(app)
