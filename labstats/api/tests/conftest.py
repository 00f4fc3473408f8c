import importlib
import io

import anyio
import httpx
import pytest
from botocore.exceptions import ClientError


def _client_error(code: str, operation: str):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class InMemoryS3:
    def __init__(self):
        self._buckets: dict[str, dict[str, bytes]] = {}
        self.fail_writes = False

    def _bucket(self, bucket: str) -> dict[str, bytes]:
        return self._buckets.setdefault(bucket, {})

    def put_object(self, Bucket: str, Key: str, Body, ContentType: str | None = None):
        if self.fail_writes:
            raise _client_error("AccessDenied", "PutObject")
        self._bucket(Bucket)[Key] = Body.encode("utf-8") if isinstance(Body, str) else bytes(Body)
        return {"ResponseMetadata": {"HTTPStatusCode": 200}}

    def get_object(self, Bucket: str, Key: str):
        bucket = self._bucket(Bucket)
        if Key not in bucket:
            raise _client_error("NoSuchKey", "GetObject")
        return {"Body": io.BytesIO(bucket[Key]), "ContentLength": len(bucket[Key])}

    def keys(self, bucket: str) -> list[str]:
        return sorted(self._bucket(bucket))


class FakeCloudWatch:
    def __init__(self):
        self.metric_calls = []

    def put_metric_data(self, Namespace, MetricData):
        self.metric_calls.append({"Namespace": Namespace, "MetricData": MetricData})
        return {"ResponseMetadata": {"HTTPStatusCode": 200}}


def _build_client(monkeypatch, results_bucket: str | None):
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.setenv("METRICS_NAMESPACE", "Labstats/Test")
    if results_bucket:
        monkeypatch.setenv("RESULTS_BUCKET", results_bucket)
    else:
        monkeypatch.delenv("RESULTS_BUCKET", raising=False)

    from labstats.api import app as app_module

    importlib.reload(app_module)

    fake_s3 = InMemoryS3()
    fake_cw = FakeCloudWatch()
    app_module.s3 = fake_s3
    app_module.cloudwatch = fake_cw

    transport = httpx.ASGITransport(app=app_module.app)
    async_client = httpx.AsyncClient(transport=transport, base_url="http://testserver")

    class SyncClient:
        def request(self, method: str, url: str, **kwargs):
            return anyio.run(lambda: async_client.request(method, url, **kwargs))

        def get(self, url: str, **kwargs):
            return self.request("GET", url, **kwargs)

        def post(self, url: str, **kwargs):
            return self.request("POST", url, **kwargs)

    return async_client, {
        "client": SyncClient(),
        "module": app_module,
        "s3": fake_s3,
        "cloudwatch": fake_cw,
    }


@pytest.fixture()
def api_app(monkeypatch):
    async_client, context = _build_client(monkeypatch, None)
    try:
        yield context
    finally:
        anyio.run(async_client.aclose)


@pytest.fixture()
def stored_api_app(monkeypatch):
    async_client, context = _build_client(monkeypatch, "labstats-results")
    try:
        yield context
    finally:
        anyio.run(async_client.aclose)
