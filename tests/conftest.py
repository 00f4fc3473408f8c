import hashlib
import io
from datetime import datetime, timezone

import pytest
from botocore.exceptions import ClientError


def _client_error(code: str, operation: str):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class InMemoryS3:
    def __init__(self):
        self._buckets: dict[str, dict[str, dict]] = {}

    def _bucket(self, bucket: str) -> dict[str, dict]:
        return self._buckets.setdefault(bucket, {})

    def put_object(self, Bucket: str, Key: str, Body, ContentType: str | None = None):
        if isinstance(Body, str):
            body_bytes = Body.encode("utf-8")
        elif hasattr(Body, "read"):
            body_bytes = Body.read()
        else:
            body_bytes = Body
        self._bucket(Bucket)[Key] = {
            "Body": body_bytes,
            "LastModified": datetime.now(timezone.utc),
            "Size": len(body_bytes),
            "ContentType": ContentType,
            "ETag": hashlib.md5(body_bytes).hexdigest(),
        }
        return {"ResponseMetadata": {"HTTPStatusCode": 200}}

    def get_object(self, Bucket: str, Key: str):
        bucket = self._bucket(Bucket)
        if Key not in bucket:
            raise _client_error("NoSuchKey", "GetObject")
        metadata = bucket[Key]
        return {"Body": io.BytesIO(metadata["Body"]), "ContentLength": metadata["Size"]}

    def keys(self, bucket: str) -> list[str]:
        return sorted(self._bucket(bucket))

    def body(self, bucket: str, key: str) -> bytes:
        return self._bucket(bucket)[key]["Body"]

    def content_type(self, bucket: str, key: str) -> str | None:
        return self._bucket(bucket)[key]["ContentType"]


class FakeDynamoTable:
    """update_item upserts, as DynamoDB does."""

    def __init__(self):
        self._items: dict[tuple[str, str], dict] = {}
        self.updates: list[dict] = []

    def get_item(self, Key: dict):
        item = self._items.get((Key["pk"], Key["sk"]))
        return {"Item": dict(item)} if item else {}

    def update_item(self, Key: dict, UpdateExpression: str, ExpressionAttributeNames: dict, ExpressionAttributeValues: dict):
        key = (Key["pk"], Key["sk"])
        item = self._items.setdefault(key, {"pk": Key["pk"], "sk": Key["sk"]})
        expression = UpdateExpression.replace("SET", "", 1).strip()
        for part in expression.split(","):
            name_alias, value_alias = [segment.strip() for segment in part.split("=", 1)]
            attribute_name = ExpressionAttributeNames.get(name_alias, name_alias)
            item[attribute_name] = ExpressionAttributeValues[value_alias]
        self.updates.append(dict(item))
        return {"Attributes": dict(item)}


class FakeDynamoResource:
    def __init__(self, table: FakeDynamoTable):
        self._table = table

    def Table(self, _name: str) -> FakeDynamoTable:
        return self._table


@pytest.fixture()
def fake_s3():
    return InMemoryS3()


@pytest.fixture()
def fake_table():
    return FakeDynamoTable()


@pytest.fixture()
def fake_dynamo(fake_table):
    return FakeDynamoResource(fake_table)
