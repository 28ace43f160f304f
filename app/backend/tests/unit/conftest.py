"""Shared fixtures: an in-memory S3 stand-in and an app wired to it."""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from hashlib import md5
from io import BytesIO
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[4]))

import pytest
from botocore.exceptions import ClientError
from botocore.response import StreamingBody
from fastapi.testclient import TestClient

from app.backend.src.core.config import Settings
from app.backend.src.main import create_app
from app.backend.src.services.gateway import StorageGateway


class FakePaginator:
    def __init__(self, client: "FakeS3Client") -> None:
        self._client = client

    def paginate(self, *, Bucket: str, Prefix: str = ""):  # noqa: N803
        self._client.calls.append(("list_objects_v2", Bucket, Prefix))
        keys = [key for key in self._client.objects if key.startswith(Prefix)]
        page_size = self._client.page_size
        for start in range(0, max(len(keys), 1), page_size):
            batch = keys[start:start + page_size]
            page: dict[str, object] = {"KeyCount": len(batch)}
            if batch:
                page["Contents"] = [
                    {
                        "Key": key,
                        "Size": len(self._client.objects[key]["Body"]),
                        "LastModified": self._client.objects[key]["LastModified"],
                        "ETag": self._client.objects[key]["ETag"],
                    }
                    for key in batch
                ]
            yield page


class FakeS3Client:
    """Keeps objects in a dict and answers the handful of calls the gateway makes."""

    def __init__(self, page_size: int = 1000) -> None:
        self.objects: dict[str, dict[str, object]] = {}
        self.calls: list[tuple[str, ...]] = []
        self.page_size = page_size

    def put_object(self, *, Bucket: str, Key: str, Body: bytes, ContentType: str) -> dict:  # noqa: N803
        self.calls.append(("put_object", Bucket, Key))
        etag = f'"{md5(Body).hexdigest()}"'
        self.objects[Key] = {
            "Body": bytes(Body),
            "ContentType": ContentType,
            "ETag": etag,
            "LastModified": datetime.now(timezone.utc).replace(microsecond=0),
        }
        return {"ETag": etag}

    def get_object(self, *, Bucket: str, Key: str) -> dict:  # noqa: N803
        self.calls.append(("get_object", Bucket, Key))
        if Key not in self.objects:
            raise ClientError(
                {"Error": {"Code": "NoSuchKey", "Message": "The specified key does not exist."}},
                "GetObject",
            )
        obj = self.objects[Key]
        body = obj["Body"]
        return {
            "Body": StreamingBody(BytesIO(body), len(body)),
            "ContentLength": len(body),
            "ContentType": obj["ContentType"],
            "ETag": obj["ETag"],
            "LastModified": obj["LastModified"],
        }

    def delete_object(self, *, Bucket: str, Key: str) -> dict:  # noqa: N803
        self.calls.append(("delete_object", Bucket, Key))
        self.objects.pop(Key, None)
        return {}

    def get_paginator(self, operation_name: str) -> FakePaginator:
        assert operation_name == "list_objects_v2"
        return FakePaginator(self)

    def generate_presigned_url(self, ClientMethod: str, Params: dict, ExpiresIn: int) -> str:  # noqa: N803
        self.calls.append(("generate_presigned_url", Params["Bucket"], Params["Key"]))
        return (
            f"https://{Params['Bucket']}.s3.amazonaws.com/{Params['Key']}"
            f"?X-Amz-Expires={ExpiresIn}&X-Amz-Signature=fake"
        )


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        S3_BUCKET="test-bucket",
        AWS_REGION="us-east-1",
        MAX_UPLOAD_BYTES=1024,
        STREAM_CHUNK_BYTES=4,
    )


@pytest.fixture()
def fake_s3() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture()
def gateway(settings: Settings, fake_s3: FakeS3Client) -> StorageGateway:
    return StorageGateway.from_settings(settings, client=fake_s3)


@pytest.fixture()
def client(settings: Settings, gateway: StorageGateway) -> TestClient:
    return TestClient(create_app(settings=settings, gateway=gateway))
