"""Object-storage gateway sitting between the HTTP routes and S3.

Every operation is a single backend call on one shared client. Backend
failures are translated into the error types from
:mod:`app.backend.src.core.errors` here, so callers never see botocore
exceptions. Nothing is retried: a failed call is reported once.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from app.backend.src.core.config import MAX_PRESIGN_EXPIRES_SECONDS, Settings
from app.backend.src.core.errors import (
    DeleteFailed,
    ListFailed,
    NotFound,
    ReadFailed,
    UrlSigningFailed,
    ValidationError,
    WriteFailed,
    backend_message,
    is_not_found,
)
from app.backend.src.schemas.storage import (
    DeleteResult,
    PutResult,
    StoredObject,
    TemporaryAccessURL,
)
from app.backend.src.services.metrics import gateway_operations_total, upload_bytes
from app.backend.src.services.s3 import (
    build_object_key,
    build_s3_client,
    determine_content_type,
    strip_prefix,
    validate_filename,
)

LOGGER = structlog.get_logger(__name__)

_BACKEND_ERRORS = (ClientError, BotoCoreError)


@dataclass(frozen=True)
class UploadPayload:
    """In-memory upload handed to :meth:`StorageGateway.put`."""

    filename: str
    data: bytes
    content_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.data)


class ObjectStream:
    """An open ``get_object`` response whose body has not been read yet.

    Headers are available immediately; the body is pulled from the backend
    one chunk at a time by :meth:`iter_chunks`, so a slow consumer slows the
    backend read instead of growing a buffer.
    """

    def __init__(
        self,
        *,
        key: str,
        body: Any,
        content_type: str,
        content_length: int | None,
        etag: str | None,
        last_modified: datetime | None,
        chunk_size: int,
    ) -> None:
        self.key = key
        self.content_type = content_type
        self.content_length = content_length
        self.etag = etag
        self.last_modified = last_modified
        self._body = body
        self._chunk_size = chunk_size
        self._closed = False

    def headers(self) -> dict[str, str]:
        """Return HTTP response headers describing the object."""

        headers = {"Content-Type": self.content_type}
        if self.content_length is not None:
            headers["Content-Length"] = str(self.content_length)
        if self.etag:
            headers["ETag"] = f'"{self.etag}"'
        if self.last_modified is not None:
            headers["Last-Modified"] = self.last_modified.strftime(
                "%a, %d %b %Y %H:%M:%S GMT"
            )
        return headers

    def iter_chunks(self) -> Iterator[bytes]:
        sent = 0
        try:
            for chunk in self._body.iter_chunks(chunk_size=self._chunk_size):
                sent += len(chunk)
                yield chunk
        except _BACKEND_ERRORS as exc:
            message = backend_message(exc)
            LOGGER.error(
                "s3_stream_interrupted",
                key=self.key,
                bytes_sent=sent,
                error=message,
            )
            gateway_operations_total.labels(operation="stream", outcome="error").inc()
            raise ReadFailed(
                f"Failed to read file: {message}", key=self.key
            ) from exc
        finally:
            self.close()
        gateway_operations_total.labels(operation="stream", outcome="success").inc()
        LOGGER.info("s3_stream_completed", key=self.key, bytes_sent=sent)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._body.close()


class StorageGateway:
    """Put, list, stream, delete and presign objects under one key prefix."""

    def __init__(
        self,
        client: BaseClient,
        *,
        bucket: str,
        prefix: str = "uploads",
        max_upload_bytes: int = 5 * 1024 * 1024,
        default_expires_in: int = 3600,
        chunk_size: int = 64 * 1024,
    ) -> None:
        prefix = (prefix or "").strip().strip("/")
        if not prefix:
            raise ValueError("StorageGateway requires a non-empty key prefix")

        self.client = client
        self.bucket = bucket
        self.prefix = prefix
        self.max_upload_bytes = max_upload_bytes
        self.default_expires_in = default_expires_in
        self.chunk_size = chunk_size

    @classmethod
    def from_settings(
        cls, settings: Settings, client: BaseClient | None = None
    ) -> "StorageGateway":
        return cls(
            client if client is not None else build_s3_client(settings),
            bucket=settings.s3_bucket,
            prefix=settings.key_prefix,
            max_upload_bytes=settings.max_upload_bytes,
            default_expires_in=settings.presign_expires_seconds,
            chunk_size=settings.stream_chunk_bytes,
        )

    def key_for(self, filename: str) -> str:
        """Validate ``filename`` and return its namespaced key."""

        validate_filename(filename, prefix=self.prefix)
        return build_object_key(self.prefix, filename)

    def check_upload_size(self, size: int) -> None:
        if size > self.max_upload_bytes:
            raise ValidationError(
                f"File exceeds the maximum upload size of {self.max_upload_bytes} bytes"
            )

    # ------------------------------------------------------------------
    # Put
    # ------------------------------------------------------------------
    def put(self, payload: UploadPayload) -> PutResult:
        """Write ``payload`` to ``<prefix>/<filename>``, replacing any existing object."""

        key = self.key_for(payload.filename)
        self.check_upload_size(payload.size)
        content_type = determine_content_type(payload.filename, payload.content_type)

        LOGGER.info(
            "s3_upload_started", bucket=self.bucket, key=key, size=payload.size
        )
        try:
            response = self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=payload.data,
                ContentType=content_type,
            )
        except _BACKEND_ERRORS as exc:
            message = backend_message(exc)
            LOGGER.error("s3_upload_failed", bucket=self.bucket, key=key, error=message)
            gateway_operations_total.labels(operation="put", outcome="error").inc()
            raise WriteFailed(f"Failed to upload file: {message}", key=key) from exc

        gateway_operations_total.labels(operation="put", outcome="success").inc()
        upload_bytes.observe(payload.size)
        LOGGER.info("uploaded_s3", bucket=self.bucket, key=key, size=payload.size)
        return PutResult(
            key=key,
            filename=payload.filename,
            size=payload.size,
            content_type=content_type,
            etag=_clean_etag(response.get("ETag")),
            uploaded_at=datetime.now(timezone.utc),
        )

    # ------------------------------------------------------------------
    # List
    # ------------------------------------------------------------------
    def list_files(self) -> list[StoredObject]:
        """Return the objects under the prefix in whatever order the backend lists them."""

        list_prefix = f"{self.prefix}/"
        files: list[StoredObject] = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=list_prefix):
                for item in page.get("Contents", []) or []:
                    key = item.get("Key") or ""
                    if not key.startswith(list_prefix) or key == list_prefix:
                        continue
                    filename = strip_prefix(self.prefix, key)
                    files.append(
                        StoredObject(
                            key=key,
                            filename=filename,
                            size=int(item.get("Size") or 0),
                            last_modified=item.get("LastModified"),
                            content_type=determine_content_type(filename),
                        )
                    )
        except _BACKEND_ERRORS as exc:
            message = backend_message(exc)
            LOGGER.error("s3_list_failed", bucket=self.bucket, error=message)
            gateway_operations_total.labels(operation="list", outcome="error").inc()
            raise ListFailed(f"Failed to list files: {message}") from exc

        gateway_operations_total.labels(operation="list", outcome="success").inc()
        LOGGER.info("listed_s3", bucket=self.bucket, prefix=list_prefix, count=len(files))
        return files

    # ------------------------------------------------------------------
    # Get
    # ------------------------------------------------------------------
    def get(self, filename: str) -> ObjectStream:
        """Open ``filename`` for streaming. The caller must drain or close the stream."""

        key = self.key_for(filename)
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
        except _BACKEND_ERRORS as exc:
            if is_not_found(exc):
                LOGGER.info("s3_object_missing", bucket=self.bucket, key=key)
                gateway_operations_total.labels(operation="get", outcome="not_found").inc()
                raise NotFound(f"File not found: {filename}", key=key) from exc
            message = backend_message(exc)
            LOGGER.error("s3_get_failed", bucket=self.bucket, key=key, error=message)
            gateway_operations_total.labels(operation="get", outcome="error").inc()
            raise ReadFailed(f"Failed to read file: {message}", key=key) from exc

        gateway_operations_total.labels(operation="get", outcome="success").inc()
        content_length = response.get("ContentLength")
        return ObjectStream(
            key=key,
            body=response["Body"],
            content_type=response.get("ContentType") or determine_content_type(filename),
            content_length=int(content_length) if content_length is not None else None,
            etag=_clean_etag(response.get("ETag")),
            last_modified=response.get("LastModified"),
            chunk_size=self.chunk_size,
        )

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------
    def delete(self, filename: str) -> DeleteResult:
        """Remove ``filename``. Deleting a missing object succeeds."""

        key = self.key_for(filename)
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except _BACKEND_ERRORS as exc:
            if not is_not_found(exc):
                message = backend_message(exc)
                LOGGER.error("s3_delete_failed", bucket=self.bucket, key=key, error=message)
                gateway_operations_total.labels(operation="delete", outcome="error").inc()
                raise DeleteFailed(f"Failed to delete file: {message}", key=key) from exc
            LOGGER.info("s3_delete_missing_ignored", bucket=self.bucket, key=key)

        gateway_operations_total.labels(operation="delete", outcome="success").inc()
        LOGGER.info("deleted_s3", bucket=self.bucket, key=key)
        return DeleteResult(filename=filename, deleted=True)

    # ------------------------------------------------------------------
    # Temporary URL
    # ------------------------------------------------------------------
    def issue_temporary_url(
        self, filename: str, expires_in: int | None = None
    ) -> TemporaryAccessURL:
        """Presign a GET for ``filename`` without checking that it exists."""

        key = self.key_for(filename)
        window = self.default_expires_in if expires_in is None else expires_in
        if not 1 <= window <= MAX_PRESIGN_EXPIRES_SECONDS:
            raise ValidationError(
                f"expires_in must be between 1 and {MAX_PRESIGN_EXPIRES_SECONDS} seconds"
            )

        issued_at = datetime.now(timezone.utc).replace(microsecond=0)
        try:
            url = self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=window,
            )
        except _BACKEND_ERRORS as exc:
            message = backend_message(exc)
            LOGGER.error("s3_presign_failed", bucket=self.bucket, key=key, error=message)
            gateway_operations_total.labels(operation="presign", outcome="error").inc()
            raise UrlSigningFailed(
                f"Failed to generate temporary URL: {message}", key=key
            ) from exc

        gateway_operations_total.labels(operation="presign", outcome="success").inc()
        LOGGER.info("presigned_s3", bucket=self.bucket, key=key, expires_in=window)
        return TemporaryAccessURL(
            url=url, expires_at=issued_at + timedelta(seconds=window)
        )


def _clean_etag(etag: str | None) -> str | None:
    if not etag:
        return None
    return etag.strip('"')


__all__ = ["ObjectStream", "StorageGateway", "UploadPayload"]
