"""Stored object API schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StoredObject(_CamelModel):
    """Metadata for one object under the upload prefix."""

    key: str
    filename: str
    size: int
    last_modified: datetime | None = None
    content_type: str | None = None


class PutResult(_CamelModel):
    """Confirmation returned once the backend acknowledges a write."""

    key: str
    filename: str
    size: int
    content_type: str
    etag: str | None = None
    uploaded_at: datetime


class FileListResponse(_CamelModel):
    files: list[StoredObject]


class DeleteResult(_CamelModel):
    filename: str
    deleted: bool = True


class TemporaryAccessURL(_CamelModel):
    """Presigned read URL together with the instant it stops working."""

    url: str
    expires_at: datetime


class ErrorPayload(BaseModel):
    error: str
    message: str
