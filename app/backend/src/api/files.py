"""Upload, listing, download, delete and temporary-URL endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from app.backend.src.core.errors import ValidationError
from app.backend.src.schemas.storage import (
    DeleteResult,
    ErrorPayload,
    FileListResponse,
    PutResult,
    TemporaryAccessURL,
)
from app.backend.src.services.gateway import StorageGateway, UploadPayload

LOGGER = structlog.get_logger(__name__)

UPLOAD_READ_CHUNK = 64 * 1024

router = APIRouter(
    tags=["files"],
    responses={
        400: {"model": ErrorPayload},
        404: {"model": ErrorPayload},
        500: {"model": ErrorPayload},
    },
)


def get_gateway(request: Request) -> StorageGateway:
    """Return the gateway built once in ``create_app``."""

    return request.app.state.gateway


async def _read_upload(file: UploadFile, limit: int) -> bytes:
    """Read ``file`` into memory, refusing to grow past ``limit`` bytes."""

    if file.size is not None and file.size > limit:
        raise ValidationError(f"File exceeds the maximum upload size of {limit} bytes")

    buffer = bytearray()
    while True:
        chunk = await file.read(UPLOAD_READ_CHUNK)
        if not chunk:
            break
        if len(buffer) + len(chunk) > limit:
            raise ValidationError(
                f"File exceeds the maximum upload size of {limit} bytes"
            )
        buffer.extend(chunk)
    return bytes(buffer)


# --------------------------------------------------------------------------
# POST /upload
# --------------------------------------------------------------------------
@router.post("/upload", status_code=201, response_model=PutResult)
async def upload_file(
    file: UploadFile | None = File(default=None),
    gateway: StorageGateway = Depends(get_gateway),
) -> PutResult:
    """Store the attached file under the upload prefix."""

    if file is None:
        LOGGER.warning("upload_missing_file")
        raise ValidationError("No file provided")

    try:
        data = await _read_upload(file, gateway.max_upload_bytes)
    finally:
        await file.close()

    payload = UploadPayload(
        filename=file.filename or "",
        data=data,
        content_type=file.content_type,
    )
    return await run_in_threadpool(gateway.put, payload)


# --------------------------------------------------------------------------
# GET /files
# --------------------------------------------------------------------------
@router.get("/files", response_model=FileListResponse)
async def list_files(
    gateway: StorageGateway = Depends(get_gateway),
) -> FileListResponse:
    """List stored files. Order is whatever the backend returns."""

    files = await run_in_threadpool(gateway.list_files)
    return FileListResponse(files=files)


# --------------------------------------------------------------------------
# GET /files/{filename}
# --------------------------------------------------------------------------
@router.get("/files/{filename}")
@router.get("/uploads/{filename}", include_in_schema=False)
async def fetch_file(
    filename: str,
    gateway: StorageGateway = Depends(get_gateway),
) -> StreamingResponse:
    """Stream the object body back with its stored content type and length."""

    stream = await run_in_threadpool(gateway.get, filename)
    LOGGER.info(
        "file_stream_started",
        key=stream.key,
        content_type=stream.content_type,
        content_length=stream.content_length,
    )
    return StreamingResponse(
        stream.iter_chunks(),
        headers=stream.headers(),
        media_type=stream.content_type,
        background=BackgroundTask(stream.close),
    )


# --------------------------------------------------------------------------
# DELETE /files/{filename}
# --------------------------------------------------------------------------
@router.delete("/files/{filename}", response_model=DeleteResult)
async def delete_file(
    filename: str,
    gateway: StorageGateway = Depends(get_gateway),
) -> DeleteResult:
    return await run_in_threadpool(gateway.delete, filename)


# --------------------------------------------------------------------------
# GET /files/{filename}/url
# --------------------------------------------------------------------------
@router.get("/files/{filename}/url", response_model=TemporaryAccessURL)
async def temporary_url(
    filename: str,
    expires_in: int | None = Query(
        default=None,
        description="Lifetime of the URL in seconds. Defaults to PRESIGN_EXPIRES_SECONDS.",
    ),
    gateway: StorageGateway = Depends(get_gateway),
) -> TemporaryAccessURL:
    """Return a presigned download URL without checking that the file exists."""

    return await run_in_threadpool(gateway.issue_temporary_url, filename, expires_in)
