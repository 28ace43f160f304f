"""Minimal S3 client helpers."""

from __future__ import annotations

import mimetypes
import re

import boto3
from botocore.client import BaseClient
from botocore.config import Config
import structlog

from app.backend.src.core.config import Settings
from app.backend.src.core.errors import ValidationError

LOGGER = structlog.get_logger(__name__)

MAX_KEY_BYTES = 1024
DEFAULT_CONTENT_TYPE = "application/octet-stream"

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def build_s3_client(settings: Settings) -> BaseClient:
    """Return the S3 client shared by every gateway operation."""

    s3_options = {"addressing_style": "path" if settings.s3_endpoint_url else "virtual"}
    client_kwargs: dict[str, object] = {
        "config": Config(
            signature_version="s3v4",
            s3=s3_options,
            # standard mode counts the initial call as an attempt
            retries={"max_attempts": 1, "mode": "standard"},
        ),
        "region_name": settings.aws_region,
    }

    if settings.s3_endpoint_url:
        client_kwargs["endpoint_url"] = settings.s3_endpoint_url

    if settings.credentials_configured:
        client_kwargs["aws_access_key_id"] = settings.aws_access_key_id
        client_kwargs["aws_secret_access_key"] = settings.aws_secret_access_key
        if settings.aws_session_token:
            client_kwargs["aws_session_token"] = settings.aws_session_token

    LOGGER.info(
        "s3_client_initialized",
        region=settings.aws_region,
        bucket=settings.s3_bucket,
        endpoint=settings.s3_endpoint_url,
        explicit_credentials=settings.credentials_configured,
    )
    return boto3.client("s3", **client_kwargs)


def validate_filename(filename: str | None, *, prefix: str = "") -> str:
    """Return ``filename`` unchanged or raise ``ValidationError``."""

    if filename is None or not filename.strip():
        raise ValidationError("Filename must not be empty")
    if filename != filename.strip():
        raise ValidationError("Filename must not start or end with whitespace")
    if "/" in filename or "\\" in filename:
        raise ValidationError("Filename must not contain path separators")
    if filename in {".", ".."}:
        raise ValidationError("Filename must not be a relative path segment")
    if _CONTROL_CHARS.search(filename):
        raise ValidationError("Filename must not contain control characters")
    if len(build_object_key(prefix, filename).encode("utf-8")) > MAX_KEY_BYTES:
        raise ValidationError("Filename is too long")
    return filename


def build_object_key(prefix: str, filename: str) -> str:
    """Return the namespaced object key for ``filename``."""

    if not prefix:
        return filename
    return f"{prefix}/{filename}"


def strip_prefix(prefix: str, key: str) -> str:
    """Return the filename portion of a key listed under ``prefix``."""

    marker = f"{prefix}/" if prefix else ""
    if marker and key.startswith(marker):
        return key[len(marker):]
    return key


def determine_content_type(filename: str, content_type: str | None = None) -> str:
    """Infer a best-effort content type for uploads."""
    return (
        (content_type or "").strip()
        or mimetypes.guess_type(filename)[0]
        or DEFAULT_CONTENT_TYPE
    )


__all__ = [
    "DEFAULT_CONTENT_TYPE",
    "MAX_KEY_BYTES",
    "build_object_key",
    "build_s3_client",
    "determine_content_type",
    "strip_prefix",
    "validate_filename",
]
