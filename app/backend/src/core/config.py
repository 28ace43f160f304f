"""Application configuration utilities."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MAX_PRESIGN_EXPIRES_SECONDS = 604800


class Settings(BaseSettings):
    """Settings derived from environment variables."""

    aws_region: str = Field(default="us-east-1", alias="AWS_REGION")
    s3_bucket: str = Field(default="file-upload-bucket", alias="S3_BUCKET")
    aws_access_key_id: str | None = Field(
        default=None, alias="AWS_ACCESS_KEY_ID"
    )
    aws_secret_access_key: str | None = Field(
        default=None, alias="AWS_SECRET_ACCESS_KEY"
    )
    aws_session_token: str | None = Field(
        default=None, alias="AWS_SESSION_TOKEN"
    )
    s3_endpoint_url: str | None = Field(default=None, alias="S3_ENDPOINT_URL")
    s3_key_prefix: str = Field(default="uploads", alias="S3_KEY_PREFIX")
    presign_expires_seconds: int = Field(
        default=3600,
        ge=1,
        le=MAX_PRESIGN_EXPIRES_SECONDS,
        alias="PRESIGN_EXPIRES_SECONDS",
    )
    max_upload_bytes: int = Field(
        default=5 * 1024 * 1024, gt=0, alias="MAX_UPLOAD_BYTES"
    )
    stream_chunk_bytes: int = Field(
        default=64 * 1024, gt=0, alias="STREAM_CHUNK_BYTES"
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        frozen=True,
    )

    @property
    def key_prefix(self) -> str:
        """Return the logical key prefix without surrounding slashes."""

        return self.s3_key_prefix.strip().strip("/") or "uploads"

    @property
    def credentials_configured(self) -> bool:
        """Return ``True`` when explicit credentials replace the default chain."""

        return bool(self.aws_access_key_id and self.aws_secret_access_key)


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


__all__ = ["MAX_PRESIGN_EXPIRES_SECONDS", "Settings", "get_settings"]
