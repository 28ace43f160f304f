import sys
from pathlib import Path
from unittest.mock import Mock

sys.path.append(str(Path(__file__).resolve().parents[4]))

import pytest

from app.backend.src.core.config import Settings
from app.backend.src.core.errors import ValidationError
from app.backend.src.services import s3


def _capture_client(monkeypatch: pytest.MonkeyPatch) -> dict[str, object]:
    captured: dict[str, object] = {}

    def fake_boto3_client(service_name: str, **kwargs: object) -> Mock:
        captured["service_name"] = service_name
        captured.update(kwargs)
        return Mock()

    monkeypatch.setattr(s3.boto3, "client", fake_boto3_client)
    return captured


def test_build_s3_client_uses_sigv4_without_retries(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = _capture_client(monkeypatch)

    s3.build_s3_client(Settings(AWS_REGION="eu-west-1", S3_BUCKET="bucket"))

    config = captured["config"]
    assert captured["service_name"] == "s3"
    assert captured["region_name"] == "eu-west-1"
    assert getattr(config, "signature_version", None) == "s3v4"
    assert config.retries == {"max_attempts": 1, "mode": "standard"}
    assert "endpoint_url" not in captured


def test_build_s3_client_falls_back_to_default_credential_chain(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.delenv("AWS_SECRET_ACCESS_KEY", raising=False)
    captured = _capture_client(monkeypatch)

    s3.build_s3_client(Settings(AWS_ACCESS_KEY_ID="only-the-id"))

    assert "aws_access_key_id" not in captured
    assert "aws_secret_access_key" not in captured


def test_build_s3_client_passes_explicit_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = _capture_client(monkeypatch)

    s3.build_s3_client(
        Settings(
            AWS_ACCESS_KEY_ID="test",
            AWS_SECRET_ACCESS_KEY="secret",
            AWS_SESSION_TOKEN="token",
            S3_ENDPOINT_URL="http://minio:9000",
        )
    )

    assert captured["aws_access_key_id"] == "test"
    assert captured["aws_secret_access_key"] == "secret"
    assert captured["aws_session_token"] == "token"
    assert captured["endpoint_url"] == "http://minio:9000"
    assert captured["config"].s3 == {"addressing_style": "path"}


def test_validate_filename_accepts_plain_names() -> None:
    assert s3.validate_filename("report 2024.pdf", prefix="uploads") == "report 2024.pdf"
    assert s3.validate_filename("..hidden", prefix="uploads") == "..hidden"


def test_validate_filename_rejects_overlong_keys() -> None:
    with pytest.raises(ValidationError):
        s3.validate_filename("a" * s3.MAX_KEY_BYTES, prefix="uploads")


def test_build_object_key_and_strip_prefix() -> None:
    key = s3.build_object_key("uploads", "note.txt")

    assert key == "uploads/note.txt"
    assert s3.strip_prefix("uploads", key) == "note.txt"
    assert s3.strip_prefix("", "note.txt") == "note.txt"


@pytest.mark.parametrize(
    ("filename", "declared", "expected"),
    [
        ("note.txt", "text/markdown", "text/markdown"),
        ("note.txt", None, "text/plain"),
        ("note.txt", "  ", "text/plain"),
        ("mystery", None, "application/octet-stream"),
    ],
)
def test_determine_content_type(filename: str, declared: str | None, expected: str) -> None:
    assert s3.determine_content_type(filename, declared) == expected
