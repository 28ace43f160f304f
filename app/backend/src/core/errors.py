"""Error taxonomy shared by the storage gateway and the HTTP layer."""

from __future__ import annotations

import re

from botocore.exceptions import BotoCoreError, ClientError

_ACCESS_KEY_PATTERN = re.compile(r"\b(?:AKIA|ASIA)[A-Z0-9]{16}\b")

NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


class GatewayError(Exception):
    """Base class for every failure the gateway reports."""

    kind = "GatewayError"
    status_code = 500

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.key = key

    def to_payload(self) -> dict[str, str]:
        return {"error": self.kind, "message": self.message}


class ValidationError(GatewayError):
    """The caller supplied a bad filename, payload or parameter."""

    kind = "ValidationError"
    status_code = 400


class NotFound(GatewayError):
    """The requested object does not exist."""

    kind = "NotFound"
    status_code = 404


class WriteFailed(GatewayError):
    kind = "WriteFailed"


class ReadFailed(GatewayError):
    kind = "ReadFailed"


class ListFailed(GatewayError):
    kind = "ListFailed"


class DeleteFailed(GatewayError):
    kind = "DeleteFailed"


class UrlSigningFailed(GatewayError):
    kind = "UrlSigningFailed"


def redact(message: str) -> str:
    """Mask access key identifiers that backends sometimes echo back."""

    return _ACCESS_KEY_PATTERN.sub("****", message)


def error_code(exc: BaseException) -> str:
    """Return the backend error code for ``exc`` or an empty string."""

    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {}) or {}
        code = str(error.get("Code") or "")
        if code:
            return code
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        return str(status) if status else ""
    return ""


def backend_message(exc: BaseException) -> str:
    """Return a caller-safe description of a botocore failure."""

    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {}) or {}
        code = error.get("Code") or "Unknown"
        text = error.get("Message") or str(exc)
        return redact(f"{code}: {text}")
    if isinstance(exc, BotoCoreError):
        return redact(exc.__class__.__name__ + ": " + str(exc))
    return redact(str(exc))


def is_not_found(exc: BaseException) -> bool:
    return error_code(exc) in NOT_FOUND_CODES


__all__ = [
    "DeleteFailed",
    "GatewayError",
    "ListFailed",
    "NOT_FOUND_CODES",
    "NotFound",
    "ReadFailed",
    "UrlSigningFailed",
    "ValidationError",
    "WriteFailed",
    "backend_message",
    "error_code",
    "is_not_found",
    "redact",
]
