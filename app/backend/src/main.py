"""Entrypoint for the FastAPI application."""

import os
from dotenv import load_dotenv

# Load .env locally only (deployments inject env vars)
env_path = os.path.join(os.path.dirname(__file__), "../.env")
if os.path.exists(env_path):
    load_dotenv(dotenv_path=os.path.abspath(env_path))

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import files, health
from .core.config import Settings, get_settings
from .core.errors import GatewayError, ValidationError
from .core.logging import configure_logging
from .schemas.storage import ErrorPayload
from .services.gateway import StorageGateway

LOGGER = structlog.get_logger(__name__)


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    """Render gateway failures as ``{"error": kind, "message": ...}``."""

    log = LOGGER.warning if exc.status_code < 500 else LOGGER.error
    log(
        "request_failed",
        path=request.url.path,
        kind=exc.kind,
        key=exc.key,
        message=exc.message,
    )
    payload = ErrorPayload(**exc.to_payload())
    return JSONResponse(status_code=exc.status_code, content=payload.model_dump())


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed parameters the same way as other caller errors."""

    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ())[1:])
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    return await gateway_error_handler(request, ValidationError(message))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    LOGGER.exception("unhandled_error", path=request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorPayload(
            error="InternalServerError", message="Internal Server Error"
        ).model_dump(),
    )


def create_app(
    settings: Settings | None = None,
    gateway: StorageGateway | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    app = FastAPI(title="File Storage Gateway", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.gateway = gateway or StorageGateway.from_settings(settings)

    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(health.router)
    app.include_router(files.router)

    return app


app = create_app()
