from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


logger = logging.getLogger(__name__)


@dataclass
class APIError(Exception):
    status_code: int
    code: str
    message: str
    details: dict[str, Any] | None = None


class NotFoundError(APIError):
    """The runtime has no instance with the requested id."""

    def __init__(self, message: str = "Instance not found.", details: dict[str, Any] | None = None) -> None:
        super().__init__(status_code=404, code="not_found", message=message, details=details)


class ConflictError(APIError):
    """The instance is in a state where the operation no longer applies (410 Gone)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(status_code=410, code="gone", message=message, details=details)


class ValidationError(APIError):
    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(status_code=400, code="invalid_argument", message=message, details=details)


class ConfigurationError(APIError):
    """Deployment misconfiguration (e.g. webhooks not configured). Not retryable."""

    def __init__(self, message: str) -> None:
        super().__init__(status_code=500, code="configuration_error", message=message)


def error_response(*, status_code: int, code: str, message: str, details: dict[str, Any] | None = None) -> JSONResponse:
    payload: dict[str, Any] = {"error": {"code": code, "message": message}}
    if details:
        payload["error"]["details"] = details
    return JSONResponse(status_code=int(status_code), content=payload)


def api_error_response(exc: APIError) -> JSONResponse:
    return error_response(
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


async def api_error_handler(_req: Request, exc: APIError) -> JSONResponse:
    if isinstance(exc, ConfigurationError):
        logger.error("Configuration error: %s", exc.message)
    return api_error_response(exc)


async def unhandled_error_handler(_req: Request, exc: Exception) -> JSONResponse:
    # Keep errors safe by default; details are still traceable via server logs.
    logger.exception("Unhandled error while serving request.", exc_info=exc)
    return error_response(
        status_code=500,
        code="internal",
        message="Internal server error.",
        details={"type": type(exc).__name__},
    )
