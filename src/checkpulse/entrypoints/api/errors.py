"""Mapping of domain errors to HTTP responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from checkpulse.core.exceptions import (
    CheckinStateError,
    CheckpulseError,
    ConfigurationError,
    ConflictError,
    DataIntegrityError,
    OperationCancelled,
    PermissionDenied,
    ProviderUnavailable,
)

logger = logging.getLogger(__name__)

# Ordered most specific first; the first matching class wins.
STATUS_BY_ERROR: list[tuple[type[CheckpulseError], int]] = [
    (ConflictError, status.HTTP_409_CONFLICT),
    (CheckinStateError, status.HTTP_409_CONFLICT),
    (ConfigurationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (PermissionDenied, status.HTTP_403_FORBIDDEN),
    (ProviderUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
    (OperationCancelled, status.HTTP_503_SERVICE_UNAVAILABLE),
    (DataIntegrityError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def status_for(error: CheckpulseError) -> int:
    """HTTP status code for a domain error."""
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def handle_checkpulse_error(request: Request, exc: Exception) -> JSONResponse:
    """Render a domain error as ``{"detail": ...}``."""
    assert isinstance(exc, CheckpulseError)
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc}")
    else:
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc}")

    headers = None
    if isinstance(exc, ConflictError | ProviderUnavailable):
        headers = {"Retry-After": "30"}
    return JSONResponse(status_code=status_code, content={"detail": str(exc)}, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the domain error handler on an application."""
    app.add_exception_handler(CheckpulseError, handle_checkpulse_error)
