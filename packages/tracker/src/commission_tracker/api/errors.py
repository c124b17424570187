"""Translate tracker errors into JSON responses."""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from commission_tracker.errors import (
    InvalidDate,
    NotFound,
    TrackerError,
    UnknownPeriod,
    UpstreamUnavailable,
    ValidationFailed,
)

logger = structlog.get_logger(__name__)

STATUS_BY_ERROR: list[tuple[type[TrackerError], int]] = [
    (NotFound, 404),
    (ValidationFailed, 422),
    (InvalidDate, 400),
    (UnknownPeriod, 400),
    (UpstreamUnavailable, 503),
]


def status_for(error: TrackerError) -> int:
    for error_type, status in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return 500


async def tracker_error_handler(request: Request, exc: TrackerError) -> JSONResponse:
    status = status_for(exc)
    log = logger.warning if status < 500 or exc.retryable else logger.error
    log("request_failed", path=request.url.path, error=exc.kind, message=exc.message, status=status)
    return JSONResponse(status_code=status, content=exc.to_dict())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TrackerError, tracker_error_handler)  # type: ignore[arg-type]
