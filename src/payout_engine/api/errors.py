"""Maps engine errors onto HTTP responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from payout_engine.api.schemas import ErrorResponse
from payout_engine.exceptions import (
    InconsistentState,
    InvalidStateTransition,
    NotFound,
    PayoutEngineError,
    SourceUnavailable,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_CODES: dict[type[PayoutEngineError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_CONTENT,
    InvalidStateTransition: status.HTTP_409_CONFLICT,
    NotFound: status.HTTP_404_NOT_FOUND,
    SourceUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
    InconsistentState: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_code_for(exc: PayoutEngineError) -> int:
    """HTTP status for an engine error, following the class hierarchy."""
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def _engine_exception_handler(request: Request, exc: PayoutEngineError) -> JSONResponse:
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            code=exc.code,
            detail=exc.message,
        ).model_dump(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        content=ErrorResponse(
            error="ValidationError",
            code=ValidationError.code,
            detail=str(exc.errors()),
        ).model_dump(),
    )


async def _unexpected_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="InternalError",
            code="INTERNAL_ERROR",
            detail="An unexpected error occurred",
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(PayoutEngineError, _engine_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unexpected_exception_handler)
