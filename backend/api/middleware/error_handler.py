"""
Exception handlers for the MIZAN API.

Every error leaves the API as {"error": {code, message, details}}.
Engine errors keep their own code; anything unexpected becomes a bare
INTERNAL_ERROR with the details only in the server log.
"""
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from mizan.errors import (
    DuplicateRuleError,
    InvalidBlockingKeyError,
    InvalidRuleError,
    MissingFieldMappingError,
    MizanError,
    NoLearnablePatternError,
    PatternAlreadyCoveredError,
    RecordSelectionError,
)

logger = structlog.get_logger("mizan.api.errors")


class DomainError(Exception):
    """API-level error with its own status and code."""
    status_code: int = 400
    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotFoundError(DomainError):
    """Unknown or expired session, run or record."""
    status_code = 404
    error_code = "NOT_FOUND"


# Engine errors not listed here answer 400
ENGINE_STATUS_CODES = {
    MissingFieldMappingError: 422,
    NoLearnablePatternError: 422,
    InvalidRuleError: 422,
    InvalidBlockingKeyError: 422,
    RecordSelectionError: 422,
    DuplicateRuleError: 409,
    PatternAlreadyCoveredError: 409,
}


def error_response(status_code: int, code: str, message: str, details: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, "details": details or None}},
    )


def register_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(DomainError)
    async def on_domain_error(request: Request, exc: DomainError) -> JSONResponse:
        return error_response(exc.status_code, exc.error_code, exc.message, exc.details)

    @app.exception_handler(MizanError)
    async def on_engine_error(request: Request, exc: MizanError) -> JSONResponse:
        status_code = ENGINE_STATUS_CODES.get(type(exc), 400)
        logger.warning("engine_error", error_code=exc.error_code, status=status_code, error=exc.message)
        return error_response(status_code, exc.error_code, exc.message, exc.details)

    @app.exception_handler(ValueError)
    async def on_value_error(request: Request, exc: ValueError) -> JSONResponse:
        # malformed config values
        logger.warning("invalid_input", error=str(exc))
        return error_response(422, "INVALID_INPUT", str(exc))

    @app.exception_handler(Exception)
    async def on_unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_error", error_type=type(exc).__name__, error=str(exc), exc_info=exc)
        return error_response(500, "INTERNAL_ERROR", "An unexpected error occurred.")
