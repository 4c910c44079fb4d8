"""Exception handlers mapping ordering errors onto HTTP responses.

Every error body has the same shape: ``{"error": true, "message": ...,
"status_code": ..., "errors": {field: [messages]}}``.
"""

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError

from ordering.errors import ConflictError, ExternalServiceError, InvalidTransitionError

logger = structlog.get_logger(__name__)


def _field_errors(exc) -> dict:
    messages = getattr(exc, "messages", None)
    if isinstance(messages, dict):
        return {field: list(msgs) if isinstance(msgs, list | tuple) else [str(msgs)] for field, msgs in messages.items()}
    return {"error": [str(exc)]}


def _error_response(status_code: int, exc: Exception, message: str | None = None) -> JSONResponse:
    errors = _field_errors(exc)
    if message is None:
        message = next((msgs[0] for msgs in errors.values() if msgs), str(exc))
    return JSONResponse(
        status_code=status_code,
        content={"error": True, "message": message, "status_code": status_code, "errors": errors},
    )


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.info("Request rejected", path=request.url.path, errors=_field_errors(exc))
    return _error_response(status.HTTP_400_BAD_REQUEST, exc)


async def conflict_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.info("Request conflicts with current state", path=request.url.path, errors=_field_errors(exc))
    return _error_response(status.HTTP_409_CONFLICT, exc)


async def not_found_handler(request: Request, exc: Exception) -> JSONResponse:
    return _error_response(status.HTTP_404_NOT_FOUND, exc)


async def external_service_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("External service failure", path=request.url.path, error=str(exc))
    message = exc.message if isinstance(exc, ExternalServiceError) else str(exc)
    return _error_response(status.HTTP_502_BAD_GATEWAY, exc, message=message)


def register_exception_handlers(app: FastAPI) -> None:
    """Register ordering error handlers on ``app``."""
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(ConflictError, conflict_error_handler)
    app.add_exception_handler(InvalidTransitionError, conflict_error_handler)
    app.add_exception_handler(ObjectNotFoundError, not_found_handler)
    app.add_exception_handler(ExternalServiceError, external_service_handler)
