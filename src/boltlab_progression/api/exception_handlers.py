"""
Exception handlers for the FastAPI application.

Progression errors are rendered as {"error": {"code", "message", "details"}}
with the status code the exception carries. Retryable store failures also
send a Retry-After header. Partial writes never do, since repeating them
could apply the same workout twice.
"""

import logging
import traceback
from typing import Any, Dict, Optional, Union

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ErrorCode, PartialWriteError, ProgressionError, StoreError


logger = logging.getLogger(__name__)

# Seconds a client should wait before repeating a retryable request
STORE_RETRY_AFTER_SECONDS = 1


def create_error_response(
    status_code: int,
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Create a standardized error response."""
    content: Dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
        }
    }
    if details:
        content["error"]["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def progression_error_handler(
    request: Request,
    exc: ProgressionError,
) -> JSONResponse:
    """Handle all ProgressionError exceptions."""
    headers = None
    if isinstance(exc, StoreError):
        if exc.retryable and not isinstance(exc, PartialWriteError):
            logger.warning(f"Retryable store failure on {request.url.path}: {exc!r}")
            headers = {"Retry-After": str(STORE_RETRY_AFTER_SECONDS)}
        else:
            logger.error(f"Store failure on {request.url.path}: {exc!r}")

    return create_error_response(
        status_code=exc.status_code,
        code=exc.code.value,
        message=exc.message,
        details=exc.details if exc.details else None,
        headers=headers,
    )


async def request_validation_error_handler(
    request: Request,
    exc: Union[RequestValidationError, PydanticValidationError],
) -> JSONResponse:
    """Handle request body and model validation errors."""
    errors = []
    for error in exc.errors():
        loc = ".".join(str(x) for x in error["loc"])
        errors.append({
            "field": loc,
            "message": error["msg"],
            "type": error["type"],
        })

    return create_error_response(
        status_code=422,
        code=ErrorCode.VALIDATION_ERROR.value,
        message="Request validation failed",
        details={"errors": errors},
    )


async def generic_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error(
        f"Unhandled exception on {request.url.path}: {exc}\n{traceback.format_exc()}"
    )

    return create_error_response(
        status_code=500,
        code=ErrorCode.INTERNAL_ERROR.value,
        message="An unexpected error occurred",
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(ProgressionError, progression_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(PydanticValidationError, request_validation_error_handler)
    # Catch-all, registered last
    app.add_exception_handler(Exception, generic_exception_handler)
