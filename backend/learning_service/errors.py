"""Error envelope and exception handlers.

Every error leaving the API has the shape::

    {"error": {"type": ..., "message": ..., "status": ..., "timestamp": ..., "path": ...}}

Routes keep raising `HTTPException`; the handlers registered by
`install_error_handlers` translate them into the envelope. Raise
`ApiError` to override the `type` derived from the status code.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .schemas import ErrorDetail, ErrorResponse

logger = logging.getLogger("learning_service.errors")

ERROR_TYPES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    500: "INTERNAL_SERVER_ERROR",
}
INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
INVALID_BODY_MESSAGE = "Invalid request body"
# raised by FastAPI itself for bodies it cannot decode
BODY_PARSE_ERROR = "There was an error parsing the body"


class ApiError(HTTPException):
    """HTTPException carrying an explicit error `type`."""
    def __init__(self, status_code: int, detail: str, error_type: Optional[str] = None, headers=None):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_type = error_type


def error_body(status: int, message: str, path: str, error_type: Optional[str] = None) -> dict:
    detail = ErrorDetail(
        type=error_type or ERROR_TYPES.get(status, "ERROR"),
        message=message,
        status=status,
        timestamp=datetime.now(timezone.utc).isoformat(),
        path=path,
    )
    return ErrorResponse(error=detail).model_dump(by_alias=True)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    error_type = getattr(exc, "error_type", None)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    if exc.status_code == 400 and message == BODY_PARSE_ERROR:
        message = INVALID_BODY_MESSAGE
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, message, request.url.path, error_type),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info("rejected request body on %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=400,
        content=error_body(400, INVALID_BODY_MESSAGE, request.url.path),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=error_body(500, "Internal Server Error", request.url.path),
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
