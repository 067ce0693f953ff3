"""
Error taxonomy and the uniform error envelope.

Every failure leaves the service as:

    {"error": "<category>", "message": "<human text>"}

Components raise the APIError subclasses below; store failures are turned
into InternalError at the component boundary by `store_errors`.
"""

from contextlib import contextmanager
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import get_settings

import structlog

logger = structlog.get_logger()


class APIError(Exception):
    status_code = 500
    error = "Internal Server Error"

    def __init__(self, message: str, headers: dict[str, str] | None = None):
        super().__init__(message)
        self.message = message
        self.headers = headers


class BadRequest(APIError):
    status_code = 400
    error = "Bad Request"


class Unauthorized(APIError):
    status_code = 401
    error = "Unauthorized"


class NotFound(APIError):
    status_code = 404
    error = "Not Found"


class Conflict(APIError):
    status_code = 409
    error = "Conflict"


class TooManyRequests(APIError):
    status_code = 429
    error = "Too Many Requests"


class InternalError(APIError):
    status_code = 500
    error = "Internal Server Error"


def error_body(error: str, message: str) -> dict:
    return {"error": error, "message": message}


@contextmanager
def store_errors(operation: str, message: str, **context):
    """Convert store failures inside the block into a generic InternalError."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception(f"{operation}_failed", error=str(exc), **context)
        raise InternalError(message) from exc


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request."
    first = errors[0]
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path", "header")]
    field = ".".join(loc) or "request body"
    if first.get("type") == "missing":
        return f"{field} is required."
    msg = first.get("msg", "is invalid")
    if first.get("type") == "value_error":
        # Raised by our own validators; already a full sentence
        return msg.removeprefix("Value error, ")
    return f"{field}: {msg}"


async def _api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.error, exc.message),
        headers=exc.headers,
    )


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=error_body(BadRequest.error, _validation_message(exc)),
    )


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    try:
        category = HTTPStatus(exc.status_code).phrase
    except ValueError:
        category = "Error"
    message = exc.detail if isinstance(exc.detail, str) else category
    if exc.status_code == 404 and message == "Not Found":
        message = f"Route {request.method} {request.url.path} not found"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(category, message),
        headers=getattr(exc, "headers", None),
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path, method=request.method)
    message = str(exc) if get_settings().debug else "An error occurred"
    return JSONResponse(
        status_code=500,
        content=error_body(InternalError.error, message),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, _api_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
