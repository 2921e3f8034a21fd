"""
Error taxonomy and the JSON error envelope.

Every handled failure leaves the API as `{"error": <kind>, "message": <str>}`
with the HTTP status carrying the category.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from tasklane_shared.schemas.common import ErrorKind

log = structlog.get_logger()


class APIError(Exception):
    """Base class for errors whose message is shown to the caller."""

    status_code: int = 500
    kind: ErrorKind = ErrorKind.INTERNAL
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequest(APIError):
    status_code = 400
    kind = ErrorKind.BAD_REQUEST
    default_message = "Bad request"


class Unauthorized(APIError):
    status_code = 401
    kind = ErrorKind.UNAUTHORIZED
    default_message = "Unauthorized"


class InvalidToken(Unauthorized):
    """Session token failed signature, expiry or shape checks."""
    default_message = "Invalid token"


class Forbidden(APIError):
    status_code = 403
    kind = ErrorKind.FORBIDDEN
    default_message = "Forbidden"


class NotFound(APIError):
    status_code = 404
    kind = ErrorKind.NOT_FOUND
    default_message = "Not found"


class Conflict(APIError):
    status_code = 409
    kind = ErrorKind.CONFLICT
    default_message = "Conflict"


class InternalError(APIError):
    pass


_STATUS_KINDS = {
    400: ErrorKind.BAD_REQUEST,
    401: ErrorKind.UNAUTHORIZED,
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
    405: ErrorKind.BAD_REQUEST,
    409: ErrorKind.CONFLICT,
}


def error_response(status_code: int, kind: ErrorKind | str, message: str) -> JSONResponse:
    kind_value = kind.value if isinstance(kind, ErrorKind) else kind
    return JSONResponse(status_code=status_code, content={"error": kind_value, "message": message})


async def _api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("api.internal_error", path=request.url.path, error=exc.message)
    return error_response(exc.status_code, exc.kind, exc.message)


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    kind = _STATUS_KINDS.get(exc.status_code, ErrorKind.INTERNAL)
    return error_response(exc.status_code, kind, str(exc.detail))


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg', 'invalid')}" if field else first.get("msg", "invalid")
    else:
        message = "Invalid request"
    return error_response(400, ErrorKind.BAD_REQUEST, message)


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("api.unhandled_error", path=request.url.path)
    return error_response(500, ErrorKind.INTERNAL, "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, _api_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
