"""
errors.py — Application error type and the HTTP exception handlers that render it.

Every error response has the shape ``{"success": false, "error": <message>}``.
"""

import enum

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from utils import logger


class ErrorKind(str, enum.Enum):
    VALIDATION = "validation"
    BAD_REQUEST = "bad_request"
    UNAUTHENTICATED = "unauthenticated"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNSUPPORTED_MEDIA_TYPE = "unsupported_media_type"
    STORAGE_ERROR = "storage_error"
    EXTRACTION_FAILED = "extraction_failed"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    UPSTREAM_QUOTA_EXCEEDED = "upstream_quota_exceeded"
    UPSTREAM_RATE_LIMITED = "upstream_rate_limited"
    UPSTREAM_TIMEOUT = "upstream_timeout"
    UPSTREAM_MALFORMED_RESPONSE = "upstream_malformed_response"


STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.BAD_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.UNSUPPORTED_MEDIA_TYPE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.STORAGE_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.EXTRACTION_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.UPSTREAM_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.UPSTREAM_QUOTA_EXCEEDED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.UPSTREAM_RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.UPSTREAM_TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorKind.UPSTREAM_MALFORMED_RESPONSE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class AppError(Exception):
    """An expected failure carrying a user-safe message and its kind."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.BAD_REQUEST):
        super().__init__(message)
        self.message = message
        self.kind = kind

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]


def not_found(what: str) -> AppError:
    return AppError(f"{what} not found", ErrorKind.NOT_FOUND)


def format_validation_errors(errors) -> str:
    """Join every pydantic violation into a single message."""
    messages = []
    for err in errors:
        if err.get("type") == "resume_content":
            messages.append(err["msg"])
            continue
        path = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{path}: {err['msg']}" if path else err["msg"])
    return ", ".join(messages)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


# ── Handlers ──────────────────────────────────────────

async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed (%s): %s", request.method, request.url.path, exc.kind.value, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.kind.value, exc.message)
    return _error_response(exc.status_code, exc.message)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    message = format_validation_errors(exc.errors())
    logger.info("Validation failed for %s %s: %s", request.method, request.url.path, message)
    return _error_response(status.HTTP_400_BAD_REQUEST, message)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        return _error_response(exc.status_code, f"Route {request.url.path} not found")
    response = _error_response(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
