"""Domain exceptions and the FastAPI handlers that map them onto HTTP responses."""

from __future__ import annotations

import enum
import logging
from typing import Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that carry their own HTTP status."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal_error"
    headers: Optional[Dict[str, str]] = None

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationFailed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_failed"


class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class Gone(AppError):
    status_code = status.HTTP_410_GONE
    code = "gone"


class QuotaExceeded(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "quota_exceeded"

    def __init__(self, message: str, *, code: Optional[str] = None, retry_after: Optional[int] = None):
        super().__init__(message, code=code)
        self.retry_after = retry_after
        if retry_after:
            self.headers = {"Retry-After": str(int(retry_after))}


class ServiceUnavailable(AppError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "service_unavailable"


class DenyReason(str, enum.Enum):
    """Why a share access attempt was refused."""

    NOT_FOUND = "not_found"
    REVOKED = "revoked"
    EXPIRED = "expired"
    QUOTA_EXCEEDED = "quota_exceeded"
    BAD_PASSWORD = "bad_password"


DENY_STATUS = {
    DenyReason.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    DenyReason.REVOKED: status.HTTP_410_GONE,
    DenyReason.EXPIRED: status.HTTP_410_GONE,
    DenyReason.QUOTA_EXCEEDED: status.HTTP_429_TOO_MANY_REQUESTS,
    DenyReason.BAD_PASSWORD: status.HTTP_401_UNAUTHORIZED,
}

DENY_MESSAGES = {
    DenyReason.NOT_FOUND: "Share link not found.",
    DenyReason.REVOKED: "Share link has been revoked.",
    DenyReason.EXPIRED: "Share link has expired.",
    DenyReason.QUOTA_EXCEEDED: "Share link access limit reached.",
    DenyReason.BAD_PASSWORD: "Share password is missing or incorrect.",
}


class ShareAccessDenied(AppError):
    """Raised when the share access gate refuses a token."""

    def __init__(self, reason: DenyReason):
        super().__init__(DENY_MESSAGES[reason], code=reason.value)
        self.reason = reason
        self.status_code = DENY_STATUS[reason]


async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info(
            "%s %s -> %s (%s)", request.method, request.url.path, exc.status_code, exc.code
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "code": exc.code},
        headers=exc.headers,
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error.", "code": "internal_error"},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, handle_app_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
