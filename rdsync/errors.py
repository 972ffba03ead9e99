"""
Error taxonomy and the FastAPI glue that renders it.

Handlers raise AppException subclasses; the registered handler turns them
into {"error": {"code", "message", "details"}} with the matching status.
Duplicates are not errors anywhere in this service: they are answered as
successful no-ops by the code that detects them.
"""
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from rdsync.logging_config import set_correlation_id

logger = logging.getLogger(__name__)

class ErrorCode(str, Enum):
    internal_error = "internal_error"
    validation_error = "validation_error"
    unauthorized = "unauthorized"
    forbidden = "forbidden"
    not_found = "not_found"
    invalid_transition = "invalid_transition"
    upstream_error = "upstream_error"
    rd_token_not_configured = "rd_token_not_configured"
    rd_org_not_linked = "rd_org_not_linked"
    rd_pipeline_not_found = "rd_pipeline_not_found"
    rd_not_linked = "rd_not_linked"

class AppException(Exception):
    status_code = 500

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.internal_error,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.error_code.value,
                "message": self.message,
                "details": self.details,
            }
        }

class ValidationException(AppException):
    status_code = 400

    def __init__(
        self,
        message: str,
        field: str | None = None,
        error_code: ErrorCode = ErrorCode.validation_error,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code=error_code, details=details)
        if field:
            self.details["field"] = field

class UnauthorizedException(AppException):
    status_code = 401

    def __init__(self, message: str = "unauthorized"):
        super().__init__(message, error_code=ErrorCode.unauthorized)

class ForbiddenException(AppException):
    status_code = 403

    def __init__(self, message: str = "forbidden"):
        super().__init__(message, error_code=ErrorCode.forbidden)

class NotFoundException(AppException):
    status_code = 404

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} not found: {identifier}",
            error_code=ErrorCode.not_found,
            details={"resource": resource, "identifier": str(identifier)},
        )

class InvalidTransitionException(AppException):
    status_code = 409

    def __init__(self, current: str, target: str):
        super().__init__(
            f"cannot move from {current} to {target}",
            error_code=ErrorCode.invalid_transition,
            details={"current": current, "target": target},
        )

class UpstreamException(AppException):
    """The external CRM failed; the caller may retry."""

    status_code = 502

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, error_code=ErrorCode.upstream_error, details=details)

class CorrelationIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        cid = set_correlation_id(request.headers.get("x-correlation-id"))
        request.state.correlation_id = cid
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = cid
        return response

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(
        level,
        "%s %s -> %s %s",
        request.method,
        request.url.path,
        exc.status_code,
        exc.error_code.value,
        extra={"extra_data": {"message": exc.message}},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    body = AppException("internal error").to_dict()
    return JSONResponse(status_code=500, content=body)

def setup_error_handling(app: FastAPI) -> None:
    app.add_middleware(CorrelationIdMiddleware)
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
