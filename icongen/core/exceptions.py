from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse


class AppError(Exception):
    """Base application error with consistent schema."""

    def __init__(
        self,
        message: str,
        code: str = "ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class UnauthorizedError(AppError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, code="UNAUTHORIZED", status_code=status.HTTP_401_UNAUTHORIZED)


class NotFoundError(AppError):
    def __init__(self, message: str = "Not found"):
        super().__init__(message, code="NOT_FOUND", status_code=status.HTTP_404_NOT_FOUND)


class BadRequestError(AppError):
    def __init__(self, message: str = "Bad request", details: dict[str, Any] | None = None):
        super().__init__(message, code="BAD_REQUEST", status_code=status.HTTP_400_BAD_REQUEST, details=details)


class InsufficientCreditsError(AppError):
    def __init__(self, message: str = "You do not have enough credits"):
        super().__init__(message, code="INSUFFICIENT_CREDITS", status_code=status.HTTP_400_BAD_REQUEST)


class ProviderError(AppError):
    """Failure reported by (or while talking to) an upstream provider."""

    retryable = False

    def __init__(
        self,
        message: str,
        provider: str,
        code: str,
        status_code: int,
        details: dict[str, Any] | None = None,
    ):
        self.provider = provider
        super().__init__(
            message,
            code=code,
            status_code=status_code,
            details={"provider": provider, "retryable": self.retryable, **(details or {})},
        )


class ProviderTransientError(ProviderError):
    """Network, timeout, rate limit or 5xx: the same request may succeed later."""

    retryable = True

    def __init__(self, message: str, provider: str, details: dict[str, Any] | None = None):
        super().__init__(
            message,
            provider,
            code="PROVIDER_UNAVAILABLE",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details,
        )


class ProviderTerminalError(ProviderError):
    """Invalid request, exhausted quota or malformed response: retrying will not help."""

    def __init__(self, message: str, provider: str, details: dict[str, Any] | None = None):
        super().__init__(
            message,
            provider,
            code="PROVIDER_ERROR",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details=details,
        )


class ConsistencyError(AppError):
    def __init__(self, message: str = "Request left inconsistent state", details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code="CONSISTENCY_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
        )


class PaymentsUnavailableError(AppError):
    def __init__(self, message: str = "Payments not configured"):
        super().__init__(message, code="PAYMENTS_UNAVAILABLE", status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


def error_response(request: Request, exc: AppError) -> ORJSONResponse:
    body = {
        "error": {
            "message": exc.message,
            "code": exc.code,
            "details": exc.details,
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(status_code=exc.status_code, content=body)


async def app_exception_handler(request: Request, exc: AppError) -> ORJSONResponse:
    return error_response(request, exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> ORJSONResponse:
    body = {
        "error": {
            "message": "Validation error",
            "code": "VALIDATION_ERROR",
            "details": {"errors": exc.errors()},
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=body,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    from icongen.core.logging import get_logger
    get_logger(__name__).exception("unhandled_exception", exc_info=exc)
    body = {
        "error": {
            "message": "Internal server error",
            "code": "INTERNAL_ERROR",
            "details": {},
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body,
    )
