"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes for the shipping domain and global
exception handlers. The `message` of every exception is safe to show to a
seller or buyer; `error_code` is for logs and telemetry.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ResourceNotFoundError(AppException):
    """Raised when a courier, tracking number or order is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


NotFoundError = ResourceNotFoundError


class InvalidAddressError(AppException):
    """Raised for a malformed pincode or address."""

    def __init__(self, message: str = "Invalid address", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_SHIP_ADDRESS",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class InvalidPackageError(AppException):
    """Raised for a non-positive package weight or a negative COD amount."""

    def __init__(self, message: str = "Invalid package", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_SHIP_PACKAGE",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class DuplicateLabelError(AppException):
    """Raised when a shipping label already exists for an order."""

    def __init__(self, order_id: str):
        super().__init__(
            message=f"A shipping label already exists for order {order_id}",
            error_code="ERR_SHIP_DUPLICATE_LABEL",
            status_code=status.HTTP_409_CONFLICT,
            details={"order_id": order_id}
        )


class IssuanceError(AppException):
    """Raised when no unique tracking number could be minted. Retryable."""

    def __init__(self, message: str = "Could not issue a shipping label, please try again shortly", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_SHIP_ISSUANCE",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details
        )


class InvalidTransitionError(AppException):
    """Raised when a status update violates the label lifecycle."""

    def __init__(self, current_status: str, requested_status: str):
        super().__init__(
            message=f"Cannot change shipment status from '{current_status}' to '{requested_status}'",
            error_code="ERR_SHIP_TRANSITION",
            status_code=status.HTTP_409_CONFLICT,
            details={"current_status": current_status, "requested_status": requested_status}
        )


# Global Exception Handlers

HTTP_ERROR_CODES = {
    400: "ERR_BAD_REQUEST",
    401: "ERR_UNAUTHORIZED",
    403: "ERR_FORBIDDEN",
    404: "ERR_NOT_FOUND",
    409: "ERR_CONFLICT",
    503: "ERR_UNAVAILABLE",
}


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    logger.warning(
        "Application error",
        extra={"error_code": exc.error_code, "path": request.url.path, "details": exc.details}
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Guard and auth rejections in the same envelope as AppException."""
    error_code = HTTP_ERROR_CODES.get(exc.status_code, "ERR_HTTP_%d" % exc.status_code)

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": jsonable_errors(exc)
            }
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Strip non-serializable context (e.g. exception instances) from validation errors."""
    errors = []
    for error in exc.errors():
        cleaned = {key: value for key, value in error.items() if key != "ctx"}
        errors.append(cleaned)
    return errors


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s", type(exc).__name__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
