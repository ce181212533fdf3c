"""
Custom exception classes and error handling.

Provides consistent error responses across the API.

Taxonomy:
- ValidationError: missing/invalid user input, shown inline, never logged as a fault
- NotFoundError: lookup returned nothing ("login failed" / "no data")
- AuthorizationError: tenant-scope violation, always fails closed
- UpstreamError: record store or object store failure, retryable by the caller
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class NotFoundError(APIException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found: {identifier}",
            error_code="NOT_FOUND"
        )
        self.resource = resource


class ValidationError(APIException):
    """Validation error."""

    def __init__(self, detail: str, field: Optional[str] = None):
        error_code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code=error_code
        )
        self.field = field


class InvalidTransitionError(ValidationError):
    """Lifecycle event not allowed from the current status."""

    def __init__(self, current_status: str, event: str):
        super().__init__(
            detail=f"Cannot {event} an assignment that is {current_status}",
            field="status",
        )
        self.error_code = "INVALID_TRANSITION"
        self.current_status = current_status
        self.event = event


class UnauthorizedError(APIException):
    """Authentication required."""

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"}
        )


class AuthorizationError(APIException):
    """Access denied (tenant scope or role)."""

    def __init__(self, detail: str = "Access denied"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code="FORBIDDEN"
        )


class ConflictError(APIException):
    """Resource conflict (e.g., duplicate entry)."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code="CONFLICT"
        )


class UpstreamError(APIException):
    """Record store or object store call failed; nothing was committed."""

    def __init__(self, detail: str = "Upstream service failed, please retry", cause: Optional[BaseException] = None):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=detail,
            error_code="UPSTREAM_ERROR"
        )
        self.cause = cause
