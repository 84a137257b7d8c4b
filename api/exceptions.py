"""Custom exceptions and error handling."""

from typing import Any

from fastapi import status


class GeolensError(Exception):
    """Base exception for the geolens application."""

    def __init__(
        self,
        message: str,
        code: str = "error",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class NotFoundError(GeolensError):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str | None = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id '{identifier}' not found"
        super().__init__(
            message=message,
            code="not_found",
            status_code=status.HTTP_404_NOT_FOUND,
        )


class ValidationError(GeolensError):
    """Validation error."""

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(
            message=message,
            code="validation_error",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
        )


class ConflictError(GeolensError):
    """Resource conflict."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            code="conflict",
            status_code=status.HTTP_409_CONFLICT,
        )


class ProviderExhaustedError(GeolensError):
    """Every citation provider in the fallback chain failed."""

    def __init__(self, attempts: list[dict[str, Any]] | None = None):
        super().__init__(
            message="All citation providers failed",
            code="providers_exhausted",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"attempts": attempts or []},
        )


class RollupError(GeolensError):
    """Visibility rollup could not run for the requested key."""

    def __init__(self, message: str, key: str | None = None):
        super().__init__(
            message=message,
            code="rollup_error",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"key": key} if key else {},
        )


class AuditFailedError(GeolensError):
    """Audit could not be scored at all."""

    def __init__(self, failure_code: str, detail: str):
        self.failure_code = failure_code
        self.detail = detail
        super().__init__(
            message=detail,
            code="audit_failed",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"failure_code": failure_code},
        )
