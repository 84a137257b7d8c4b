"""Tests for custom exceptions and error handling."""

from fastapi import status

from api.exceptions import (
    AuditFailedError,
    ConflictError,
    GeolensError,
    NotFoundError,
    ProviderExhaustedError,
    RollupError,
    ValidationError,
)
from api.models import AuditFailureCode
from api.schemas.responses import CitationMeta, CitationResponse, ErrorDetail, ErrorResponse


def test_geolens_error_base() -> None:
    """Test base GeolensError."""
    error = GeolensError(message="Test error", code="test_error")
    assert error.message == "Test error"
    assert error.code == "test_error"
    assert error.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert error.details == {}


def test_not_found_error() -> None:
    """Test NotFoundError."""
    error = NotFoundError("Audit")
    assert error.message == "Audit not found"
    assert error.code == "not_found"
    assert error.status_code == status.HTTP_404_NOT_FOUND

    error_with_id = NotFoundError("Audit", "123")
    assert error_with_id.message == "Audit with id '123' not found"


def test_validation_error() -> None:
    """Test ValidationError."""
    error = ValidationError("Query too short", field="query")
    assert error.message == "Query too short"
    assert error.code == "validation_error"
    assert error.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert error.details == {"field": "query"}


def test_conflict_error() -> None:
    """Test ConflictError."""
    error = ConflictError("Rollup already running")
    assert error.code == "conflict"
    assert error.status_code == status.HTTP_409_CONFLICT


def test_provider_exhausted_error() -> None:
    """Test ProviderExhaustedError carries every attempt."""
    attempts = [{"provider": "brave", "error": "HTTP 500"}]
    error = ProviderExhaustedError(attempts)
    assert error.message == "All citation providers failed"
    assert error.code == "providers_exhausted"
    assert error.status_code == status.HTTP_502_BAD_GATEWAY
    assert error.details == {"attempts": attempts}


def test_rollup_error() -> None:
    """Test RollupError."""
    error = RollupError("Invalid rollup day", key="2024-13-01")
    assert error.code == "rollup_error"
    assert error.status_code == status.HTTP_400_BAD_REQUEST
    assert error.details == {"key": "2024-13-01"}


def test_audit_failed_error() -> None:
    """Test AuditFailedError keeps the failure code."""
    error = AuditFailedError(AuditFailureCode.NO_PAGES, "No pages were crawled")
    assert error.failure_code == "no_pages"
    assert error.detail == "No pages were crawled"
    assert error.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert error.details == {"failure_code": "no_pages"}


def test_exceptions_inherit_from_base() -> None:
    """Test all custom exceptions inherit from GeolensError."""
    assert issubclass(NotFoundError, GeolensError)
    assert issubclass(ValidationError, GeolensError)
    assert issubclass(ConflictError, GeolensError)
    assert issubclass(ProviderExhaustedError, GeolensError)
    assert issubclass(RollupError, GeolensError)
    assert issubclass(AuditFailedError, GeolensError)


def test_error_envelope_omits_unset_fields() -> None:
    """Test the rendered error body only carries fields that were set."""
    body = ErrorResponse(error=ErrorDetail(code="rollup_error", message="Invalid day"))

    assert body.content() == {"error": {"code": "rollup_error", "message": "Invalid day"}}


def test_citation_envelope_defaults() -> None:
    """Test batch and domain responses report an empty attempt log by default."""
    body = CitationResponse(data={"answers": {}}, meta=CitationMeta(recorded=3))

    assert body.model_dump()["meta"] == {"recorded": 3, "attempts": []}
