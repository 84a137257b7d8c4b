"""Response envelopes for the v1 endpoints."""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ErrorDetail(BaseModel):
    """Error detail in response."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    field: str | None = Field(None, description="Request field that caused the error")
    details: dict[str, Any] | None = Field(None, description="Failure code, attempts or errors")


class ErrorResponse(BaseModel):
    """Error envelope rendered by the exception handlers."""

    error: ErrorDetail

    def content(self) -> dict[str, Any]:
        """JSON body with unset optional fields left out."""
        return self.model_dump(exclude_none=True)


class SuccessResponse(BaseModel, Generic[T]):
    """``{"data": ..., "meta": ...}`` envelope."""

    data: T
    meta: dict[str, Any] | None = None


class ScoreMeta(BaseModel):
    pages_received: int
    pages_scored: int = Field(..., description="Pages left after dropping unscorable responses")


class CitationMeta(BaseModel):
    recorded: int = Field(0, description="Citations newly stored for the visibility rollup")
    attempts: list[dict[str, Any]] = Field(
        default_factory=list, description="Provider query log for a single answer"
    )


class RankingsMeta(BaseModel):
    week_start: str = Field(..., description="Monday of the ranked week")


class QueuedRollup(BaseModel):
    day: str
    job_id: str


class ScoreResponse(SuccessResponse[dict[str, Any]]):
    """Audit score contract with page counts."""

    meta: ScoreMeta


class CitationResponse(SuccessResponse[dict[str, Any]]):
    """Citation answer, batch or domain result with what was recorded."""

    meta: CitationMeta


class RankingsResponse(SuccessResponse[list[dict[str, Any]]]):
    """Weekly rankings for one week."""

    meta: RankingsMeta
