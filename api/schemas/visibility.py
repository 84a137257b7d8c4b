"""Visibility and GEO adjustment schemas."""

from typing import Annotated, Any

from pydantic import BaseModel, Field

Rate = Annotated[float, Field(ge=0, le=1)]


class VisibilitySummary(BaseModel):
    """Latest visibility of a domain for one assistant."""

    assistant: str
    day: str
    score: float
    citations_count: int
    drift_pct: float


class RollupRequest(BaseModel):
    """Enqueue a daily rollup."""

    day: str = Field("today", description="YYYY-MM-DD, 'today' or 'yesterday'")


class GeoAdjustRequest(BaseModel):
    """Adjust a structural score by citation rates."""

    structural_score: float = Field(..., ge=0, le=100)
    citation_rates: dict[str, Rate] | None = Field(
        None, description="Share of queries citing the site per assistant, 0-1"
    )
    citations_summary: dict[str, Any] | None = Field(
        None, description="Summary with a by_source list, used when rates are not given"
    )
