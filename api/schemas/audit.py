"""Audit scoring schemas."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from worker.scoring.models import SiteContext
from worker.tasks.audit import CrawledPage


class CrawledPageIn(BaseModel):
    """A crawled page handed over for scoring."""

    url: str = Field(..., min_length=1)
    html: str = Field("", description="Raw HTML as served")
    status: int = Field(200, ge=100, le=599, description="HTTP status code")
    headers: dict[str, str] = Field(default_factory=dict, description="Response headers")

    def to_page(self) -> CrawledPage:
        return CrawledPage.from_dict(self.model_dump())


class SiteContextIn(BaseModel):
    """Site-wide inputs that do not come from page HTML."""

    root_url: str | None = None
    site_description: str | None = Field(None, max_length=2000)
    crawler_access: dict[str, bool] = Field(
        default_factory=dict,
        description="robots.txt verdict per AI crawler user agent",
    )
    render_parity: float | None = Field(
        None, ge=0, le=100, description="Served vs rendered HTML match, 0-100"
    )
    seed_terms: list[str] | None = Field(None, max_length=50)

    def to_context(self, domain: str) -> SiteContext:
        return SiteContext(
            domain=domain,
            root_url=self.root_url or f"https://{domain}/",
            site_description=self.site_description,
            crawler_access=dict(self.crawler_access),
            render_parity=self.render_parity,
            seed_terms=self.seed_terms,
        )


class AuditScoreRequest(BaseModel):
    """Score a set of crawled pages."""

    domain: str = Field(..., min_length=3, max_length=255)
    pages: list[CrawledPageIn] = Field(default_factory=list, max_length=500)
    site: SiteContextIn = Field(default_factory=SiteContextIn)
    include_preview: bool = Field(True, description="Score criteria still in preview")
    criteria_overrides: dict[str, dict[str, Any]] | None = Field(
        None, description="Per-criterion overrides, e.g. {'A1': {'enabled': false}}"
    )


class AuditRead(BaseModel):
    """Schema for reading an audit."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    domain: str
    status: str
    overall: int | None
    catalog_version: str | None
    failure_code: str | None
    failure_detail: str | None
    result: dict[str, Any] | None
    started_at: datetime | None
    completed_at: datetime | None
    created_at: datetime
