"""Citation request schemas."""

from typing import Literal

from pydantic import BaseModel, Field


class AnswerRequest(BaseModel):
    """Answer one query with citations."""

    domain: str = Field(..., min_length=3, max_length=255)
    query: str = Field(..., max_length=500)
    record: bool = Field(True, description="Store the citations for visibility rollups")


class BatchAnswerRequest(BaseModel):
    """Answer several queries with citations."""

    domain: str = Field(..., min_length=3, max_length=255)
    queries: list[str] = Field(..., min_length=1, max_length=25)
    record: bool = Field(True, description="Store the citations for visibility rollups")


class DomainCitationsRequest(BaseModel):
    """Find a domain's pages surfaced by web search."""

    domain: str = Field(..., min_length=3, max_length=255)
    provider: Literal["brave", "bing"] = "brave"
    brand: str | None = Field(None, max_length=100)
    record: bool = Field(True, description="Store the citations for visibility rollups")
