"""Data models for the citation layer."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class ProviderName(StrEnum):
    """Supported citation providers."""

    PERPLEXITY = "perplexity"
    BRAVE = "brave"
    BING = "bing"
    SEARCH_SUMMARY = "search_summary"


class QueryStatus(StrEnum):
    """Outcome of one provider attempt."""

    SUCCESS = "success"
    EMPTY = "empty"
    ERROR = "error"
    TIMEOUT = "timeout"


class ProviderError(Exception):
    """A provider call failed."""

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: int | None = None,
        retryable: bool = False,
    ):
        self.provider = provider
        self.message = message
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(f"{provider}: {message}")


@dataclass(frozen=True)
class SearchResult:
    """A raw web result as returned by a search provider."""

    url: str
    title: str = ""
    snippet: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"url": self.url, "title": self.title, "snippet": self.snippet}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SearchResult":
        return cls(
            url=str(data.get("url", "")),
            title=str(data.get("title", "")),
            snippet=str(data.get("snippet", "")),
        )


@dataclass(frozen=True)
class Citation:
    """A provider referencing a URL in response to a query."""

    provider: str
    query: str
    url: str
    domain: str
    title: str = ""
    snippet: str = ""
    observed_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "provider": self.provider,
            "query": self.query,
            "url": self.url,
            "domain": self.domain,
            "title": self.title,
            "snippet": self.snippet,
            "observed_at": self.observed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Citation":
        observed = data.get("observed_at")
        return cls(
            provider=data["provider"],
            query=data["query"],
            url=data["url"],
            domain=data["domain"],
            title=data.get("title", ""),
            snippet=data.get("snippet", ""),
            observed_at=datetime.fromisoformat(observed) if observed else datetime.now(UTC),
        )


@dataclass
class ProviderResult:
    """What a provider runner returns for one query."""

    provider: str
    answer: str
    citations: list[Citation]


@dataclass
class CitationAnswer:
    """Answer returned by the orchestrator."""

    query: str
    answer: str
    citations: list[Citation]
    provider: str
    cached: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "query": self.query,
            "answer": self.answer,
            "citations": [c.to_dict() for c in self.citations],
            "provider": self.provider,
            "cached": self.cached,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CitationAnswer":
        return cls(
            query=data["query"],
            answer=data.get("answer", ""),
            citations=[Citation.from_dict(c) for c in data.get("citations", [])],
            provider=data["provider"],
        )


@dataclass
class ProviderQueryLog:
    """Record of one provider attempt."""

    provider: str
    query: str
    status: QueryStatus
    latency_ms: float
    result_count: int = 0
    error: str | None = None
    attempts: int = 1

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "provider": self.provider,
            "query": self.query,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 1),
            "result_count": self.result_count,
            "error": self.error,
            "attempts": self.attempts,
        }


def dedupe_citations(citations: list[Citation]) -> list[Citation]:
    """Drop repeated (provider, url) pairs, keeping the first occurrence."""
    seen: set[tuple[str, str]] = set()
    unique = []
    for citation in citations:
        key = (citation.provider, citation.url)
        if key in seen:
            continue
        seen.add(key)
        unique.append(citation)
    return unique
