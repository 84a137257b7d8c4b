"""Data models for visibility rollups."""

from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import Any


@dataclass
class VisibilityScore:
    """Daily visibility of a domain for one assistant."""

    day: date
    assistant: str
    domain: str
    score: float  # 0-100
    citations_count: int
    unique_urls: int
    citation_component: float
    diversity_component: float
    recency_score: float
    drift_pct: float = 0.0
    # Other domains the same assistant cited that day
    unique_domains: int = 0

    @property
    def key(self) -> tuple[date, str, str]:
        return (self.day, self.assistant, self.domain)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "day": self.day.isoformat(),
            "assistant": self.assistant,
            "domain": self.domain,
            "score": round(self.score, 2),
            "citations_count": self.citations_count,
            "unique_urls": self.unique_urls,
            "unique_domains": self.unique_domains,
            "citation_component": round(self.citation_component, 2),
            "diversity_component": round(self.diversity_component, 2),
            "recency_score": self.recency_score,
            "drift_pct": round(self.drift_pct, 2),
        }

    def summary(self) -> dict[str, Any]:
        """UI contract for one domain/assistant/day."""
        return {
            "score": round(self.score, 2),
            "citations_count": self.citations_count,
            "drift_pct": round(self.drift_pct, 2),
        }


@dataclass
class Ranking:
    """Weekly rank of a domain within one assistant's citations."""

    week_start: date
    assistant: str
    domain: str
    rank: int
    mentions: int
    share_pct: float
    previous_rank: int | None = None
    rank_change: int | None = None

    @property
    def key(self) -> tuple[date, str, str]:
        return (self.week_start, self.assistant, self.domain)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "week_start": self.week_start.isoformat(),
            "assistant": self.assistant,
            "domain": self.domain,
            "rank": self.rank,
            "mentions": self.mentions,
            "share_pct": round(self.share_pct, 2),
            "previous_rank": self.previous_rank,
            "rank_change": self.rank_change,
        }


@dataclass
class RollupResult:
    """Outcome of one rollup invocation."""

    day: date
    week_start: date
    scores_created: int
    rankings_created: int
    alerts: list["VisibilityAlert"] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "day": self.day.isoformat(),
            "week_start": self.week_start.isoformat(),
            "scores_created": self.scores_created,
            "rankings_created": self.rankings_created,
            "alerts": [a.to_dict() for a in self.alerts],
        }


class AlertType(StrEnum):
    """Kinds of visibility alerts."""

    DRIFT = "drift"
    THRESHOLD = "threshold"


class AlertSeverity(StrEnum):
    """Alert severity."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class VisibilityAlert:
    """An alert raised during a rollup."""

    day: date
    type: AlertType
    severity: AlertSeverity
    message: str
    domain: str
    assistant: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "day": self.day.isoformat(),
            "type": self.type.value,
            "severity": self.severity.value,
            "message": self.message,
            "domain": self.domain,
            "assistant": self.assistant,
        }
