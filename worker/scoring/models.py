"""Data models for the scoring engine."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class CheckStatus(StrEnum):
    """Outcome of a single check."""

    OK = "ok"
    WARN = "warn"
    FAIL = "fail"
    NOT_APPLICABLE = "not_applicable"
    ERROR = "error"


# Statuses that contribute weight to rollups
SCORED_STATUSES = frozenset([CheckStatus.OK, CheckStatus.WARN, CheckStatus.FAIL])


@dataclass(frozen=True)
class CheckOutcome:
    """What a check function returns: a 0-100 percentage plus evidence."""

    raw: float
    evidence: tuple[str, ...] = ()
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class CheckResult:
    """Scored result of one criterion for one page, or for the site."""

    criterion_id: str
    score: float  # 0-3 (page results are integers, site aggregates may be fractional)
    status: CheckStatus
    raw: float | None = None  # 0-100
    evidence: list[str] = field(default_factory=list)
    url: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_scored(self) -> bool:
        """Check whether this result contributes to weighted rollups."""
        return self.status in SCORED_STATUSES

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data: dict[str, Any] = {
            "id": self.criterion_id,
            "score": round(self.score, 2),
            "status": self.status.value,
            "raw": round(self.raw, 1) if self.raw is not None else None,
            "evidence": self.evidence,
        }
        if self.url:
            data["url"] = self.url
        if self.details:
            data["details"] = self.details
        return data


@dataclass
class RollupScore:
    """Weighted 0-100 rollup for a category or E-E-A-T pillar."""

    name: str
    score: int
    weight_total: float
    check_count: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "score": self.score,
            "weight_total": round(self.weight_total, 2),
            "check_count": self.check_count,
        }


@dataclass
class Gate:
    """A structural failure that caps the overall score."""

    id: str
    label: str
    tripped: bool
    ceiling: int
    reason: str | None = None
    value: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "label": self.label,
            "tripped": self.tripped,
            "ceiling": self.ceiling,
            "reason": self.reason,
            "value": round(self.value, 2) if self.value is not None else None,
        }


@dataclass
class FixItem:
    """A prioritized fix for UI consumption."""

    criterion_id: str
    label: str
    category: str
    impact: str
    weight: float
    score: float
    status: CheckStatus

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.criterion_id,
            "label": self.label,
            "category": self.category,
            "impact": self.impact,
            "weight": self.weight,
            "score": round(self.score, 2),
            "status": self.status.value,
        }


@dataclass
class SiteContext:
    """Site-wide inputs that are not derived from page HTML."""

    domain: str = ""
    root_url: str | None = None
    site_description: str | None = None
    crawler_access: dict[str, bool] = field(default_factory=dict)  # user agent -> allowed
    render_parity: float | None = None  # 0-100, served vs rendered HTML match
    seed_terms: list[str] | None = None


@dataclass
class PageScore:
    """All results for one page plus its own rollups."""

    url: str
    results: list[CheckResult]
    category_scores: list[RollupScore]
    overall: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "url": self.url,
            "overall": self.overall,
            "checks": [r.to_dict() for r in self.results],
            "categoryScores": [c.to_dict() for c in self.category_scores],
        }


@dataclass
class AuditScore:
    """Complete scoring output for an audit."""

    overall: int
    weighted_overall: int
    category_scores: list[RollupScore]
    eeat_scores: list[RollupScore]
    gates: list[Gate]
    fix_first: list[FixItem]
    check_results: list[CheckResult]
    page_scores: list[PageScore] = field(default_factory=list)
    site_metrics: dict[str, Any] = field(default_factory=dict)
    catalog_version: str = ""

    @property
    def tripped_gates(self) -> list[Gate]:
        return [gate for gate in self.gates if gate.tripped]

    def to_dict(self) -> dict[str, Any]:
        """Convert to the audit JSON contract."""
        return {
            "overall": self.overall,
            "weightedOverall": self.weighted_overall,
            "categoryScores": [c.to_dict() for c in self.category_scores],
            "eeatScores": [e.to_dict() for e in self.eeat_scores],
            "fixFirst": [f.to_dict() for f in self.fix_first],
            "gates": [g.to_dict() for g in self.gates],
            "checks": [r.to_dict() for r in self.check_results],
            "siteMetrics": self.site_metrics,
            "catalogVersion": self.catalog_version,
        }
