"""GEO adjusted score.

Blends structural readiness (the audit score) with measured AI visibility.
High citation rates add a bounded bonus on top of the structural score so
proven performance is rewarded while structure stays the main driver. The
performance flag only feeds explanatory text, it never changes stored scores.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from api.config import GEO_MAX_BONUS


class PerformanceFlag(StrEnum):
    """How structure and citations relate for a site."""

    CITATION_OVERPERFORMANCE = "citation_overperformance"
    STRUCTURAL_ADVANTAGE = "structural_advantage"
    BALANCED = "balanced"


# (assistant, [(min_rate, bonus), ...]) checked highest threshold first
BONUS_TIERS: dict[str, list[tuple[float, int]]] = {
    "chatgpt": [(0.50, 5), (0.30, 3)],
    "claude": [(0.50, 5), (0.30, 3)],
    "perplexity": [(0.75, 3), (0.50, 2)],
}

SOURCE_ALIASES = {
    "chatgpt": "chatgpt",
    "openai": "chatgpt",
    "chatgpt_search": "chatgpt",
    "claude": "claude",
    "perplexity": "perplexity",
    "brave": "brave",
}


@dataclass
class GeoAdjustment:
    """Result of adjusting a structural score by citation rates."""

    raw: float
    adjusted: float
    bonus: int
    flag: PerformanceFlag
    breakdown: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "raw": round(self.raw, 2),
            "adjusted": round(self.adjusted, 2),
            "bonus": self.bonus,
            "flag": self.flag.value,
            "breakdown": self.breakdown,
            "explanation": performance_explanation(self),
        }


def _tier_bonus(rate: float, tiers: list[tuple[float, int]]) -> int:
    for threshold, bonus in tiers:
        if rate >= threshold:
            return bonus
    return 0


def adjust(structural_score: float, citation_rates: dict[str, float]) -> GeoAdjustment:
    """
    Apply citation bonuses to a structural score.

    Args:
        structural_score: Audit score, 0-100
        citation_rates: Share of queries citing the site, per assistant (0.0-1.0)

    Returns:
        GeoAdjustment with bonus capped at 10 and adjusted capped at 100
    """
    breakdown = {
        assistant: _tier_bonus(citation_rates.get(assistant) or 0.0, tiers)
        for assistant, tiers in BONUS_TIERS.items()
    }
    bonus = min(GEO_MAX_BONUS, sum(breakdown.values()))
    adjusted = min(100.0, structural_score + bonus)
    gap = adjusted - structural_score

    if gap >= 8 and structural_score < 30:
        flag = PerformanceFlag.CITATION_OVERPERFORMANCE
    elif structural_score >= 60 and gap < 3:
        flag = PerformanceFlag.STRUCTURAL_ADVANTAGE
    else:
        flag = PerformanceFlag.BALANCED

    return GeoAdjustment(
        raw=structural_score,
        adjusted=adjusted,
        bonus=bonus,
        flag=flag,
        breakdown=breakdown,
    )


def extract_citation_rates(summary: dict[str, Any] | None) -> dict[str, float]:
    """
    Read per-assistant citation rates from a citations summary.

    The summary carries a ``by_source`` list of
    ``{"source", "cited_queries", "total_queries"}`` entries.
    """
    if not summary or not summary.get("by_source"):
        return {}

    rates = {}
    for source in summary["by_source"]:
        name = SOURCE_ALIASES.get(str(source.get("source", "")).lower())
        if name is None:
            continue
        total = source.get("total_queries") or 0
        rates[name] = (source.get("cited_queries") or 0) / total if total > 0 else 0.0
    return rates


def performance_explanation(result: GeoAdjustment) -> str:
    """Human-readable text for the performance flag."""
    if result.flag == PerformanceFlag.CITATION_OVERPERFORMANCE:
        return (
            f"Strong AI visibility (+{result.bonus} bonus) despite low structural score. "
            "Brand authority and content relevance are driving citations. "
            "Improving schema and provenance would raise the ceiling."
        )
    if result.flag == PerformanceFlag.STRUCTURAL_ADVANTAGE:
        return (
            f"Excellent structural readiness with {result.raw:.0f}/100 raw score. "
            "Citation rates usually follow as answer engines index the improvements."
        )
    if result.bonus == 0:
        return (
            "GEO score reflects structural readiness. "
            "Run citations to measure real-world AI visibility."
        )
    return (
        f"Good balance between structure ({result.raw:.0f}/100) and visibility "
        f"(+{result.bonus} citation bonus)."
    )
