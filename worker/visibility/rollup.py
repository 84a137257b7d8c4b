"""Daily visibility scores and weekly rankings.

The rollup is a batch job keyed by day (scores) and week start (rankings).
Re-running it for the same key replaces the stored rows for that key.
"""

import re
from collections import defaultdict
from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta

import structlog

from api.exceptions import RollupError
from worker.citations.models import Citation
from worker.visibility.alerts import detect_alerts
from worker.visibility.models import Ranking, RollupResult, VisibilityScore
from worker.visibility.store import VisibilityStore, group_citations

logger = structlog.get_logger(__name__)

# Score components
CITATION_COMPONENT_MAX = 50.0
DIVERSITY_COMPONENT_MAX = 30.0
RECENCY_BONUS = (20.0, 15.0, 10.0)  # today, yesterday, two days ago
RECENCY_BONUS_OLDER = 5.0

RANKING_LIMIT = 100

DAY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utc_today() -> date:
    return datetime.now(UTC).date()


def parse_day(value: str | date, today: date | None = None) -> date:
    """
    Parse a rollup day.

    Accepts a ``date``, ``"today"``, ``"yesterday"`` or a strict
    ``YYYY-MM-DD`` string.

    Raises:
        RollupError: If the value is not a valid day
    """
    if isinstance(value, date):
        return value
    text = (value or "").strip()
    if text.lower() == "today":
        return today or utc_today()
    if text.lower() == "yesterday":
        return (today or utc_today()) - timedelta(days=1)
    if not DAY_PATTERN.match(text):
        raise RollupError(f"Invalid rollup day '{value}', expected YYYY-MM-DD", key=str(value))
    try:
        return date.fromisoformat(text)
    except ValueError as e:
        raise RollupError(f"Invalid rollup day '{value}': {e}", key=str(value)) from e


def week_start_for(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def recency_bonus(day: date, reference: date) -> float:
    offset = (reference - day).days
    if 0 <= offset < len(RECENCY_BONUS):
        return RECENCY_BONUS[offset]
    if offset < 0:
        return RECENCY_BONUS[0]
    return RECENCY_BONUS_OLDER


def drift_pct(current: int, previous: int) -> float:
    """Week-over-week change in citation count, as a percentage."""
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100


def compute_daily_scores(
    day: date,
    citations: list[Citation],
    reference: date | None = None,
    current_week_counts: dict[tuple[str, str], int] | None = None,
    previous_week_counts: dict[tuple[str, str], int] | None = None,
) -> list[VisibilityScore]:
    """
    Score every (assistant, domain) pair cited on ``day``.

    Each score is a citation component normalized against the assistant's
    mean citations per domain that day (capped at 50), a diversity component
    normalized against the assistant's highest unique URL count (up to 30)
    and a recency bonus by distance from ``reference``. The total is
    clamped to [0, 100].

    Args:
        day: Day being scored
        citations: Citations observed on ``day``
        reference: Date recency is measured from, defaults to ``day``
        current_week_counts: Citations this week per (assistant, domain)
        previous_week_counts: Citations last week per (assistant, domain)

    Returns:
        Scores ordered by assistant then first-seen domain
    """
    reference = reference or day
    current_week_counts = current_week_counts or {}
    previous_week_counts = previous_week_counts or {}

    day_citations = [c for c in citations if c.observed_at.date() == day]
    groups = group_citations(day_citations)

    by_assistant: dict[str, list[tuple[str, list[Citation]]]] = defaultdict(list)
    for (assistant, domain), items in groups.items():
        by_assistant[assistant].append((domain, items))

    bonus = recency_bonus(day, reference)
    scores = []
    for assistant in sorted(by_assistant):
        entries = by_assistant[assistant]
        mean_cits = sum(len(items) for _, items in entries) / len(entries)
        max_unique = max(len({c.url for c in items}) for _, items in entries)

        for domain, items in entries:
            unique_urls = len({c.url for c in items})
            citation_component = min(
                CITATION_COMPONENT_MAX,
                len(items) * CITATION_COMPONENT_MAX / max(mean_cits, 1),
            )
            diversity_component = unique_urls * DIVERSITY_COMPONENT_MAX / max(max_unique, 1)
            total = citation_component + diversity_component + bonus
            key = (assistant, domain)
            scores.append(
                VisibilityScore(
                    day=day,
                    assistant=assistant,
                    domain=domain,
                    score=max(0.0, min(100.0, total)),
                    citations_count=len(items),
                    unique_urls=unique_urls,
                    unique_domains=len(entries) - 1,
                    citation_component=citation_component,
                    diversity_component=diversity_component,
                    recency_score=bonus,
                    drift_pct=drift_pct(
                        current_week_counts.get(key, len(items)),
                        previous_week_counts.get(key, 0),
                    ),
                )
            )
    return scores


def compute_weekly_rankings(
    week_start: date,
    citations: list[Citation],
    previous: list[Ranking] | None = None,
    limit: int = RANKING_LIMIT,
) -> list[Ranking]:
    """
    Rank domains per assistant by mentions during the week.

    Ties keep first-seen order. Share is the domain's mentions over all
    mentions for that assistant in the week. Only the top ``limit`` ranks
    are kept.
    """
    week_end = week_start + timedelta(days=7)
    previous_ranks = {(r.assistant, r.domain): r.rank for r in previous or []}

    mentions: dict[str, dict[str, int]] = defaultdict(dict)
    for citation in citations:
        if not (week_start <= citation.observed_at.date() < week_end):
            continue
        counts = mentions[citation.provider]
        counts[citation.domain] = counts.get(citation.domain, 0) + 1

    rankings = []
    for assistant in sorted(mentions):
        counts = mentions[assistant]
        total = sum(counts.values())
        # sorted() is stable, so equal counts stay in first-seen order
        ordered = sorted(counts.items(), key=lambda item: -item[1])
        for index, (domain, count) in enumerate(ordered[:limit]):
            rank = index + 1
            previous_rank = previous_ranks.get((assistant, domain))
            rankings.append(
                Ranking(
                    week_start=week_start,
                    assistant=assistant,
                    domain=domain,
                    rank=rank,
                    mentions=count,
                    share_pct=count / total * 100 if total else 0.0,
                    previous_rank=previous_rank,
                    rank_change=previous_rank - rank if previous_rank is not None else None,
                )
            )
    return rankings


def _count_by_key(citations: list[Citation], start: date, end: date) -> dict[tuple[str, str], int]:
    counts: dict[tuple[str, str], int] = defaultdict(int)
    for citation in citations:
        if start <= citation.observed_at.date() <= end:
            counts[(citation.provider, citation.domain)] += 1
    return dict(counts)


class RollupEngine:
    """Runs daily and weekly rollups against a visibility store."""

    def __init__(
        self,
        store: VisibilityStore,
        today: Callable[[], date] = utc_today,
        ranking_limit: int = RANKING_LIMIT,
    ):
        self.store = store
        self.today = today
        self.ranking_limit = ranking_limit

    async def rollup_daily(self, day: str | date = "today") -> RollupResult:
        """
        Compute and store visibility scores for ``day`` and rankings for its week.

        Raises:
            RollupError: If ``day`` is not a valid date. Nothing is written.
        """
        target = parse_day(day, today=self.today())
        week_start = week_start_for(target)
        previous_week_start = week_start - timedelta(days=7)

        log = logger.bind(day=target.isoformat(), week_start=week_start.isoformat())
        log.info("rollup_started")

        citations = await self.store.citations_between(previous_week_start, target)
        scores = compute_daily_scores(
            target,
            citations,
            reference=self.today(),
            current_week_counts=_count_by_key(citations, week_start, target),
            previous_week_counts=_count_by_key(
                citations, previous_week_start, week_start - timedelta(days=1)
            ),
        )
        scores_created = await self.store.replace_scores(target, scores)
        rankings_created = await self.rollup_weekly(week_start)
        alerts = detect_alerts(target, scores)

        log.info(
            "rollup_complete",
            scores_created=scores_created,
            rankings_created=rankings_created,
            alerts=len(alerts),
        )
        return RollupResult(
            day=target,
            week_start=week_start,
            scores_created=scores_created,
            rankings_created=rankings_created,
            alerts=alerts,
        )

    async def rollup_weekly(self, week_start: date) -> int:
        """Recompute and store the rankings for the week starting ``week_start``."""
        week_start = week_start_for(week_start)
        citations = await self.store.citations_between(week_start, week_start + timedelta(days=6))
        previous = await self.store.get_rankings(week_start - timedelta(days=7))
        rankings = compute_weekly_rankings(
            week_start, citations, previous=previous, limit=self.ranking_limit
        )
        return await self.store.replace_rankings(week_start, rankings)
