"""Storage for citations, visibility scores and rankings.

Scores and rankings are keyed by their natural key and written with
overwrite semantics: replacing the rows for a day (or week) drops whatever
was stored for that key before, so a rollup can be re-run safely.
"""

from collections import defaultdict
from datetime import date
from typing import Protocol

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.models.visibility import CitationRecord, RankingRecord, VisibilityScoreRecord
from worker.citations.models import Citation
from worker.visibility.models import Ranking, VisibilityScore

logger = structlog.get_logger(__name__)


def _citation_key(citation: Citation) -> tuple[str, str, str, date]:
    return (citation.provider, citation.query, citation.url, citation.observed_at.date())


class VisibilityStore(Protocol):
    """Persistence used by the rollup engine and the visibility API."""

    async def add_citations(self, citations: list[Citation]) -> int: ...

    async def citations_between(self, start: date, end: date) -> list[Citation]: ...

    async def replace_scores(self, day: date, scores: list[VisibilityScore]) -> int: ...

    async def get_scores(self, day: date) -> list[VisibilityScore]: ...

    async def replace_rankings(self, week_start: date, rankings: list[Ranking]) -> int: ...

    async def get_rankings(self, week_start: date) -> list[Ranking]: ...

    async def latest_scores(self, domain: str) -> list[VisibilityScore]: ...


class InMemoryVisibilityStore:
    """Dict-backed store for tests and local runs."""

    def __init__(self) -> None:
        self._citations: dict[tuple[str, str, str, date], Citation] = {}
        self._scores: dict[date, dict[tuple[date, str, str], VisibilityScore]] = {}
        self._rankings: dict[date, dict[tuple[date, str, str], Ranking]] = {}

    async def add_citations(self, citations: list[Citation]) -> int:
        """Append citations, skipping ones already stored. Returns the number added."""
        added = 0
        for citation in citations:
            key = _citation_key(citation)
            if key in self._citations:
                continue
            self._citations[key] = citation
            added += 1
        return added

    async def citations_between(self, start: date, end: date) -> list[Citation]:
        """Citations observed on days in [start, end], in insertion order."""
        return [c for c in self._citations.values() if start <= c.observed_at.date() <= end]

    async def replace_scores(self, day: date, scores: list[VisibilityScore]) -> int:
        self._scores[day] = {s.key: s for s in scores}
        return len(self._scores[day])

    async def get_scores(self, day: date) -> list[VisibilityScore]:
        return list(self._scores.get(day, {}).values())

    async def replace_rankings(self, week_start: date, rankings: list[Ranking]) -> int:
        self._rankings[week_start] = {r.key: r for r in rankings}
        return len(self._rankings[week_start])

    async def get_rankings(self, week_start: date) -> list[Ranking]:
        return sorted(
            self._rankings.get(week_start, {}).values(),
            key=lambda r: (r.assistant, r.rank),
        )

    async def latest_scores(self, domain: str) -> list[VisibilityScore]:
        """Most recent score per assistant for a domain."""
        latest: dict[str, VisibilityScore] = {}
        for day in sorted(self._scores):
            for score in self._scores[day].values():
                if score.domain == domain:
                    latest[score.assistant] = score
        return [latest[a] for a in sorted(latest)]


def _score_from_record(row: VisibilityScoreRecord) -> VisibilityScore:
    return VisibilityScore(
        day=row.day,
        assistant=row.assistant,
        domain=row.domain,
        score=row.score,
        citations_count=row.citations_count,
        unique_urls=row.unique_urls,
        unique_domains=row.unique_domains,
        citation_component=row.citation_component,
        diversity_component=row.diversity_component,
        recency_score=row.recency_score,
        drift_pct=row.drift_pct,
    )


def _ranking_from_record(row: RankingRecord) -> Ranking:
    return Ranking(
        week_start=row.week_start,
        assistant=row.assistant,
        domain=row.domain,
        rank=row.rank,
        mentions=row.mentions,
        share_pct=row.share_pct,
        previous_rank=row.previous_rank,
        rank_change=row.rank_change,
    )


class SqlVisibilityStore:
    """PostgreSQL-backed store using upserts on the natural keys."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession] | None = None):
        if session_maker is None:
            from api.database import get_session_maker

            session_maker = get_session_maker()
        self.session_maker = session_maker

    async def add_citations(self, citations: list[Citation]) -> int:
        if not citations:
            return 0
        rows = {}
        for c in citations:
            rows.setdefault(
                _citation_key(c),
                {
                    "provider": c.provider,
                    "query": c.query,
                    "url": c.url,
                    "domain": c.domain,
                    "title": c.title,
                    "snippet": c.snippet,
                    "observed_at": c.observed_at,
                    "observed_day": c.observed_at.date(),
                },
            )
        stmt = (
            insert(CitationRecord)
            .values(list(rows.values()))
            .on_conflict_do_nothing(constraint="uq_citation")
            .returning(CitationRecord.id)
        )
        async with self.session_maker() as session:
            result = await session.execute(stmt)
            added = len(result.all())
            await session.commit()
        return added

    async def citations_between(self, start: date, end: date) -> list[Citation]:
        stmt = (
            select(CitationRecord)
            .where(CitationRecord.observed_day >= start, CitationRecord.observed_day <= end)
            .order_by(CitationRecord.observed_at, CitationRecord.id)
        )
        async with self.session_maker() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [
            Citation(
                provider=row.provider,
                query=row.query,
                url=row.url,
                domain=row.domain,
                title=row.title or "",
                snippet=row.snippet or "",
                observed_at=row.observed_at,
            )
            for row in rows
        ]

    async def replace_scores(self, day: date, scores: list[VisibilityScore]) -> int:
        async with self.session_maker() as session:
            await session.execute(delete(VisibilityScoreRecord).where(VisibilityScoreRecord.day == day))
            if scores:
                stmt = insert(VisibilityScoreRecord).values(
                    [
                        {
                            "day": s.day,
                            "assistant": s.assistant,
                            "domain": s.domain,
                            "score": s.score,
                            "citations_count": s.citations_count,
                            "unique_urls": s.unique_urls,
                            "unique_domains": s.unique_domains,
                            "citation_component": s.citation_component,
                            "diversity_component": s.diversity_component,
                            "recency_score": s.recency_score,
                            "drift_pct": s.drift_pct,
                        }
                        for s in scores
                    ]
                )
                stmt = stmt.on_conflict_do_update(
                    constraint="uq_visibility_score",
                    set_={
                        "score": stmt.excluded.score,
                        "citations_count": stmt.excluded.citations_count,
                        "unique_urls": stmt.excluded.unique_urls,
                        "unique_domains": stmt.excluded.unique_domains,
                        "citation_component": stmt.excluded.citation_component,
                        "diversity_component": stmt.excluded.diversity_component,
                        "recency_score": stmt.excluded.recency_score,
                        "drift_pct": stmt.excluded.drift_pct,
                        "updated_at": func.now(),
                    },
                )
                await session.execute(stmt)
            await session.commit()
        logger.debug("visibility_scores_replaced", day=day.isoformat(), count=len(scores))
        return len(scores)

    async def get_scores(self, day: date) -> list[VisibilityScore]:
        stmt = select(VisibilityScoreRecord).where(VisibilityScoreRecord.day == day)
        async with self.session_maker() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_score_from_record(row) for row in rows]

    async def replace_rankings(self, week_start: date, rankings: list[Ranking]) -> int:
        async with self.session_maker() as session:
            await session.execute(delete(RankingRecord).where(RankingRecord.week_start == week_start))
            if rankings:
                stmt = insert(RankingRecord).values(
                    [
                        {
                            "week_start": r.week_start,
                            "assistant": r.assistant,
                            "domain": r.domain,
                            "rank": r.rank,
                            "mentions": r.mentions,
                            "share_pct": r.share_pct,
                            "previous_rank": r.previous_rank,
                            "rank_change": r.rank_change,
                        }
                        for r in rankings
                    ]
                )
                stmt = stmt.on_conflict_do_update(
                    constraint="uq_ranking",
                    set_={
                        "rank": stmt.excluded.rank,
                        "mentions": stmt.excluded.mentions,
                        "share_pct": stmt.excluded.share_pct,
                        "previous_rank": stmt.excluded.previous_rank,
                        "rank_change": stmt.excluded.rank_change,
                        "updated_at": func.now(),
                    },
                )
                await session.execute(stmt)
            await session.commit()
        logger.debug("rankings_replaced", week_start=week_start.isoformat(), count=len(rankings))
        return len(rankings)

    async def get_rankings(self, week_start: date) -> list[Ranking]:
        stmt = (
            select(RankingRecord)
            .where(RankingRecord.week_start == week_start)
            .order_by(RankingRecord.assistant, RankingRecord.rank)
        )
        async with self.session_maker() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_ranking_from_record(row) for row in rows]

    async def latest_scores(self, domain: str) -> list[VisibilityScore]:
        latest_day = (
            select(
                VisibilityScoreRecord.assistant,
                func.max(VisibilityScoreRecord.day).label("day"),
            )
            .where(VisibilityScoreRecord.domain == domain)
            .group_by(VisibilityScoreRecord.assistant)
            .subquery()
        )
        stmt = (
            select(VisibilityScoreRecord)
            .join(
                latest_day,
                (VisibilityScoreRecord.assistant == latest_day.c.assistant)
                & (VisibilityScoreRecord.day == latest_day.c.day),
            )
            .where(VisibilityScoreRecord.domain == domain)
            .order_by(VisibilityScoreRecord.assistant)
        )
        async with self.session_maker() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_score_from_record(row) for row in rows]


def group_citations(
    citations: list[Citation],
) -> dict[tuple[str, str], list[Citation]]:
    """Group citations by (assistant, domain), preserving first-seen order."""
    groups: dict[tuple[str, str], list[Citation]] = defaultdict(list)
    for citation in citations:
        groups[(citation.provider, citation.domain)].append(citation)
    return groups
