"""Visibility endpoints: scores, rankings, rollups and GEO adjustment."""

from datetime import date
from typing import Any

import structlog
from fastapi import APIRouter, Query, status

from api.deps import JobQueueDep, VisibilityStoreDep
from api.exceptions import ValidationError
from api.schemas.responses import (
    QueuedRollup,
    RankingsMeta,
    RankingsResponse,
    SuccessResponse,
)
from api.schemas.visibility import GeoAdjustRequest, RollupRequest, VisibilitySummary
from worker.visibility.geo_adjustment import adjust, extract_citation_rates
from worker.visibility.rollup import parse_day, week_start_for

router = APIRouter(prefix="/visibility", tags=["visibility"])
logger = structlog.get_logger(__name__)


@router.get(
    "/rankings",
    response_model=RankingsResponse,
    summary="Weekly rankings",
)
async def get_rankings(
    store: VisibilityStoreDep,
    week: str = Query("today", description="Any day in the week, YYYY-MM-DD or 'today'"),
) -> RankingsResponse:
    """Rankings for the week containing ``week``, per assistant by rank."""
    week_start = week_start_for(parse_day(week))
    rankings = await store.get_rankings(week_start)
    return RankingsResponse(
        data=[r.to_dict() for r in rankings],
        meta=RankingsMeta(week_start=week_start.isoformat()),
    )


@router.post(
    "/rollup",
    response_model=SuccessResponse[QueuedRollup],
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue a daily rollup",
)
async def enqueue_rollup(
    body: RollupRequest, queue: JobQueueDep
) -> SuccessResponse[QueuedRollup]:
    """
    Queue the daily rollup for a day.

    The day is validated up front, so an invalid day is rejected with 400
    instead of failing in the worker.
    """
    day: date = parse_day(body.day)
    job = queue.enqueue_rollup(day)
    logger.info("rollup_queued", day=day.isoformat(), job_id=job.id)
    return SuccessResponse(data=QueuedRollup(day=day.isoformat(), job_id=job.id))


@router.post(
    "/geo-adjust",
    response_model=SuccessResponse[dict[str, Any]],
    summary="Adjust a structural score by citation rates",
)
async def geo_adjust(body: GeoAdjustRequest) -> SuccessResponse[dict[str, Any]]:
    """Apply the bounded citation bonus. Explanatory only, nothing is stored."""
    if body.citation_rates is None and body.citations_summary is None:
        raise ValidationError("Provide citation_rates or citations_summary", field="citation_rates")
    rates = (
        body.citation_rates
        if body.citation_rates is not None
        else extract_citation_rates(body.citations_summary)
    )
    return SuccessResponse(data=adjust(body.structural_score, rates).to_dict())


@router.get(
    "/{domain}",
    response_model=SuccessResponse[list[VisibilitySummary]],
    summary="Latest visibility for a domain",
)
async def get_visibility(
    domain: str,
    store: VisibilityStoreDep,
) -> SuccessResponse[list[VisibilitySummary]]:
    """Latest score, citation count and drift per assistant."""
    scores = await store.latest_scores(domain.lower())
    return SuccessResponse(
        data=[
            VisibilitySummary(assistant=s.assistant, day=s.day.isoformat(), **s.summary())
            for s in scores
        ]
    )
