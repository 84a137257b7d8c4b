"""Audit scoring endpoints."""

import asyncio
import uuid

import structlog
from fastapi import APIRouter, status
from sqlalchemy import select

from api.database import DbSession
from api.deps import JobQueueDep
from api.exceptions import NotFoundError, ValidationError
from api.models import Audit, AuditStatus
from api.schemas.audit import AuditRead, AuditScoreRequest
from api.schemas.responses import ScoreMeta, ScoreResponse, SuccessResponse
from worker.extraction.extractor import limits_from_settings
from worker.scoring.criteria import Criterion, get_criteria
from worker.tasks.audit import score_audit

router = APIRouter(prefix="/audits", tags=["audits"])
logger = structlog.get_logger(__name__)


def _criteria_for(body: AuditScoreRequest) -> list[Criterion]:
    try:
        return get_criteria(
            include_preview=body.include_preview,
            overrides=body.criteria_overrides,
        )
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid criteria override: {e}", field="criteria_overrides") from e


@router.post(
    "/score",
    response_model=ScoreResponse,
    summary="Score crawled pages",
)
async def score_pages(body: AuditScoreRequest) -> ScoreResponse:
    """
    Extract and score crawled pages synchronously.

    Returns the audit contract: overall, category and E-E-A-T scores,
    Fix-First list and gates.
    """
    criteria = _criteria_for(body)
    signals, audit_score = await asyncio.to_thread(
        score_audit,
        body.domain,
        [page.to_page() for page in body.pages],
        body.site.to_context(body.domain),
        criteria,
        limits_from_settings(),
    )
    return ScoreResponse(
        data=audit_score.to_dict(),
        meta=ScoreMeta(pages_received=len(body.pages), pages_scored=len(signals)),
    )


@router.post(
    "",
    response_model=SuccessResponse[AuditRead],
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue an audit for scoring",
)
async def create_audit(
    body: AuditScoreRequest,
    db: DbSession,
    queue: JobQueueDep,
) -> SuccessResponse[AuditRead]:
    """
    Create an audit and queue it for background scoring.

    Poll ``GET /v1/audits/{id}`` for the result.
    """
    _criteria_for(body)

    audit = Audit(domain=body.domain, status=AuditStatus.QUEUED.value)
    db.add(audit)
    # Commit before enqueueing so the worker can see the row
    await db.commit()
    await db.refresh(audit)

    job = queue.enqueue_audit(
        audit.id,
        body.domain,
        [page.model_dump() for page in body.pages],
        body.site.model_dump(),
        include_preview=body.include_preview,
        criteria_overrides=body.criteria_overrides,
    )
    logger.info("audit_queued", audit_id=str(audit.id), job_id=job.id, pages=len(body.pages))

    return SuccessResponse(data=AuditRead.model_validate(audit), meta={"job_id": job.id})


@router.get(
    "/{audit_id}",
    response_model=SuccessResponse[AuditRead],
    summary="Get an audit",
)
async def get_audit(audit_id: uuid.UUID, db: DbSession) -> SuccessResponse[AuditRead]:
    """Get an audit with its result or failure code."""
    result = await db.execute(select(Audit).where(Audit.id == audit_id))
    audit = result.scalar_one_or_none()
    if not audit:
        raise NotFoundError("Audit", str(audit_id))
    return SuccessResponse(data=AuditRead.model_validate(audit))
