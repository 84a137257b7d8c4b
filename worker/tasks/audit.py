"""Audit scoring background task."""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import structlog
from rq import get_current_job
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert

from api.config import get_settings
from api.exceptions import AuditFailedError
from api.models import Audit, AuditFailureCode, AuditStatus, PageSignalsRecord
from worker.extraction.extractor import SoupExtractor, limits_from_settings
from worker.extraction.signals import ExtractionLimits, PageSignals
from worker.extraction.urls import normalize_url
from worker.scoring.criteria import Criterion, get_criteria
from worker.scoring.engine import ScoringEngine
from worker.scoring.models import AuditScore, SiteContext

logger = structlog.get_logger(__name__)


@dataclass
class CrawledPage:
    """A page as handed over by the crawler."""

    url: str
    html: str
    status: int = 200
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CrawledPage":
        return cls(
            url=data["url"],
            html=data.get("html") or "",
            status=int(data.get("status", 200)),
            headers={str(k).lower(): str(v) for k, v in (data.get("headers") or {}).items()},
        )

    @property
    def is_scorable(self) -> bool:
        """2xx HTML response with a body."""
        if not 200 <= self.status < 300 or not self.html.strip():
            return False
        content_type = self.headers.get("content-type", "text/html")
        return "html" in content_type.lower()


def site_context_from_dict(domain: str, data: dict[str, Any] | None) -> SiteContext:
    data = data or {}
    return SiteContext(
        domain=domain,
        root_url=data.get("root_url") or f"https://{domain}/",
        site_description=data.get("site_description"),
        crawler_access=dict(data.get("crawler_access") or {}),
        render_parity=data.get("render_parity"),
        seed_terms=data.get("seed_terms"),
    )


def extract_pages(
    pages: list[CrawledPage],
    limits: ExtractionLimits | None = None,
) -> list[PageSignals]:
    """
    Extract signals for every scorable page, in crawl order.

    Non-2xx and non-HTML responses are skipped, as are repeated URLs.
    A page that fails extraction is logged and skipped so the rest of
    the audit can still be scored.
    """
    extractor = SoupExtractor(limits)
    seen: set[str] = set()
    signals = []
    for page in pages:
        key = normalize_url(page.url) or page.url
        if key in seen:
            continue
        seen.add(key)

        if not page.is_scorable:
            logger.debug("page_skipped", url=page.url, status=page.status)
            continue
        try:
            signals.append(extractor.extract(page.html, page.url))
        except Exception as e:
            logger.warning("page_extraction_failed", url=page.url, error=str(e))
    return signals


def score_audit(
    domain: str,
    pages: list[CrawledPage],
    site: SiteContext | None = None,
    criteria: list[Criterion] | None = None,
    limits: ExtractionLimits | None = None,
) -> tuple[list[PageSignals], AuditScore]:
    """
    Extract and score a crawled site.

    Raises:
        AuditFailedError: If there is nothing that can be scored
    """
    if not pages:
        raise AuditFailedError(AuditFailureCode.NO_PAGES, f"No pages were crawled for {domain}")

    signals = extract_pages(pages, limits)
    if not signals:
        raise AuditFailedError(
            AuditFailureCode.NO_SCORABLE_PAGES,
            f"None of the {len(pages)} crawled pages for {domain} returned scorable HTML",
        )

    settings = get_settings()
    engine = ScoringEngine(fix_first_limit=settings.fix_first_limit)
    try:
        audit_score = engine.score(
            signals,
            criteria or get_criteria(),
            site or SiteContext(domain=domain),
        )
    except Exception as e:
        raise AuditFailedError(AuditFailureCode.SCORING_FAILED, f"Scoring failed: {e}") from e
    return signals, audit_score


async def update_audit(audit_id: uuid.UUID, **values: Any) -> None:
    """Update fields on an audit row."""
    from api.database import get_session_maker

    async with get_session_maker()() as db:
        result = await db.execute(select(Audit).where(Audit.id == audit_id))
        audit = result.scalar_one_or_none()
        if not audit:
            logger.error("audit_not_found", audit_id=str(audit_id))
            return
        for name, value in values.items():
            setattr(audit, name, value)
        await db.commit()


async def save_page_signals(
    audit_id: uuid.UUID,
    signals: list[PageSignals],
    audit_score: AuditScore,
) -> int:
    """Upsert one PageSignals row per (audit, url)."""
    from api.database import get_session_maker

    if not signals:
        return 0
    by_url = {page.url: page for page in audit_score.page_scores}
    rows = []
    for page in signals:
        page_score = by_url.get(page.url)
        rows.append(
            {
                "audit_id": audit_id,
                "url": page.url,
                "signals": page.to_dict(),
                "check_results": [r.to_dict() for r in page_score.results] if page_score else None,
                "overall": page_score.overall if page_score else None,
            }
        )

    stmt = insert(PageSignalsRecord).values(rows)
    stmt = stmt.on_conflict_do_update(
        constraint="uq_page_signals_audit_url",
        set_={
            "signals": stmt.excluded.signals,
            "check_results": stmt.excluded.check_results,
            "overall": stmt.excluded.overall,
            "updated_at": func.now(),
        },
    )
    async with get_session_maker()() as db:
        await db.execute(stmt)
        await db.commit()
    return len(rows)


async def _mark_failed(audit_id: uuid.UUID, failure_code: str, detail: str) -> None:
    await update_audit(
        audit_id,
        status=AuditStatus.FAILED.value,
        failure_code=failure_code,
        failure_detail=detail,
        completed_at=datetime.now(UTC),
    )


def run_audit_scoring_sync(
    audit_id: str,
    domain: str,
    pages: list[dict[str, Any]],
    site: dict[str, Any] | None = None,
    include_preview: bool = True,
    criteria_overrides: dict[str, dict] | None = None,
) -> dict:
    """
    Synchronous wrapper for the audit scoring task.

    This is the entry point for RQ which requires sync functions.
    """
    import asyncio

    from api.database import reset_engine

    # Fresh connections for the new event loop
    reset_engine()

    return asyncio.run(
        run_audit_scoring(
            uuid.UUID(audit_id),
            domain,
            [CrawledPage.from_dict(p) for p in pages],
            site_context_from_dict(domain, site),
            criteria=get_criteria(include_preview, criteria_overrides),
        )
    )


async def run_audit_scoring(
    audit_id: uuid.UUID,
    domain: str,
    pages: list[CrawledPage],
    site: SiteContext | None = None,
    criteria: list[Criterion] | None = None,
) -> dict:
    """
    Score an audit and persist the results.

    A failure marks the audit failed with a failure code and detail and
    re-raises. The job is not retried automatically.

    Args:
        audit_id: The Audit record ID
        domain: Audited domain
        pages: Crawled pages in crawl order
        site: Site-wide inputs
        criteria: Criteria catalog, defaults to the full catalog

    Returns:
        Dict with the audit outcome
    """
    job = get_current_job()
    started_at = datetime.now(UTC)
    log = logger.bind(audit_id=str(audit_id), domain=domain)
    log.info("audit_scoring_started", pages=len(pages), job_id=job.id if job else None)

    if job:
        job.meta["domain"] = domain
        job.meta["audit_id"] = str(audit_id)
        job.save_meta()

    try:
        await update_audit(audit_id, status=AuditStatus.EXTRACTING.value, started_at=started_at)
        signals, audit_score = score_audit(
            domain,
            pages,
            site=site,
            criteria=criteria,
            limits=limits_from_settings(),
        )
        saved = await save_page_signals(audit_id, signals, audit_score)
        await update_audit(
            audit_id,
            status=AuditStatus.COMPLETE.value,
            overall=audit_score.overall,
            result=audit_score.to_dict(),
            catalog_version=audit_score.catalog_version,
            completed_at=datetime.now(UTC),
        )
    except AuditFailedError as e:
        log.warning("audit_scoring_failed", failure_code=e.failure_code, detail=e.detail)
        await _mark_failed(audit_id, e.failure_code, e.detail)
        raise
    except Exception as e:
        log.exception("audit_failed", error=str(e))
        await _mark_failed(audit_id, AuditFailureCode.INTERNAL_ERROR, str(e))
        raise

    log.info(
        "audit_scoring_completed",
        pages_saved=saved,
        overall=audit_score.overall,
        duration_seconds=(datetime.now(UTC) - started_at).total_seconds(),
    )
    return {
        "status": AuditStatus.COMPLETE.value,
        "audit_id": str(audit_id),
        "overall": audit_score.overall,
        "pages": saved,
    }
