"""Citation endpoints: answers with citations and domain search citations."""

import structlog
from fastapi import APIRouter

from api.deps import (
    CitationCacheDep,
    LimiterDep,
    OrchestratorDep,
    SettingsDep,
    VisibilityStoreDep,
)
from api.schemas.citation import AnswerRequest, BatchAnswerRequest, DomainCitationsRequest
from api.schemas.responses import CitationMeta, CitationResponse
from worker.citations.domain_citations import fetch_domain_citations
from worker.citations.models import Citation
from worker.citations.providers import get_search_provider
from worker.visibility.store import VisibilityStore

router = APIRouter(prefix="/citations", tags=["citations"])
logger = structlog.get_logger(__name__)


async def _record(store: VisibilityStore, citations: list[Citation]) -> int:
    if not citations:
        return 0
    added = await store.add_citations(citations)
    logger.info("citations_recorded", received=len(citations), added=added)
    return added


@router.post(
    "/answer",
    response_model=CitationResponse,
    summary="Answer a query with citations",
)
async def answer(
    body: AnswerRequest,
    orchestrator: OrchestratorDep,
    store: VisibilityStoreDep,
) -> CitationResponse:
    """
    Answer a query using the provider fallback chain.

    Responds 502 when every provider failed.
    """
    result = await orchestrator.answer_with_citations(body.domain, body.query)
    recorded = await _record(store, result.citations) if body.record and not result.cached else 0
    return CitationResponse(
        data=result.to_dict(),
        meta=CitationMeta(
            recorded=recorded,
            attempts=[entry.to_dict() for entry in orchestrator.query_logs],
        ),
    )


@router.post(
    "/batch",
    response_model=CitationResponse,
    summary="Answer several queries with citations",
)
async def answer_batch(
    body: BatchAnswerRequest,
    orchestrator: OrchestratorDep,
    store: VisibilityStoreDep,
) -> CitationResponse:
    """Answer deduplicated queries a few at a time. Failed queries are reported per query."""
    result = await orchestrator.answer_batch(body.domain, body.queries)
    recorded = 0
    if body.record:
        fresh = [c for a in result.answers.values() if not a.cached for c in a.citations]
        recorded = await _record(store, fresh)
    return CitationResponse(data=result.to_dict(), meta=CitationMeta(recorded=recorded))


@router.post(
    "/domain",
    response_model=CitationResponse,
    summary="Find a domain's pages in web search",
)
async def domain_citations(
    body: DomainCitationsRequest,
    settings: SettingsDep,
    limiter: LimiterDep,
    cache: CitationCacheDep,
    store: VisibilityStoreDep,
) -> CitationResponse:
    """
    Run the fixed brand and domain queries against Brave or Bing.

    Results are filtered to the domain's registrable root and deduplicated.
    """
    provider = get_search_provider(body.provider, settings)
    result = await fetch_domain_citations(
        body.domain,
        provider,
        brand=body.brand,
        limiter=limiter,
        cache=cache,
        cache_ttl_seconds=settings.citation_cache_ttl_seconds,
    )
    recorded = await _record(store, result.citations) if body.record else 0
    return CitationResponse(data=result.to_dict(), meta=CitationMeta(recorded=recorded))
