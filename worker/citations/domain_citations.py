"""Domain-scoped citation discovery via web search.

Runs three fixed query templates for a domain, keeps results that belong
to the domain's registrable root, and deduplicates by URL. Raw results are
cached per query so the same search can serve different domain filters.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import structlog

from worker.citations.cache import CitationCache, cache_key
from worker.citations.models import Citation, SearchResult
from worker.citations.providers import SearchProvider, with_retry
from worker.citations.rate_limit import RateLimiterRegistry
from worker.extraction.urls import extract_host, registrable_domain, strip_www

logger = structlog.get_logger(__name__)

BRAVE_MAX_RESULTS = 15
BING_MAX_PER_QUERY = 5

# Pause before each query, per provider
POLITENESS_DELAY = {"brave": 0.25, "bing": 0.35}


@dataclass
class DomainCitations:
    """Filtered citations for one domain from one provider."""

    domain: str
    provider: str
    queries: list[str]
    citations: list[Citation] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "provider": self.provider,
            "queries": self.queries,
            "citations": [c.to_dict() for c in self.citations],
            "errors": self.errors,
        }


def brand_for(domain: str, brand: str | None = None) -> str:
    """Use the given brand, else the first label of the domain."""
    if brand and brand.strip():
        return brand.strip()
    return strip_www(domain).split(".")[0]


def build_queries(domain: str, brand: str | None = None) -> list[str]:
    """The three fixed templates: brand + site filter, brand company, root reviews."""
    root = registrable_domain(strip_www(domain))
    name = brand_for(domain, brand)
    return [f"{name} site:{root}", f"{name} company", f"{root} reviews"]


def _matches(url: str, root: str) -> bool:
    host = extract_host(url)
    return bool(host) and registrable_domain(host) == root


async def _search_cached(
    provider: SearchProvider,
    query: str,
    count: int,
    limiter: RateLimiterRegistry,
    cache: CitationCache | None,
    ttl_seconds: int | None,
    delay: float,
    sleep: Callable[[float], Awaitable[None]],
) -> list[SearchResult]:
    key = cache_key(f"{provider.name}:{count}", query)
    if cache is not None:
        cached = await cache.get(key)
        if cached is not None:
            logger.debug("domain_search_cache_hit", provider=provider.name, query=query)
            return [SearchResult.from_dict(item) for item in cached]

    if delay:
        await sleep(delay)

    async def call() -> list[SearchResult]:
        await limiter.acquire(provider.name)
        return await provider.search(query, count=count)

    results = await with_retry(call, sleep=sleep)

    if cache is not None:
        await cache.set(key, [r.to_dict() for r in results], ttl_seconds)
    return results


async def fetch_domain_citations(
    domain: str,
    provider: SearchProvider,
    brand: str | None = None,
    limiter: RateLimiterRegistry | None = None,
    cache: CitationCache | None = None,
    max_per_query: int = BING_MAX_PER_QUERY,
    cache_ttl_seconds: int | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> DomainCitations:
    """
    Find pages on ``domain`` that a search provider surfaces.

    The three template queries run concurrently under the shared per-provider
    limiter. A failing query is recorded and the others still count.

    Args:
        domain: Domain to look for, ``www.`` is ignored
        provider: Brave or Bing search provider
        brand: Brand name, defaults to the first domain label
        limiter: Shared rate limiter registry
        cache: Cache for raw per-query results
        max_per_query: Bing results kept per query
        cache_ttl_seconds: TTL for cached raw results
        sleep: Injectable sleep used for politeness delays and retries

    Returns:
        DomainCitations with filtered, URL-deduplicated citations
    """
    limiter = limiter or RateLimiterRegistry()
    root = registrable_domain(strip_www(domain))
    queries = build_queries(domain, brand)
    delay = POLITENESS_DELAY.get(provider.name, 0.0)
    if provider.name == "bing":
        count, cap = max_per_query, max_per_query * 3
    else:
        count, cap = 20, BRAVE_MAX_RESULTS

    outcomes = await asyncio.gather(
        *(
            _search_cached(provider, q, count, limiter, cache, cache_ttl_seconds, delay, sleep)
            for q in queries
        ),
        return_exceptions=True,
    )

    result = DomainCitations(domain=root, provider=provider.name, queries=queries)
    seen: set[str] = set()
    for query, outcome in zip(queries, outcomes):
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            result.errors[query] = str(outcome)
            logger.warning("domain_search_failed", provider=provider.name, query=query, error=str(outcome))
            continue

        for item in outcome[:count]:
            if item.url in seen or not _matches(item.url, root):
                continue
            seen.add(item.url)
            result.citations.append(
                Citation(
                    provider=provider.name,
                    query=query,
                    url=item.url,
                    domain=root,
                    title=item.title,
                    snippet=item.snippet,
                )
            )

    result.citations = result.citations[:cap]
    logger.info(
        "domain_citations_fetched",
        domain=root,
        provider=provider.name,
        citations=len(result.citations),
        failed_queries=len(result.errors),
    )
    return result
