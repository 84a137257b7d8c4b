"""Citation providers - search and answer engines behind one interface."""

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

import httpx
import structlog

from api.exceptions import ValidationError
from worker.citations.models import (
    Citation,
    ProviderError,
    ProviderName,
    ProviderResult,
    SearchResult,
    dedupe_citations,
)
from worker.extraction.urls import extract_host, registrable_domain

if TYPE_CHECKING:
    from api.config import Settings

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Status codes worth retrying before falling through to the next provider
RETRYABLE_STATUS = frozenset([429, 503])

SUMMARY_SYSTEM_PROMPT = (
    "You answer questions using only the numbered sources provided. "
    "Cite sources inline as [n]. Do not use outside knowledge and do not "
    "cite anything that is not in the list."
)
SUMMARY_SOURCES = 8


class ProviderRunner(Protocol):
    """A citation provider. Implementations are selected by ``build_providers``."""

    name: str

    async def run_query(self, query: str) -> ProviderResult: ...


class SearchProvider(Protocol):
    """A provider that can return raw web results."""

    name: str

    async def search(self, query: str, count: int = 10) -> list[SearchResult]: ...


async def with_retry(
    func: Callable[[], Awaitable[T]],
    attempts: int = 3,
    base_delay: float = 0.5,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    jitter: Callable[[], float] = random.random,
) -> T:
    """
    Call ``func`` with exponential backoff on retryable provider errors.

    Only ``ProviderError`` with ``retryable=True`` is retried; anything else
    propagates immediately.
    """
    delay = base_delay
    for attempt in range(attempts):
        try:
            return await func()
        except ProviderError as e:
            if not e.retryable or attempt == attempts - 1:
                raise
            wait = delay + jitter() * base_delay
            logger.info(
                "provider_retry",
                provider=e.provider,
                attempt=attempt + 1,
                status_code=e.status_code,
                wait_seconds=round(wait, 2),
            )
            await sleep(wait)
            delay *= 2
    raise RuntimeError("unreachable")


async def request_json(
    provider: str,
    method: str,
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float = 15.0,
    **kwargs: Any,
) -> Any:
    """
    Send an HTTP request and decode the JSON body.

    Raises:
        ProviderError: on timeouts, transport errors, non-2xx status, or
            an undecodable body. 429 and 503 are marked retryable.
    """
    try:
        if client is not None:
            response = await client.request(method, url, timeout=timeout, **kwargs)
        else:
            async with httpx.AsyncClient(timeout=timeout) as own_client:
                response = await own_client.request(method, url, **kwargs)
    except httpx.TimeoutException as e:
        raise ProviderError(provider, f"timeout: {e}") from e
    except httpx.HTTPError as e:
        raise ProviderError(provider, f"transport error: {e}") from e

    if response.status_code >= 400:
        raise ProviderError(
            provider,
            f"HTTP {response.status_code}: {response.text[:200]}",
            status_code=response.status_code,
            retryable=response.status_code in RETRYABLE_STATUS,
        )
    try:
        return response.json()
    except ValueError as e:
        raise ProviderError(provider, "invalid JSON response") from e


def _citation(provider: str, query: str, result: SearchResult) -> Citation:
    return Citation(
        provider=provider,
        query=query,
        url=result.url,
        domain=registrable_domain(extract_host(result.url) or ""),
        title=result.title,
        snippet=result.snippet,
    )


def _snippet_answer(results: list[SearchResult], limit: int = 3) -> str:
    return "\n".join(r.snippet for r in results[:limit] if r.snippet)


class BraveSearchProvider:
    """Brave Search web results."""

    name = ProviderName.BRAVE.value

    def __init__(
        self,
        api_key: str,
        endpoint: str = "https://api.search.brave.com/res/v1/web/search",
        timeout_seconds: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.endpoint = endpoint
        self.timeout_seconds = timeout_seconds
        self.client = client

    async def search(self, query: str, count: int = 10) -> list[SearchResult]:
        """Run a web search and return raw results."""
        data = await request_json(
            self.name,
            "GET",
            self.endpoint,
            client=self.client,
            timeout=self.timeout_seconds,
            params={
                "q": query,
                "count": min(count, 20),
                "country": "us",
                "safesearch": "moderate",
            },
            headers={
                "Accept": "application/json",
                "X-Subscription-Token": self.api_key,
            },
        )
        items = (data.get("web") or {}).get("results") or []
        return [
            SearchResult(
                url=item["url"],
                title=item.get("title", ""),
                snippet=item.get("description", ""),
            )
            for item in items
            if isinstance(item, dict) and item.get("url")
        ]

    async def run_query(self, query: str) -> ProviderResult:
        results = await self.search(query)
        return ProviderResult(
            provider=self.name,
            answer=_snippet_answer(results),
            citations=dedupe_citations([_citation(self.name, query, r) for r in results]),
        )


class BingSearchProvider:
    """Bing Web Search API results."""

    name = ProviderName.BING.value

    def __init__(
        self,
        api_key: str,
        endpoint: str = "https://api.bing.microsoft.com/v7.0/search",
        timeout_seconds: float = 1.2,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.endpoint = endpoint
        self.timeout_seconds = timeout_seconds
        self.client = client

    async def search(self, query: str, count: int = 10) -> list[SearchResult]:
        """Run a web search and return raw results."""
        data = await request_json(
            self.name,
            "GET",
            self.endpoint,
            client=self.client,
            timeout=self.timeout_seconds,
            params={"q": query, "count": min(count, 50), "mkt": "en-US"},
            headers={"Ocp-Apim-Subscription-Key": self.api_key},
        )
        items = (data.get("webPages") or {}).get("value") or []
        return [
            SearchResult(
                url=item["url"],
                title=item.get("name", ""),
                snippet=item.get("snippet", ""),
            )
            for item in items
            if isinstance(item, dict) and item.get("url")
        ]

    async def run_query(self, query: str) -> ProviderResult:
        results = await self.search(query)
        return ProviderResult(
            provider=self.name,
            answer=_snippet_answer(results),
            citations=dedupe_citations([_citation(self.name, query, r) for r in results]),
        )


class PerplexityProvider:
    """Perplexity answer engine with native citations."""

    name = ProviderName.PERPLEXITY.value

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.perplexity.ai",
        model: str = "sonar",
        timeout_seconds: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.client = client

    async def run_query(self, query: str) -> ProviderResult:
        data = await request_json(
            self.name,
            "POST",
            f"{self.base_url}/chat/completions",
            client=self.client,
            timeout=self.timeout_seconds,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            json={
                "model": self.model,
                "messages": [{"role": "user", "content": query}],
                "temperature": 0.2,
                "return_images": False,
            },
        )
        choice = (data.get("choices") or [{}])[0]
        answer = (choice.get("message") or {}).get("content") or ""

        sources: list[SearchResult] = []
        raw_citations = (choice.get("message") or {}).get("citations") or data.get("citations") or []
        for item in list(raw_citations) + list(data.get("search_results") or []):
            if isinstance(item, str):
                sources.append(SearchResult(url=item))
            elif isinstance(item, dict) and item.get("url"):
                sources.append(
                    SearchResult(
                        url=item["url"],
                        title=item.get("title") or item.get("name") or "",
                        snippet=item.get("snippet") or item.get("text") or "",
                    )
                )

        return ProviderResult(
            provider=self.name,
            answer=answer,
            citations=dedupe_citations([_citation(self.name, query, s) for s in sources]),
        )


class SearchSummaryProvider:
    """
    Guaranteed-citation fallback.

    Runs a web search, then asks a chat model to answer using only those
    results. Citations are the search result URLs themselves, so a non-empty
    search always yields citations.
    """

    name = ProviderName.SEARCH_SUMMARY.value

    def __init__(
        self,
        search: SearchProvider,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o",
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.search_provider = search
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.client = client

    async def run_query(self, query: str) -> ProviderResult:
        results = (await self.search_provider.search(query, count=SUMMARY_SOURCES))[
            :SUMMARY_SOURCES
        ]
        if not results:
            raise ProviderError(self.name, "search returned no results")

        sources = "\n".join(
            f"[{i}] {r.title}\n{r.url}\n{r.snippet}" for i, r in enumerate(results, start=1)
        )
        data = await request_json(
            self.name,
            "POST",
            f"{self.base_url}/chat/completions",
            client=self.client,
            timeout=self.timeout_seconds,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            json={
                "model": self.model,
                "temperature": 0.2,
                "messages": [
                    {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                    {"role": "user", "content": f"Question: {query}\n\nSources:\n{sources}"},
                ],
            },
        )
        choice = (data.get("choices") or [{}])[0]
        answer = (choice.get("message") or {}).get("content") or ""

        return ProviderResult(
            provider=self.name,
            answer=answer,
            citations=dedupe_citations([_citation(self.name, query, r) for r in results]),
        )


def build_providers(
    settings: "Settings",
    client: httpx.AsyncClient | None = None,
) -> list[ProviderRunner]:
    """
    Build the provider chain in priority order from settings.

    Order: Perplexity (fast answer engine), Brave, Bing, then the
    search-plus-summary fallback. Providers without credentials or with
    their flag off are skipped.
    """
    providers: list[ProviderRunner] = []
    brave: BraveSearchProvider | None = None
    bing: BingSearchProvider | None = None

    if settings.brave_api_key:
        brave = BraveSearchProvider(
            settings.brave_api_key,
            endpoint=settings.brave_endpoint,
            timeout_seconds=settings.provider_timeout_seconds,
            client=client,
        )
    if settings.bing_api_key:
        bing = BingSearchProvider(
            settings.bing_api_key,
            endpoint=settings.bing_endpoint,
            timeout_seconds=settings.bing_timeout_seconds,
            client=client,
        )

    if settings.perplexity_enabled and settings.perplexity_api_key:
        providers.append(
            PerplexityProvider(
                settings.perplexity_api_key,
                base_url=settings.perplexity_base_url,
                model=settings.perplexity_model,
                timeout_seconds=settings.provider_timeout_seconds,
                client=client,
            )
        )
    if settings.brave_enabled and brave is not None:
        providers.append(brave)
    if settings.bing_enabled and bing is not None:
        providers.append(bing)

    search = brave or bing
    if settings.search_summary_enabled and settings.openai_api_key and search is not None:
        providers.append(
            SearchSummaryProvider(
                search,
                settings.openai_api_key,
                base_url=settings.openai_base_url,
                model=settings.summary_model,
                timeout_seconds=settings.provider_timeout_seconds,
                client=client,
            )
        )

    logger.info("citation_providers_built", providers=[p.name for p in providers])
    return providers


def get_search_provider(
    name: str,
    settings: "Settings",
    client: httpx.AsyncClient | None = None,
) -> SearchProvider:
    """Get a raw search provider by name."""
    if name == ProviderName.BRAVE and settings.brave_api_key:
        return BraveSearchProvider(
            settings.brave_api_key,
            endpoint=settings.brave_endpoint,
            timeout_seconds=settings.provider_timeout_seconds,
            client=client,
        )
    if name == ProviderName.BING and settings.bing_api_key:
        return BingSearchProvider(
            settings.bing_api_key,
            endpoint=settings.bing_endpoint,
            timeout_seconds=settings.bing_timeout_seconds,
            client=client,
        )
    raise ValidationError(f"Search provider '{name}' is not configured", field="provider")
