"""Citation orchestrator: cache, rate limits, retries and provider fallback."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import structlog

from api.exceptions import ProviderExhaustedError, ValidationError
from worker.citations.cache import CitationCache, cache_key, normalize_query
from worker.citations.models import (
    CitationAnswer,
    ProviderError,
    ProviderQueryLog,
    QueryStatus,
)
from worker.citations.providers import ProviderRunner, with_retry
from worker.citations.rate_limit import RateLimiterRegistry

logger = structlog.get_logger(__name__)

MIN_QUERY_LENGTH = 3


@dataclass
class OrchestratorConfig:
    """Tuning for the orchestrator."""

    provider_timeout_seconds: float = 15.0
    answer_timeout_seconds: float = 60.0
    max_attempts: int = 3
    retry_base_seconds: float = 0.5
    cache_ttl_seconds: int = 86400
    batch_concurrency: int = 3
    batch_delay_seconds: float = 0.2


@dataclass
class BatchResult:
    """Per-query results of a batch."""

    answers: dict[str, CitationAnswer] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "answers": {q: a.to_dict() for q, a in self.answers.items()},
            "errors": self.errors,
        }


def rate_limit_keys(provider: ProviderRunner) -> list[str]:
    """
    Buckets one call to ``provider`` spends from.

    The search-summary fallback makes a web search of its own, so it also
    draws from the wrapped search provider's bucket.
    """
    keys = [provider.name]
    search = getattr(provider, "search_provider", None)
    if search is not None:
        keys.append(search.name)
    return keys


class CitationOrchestrator:
    """
    Answer queries with citations from a prioritized provider chain.

    Providers are tried one at a time. A provider that raises, times out, or
    returns no citations hands over to the next one; only the last failure
    is surfaced. Successful answers are cached under the normalized query.
    """

    def __init__(
        self,
        providers: list[ProviderRunner],
        limiter: RateLimiterRegistry | None = None,
        cache: CitationCache | None = None,
        config: OrchestratorConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if not providers:
            raise ValueError("At least one citation provider is required")
        self.providers = providers
        self.limiter = limiter or RateLimiterRegistry()
        self.cache = cache
        self.config = config or OrchestratorConfig()
        self._sleep = sleep
        self.query_logs: list[ProviderQueryLog] = []

    async def _call_provider(self, provider: ProviderRunner, query: str) -> Any:
        attempts = 0

        async def attempt() -> Any:
            nonlocal attempts
            attempts += 1
            for bucket in rate_limit_keys(provider):
                await self.limiter.acquire(bucket)
            return await asyncio.wait_for(
                provider.run_query(query),
                timeout=self.config.provider_timeout_seconds,
            )

        start = time.perf_counter()
        try:
            result = await with_retry(
                attempt,
                attempts=self.config.max_attempts,
                base_delay=self.config.retry_base_seconds,
                sleep=self._sleep,
            )
        except TimeoutError as e:
            self._log(provider, query, QueryStatus.TIMEOUT, start, attempts, error="timeout")
            raise ProviderError(provider.name, "timeout") from e
        except ProviderError as e:
            self._log(provider, query, QueryStatus.ERROR, start, attempts, error=e.message)
            raise
        except Exception as e:
            self._log(provider, query, QueryStatus.ERROR, start, attempts, error=str(e))
            raise ProviderError(provider.name, str(e)) from e

        status = QueryStatus.SUCCESS if result.citations else QueryStatus.EMPTY
        self._log(provider, query, status, start, attempts, result_count=len(result.citations))
        return result

    def _log(
        self,
        provider: ProviderRunner,
        query: str,
        status: QueryStatus,
        start: float,
        attempts: int,
        result_count: int = 0,
        error: str | None = None,
    ) -> None:
        entry = ProviderQueryLog(
            provider=provider.name,
            query=query,
            status=status,
            latency_ms=(time.perf_counter() - start) * 1000,
            result_count=result_count,
            error=error,
            attempts=attempts,
        )
        self.query_logs.append(entry)
        log = logger.info if status == QueryStatus.SUCCESS else logger.warning
        log("provider_query", **entry.to_dict())

    async def _run_chain(self, domain: str, query: str) -> CitationAnswer:
        failures: list[dict[str, Any]] = []
        for provider in self.providers:
            try:
                result = await self._call_provider(provider, query)
            except ProviderError as e:
                failures.append({"provider": provider.name, "error": e.message})
                logger.warning("provider_failed", provider=provider.name, domain=domain, error=e.message)
                continue

            if not result.citations:
                failures.append({"provider": provider.name, "error": "no citations"})
                logger.warning("provider_empty", provider=provider.name, domain=domain)
                continue

            return CitationAnswer(
                query=query,
                answer=result.answer,
                citations=result.citations,
                provider=provider.name,
            )

        logger.error("all_providers_failed", domain=domain, query=query, failures=failures)
        raise ProviderExhaustedError(failures)

    async def answer_with_citations(self, domain: str, query: str) -> CitationAnswer:
        """
        Answer a query with citations.

        Args:
            domain: Domain the question concerns (scopes the cache key)
            query: Question text

        Returns:
            CitationAnswer from the first provider that produced citations

        Raises:
            ValidationError: if the query is too short
            ProviderExhaustedError: if every provider failed
        """
        normalized = normalize_query(query)
        if len(normalized) < MIN_QUERY_LENGTH:
            raise ValidationError("Query must be at least 3 characters", field="query")

        key = cache_key("answer", normalized, domain)
        if self.cache is not None:
            cached = await self.cache.get(key)
            if cached:
                logger.info("citation_cache_hit", domain=domain, provider=cached.get("provider"))
                answer = CitationAnswer.from_dict(cached)
                answer.cached = True
                return answer

        try:
            answer = await asyncio.wait_for(
                self._run_chain(domain, query),
                timeout=self.config.answer_timeout_seconds,
            )
        except TimeoutError as e:
            logger.error("answer_timeout", domain=domain, query=query)
            raise ProviderExhaustedError([{"error": "answer timeout"}]) from e

        if self.cache is not None:
            await self.cache.set(key, answer.to_dict(), self.config.cache_ttl_seconds)
        return answer

    async def answer_batch(self, domain: str, queries: list[str]) -> BatchResult:
        """
        Answer several queries, deduplicated, a few at a time.

        Each chunk runs concurrently; a short pause separates chunks so
        provider quotas are not burst.
        """
        unique: list[str] = []
        seen: set[str] = set()
        for query in queries:
            normalized = normalize_query(query)
            if normalized not in seen:
                seen.add(normalized)
                unique.append(query)

        batch = BatchResult()
        size = max(1, self.config.batch_concurrency)
        for offset in range(0, len(unique), size):
            chunk = unique[offset : offset + size]
            results = await asyncio.gather(
                *(self.answer_with_citations(domain, q) for q in chunk),
                return_exceptions=True,
            )
            for query, result in zip(chunk, results):
                if isinstance(result, BaseException):
                    batch.errors[query] = str(result)
                else:
                    batch.answers[query] = result
            if offset + size < len(unique):
                await self._sleep(self.config.batch_delay_seconds)

        logger.info(
            "citation_batch_complete",
            domain=domain,
            queries=len(unique),
            answered=len(batch.answers),
            failed=len(batch.errors),
        )
        return batch


def orchestrator_from_settings(
    limiter: RateLimiterRegistry | None = None,
    cache: CitationCache | None = None,
) -> CitationOrchestrator:
    """
    Build an orchestrator wired to the configured providers.

    Pass the process-wide limiter and cache to share quotas and cached
    answers between orchestrators; otherwise fresh ones are built.
    """
    from api.config import get_settings
    from worker.citations.cache import cache_from_settings
    from worker.citations.providers import build_providers
    from worker.citations.rate_limit import registry_from_settings

    settings = get_settings()
    return CitationOrchestrator(
        providers=build_providers(settings),
        limiter=limiter or registry_from_settings(),
        cache=cache if cache is not None else cache_from_settings(),
        config=OrchestratorConfig(
            provider_timeout_seconds=settings.provider_timeout_seconds,
            answer_timeout_seconds=settings.answer_timeout_seconds,
            max_attempts=settings.provider_max_attempts,
            retry_base_seconds=settings.provider_retry_base_seconds,
            cache_ttl_seconds=settings.citation_cache_ttl_seconds,
            batch_concurrency=settings.citation_batch_concurrency,
            batch_delay_seconds=settings.citation_batch_delay_seconds,
        ),
    )
