"""Tests for the citation orchestrator."""

import asyncio

import pytest

from api.exceptions import ProviderExhaustedError, ValidationError
from worker.citations.cache import MemoryCitationCache
from worker.citations.models import (
    Citation,
    ProviderError,
    ProviderResult,
    QueryStatus,
    SearchResult,
)
from worker.citations.orchestrator import (
    CitationOrchestrator,
    OrchestratorConfig,
    rate_limit_keys,
)
from worker.citations.rate_limit import RateLimiterRegistry


class FakeProvider:
    """Provider runner with scripted behaviour."""

    def __init__(
        self,
        name: str,
        urls: list[str] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.name = name
        self.urls = urls or []
        self.error = error
        self.delay = delay
        self.calls: list[str] = []

    async def run_query(self, query: str) -> ProviderResult:
        self.calls.append(query)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return ProviderResult(
            provider=self.name,
            answer=f"{self.name} answer",
            citations=[
                Citation(provider=self.name, query=query, url=url, domain="acme.com")
                for url in self.urls
            ],
        )


async def _no_sleep(seconds: float) -> None:
    return None


def _orchestrator(*providers: FakeProvider, **kwargs) -> CitationOrchestrator:
    return CitationOrchestrator(
        list(providers),
        config=kwargs.pop("config", OrchestratorConfig(retry_base_seconds=0)),
        sleep=_no_sleep,
        **kwargs,
    )


class TestFallback:
    """Tests for provider fallback."""

    @pytest.mark.asyncio
    async def test_first_failure_falls_through(self) -> None:
        """Test A fails, B succeeds, C is never called."""
        a = FakeProvider("a", error=ProviderError("a", "down"))
        b = FakeProvider("b", urls=["https://acme.com/"])
        c = FakeProvider("c", urls=["https://acme.com/c"])

        answer = await _orchestrator(a, b, c).answer_with_citations("acme.com", "what is acme")

        assert answer.provider == "b"
        assert answer.cached is False
        assert [cit.url for cit in answer.citations] == ["https://acme.com/"]
        assert len(a.calls) == 1
        assert c.calls == []

    @pytest.mark.asyncio
    async def test_empty_citations_fall_through(self) -> None:
        """Test a provider returning no citations hands over."""
        a = FakeProvider("a")
        b = FakeProvider("b", urls=["https://acme.com/"])

        answer = await _orchestrator(a, b).answer_with_citations("acme.com", "what is acme")

        assert answer.provider == "b"

    @pytest.mark.asyncio
    async def test_timeout_falls_through(self) -> None:
        """Test a slow provider times out and the next one answers."""
        slow = FakeProvider("slow", urls=["https://acme.com/"], delay=1.0)
        fast = FakeProvider("fast", urls=["https://acme.com/"])
        orchestrator = _orchestrator(
            slow,
            fast,
            config=OrchestratorConfig(provider_timeout_seconds=0.01, retry_base_seconds=0),
        )

        answer = await orchestrator.answer_with_citations("acme.com", "what is acme")

        assert answer.provider == "fast"
        assert orchestrator.query_logs[0].status == QueryStatus.TIMEOUT

    @pytest.mark.asyncio
    async def test_unexpected_exception_falls_through(self) -> None:
        """Test non-provider exceptions are contained."""
        a = FakeProvider("a", error=KeyError("choices"))
        b = FakeProvider("b", urls=["https://acme.com/"])

        answer = await _orchestrator(a, b).answer_with_citations("acme.com", "what is acme")

        assert answer.provider == "b"

    @pytest.mark.asyncio
    async def test_all_fail_raises_exhausted(self) -> None:
        """Test the last failure surfaces as ProviderExhaustedError."""
        a = FakeProvider("a", error=ProviderError("a", "down"))
        b = FakeProvider("b")

        with pytest.raises(ProviderExhaustedError) as exc_info:
            await _orchestrator(a, b).answer_with_citations("acme.com", "what is acme")

        assert exc_info.value.message == "All citation providers failed"
        assert [a["provider"] for a in exc_info.value.details["attempts"]] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_retryable_errors_are_retried(self) -> None:
        """Test a retryable error is retried before falling through."""
        a = FakeProvider("a", error=ProviderError("a", "busy", status_code=429, retryable=True))
        b = FakeProvider("b", urls=["https://acme.com/"])

        orchestrator = _orchestrator(a, b)
        await orchestrator.answer_with_citations("acme.com", "what is acme")

        assert len(a.calls) == 3
        assert orchestrator.query_logs[0].attempts == 3

    @pytest.mark.asyncio
    async def test_query_logs(self) -> None:
        """Test every attempt is logged with its status."""
        a = FakeProvider("a")
        b = FakeProvider("b", urls=["https://acme.com/", "https://acme.com/x"])
        orchestrator = _orchestrator(a, b)

        await orchestrator.answer_with_citations("acme.com", "what is acme")

        assert [(log.provider, log.status) for log in orchestrator.query_logs] == [
            ("a", QueryStatus.EMPTY),
            ("b", QueryStatus.SUCCESS),
        ]
        assert orchestrator.query_logs[1].result_count == 2

    def test_requires_providers(self) -> None:
        """Test an empty chain is rejected."""
        with pytest.raises(ValueError):
            CitationOrchestrator([])


class TestCaching:
    """Tests for answer caching."""

    @pytest.mark.asyncio
    async def test_cache_prevents_second_call(self) -> None:
        """Test a cached answer short-circuits every provider."""
        provider = FakeProvider("a", urls=["https://acme.com/"])
        orchestrator = _orchestrator(provider, cache=MemoryCitationCache())

        first = await orchestrator.answer_with_citations("acme.com", "What is Acme")
        second = await orchestrator.answer_with_citations("acme.com", "  what  is ACME ")

        assert len(provider.calls) == 1
        assert first.cached is False
        assert second.cached is True
        assert [c.url for c in second.citations] == ["https://acme.com/"]

    @pytest.mark.asyncio
    async def test_cache_is_scoped_by_domain(self) -> None:
        """Test the same query for another domain is not a hit."""
        provider = FakeProvider("a", urls=["https://acme.com/"])
        orchestrator = _orchestrator(provider, cache=MemoryCitationCache())

        await orchestrator.answer_with_citations("acme.com", "best crm")
        await orchestrator.answer_with_citations("other.com", "best crm")

        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self) -> None:
        """Test an exhausted chain leaves the cache empty."""
        cache = MemoryCitationCache()
        orchestrator = _orchestrator(FakeProvider("a"), cache=cache)

        with pytest.raises(ProviderExhaustedError):
            await orchestrator.answer_with_citations("acme.com", "best crm")
        assert len(cache) == 0


class TestValidation:
    """Tests for query validation."""

    @pytest.mark.asyncio
    async def test_short_query_rejected(self) -> None:
        """Test queries under three characters are rejected."""
        provider = FakeProvider("a", urls=["https://acme.com/"])

        with pytest.raises(ValidationError):
            await _orchestrator(provider).answer_with_citations("acme.com", " a ")
        assert provider.calls == []


class TestBatch:
    """Tests for answer_batch."""

    @pytest.mark.asyncio
    async def test_deduplicates_and_reports_errors(self) -> None:
        """Test duplicate queries run once and failures are per query."""
        provider = FakeProvider("a", urls=["https://acme.com/"])
        orchestrator = _orchestrator(provider)

        batch = await orchestrator.answer_batch(
            "acme.com", ["What is Acme", "what is acme", "Acme pricing", "x"]
        )

        assert sorted(batch.answers) == ["Acme pricing", "What is Acme"]
        assert list(batch.errors) == ["x"]
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_pauses_between_chunks(self) -> None:
        """Test the batch delay separates chunks."""
        waits: list[float] = []

        async def sleep(seconds: float) -> None:
            waits.append(seconds)

        orchestrator = CitationOrchestrator(
            [FakeProvider("a", urls=["https://acme.com/"])],
            config=OrchestratorConfig(batch_concurrency=2, batch_delay_seconds=0.2),
            sleep=sleep,
        )

        await orchestrator.answer_batch("acme.com", ["q one", "q two", "q three"])

        assert waits == [0.2]


class FakeSearch:
    """Search provider counting the web searches it serves."""

    name = "brave"

    def __init__(self) -> None:
        self.searches = 0

    async def search(self, query: str, count: int = 10) -> list[SearchResult]:
        self.searches += 1
        return [SearchResult(url="https://acme.com/", title="Acme")]


class FakeSummary:
    """Summary fallback that searches through a wrapped provider."""

    name = "search_summary"

    def __init__(self, search: FakeSearch) -> None:
        self.search_provider = search

    async def run_query(self, query: str) -> ProviderResult:
        results = await self.search_provider.search(query)
        return ProviderResult(
            provider=self.name,
            answer="summary",
            citations=[
                Citation(provider=self.name, query=query, url=r.url, domain="acme.com")
                for r in results
            ],
        )


class TestRateLimiting:
    """Tests for per-provider token buckets."""

    def test_summary_spends_search_bucket(self) -> None:
        """Test the summary fallback is charged for its inner search."""
        assert rate_limit_keys(FakeSummary(FakeSearch())) == ["search_summary", "brave"]
        assert rate_limit_keys(FakeProvider("perplexity")) == ["perplexity"]

    @pytest.mark.asyncio
    async def test_fallback_waits_for_search_bucket(self) -> None:
        """Test a failed search then the summary fallback cannot burst the search quota."""
        now = [0.0]
        waits: list[float] = []

        async def limiter_sleep(seconds: float) -> None:
            waits.append(seconds)
            now[0] += seconds

        limiter = RateLimiterRegistry(
            capacity=1,
            refill_per_second=1.0,
            poll_interval=0.5,
            clock=lambda: now[0],
            sleep=limiter_sleep,
        )
        brave = FakeProvider("brave", error=ProviderError("brave", "HTTP 500", status_code=500))
        summary = FakeSummary(FakeSearch())

        answer = await _orchestrator(brave, summary, limiter=limiter).answer_with_citations(
            "acme.com", "what is acme"
        )

        assert answer.provider == "search_summary"
        assert summary.search_provider.searches == 1
        assert waits == [0.5, 0.5]
        assert limiter.get("brave").available < 1
