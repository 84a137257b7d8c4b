"""FastAPI dependencies for dependency injection."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from api.config import Settings, get_settings
from api.database import DbSession
from worker.citations.cache import CitationCache, cache_from_settings
from worker.citations.orchestrator import CitationOrchestrator, orchestrator_from_settings
from worker.citations.rate_limit import RateLimiterRegistry, registry_from_settings
from worker.queue import JobQueue, get_job_queue
from worker.visibility.store import SqlVisibilityStore, VisibilityStore

# Re-export DbSession for convenience
__all__ = [
    "DbSession",
    "SettingsDep",
    "OrchestratorDep",
    "LimiterDep",
    "CitationCacheDep",
    "VisibilityStoreDep",
    "JobQueueDep",
]


SettingsDep = Annotated[Settings, Depends(get_settings)]


@lru_cache
def get_limiter() -> RateLimiterRegistry:
    """Process-wide per-provider rate limiters."""
    return registry_from_settings()


@lru_cache
def get_citation_cache() -> CitationCache | None:
    """Process-wide citation cache, None when caching is disabled."""
    return cache_from_settings()


LimiterDep = Annotated[RateLimiterRegistry, Depends(get_limiter)]
CitationCacheDep = Annotated[CitationCache | None, Depends(get_citation_cache)]


def get_orchestrator(limiter: LimiterDep, cache: CitationCacheDep) -> CitationOrchestrator:
    """Orchestrator for one request, sharing the process-wide limiter and cache."""
    return orchestrator_from_settings(limiter=limiter, cache=cache)


OrchestratorDep = Annotated[CitationOrchestrator, Depends(get_orchestrator)]


def get_visibility_store() -> VisibilityStore:
    """Visibility store backed by the application database."""
    return SqlVisibilityStore()


VisibilityStoreDep = Annotated[VisibilityStore, Depends(get_visibility_store)]

JobQueueDep = Annotated[JobQueue, Depends(get_job_queue)]
