"""Citation providers, rate limiting, caching and orchestration."""

from importlib import import_module
from typing import Any

# Public name -> submodule defining it
_EXPORTS = {
    "CitationOrchestrator": "orchestrator",
    "OrchestratorConfig": "orchestrator",
    "orchestrator_from_settings": "orchestrator",
    "ProviderRunner": "providers",
    "build_providers": "providers",
    "fetch_domain_citations": "domain_citations",
    "TokenBucket": "rate_limit",
    "RateLimiterRegistry": "rate_limit",
    "RedisCitationCache": "cache",
    "MemoryCitationCache": "cache",
    "Citation": "models",
    "CitationAnswer": "models",
    "ProviderError": "models",
}

__all__ = list(_EXPORTS)


def __getattr__(name: str) -> Any:
    if name in _EXPORTS:
        return getattr(import_module(f"worker.citations.{_EXPORTS[name]}"), name)
    raise AttributeError(f"module 'worker.citations' has no attribute '{name}'")
