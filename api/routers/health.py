"""Health check endpoints."""

import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

import structlog
from fastapi import APIRouter
from pydantic import BaseModel, Field
from redis import Redis
from sqlalchemy import text

from api.config import API_VERSION, get_settings
from api.database import get_session_maker
from worker.citations.providers import build_providers

router = APIRouter(tags=["Health"])
logger = structlog.get_logger(__name__)

# Track server start time for uptime calculation
_server_start_time = time.time()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Health status: healthy, degraded, unhealthy")
    timestamp: str = Field(..., description="ISO 8601 timestamp")
    version: str = Field(..., description="API version")
    uptime_seconds: int = Field(..., description="Server uptime in seconds")


class DependencyCheck(BaseModel):
    """Individual dependency check result."""

    status: str = Field(..., description="Status: healthy, unhealthy")
    latency_ms: float | None = Field(None, description="Check latency in milliseconds")
    error: str | None = Field(None, description="Error message if unhealthy")


class ReadyResponse(HealthResponse):
    """Readiness check response with dependency status."""

    checks: dict[str, DependencyCheck] = Field(..., description="Individual dependency checks")
    citation_providers: list[str] = Field(
        default_factory=list, description="Citation fallback chain, in order"
    )


class ApiInfoResponse(BaseModel):
    """API information response."""

    name: str
    version: str
    env: str
    docs: str | None
    citation_providers_enabled: bool


def _uptime() -> int:
    return int(time.time() - _server_start_time)


async def _ping_database() -> None:
    async with get_session_maker()() as session:
        await session.execute(text("SELECT 1"))


async def _ping_redis(url: str) -> None:
    redis = Redis.from_url(url, socket_timeout=2)
    try:
        redis.ping()
    finally:
        redis.close()


async def _check(name: str, ping: Callable[[], Awaitable[None]]) -> DependencyCheck:
    start = time.perf_counter()
    try:
        await ping()
    except Exception as e:
        logger.warning("health_check_failed", dependency=name, error=str(e))
        return DependencyCheck(status="unhealthy", error=str(e))
    return DependencyCheck(
        status="healthy",
        latency_ms=round((time.perf_counter() - start) * 1000, 2),
    )


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Basic health check endpoint.

    Returns healthy if the API is running. Use /ready for dependency checks.
    """
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC).isoformat(),
        version=API_VERSION,
        uptime_seconds=_uptime(),
    )


@router.get("/ready", response_model=ReadyResponse)
async def readiness_check() -> ReadyResponse:
    """
    Readiness check with dependency verification.

    Checks database and Redis connectivity and latency, and lists the
    citation providers the current credentials enable.
    """
    settings = get_settings()
    checks = {
        "database": await _check("database", _ping_database),
        "redis": await _check("redis", lambda: _ping_redis(str(settings.redis_url))),
    }

    unhealthy_count = sum(1 for c in checks.values() if c.status == "unhealthy")
    if unhealthy_count == 0:
        overall_status = "healthy"
    elif unhealthy_count < len(checks):
        overall_status = "degraded"
    else:
        overall_status = "unhealthy"

    return ReadyResponse(
        status=overall_status,
        timestamp=datetime.now(UTC).isoformat(),
        version=API_VERSION,
        uptime_seconds=_uptime(),
        checks=checks,
        citation_providers=[provider.name for provider in build_providers(settings)],
    )


@router.get("/", response_model=ApiInfoResponse)
async def root() -> ApiInfoResponse:
    """API information."""
    settings = get_settings()
    return ApiInfoResponse(
        name="geolens API",
        version=API_VERSION,
        env=settings.env,
        docs="/docs" if settings.debug else None,
        citation_providers_enabled=settings.citations_enabled,
    )
