"""V1 API router - aggregates all versioned endpoints."""

from fastapi import APIRouter

from api.routers import audits, citations, visibility

router = APIRouter()

# Audit scoring endpoints
router.include_router(audits.router)

# Citation endpoints
router.include_router(citations.router)

# Visibility endpoints
router.include_router(visibility.router)


@router.get("/")
async def v1_root() -> dict[str, str]:
    """V1 API root endpoint."""
    return {
        "version": "1",
        "status": "active",
    }
