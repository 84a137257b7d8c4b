"""FastAPI application factory and main entrypoint."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from api.config import API_VERSION, get_settings
from api.database import close_engine
from api.exceptions import GeolensError
from api.logging import setup_logging
from api.schemas.responses import ErrorDetail, ErrorResponse

# Initialize logging
setup_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown events."""
    settings = get_settings()
    logger.info(
        "api_starting",
        env=settings.env,
        version=API_VERSION,
        citation_cache=settings.citation_cache_enabled,
        citations_enabled=settings.citations_enabled,
    )

    # Database pool, Redis clients and provider chains are created lazily
    yield

    await close_engine()
    logger.info("api_stopping")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="geolens",
        description="AI answer-engine readiness audits and citation visibility",
        version=API_VERSION,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    # Middleware (order matters - first added = last executed)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from api.middleware import LoggingMiddleware, RequestIDMiddleware

    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    from api.routers import health, v1

    app.include_router(health.router, prefix="/api")
    app.include_router(v1.router, prefix="/v1")

    return app


def register_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers."""

    @app.exception_handler(GeolensError)
    async def geolens_error_handler(request: Request, exc: GeolensError) -> ORJSONResponse:
        """Handle application exceptions."""
        logger.warning(
            "application_error",
            error_code=exc.code,
            message=exc.message,
            path=request.url.path,
        )
        body = ErrorResponse(
            error=ErrorDetail(code=exc.code, message=exc.message, details=exc.details or None)
        )
        return ORJSONResponse(status_code=exc.status_code, content=body.content())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle Pydantic validation errors."""
        errors = exc.errors()
        first_error = errors[0] if errors else {"msg": "Validation error"}

        # Drop the leading "body"/"query" segment of the location
        field = ".".join(str(loc) for loc in first_error.get("loc", [])[1:])

        logger.warning("request_validation_error", path=request.url.path, errors=errors)
        body = ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message=first_error.get("msg", "Validation error"),
                field=field or None,
                details={"errors": jsonable_errors(errors)},
            )
        )
        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=body.content()
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
        """Handle unhandled exceptions."""
        logger.error(
            "unhandled_exception",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
        )
        body = ErrorResponse(
            error=ErrorDetail(code="internal_error", message="An unexpected error occurred")
        )
        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body.content()
        )


def jsonable_errors(errors: list) -> list[dict]:
    """Pydantic error dicts without the non-serializable ``ctx``/``input`` values."""
    return [
        {key: value for key, value in error.items() if key in ("type", "loc", "msg")}
        for error in errors
    ]


app = create_app()
