"""Database engine, sessions and the declarative base."""

from collections.abc import AsyncGenerator
from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for audit and visibility tables."""

    pass


@lru_cache
def get_engine() -> AsyncEngine:
    """
    Get the async database engine.

    Created on first call so importing models never opens a pool. RQ jobs
    run each task in a fresh event loop and must call ``reset_engine``
    first.
    """
    from api.config import get_settings

    settings = get_settings()
    return create_async_engine(
        str(settings.database_url),
        echo=settings.debug,
        pool_pre_ping=True,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )


@lru_cache
def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Session factory bound to ``get_engine()``."""
    return async_sessionmaker(
        get_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session, committed on success."""
    async with get_session_maker()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


DbSession = Annotated[AsyncSession, Depends(get_db)]


def reset_engine() -> None:
    """Drop the cached engine and session maker."""
    get_engine.cache_clear()
    get_session_maker.cache_clear()


async def close_engine() -> None:
    """Dispose the engine's pool if one was ever opened."""
    if get_engine.cache_info().currsize:
        await get_engine().dispose()
    reset_engine()
