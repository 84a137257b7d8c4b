"""Citation, visibility score and ranking models."""

import uuid
from datetime import date, datetime

from sqlalchemy import (
    Date,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from api.database import Base


class CitationRecord(Base):
    """A provider citing a URL. Append-only."""

    __tablename__ = "citations"
    __table_args__ = (
        UniqueConstraint("provider", "query", "url", "observed_day", name="uq_citation"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    provider: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    query: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    domain: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    snippet: Mapped[str | None] = mapped_column(Text, nullable=True)
    observed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    observed_day: Mapped[date] = mapped_column(Date, nullable=False, index=True)


class VisibilityScoreRecord(Base):
    """Daily visibility score, one row per (day, assistant, domain)."""

    __tablename__ = "visibility_scores"
    __table_args__ = (
        UniqueConstraint("day", "assistant", "domain", name="uq_visibility_score"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    day: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    assistant: Mapped[str] = mapped_column(String(50), nullable=False)
    domain: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    citations_count: Mapped[int] = mapped_column(Integer, nullable=False)
    unique_urls: Mapped[int] = mapped_column(Integer, nullable=False)
    unique_domains: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    citation_component: Mapped[float] = mapped_column(Float, nullable=False)
    diversity_component: Mapped[float] = mapped_column(Float, nullable=False)
    recency_score: Mapped[float] = mapped_column(Float, nullable=False)
    drift_pct: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class RankingRecord(Base):
    """Weekly ranking, one row per (week_start, assistant, domain)."""

    __tablename__ = "rankings"
    __table_args__ = (
        UniqueConstraint("week_start", "assistant", "domain", name="uq_ranking"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    week_start: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    assistant: Mapped[str] = mapped_column(String(50), nullable=False)
    domain: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    mentions: Mapped[int] = mapped_column(Integer, nullable=False)
    share_pct: Mapped[float] = mapped_column(Float, nullable=False)
    previous_rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rank_change: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
