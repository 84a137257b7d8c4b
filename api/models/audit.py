"""Audit, page signals and score models."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import StrEnum

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from api.database import Base


class AuditStatus(StrEnum):
    """Audit status states."""

    QUEUED = "queued"
    EXTRACTING = "extracting"
    SCORING = "scoring"
    COMPLETE = "complete"
    FAILED = "failed"


class AuditFailureCode(StrEnum):
    """Machine-readable reasons an audit could not be scored."""

    NO_PAGES = "no_pages"
    NO_SCORABLE_PAGES = "no_scorable_pages"
    EXTRACTION_FAILED = "extraction_failed"
    SCORING_FAILED = "scoring_failed"
    INTERNAL_ERROR = "internal_error"


class Audit(Base):
    """Audit model - one scoring pass over a domain's crawled pages."""

    __tablename__ = "audits"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    domain: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(50),
        default=AuditStatus.QUEUED.value,
        nullable=False,
        index=True,
    )
    catalog_version: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Results
    overall: Mapped[int | None] = mapped_column(Integer, nullable=True)
    result: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    # Error handling (no automatic retry; a failed audit needs an explicit re-run)
    failure_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    failure_detail: Mapped[str | None] = mapped_column(Text, nullable=True)

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    pages: Mapped[list[PageSignalsRecord]] = relationship(
        "PageSignalsRecord",
        back_populates="audit",
        cascade="all, delete-orphan",
    )


class PageSignalsRecord(Base):
    """Extracted signals and check results for one page of an audit."""

    __tablename__ = "page_signals"
    __table_args__ = (UniqueConstraint("audit_id", "url", name="uq_page_signals_audit_url"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    audit_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("audits.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    signals: Mapped[dict] = mapped_column(JSONB, nullable=False)
    check_results: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    overall: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    audit: Mapped[Audit] = relationship("Audit", back_populates="pages")
