"""create_audit_and_visibility_tables

Audits with per-page signals, the append-only citation log, daily
visibility scores and weekly rankings.

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a1b2c3d4e5f6"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "audits",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("domain", sa.String(255), nullable=False),
        sa.Column("status", sa.String(50), nullable=False),
        sa.Column("catalog_version", sa.String(50), nullable=True),
        sa.Column("overall", sa.Integer(), nullable=True),
        sa.Column("result", postgresql.JSONB(), nullable=True),
        sa.Column("failure_code", sa.String(50), nullable=True),
        sa.Column("failure_detail", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_audits_domain", "audits", ["domain"])
    op.create_index("ix_audits_status", "audits", ["status"])

    op.create_table(
        "page_signals",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "audit_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("audits.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("signals", postgresql.JSONB(), nullable=False),
        sa.Column("check_results", postgresql.JSONB(), nullable=True),
        sa.Column("overall", sa.Integer(), nullable=True),
        _timestamp("updated_at"),
        sa.UniqueConstraint("audit_id", "url", name="uq_page_signals_audit_url"),
    )
    op.create_index("ix_page_signals_audit_id", "page_signals", ["audit_id"])

    op.create_table(
        "citations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("query", sa.Text(), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("domain", sa.String(255), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("snippet", sa.Text(), nullable=True),
        sa.Column("observed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("observed_day", sa.Date(), nullable=False),
        sa.UniqueConstraint("provider", "query", "url", "observed_day", name="uq_citation"),
    )
    op.create_index("ix_citations_provider", "citations", ["provider"])
    op.create_index("ix_citations_domain", "citations", ["domain"])
    op.create_index("ix_citations_observed_at", "citations", ["observed_at"])
    op.create_index("ix_citations_observed_day", "citations", ["observed_day"])

    op.create_table(
        "visibility_scores",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("assistant", sa.String(50), nullable=False),
        sa.Column("domain", sa.String(255), nullable=False),
        sa.Column("score", sa.Float(), nullable=False),
        sa.Column("citations_count", sa.Integer(), nullable=False),
        sa.Column("unique_urls", sa.Integer(), nullable=False),
        sa.Column("unique_domains", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("citation_component", sa.Float(), nullable=False),
        sa.Column("diversity_component", sa.Float(), nullable=False),
        sa.Column("recency_score", sa.Float(), nullable=False),
        sa.Column("drift_pct", sa.Float(), nullable=False),
        _timestamp("updated_at"),
        sa.UniqueConstraint("day", "assistant", "domain", name="uq_visibility_score"),
    )
    op.create_index("ix_visibility_scores_day", "visibility_scores", ["day"])
    op.create_index("ix_visibility_scores_domain", "visibility_scores", ["domain"])

    op.create_table(
        "rankings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("week_start", sa.Date(), nullable=False),
        sa.Column("assistant", sa.String(50), nullable=False),
        sa.Column("domain", sa.String(255), nullable=False),
        sa.Column("rank", sa.Integer(), nullable=False),
        sa.Column("mentions", sa.Integer(), nullable=False),
        sa.Column("share_pct", sa.Float(), nullable=False),
        sa.Column("previous_rank", sa.Integer(), nullable=True),
        sa.Column("rank_change", sa.Integer(), nullable=True),
        _timestamp("updated_at"),
        sa.UniqueConstraint("week_start", "assistant", "domain", name="uq_ranking"),
    )
    op.create_index("ix_rankings_week_start", "rankings", ["week_start"])
    op.create_index("ix_rankings_domain", "rankings", ["domain"])


def downgrade() -> None:
    op.drop_table("rankings")
    op.drop_table("visibility_scores")
    op.drop_table("citations")
    op.drop_table("page_signals")
    op.drop_table("audits")
