"""Background task definitions."""

from worker.tasks.audit import (
    CrawledPage,
    extract_pages,
    run_audit_scoring,
    run_audit_scoring_sync,
    score_audit,
)
from worker.tasks.rollup import run_daily_rollup, run_daily_rollup_sync

__all__ = [
    # Audit scoring
    "CrawledPage",
    "extract_pages",
    "score_audit",
    "run_audit_scoring",
    "run_audit_scoring_sync",
    # Visibility rollup
    "run_daily_rollup",
    "run_daily_rollup_sync",
]
