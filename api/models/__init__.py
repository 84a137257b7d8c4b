"""SQLAlchemy models package."""

from api.models.audit import Audit, AuditFailureCode, AuditStatus, PageSignalsRecord
from api.models.visibility import CitationRecord, RankingRecord, VisibilityScoreRecord

__all__ = [
    # Audit
    "Audit",
    "AuditStatus",
    "AuditFailureCode",
    "PageSignalsRecord",
    # Visibility
    "CitationRecord",
    "VisibilityScoreRecord",
    "RankingRecord",
]
