"""Tests for the audit scoring task helpers."""

import uuid
from typing import Any

import pytest

from api.exceptions import AuditFailedError
from api.models import AuditFailureCode, AuditStatus
from worker.tasks import audit as audit_task
from worker.tasks.audit import (
    CrawledPage,
    extract_pages,
    run_audit_scoring,
    score_audit,
    site_context_from_dict,
)

HTML = "<html><head><title>Acme</title></head><body><h1>Acme</h1><p>Widgets.</p></body></html>"


class TestCrawledPage:
    """Tests for CrawledPage."""

    def test_from_dict_normalizes_headers(self) -> None:
        """Test header names are lower-cased and defaults applied."""
        page = CrawledPage.from_dict(
            {"url": "https://acme.com/", "html": None, "headers": {"Content-Type": "text/html"}}
        )

        assert page.html == ""
        assert page.status == 200
        assert page.headers == {"content-type": "text/html"}

    @pytest.mark.parametrize(
        ("status", "html", "content_type", "expected"),
        [
            (200, HTML, "text/html; charset=utf-8", True),
            (204, HTML, "application/xhtml+xml", True),
            (404, HTML, "text/html", False),
            (200, "   ", "text/html", False),
            (200, HTML, "application/pdf", False),
        ],
    )
    def test_is_scorable(self, status: int, html: str, content_type: str, expected: bool) -> None:
        """Test only 2xx HTML responses with a body are scorable."""
        page = CrawledPage(
            url="https://acme.com/", html=html, status=status, headers={"content-type": content_type}
        )

        assert page.is_scorable is expected


class TestExtractPages:
    """Tests for extract_pages."""

    def test_skips_duplicates_and_unscorable(self) -> None:
        """Test repeated URLs and error pages are skipped, crawl order kept."""
        pages = [
            CrawledPage(url="https://acme.com/", html=HTML),
            CrawledPage(url="https://ACME.com/#top", html=HTML),
            CrawledPage(url="https://acme.com/gone", html=HTML, status=410),
            CrawledPage(url="https://acme.com/about", html=HTML),
        ]

        signals = extract_pages(pages)

        assert [s.url for s in signals] == ["https://acme.com/", "https://acme.com/about"]


class TestScoreAudit:
    """Tests for score_audit."""

    def test_no_pages(self) -> None:
        """Test an empty crawl fails with no_pages."""
        with pytest.raises(AuditFailedError) as exc_info:
            score_audit("acme.com", [])

        assert exc_info.value.failure_code == AuditFailureCode.NO_PAGES

    def test_no_scorable_pages(self) -> None:
        """Test a crawl of error pages fails with no_scorable_pages."""
        with pytest.raises(AuditFailedError) as exc_info:
            score_audit("acme.com", [CrawledPage(url="https://acme.com/", html="", status=500)])

        assert exc_info.value.failure_code == AuditFailureCode.NO_SCORABLE_PAGES

    def test_scores_pages(self) -> None:
        """Test a scorable crawl returns signals and an audit score."""
        signals, audit = score_audit("acme.com", [CrawledPage(url="https://acme.com/", html=HTML)])

        assert len(signals) == 1
        assert 0 <= audit.overall <= 100
        assert len(audit.page_scores) == 1


class TestSiteContext:
    """Tests for site_context_from_dict."""

    def test_defaults(self) -> None:
        """Test the root URL defaults to the domain."""
        context = site_context_from_dict("acme.com", None)

        assert context.domain == "acme.com"
        assert context.root_url == "https://acme.com/"
        assert context.crawler_access == {}
        assert context.render_parity is None

    def test_values(self) -> None:
        """Test provided values are carried over."""
        context = site_context_from_dict(
            "acme.com",
            {"crawler_access": {"GPTBot": False}, "render_parity": 80, "seed_terms": ["widget"]},
        )

        assert context.crawler_access == {"GPTBot": False}
        assert context.render_parity == 80
        assert context.seed_terms == ["widget"]


class TestRunAuditScoring:
    """Tests for the audit job's status transitions."""

    @pytest.fixture
    def updates(self, monkeypatch) -> list[dict[str, Any]]:
        """Record audit row updates instead of writing to Postgres."""
        recorded: list[dict[str, Any]] = []

        async def update_audit(audit_id: uuid.UUID, **values: Any) -> None:
            recorded.append(values)

        monkeypatch.setattr(audit_task, "update_audit", update_audit)
        return recorded

    @pytest.mark.asyncio
    async def test_completes(self, updates: list[dict[str, Any]], monkeypatch) -> None:
        """Test a scored audit ends complete with its overall score."""

        async def save_page_signals(audit_id, signals, audit_score) -> int:
            return len(signals)

        monkeypatch.setattr(audit_task, "save_page_signals", save_page_signals)

        result = await run_audit_scoring(
            uuid.uuid4(), "acme.com", [CrawledPage(url="https://acme.com/", html=HTML)]
        )

        assert result["pages"] == 1
        assert [u["status"] for u in updates] == [
            AuditStatus.EXTRACTING.value,
            AuditStatus.COMPLETE.value,
        ]

    @pytest.mark.asyncio
    async def test_scoring_failure_records_code(self, updates: list[dict[str, Any]]) -> None:
        """Test an unscorable crawl is marked failed with its failure code."""
        with pytest.raises(AuditFailedError):
            await run_audit_scoring(uuid.uuid4(), "acme.com", [])

        assert updates[-1]["status"] == AuditStatus.FAILED.value
        assert updates[-1]["failure_code"] == AuditFailureCode.NO_PAGES

    @pytest.mark.asyncio
    async def test_persistence_failure_marks_failed(
        self, updates: list[dict[str, Any]], monkeypatch
    ) -> None:
        """Test an unexpected error while saving still leaves the audit failed."""

        async def save_page_signals(audit_id, signals, audit_score) -> int:
            raise RuntimeError("connection reset")

        monkeypatch.setattr(audit_task, "save_page_signals", save_page_signals)

        with pytest.raises(RuntimeError):
            await run_audit_scoring(
                uuid.uuid4(), "acme.com", [CrawledPage(url="https://acme.com/", html=HTML)]
            )

        assert [u["status"] for u in updates] == [
            AuditStatus.EXTRACTING.value,
            AuditStatus.FAILED.value,
        ]
        assert updates[-1]["failure_code"] == AuditFailureCode.INTERNAL_ERROR
        assert updates[-1]["failure_detail"] == "connection reset"
