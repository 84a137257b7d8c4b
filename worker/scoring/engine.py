"""Scoring engine: page signals plus criteria to an audit score."""

from collections import defaultdict

import structlog

from worker.analysis.topic_depth import generate_seed_terms
from worker.extraction.signals import PageSignals
from worker.extraction.urls import normalize_url
from worker.scoring.checks import (
    PAGE_CHECKS,
    SITE_CHECKS,
    PageCheck,
    PageCheckContext,
    SiteCheck,
    SiteCheckInput,
)
from worker.scoring.criteria import CATALOG_VERSION, Criterion, Scope, criteria_by_id
from worker.scoring.gates import apply_gates, evaluate_gates
from worker.scoring.models import (
    AuditScore,
    CheckOutcome,
    CheckResult,
    CheckStatus,
    PageScore,
    SiteContext,
)
from worker.scoring.rollups import (
    band,
    fix_first,
    overall_score,
    rollup_by_category,
    rollup_by_pillar,
    status_for,
)
from worker.scoring.site_level import compute_site_metrics

logger = structlog.get_logger(__name__)


def _not_applicable(criterion: Criterion, url: str | None, reason: str) -> CheckResult:
    return CheckResult(
        criterion_id=criterion.id,
        score=0,
        status=CheckStatus.NOT_APPLICABLE,
        evidence=[reason],
        url=url,
    )


def _to_result(criterion: Criterion, outcome: CheckOutcome, url: str | None) -> CheckResult:
    raw = max(0.0, min(100.0, float(outcome.raw)))
    score = band(raw, criterion)
    return CheckResult(
        criterion_id=criterion.id,
        score=score,
        status=status_for(score),
        raw=raw,
        evidence=list(outcome.evidence),
        url=url,
        details=dict(outcome.details),
    )


class ScoringEngine:
    """
    Score a set of pages against a criteria catalog.

    Page-scope criteria are evaluated on every page and aggregated to the
    site as the mean page score. Site-scope criteria run once. Missing or
    disabled check functions never raise; they yield ``not_applicable``.
    """

    def __init__(
        self,
        page_checks: dict[str, PageCheck] | None = None,
        site_checks: dict[str, SiteCheck] | None = None,
        fix_first_limit: int = 5,
    ):
        self.page_checks = PAGE_CHECKS if page_checks is None else page_checks
        self.site_checks = SITE_CHECKS if site_checks is None else site_checks
        self.fix_first_limit = fix_first_limit

    def score_page(
        self,
        signals: PageSignals,
        criteria: list[Criterion],
        context: PageCheckContext | None = None,
    ) -> list[CheckResult]:
        """Run every page-scope criterion against one page."""
        context = context or PageCheckContext()
        results = []
        for criterion in criteria:
            if criterion.scope != Scope.PAGE:
                continue
            check = self.page_checks.get(criterion.id)
            if not criterion.enabled:
                results.append(_not_applicable(criterion, signals.url, "criterion disabled"))
                continue
            if check is None:
                results.append(_not_applicable(criterion, signals.url, "no check implemented"))
                continue
            try:
                outcome = check(signals, context)
            except Exception as e:
                logger.warning(
                    "check_error",
                    criterion_id=criterion.id,
                    url=signals.url,
                    error=str(e),
                )
                results.append(
                    CheckResult(
                        criterion_id=criterion.id,
                        score=0,
                        status=CheckStatus.ERROR,
                        evidence=[str(e)],
                        url=signals.url,
                    )
                )
                continue
            if outcome is None:
                results.append(_not_applicable(criterion, signals.url, "not applicable"))
            else:
                results.append(_to_result(criterion, outcome, signals.url))
        return results

    def score_site_checks(
        self,
        pages: list[PageSignals],
        page_results: list[CheckResult],
        criteria: list[Criterion],
        site: SiteContext,
    ) -> list[CheckResult]:
        """Run every site-scope criterion once."""
        data = SiteCheckInput(pages=pages, page_results=page_results, site=site)
        results = []
        for criterion in criteria:
            if criterion.scope != Scope.SITE:
                continue
            check = self.site_checks.get(criterion.id)
            if not criterion.enabled or check is None:
                reason = "criterion disabled" if not criterion.enabled else "no check implemented"
                results.append(_not_applicable(criterion, None, reason))
                continue
            try:
                outcome = check(data)
            except Exception as e:
                logger.warning("site_check_error", criterion_id=criterion.id, error=str(e))
                results.append(
                    CheckResult(
                        criterion_id=criterion.id,
                        score=0,
                        status=CheckStatus.ERROR,
                        evidence=[str(e)],
                    )
                )
                continue
            if outcome is None:
                results.append(_not_applicable(criterion, None, "not applicable"))
            else:
                results.append(_to_result(criterion, outcome, None))
        return results

    def aggregate(
        self,
        page_results: list[CheckResult],
        criteria: list[Criterion],
    ) -> list[CheckResult]:
        """
        Collapse page results into one site-level result per criterion.

        The aggregate score is the mean 0-3 score over pages where the
        check was scored.
        """
        by_criterion: dict[str, list[CheckResult]] = defaultdict(list)
        for result in page_results:
            by_criterion[result.criterion_id].append(result)

        aggregated = []
        for criterion in criteria:
            if criterion.scope != Scope.PAGE:
                continue
            results = by_criterion.get(criterion.id, [])
            scored = [r for r in results if r.is_scored]
            if not scored:
                statuses = {r.status for r in results}
                status = (
                    CheckStatus.ERROR if CheckStatus.ERROR in statuses else CheckStatus.NOT_APPLICABLE
                )
                aggregated.append(CheckResult(criterion_id=criterion.id, score=0, status=status))
                continue

            mean = sum(r.score for r in scored) / len(scored)
            failing = [r.url for r in scored if r.score < 3 and r.url]
            aggregated.append(
                CheckResult(
                    criterion_id=criterion.id,
                    score=mean,
                    status=status_for(mean),
                    raw=sum(r.raw or 0 for r in scored) / len(scored),
                    evidence=[f"{len(failing)} of {len(scored)} pages below target"]
                    if failing
                    else [],
                )
            )
        return aggregated

    def score(
        self,
        pages: list[PageSignals],
        criteria: list[Criterion],
        site: SiteContext | None = None,
    ) -> AuditScore:
        """
        Score an audit.

        Args:
            pages: Extracted signals, one per crawled page
            criteria: Criteria catalog for this run
            site: Site-wide inputs (crawler access, render parity, seeds)

        Returns:
            AuditScore with rollups, gates and Fix-First list
        """
        site = site or SiteContext()
        index = criteria_by_id(criteria)
        context = PageCheckContext(site=site, seed_terms=self._seed_terms(pages, site))

        page_scores: list[PageScore] = []
        page_results: list[CheckResult] = []
        for signals in pages:
            results = self.score_page(signals, criteria, context)
            page_results.extend(results)
            categories = rollup_by_category(results, index)
            page_scores.append(
                PageScore(
                    url=signals.url,
                    results=results,
                    category_scores=categories,
                    overall=overall_score(categories),
                )
            )

        site_results = self.score_site_checks(pages, page_results, criteria, site)
        check_results = self.aggregate(page_results, criteria) + site_results

        category_scores = rollup_by_category(check_results, index)
        eeat_scores = rollup_by_pillar(check_results, index)
        weighted = overall_score(category_scores)
        gates = evaluate_gates(pages, site)
        overall = apply_gates(weighted, gates)

        audit = AuditScore(
            overall=overall,
            weighted_overall=weighted,
            category_scores=category_scores,
            eeat_scores=eeat_scores,
            gates=gates,
            fix_first=fix_first(check_results, index, self.fix_first_limit),
            check_results=check_results,
            page_scores=page_scores,
            site_metrics=compute_site_metrics(page_results),
            catalog_version=CATALOG_VERSION,
        )

        logger.info(
            "audit_scored",
            pages=len(pages),
            overall=overall,
            weighted_overall=weighted,
            gates_tripped=[gate.id for gate in audit.tripped_gates],
        )
        return audit

    @staticmethod
    def _seed_terms(pages: list[PageSignals], site: SiteContext) -> list[str] | None:
        if site.seed_terms:
            return site.seed_terms
        root_key = normalize_url(site.root_url) if site.root_url else None
        homepage = next((p for p in pages if root_key and normalize_url(p.url) == root_key), None)
        if homepage is None and pages:
            homepage = pages[0]
        seeds = generate_seed_terms(
            site.site_description,
            homepage.title if homepage else None,
            homepage.meta_description if homepage else None,
        )
        return seeds or None


def score(
    pages: list[PageSignals],
    criteria: list[Criterion],
    site: SiteContext | None = None,
    fix_first_limit: int = 5,
) -> AuditScore:
    """Convenience wrapper around ``ScoringEngine.score``."""
    return ScoringEngine(fix_first_limit=fix_first_limit).score(pages, criteria, site)
