"""Site-level aggregation of page check results."""

from typing import Any

from worker.scoring.models import CheckResult

# (metric name, criterion id, pass cut)
PASS_RATE_METRICS: list[tuple[str, str, float]] = [
    ("canonical_pct", "G10", 85),
    ("mobile_pct", "T1", 85),
    ("lang_pct", "T2", 85),
    ("indexable_pct", "T3", 85),
    ("single_h1_pct", "C3", 85),
    ("entity_schema_pct", "A12", 70),
    ("semantic_headings_pct", "A2", 70),
    ("meta_description_pct", "C2", 60),
    ("faq_presence_pct", "A3", 60),
    ("faq_schema_pct", "A4", 60),
]

AVERAGE_METRICS: list[tuple[str, str]] = [
    ("avg_internal_links", "A9"),
    ("avg_title_quality", "C1"),
]


def _page_raws(results: list[CheckResult], criterion_id: str) -> list[float]:
    return [
        result.raw
        for result in results
        if result.criterion_id == criterion_id
        and result.url is not None
        and result.raw is not None
        and result.is_scored
    ]


def pass_rate(results: list[CheckResult], criterion_id: str, pass_cut: float = 60) -> int | None:
    """
    Percentage of pages whose raw score for a criterion reaches ``pass_cut``.

    Args:
        results: Page-level check results (any mix of criteria and pages)
        criterion_id: Criterion to aggregate
        pass_cut: Minimum 0-100 raw score counted as passing

    Returns:
        0-100 integer, or None when no page was scored for the criterion
    """
    raws = _page_raws(results, criterion_id)
    if not raws:
        return None
    passing = sum(1 for raw in raws if raw >= pass_cut)
    return round(100 * passing / len(raws))


def average(results: list[CheckResult], criterion_id: str) -> int | None:
    """Mean raw page score for a criterion, or None when unscored."""
    raws = _page_raws(results, criterion_id)
    if not raws:
        return None
    return round(sum(raws) / len(raws))


def compute_site_metrics(results: list[CheckResult]) -> dict[str, Any]:
    """Aggregate page results into the site metrics table."""
    metrics: dict[str, Any] = {}
    for name, criterion_id, cut in PASS_RATE_METRICS:
        metrics[name] = pass_rate(results, criterion_id, cut)
    for name, criterion_id in AVERAGE_METRICS:
        metrics[name] = average(results, criterion_id)

    urls = {result.url for result in results if result.url is not None}
    scored_urls = {result.url for result in results if result.url is not None and result.is_scored}
    metrics["total_pages"] = len(urls)
    metrics["pages_with_checks"] = len(scored_urls)
    return metrics
