"""Category and E-E-A-T pillar rollups, overall score, and Fix-First."""

from worker.scoring.criteria import CATEGORY_ORDER, PILLAR_ORDER, Criterion
from worker.scoring.models import CheckResult, CheckStatus, FixItem, RollupScore

MAX_CHECK_SCORE = 3


def band(raw: float, criterion: Criterion) -> int:
    """Map a 0-100 percentage onto the 0-3 scale using the criterion thresholds."""
    if raw >= criterion.pass_threshold:
        return 3
    if raw >= criterion.warn_threshold:
        return 2
    if raw > 0:
        return 1
    return 0


def status_for(score: float) -> CheckStatus:
    """Status for a 0-3 score."""
    if score >= 3:
        return CheckStatus.OK
    if score >= 2:
        return CheckStatus.WARN
    return CheckStatus.FAIL


def weighted_pct(pairs: list[tuple[float, float]]) -> tuple[int, float]:
    """
    Compute ``round(100 * sum(score/3 * weight) / sum(weight))``.

    Args:
        pairs: (score 0-3, weight) tuples

    Returns:
        (percentage, weight total); an empty input yields (0, 0.0)
    """
    weight_total = sum(weight for _, weight in pairs)
    if weight_total <= 0:
        return 0, 0.0
    earned = sum(score / MAX_CHECK_SCORE * weight for score, weight in pairs)
    return round(100 * earned / weight_total), weight_total


def _rollup(
    results: list[CheckResult],
    criteria: dict[str, Criterion],
    key: str,
    order: list,
) -> list[RollupScore]:
    groups: dict[str, list[tuple[float, float]]] = {str(name): [] for name in order}
    for result in results:
        criterion = criteria.get(result.criterion_id)
        if criterion is None or not result.is_scored:
            continue
        group = str(getattr(criterion, key))
        groups.setdefault(group, []).append((result.score, criterion.weight))

    rollups = []
    for name, pairs in groups.items():
        # Groups with no scored checks are omitted rather than reported as 0
        if not pairs:
            continue
        score, weight_total = weighted_pct(pairs)
        rollups.append(
            RollupScore(name=name, score=score, weight_total=weight_total, check_count=len(pairs))
        )
    return rollups


def rollup_by_category(
    results: list[CheckResult], criteria: dict[str, Criterion]
) -> list[RollupScore]:
    """Roll results up into the six categories, in display order."""
    return _rollup(results, criteria, "category", CATEGORY_ORDER)


def rollup_by_pillar(
    results: list[CheckResult], criteria: dict[str, Criterion]
) -> list[RollupScore]:
    """Roll results up into the E-E-A-T pillars, in display order."""
    return _rollup(results, criteria, "pillar", PILLAR_ORDER)


def overall_score(category_scores: list[RollupScore]) -> int:
    """Weight category scores by their supporting weight totals."""
    weight_total = sum(c.weight_total for c in category_scores)
    if weight_total <= 0:
        return 0
    return round(sum(c.score * c.weight_total for c in category_scores) / weight_total)


def fix_first(
    results: list[CheckResult],
    criteria: dict[str, Criterion],
    limit: int = 5,
) -> list[FixItem]:
    """
    Prioritize failing checks.

    Keeps scored checks below 3, sorted by impact (desc), weight (desc),
    then criterion id so the list is deterministic.
    """
    candidates = []
    for result in results:
        criterion = criteria.get(result.criterion_id)
        if criterion is None or not result.is_scored or result.score >= MAX_CHECK_SCORE:
            continue
        candidates.append((criterion, result))

    candidates.sort(key=lambda pair: (-pair[0].impact_rank, -pair[0].weight, pair[0].id))

    return [
        FixItem(
            criterion_id=criterion.id,
            label=criterion.label,
            category=criterion.category.value,
            impact=criterion.impact.value,
            weight=criterion.weight,
            score=result.score,
            status=result.status,
        )
        for criterion, result in candidates[:limit]
    ]
