"""Criteria catalog.

Each criterion belongs to one of six categories and one of five E-E-A-T
pillars. Criteria are configuration: they are loaded once per scoring run
and never mutated by the pipeline.
"""

from dataclasses import dataclass, replace
from enum import StrEnum

CATALOG_VERSION = "2024.06"


class Category(StrEnum):
    """Fixed scoring categories, in display order."""

    CONTENT = "Content & Clarity"
    STRUCTURE = "Structure & Organization"
    AUTHORITY = "Authority & Trust"
    TECHNICAL = "Technical Foundations"
    CRAWL = "Crawl & Discoverability"
    EXPERIENCE = "Experience & Performance"


class Pillar(StrEnum):
    """E-E-A-T pillars, in display order."""

    ACCESS = "Access & Indexability"
    ENTITIES = "Entities & Structure"
    ANSWER = "Answer Fitness"
    TRUST = "Authority/Trust"
    PERFORMANCE = "Performance & Stability"


class Impact(StrEnum):
    """Impact level of fixing a criterion."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class Scope(StrEnum):
    """Whether a criterion is evaluated per page or once per site."""

    PAGE = "page"
    SITE = "site"


IMPACT_RANK = {Impact.HIGH: 3, Impact.MEDIUM: 2, Impact.LOW: 1}

CATEGORY_ORDER = list(Category)
PILLAR_ORDER = list(Pillar)


@dataclass(frozen=True)
class Criterion:
    """A single catalog entry."""

    id: str
    label: str
    category: Category
    pillar: Pillar
    scope: Scope
    weight: float
    impact: Impact
    description: str = ""
    pass_threshold: float = 85.0
    warn_threshold: float = 60.0
    enabled: bool = True
    preview: bool = False

    def __post_init__(self) -> None:
        if self.weight <= 0:
            raise ValueError(f"Criterion {self.id} weight must be positive")
        if self.warn_threshold > self.pass_threshold:
            raise ValueError(f"Criterion {self.id} warn threshold exceeds pass threshold")

    @property
    def impact_rank(self) -> int:
        return IMPACT_RANK[self.impact]


def _c(
    id: str,
    label: str,
    category: Category,
    pillar: Pillar,
    impact: Impact,
    weight: float,
    scope: Scope = Scope.PAGE,
    description: str = "",
    **kwargs: object,
) -> Criterion:
    return Criterion(
        id=id,
        label=label,
        category=category,
        pillar=pillar,
        scope=scope,
        weight=weight,
        impact=impact,
        description=description,
        **kwargs,  # type: ignore[arg-type]
    )


# High-impact weights stay above every medium weight so that the
# impact-then-weight ordering also orders by impact x weight.
DEFAULT_CRITERIA: tuple[Criterion, ...] = (
    # Content & Clarity
    _c("A1", "Answer-first design", Category.CONTENT, Pillar.ANSWER, Impact.HIGH, 15,
       description="Clear, concise summary at the top of the page."),
    _c("C1", "Title quality", Category.CONTENT, Pillar.ANSWER, Impact.MEDIUM, 8,
       description="Descriptive title of 30-65 characters."),
    _c("C2", "Meta description", Category.CONTENT, Pillar.ANSWER, Impact.MEDIUM, 6,
       description="Meta description of 120-160 characters."),
    _c("G12", "Topic depth & semantic coverage", Category.CONTENT, Pillar.ANSWER,
       Impact.MEDIUM, 8, preview=True,
       description="Coverage of key co-occurring terms and intents."),
    _c("C4", "Content depth", Category.CONTENT, Pillar.ANSWER, Impact.LOW, 4,
       description="Enough body copy to answer the page's question."),
    # Structure & Organization
    _c("C3", "Single H1", Category.STRUCTURE, Pillar.ENTITIES, Impact.HIGH, 10,
       description="Exactly one H1 naming the page topic."),
    _c("A2", "Semantic heading order", Category.STRUCTURE, Pillar.ENTITIES, Impact.MEDIUM, 7,
       pass_threshold=70.0, description="Headings descend without skipping levels."),
    _c("A3", "Q&A scaffold", Category.STRUCTURE, Pillar.ANSWER, Impact.MEDIUM, 6,
       description="Explicit question and answer blocks."),
    _c("A9", "Internal linking", Category.STRUCTURE, Pillar.ENTITIES, Impact.MEDIUM, 7,
       description="Links to related pages on the same site."),
    _c("G11", "Entity graph completeness", Category.STRUCTURE, Pillar.ENTITIES,
       Impact.MEDIUM, 8, scope=Scope.SITE, preview=True,
       description="Internal links and schema connect entities across the site."),
    # Authority & Trust
    _c("E1", "Author attribution", Category.AUTHORITY, Pillar.TRUST, Impact.HIGH, 15,
       description="Visible byline or author markup."),
    _c("E2", "Cite credible sources", Category.AUTHORITY, Pillar.TRUST, Impact.HIGH, 12,
       description="Links out to several independent sources."),
    _c("A12", "Organization identity", Category.AUTHORITY, Pillar.ENTITIES, Impact.HIGH, 10,
       description="Organization schema with logo and sameAs profiles."),
    _c("G9", "Content freshness", Category.AUTHORITY, Pillar.TRUST, Impact.MEDIUM, 7,
       description="Published and modified dates are declared."),
    _c("E3", "Reference sources", Category.AUTHORITY, Pillar.TRUST, Impact.MEDIUM, 6,
       description="Links to academic or reference publications."),
    # Technical Foundations
    _c("G10", "Canonical URL", Category.TECHNICAL, Pillar.ACCESS, Impact.HIGH, 10,
       description="Self-referencing canonical link."),
    _c("A4", "FAQ schema", Category.TECHNICAL, Pillar.ENTITIES, Impact.MEDIUM, 6,
       description="FAQPage markup with question entities."),
    _c("S2", "Structured data validity", Category.TECHNICAL, Pillar.ENTITIES,
       Impact.MEDIUM, 6, scope=Scope.SITE,
       description="JSON-LD blocks parse without errors."),
    _c("T2", "Language declaration", Category.TECHNICAL, Pillar.ACCESS, Impact.LOW, 3,
       description="The html element declares a language."),
    # Crawl & Discoverability
    _c("T3", "Indexable", Category.CRAWL, Pillar.ACCESS, Impact.HIGH, 15,
       description="No noindex directive on the page."),
    _c("T4", "Answer-engine crawler access", Category.CRAWL, Pillar.ACCESS, Impact.HIGH, 15,
       scope=Scope.SITE, description="AI crawlers are allowed by robots.txt."),
    _c("S1", "Canonical coverage", Category.CRAWL, Pillar.ACCESS, Impact.MEDIUM, 5,
       scope=Scope.SITE, description="Most pages declare a valid canonical."),
    # Experience & Performance
    _c("T5", "Render parity", Category.EXPERIENCE, Pillar.PERFORMANCE, Impact.HIGH, 12,
       scope=Scope.SITE, description="Served HTML matches the rendered page."),
    _c("T1", "Mobile viewport", Category.EXPERIENCE, Pillar.PERFORMANCE, Impact.MEDIUM, 8,
       description="Responsive viewport meta tag."),
    _c("E4", "Media richness", Category.EXPERIENCE, Pillar.PERFORMANCE, Impact.LOW, 3,
       description="Supporting images or diagrams."),
)  # fmt: skip


def get_criteria(
    include_preview: bool = True,
    overrides: dict[str, dict] | None = None,
) -> list[Criterion]:
    """
    Load the criteria catalog.

    Args:
        include_preview: Keep criteria flagged as preview
        overrides: Per-id field overrides, e.g. ``{"A1": {"weight": 12}}``

    Returns:
        List of criteria in catalog order
    """
    overrides = overrides or {}
    criteria = []
    for criterion in DEFAULT_CRITERIA:
        if criterion.preview and not include_preview:
            continue
        if criterion.id in overrides:
            criterion = replace(criterion, **overrides[criterion.id])
        criteria.append(criterion)
    return criteria


def criteria_by_id(criteria: list[Criterion]) -> dict[str, Criterion]:
    """Index criteria by id."""
    return {criterion.id: criterion for criterion in criteria}
