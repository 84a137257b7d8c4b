"""Check functions for the criteria catalog.

Page checks take one page's signals; site checks take the whole page set
plus the page-level results. Every check returns a ``CheckOutcome`` holding
a 0-100 percentage, or ``None`` when the criterion does not apply.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass, field

from worker.analysis.entity_graph import analyze_entity_graph
from worker.analysis.topic_depth import analyze_topic_depth
from worker.extraction.jsonld import ORGANIZATION_TYPES
from worker.extraction.signals import EEATFlag, PageSignals
from worker.extraction.urls import extract_host, normalize_url, strip_www
from worker.scoring.models import CheckOutcome, CheckResult, SiteContext
from worker.scoring.site_level import pass_rate

DEFINITION_PATTERN = re.compile(
    r"\b(is|are|means|refers to|helps|provides|offers|lets|allows)\b", re.I
)
SENTENCE_END = re.compile(r"(?<=[.!?])\s+")
FAQ_TEXT_PATTERN = re.compile(r"\b(faq|frequently asked questions)\b", re.I)

LEAD_WORDS = 80


@dataclass
class PageCheckContext:
    """Extra inputs for page checks."""

    site: SiteContext = field(default_factory=SiteContext)
    seed_terms: list[str] | None = None


@dataclass
class SiteCheckInput:
    """Inputs for site checks."""

    pages: list[PageSignals]
    page_results: list[CheckResult]
    site: SiteContext


PageCheck = Callable[[PageSignals, PageCheckContext], CheckOutcome | None]
SiteCheck = Callable[[SiteCheckInput], CheckOutcome | None]


def _from_band(score: int) -> float:
    """Express a 0-3 analyzer score as a percentage."""
    return round(score / 3 * 100, 1)


def _tiered(value: int, tiers: list[tuple[int, float]]) -> float:
    """Return the percentage of the first tier whose minimum ``value`` meets."""
    for minimum, pct in tiers:
        if value >= minimum:
            return pct
    return 0.0


def _lead_text(signals: PageSignals) -> str:
    """Return the words that follow the H1, or the opening words of the page."""
    text = signals.text
    if signals.h1_text and signals.h1_text in text:
        text = text.split(signals.h1_text, 1)[1]
    return " ".join(text.split()[:LEAD_WORDS])


# ---------------------------------------------------------------------------
# Page checks
# ---------------------------------------------------------------------------


def check_answer_first(signals: PageSignals, ctx: PageCheckContext) -> CheckOutcome:
    lead = _lead_text(signals)
    words = lead.split()
    if not words:
        return CheckOutcome(0, ("no body copy after the main heading",))

    first_sentence = SENTENCE_END.split(lead, 1)[0]
    raw = 0.0
    evidence = []
    if len(words) >= 20:
        raw += 50
    else:
        evidence.append(f"opening is only {len(words)} words")
    if DEFINITION_PATTERN.search(first_sentence):
        raw += 30
    else:
        evidence.append("opening sentence does not define the topic")
    if len(first_sentence.split()) <= 30:
        raw += 20
    else:
        evidence.append("opening sentence is longer than 30 words")
    return CheckOutcome(raw, tuple(evidence))


def check_title(signals: PageSignals, ctx: PageCheckContext) -> CheckOutcome:
    if not signals.title:
        return CheckOutcome(0, ("missing <title>",))
    length = len(signals.title)
    if 30 <= length <= 65:
        return CheckOutcome(100)
    if 15 <= length <= 80:
        return CheckOutcome(70, (f"title length {length} outside 30-65",))
    return CheckOutcome(40, (f"title length {length}",))


def check_meta_description(signals: PageSignals, ctx: PageCheckContext) -> CheckOutcome:
    if not signals.meta_description:
        return CheckOutcome(0, ("missing meta description",))
    length = len(signals.meta_description)
    if 120 <= length <= 160:
        return CheckOutcome(100)
    if 70 <= length <= 200:
        return CheckOutcome(70, (f"description length {length} outside 120-160",))
    return CheckOutcome(40, (f"description length {length}",))


def check_topic_depth(signals: PageSignals, ctx: PageCheckContext) -> CheckOutcome:
    result = analyze_topic_depth(signals.text, signals, ctx.seed_terms)
    return CheckOutcome(
        _from_band(result.score),
        tuple(result.structures),
        details=result.to_dict(),
    )


def check_content_depth(signals: PageSignals, ctx: PageCheckContext) -> CheckOutcome:
    raw = _tiered(signals.word_count, [(600, 100), (300, 75), (100, 40), (1, 15)])
    evidence = () if raw == 100 else (f"{signals.word_count} words",)
    return CheckOutcome(raw, evidence)


def check_single_h1(signals: PageSignals, ctx: PageCheckContext) -> CheckOutcome:
    if signals.h1_count == 1:
        return CheckOutcome(100)
    if signals.h1_count == 0:
        return CheckOutcome(0, ("no H1",))
    return CheckOutcome(50, (f"{signals.h1_count} H1 elements",))


def check_heading_order(signals: PageSignals, ctx: PageCheckContext) -> CheckOutcome:
    levels = signals.heading_levels
    if not levels:
        return CheckOutcome(0, ("no headings",))

    skips = sum(1 for prev, cur in zip(levels, levels[1:]) if cur > prev + 1)
    raw = 100 * (1 - skips / len(levels))
    evidence = [f"{skips} skipped heading levels"] if skips else []
    if levels[0] != 1:
        raw -= 20
        evidence.append(f"first heading is h{levels[0]}")
    return CheckOutcome(max(0.0, raw), tuple(evidence))


def check_qa_scaffold(signals: PageSignals, ctx: PageCheckContext) -> CheckOutcome:
    if signals.faq_items:
        return CheckOutcome(100)
    if FAQ_TEXT_PATTERN.search(signals.text):
        return CheckOutcome(70, ("FAQ section without markup",))
    if signals.text.count("?") >= 3:
        return CheckOutcome(60, ("questions present but not structured",))
    return CheckOutcome(0, ("no question and answer content",))


def check_faq_schema(signals: PageSignals, ctx: PageCheckContext) -> CheckOutcome | None:
    has_faq_content = bool(signals.faq_items) or bool(FAQ_TEXT_PATTERN.search(signals.text))
    if "FAQPage" not in signals.schema_types and not has_faq_content:
        return None
    if "FAQPage" in signals.schema_types and signals.faq_items:
        return CheckOutcome(100)
    if "FAQPage" in signals.schema_types:
        return CheckOutcome(50, ("FAQPage has no Question entities",))
    return CheckOutcome(0, ("FAQ content without FAQPage markup",))


def check_internal_links(signals: PageSignals, ctx: PageCheckContext) -> CheckOutcome:
    count = len(signals.internal_links)
    raw = _tiered(count, [(10, 100), (5, 75), (2, 50), (1, 25)])
    return CheckOutcome(raw, () if raw == 100 else (f"{count} internal links",))


def check_author(signals: PageSignals, ctx: PageCheckContext) -> CheckOutcome:
    if signals.author:
        return CheckOutcome(100)
    if signals.has_flag(EEATFlag.HAS_AUTHOR):
        return CheckOutcome(80, ("byline without author markup",))
    return CheckOutcome(0, ("no author attribution",))


def check_citations(signals: PageSignals, ctx: PageCheckContext) -> CheckOutcome:
    count = signals.outbound_link_count
    raw = _tiered(count, [(3, 100), (2, 66), (1, 33)])
    return CheckOutcome(raw, () if raw == 100 else (f"{count} outbound sources",))


def check_organization(signals: PageSignals, ctx: PageCheckContext) -> CheckOutcome:
    if not ORGANIZATION_TYPES.intersection(signals.schema_types):
        return CheckOutcome(0, ("no Organization schema",))
    raw = 60.0
    evidence = []
    if signals.org_has_logo:
        raw += 20
    else:
        evidence.append("Organization has no logo")
    if signals.org_same_as >= 2:
        raw += 20
    elif signals.org_same_as == 1:
        raw += 10
        evidence.append("only one sameAs profile")
    else:
        evidence.append("no sameAs profiles")
    return CheckOutcome(raw, tuple(evidence))


def check_freshness(signals: PageSignals, ctx: PageCheckContext) -> CheckOutcome:
    if signals.date_published and signals.date_modified:
        return CheckOutcome(100)
    if signals.date_published or signals.date_modified:
        return CheckOutcome(70, ("only one of published/modified dates",))
    if signals.has_flag(EEATFlag.HAS_DATES):
        return CheckOutcome(50, ("dates shown but not declared in markup",))
    return CheckOutcome(0, ("no content dates",))


def check_reference_links(signals: PageSignals, ctx: PageCheckContext) -> CheckOutcome:
    if signals.has_flag(EEATFlag.HAS_REFERENCE_LINKS):
        return CheckOutcome(100)
    return CheckOutcome(0, ("no academic or reference sources",))


def check_canonical(signals: PageSignals, ctx: PageCheckContext) -> CheckOutcome:
    if not signals.canonical:
        return CheckOutcome(0, ("missing canonical",))
    canonical = normalize_url(signals.canonical, base_url=signals.url)
    if not canonical:
        return CheckOutcome(20, ("canonical is not an http(s) URL",))
    if canonical == normalize_url(signals.url):
        return CheckOutcome(100)
    if strip_www(extract_host(canonical) or "") == strip_www(extract_host(signals.url) or ""):
        return CheckOutcome(60, (f"canonical points to {canonical}",))
    return CheckOutcome(30, (f"canonical points off-site to {canonical}",))


def check_lang(signals: PageSignals, ctx: PageCheckContext) -> CheckOutcome:
    if not signals.lang:
        return CheckOutcome(0, ("no lang attribute",))
    if "-" in signals.lang or "_" in signals.lang:
        return CheckOutcome(100)
    return CheckOutcome(85, ("language without region",))


def check_indexable(signals: PageSignals, ctx: PageCheckContext) -> CheckOutcome:
    if signals.is_noindex:
        return CheckOutcome(0, (f"robots meta: {signals.robots}",))
    return CheckOutcome(100)


def check_viewport(signals: PageSignals, ctx: PageCheckContext) -> CheckOutcome:
    if signals.has_viewport:
        return CheckOutcome(100)
    return CheckOutcome(0, ("no viewport meta",))


def check_media(signals: PageSignals, ctx: PageCheckContext) -> CheckOutcome:
    raw = _tiered(signals.image_count, [(3, 100), (1, 60)])
    return CheckOutcome(raw, () if raw == 100 else (f"{signals.image_count} images",))


# ---------------------------------------------------------------------------
# Site checks
# ---------------------------------------------------------------------------


def check_entity_graph(data: SiteCheckInput) -> CheckOutcome | None:
    if not data.pages:
        return None
    result = analyze_entity_graph(data.pages)
    evidence = tuple(f"orphan: {url}" for url in result.orphans)
    return CheckOutcome(_from_band(result.score), evidence, details=result.to_dict())


def check_structured_data(data: SiteCheckInput) -> CheckOutcome | None:
    blocks = sum(page.jsonld_blocks for page in data.pages)
    if not blocks:
        return None
    errors = sum(page.jsonld_errors for page in data.pages)
    evidence = (f"{errors} of {blocks} JSON-LD blocks failed to parse",) if errors else ()
    return CheckOutcome(100 * (blocks - errors) / blocks, evidence)


def check_crawler_access(data: SiteCheckInput) -> CheckOutcome | None:
    access = data.site.crawler_access
    if not access:
        return None
    blocked = sorted(agent for agent, allowed in access.items() if not allowed)
    raw = 100 * (len(access) - len(blocked)) / len(access)
    return CheckOutcome(raw, tuple(f"blocked: {agent}" for agent in blocked))


def check_canonical_coverage(data: SiteCheckInput) -> CheckOutcome | None:
    rate = pass_rate(data.page_results, "G10", 85)
    if rate is None:
        return None
    return CheckOutcome(rate, () if rate == 100 else (f"{rate}% of pages have a valid canonical",))


def check_render_parity(data: SiteCheckInput) -> CheckOutcome | None:
    if data.site.render_parity is None:
        return None
    parity = max(0.0, min(100.0, data.site.render_parity))
    evidence = () if parity >= 85 else (f"render parity {parity:.0f}%",)
    return CheckOutcome(parity, evidence)


PAGE_CHECKS: dict[str, PageCheck] = {
    "A1": check_answer_first,
    "C1": check_title,
    "C2": check_meta_description,
    "G12": check_topic_depth,
    "C4": check_content_depth,
    "C3": check_single_h1,
    "A2": check_heading_order,
    "A3": check_qa_scaffold,
    "A9": check_internal_links,
    "E1": check_author,
    "E2": check_citations,
    "A12": check_organization,
    "G9": check_freshness,
    "E3": check_reference_links,
    "G10": check_canonical,
    "A4": check_faq_schema,
    "T2": check_lang,
    "T3": check_indexable,
    "T1": check_viewport,
    "E4": check_media,
}

SITE_CHECKS: dict[str, SiteCheck] = {
    "G11": check_entity_graph,
    "S2": check_structured_data,
    "T4": check_crawler_access,
    "S1": check_canonical_coverage,
    "T5": check_render_parity,
}
