"""Structural gates that cap the overall score."""

import structlog

from api.config import (
    GATE_CEILING_CRAWLER_BLOCKED,
    GATE_CEILING_MAJORITY_NOINDEX,
    GATE_CEILING_RENDER_PARITY,
    GATE_CEILING_STRUCTURED_DATA,
)
from worker.extraction.signals import PageSignals
from worker.scoring.models import Gate, SiteContext

logger = structlog.get_logger(__name__)

# Crawlers whose blocking counts toward the answer-engine gate
PRIMARY_ANSWER_ENGINES = (
    "GPTBot",
    "OAI-SearchBot",
    "ChatGPT-User",
    "ClaudeBot",
    "PerplexityBot",
    "Google-Extended",
)

RENDER_PARITY_MIN = 70.0
MAJORITY = 0.5


def _answer_engines_gate(site: SiteContext) -> Gate:
    """
    Trip when most answer-engine crawlers are blocked by robots.txt.

    When robots.txt names none of the primary answer engines, every agent
    it does name is counted instead.
    """
    gate = Gate(
        id="answer_engines_blocked",
        label="Answer-engine crawlers blocked",
        tripped=False,
        ceiling=GATE_CEILING_CRAWLER_BLOCKED,
    )
    relevant = {
        agent: allowed
        for agent, allowed in site.crawler_access.items()
        if agent in PRIMARY_ANSWER_ENGINES
    }
    if not relevant and site.crawler_access:
        logger.warning(
            "crawler_access_no_answer_engine_entries",
            agents=sorted(site.crawler_access),
        )
        relevant = site.crawler_access
    if not relevant:
        return gate

    blocked = sorted(agent for agent, allowed in relevant.items() if not allowed)
    share = len(blocked) / len(relevant)
    gate.value = share * 100
    if share > MAJORITY:
        gate.tripped = True
        gate.reason = f"{len(blocked)} of {len(relevant)} answer engines blocked: " + ", ".join(
            blocked
        )
    return gate


def _noindex_gate(pages: list[PageSignals]) -> Gate:
    gate = Gate(
        id="majority_noindex",
        label="Most pages are noindex",
        tripped=False,
        ceiling=GATE_CEILING_MAJORITY_NOINDEX,
    )
    if not pages:
        return gate
    noindex = sum(1 for page in pages if page.is_noindex)
    share = noindex / len(pages)
    gate.value = share * 100
    if share > MAJORITY:
        gate.tripped = True
        gate.reason = f"{noindex} of {len(pages)} pages carry noindex"
    return gate


def _render_parity_gate(site: SiteContext) -> Gate:
    gate = Gate(
        id="render_parity",
        label="Served HTML differs from rendered page",
        tripped=False,
        ceiling=GATE_CEILING_RENDER_PARITY,
    )
    if site.render_parity is None:
        return gate
    gate.value = site.render_parity
    if site.render_parity < RENDER_PARITY_MIN:
        gate.tripped = True
        gate.reason = f"render parity {site.render_parity:.0f}% below {RENDER_PARITY_MIN:.0f}%"
    return gate


def _structured_data_gate(pages: list[PageSignals]) -> Gate:
    gate = Gate(
        id="structured_data_broken",
        label="Structured data fails to parse",
        tripped=False,
        ceiling=GATE_CEILING_STRUCTURED_DATA,
    )
    blocks = sum(page.jsonld_blocks for page in pages)
    if not blocks:
        return gate
    errors = sum(page.jsonld_errors for page in pages)
    share = errors / blocks
    gate.value = share * 100
    if share > MAJORITY:
        gate.tripped = True
        gate.reason = f"{errors} of {blocks} JSON-LD blocks failed to parse"
    return gate


def evaluate_gates(pages: list[PageSignals], site: SiteContext) -> list[Gate]:
    """Evaluate every gate; untripped gates are returned too."""
    return [
        _answer_engines_gate(site),
        _noindex_gate(pages),
        _render_parity_gate(site),
        _structured_data_gate(pages),
    ]


def apply_gates(weighted: int, gates: list[Gate]) -> int:
    """Cap a weighted score by the lowest ceiling among tripped gates."""
    ceilings = [gate.ceiling for gate in gates if gate.tripped]
    if not ceilings:
        return weighted
    return min(weighted, min(ceilings))
