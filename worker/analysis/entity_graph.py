"""Entity graph completeness analysis.

Builds a directed graph of the site from each page's internal links and
measures how well entities are connected:

- Connectivity: share of non-root pages that receive at least one inbound link
- Hub presence: an About/Organization page that links out to the rest of the site
- Schema coverage: share of pages declaring at least one schema.org type
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from urllib.parse import urlparse, urlunparse

import structlog

from worker.extraction.signals import PageSignals
from worker.extraction.urls import normalize_url, strip_www

logger = structlog.get_logger(__name__)

HUB_URL_PATTERN = re.compile(r"/(about|company|organization|organisation|team|contact)\b", re.I)
HUB_SCHEMA_TYPES = frozenset(["Organization", "Corporation", "LocalBusiness", "NGO"])
HUB_MIN_OUTBOUND = 5

WEIGHT_CONNECTIVITY = 0.4
WEIGHT_HUB = 0.3
WEIGHT_SCHEMA = 0.3

# Raw score thresholds for the 0-3 bands
BAND_3 = 0.85
BAND_2 = 0.65
BAND_1 = 0.40

MAX_ORPHAN_EVIDENCE = 10


@dataclass
class EntityNode:
    """A page in the entity graph."""

    url: str
    schema_types: frozenset[str] = frozenset()
    outbound: set[str] = field(default_factory=set)
    inbound: set[str] = field(default_factory=set)


@dataclass
class EntityGraphResult:
    """Entity graph metrics and 0-3 score."""

    score: int
    raw_score: float
    node_count: int
    edge_count: int
    orphan_rate: float
    has_hub: bool
    schema_coverage: float
    hub_url: str | None = None
    orphans: list[str] = field(default_factory=list)
    schema_type_counts: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "score": self.score,
            "raw_score": round(self.raw_score, 3),
            "metrics": {
                "nodes": self.node_count,
                "edges": self.edge_count,
                "orphan_rate": round(self.orphan_rate, 3),
                "has_hub": self.has_hub,
                "schema_coverage": round(self.schema_coverage, 3),
            },
            "evidence": {
                "hub_url": self.hub_url,
                "orphans": self.orphans[:MAX_ORPHAN_EVIDENCE],
                "schema_types": self.schema_type_counts,
            },
        }


def band_score(raw: float) -> int:
    """Map a 0-1 raw score onto the 0-3 scale."""
    if raw >= BAND_3:
        return 3
    if raw >= BAND_2:
        return 2
    if raw >= BAND_1:
        return 1
    return 0


def node_key(url: str, base_url: str | None = None) -> str | None:
    """Normalized URL with any ``www.`` dropped, so apex and www pages share a node."""
    normalized = normalize_url(url, base_url=base_url)
    if not normalized:
        return None
    parsed = urlparse(normalized)
    return urlunparse((parsed.scheme, strip_www(parsed.netloc), parsed.path, "", "", ""))


def build_graph(pages: list[PageSignals]) -> dict[str, EntityNode]:
    """
    Build the directed link graph keyed by normalized URL.

    Links pointing outside the crawled page set are ignored.
    """
    nodes: dict[str, EntityNode] = {}
    for page in pages:
        key = node_key(page.url)
        if key and key not in nodes:
            nodes[key] = EntityNode(url=key, schema_types=page.schema_types)

    for page in pages:
        source = node_key(page.url)
        if not source:
            continue
        for link in page.internal_links:
            target = node_key(link, base_url=page.url)
            if not target or target == source or target not in nodes:
                continue
            nodes[source].outbound.add(target)
            nodes[target].inbound.add(source)

    return nodes


def _is_root(url: str) -> bool:
    return urlparse(url).path in ("", "/")


def _is_hub(node: EntityNode) -> bool:
    looks_like_org = bool(HUB_URL_PATTERN.search(urlparse(node.url).path)) or bool(
        HUB_SCHEMA_TYPES.intersection(node.schema_types)
    )
    return looks_like_org and len(node.outbound) >= HUB_MIN_OUTBOUND


def analyze_entity_graph(pages: list[PageSignals]) -> EntityGraphResult:
    """
    Analyze entity graph completeness for a set of pages.

    Args:
        pages: Extracted signals for every crawled page

    Returns:
        EntityGraphResult with metrics and a 0-3 score
    """
    nodes = build_graph(pages)
    if not nodes:
        return EntityGraphResult(
            score=0,
            raw_score=0.0,
            node_count=0,
            edge_count=0,
            orphan_rate=1.0,
            has_hub=False,
            schema_coverage=0.0,
        )

    candidates = [node for node in nodes.values() if not _is_root(node.url)]
    orphans = [node.url for node in candidates if not node.inbound]
    orphan_rate = len(orphans) / len(candidates) if candidates else 0.0

    hub = next((node for node in nodes.values() if _is_hub(node)), None)

    with_schema = [node for node in nodes.values() if node.schema_types]
    schema_coverage = len(with_schema) / len(nodes)

    type_counts: Counter[str] = Counter()
    for node in nodes.values():
        type_counts.update(node.schema_types)

    raw = (
        (1 - orphan_rate) * WEIGHT_CONNECTIVITY
        + (1.0 if hub else 0.5) * WEIGHT_HUB
        + schema_coverage * WEIGHT_SCHEMA
    )

    result = EntityGraphResult(
        score=band_score(raw),
        raw_score=raw,
        node_count=len(nodes),
        edge_count=sum(len(node.outbound) for node in nodes.values()),
        orphan_rate=orphan_rate,
        has_hub=hub is not None,
        schema_coverage=schema_coverage,
        hub_url=hub.url if hub else None,
        orphans=sorted(orphans)[:MAX_ORPHAN_EVIDENCE],
        schema_type_counts=dict(sorted(type_counts.items())),
    )

    logger.debug(
        "entity_graph_analyzed",
        nodes=result.node_count,
        orphan_rate=round(orphan_rate, 3),
        has_hub=result.has_hub,
        score=result.score,
    )
    return result
