"""JSON-LD discovery and parsing."""

import json
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

# Located on raw HTML so blocks inside tags stripped later are still found
JSONLD_PATTERN = re.compile(
    r"<script\b[^>]*type\s*=\s*[\"']?application/ld\+json[\"']?[^>]*>(.*?)</script\s*>",
    re.IGNORECASE | re.DOTALL,
)

# Keys whose values are walked for nested entities
NESTED_KEYS = ("@graph", "mainEntity", "itemListElement")

ORGANIZATION_TYPES = frozenset(
    ["Organization", "Corporation", "LocalBusiness", "NGO", "EducationalOrganization"]
)


@dataclass
class JsonLdSummary:
    """Aggregated facts from all JSON-LD blocks on a page."""

    blocks: int = 0
    errors: int = 0
    types: set[str] = field(default_factory=set)
    author: str | None = None
    date_published: str | None = None
    date_modified: str | None = None
    faq_items: int = 0
    org_same_as: int = 0
    org_has_logo: bool = False


def find_blocks(html: str, max_blocks: int) -> list[str]:
    """Return the raw text of up to ``max_blocks`` JSON-LD script blocks."""
    blocks = []
    for match in JSONLD_PATTERN.finditer(html):
        if len(blocks) >= max_blocks:
            break
        blocks.append(match.group(1).strip())
    return blocks


def iter_entities(node: Any) -> Iterator[dict[str, Any]]:
    """Yield every dict entity, walking arrays and nested entity keys."""
    if isinstance(node, list):
        for item in node:
            yield from iter_entities(item)
        return
    if not isinstance(node, dict):
        return

    yield node
    for key in NESTED_KEYS:
        if key in node:
            yield from iter_entities(node[key])
    # ListItem wraps the real entity in "item"
    item = node.get("item")
    if isinstance(item, (dict, list)):
        yield from iter_entities(item)


def entity_types(entity: dict[str, Any]) -> list[str]:
    """Return the declared types of an entity."""
    raw = entity.get("@type", entity.get("type"))
    if isinstance(raw, str):
        return [raw.strip()] if raw.strip() else []
    if isinstance(raw, list):
        return [t.strip() for t in raw if isinstance(t, str) and t.strip()]
    return []


def _author_name(value: Any) -> str | None:
    """Read an author value that may be a string, object, or list."""
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        name = value.get("name")
        return name.strip() or None if isinstance(name, str) else None
    if isinstance(value, list):
        for item in value:
            name = _author_name(item)
            if name:
                return name
    return None


def _text_value(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def parse_blocks(
    raw_blocks: list[str],
    max_block_bytes: int,
    url: str | None = None,
) -> JsonLdSummary:
    """
    Parse JSON-LD blocks into a summary.

    Oversized and malformed blocks are logged and counted as errors; they
    never abort extraction.

    Args:
        raw_blocks: Raw block text as returned by ``find_blocks``
        max_block_bytes: Per-block size cap
        url: Page URL for log context

    Returns:
        JsonLdSummary
    """
    summary = JsonLdSummary()

    for index, raw in enumerate(raw_blocks):
        summary.blocks += 1
        size = len(raw.encode("utf-8", errors="ignore"))
        if size > max_block_bytes:
            summary.errors += 1
            logger.warning("jsonld_block_oversized", url=url, index=index, size=size)
            continue

        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, ValueError) as e:
            summary.errors += 1
            logger.warning("jsonld_parse_error", url=url, index=index, error=str(e))
            continue

        for entity in iter_entities(data):
            types = entity_types(entity)
            summary.types.update(types)

            # First non-empty wins across all blocks
            if summary.author is None:
                summary.author = _author_name(entity.get("author"))
            if summary.date_published is None:
                summary.date_published = _text_value(entity.get("datePublished"))
            if summary.date_modified is None:
                summary.date_modified = _text_value(entity.get("dateModified"))

            if "Question" in types:
                summary.faq_items += 1

            if ORGANIZATION_TYPES.intersection(types):
                same_as = entity.get("sameAs")
                if isinstance(same_as, str):
                    summary.org_same_as = max(summary.org_same_as, 1)
                elif isinstance(same_as, list):
                    summary.org_same_as = max(summary.org_same_as, len(same_as))
                if entity.get("logo"):
                    summary.org_has_logo = True

    return summary
