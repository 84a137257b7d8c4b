"""PageSignals record produced by the signal extractor."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class EEATFlag(StrEnum):
    """E-E-A-T heuristic flags derived from page signals."""

    HAS_AUTHOR = "has_author"
    HAS_DATES = "has_dates"
    HAS_MEDIA = "has_media"
    HAS_CITATIONS = "has_citations"
    HAS_REFERENCE_LINKS = "has_reference_links"
    ROBOTS_NOINDEX = "robots_noindex"
    MULTI_H1 = "multi_h1"


@dataclass(frozen=True)
class ExtractionLimits:
    """Bounds applied while extracting signals from one page."""

    max_html_bytes: int = 1_572_864
    max_jsonld_blocks: int = 8
    max_jsonld_block_bytes: int = 200_000
    max_text_chars: int = 20_000
    max_internal_links: int = 500
    slow_ms: float = 100.0


@dataclass(frozen=True)
class PageSignals:
    """
    Structured signals extracted from a single page.

    Immutable once produced. A re-analysis of the same URL produces a new
    record which supersedes this one.
    """

    url: str
    title: str | None = None
    meta_description: str | None = None
    canonical: str | None = None
    robots: str | None = None
    lang: str | None = None
    has_viewport: bool = False

    h1_text: str | None = None
    h1_count: int = 0
    h2_count: int = 0
    h3_count: int = 0
    heading_levels: tuple[int, ...] = ()

    image_count: int = 0
    outbound_hosts: tuple[str, ...] = ()
    internal_links: tuple[str, ...] = ()
    list_count: int = 0
    table_count: int = 0
    definition_list_count: int = 0

    word_count: int = 0
    text: str = ""

    schema_types: frozenset[str] = field(default_factory=frozenset)
    jsonld_blocks: int = 0
    jsonld_errors: int = 0
    faq_items: int = 0
    org_same_as: int = 0
    org_has_logo: bool = False

    author: str | None = None
    date_published: str | None = None
    date_modified: str | None = None

    flags: frozenset[EEATFlag] = field(default_factory=frozenset)

    @property
    def outbound_link_count(self) -> int:
        """Number of unique outbound hosts."""
        return len(self.outbound_hosts)

    @property
    def is_noindex(self) -> bool:
        """Check whether the robots meta forbids indexing."""
        return EEATFlag.ROBOTS_NOINDEX in self.flags

    def has_flag(self, flag: EEATFlag) -> bool:
        """Check whether an E-E-A-T flag is set."""
        return flag in self.flags

    def to_dict(self) -> dict[str, Any]:
        """Convert to a deterministic dictionary."""
        return {
            "url": self.url,
            "title": self.title,
            "meta_description": self.meta_description,
            "canonical": self.canonical,
            "robots": self.robots,
            "lang": self.lang,
            "has_viewport": self.has_viewport,
            "headings": {
                "h1_text": self.h1_text,
                "h1_count": self.h1_count,
                "h2_count": self.h2_count,
                "h3_count": self.h3_count,
                "levels": list(self.heading_levels),
            },
            "counts": {
                "images": self.image_count,
                "outbound_hosts": self.outbound_link_count,
                "internal_links": len(self.internal_links),
                "lists": self.list_count,
                "tables": self.table_count,
                "definition_lists": self.definition_list_count,
                "words": self.word_count,
            },
            "outbound_hosts": list(self.outbound_hosts),
            "internal_links": list(self.internal_links),
            "schema": {
                "types": sorted(self.schema_types),
                "blocks": self.jsonld_blocks,
                "errors": self.jsonld_errors,
                "faq_items": self.faq_items,
                "org_same_as": self.org_same_as,
                "org_has_logo": self.org_has_logo,
            },
            "author": self.author,
            "date_published": self.date_published,
            "date_modified": self.date_modified,
            "flags": sorted(flag.value for flag in self.flags),
        }
