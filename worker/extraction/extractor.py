"""Signal extractor: raw HTML to PageSignals."""

import re
import time
from typing import Protocol

import structlog
from bs4 import BeautifulSoup, Tag

from worker.extraction.jsonld import find_blocks, parse_blocks
from worker.extraction.signals import EEATFlag, ExtractionLimits, PageSignals
from worker.extraction.urls import (
    extract_host,
    is_reference_host,
    normalize_url,
    rehost,
    strip_www,
)

logger = structlog.get_logger(__name__)

# Elements whose content never counts toward headings, links, or text
STRIPPED_TAGS = ["script", "style", "noscript", "template"]

HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]

BYLINE_CLASS_PATTERN = re.compile(r"\b(byline|author)\b", re.IGNORECASE)
WHITESPACE = re.compile(r"\s+")
WORD = re.compile(r"\b\w+\b")

MIN_MEDIA_IMAGES = 3
MIN_CITATION_HOSTS = 3


class Extractor(Protocol):
    """Anything that turns (html, url) into PageSignals."""

    def extract(self, html: str, url: str) -> PageSignals: ...


def _collapse(text: str | None) -> str:
    return WHITESPACE.sub(" ", text or "").strip()


def _meta(soup: BeautifulSoup, key: str) -> str | None:
    """Read a meta tag by name or property, case-insensitively."""
    pattern = re.compile(f"^{re.escape(key)}$", re.IGNORECASE)
    tag = soup.find("meta", attrs={"name": pattern}) or soup.find(
        "meta", attrs={"property": pattern}
    )
    if isinstance(tag, Tag):
        content = tag.get("content")
        if isinstance(content, str) and content.strip():
            return _collapse(content)
    return None


def _link_href(soup: BeautifulSoup, rel: str) -> str | None:
    for tag in soup.find_all("link", href=True):
        rels = tag.get("rel") or []
        if isinstance(rels, str):
            rels = rels.split()
        if rel in [r.lower() for r in rels]:
            href = tag.get("href")
            if isinstance(href, str) and href.strip():
                return href.strip()
    return None


def _has_byline(soup: BeautifulSoup) -> bool:
    if soup.find(attrs={"rel": "author"}) or soup.find(attrs={"itemprop": "author"}):
        return True
    return soup.find(class_=BYLINE_CLASS_PATTERN) is not None


class SoupExtractor:
    """BeautifulSoup-backed signal extractor."""

    def __init__(self, limits: ExtractionLimits | None = None):
        self.limits = limits or ExtractionLimits()

    def extract(self, html: str, url: str) -> PageSignals:
        """
        Extract signals from a page.

        Deterministic: identical (html, url) input yields an identical record.

        Args:
            html: Raw HTML
            url: Source URL of the page

        Returns:
            PageSignals for the page
        """
        start = time.perf_counter()
        limits = self.limits

        html = html or ""
        if len(html) > limits.max_html_bytes:
            logger.warning(
                "html_truncated",
                url=url,
                size=len(html),
                limit=limits.max_html_bytes,
            )
            html = html[: limits.max_html_bytes]

        # Structured data is read before any tag is stripped
        jsonld = parse_blocks(
            find_blocks(html, limits.max_jsonld_blocks),
            limits.max_jsonld_block_bytes,
            url=url,
        )

        soup = BeautifulSoup(html, "html.parser")
        for tag in soup.find_all(STRIPPED_TAGS):
            tag.decompose()

        title_tag = soup.find("title")
        title = _collapse(title_tag.get_text()) if title_tag else ""

        html_tag = soup.find("html")
        lang = None
        if isinstance(html_tag, Tag):
            raw_lang = html_tag.get("lang") or html_tag.get("xml:lang")
            if isinstance(raw_lang, str) and raw_lang.strip():
                lang = raw_lang.strip()

        headings = soup.find_all(HEADING_TAGS)
        levels = tuple(int(h.name[1]) for h in headings)
        h1_tags = [h for h in headings if h.name == "h1"]
        h1_text = _collapse(h1_tags[0].get_text()) if h1_tags else ""

        page_host = strip_www(extract_host(url) or "")
        outbound: set[str] = set()
        internal: list[str] = []
        seen_internal: set[str] = set()
        for anchor in soup.find_all("a", href=True):
            href = anchor.get("href")
            if not isinstance(href, str):
                continue
            href = href.strip()
            if href.lower().startswith(("http://", "https://")):
                host = strip_www(extract_host(href) or "")
                if host and host != page_host:
                    outbound.add(host)
                    continue
            if href.startswith(("#", "mailto:", "tel:", "javascript:")):
                continue
            target = normalize_url(href, base_url=url)
            if not target or strip_www(extract_host(target) or "") != page_host:
                continue
            # www and apex links point at the same page
            target = rehost(target, url)
            if target not in seen_internal and len(internal) < limits.max_internal_links:
                seen_internal.add(target)
                internal.append(target)

        text = _collapse(soup.get_text(" "))
        word_count = len(WORD.findall(text))

        author = jsonld.author or _meta(soup, "author")
        date_published = jsonld.date_published or _meta(soup, "article:published_time")
        date_modified = jsonld.date_modified or _meta(soup, "article:modified_time")
        robots = _meta(soup, "robots")
        image_count = len(soup.find_all("img"))

        flags: set[EEATFlag] = set()
        if author or _has_byline(soup):
            flags.add(EEATFlag.HAS_AUTHOR)
        if date_published or date_modified or soup.find("time", attrs={"datetime": True}):
            flags.add(EEATFlag.HAS_DATES)
        if image_count >= MIN_MEDIA_IMAGES:
            flags.add(EEATFlag.HAS_MEDIA)
        if len(outbound) >= MIN_CITATION_HOSTS:
            flags.add(EEATFlag.HAS_CITATIONS)
        if any(is_reference_host(host) for host in outbound):
            flags.add(EEATFlag.HAS_REFERENCE_LINKS)
        if robots and "noindex" in robots.lower():
            flags.add(EEATFlag.ROBOTS_NOINDEX)
        if len(h1_tags) > 1:
            flags.add(EEATFlag.MULTI_H1)

        signals = PageSignals(
            url=url,
            title=title[:8000] or None,
            meta_description=_meta(soup, "description"),
            canonical=_link_href(soup, "canonical"),
            robots=robots,
            lang=lang,
            has_viewport=_meta(soup, "viewport") is not None,
            h1_text=h1_text[:500] or None,
            h1_count=len(h1_tags),
            h2_count=levels.count(2),
            h3_count=levels.count(3),
            heading_levels=levels[:200],
            image_count=image_count,
            outbound_hosts=tuple(sorted(outbound)),
            internal_links=tuple(internal),
            list_count=len(soup.find_all(["ul", "ol"])),
            table_count=len(soup.find_all("table")),
            definition_list_count=len(soup.find_all("dl")),
            word_count=word_count,
            text=text[: limits.max_text_chars],
            schema_types=frozenset(jsonld.types),
            jsonld_blocks=jsonld.blocks,
            jsonld_errors=jsonld.errors,
            faq_items=jsonld.faq_items,
            org_same_as=jsonld.org_same_as,
            org_has_logo=jsonld.org_has_logo,
            author=author,
            date_published=date_published,
            date_modified=date_modified,
            flags=frozenset(flags),
        )

        elapsed_ms = (time.perf_counter() - start) * 1000
        if elapsed_ms > limits.slow_ms:
            logger.warning(
                "extraction_slow",
                url=url,
                elapsed_ms=round(elapsed_ms, 1),
                size=len(html),
            )

        return signals


def extract(html: str, url: str, limits: ExtractionLimits | None = None) -> PageSignals:
    """
    Convenience function to extract signals from one page.

    Args:
        html: Raw HTML
        url: Source URL
        limits: Optional extraction bounds

    Returns:
        PageSignals
    """
    return SoupExtractor(limits).extract(html, url)


def limits_from_settings() -> ExtractionLimits:
    """Build extraction limits from application settings."""
    from api.config import get_settings

    settings = get_settings()
    return ExtractionLimits(
        max_html_bytes=settings.extraction_max_html_bytes,
        max_jsonld_blocks=settings.extraction_max_jsonld_blocks,
        max_jsonld_block_bytes=settings.extraction_max_jsonld_block_bytes,
        slow_ms=settings.extraction_slow_ms,
    )
