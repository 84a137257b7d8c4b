"""Tests for entity graph analysis."""

import pytest

from worker.analysis.entity_graph import analyze_entity_graph, band_score, build_graph
from worker.extraction.signals import PageSignals

ROOT = "https://example.com/"


def _page(path: str, links: tuple[str, ...] = (), types: tuple[str, ...] = ()) -> PageSignals:
    return PageSignals(
        url=f"https://example.com{path}",
        internal_links=tuple(f"https://example.com{link}" for link in links),
        schema_types=frozenset(types),
    )


class TestBuildGraph:
    """Tests for build_graph."""

    def test_nodes_keyed_by_normalized_url(self) -> None:
        """Test URL variants collapse onto one node."""
        pages = [
            PageSignals(url="https://Example.com/a/", internal_links=("https://example.com/b?x=1",)),
            PageSignals(url="https://example.com/b#top"),
        ]
        nodes = build_graph(pages)

        assert set(nodes) == {"https://example.com/a", "https://example.com/b"}
        assert nodes["https://example.com/b"].inbound == {"https://example.com/a"}

    def test_www_and_apex_urls_share_nodes(self) -> None:
        """Test links to the www host connect to pages crawled at the apex."""
        pages = [
            PageSignals(
                url="https://example.com/",
                internal_links=("https://www.example.com/about", "/pricing"),
            ),
            PageSignals(url="https://example.com/about"),
            PageSignals(url="https://www.example.com/pricing"),
        ]

        nodes = build_graph(pages)
        result = analyze_entity_graph(pages)

        assert nodes["https://example.com/"].outbound == {
            "https://example.com/about",
            "https://example.com/pricing",
        }
        assert result.edge_count == 2
        assert result.orphan_rate == 0.0

    def test_links_outside_crawl_and_self_links_ignored(self) -> None:
        """Test unknown targets and self links add no edges."""
        nodes = build_graph([_page("/a", links=("/a", "/missing"))])

        assert nodes["https://example.com/a"].outbound == set()


class TestAnalyzeEntityGraph:
    """Tests for analyze_entity_graph."""

    def test_connected_site_with_hub_scores_three(self) -> None:
        """Test full connectivity, a hub and full schema coverage."""
        products = [f"/p{i}" for i in range(5)]
        pages = [
            _page("/", links=("/about",), types=("WebSite",)),
            _page("/about", links=tuple(products), types=("AboutPage",)),
            *[_page(p, types=("Product",)) for p in products],
        ]
        result = analyze_entity_graph(pages)

        assert result.orphan_rate == 0.0
        assert result.has_hub is True
        assert result.hub_url == "https://example.com/about"
        assert result.schema_coverage == 1.0
        assert result.raw_score == pytest.approx(1.0)
        assert result.score == 3
        assert result.edge_count == 6

    def test_disconnected_site_scores_zero(self) -> None:
        """Test orphans, no hub and no schema."""
        result = analyze_entity_graph([_page("/"), _page("/a"), _page("/b")])

        assert result.orphan_rate == 1.0
        assert result.has_hub is False
        assert result.raw_score == pytest.approx(0.15)
        assert result.score == 0
        assert result.orphans == ["https://example.com/a", "https://example.com/b"]

    def test_root_is_never_an_orphan(self) -> None:
        """Test the root page is excluded from the orphan rate."""
        result = analyze_entity_graph([_page("/", links=("/a",), types=("WebSite",)), _page("/a"), _page("/b")])

        assert result.orphan_rate == 0.5
        assert result.orphans == ["https://example.com/b"]
        # 0.5 * 0.4 + 0.5 * 0.3 + (1/3) * 0.3
        assert round(result.raw_score, 3) == 0.45
        assert result.score == 1

    def test_organization_schema_makes_hub(self) -> None:
        """Test Organization schema qualifies a page as hub."""
        targets = [f"/t{i}" for i in range(5)]
        pages = [
            _page("/", links=("/brand",)),
            _page("/brand", links=tuple(targets), types=("Organization",)),
            *[_page(t) for t in targets],
        ]

        assert analyze_entity_graph(pages).hub_url == "https://example.com/brand"

    def test_hub_needs_five_outbound_links(self) -> None:
        """Test an about page with four links is not a hub."""
        targets = [f"/t{i}" for i in range(4)]
        pages = [_page("/about", links=tuple(targets)), *[_page(t) for t in targets]]

        assert analyze_entity_graph(pages).has_hub is False

    def test_empty_input(self) -> None:
        """Test no pages yields a zero score."""
        result = analyze_entity_graph([])

        assert result.score == 0
        assert result.node_count == 0

    def test_evidence_caps_orphans(self) -> None:
        """Test at most ten orphans are reported."""
        pages = [_page("/")] + [_page(f"/o{i:02d}") for i in range(15)]
        data = analyze_entity_graph(pages).to_dict()

        assert len(data["evidence"]["orphans"]) == 10
        assert data["metrics"]["orphan_rate"] == 1.0


class TestBandScore:
    """Tests for band_score."""

    def test_band_edges(self) -> None:
        """Test the band thresholds are inclusive."""
        assert band_score(0.85) == 3
        assert band_score(0.84) == 2
        assert band_score(0.65) == 2
        assert band_score(0.40) == 1
        assert band_score(0.39) == 0
