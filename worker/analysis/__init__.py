"""Site and page analyzers: entity graph and topic depth."""

from worker.analysis.entity_graph import EntityGraphResult, analyze_entity_graph
from worker.analysis.topic_depth import (
    TopicDepthResult,
    analyze_topic_depth,
    extract_top_terms,
    generate_seed_terms,
)

__all__ = [
    "EntityGraphResult",
    "analyze_entity_graph",
    "TopicDepthResult",
    "analyze_topic_depth",
    "extract_top_terms",
    "generate_seed_terms",
]
