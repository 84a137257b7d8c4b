"""Topic depth and semantic coverage analysis."""

import re
from collections import Counter
from dataclasses import dataclass, field

from worker.extraction.signals import PageSignals

STOPWORDS = frozenset(
    [
        "the", "be", "to", "of", "and", "a", "in", "that", "have", "i",
        "it", "for", "not", "on", "with", "he", "as", "you", "do", "at",
        "this", "but", "his", "by", "from", "they", "we", "say", "her", "she",
        "or", "an", "will", "my", "one", "all", "would", "there", "their",
        "what", "so", "up", "out", "if", "about", "who", "get", "which", "go", "me",
    ]
)  # fmt: skip

QUESTION_PATTERNS = (
    "what", "how", "why", "when", "where", "who",
    "pros", "cons", "benefits", "advantages", "disadvantages",
    "cost", "price", "compare", "comparison", "versus", "vs",
    "best", "worst", "top", "example", "examples",
    "guide", "tutorial", "explained", "definition",
)  # fmt: skip

EXAMPLE_PATTERN = re.compile(r"for example|such as|including|e\.g\.|i\.e\.", re.I)
COMPARISON_PATTERN = re.compile(r"compare|comparison|versus|vs\.|better than|worse than", re.I)
NON_WORD = re.compile(r"[^\w\s]")

TOP_TERMS = 40
MAX_SEEDS = 20

WEIGHT_LEXICAL = 0.4
WEIGHT_QUESTIONS = 0.3
WEIGHT_STRUCTURE = 0.3

QUESTIONS_FOR_FULL = 5
STRUCTURES_FOR_FULL = 4


@dataclass
class TopicDepthResult:
    """Topic depth metrics and 0-3 score."""

    score: int
    raw_score: float
    coverage_ratio: float
    word_count: int
    top_terms: list[str] = field(default_factory=list)
    question_patterns: list[str] = field(default_factory=list)
    structures: list[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.score > 0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "score": self.score,
            "raw_score": round(self.raw_score, 3),
            "metrics": {
                "term_count": len(self.top_terms),
                "coverage_ratio": round(self.coverage_ratio, 3),
                "question_patterns": len(self.question_patterns),
                "supporting_structures": len(self.structures),
                "word_count": self.word_count,
            },
            "evidence": {
                "top_terms": self.top_terms[:10],
                "question_patterns_found": self.question_patterns,
                "structures_found": self.structures,
            },
        }


def tokenize(text: str) -> list[str]:
    """Lower-case, strip punctuation, and split into words."""
    return NON_WORD.sub(" ", text.lower()).split()


def term_frequency(text: str) -> Counter[str]:
    """Count terms of 3+ characters that are not stopwords."""
    return Counter(word for word in tokenize(text) if len(word) >= 3 and word not in STOPWORDS)


def extract_top_terms(text: str, limit: int = TOP_TERMS) -> list[str]:
    """Return the most frequent terms, ties kept in first-seen order."""
    return [term for term, _ in term_frequency(text).most_common(limit)]


def generate_seed_terms(
    site_description: str | None = None,
    homepage_title: str | None = None,
    homepage_meta: str | None = None,
) -> list[str]:
    """Derive seed terms from the site description and homepage metadata."""
    text = " ".join(part for part in (site_description, homepage_title, homepage_meta) if part)
    seeds: list[str] = []
    for word in tokenize(text):
        if len(word) >= 3 and word not in STOPWORDS and word not in seeds:
            seeds.append(word)
    return seeds


def _band(raw: float) -> int:
    if raw >= 0.80:
        return 3
    if raw >= 0.60:
        return 2
    if raw >= 0.35:
        return 1
    return 0


def analyze_topic_depth(
    text: str,
    signals: PageSignals | None = None,
    seed_terms: list[str] | None = None,
) -> TopicDepthResult:
    """
    Score how deeply a page covers its topic.

    Blends lexical coverage (against seed terms, or term diversity when no
    seeds exist), question-pattern density, and supporting structures.

    Args:
        text: Page body text
        signals: Page signals supplying list/table counts
        seed_terms: Optional topic seed terms

    Returns:
        TopicDepthResult with a 0-3 score
    """
    words = tokenize(text)
    top_terms = extract_top_terms(text)

    if seed_terms:
        seeds = {term.lower() for term in seed_terms}
        overlap = sum(1 for term in top_terms if term in seeds)
        coverage = min(1.0, overlap / min(len(seed_terms), MAX_SEEDS))
    else:
        coverage = min(1.0, len(top_terms) / TOP_TERMS)

    vocabulary = set(words)
    questions = [pattern for pattern in QUESTION_PATTERNS if pattern in vocabulary]

    structures: list[str] = []
    if signals is not None:
        if signals.list_count >= 2:
            structures.append(f"{signals.list_count} lists")
        if signals.table_count > 0:
            structures.append(f"{signals.table_count} tables")
        if signals.definition_list_count > 0:
            structures.append(f"{signals.definition_list_count} definition lists")
    if EXAMPLE_PATTERN.search(text):
        structures.append("examples")
    if COMPARISON_PATTERN.search(text):
        structures.append("comparisons")

    raw = (
        coverage * WEIGHT_LEXICAL
        + min(1.0, len(questions) / QUESTIONS_FOR_FULL) * WEIGHT_QUESTIONS
        + min(1.0, len(structures) / STRUCTURES_FOR_FULL) * WEIGHT_STRUCTURE
    )

    return TopicDepthResult(
        score=_band(raw),
        raw_score=raw,
        coverage_ratio=coverage,
        word_count=len(words),
        top_terms=top_terms,
        question_patterns=questions,
        structures=structures,
    )
