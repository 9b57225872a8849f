"""Pluggable string-similarity strategies used by the factor matchers.

Matchers receive these objects in their constructors, so domain- or
locale-specific matching can be swapped in without touching scoring math.
"""

import re
from abc import ABC, abstractmethod

from rapidfuzz import fuzz

INDUSTRY_SYNONYMS: dict[str, list[str]] = {
    "technology": ["tech", "software", "it", "saas"],
    "finance": ["financial", "banking", "investment", "fintech"],
    "healthcare": ["medical", "health", "hospital", "pharma"],
    "education": ["school", "university", "academic", "edtech"],
    "manufacturing": ["factory", "production", "industrial"],
}

FIELD_SYNONYMS: dict[str, list[str]] = {
    "computer science": ["cs", "computer engineering", "software engineering"],
    "business administration": ["business", "mba", "management"],
    "information technology": ["it", "information systems"],
    "mechanical engineering": ["mechanical", "mech"],
    "electrical engineering": ["electrical", "ee", "electronics"],
    "civil engineering": ["civil", "structural"],
}


def normalize(text: str | None) -> str:
    return " ".join((text or "").lower().split())


def contains_phrase(text: str, phrase: str) -> bool:
    """Word-boundary containment, so "it" does not match inside "digital"."""
    phrase = normalize(phrase)
    if not phrase:
        return False
    return re.search(r"(?<!\w)" + re.escape(phrase) + r"(?!\w)", normalize(text)) is not None


class StringSimilarity(ABC):
    """Similarity between two short strings, in [0, 1]."""

    @abstractmethod
    def similarity(self, a: str, b: str) -> float:
        ...


class JaccardWordSimilarity(StringSimilarity):
    """1.0 on equal strings, else Jaccard overlap of whitespace-separated words."""

    def similarity(self, a: str, b: str) -> float:
        a, b = normalize(a), normalize(b)
        if not a or not b:
            return 0.0
        if a == b:
            return 1.0
        words_a, words_b = set(a.split()), set(b.split())
        return len(words_a & words_b) / len(words_a | words_b)


class FuzzyTokenSimilarity(StringSimilarity):
    """rapidfuzz token-set ratio, tolerant of word order and typos."""

    def similarity(self, a: str, b: str) -> float:
        a, b = normalize(a), normalize(b)
        if not a or not b:
            return 0.0
        return fuzz.token_set_ratio(a, b) / 100.0


TITLE_SIMILARITIES: dict[str, type[StringSimilarity]] = {
    "jaccard": JaccardWordSimilarity,
    "fuzzy": FuzzyTokenSimilarity,
}


def title_similarity(name: str) -> StringSimilarity:
    """Strategy for comparing job titles, by configured name."""
    if name not in TITLE_SIMILARITIES:
        raise ValueError(f"Unknown title similarity: {name}")
    return TITLE_SIMILARITIES[name]()


class SynonymTable:
    """Groups of terms considered equivalent (canonical term -> variants)."""

    def __init__(self, groups: dict[str, list[str]]):
        self._groups = {normalize(k): [normalize(v) for v in vs] for k, vs in groups.items()}

    def _mentions(self, text: str, canonical: str, variants: list[str]) -> bool:
        return contains_phrase(text, canonical) or any(contains_phrase(text, v) for v in variants)

    def related(self, a: str, b: str) -> bool:
        """True when both strings mention a term of the same group."""
        for canonical, variants in self._groups.items():
            if self._mentions(a, canonical, variants) and self._mentions(b, canonical, variants):
                return True
        return False


class IndustryMatcher:
    """Industry keyword bonus: 1.0 on direct mention, 0.8 through a synonym."""

    def __init__(self, synonyms: SynonymTable | None = None):
        self.synonyms = synonyms or SynonymTable(INDUSTRY_SYNONYMS)

    def score(self, industry: str, text: str) -> float:
        if not normalize(industry) or not normalize(text):
            return 0.0
        if contains_phrase(text, industry):
            return 1.0
        if self.synonyms.related(industry, text):
            return 0.8
        return 0.0


class FieldMatcher:
    """Field-of-study match: exact 1.0, substring 0.8, synonym 0.7, else 0.3."""

    def __init__(self, synonyms: SynonymTable | None = None):
        self.synonyms = synonyms or SynonymTable(FIELD_SYNONYMS)

    def score(self, required: str, actual: str) -> float:
        required, actual = normalize(required), normalize(actual)
        if not required or not actual:
            return 0.3
        if required == actual:
            return 1.0
        if required in actual or actual in required:
            return 0.8
        if self.synonyms.related(required, actual):
            return 0.7
        return 0.3
