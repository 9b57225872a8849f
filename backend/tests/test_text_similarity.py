import pytest

from services.text_similarity import (
    FieldMatcher,
    FuzzyTokenSimilarity,
    IndustryMatcher,
    JaccardWordSimilarity,
    contains_phrase,
    normalize,
    title_similarity,
)


def test_normalize():
    assert normalize("  Senior   Engineer ") == "senior engineer"
    assert normalize(None) == ""


def test_contains_phrase_word_boundaries():
    assert contains_phrase("IT services", "it")
    assert not contains_phrase("digital agency", "it")
    assert not contains_phrase("anything", "")


def test_jaccard():
    sim = JaccardWordSimilarity()
    assert sim.similarity("Data Engineer", "data engineer") == 1.0
    assert sim.similarity("senior data engineer", "data engineer") == pytest.approx(2 / 3)
    assert sim.similarity("", "engineer") == 0.0


def test_fuzzy_token_set():
    sim = FuzzyTokenSimilarity()
    assert sim.similarity("engineer data", "data engineer") == 1.0
    assert sim.similarity("baker", "astronaut") < 0.5


class TestIndustryMatcher:
    def test_direct(self):
        assert IndustryMatcher().score("Finance", "Globex Finance") == 1.0

    def test_synonym(self):
        assert IndustryMatcher().score("technology", "a SaaS startup") == 0.8

    def test_unrelated(self):
        assert IndustryMatcher().score("healthcare", "retail chain") == 0.0


class TestFieldMatcher:
    @pytest.mark.parametrize("required,actual,expected", [
        ("Computer Science", "computer science", 1.0),
        ("Computer Science", "Computer Science and Mathematics", 0.8),
        ("Electrical Engineering", "Electronics", 0.7),
        ("Biology", "History", 0.3),
        ("Biology", "", 0.3),
    ])
    def test_score(self, required, actual, expected):
        assert FieldMatcher().score(required, actual) == expected


def test_title_similarity_by_name():
    assert isinstance(title_similarity("fuzzy"), FuzzyTokenSimilarity)
    assert isinstance(title_similarity("jaccard"), JaccardWordSimilarity)
    with pytest.raises(ValueError):
        title_similarity("soundex")
