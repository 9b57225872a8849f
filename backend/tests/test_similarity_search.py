"""Tests for SimilaritySearch: metrics, top-K, filters, fusion and approximate search."""

import math

import numpy as np
import pytest

from models.schemas.vectors import (
    EmbeddingRecord,
    EqualsPredicate,
    InPredicate,
    MetricWeight,
    NestedPredicate,
    SearchOptions,
)
from services.exceptions import UnknownAlgorithmError, ValidationError
from services.similarity import SimilaritySearch, filters_from_mapping, matches_filters


@pytest.fixture
def search():
    return SimilaritySearch(normalize=True, threshold=0.0, rng=np.random.default_rng(7), approximate_min_pool=1000)


def record(id_, vector, **metadata):
    return EmbeddingRecord(id=id_, vector=vector, metadata=metadata)


class TestMetrics:
    def test_self_cosine_is_exactly_one(self, search):
        v = [0.1, 0.7, 0.3, 0.9]
        assert search.similarity(v, v) == 1.0

    def test_orthogonal(self, search):
        assert search.similarity([1, 0], [0, 1]) == pytest.approx(0.0)

    def test_dotproduct_maps_to_unit_interval(self, search):
        assert search.similarity([1, 0], [-1, 0], "dotproduct") == pytest.approx(0.0)
        assert search.similarity([1, 0], [1, 0], "dotproduct") == pytest.approx(1.0)

    def test_euclidean(self, search):
        assert search.similarity([1, 0], [1, 0], "euclidean") == pytest.approx(1.0)
        assert search.similarity([1, 0], [0, 1], "euclidean") == pytest.approx(1 / (1 + math.sqrt(2)))

    def test_manhattan(self, search):
        assert search.similarity([1, 0], [0, 1], "manhattan") == pytest.approx(0.5)

    def test_zero_vector(self, search):
        assert search.similarity([0, 0], [1, 0]) == 0.0

    def test_unknown_metric(self, search):
        with pytest.raises(UnknownAlgorithmError):
            search.similarity([1], [1], "hamming")

    @pytest.mark.parametrize("a,b", [
        ([], [1.0]),
        ([1.0, 2.0], [1.0]),
        ([float("nan"), 1.0], [1.0, 1.0]),
        ([float("inf"), 1.0], [1.0, 1.0]),
        ([[1.0], [2.0]], [1.0, 2.0]),
    ])
    def test_invalid_vectors(self, search, a, b):
        with pytest.raises(ValidationError):
            search.similarity(a, b)


class TestTopK:
    def test_ranked_descending(self, search):
        pool = [record("a", [0, 1]), record("b", [1, 0]), record("c", [1, 1])]
        response = search.top_k([1, 0], pool, SearchOptions(k=2))
        assert [r.id for r in response.results] == ["b", "c"]
        assert [r.rank for r in response.results] == [1, 2]
        assert response.results[0].relative_score == 1.0
        assert response.results[1].relative_score == pytest.approx(math.sqrt(0.5))
        assert response.results[0].distance == pytest.approx(0.0, abs=1e-6)

    def test_threshold(self, search):
        pool = [record("a", [0, 1]), record("b", [1, 0])]
        response = search.top_k([1, 0], pool, SearchOptions(threshold=0.5))
        assert [r.id for r in response.results] == ["b"]

    def test_ties_keep_input_order(self, search):
        pool = [record("x", [2, 0]), record("y", [1, 0]), record("z", [3, 0])]
        response = search.top_k([1, 0], pool)
        assert [r.id for r in response.results] == ["x", "y", "z"]

    def test_filters_run_before_scoring(self, search):
        pool = [
            record("a", [1, 0], industry="tech"),
            record("b", [1, 0], industry="finance"),
            record("c", [1, 0]),
        ]
        options = SearchOptions(filters=[EqualsPredicate(field="industry", value="tech")])
        response = search.top_k([1, 0], pool, options)
        assert [r.id for r in response.results] == ["a"]
        assert response.candidates_considered == 1

    def test_dimension_mismatch(self, search):
        with pytest.raises(ValidationError, match="Dimension mismatch"):
            search.top_k([1, 0], [record("a", [1, 0, 0])])

    def test_empty_pool(self, search):
        assert search.top_k([1, 0], []).results == []


class TestPredicates:
    def test_in_with_list_metadata(self):
        predicate = [InPredicate(field="skills", values=["go", "rust"])]
        assert matches_filters({"skills": ["python", "go"]}, predicate)
        assert not matches_filters({"skills": ["java"]}, predicate)

    def test_nested(self):
        predicate = [NestedPredicate(field="location", match={"country": "DE"})]
        assert matches_filters({"location": {"country": "DE", "city": "Berlin"}}, predicate)
        assert not matches_filters({"location": "DE"}, predicate)

    def test_missing_field_fails(self):
        assert not matches_filters({}, [EqualsPredicate(field="industry", value="tech")])

    def test_from_mapping(self):
        predicates = filters_from_mapping({"industry": "tech", "level": ["senior", "lead"], "loc": {"country": "DE"}})
        assert [p.op for p in predicates] == ["equals", "in", "nested"]


class TestMultiMetric:
    def test_fused_scores_are_weighted_average(self, search):
        pool = [record("a", [1, 0]), record("b", [0, 1])]
        metrics = [MetricWeight(metric="cosine", weight=1.0), MetricWeight(metric="euclidean", weight=1.0)]
        response = search.multi_metric_top_k([1, 0], pool, metrics, k=2)
        assert response.metric == "fused"
        assert response.results[0].id == "a"
        assert response.results[0].score == pytest.approx(1.0)
        expected_b = (0.0 + 1 / (1 + math.sqrt(2))) / 2
        assert response.results[1].score == pytest.approx(expected_b)

    def test_requires_metrics(self, search):
        with pytest.raises(ValidationError):
            search.multi_metric_top_k([1, 0], [], [])


class TestApproximate:
    def test_small_pool_stays_exact(self, search):
        pool = [record(str(i), [1, i]) for i in range(20)]
        response = search.top_k([1, 0], pool, SearchOptions(approximate=True))
        assert not response.approximate

    def test_approximate_finds_near_neighbours(self):
        rng = np.random.default_rng(0)
        search = SimilaritySearch(normalize=True, threshold=0.0, rng=np.random.default_rng(1), approximate_min_pool=50)
        pool = [record(str(i), rng.normal(size=8).tolist()) for i in range(200)]
        query = pool[17].vector
        response = search.top_k(query, pool, SearchOptions(k=3, approximate=True))
        assert response.approximate
        assert response.results[0].id == "17"
        assert response.candidates_considered <= 200

    def test_seeded_runs_repeat(self):
        rng = np.random.default_rng(3)
        pool = [record(str(i), rng.normal(size=4).tolist()) for i in range(120)]
        first = SimilaritySearch(threshold=0.0, rng=np.random.default_rng(5)).approximate_top_k(pool[0].vector, pool)
        second = SimilaritySearch(threshold=0.0, rng=np.random.default_rng(5)).approximate_top_k(pool[0].vector, pool)
        assert [r.id for r in first.results] == [r.id for r in second.results]


class TestMatrices:
    def test_similarity_matrix_diagonal(self, search):
        matrix = search.similarity_matrix([[1, 0], [0, 1], [1, 1]])
        assert matrix.shape == (3, 3)
        assert np.allclose(np.diag(matrix), 1.0)
        assert matrix[0, 1] == pytest.approx(0.0)

    def test_batch_similarity_shape(self, search):
        scores = search.batch_similarity([[1, 0], [0, 1]], [[1, 0], [1, 1], [0, 2]])
        assert scores.shape == (2, 3)
        assert scores[1, 2] == pytest.approx(1.0)
