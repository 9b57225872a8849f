"""Vector similarity metrics and top-K retrieval over embedding records.

Besides exact search there is weighted multi-metric fusion, plus an
approximate mode that searches only the clusters nearest the query. Bad
vectors (empty, mismatched dimensions, non-finite) raise ValidationError
before any computation.
"""

import logging
import math
import threading
from typing import Any, Sequence

import numpy as np
from sklearn.metrics.pairwise import euclidean_distances, manhattan_distances

from config import settings
from models.schemas.vectors import (
    EmbeddingRecord,
    EqualsPredicate,
    InPredicate,
    MetadataPredicate,
    MetricWeight,
    NestedPredicate,
    SearchOptions,
    SearchResponse,
    SimilarityResult,
)
from services.exceptions import UnknownAlgorithmError, ValidationError

logger = logging.getLogger(__name__)

METRICS = ("cosine", "euclidean", "dotproduct", "manhattan")
MAX_CLUSTERS = 10


def validate_vector(vector: Sequence[float] | np.ndarray, name: str = "vector") -> np.ndarray:
    try:
        arr = np.asarray(vector, dtype=float)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} is not numeric: {e}", field=name) from e
    if arr.ndim != 1 or arr.size == 0:
        raise ValidationError(f"{name} must be a non-empty 1-D vector", field=name)
    if not np.all(np.isfinite(arr)):
        raise ValidationError(f"{name} contains NaN or infinite components", field=name)
    return arr


def _check_dimensions(a: np.ndarray, b: np.ndarray, name: str = "vector") -> None:
    if a.shape[0] != b.shape[0]:
        raise ValidationError(
            f"Dimension mismatch: {a.shape[0]} != {b.shape[0]}",
            field=name,
            value=b.shape[0],
        )


def _normalize(arr: np.ndarray) -> np.ndarray:
    norm = np.linalg.norm(arr, axis=-1, keepdims=True)
    return np.divide(arr, norm, out=arr.copy(), where=norm > 0)


def filters_from_mapping(mapping: dict[str, Any]) -> list[MetadataPredicate]:
    """Build predicates from a plain mapping: list -> in, dict -> nested, else equals."""
    predicates: list[MetadataPredicate] = []
    for field, value in mapping.items():
        if isinstance(value, (list, tuple, set)):
            predicates.append(InPredicate(field=field, values=list(value)))
        elif isinstance(value, dict):
            predicates.append(NestedPredicate(field=field, match=value))
        else:
            predicates.append(EqualsPredicate(field=field, value=value))
    return predicates


def matches_predicate(metadata: dict[str, Any], predicate: MetadataPredicate) -> bool:
    if predicate.field not in metadata:
        return False
    value = metadata[predicate.field]
    if isinstance(predicate, EqualsPredicate):
        return value == predicate.value
    if isinstance(predicate, InPredicate):
        if isinstance(value, list):
            return any(v in predicate.values for v in value)
        return value in predicate.values
    if isinstance(predicate, NestedPredicate):
        return isinstance(value, dict) and all(value.get(k) == v for k, v in predicate.match.items())
    raise ValidationError(f"Unsupported predicate: {predicate!r}")


def matches_filters(metadata: dict[str, Any], predicates: list[MetadataPredicate]) -> bool:
    return all(matches_predicate(metadata, p) for p in predicates)


def distance_from_similarity(score: float, metric: str, dim: int) -> float:
    if metric == "cosine":
        return math.acos(max(-1.0, min(1.0, score)))
    if metric == "euclidean":
        return 1.0 / score - 1.0 if score > 0 else math.inf
    if metric == "manhattan":
        return (1.0 - score) * 2 * dim
    return 1.0 - score


class SimilaritySearch:
    """Exact, fused and approximate nearest-neighbour search.

    Args:
        normalize: L2-normalize vectors before comparison.
        threshold: default minimum score for top-K results.
        rng: source of randomness for approximate-search cluster seeding.
        approximate_min_pool: smallest pool that top_k searches approximately.
    """

    def __init__(
        self,
        normalize: bool | None = None,
        threshold: float | None = None,
        rng: np.random.Generator | None = None,
        approximate_min_pool: int | None = None,
    ) -> None:
        self.normalize = settings.similarity_normalize if normalize is None else normalize
        self.threshold = settings.similarity_threshold if threshold is None else threshold
        self.approximate_min_pool = (
            settings.approximate_search_min_pool if approximate_min_pool is None else approximate_min_pool
        )
        self._rng = rng if rng is not None else np.random.default_rng()
        self._rng_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def _check_metric(self, metric: str) -> None:
        if metric not in METRICS:
            raise UnknownAlgorithmError(f"Unknown similarity metric: {metric}", field="metric", value=metric)

    def _prepare(self, arr: np.ndarray) -> np.ndarray:
        return _normalize(arr) if self.normalize else arr

    def similarity(self, a: Sequence[float], b: Sequence[float], metric: str = "cosine") -> float:
        self._check_metric(metric)
        va = validate_vector(a, "a")
        vb = validate_vector(b, "b")
        _check_dimensions(va, vb, "b")
        va, vb = self._prepare(va), self._prepare(vb)

        if metric in ("cosine", "dotproduct"):
            denom = math.sqrt(float(np.dot(va, va)) * float(np.dot(vb, vb)))
            cos = max(-1.0, min(1.0, float(np.dot(va, vb)) / denom)) if denom > 0 else 0.0
            return cos if metric == "cosine" else (cos + 1.0) / 2.0
        if metric == "euclidean":
            return 1.0 / (1.0 + float(np.linalg.norm(va - vb)))
        distance = float(np.abs(va - vb).sum())
        return max(0.0, min(1.0, 1.0 - distance / (2 * va.shape[0])))

    def _scores(self, query: np.ndarray, matrix: np.ndarray, metric: str) -> np.ndarray:
        """Score every row of a prepared matrix against a prepared query."""
        if metric in ("cosine", "dotproduct"):
            dots = matrix @ query
            denom = np.sqrt(np.einsum("ij,ij->i", matrix, matrix) * float(query @ query))
            cos = np.divide(dots, denom, out=np.zeros_like(dots), where=denom > 0)
            cos = np.clip(cos, -1.0, 1.0)
            return cos if metric == "cosine" else (cos + 1.0) / 2.0
        if metric == "euclidean":
            return 1.0 / (1.0 + euclidean_distances(matrix, query[None, :])[:, 0])
        distances = manhattan_distances(matrix, query[None, :])[:, 0]
        return np.clip(1.0 - distances / (2 * query.shape[0]), 0.0, 1.0)

    def _stack(self, records: Sequence[EmbeddingRecord], query: np.ndarray) -> np.ndarray:
        rows = []
        for record in records:
            vec = validate_vector(record.vector, f"candidate {record.id}")
            _check_dimensions(query, vec, f"candidate {record.id}")
            rows.append(vec)
        return np.vstack(rows) if rows else np.empty((0, query.shape[0]))

    # ------------------------------------------------------------------
    # Top-K
    # ------------------------------------------------------------------

    def _rank(
        self,
        scored: list[tuple[EmbeddingRecord, float]],
        metric: str,
        dim: int,
        k: int,
    ) -> list[SimilarityResult]:
        # sorted() is stable, so tied scores keep input order
        scored = sorted(scored, key=lambda pair: -pair[1])
        if not scored:
            return []
        max_score = scored[0][1]
        results = []
        for rank, (record, score) in enumerate(scored[:k], start=1):
            if max_score > 0:
                relative = score / max_score
            else:
                relative = 1.0 if score == max_score else 0.0
            results.append(SimilarityResult(
                id=record.id,
                score=score,
                distance=distance_from_similarity(score, metric, dim),
                rank=rank,
                relative_score=relative,
                metadata=record.metadata,
            ))
        return results

    def _exact(
        self,
        query: np.ndarray,
        records: Sequence[EmbeddingRecord],
        matrix: np.ndarray,
        options: SearchOptions,
        approximate: bool = False,
    ) -> SearchResponse:
        keep = [i for i, r in enumerate(records) if matches_filters(r.metadata, options.filters)]
        response = SearchResponse(metric=options.metric, approximate=approximate, candidates_considered=len(keep))
        if not keep:
            return response
        scores = self._scores(self._prepare(query), self._prepare(matrix[keep]), options.metric)
        threshold = self.threshold if options.threshold is None else options.threshold
        scored = [
            (records[i], float(score))
            for i, score in zip(keep, scores)
            if score >= threshold
        ]
        response.results = self._rank(scored, options.metric, query.shape[0], options.k)
        return response

    def top_k(
        self,
        query: Sequence[float],
        candidates: Sequence[EmbeddingRecord],
        options: SearchOptions | None = None,
    ) -> SearchResponse:
        """Rank candidates by similarity to the query.

        Metadata filters run before scoring, then the threshold, then a stable
        descending sort. Large pools are searched approximately when
        options.approximate is set.
        """
        options = options or SearchOptions()
        self._check_metric(options.metric)
        q = validate_vector(query, "query")
        matrix = self._stack(candidates, q)
        if options.approximate and len(candidates) >= self.approximate_min_pool:
            return self._approximate(q, candidates, matrix, options)
        return self._exact(q, candidates, matrix, options)

    def approximate_top_k(
        self,
        query: Sequence[float],
        candidates: Sequence[EmbeddingRecord],
        options: SearchOptions | None = None,
    ) -> SearchResponse:
        """Search only the clusters nearest the query, regardless of pool size."""
        options = options or SearchOptions()
        self._check_metric(options.metric)
        q = validate_vector(query, "query")
        matrix = self._stack(candidates, q)
        return self._approximate(q, candidates, matrix, options)

    def _approximate(
        self,
        query: np.ndarray,
        records: Sequence[EmbeddingRecord],
        matrix: np.ndarray,
        options: SearchOptions,
    ) -> SearchResponse:
        n = len(records)
        if n == 0:
            return SearchResponse(metric=options.metric, approximate=True)

        points = self._prepare(matrix)
        n_clusters = min(MAX_CLUSTERS, max(1, n // 10))
        with self._rng_lock:
            center_idx = self._rng.choice(n, size=n_clusters, replace=False)
        centers = points[center_idx]

        # Single assignment pass, no iteration to convergence
        assignments = np.argmin(euclidean_distances(points, centers), axis=1)
        center_order = np.argsort(euclidean_distances(self._prepare(query)[None, :], centers)[0], kind="stable")
        searched = set(center_order[: min(2 * options.k, n_clusters)].tolist())

        subset = [i for i in range(n) if assignments[i] in searched]
        logger.debug("Approximate search over %d/%d clusters, %d/%d candidates", len(searched), n_clusters, len(subset), n)
        return self._exact(query, [records[i] for i in subset], matrix[subset], options, approximate=True)

    def multi_metric_top_k(
        self,
        query: Sequence[float],
        candidates: Sequence[EmbeddingRecord],
        metrics: list[MetricWeight],
        k: int = 10,
        threshold: float | None = None,
        filters: list[MetadataPredicate] | None = None,
    ) -> SearchResponse:
        """Fuse several metrics: sum score x weight over the union, divide by total weight."""
        if not metrics:
            raise ValidationError("At least one metric is required", field="metrics")
        for mw in metrics:
            self._check_metric(mw.metric)
        total_weight = sum(mw.weight for mw in metrics)

        q = validate_vector(query, "query")
        matrix = self._stack(candidates, q)
        threshold = self.threshold if threshold is None else threshold
        keep = [i for i, r in enumerate(candidates) if matches_filters(r.metadata, filters or [])]
        response = SearchResponse(metric="fused", candidates_considered=len(keep))
        if not keep:
            return response

        prepared_q = self._prepare(q)
        prepared = self._prepare(matrix[keep])
        fused: dict[int, float] = {}
        for mw in metrics:
            scores = self._scores(prepared_q, prepared, mw.metric)
            for pos, score in enumerate(scores):
                if score >= threshold:
                    fused[keep[pos]] = fused.get(keep[pos], 0.0) + float(score) * mw.weight

        # Candidate order, so tied fused scores keep input order
        scored = [(candidates[i], value / total_weight) for i, value in sorted(fused.items())]
        response.results = self._rank(scored, "fused", q.shape[0], k)
        return response

    # ------------------------------------------------------------------
    # Matrices
    # ------------------------------------------------------------------

    def batch_similarity(
        self,
        queries: Sequence[Sequence[float]],
        candidates: Sequence[Sequence[float]],
        metric: str = "cosine",
    ) -> np.ndarray:
        """Score matrix of shape (len(queries), len(candidates))."""
        self._check_metric(metric)
        qs = [validate_vector(v, f"query {i}") for i, v in enumerate(queries)]
        cs = [validate_vector(v, f"candidate {i}") for i, v in enumerate(candidates)]
        if not qs or not cs:
            return np.zeros((len(qs), len(cs)))
        for i, v in enumerate(qs + cs):
            _check_dimensions(qs[0], v, f"vector {i}")
        matrix = self._prepare(np.vstack(cs))
        return np.vstack([self._scores(self._prepare(q), matrix, metric) for q in qs])

    def similarity_matrix(self, vectors: Sequence[Sequence[float]], metric: str = "cosine") -> np.ndarray:
        """Pairwise scores with a unit diagonal."""
        result = self.batch_similarity(vectors, vectors, metric)
        if result.size:
            np.fill_diagonal(result, 1.0)
        return result
