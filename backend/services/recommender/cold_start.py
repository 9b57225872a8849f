"""Fallback chain for users without enough history: content, popularity, random."""

import logging
import threading

import numpy as np

from models.schemas.interactions import Recommendation
from models.schemas.vectors import EmbeddingRecord, EqualsPredicate, SearchOptions
from services.recommender.interaction_matrix import InteractionMatrix
from services.similarity import SimilaritySearch

logger = logging.getLogger(__name__)

COLD_START_CONFIDENCE = 0.3
RANDOM_SCORE = 0.1


class ColdStartRecommender:
    def __init__(
        self,
        matrix: InteractionMatrix,
        similarity_search: SimilaritySearch | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        self._matrix = matrix
        self._search = similarity_search or SimilaritySearch(threshold=0.0)
        self._rng = rng if rng is not None else np.random.default_rng()
        self._rng_lock = threading.Lock()
        self._vectors_lock = threading.Lock()
        self._item_vectors: dict[str, EmbeddingRecord] = {}
        self._user_vectors: dict[str, list[float]] = {}

    def register_item_vector(self, item_id: str, item_type: str, vector: list[float]) -> None:
        record = EmbeddingRecord(id=item_id, vector=list(vector), metadata={"item_type": item_type})
        with self._vectors_lock:
            self._item_vectors[item_id] = record

    def register_user_vector(self, user_id: str, vector: list[float]) -> None:
        with self._vectors_lock:
            self._user_vectors[user_id] = list(vector)

    def known_items(self, item_type: str) -> list[str]:
        with self._vectors_lock:
            from_vectors = [r.id for r in self._item_vectors.values() if r.metadata["item_type"] == item_type]
        seen = set(from_vectors)
        return from_vectors + [i for i in self._matrix.item_ids(item_type) if i not in seen]

    def recommend(self, user_id: str, item_type: str, count: int, exclude: set[str]) -> tuple[list[Recommendation], str | None]:
        """Return recommendations and the name of the strategy that produced them."""
        seen = set(self._matrix.user_row(user_id)) | exclude
        for strategy in (self.content_based, self.popularity_based, self.random_items):
            recs = strategy(user_id, item_type, count, seen)
            if recs:
                return recs, strategy.__name__
        return [], None

    def _recommendation(self, item_id: str, item_type: str, score: float, strategy: str, explanation: str) -> Recommendation:
        return Recommendation(
            item_id=item_id,
            item_type=item_type,
            score=round(score, 4),
            confidence=COLD_START_CONFIDENCE,
            algorithm="cold_start",
            explanation=explanation,
            metadata={"strategy": strategy},
        )

    def content_based(self, user_id: str, item_type: str, count: int, seen: set[str]) -> list[Recommendation]:
        with self._vectors_lock:
            query = self._user_vectors.get(user_id)
            pool = [r for r in self._item_vectors.values() if r.id not in seen]
        if query is None or not pool:
            return []
        options = SearchOptions(
            metric="cosine",
            k=count,
            threshold=0.0,
            filters=[EqualsPredicate(field="item_type", value=item_type)],
        )
        response = self._search.top_k(query, pool, options)
        return [
            self._recommendation(r.id, item_type, r.score, "content_based", "Similar to your profile")
            for r in response.results
        ]

    def popularity_based(self, user_id: str, item_type: str, count: int, seen: set[str]) -> list[Recommendation]:
        popularity = {i: w for i, w in self._matrix.popularity(item_type).items() if i not in seen and w > 0}
        if not popularity:
            return []
        top = max(popularity.values())
        ranked = sorted(popularity.items(), key=lambda pair: (-pair[1], pair[0]))[:count]
        return [
            self._recommendation(item_id, item_type, weight / top, "popularity_based", "Popular with other users")
            for item_id, weight in ranked
        ]

    def random_items(self, user_id: str, item_type: str, count: int, seen: set[str]) -> list[Recommendation]:
        pool = sorted(i for i in self.known_items(item_type) if i not in seen)
        if not pool:
            return []
        with self._rng_lock:
            picks = self._rng.permutation(len(pool))[:count]
        return [
            self._recommendation(pool[idx], item_type, RANDOM_SCORE, "random_items", "Explore something new")
            for idx in picks
        ]
