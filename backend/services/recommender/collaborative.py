"""Collaborative-filtering recommender.

Users with fewer distinct interactions than the cold-start threshold are
served by the fallback chain in cold_start.py. Warm users get one of:

    user_based            similar users' weights on unseen items
    item_based            items similar to the ones the user touched
    matrix_factorization  dot product of trained latent factors
    hybrid                0.3 user + 0.3 item + 0.4 latent, each max-normalized

Shared state is the row-sharded InteractionMatrix and the FactorTable, which
training replaces wholesale.
"""

import logging
import math
import threading
import warnings
from collections import defaultdict
from typing import Callable, Iterable

import numpy as np
from pydantic import BaseModel

from config import settings
from models.schemas.interactions import (
    Interaction,
    ModelMetrics,
    Recommendation,
    RecommendationOptions,
    RecommendationResult,
    TrainingResult,
)
from services.exceptions import TrainingDataInsufficientWarning, UnknownAlgorithmError
from services.recommender.cold_start import COLD_START_CONFIDENCE, ColdStartRecommender
from services.recommender.factorization import FactorTable, train_factors
from services.recommender.interaction_matrix import InteractionMatrix
from services.similarity import SimilaritySearch

logger = logging.getLogger(__name__)

ALGORITHMS = ("user_based", "item_based", "matrix_factorization", "hybrid")
HYBRID_WEIGHTS = {"user_based": 0.3, "item_based": 0.3, "matrix_factorization": 0.4}
CONFIDENCE_MULTIPLIERS = {
    "user_based": 0.8,
    "item_based": 0.8,
    "matrix_factorization": 0.9,
    "hybrid": 0.95,
}
NEIGHBOUR_CONFIDENCE = 0.8
LATENT_CONFIDENCE = 0.7
SHARED_USER_BOOST = 0.1


class RecommenderConfig(BaseModel):
    cold_start_threshold: int = settings.cold_start_threshold
    user_similarity_threshold: float = settings.user_similarity_threshold
    item_similarity_threshold: float = settings.item_similarity_threshold
    max_similar_users: int = settings.max_similar_users
    max_similar_items: int = settings.max_similar_items
    factors: int = settings.mf_factors
    iterations: int = settings.mf_iterations
    regularization: float = settings.mf_regularization
    learning_rate: float = settings.mf_learning_rate
    min_training_interactions: int = settings.min_training_interactions
    coverage_min_interactions: int = settings.coverage_min_interactions


def shared_cosine(a: dict[str, float], b: dict[str, float]) -> tuple[float, int]:
    """Cosine similarity over the keys both rows share, plus the shared count."""
    shared = a.keys() & b.keys()
    if not shared:
        return 0.0, 0
    dot = sum(a[k] * b[k] for k in shared)
    norm_a = math.sqrt(sum(a[k] ** 2 for k in shared))
    norm_b = math.sqrt(sum(b[k] ** 2 for k in shared))
    if norm_a == 0 or norm_b == 0:
        return 0.0, len(shared)
    return min(1.0, dot / (norm_a * norm_b)), len(shared)


def _top(scores: dict[str, float], count: int) -> list[tuple[str, float]]:
    return sorted(scores.items(), key=lambda pair: (-pair[1], pair[0]))[:count]


class CollaborativeRecommender:
    def __init__(
        self,
        config: RecommenderConfig | None = None,
        matrix: InteractionMatrix | None = None,
        similarity_search: SimilaritySearch | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        self.config = config or RecommenderConfig()
        self.matrix = matrix or InteractionMatrix()
        self._rng = rng if rng is not None else np.random.default_rng(settings.mf_seed)
        self.cold_start = ColdStartRecommender(self.matrix, similarity_search, rng=self._rng)
        self._factors: FactorTable | None = None
        self._train_lock = threading.Lock()
        self._algorithms: dict[str, Callable[[str, str, int, set[str]], list[Recommendation]]] = {
            "user_based": self._user_based,
            "item_based": self._item_based,
            "matrix_factorization": self._matrix_factorization,
            "hybrid": self._hybrid,
        }

    # ------------------------------------------------------------------
    # Event feed
    # ------------------------------------------------------------------

    def record_interaction(self, interaction: Interaction) -> float:
        return self.matrix.record(interaction)

    def rebuild(self, events: Iterable[Interaction]) -> int:
        """Cold init from a full event log. Trained factors are kept until retrained."""
        return self.matrix.rebuild(events)

    def register_item_vector(self, item_id: str, item_type: str, vector: list[float]) -> None:
        self.cold_start.register_item_vector(item_id, item_type, vector)

    def register_user_vector(self, user_id: str, vector: list[float]) -> None:
        self.cold_start.register_user_vector(user_id, vector)

    @property
    def factor_table(self) -> FactorTable | None:
        return self._factors

    def is_cold(self, user_id: str) -> bool:
        return self.matrix.interaction_count(user_id) < self.config.cold_start_threshold

    # ------------------------------------------------------------------
    # Neighbourhoods
    # ------------------------------------------------------------------

    def similar_users(self, user_id: str, count: int | None = None) -> list[tuple[str, float, int]]:
        """(user_id, similarity, shared item count), most similar first."""
        row = self.matrix.user_row(user_id)
        if not row:
            return []
        found = []
        for other in self.matrix.user_ids():
            if other == user_id:
                continue
            sim, shared = shared_cosine(row, self.matrix.user_row(other))
            if shared and sim >= self.config.user_similarity_threshold:
                found.append((other, sim, shared))
        found.sort(key=lambda t: (-t[1], t[0]))
        return found[: count or self.config.max_similar_users]

    def similar_items(self, item_id: str, count: int | None = None) -> list[tuple[str, float, int]]:
        """(item_id, similarity, shared user count), most similar first."""
        row = self.matrix.item_row(item_id)
        if not row:
            return []
        found = []
        for other in self.matrix.item_ids():
            if other == item_id:
                continue
            sim, shared = shared_cosine(row, self.matrix.item_row(other))
            if shared and sim >= self.config.item_similarity_threshold:
                found.append((other, sim, shared))
        found.sort(key=lambda t: (-t[1], t[0]))
        return found[: count or self.config.max_similar_items]

    # ------------------------------------------------------------------
    # Algorithms
    # ------------------------------------------------------------------

    def _eligible(self, item_id: str, item_type: str, seen: set[str]) -> bool:
        return item_id not in seen and self.matrix.item_type(item_id) == item_type

    def _user_based(self, user_id: str, item_type: str, count: int, seen: set[str]) -> list[Recommendation]:
        scores: dict[str, float] = defaultdict(float)
        confidence: dict[str, float] = defaultdict(float)
        support: dict[str, int] = defaultdict(int)
        for other, sim, _ in self.similar_users(user_id):
            for item_id, weight in self.matrix.user_row(other).items():
                if not self._eligible(item_id, item_type, seen):
                    continue
                scores[item_id] += weight * sim
                confidence[item_id] = max(confidence[item_id], sim * NEIGHBOUR_CONFIDENCE)
                support[item_id] += 1
        return [
            Recommendation(
                item_id=item_id,
                item_type=item_type,
                score=round(score, 4),
                confidence=min(1.0, confidence[item_id]),
                algorithm="user_based",
                explanation=f"Users with similar activity engaged with this ({support[item_id]} users)",
                metadata={"supporting_users": support[item_id]},
            )
            for item_id, score in _top(scores, count)
        ]

    def _item_based(self, user_id: str, item_type: str, count: int, seen: set[str]) -> list[Recommendation]:
        scores: dict[str, float] = defaultdict(float)
        confidence: dict[str, float] = defaultdict(float)
        sources: dict[str, list[str]] = defaultdict(list)
        for source_id, weight in self.matrix.user_row(user_id).items():
            for other, sim, shared in self.similar_items(source_id):
                if not self._eligible(other, item_type, seen):
                    continue
                scores[other] += weight * sim * (1 + SHARED_USER_BOOST * shared)
                confidence[other] = max(confidence[other], sim * NEIGHBOUR_CONFIDENCE)
                sources[other].append(source_id)
        return [
            Recommendation(
                item_id=item_id,
                item_type=item_type,
                score=round(score, 4),
                confidence=min(1.0, confidence[item_id]),
                algorithm="item_based",
                explanation="Similar to items you interacted with",
                metadata={"because_of": sources[item_id][:3]},
            )
            for item_id, score in _top(scores, count)
        ]

    def _matrix_factorization(self, user_id: str, item_type: str, count: int, seen: set[str]) -> list[Recommendation]:
        table = self._factors  # single read; training may swap it meanwhile
        if table is None:
            return []
        candidates = [i for i in table.item_index if self._eligible(i, item_type, seen)]
        scores = table.score_items(user_id, candidates)
        return [
            Recommendation(
                item_id=item_id,
                item_type=item_type,
                score=round(score, 4),
                confidence=LATENT_CONFIDENCE,
                algorithm="matrix_factorization",
                explanation="Predicted from your interaction pattern",
                metadata={"factor_version": table.version},
            )
            for item_id, score in _top(scores, count)
        ]

    def _hybrid(self, user_id: str, item_type: str, count: int, seen: set[str]) -> list[Recommendation]:
        combined: dict[str, float] = defaultdict(float)
        confidence: dict[str, float] = defaultdict(float)
        components: dict[str, dict[str, float]] = defaultdict(dict)
        for name, weight in HYBRID_WEIGHTS.items():
            recs = self._algorithms[name](user_id, item_type, count * 2, seen)
            if not recs:
                continue
            top = max(r.score for r in recs)
            for rec in recs:
                normalized = rec.score / top if top > 0 else 0.0
                combined[rec.item_id] += weight * normalized
                confidence[rec.item_id] = max(confidence[rec.item_id], rec.confidence)
                components[rec.item_id][name] = round(normalized, 4)
        return [
            Recommendation(
                item_id=item_id,
                item_type=item_type,
                score=round(score, 4),
                confidence=min(1.0, confidence[item_id]),
                algorithm="hybrid",
                explanation="Combined collaborative signals",
                metadata={"components": components[item_id]},
            )
            for item_id, score in _top(combined, count)
        ]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def recommend(
        self,
        user_id: str,
        item_type: str = "job",
        options: RecommendationOptions | None = None,
    ) -> RecommendationResult:
        options = options or RecommendationOptions()
        if options.algorithm not in self._algorithms:
            raise UnknownAlgorithmError(
                f"Unknown recommendation algorithm: {options.algorithm}",
                field="algorithm",
                value=options.algorithm,
            )
        exclude = set(options.exclude_item_ids)
        interactions = self.matrix.interaction_count(user_id)

        if interactions >= self.config.cold_start_threshold:
            seen = set(self.matrix.user_row(user_id)) | exclude
            recs = self._algorithms[options.algorithm](user_id, item_type, options.count, seen)
            if recs:
                confidence = float(np.mean([r.confidence for r in recs])) * CONFIDENCE_MULTIPLIERS[options.algorithm]
                return RecommendationResult(
                    user_id=user_id,
                    item_type=item_type,
                    algorithm=options.algorithm,
                    confidence=round(min(1.0, confidence), 4),
                    recommendations=recs,
                    metadata={"interactions": interactions},
                )
            logger.info("No %s results for user %s, using cold-start chain", options.algorithm, user_id)
            reason = "no_collaborative_results"
        else:
            reason = "insufficient_interactions"

        recs, strategy = self.cold_start.recommend(user_id, item_type, options.count, exclude)
        return RecommendationResult(
            user_id=user_id,
            item_type=item_type,
            algorithm="cold_start",
            confidence=COLD_START_CONFIDENCE if recs else 0.0,
            recommendations=recs,
            metadata={
                "interactions": interactions,
                "requested_algorithm": options.algorithm,
                "fallback_reason": reason,
                "strategy": strategy,
            },
        )

    def train_model(self) -> TrainingResult:
        """Fit latent factors on all recorded interactions and publish them atomically."""
        with self._train_lock:
            cells = list(self.matrix.cells())
            if len(cells) < self.config.min_training_interactions:
                message = (
                    f"Only {len(cells)} interactions recorded; "
                    f"{self.config.min_training_interactions} needed to train latent factors"
                )
                logger.warning(message)
                warnings.warn(message, TrainingDataInsufficientWarning, stacklevel=2)
                return TrainingResult(status="insufficient_data", interactions=len(cells))

            user_ids = sorted({u for u, _, _ in cells})
            item_ids = sorted({i for _, i, _ in cells})
            user_pos = {u: n for n, u in enumerate(user_ids)}
            item_pos = {i: n for n, i in enumerate(item_ids)}
            ratings = [(user_pos[u], item_pos[i], w / 5.0) for u, i, w in cells]

            logger.info(
                "Training latent factors: %d interactions, %d users, %d items",
                len(ratings), len(user_ids), len(item_ids),
            )
            user_factors, item_factors, rmse, mae = train_factors(
                ratings,
                n_users=len(user_ids),
                n_items=len(item_ids),
                factors=self.config.factors,
                iterations=self.config.iterations,
                regularization=self.config.regularization,
                learning_rate=self.config.learning_rate,
                rng=self._rng,
            )
            version = (self._factors.version if self._factors else 0) + 1
            table = FactorTable.build(version, user_ids, item_ids, user_factors, item_factors, rmse, mae)
            self._factors = table
            logger.info("Published factor table v%d (rmse=%.4f, mae=%.4f)", version, rmse, mae)
            return TrainingResult(
                status="trained",
                rmse=round(rmse, 6),
                mae=round(mae, 6),
                interactions=len(ratings),
                users=len(user_ids),
                items=len(item_ids),
                iterations=self.config.iterations,
                version=version,
            )

    def get_model_metrics(self) -> ModelMetrics:
        table = self._factors
        item_ids = self.matrix.item_ids()
        covered = sum(
            1 for i in item_ids
            if len(self.matrix.item_row(i)) >= self.config.coverage_min_interactions
        )
        return ModelMetrics(
            rmse=table.rmse if table else None,
            mae=table.mae if table else None,
            coverage=round(covered / len(item_ids), 4) if item_ids else 0.0,
            users=len(self.matrix.user_ids()),
            items=len(item_ids),
            interactions=sum(1 for _ in self.matrix.cells()),
            factor_version=table.version if table else 0,
            trained_at=table.trained_at if table else None,
        )
