"""Latent-factor model fitted by stochastic gradient descent.

Training produces a new immutable FactorTable; the recommender publishes it
with a single reference assignment, so readers always see either the old
table or the new one in full.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Mapping

import numpy as np

logger = logging.getLogger(__name__)

INIT_SCALE = 0.1


@dataclass(frozen=True)
class FactorTable:
    version: int
    user_index: Mapping[str, int]
    item_index: Mapping[str, int]
    user_factors: np.ndarray
    item_factors: np.ndarray
    rmse: float
    mae: float
    trained_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def build(
        cls,
        version: int,
        user_ids: list[str],
        item_ids: list[str],
        user_factors: np.ndarray,
        item_factors: np.ndarray,
        rmse: float,
        mae: float,
    ) -> "FactorTable":
        user_factors = user_factors.copy()
        item_factors = item_factors.copy()
        user_factors.flags.writeable = False
        item_factors.flags.writeable = False
        return cls(
            version=version,
            user_index=MappingProxyType({u: i for i, u in enumerate(user_ids)}),
            item_index=MappingProxyType({it: i for i, it in enumerate(item_ids)}),
            user_factors=user_factors,
            item_factors=item_factors,
            rmse=rmse,
            mae=mae,
        )

    def predict(self, user_id: str, item_id: str) -> float | None:
        u = self.user_index.get(user_id)
        i = self.item_index.get(item_id)
        if u is None or i is None:
            return None
        return float(self.user_factors[u] @ self.item_factors[i])

    def score_items(self, user_id: str, item_ids: list[str]) -> dict[str, float]:
        """Dot-product scores for the known items among item_ids."""
        u = self.user_index.get(user_id)
        if u is None:
            return {}
        known = [it for it in item_ids if it in self.item_index]
        if not known:
            return {}
        rows = self.item_factors[[self.item_index[it] for it in known]]
        scores = rows @ self.user_factors[u]
        return {it: float(s) for it, s in zip(known, scores)}


def train_factors(
    ratings: list[tuple[int, int, float]],
    n_users: int,
    n_items: int,
    factors: int,
    iterations: int,
    regularization: float,
    learning_rate: float,
    rng: np.random.Generator,
) -> tuple[np.ndarray, np.ndarray, float, float]:
    """Fit P (users x k) and Q (items x k) so that P[u] . Q[i] ~ rating.

    Minimizes squared error with L2 regularization, one shuffled SGD pass per
    iteration. Returns the factors and the training RMSE/MAE.
    """
    user_factors = rng.normal(0.0, INIT_SCALE, size=(n_users, factors))
    item_factors = rng.normal(0.0, INIT_SCALE, size=(n_items, factors))
    samples = np.array(ratings, dtype=float)
    users = samples[:, 0].astype(int)
    items = samples[:, 1].astype(int)
    targets = samples[:, 2]

    for iteration in range(iterations):
        for idx in rng.permutation(len(samples)):
            u, i = users[idx], items[idx]
            pu = user_factors[u].copy()
            err = targets[idx] - pu @ item_factors[i]
            user_factors[u] += learning_rate * (err * item_factors[i] - regularization * pu)
            item_factors[i] += learning_rate * (err * pu - regularization * item_factors[i])
        if (iteration + 1) % 25 == 0:
            logger.debug("SGD iteration %d/%d", iteration + 1, iterations)

    predictions = np.einsum("ij,ij->i", user_factors[users], item_factors[items])
    errors = targets - predictions
    rmse = float(np.sqrt(np.mean(errors ** 2)))
    mae = float(np.mean(np.abs(errors)))
    return user_factors, item_factors, rmse, mae
