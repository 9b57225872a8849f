"""Offline evaluation metrics for the recommender and the match scorer.

- Rating error of a fitted latent-factor model (RMSE, MAE)
- Ranking quality of a recommendation list (NDCG@k, precision@k)
- Agreement between predicted and reference match scores (Spearman)

All public functions accept plain Python lists or NumPy arrays and return
Python scalars or dicts.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Sequence, Set, Union

import numpy as np
from scipy.stats import spearmanr

logger = logging.getLogger(__name__)

_ArrayLike = Union[Sequence[float], "np.ndarray"]


def _paired(y_true: _ArrayLike, y_pred: _ArrayLike) -> tuple[np.ndarray, np.ndarray]:
    true_arr = np.asarray(y_true, dtype=np.float64)
    pred_arr = np.asarray(y_pred, dtype=np.float64)
    if true_arr.shape != pred_arr.shape:
        raise ValueError(f"Shape mismatch: {true_arr.shape} vs {pred_arr.shape}")
    if true_arr.size == 0:
        raise ValueError("Inputs must not be empty")
    return true_arr, pred_arr


# ---------------------------------------------------------------------------
# Rating error
# ---------------------------------------------------------------------------


def rmse(y_true: _ArrayLike, y_pred: _ArrayLike) -> float:
    """Root mean squared error between observed and reconstructed ratings."""
    true_arr, pred_arr = _paired(y_true, y_pred)
    return float(np.sqrt(np.mean((true_arr - pred_arr) ** 2)))


def mae(y_true: _ArrayLike, y_pred: _ArrayLike) -> float:
    true_arr, pred_arr = _paired(y_true, y_pred)
    return float(np.mean(np.abs(true_arr - pred_arr)))


# ---------------------------------------------------------------------------
# Ranking quality
# ---------------------------------------------------------------------------


def spearman_correlation(y_true: _ArrayLike, y_pred: _ArrayLike) -> Dict[str, float]:
    """Spearman rank correlation of predicted against reference scores.

    Returns
    -------
    dict
        ``{"spearman_rho": float, "p_value": float}``. Both are NaN when
        either input is constant.
    """
    true_arr, pred_arr = _paired(y_true, y_pred)
    rho, p_value = spearmanr(true_arr, pred_arr)
    return {"spearman_rho": float(rho), "p_value": float(p_value)}


def ndcg_at_k(y_true: _ArrayLike, y_pred: _ArrayLike, k: int = 10) -> float:
    """Normalised Discounted Cumulative Gain of the top *k* by *y_pred*.

    Parameters
    ----------
    y_true:
        Relevance of each item (for held-out interactions, the interaction
        weight; zero for items the user never touched).
    y_pred:
        Scores the recommender assigned to the same items.
    k:
        Truncation depth, >= 1.

    Returns
    -------
    float
        In [0, 1]; 0.0 when no item is relevant.
    """
    true_arr, pred_arr = _paired(y_true, y_pred)
    if k < 1:
        raise ValueError(f"k must be >= 1, got {k}")

    depth = min(k, true_arr.size)
    discounts = 1.0 / np.log2(np.arange(2, depth + 2))
    # Stable order so equal predictions keep input order.
    order = np.argsort(-pred_arr, kind="stable")[:depth]
    dcg = float(np.dot(true_arr[order], discounts))
    idcg = float(np.dot(np.sort(true_arr)[::-1][:depth], discounts))
    return dcg / idcg if idcg > 0 else 0.0


def precision_at_k(recommended: Sequence[str], relevant: Iterable[str], k: int = 10) -> float:
    """Share of the first *k* recommended ids that are in *relevant*."""
    if k < 1:
        raise ValueError(f"k must be >= 1, got {k}")
    relevant_set: Set[str] = set(relevant)
    top = list(recommended)[:k]
    if not top:
        return 0.0
    return sum(1 for item in top if item in relevant_set) / len(top)
