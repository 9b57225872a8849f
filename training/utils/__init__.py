"""Training utility package -- offline evaluation metrics."""

from .metrics import (
    mae,
    ndcg_at_k,
    precision_at_k,
    rmse,
    spearman_correlation,
)

__all__ = [
    "rmse",
    "mae",
    "ndcg_at_k",
    "precision_at_k",
    "spearman_correlation",
]
