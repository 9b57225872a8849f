import os
from pydantic_settings import BaseSettings


def _parse_cors_origins() -> list[str] | None:
    """Parse CORS_ORIGINS env var as comma-separated string or JSON list."""
    raw = os.environ.get("CORS_ORIGINS")
    if not raw:
        return None
    if raw.startswith("["):
        import json
        return json.loads(raw)
    return [o.strip() for o in raw.split(",") if o.strip()]


class Settings(BaseSettings):
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]
    debug: bool = False
    rate_limit: str = "60/minute"

    # Scoring
    default_weight_strategy: str = "balanced"
    score_batch_workers: int = 4
    ai_model_path: str = "training/models/match_judge/model.txt"
    title_similarity: str = "jaccard"  # jaccard | fuzzy (rapidfuzz token-set ratio)

    # Similarity search
    similarity_threshold: float = 0.5
    similarity_normalize: bool = True
    approximate_search_min_pool: int = 1000
    embedding_model: str = ""  # sentence-transformers model name; empty = hashing vectorizer
    embedding_dim: int = 256

    # Collaborative filtering
    cold_start_threshold: int = 10
    user_similarity_threshold: float = 0.1
    item_similarity_threshold: float = 0.1
    max_similar_users: int = 20
    max_similar_items: int = 10
    mf_factors: int = 50
    mf_iterations: int = 100
    mf_regularization: float = 0.01
    mf_learning_rate: float = 0.01
    mf_seed: int = 42
    min_training_interactions: int = 100
    coverage_min_interactions: int = 5
    lock_stripes: int = 64

    # Result cache
    cache_ttl_seconds: float = 1800.0
    cache_max_entries: int = 512

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "protected_namespaces": ("settings_",)}


_cors_override = _parse_cors_origins()
settings = Settings(**{"cors_origins": _cors_override} if _cors_override else {})
