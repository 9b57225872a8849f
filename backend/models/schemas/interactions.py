"""Interaction events and recommender outputs."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

ItemType = Literal["job", "candidate"]


class InteractionType(str, Enum):
    VIEW = "view"
    LIKE = "like"
    SAVE = "save"
    APPLY = "apply"
    FEEDBACK = "feedback"
    SHARE = "share"
    COMMENT = "comment"


class Interaction(BaseModel):
    user_id: str
    item_id: str
    item_type: ItemType = "job"
    type: InteractionType
    rating: int | None = Field(default=None, ge=1, le=5)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    duration_ms: float | None = Field(default=None, ge=0)
    source: str | None = None  # "direct", "search", "recommendation", ...
    weight: float | None = None  # derived on record when not supplied


class Recommendation(BaseModel):
    item_id: str
    item_type: ItemType
    score: float
    confidence: float = Field(ge=0.0, le=1.0)
    algorithm: str
    explanation: str = ""
    metadata: dict[str, Any] = {}


class RecommendationOptions(BaseModel):
    algorithm: str = "hybrid"  # user_based, item_based, matrix_factorization, hybrid
    count: int = Field(default=10, ge=1, le=200)
    exclude_item_ids: list[str] = []


class RecommendationResult(BaseModel):
    user_id: str
    item_type: ItemType
    algorithm: str
    confidence: float = 0.0
    recommendations: list[Recommendation] = []
    metadata: dict[str, Any] = {}


class TrainingResult(BaseModel):
    status: str  # "trained" | "insufficient_data"
    rmse: float | None = None
    mae: float | None = None
    interactions: int = 0
    users: int = 0
    items: int = 0
    iterations: int = 0
    version: int = 0


class ModelMetrics(BaseModel):
    rmse: float | None = None
    mae: float | None = None
    coverage: float = 0.0
    users: int = 0
    items: int = 0
    interactions: int = 0
    factor_version: int = 0
    trained_at: datetime | None = None
