from typing import Any

from pydantic import BaseModel

from models.schemas.ranking import FilteredMatches
from models.schemas.score_breakdown import ScoreFailure


class HealthResponse(BaseModel):
    status: str = "ok"
    ai_model_loaded: bool = False
    embedding_backend: str = "hashing"
    factor_version: int = 0


class MatchResponse(BaseModel):
    matches: FilteredMatches = FilteredMatches()
    failures: list[ScoreFailure] = []
    ranking_metadata: dict[str, Any] = {}
    fingerprint: str = ""


class InteractionAck(BaseModel):
    recorded: int = 0
    users: int = 0
    items: int = 0


class OptionsResponse(BaseModel):
    filters: dict[str, list[str]] = {}
    sort: dict[str, list[str]] = {}
    weight_strategies: list[str] = []
    algorithms: list[str] = []
    metrics: list[str] = []


class ErrorResponse(BaseModel):
    error: str
    error_code: str
    details: dict[str, Any] = {}
