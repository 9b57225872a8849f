from datetime import date, datetime

from pydantic import BaseModel, Field

from models.schemas.interactions import Interaction
from models.schemas.profiles import CandidateProfile, JobProfile
from models.schemas.ranking import MatchFilters, MatchItem, RankingCriteria, SortCriteria
from models.schemas.score_breakdown import ScoreWeights
from models.schemas.vectors import EmbeddingRecord, SearchOptions

WeightsField = str | dict[str, float] | ScoreWeights | None


class ScoreRequest(BaseModel):
    candidate: CandidateProfile
    job: JobProfile
    weights: WeightsField = Field(None, description="Preset name or factor -> weight map summing to 1")
    as_of: date | None = None


class BatchScoreRequest(BaseModel):
    candidates: list[CandidateProfile] = Field(..., max_length=1000)
    job: JobProfile
    weights: WeightsField = None
    as_of: date | None = None


class SimilarityRequest(BaseModel):
    query: list[float] = Field(..., min_length=1)
    candidates: list[EmbeddingRecord]
    options: SearchOptions = SearchOptions()


class InteractionBatch(BaseModel):
    interactions: list[Interaction] = Field(..., min_length=1)


class RankRequest(BaseModel):
    items: list[MatchItem]
    criteria: RankingCriteria = RankingCriteria()
    filters: MatchFilters | None = None
    now: datetime | None = None


class FilterRequest(BaseModel):
    items: list[MatchItem]
    filters: MatchFilters | None = None
    sort: SortCriteria = SortCriteria()
    now: datetime | None = None


class JobMatchRequest(BaseModel):
    """Rank a candidate pool against one job."""
    job: JobProfile
    candidates: list[CandidateProfile] = Field(..., max_length=1000)
    weights: WeightsField = None
    criteria: RankingCriteria | None = None
    filters: MatchFilters | None = None
    sort: SortCriteria | None = None
    user_id: str | None = Field(None, description="Recruiter whose interaction history is blended in")
    item_fields: dict[str, dict] = {}
    as_of: date | None = None
    now: datetime | None = None
