"""Pydantic contracts shared by the matching, retrieval and ranking services."""

from models.schemas.profiles import CandidateProfile, JobProfile
from models.schemas.score_breakdown import BatchScoreResult, ScoreBreakdown, ScoreWeights
from models.schemas.vectors import EmbeddingRecord, SearchOptions, SearchResponse
from models.schemas.interactions import Interaction, Recommendation, RecommendationResult
from models.schemas.ranking import FilteredMatches, MatchFilters, MatchItem, RankedMatches, RankingCriteria, SortCriteria

__all__ = [
    "CandidateProfile",
    "JobProfile",
    "BatchScoreResult",
    "ScoreBreakdown",
    "ScoreWeights",
    "EmbeddingRecord",
    "SearchOptions",
    "SearchResponse",
    "Interaction",
    "Recommendation",
    "RecommendationResult",
    "FilteredMatches",
    "MatchFilters",
    "MatchItem",
    "RankedMatches",
    "RankingCriteria",
    "SortCriteria",
]
