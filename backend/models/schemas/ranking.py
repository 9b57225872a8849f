"""Common match-result shape plus ranking and filter/sort criteria.

MatchItem scores use a 0-100 scale. ScoreBreakdown factors in [0, 1] are
scaled by MatchItem.from_breakdown.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from models.schemas.interactions import ItemType
from models.schemas.score_breakdown import ScoreBreakdown

# ScoreBreakdown factor -> ranking component names on the candidate side
CANDIDATE_COMPONENTS = {
    "skills": "skills_match",
    "experience": "experience_match",
    "education": "education_match",
    "location": "location_match",
    "preferences": "preferences_match",
    "salary": "salary_match",
    "cultural_fit": "cultural_fit",
    "ai_prediction": "ai_prediction",
}

# ... and the job-side aliases a job seeker ranks by
JOB_COMPONENTS = {
    "skills": "requirements_match",
    "salary": "compensation_fit",
    "cultural_fit": "culture_fit",
}


class MatchItem(BaseModel):
    item_id: str
    item_type: ItemType = "candidate"
    overall_score: float = 0.0
    score_breakdown: dict[str, float] = {}

    # Descriptive fields used by filters and sort keys
    title: str = ""
    skills: list[str] = []
    company: str = ""
    company_id: str | None = None
    industry: str = ""
    location: str = ""

    # Candidate side
    experience_level: str | None = None
    years_experience: float | None = None
    education_level: str | None = None
    remote: bool | None = None
    willing_to_relocate: bool | None = None
    work_type: str | None = None
    profile_complete: bool | None = None
    response_rate: float | None = None  # 0-1
    last_active: datetime | None = None
    available_immediately: bool | None = None

    # Job side
    posted_at: datetime | None = None
    application_deadline: datetime | None = None
    min_salary: float | None = None
    max_salary: float | None = None
    company_size: str | None = None  # startup, small, medium, large, enterprise
    company_employees: int | None = None
    company_rating: float | None = None  # 0-5
    benefits: list[str] = []
    culture_tags: list[str] = []
    growth_opportunities: bool = False

    collaborative_score: float | None = None  # 0-1, from the recommender
    ranking_score: float | None = None
    rank: int | None = None
    explanation: list[str] = []
    metadata: dict[str, Any] = {}

    @classmethod
    def from_breakdown(
        cls,
        breakdown: ScoreBreakdown,
        item_type: ItemType = "candidate",
        **fields: Any,
    ) -> "MatchItem":
        """Build a match item for the scored candidate (or job) of a breakdown.

        Extra `score_breakdown` components (growth_potential, market_demand, ...)
        are merged into the computed ones and extra explanation lines are
        appended. Other fields override the defaults.
        """
        components: dict[str, float] = {}
        for factor, value in breakdown.factor_scores().items():
            components[CANDIDATE_COMPONENTS[factor]] = round(value * 100, 1)
            if item_type == "job" and factor in JOB_COMPONENTS:
                components[JOB_COMPONENTS[factor]] = round(value * 100, 1)
        components.update(fields.pop("score_breakdown", None) or {})
        values: dict[str, Any] = {
            "overall_score": round(breakdown.overall_score * 100, 1),
            "score_breakdown": components,
            "explanation": breakdown.strengths + breakdown.concerns + list(fields.pop("explanation", None) or []),
        }
        values.update(fields)
        values["item_id"] = breakdown.candidate_id if item_type == "candidate" else breakdown.job_id
        values["item_type"] = item_type
        return cls(**values)


class CustomCriteria(BaseModel):
    preferred_skills: list[str] = []
    preferred_industries: list[str] = []
    min_education_level: str | None = None
    required_benefits: list[str] = []
    preferred_culture: list[str] = []
    require_growth_opportunities: bool = False


class RankingCriteria(BaseModel):
    weights: dict[str, float] | None = None  # None -> defaults for the item type
    diversify: bool = False
    custom: CustomCriteria | None = None


class RankedMatches(BaseModel):
    items: list[MatchItem] = []
    total_items: int = 0
    ranking_criteria: RankingCriteria = RankingCriteria()
    metadata: dict[str, Any] = {}


class ScoreRange(BaseModel):
    min: float = 0.0
    max: float = 100.0


class TextSearch(BaseModel):
    query: str
    fields: list[str] = ["title", "company", "industry", "location", "skills"]


class MatchFilters(BaseModel):
    """Caller filter set. Unset (None) keys are not applied."""
    # Candidate filters
    skills: list[str] | None = None
    skills_match_type: str = "any"  # any | all
    location: str | None = None
    experience_level: str | None = None
    min_years_experience: float | None = None
    max_years_experience: float | None = None
    remote: bool | None = None
    willing_to_relocate: bool | None = None
    work_type: str | None = None
    min_score: float | None = None
    profile_complete: bool | None = None
    recent_activity_days: int | None = None
    min_response_rate: float | None = None
    available_immediately: bool | None = None

    # Job filters
    min_salary: float | None = None
    max_salary: float | None = None
    company_size: list[str] | None = None
    industry: str | None = None
    posted_within_days: int | None = None
    active_only: bool | None = None
    min_company_rating: float | None = None

    # Advanced
    score_range: ScoreRange | None = None
    text_search: TextSearch | None = None


class SortCriteria(BaseModel):
    field: str = "overall_score"
    order: str = "desc"  # asc | desc
    page: int = 1
    limit: int = 20


class FilteredMatches(BaseModel):
    items: list[MatchItem] = []
    total_items: int = 0
    current_page: int = 1
    total_pages: int = 0
    limit: int = 20
    filters_applied: list[str] = []
    sort_criteria: SortCriteria = SortCriteria()
