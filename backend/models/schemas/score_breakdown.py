"""ScoreEngine output contracts."""

from pydantic import BaseModel

FACTOR_NAMES = (
    "skills",
    "experience",
    "education",
    "location",
    "preferences",
    "salary",
    "cultural_fit",
    "ai_prediction",
)


class ScoreWeights(BaseModel):
    """A versioned weight map over the scoring factors.

    Built through services.matching.weights so the sum-to-one check always runs.
    """
    strategy: str = "custom"
    version: str = "1"
    weights: dict[str, float] = {}


class ScoreBreakdown(BaseModel):
    """Per-factor compatibility between one candidate and one job.

    Factor scores are in [0, 1]. A factor is None when either profile lacks
    the data it needs; such factors are left out of overall_score.
    """
    candidate_id: str
    job_id: str
    skills: float | None = None
    experience: float | None = None
    education: float | None = None
    location: float | None = None
    preferences: float | None = None
    salary: float | None = None
    cultural_fit: float | None = None
    ai_prediction: float | None = None
    overall_score: float = 0.0
    confidence: float = 0.0
    strategy: str = "balanced"
    weights_version: str = "1"
    matched_skills: list[str] = []
    missing_required_skills: list[str] = []
    strengths: list[str] = []
    concerns: list[str] = []

    def factor_scores(self) -> dict[str, float]:
        """Present factors only."""
        return {
            name: getattr(self, name)
            for name in FACTOR_NAMES
            if getattr(self, name) is not None
        }


class ScoreFailure(BaseModel):
    candidate_id: str
    job_id: str
    error_code: str
    message: str


class BatchScoreResult(BaseModel):
    results: list[ScoreBreakdown] = []
    failures: list[ScoreFailure] = []


class FactorScore(BaseModel):
    """Result of a single factor matcher."""
    score: float | None = None
    matched: list[str] = []
    missing: list[str] = []
