"""Candidate and job profile snapshots handed to the scoring engine.

Profiles are owned by the external store and treated as read-only, so every
model here is frozen.
"""

from datetime import date
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, BeforeValidator, Field


class SkillLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"
    MASTER = "master"


def _lower(value):
    if isinstance(value, str):
        return value.strip().lower()
    return value


LevelName = Annotated[str, BeforeValidator(_lower)]
SkillLevelName = Annotated[SkillLevel, BeforeValidator(_lower)]


class _Frozen(BaseModel):
    model_config = {"frozen": True}


class Skill(_Frozen):
    name: str
    level: SkillLevelName = SkillLevel.INTERMEDIATE
    years_experience: float | None = None


class WorkExperience(_Frozen):
    position: str
    company: str = ""
    industry: str = ""
    start_date: date
    end_date: date | None = None
    is_current: bool = False


class Education(_Frozen):
    level: LevelName  # high_school, associate, bachelor, master, phd, postdoctoral, ...
    field: str = ""
    specialization: str = ""
    start_date: date | None = None
    end_date: date | None = None
    is_current: bool = False


class LocationInfo(_Frozen):
    country: str = ""
    city: str = ""
    is_remote: bool = False
    relocation_willing: bool = False


class SalaryRange(_Frozen):
    min: float
    max: float | None = None


class JobPreferences(_Frozen):
    work_types: list[str] = []  # full-time, part-time, contract, hybrid, remote, ...
    team_size: str | None = None  # solo, small, medium, large, very_large
    schedule: str | None = None
    travel_percent: float | None = None  # maximum travel the candidate accepts
    environment: str | None = None
    salary_range: SalaryRange | None = None


class CandidateProfile(_Frozen):
    id: str
    name: str = ""
    skills: list[Skill] = []
    experience: list[WorkExperience] = []
    education: list[Education] = []
    location: LocationInfo | None = None
    preferences: JobPreferences | None = None
    # Cultural fit signals
    work_style: str | None = None
    company_size: str | None = None
    growth_priority: bool = False


class SkillRequirement(_Frozen):
    name: str
    level: SkillLevelName = SkillLevel.INTERMEDIATE
    years_required: float | None = None
    required: bool = False
    importance: int | None = Field(default=None, ge=1, le=5)  # defaults to 3


class ExperienceRequirement(_Frozen):
    title: str
    level: LevelName | None = None  # entry .. executive
    years_required: float = 0.0
    industry: str | None = None
    required: bool = False


class EducationRequirement(_Frozen):
    level: LevelName
    field: str | None = None
    specialization: str | None = None
    required: bool = False


class EmployerPreferences(_Frozen):
    work_types: list[str] = []
    remote_policy: str | None = None  # remote_only, flexible, hybrid, on_site
    team_size: str | None = None
    schedule: str | None = None
    travel_percent: float | None = None  # travel the role requires
    environment: str | None = None
    work_style: str | None = None
    company_size: str | None = None
    growth_opportunities: bool = False


class CompensationInfo(_Frozen):
    min: float
    max: float | None = None
    currency: str = "USD"


class JobProfile(_Frozen):
    id: str
    title: str = ""
    company: str = ""
    industry: str = ""
    skill_requirements: list[SkillRequirement] = []
    experience_requirements: list[ExperienceRequirement] = []
    education_requirements: list[EducationRequirement] = []
    location: LocationInfo | None = None
    employer_preferences: EmployerPreferences | None = None
    compensation: CompensationInfo | None = None
