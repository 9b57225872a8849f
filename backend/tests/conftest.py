"""Shared test configuration, pytest markers and profile builders."""

from datetime import date

import pytest

from models.schemas.profiles import (
    CandidateProfile,
    CompensationInfo,
    Education,
    EducationRequirement,
    EmployerPreferences,
    ExperienceRequirement,
    JobPreferences,
    JobProfile,
    LocationInfo,
    SalaryRange,
    Skill,
    SkillRequirement,
    WorkExperience,
)
from services.matching import registry

AS_OF = date(2024, 6, 1)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: loads real ML models (slow, needs the ml extra)"
    )
    config.addinivalue_line(
        "markers", "concurrency: exercises shared state from many threads"
    )


@pytest.fixture(autouse=True)
def _fresh_matchers():
    registry.clear()
    yield
    registry.clear()


@pytest.fixture
def as_of() -> date:
    return AS_OF


def make_candidate(candidate_id: str = "c1", **overrides) -> CandidateProfile:
    data = dict(
        id=candidate_id,
        name="Ada Example",
        skills=[
            Skill(name="Python", level="expert", years_experience=6),
            Skill(name="SQL", level="advanced", years_experience=4),
            Skill(name="Docker", level="intermediate", years_experience=2),
        ],
        experience=[
            WorkExperience(
                position="Senior Software Engineer",
                company="Acme",
                industry="Technology",
                start_date=date(2019, 6, 1),
                is_current=True,
            ),
            WorkExperience(
                position="Software Engineer",
                company="Globex",
                industry="Finance",
                start_date=date(2016, 6, 1),
                end_date=date(2019, 5, 1),
            ),
        ],
        education=[
            Education(level="bachelor", field="Computer Science", end_date=date(2016, 5, 1)),
        ],
        location=LocationInfo(country="Germany", city="Berlin"),
        preferences=JobPreferences(
            work_types=["full-time"],
            team_size="medium",
            schedule="standard",
            travel_percent=10,
            salary_range=SalaryRange(min=70000, max=90000),
        ),
        work_style="collaborative",
        company_size="medium",
        growth_priority=True,
    )
    data.update(overrides)
    return CandidateProfile(**data)


def make_job(job_id: str = "j1", **overrides) -> JobProfile:
    data = dict(
        id=job_id,
        title="Senior Backend Engineer",
        company="Initech",
        industry="Technology",
        skill_requirements=[
            SkillRequirement(name="Python", level="advanced", years_required=5, required=True, importance=5),
            SkillRequirement(name="SQL", level="intermediate", importance=3),
            SkillRequirement(name="Kubernetes", level="intermediate", required=True, importance=2),
        ],
        experience_requirements=[
            ExperienceRequirement(title="Software Engineer", level="senior", years_required=5, required=True),
        ],
        education_requirements=[
            EducationRequirement(level="bachelor", field="Computer Science"),
        ],
        location=LocationInfo(country="Germany", city="Berlin"),
        employer_preferences=EmployerPreferences(
            work_types=["full-time"],
            team_size="medium",
            schedule="standard",
            travel_percent=10,
            work_style="collaborative",
            company_size="medium",
            growth_opportunities=True,
        ),
        compensation=CompensationInfo(min=75000, max=95000),
    )
    data.update(overrides)
    return JobProfile(**data)


@pytest.fixture
def candidate() -> CandidateProfile:
    return make_candidate()


@pytest.fixture
def job() -> JobProfile:
    return make_job()
