"""Validate filter criteria, apply predicate filters, sort and paginate.

Filters are AND-combined. Each predicate applies to the item types it makes
sense for (years of experience only narrows candidates, posting age only
narrows jobs); items of other types pass through it. An item missing the
attribute a filter inspects does not pass.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from models.schemas.ranking import FilteredMatches, MatchFilters, MatchItem, SortCriteria
from services.exceptions import ValidationError

logger = logging.getLogger(__name__)

WORK_TYPES = ("full-time", "part-time", "contract", "internship", "temporary")
EXPERIENCE_LEVELS = ("entry", "mid", "senior", "executive")
SKILLS_MATCH_TYPES = ("any", "all")
SORT_ORDERS = ("asc", "desc")
COMPANY_SIZES: dict[str, tuple[int, int | None]] = {
    "startup": (1, 10),
    "small": (11, 50),
    "medium": (51, 200),
    "large": (201, 1000),
    "enterprise": (1001, None),
}
TEXT_SEARCH_FIELDS = ("title", "company", "industry", "location", "skills")

BOTH = frozenset({"candidate", "job"})
CANDIDATES = frozenset({"candidate"})
JOBS = frozenset({"job"})


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _contains(haystack: str | None, needle: str) -> bool:
    return bool(haystack) and needle.strip().lower() in haystack.lower()


def _timestamp(value: datetime | None) -> float | None:
    return as_utc(value).timestamp() if value is not None else None


SORT_KEYS: dict[str, Callable[[MatchItem], Any]] = {
    "overall_score": lambda it: it.overall_score,
    "posted_at": lambda it: _timestamp(it.posted_at),
    "last_active": lambda it: _timestamp(it.last_active),
    "response_rate": lambda it: it.response_rate,
    "skills_match": lambda it: it.score_breakdown.get("skills_match"),
    "experience_match": lambda it: it.score_breakdown.get("experience_match"),
    "location_match": lambda it: it.score_breakdown.get("location_match"),
    "min_salary": lambda it: it.min_salary,
    "company_rating": lambda it: it.company_rating,
    "ranking_score": lambda it: it.ranking_score,
}


def _check_range(name: str, low: float | None, high: float | None) -> None:
    if low is not None and high is not None and low > high:
        raise ValidationError(f"{name}: minimum {low} exceeds maximum {high}", field=name, value=low)


def _check_bounds(name: str, value: float | None, low: float, high: float) -> None:
    if value is not None and not low <= value <= high:
        raise ValidationError(f"{name} must be between {low} and {high}", field=name, value=value)


def _check_enum(name: str, value: str | None, allowed: tuple[str, ...]) -> None:
    if value is not None and value not in allowed:
        raise ValidationError(f"{name} must be one of {', '.join(allowed)}", field=name, value=value)


def validate_filters(filters: MatchFilters) -> None:
    """Raise ValidationError for inconsistent or out-of-range criteria."""
    _check_range("years_experience", filters.min_years_experience, filters.max_years_experience)
    _check_range("salary", filters.min_salary, filters.max_salary)
    _check_bounds("min_score", filters.min_score, 0, 100)
    _check_bounds("min_response_rate", filters.min_response_rate, 0, 1)
    _check_bounds("min_company_rating", filters.min_company_rating, 0, 5)
    _check_enum("work_type", filters.work_type, WORK_TYPES)
    _check_enum("experience_level", filters.experience_level, EXPERIENCE_LEVELS)
    _check_enum("skills_match_type", filters.skills_match_type, SKILLS_MATCH_TYPES)

    if filters.skills is not None and not [s for s in filters.skills if s.strip()]:
        raise ValidationError("skills filter must list at least one skill", field="skills")
    if filters.company_size is not None:
        if not filters.company_size:
            raise ValidationError("company_size filter must list at least one size", field="company_size")
        for size in filters.company_size:
            _check_enum("company_size", size, tuple(COMPANY_SIZES))
    if filters.location is not None and not filters.location.strip():
        raise ValidationError("location filter must not be blank", field="location")
    if filters.industry is not None and not filters.industry.strip():
        raise ValidationError("industry filter must not be blank", field="industry")
    for name in ("min_years_experience", "recent_activity_days", "posted_within_days"):
        value = getattr(filters, name)
        if value is not None and value < 0:
            raise ValidationError(f"{name} must not be negative", field=name, value=value)
    if filters.score_range is not None:
        _check_range("score_range", filters.score_range.min, filters.score_range.max)
        _check_bounds("score_range.min", filters.score_range.min, 0, 100)
        _check_bounds("score_range.max", filters.score_range.max, 0, 100)
    if filters.text_search is not None:
        if not filters.text_search.query.strip():
            raise ValidationError("text_search query must not be blank", field="text_search")
        for name in filters.text_search.fields:
            _check_enum("text_search.fields", name, TEXT_SEARCH_FIELDS)


def validate_sort(sort: SortCriteria) -> None:
    _check_enum("order", sort.order, SORT_ORDERS)
    if sort.page < 1:
        raise ValidationError("page must be >= 1", field="page", value=sort.page)
    if sort.limit < 1:
        raise ValidationError("limit must be >= 1", field="limit", value=sort.limit)


def _skills(item: MatchItem, f: MatchFilters, now: datetime) -> bool:
    wanted = [s for s in f.skills if s.strip()]
    hits = [any(_contains(skill, w) for skill in item.skills) for w in wanted]
    return all(hits) if f.skills_match_type == "all" else any(hits)


def _company_size(item: MatchItem, f: MatchFilters, now: datetime) -> bool:
    if item.company_size in f.company_size:
        return True
    if item.company_employees is None:
        return False
    for size in f.company_size:
        low, high = COMPANY_SIZES[size]
        if item.company_employees >= low and (high is None or item.company_employees <= high):
            return True
    return False


def _within_days(value: datetime | None, days: int, now: datetime) -> bool:
    return value is not None and as_utc(value) >= now - timedelta(days=days)


def _text_search(item: MatchItem, f: MatchFilters, now: datetime) -> bool:
    query = f.text_search.query.strip().lower()
    for name in f.text_search.fields:
        value = getattr(item, name)
        text = " ".join(value) if isinstance(value, list) else value
        if _contains(text, query):
            return True
    return False


def _ge(value: float | None, bound: float) -> bool:
    return value is not None and value >= bound


def _le(value: float | None, bound: float) -> bool:
    return value is not None and value <= bound


# (filter key, item types it narrows, predicate)
PREDICATES: list[tuple[str, frozenset[str], Callable[[MatchItem, MatchFilters, datetime], bool]]] = [
    ("skills", BOTH, _skills),
    ("location", BOTH, lambda it, f, now: _contains(it.location, f.location)),
    ("experience_level", BOTH, lambda it, f, now: it.experience_level == f.experience_level),
    ("min_years_experience", CANDIDATES, lambda it, f, now: _ge(it.years_experience, f.min_years_experience)),
    ("max_years_experience", CANDIDATES, lambda it, f, now: _le(it.years_experience, f.max_years_experience)),
    ("remote", BOTH, lambda it, f, now: it.remote is f.remote),
    ("willing_to_relocate", CANDIDATES, lambda it, f, now: it.willing_to_relocate is f.willing_to_relocate),
    ("work_type", BOTH, lambda it, f, now: it.work_type == f.work_type),
    ("min_score", BOTH, lambda it, f, now: it.overall_score >= f.min_score),
    ("profile_complete", CANDIDATES, lambda it, f, now: it.profile_complete is f.profile_complete),
    ("recent_activity_days", CANDIDATES, lambda it, f, now: _within_days(it.last_active, f.recent_activity_days, now)),
    ("min_response_rate", CANDIDATES, lambda it, f, now: _ge(it.response_rate, f.min_response_rate)),
    ("available_immediately", CANDIDATES, lambda it, f, now: it.available_immediately is f.available_immediately),
    ("min_salary", JOBS, lambda it, f, now: _ge(it.min_salary, f.min_salary)),
    ("max_salary", JOBS, lambda it, f, now: _le(it.max_salary if it.max_salary is not None else it.min_salary, f.max_salary)),
    ("company_size", JOBS, _company_size),
    ("industry", BOTH, lambda it, f, now: _contains(it.industry, f.industry)),
    ("posted_within_days", JOBS, lambda it, f, now: _within_days(it.posted_at, f.posted_within_days, now)),
    ("active_only", JOBS, lambda it, f, now: not f.active_only or it.application_deadline is None or as_utc(it.application_deadline) >= now),
    ("min_company_rating", JOBS, lambda it, f, now: _ge(it.company_rating, f.min_company_rating)),
    ("score_range", BOTH, lambda it, f, now: f.score_range.min <= it.overall_score <= f.score_range.max),
    ("text_search", BOTH, _text_search),
]


class FilterSortPipeline:
    def active_filters(self, filters: MatchFilters) -> list[str]:
        return [name for name, _, _ in PREDICATES if getattr(filters, name) is not None]

    def apply_filters(
        self,
        items: list[MatchItem],
        filters: MatchFilters | None,
        *,
        now: datetime | None = None,
    ) -> list[MatchItem]:
        """Validate and apply filters, preserving input order."""
        if filters is None:
            return list(items)
        validate_filters(filters)
        now = as_utc(now) if now is not None else datetime.now(timezone.utc)
        active = [
            (types, predicate)
            for name, types, predicate in PREDICATES
            if getattr(filters, name) is not None
        ]
        return [
            item for item in items
            if all(item.item_type not in types or predicate(item, filters, now) for types, predicate in active)
        ]

    def sort(self, items: list[MatchItem], sort: SortCriteria) -> list[MatchItem]:
        """Stable sort; unknown keys fall back to overall_score, missing values go last."""
        key = SORT_KEYS.get(sort.field)
        if key is None:
            logger.debug("Unknown sort field %s, using overall_score", sort.field)
            key = SORT_KEYS["overall_score"]
        present = [it for it in items if key(it) is not None]
        missing = [it for it in items if key(it) is None]
        return sorted(present, key=key, reverse=sort.order == "desc") + missing

    def paginate(self, items: list[MatchItem], page: int, limit: int) -> tuple[list[MatchItem], int]:
        total_pages = math.ceil(len(items) / limit)
        start = (page - 1) * limit
        return items[start:start + limit], total_pages

    def filter_and_sort(
        self,
        items: list[MatchItem],
        filters: MatchFilters | None = None,
        sort: SortCriteria | None = None,
        *,
        now: datetime | None = None,
    ) -> FilteredMatches:
        sort = sort or SortCriteria()
        validate_sort(sort)
        filtered = self.apply_filters(items, filters, now=now)
        ordered = self.sort(filtered, sort)
        page_items, total_pages = self.paginate(ordered, sort.page, sort.limit)
        return FilteredMatches(
            items=page_items,
            total_items=len(ordered),
            current_page=sort.page,
            total_pages=total_pages,
            limit=sort.limit,
            filters_applied=self.active_filters(filters) if filters else [],
            sort_criteria=sort,
        )


def filter_options() -> dict[str, list[str]]:
    """Closed value sets accepted by MatchFilters."""
    return {
        "work_type": list(WORK_TYPES),
        "experience_level": list(EXPERIENCE_LEVELS),
        "skills_match_type": list(SKILLS_MATCH_TYPES),
        "company_size": list(COMPANY_SIZES),
        "text_search_fields": list(TEXT_SEARCH_FIELDS),
    }


def sort_options() -> dict[str, list[str]]:
    return {"field": list(SORT_KEYS), "order": list(SORT_ORDERS)}
