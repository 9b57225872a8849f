"""Embedding records, metadata filter predicates and similarity search results."""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field


class EmbeddingRecord(BaseModel):
    id: str
    vector: list[float]
    metadata: dict[str, Any] = {}


class EqualsPredicate(BaseModel):
    op: Literal["equals"] = "equals"
    field: str
    value: Any


class InPredicate(BaseModel):
    op: Literal["in"] = "in"
    field: str
    values: list[Any]


class NestedPredicate(BaseModel):
    """Every key in `match` must equal the same key of metadata[field]."""
    op: Literal["nested"] = "nested"
    field: str
    match: dict[str, Any]


MetadataPredicate = Annotated[
    Union[EqualsPredicate, InPredicate, NestedPredicate],
    Field(discriminator="op"),
]


class SearchOptions(BaseModel):
    metric: str = "cosine"  # cosine, euclidean, dotproduct, manhattan
    k: int = Field(default=10, ge=1)
    threshold: float | None = None  # falls back to settings.similarity_threshold
    filters: list[MetadataPredicate] = []
    approximate: bool = False


class MetricWeight(BaseModel):
    metric: str
    weight: float = Field(gt=0)


class SimilarityResult(BaseModel):
    id: str
    score: float
    distance: float
    rank: int = 0
    relative_score: float = 0.0
    metadata: dict[str, Any] = {}


class SearchResponse(BaseModel):
    results: list[SimilarityResult] = []
    metric: str = "cosine"
    approximate: bool = False
    candidates_considered: int = 0
