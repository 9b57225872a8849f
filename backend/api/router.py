from datetime import date

from fastapi import APIRouter, Depends, Query, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from api.dependencies import get_matching_service
from config import settings
from models.requests import (
    BatchScoreRequest,
    FilterRequest,
    InteractionBatch,
    JobMatchRequest,
    RankRequest,
    ScoreRequest,
    SimilarityRequest,
)
from models.responses import HealthResponse, InteractionAck, MatchResponse, OptionsResponse
from models.schemas.interactions import ItemType, ModelMetrics, RecommendationOptions, RecommendationResult, TrainingResult
from models.schemas.ranking import FilteredMatches, RankedMatches
from models.schemas.score_breakdown import BatchScoreResult, ScoreBreakdown
from models.schemas.vectors import SearchResponse
from services import embeddings
from services.filter_sort import filter_options, sort_options
from services.matching.weights import PRESETS
from services.orchestrator import MatchingService
from services.recommender.collaborative import ALGORITHMS
from services.similarity import METRICS

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)


@router.get("/health", response_model=HealthResponse)
async def health(service: MatchingService = Depends(get_matching_service)):
    ai = service.score_engine.matcher("ai_prediction")
    table = service.recommender.factor_table
    return HealthResponse(
        status="ok",
        ai_model_loaded=bool(ai is not None and ai.model_loaded),
        embedding_backend=embeddings.backend_name(),
        factor_version=table.version if table else 0,
    )


@router.get("/options", response_model=OptionsResponse)
async def options():
    return OptionsResponse(
        filters=filter_options(),
        sort=sort_options(),
        weight_strategies=list(PRESETS),
        algorithms=list(ALGORITHMS),
        metrics=list(METRICS),
    )


@router.post("/score", response_model=ScoreBreakdown)
@limiter.limit(settings.rate_limit)
def score(request: Request, body: ScoreRequest, service: MatchingService = Depends(get_matching_service)):
    return service.score(body.candidate, body.job, body.weights, as_of=body.as_of or date.today())


@router.post("/score/batch", response_model=BatchScoreResult)
@limiter.limit(settings.rate_limit)
def score_batch(request: Request, body: BatchScoreRequest, service: MatchingService = Depends(get_matching_service)):
    return service.score_batch(body.candidates, body.job, body.weights, as_of=body.as_of or date.today())


@router.post("/similarity/top-k", response_model=SearchResponse)
@limiter.limit(settings.rate_limit)
def similarity_top_k(request: Request, body: SimilarityRequest, service: MatchingService = Depends(get_matching_service)):
    return service.top_k_similar(body.query, body.candidates, body.options)


@router.post("/interactions", response_model=InteractionAck)
@limiter.limit(settings.rate_limit)
def record_interactions(request: Request, body: InteractionBatch, service: MatchingService = Depends(get_matching_service)):
    recommender = service.recommender
    for interaction in body.interactions:
        recommender.record_interaction(interaction)
    return InteractionAck(
        recorded=len(body.interactions),
        users=len(recommender.matrix.user_ids()),
        items=len(recommender.matrix.item_ids()),
    )


@router.get("/recommendations/metrics", response_model=ModelMetrics)
async def recommendation_metrics(service: MatchingService = Depends(get_matching_service)):
    return service.recommender.get_model_metrics()


@router.post("/recommendations/train", response_model=TrainingResult)
@limiter.limit(settings.rate_limit)
def train_recommender(request: Request, service: MatchingService = Depends(get_matching_service)):
    return service.recommender.train_model()


@router.get("/recommendations/{user_id}", response_model=RecommendationResult)
@limiter.limit(settings.rate_limit)
def recommendations(
    request: Request,
    user_id: str,
    item_type: ItemType = "job",
    algorithm: str = "hybrid",
    count: int = Query(10, ge=1, le=200),
    exclude: list[str] = Query(default=[]),
    service: MatchingService = Depends(get_matching_service),
):
    opts = RecommendationOptions(algorithm=algorithm, count=count, exclude_item_ids=exclude)
    return service.recommender.recommend(user_id, item_type, opts)


@router.post("/rank", response_model=RankedMatches)
@limiter.limit(settings.rate_limit)
def rank(request: Request, body: RankRequest, service: MatchingService = Depends(get_matching_service)):
    return service.ranking.rank(body.items, body.criteria, body.filters, now=body.now)


@router.post("/filter", response_model=FilteredMatches)
@limiter.limit(settings.rate_limit)
def filter_matches(request: Request, body: FilterRequest, service: MatchingService = Depends(get_matching_service)):
    return service.filter_and_sort(body.items, body.filters, body.sort, now=body.now)


@router.post("/match/job", response_model=MatchResponse)
@limiter.limit(settings.rate_limit)
def match_job(request: Request, body: JobMatchRequest, service: MatchingService = Depends(get_matching_service)):
    return service.match_candidates_for_job(
        body.job,
        body.candidates,
        body.weights,
        body.criteria,
        body.filters,
        body.sort,
        as_of=body.as_of or date.today(),
        now=body.now,
        user_id=body.user_id,
        item_fields=body.item_fields,
    )
