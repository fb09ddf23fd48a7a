"""Relationship suggestion review and generation routes."""

from typing import NoReturn

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Path, Query
from sqlalchemy.orm import Session

from saga_suggestions.db.dependencies import get_db
from saga_suggestions.schemas.common import ApiResponse
from saga_suggestions.schemas.suggestion import (
    AcceptSuggestionRequest,
    EntitySuggestionPreviewRead,
    FeedbackResultRead,
    GenerateSuggestionsQueued,
    GenerateSuggestionsRequest,
    LearningMetricsRead,
    ModifySuggestionRequest,
    PredictionStatisticsRead,
    RejectSuggestionRequest,
    SuggestionDetailRead,
    SuggestionQueueRead,
    WeightsResetRead,
)
from saga_suggestions.services.background_jobs import run_suggestion_batch_job
from saga_suggestions.services.suggestions import (
    accept_suggestion,
    get_learning_metrics,
    get_prediction_statistics,
    get_suggestion_detail,
    list_pending_suggestions,
    modify_suggestion,
    preview_entity_suggestions,
    reject_suggestion,
    reset_learning_weights,
)
from saga_suggestions.suggestions.errors import (
    SuggestionNotFoundError,
    SuggestionStateError,
    SuggestionValidationError,
)

router = APIRouter()


def _raise_http(exc: Exception) -> NoReturn:
    if isinstance(exc, SuggestionNotFoundError):
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if isinstance(exc, SuggestionStateError):
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    if isinstance(exc, SuggestionValidationError):
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    raise exc


@router.get("/sagas/{saga_id}/suggestions", response_model=ApiResponse[SuggestionQueueRead])
def get_pending_suggestions(
    saga_id: int = Path(..., ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
) -> ApiResponse[SuggestionQueueRead]:
    """Return the pending review queue ordered by priority."""

    return ApiResponse(data=list_pending_suggestions(db, saga_id, limit=limit))


@router.post(
    "/sagas/{saga_id}/suggestions/generate",
    response_model=ApiResponse[GenerateSuggestionsQueued],
    status_code=202,
)
def queue_suggestion_batch(
    background_tasks: BackgroundTasks,
    payload: GenerateSuggestionsRequest | None = None,
    saga_id: int = Path(..., ge=1),
) -> ApiResponse[GenerateSuggestionsQueued]:
    """Queue one suggestion generation batch for the saga."""

    max_pairs = payload.max_pairs if payload is not None else None
    background_tasks.add_task(run_suggestion_batch_job, saga_id, max_pairs)
    return ApiResponse(data=GenerateSuggestionsQueued(saga_id=saga_id, max_pairs=max_pairs))


@router.get("/sagas/{saga_id}/suggestions/metrics", response_model=ApiResponse[LearningMetricsRead])
def get_suggestion_metrics(
    saga_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[LearningMetricsRead]:
    """Return accuracy metrics for reviewed suggestions and active feature weights."""

    return ApiResponse(data=get_learning_metrics(db, saga_id))


@router.get(
    "/sagas/{saga_id}/suggestions/statistics",
    response_model=ApiResponse[PredictionStatisticsRead],
)
def get_suggestion_statistics(
    saga_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[PredictionStatisticsRead]:
    """Return how much of the saga's pair space is related or awaiting review."""

    return ApiResponse(data=get_prediction_statistics(db, saga_id))


@router.get(
    "/sagas/{saga_id}/entities/{entity_id}/suggestions/preview",
    response_model=ApiResponse[EntitySuggestionPreviewRead],
)
def get_entity_suggestion_preview(
    saga_id: int = Path(..., ge=1),
    entity_id: int = Path(..., ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    db: Session = Depends(get_db),
) -> ApiResponse[EntitySuggestionPreviewRead]:
    """Score one entity against the rest of the saga without storing suggestions."""

    try:
        return ApiResponse(data=preview_entity_suggestions(db, saga_id, entity_id, limit=limit))
    except SuggestionNotFoundError as exc:
        _raise_http(exc)


@router.post("/suggestions/learning/reset", response_model=ApiResponse[WeightsResetRead])
def post_reset_learning(db: Session = Depends(get_db)) -> ApiResponse[WeightsResetRead]:
    """Drop learned feature weights and restart the feedback count."""

    return ApiResponse(data=reset_learning_weights(db))


@router.get("/suggestions/{suggestion_id}", response_model=ApiResponse[SuggestionDetailRead])
def get_suggestion(
    suggestion_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[SuggestionDetailRead]:
    """Return one suggestion with its scored features."""

    detail = get_suggestion_detail(db, suggestion_id)
    if detail is None:
        raise HTTPException(status_code=404, detail="Suggestion not found")
    return ApiResponse(data=detail)


@router.post("/suggestions/{suggestion_id}/accept", response_model=ApiResponse[FeedbackResultRead])
def post_accept_suggestion(
    payload: AcceptSuggestionRequest,
    suggestion_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[FeedbackResultRead]:
    """Accept a pending suggestion and create the relationship."""

    try:
        return ApiResponse(data=accept_suggestion(db, suggestion_id, payload.actioned_by))
    except (SuggestionNotFoundError, SuggestionStateError, SuggestionValidationError) as exc:
        _raise_http(exc)


@router.post("/suggestions/{suggestion_id}/reject", response_model=ApiResponse[FeedbackResultRead])
def post_reject_suggestion(
    payload: RejectSuggestionRequest,
    suggestion_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[FeedbackResultRead]:
    """Reject a pending suggestion with an optional reason."""

    try:
        return ApiResponse(data=reject_suggestion(db, suggestion_id, payload.actioned_by, payload.reason))
    except (SuggestionNotFoundError, SuggestionStateError, SuggestionValidationError) as exc:
        _raise_http(exc)


@router.post("/suggestions/{suggestion_id}/modify", response_model=ApiResponse[FeedbackResultRead])
def post_modify_suggestion(
    payload: ModifySuggestionRequest,
    suggestion_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[FeedbackResultRead]:
    """Accept a suggestion with a corrected relationship type and strength."""

    try:
        return ApiResponse(
            data=modify_suggestion(
                db,
                suggestion_id,
                payload.actioned_by,
                payload.relationship_type,
                payload.strength,
            )
        )
    except (SuggestionNotFoundError, SuggestionStateError, SuggestionValidationError) as exc:
        _raise_http(exc)
