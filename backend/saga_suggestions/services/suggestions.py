"""Read models and review actions behind the suggestion routes."""

from __future__ import annotations

from collections.abc import Mapping

from sqlalchemy.orm import Session

from saga_suggestions.schemas.suggestion import (
    EntitySuggestionPreviewRead,
    FeatureWeightRead,
    FeedbackResultRead,
    LearningMetricsRead,
    PredictionStatisticsRead,
    SuggestionDetailRead,
    SuggestionFeatureRead,
    SuggestionPreviewRead,
    SuggestionQueueRead,
    SuggestionRead,
    WeightsResetRead,
)
from saga_suggestions.services.background_jobs import (
    build_feedback_service,
    build_learning_service,
    build_suggestion_processor,
)
from saga_suggestions.services.suggestion_store import SqlSuggestionRepository
from saga_suggestions.suggestions.errors import SuggestionNotFoundError
from saga_suggestions.suggestions.evidence import EvidenceProvider
from saga_suggestions.suggestions.feature import SuggestionFeature
from saga_suggestions.suggestions.suggestion import RelationshipSuggestion
from saga_suggestions.suggestions.types import FeatureType


def serialize_suggestion(suggestion: RelationshipSuggestion) -> SuggestionRead:
    record = suggestion.to_record()
    record["confidence_level"] = suggestion.confidence_level().value
    return SuggestionRead.model_validate(record)


def serialize_features(features: list[SuggestionFeature]) -> list[SuggestionFeatureRead]:
    total = sum(feature.weighted_value() for feature in features)
    return [
        SuggestionFeatureRead(
            id=feature.id,
            feature_type=feature.feature_type.value,
            feature_name=feature.feature_name,
            feature_value=feature.feature_value,
            weight=feature.weight,
            metadata=dict(feature.metadata),
            strength_label=feature.strength_label(),
            contribution=round(feature.contribution(total), 2),
        )
        for feature in features
    ]


def list_pending_suggestions(db: Session, saga_id: int, *, limit: int = 50) -> SuggestionQueueRead:
    repository = SqlSuggestionRepository(db)
    return SuggestionQueueRead(
        saga_id=saga_id,
        pending_total=repository.count_pending(saga_id),
        items=[serialize_suggestion(item) for item in repository.find_pending(saga_id, limit)],
    )


def get_suggestion_detail(db: Session, suggestion_id: int) -> SuggestionDetailRead | None:
    repository = SqlSuggestionRepository(db)
    suggestion = repository.find_by_id(suggestion_id)
    if suggestion is None:
        return None
    return SuggestionDetailRead(
        **serialize_suggestion(suggestion).model_dump(),
        features=serialize_features(repository.get_features(suggestion_id)),
    )


def accept_suggestion(db: Session, suggestion_id: int, actioned_by: int) -> FeedbackResultRead:
    relationship_id = build_feedback_service(db).accept_suggestion(suggestion_id, actioned_by)
    return _feedback_result(db, suggestion_id, relationship_id)


def reject_suggestion(
    db: Session,
    suggestion_id: int,
    actioned_by: int,
    reason: str | None = None,
) -> FeedbackResultRead:
    rejected = build_feedback_service(db).reject_suggestion(suggestion_id, actioned_by, reason)
    return FeedbackResultRead(suggestion=serialize_suggestion(rejected))


def modify_suggestion(
    db: Session,
    suggestion_id: int,
    actioned_by: int,
    relationship_type: str,
    strength: int,
) -> FeedbackResultRead:
    relationship_id = build_feedback_service(db).modify_suggestion(
        suggestion_id,
        actioned_by,
        relationship_type,
        strength,
    )
    return _feedback_result(db, suggestion_id, relationship_id)


def get_learning_metrics(db: Session, saga_id: int) -> LearningMetricsRead:
    repository = SqlSuggestionRepository(db)
    learning = build_learning_service(db)
    statistics = learning.get_learning_statistics(saga_id)
    metrics = statistics.metrics
    return LearningMetricsRead(
        saga_id=saga_id,
        pending=repository.count_pending(saga_id),
        total_actioned=metrics.total,
        accepted=metrics.accepted,
        rejected=metrics.rejected,
        precision=metrics.precision,
        recall=metrics.recall,
        f1_score=metrics.f1_score,
        accuracy=metrics.accuracy,
        acceptance_rate=metrics.acceptance_rate,
        avg_seconds_to_decision=metrics.avg_seconds_to_decision,
        feedback_since_recalibration=learning.pending_feedback(),
        last_recalibrated_at=repository.get_last_recalibration_at(),
        weights=_weights_read(statistics.weights),
        is_learning_active=statistics.is_learning_active,
        samples_needed=statistics.samples_needed,
        predicted_improvement=statistics.predicted_improvement,
    )


def reset_learning_weights(db: Session) -> WeightsResetRead:
    try:
        weights = build_learning_service(db).reset_weights()
        db.commit()
    except Exception:
        db.rollback()
        raise
    return WeightsResetRead(weights=_weights_read(weights))


def get_prediction_statistics(db: Session, saga_id: int) -> PredictionStatisticsRead:
    statistics = build_suggestion_processor(db).get_prediction_statistics(saga_id)
    return PredictionStatisticsRead(
        saga_id=statistics.saga_id,
        total_entities=statistics.total_entities,
        possible_pairs=statistics.possible_pairs,
        existing_relationships=statistics.existing_relationships,
        pending_suggestions=statistics.pending_suggestions,
        coverage_percent=statistics.coverage_percent,
    )


def preview_entity_suggestions(
    db: Session,
    saga_id: int,
    entity_id: int,
    *,
    limit: int = 10,
    provider: EvidenceProvider | None = None,
) -> EntitySuggestionPreviewRead:
    """Score the entity against the rest of its saga without storing anything."""

    suggestions = build_suggestion_processor(db, provider=provider).predict_for_entity(saga_id, entity_id, limit)
    return EntitySuggestionPreviewRead(
        saga_id=saga_id,
        entity_id=entity_id,
        items=[
            SuggestionPreviewRead(
                source_entity_id=item.source_entity_id,
                target_entity_id=item.target_entity_id,
                suggested_type=item.suggested_type,
                confidence_score=item.confidence_score,
                confidence_level=item.confidence_level().value,
                strength=item.strength,
                priority_score=item.priority_score,
                reasoning=item.reasoning,
                evidence=[dict(entry) for entry in item.evidence],
                suggestion_method=item.suggestion_method.value,
            )
            for item in suggestions
        ],
    )


def _weights_read(weights: Mapping[FeatureType, float]) -> list[FeatureWeightRead]:
    return [
        FeatureWeightRead(
            feature_type=feature_type.value,
            weight=weights.get(feature_type, feature_type.default_weight),
            default_weight=feature_type.default_weight,
        )
        for feature_type in FeatureType
    ]


def _feedback_result(db: Session, suggestion_id: int, relationship_id: int | None) -> FeedbackResultRead:
    suggestion = SqlSuggestionRepository(db).find_by_id(suggestion_id)
    if suggestion is None:
        raise SuggestionNotFoundError(f"Suggestion {suggestion_id} not found")
    return FeedbackResultRead(
        suggestion=serialize_suggestion(suggestion),
        created_relationship_id=relationship_id,
    )
