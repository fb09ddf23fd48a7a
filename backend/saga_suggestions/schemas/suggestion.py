"""Relationship suggestion request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


class SuggestionFeatureRead(BaseModel):
    """Serialized evidence feature."""

    id: int | None
    feature_type: str
    feature_name: str
    feature_value: float
    weight: float
    metadata: dict[str, Any]
    strength_label: str
    contribution: float


class SuggestionRead(BaseModel):
    """Serialized relationship suggestion."""

    id: int
    saga_id: int
    source_entity_id: int
    target_entity_id: int
    suggested_type: str
    confidence_score: float
    confidence_level: Literal["very_high", "high", "medium", "low"]
    strength: int
    priority_score: float
    reasoning: str | None
    evidence: list[dict[str, Any]]
    suggestion_method: Literal["content", "semantic", "hybrid"]
    ai_model: str
    status: Literal["pending", "accepted", "rejected", "modified"]
    user_action_type: Literal["none", "accept", "reject", "modify"]
    user_feedback_text: str | None
    accepted_at: datetime | None
    rejected_at: datetime | None
    actioned_by: int | None
    created_relationship_id: int | None
    created_at: datetime
    updated_at: datetime


class SuggestionDetailRead(SuggestionRead):
    """Suggestion plus its scored features."""

    features: list[SuggestionFeatureRead]


class SuggestionQueueRead(BaseModel):
    """Pending review queue for one saga."""

    saga_id: int
    pending_total: int
    items: list[SuggestionRead]


class AcceptSuggestionRequest(BaseModel):
    actioned_by: int = Field(ge=0)


class RejectSuggestionRequest(BaseModel):
    actioned_by: int = Field(ge=0)
    reason: str | None = Field(default=None, max_length=2000)


class ModifySuggestionRequest(BaseModel):
    actioned_by: int = Field(ge=0)
    relationship_type: str = Field(min_length=1, max_length=64)
    strength: int = Field(ge=0, le=100)

    @field_validator("relationship_type")
    @classmethod
    def validate_relationship_type(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("relationship_type must not be blank.")
        return cleaned


class FeedbackResultRead(BaseModel):
    """Suggestion state after a review action."""

    suggestion: SuggestionRead
    created_relationship_id: int | None = None


class GenerateSuggestionsRequest(BaseModel):
    max_pairs: int | None = Field(default=None, ge=1, le=1000)


class GenerateSuggestionsQueued(BaseModel):
    saga_id: int
    max_pairs: int | None
    queued: bool = True


class FeatureWeightRead(BaseModel):
    feature_type: str
    weight: float
    default_weight: float


class LearningMetricsRead(BaseModel):
    """Accuracy of reviewed suggestions plus the active feature weights."""

    saga_id: int
    pending: int
    total_actioned: int
    accepted: int
    rejected: int
    precision: float
    recall: float
    f1_score: float
    accuracy: float
    acceptance_rate: float
    avg_seconds_to_decision: float | None
    feedback_since_recalibration: int
    last_recalibrated_at: datetime | None
    weights: list[FeatureWeightRead]
    is_learning_active: bool
    samples_needed: int
    predicted_improvement: float


class WeightsResetRead(BaseModel):
    """Feature weights after learned overrides were dropped."""

    weights: list[FeatureWeightRead]


class SuggestionPreviewRead(BaseModel):
    """Unsaved suggestion scored on demand for one entity."""

    source_entity_id: int
    target_entity_id: int
    suggested_type: str
    confidence_score: float
    confidence_level: Literal["very_high", "high", "medium", "low"]
    strength: int
    priority_score: float
    reasoning: str | None
    evidence: list[dict[str, Any]]
    suggestion_method: Literal["content", "semantic", "hybrid"]


class EntitySuggestionPreviewRead(BaseModel):
    saga_id: int
    entity_id: int
    items: list[SuggestionPreviewRead]


class PredictionStatisticsRead(BaseModel):
    """Share of a saga's entity pairs that are related or awaiting review."""

    saga_id: int
    total_entities: int
    possible_pairs: int
    existing_relationships: int
    pending_suggestions: int
    coverage_percent: float
