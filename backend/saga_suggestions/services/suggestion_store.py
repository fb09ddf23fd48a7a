"""SQLAlchemy implementations of the suggestion repository and entity store."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from saga_suggestions.models.entity import Entity
from saga_suggestions.models.entity_relationship import EntityRelationship
from saga_suggestions.models.learning_weight import LearningWeight
from saga_suggestions.models.relationship_suggestion import SuggestionFeatureRecord, SuggestionRecord
from saga_suggestions.suggestions.errors import (
    PendingSuggestionConflictError,
    SuggestionNotFoundError,
    SuggestionPersistenceError,
    SuggestionStateError,
    SuggestionValidationError,
)
from saga_suggestions.suggestions.feature import SuggestionFeature
from saga_suggestions.suggestions.repository_interface import (
    EntityStoreInterface,
    SuggestionRepositoryInterface,
)
from saga_suggestions.suggestions.suggestion import RelationshipSuggestion
from saga_suggestions.suggestions.types import (
    EntityRef,
    FeatureType,
    FeatureWeightStats,
    PairState,
    SuggestionStatus,
    ensure_utc,
    pair_key,
    utc_now,
)

logger = logging.getLogger(__name__)

MAJOR_CONTRIBUTION_PERCENT = 25.0
_PENDING = SuggestionStatus.PENDING.value


class SqlSuggestionRepository(SuggestionRepositoryInterface):
    """Suggestion storage on the caller's session. Writes flush but never commit."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def find_pending(self, saga_id: int, limit: int = 50) -> list[RelationshipSuggestion]:
        rows = self.db.scalars(
            select(SuggestionRecord)
            .where(SuggestionRecord.saga_id == saga_id, SuggestionRecord.status == _PENDING)
            .order_by(SuggestionRecord.priority_score.desc(), SuggestionRecord.id.asc())
            .limit(max(1, limit))
        ).all()
        return [_to_suggestion(row) for row in rows]

    def find_by_id(self, suggestion_id: int) -> RelationshipSuggestion | None:
        row = self.db.get(SuggestionRecord, suggestion_id)
        return _to_suggestion(row) if row is not None else None

    def save(self, suggestion: RelationshipSuggestion) -> int:
        try:
            if suggestion.id is None:
                row = SuggestionRecord(created_at=suggestion.created_at)
                _apply_fields(row, suggestion)
                self.db.add(row)
                try:
                    self.db.flush()
                except IntegrityError as exc:
                    raise PendingSuggestionConflictError(
                        f"Pair {suggestion.source_entity_id}-{suggestion.target_entity_id} "
                        "already has a pending suggestion"
                    ) from exc
                return row.id

            row = self.db.get(SuggestionRecord, suggestion.id)
            if row is None:
                raise SuggestionNotFoundError(f"Suggestion {suggestion.id} not found")
            if row.status != _PENDING:
                raise SuggestionStateError(f"Suggestion {suggestion.id} is already {row.status}")
            _apply_fields(row, suggestion)
            self.db.flush()
            return row.id
        except SQLAlchemyError as exc:
            raise SuggestionPersistenceError(f"Failed to save suggestion: {exc}") from exc

    def save_features(self, suggestion_id: int, features: Sequence[SuggestionFeature]) -> None:
        try:
            self.db.execute(
                delete(SuggestionFeatureRecord).where(SuggestionFeatureRecord.suggestion_id == suggestion_id)
            )
            for feature in features:
                self.db.add(
                    SuggestionFeatureRecord(
                        suggestion_id=suggestion_id,
                        feature_type=feature.feature_type.value,
                        feature_name=feature.feature_name,
                        feature_value=feature.feature_value,
                        weight=feature.weight,
                        metadata_json=dict(feature.metadata),
                        created_at=feature.created_at,
                    )
                )
            self.db.flush()
        except SQLAlchemyError as exc:
            raise SuggestionPersistenceError(f"Failed to save features for suggestion {suggestion_id}: {exc}") from exc

    def get_features(self, suggestion_id: int) -> list[SuggestionFeature]:
        rows = self.db.scalars(
            select(SuggestionFeatureRecord)
            .where(SuggestionFeatureRecord.suggestion_id == suggestion_id)
            .order_by(SuggestionFeatureRecord.id.asc())
        ).all()
        return [_to_feature(row) for row in rows]

    def update_status(self, suggestion: RelationshipSuggestion) -> None:
        if suggestion.id is None:
            raise SuggestionValidationError("Cannot update the status of an unsaved suggestion")
        try:
            result = self.db.execute(
                update(SuggestionRecord)
                .where(SuggestionRecord.id == suggestion.id, SuggestionRecord.status == _PENDING)
                .values(
                    status=suggestion.status.value,
                    user_action_type=suggestion.user_action_type.value,
                    user_feedback_text=suggestion.user_feedback_text,
                    suggested_type=suggestion.suggested_type,
                    strength=suggestion.strength,
                    priority_score=suggestion.priority_score,
                    accepted_at=suggestion.accepted_at,
                    rejected_at=suggestion.rejected_at,
                    actioned_by=suggestion.actioned_by,
                    created_relationship_id=suggestion.created_relationship_id,
                    updated_at=suggestion.updated_at,
                )
                .execution_options(synchronize_session="evaluate")
            )
        except SQLAlchemyError as exc:
            raise SuggestionPersistenceError(f"Failed to update suggestion {suggestion.id}: {exc}") from exc
        if result.rowcount != 1:
            raise SuggestionStateError(f"Suggestion {suggestion.id} is no longer pending")

    def find_by_saga_and_pair(
        self,
        saga_id: int,
        first_entity_id: int,
        second_entity_id: int,
    ) -> RelationshipSuggestion | None:
        row = self.db.scalars(
            select(SuggestionRecord)
            .where(
                SuggestionRecord.saga_id == saga_id,
                or_(
                    and_(
                        SuggestionRecord.source_entity_id == first_entity_id,
                        SuggestionRecord.target_entity_id == second_entity_id,
                    ),
                    and_(
                        SuggestionRecord.source_entity_id == second_entity_id,
                        SuggestionRecord.target_entity_id == first_entity_id,
                    ),
                ),
            )
            .order_by(SuggestionRecord.id.desc())
            .limit(1)
        ).first()
        return _to_suggestion(row) if row is not None else None

    def count_feedback_since(self, since: datetime | None) -> int:
        stmt = select(func.count(SuggestionRecord.id)).where(SuggestionRecord.status != _PENDING)
        if since is not None:
            stmt = stmt.where(
                or_(SuggestionRecord.accepted_at > since, SuggestionRecord.rejected_at > since)
            )
        return int(self.db.scalar(stmt) or 0)

    def get_feature_weight_stats(self) -> dict[FeatureType, FeatureWeightStats]:
        rows = self.db.execute(
            select(SuggestionRecord.id, SuggestionRecord.status, SuggestionFeatureRecord)
            .join(SuggestionFeatureRecord, SuggestionFeatureRecord.suggestion_id == SuggestionRecord.id)
            .where(SuggestionRecord.status != _PENDING)
        ).all()

        grouped: dict[int, tuple[str, list[SuggestionFeature]]] = {}
        for suggestion_id, status, feature_row in rows:
            try:
                feature = _to_feature(feature_row)
            except SuggestionValidationError as exc:
                logger.warning("suggestions.skip_invalid_feature feature_id=%s error=%s", feature_row.id, exc)
                continue
            grouped.setdefault(suggestion_id, (status, []))[1].append(feature)

        counts: dict[FeatureType, list[int]] = defaultdict(lambda: [0, 0])
        for status, features in grouped.values():
            positive = SuggestionStatus(status).is_positive
            total = sum(feature.weighted_value() for feature in features)
            for feature in features:
                if feature.contribution(total) >= MAJOR_CONTRIBUTION_PERCENT or feature.is_high_value():
                    counts[feature.feature_type][0 if positive else 1] += 1

        return {
            feature_type: FeatureWeightStats(feature_type=feature_type, accepted=accepted, rejected=rejected)
            for feature_type, (accepted, rejected) in counts.items()
        }

    def list_pair_states(self, saga_id: int) -> dict[tuple[int, int], PairState]:
        rows = self.db.execute(
            select(
                SuggestionRecord.id,
                SuggestionRecord.source_entity_id,
                SuggestionRecord.target_entity_id,
                SuggestionRecord.status,
                SuggestionRecord.updated_at,
            )
            .where(SuggestionRecord.saga_id == saga_id)
            .order_by(SuggestionRecord.id.asc())
        ).all()
        states: dict[tuple[int, int], PairState] = {}
        for suggestion_id, source_id, target_id, status, updated_at in rows:
            states[pair_key(source_id, target_id)] = PairState(
                suggestion_id=suggestion_id,
                status=SuggestionStatus(status),
                updated_at=ensure_utc(updated_at),
            )
        return states

    def find_actioned(self, saga_id: int | None = None) -> list[RelationshipSuggestion]:
        stmt = select(SuggestionRecord).where(SuggestionRecord.status != _PENDING)
        if saga_id is not None:
            stmt = stmt.where(SuggestionRecord.saga_id == saga_id)
        rows = self.db.scalars(stmt.order_by(SuggestionRecord.id.asc())).all()
        return [_to_suggestion(row) for row in rows]

    def get_feature_weights(self) -> dict[FeatureType, float]:
        weights: dict[FeatureType, float] = {}
        for row in self.db.scalars(select(LearningWeight)).all():
            try:
                weights[FeatureType(row.feature_type)] = float(row.weight)
            except ValueError:
                logger.warning("suggestions.unknown_feature_weight feature_type=%s", row.feature_type)
        return weights

    def save_feature_weights(
        self,
        weights: Mapping[FeatureType, float],
        stats: Mapping[FeatureType, FeatureWeightStats],
    ) -> None:
        now = utc_now()
        try:
            existing = {row.feature_type: row for row in self.db.scalars(select(LearningWeight)).all()}
            for feature_type, weight in weights.items():
                item = stats.get(feature_type)
                row = existing.get(feature_type.value)
                if row is None:
                    row = LearningWeight(feature_type=feature_type.value, samples_count=0)
                    self.db.add(row)
                row.weight = weight
                if item is not None and item.samples:
                    row.samples_count = item.samples
                    row.acceptance_rate = round(item.acceptance_rate, 4)
                row.recalibrated_at = now
            self.db.flush()
        except SQLAlchemyError as exc:
            raise SuggestionPersistenceError(f"Failed to save feature weights: {exc}") from exc

    def reset_feature_weights(self) -> None:
        now = utc_now()
        try:
            existing = {row.feature_type: row for row in self.db.scalars(select(LearningWeight)).all()}
            for feature_type in FeatureType:
                row = existing.pop(feature_type.value, None)
                if row is None:
                    row = LearningWeight(feature_type=feature_type.value)
                    self.db.add(row)
                row.weight = feature_type.default_weight
                row.samples_count = 0
                row.acceptance_rate = None
                row.recalibrated_at = now
            for stale in existing.values():
                self.db.delete(stale)
            self.db.flush()
        except SQLAlchemyError as exc:
            raise SuggestionPersistenceError(f"Failed to reset feature weights: {exc}") from exc

    def get_last_recalibration_at(self) -> datetime | None:
        value = self.db.scalar(select(func.max(LearningWeight.recalibrated_at)))
        return ensure_utc(value) if value is not None else None

    def count_pending(self, saga_id: int) -> int:
        return int(
            self.db.scalar(
                select(func.count(SuggestionRecord.id)).where(
                    SuggestionRecord.saga_id == saga_id,
                    SuggestionRecord.status == _PENDING,
                )
            )
            or 0
        )


class SqlEntityStore(EntityStoreInterface):
    """Entity and relationship access on the caller's session."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def list_entities(self, saga_id: int) -> list[EntityRef]:
        rows = self.db.execute(
            select(Entity.id, Entity.canonical_name, Entity.entity_type)
            .where(Entity.saga_id == saga_id)
            .order_by(Entity.importance_score.desc(), Entity.id.asc())
        ).all()
        return [EntityRef(id=row.id, name=row.canonical_name, entity_type=row.entity_type) for row in rows]

    def list_related_pairs(self, saga_id: int) -> set[tuple[int, int]]:
        rows = self.db.execute(
            select(EntityRelationship.source_entity_id, EntityRelationship.target_entity_id).where(
                EntityRelationship.saga_id == saga_id
            )
        ).all()
        return {pair_key(source_id, target_id) for source_id, target_id in rows}

    def relationship_exists(self, first_entity_id: int, second_entity_id: int) -> bool:
        found = self.db.scalar(
            select(EntityRelationship.id)
            .where(
                or_(
                    and_(
                        EntityRelationship.source_entity_id == first_entity_id,
                        EntityRelationship.target_entity_id == second_entity_id,
                    ),
                    and_(
                        EntityRelationship.source_entity_id == second_entity_id,
                        EntityRelationship.target_entity_id == first_entity_id,
                    ),
                )
            )
            .limit(1)
        )
        return found is not None

    def create_relationship(
        self,
        saga_id: int,
        source_entity_id: int,
        target_entity_id: int,
        relationship_type: str,
        strength: int,
        origin_suggestion_id: int | None = None,
    ) -> int:
        relationship = EntityRelationship(
            saga_id=saga_id,
            source_entity_id=source_entity_id,
            target_entity_id=target_entity_id,
            relationship_type=relationship_type,
            strength=strength,
            origin_suggestion_id=origin_suggestion_id,
        )
        try:
            self.db.add(relationship)
            self.db.flush()
        except SQLAlchemyError as exc:
            raise SuggestionPersistenceError(f"Failed to create relationship: {exc}") from exc
        return relationship.id


def _apply_fields(row: SuggestionRecord, suggestion: RelationshipSuggestion) -> None:
    row.saga_id = suggestion.saga_id
    row.source_entity_id = suggestion.source_entity_id
    row.target_entity_id = suggestion.target_entity_id
    row.pair_low_id, row.pair_high_id = pair_key(suggestion.source_entity_id, suggestion.target_entity_id)
    row.suggested_type = suggestion.suggested_type
    row.confidence_score = suggestion.confidence_score
    row.strength = suggestion.strength
    row.reasoning = suggestion.reasoning
    row.evidence_json = [dict(item) for item in suggestion.evidence]
    row.suggestion_method = suggestion.suggestion_method.value
    row.ai_model = suggestion.ai_model
    row.status = suggestion.status.value
    row.user_action_type = suggestion.user_action_type.value
    row.user_feedback_text = suggestion.user_feedback_text
    row.accepted_at = suggestion.accepted_at
    row.rejected_at = suggestion.rejected_at
    row.actioned_by = suggestion.actioned_by
    row.created_relationship_id = suggestion.created_relationship_id
    row.priority_score = suggestion.priority_score
    row.updated_at = suggestion.updated_at


def _to_suggestion(row: SuggestionRecord) -> RelationshipSuggestion:
    record: dict[str, Any] = {
        "id": row.id,
        "saga_id": row.saga_id,
        "source_entity_id": row.source_entity_id,
        "target_entity_id": row.target_entity_id,
        "suggested_type": row.suggested_type,
        "confidence_score": row.confidence_score,
        "strength": row.strength,
        "reasoning": row.reasoning,
        "evidence": row.evidence_json or [],
        "suggestion_method": row.suggestion_method,
        "ai_model": row.ai_model,
        "status": row.status,
        "user_action_type": row.user_action_type,
        "user_feedback_text": row.user_feedback_text,
        "accepted_at": row.accepted_at,
        "rejected_at": row.rejected_at,
        "actioned_by": row.actioned_by,
        "created_relationship_id": row.created_relationship_id,
        "created_at": row.created_at,
        "updated_at": row.updated_at,
    }
    return RelationshipSuggestion.from_record(record)


def _to_feature(row: SuggestionFeatureRecord) -> SuggestionFeature:
    return SuggestionFeature.from_record(
        {
            "id": row.id,
            "suggestion_id": row.suggestion_id,
            "feature_type": row.feature_type,
            "feature_name": row.feature_name,
            "feature_value": row.feature_value,
            "weight": row.weight,
            "metadata": row.metadata_json or {},
            "created_at": row.created_at,
        }
    )
