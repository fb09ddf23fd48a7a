"""Evidence provider that derives pair signals from the saga store."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from saga_suggestions.models.content_fragment import EntityMention
from saga_suggestions.models.entity import Entity
from saga_suggestions.models.entity_relationship import EntityRelationship
from saga_suggestions.models.timeline_event import TimelineEvent
from saga_suggestions.providers.embeddings import (
    EmbeddingClient,
    EmbeddingError,
    build_entity_embedding_text,
    cosine_similarity,
    ensure_embedding,
    get_default_embedding_client,
)
from saga_suggestions.providers.llm import RecommendationError, RelationshipRecommender
from saga_suggestions.providers.similarity import attribute_similarity
from saga_suggestions.suggestions.evidence import EvidenceFailure, EvidenceResult, RawSignal
from saga_suggestions.suggestions.types import EntityPair, FeatureType, SuggestionMethod

logger = logging.getLogger(__name__)

LOCATION_RELATIONSHIP_TYPES = ("located_at", "visited", "lives_in")
FACTION_RELATIONSHIP_TYPE = "member_of"
TIMELINE_EVENT_SATURATION = 10
TIMELINE_EVENT_SHARE = 0.6
TIMELINE_PROXIMITY_SHARE = 0.4
SHARED_LOCATION_SATURATION = 5


class SagaGraphEvidenceProvider:
    """Computes co-occurrence, timeline, graph and similarity signals for a pair.

    Opens its own session per call so it can run on worker threads. A signal whose
    query fails is reported in `failed_signals`; the other signals still return.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        embedding_client: EmbeddingClient | None = None,
        recommender: RelationshipRecommender | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.embedding_client = embedding_client
        self.recommender = recommender

    def evaluate(self, pair: EntityPair) -> EvidenceResult | EvidenceFailure:
        with self.session_factory() as db:
            try:
                source = db.get(Entity, pair.source.id)
                target = db.get(Entity, pair.target.id)
            except SQLAlchemyError as exc:
                return EvidenceFailure(reason=f"entity lookup failed: {exc}", retryable=True)
            if source is None or target is None:
                return EvidenceFailure(reason="entity not found")

            result = EvidenceResult()
            signals: list[tuple[FeatureType, Callable[[], RawSignal | None]]] = [
                (FeatureType.CO_OCCURRENCE, lambda: self._co_occurrence(db, source, target)),
                (FeatureType.TIMELINE_PROXIMITY, lambda: self._timeline_proximity(db, source, target)),
                (FeatureType.ATTRIBUTE_SIMILARITY, lambda: self._attribute_similarity(source, target)),
                (FeatureType.SHARED_LOCATION, lambda: self._shared_location(db, source, target)),
                (FeatureType.SHARED_FACTION, lambda: self._shared_faction(db, source, target)),
                (FeatureType.NETWORK_CENTRALITY, lambda: self._network_centrality(db, source, target)),
            ]
            for feature_type, compute in signals:
                try:
                    signal = compute()
                except SQLAlchemyError as exc:
                    db.rollback()
                    result.failed_signals[feature_type] = str(exc)
                    continue
                if signal is not None:
                    result.raw_signals[feature_type] = signal

            try:
                semantic = self._semantic_similarity(source, target)
            except EmbeddingError as exc:
                result.failed_signals[FeatureType.SEMANTIC_SIMILARITY] = str(exc)
            else:
                if semantic is not None:
                    result.raw_signals[FeatureType.SEMANTIC_SIMILARITY] = semantic

            if self.recommender is not None:
                self._apply_recommendation(result, source, target)
            return result

    def _co_occurrence(self, db: Session, source: Entity, target: Entity) -> RawSignal | None:
        source_total = _mention_count(db, source.id)
        target_total = _mention_count(db, target.id)
        if not source_total or not target_total:
            return None

        other = aliased(EntityMention)
        shared = db.scalar(
            select(func.count(func.distinct(EntityMention.fragment_id)))
            .select_from(EntityMention)
            .join(other, other.fragment_id == EntityMention.fragment_id)
            .where(EntityMention.entity_id == source.id, other.entity_id == target.id)
        ) or 0
        return RawSignal(
            value=float(shared),
            minimum=0.0,
            maximum=float(max(min(source_total, target_total), 1)),
            metadata={"shared_fragments": shared, "source_mentions": source_total, "target_mentions": target_total},
        )

    def _timeline_proximity(self, db: Session, source: Entity, target: Entity) -> RawSignal | None:
        events = db.scalars(select(TimelineEvent).where(TimelineEvent.saga_id == source.saga_id)).all()
        source_events = [event for event in events if source.id in (event.participants_json or [])]
        target_events = [event for event in events if target.id in (event.participants_json or [])]
        if not source_events or not target_events:
            return None

        shared = len({event.id for event in source_events} & {event.id for event in target_events})
        distances = [
            abs(left.normalized_timestamp - right.normalized_timestamp)
            for left in source_events
            for right in target_events
            if left.id != right.id
        ]
        avg_distance = sum(distances) / len(distances) if distances else 0.0
        event_score = min(shared / TIMELINE_EVENT_SATURATION, 1.0)
        proximity_score = 1.0 / (1.0 + math.log(avg_distance + 1.0)) if avg_distance > 0 else 1.0
        value = TIMELINE_EVENT_SHARE * event_score + TIMELINE_PROXIMITY_SHARE * proximity_score
        return RawSignal(
            value=value,
            minimum=0.0,
            maximum=1.0,
            metadata={"shared_events": shared, "avg_distance": round(avg_distance, 4)},
        )

    def _attribute_similarity(self, source: Entity, target: Entity) -> RawSignal:
        score, components = attribute_similarity(
            source.entity_type,
            target.entity_type,
            source.importance_score,
            target.importance_score,
            source.attributes_json or {},
            target.attributes_json or {},
        )
        return RawSignal(value=score, minimum=0.0, maximum=1.0, metadata=components)

    def _shared_location(self, db: Session, source: Entity, target: Entity) -> RawSignal | None:
        source_places = _linked_targets(db, source.id, LOCATION_RELATIONSHIP_TYPES, "location")
        target_places = _linked_targets(db, target.id, LOCATION_RELATIONSHIP_TYPES, "location")
        if not source_places or not target_places:
            return None
        shared = sorted(source_places & target_places)
        return RawSignal(
            value=float(len(shared)),
            minimum=0.0,
            maximum=float(SHARED_LOCATION_SATURATION),
            metadata={"location_ids": shared},
        )

    def _shared_faction(self, db: Session, source: Entity, target: Entity) -> RawSignal | None:
        source_factions = _linked_targets(db, source.id, (FACTION_RELATIONSHIP_TYPE,), "faction")
        target_factions = _linked_targets(db, target.id, (FACTION_RELATIONSHIP_TYPE,), "faction")
        if not source_factions or not target_factions:
            return None
        shared = sorted(source_factions & target_factions)
        return RawSignal(
            value=1.0 if shared else 0.0,
            minimum=0.0,
            maximum=1.0,
            metadata={"faction_ids": shared},
        )

    def _network_centrality(self, db: Session, source: Entity, target: Entity) -> RawSignal | None:
        total_entities = db.scalar(
            select(func.count(Entity.id)).where(Entity.saga_id == source.saga_id)
        ) or 0
        if not total_entities:
            return None
        source_degree = _degree(db, source.id)
        target_degree = _degree(db, target.id)
        centrality = (min(source_degree / total_entities, 1.0) + min(target_degree / total_entities, 1.0)) / 2
        return RawSignal(
            value=centrality,
            minimum=0.0,
            maximum=1.0,
            metadata={"source_degree": source_degree, "target_degree": target_degree, "entities": total_entities},
        )

    def _semantic_similarity(self, source: Entity, target: Entity) -> RawSignal | None:
        vectors = [ensure_embedding(source.embedding), ensure_embedding(target.embedding)]
        missing = [index for index, vector in enumerate(vectors) if vector is None]
        if missing:
            client = self.embedding_client or get_default_embedding_client()
            entities = (source, target)
            texts = [
                build_entity_embedding_text(
                    entities[index].canonical_name,
                    entities[index].entity_type,
                    entities[index].description,
                )
                for index in missing
            ]
            embedded = client.embed_texts(texts)
            if len(embedded) != len(texts):
                raise EmbeddingError("Embedding client returned wrong vector count")
            for index, vector in zip(missing, embedded, strict=True):
                vectors[index] = vector

        similarity = cosine_similarity(vectors[0], vectors[1])
        if similarity is None:
            return None
        return RawSignal(value=similarity, minimum=0.0, maximum=1.0, metadata={"embedded": len(missing)})

    def _apply_recommendation(self, result: EvidenceResult, source: Entity, target: Entity) -> None:
        payload: dict[str, Any] = {
            "source": _entity_payload(source),
            "target": _entity_payload(target),
            "signals": {
                feature_type.value: (signal.value if isinstance(signal, RawSignal) else signal)
                for feature_type, signal in result.raw_signals.items()
            },
        }
        try:
            recommendation = self.recommender.recommend(payload)
        except RecommendationError as exc:
            logger.warning(
                "suggestions.recommendation_failed source_id=%s target_id=%s error=%s",
                source.id,
                target.id,
                exc,
            )
            return
        result.suggested_type = recommendation.relationship_type.strip().lower()
        result.suggested_strength = recommendation.strength
        result.recommendation_confidence = recommendation.confidence
        result.method = SuggestionMethod.SEMANTIC
        result.ai_model = self.recommender.model


def _mention_count(db: Session, entity_id: int) -> int:
    return db.scalar(select(func.count(EntityMention.id)).where(EntityMention.entity_id == entity_id)) or 0


def _linked_targets(
    db: Session,
    entity_id: int,
    relationship_types: tuple[str, ...],
    target_type: str,
) -> set[int]:
    rows = db.scalars(
        select(EntityRelationship.target_entity_id)
        .join(Entity, Entity.id == EntityRelationship.target_entity_id)
        .where(
            EntityRelationship.source_entity_id == entity_id,
            EntityRelationship.relationship_type.in_(relationship_types),
            Entity.entity_type == target_type,
        )
    ).all()
    return set(rows)


def _degree(db: Session, entity_id: int) -> int:
    return db.scalar(
        select(func.count(EntityRelationship.id)).where(
            or_(
                EntityRelationship.source_entity_id == entity_id,
                EntityRelationship.target_entity_id == entity_id,
            )
        )
    ) or 0


def _entity_payload(entity: Entity) -> dict[str, Any]:
    return {
        "name": entity.canonical_name,
        "type": entity.entity_type,
        "description": entity.description,
        "attributes": entity.attributes_json or {},
    }
