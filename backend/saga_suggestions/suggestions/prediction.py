"""Aggregate pair features into a scored relationship suggestion."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace
from enum import Enum

from saga_suggestions.suggestions.evidence import PairEvidence
from saga_suggestions.suggestions.feature import SuggestionFeature
from saga_suggestions.suggestions.repository_interface import SuggestionRepositoryInterface
from saga_suggestions.suggestions.suggestion import RelationshipSuggestion
from saga_suggestions.suggestions.types import FeatureType, SuggestionMethod, utc_now

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 40.0
SIGNAL_CONFIDENCE_SHARE = 0.7
RECOMMENDATION_CONFIDENCE_SHARE = 0.3
STRONG_SIGNAL_THRESHOLD = 0.7
FACTION_ALLY_THRESHOLD = 0.8
EVIDENCE_THRESHOLD = 0.5
HYBRID_SIGNALS_WITH_RECOMMENDATION = 2
HYBRID_SIGNALS_WITHOUT_RECOMMENDATION = 3
DEFAULT_STRENGTH = 50
STRENGTH_TOP_FEATURES = 3
RULE_BASED_MODEL = "rule_based"


class GenerationOutcome(str, Enum):
    CREATED = "created"
    SUPERSEDED = "superseded"
    BELOW_THRESHOLD = "below_threshold"
    NO_FEATURES = "no_features"
    SUPPRESSED = "suppressed"


@dataclass(slots=True)
class GenerationResult:
    outcome: GenerationOutcome
    suggestion: RelationshipSuggestion | None = None

    @property
    def persisted(self) -> bool:
        return self.outcome in (GenerationOutcome.CREATED, GenerationOutcome.SUPERSEDED)


class RelationshipPredictionService:
    """Scores pair evidence and persists the resulting suggestion."""

    def __init__(
        self,
        repository: SuggestionRepositoryInterface,
        *,
        min_confidence: float = MIN_CONFIDENCE,
        default_type: str = "ally",
    ) -> None:
        self.repository = repository
        self.min_confidence = min_confidence
        self.default_type = default_type

    def calculate_confidence(self, features: Sequence[SuggestionFeature]) -> float:
        """Weighted mean of feature values on a 0-100 scale."""

        total_weight = sum(feature.weight for feature in features)
        if total_weight <= 0:
            return 0.0
        weighted = sum(feature.weighted_value() for feature in features)
        return round(max(0.0, min(100.0, weighted / total_weight * 100)), 2)

    def predict(self, evidence: PairEvidence) -> RelationshipSuggestion | None:
        """Build an unsaved suggestion, or None when evidence is too weak."""

        features = evidence.features
        if not features:
            return None

        confidence = self.calculate_confidence(features)
        if evidence.recommendation_confidence is not None:
            confidence = round(
                SIGNAL_CONFIDENCE_SHARE * confidence
                + RECOMMENDATION_CONFIDENCE_SHARE * evidence.recommendation_confidence,
                2,
            )
        if confidence < self.min_confidence:
            return None

        suggested_type = self.determine_type(evidence)
        pair = evidence.pair
        return RelationshipSuggestion(
            saga_id=pair.saga_id,
            source_entity_id=pair.source.id,
            target_entity_id=pair.target.id,
            suggested_type=suggested_type,
            confidence_score=confidence,
            strength=self.estimate_strength(evidence),
            reasoning=self.build_reasoning(evidence, suggested_type),
            evidence=self.build_evidence(features),
            suggestion_method=self.determine_method(evidence),
            ai_model=evidence.ai_model or RULE_BASED_MODEL,
        )

    def generate_suggestion(self, evidence: PairEvidence) -> GenerationResult:
        """Predict and persist a suggestion for the pair.

        A pending suggestion for the same unordered pair is refreshed in place;
        a pair that already received a review decision is left alone.
        """

        pair = evidence.pair
        existing = self.repository.find_by_saga_and_pair(pair.saga_id, pair.source.id, pair.target.id)
        if existing is not None and existing.is_actioned():
            return GenerationResult(GenerationOutcome.SUPPRESSED, existing)

        if not evidence.features:
            return GenerationResult(GenerationOutcome.NO_FEATURES)
        suggestion = self.predict(evidence)
        if suggestion is None:
            return GenerationResult(GenerationOutcome.BELOW_THRESHOLD)

        outcome = GenerationOutcome.CREATED
        if existing is not None:
            outcome = GenerationOutcome.SUPERSEDED
            suggestion = replace(
                suggestion,
                id=existing.id,
                source_entity_id=existing.source_entity_id,
                target_entity_id=existing.target_entity_id,
                created_at=existing.created_at,
                updated_at=utc_now(),
            )

        suggestion_id = self.repository.save(suggestion)
        self.repository.save_features(suggestion_id, evidence.features)
        logger.debug(
            "suggestions.suggestion_saved saga_id=%s suggestion_id=%s outcome=%s confidence=%.2f",
            pair.saga_id,
            suggestion_id,
            outcome.value,
            suggestion.confidence_score,
        )
        return GenerationResult(outcome, replace(suggestion, id=suggestion_id))

    def determine_method(self, evidence: PairEvidence) -> SuggestionMethod:
        strong = sum(1 for feature in evidence.features if feature.feature_value >= STRONG_SIGNAL_THRESHOLD)
        if evidence.has_recommendation:
            if strong >= HYBRID_SIGNALS_WITH_RECOMMENDATION:
                return SuggestionMethod.HYBRID
            return SuggestionMethod.SEMANTIC
        if strong >= HYBRID_SIGNALS_WITHOUT_RECOMMENDATION:
            return SuggestionMethod.HYBRID
        if evidence.method is SuggestionMethod.SEMANTIC:
            return SuggestionMethod.SEMANTIC
        return SuggestionMethod.CONTENT

    def determine_type(self, evidence: PairEvidence) -> str:
        if evidence.suggested_type:
            return evidence.suggested_type

        faction = evidence.feature(FeatureType.SHARED_FACTION)
        if faction is not None and faction.feature_value >= FACTION_ALLY_THRESHOLD:
            return "ally"
        co_occurrence = evidence.feature(FeatureType.CO_OCCURRENCE)
        timeline = evidence.feature(FeatureType.TIMELINE_PROXIMITY)
        if (
            co_occurrence is not None
            and timeline is not None
            and co_occurrence.feature_value >= STRONG_SIGNAL_THRESHOLD
            and timeline.feature_value >= STRONG_SIGNAL_THRESHOLD
        ):
            return "ally"
        return self.default_type

    def estimate_strength(self, evidence: PairEvidence) -> int:
        if evidence.suggested_strength is not None:
            return evidence.suggested_strength
        if not evidence.features:
            return DEFAULT_STRENGTH
        top = sorted((feature.feature_value for feature in evidence.features), reverse=True)
        top = top[:STRENGTH_TOP_FEATURES]
        return int(round(sum(top) / len(top) * 100))

    def build_reasoning(self, evidence: PairEvidence, suggested_type: str) -> str:
        pair = evidence.pair
        supporting = sorted(
            (feature for feature in evidence.features if feature.feature_value >= EVIDENCE_THRESHOLD),
            key=lambda feature: feature.weighted_value(),
            reverse=True,
        )
        if not supporting:
            return (
                f"{pair.source.name} and {pair.target.name} may share a {suggested_type} "
                "relationship based on weak combined evidence."
            )
        details = "; ".join(feature.explanation() for feature in supporting)
        return f"{pair.source.name} and {pair.target.name} may share a {suggested_type} relationship. {details}."

    def build_evidence(self, features: Sequence[SuggestionFeature]) -> list[dict[str, object]]:
        return [
            {
                "type": feature.feature_type.value,
                "description": feature.feature_name,
                "value": round(feature.feature_value, 4),
                "weight": round(feature.weight, 4),
                "strength": feature.strength_label(),
            }
            for feature in features
            if feature.feature_value >= EVIDENCE_THRESHOLD
        ]
