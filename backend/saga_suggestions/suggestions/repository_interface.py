"""Persistence ports for suggestions and the saga entity store."""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from datetime import datetime

from saga_suggestions.suggestions.feature import SuggestionFeature
from saga_suggestions.suggestions.suggestion import RelationshipSuggestion
from saga_suggestions.suggestions.types import EntityRef, FeatureType, FeatureWeightStats, PairState


class SuggestionRepositoryInterface(ABC):
    """Storage boundary for suggestions, their features, and learned weights.

    Implementations stage writes in the caller's unit of work; committing is the
    caller's job so a suggestion and its features land together.
    """

    @abstractmethod
    def find_pending(self, saga_id: int, limit: int = 50) -> list[RelationshipSuggestion]:
        """Return pending suggestions for a saga ordered by priority, highest first."""

    @abstractmethod
    def find_by_id(self, suggestion_id: int) -> RelationshipSuggestion | None:
        """Return one suggestion or None."""

    @abstractmethod
    def save(self, suggestion: RelationshipSuggestion) -> int:
        """Insert a new suggestion, or update a stored one that is still pending."""

    @abstractmethod
    def save_features(self, suggestion_id: int, features: Sequence[SuggestionFeature]) -> None:
        """Replace the feature set of a suggestion."""

    @abstractmethod
    def get_features(self, suggestion_id: int) -> list[SuggestionFeature]:
        """Return the features stored for a suggestion."""

    @abstractmethod
    def update_status(self, suggestion: RelationshipSuggestion) -> None:
        """Persist a lifecycle transition if the stored row is still pending."""

    @abstractmethod
    def find_by_saga_and_pair(
        self,
        saga_id: int,
        first_entity_id: int,
        second_entity_id: int,
    ) -> RelationshipSuggestion | None:
        """Return the latest suggestion for an unordered pair."""

    @abstractmethod
    def count_feedback_since(self, since: datetime | None) -> int:
        """Count accept/reject/modify actions recorded after `since` (all when None)."""

    @abstractmethod
    def get_feature_weight_stats(self) -> dict[FeatureType, FeatureWeightStats]:
        """Accepted/rejected counts per feature type where it was a major contributor."""

    @abstractmethod
    def list_pair_states(self, saga_id: int) -> dict[tuple[int, int], PairState]:
        """Latest suggestion state keyed by unordered entity pair."""

    @abstractmethod
    def find_actioned(self, saga_id: int | None = None) -> list[RelationshipSuggestion]:
        """Return suggestions that received a review decision."""

    @abstractmethod
    def get_feature_weights(self) -> dict[FeatureType, float]:
        """Return learned weight overrides."""

    @abstractmethod
    def save_feature_weights(
        self,
        weights: Mapping[FeatureType, float],
        stats: Mapping[FeatureType, FeatureWeightStats],
    ) -> None:
        """Store recalibrated weights and stamp the recalibration time."""

    @abstractmethod
    def reset_feature_weights(self) -> None:
        """Restore default weights and restart the feedback count from now."""

    @abstractmethod
    def get_last_recalibration_at(self) -> datetime | None:
        """Return when weights were last recalibrated, or None."""

    @abstractmethod
    def count_pending(self, saga_id: int) -> int:
        """Count pending suggestions for a saga."""


class EntityStoreInterface(ABC):
    """Read/write access to saga entities and their relationships."""

    @abstractmethod
    def list_entities(self, saga_id: int) -> list[EntityRef]:
        """Return saga entities ordered by importance, highest first."""

    @abstractmethod
    def list_related_pairs(self, saga_id: int) -> set[tuple[int, int]]:
        """Return unordered entity pairs that already have a relationship."""

    @abstractmethod
    def relationship_exists(self, first_entity_id: int, second_entity_id: int) -> bool:
        """Return whether any relationship links the two entities."""

    @abstractmethod
    def create_relationship(
        self,
        saga_id: int,
        source_entity_id: int,
        target_entity_id: int,
        relationship_type: str,
        strength: int,
        origin_suggestion_id: int | None = None,
    ) -> int:
        """Create a relationship and return its ID."""
