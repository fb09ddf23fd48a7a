"""Relationship suggestion engine: scoring, lifecycle, learning, and batching."""

from saga_suggestions.suggestions.errors import (
    EvidenceProviderError,
    SuggestionError,
    SuggestionNotFoundError,
    SuggestionPersistenceError,
    SuggestionStateError,
    SuggestionValidationError,
)
from saga_suggestions.suggestions.evidence import (
    EvidenceFailure,
    EvidenceProvider,
    EvidenceResult,
    PairEvidence,
    RawSignal,
)
from saga_suggestions.suggestions.feature import SuggestionFeature
from saga_suggestions.suggestions.suggestion import RelationshipSuggestion
from saga_suggestions.suggestions.types import (
    ConfidenceLevel,
    EntityPair,
    EntityRef,
    FeatureType,
    SuggestionMethod,
    SuggestionStatus,
    UserActionType,
)

__all__ = [
    "ConfidenceLevel",
    "EntityPair",
    "EntityRef",
    "EvidenceFailure",
    "EvidenceProvider",
    "EvidenceProviderError",
    "EvidenceResult",
    "FeatureType",
    "PairEvidence",
    "RawSignal",
    "RelationshipSuggestion",
    "SuggestionError",
    "SuggestionFeature",
    "SuggestionMethod",
    "SuggestionNotFoundError",
    "SuggestionPersistenceError",
    "SuggestionStateError",
    "SuggestionStatus",
    "SuggestionValidationError",
    "UserActionType",
]
