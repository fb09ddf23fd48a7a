"""Request/response contract between the engine and evidence providers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, Union

from saga_suggestions.suggestions.feature import SuggestionFeature
from saga_suggestions.suggestions.types import EntityPair, FeatureType, SuggestionMethod


@dataclass(frozen=True, slots=True)
class RawSignal:
    """Raw provider value with optional explicit bounds for normalization."""

    value: float
    minimum: float | None = None
    maximum: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class EvidenceResult:
    """Successful provider response for one pair."""

    raw_signals: dict[FeatureType, Union[RawSignal, float]] = field(default_factory=dict)
    suggested_type: str | None = None
    suggested_strength: int | None = None
    recommendation_confidence: float | None = None
    method: SuggestionMethod | None = None
    ai_model: str | None = None
    failed_signals: dict[FeatureType, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class EvidenceFailure:
    """Whole-pair provider failure.

    Non-retryable failures put the pair on cooldown until the stale window passes.
    """

    reason: str
    retryable: bool = False


class EvidenceProvider(Protocol):
    """Source of raw per-pair evidence."""

    def evaluate(self, pair: EntityPair) -> EvidenceResult | EvidenceFailure:
        """Return raw signals for the pair or a failure marker."""


@dataclass(slots=True)
class PairEvidence:
    """Normalized, weighted features for one pair plus the provider's recommendation."""

    pair: EntityPair
    features: list[SuggestionFeature] = field(default_factory=list)
    suggested_type: str | None = None
    suggested_strength: int | None = None
    recommendation_confidence: float | None = None
    method: SuggestionMethod | None = None
    ai_model: str | None = None

    @property
    def has_recommendation(self) -> bool:
        return bool(self.suggested_type) or self.recommendation_confidence is not None

    def feature(self, feature_type: FeatureType) -> SuggestionFeature | None:
        for item in self.features:
            if item.feature_type is feature_type:
                return item
        return None
