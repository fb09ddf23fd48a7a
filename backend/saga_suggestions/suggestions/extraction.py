"""Feature extraction: provider evidence to normalized, weighted features."""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping

from saga_suggestions.suggestions.errors import EvidenceProviderError, SuggestionValidationError
from saga_suggestions.suggestions.evidence import (
    EvidenceFailure,
    EvidenceProvider,
    EvidenceResult,
    PairEvidence,
    RawSignal,
)
from saga_suggestions.suggestions.feature import SuggestionFeature
from saga_suggestions.suggestions.types import EntityPair, FeatureType, SuggestionMethod, parse_enum

logger = logging.getLogger(__name__)


class FeatureExtractionService:
    """Turns raw provider signals for a pair into `SuggestionFeature` objects."""

    def __init__(self, provider: EvidenceProvider) -> None:
        self.provider = provider

    def extract(
        self,
        pair: EntityPair,
        weights: Mapping[FeatureType, float] | None = None,
    ) -> PairEvidence:
        """Evaluate the pair and normalize every usable signal.

        Signals the provider reports as failed, or whose raw value is malformed,
        are omitted. A whole-pair failure raises `EvidenceProviderError`.
        """

        result = self.provider.evaluate(pair)
        if isinstance(result, EvidenceFailure):
            raise EvidenceProviderError(
                f"Evidence provider failed for pair {pair.source.id}-{pair.target.id}: {result.reason}",
                retryable=result.retryable,
            )
        if not isinstance(result, EvidenceResult):
            raise EvidenceProviderError(f"Unexpected provider response: {type(result).__name__}")

        for feature_type, reason in result.failed_signals.items():
            logger.info(
                "suggestions.signal_failed saga_id=%s source_id=%s target_id=%s feature=%s reason=%s",
                pair.saga_id,
                pair.source.id,
                pair.target.id,
                _tag(feature_type),
                reason,
            )

        features: list[SuggestionFeature] = []
        for raw_type, raw_signal in result.raw_signals.items():
            feature = self._build_feature(pair, raw_type, raw_signal, weights or {})
            if feature is not None:
                features.append(feature)

        method = result.method
        if method is not None:
            try:
                method = parse_enum(SuggestionMethod, method, "method")
            except SuggestionValidationError:
                logger.warning("suggestions.invalid_method pair=%s method=%r", pair.key, method)
                method = None

        return PairEvidence(
            pair=pair,
            features=features,
            suggested_type=(result.suggested_type or "").strip() or None,
            suggested_strength=_bounded_strength(result.suggested_strength),
            recommendation_confidence=_bounded_confidence(result.recommendation_confidence),
            method=method,
            ai_model=result.ai_model,
        )

    def _build_feature(
        self,
        pair: EntityPair,
        raw_type: object,
        raw_signal: RawSignal | float,
        weights: Mapping[FeatureType, float],
    ) -> SuggestionFeature | None:
        try:
            feature_type = parse_enum(FeatureType, raw_type, "feature_type")
            signal = raw_signal if isinstance(raw_signal, RawSignal) else RawSignal(value=raw_signal)
            value = _finite(signal.value)
            default_min, default_max = feature_type.raw_range
            minimum = default_min if signal.minimum is None else _finite(signal.minimum)
            maximum = default_max if signal.maximum is None else _finite(signal.maximum)
            return SuggestionFeature.create_normalized(
                feature_type,
                value,
                minimum,
                maximum,
                weight=weights.get(feature_type),
                metadata=signal.metadata,
            )
        except SuggestionValidationError as exc:
            logger.warning(
                "suggestions.signal_malformed saga_id=%s source_id=%s target_id=%s feature=%s error=%s",
                pair.saga_id,
                pair.source.id,
                pair.target.id,
                _tag(raw_type),
                exc,
            )
            return None


def _finite(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SuggestionValidationError(f"Signal value must be numeric, got {value!r}")
    if math.isnan(value) or math.isinf(value):
        raise SuggestionValidationError(f"Signal value must be finite, got {value!r}")
    return float(value)


def _bounded_strength(value: object) -> int | None:
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value):
        return None
    return int(max(0, min(100, round(value))))


def _bounded_confidence(value: object) -> float | None:
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value):
        return None
    return float(max(0.0, min(100.0, value)))


def _tag(value: object) -> str:
    return value.value if isinstance(value, FeatureType) else str(value)
