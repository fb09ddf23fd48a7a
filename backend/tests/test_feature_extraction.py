"""Unit tests for provider evidence normalization."""

from __future__ import annotations

import math
import unittest

from saga_suggestions.suggestions.errors import EvidenceProviderError
from saga_suggestions.suggestions.evidence import EvidenceFailure, EvidenceResult, RawSignal
from saga_suggestions.suggestions.extraction import FeatureExtractionService
from saga_suggestions.suggestions.types import EntityPair, EntityRef, FeatureType, SuggestionMethod


class _StaticProviderStub:
    def __init__(self, response) -> None:
        self.response = response
        self.calls: list[EntityPair] = []

    def evaluate(self, pair: EntityPair):
        self.calls.append(pair)
        return self.response


def _pair() -> EntityPair:
    return EntityPair(
        saga_id=1,
        source=EntityRef(id=1, name="Luke Skywalker", entity_type="character"),
        target=EntityRef(id=2, name="Leia Organa", entity_type="character"),
    )


class FeatureExtractionServiceTests(unittest.TestCase):
    def test_normalizes_with_default_and_explicit_bounds(self) -> None:
        provider = _StaticProviderStub(
            EvidenceResult(
                raw_signals={
                    FeatureType.CO_OCCURRENCE: 25,
                    FeatureType.SHARED_LOCATION: RawSignal(value=2, minimum=0, maximum=4, metadata={"ids": [7]}),
                    FeatureType.SEMANTIC_SIMILARITY: 0.9,
                }
            )
        )
        evidence = FeatureExtractionService(provider).extract(_pair())

        self.assertEqual(len(provider.calls), 1)
        self.assertEqual(len(evidence.features), 3)
        co_occurrence = evidence.feature(FeatureType.CO_OCCURRENCE)
        self.assertIsNotNone(co_occurrence)
        assert co_occurrence is not None
        self.assertAlmostEqual(co_occurrence.feature_value, 25 / 30)
        self.assertEqual(co_occurrence.weight, 0.7)

        location = evidence.feature(FeatureType.SHARED_LOCATION)
        self.assertIsNotNone(location)
        assert location is not None
        self.assertAlmostEqual(location.feature_value, 0.5)
        self.assertEqual(location.metadata["ids"], [7])
        self.assertEqual(location.metadata["max_value"], 4)

    def test_applies_learned_weights(self) -> None:
        provider = _StaticProviderStub(EvidenceResult(raw_signals={FeatureType.SHARED_FACTION: 1.0}))
        evidence = FeatureExtractionService(provider).extract(_pair(), {FeatureType.SHARED_FACTION: 0.95})

        self.assertEqual(evidence.features[0].weight, 0.95)

    def test_omits_failed_and_malformed_signals(self) -> None:
        provider = _StaticProviderStub(
            EvidenceResult(
                raw_signals={
                    FeatureType.CO_OCCURRENCE: 12,
                    FeatureType.TIMELINE_PROXIMITY: math.nan,
                    FeatureType.ATTRIBUTE_SIMILARITY: "similar",
                    "mention_frequency": 0.4,
                },
                failed_signals={FeatureType.SEMANTIC_SIMILARITY: "embedding service unavailable"},
            )
        )
        with self.assertLogs("saga_suggestions.suggestions.extraction", level="INFO") as logs:
            evidence = FeatureExtractionService(provider).extract(_pair())

        self.assertEqual([feature.feature_type for feature in evidence.features], [FeatureType.CO_OCCURRENCE])
        output = "\n".join(logs.output)
        self.assertIn("suggestions.signal_failed", output)
        self.assertIn("suggestions.signal_malformed", output)
        self.assertIn("mention_frequency", output)

    def test_bounds_recommendation_values(self) -> None:
        provider = _StaticProviderStub(
            EvidenceResult(
                raw_signals={FeatureType.CO_OCCURRENCE: 10},
                suggested_type="  mentor ",
                suggested_strength=140,
                recommendation_confidence=-3,
                method=SuggestionMethod.SEMANTIC,
                ai_model="stub-model",
            )
        )
        evidence = FeatureExtractionService(provider).extract(_pair())

        self.assertEqual(evidence.suggested_type, "mentor")
        self.assertEqual(evidence.suggested_strength, 100)
        self.assertEqual(evidence.recommendation_confidence, 0.0)
        self.assertIs(evidence.method, SuggestionMethod.SEMANTIC)
        self.assertEqual(evidence.ai_model, "stub-model")
        self.assertTrue(evidence.has_recommendation)

    def test_empty_result_yields_no_features(self) -> None:
        evidence = FeatureExtractionService(_StaticProviderStub(EvidenceResult())).extract(_pair())

        self.assertEqual(evidence.features, [])
        self.assertFalse(evidence.has_recommendation)

    def test_provider_failure_raises(self) -> None:
        service = FeatureExtractionService(_StaticProviderStub(EvidenceFailure(reason="entity not found")))

        with self.assertRaises(EvidenceProviderError) as ctx:
            service.extract(_pair())
        self.assertIn("entity not found", str(ctx.exception))

    def test_unexpected_provider_response_raises(self) -> None:
        with self.assertRaises(EvidenceProviderError):
            FeatureExtractionService(_StaticProviderStub({"co_occurrence": 3})).extract(_pair())


if __name__ == "__main__":
    unittest.main()
