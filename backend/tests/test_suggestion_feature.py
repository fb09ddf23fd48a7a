"""Unit tests for the suggestion feature value type."""

from __future__ import annotations

import math
import unittest

from saga_suggestions.suggestions.errors import SuggestionValidationError
from saga_suggestions.suggestions.feature import SuggestionFeature
from saga_suggestions.suggestions.types import FeatureType


class SuggestionFeatureTests(unittest.TestCase):
    def test_defaults_weight_and_name_from_feature_type(self) -> None:
        feature = SuggestionFeature(feature_type=FeatureType.SEMANTIC_SIMILARITY, feature_value=0.4)

        self.assertEqual(feature.weight, 0.8)
        self.assertEqual(feature.feature_name, "Semantic embedding similarity")

    def test_accepts_string_feature_type_tag(self) -> None:
        feature = SuggestionFeature(feature_type="shared_faction", feature_value=1.0)

        self.assertIs(feature.feature_type, FeatureType.SHARED_FACTION)

    def test_rejects_out_of_range_value_and_weight(self) -> None:
        with self.assertRaises(SuggestionValidationError):
            SuggestionFeature(feature_type=FeatureType.CO_OCCURRENCE, feature_value=1.2)
        with self.assertRaises(SuggestionValidationError):
            SuggestionFeature(feature_type=FeatureType.CO_OCCURRENCE, feature_value=-0.1)
        with self.assertRaises(SuggestionValidationError):
            SuggestionFeature(feature_type=FeatureType.CO_OCCURRENCE, feature_value=0.5, weight=1.5)
        with self.assertRaises(SuggestionValidationError):
            SuggestionFeature(feature_type=FeatureType.CO_OCCURRENCE, feature_value=math.nan)

    def test_rejects_unknown_feature_type(self) -> None:
        with self.assertRaises(SuggestionValidationError):
            SuggestionFeature(feature_type="mention_frequency", feature_value=0.5)

    def test_weighted_value_and_contribution(self) -> None:
        feature = SuggestionFeature(feature_type=FeatureType.CO_OCCURRENCE, feature_value=0.8, weight=0.7)
        self.assertAlmostEqual(feature.weighted_value(), 0.56)

        other = SuggestionFeature(feature_type=FeatureType.CO_OCCURRENCE, feature_value=0.8, weight=0.5)
        self.assertAlmostEqual(other.contribution(2.0), 20.0)
        self.assertEqual(other.contribution(0.0), 0.0)
        self.assertEqual(other.contribution(-1.0), 0.0)

    def test_strength_label_boundaries(self) -> None:
        expectations = {0.85: "very_strong", 0.8: "very_strong", 0.65: "strong", 0.5: "moderate", 0.3: "weak"}
        for value, label in expectations.items():
            feature = SuggestionFeature(feature_type=FeatureType.TIMELINE_PROXIMITY, feature_value=value)
            self.assertEqual(feature.strength_label(), label, msg=f"value={value}")

    def test_is_high_value_requires_value_and_weight(self) -> None:
        self.assertTrue(
            SuggestionFeature(feature_type=FeatureType.CO_OCCURRENCE, feature_value=0.7, weight=0.6).is_high_value()
        )
        self.assertFalse(
            SuggestionFeature(feature_type=FeatureType.CO_OCCURRENCE, feature_value=0.9, weight=0.5).is_high_value()
        )
        self.assertFalse(
            SuggestionFeature(feature_type=FeatureType.CO_OCCURRENCE, feature_value=0.6, weight=0.9).is_high_value()
        )

    def test_with_weight_returns_new_instance(self) -> None:
        feature = SuggestionFeature(feature_type=FeatureType.CO_OCCURRENCE, feature_value=0.5)
        reweighted = feature.with_weight(0.9)

        self.assertEqual(feature.weight, 0.7)
        self.assertEqual(reweighted.weight, 0.9)
        self.assertEqual(reweighted.feature_value, 0.5)
        with self.assertRaises(SuggestionValidationError):
            feature.with_weight(2.0)

    def test_create_normalized_scales_and_clamps(self) -> None:
        middle = SuggestionFeature.create_normalized(FeatureType.CO_OCCURRENCE, 15, 0, 30)
        self.assertAlmostEqual(middle.feature_value, 0.5)
        self.assertEqual(middle.metadata["raw_value"], 15)

        high = SuggestionFeature.create_normalized(FeatureType.CO_OCCURRENCE, 45, 0, 30)
        low = SuggestionFeature.create_normalized(FeatureType.CO_OCCURRENCE, -5, 0, 30)
        self.assertEqual(high.feature_value, 1.0)
        self.assertEqual(low.feature_value, 0.0)

    def test_create_normalized_with_degenerate_range_is_neutral(self) -> None:
        feature = SuggestionFeature.create_normalized(FeatureType.SHARED_LOCATION, 3, 5, 5)

        self.assertEqual(feature.feature_value, 0.5)

    def test_explanation_mentions_name_and_label(self) -> None:
        feature = SuggestionFeature(feature_type=FeatureType.SHARED_FACTION, feature_value=1.0)

        self.assertEqual(feature.explanation(), "Same faction membership: very strong (100%)")

    def test_record_round_trip(self) -> None:
        feature = SuggestionFeature(
            feature_type=FeatureType.TIMELINE_PROXIMITY,
            feature_value=0.42,
            weight=0.55,
            metadata={"shared_events": 3},
            id=7,
            suggestion_id=11,
        )
        record = feature.to_record()

        self.assertEqual(record["feature_type"], "timeline_proximity")
        self.assertIsInstance(record["created_at"], str)
        self.assertEqual(SuggestionFeature.from_record(record), feature)

    def test_from_record_rejects_malformed_rows(self) -> None:
        with self.assertRaises(SuggestionValidationError):
            SuggestionFeature.from_record({"feature_type": "co_occurrence"})
        with self.assertRaises(SuggestionValidationError):
            SuggestionFeature.from_record({"feature_type": "co_occurrence", "feature_value": "high"})
        with self.assertRaises(SuggestionValidationError):
            SuggestionFeature.from_record(
                {"feature_type": "co_occurrence", "feature_value": 0.5, "created_at": "yesterday"}
            )
        with self.assertRaises(SuggestionValidationError):
            SuggestionFeature.from_record({"feature_type": "co_occurrence", "feature_value": 0.5, "suggestion_id": 4.5})

        restored = SuggestionFeature.from_record({"feature_type": "co_occurrence", "feature_value": 0.5, "id": 7.0})
        self.assertEqual(restored.id, 7)


if __name__ == "__main__":
    unittest.main()
