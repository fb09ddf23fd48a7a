"""Tests for weight recalibration and accuracy metrics."""

from __future__ import annotations

import unittest

from sqlalchemy import create_engine, delete
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from saga_suggestions.models.base import Base
from saga_suggestions.models.learning_weight import LearningWeight
from saga_suggestions.models.relationship_suggestion import SuggestionFeatureRecord, SuggestionRecord
from saga_suggestions.services.suggestion_store import SqlSuggestionRepository
from saga_suggestions.suggestions.feature import SuggestionFeature
from saga_suggestions.suggestions.learning import AccuracyMetrics, LearningService
from saga_suggestions.suggestions.suggestion import RelationshipSuggestion
from saga_suggestions.suggestions.types import FeatureType


class LearningServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autoflush=False, autocommit=False, future=True)
        Base.metadata.create_all(bind=cls.engine)

    @classmethod
    def tearDownClass(cls) -> None:
        Base.metadata.drop_all(bind=cls.engine)
        cls.engine.dispose()

    def setUp(self) -> None:
        self.db: Session = self.SessionLocal()
        self.db.execute(delete(SuggestionFeatureRecord))
        self.db.execute(delete(SuggestionRecord))
        self.db.execute(delete(LearningWeight))
        self.db.commit()
        self.repository = SqlSuggestionRepository(self.db)
        self._next_target = 100

    def tearDown(self) -> None:
        self.db.close()

    def _decided(self, *, accepted: bool, confidence: float = 80.0, saga_id: int = 1) -> RelationshipSuggestion:
        self._next_target += 1
        suggestion_id = self.repository.save(
            RelationshipSuggestion(
                saga_id=saga_id,
                source_entity_id=1,
                target_entity_id=self._next_target,
                suggested_type="ally",
                confidence_score=confidence,
            )
        )
        self.repository.save_features(
            suggestion_id,
            [
                SuggestionFeature(feature_type=FeatureType.CO_OCCURRENCE, feature_value=0.9),
                SuggestionFeature(feature_type=FeatureType.SEMANTIC_SIMILARITY, feature_value=0.1),
            ],
        )
        stored = self.repository.find_by_id(suggestion_id)
        assert stored is not None
        decided = stored.accept(actioned_by=1) if accepted else stored.reject(actioned_by=1)
        self.repository.update_status(decided)
        self.db.commit()
        return decided

    def test_current_weights_default_to_feature_type_weights(self) -> None:
        weights = LearningService(self.repository).current_weights()

        self.assertEqual(weights, {feature_type: feature_type.default_weight for feature_type in FeatureType})

    def test_recalibrate_moves_major_contributor_weights(self) -> None:
        for _ in range(3):
            self._decided(accepted=True)
        self._decided(accepted=False)

        weights = LearningService(self.repository).recalibrate()
        self.db.commit()

        # 0.7 + 0.1 * (3 - 1) / 4
        self.assertEqual(weights[FeatureType.CO_OCCURRENCE], 0.75)
        self.assertEqual(weights[FeatureType.SEMANTIC_SIMILARITY], 0.8)
        self.assertEqual(self.repository.get_feature_weights()[FeatureType.CO_OCCURRENCE], 0.75)
        self.assertEqual(LearningService(self.repository).current_weights()[FeatureType.CO_OCCURRENCE], 0.75)

    def test_weights_stay_within_unit_interval(self) -> None:
        self.repository.save_feature_weights({FeatureType.CO_OCCURRENCE: 0.02}, {})
        self._decided(accepted=False)

        weights = LearningService(self.repository, learning_rate=0.5).recalibrate()

        self.assertEqual(weights[FeatureType.CO_OCCURRENCE], 0.0)

    def test_maybe_recalibrate_waits_for_threshold(self) -> None:
        for _ in range(4):
            self._decided(accepted=True)

        self.assertFalse(LearningService(self.repository, threshold=5).maybe_recalibrate())
        self.assertIsNone(self.repository.get_last_recalibration_at())

        service = LearningService(self.repository, threshold=4)
        with self.assertLogs("saga_suggestions.suggestions.learning", level="INFO") as logs:
            self.assertTrue(service.maybe_recalibrate())
        self.db.commit()
        self.assertIn("suggestions.recalibrated feedback_count=4", "\n".join(logs.output))
        self.assertEqual(service.pending_feedback(), 0)
        self.assertFalse(service.maybe_recalibrate())

    def test_accuracy_metrics_confusion_matrix(self) -> None:
        self._decided(accepted=True, confidence=80.0)
        self._decided(accepted=False, confidence=85.0)
        self._decided(accepted=True, confidence=50.0)
        self._decided(accepted=False, confidence=30.0)
        self._decided(accepted=True, confidence=90.0, saga_id=2)

        metrics = LearningService(self.repository).get_accuracy_metrics(saga_id=1)

        self.assertEqual(metrics.total, 4)
        self.assertEqual(metrics.accepted, 2)
        self.assertEqual(metrics.rejected, 2)
        self.assertEqual(
            (metrics.true_positives, metrics.false_positives, metrics.false_negatives, metrics.true_negatives),
            (1, 1, 1, 1),
        )
        self.assertEqual(metrics.precision, 0.5)
        self.assertEqual(metrics.recall, 0.5)
        self.assertEqual(metrics.f1_score, 0.5)
        self.assertEqual(metrics.accuracy, 0.5)
        self.assertEqual(metrics.acceptance_rate, 0.5)
        self.assertIsNotNone(metrics.avg_seconds_to_decision)

        self.assertEqual(LearningService(self.repository).get_accuracy_metrics(saga_id=1).total, 4)
        self.assertEqual(LearningService(self.repository).get_accuracy_metrics().total, 5)

    def test_reset_weights_restores_defaults_and_restarts_feedback_count(self) -> None:
        for _ in range(4):
            self._decided(accepted=True)
        service = LearningService(self.repository, threshold=4)
        service.recalibrate()
        self.db.commit()
        self.assertNotEqual(service.current_weights()[FeatureType.CO_OCCURRENCE], 0.7)

        with self.assertLogs("saga_suggestions.suggestions.learning", level="INFO"):
            weights = service.reset_weights()
        self.db.commit()

        self.assertEqual(weights, {feature_type: feature_type.default_weight for feature_type in FeatureType})
        self.assertEqual(service.pending_feedback(), 0)
        self.assertFalse(service.maybe_recalibrate())
        self._decided(accepted=False)
        self.assertEqual(service.pending_feedback(), 1)

    def test_learning_statistics_before_and_after_enough_samples(self) -> None:
        self._decided(accepted=True, confidence=80.0)
        self._decided(accepted=False, confidence=85.0)
        self._decided(accepted=True, confidence=50.0)
        self._decided(accepted=False, confidence=30.0)

        early = LearningService(self.repository, threshold=10).get_learning_statistics(saga_id=1)
        self.assertFalse(early.is_learning_active)
        self.assertEqual(early.samples_needed, 6)
        self.assertEqual(early.predicted_improvement, 20.0)

        ready = LearningService(self.repository, threshold=4).get_learning_statistics(saga_id=1)
        self.assertTrue(ready.is_learning_active)
        self.assertEqual(ready.samples_needed, 0)
        # (100 - 50) / (1 + 4 / 20)
        self.assertEqual(ready.predicted_improvement, 41.67)
        self.assertEqual(ready.metrics.total, 4)
        self.assertEqual(ready.weights[FeatureType.SHARED_FACTION], FeatureType.SHARED_FACTION.default_weight)

    def test_accuracy_metrics_without_feedback(self) -> None:
        self.assertEqual(LearningService(self.repository).get_accuracy_metrics(), AccuracyMetrics())


if __name__ == "__main__":
    unittest.main()
