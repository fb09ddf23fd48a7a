"""Feedback-driven feature weight recalibration and accuracy metrics."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from saga_suggestions.suggestions.repository_interface import SuggestionRepositoryInterface
from saga_suggestions.suggestions.types import FeatureType

logger = logging.getLogger(__name__)

RECALIBRATION_THRESHOLD = 10
LEARNING_RATE = 0.1
HIGH_CONFIDENCE_THRESHOLD = 70.0
UNTRAINED_IMPROVEMENT = 20.0
IMPROVEMENT_HALF_LIFE_SAMPLES = 20


@dataclass(frozen=True, slots=True)
class AccuracyMetrics:
    """Confusion-matrix summary of reviewed suggestions."""

    total: int = 0
    accepted: int = 0
    rejected: int = 0
    true_positives: int = 0
    false_positives: int = 0
    false_negatives: int = 0
    true_negatives: int = 0
    precision: float = 0.0
    recall: float = 0.0
    f1_score: float = 0.0
    accuracy: float = 0.0
    acceptance_rate: float = 0.0
    avg_seconds_to_decision: float | None = None


@dataclass(frozen=True, slots=True)
class LearningStatistics:
    """Whether learning has enough reviewed samples, and how much it may still gain."""

    metrics: AccuracyMetrics
    weights: dict[FeatureType, float]
    is_learning_active: bool
    samples_needed: int
    predicted_improvement: float


class LearningService:
    """Adjusts per-feature-type weights from accumulated review decisions."""

    def __init__(
        self,
        repository: SuggestionRepositoryInterface,
        *,
        threshold: int = RECALIBRATION_THRESHOLD,
        learning_rate: float = LEARNING_RATE,
    ) -> None:
        self.repository = repository
        self.threshold = threshold
        self.learning_rate = learning_rate

    def current_weights(self) -> dict[FeatureType, float]:
        """Default weights overlaid with any learned overrides."""

        weights = {feature_type: feature_type.default_weight for feature_type in FeatureType}
        weights.update(self.repository.get_feature_weights())
        return weights

    def pending_feedback(self) -> int:
        return self.repository.count_feedback_since(self.repository.get_last_recalibration_at())

    def maybe_recalibrate(self) -> bool:
        feedback = self.pending_feedback()
        if feedback < self.threshold:
            return False
        self.recalibrate()
        logger.info("suggestions.recalibrated feedback_count=%d", feedback)
        return True

    def recalibrate(self) -> dict[FeatureType, float]:
        """Nudge each weight by the net acceptance of suggestions it drove.

        Feature types without samples keep their weight; every row is stamped so
        the feedback counter restarts.
        """

        stats = self.repository.get_feature_weight_stats()
        weights = self.current_weights()
        for feature_type, item in stats.items():
            if item.samples == 0:
                continue
            delta = self.learning_rate * (item.accepted - item.rejected) / item.samples
            weights[feature_type] = round(max(0.0, min(1.0, weights[feature_type] + delta)), 4)
        self.repository.save_feature_weights(weights, stats)
        return weights

    def get_accuracy_metrics(self, saga_id: int | None = None) -> AccuracyMetrics:
        actioned = self.repository.find_actioned(saga_id)
        if not actioned:
            return AccuracyMetrics()

        tp = fp = fn = tn = 0
        decision_times: list[float] = []
        for suggestion in actioned:
            high_confidence = suggestion.confidence_score >= HIGH_CONFIDENCE_THRESHOLD
            positive = suggestion.is_positive()
            if high_confidence and positive:
                tp += 1
            elif high_confidence:
                fp += 1
            elif positive:
                fn += 1
            else:
                tn += 1
            seconds = suggestion.time_to_decision()
            if seconds is not None:
                decision_times.append(seconds)

        total = len(actioned)
        precision = tp / (tp + fp) if tp + fp else 0.0
        recall = tp / (tp + fn) if tp + fn else 0.0
        f1 = 2 * precision * recall / (precision + recall) if precision + recall else 0.0
        return AccuracyMetrics(
            total=total,
            accepted=tp + fn,
            rejected=fp + tn,
            true_positives=tp,
            false_positives=fp,
            false_negatives=fn,
            true_negatives=tn,
            precision=round(precision, 4),
            recall=round(recall, 4),
            f1_score=round(f1, 4),
            accuracy=round((tp + tn) / total, 4),
            acceptance_rate=round((tp + fn) / total, 4),
            avg_seconds_to_decision=(
                round(sum(decision_times) / len(decision_times), 2) if decision_times else None
            ),
        )

    def reset_weights(self) -> dict[FeatureType, float]:
        """Drop learned overrides; feedback is counted again from now."""

        self.repository.reset_feature_weights()
        logger.info("suggestions.weights_reset")
        return self.current_weights()

    def get_learning_statistics(self, saga_id: int | None = None) -> LearningStatistics:
        metrics = self.get_accuracy_metrics(saga_id)
        active = metrics.total >= self.threshold
        if active:
            # Headroom shrinks as reviewed samples accumulate.
            improvement = round((1.0 - metrics.accuracy) * 100 / (1 + metrics.total / IMPROVEMENT_HALF_LIFE_SAMPLES), 2)
        else:
            improvement = UNTRAINED_IMPROVEMENT
        return LearningStatistics(
            metrics=metrics,
            weights=self.current_weights(),
            is_learning_active=active,
            samples_needed=max(0, self.threshold - metrics.total),
            predicted_improvement=improvement,
        )
