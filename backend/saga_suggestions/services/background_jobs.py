"""Background jobs for suggestion generation."""

from __future__ import annotations

import logging
from datetime import timedelta
from functools import lru_cache
from time import perf_counter

from sqlalchemy.orm import Session

from saga_suggestions.config import Settings, get_settings
from saga_suggestions.db.session import SessionLocal
from saga_suggestions.providers.llm import get_default_recommender
from saga_suggestions.providers.saga_graph import SagaGraphEvidenceProvider
from saga_suggestions.services.suggestion_store import SqlEntityStore, SqlSuggestionRepository
from saga_suggestions.suggestions.evidence import EvidenceProvider
from saga_suggestions.suggestions.extraction import FeatureExtractionService
from saga_suggestions.suggestions.feedback import SuggestionFeedbackService
from saga_suggestions.suggestions.learning import LearningService
from saga_suggestions.suggestions.prediction import RelationshipPredictionService
from saga_suggestions.suggestions.processor import BatchResult, SuggestionBackgroundProcessor
from saga_suggestions.suggestions.rate_limit import CallBudget, PairCooldown

logger = logging.getLogger(__name__)


@lru_cache
def get_call_budget() -> CallBudget:
    """Process-wide provider call budget shared by every batch."""

    settings = get_settings()
    return CallBudget(
        max_calls=settings.suggestion_call_budget,
        window_seconds=settings.suggestion_budget_window_seconds,
    )


@lru_cache
def get_pair_cooldown() -> PairCooldown:
    settings = get_settings()
    return PairCooldown(cooldown_seconds=settings.suggestion_stale_after_hours * 3600)


def build_learning_service(db: Session, settings: Settings | None = None) -> LearningService:
    settings = settings or get_settings()
    return LearningService(
        SqlSuggestionRepository(db),
        threshold=settings.suggestion_recalibration_threshold,
        learning_rate=settings.suggestion_learning_rate,
    )


def build_feedback_service(db: Session) -> SuggestionFeedbackService:
    return SuggestionFeedbackService(db, SqlSuggestionRepository(db), SqlEntityStore(db))


def build_suggestion_processor(
    db: Session,
    *,
    settings: Settings | None = None,
    provider: EvidenceProvider | None = None,
    budget: CallBudget | None = None,
) -> SuggestionBackgroundProcessor:
    """Wire the processor with SQL-backed ports and the saga graph provider."""

    settings = settings or get_settings()
    repository = SqlSuggestionRepository(db)
    if provider is None:
        provider = SagaGraphEvidenceProvider(SessionLocal, recommender=get_default_recommender(settings))
    return SuggestionBackgroundProcessor(
        db,
        repository,
        SqlEntityStore(db),
        FeatureExtractionService(provider),
        RelationshipPredictionService(
            repository,
            min_confidence=settings.suggestion_min_confidence,
            default_type=settings.suggestion_default_type,
        ),
        build_learning_service(db, settings),
        budget or get_call_budget(),
        feedback=build_feedback_service(db),
        cooldown=get_pair_cooldown(),
        batch_size=settings.suggestion_batch_size,
        max_workers=settings.suggestion_workers,
        provider_timeout=settings.suggestion_provider_timeout_seconds,
        stale_after=timedelta(hours=settings.suggestion_stale_after_hours),
        auto_accept=settings.suggestion_auto_accept,
        auto_accept_actor_id=settings.suggestion_auto_accept_actor_id,
    )


def run_suggestion_batch_job(saga_id: int, max_pairs: int | None = None) -> BatchResult:
    """Run one suggestion batch in a background-friendly DB session."""

    total_started = perf_counter()
    db = SessionLocal()
    try:
        result = build_suggestion_processor(db).run_batch(saga_id, max_pairs=max_pairs)
        logger.info(
            (
                "suggestions.batch_timing saga_id=%s candidates=%d generated=%d skipped=%d "
                "below_threshold=%d auto_accepted=%d budget_exhausted=%s recalibrated=%s total_ms=%.2f"
            ),
            saga_id,
            result.candidates,
            result.generated,
            result.skipped,
            result.below_threshold,
            result.auto_accepted,
            result.budget_exhausted,
            result.recalibrated,
            (perf_counter() - total_started) * 1000.0,
        )
        return result
    except Exception:
        logger.exception(
            "suggestions.batch_failed saga_id=%s elapsed_ms=%.2f",
            saga_id,
            (perf_counter() - total_started) * 1000.0,
        )
        raise
    finally:
        db.close()
