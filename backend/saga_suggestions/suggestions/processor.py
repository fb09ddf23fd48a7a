"""Batched, rate-limited suggestion generation for one saga."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from saga_suggestions.suggestions.errors import (
    EvidenceProviderError,
    PendingSuggestionConflictError,
    SuggestionError,
    SuggestionNotFoundError,
)
from saga_suggestions.suggestions.evidence import PairEvidence
from saga_suggestions.suggestions.extraction import FeatureExtractionService
from saga_suggestions.suggestions.feedback import SuggestionFeedbackService
from saga_suggestions.suggestions.learning import LearningService
from saga_suggestions.suggestions.prediction import GenerationOutcome, RelationshipPredictionService
from saga_suggestions.suggestions.rate_limit import CallBudget, PairCooldown
from saga_suggestions.suggestions.repository_interface import (
    EntityStoreInterface,
    SuggestionRepositoryInterface,
)
from saga_suggestions.suggestions.suggestion import RelationshipSuggestion
from saga_suggestions.suggestions.types import EntityPair, FeatureType, pair_key, utc_now

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
DEFAULT_STALE_AFTER = timedelta(hours=24)
ENTITY_PREVIEW_CANDIDATES = 50


@dataclass(slots=True)
class BatchResult:
    """Counts reported by one `run_batch` call."""

    saga_id: int
    candidates: int = 0
    generated: int = 0
    skipped: int = 0
    below_threshold: int = 0
    auto_accepted: int = 0
    budget_exhausted: bool = False
    recalibrated: bool = False


@dataclass(frozen=True, slots=True)
class PredictionStatistics:
    """How much of a saga's pair space is related or awaiting review."""

    saga_id: int
    total_entities: int
    possible_pairs: int
    existing_relationships: int
    pending_suggestions: int
    coverage_percent: float


class SuggestionBackgroundProcessor:
    """Selects candidate pairs, scores them, and persists suggestions pair by pair.

    Provider calls may run on a bounded thread pool; all database writes happen
    on the caller's session, one commit per pair.
    """

    def __init__(
        self,
        db: Session,
        repository: SuggestionRepositoryInterface,
        entity_store: EntityStoreInterface,
        extraction: FeatureExtractionService,
        prediction: RelationshipPredictionService,
        learning: LearningService,
        budget: CallBudget,
        *,
        feedback: SuggestionFeedbackService | None = None,
        cooldown: PairCooldown | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_workers: int = 1,
        provider_timeout: float | None = 30.0,
        stale_after: timedelta = DEFAULT_STALE_AFTER,
        auto_accept: bool = False,
        auto_accept_actor_id: int = 0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.db = db
        self.repository = repository
        self.entity_store = entity_store
        self.extraction = extraction
        self.prediction = prediction
        self.learning = learning
        self.budget = budget
        self.feedback = feedback
        self.cooldown = cooldown or PairCooldown(cooldown_seconds=stale_after.total_seconds())
        self.batch_size = max(1, batch_size)
        self.max_workers = max(1, max_workers)
        self.provider_timeout = provider_timeout
        self.stale_after = stale_after
        self.auto_accept = auto_accept
        self.auto_accept_actor_id = auto_accept_actor_id
        self.clock = clock

    def run_batch(self, saga_id: int, max_pairs: int | None = None) -> BatchResult:
        """Generate suggestions for up to `max_pairs` candidate pairs of a saga."""

        result = BatchResult(saga_id=saga_id)
        limit = max_pairs if max_pairs is not None and max_pairs > 0 else self.batch_size
        try:
            pairs = self.select_pairs(saga_id, limit)
            weights = self.learning.current_weights()
        except Exception:
            self.db.rollback()
            logger.exception("suggestions.pair_selection_failed saga_id=%s", saga_id)
            return result

        result.candidates = len(pairs)
        for evidence in self._evaluate(saga_id, pairs, weights, result):
            self._persist(evidence, result)

        try:
            result.recalibrated = self.learning.maybe_recalibrate()
            if result.recalibrated:
                self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception("suggestions.recalibration_failed saga_id=%s", saga_id)

        return result

    def select_pairs(self, saga_id: int, limit: int) -> list[EntityPair]:
        """Unrelated pairs with no suggestion yet, or with a stale pending one."""

        entities = self.entity_store.list_entities(saga_id)
        related = self.entity_store.list_related_pairs(saga_id)
        states = self.repository.list_pair_states(saga_id)
        stale_before = self.clock() - self.stale_after

        pairs: list[EntityPair] = []
        for index, source in enumerate(entities):
            for target in entities[index + 1:]:
                key = pair_key(source.id, target.id)
                if key in related:
                    continue
                state = states.get(key)
                if state is not None and (state.status.is_terminal or state.updated_at > stale_before):
                    continue
                if self.cooldown.is_cooling(saga_id, key):
                    continue
                pairs.append(EntityPair(saga_id=saga_id, source=source, target=target))
                if len(pairs) >= limit:
                    return pairs
        return pairs

    def predict_for_entity(self, saga_id: int, entity_id: int, limit: int = 10) -> list[RelationshipSuggestion]:
        """Rank unsaved suggestions linking one entity to the rest of its saga.

        Only the most important other entities are evaluated; pairs that already
        have a relationship or any stored suggestion are left out.
        """

        entities = self.entity_store.list_entities(saga_id)
        anchor = next((entity for entity in entities if entity.id == entity_id), None)
        if anchor is None:
            raise SuggestionNotFoundError(f"Entity {entity_id} not found in saga {saga_id}")

        related = self.entity_store.list_related_pairs(saga_id)
        states = self.repository.list_pair_states(saga_id)
        others = [entity for entity in entities if entity.id != entity_id][:ENTITY_PREVIEW_CANDIDATES]
        pairs = [
            EntityPair(saga_id=saga_id, source=anchor, target=other)
            for other in others
            if pair_key(anchor.id, other.id) not in related and pair_key(anchor.id, other.id) not in states
        ]

        suggestions: list[RelationshipSuggestion] = []
        for evidence in self._evaluate(saga_id, pairs, self.learning.current_weights(), BatchResult(saga_id)):
            suggestion = self.prediction.predict(evidence)
            if suggestion is not None:
                suggestions.append(suggestion)
        suggestions.sort(key=lambda item: item.priority_score, reverse=True)
        return suggestions[:limit]

    def get_prediction_statistics(self, saga_id: int) -> PredictionStatistics:
        total_entities = len(self.entity_store.list_entities(saga_id))
        possible_pairs = total_entities * (total_entities - 1) // 2
        existing = len(self.entity_store.list_related_pairs(saga_id))
        pending = self.repository.count_pending(saga_id)
        coverage = round((existing + pending) / possible_pairs * 100, 2) if possible_pairs else 0.0
        return PredictionStatistics(
            saga_id=saga_id,
            total_entities=total_entities,
            possible_pairs=possible_pairs,
            existing_relationships=existing,
            pending_suggestions=pending,
            coverage_percent=coverage,
        )

    def _evaluate(
        self,
        saga_id: int,
        pairs: list[EntityPair],
        weights: Mapping[FeatureType, float],
        result: BatchResult,
    ) -> Iterator[PairEvidence]:
        """Yield extracted evidence pair by pair, within the call budget and timeout."""

        executor = self._new_executor()
        try:
            for start in range(0, len(pairs), self.max_workers):
                submitted: list[tuple[EntityPair, Future[PairEvidence]]] = []
                for pair in pairs[start:start + self.max_workers]:
                    if not self.budget.try_acquire():
                        result.budget_exhausted = True
                        break
                    submitted.append((pair, executor.submit(self.extraction.extract, pair, weights)))

                for pair, future in submitted:
                    evidence = self._collect(pair, future)
                    if evidence is None:
                        result.skipped += 1
                        continue
                    yield evidence

                if any(not future.done() for _, future in submitted):
                    # Timed-out calls keep their threads; the next chunk needs free workers.
                    executor.shutdown(wait=False, cancel_futures=True)
                    executor = self._new_executor()

                if result.budget_exhausted:
                    logger.info(
                        "suggestions.budget_exhausted saga_id=%s processed=%d remaining_pairs=%d",
                        saga_id,
                        start + len(submitted),
                        len(pairs) - start - len(submitted),
                    )
                    break
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _new_executor(self) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="suggestions")

    def _collect(self, pair: EntityPair, future: Future[PairEvidence]) -> PairEvidence | None:
        try:
            return future.result(timeout=self.provider_timeout)
        except FutureTimeoutError:
            if future.cancel():
                self.budget.release()
            logger.warning(
                "suggestions.provider_timeout saga_id=%s source_id=%s target_id=%s timeout_s=%s",
                pair.saga_id,
                pair.source.id,
                pair.target.id,
                self.provider_timeout,
            )
        except EvidenceProviderError as exc:
            if not exc.retryable:
                self.cooldown.mark(pair.saga_id, pair.key)
            logger.warning(
                "suggestions.provider_failed saga_id=%s source_id=%s target_id=%s retryable=%s error=%s",
                pair.saga_id,
                pair.source.id,
                pair.target.id,
                exc.retryable,
                exc,
            )
        except Exception:
            logger.exception(
                "suggestions.extraction_failed saga_id=%s source_id=%s target_id=%s",
                pair.saga_id,
                pair.source.id,
                pair.target.id,
            )
        return None

    def _persist(self, evidence: PairEvidence, result: BatchResult) -> None:
        pair = evidence.pair
        try:
            generation = self.prediction.generate_suggestion(evidence)
            self.db.commit()
        except PendingSuggestionConflictError:
            self.db.rollback()
            result.skipped += 1
            logger.info(
                "suggestions.pair_claimed_concurrently saga_id=%s source_id=%s target_id=%s",
                pair.saga_id,
                pair.source.id,
                pair.target.id,
            )
            return
        except Exception:
            self.db.rollback()
            result.skipped += 1
            logger.exception(
                "suggestions.persist_failed saga_id=%s source_id=%s target_id=%s",
                pair.saga_id,
                pair.source.id,
                pair.target.id,
            )
            return

        if generation.outcome in (GenerationOutcome.BELOW_THRESHOLD, GenerationOutcome.NO_FEATURES):
            result.below_threshold += 1
            self.cooldown.mark(pair.saga_id, pair.key)
            return
        if not generation.persisted:
            result.skipped += 1
            return

        result.generated += 1
        suggestion = generation.suggestion
        if not (self.auto_accept and self.feedback is not None and suggestion.should_auto_accept()):
            return
        try:
            self.feedback.accept_suggestion(suggestion.id, self.auto_accept_actor_id)
            result.auto_accepted += 1
        except SuggestionError as exc:
            logger.warning("suggestions.auto_accept_failed suggestion_id=%s error=%s", suggestion.id, exc)
        except Exception:
            logger.exception("suggestions.auto_accept_failed suggestion_id=%s", suggestion.id)
