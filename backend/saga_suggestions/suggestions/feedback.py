"""Review entry points: accept, reject, or modify a suggestion."""

from __future__ import annotations

import logging
from dataclasses import replace

from sqlalchemy.orm import Session

from saga_suggestions.suggestions.errors import SuggestionNotFoundError, SuggestionValidationError
from saga_suggestions.suggestions.repository_interface import (
    EntityStoreInterface,
    SuggestionRepositoryInterface,
)
from saga_suggestions.suggestions.suggestion import RelationshipSuggestion

logger = logging.getLogger(__name__)


class SuggestionFeedbackService:
    """Applies review decisions and writes accepted relationships to the entity store.

    The relationship insert and the status update share one transaction on `db`.
    """

    def __init__(
        self,
        db: Session,
        repository: SuggestionRepositoryInterface,
        entity_store: EntityStoreInterface,
    ) -> None:
        self.db = db
        self.repository = repository
        self.entity_store = entity_store

    def accept_suggestion(self, suggestion_id: int, actioned_by: int) -> int | None:
        """Accept a pending suggestion; returns the created relationship ID."""

        suggestion = self._load(suggestion_id)
        _check_actor(actioned_by)
        accepted = suggestion.accept(actioned_by)
        return self._apply_positive(accepted)

    def reject_suggestion(
        self,
        suggestion_id: int,
        actioned_by: int,
        reason: str | None = None,
    ) -> RelationshipSuggestion:
        suggestion = self._load(suggestion_id)
        _check_actor(actioned_by)
        rejected = suggestion.reject(actioned_by, (reason or "").strip() or None)
        try:
            self.repository.update_status(rejected)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(
            "suggestions.feedback action=reject suggestion_id=%s actioned_by=%s",
            suggestion_id,
            actioned_by,
        )
        return rejected

    def modify_suggestion(
        self,
        suggestion_id: int,
        actioned_by: int,
        new_type: str,
        new_strength: int,
    ) -> int | None:
        """Accept a suggestion with a corrected type/strength; returns the relationship ID."""

        suggestion = self._load(suggestion_id)
        _check_actor(actioned_by)
        new_type = (new_type or "").strip()
        modified = suggestion.modify(actioned_by, new_type, new_strength)
        return self._apply_positive(modified)

    def _apply_positive(self, decided: RelationshipSuggestion) -> int | None:
        try:
            relationship_id = None
            if not self.entity_store.relationship_exists(decided.source_entity_id, decided.target_entity_id):
                relationship_id = self.entity_store.create_relationship(
                    saga_id=decided.saga_id,
                    source_entity_id=decided.source_entity_id,
                    target_entity_id=decided.target_entity_id,
                    relationship_type=decided.suggested_type,
                    strength=decided.strength,
                    origin_suggestion_id=decided.id,
                )
            decided = replace(decided, created_relationship_id=relationship_id)
            self.repository.update_status(decided)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(
            "suggestions.feedback action=%s suggestion_id=%s actioned_by=%s relationship_id=%s",
            decided.user_action_type.value,
            decided.id,
            decided.actioned_by,
            relationship_id,
        )
        return relationship_id

    def _load(self, suggestion_id: int) -> RelationshipSuggestion:
        suggestion = self.repository.find_by_id(suggestion_id)
        if suggestion is None:
            raise SuggestionNotFoundError(f"Suggestion {suggestion_id} not found")
        return suggestion


def _check_actor(actioned_by: object) -> None:
    if isinstance(actioned_by, bool) or not isinstance(actioned_by, int) or actioned_by < 0:
        raise SuggestionValidationError("actioned_by must be a non-negative integer")
