"""Relationship suggestion value type and its review lifecycle."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from saga_suggestions.suggestions.errors import SuggestionStateError, SuggestionValidationError
from saga_suggestions.suggestions.types import (
    ConfidenceLevel,
    SuggestionMethod,
    SuggestionStatus,
    UserActionType,
    coerce_float,
    coerce_optional_int,
    format_timestamp,
    parse_enum,
    parse_timestamp,
    utc_now,
)

PRIORITY_CONFIDENCE_SHARE = 0.6
PRIORITY_STRENGTH_SHARE = 0.4
PRIORITY_METHOD_BONUS: dict[SuggestionMethod, float] = {
    SuggestionMethod.HYBRID: 10.0,
    SuggestionMethod.SEMANTIC: 5.0,
    SuggestionMethod.CONTENT: 3.0,
}
PRIORITY_STRENGTH_BONUSES: tuple[tuple[int, float], ...] = ((80, 10.0), (60, 5.0))
PRIORITY_TYPE_BONUS = 5.0
IMPORTANT_RELATIONSHIP_TYPES = frozenset({"family", "mentor", "enemy", "ally"})

AUTO_ACCEPT_MIN_CONFIDENCE = 95.0


@dataclass(frozen=True, slots=True)
class RelationshipSuggestion:
    """A proposed relationship between two entities of one saga.

    Instances are immutable. Review actions (`accept`, `reject`, `modify`) return
    a new instance in a terminal status and leave the original untouched.
    """

    saga_id: int
    source_entity_id: int
    target_entity_id: int
    suggested_type: str
    confidence_score: float
    strength: int = 50
    reasoning: str | None = None
    evidence: list[dict[str, Any]] = field(default_factory=list)
    suggestion_method: SuggestionMethod = SuggestionMethod.CONTENT
    ai_model: str = "rule_based"
    status: SuggestionStatus = SuggestionStatus.PENDING
    user_action_type: UserActionType = UserActionType.NONE
    user_feedback_text: str | None = None
    accepted_at: datetime | None = None
    rejected_at: datetime | None = None
    actioned_by: int | None = None
    created_relationship_id: int | None = None
    id: int | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if self.source_entity_id == self.target_entity_id:
            raise SuggestionValidationError("Cannot suggest relationship to self")
        if not isinstance(self.suggested_type, str) or not self.suggested_type.strip():
            raise SuggestionValidationError("Suggested type must be a non-empty string")

        confidence = self.confidence_score
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)) or math.isnan(confidence):
            raise SuggestionValidationError("Confidence score must be a number")
        if confidence < 0 or confidence > 100:
            raise SuggestionValidationError("Confidence score must be between 0 and 100")

        if isinstance(self.strength, bool) or not isinstance(self.strength, int):
            raise SuggestionValidationError("Strength must be an integer")
        if self.strength < 0 or self.strength > 100:
            raise SuggestionValidationError("Strength must be between 0 and 100")

        object.__setattr__(self, "confidence_score", float(confidence))
        object.__setattr__(
            self,
            "suggestion_method",
            parse_enum(SuggestionMethod, self.suggestion_method, "suggestion_method"),
        )
        object.__setattr__(self, "status", parse_enum(SuggestionStatus, self.status, "status"))
        object.__setattr__(
            self,
            "user_action_type",
            parse_enum(UserActionType, self.user_action_type, "user_action_type"),
        )

    @property
    def priority_score(self) -> float:
        return self.calculate_priority_score()

    def is_pending(self) -> bool:
        return self.status is SuggestionStatus.PENDING

    def is_actioned(self) -> bool:
        return self.status.is_terminal

    def is_positive(self) -> bool:
        return self.status.is_positive

    def accept(self, actioned_by: int, created_relationship_id: int | None = None) -> RelationshipSuggestion:
        self._require_pending("accept")
        now = utc_now()
        return replace(
            self,
            status=SuggestionStatus.ACCEPTED,
            user_action_type=UserActionType.ACCEPT,
            accepted_at=now,
            actioned_by=actioned_by,
            created_relationship_id=created_relationship_id,
            updated_at=now,
        )

    def reject(self, actioned_by: int, feedback_text: str | None = None) -> RelationshipSuggestion:
        self._require_pending("reject")
        now = utc_now()
        return replace(
            self,
            status=SuggestionStatus.REJECTED,
            user_action_type=UserActionType.REJECT,
            rejected_at=now,
            actioned_by=actioned_by,
            user_feedback_text=feedback_text,
            updated_at=now,
        )

    def modify(
        self,
        actioned_by: int,
        new_type: str,
        new_strength: int,
        created_relationship_id: int | None = None,
    ) -> RelationshipSuggestion:
        self._require_pending("modify")
        now = utc_now()
        return replace(
            self,
            status=SuggestionStatus.MODIFIED,
            user_action_type=UserActionType.MODIFY,
            suggested_type=new_type,
            strength=new_strength,
            accepted_at=now,
            actioned_by=actioned_by,
            created_relationship_id=created_relationship_id,
            updated_at=now,
        )

    def confidence_level(self) -> ConfidenceLevel:
        return ConfidenceLevel.from_score(self.confidence_score)

    def calculate_priority_score(self) -> float:
        """Rank for the review queue, blending confidence and strength plus bonuses."""

        score = PRIORITY_CONFIDENCE_SHARE * self.confidence_score + PRIORITY_STRENGTH_SHARE * self.strength
        score += PRIORITY_METHOD_BONUS.get(self.suggestion_method, 0.0)
        for threshold, bonus in PRIORITY_STRENGTH_BONUSES:
            if self.strength >= threshold:
                score += bonus
                break
        if self.suggested_type.lower() in IMPORTANT_RELATIONSHIP_TYPES:
            score += PRIORITY_TYPE_BONUS
        return round(max(0.0, min(100.0, score)), 2)

    def should_auto_accept(self) -> bool:
        return (
            self.confidence_score >= AUTO_ACCEPT_MIN_CONFIDENCE
            and self.suggestion_method is SuggestionMethod.HYBRID
        )

    def time_to_decision(self) -> float | None:
        """Seconds between creation and the review decision, or None while pending."""

        decided_at = self.accepted_at or self.rejected_at
        if decided_at is None:
            return None
        return (decided_at - self.created_at).total_seconds()

    def explanation(self) -> str:
        if self.reasoning:
            return self.reasoning
        return (
            f"Suggested {self.suggested_type} relationship based on "
            f"{self.suggestion_method.label} ({round(self.confidence_score)}% confidence)"
        )

    def _require_pending(self, action: str) -> None:
        if not self.is_pending():
            raise SuggestionStateError(
                f"Cannot {action} suggestion {self.id}: already {self.status.value}"
            )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "saga_id": self.saga_id,
            "source_entity_id": self.source_entity_id,
            "target_entity_id": self.target_entity_id,
            "suggested_type": self.suggested_type,
            "confidence_score": self.confidence_score,
            "strength": self.strength,
            "reasoning": self.reasoning,
            "evidence": [dict(item) for item in self.evidence],
            "suggestion_method": self.suggestion_method.value,
            "ai_model": self.ai_model,
            "status": self.status.value,
            "user_action_type": self.user_action_type.value,
            "user_feedback_text": self.user_feedback_text,
            "accepted_at": format_timestamp(self.accepted_at),
            "rejected_at": format_timestamp(self.rejected_at),
            "actioned_by": self.actioned_by,
            "created_relationship_id": self.created_relationship_id,
            "priority_score": self.priority_score,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> RelationshipSuggestion:
        """Hydrate a suggestion from its flat record form.

        `priority_score` is ignored on input since it is always recomputed.
        """

        try:
            saga_id = coerce_optional_int(record["saga_id"], "saga_id")
            source_entity_id = coerce_optional_int(record["source_entity_id"], "source_entity_id")
            target_entity_id = coerce_optional_int(record["target_entity_id"], "target_entity_id")
            suggested_type = record["suggested_type"]
            confidence_score = coerce_float(record["confidence_score"], "confidence_score")
        except KeyError as exc:
            raise SuggestionValidationError(f"Missing suggestion field: {exc.args[0]}") from exc
        if saga_id is None or source_entity_id is None or target_entity_id is None:
            raise SuggestionValidationError("Suggestion record is missing saga or entity ids")

        strength = coerce_optional_int(record.get("strength"), "strength")
        evidence = record.get("evidence") or []
        if not isinstance(evidence, list) or not all(isinstance(item, dict) for item in evidence):
            raise SuggestionValidationError(f"Invalid evidence: {evidence!r}")

        now = utc_now()
        return cls(
            id=coerce_optional_int(record.get("id"), "id"),
            saga_id=saga_id,
            source_entity_id=source_entity_id,
            target_entity_id=target_entity_id,
            suggested_type=suggested_type,
            confidence_score=confidence_score,
            strength=50 if strength is None else strength,
            reasoning=record.get("reasoning"),
            evidence=[dict(item) for item in evidence],
            suggestion_method=parse_enum(
                SuggestionMethod, record.get("suggestion_method", "content"), "suggestion_method"
            ),
            ai_model=record.get("ai_model") or "rule_based",
            status=parse_enum(SuggestionStatus, record.get("status", "pending"), "status"),
            user_action_type=parse_enum(
                UserActionType, record.get("user_action_type", "none"), "user_action_type"
            ),
            user_feedback_text=record.get("user_feedback_text"),
            accepted_at=parse_timestamp(record.get("accepted_at"), "accepted_at"),
            rejected_at=parse_timestamp(record.get("rejected_at"), "rejected_at"),
            actioned_by=coerce_optional_int(record.get("actioned_by"), "actioned_by"),
            created_relationship_id=coerce_optional_int(
                record.get("created_relationship_id"), "created_relationship_id"
            ),
            created_at=parse_timestamp(record.get("created_at"), "created_at") or now,
            updated_at=parse_timestamp(record.get("updated_at"), "updated_at") or now,
        )
