"""Relationship suggestion ORM models."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from saga_suggestions.models.base import Base, CreatedAtMixin, IdMixin, UpdatedAtMixin


class SuggestionRecord(Base, IdMixin, CreatedAtMixin, UpdatedAtMixin):
    """Stored relationship suggestion awaiting or past human review."""

    __tablename__ = "relationship_suggestions"
    __table_args__ = (
        Index("ix_relationship_suggestions_saga_status", "saga_id", "status"),
        Index("ix_relationship_suggestions_pair", "source_entity_id", "target_entity_id"),
        Index(
            "uq_relationship_suggestions_pending_pair",
            "saga_id",
            "pair_low_id",
            "pair_high_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    saga_id: Mapped[int] = mapped_column(Integer, nullable=False)
    source_entity_id: Mapped[int] = mapped_column(Integer, nullable=False)
    target_entity_id: Mapped[int] = mapped_column(Integer, nullable=False)
    # Unordered pair key: min and max of the two entity ids.
    pair_low_id: Mapped[int] = mapped_column(Integer, nullable=False)
    pair_high_id: Mapped[int] = mapped_column(Integer, nullable=False)
    suggested_type: Mapped[str] = mapped_column(String(64), nullable=False)
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False)
    strength: Mapped[int] = mapped_column(Integer, default=50, nullable=False)
    reasoning: Mapped[str | None] = mapped_column(Text, nullable=True)
    evidence_json: Mapped[list[dict[str, object]] | None] = mapped_column(JSON, nullable=True)
    suggestion_method: Mapped[str] = mapped_column(String(32), nullable=False)
    ai_model: Mapped[str] = mapped_column(String(128), default="rule_based", nullable=False)
    status: Mapped[str] = mapped_column(String(32), default="pending", index=True, nullable=False)
    user_action_type: Mapped[str] = mapped_column(String(32), default="none", nullable=False)
    user_feedback_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    actioned_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_relationship_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    priority_score: Mapped[float] = mapped_column(Float, default=50.0, index=True, nullable=False)


class SuggestionFeatureRecord(Base, IdMixin, CreatedAtMixin):
    """One scored evidence signal attached to a suggestion."""

    __tablename__ = "suggestion_features"

    suggestion_id: Mapped[int] = mapped_column(
        ForeignKey("relationship_suggestions.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    feature_type: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    feature_name: Mapped[str] = mapped_column(String(128), nullable=False)
    feature_value: Mapped[float] = mapped_column(Float, nullable=False)
    weight: Mapped[float] = mapped_column(Float, default=0.5, nullable=False)
    metadata_json: Mapped[dict[str, object] | None] = mapped_column(JSON, nullable=True)
