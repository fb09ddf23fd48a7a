"""Learned feature weight model."""

from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from saga_suggestions.models.base import Base, IdMixin


class LearningWeight(Base, IdMixin):
    """Recalibrated weight for one feature type."""

    __tablename__ = "learning_weights"

    feature_type: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    weight: Mapped[float] = mapped_column(Float, nullable=False)
    samples_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    acceptance_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    recalibrated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
