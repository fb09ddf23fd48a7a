"""Timeline event ORM model."""

from sqlalchemy import JSON, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from saga_suggestions.models.base import Base, CreatedAtMixin, IdMixin


class TimelineEvent(Base, IdMixin, CreatedAtMixin):
    """Event placed on the saga's normalized timeline."""

    __tablename__ = "timeline_events"

    saga_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    normalized_timestamp: Mapped[float] = mapped_column(Float, nullable=False)
    participants_json: Mapped[list[int]] = mapped_column(JSON, default=list, nullable=False)
