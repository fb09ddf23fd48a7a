"""Saga entity ORM model."""

from sqlalchemy import JSON, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from saga_suggestions.models.base import Base, CreatedAtMixin, IdMixin


class Entity(Base, IdMixin, CreatedAtMixin):
    """Character, location, faction or other saga entity."""

    __tablename__ = "entities"

    saga_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    canonical_name: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    entity_type: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    importance_score: Mapped[int] = mapped_column(Integer, default=50, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    attributes_json: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)
    embedding: Mapped[list[float] | None] = mapped_column(JSON, nullable=True)
