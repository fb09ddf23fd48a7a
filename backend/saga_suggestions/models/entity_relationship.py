"""Entity relationship ORM model."""

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from saga_suggestions.models.base import Base, CreatedAtMixin, IdMixin


class EntityRelationship(Base, IdMixin, CreatedAtMixin):
    """Directed relationship between two saga entities."""

    __tablename__ = "entity_relationships"

    saga_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    source_entity_id: Mapped[int] = mapped_column(
        ForeignKey("entities.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    target_entity_id: Mapped[int] = mapped_column(
        ForeignKey("entities.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    relationship_type: Mapped[str] = mapped_column(String(64), nullable=False)
    strength: Mapped[int] = mapped_column(Integer, default=50, nullable=False)
    origin_suggestion_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
