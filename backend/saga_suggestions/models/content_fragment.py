"""Content fragments and the entities they mention."""

from sqlalchemy import ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from saga_suggestions.models.base import Base, CreatedAtMixin, IdMixin


class ContentFragment(Base, IdMixin, CreatedAtMixin):
    """A passage of saga content (chapter excerpt, wiki paragraph)."""

    __tablename__ = "content_fragments"

    saga_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    fragment_text: Mapped[str] = mapped_column(Text, nullable=False)


class EntityMention(Base, IdMixin):
    """Links a content fragment to an entity it mentions."""

    __tablename__ = "entity_mentions"
    __table_args__ = (
        UniqueConstraint("fragment_id", "entity_id", name="uq_entity_mentions_fragment_entity"),
    )

    fragment_id: Mapped[int] = mapped_column(
        ForeignKey("content_fragments.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    entity_id: Mapped[int] = mapped_column(
        ForeignKey("entities.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
