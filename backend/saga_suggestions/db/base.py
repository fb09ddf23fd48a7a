"""SQLAlchemy metadata registry import for Alembic."""

from saga_suggestions.models import (
    ContentFragment,
    Entity,
    EntityMention,
    EntityRelationship,
    LearningWeight,
    SuggestionFeatureRecord,
    SuggestionRecord,
    TimelineEvent,
)
from saga_suggestions.models.base import Base

__all__ = [
    "Base",
    "ContentFragment",
    "Entity",
    "EntityMention",
    "EntityRelationship",
    "LearningWeight",
    "SuggestionFeatureRecord",
    "SuggestionRecord",
    "TimelineEvent",
]
