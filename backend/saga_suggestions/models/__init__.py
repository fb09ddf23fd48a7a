"""ORM models package exports."""

from saga_suggestions.models.content_fragment import ContentFragment, EntityMention
from saga_suggestions.models.entity import Entity
from saga_suggestions.models.entity_relationship import EntityRelationship
from saga_suggestions.models.learning_weight import LearningWeight
from saga_suggestions.models.relationship_suggestion import SuggestionFeatureRecord, SuggestionRecord
from saga_suggestions.models.timeline_event import TimelineEvent

__all__ = [
    "ContentFragment",
    "Entity",
    "EntityMention",
    "EntityRelationship",
    "LearningWeight",
    "SuggestionFeatureRecord",
    "SuggestionRecord",
    "TimelineEvent",
]
