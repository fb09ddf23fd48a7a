"""Enumerations and small value types shared across the suggestion engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from saga_suggestions.suggestions.errors import SuggestionValidationError


class FeatureType(str, Enum):
    """Evidence signal kinds considered for a candidate pair."""

    CO_OCCURRENCE = "co_occurrence"
    SEMANTIC_SIMILARITY = "semantic_similarity"
    TIMELINE_PROXIMITY = "timeline_proximity"
    SHARED_LOCATION = "shared_location"
    SHARED_FACTION = "shared_faction"
    ATTRIBUTE_SIMILARITY = "attribute_similarity"
    NETWORK_CENTRALITY = "network_centrality"

    @property
    def description(self) -> str:
        return _FEATURE_TYPE_INFO[self].description

    @property
    def default_weight(self) -> float:
        return _FEATURE_TYPE_INFO[self].default_weight

    @property
    def raw_range(self) -> tuple[float, float]:
        """Default (min, max) of raw provider values for this signal."""

        info = _FEATURE_TYPE_INFO[self]
        return info.raw_min, info.raw_max


class SuggestionStatus(str, Enum):
    """Lifecycle state of a suggestion."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    MODIFIED = "modified"

    @property
    def is_terminal(self) -> bool:
        return self is not SuggestionStatus.PENDING

    @property
    def is_positive(self) -> bool:
        return self in (SuggestionStatus.ACCEPTED, SuggestionStatus.MODIFIED)


class UserActionType(str, Enum):
    """Last human action taken on a suggestion."""

    NONE = "none"
    ACCEPT = "accept"
    REJECT = "reject"
    MODIFY = "modify"


class SuggestionMethod(str, Enum):
    """Evidence channel(s) that produced a suggestion."""

    CONTENT = "content"
    SEMANTIC = "semantic"
    HYBRID = "hybrid"

    @property
    def label(self) -> str:
        return _METHOD_LABELS[self]


class ConfidenceLevel(str, Enum):
    """Categorical bucket of a 0-100 confidence score."""

    VERY_HIGH = "very_high"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def from_score(cls, score: float) -> ConfidenceLevel:
        if score >= 90:
            return cls.VERY_HIGH
        if score >= 75:
            return cls.HIGH
        if score >= 60:
            return cls.MEDIUM
        return cls.LOW


@dataclass(frozen=True, slots=True)
class _FeatureTypeInfo:
    description: str
    default_weight: float
    raw_min: float = 0.0
    raw_max: float = 1.0


_FEATURE_TYPE_INFO: dict[FeatureType, _FeatureTypeInfo] = {
    FeatureType.CO_OCCURRENCE: _FeatureTypeInfo("How often entities appear together", 0.7, 0.0, 30.0),
    FeatureType.SEMANTIC_SIMILARITY: _FeatureTypeInfo("Semantic embedding similarity", 0.8),
    FeatureType.TIMELINE_PROXIMITY: _FeatureTypeInfo("Timeline distance between entities", 0.6),
    FeatureType.SHARED_LOCATION: _FeatureTypeInfo("Common locations", 0.5, 0.0, 5.0),
    FeatureType.SHARED_FACTION: _FeatureTypeInfo("Same faction membership", 0.7),
    FeatureType.ATTRIBUTE_SIMILARITY: _FeatureTypeInfo("Similarity of entity attributes", 0.5),
    FeatureType.NETWORK_CENTRALITY: _FeatureTypeInfo("Centrality in relationship graph", 0.4),
}

_METHOD_LABELS: dict[SuggestionMethod, str] = {
    SuggestionMethod.CONTENT: "content analysis",
    SuggestionMethod.SEMANTIC: "semantic analysis",
    SuggestionMethod.HYBRID: "multiple factors",
}


def parse_enum(enum_cls: type[Enum], value: object, field_name: str) -> Enum:
    """Convert a stored string tag to an enum member or raise a validation error."""

    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise SuggestionValidationError(f"Invalid {field_name}: {value!r}") from exc


@dataclass(frozen=True, slots=True)
class EntityRef:
    """Identity and display data for one entity in a candidate pair."""

    id: int
    name: str
    entity_type: str | None = None


@dataclass(frozen=True, slots=True)
class EntityPair:
    """Unordered candidate pair within one saga; `source` is the first-selected entity."""

    saga_id: int
    source: EntityRef
    target: EntityRef

    def __post_init__(self) -> None:
        if self.source.id == self.target.id:
            raise SuggestionValidationError("Cannot pair an entity with itself")

    @property
    def key(self) -> tuple[int, int]:
        return pair_key(self.source.id, self.target.id)


@dataclass(frozen=True, slots=True)
class FeatureWeightStats:
    """Feedback outcomes for suggestions where a feature type was a major contributor."""

    feature_type: FeatureType
    accepted: int = 0
    rejected: int = 0

    @property
    def samples(self) -> int:
        return self.accepted + self.rejected

    @property
    def acceptance_rate(self) -> float:
        return self.accepted / self.samples if self.samples else 0.0


@dataclass(frozen=True, slots=True)
class PairState:
    """Latest suggestion state recorded for an unordered entity pair."""

    suggestion_id: int
    status: SuggestionStatus
    updated_at: datetime


def pair_key(left_id: int, right_id: int) -> tuple[int, int]:
    return (left_id, right_id) if left_id < right_id else (right_id, left_id)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def format_timestamp(value: datetime | None) -> str | None:
    return ensure_utc(value).isoformat() if value is not None else None


def parse_timestamp(value: object, field_name: str) -> datetime | None:
    """Parse an ISO-8601 string (or pass through a datetime) from record form."""

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not isinstance(value, str):
        raise SuggestionValidationError(f"Invalid {field_name}: {value!r}")
    try:
        return ensure_utc(datetime.fromisoformat(value))
    except ValueError as exc:
        raise SuggestionValidationError(f"Invalid {field_name}: {value!r}") from exc


def coerce_float(value: object, field_name: str) -> float:
    if isinstance(value, bool):
        raise SuggestionValidationError(f"Invalid {field_name}: {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise SuggestionValidationError(f"Invalid {field_name}: {value!r}") from exc


def coerce_optional_int(value: object, field_name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise SuggestionValidationError(f"Invalid {field_name}: {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise SuggestionValidationError(f"Invalid {field_name}: {value!r} is not a whole number")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise SuggestionValidationError(f"Invalid {field_name}: {value!r}") from exc
