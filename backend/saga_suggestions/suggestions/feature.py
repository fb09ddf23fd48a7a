"""Scored evidence signal attached to a relationship suggestion."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from saga_suggestions.suggestions.errors import SuggestionValidationError
from saga_suggestions.suggestions.types import (
    FeatureType,
    coerce_float,
    coerce_optional_int,
    format_timestamp,
    parse_enum,
    parse_timestamp,
    utc_now,
)

NEUTRAL_VALUE = 0.5
HIGH_VALUE_THRESHOLD = 0.7
HIGH_WEIGHT_THRESHOLD = 0.6


@dataclass(frozen=True, slots=True)
class SuggestionFeature:
    """Immutable normalized signal value with its weight and provider metadata."""

    feature_type: FeatureType
    feature_value: float
    weight: float | None = None
    feature_name: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: int | None = None
    suggestion_id: int | None = None
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        feature_type = parse_enum(FeatureType, self.feature_type, "feature_type")
        object.__setattr__(self, "feature_type", feature_type)
        if self.weight is None:
            object.__setattr__(self, "weight", feature_type.default_weight)
        if not self.feature_name:
            object.__setattr__(self, "feature_name", feature_type.description)

        _check_unit_interval(self.feature_value, "Feature value")
        _check_unit_interval(self.weight, "Weight")
        object.__setattr__(self, "feature_value", float(self.feature_value))
        object.__setattr__(self, "weight", float(self.weight))

    @classmethod
    def create_normalized(
        cls,
        feature_type: FeatureType,
        raw_value: float,
        min_value: float,
        max_value: float,
        weight: float | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> SuggestionFeature:
        """Build a feature from a raw provider value scaled into [0, 1]."""

        if max_value <= min_value:
            normalized = NEUTRAL_VALUE
        else:
            normalized = (raw_value - min_value) / (max_value - min_value)
            normalized = max(0.0, min(1.0, normalized))

        merged = dict(metadata or {})
        merged.update({"raw_value": raw_value, "min_value": min_value, "max_value": max_value})
        return cls(feature_type=feature_type, feature_value=normalized, weight=weight, metadata=merged)

    def weighted_value(self) -> float:
        return self.feature_value * self.weight

    def contribution(self, total_weighted_sum: float) -> float:
        """Percentage of the total weighted sum contributed by this feature."""

        if total_weighted_sum <= 0:
            return 0.0
        return (self.weighted_value() / total_weighted_sum) * 100

    def strength_label(self) -> str:
        if self.feature_value >= 0.8:
            return "very_strong"
        if self.feature_value >= 0.6:
            return "strong"
        if self.feature_value >= 0.4:
            return "moderate"
        return "weak"

    def is_high_value(self) -> bool:
        return self.feature_value >= HIGH_VALUE_THRESHOLD and self.weight >= HIGH_WEIGHT_THRESHOLD

    def with_weight(self, weight: float) -> SuggestionFeature:
        return replace(self, weight=weight)

    def explanation(self) -> str:
        percentage = round(self.feature_value * 100)
        return f"{self.feature_name}: {self.strength_label().replace('_', ' ')} ({percentage}%)"

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "suggestion_id": self.suggestion_id,
            "feature_type": self.feature_type.value,
            "feature_name": self.feature_name,
            "feature_value": self.feature_value,
            "weight": self.weight,
            "metadata": dict(self.metadata),
            "created_at": format_timestamp(self.created_at),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> SuggestionFeature:
        """Hydrate a feature from its flat record form, validating each field."""

        try:
            feature_type = record["feature_type"]
            feature_value = coerce_float(record["feature_value"], "feature_value")
        except KeyError as exc:
            raise SuggestionValidationError(f"Missing feature field: {exc.args[0]}") from exc

        weight = record.get("weight")
        metadata = record.get("metadata") or {}
        if not isinstance(metadata, dict):
            raise SuggestionValidationError(f"Invalid metadata: {metadata!r}")

        return cls(
            feature_type=parse_enum(FeatureType, feature_type, "feature_type"),
            feature_value=feature_value,
            weight=coerce_float(weight, "weight") if weight is not None else None,
            feature_name=record.get("feature_name"),
            metadata=dict(metadata),
            id=coerce_optional_int(record.get("id"), "id"),
            suggestion_id=coerce_optional_int(record.get("suggestion_id"), "suggestion_id"),
            created_at=parse_timestamp(record.get("created_at"), "created_at") or utc_now(),
        )


def _check_unit_interval(value: object, label: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
        raise SuggestionValidationError(f"{label} must be a number between 0 and 1")
    if value < 0 or value > 1:
        raise SuggestionValidationError(f"{label} must be between 0 and 1")
