"""Deterministic text and attribute similarity helpers."""

from __future__ import annotations

import re
from collections.abc import Mapping
from difflib import SequenceMatcher

_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_MULTISPACE_RE = re.compile(r"\s+")

IMPORTANCE_TOLERANCE = 20


def normalize_text(value: str) -> str:
    """Lowercase, strip punctuation, and collapse whitespace."""

    collapsed = _MULTISPACE_RE.sub(" ", value.strip().lower())
    cleaned = _NON_ALNUM_RE.sub("", collapsed)
    return _MULTISPACE_RE.sub(" ", cleaned).strip()


def token_set_similarity(left: str, right: str) -> float:
    """Jaccard overlap of normalized tokens in [0, 1]."""

    left_tokens = set(normalize_text(left).split())
    right_tokens = set(normalize_text(right).split())
    if not left_tokens or not right_tokens:
        return 0.0
    union = len(left_tokens | right_tokens)
    return len(left_tokens & right_tokens) / union if union else 0.0


def string_similarity(left: str, right: str) -> float:
    """Best of sequence ratio and token overlap."""

    norm_left = normalize_text(left)
    norm_right = normalize_text(right)
    if not norm_left or not norm_right:
        return 0.0
    if norm_left == norm_right:
        return 1.0
    sequence = SequenceMatcher(a=norm_left, b=norm_right).ratio()
    return max(sequence, token_set_similarity(norm_left, norm_right))


def attribute_similarity(
    left_type: str | None,
    right_type: str | None,
    left_importance: int | None,
    right_importance: int | None,
    left_attributes: Mapping[str, object] | None = None,
    right_attributes: Mapping[str, object] | None = None,
) -> tuple[float, dict[str, object]]:
    """Score how alike two entities look from their type, importance and attributes.

    Returns the score in [0, 1] and the components that produced it.
    """

    components: dict[str, object] = {}
    scores: list[float] = []

    type_match = bool(left_type) and (left_type or "").lower() == (right_type or "").lower()
    components["type_match"] = type_match
    scores.append(1.0 if type_match else 0.0)

    if left_importance is not None and right_importance is not None:
        close = abs(left_importance - right_importance) <= IMPORTANCE_TOLERANCE
        components["importance_close"] = close
        scores.append(1.0 if close else 0.0)

    shared_keys = sorted(set(left_attributes or {}) & set(right_attributes or {}))
    if shared_keys:
        values = [
            string_similarity(str(left_attributes[key]), str(right_attributes[key]))
            for key in shared_keys
        ]
        components["shared_attributes"] = shared_keys
        scores.append(sum(values) / len(values))

    return sum(scores) / len(scores), components
