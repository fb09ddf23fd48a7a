"""Optional LLM recommendation of a relationship type for an entity pair."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Protocol
from urllib import error as urllib_error
from urllib import request as urllib_request

from pydantic import BaseModel, Field, ValidationError

from saga_suggestions.config import Settings, get_settings

RECOMMENDATION_PROMPT = (
    "You analyse characters, locations and factions of a fictional saga. "
    "Given two entities and the evidence gathered about them, recommend the most "
    "plausible relationship type between them (for example ally, enemy, family, "
    "mentor, rival, romantic, member_of, located_at), a strength from 0 to 100, "
    "and your confidence from 0 to 100. Use only the supplied evidence."
)

_RECOMMENDATION_JSON_SCHEMA: dict[str, Any] = {
    "name": "relationship_recommendation",
    "strict": True,
    "schema": {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "relationship_type": {"type": "string"},
            "strength": {"type": "integer"},
            "confidence": {"type": "number"},
            "reasoning": {"type": "string"},
        },
        "required": ["relationship_type", "strength", "confidence", "reasoning"],
    },
}


class RecommendationError(RuntimeError):
    """Raised when the recommender is misconfigured or its response is invalid."""


class Recommendation(BaseModel):
    relationship_type: str = Field(min_length=1, max_length=64)
    strength: int = Field(ge=0, le=100)
    confidence: float = Field(ge=0.0, le=100.0)
    reasoning: str = ""


class RelationshipRecommender(Protocol):
    """Protocol for pluggable relationship-type recommenders."""

    model: str

    def recommend(self, payload: dict[str, Any]) -> Recommendation:
        """Return a recommendation for the pair described by `payload`."""


@dataclass(slots=True)
class OpenAIRelationshipRecommender:
    """Minimal OpenAI Chat Completions client using stdlib HTTP."""

    api_key: str
    model: str
    base_url: str = "https://api.openai.com/v1"
    timeout_seconds: int = 60

    def recommend(self, payload: dict[str, Any]) -> Recommendation:
        body = {
            "model": self.model,
            "temperature": 0,
            "response_format": {"type": "json_schema", "json_schema": _RECOMMENDATION_JSON_SCHEMA},
            "messages": [
                {"role": "system", "content": RECOMMENDATION_PROMPT},
                {"role": "user", "content": json.dumps(payload, ensure_ascii=True)},
            ],
        }
        req = urllib_request.Request(
            url=f"{self.base_url.rstrip('/')}/chat/completions",
            data=json.dumps(body).encode("utf-8"),
            method="POST",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )

        try:
            with urllib_request.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read().decode("utf-8")
        except urllib_error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise RecommendationError(f"OpenAI HTTP {exc.code}: {detail}") from exc
        except urllib_error.URLError as exc:
            raise RecommendationError(f"OpenAI request failed: {exc.reason}") from exc

        return parse_recommendation_response(raw)


def parse_recommendation_response(raw: str) -> Recommendation:
    """Validate a Chat Completions response body into a `Recommendation`."""

    try:
        message = json.loads(raw)["choices"][0]["message"]
        refusal = message.get("refusal")
        if isinstance(refusal, str) and refusal.strip():
            raise RecommendationError(f"OpenAI refused recommendation request: {refusal.strip()}")
        content = message["content"]
        if not isinstance(content, str):
            raise TypeError("OpenAI response content is not a string")
        return Recommendation.model_validate(json.loads(content))
    except RecommendationError:
        raise
    except ValidationError as exc:
        raise RecommendationError(f"Recommendation payload failed validation: {exc}") from exc
    except (KeyError, IndexError, TypeError, json.JSONDecodeError) as exc:
        raise RecommendationError("OpenAI returned an unexpected or non-JSON response") from exc


def get_default_recommender(settings: Settings | None = None) -> RelationshipRecommender | None:
    """Return the configured recommender, or None when LLM recommendations are off."""

    settings = settings or get_settings()
    if not settings.enable_llm_recommendations:
        return None
    if not settings.openai_api_key:
        raise RecommendationError("enable_llm_recommendations requires OPENAI_API_KEY")
    return OpenAIRelationshipRecommender(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        base_url=settings.openai_base_url,
        timeout_seconds=settings.openai_timeout_seconds,
    )
