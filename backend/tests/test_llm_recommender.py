"""Contract tests for the LLM relationship recommender response parsing."""

from __future__ import annotations

import json
import unittest

from saga_suggestions.config import Settings
from saga_suggestions.providers.llm import (
    OpenAIRelationshipRecommender,
    RecommendationError,
    get_default_recommender,
    parse_recommendation_response,
)


def _chat_response(content: object, refusal: str | None = None) -> str:
    message: dict[str, object] = {"role": "assistant", "content": content}
    if refusal is not None:
        message["refusal"] = refusal
    return json.dumps({"choices": [{"message": message}]})


class RecommendationParsingTests(unittest.TestCase):
    def test_parses_valid_recommendation(self) -> None:
        raw = _chat_response(
            json.dumps({"relationship_type": "mentor", "strength": 85, "confidence": 72.5, "reasoning": "Trains him."})
        )

        recommendation = parse_recommendation_response(raw)

        self.assertEqual(recommendation.relationship_type, "mentor")
        self.assertEqual(recommendation.strength, 85)
        self.assertEqual(recommendation.confidence, 72.5)

    def test_rejects_out_of_range_values(self) -> None:
        raw = _chat_response(
            json.dumps({"relationship_type": "mentor", "strength": 150, "confidence": 72.5, "reasoning": ""})
        )

        with self.assertRaises(RecommendationError):
            parse_recommendation_response(raw)

    def test_rejects_refusals_and_malformed_bodies(self) -> None:
        for raw in (
            _chat_response(None, refusal="I can't help with that."),
            _chat_response("not json"),
            _chat_response(None),
            json.dumps({"choices": []}),
            "<html>bad gateway</html>",
        ):
            with self.assertRaises(RecommendationError, msg=raw):
                parse_recommendation_response(raw)


class DefaultRecommenderTests(unittest.TestCase):
    def test_disabled_by_default(self) -> None:
        self.assertIsNone(get_default_recommender(Settings(enable_llm_recommendations=False)))

    def test_enabled_without_key_raises(self) -> None:
        with self.assertRaises(RecommendationError):
            get_default_recommender(Settings(enable_llm_recommendations=True, openai_api_key=None))

    def test_enabled_with_key_builds_openai_client(self) -> None:
        recommender = get_default_recommender(
            Settings(enable_llm_recommendations=True, openai_api_key="sk-test", openai_model="gpt-test")
        )

        self.assertIsInstance(recommender, OpenAIRelationshipRecommender)
        assert isinstance(recommender, OpenAIRelationshipRecommender)
        self.assertEqual(recommender.model, "gpt-test")


if __name__ == "__main__":
    unittest.main()
