"""Integration tests for the saga graph evidence provider."""

from __future__ import annotations

import math
import unittest

from sqlalchemy import create_engine, delete
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from saga_suggestions.models.base import Base
from saga_suggestions.models.content_fragment import ContentFragment, EntityMention
from saga_suggestions.models.entity import Entity
from saga_suggestions.models.entity_relationship import EntityRelationship
from saga_suggestions.models.timeline_event import TimelineEvent
from saga_suggestions.providers.embeddings import EmbeddingError, HashEmbeddingsClient, cosine_similarity
from saga_suggestions.providers.llm import Recommendation, RecommendationError
from saga_suggestions.providers.saga_graph import SagaGraphEvidenceProvider
from saga_suggestions.suggestions.evidence import EvidenceFailure, EvidenceResult
from saga_suggestions.suggestions.extraction import FeatureExtractionService
from saga_suggestions.suggestions.types import EntityPair, EntityRef, FeatureType, SuggestionMethod


class _RecommenderStub:
    model = "stub-recommender-v1"

    def __init__(self) -> None:
        self.payloads: list[dict] = []

    def recommend(self, payload: dict) -> Recommendation:
        self.payloads.append(payload)
        return Recommendation(relationship_type=" Sibling ", strength=90, confidence=80, reasoning="Twins.")


class _FailingRecommenderStub:
    model = "stub-recommender-v1"

    def recommend(self, payload: dict) -> Recommendation:
        raise RecommendationError("OpenAI HTTP 500")


class _FailingEmbeddingClient:
    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        raise EmbeddingError("embedding service unavailable")


class SagaGraphEvidenceProviderTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autoflush=False, autocommit=False, future=True)
        Base.metadata.create_all(bind=cls.engine)

    @classmethod
    def tearDownClass(cls) -> None:
        Base.metadata.drop_all(bind=cls.engine)
        cls.engine.dispose()

    def setUp(self) -> None:
        self.db: Session = self.SessionLocal()
        self.db.execute(delete(EntityMention))
        self.db.execute(delete(ContentFragment))
        self.db.execute(delete(TimelineEvent))
        self.db.execute(delete(EntityRelationship))
        self.db.execute(delete(Entity))
        self.db.commit()
        self.ids = self._seed()

    def tearDown(self) -> None:
        self.db.close()

    def _seed(self) -> dict[str, int]:
        entities = {
            "luke": Entity(
                saga_id=1,
                canonical_name="Luke Skywalker",
                entity_type="character",
                importance_score=95,
                description="Farm boy who becomes a Jedi.",
                attributes_json={"homeworld": "Tatooine"},
            ),
            "leia": Entity(
                saga_id=1,
                canonical_name="Leia Organa",
                entity_type="character",
                importance_score=92,
                description="Princess and Rebel leader.",
                attributes_json={"homeworld": "Alderaan"},
            ),
            "vader": Entity(saga_id=1, canonical_name="Darth Vader", entity_type="character", importance_score=90),
            "tatooine": Entity(saga_id=1, canonical_name="Tatooine", entity_type="location", importance_score=60),
            "rebels": Entity(saga_id=1, canonical_name="Rebel Alliance", entity_type="faction", importance_score=70),
            "empire": Entity(saga_id=1, canonical_name="Galactic Empire", entity_type="faction", importance_score=70),
        }
        self.db.add_all(entities.values())
        self.db.flush()
        ids = {key: entity.id for key, entity in entities.items()}

        for source, target, relationship_type in (
            ("luke", "rebels", "member_of"),
            ("leia", "rebels", "member_of"),
            ("vader", "empire", "member_of"),
            ("luke", "tatooine", "lives_in"),
            ("leia", "tatooine", "visited"),
        ):
            self.db.add(
                EntityRelationship(
                    saga_id=1,
                    source_entity_id=ids[source],
                    target_entity_id=ids[target],
                    relationship_type=relationship_type,
                )
            )

        for text, mentioned in (
            ("Luke and Leia escape the Death Star.", ("luke", "leia")),
            ("Leia briefs Luke before the attack.", ("luke", "leia")),
            ("Luke trains on Dagobah.", ("luke",)),
        ):
            fragment = ContentFragment(saga_id=1, fragment_text=text)
            self.db.add(fragment)
            self.db.flush()
            for key in mentioned:
                self.db.add(EntityMention(fragment_id=fragment.id, entity_id=ids[key]))

        self.db.add_all(
            [
                TimelineEvent(
                    saga_id=1,
                    title="Rescue",
                    normalized_timestamp=0.0,
                    participants_json=[ids["luke"], ids["leia"]],
                ),
                TimelineEvent(saga_id=1, title="Dagobah", normalized_timestamp=2.0, participants_json=[ids["luke"]]),
            ]
        )
        self.db.commit()
        return ids

    def _pair(self, source: str, target: str) -> EntityPair:
        return EntityPair(
            saga_id=1,
            source=EntityRef(id=self.ids[source], name=source),
            target=EntityRef(id=self.ids[target], name=target),
        )

    def _provider(self, **kwargs) -> SagaGraphEvidenceProvider:
        kwargs.setdefault("embedding_client", HashEmbeddingsClient())
        return SagaGraphEvidenceProvider(self.SessionLocal, **kwargs)

    def test_computes_signals_for_connected_pair(self) -> None:
        result = self._provider().evaluate(self._pair("luke", "leia"))

        self.assertIsInstance(result, EvidenceResult)
        assert isinstance(result, EvidenceResult)
        self.assertEqual(result.failed_signals, {})
        signals = result.raw_signals

        co_occurrence = signals[FeatureType.CO_OCCURRENCE]
        self.assertEqual((co_occurrence.value, co_occurrence.maximum), (2.0, 2.0))
        self.assertEqual(co_occurrence.metadata["shared_fragments"], 2)

        timeline = signals[FeatureType.TIMELINE_PROXIMITY]
        self.assertAlmostEqual(timeline.value, 0.6 * 0.1 + 0.4 / (1.0 + math.log(3.0)))
        self.assertEqual(timeline.metadata["shared_events"], 1)

        location = signals[FeatureType.SHARED_LOCATION]
        self.assertEqual((location.value, location.maximum), (1.0, 5.0))
        self.assertEqual(signals[FeatureType.SHARED_FACTION].value, 1.0)
        self.assertAlmostEqual(signals[FeatureType.NETWORK_CENTRALITY].value, 2 / 6)

        attributes = signals[FeatureType.ATTRIBUTE_SIMILARITY]
        self.assertTrue(attributes.metadata["type_match"])
        self.assertTrue(0.0 < attributes.value < 1.0)

        semantic = signals[FeatureType.SEMANTIC_SIMILARITY]
        self.assertEqual(semantic.metadata["embedded"], 2)
        self.assertTrue(0.0 <= semantic.value <= 1.0)
        self.assertIsNone(result.suggested_type)

    def test_omits_signals_without_data(self) -> None:
        result = self._provider().evaluate(self._pair("luke", "vader"))

        assert isinstance(result, EvidenceResult)
        self.assertNotIn(FeatureType.CO_OCCURRENCE, result.raw_signals)
        self.assertNotIn(FeatureType.TIMELINE_PROXIMITY, result.raw_signals)
        self.assertNotIn(FeatureType.SHARED_LOCATION, result.raw_signals)
        self.assertEqual(result.raw_signals[FeatureType.SHARED_FACTION].value, 0.0)

    def test_missing_entity_is_a_failure(self) -> None:
        pair = EntityPair(
            saga_id=1,
            source=EntityRef(id=self.ids["luke"], name="luke"),
            target=EntityRef(id=99999, name="ghost"),
        )

        result = self._provider().evaluate(pair)

        self.assertIsInstance(result, EvidenceFailure)

    def test_embedding_failure_is_reported_per_signal(self) -> None:
        result = self._provider(embedding_client=_FailingEmbeddingClient()).evaluate(self._pair("luke", "leia"))

        assert isinstance(result, EvidenceResult)
        self.assertIn(FeatureType.SEMANTIC_SIMILARITY, result.failed_signals)
        self.assertIn(FeatureType.CO_OCCURRENCE, result.raw_signals)

    def test_stored_embeddings_are_used(self) -> None:
        luke = self.db.get(Entity, self.ids["luke"])
        leia = self.db.get(Entity, self.ids["leia"])
        assert luke is not None and leia is not None
        luke.embedding = [1.0, 0.0]
        leia.embedding = [1.0, 0.0]
        self.db.commit()

        result = self._provider(embedding_client=_FailingEmbeddingClient()).evaluate(self._pair("luke", "leia"))

        assert isinstance(result, EvidenceResult)
        self.assertEqual(result.raw_signals[FeatureType.SEMANTIC_SIMILARITY].value, 1.0)
        self.assertEqual(result.raw_signals[FeatureType.SEMANTIC_SIMILARITY].metadata["embedded"], 0)

    def test_recommendation_is_attached(self) -> None:
        recommender = _RecommenderStub()

        result = self._provider(recommender=recommender).evaluate(self._pair("luke", "leia"))

        assert isinstance(result, EvidenceResult)
        self.assertEqual(result.suggested_type, "sibling")
        self.assertEqual(result.suggested_strength, 90)
        self.assertEqual(result.recommendation_confidence, 80)
        self.assertIs(result.method, SuggestionMethod.SEMANTIC)
        self.assertEqual(result.ai_model, "stub-recommender-v1")
        payload = recommender.payloads[0]
        self.assertEqual(payload["source"]["name"], "Luke Skywalker")
        self.assertEqual(payload["signals"]["co_occurrence"], 2.0)

    def test_recommendation_failure_keeps_signals(self) -> None:
        with self.assertLogs("saga_suggestions.providers.saga_graph", level="WARNING"):
            result = self._provider(recommender=_FailingRecommenderStub()).evaluate(self._pair("luke", "leia"))

        assert isinstance(result, EvidenceResult)
        self.assertIsNone(result.suggested_type)
        self.assertIn(FeatureType.SHARED_FACTION, result.raw_signals)

    def test_signals_normalize_through_extraction(self) -> None:
        evidence = FeatureExtractionService(self._provider()).extract(self._pair("luke", "leia"))

        co_occurrence = evidence.feature(FeatureType.CO_OCCURRENCE)
        location = evidence.feature(FeatureType.SHARED_LOCATION)
        assert co_occurrence is not None and location is not None
        self.assertEqual(co_occurrence.feature_value, 1.0)
        self.assertAlmostEqual(location.feature_value, 0.2)
        self.assertEqual(len(evidence.features), 7)


class EmbeddingHelperTests(unittest.TestCase):
    def test_hash_vectors_rank_shared_words_higher(self) -> None:
        client = HashEmbeddingsClient()
        jedi, padawan, cantina = client.embed_texts(
            ["jedi knight of the order", "young jedi knight in training", "smoky cantina bar"]
        )

        close = cosine_similarity(jedi, padawan)
        far = cosine_similarity(jedi, cantina)
        assert close is not None and far is not None
        self.assertGreater(close, far)
        self.assertAlmostEqual(cosine_similarity(jedi, jedi), 1.0)

    def test_cosine_is_none_for_incomparable_vectors(self) -> None:
        self.assertIsNone(cosine_similarity([1.0, 0.0], [1.0]))
        self.assertIsNone(cosine_similarity([0.0, 0.0], [1.0, 0.0]))
        self.assertIsNone(cosine_similarity(None, [1.0]))


if __name__ == "__main__":
    unittest.main()
