"""Integration tests for accepting, rejecting and modifying suggestions."""

from __future__ import annotations

import unittest

from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from saga_suggestions.models.base import Base
from saga_suggestions.models.entity import Entity
from saga_suggestions.models.entity_relationship import EntityRelationship
from saga_suggestions.models.relationship_suggestion import SuggestionFeatureRecord, SuggestionRecord
from saga_suggestions.services.suggestion_store import SqlEntityStore, SqlSuggestionRepository
from saga_suggestions.suggestions.errors import (
    SuggestionNotFoundError,
    SuggestionPersistenceError,
    SuggestionStateError,
    SuggestionValidationError,
)
from saga_suggestions.suggestions.feedback import SuggestionFeedbackService
from saga_suggestions.suggestions.suggestion import RelationshipSuggestion
from saga_suggestions.suggestions.types import SuggestionStatus, UserActionType


class _FailingEntityStore(SqlEntityStore):
    def create_relationship(self, *args, **kwargs) -> int:
        raise SuggestionPersistenceError("relationship insert failed")


class SuggestionFeedbackServiceTests(unittest.TestCase):
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
        self.db.execute(delete(SuggestionFeatureRecord))
        self.db.execute(delete(SuggestionRecord))
        self.db.execute(delete(EntityRelationship))
        self.db.execute(delete(Entity))
        self.db.commit()

        luke = Entity(saga_id=1, canonical_name="Luke Skywalker", entity_type="character", attributes_json={})
        obi_wan = Entity(saga_id=1, canonical_name="Obi-Wan Kenobi", entity_type="character", attributes_json={})
        self.db.add_all([luke, obi_wan])
        self.db.flush()
        self.luke_id = luke.id
        self.obi_wan_id = obi_wan.id

        self.repository = SqlSuggestionRepository(self.db)
        self.suggestion_id = self.repository.save(
            RelationshipSuggestion(
                saga_id=1,
                source_entity_id=self.obi_wan_id,
                target_entity_id=self.luke_id,
                suggested_type="mentor",
                confidence_score=88.0,
                strength=75,
            )
        )
        self.db.commit()
        self.service = SuggestionFeedbackService(self.db, self.repository, SqlEntityStore(self.db))

    def tearDown(self) -> None:
        self.db.close()

    def _relationship_count(self) -> int:
        return int(self.db.scalar(select(func.count(EntityRelationship.id))) or 0)

    def test_accept_creates_relationship_and_records_decision(self) -> None:
        relationship_id = self.service.accept_suggestion(self.suggestion_id, actioned_by=7)

        self.assertIsNotNone(relationship_id)
        relationship = self.db.get(EntityRelationship, relationship_id)
        assert relationship is not None
        self.assertEqual(relationship.source_entity_id, self.obi_wan_id)
        self.assertEqual(relationship.target_entity_id, self.luke_id)
        self.assertEqual(relationship.relationship_type, "mentor")
        self.assertEqual(relationship.strength, 75)
        self.assertEqual(relationship.origin_suggestion_id, self.suggestion_id)

        stored = self.repository.find_by_id(self.suggestion_id)
        assert stored is not None
        self.assertIs(stored.status, SuggestionStatus.ACCEPTED)
        self.assertIs(stored.user_action_type, UserActionType.ACCEPT)
        self.assertEqual(stored.actioned_by, 7)
        self.assertEqual(stored.created_relationship_id, relationship_id)
        self.assertIsNotNone(stored.accepted_at)

    def test_accept_reuses_existing_relationship(self) -> None:
        self.db.add(
            EntityRelationship(
                saga_id=1,
                source_entity_id=self.luke_id,
                target_entity_id=self.obi_wan_id,
                relationship_type="student_of",
            )
        )
        self.db.commit()

        relationship_id = self.service.accept_suggestion(self.suggestion_id, actioned_by=7)

        self.assertIsNone(relationship_id)
        self.assertEqual(self._relationship_count(), 1)
        stored = self.repository.find_by_id(self.suggestion_id)
        assert stored is not None
        self.assertIs(stored.status, SuggestionStatus.ACCEPTED)

    def test_reject_stores_reason_without_relationship(self) -> None:
        rejected = self.service.reject_suggestion(self.suggestion_id, actioned_by=3, reason="  Not mentors yet  ")

        self.assertIs(rejected.status, SuggestionStatus.REJECTED)
        self.assertEqual(self._relationship_count(), 0)
        stored = self.repository.find_by_id(self.suggestion_id)
        assert stored is not None
        self.assertEqual(stored.user_feedback_text, "Not mentors yet")
        self.assertIsNotNone(stored.rejected_at)
        self.assertIsNone(stored.accepted_at)

    def test_modify_creates_relationship_with_corrected_values(self) -> None:
        relationship_id = self.service.modify_suggestion(
            self.suggestion_id, actioned_by=2, new_type=" family ", new_strength=95
        )

        relationship = self.db.get(EntityRelationship, relationship_id)
        assert relationship is not None
        self.assertEqual(relationship.relationship_type, "family")
        self.assertEqual(relationship.strength, 95)
        stored = self.repository.find_by_id(self.suggestion_id)
        assert stored is not None
        self.assertIs(stored.status, SuggestionStatus.MODIFIED)
        self.assertEqual(stored.suggested_type, "family")
        self.assertEqual(stored.strength, 95)

    def test_unknown_suggestion_raises_not_found(self) -> None:
        with self.assertRaises(SuggestionNotFoundError):
            self.service.accept_suggestion(9999, actioned_by=1)
        with self.assertRaises(SuggestionNotFoundError):
            self.service.reject_suggestion(9999, actioned_by=1)

    def test_second_decision_raises_state_error(self) -> None:
        self.service.reject_suggestion(self.suggestion_id, actioned_by=1)

        with self.assertRaises(SuggestionStateError):
            self.service.accept_suggestion(self.suggestion_id, actioned_by=1)
        with self.assertRaises(SuggestionStateError):
            self.service.modify_suggestion(self.suggestion_id, actioned_by=1, new_type="ally", new_strength=40)
        self.assertEqual(self._relationship_count(), 0)

    def test_invalid_input_raises_validation_error(self) -> None:
        with self.assertRaises(SuggestionValidationError):
            self.service.accept_suggestion(self.suggestion_id, actioned_by=-1)
        with self.assertRaises(SuggestionValidationError):
            self.service.modify_suggestion(self.suggestion_id, actioned_by=1, new_type="ally", new_strength=101)
        with self.assertRaises(SuggestionValidationError):
            self.service.modify_suggestion(self.suggestion_id, actioned_by=1, new_type="   ", new_strength=50)

        stored = self.repository.find_by_id(self.suggestion_id)
        assert stored is not None
        self.assertTrue(stored.is_pending())

    def test_failed_relationship_insert_leaves_suggestion_pending(self) -> None:
        service = SuggestionFeedbackService(self.db, self.repository, _FailingEntityStore(self.db))

        with self.assertRaises(SuggestionPersistenceError):
            service.accept_suggestion(self.suggestion_id, actioned_by=1)

        stored = self.repository.find_by_id(self.suggestion_id)
        assert stored is not None
        self.assertTrue(stored.is_pending())
        self.assertEqual(self._relationship_count(), 0)


if __name__ == "__main__":
    unittest.main()
