"""saga store and relationship suggestion engine

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 00:00:01
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261017_0001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "entities",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("saga_id", sa.Integer(), nullable=False),
        sa.Column("canonical_name", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("importance_score", sa.Integer(), server_default=sa.text("50"), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("attributes_json", sa.JSON(), nullable=False),
        sa.Column("embedding", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_entities_saga_id", "entities", ["saga_id"], unique=False)
    op.create_index("ix_entities_canonical_name", "entities", ["canonical_name"], unique=False)
    op.create_index("ix_entities_entity_type", "entities", ["entity_type"], unique=False)

    op.create_table(
        "entity_relationships",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("saga_id", sa.Integer(), nullable=False),
        sa.Column("source_entity_id", sa.Integer(), nullable=False),
        sa.Column("target_entity_id", sa.Integer(), nullable=False),
        sa.Column("relationship_type", sa.String(length=64), nullable=False),
        sa.Column("strength", sa.Integer(), server_default=sa.text("50"), nullable=False),
        sa.Column("origin_suggestion_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["source_entity_id"], ["entities.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["target_entity_id"], ["entities.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_entity_relationships_saga_id", "entity_relationships", ["saga_id"], unique=False)
    op.create_index(
        "ix_entity_relationships_source_entity_id",
        "entity_relationships",
        ["source_entity_id"],
        unique=False,
    )
    op.create_index(
        "ix_entity_relationships_target_entity_id",
        "entity_relationships",
        ["target_entity_id"],
        unique=False,
    )

    op.create_table(
        "content_fragments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("saga_id", sa.Integer(), nullable=False),
        sa.Column("fragment_text", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_content_fragments_saga_id", "content_fragments", ["saga_id"], unique=False)

    op.create_table(
        "entity_mentions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("fragment_id", sa.Integer(), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["fragment_id"], ["content_fragments.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["entity_id"], ["entities.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("fragment_id", "entity_id", name="uq_entity_mentions_fragment_entity"),
    )
    op.create_index("ix_entity_mentions_fragment_id", "entity_mentions", ["fragment_id"], unique=False)
    op.create_index("ix_entity_mentions_entity_id", "entity_mentions", ["entity_id"], unique=False)

    op.create_table(
        "timeline_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("saga_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("normalized_timestamp", sa.Float(), nullable=False),
        sa.Column("participants_json", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_timeline_events_saga_id", "timeline_events", ["saga_id"], unique=False)

    op.create_table(
        "relationship_suggestions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("saga_id", sa.Integer(), nullable=False),
        sa.Column("source_entity_id", sa.Integer(), nullable=False),
        sa.Column("target_entity_id", sa.Integer(), nullable=False),
        sa.Column("suggested_type", sa.String(length=64), nullable=False),
        sa.Column("confidence_score", sa.Float(), nullable=False),
        sa.Column("strength", sa.Integer(), server_default=sa.text("50"), nullable=False),
        sa.Column("reasoning", sa.Text(), nullable=True),
        sa.Column("evidence_json", sa.JSON(), nullable=True),
        sa.Column("suggestion_method", sa.String(length=32), nullable=False),
        sa.Column("ai_model", sa.String(length=128), server_default="rule_based", nullable=False),
        sa.Column("status", sa.String(length=32), server_default="pending", nullable=False),
        sa.Column("user_action_type", sa.String(length=32), server_default="none", nullable=False),
        sa.Column("user_feedback_text", sa.Text(), nullable=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actioned_by", sa.Integer(), nullable=True),
        sa.Column("created_relationship_id", sa.Integer(), nullable=True),
        sa.Column("priority_score", sa.Float(), server_default=sa.text("50.0"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_relationship_suggestions_saga_status",
        "relationship_suggestions",
        ["saga_id", "status"],
        unique=False,
    )
    op.create_index(
        "ix_relationship_suggestions_pair",
        "relationship_suggestions",
        ["source_entity_id", "target_entity_id"],
        unique=False,
    )
    op.create_index("ix_relationship_suggestions_status", "relationship_suggestions", ["status"], unique=False)
    op.create_index(
        "ix_relationship_suggestions_priority_score",
        "relationship_suggestions",
        ["priority_score"],
        unique=False,
    )

    op.create_table(
        "suggestion_features",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("suggestion_id", sa.Integer(), nullable=False),
        sa.Column("feature_type", sa.String(length=64), nullable=False),
        sa.Column("feature_name", sa.String(length=128), nullable=False),
        sa.Column("feature_value", sa.Float(), nullable=False),
        sa.Column("weight", sa.Float(), server_default=sa.text("0.5"), nullable=False),
        sa.Column("metadata_json", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["suggestion_id"], ["relationship_suggestions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_suggestion_features_suggestion_id", "suggestion_features", ["suggestion_id"], unique=False)
    op.create_index("ix_suggestion_features_feature_type", "suggestion_features", ["feature_type"], unique=False)

    op.create_table(
        "learning_weights",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("feature_type", sa.String(length=64), nullable=False),
        sa.Column("weight", sa.Float(), nullable=False),
        sa.Column("samples_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("acceptance_rate", sa.Float(), nullable=True),
        sa.Column("recalibrated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("feature_type"),
    )


def downgrade() -> None:
    op.drop_table("learning_weights")
    op.drop_index("ix_suggestion_features_feature_type", table_name="suggestion_features")
    op.drop_index("ix_suggestion_features_suggestion_id", table_name="suggestion_features")
    op.drop_table("suggestion_features")
    op.drop_index("ix_relationship_suggestions_priority_score", table_name="relationship_suggestions")
    op.drop_index("ix_relationship_suggestions_status", table_name="relationship_suggestions")
    op.drop_index("ix_relationship_suggestions_pair", table_name="relationship_suggestions")
    op.drop_index("ix_relationship_suggestions_saga_status", table_name="relationship_suggestions")
    op.drop_table("relationship_suggestions")
    op.drop_index("ix_timeline_events_saga_id", table_name="timeline_events")
    op.drop_table("timeline_events")
    op.drop_index("ix_entity_mentions_entity_id", table_name="entity_mentions")
    op.drop_index("ix_entity_mentions_fragment_id", table_name="entity_mentions")
    op.drop_table("entity_mentions")
    op.drop_index("ix_content_fragments_saga_id", table_name="content_fragments")
    op.drop_table("content_fragments")
    op.drop_index("ix_entity_relationships_target_entity_id", table_name="entity_relationships")
    op.drop_index("ix_entity_relationships_source_entity_id", table_name="entity_relationships")
    op.drop_index("ix_entity_relationships_saga_id", table_name="entity_relationships")
    op.drop_table("entity_relationships")
    op.drop_index("ix_entities_entity_type", table_name="entities")
    op.drop_index("ix_entities_canonical_name", table_name="entities")
    op.drop_index("ix_entities_saga_id", table_name="entities")
    op.drop_table("entities")
