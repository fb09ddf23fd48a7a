"""add unordered pair key and unique pending suggestion per pair

Revision ID: 20261017_0002
Revises: 20261017_0001
Create Date: 2026-10-17 00:00:02
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261017_0002"
down_revision: str | None = "20261017_0001"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.add_column("relationship_suggestions", sa.Column("pair_low_id", sa.Integer(), nullable=True))
    op.add_column("relationship_suggestions", sa.Column("pair_high_id", sa.Integer(), nullable=True))

    op.execute(
        "UPDATE relationship_suggestions "
        "SET pair_low_id = LEAST(source_entity_id, target_entity_id), "
        "pair_high_id = GREATEST(source_entity_id, target_entity_id)"
    )
    # Keep only the newest pending row per pair before the unique index is built.
    op.execute(
        "DELETE FROM relationship_suggestions AS older "
        "USING relationship_suggestions AS newer "
        "WHERE older.status = 'pending' AND newer.status = 'pending' "
        "AND older.saga_id = newer.saga_id "
        "AND older.pair_low_id = newer.pair_low_id "
        "AND older.pair_high_id = newer.pair_high_id "
        "AND older.id < newer.id"
    )

    op.alter_column("relationship_suggestions", "pair_low_id", existing_type=sa.Integer(), nullable=False)
    op.alter_column("relationship_suggestions", "pair_high_id", existing_type=sa.Integer(), nullable=False)
    op.create_index(
        "uq_relationship_suggestions_pending_pair",
        "relationship_suggestions",
        ["saga_id", "pair_low_id", "pair_high_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )


def downgrade() -> None:
    op.drop_index("uq_relationship_suggestions_pending_pair", table_name="relationship_suggestions")
    op.drop_column("relationship_suggestions", "pair_high_id")
    op.drop_column("relationship_suggestions", "pair_low_id")
