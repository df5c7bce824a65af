"""Initial Guildboard schema

Revision ID: 0a1c5e7b9d21
Revises:
Create Date: 2026-10-18 10:12:41.118204

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '0a1c5e7b9d21'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JsonType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    """Create the document store, leveling, reputation, tag and migration tables."""

    # --- plugin_documents ---
    op.create_table(
        "plugin_documents",
        sa.Column("namespace", sa.String(100), primary_key=True),
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value_json", sa.Text, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- xp_records ---
    op.create_table(
        "xp_records",
        sa.Column("guild_id", sa.BigInteger, primary_key=True),
        sa.Column("user_id", sa.BigInteger, primary_key=True),
        sa.Column("xp", sa.Integer, nullable=True),
        sa.Column("level", sa.Integer, nullable=True),
        sa.Column("voice_time", sa.Integer, nullable=True),
        sa.Column("reactions_given", sa.Integer, nullable=True),
        sa.Column("reactions_received", sa.Integer, nullable=True),
        sa.Column("migrated_from", JsonType, nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_xp_records_guild_xp", "xp_records", ["guild_id", "xp"])

    # --- reputation ---
    op.create_table(
        "reputation_records",
        sa.Column("guild_id", sa.BigInteger, primary_key=True),
        sa.Column("user_id", sa.BigInteger, primary_key=True),
        sa.Column("categories", JsonType, nullable=True),
        sa.Column("total", sa.Integer, nullable=True),
        sa.Column("given", sa.Integer, nullable=True),
        sa.Column("received", sa.Integer, nullable=True),
        sa.Column("migrated_from", JsonType, nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "reputation_log",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("guild_id", sa.BigInteger, nullable=False),
        sa.Column("user_id", sa.BigInteger, nullable=False),
        sa.Column("category", sa.String(30), nullable=False),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_reputation_log_guild_user", "reputation_log", ["guild_id", "user_id"])

    # --- genre_tags ---
    op.create_table(
        "genre_tags",
        sa.Column("guild_id", sa.BigInteger, primary_key=True),
        sa.Column("user_id", sa.BigInteger, primary_key=True),
        sa.Column("genres", JsonType, nullable=True),
        sa.Column("daws", JsonType, nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- migration_runs ---
    op.create_table(
        "migration_runs",
        sa.Column("guild_id", sa.BigInteger, primary_key=True),
        sa.Column("system", sa.String(20), primary_key=True),
        sa.Column("completed", sa.Boolean, nullable=True),
        sa.Column("ran_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("users", JsonType, nullable=True),
        sa.Column("total_users", sa.Integer, nullable=True),
        sa.Column("source_data", JsonType, nullable=True),
        sa.Column("pre_image", JsonType, nullable=True),
        sa.Column("rolled_back", sa.Boolean, nullable=True),
        sa.Column("rolled_back_at", sa.DateTime(timezone=True), nullable=True),
    )

    # --- leveling_backups ---
    op.create_table(
        "leveling_backups",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("guild_id", sa.BigInteger, nullable=False),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("user_count", sa.Integer, nullable=True),
        sa.Column("payload", JsonType, nullable=True),
    )
    op.create_index(
        "ix_leveling_backups_guild_created", "leveling_backups", ["guild_id", "created_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_leveling_backups_guild_created", table_name="leveling_backups")
    op.drop_table("leveling_backups")
    op.drop_table("migration_runs")
    op.drop_table("genre_tags")
    op.drop_index("ix_reputation_log_guild_user", table_name="reputation_log")
    op.drop_table("reputation_log")
    op.drop_table("reputation_records")
    op.drop_index("ix_xp_records_guild_xp", table_name="xp_records")
    op.drop_table("xp_records")
    op.drop_table("plugin_documents")
