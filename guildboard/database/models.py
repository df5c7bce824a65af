"""
guildboard.database.models — SQLAlchemy 2.0 Data Models
========================================================

Tables:
- plugin_documents    — Per-key JSON documents (plugin settings, synced data)
- xp_records          — Per-guild, per-member leveling state
- reputation_records  — Per-guild, per-member reputation categories
- reputation_log      — Append-only reputation history
- genre_tags          — Per-member genre and DAW tags
- migration_runs      — One row per (guild, source system) with pre-image
- leveling_backups    — Snapshots of a guild's XP records
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON everywhere else (SQLite in dev/tests)
JsonColumn = JSON().with_variant(JSONB(), "postgresql")

REPUTATION_CATEGORIES: tuple[str, ...] = (
    "helpfulness",
    "creativity",
    "reliability",
    "community",
    "legacy",
)


def empty_categories() -> dict[str, int]:
    return {name: 0 for name in REPUTATION_CATEGORIES}


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Guildboard ORM models."""


# ---------------------------------------------------------------------------
# PluginDocument — key-value JSON store
# ---------------------------------------------------------------------------
class PluginDocument(Base):
    """One JSON document per (namespace, key).

    Namespaces follow ``<plugin>.<kind>`` (``leveling.settings``,
    ``eventmanager.collaborations`` …) and keys are usually guild ids.
    Values are stored as JSON strings; a value that fails to decode reads
    back as the caller's default.
    """
    __tablename__ = "plugin_documents"

    namespace: Mapped[str] = mapped_column(String(100), primary_key=True)
    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<PluginDocument {self.namespace}/{self.key}>"


# ---------------------------------------------------------------------------
# XpRecord — leveling state
# ---------------------------------------------------------------------------
class XpRecord(Base):
    __tablename__ = "xp_records"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    xp: Mapped[int] = mapped_column(Integer, default=0)
    level: Mapped[int] = mapped_column(Integer, default=0)
    voice_time: Mapped[int] = mapped_column(Integer, default=0)  # minutes
    reactions_given: Mapped[int] = mapped_column(Integer, default=0)
    reactions_received: Mapped[int] = mapped_column(Integer, default=0)
    migrated_from: Mapped[dict[str, Any] | None] = mapped_column(JsonColumn, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_xp_records_guild_xp", "guild_id", "xp"),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": str(self.user_id),
            "xp": self.xp or 0,
            "level": self.level or 0,
            "voice_time": self.voice_time or 0,
            "reactions_given": self.reactions_given or 0,
            "reactions_received": self.reactions_received or 0,
            "migrated_from": self.migrated_from,
        }

    def __repr__(self) -> str:
        return f"<XpRecord guild={self.guild_id} user={self.user_id} xp={self.xp}>"


# ---------------------------------------------------------------------------
# Reputation
# ---------------------------------------------------------------------------
class ReputationRecord(Base):
    __tablename__ = "reputation_records"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    categories: Mapped[dict[str, int]] = mapped_column(JsonColumn, default=empty_categories)
    total: Mapped[int] = mapped_column(Integer, default=0)
    given: Mapped[int] = mapped_column(Integer, default=0)
    received: Mapped[int] = mapped_column(Integer, default=0)
    migrated_from: Mapped[dict[str, Any] | None] = mapped_column(JsonColumn, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": str(self.user_id),
            "categories": dict(self.categories or empty_categories()),
            "total": self.total or 0,
            "given": self.given or 0,
            "received": self.received or 0,
            "migrated_from": self.migrated_from,
        }


class ReputationLog(Base):
    """Append-only reputation history (awards, removals, migrations)."""
    __tablename__ = "reputation_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    category: Mapped[str] = mapped_column(String(30), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, default=None)
    kind: Mapped[str] = mapped_column(String(20), nullable=False, default="award")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_reputation_log_guild_user", "guild_id", "user_id"),
    )


# ---------------------------------------------------------------------------
# GenreTags
# ---------------------------------------------------------------------------
class GenreTags(Base):
    __tablename__ = "genre_tags"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    genres: Mapped[list[str]] = mapped_column(JsonColumn, default=list)
    daws: Mapped[list[str]] = mapped_column(JsonColumn, default=list)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


# ---------------------------------------------------------------------------
# MigrationRun — one per guild and source system
# ---------------------------------------------------------------------------
class MigrationRun(Base):
    """Record of the latest migration from *system* into *guild_id*.

    ``pre_image`` holds the affected records as they were before the run so
    the run can be rolled back.
    """
    __tablename__ = "migration_runs"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    system: Mapped[str] = mapped_column(String(20), primary_key=True)  # "arcane" | "yagpdb"
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    ran_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    users: Mapped[list[dict[str, Any]]] = mapped_column(JsonColumn, default=list)
    total_users: Mapped[int] = mapped_column(Integer, default=0)
    source_data: Mapped[list[dict[str, Any]]] = mapped_column(JsonColumn, default=list)
    pre_image: Mapped[list[dict[str, Any]]] = mapped_column(JsonColumn, default=list)
    rolled_back: Mapped[bool] = mapped_column(Boolean, default=False)
    rolled_back_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )


# ---------------------------------------------------------------------------
# LevelingBackup
# ---------------------------------------------------------------------------
class LevelingBackup(Base):
    __tablename__ = "leveling_backups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)  # startup | periodic | manual | pre-restore
    reason: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    user_count: Mapped[int] = mapped_column(Integer, default=0)
    payload: Mapped[list[dict[str, Any]]] = mapped_column(JsonColumn, default=list)

    __table_args__ = (
        Index("ix_leveling_backups_guild_created", "guild_id", "created_at"),
    )

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "guild_id": str(self.guild_id),
            "kind": self.kind,
            "reason": self.reason,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "user_count": self.user_count,
        }
