"""
guildboard.services.backup_service — Leveling snapshots
========================================================

Each backup is a row in ``leveling_backups`` holding the full list of one
guild's XP records.  Backups are taken on startup, every 30 minutes, on
demand from the dashboard, and right before a restore.  Only the newest
:data:`~guildboard.constants.MAX_BACKUPS` per guild are kept.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from guildboard.constants import MAX_BACKUPS
from guildboard.database.engine import get_session
from guildboard.database.models import LevelingBackup, XpRecord
from guildboard.services.leveling_service import replace_guild_records, validate_and_sync

logger = logging.getLogger(__name__)

BACKUP_KINDS = ("startup", "periodic", "manual", "pre-restore")


class BackupNotFoundError(LookupError):
    """Raised when a backup id does not exist for the requested guild."""


def create_backup(engine, guild_id: int, kind: str = "manual", reason: str = "") -> dict[str, Any]:
    """Snapshot *guild_id*'s XP records and prune old backups."""
    if kind not in BACKUP_KINDS:
        raise ValueError(f"Unknown backup kind: {kind!r}")

    with get_session(engine) as session:
        rows = session.scalars(
            select(XpRecord).where(XpRecord.guild_id == guild_id)
        ).all()
        payload = [row.to_dict() for row in rows]
        backup = LevelingBackup(
            guild_id=guild_id,
            kind=kind,
            reason=reason or None,
            created_at=datetime.now(UTC),
            user_count=len(payload),
            payload=payload,
        )
        session.add(backup)
        session.flush()
        summary = backup.summary()
        _prune(session, guild_id)

    logger.info(
        "Created %s backup #%s for guild %s (%d users)",
        kind, summary["id"], guild_id, summary["user_count"],
    )
    return summary


def _prune(session: Session, guild_id: int) -> None:
    stale = session.scalars(
        select(LevelingBackup)
        .where(LevelingBackup.guild_id == guild_id)
        .order_by(LevelingBackup.id.desc())
        .offset(MAX_BACKUPS)
    ).all()
    for backup in stale:
        session.delete(backup)
    if stale:
        logger.debug("Pruned %d old backups for guild %s", len(stale), guild_id)


def list_backups(engine, guild_id: int) -> list[dict[str, Any]]:
    """Backup summaries for *guild_id*, newest first (payload omitted)."""
    with Session(engine) as session:
        rows = session.scalars(
            select(LevelingBackup)
            .where(LevelingBackup.guild_id == guild_id)
            .order_by(LevelingBackup.id.desc())
        ).all()
        return [row.summary() for row in rows]


def restore_backup(engine, guild_id: int, backup_id: int) -> dict[str, Any]:
    """Replace *guild_id*'s XP records with the contents of *backup_id*.

    A ``pre-restore`` backup of the current state is taken first, and the
    restored rows are validated afterwards (levels re-derived).

    Raises
    ------
    BackupNotFoundError
        If the backup does not exist or belongs to another guild.
    """
    with Session(engine) as session:
        backup = session.get(LevelingBackup, backup_id)
        if backup is None or backup.guild_id != guild_id:
            raise BackupNotFoundError(f"Backup {backup_id} not found for guild {guild_id}")
        payload = list(backup.payload or [])

    create_backup(engine, guild_id, "pre-restore", f"Before restoring backup #{backup_id}")

    with get_session(engine) as session:
        user_count = replace_guild_records(session, guild_id, payload)

    validation = validate_and_sync(engine, guild_id)
    logger.info("Restored guild %s from backup #%s (%d users)", guild_id, backup_id, user_count)
    return {"backup_id": backup_id, "user_count": user_count, "validation": validation}
