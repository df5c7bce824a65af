"""
guildboard.services.migration_service — Arcane / YAGPDB imports
================================================================

Merges exported data from other bots into Guildboard's tables:

* **Arcane** levels → ``xp_records`` (converted XP is *added* to whatever
  the member already has, then the level is re-derived from the sum).
* **YAGPDB** reputation → ``reputation_records`` (added to the *legacy*
  category, with one ``reputation_log`` entry per member).

Each execute stores a :class:`~guildboard.database.models.MigrationRun`
holding the pre-image of every record it touched, so the latest run per
guild and system can be rolled back.  Executing the same input twice adds
it twice.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from guildboard.constants import level_for_xp
from guildboard.database.engine import get_session
from guildboard.database.models import (
    MigrationRun,
    ReputationLog,
    ReputationRecord,
    XpRecord,
    empty_categories,
)
from guildboard.engine import conversion
from guildboard.services import store

logger = logging.getLogger(__name__)

RATES_NAMESPACE = "migration.rates"


class MigrationNotFoundError(LookupError):
    """Raised when there is no migration run to roll back."""


# ---------------------------------------------------------------------------
# Conversion rates
# ---------------------------------------------------------------------------
def get_rates(engine, guild_id: int) -> dict[str, float]:
    stored = store.load_document(engine, RATES_NAMESPACE, guild_id, {})
    try:
        return conversion.merge_rates(stored if isinstance(stored, dict) else {})
    except ValueError:
        logger.warning("Invalid stored conversion rates for guild %s; using defaults", guild_id)
        return dict(conversion.DEFAULT_RATES)


def save_rates(engine, guild_id: int, overrides: Mapping[str, Any]) -> dict[str, float]:
    """Validate and persist *overrides* on top of the guild's current rates."""
    rates = conversion.merge_rates({**get_rates(engine, guild_id), **overrides})
    store.save_document(engine, RATES_NAMESPACE, guild_id, rates)
    return rates


# ---------------------------------------------------------------------------
# Status / preview
# ---------------------------------------------------------------------------
def _run_to_dict(run: MigrationRun) -> dict[str, Any]:
    return {
        "completed": run.completed,
        "ran_at": run.ran_at.isoformat() if run.ran_at else None,
        "users": run.users or [],
        "total_users": run.total_users,
        "rolled_back": run.rolled_back,
        "rolled_back_at": run.rolled_back_at.isoformat() if run.rolled_back_at else None,
    }


def get_status(engine, guild_id: int) -> dict[str, Any]:
    status: dict[str, Any] = {system: {"completed": False} for system in conversion.SYSTEMS}
    with Session(engine) as session:
        runs = session.scalars(
            select(MigrationRun).where(MigrationRun.guild_id == guild_id)
        ).all()
        for run in runs:
            status[run.system] = _run_to_dict(run)
    return status


def preview(engine, guild_id: int, system: str, rows: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Dry run: what each row would convert to with the guild's rates."""
    rates = get_rates(engine, guild_id)
    if system == "arcane":
        return conversion.preview_arcane(rows, rates)
    if system == "yagpdb":
        return conversion.preview_yagpdb(rows, rates)
    raise ValueError(f"Invalid migration type: {system!r}")


# ---------------------------------------------------------------------------
# Execute
# ---------------------------------------------------------------------------
def _save_run(
    session: Session,
    guild_id: int,
    system: str,
    users: list[dict[str, Any]],
    rows: Sequence[Mapping[str, Any]],
    pre_image: list[dict[str, Any]],
    now: datetime,
) -> None:
    run = session.get(MigrationRun, (guild_id, system))
    if run is None:
        run = MigrationRun(guild_id=guild_id, system=system)
        session.add(run)
    run.completed = True
    run.ran_at = now
    run.users = users
    run.total_users = len(users)
    run.source_data = [dict(row) for row in rows]
    run.pre_image = pre_image
    run.rolled_back = False
    run.rolled_back_at = None


def migrate_arcane(engine, guild_id: int, rows: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
    rates = get_rates(engine, guild_id)
    now = datetime.now(UTC)
    users: list[dict[str, Any]] = []
    pre_image: list[dict[str, Any]] = []
    seen: set[int] = set()

    with get_session(engine) as session:
        for row in rows:
            if not conversion.arcane_row_is_valid(row):
                continue
            user_id = int(conversion.row_user_id(row))
            new_xp, new_level = conversion.convert_arcane(row.get("xp") or 0, rates)

            record = session.get(XpRecord, (guild_id, user_id))
            if user_id not in seen:
                seen.add(user_id)
                pre_image.append({
                    "user_id": str(user_id),
                    "record": record.to_dict() if record else None,
                })
            if record is None:
                record = XpRecord(
                    guild_id=guild_id, user_id=user_id, xp=0, level=0,
                    voice_time=0, reactions_given=0, reactions_received=0,
                )
                session.add(record)

            record.xp = (record.xp or 0) + new_xp
            record.level = level_for_xp(record.xp)
            record.migrated_from = {
                "system": "arcane",
                "original_level": row.get("level"),
                "original_xp": row.get("xp"),
                "original_rank": row.get("rank"),
                "converted_xp": new_xp,
                "converted_level": new_level,
                "migrated_at": now.isoformat(),
            }
            session.flush()
            users.append({
                "user_id": str(user_id),
                "original_level": row.get("level"),
                "original_xp": row.get("xp"),
                "new_level": record.level,
                "new_xp": record.xp,
            })

        _save_run(session, guild_id, "arcane", users, rows, pre_image, now)

    logger.info("Arcane migration for guild %s: %d users", guild_id, len(users))
    return {"success": True, "migrated_users": len(users), "users": users}


def migrate_yagpdb(engine, guild_id: int, rows: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
    rates = get_rates(engine, guild_id)
    now = datetime.now(UTC)
    users: list[dict[str, Any]] = []
    pre_image: list[dict[str, Any]] = []
    seen: set[int] = set()

    with get_session(engine) as session:
        for row in rows:
            if not conversion.yagpdb_row_is_valid(row):
                continue
            user_id = int(conversion.row_user_id(row))
            reputation = row.get("reputation")
            legacy = conversion.convert_yagpdb(reputation, rates)

            record = session.get(ReputationRecord, (guild_id, user_id))
            if user_id not in seen:
                seen.add(user_id)
                pre_image.append({
                    "user_id": str(user_id),
                    "record": record.to_dict() if record else None,
                })
            if record is None:
                record = ReputationRecord(
                    guild_id=guild_id, user_id=user_id,
                    categories=empty_categories(), total=0, given=0, received=0,
                )
                session.add(record)

            categories = {**empty_categories(), **(record.categories or {})}
            categories["legacy"] += legacy
            record.categories = categories
            record.total = (record.total or 0) + legacy
            record.given = (record.given or 0) + conversion.convert_yagpdb_count(row.get("given"), rates)
            record.received = (record.received or 0) + conversion.convert_yagpdb_count(row.get("received"), rates)
            record.migrated_from = {
                "system": "yagpdb",
                "original_reputation": reputation,
                "original_given": row.get("given"),
                "original_received": row.get("received"),
                "converted_legacy_rep": legacy,
                "migrated_at": now.isoformat(),
            }
            session.add(ReputationLog(
                guild_id=guild_id,
                user_id=user_id,
                category="legacy",
                amount=legacy,
                reason=f"Migrated from YAGPDB (original: {reputation})",
                kind="migration",
                created_at=now,
            ))
            session.flush()
            users.append({
                "user_id": str(user_id),
                "original_reputation": reputation,
                "new_legacy_rep": legacy,
                "new_total": record.total,
            })

        _save_run(session, guild_id, "yagpdb", users, rows, pre_image, now)

    logger.info("YAGPDB migration for guild %s: %d users", guild_id, len(users))
    return {"success": True, "migrated_users": len(users), "users": users}


def execute(engine, guild_id: int, system: str, rows: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
    if system == "arcane":
        return migrate_arcane(engine, guild_id, rows)
    if system == "yagpdb":
        return migrate_yagpdb(engine, guild_id, rows)
    raise ValueError(f"Invalid migration type: {system!r}")


# ---------------------------------------------------------------------------
# Rollback
# ---------------------------------------------------------------------------
def _restore_xp(session: Session, guild_id: int, user_id: int, data: dict[str, Any] | None) -> None:
    record = session.get(XpRecord, (guild_id, user_id))
    if data is None:
        if record is not None:
            session.delete(record)
        return
    if record is None:
        record = XpRecord(guild_id=guild_id, user_id=user_id)
        session.add(record)
    record.xp = data.get("xp") or 0
    record.level = level_for_xp(record.xp)
    record.voice_time = data.get("voice_time") or 0
    record.reactions_given = data.get("reactions_given") or 0
    record.reactions_received = data.get("reactions_received") or 0
    record.migrated_from = data.get("migrated_from")


def _restore_reputation(session: Session, guild_id: int, user_id: int, data: dict[str, Any] | None) -> None:
    record = session.get(ReputationRecord, (guild_id, user_id))
    if data is None:
        if record is not None:
            session.delete(record)
        return
    if record is None:
        record = ReputationRecord(guild_id=guild_id, user_id=user_id)
        session.add(record)
    record.categories = {**empty_categories(), **(data.get("categories") or {})}
    record.total = data.get("total") or 0
    record.given = data.get("given") or 0
    record.received = data.get("received") or 0
    record.migrated_from = data.get("migrated_from")


def rollback(engine, guild_id: int, system: str) -> dict[str, Any]:
    """Put every record the latest *system* run touched back as it was.

    Raises
    ------
    MigrationNotFoundError
        If no run exists for the guild and system.
    """
    if system not in conversion.SYSTEMS:
        raise ValueError(f"Invalid migration type: {system!r}")

    with get_session(engine) as session:
        run = session.get(MigrationRun, (guild_id, system))
        if run is None:
            raise MigrationNotFoundError(f"No {system} migration found for guild {guild_id}")

        restore = _restore_xp if system == "arcane" else _restore_reputation
        for entry in run.pre_image or []:
            restore(session, guild_id, int(entry["user_id"]), entry.get("record"))

        if system == "yagpdb" and run.ran_at is not None:
            session.execute(
                delete(ReputationLog).where(
                    ReputationLog.guild_id == guild_id,
                    ReputationLog.kind == "migration",
                    ReputationLog.created_at >= run.ran_at,
                )
            )

        run.completed = False
        run.rolled_back = True
        run.rolled_back_at = datetime.now(UTC)
        restored = len(run.pre_image or [])

    logger.info("Rolled back %s migration for guild %s (%d users)", system, guild_id, restored)
    return {"success": True, "restored_users": restored}
