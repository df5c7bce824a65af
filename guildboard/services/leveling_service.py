"""
guildboard.services.leveling_service — XP record persistence
=============================================================

Synchronous functions over the ``xp_records`` table; the leveling plugin
calls them through :func:`~guildboard.database.engine.run_db`.

Every write path recomputes ``level`` from ``xp`` with
:func:`~guildboard.constants.level_for_xp`, so the stored level never
drifts from the formula.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import delete, distinct, select
from sqlalchemy.orm import Session

from guildboard.constants import level_for_xp
from guildboard.database.engine import get_session
from guildboard.database.models import XpRecord
from guildboard.engine.leveling import rank_leaderboard

logger = logging.getLogger(__name__)

_COUNTERS = ("xp", "voice_time", "reactions_given", "reactions_received")


@dataclass(frozen=True)
class XpChange:
    """Outcome of a single :func:`add_xp` call."""
    guild_id: int
    user_id: int
    xp: int
    old_level: int
    new_level: int
    record: dict[str, Any]

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.old_level


def empty_record(user_id: int | str) -> dict[str, Any]:
    return {
        "user_id": str(user_id),
        "xp": 0,
        "level": 0,
        "voice_time": 0,
        "reactions_given": 0,
        "reactions_received": 0,
        "migrated_from": None,
    }


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_record(engine, guild_id: int, user_id: int) -> dict[str, Any] | None:
    with Session(engine) as session:
        row = session.get(XpRecord, (guild_id, user_id))
        return row.to_dict() if row else None


def list_records(engine, guild_id: int) -> list[dict[str, Any]]:
    with Session(engine) as session:
        rows = session.scalars(
            select(XpRecord).where(XpRecord.guild_id == guild_id)
        ).all()
        return [row.to_dict() for row in rows]


def guilds_with_records(engine) -> list[int]:
    with Session(engine) as session:
        return list(session.scalars(select(distinct(XpRecord.guild_id))).all())


def leaderboard(engine, guild_id: int, board: str = "overall", limit: int = 10) -> list[dict[str, Any]]:
    """Ranked rows for *board*; see :func:`~guildboard.engine.leveling.rank_leaderboard`."""
    return rank_leaderboard(list_records(engine, guild_id), board, limit)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def _get_or_create(session: Session, guild_id: int, user_id: int) -> XpRecord:
    row = session.get(XpRecord, (guild_id, user_id))
    if row is None:
        row = XpRecord(
            guild_id=guild_id,
            user_id=user_id,
            xp=0,
            level=0,
            voice_time=0,
            reactions_given=0,
            reactions_received=0,
        )
        session.add(row)
    return row


def add_xp(
    engine,
    guild_id: int,
    user_id: int,
    amount: int,
    *,
    voice_minutes: int = 0,
    reactions_given: int = 0,
    reactions_received: int = 0,
) -> XpChange:
    """Add *amount* XP (may be negative) plus any activity counters.

    XP clamps at zero and the level is re-derived.  The record is created
    on first write.
    """
    with get_session(engine) as session:
        row = _get_or_create(session, guild_id, user_id)
        old_level = row.level or 0
        row.xp = max(0, (row.xp or 0) + amount)
        row.level = level_for_xp(row.xp)
        row.voice_time = (row.voice_time or 0) + voice_minutes
        row.reactions_given = (row.reactions_given or 0) + reactions_given
        row.reactions_received = (row.reactions_received or 0) + reactions_received
        session.flush()
        change = XpChange(
            guild_id=guild_id,
            user_id=user_id,
            xp=row.xp,
            old_level=old_level,
            new_level=row.level,
            record=row.to_dict(),
        )

    if change.leveled_up:
        logger.info(
            "Member %s in guild %s reached level %d (was %d)",
            user_id, guild_id, change.new_level, change.old_level,
        )
    return change


def _coerce_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return max(0, int(value))
    return 0


def replace_guild_records(
    session: Session, guild_id: int, records: Iterable[Mapping[str, Any]]
) -> int:
    """Swap a guild's XP records for *records* inside an open session.

    Missing or non-numeric counters become 0 and levels are re-derived.
    Rows without a ``user_id`` are dropped.  Returns the number of rows
    written.
    """
    session.execute(delete(XpRecord).where(XpRecord.guild_id == guild_id))
    written = 0
    for data in records:
        user_id = data.get("user_id")
        if user_id in (None, ""):
            continue
        xp = _coerce_int(data.get("xp"))
        session.add(XpRecord(
            guild_id=guild_id,
            user_id=int(user_id),
            xp=xp,
            level=level_for_xp(xp),
            voice_time=_coerce_int(data.get("voice_time")),
            reactions_given=_coerce_int(data.get("reactions_given")),
            reactions_received=_coerce_int(data.get("reactions_received")),
            migrated_from=data.get("migrated_from"),
        ))
        written += 1
    return written


def validate_and_sync(engine, guild_id: int) -> dict[str, Any]:
    """Repair a guild's records in place.

    Null or negative counters are reset to 0 and stale levels re-derived.
    Returns ``{"checked": n, "changes_made": bool, "fixed": m}``.
    """
    fixed = 0
    with get_session(engine) as session:
        rows = session.scalars(
            select(XpRecord).where(XpRecord.guild_id == guild_id)
        ).all()
        for row in rows:
            changed = False
            for field in _COUNTERS:
                value = getattr(row, field)
                if value is None or value < 0:
                    setattr(row, field, 0)
                    changed = True
            expected = level_for_xp(row.xp)
            if row.level != expected:
                row.level = expected
                changed = True
            fixed += changed
        checked = len(rows)

    if fixed:
        logger.info("Validated guild %s: fixed %d of %d records", guild_id, fixed, checked)
    return {"checked": checked, "changes_made": bool(fixed), "fixed": fixed}
