"""
guildboard.engine.leveling — Progress, scaling and leaderboard ranking
=======================================================================

Pure functions shared by the leveling plugin, its service layer and the
tests.  Nothing here touches the database or Discord.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Any

from guildboard.constants import level_for_xp, xp_for_level

BOARDS: tuple[str, ...] = ("overall", "voice", "reactions")


def progress(xp: int) -> dict[str, int]:
    """Progress toward the next level for a member holding *xp* points.

    ``xp_progress`` is measured from the start of the current level;
    ``xp_for_next_level`` is the width of the current level band.
    """
    xp = max(0, xp)
    level = level_for_xp(xp)
    floor_xp = xp_for_level(level)
    band = xp_for_level(level + 1) - floor_xp
    gained = xp - floor_xp
    return {
        "level": level,
        "xp_needed": xp_for_level(level + 1) - xp,
        "xp_progress": gained,
        "xp_for_next_level": band,
        "progress_percentage": math.floor(gained * 100 / band),
    }


def scale_xp(amount: int, multiplier: float) -> int:
    """Apply a guild's XP multiplier, flooring the result."""
    if multiplier == 1:
        return amount
    return math.floor(amount * multiplier)


def voice_minutes(elapsed_seconds: float) -> int:
    """Whole minutes contained in *elapsed_seconds* (never negative)."""
    if elapsed_seconds <= 0:
        return 0
    return int(elapsed_seconds // 60)


def board_value(record: Mapping[str, Any], board: str) -> int:
    """The metric a leaderboard *board* ranks by."""
    if board == "voice":
        return int(record.get("voice_time") or 0)
    if board == "reactions":
        return int(record.get("reactions_given") or 0) + int(
            record.get("reactions_received") or 0
        )
    return int(record.get("xp") or 0)


def rank_leaderboard(
    records: Iterable[Mapping[str, Any]],
    board: str = "overall",
    limit: int = 10,
) -> list[dict[str, Any]]:
    """Sort *records* descending by *board*'s metric and keep the top *limit*.

    Unknown board names rank by XP.  Ties keep input order.
    """
    if board not in BOARDS:
        board = "overall"
    rows = [
        {
            "user_id": str(r["user_id"]),
            "value": board_value(r, board),
            "level": int(r.get("level") or 0),
            "xp": int(r.get("xp") or 0),
        }
        for r in records
    ]
    rows.sort(key=lambda row: row["value"], reverse=True)
    return rows[: max(0, limit)]
