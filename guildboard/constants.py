"""
guildboard.constants — Shared Constants & Helpers
==================================================

Single source of truth for the leveling formula and XP rates.
Import from here instead of duplicating in plugins, services, and tests.
"""

from __future__ import annotations

import math

# ---------------------------------------------------------------------------
# XP rates
# ---------------------------------------------------------------------------
MESSAGE_XP_MIN = 15
MESSAGE_XP_MAX = 25
MESSAGE_COOLDOWN_SECONDS = 60

VOICE_XP_PER_MINUTE = 10
VOICE_SWEEP_SECONDS = 60

REACTION_GIVEN_XP = 5
REACTION_RECEIVED_XP = 3

# Slash-command leaderboard bounds (the HTTP API does not cap)
LEADERBOARD_DEFAULT_LIMIT = 10
LEADERBOARD_MAX_LIMIT = 25

# Leveling backups
MAX_BACKUPS = 50  # per guild
BACKUP_INTERVAL_MINUTES = 30

RANK_BADGES: list[str] = ["\U0001f947", "\U0001f948", "\U0001f949"]  # 🥇🥈🥉


# ---------------------------------------------------------------------------
# Leveling formula — THE single canonical implementation
# ---------------------------------------------------------------------------
def level_for_xp(xp: int) -> int:
    """Level reached with *xp* points: ``floor(sqrt(xp / 100))``.

    Negative totals are treated as zero.
    """
    if xp <= 0:
        return 0
    return math.isqrt(xp // 100)


def xp_for_level(level: int) -> int:
    """XP required to reach *level*: ``level² × 100``."""
    return level * level * 100
