"""
tests/test_leveling_engine.py — Level formula, progress and ranking
====================================================================
"""

from __future__ import annotations

import pytest

from guildboard.constants import level_for_xp, xp_for_level
from guildboard.engine.leveling import (
    board_value,
    progress,
    rank_leaderboard,
    scale_xp,
    voice_minutes,
)


class TestLevelFormula:
    @pytest.mark.parametrize("xp,level", [
        (0, 0), (-50, 0), (99, 0), (100, 1), (399, 1), (400, 2), (900, 3), (10_000, 10),
    ])
    def test_level_for_xp(self, xp, level):
        assert level_for_xp(xp) == level

    def test_level_threshold_is_exact(self):
        for level in range(0, 60):
            threshold = xp_for_level(level)
            assert level_for_xp(threshold) == level
            if threshold > 0:
                assert level_for_xp(threshold - 1) == level - 1

    def test_level_never_decreases_as_xp_grows(self):
        levels = [level_for_xp(xp) for xp in range(0, 5000, 7)]
        assert levels == sorted(levels)


class TestProgress:
    def test_progress_mid_level(self):
        p = progress(250)
        assert p["level"] == 1
        assert p["xp_needed"] == 150
        assert p["xp_progress"] == 150
        assert p["xp_for_next_level"] == 300
        assert p["progress_percentage"] == 50

    def test_progress_at_zero(self):
        p = progress(0)
        assert p["level"] == 0
        assert p["xp_needed"] == 100
        assert p["progress_percentage"] == 0

    def test_progress_clamps_negative_xp(self):
        assert progress(-10) == progress(0)


class TestScalingAndVoice:
    def test_scale_floors(self):
        assert scale_xp(25, 1.5) == 37
        assert scale_xp(3, 0.5) == 1

    def test_scale_zero_multiplier(self):
        assert scale_xp(20, 0) == 0

    def test_voice_minutes_counts_whole_minutes(self):
        assert voice_minutes(59.9) == 0
        assert voice_minutes(60) == 1
        assert voice_minutes(185) == 3
        assert voice_minutes(-5) == 0


class TestRankLeaderboard:
    RECORDS = [
        {"user_id": 1, "xp": 500, "level": 2, "voice_time": 5, "reactions_given": 1, "reactions_received": 1},
        {"user_id": 2, "xp": 900, "level": 3, "voice_time": 1, "reactions_given": 10, "reactions_received": 4},
        {"user_id": 3, "xp": 100, "level": 1, "voice_time": 40, "reactions_given": 0, "reactions_received": 0},
    ]

    def test_overall_sorted_by_xp(self):
        rows = rank_leaderboard(self.RECORDS)
        assert [r["user_id"] for r in rows] == ["2", "1", "3"]
        assert rows[0]["value"] == 900

    def test_voice_board(self):
        rows = rank_leaderboard(self.RECORDS, "voice")
        assert [r["user_id"] for r in rows] == ["3", "1", "2"]

    def test_reactions_board_sums_given_and_received(self):
        rows = rank_leaderboard(self.RECORDS, "reactions")
        assert rows[0]["user_id"] == "2"
        assert rows[0]["value"] == 14

    def test_limit_applied(self):
        assert len(rank_leaderboard(self.RECORDS, limit=2)) == 2
        assert rank_leaderboard(self.RECORDS, limit=0) == []

    def test_unknown_board_ranks_by_xp(self):
        assert rank_leaderboard(self.RECORDS, "bogus") == rank_leaderboard(self.RECORDS)

    def test_board_value_handles_missing_fields(self):
        assert board_value({"user_id": 1}, "reactions") == 0
