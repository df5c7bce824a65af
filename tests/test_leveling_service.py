"""
tests/test_leveling_service.py — XP persistence and backups
============================================================
"""

from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from guildboard.constants import MAX_BACKUPS
from guildboard.database.models import XpRecord
from guildboard.services import backup_service, leveling_service

GUILD = 1000


class TestAddXp:
    def test_creates_record_on_first_award(self, db_engine):
        change = leveling_service.add_xp(db_engine, GUILD, 1, 20)
        assert change.xp == 20
        assert change.old_level == 0
        assert not change.leveled_up
        assert leveling_service.get_record(db_engine, GUILD, 1)["xp"] == 20

    def test_level_up_detected(self, db_engine):
        leveling_service.add_xp(db_engine, GUILD, 1, 90)
        change = leveling_service.add_xp(db_engine, GUILD, 1, 15)
        assert change.leveled_up
        assert (change.old_level, change.new_level) == (0, 1)

    def test_negative_amount_clamps_at_zero(self, db_engine):
        leveling_service.add_xp(db_engine, GUILD, 1, 50)
        change = leveling_service.add_xp(db_engine, GUILD, 1, -500)
        assert change.xp == 0
        assert change.new_level == 0

    def test_counters_accumulate(self, db_engine):
        leveling_service.add_xp(db_engine, GUILD, 1, 10, voice_minutes=2)
        leveling_service.add_xp(db_engine, GUILD, 1, 5, reactions_given=1)
        leveling_service.add_xp(db_engine, GUILD, 1, 3, reactions_received=1)
        record = leveling_service.get_record(db_engine, GUILD, 1)
        assert record["voice_time"] == 2
        assert record["reactions_given"] == 1
        assert record["reactions_received"] == 1
        assert record["xp"] == 18

    def test_guilds_are_isolated(self, db_engine):
        leveling_service.add_xp(db_engine, GUILD, 1, 10)
        assert leveling_service.get_record(db_engine, GUILD + 1, 1) is None

    def test_leaderboard_reads_guild_records(self, db_engine):
        leveling_service.add_xp(db_engine, GUILD, 1, 10)
        leveling_service.add_xp(db_engine, GUILD, 2, 30)
        rows = leveling_service.leaderboard(db_engine, GUILD)
        assert [r["user_id"] for r in rows] == ["2", "1"]


class TestValidateAndSync:
    def test_repairs_stale_levels_and_negative_counters(self, db_engine):
        with Session(db_engine) as session:
            session.add(XpRecord(guild_id=GUILD, user_id=1, xp=400, level=0,
                                 voice_time=-3, reactions_given=0, reactions_received=0))
            session.add(XpRecord(guild_id=GUILD, user_id=2, xp=0, level=0,
                                 voice_time=0, reactions_given=0, reactions_received=0))
            session.commit()

        result = leveling_service.validate_and_sync(db_engine, GUILD)
        assert result == {"checked": 2, "changes_made": True, "fixed": 1}

        record = leveling_service.get_record(db_engine, GUILD, 1)
        assert record["level"] == 2
        assert record["voice_time"] == 0

    def test_clean_guild_reports_no_changes(self, db_engine):
        leveling_service.add_xp(db_engine, GUILD, 1, 10)
        result = leveling_service.validate_and_sync(db_engine, GUILD)
        assert result["changes_made"] is False


class TestBackups:
    def test_create_and_list_newest_first(self, db_engine):
        leveling_service.add_xp(db_engine, GUILD, 1, 10)
        first = backup_service.create_backup(db_engine, GUILD, "manual", "one")
        second = backup_service.create_backup(db_engine, GUILD, "periodic")
        listed = backup_service.list_backups(db_engine, GUILD)
        assert [b["id"] for b in listed] == [second["id"], first["id"]]
        assert listed[1]["user_count"] == 1
        assert "payload" not in listed[0]

    def test_unknown_kind_rejected(self, db_engine):
        with pytest.raises(ValueError):
            backup_service.create_backup(db_engine, GUILD, "hourly")

    def test_prunes_to_max_backups(self, db_engine):
        for _ in range(MAX_BACKUPS + 3):
            backup_service.create_backup(db_engine, GUILD, "periodic")
        assert len(backup_service.list_backups(db_engine, GUILD)) == MAX_BACKUPS

    def test_restore_replaces_records_and_takes_pre_restore_backup(self, db_engine):
        leveling_service.add_xp(db_engine, GUILD, 1, 250)
        snapshot = backup_service.create_backup(db_engine, GUILD, "manual")
        leveling_service.add_xp(db_engine, GUILD, 1, 1000)
        leveling_service.add_xp(db_engine, GUILD, 2, 50)

        result = backup_service.restore_backup(db_engine, GUILD, snapshot["id"])

        assert result["user_count"] == 1
        assert leveling_service.get_record(db_engine, GUILD, 1)["xp"] == 250
        assert leveling_service.get_record(db_engine, GUILD, 1)["level"] == 1
        assert leveling_service.get_record(db_engine, GUILD, 2) is None
        kinds = [b["kind"] for b in backup_service.list_backups(db_engine, GUILD)]
        assert kinds[0] == "pre-restore"

    def test_restore_other_guilds_backup_is_not_found(self, db_engine):
        backup = backup_service.create_backup(db_engine, GUILD + 1, "manual")
        with pytest.raises(backup_service.BackupNotFoundError):
            backup_service.restore_backup(db_engine, GUILD, backup["id"])
