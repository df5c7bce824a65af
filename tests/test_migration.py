"""
tests/test_migration.py — Arcane / YAGPDB conversion, execute and rollback
===========================================================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from guildboard.database.models import ReputationLog, ReputationRecord
from guildboard.engine import conversion
from guildboard.services import leveling_service, migration_service

GUILD = 1000

ARCANE_ROWS = [
    {"userId": "1", "level": 5, "xp": 1000, "rank": 1},
    {"userId": "2", "level": 1, "xp": 100},
    {"userId": "", "level": 3, "xp": 300},   # no id: skipped
    {"userId": "4", "level": 0, "xp": 0},    # nothing to convert: skipped
]

YAGPDB_ROWS = [
    {"userId": "1", "reputation": 12, "given": 3, "received": 12},
    {"user_id": "2", "reputation": 0},  # skipped
]


class TestConversion:
    def test_arcane_default_rate(self):
        assert conversion.convert_arcane(1000) == (250, 1)

    def test_arcane_floors(self):
        assert conversion.convert_arcane(3) == (0, 0)

    def test_yagpdb_default_rate(self):
        assert conversion.convert_yagpdb(12) == 12

    def test_merge_rates_ignores_unknown_keys(self):
        rates = conversion.merge_rates({"arcane_xp_to_new": 0.5, "bogus": 9})
        assert rates["arcane_xp_to_new"] == 0.5
        assert "bogus" not in rates

    @pytest.mark.parametrize("bad", [-1, "0.5", None, True])
    def test_merge_rates_rejects_invalid(self, bad):
        with pytest.raises(ValueError):
            conversion.merge_rates({"arcane_xp_to_new": bad})

    def test_row_user_id_accepts_both_spellings(self):
        assert conversion.row_user_id({"userId": 5}) == "5"
        assert conversion.row_user_id({"user_id": "6"}) == "6"
        assert conversion.row_user_id({}) is None

    def test_row_user_id_rejects_non_numeric(self):
        assert conversion.row_user_id({"userId": "abc"}) is None
        assert conversion.row_user_id({"userId": True}) is None

    @pytest.mark.parametrize("value, expected", [
        ("22500", 22500.0), (" 7 ", 7.0), (12, 12.0), ("", None), ("lots", None), (None, None),
        (True, None), ("nan", None),
    ])
    def test_as_number(self, value, expected):
        assert conversion.as_number(value) == expected

    def test_string_values_convert(self):
        assert conversion.convert_arcane("22500") == (5625, 7)
        assert conversion.convert_yagpdb("12") == 12

    def test_rows_with_non_numeric_fields_are_invalid(self):
        assert conversion.arcane_row_is_valid({"userId": "1", "level": "15", "xp": "22500"})
        assert not conversion.arcane_row_is_valid({"userId": "1", "level": 2, "xp": "lots"})
        assert conversion.yagpdb_row_is_valid({"userId": "1", "reputation": "4"})
        assert not conversion.yagpdb_row_is_valid({"userId": "1", "reputation": 4, "given": "x"})


class TestRates:
    def test_defaults_until_saved(self, db_engine):
        assert migration_service.get_rates(db_engine, GUILD) == conversion.DEFAULT_RATES

    def test_saved_rates_apply_to_preview(self, db_engine):
        migration_service.save_rates(db_engine, GUILD, {"arcane_xp_to_new": 0.5})
        preview = migration_service.preview(db_engine, GUILD, "arcane", ARCANE_ROWS[:1])
        assert preview[0]["new_xp"] == 500

    def test_rates_are_per_guild(self, db_engine):
        migration_service.save_rates(db_engine, GUILD, {"arcane_xp_to_new": 0.5})
        assert migration_service.get_rates(db_engine, GUILD + 1)["arcane_xp_to_new"] == 0.25


class TestArcaneMigration:
    def test_execute_converts_valid_rows(self, db_engine):
        result = migration_service.execute(db_engine, GUILD, "arcane", ARCANE_ROWS)
        assert result["success"] is True
        assert result["migrated_users"] == 2

        record = leveling_service.get_record(db_engine, GUILD, 1)
        assert record["xp"] == 250
        assert record["level"] == 1
        assert record["migrated_from"]["system"] == "arcane"
        assert record["migrated_from"]["original_xp"] == 1000

    def test_adds_to_existing_xp_and_rederives_level(self, db_engine):
        leveling_service.add_xp(db_engine, GUILD, 1, 200)
        migration_service.execute(db_engine, GUILD, "arcane", ARCANE_ROWS[:1])
        record = leveling_service.get_record(db_engine, GUILD, 1)
        assert record["xp"] == 450
        assert record["level"] == 2

    def test_executing_twice_adds_twice(self, db_engine):
        migration_service.execute(db_engine, GUILD, "arcane", ARCANE_ROWS[:1])
        migration_service.execute(db_engine, GUILD, "arcane", ARCANE_ROWS[:1])
        assert leveling_service.get_record(db_engine, GUILD, 1)["xp"] == 500

    def test_status_reports_completed_run(self, db_engine):
        assert migration_service.get_status(db_engine, GUILD)["arcane"]["completed"] is False
        migration_service.execute(db_engine, GUILD, "arcane", ARCANE_ROWS)
        status = migration_service.get_status(db_engine, GUILD)
        assert status["arcane"]["completed"] is True
        assert status["arcane"]["total_users"] == 2

    def test_rollback_restores_pre_image(self, db_engine):
        leveling_service.add_xp(db_engine, GUILD, 1, 200)
        migration_service.execute(db_engine, GUILD, "arcane", ARCANE_ROWS)

        result = migration_service.rollback(db_engine, GUILD, "arcane")

        assert result["restored_users"] == 2
        assert leveling_service.get_record(db_engine, GUILD, 1)["xp"] == 200
        assert leveling_service.get_record(db_engine, GUILD, 2) is None
        assert migration_service.get_status(db_engine, GUILD)["arcane"]["rolled_back"] is True

    def test_rollback_without_run(self, db_engine):
        with pytest.raises(migration_service.MigrationNotFoundError):
            migration_service.rollback(db_engine, GUILD, "arcane")

    def test_invalid_system(self, db_engine):
        with pytest.raises(ValueError):
            migration_service.execute(db_engine, GUILD, "mee6", [])


class TestYagpdbMigration:
    def test_execute_adds_legacy_reputation_and_log(self, db_engine):
        result = migration_service.execute(db_engine, GUILD, "yagpdb", YAGPDB_ROWS)
        assert result["migrated_users"] == 1

        with Session(db_engine) as session:
            record = session.get(ReputationRecord, (GUILD, 1))
            assert record.categories["legacy"] == 12
            assert record.total == 12
            assert record.given == 3
            logs = session.scalars(select(ReputationLog)).all()
            assert len(logs) == 1
            assert logs[0].kind == "migration"
            assert logs[0].reason == "Migrated from YAGPDB (original: 12)"

    def test_rollback_removes_record_and_log(self, db_engine):
        migration_service.execute(db_engine, GUILD, "yagpdb", YAGPDB_ROWS)
        migration_service.rollback(db_engine, GUILD, "yagpdb")
        with Session(db_engine) as session:
            assert session.get(ReputationRecord, (GUILD, 1)) is None
            assert session.scalars(select(ReputationLog)).all() == []
