"""
tests/test_genre_service.py — Genre & DAW tag storage
======================================================
"""

from __future__ import annotations

import pytest

from guildboard.services import genre_service

GUILD = 1000


class TestTagParsing:
    def test_split_tags_trims_and_drops_blanks(self):
        assert genre_service.split_tags(" Trap, Lo-fi ,,DnB ") == ["Trap", "Lo-fi", "DnB"]

    def test_merge_keeps_first_spelling(self):
        assert genre_service.merge_tags(["Trap"], ["trap", "House"]) == ["Trap", "House"]


class TestTagStorage:
    def test_add_and_get(self, db_engine):
        genre_service.add_tags(db_engine, GUILD, 1, "genre", ["Trap", "Lo-fi"])
        genre_service.add_tags(db_engine, GUILD, 1, "daw", ["FL Studio"])
        assert genre_service.get_tags(db_engine, GUILD, 1) == {
            "genres": ["Trap", "Lo-fi"],
            "daws": ["FL Studio"],
        }

    def test_add_dedupes_case_insensitively(self, db_engine):
        genre_service.add_tags(db_engine, GUILD, 1, "genre", ["Trap"])
        updated = genre_service.add_tags(db_engine, GUILD, 1, "genre", ["TRAP", "DnB"])
        assert updated == ["Trap", "DnB"]

    def test_unknown_member_has_empty_tags(self, db_engine):
        assert genre_service.get_tags(db_engine, GUILD, 99) == {"genres": [], "daws": []}

    def test_remove_tag(self, db_engine):
        genre_service.add_tags(db_engine, GUILD, 1, "genre", ["Trap", "DnB"])
        assert genre_service.remove_tag(db_engine, GUILD, 1, "genre", "trap") is True
        assert genre_service.get_tags(db_engine, GUILD, 1)["genres"] == ["DnB"]

    def test_remove_missing_tag(self, db_engine):
        assert genre_service.remove_tag(db_engine, GUILD, 1, "genre", "Trap") is False

    def test_unknown_kind_rejected(self, db_engine):
        with pytest.raises(ValueError):
            genre_service.add_tags(db_engine, GUILD, 1, "instrument", ["Piano"])


class TestDiscovery:
    def test_find_users_exact_case_insensitive(self, db_engine):
        genre_service.add_tags(db_engine, GUILD, 1, "genre", ["Trap"])
        genre_service.add_tags(db_engine, GUILD, 2, "genre", ["trap", "House"])
        genre_service.add_tags(db_engine, GUILD, 3, "genre", ["Trap Soul"])
        assert sorted(genre_service.find_users(db_engine, GUILD, "genre", "TRAP")) == [1, 2]

    def test_find_users_scoped_to_guild(self, db_engine):
        genre_service.add_tags(db_engine, GUILD + 1, 1, "genre", ["Trap"])
        assert genre_service.find_users(db_engine, GUILD, "genre", "Trap") == []

    def test_stats_counts_members(self, db_engine):
        genre_service.add_tags(db_engine, GUILD, 1, "genre", ["Trap", "House"])
        genre_service.add_tags(db_engine, GUILD, 2, "genre", ["Trap"])
        genre_service.add_tags(db_engine, GUILD, 2, "daw", ["Ableton"])
        stats = genre_service.tag_stats(db_engine, GUILD)
        assert stats["members"] == 2
        assert stats["top_genres"][0] == ["Trap", 2]
        assert stats["top_daws"] == [["Ableton", 1]]
