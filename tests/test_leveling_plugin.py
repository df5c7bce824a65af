"""
tests/test_leveling_plugin.py — XP listeners, cooldowns and voice sweeps
=========================================================================

Drives the leveling Cog's listener bodies directly with mocked Discord
objects; the database underneath is real (in-memory SQLite).
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from conftest import GUILD_ID, run_async

from guildboard.services import backup_service, leveling_service

ALL_SOURCES = {
    "xp_sources": {"messages": True, "voice": True, "reactions": True},
    "level_up_channel_id": None,
    "xp_multiplier": 1.0,
}


@pytest.fixture
def plugin(app):
    return app.state.bot.registry.get("leveling")


def _enable(plugin, **overrides):
    run_async(plugin.save_settings(GUILD_ID, {**ALL_SOURCES, **overrides}))


def _message(author_id: int = 1):
    message = MagicMock()
    message.author.id = author_id
    message.author.bot = False
    message.guild.id = GUILD_ID
    return message


def _xp(db_engine, user_id: int) -> int:
    record = leveling_service.get_record(db_engine, GUILD_ID, user_id)
    return record["xp"] if record else 0


class TestMessageXp:
    def test_no_settings_means_no_xp(self, plugin, db_engine):
        run_async(plugin.on_message(_message()))
        assert _xp(db_engine, 1) == 0

    def test_award_within_range(self, plugin, db_engine):
        _enable(plugin)
        run_async(plugin.on_message(_message()))
        assert 15 <= _xp(db_engine, 1) <= 25

    def test_cooldown_blocks_second_message(self, plugin, db_engine):
        _enable(plugin)
        with patch("guildboard.plugins.leveling.random.randint", return_value=20):
            run_async(plugin.on_message(_message()))
            run_async(plugin.on_message(_message()))
        assert _xp(db_engine, 1) == 20

    def test_cooldown_expires(self, plugin, db_engine):
        _enable(plugin)
        with patch("guildboard.plugins.leveling.random.randint", return_value=20):
            run_async(plugin.on_message(_message()))
            plugin._cooldowns[(GUILD_ID, 1)] -= 61
            run_async(plugin.on_message(_message()))
        assert _xp(db_engine, 1) == 40

    def test_multiplier_floors(self, plugin, db_engine):
        _enable(plugin, xp_multiplier=1.5)
        with patch("guildboard.plugins.leveling.random.randint", return_value=15):
            run_async(plugin.on_message(_message()))
        assert _xp(db_engine, 1) == 22

    def test_disabled_source(self, plugin, db_engine):
        _enable(plugin, xp_sources={"messages": False, "voice": True, "reactions": True})
        run_async(plugin.on_message(_message()))
        assert _xp(db_engine, 1) == 0

    def test_bots_ignored(self, plugin, db_engine):
        _enable(plugin)
        message = _message()
        message.author.bot = True
        run_async(plugin.on_message(message))
        assert _xp(db_engine, 1) == 0


class TestLevelUp:
    def test_level_up_dispatches_event_and_announces(self, plugin, mock_bot):
        channel = MagicMock()
        channel.send = AsyncMock()
        mock_bot.get_channel.return_value = channel
        _enable(plugin, level_up_channel_id="321")

        guild = MagicMock()
        member = MagicMock()
        member.display_name = "Producer"
        member.display_avatar.url = "https://cdn.example/a.png"
        guild.get_member.return_value = member

        change = run_async(plugin.award(guild, GUILD_ID, 1, 100))

        assert change.leveled_up
        mock_bot.dispatch.assert_called_with("level_up", GUILD_ID, 1, 1, 0)
        channel.send.assert_awaited_once()

    def test_no_announcement_without_channel(self, plugin, mock_bot):
        _enable(plugin)
        run_async(plugin.award(None, GUILD_ID, 1, 100))
        mock_bot.dispatch.assert_called_once()


class TestVoiceXp:
    def _voice(self, channel):
        state = MagicMock()
        state.channel = channel
        return state

    def _member(self):
        member = MagicMock()
        member.id = 1
        member.bot = False
        member.guild.id = GUILD_ID
        return member

    def test_sweep_awards_full_minutes_and_advances_start(self, plugin, db_engine):
        _enable(plugin)
        plugin._voice_sessions[(GUILD_ID, 1)] = 1000.0

        run_async(plugin.sweep_voice_sessions(now=1000.0 + 150))

        record = leveling_service.get_record(db_engine, GUILD_ID, 1)
        assert record["xp"] == 20
        assert record["voice_time"] == 2
        assert plugin._voice_sessions[(GUILD_ID, 1)] == 1120.0

    def test_sweep_skips_partial_minute(self, plugin, db_engine):
        _enable(plugin)
        plugin._voice_sessions[(GUILD_ID, 1)] = 1000.0
        run_async(plugin.sweep_voice_sessions(now=1030.0))
        assert _xp(db_engine, 1) == 0

    def test_join_then_leave_settles_remainder(self, plugin, db_engine):
        _enable(plugin)
        member = self._member()
        run_async(plugin.on_voice_state_update(member, self._voice(None), self._voice(MagicMock())))
        plugin._voice_sessions[(GUILD_ID, 1)] -= 185
        run_async(plugin.on_voice_state_update(member, self._voice(MagicMock()), self._voice(None)))
        assert _xp(db_engine, 1) == 30
        assert (GUILD_ID, 1) not in plugin._voice_sessions

    def test_join_ignored_when_voice_disabled(self, plugin):
        _enable(plugin, xp_sources={"messages": True, "voice": False, "reactions": True})
        run_async(plugin.on_voice_state_update(
            self._member(), self._voice(None), self._voice(MagicMock())
        ))
        assert plugin._voice_sessions == {}


class TestReactionXp:
    def _payload(self, user_id: int, author_id: int | None):
        payload = MagicMock()
        payload.guild_id = GUILD_ID
        payload.user_id = user_id
        payload.member.bot = False
        payload.message_author_id = author_id
        return payload

    def test_reactor_and_author_rewarded(self, plugin, db_engine, mock_bot):
        _enable(plugin)
        guild = MagicMock()
        guild.get_member.return_value.bot = False
        mock_bot.get_guild.return_value = guild

        run_async(plugin.on_raw_reaction_add(self._payload(1, 2)))

        assert _xp(db_engine, 1) == 5
        assert _xp(db_engine, 2) == 3
        assert leveling_service.get_record(db_engine, GUILD_ID, 2)["reactions_received"] == 1

    def test_self_reaction_gives_no_received_xp(self, plugin, db_engine):
        _enable(plugin)
        run_async(plugin.on_raw_reaction_add(self._payload(1, 1)))
        record = leveling_service.get_record(db_engine, GUILD_ID, 1)
        assert record["xp"] == 5
        assert record["reactions_received"] == 0


class TestPeriodicBackup:
    def _backups(self, db_engine):
        return backup_service.list_backups(db_engine, GUILD_ID)

    def test_first_iteration_skipped(self, plugin, db_engine):
        leveling_service.add_xp(db_engine, GUILD_ID, 1, 50)
        run_async(plugin.periodic_backup_loop.coro(plugin))
        assert self._backups(db_engine) == []

    def test_later_iterations_back_up(self, plugin, db_engine):
        leveling_service.add_xp(db_engine, GUILD_ID, 1, 50)
        plugin.periodic_backup_loop._current_loop = 1
        run_async(plugin.periodic_backup_loop.coro(plugin))
        backups = self._backups(db_engine)
        assert [b["kind"] for b in backups] == ["periodic"]
