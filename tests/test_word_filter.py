"""
tests/test_word_filter.py — Blocked-word detection and the filter listener
===========================================================================
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

from conftest import GUILD_ID, run_async

from guildboard.engine.word_filter import (
    CENSOR_MARK,
    ZERO_WIDTH_SPACE,
    censor,
    detect_blocked_words,
    sanitize_mentions,
    truncate,
)


class TestDetection:
    def test_whole_word_case_insensitive(self):
        assert detect_blocked_words("Foo!", ["foo"]) == ["foo"]

    def test_substring_does_not_match(self):
        assert detect_blocked_words("foobar", ["foo"]) == []

    def test_regex_metacharacters_are_literal(self):
        assert detect_blocked_words("what a.b here", ["a.b"]) == ["a.b"]
        assert detect_blocked_words("what axb here", ["a.b"]) == []

    def test_terms_with_punctuation_edges(self):
        assert detect_blocked_words("I love c++ so much", ["c++"]) == ["c++"]
        assert detect_blocked_words("ask #help now", ["#help"]) == ["#help"]
        assert detect_blocked_words("abc++ is fine", ["c++"]) == []
        assert censor("C++ rules", ["c++"]) == f"{CENSOR_MARK} rules"

    def test_multiple_terms_in_list_order(self):
        assert detect_blocked_words("BAR and foo", ["foo", "bar", "baz"]) == ["foo", "bar"]

    def test_empty_terms_ignored(self):
        assert detect_blocked_words("anything", ["", "x"]) == []


class TestCensoring:
    def test_censor_replaces_matches(self):
        assert censor("Foo said foo", ["foo"]) == f"{CENSOR_MARK} said {CENSOR_MARK}"

    def test_sanitize_everyone_and_user_mentions(self):
        out = sanitize_mentions("@everyone hi <@123>")
        assert "@everyone" not in out
        assert out.startswith("@" + ZERO_WIDTH_SPACE)
        assert f"<@{ZERO_WIDTH_SPACE}123>" in out

    def test_sanitize_channel_mention(self):
        assert sanitize_mentions("<#42>") == f"<#{ZERO_WIDTH_SPACE}42>"

    def test_sanitize_is_idempotent(self):
        once = sanitize_mentions("@here")
        assert sanitize_mentions(once) == once

    def test_truncate(self):
        assert truncate("x" * 1005) == "x" * 1000 + "..."
        assert truncate("short") == "short"


class TestFilterListener:
    """The on_message pipeline with Discord objects mocked out."""

    def _plugin(self, app, mock_bot):
        return app.state.bot.registry.get("wordfilter")

    def _message(self, content: str):
        message = MagicMock()
        message.id = 555
        message.content = content
        message.author.bot = False
        message.author.mention = "<@1>"
        message.guild.id = GUILD_ID
        message.delete = AsyncMock()
        message.channel.send = AsyncMock()
        return message

    def test_matching_message_deleted_and_echoed(self, app, mock_bot):
        plugin = self._plugin(app, mock_bot)
        run_async(plugin.save_settings(GUILD_ID, {
            "enabled": True, "log_channel_id": None, "blocked_words": ["foo"],
        }))
        message = self._message("well Foo! @everyone")

        run_async(plugin.on_message(message))

        message.delete.assert_awaited_once()
        notice = message.channel.send.await_args.args[0]
        assert notice.startswith("<@1>, your message contained blocked words and was removed:")
        assert CENSOR_MARK in notice
        assert "@everyone" not in notice

    def test_log_embed_sent_to_log_channel(self, app, mock_bot):
        plugin = self._plugin(app, mock_bot)
        log_channel = MagicMock()
        log_channel.send = AsyncMock()
        mock_bot.get_channel.return_value = log_channel
        run_async(plugin.save_settings(GUILD_ID, {
            "enabled": True, "log_channel_id": "777", "blocked_words": ["foo"],
        }))

        run_async(plugin.on_message(self._message("foo")))

        mock_bot.get_channel.assert_called_with(777)
        embed = log_channel.send.await_args.kwargs["embed"]
        assert embed.title.endswith("Message Filtered")

    def test_disabled_filter_ignores_message(self, app, mock_bot):
        plugin = self._plugin(app, mock_bot)
        run_async(plugin.save_settings(GUILD_ID, {
            "enabled": False, "log_channel_id": None, "blocked_words": ["foo"],
        }))
        message = self._message("foo")
        run_async(plugin.on_message(message))
        message.delete.assert_not_awaited()

    def test_clean_message_untouched(self, app, mock_bot):
        plugin = self._plugin(app, mock_bot)
        run_async(plugin.save_settings(GUILD_ID, {
            "enabled": True, "log_channel_id": None, "blocked_words": ["foo"],
        }))
        message = self._message("foobar is fine")
        run_async(plugin.on_message(message))
        message.delete.assert_not_awaited()

    def test_bot_authors_ignored(self, app, mock_bot):
        plugin = self._plugin(app, mock_bot)
        message = self._message("foo")
        message.author.bot = True
        run_async(plugin.on_message(message))
        message.delete.assert_not_awaited()
