"""
guildboard.engine.word_filter — Blocked-word detection
=======================================================

Whole-word, case-insensitive matching of a guild's blocked terms, plus the
helpers that build the censored echo shown after a message is removed.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

CENSOR_MARK = "\u274c"  # cross mark
ZERO_WIDTH_SPACE = "\u200b"

_CHANNEL_MENTION = re.compile(r"<#(\d+)>")
_BARE_AT = re.compile("@(?!" + ZERO_WIDTH_SPACE + ")")


def normalize_word(word: str) -> str:
    return word.strip().lower()


def _term_pattern(word: str) -> re.Pattern[str]:
    # Terms may begin or end with punctuation ("c++"), where \b never matches.
    return re.compile(rf"(?<!\w){re.escape(word)}(?!\w)", re.IGNORECASE)


def detect_blocked_words(content: str, blocked_words: Iterable[str]) -> list[str]:
    """Blocked terms that occur in *content* as whole words, in list order.

    >>> detect_blocked_words("Foo!", ["foo"])
    ['foo']
    >>> detect_blocked_words("foobar", ["foo"])
    []
    """
    return [
        word for word in blocked_words
        if word and _term_pattern(word).search(content)
    ]


def censor(content: str, words: Iterable[str]) -> str:
    """Replace every whole-word occurrence of *words* with :data:`CENSOR_MARK`."""
    for word in words:
        content = _term_pattern(word).sub(CENSOR_MARK, content)
    return content


def sanitize_mentions(content: str) -> str:
    """Neutralise user, role, channel, @everyone and @here mentions.

    A zero-width space after ``@`` (or ``#`` in channel mentions) keeps the
    text readable while stopping Discord from resolving it into a ping.
    """
    content = _CHANNEL_MENTION.sub(rf"<#{ZERO_WIDTH_SPACE}\1>", content)
    return _BARE_AT.sub("@" + ZERO_WIDTH_SPACE, content)


def truncate(text: str, limit: int = 1000) -> str:
    return text if len(text) <= limit else text[:limit] + "..."
