"""
guildboard.services.embeds — Discord embed builders
====================================================

All embed construction lives here so plugins only supply data, with no
layout concerns.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import discord

from guildboard.constants import RANK_BADGES
from guildboard.engine.word_filter import truncate

BOARD_TITLES = {
    "overall": "Overall XP",
    "voice": "Voice Activity",
    "reactions": "Reactions",
}


# ---------------------------------------------------------------------------
# Leveling
# ---------------------------------------------------------------------------
def build_level_up_embed(
    display_name: str,
    avatar_url: str | None,
    new_level: int,
    old_level: int,
) -> discord.Embed:
    embed = discord.Embed(
        title="\U0001f389 Level Up!",
        description=f"**{display_name}** leveled up from **{old_level}** to **{new_level}**!",
        color=discord.Color.green(),
        timestamp=datetime.now(UTC),
    )
    if avatar_url:
        embed.set_thumbnail(url=avatar_url)
    return embed


def build_level_embed(
    display_name: str,
    avatar_url: str | None,
    record: dict[str, Any],
    progress: dict[str, int],
) -> discord.Embed:
    """The ``/level`` card: level, total XP, distance to the next level."""
    embed = discord.Embed(
        title=f"{display_name}'s Level",
        color=discord.Color.blurple(),
    )
    if avatar_url:
        embed.set_thumbnail(url=avatar_url)
    embed.add_field(name="\U0001f4ca Level", value=str(progress["level"]), inline=True)
    embed.add_field(name="⭐ Total XP", value=str(record["xp"]), inline=True)
    embed.add_field(name="\U0001f3af XP to Next Level", value=str(progress["xp_needed"]), inline=True)
    embed.add_field(
        name="\U0001f4c8 Progress",
        value=(
            f"{progress['xp_progress']}/{progress['xp_for_next_level']} "
            f"({progress['progress_percentage']}%)"
        ),
        inline=False,
    )
    reactions = record["reactions_given"] + record["reactions_received"]
    embed.set_footer(text=f"Voice: {record['voice_time']}min | Reactions: {reactions}")
    return embed


def _board_value(board: str, entry: dict[str, Any]) -> str:
    if board == "voice":
        return f"{entry['value']} minutes"
    if board == "reactions":
        return f"{entry['value']} reactions"
    return f"{entry['value']} XP (Level {entry['level']})"


def build_leaderboard_embed(board: str, entries: list[dict[str, Any]]) -> discord.Embed:
    """*entries* are ranked rows carrying a resolved ``name``."""
    lines = []
    for rank, entry in enumerate(entries, start=1):
        badge = RANK_BADGES[rank - 1] if rank <= len(RANK_BADGES) else "\U0001f4cd"
        lines.append(f"{badge} **{rank}.** {entry['name']} - {_board_value(board, entry)}")

    embed = discord.Embed(
        title=f"\U0001f3c6 {BOARD_TITLES.get(board, BOARD_TITLES['overall'])} Leaderboard",
        description="\n".join(lines),
        color=discord.Color.green(),
    )
    embed.set_footer(text=f"Showing top {len(entries)} users")
    return embed


# ---------------------------------------------------------------------------
# Genre discovery
# ---------------------------------------------------------------------------
def build_tag_log_embed(display_name: str, action: str, kind: str, tags: list[str]) -> discord.Embed:
    tag_list = ", ".join(f"**{t}**" for t in tags)
    preposition = "to" if action == "added" else "from"
    return discord.Embed(
        description=f"**{display_name}** {action} {tag_list} {preposition} their {kind}.",
        color=discord.Color(0x2ECC71),
        timestamp=datetime.now(UTC),
    )


def build_tags_embed(display_name: str, avatar_url: str | None, tags: dict[str, list[str]]) -> discord.Embed:
    embed = discord.Embed(color=discord.Color.blurple())
    embed.set_author(name=f"{display_name}'s Tags", icon_url=avatar_url)
    embed.add_field(
        name="\U0001f3b6 Genres",
        value=", ".join(tags["genres"]) or "None set.",
        inline=False,
    )
    embed.add_field(
        name="\U0001f4bb Software",
        value=", ".join(tags["daws"]) or "None set.",
        inline=False,
    )
    return embed


def build_tag_search_embed(kind: str, tag: str, mentions: list[str]) -> discord.Embed:
    return discord.Embed(
        title=f"Producers with {kind}: {tag}",
        description="\n".join(mentions) or f"No producers found with the **{tag}** tag.",
        color=discord.Color.blurple(),
    )


# ---------------------------------------------------------------------------
# Event manager
# ---------------------------------------------------------------------------
def build_upcoming_events_embed(events: list[dict[str, Any]]) -> discord.Embed:
    blocks = [
        f"**{e['collaboration']}** ({e['type']})\n"
        f"\U0001f4c6 {e['date']:%Y-%m-%d} ({e['days_until']} days)\n"
        f"\U0001f7e2 {e['status'] or 'N/A'}"
        for e in events[:10]
    ]
    return discord.Embed(
        title="\U0001f4c5 Upcoming Events",
        description="\n\n".join(blocks),
        color=discord.Color(0x7289DA),
    )


def build_competition_embed(row: dict[str, str]) -> discord.Embed:
    embed = discord.Embed(
        title=f"ℹ️ {row.get('Collaborator', '')}",
        color=discord.Color(0x00BFFF),
    )
    for field in ("Status", "Product", "Last Contact", "Notes"):
        embed.add_field(name=field, value=row.get(field) or "N/A", inline=False)
    return embed


def build_summary_embed(counts: dict[str, int]) -> discord.Embed:
    return discord.Embed(
        title="\U0001f4ca Competitions Summary",
        description="\n".join(f"**{status or 'N/A'}**: {n}" for status, n in counts.items()),
        color=discord.Color(0x00FF99),
    )


def build_last_contact_embed(rows: list[dict[str, str]]) -> discord.Embed:
    blocks = [
        f"**{r.get('Collaborator', '')}**\n"
        f"\U0001f7e2 {r.get('Status') or 'N/A'}\n"
        f"\U0001f4c6 {r.get('Last Contact') or 'N/A'}"
        for r in rows[:10]
    ]
    return discord.Embed(
        title="\U0001f550 Last Contact",
        description="\n\n".join(blocks),
        color=discord.Color(0xCCCCCC),
    )


# ---------------------------------------------------------------------------
# Word filter
# ---------------------------------------------------------------------------
def build_filter_log_embed(
    author_mention: str,
    author_tag: str,
    channel_mention: str,
    detected: list[str],
    original: str,
    censored: str,
    message_id: int,
) -> discord.Embed:
    """*original* and *censored* must already have mentions sanitised."""
    embed = discord.Embed(
        title="\U0001f6ab Message Filtered",
        color=discord.Color(0xFF6B6B),
        timestamp=datetime.now(UTC),
    )
    embed.add_field(name="User", value=f"{author_mention} ({author_tag})", inline=True)
    embed.add_field(name="Channel", value=channel_mention, inline=True)
    embed.add_field(
        name="Detected Words",
        value=", ".join(f"`{w}`" for w in detected),
        inline=False,
    )
    embed.add_field(name="Original Message (Sanitized)", value=truncate(original) or "\u200b", inline=False)
    embed.add_field(name="Censored Version", value=truncate(censored) or "\u200b", inline=False)
    embed.set_footer(text=f"Message ID: {message_id}")
    return embed
