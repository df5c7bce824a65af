"""
guildboard.services.genre_service — Genre & DAW tags
=====================================================

Members tag themselves with the genres they produce and the software
(DAWs) they use.  Tags are stored per guild and member in ``genre_tags``;
duplicates are collapsed case-insensitively, keeping the first spelling.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from guildboard.database.engine import get_session
from guildboard.database.models import GenreTags

logger = logging.getLogger(__name__)

# Slash-command subcommand → column
KINDS: dict[str, str] = {"genre": "genres", "daw": "daws"}
STATS_LIMIT = 10


def _field(kind: str) -> str:
    try:
        return KINDS[kind]
    except KeyError:
        raise ValueError(f"Unknown tag kind: {kind!r}") from None


def split_tags(raw: str) -> list[str]:
    """``"Trap, Lo-fi ,,DnB"`` → ``["Trap", "Lo-fi", "DnB"]``."""
    return [tag.strip() for tag in raw.split(",") if tag.strip()]


def merge_tags(existing: Iterable[str], incoming: Iterable[str]) -> list[str]:
    merged: list[str] = []
    seen: set[str] = set()
    for tag in [*existing, *incoming]:
        folded = tag.casefold()
        if folded not in seen:
            seen.add(folded)
            merged.append(tag)
    return merged


def get_tags(engine, guild_id: int, user_id: int) -> dict[str, list[str]]:
    with Session(engine) as session:
        row = session.get(GenreTags, (guild_id, user_id))
        if row is None:
            return {"genres": [], "daws": []}
        return {"genres": list(row.genres or []), "daws": list(row.daws or [])}


def add_tags(engine, guild_id: int, user_id: int, kind: str, tags: Iterable[str]) -> list[str]:
    """Merge *tags* into the member's *kind* list; returns the new list."""
    field = _field(kind)
    with get_session(engine) as session:
        row = session.get(GenreTags, (guild_id, user_id))
        if row is None:
            row = GenreTags(guild_id=guild_id, user_id=user_id, genres=[], daws=[])
            session.add(row)
        updated = merge_tags(getattr(row, field) or [], tags)
        setattr(row, field, updated)
        return updated


def remove_tag(engine, guild_id: int, user_id: int, kind: str, tag: str) -> bool:
    """Drop *tag* (case-insensitive).  ``False`` when the member didn't have it."""
    field = _field(kind)
    target = tag.strip().casefold()
    with get_session(engine) as session:
        row = session.get(GenreTags, (guild_id, user_id))
        if row is None:
            return False
        current = list(getattr(row, field) or [])
        kept = [t for t in current if t.casefold() != target]
        if len(kept) == len(current):
            return False
        setattr(row, field, kept)
        return True


def find_users(engine, guild_id: int, kind: str, tag: str) -> list[int]:
    """Member ids carrying *tag* (exact match, case-insensitive)."""
    field = _field(kind)
    target = tag.strip().casefold()
    with Session(engine) as session:
        rows = session.scalars(
            select(GenreTags).where(GenreTags.guild_id == guild_id)
        ).all()
        return [
            row.user_id for row in rows
            if any(t.casefold() == target for t in getattr(row, field) or [])
        ]


def tag_stats(engine, guild_id: int, limit: int = STATS_LIMIT) -> dict[str, Any]:
    """Most common genres and DAWs by number of members."""
    genres: Counter[str] = Counter()
    daws: Counter[str] = Counter()
    with Session(engine) as session:
        rows = session.scalars(
            select(GenreTags).where(GenreTags.guild_id == guild_id)
        ).all()
        for row in rows:
            genres.update(row.genres or [])
            daws.update(row.daws or [])
        members = len(rows)
    return {
        "members": members,
        "top_genres": [[name, count] for name, count in genres.most_common(limit)],
        "top_daws": [[name, count] for name, count in daws.most_common(limit)],
    }
