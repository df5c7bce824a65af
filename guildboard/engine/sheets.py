"""
guildboard.engine.sheets — Collaboration spreadsheet parsing
=============================================================

The event manager syncs a published spreadsheet exported as CSV.  Each row
describes one collaboration (a partner competition) with free-text date
columns.  This module turns the CSV into row dicts and derives the views the
slash commands and the dashboard show.
"""

from __future__ import annotations

import csv
import io
import math
from collections import Counter
from datetime import datetime
from typing import Any

# Date column → label shown to members
DATE_FIELDS: tuple[tuple[str, str], ...] = (
    ("Competition Begin", "Competition Start"),
    ("Competition End", "Competition End"),
    ("Voting Start", "Voting Begins"),
    ("Voting End", "Voting Ends"),
)

_DATE_FORMATS: tuple[str, ...] = (
    "%m/%d/%Y",
    "%m/%d/%y",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
)


def _clean(value: str | None) -> str:
    return (value or "").strip().replace('"', "")


def parse_csv(text: str) -> list[dict[str, str]]:
    """Parse a CSV export into row dicts keyed by the header line.

    Blank lines are skipped, cells are trimmed and stripped of quote
    characters, and short rows are padded with empty strings.
    """
    lines = [line for line in text.strip().splitlines() if line.strip()]
    if not lines:
        return []

    reader = csv.reader(io.StringIO("\n".join(lines)))
    headers = [_clean(h) for h in next(reader)]
    rows: list[dict[str, str]] = []
    for values in reader:
        cells = [_clean(v) for v in values]
        rows.append({
            header: cells[i] if i < len(cells) else ""
            for i, header in enumerate(headers)
        })
    return rows


def parse_date(value: str | None) -> datetime | None:
    """Best-effort parse of a spreadsheet date cell; ``None`` when unreadable."""
    value = _clean(value)
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
        return parsed.replace(tzinfo=None)
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


# ---------------------------------------------------------------------------
# Derived views
# ---------------------------------------------------------------------------
def upcoming_events(
    rows: list[dict[str, str]], now: datetime | None = None
) -> list[dict[str, Any]]:
    """Every future date across :data:`DATE_FIELDS`, soonest first.

    ``days_until`` is rounded up, so an event later today counts as 1.
    """
    now = now or datetime.now()
    upcoming: list[dict[str, Any]] = []
    for row in rows:
        for field, label in DATE_FIELDS:
            when = parse_date(row.get(field))
            if when is None or when <= now:
                continue
            upcoming.append({
                "collaboration": row.get("Collaborator", ""),
                "type": label,
                "date": when,
                "days_until": math.ceil((when - now).total_seconds() / 86400),
                "status": row.get("Status", ""),
            })
    upcoming.sort(key=lambda event: event["date"])
    return upcoming


def status_summary(rows: list[dict[str, str]]) -> dict[str, int]:
    """Count collaborations per ``Status`` value, in first-seen order."""
    return dict(Counter(row.get("Status", "") for row in rows))


def by_last_contact(rows: list[dict[str, str]]) -> list[dict[str, str]]:
    """Rows sorted by ``Last Contact``, most recent first; undated rows last."""
    oldest = datetime.min
    return sorted(
        rows,
        key=lambda row: parse_date(row.get("Last Contact")) or oldest,
        reverse=True,
    )


def find_collaboration(rows: list[dict[str, str]], name: str) -> dict[str, str] | None:
    """First row whose ``Collaborator`` contains *name* (case-insensitive)."""
    needle = name.strip().lower()
    if not needle:
        return None
    for row in rows:
        if needle in row.get("Collaborator", "").lower():
            return row
    return None
