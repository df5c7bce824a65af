"""
guildboard.engine.conversion — Migration converters
====================================================

Maps exports from external bots onto Guildboard's own fields:

* **Arcane** rows ``{"userId", "level", "xp", "rank"?}`` become leveling XP.
* **YAGPDB** rows ``{"userId", "reputation", "given"?, "received"?}``
  become *legacy* reputation.

Every conversion is a fixed multiplier followed by ``floor``.  Rates are
overridable per guild; :func:`merge_rates` fills anything missing from
:data:`DEFAULT_RATES`.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Any

from guildboard.constants import level_for_xp

DEFAULT_RATES: dict[str, float] = {
    "arcane_xp_to_new": 0.25,
    "arcane_level_to_new": 0.33,
    "yagpdb_rep_to_new": 1.0,
    "yagpdb_rep_to_legacy": 1.0,
}

SYSTEMS: tuple[str, ...] = ("arcane", "yagpdb")


def merge_rates(overrides: Mapping[str, Any] | None) -> dict[str, float]:
    """Return :data:`DEFAULT_RATES` updated with any numeric *overrides*.

    Unknown keys are ignored.

    Raises
    ------
    ValueError
        If an override is not a non-negative number.
    """
    rates = dict(DEFAULT_RATES)
    for key, value in (overrides or {}).items():
        if key not in rates:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            raise ValueError(f"Conversion rate {key!r} must be a non-negative number")
        rates[key] = float(value)
    return rates


def as_number(value: Any) -> float | None:
    """Numeric value of an export field.

    Exports arrive as JSON, so numbers are sometimes strings (``"22500"``).
    Returns ``None`` for missing, blank or non-numeric values.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return float(value)


def _fields_are_numeric(row: Mapping[str, Any], *fields: str) -> bool:
    """Absent fields are fine; present ones must parse as numbers."""
    return all(
        row.get(field) in (None, "") or as_number(row.get(field)) is not None
        for field in fields
    )


def row_user_id(row: Mapping[str, Any]) -> str | None:
    """The member id of an export row (``userId`` or ``user_id``).

    ``None`` unless the id is a plain run of digits.
    """
    value = row.get("userId", row.get("user_id"))
    if value is None or isinstance(value, bool):
        return None
    value = str(value).strip()
    return value if value.isdigit() else None


# ---------------------------------------------------------------------------
# Arcane
# ---------------------------------------------------------------------------
def convert_arcane(xp: Any, rates: Mapping[str, float] = DEFAULT_RATES) -> tuple[int, int]:
    """Convert Arcane *xp* to ``(new_xp, new_level)``."""
    new_xp = math.floor((as_number(xp) or 0) * rates["arcane_xp_to_new"])
    return new_xp, level_for_xp(new_xp)


def arcane_row_is_valid(row: Mapping[str, Any]) -> bool:
    """Rows without a member id, with a non-numeric level or xp, or with
    neither level nor xp, are skipped."""
    return (
        row_user_id(row) is not None
        and _fields_are_numeric(row, "level", "xp")
        and bool(as_number(row.get("level")) or as_number(row.get("xp")))
    )


def preview_arcane(
    rows: Iterable[Mapping[str, Any]], rates: Mapping[str, float] = DEFAULT_RATES
) -> list[dict[str, Any]]:
    preview = []
    for row in rows:
        new_xp, new_level = convert_arcane(row.get("xp"), rates)
        preview.append({
            "user_id": row_user_id(row),
            "original_level": row.get("level"),
            "original_xp": row.get("xp"),
            "new_level": new_level,
            "new_xp": new_xp,
        })
    return preview


# ---------------------------------------------------------------------------
# YAGPDB
# ---------------------------------------------------------------------------
def convert_yagpdb(reputation: Any, rates: Mapping[str, float] = DEFAULT_RATES) -> int:
    """Convert YAGPDB *reputation* to legacy reputation points."""
    return math.floor((as_number(reputation) or 0) * rates["yagpdb_rep_to_legacy"])


def convert_yagpdb_count(count: Any, rates: Mapping[str, float] = DEFAULT_RATES) -> int:
    """Convert a YAGPDB given/received counter."""
    return math.floor((as_number(count) or 0) * rates["yagpdb_rep_to_new"])


def yagpdb_row_is_valid(row: Mapping[str, Any]) -> bool:
    return (
        row_user_id(row) is not None
        and _fields_are_numeric(row, "reputation", "given", "received")
        and bool(as_number(row.get("reputation")))
    )


def preview_yagpdb(
    rows: Iterable[Mapping[str, Any]], rates: Mapping[str, float] = DEFAULT_RATES
) -> list[dict[str, Any]]:
    return [
        {
            "user_id": row_user_id(row),
            "original_reputation": row.get("reputation"),
            "new_legacy_rep": convert_yagpdb(row.get("reputation"), rates),
        }
        for row in rows
    ]
