"""
guildboard.config — YAML Configuration Loader
==============================================

Reads ``config.yaml`` for **infrastructure-only** settings (dashboard
identity, bind address, moderator role, which plugins to load).  Secrets
(bot token, JWT secret, database URL) come from ``.env``.  Everything a guild
admin can change lives in the database and is edited from the dashboard.

Usage::

    from guildboard.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.dashboard_name)    # "Arcane Producers"
    print(cfg.dashboard_port)    # 3000
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object: infrastructure and identity only.
# Per-guild plugin settings live in the ``plugin_documents`` table.
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class GuildboardConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    dashboard_name: str

    # Discord
    bot_prefix: str

    # Dashboard
    dashboard_host: str
    dashboard_port: int

    # Optional
    moderator_role_id: int | None = None  # Grants dashboard access besides Administrator
    event_sheet_csv_url: str | None = None  # Default sheet for the event manager
    plugins: tuple[str, ...] | None = None  # Plugin specs to load; None = all built-ins


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> GuildboardConfig:
    """Read *path* and return a :class:`GuildboardConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example to config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    plugins = raw.get("plugins")
    return GuildboardConfig(
        dashboard_name=raw["dashboard_name"],
        bot_prefix=raw.get("bot_prefix", "!"),
        dashboard_host=raw.get("dashboard_host", "127.0.0.1"),
        dashboard_port=int(raw.get("dashboard_port", 3000)),
        moderator_role_id=(
            int(raw["moderator_role_id"]) if raw.get("moderator_role_id") else None
        ),
        event_sheet_csv_url=raw.get("event_sheet_csv_url") or None,
        plugins=tuple(plugins) if plugins else None,
    )
