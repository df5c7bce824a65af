"""
Guildboard — A Plugin-Driven Discord Community Dashboard
=========================================================
One process, two faces: a Discord bot and a web admin API.  Independent
feature plugins (leveling, migration, genre tags, event sync, message
sending, word filtering) are registered against the shared bot client and
FastAPI app, each owning its own state and request handlers.

Package layout::

    guildboard/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Leveling formula + XP rates
    ├── __main__.py        # Boots bot + dashboard on one event loop
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # ORM models (documents, XP, reputation, tags…)
    ├── engine/
    │   ├── leveling.py    # Progress + leaderboard ranking
    │   ├── conversion.py  # Arcane / YAGPDB migration converters
    │   ├── sheets.py      # Spreadsheet CSV parsing + event views
    │   └── word_filter.py # Blocked-word detection + censoring
    ├── services/          # Sync DB functions (run through run_db)
    ├── plugins/
    │   ├── base.py        # DashboardPlugin Cog base + descriptors
    │   ├── registry.py    # Explicit plugin list + loader
    │   └── *.py           # The six feature plugins
    ├── bot/
    │   ├── core.py        # Bot subclass, plugin loading, command sync
    │   └── permissions.py # "Is this member a guild admin?" check
    └── api/
        ├── main.py        # FastAPI app factory + core dashboard routes
        └── deps.py        # JWT auth guard + shared dependencies
"""

__version__ = "0.1.0"
