"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import asyncio
import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of guildboard.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import discord  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from guildboard.database.models import Base  # noqa: E402

ADMIN_ID = 12345
OTHER_ID = 67890
GUILD_ID = 1000


def run_async(coro):
    """Run a coroutine to completion without pytest-asyncio."""
    return asyncio.run(coro)


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with every Guildboard table.

    StaticPool keeps one shared connection so ``run_db`` worker threads
    see the same in-memory database.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


def make_token(sub: int | str = ADMIN_ID, username: str = "FixtureAdmin") -> str:
    """A signed dashboard JWT.  Usable as a plain factory in tests."""
    from guildboard.api.deps import create_token

    return create_token(sub, username=username)


def auth(sub: int | str = ADMIN_ID) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(sub)}"}


async def allow_admin(user_id: int, guild_id: int) -> bool:
    """Permission check: only ADMIN_ID administers anything."""
    return user_id == ADMIN_ID


@pytest.fixture
def mock_bot(db_engine):
    """A bot stand-in carrying the real engine; nothing touches Discord."""
    bot = MagicMock()
    bot.engine = db_engine
    bot.cfg = MagicMock(event_sheet_csv_url=None)
    bot.add_cog = AsyncMock()
    bot.remove_cog = AsyncMock()
    bot.fetch_user = AsyncMock(side_effect=discord.NotFound(MagicMock(status=404, reason="Not Found"), "Unknown User"))
    bot.get_channel.return_value = None
    bot.get_guild.return_value = None
    bot.get_user.return_value = None
    bot.guilds = []
    bot.permissions = allow_admin
    return bot


@pytest.fixture
def app(mock_bot):
    """The dashboard app with every default plugin loaded onto ``mock_bot``."""
    from guildboard.api.deps import get_current_user
    from guildboard.api.main import create_app
    from guildboard.plugins.registry import PluginRegistry

    application = create_app("Test")
    mock_bot.registry = PluginRegistry()
    run_async(mock_bot.registry.load(application, mock_bot, get_current_user, allow_admin))
    application.state.bot = mock_bot
    return application


@pytest.fixture
def client(app):
    """FastAPI TestClient with raise_server_exceptions=False."""
    from fastapi.testclient import TestClient

    return TestClient(app, raise_server_exceptions=False)
