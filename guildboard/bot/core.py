"""
guildboard.bot.core — Bot instance & plugin loader
===================================================

:class:`GuildboardBot` is a ``commands.Bot`` that carries the shared
config (``bot.cfg``), the DB engine (``bot.engine``) and the plugin
registry.  Plugins are loaded in :meth:`setup_hook`, before the gateway
connection, so their HTTP routes exist as soon as the dashboard starts
serving.

Slash commands are synced in ``on_ready``: guild-scoped when
``DEV_GUILD_ID`` is set (instant), global otherwise.
"""

from __future__ import annotations

import logging
import os

import discord
from discord.ext import commands
from fastapi import FastAPI
from sqlalchemy import Engine

from guildboard.api.deps import get_current_user
from guildboard.bot.permissions import GuildPermissionChecker
from guildboard.config import GuildboardConfig
from guildboard.plugins.registry import PluginRegistry

logger = logging.getLogger(__name__)


class GuildboardBot(commands.Bot):
    """Bot subclass that owns the plugin registry.

    Parameters
    ----------
    cfg:
        The parsed :class:`GuildboardConfig` from ``config.yaml``.
    engine:
        SQLAlchemy engine shared by every plugin.
    app:
        The FastAPI app plugins mount their routers on.
    """

    def __init__(self, cfg: GuildboardConfig, engine: Engine, app: FastAPI) -> None:
        # Privileged intents (enable in the Developer Portal):
        #   MESSAGE_CONTENT: word filter and XP need the text
        #   GUILD_MEMBERS: member lookups for permissions and /gfind
        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True
        intents.voice_states = True
        intents.presences = False

        super().__init__(
            command_prefix=cfg.bot_prefix,
            intents=intents,
            description=cfg.dashboard_name,
        )

        self.cfg = cfg
        self.engine = engine
        self.app = app
        self.registry = PluginRegistry(cfg.plugins)
        self.permissions = GuildPermissionChecker(self, cfg.moderator_role_id)

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load every configured plugin; a broken one is logged and skipped."""
        await self.registry.load(self.app, self, get_current_user, self.permissions)

    async def on_ready(self) -> None:
        assert self.user is not None
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)
        logger.info("Serving %d guild(s)", len(self.guilds))

        try:
            dev_guild_id = os.getenv("DEV_GUILD_ID")
            if dev_guild_id:
                guild = discord.Object(id=int(dev_guild_id))
                self.tree.copy_global_to(guild=guild)
                synced = await self.tree.sync(guild=guild)
                logger.info("Synced %d commands to dev guild %s", len(synced), dev_guild_id)
            else:
                synced = await self.tree.sync()
                logger.info("Synced %d commands globally", len(synced))
        except discord.HTTPException:
            logger.exception("Slash-command sync failed")

    async def close(self) -> None:
        logger.info("Bot shutting down…")
        await super().close()
