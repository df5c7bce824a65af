"""
guildboard.plugins.base — Dashboard plugin contract
====================================================

A plugin is a discord.py :class:`~discord.ext.commands.Cog` that also
contributes a FastAPI router.  It is constructed with four collaborators:

``app``
    The FastAPI application.  The plugin builds its router at construction;
    the registry mounts it once the Cog has been added to the bot.
``bot``
    The bot client.  Plugins reach the DB engine through ``bot.engine``.
``auth_guard``
    A FastAPI dependency returning the authenticated user's JWT payload
    (raises 401 otherwise).  Applied to every plugin route.
``permissions``
    An async callable ``(user_id, guild_id) -> bool`` answering "may this
    user administer this guild?".

Listeners (``@commands.Cog.listener()``), slash commands
(``@app_commands.command``) and background loops (``tasks.loop``) are
declared on the subclass exactly as in any other Cog; the registry adds
the plugin to the bot with ``bot.add_cog`` and only then mounts
:attr:`DashboardPlugin.router`.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from discord.ext import commands
from fastapi import APIRouter, Depends, FastAPI, HTTPException, status

from guildboard.database.engine import run_db
from guildboard.services import store

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

PermissionCheck = Callable[[int, int], Awaitable[bool]]


class DashboardPlugin(commands.Cog):
    """Base class for every Guildboard feature plugin."""

    # Metadata reported by ``GET /api/plugins``
    plugin_name: str = "Unnamed Plugin"
    plugin_description: str = ""
    version: str = "1.0.0"
    enabled: bool = True

    # URL segment under /api/plugins/ and the settings namespace prefix
    slug: str = ""

    # Dashboard contribution
    icon: str = "\U0001f9e9"
    component_html: str = ""
    component_script: str = ""
    nav_icon: str | None = None

    # Returned by GET settings when a guild has saved nothing
    default_settings: dict[str, Any] = {}

    def __init__(
        self,
        app: FastAPI,
        bot: commands.Bot,
        auth_guard: Callable[..., Any],
        permissions: PermissionCheck,
    ) -> None:
        self.app = app
        self.bot = bot
        self.auth_guard = auth_guard
        self.permissions = permissions

        self.router = APIRouter(
            prefix=f"/api/plugins/{self.slug}",
            tags=[self.slug],
            dependencies=[Depends(auth_guard)],
        )
        if self.default_settings:
            self._add_reset_route(self.router)
        self.build_router(self.router)

    def _add_reset_route(self, router: APIRouter) -> None:
        @router.delete("/settings/{guild_id}")
        async def delete_settings(guild_id: int, user: dict = Depends(self.auth_guard)):
            """Forget the guild's saved settings; reads fall back to the defaults."""
            await self.require_admin(user, guild_id)
            removed = await self.reset_settings(guild_id)
            logger.info(
                "User %s reset %s settings for guild %s", user.get("sub"), self.slug, guild_id
            )
            return {"success": True, "reset": removed, "settings": copy.deepcopy(self.default_settings)}

    @property
    def engine(self) -> Engine:
        return self.bot.engine

    # -----------------------------------------------------------------------
    # Hooks for subclasses
    # -----------------------------------------------------------------------
    def build_router(self, router: APIRouter) -> None:
        """Register HTTP handlers on *router* (prefix already applied)."""

    def frontend_component(self) -> dict[str, Any]:
        """UI descriptor consumed by the dashboard shell."""
        page_id = self.slug
        return {
            "id": f"{self.slug}-plugin",
            "name": self.plugin_name,
            "description": self.plugin_description,
            "icon": self.icon,
            "html": self.component_html,
            "script": self.component_script,
            "nav": (
                {
                    "page_id": page_id,
                    "container_id": f"{page_id}-container",
                    "icon": self.nav_icon,
                }
                if self.nav_icon
                else None
            ),
        }

    def slash_commands(self) -> list[dict[str, str]]:
        return [
            {
                "plugin": self.plugin_name,
                "name": cmd.name,
                "description": getattr(cmd, "description", ""),
            }
            for cmd in self.get_app_commands()
        ]

    def info(self) -> dict[str, Any]:
        return {
            "name": self.plugin_name,
            "description": self.plugin_description,
            "version": self.version,
            "enabled": self.enabled,
        }

    # -----------------------------------------------------------------------
    # Shared helpers
    # -----------------------------------------------------------------------
    async def require_admin(self, user: dict, guild_id: int) -> None:
        """Raise 403 unless the JWT subject administers *guild_id*."""
        try:
            user_id = int(user["sub"])
        except (KeyError, TypeError, ValueError):
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token subject")
        if not await self.permissions(user_id, guild_id):
            raise HTTPException(status.HTTP_403_FORBIDDEN, "Insufficient permissions")

    @property
    def settings_namespace(self) -> str:
        return f"{self.slug}.settings"

    async def load_settings(self, guild_id: int) -> dict[str, Any] | None:
        """The guild's saved settings, or ``None`` when nothing (valid) is saved."""
        doc = await run_db(store.load_document, self.engine, self.settings_namespace, guild_id)
        return doc if isinstance(doc, dict) else None

    async def settings_or_default(self, guild_id: int) -> dict[str, Any]:
        saved = await self.load_settings(guild_id)
        if saved is None:
            return copy.deepcopy(self.default_settings)
        return {**copy.deepcopy(self.default_settings), **saved}

    async def save_settings(self, guild_id: int, settings: dict[str, Any]) -> None:
        await run_db(store.save_document, self.engine, self.settings_namespace, guild_id, settings)

    async def reset_settings(self, guild_id: int) -> bool:
        """Delete the guild's saved settings.  ``False`` when there were none."""
        return await run_db(store.delete_document, self.engine, self.settings_namespace, guild_id)

