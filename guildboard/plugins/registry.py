"""
guildboard.plugins.registry — Plugin loading & aggregation
===========================================================

Plugins are listed explicitly as ``"module:Class"`` strings, either the
built-in :data:`DEFAULT_PLUGINS` or the ``plugins:`` list in
``config.yaml``.  Loading never aborts: a plugin that fails to import,
construct or register is logged and left out, and every other plugin
still loads.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Callable, Iterable
from typing import Any

from discord.ext import commands
from fastapi import FastAPI

from guildboard.plugins.base import DashboardPlugin, PermissionCheck

logger = logging.getLogger(__name__)

DEFAULT_PLUGINS: tuple[str, ...] = (
    "guildboard.plugins.leveling:LevelingPlugin",
    "guildboard.plugins.migration:MigrationPlugin",
    "guildboard.plugins.genre_discovery:GenreDiscoveryPlugin",
    "guildboard.plugins.event_manager:EventManagerPlugin",
    "guildboard.plugins.message_sender:MessageSenderPlugin",
    "guildboard.plugins.word_filter:WordFilterPlugin",
)


def resolve(spec: str) -> Any:
    """Import ``"package.module:Attr"`` and return ``Attr``."""
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Plugin spec must look like 'module:Class', got {spec!r}")
    module = importlib.import_module(module_name)
    return getattr(module, attr)


class PluginRegistry:
    """Holds the loaded plugin instances in load order."""

    def __init__(self, specs: Iterable[str] | None = None) -> None:
        self.specs: tuple[str, ...] = tuple(specs) if specs else DEFAULT_PLUGINS
        self.plugins: list[DashboardPlugin] = []

    async def load(
        self,
        app: FastAPI,
        bot: commands.Bot,
        auth_guard: Callable[..., Any],
        permissions: PermissionCheck,
    ) -> list[DashboardPlugin]:
        for spec in self.specs:
            try:
                cls = resolve(spec)
                if not (isinstance(cls, type) and issubclass(cls, DashboardPlugin)):
                    logger.warning("Skipping %s: not a DashboardPlugin subclass", spec)
                    continue
                plugin = cls(app, bot, auth_guard, permissions)
                await bot.add_cog(plugin)
                try:
                    app.include_router(plugin.router)
                except Exception:
                    await bot.remove_cog(plugin.qualified_name)
                    raise
            except Exception:
                logger.exception("Failed to load plugin %s", spec)
                continue
            self.plugins.append(plugin)
            logger.info("Loaded plugin: %s v%s", plugin.plugin_name, plugin.version)

        logger.info("%d of %d plugins loaded", len(self.plugins), len(self.specs))
        return self.plugins

    def get(self, slug: str) -> DashboardPlugin | None:
        return next((p for p in self.plugins if p.slug == slug), None)

    # -----------------------------------------------------------------------
    # Aggregates
    # -----------------------------------------------------------------------
    def info(self) -> list[dict[str, Any]]:
        return [plugin.info() for plugin in self.plugins]

    def components(self) -> list[dict[str, Any]]:
        components = []
        for plugin in self.plugins:
            try:
                components.append(plugin.frontend_component())
            except Exception:
                logger.exception("Frontend component failed for plugin %s", plugin.plugin_name)
        return components

    def slash_commands(self) -> list[dict[str, str]]:
        collected: list[dict[str, str]] = []
        for plugin in self.plugins:
            try:
                collected.extend(plugin.slash_commands())
            except Exception:
                logger.exception("Slash-command listing failed for plugin %s", plugin.plugin_name)
        return collected
