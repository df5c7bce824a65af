"""
guildboard.plugins.migration — Import from Arcane and YAGPDB
=============================================================

Dashboard-only plugin (no listeners or slash commands).  Admins paste an
export, preview the conversion, execute it, and can roll the latest run
back.  Conversion rates are stored per guild.
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from guildboard.database.engine import run_db
from guildboard.plugins.base import DashboardPlugin
from guildboard.services import migration_service

logger = logging.getLogger(__name__)

System = Literal["arcane", "yagpdb"]


class MigrationRequest(BaseModel):
    guild_id: int
    type: System
    data: list[dict[str, Any]] = Field(default_factory=list)


class RatesRequest(BaseModel):
    rates: dict[str, float]


class RollbackRequest(BaseModel):
    guild_id: int
    type: System


class MigrationPlugin(DashboardPlugin, name="Migration"):
    """Moves XP and reputation over from other bots."""

    plugin_name = "Migration Tools"
    plugin_description = "Migrate XP/levels from Arcane and reputation from YAGPDB"
    slug = "migration"
    icon = "\U0001f504"
    nav_icon = "\U0001f504"
    component_html = '<div id="migration-container" class="plugin-container"></div>'
    component_script = "window.guildboard?.mount('migration');"

    def build_router(self, router: APIRouter) -> None:
        guard = self.auth_guard

        @router.get("/status/{guild_id}")
        async def get_status(guild_id: int, user: dict = Depends(guard)):
            await self.require_admin(user, guild_id)
            return await run_db(migration_service.get_status, self.engine, guild_id)

        @router.post("/preview")
        async def preview(body: MigrationRequest, user: dict = Depends(guard)):
            await self.require_admin(user, body.guild_id)
            rows = await run_db(
                migration_service.preview, self.engine, body.guild_id, body.type, body.data
            )
            return {"preview": rows}

        @router.post("/execute")
        async def execute(body: MigrationRequest, user: dict = Depends(guard)):
            await self.require_admin(user, body.guild_id)
            logger.info(
                "User %s started %s migration for guild %s (%d rows)",
                user.get("sub"), body.type, body.guild_id, len(body.data),
            )
            return await run_db(
                migration_service.execute, self.engine, body.guild_id, body.type, body.data
            )

        @router.get("/rates/{guild_id}")
        async def get_rates(guild_id: int, user: dict = Depends(guard)):
            await self.require_admin(user, guild_id)
            return await run_db(migration_service.get_rates, self.engine, guild_id)

        @router.post("/rates/{guild_id}")
        async def update_rates(guild_id: int, body: RatesRequest, user: dict = Depends(guard)):
            await self.require_admin(user, guild_id)
            try:
                rates = await run_db(
                    migration_service.save_rates, self.engine, guild_id, body.rates
                )
            except ValueError as exc:
                raise HTTPException(status.HTTP_400_BAD_REQUEST, str(exc))
            return {"success": True, "rates": rates}

        @router.post("/rollback")
        async def rollback(body: RollbackRequest, user: dict = Depends(guard)):
            await self.require_admin(user, body.guild_id)
            try:
                return await run_db(
                    migration_service.rollback, self.engine, body.guild_id, body.type
                )
            except migration_service.MigrationNotFoundError:
                raise HTTPException(status.HTTP_404_NOT_FOUND, "No backup found for rollback")
