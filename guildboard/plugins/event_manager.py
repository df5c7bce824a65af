"""
guildboard.plugins.event_manager — Partner competitions from a spreadsheet
===========================================================================

Syncs a published collaboration spreadsheet (CSV export) and answers four
slash commands from the last synced copy:

- /upcomingevents      — future competition and voting dates, soonest first
- /competitionstatus   — details for one collaborator (substring match)
- /competitionsummary  — collaboration count per status
- /lastcontact         — most recently contacted collaborators

Commands only work in the guild's allowed channels, for administrators or
members holding one of the allowed roles.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

import discord
from discord import app_commands
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from guildboard.database.engine import run_db
from guildboard.engine import sheets
from guildboard.plugins.base import DashboardPlugin
from guildboard.services import event_sheet
from guildboard.services.embeds import (
    build_competition_embed,
    build_last_contact_embed,
    build_summary_embed,
    build_upcoming_events_embed,
)

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "❌ Event Manager permissions not configured."
WRONG_CHANNEL = "❌ You cannot use this command in this channel."
NO_PERMISSION = "❌ You do not have permission to use this command."


class EventSettings(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    allowed_roles: list[str] = Field(default_factory=list)
    allowed_channels: list[str] = Field(default_factory=list)
    sheet_csv_url: str | None = None


def command_denial(
    settings: dict[str, Any] | None,
    channel_id: int,
    is_admin: bool,
    role_ids: Iterable[int],
) -> str | None:
    """The refusal message for a command invocation, or ``None`` if allowed.

    The channel restriction applies to administrators too.
    """
    if not settings:
        return NOT_CONFIGURED
    allowed_channels = {str(c) for c in settings.get("allowed_channels") or []}
    if str(channel_id) not in allowed_channels:
        return WRONG_CHANNEL
    if is_admin:
        return None
    allowed_roles = {str(r) for r in settings.get("allowed_roles") or []}
    if any(str(r) in allowed_roles for r in role_ids):
        return None
    return NO_PERMISSION


class EventManagerPlugin(DashboardPlugin, name="EventManager"):
    """Tracks partner competitions and collaborations."""

    plugin_name = "Event Manager"
    plugin_description = "Manage competitions and collaborations"
    slug = "eventmanager"
    icon = "\U0001f4c5"
    nav_icon = "\U0001f4c5"
    component_html = '<div id="eventmanager-container" class="plugin-container"></div>'
    component_script = "window.guildboard?.mount('eventmanager');"

    default_settings = EventSettings().model_dump()

    async def _allowed(self, interaction: discord.Interaction) -> bool:
        settings = await self.load_settings(interaction.guild_id)
        member = interaction.user
        if not isinstance(member, discord.Member):
            member = await interaction.guild.fetch_member(interaction.user.id)
        denial = command_denial(
            settings,
            interaction.channel_id,
            member.guild_permissions.administrator,
            (role.id for role in member.roles),
        )
        if denial is None:
            return True
        await interaction.response.send_message(denial, ephemeral=True)
        return False

    async def _rows(self, guild_id: int) -> list[dict[str, str]]:
        doc = await run_db(event_sheet.load_collaborations, self.engine, guild_id)
        return doc["data"]

    # -------------------------------------------------------------------
    # Slash commands
    # -------------------------------------------------------------------
    @app_commands.command(name="upcomingevents", description="Show upcoming competitions and events.")
    @app_commands.guild_only()
    async def upcoming_events(self, interaction: discord.Interaction) -> None:
        if not await self._allowed(interaction):
            return
        upcoming = sheets.upcoming_events(await self._rows(interaction.guild_id))
        if not upcoming:
            await interaction.response.send_message("✅ No upcoming events.")
            return
        await interaction.response.send_message(embed=build_upcoming_events_embed(upcoming))

    @app_commands.command(name="competitionstatus", description="Get the status of a specific competition.")
    @app_commands.describe(name="Part of the collaborator name")
    @app_commands.guild_only()
    async def competition_status(self, interaction: discord.Interaction, name: str) -> None:
        if not await self._allowed(interaction):
            return
        match = sheets.find_collaboration(await self._rows(interaction.guild_id), name)
        if match is None:
            await interaction.response.send_message(
                f'❌ No competition found with name matching "{name}".'
            )
            return
        await interaction.response.send_message(embed=build_competition_embed(match))

    @app_commands.command(name="competitionsummary", description="Show counts of competitions per status.")
    @app_commands.guild_only()
    async def competition_summary(self, interaction: discord.Interaction) -> None:
        if not await self._allowed(interaction):
            return
        counts = sheets.status_summary(await self._rows(interaction.guild_id))
        await interaction.response.send_message(embed=build_summary_embed(counts))

    @app_commands.command(name="lastcontact", description="Show recent contacts sorted by date.")
    @app_commands.guild_only()
    async def last_contact(self, interaction: discord.Interaction) -> None:
        if not await self._allowed(interaction):
            return
        rows = sheets.by_last_contact(await self._rows(interaction.guild_id))
        await interaction.response.send_message(embed=build_last_contact_embed(rows))

    # -------------------------------------------------------------------
    # HTTP routes
    # -------------------------------------------------------------------
    def _sheet_url(self, settings: dict[str, Any]) -> str | None:
        url = settings.get("sheet_csv_url")
        if url:
            return url
        cfg = getattr(self.bot, "cfg", None)
        return getattr(cfg, "event_sheet_csv_url", None)

    def build_router(self, router: APIRouter) -> None:
        guard = self.auth_guard

        @router.get("/settings/{guild_id}")
        async def get_settings(guild_id: int, user: dict = Depends(guard)):
            await self.require_admin(user, guild_id)
            return await self.settings_or_default(guild_id)

        @router.post("/settings/{guild_id}")
        async def update_settings(guild_id: int, body: EventSettings, user: dict = Depends(guard)):
            await self.require_admin(user, guild_id)
            await self.save_settings(guild_id, body.model_dump())
            return {"success": True}

        @router.get("/server-data/{guild_id}")
        async def server_data(guild_id: int, user: dict = Depends(guard)):
            await self.require_admin(user, guild_id)
            guild = self.bot.get_guild(guild_id)
            if guild is None:
                raise HTTPException(status.HTTP_404_NOT_FOUND, "Guild not found")
            return {
                "roles": [
                    {"id": str(r.id), "name": r.name}
                    for r in guild.roles
                    if not r.is_default()
                ],
                "channels": [
                    {"id": str(c.id), "name": c.name} for c in guild.text_channels
                ],
            }

        @router.post("/sync/{guild_id}")
        async def sync(guild_id: int, user: dict = Depends(guard)):
            await self.require_admin(user, guild_id)
            url = self._sheet_url(await self.settings_or_default(guild_id))
            if not url:
                raise HTTPException(status.HTTP_400_BAD_REQUEST, "No spreadsheet URL configured")
            try:
                rows = await event_sheet.sync(self.engine, guild_id, url)
            except event_sheet.SheetSyncError as exc:
                logger.warning("Sheet sync failed for guild %s: %s", guild_id, exc)
                raise HTTPException(status.HTTP_502_BAD_GATEWAY, str(exc))
            return {"success": True, "data": rows}

        @router.get("/events/{guild_id}")
        async def events(guild_id: int, user: dict = Depends(guard)):
            await self.require_admin(user, guild_id)
            doc = await run_db(event_sheet.load_collaborations, self.engine, guild_id)
            upcoming = [
                {**event, "date": event["date"].isoformat()}
                for event in sheets.upcoming_events(doc["data"])
            ]
            return {
                "last_updated": doc["last_updated"],
                "collaborations": doc["data"],
                "upcoming": upcoming,
            }
