"""
guildboard.plugins.genre_discovery — Producer genre & DAW tags
===============================================================

Slash commands let members tag themselves and find each other:

- /gset genre|daw <tags>   — add comma-separated tags
- /gremove genre|daw <tag> — remove one tag
- /gfind genre|daw <tag>   — list members with a tag (ephemeral)
- /gtags [user]            — show a member's tags

Tag changes are echoed to the guild's log channel when one is configured.
"""

from __future__ import annotations

import logging

import discord
from discord import app_commands
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from guildboard.database.engine import run_db
from guildboard.plugins.base import DashboardPlugin
from guildboard.services import genre_service
from guildboard.services.embeds import (
    build_tag_log_embed,
    build_tag_search_embed,
    build_tags_embed,
)

logger = logging.getLogger(__name__)


class GenreSettings(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    log_channel_id: str | None = None
    predefined_genres: list[str] = Field(default_factory=list)
    predefined_daws: list[str] = Field(default_factory=list)


class GenreDiscoveryPlugin(DashboardPlugin, name="GenreDiscovery"):
    """Helps music producers share and discover each other's genres and setups."""

    plugin_name = "Genre Discovery"
    plugin_description = "Helps music producers share and discover each other's genres and setups."
    slug = "genrediscovery"
    icon = "\U0001f3b6"
    component_html = '<div id="genrediscovery-container" class="plugin-container"></div>'
    component_script = "window.guildboard?.mount('genrediscovery');"

    default_settings = GenreSettings().model_dump()

    gset = app_commands.Group(name="gset", description="Set your genre or software tags.", guild_only=True)
    gremove = app_commands.Group(name="gremove", description="Remove a genre or software tag.", guild_only=True)
    gfind = app_commands.Group(name="gfind", description="Find producers by genre or software.", guild_only=True)

    # -------------------------------------------------------------------
    # Shared command bodies
    # -------------------------------------------------------------------
    async def _log_change(
        self, interaction: discord.Interaction, action: str, kind: str, tags: list[str]
    ) -> None:
        settings = await self.load_settings(interaction.guild_id) or {}
        channel_id = settings.get("log_channel_id")
        if not channel_id:
            return
        channel = self.bot.get_channel(int(channel_id))
        if channel is None:
            return
        try:
            await channel.send(embed=build_tag_log_embed(
                interaction.user.display_name, action, kind, tags
            ))
        except discord.HTTPException:
            logger.warning("Could not post tag log to channel %s", channel_id)

    async def _set_tags(self, interaction: discord.Interaction, kind: str, raw: str) -> None:
        await interaction.response.defer()
        tags = genre_service.split_tags(raw)
        if not tags:
            await interaction.followup.send("Please provide at least one tag.")
            return
        await run_db(
            genre_service.add_tags, self.engine, interaction.guild_id, interaction.user.id, kind, tags
        )
        await self._log_change(interaction, "added", kind, tags)
        await interaction.followup.send(f"Your {kind} tags have been updated!")

    async def _remove_tag(self, interaction: discord.Interaction, kind: str, tag: str) -> None:
        await interaction.response.defer()
        tag = tag.strip()
        removed = await run_db(
            genre_service.remove_tag, self.engine, interaction.guild_id, interaction.user.id, kind, tag
        )
        if not removed:
            await interaction.followup.send(f"You don't have the **{tag}** tag.")
            return
        await self._log_change(interaction, "removed", kind, [tag])
        await interaction.followup.send(f"Removed **{tag}** from your {kind}s.")

    async def _find(self, interaction: discord.Interaction, kind: str, tag: str) -> None:
        await interaction.response.defer(ephemeral=True)
        tag = tag.strip()
        user_ids = await run_db(
            genre_service.find_users, self.engine, interaction.guild_id, kind, tag
        )
        mentions: list[str] = []
        for user_id in user_ids:
            member = interaction.guild.get_member(user_id)
            if member is None:
                try:
                    member = await interaction.guild.fetch_member(user_id)
                except discord.NotFound:
                    continue  # left the guild
            mentions.append(member.mention)
        await interaction.followup.send(
            embed=build_tag_search_embed(kind, tag, mentions), ephemeral=True
        )

    # -------------------------------------------------------------------
    # Slash commands
    # -------------------------------------------------------------------
    @gset.command(name="genre", description="Set your genre(s). Separate multiple with commas.")
    @app_commands.describe(tags="e.g., Trap, Lo-fi, DnB")
    async def gset_genre(self, interaction: discord.Interaction, tags: str) -> None:
        await self._set_tags(interaction, "genre", tags)

    @gset.command(name="daw", description="Set your software/DAW(s). Separate multiple with commas.")
    @app_commands.describe(tags="e.g., FL Studio, Ableton")
    async def gset_daw(self, interaction: discord.Interaction, tags: str) -> None:
        await self._set_tags(interaction, "daw", tags)

    @gremove.command(name="genre", description="Remove a genre tag.")
    @app_commands.describe(tag="The genre to remove")
    async def gremove_genre(self, interaction: discord.Interaction, tag: str) -> None:
        await self._remove_tag(interaction, "genre", tag)

    @gremove.command(name="daw", description="Remove a software/DAW tag.")
    @app_commands.describe(tag="The software to remove")
    async def gremove_daw(self, interaction: discord.Interaction, tag: str) -> None:
        await self._remove_tag(interaction, "daw", tag)

    @gfind.command(name="genre", description="Find producers by genre.")
    @app_commands.describe(tag="The genre to search for")
    async def gfind_genre(self, interaction: discord.Interaction, tag: str) -> None:
        await self._find(interaction, "genre", tag)

    @gfind.command(name="daw", description="Find producers by software/DAW.")
    @app_commands.describe(tag="The software to search for")
    async def gfind_daw(self, interaction: discord.Interaction, tag: str) -> None:
        await self._find(interaction, "daw", tag)

    @app_commands.command(name="gtags", description="View a member's tags.")
    @app_commands.describe(user="The member to view (defaults to you)")
    @app_commands.guild_only()
    async def gtags(self, interaction: discord.Interaction, user: discord.Member | None = None) -> None:
        target = user or interaction.user
        tags = await run_db(genre_service.get_tags, self.engine, interaction.guild_id, target.id)
        await interaction.response.send_message(
            embed=build_tags_embed(target.display_name, target.display_avatar.url, tags)
        )

    # -------------------------------------------------------------------
    # HTTP routes
    # -------------------------------------------------------------------
    def build_router(self, router: APIRouter) -> None:
        guard = self.auth_guard

        @router.get("/settings/{guild_id}")
        async def get_settings(guild_id: int, user: dict = Depends(guard)):
            await self.require_admin(user, guild_id)
            return await self.settings_or_default(guild_id)

        @router.post("/settings/{guild_id}")
        async def update_settings(guild_id: int, body: GenreSettings, user: dict = Depends(guard)):
            await self.require_admin(user, guild_id)
            await self.save_settings(guild_id, body.model_dump())
            return {"success": True}

        @router.get("/stats/{guild_id}")
        async def get_stats(guild_id: int, user: dict = Depends(guard)):
            await self.require_admin(user, guild_id)
            return await run_db(genre_service.tag_stats, self.engine, guild_id)

        @router.get("/tags/{guild_id}/{user_id}")
        async def get_member_tags(guild_id: int, user_id: int):
            return await run_db(genre_service.get_tags, self.engine, guild_id, user_id)
