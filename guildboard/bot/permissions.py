"""
guildboard.bot.permissions — "May this user administer this guild?"
====================================================================

Every guarded dashboard route asks the same question.  The answer comes
from live Discord state: the member must hold the Administrator permission
or the configured moderator role.
"""

from __future__ import annotations

import logging

import discord
from discord.ext import commands

logger = logging.getLogger(__name__)


class GuildPermissionChecker:
    """Async callable ``(user_id, guild_id) -> bool`` handed to every plugin."""

    def __init__(self, bot: commands.Bot, moderator_role_id: int | None = None) -> None:
        self.bot = bot
        self.moderator_role_id = moderator_role_id

    async def _resolve_member(self, guild: discord.Guild, user_id: int) -> discord.Member | None:
        member = guild.get_member(user_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(user_id)
        except discord.HTTPException:
            return None

    async def __call__(self, user_id: int, guild_id: int) -> bool:
        guild = self.bot.get_guild(int(guild_id))
        if guild is None:
            logger.warning("Permission check: guild %s not found", guild_id)
            return False

        member = await self._resolve_member(guild, int(user_id))
        if member is None:
            logger.warning("Permission check: user %s is not a member of guild %s", user_id, guild_id)
            return False

        if member.guild_permissions.administrator:
            return True
        if self.moderator_role_id is not None:
            return any(role.id == self.moderator_role_id for role in member.roles)
        return False
