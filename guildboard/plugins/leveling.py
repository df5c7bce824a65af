"""
guildboard.plugins.leveling — XP, levels, leaderboards & backups
=================================================================

XP sources (each toggled per guild and scaled by the guild multiplier):

* **Messages**: random 15–25 XP, at most once per member per 60 s.
* **Voice**: 10 XP per full minute in a voice channel, granted by a
  one-minute sweep of open sessions and settled on disconnect.
* **Reactions**: 5 XP to whoever reacts, 3 XP to the message author.

A guild with no saved settings earns nothing.  On a level increase the
plugin posts an embed to the guild's level-up channel and dispatches the
``level_up`` bot event ``(guild_id, user_id, new_level, old_level)`` for
anything else that wants to react.

Backups of each guild's XP records are taken at startup, every 30
minutes, on demand and before every restore.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any

import discord
from discord import app_commands
from discord.ext import commands, tasks
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from guildboard.constants import (
    BACKUP_INTERVAL_MINUTES,
    LEADERBOARD_DEFAULT_LIMIT,
    LEADERBOARD_MAX_LIMIT,
    MESSAGE_COOLDOWN_SECONDS,
    MESSAGE_XP_MAX,
    MESSAGE_XP_MIN,
    REACTION_GIVEN_XP,
    REACTION_RECEIVED_XP,
    VOICE_SWEEP_SECONDS,
    VOICE_XP_PER_MINUTE,
)
from guildboard.database.engine import run_db
from guildboard.engine.leveling import BOARDS, progress, scale_xp, voice_minutes
from guildboard.plugins.base import DashboardPlugin
from guildboard.services import backup_service, leveling_service
from guildboard.services.embeds import (
    build_leaderboard_embed,
    build_level_embed,
    build_level_up_embed,
)

logger = logging.getLogger(__name__)

COOLDOWN_PRUNE_MINUTES = 5


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------
class XpSources(BaseModel):
    messages: bool = True
    voice: bool = True
    reactions: bool = True


class LevelingSettings(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    xp_sources: XpSources = Field(default_factory=XpSources)
    level_up_channel_id: str | None = None
    xp_multiplier: float = Field(1.0, ge=0)


class AddXpRequest(BaseModel):
    guild_id: int
    user_id: int
    amount: int


class BackupCreateRequest(BaseModel):
    guild_id: int
    reason: str | None = None


class BackupRestoreRequest(BaseModel):
    guild_id: int
    backup_id: int


class GuildRequest(BaseModel):
    guild_id: int


class LevelingPlugin(DashboardPlugin, name="Leveling"):
    """Configurable XP from messages, voice and reactions."""

    plugin_name = "Leveling System"
    plugin_description = "Configure XP sources, view leaderboards, and manage user levels"
    version = "1.0.0"
    slug = "leveling"
    icon = "\U0001f4c8"
    nav_icon = "\U0001f4c8"
    component_html = '<div id="leveling-container" class="plugin-container"></div>'
    component_script = "window.guildboard?.mount('leveling');"

    default_settings = LevelingSettings().model_dump()

    def __init__(self, app, bot, auth_guard, permissions) -> None:
        # {(guild_id, user_id): monotonic time of last rewarded message}
        self._cooldowns: dict[tuple[int, int], float] = {}
        # {(guild_id, user_id): monotonic time up to which voice XP is settled}
        self._voice_sessions: dict[tuple[int, int], float] = {}
        super().__init__(app, bot, auth_guard, permissions)

    async def cog_load(self) -> None:
        await self._backup_all_guilds("startup", "Automatic startup backup")
        self.voice_sweep_loop.start()
        self.cooldown_prune_loop.start()
        self.periodic_backup_loop.start()

    async def cog_unload(self) -> None:
        self.voice_sweep_loop.cancel()
        self.cooldown_prune_loop.cancel()
        self.periodic_backup_loop.cancel()

    # -------------------------------------------------------------------
    # Settings helpers
    # -------------------------------------------------------------------
    async def _source_settings(self, guild_id: int, source: str) -> dict[str, Any] | None:
        """The guild's settings if *source* is switched on, else ``None``."""
        settings = await self.load_settings(guild_id)
        if not settings or not (settings.get("xp_sources") or {}).get(source):
            return None
        return settings

    @staticmethod
    def _multiplier(settings: dict[str, Any]) -> float:
        try:
            return float(settings.get("xp_multiplier", 1.0))
        except (TypeError, ValueError):
            return 1.0

    # -------------------------------------------------------------------
    # Awarding
    # -------------------------------------------------------------------
    async def award(
        self,
        guild: discord.Guild | None,
        guild_id: int,
        user_id: int,
        amount: int,
        **counters: int,
    ) -> leveling_service.XpChange:
        change = await run_db(
            leveling_service.add_xp, self.engine, guild_id, user_id, amount, **counters
        )
        if change.leveled_up:
            await self._handle_level_up(guild, change)
        return change

    async def _handle_level_up(
        self, guild: discord.Guild | None, change: leveling_service.XpChange
    ) -> None:
        try:
            await self._announce_level_up(guild, change)
        except discord.HTTPException:
            logger.warning(
                "Could not post level-up for %s in guild %s", change.user_id, change.guild_id
            )
        self.bot.dispatch(
            "level_up", change.guild_id, change.user_id, change.new_level, change.old_level
        )

    async def _announce_level_up(
        self, guild: discord.Guild | None, change: leveling_service.XpChange
    ) -> None:
        settings = await self.load_settings(change.guild_id) or {}
        channel_id = settings.get("level_up_channel_id")
        if not channel_id:
            return
        channel = self.bot.get_channel(int(channel_id))
        if channel is None:
            logger.debug("Level-up channel %s not found", channel_id)
            return

        member = guild.get_member(change.user_id) if guild else None
        user = member or self.bot.get_user(change.user_id)
        if user is None:
            user = await self.bot.fetch_user(change.user_id)
        embed = build_level_up_embed(
            user.display_name,
            user.display_avatar.url,
            change.new_level,
            change.old_level,
        )
        await channel.send(embed=embed)

    # -------------------------------------------------------------------
    # Message XP
    # -------------------------------------------------------------------
    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        try:
            await self._handle_message(message)
        except Exception:
            logger.exception("Error awarding message XP for %s", message.author.id)

    async def _handle_message(self, message: discord.Message) -> None:
        if message.author.bot or message.guild is None:
            return
        guild_id = message.guild.id
        settings = await self._source_settings(guild_id, "messages")
        if settings is None:
            return

        key = (guild_id, message.author.id)
        now = time.monotonic()
        last = self._cooldowns.get(key)
        if last is not None and now - last < MESSAGE_COOLDOWN_SECONDS:
            return
        self._cooldowns[key] = now

        amount = scale_xp(random.randint(MESSAGE_XP_MIN, MESSAGE_XP_MAX), self._multiplier(settings))
        await self.award(message.guild, guild_id, message.author.id, amount)

    @tasks.loop(minutes=COOLDOWN_PRUNE_MINUTES)
    async def cooldown_prune_loop(self) -> None:
        cutoff = time.monotonic() - MESSAGE_COOLDOWN_SECONDS
        stale = [key for key, ts in self._cooldowns.items() if ts < cutoff]
        for key in stale:
            del self._cooldowns[key]
        if stale:
            logger.debug("Pruned %d message cooldowns", len(stale))

    # -------------------------------------------------------------------
    # Voice XP
    # -------------------------------------------------------------------
    @commands.Cog.listener()
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        try:
            await self._handle_voice_update(member, before, after)
        except Exception:
            logger.exception("Error processing voice state update for %s", member.id)

    async def _handle_voice_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        if member.bot:
            return
        key = (member.guild.id, member.id)

        if before.channel is None and after.channel is not None:
            if await self._source_settings(member.guild.id, "voice") is not None:
                self._voice_sessions[key] = time.monotonic()
                logger.debug("%s joined voice in guild %s", member, member.guild.id)

        elif before.channel is not None and after.channel is None:
            started = self._voice_sessions.pop(key, None)
            if started is not None:
                await self._settle_voice(member.guild, key, time.monotonic() - started)

    async def _settle_voice(
        self, guild: discord.Guild | None, key: tuple[int, int], elapsed: float
    ) -> int:
        """Grant XP for the full minutes in *elapsed*; returns minutes granted."""
        minutes = voice_minutes(elapsed)
        if minutes <= 0:
            return 0
        guild_id, user_id = key
        settings = await self._source_settings(guild_id, "voice")
        if settings is None:
            return 0
        amount = scale_xp(minutes * VOICE_XP_PER_MINUTE, self._multiplier(settings))
        await self.award(guild, guild_id, user_id, amount, voice_minutes=minutes)
        return minutes

    async def sweep_voice_sessions(self, now: float | None = None) -> None:
        """Grant XP for every full minute accrued by open voice sessions."""
        now = time.monotonic() if now is None else now
        for key, started in list(self._voice_sessions.items()):
            minutes = voice_minutes(now - started)
            if minutes <= 0:
                continue
            self._voice_sessions[key] = started + minutes * 60
            try:
                await self._settle_voice(self.bot.get_guild(key[0]), key, minutes * 60)
            except Exception:
                logger.exception("Voice sweep failed for %s", key)

    @tasks.loop(seconds=VOICE_SWEEP_SECONDS)
    async def voice_sweep_loop(self) -> None:
        await self.sweep_voice_sessions()

    # -------------------------------------------------------------------
    # Reaction XP
    # -------------------------------------------------------------------
    @commands.Cog.listener()
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        try:
            await self._handle_reaction(payload)
        except Exception:
            logger.exception("Error awarding reaction XP for %s", payload.user_id)

    async def _handle_reaction(self, payload: discord.RawReactionActionEvent) -> None:
        if payload.guild_id is None:
            return
        if payload.member is not None and payload.member.bot:
            return
        settings = await self._source_settings(payload.guild_id, "reactions")
        if settings is None:
            return

        multiplier = self._multiplier(settings)
        guild = self.bot.get_guild(payload.guild_id)
        await self.award(
            guild, payload.guild_id, payload.user_id,
            scale_xp(REACTION_GIVEN_XP, multiplier), reactions_given=1,
        )

        author_id = payload.message_author_id
        if author_id is None or author_id == payload.user_id:
            return
        author = guild.get_member(author_id) if guild else None
        if author is not None and author.bot:
            return
        await self.award(
            guild, payload.guild_id, author_id,
            scale_xp(REACTION_RECEIVED_XP, multiplier), reactions_received=1,
        )

    # -------------------------------------------------------------------
    # Backups
    # -------------------------------------------------------------------
    async def _backup_all_guilds(self, kind: str, reason: str) -> None:
        try:
            guild_ids = await run_db(leveling_service.guilds_with_records, self.engine)
            for guild_id in guild_ids:
                await run_db(backup_service.create_backup, self.engine, guild_id, kind, reason)
        except Exception:
            logger.exception("%s backup failed", kind.capitalize())

    @tasks.loop(minutes=BACKUP_INTERVAL_MINUTES)
    async def periodic_backup_loop(self) -> None:
        # The first iteration fires at startup, right after cog_load's backup.
        if self.periodic_backup_loop.current_loop == 0:
            return
        await self._backup_all_guilds("periodic", "Automatic periodic backup")

    @periodic_backup_loop.before_loop
    async def _wait_periodic_backup(self) -> None:
        await self.bot.wait_until_ready()

    # -------------------------------------------------------------------
    # Slash commands
    # -------------------------------------------------------------------
    @app_commands.command(name="level", description="Check your level or another member's.")
    @app_commands.describe(user="The member to look up (defaults to you)")
    @app_commands.guild_only()
    async def level(self, interaction: discord.Interaction, user: discord.Member | None = None) -> None:
        await interaction.response.defer()
        settings = await self.load_settings(interaction.guild_id)
        if not settings or not any((settings.get("xp_sources") or {}).values()):
            await interaction.followup.send("\u274c Leveling system is not enabled on this server.")
            return

        target = user or interaction.user
        record = await run_db(
            leveling_service.get_record, self.engine, interaction.guild_id, target.id
        ) or leveling_service.empty_record(target.id)
        embed = build_level_embed(
            target.display_name, target.display_avatar.url, record, progress(record["xp"])
        )
        await interaction.followup.send(embed=embed)

    @app_commands.command(name="leaderboard", description="Show the server leaderboard.")
    @app_commands.rename(board="type")
    @app_commands.describe(board="Which leaderboard to show", limit="How many members to list")
    @app_commands.choices(board=[
        app_commands.Choice(name="Overall XP", value="overall"),
        app_commands.Choice(name="Voice Activity", value="voice"),
        app_commands.Choice(name="Reactions", value="reactions"),
    ])
    @app_commands.guild_only()
    async def leaderboard(
        self,
        interaction: discord.Interaction,
        board: str = "overall",
        limit: app_commands.Range[int, 1, LEADERBOARD_MAX_LIMIT] = LEADERBOARD_DEFAULT_LIMIT,
    ) -> None:
        await interaction.response.defer()
        limit = max(1, min(limit, LEADERBOARD_MAX_LIMIT))
        rows = await run_db(
            leveling_service.leaderboard, self.engine, interaction.guild_id, board, limit
        )
        if not rows:
            await interaction.followup.send("\u274c No data available for the leaderboard.")
            return

        guild = interaction.guild
        for row in rows:
            member = guild.get_member(int(row["user_id"])) if guild else None
            row["name"] = member.display_name if member else "Unknown User"
        await interaction.followup.send(embed=build_leaderboard_embed(board, rows))

    # -------------------------------------------------------------------
    # HTTP routes
    # -------------------------------------------------------------------
    async def _resolve_user(self, user_id: int) -> dict[str, Any]:
        user = self.bot.get_user(user_id)
        if user is None:
            try:
                user = await self.bot.fetch_user(user_id)
            except discord.HTTPException:
                user = None
        if user is None:
            return {"username": "Unknown User", "display_name": "Unknown User", "avatar": None}
        return {
            "username": user.name,
            "display_name": user.display_name,
            "avatar": user.display_avatar.url,
        }

    def build_router(self, router: APIRouter) -> None:
        guard = self.auth_guard

        @router.get("/settings/{guild_id}")
        async def get_settings(guild_id: int, user: dict = Depends(guard)):
            await self.require_admin(user, guild_id)
            return await self.settings_or_default(guild_id)

        @router.post("/settings/{guild_id}")
        async def update_settings(guild_id: int, body: LevelingSettings, user: dict = Depends(guard)):
            await self.require_admin(user, guild_id)
            await self.save_settings(guild_id, body.model_dump())
            return {"success": True}

        @router.get("/user/{guild_id}/{user_id}")
        async def get_user(guild_id: int, user_id: int):
            record = await run_db(
                leveling_service.get_record, self.engine, guild_id, user_id
            ) or leveling_service.empty_record(user_id)
            return {**record, **progress(record["xp"])}

        async def _leaderboard(guild_id: int, board: str, limit: int) -> list[dict[str, Any]]:
            if board not in BOARDS:
                raise HTTPException(status.HTTP_400_BAD_REQUEST, f"Unknown leaderboard type: {board}")
            rows = await run_db(leveling_service.leaderboard, self.engine, guild_id, board, limit)
            enriched = []
            for rank, row in enumerate(rows, start=1):
                enriched.append({"rank": rank, **row, **await self._resolve_user(int(row["user_id"]))})
            return enriched

        @router.get("/leaderboard/{guild_id}")
        async def get_leaderboard(guild_id: int, limit: int = Query(LEADERBOARD_DEFAULT_LIMIT, ge=1)):
            return await _leaderboard(guild_id, "overall", limit)

        @router.get("/leaderboard/{guild_id}/{board}")
        async def get_board(guild_id: int, board: str, limit: int = Query(LEADERBOARD_DEFAULT_LIMIT, ge=1)):
            return await _leaderboard(guild_id, board, limit)

        @router.post("/addxp")
        async def add_xp(body: AddXpRequest, user: dict = Depends(guard)):
            await self.require_admin(user, body.guild_id)
            change = await self.award(
                self.bot.get_guild(body.guild_id), body.guild_id, body.user_id, body.amount
            )
            return change.record

        @router.post("/backup/create")
        async def create_backup(body: BackupCreateRequest, user: dict = Depends(guard)):
            await self.require_admin(user, body.guild_id)
            backup = await run_db(
                backup_service.create_backup, self.engine, body.guild_id,
                "manual", body.reason or "Manual backup via dashboard",
            )
            return {"success": True, "backup": backup}

        @router.get("/backup/list/{guild_id}")
        async def list_backups(guild_id: int, user: dict = Depends(guard)):
            await self.require_admin(user, guild_id)
            return await run_db(backup_service.list_backups, self.engine, guild_id)

        @router.post("/backup/restore")
        async def restore_backup(body: BackupRestoreRequest, user: dict = Depends(guard)):
            await self.require_admin(user, body.guild_id)
            try:
                result = await run_db(
                    backup_service.restore_backup, self.engine, body.guild_id, body.backup_id
                )
            except backup_service.BackupNotFoundError:
                raise HTTPException(status.HTTP_404_NOT_FOUND, "Backup not found")
            return {"success": True, **result}

        @router.post("/sync")
        async def sync(body: GuildRequest, user: dict = Depends(guard)):
            await self.require_admin(user, body.guild_id)
            result = await run_db(leveling_service.validate_and_sync, self.engine, body.guild_id)
            return {"success": True, **result}
