"""
guildboard.plugins.word_filter — Remove messages containing blocked words
==========================================================================

Each guild keeps ``{enabled, log_channel_id, blocked_words}``.  A matching
message is deleted, the author gets a censored echo in the same channel,
and a report embed goes to the log channel when one is set.
"""

from __future__ import annotations

import logging
from typing import Any

import discord
from discord.ext import commands
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field, field_validator

from guildboard.engine.word_filter import (
    censor,
    detect_blocked_words,
    normalize_word,
    sanitize_mentions,
)
from guildboard.plugins.base import DashboardPlugin
from guildboard.services.embeds import build_filter_log_embed

logger = logging.getLogger(__name__)


def _dedupe(words: list[str]) -> list[str]:
    seen: list[str] = []
    for word in map(normalize_word, words):
        if word and word not in seen:
            seen.append(word)
    return seen


class FilterSettings(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    enabled: bool = False
    log_channel_id: str | None = None
    blocked_words: list[str] = Field(default_factory=list)

    @field_validator("blocked_words")
    @classmethod
    def _normalize(cls, words: list[str]) -> list[str]:
        return _dedupe(words)


class WordRequest(BaseModel):
    word: str = ""


class WordFilterPlugin(DashboardPlugin, name="WordFilter"):
    """Filters blocked words from messages."""

    plugin_name = "Word Filter"
    plugin_description = "Automatically filter and remove messages containing blocked words"
    slug = "wordfilter"
    icon = "\U0001f6ab"
    nav_icon = "\U0001f6ab"
    component_html = '<div id="wordfilter-container" class="plugin-container"></div>'
    component_script = "window.guildboard?.mount('wordfilter');"

    default_settings = FilterSettings().model_dump()

    # -------------------------------------------------------------------
    # Listener
    # -------------------------------------------------------------------
    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        try:
            await self._handle_message(message)
        except Exception:
            logger.exception("Error filtering message %s", message.id)

    async def _handle_message(self, message: discord.Message) -> None:
        if message.author.bot or message.guild is None:
            return
        settings = await self.load_settings(message.guild.id)
        if not settings or not settings.get("enabled") or not settings.get("blocked_words"):
            return

        detected = detect_blocked_words(message.content, settings["blocked_words"])
        if not detected:
            return

        await message.delete()

        sanitized = sanitize_mentions(message.content)
        censored = censor(sanitized, detected)
        await message.channel.send(
            f"{message.author.mention}, your message contained blocked words and was removed:\n\n> {censored}",
            allowed_mentions=discord.AllowedMentions(everyone=False, roles=False, users=[message.author]),
        )

        log_channel_id = settings.get("log_channel_id")
        if log_channel_id:
            log_channel = self.bot.get_channel(int(log_channel_id))
            if log_channel is not None:
                await log_channel.send(embed=build_filter_log_embed(
                    message.author.mention,
                    str(message.author),
                    message.channel.mention,
                    detected,
                    sanitized,
                    censored,
                    message.id,
                ))

        logger.info(
            "Filtered message from %s in %s#%s: %s",
            message.author, message.guild.name, getattr(message.channel, "name", "?"),
            ", ".join(detected),
        )

    # -------------------------------------------------------------------
    # HTTP routes
    # -------------------------------------------------------------------
    async def _update_words(self, guild_id: int, change) -> list[str]:
        settings: dict[str, Any] = await self.settings_or_default(guild_id)
        settings["blocked_words"] = change(list(settings.get("blocked_words") or []))
        await self.save_settings(guild_id, settings)
        return settings["blocked_words"]

    def build_router(self, router: APIRouter) -> None:
        guard = self.auth_guard

        @router.get("/settings/{guild_id}")
        async def get_settings(guild_id: int, user: dict = Depends(guard)):
            await self.require_admin(user, guild_id)
            return await self.settings_or_default(guild_id)

        @router.post("/settings/{guild_id}")
        async def update_settings(guild_id: int, body: FilterSettings, user: dict = Depends(guard)):
            await self.require_admin(user, guild_id)
            await self.save_settings(guild_id, body.model_dump())
            return {"success": True}

        @router.post("/words/{guild_id}")
        async def add_word(guild_id: int, body: WordRequest, user: dict = Depends(guard)):
            await self.require_admin(user, guild_id)
            word = normalize_word(body.word)
            if not word:
                raise HTTPException(status.HTTP_400_BAD_REQUEST, "Word cannot be empty")
            words = await self._update_words(guild_id, lambda ws: _dedupe(ws + [word]))
            return {"success": True, "blocked_words": words}

        @router.delete("/words/{guild_id}/{word}")
        async def remove_word(guild_id: int, word: str, user: dict = Depends(guard)):
            await self.require_admin(user, guild_id)
            target = normalize_word(word)
            words = await self._update_words(guild_id, lambda ws: [w for w in ws if w != target])
            return {"success": True, "blocked_words": words}
