"""
guildboard.plugins.message_sender — Post as the bot from the dashboard
=======================================================================

Dashboard-only: admins compose a message with optional attachments, a
sticker and a reply target, and the bot posts it to a channel.
"""

from __future__ import annotations

import io
import logging

import discord
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from guildboard.plugins.base import DashboardPlugin

logger = logging.getLogger(__name__)

MAX_ATTACHMENT_BYTES = 25 * 1024 * 1024


class MessageSenderPlugin(DashboardPlugin, name="MessageSender"):
    """Send messages to Discord channels with optional attachments, replies, emojis, and stickers."""

    plugin_name = "Message Sender"
    plugin_description = (
        "Send messages to Discord channels with optional attachments, replies, emojis, and stickers"
    )
    slug = "message"
    icon = "\U0001f4ac"
    nav_icon = "\U0001f4ac"
    component_html = '<div id="message-container" class="plugin-container"></div>'
    component_script = "window.guildboard?.mount('message');"

    def _channel(self, channel_id: int):
        channel = self.bot.get_channel(channel_id)
        if channel is None or not hasattr(channel, "send"):
            raise HTTPException(status.HTTP_404_NOT_FOUND, "Channel not found")
        return channel

    def build_router(self, router: APIRouter) -> None:
        guard = self.auth_guard

        @router.get("/emojis/{guild_id}")
        async def list_emojis(guild_id: int, user: dict = Depends(guard)):
            await self.require_admin(user, guild_id)
            guild = self.bot.get_guild(guild_id)
            if guild is None:
                raise HTTPException(status.HTTP_404_NOT_FOUND, "Server not found")
            return {
                "emojis": [
                    {
                        "id": str(e.id),
                        "name": e.name,
                        "url": str(e.url),
                        "animated": e.animated,
                        "usage": f"<{'a' if e.animated else ''}:{e.name}:{e.id}>",
                    }
                    for e in guild.emojis
                ],
                "stickers": [
                    {
                        "id": str(s.id),
                        "name": s.name,
                        "description": s.description,
                        "url": str(s.url),
                        "format": s.format.name,
                    }
                    for s in guild.stickers
                ],
            }

        @router.post("/send")
        async def send_message(
            guild_id: int = Form(...),
            channel_id: int = Form(...),
            message: str | None = Form(None),
            reply_to_message_id: int | None = Form(None),
            sticker_id: int | None = Form(None),
            attachments: list[UploadFile] = File(default=[]),
            user: dict = Depends(guard),
        ):
            await self.require_admin(user, guild_id)
            channel = self._channel(channel_id)
            if getattr(channel, "guild", None) is None or channel.guild.id != guild_id:
                raise HTTPException(status.HTTP_404_NOT_FOUND, "Channel not found")

            files: list[discord.File] = []
            for upload in attachments:
                content = await upload.read()
                if len(content) > MAX_ATTACHMENT_BYTES:
                    raise HTTPException(
                        status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                        f"{upload.filename} exceeds the 25 MB attachment limit",
                    )
                files.append(discord.File(io.BytesIO(content), filename=upload.filename or "attachment"))

            content = message if message and message.strip() else None
            if content is None and not files and sticker_id is None:
                raise HTTPException(
                    status.HTTP_400_BAD_REQUEST, "Message, attachments, or sticker required"
                )

            kwargs: dict = {"content": content, "files": files}
            if sticker_id is not None:
                kwargs["stickers"] = [discord.Object(id=sticker_id)]
            if reply_to_message_id is not None:
                try:
                    target = await channel.fetch_message(reply_to_message_id)
                    kwargs["reference"] = target.to_reference(fail_if_not_exists=False)
                except discord.HTTPException:
                    logger.warning(
                        "Reply target %s not found in channel %s; sending without reply",
                        reply_to_message_id, channel_id,
                    )

            try:
                await channel.send(**kwargs)
            except discord.HTTPException as exc:
                logger.error("Failed to send message to channel %s: %s", channel_id, exc)
                raise HTTPException(status.HTTP_502_BAD_GATEWAY, "Failed to send message")

            logger.info("User %s sent a message to channel %s", user.get("sub"), channel_id)
            return {"success": True, "message": "Message sent successfully"}

        @router.get("/{channel_id}/{message_id}")
        async def preview_message(channel_id: int, message_id: int, user: dict = Depends(guard)):
            channel = self._channel(channel_id)
            guild = getattr(channel, "guild", None)
            if guild is None:
                raise HTTPException(status.HTTP_404_NOT_FOUND, "Channel not found")
            await self.require_admin(user, guild.id)
            try:
                msg = await channel.fetch_message(message_id)
            except discord.NotFound:
                raise HTTPException(status.HTTP_404_NOT_FOUND, "Message not found")
            return {
                "id": str(msg.id),
                "content": msg.content,
                "author": {
                    "username": msg.author.name,
                    "display_name": msg.author.display_name,
                    "avatar": str(msg.author.display_avatar.url),
                },
                "created_at": msg.created_at.isoformat(),
                "channel_name": channel.name,
                "guild_name": guild.name,
            }
