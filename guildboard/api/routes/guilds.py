"""
guildboard.api.routes.guilds — Caller identity and guild lookups
=================================================================

Read-only views of live Discord state that the dashboard shell needs
before any plugin page loads: who am I, which guilds may I manage, and
the channel and role pickers for one guild.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from guildboard.api.deps import get_bot, get_current_user

router = APIRouter(tags=["core"])
logger = logging.getLogger(__name__)


async def _require_admin(bot, user: dict, guild_id: int) -> None:
    try:
        user_id = int(user["sub"])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token subject")
    if not await bot.permissions(user_id, guild_id):
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Insufficient permissions")


def _guild_or_404(bot, guild_id: int):
    guild = bot.get_guild(guild_id)
    if guild is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Guild not found")
    return guild


@router.get("/user")
def current_user(user: dict = Depends(get_current_user), bot=Depends(get_bot)):
    """The token's subject, enriched from the bot's user cache when possible."""
    info = {"id": user["sub"], "username": user.get("username")}
    cached = bot.get_user(int(user["sub"])) if str(user["sub"]).isdigit() else None
    if cached is not None:
        info["username"] = cached.name
        info["avatar"] = str(cached.display_avatar.url)
    return info


@router.get("/servers")
async def list_servers(user: dict = Depends(get_current_user), bot=Depends(get_bot)):
    """Guilds the bot is in and the caller may administer."""
    user_id = int(user["sub"])
    servers = []
    for guild in bot.guilds:
        if await bot.permissions(user_id, guild.id):
            servers.append({
                "id": str(guild.id),
                "name": guild.name,
                "icon": str(guild.icon.url) if guild.icon else None,
                "member_count": guild.member_count,
            })
    return servers


@router.get("/channels/{guild_id}")
async def list_channels(guild_id: int, user: dict = Depends(get_current_user), bot=Depends(get_bot)):
    await _require_admin(bot, user, guild_id)
    guild = _guild_or_404(bot, guild_id)
    channels = sorted(guild.text_channels, key=lambda c: c.position)
    return [{"id": str(c.id), "name": c.name} for c in channels]


@router.get("/roles/{guild_id}")
async def list_roles(guild_id: int, user: dict = Depends(get_current_user), bot=Depends(get_bot)):
    await _require_admin(bot, user, guild_id)
    guild = _guild_or_404(bot, guild_id)
    roles = sorted(
        (r for r in guild.roles if not r.is_default()),
        key=lambda r: r.position,
        reverse=True,
    )
    return [{"id": str(r.id), "name": r.name, "color": r.color.value} for r in roles]
