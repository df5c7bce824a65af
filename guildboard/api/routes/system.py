"""
guildboard.api.routes.system — Plugin listing and live logs
============================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from guildboard.api.deps import get_bot, get_current_admin, get_current_user
from guildboard.services.log_buffer import (
    VALID_LEVELS,
    get_current_level,
    get_logs,
    set_capture_level,
)

router = APIRouter(tags=["system"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Plugins
# ---------------------------------------------------------------------------
@router.get("/plugins")
def list_plugins(user: dict = Depends(get_current_user), bot=Depends(get_bot)):
    return bot.registry.info()


@router.get("/plugins/components")
def list_components(user: dict = Depends(get_current_user), bot=Depends(get_bot)):
    return bot.registry.components()


@router.get("/commands")
def list_commands(user: dict = Depends(get_current_user), bot=Depends(get_bot)):
    """Slash commands contributed by the loaded plugins."""
    return bot.registry.slash_commands()


# ---------------------------------------------------------------------------
# Live Logs
# ---------------------------------------------------------------------------
@router.get("/logs")
def get_live_logs(
    tail: int = Query(200, ge=1, le=5000),
    level: str | None = Query(None),
    logger_filter: str | None = Query(None, alias="logger"),
    user: dict = Depends(get_current_admin),
):
    """Return recent log entries from the in-memory ring buffer."""
    entries = get_logs(tail=tail, level=level, logger_filter=logger_filter)
    return {
        "entries": entries,
        "total": len(entries),
        "capture_level": get_current_level(),
        "valid_levels": list(VALID_LEVELS),
    }


@router.put("/logs/level")
def change_log_level(
    body: dict,
    user: dict = Depends(get_current_admin),
):
    """Change the capture level of the ring-buffer handler on the fly."""
    try:
        new_level = set_capture_level(str(body.get("level", "")))
    except ValueError:
        raise HTTPException(400, detail=f"Invalid level. Must be one of: {', '.join(VALID_LEVELS)}")
    logger.info("Log capture level changed to %s by %s", new_level, user.get("sub"))
    return {"level": new_level}
