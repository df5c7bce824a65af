"""
guildboard.services.event_sheet — Collaboration spreadsheet sync
=================================================================

Downloads a published spreadsheet's CSV export and stores the parsed rows
per guild in the ``eventmanager.collaborations`` document namespace.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from guildboard.database.engine import run_db
from guildboard.engine.sheets import parse_csv
from guildboard.services import store

logger = logging.getLogger(__name__)

COLLABORATIONS_NAMESPACE = "eventmanager.collaborations"


class SheetSyncError(RuntimeError):
    """The spreadsheet could not be downloaded."""


async def fetch_csv(url: str, *, transport: httpx.AsyncBaseTransport | None = None) -> str:
    """GET *url* and return the body text.

    Raises
    ------
    SheetSyncError
        On transport errors or a non-200 response.
    """
    transport = transport or httpx.AsyncHTTPTransport(retries=1)
    try:
        async with httpx.AsyncClient(
            timeout=10, transport=transport, follow_redirects=True
        ) as client:
            resp = await client.get(url)
    except httpx.HTTPError as exc:
        raise SheetSyncError(f"Failed to fetch spreadsheet: {exc}") from exc

    if resp.status_code != 200:
        raise SheetSyncError(f"Spreadsheet export returned HTTP {resp.status_code}")
    return resp.text


def load_collaborations(engine, guild_id: int) -> dict[str, Any]:
    """``{"last_updated": epoch_ms | None, "data": [rows]}`` for *guild_id*."""
    doc = store.load_document(engine, COLLABORATIONS_NAMESPACE, guild_id, None)
    if not isinstance(doc, dict) or not isinstance(doc.get("data"), list):
        return {"last_updated": None, "data": []}
    return doc


async def sync(
    engine,
    guild_id: int,
    url: str,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[dict[str, str]]:
    """Fetch, parse and store the sheet for *guild_id*; returns the rows."""
    rows = parse_csv(await fetch_csv(url, transport=transport))
    await run_db(
        store.save_document,
        engine,
        COLLABORATIONS_NAMESPACE,
        guild_id,
        {"last_updated": int(time.time() * 1000), "data": rows},
    )
    logger.info("Synced %d collaborations for guild %s", len(rows), guild_id)
    return rows
