"""
guildboard.__main__ — Entry point for ``python -m guildboard``
===============================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (soft settings).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Create the FastAPI app and the bot; the bot loads plugins onto the app.
5. Log in, then run the gateway connection and the HTTP server on one
   event loop until either stops.

Run with::

    python -m guildboard
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys

import uvicorn
from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("guildboard")


async def serve(token: str) -> None:
    # Imported here: api.deps validates JWT_SECRET at import time, after .env is loaded.
    from guildboard.api.main import create_app
    from guildboard.bot.core import GuildboardBot
    from guildboard.config import load_config
    from guildboard.database.engine import create_db_engine, init_db

    cfg = load_config()
    logger.info("Config loaded. Dashboard: %s", cfg.dashboard_name)

    engine = create_db_engine()
    init_db(engine)

    app = create_app(cfg.dashboard_name)
    bot = GuildboardBot(cfg=cfg, engine=engine, app=app)
    app.state.bot = bot

    server = uvicorn.Server(uvicorn.Config(
        app,
        host=cfg.dashboard_host,
        port=cfg.dashboard_port,
        log_config=None,
    ))

    async with bot:
        await bot.login(token)  # runs setup_hook, so plugin routes are mounted
        logger.info("Dashboard listening on http://%s:%d", cfg.dashboard_host, cfg.dashboard_port)
        tasks = {
            asyncio.create_task(bot.connect(), name="discord"),
            asyncio.create_task(server.serve(), name="dashboard"),
        }
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            if task.exception() is not None:
                logger.error("%s stopped with an error", task.get_name(), exc_info=task.exception())
        server.should_exit = True
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)


def main() -> None:
    """Bootstrap and run the bot and dashboard."""
    load_dotenv()

    token = os.getenv("DISCORD_TOKEN")
    if not token or token == "your-discord-bot-token-here":
        logger.critical(
            "DISCORD_TOKEN is not set.  "
            "Copy .env.example → .env and paste your bot token."
        )
        sys.exit(1)

    try:
        asyncio.run(serve(token))
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
